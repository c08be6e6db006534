"""Synthetic responses (checksum stubs, URL lists) and the public file inventory."""

from __future__ import annotations

import base64
import posixpath
from dataclasses import dataclass
from collections.abc import Iterable
from typing import Union
from urllib.parse import urljoin

from .errors import ContractError
from .file_group import FileGroup
from .file_ref import FileRef

MANIFEST_HEADER = "TsvHttpData-1.0"


@dataclass(frozen=True, slots=True)
class FileResponse:
    """A small text payload served inline at `url` by the web server."""

    url: str
    content: str

    def __post_init__(self) -> None:
        if not self.url.startswith("/"):
            raise ContractError(f"FileResponse.url must start with '/', got: {self.url!r}")

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "content": self.content}


def hex2base64url(hex_string: str) -> str:
    """Hex digest to base64url, re-padded with '=' to a multiple of 4."""
    encoded = base64.urlsafe_b64encode(bytes.fromhex(hex_string)).decode("ascii").rstrip("=")
    return encoded + "=" * (-len(encoded) % 4)


def checksum_response(file: FileRef, kind: str) -> FileResponse:
    """`<url>.<kind>` stub containing `<hash> <basename>\\n`."""
    if kind == "md5":
        digest = file.md5
    elif kind == "sha256":
        digest = file.sha256
    else:
        raise ContractError(f"unsupported hash kind {kind!r}")
    return FileResponse(f"{file.public_path}.{kind}", f"{digest} {posixpath.basename(file.public_path)}\n")


def checksum_responses(file: FileRef) -> list[FileResponse]:
    return [checksum_response(file, "md5"), checksum_response(file, "sha256")]


def manifest_for(group: FileGroup, base_url: str) -> FileResponse:
    """TsvHttpData-1.0 URL list for the group's latest version."""
    file = group.latest_version
    if file is None:
        raise ContractError(f'no latest file found in group "{group.slug}"')
    url = urljoin(base_url, file.public_path)
    return FileResponse(
        f"/urllist_{group.slug}.tsv",
        f"{MANIFEST_HEADER}\n{url}\t{file.size}\t{hex2base64url(file.md5)}\n",
    )


def responses_for(group: FileGroup, base_url: str) -> list[FileResponse]:
    """Checksum stubs for every version, plus the URL list when a latest exists."""
    result = [r for f in group.older_versions for r in checksum_responses(f)]
    if group.latest_version is not None:
        result.extend(checksum_responses(group.latest_version))
        result.append(manifest_for(group, base_url))
    return result


def unique_responses(responses: Iterable[FileResponse]) -> list[FileResponse]:
    """Drop responses whose url was already seen; the first one wins.

    Stubs are produced in the same order `collect_public_files` visits files,
    so a surviving checksum always belongs to the file that is served.
    """
    seen: dict[str, FileResponse] = {}
    for response in responses:
        seen.setdefault(response.url, response)
    return list(seen.values())


Entry = Union[FileGroup, FileRef, Iterable["Entry"]]


def collect_public_files(*entries: Entry) -> list[FileRef]:
    """Flatten groups, files and nested sequences; dedupe by public path.

    The first occurrence of a public path wins.
    """
    files: dict[str, FileRef] = {}

    def add(entry: object) -> None:
        if isinstance(entry, FileRef):
            files.setdefault(entry.public_path, entry)
        elif isinstance(entry, FileGroup):
            add(entry.older_versions)
            if entry.latest_version is not None:
                add(entry.latest_version)
        elif isinstance(entry, Iterable) and not isinstance(entry, (str, bytes)):
            for item in entry:
                add(item)
        else:
            raise TypeError(
                f"unsupported entry type {type(entry).__name__}; expected FileGroup, FileRef or sequences of those"
            )

    for entry in entries:
        add(entry)
    return list(files.values())

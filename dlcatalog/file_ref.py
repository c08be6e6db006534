"""The FileRef record: one physical data file, local or remote."""

from __future__ import annotations

import dataclasses
import logging
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path

from .errors import ContractError

logger = logging.getLogger(__name__)

PUBLIC_PATH_RE = re.compile(r"^/[^/]")
GIB = 2**30


@dataclass(frozen=True, slots=True)
class Hashes:
    md5: str
    sha256: str


@dataclass(slots=True)
class FileRef:
    """A single file of the catalog.

    `canonical_path` is what the storage layer needs to read the bytes: an
    absolute local path, or the remote path while the file is remote only.
    `public_path` is the HTTP path it is served under. Build instances with
    the named constructors below rather than calling the class directly.
    """

    canonical_path: str
    display_name: str
    public_path: str
    size: int
    is_remote: bool = False
    remote_path: str = ""
    webdav_path: str = ""
    hashes: Hashes | None = None

    def __post_init__(self) -> None:
        if not PUBLIC_PATH_RE.match(self.public_path):
            raise ContractError(f"public_path must start with a single '/', got: {self.public_path!r}")
        if self.size < 0:
            raise ContractError(f"size must not be negative, got {self.size} for {self.display_name!r}")

    @property
    def size_label(self) -> str:
        """Size in binary gigabytes with one decimal, e.g. '1.2 GB'."""
        return f"{self.size / GIB:.1f} GB"

    @property
    def md5(self) -> str:
        if self.hashes is None:
            raise ContractError(f'MD5 hash is missing for file "{self.display_name}"')
        return self.hashes.md5

    @property
    def sha256(self) -> str:
        if self.hashes is None:
            raise ContractError(f'SHA256 hash is missing for file "{self.display_name}"')
        return self.hashes.sha256

    def set_public_path(self, public_path: str) -> None:
        if not PUBLIC_PATH_RE.match(public_path):
            raise ContractError(f"public_path must start with a single '/', got: {public_path!r}")
        self.public_path = public_path

    def clone(self) -> FileRef:
        """Shallow copy with a distinct identity."""
        return dataclasses.replace(self)

    def moved(self, src_root: str | Path, dst_root: str | Path) -> FileRef:
        """Copy whose local path is re-rooted from `src_root` to `dst_root`.

        Remote files are copied unchanged.
        """
        copy = self.clone()
        if not copy.is_remote:
            rel = Path(copy.canonical_path).relative_to(src_root)
            copy.canonical_path = str(Path(dst_root) / rel)
        return copy

    def to_dict(self) -> dict[str, object]:
        return {
            "fullname": self.canonical_path,
            "filename": self.display_name,
            "url": self.public_path,
            "size": self.size,
            "sizeString": self.size_label,
            "isRemote": self.is_remote,
            "remotePath": self.remote_path,
            "webdavPath": self.webdav_path,
            "hashes": dataclasses.asdict(self.hashes) if self.hashes else None,
        }


def from_local_scan(path: str | Path, public_path: str | None = None) -> FileRef:
    """FileRef for a file on local disk; the size comes from the filesystem."""
    path = Path(path)
    return FileRef(
        canonical_path=str(path),
        display_name=path.name,
        public_path=public_path or f"/{path.name}",
        size=path.stat().st_size,
    )


def from_local(path: str | Path, size: int, public_path: str | None = None) -> FileRef:
    """FileRef for a local file whose size is already known."""
    path = Path(path)
    return FileRef(
        canonical_path=str(path),
        display_name=path.name,
        public_path=public_path or f"/{path.name}",
        size=size,
    )


def webdav_path_for(remote_path: str, remote_root: str) -> str:
    """Strip the storage root from a remote path, keeping the leading '/'."""
    root = remote_root.rstrip("/")
    if root and remote_path.startswith(root + "/"):
        return remote_path[len(root) :]
    return remote_path


def from_remote_listing(remote_path: str, size: int, display_name: str, remote_root: str = "/home") -> FileRef:
    """FileRef for a file that currently lives only on remote storage."""
    return FileRef(
        canonical_path=remote_path,
        display_name=display_name,
        public_path=f"/{display_name}",
        size=size,
        is_remote=True,
        remote_path=remote_path,
        webdav_path=webdav_path_for(remote_path, remote_root),
    )


def is_safe_name(name: str) -> bool:
    """Reject names that carry directory components or traversal."""
    return bool(name) and "/" not in name and "\\" not in name and "\0" not in name and ".." not in name


def parse_ls_listing(output: str, remote_root: str, extension: str) -> list[FileRef]:
    """Parse `ls -lR <remote_root>` output into remote FileRefs.

    Only regular files ending in `extension` are kept. Names may contain
    spaces; everything from the ninth column on is the name.
    """
    files: list[FileRef] = []
    current_dir = remote_root.rstrip("/") or "/"

    for line in output.splitlines():
        if not line.strip() or line.startswith("total "):
            continue
        if line.endswith(":"):
            current_dir = line[:-1].rstrip("/") or "/"
            continue
        if line.startswith("d"):
            continue

        parts = line.split()
        if len(parts) < 9:
            continue
        try:
            size = int(parts[4])
        except ValueError:
            continue

        name = " ".join(parts[8:])
        if not name.endswith(extension):
            continue
        if not is_safe_name(name):
            logger.warning("Skip unsafe remote file name: %r in %s", name, current_dir)
            continue

        remote_path = posixpath.join(current_dir, name)
        files.append(from_remote_listing(remote_path, size, name, remote_root))

    return sorted(files, key=lambda f: f.canonical_path)

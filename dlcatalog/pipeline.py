"""Run the catalog update end to end.

Phases:
A) Discover data files on remote storage.
B) Obtain MD5/SHA256 hashes (cached locally).
C) Group files into release tracks and pick each track's latest file.
D) Mirror the latest file of locally mirrored tracks.
E) Assemble the public file list and synthetic responses and write them,
   together with the grouped catalog, as JSON for the site and proxy layers.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import DEFAULT_VOLUME_FOLDER, Config
from .errors import DiscoveryError
from .file_group import FileGroup, group_files
from .file_ref import FileRef, from_local_scan
from .hashes import HashCache
from .remote import RemoteStorage
from .responses import FileResponse, collect_public_files, responses_for, unique_responses
from .sync import SyncReport, download_local_files

logger = logging.getLogger(__name__)

GROUPS_FILENAME = "fileGroups.json"
ROUTES_FILENAME = "routes.json"
CONTENT_SUFFIXES = {".html", ".xml"}


@dataclass(slots=True)
class RunResult:
    groups: list[FileGroup]
    files: list[FileRef]
    responses: list[FileResponse]
    sync: SyncReport


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write JSON to a temp file in the same folder, then rename into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
            fh.write("\n")
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


async def phase_a_discover(storage: RemoteStorage) -> list[FileRef]:
    """Phase A: list remote data files. An empty catalog is a misconfiguration."""
    files = await storage.list_files()
    if not files:
        raise DiscoveryError("no remote files found")
    return files


def content_files(content_folder: Path) -> list[FileRef]:
    """Rendered pages (index.html, feeds) already present in the content folder."""
    if not content_folder.is_dir():
        return []
    return [
        from_local_scan(path.resolve())
        for path in sorted(content_folder.iterdir())
        if path.is_file() and path.suffix in CONTENT_SUFFIXES
    ]


def phase_e_assemble(
    config: Config, groups: list[FileGroup]
) -> tuple[list[FileRef], list[FileResponse]]:
    """Phase E: deduplicated public files and synthetic responses, both sorted."""
    volume = Path(config.volume_folder).resolve()
    files = []
    for f in collect_public_files(groups, content_files(config.content_folder)):
        # local paths are rewritten to where the web server container mounts the volume
        if not f.is_remote and Path(f.canonical_path).is_relative_to(volume):
            files.append(f.moved(volume, DEFAULT_VOLUME_FOLDER))
        else:
            files.append(f.clone())
    files.sort(key=lambda f: f.public_path)

    responses = unique_responses(r for g in groups for r in responses_for(g, config.base_url))
    responses.sort(key=lambda r: r.url)
    return files, responses


def write_outputs(config: Config, result: RunResult) -> None:
    data_folder = config.data_folder
    write_json_atomic(data_folder / GROUPS_FILENAME, [g.to_dict() for g in result.groups])
    write_json_atomic(
        data_folder / ROUTES_FILENAME,
        {
            "files": [f.to_dict() for f in result.files],
            "responses": [r.to_dict() for r in result.responses],
        },
    )
    logger.info("Wrote %s and %s to %s", GROUPS_FILENAME, ROUTES_FILENAME, data_folder)


async def run(config: Config, storage: RemoteStorage | None = None) -> RunResult:
    """Execute all phases. Configuration errors abort before any side effect."""
    config.validate()
    storage = storage or RemoteStorage(config)
    logger.info("Starting update for %s", config.base_url)

    files = await phase_a_discover(storage)

    cache = HashCache(config.hash_cache_folder, storage, config.remote_root)
    await cache.ensure_hashes(files)

    groups = group_files(files)
    logger.info("Grouped %s files into %s groups", len(files), len(groups))

    sync_report = await asyncio.to_thread(
        download_local_files, groups, config.tiles_folder, storage, config.extension
    )

    public_files, responses = phase_e_assemble(config, groups)
    result = RunResult(groups=groups, files=public_files, responses=responses, sync=sync_report)
    write_outputs(config, result)

    logger.info(
        "Summary: remote_files=%s groups=%s public_files=%s responses=%s deleted=%s kept=%s downloaded=%s",
        len(files),
        len(groups),
        len(public_files),
        len(responses),
        len(sync_report.deleted),
        len(sync_report.kept),
        len(sync_report.downloaded),
    )
    return result

"""Keep the local high-speed mirror folder in step with the catalog.

The local folder holds only a subset of the catalog, normally the latest
file of every group marked for local mirroring. Stale entries are deleted
first, then missing ones are copied in, so a wrong-sized leftover is never
mistaken for a valid copy.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Protocol

from .errors import MirrorSyncError, RemoteCommandError
from .file_group import FileGroup
from .file_ref import FileRef, from_local_scan

logger = logging.getLogger(__name__)


class Downloader(Protocol):
    def download(self, remote_path: str, local_path: str) -> None: ...


@dataclass(slots=True)
class SyncReport:
    deleted: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)
    downloaded: list[str] = field(default_factory=list)


def scan_local_files(folder: str | Path, extension: str = ".versatiles") -> list[FileRef]:
    """FileRefs for the regular files in `folder` ending in `extension`."""
    folder = Path(folder)
    if not folder.exists():
        folder.mkdir(parents=True, exist_ok=True)
        return []
    return [
        from_local_scan(path.resolve())
        for path in sorted(folder.iterdir())
        if path.name.endswith(extension) and path.is_file()
    ]


def fetch_atomically(downloader: Downloader, remote_path: str, local_path: Path) -> None:
    """Copy into a temporary name, then rename into place."""
    tmp_path = local_path.with_name(f"{local_path.name}.download.{int(time.time() * 1000)}")
    logger.info("Downloading %s", Path(remote_path).name)
    try:
        downloader.download(remote_path, str(tmp_path))
    except (RemoteCommandError, OSError) as exc:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError as cleanup_exc:
            logger.warning("Could not remove %s: %s", tmp_path, cleanup_exc)
        raise MirrorSyncError(f"download failed for {remote_path}: {exc}") from exc
    tmp_path.replace(local_path)


def reconcile(
    wanted: Iterable[FileRef],
    existing: Iterable[FileRef],
    local_root: str | Path,
    downloader: Downloader,
) -> SyncReport:
    """Make `local_root` hold exactly the wanted files.

    Wanted files end up pointing at their local copy with `is_remote` cleared.
    """
    logger.info("Syncing local files...")
    local_root = Path(local_root)
    local_root.mkdir(parents=True, exist_ok=True)
    report = SyncReport()

    existing_map = {f.display_name: f for f in existing}
    wanted_map = {f.display_name: f for f in wanted}

    for name, existing_file in existing_map.items():
        wanted_file = wanted_map.get(name)
        if wanted_file is None or wanted_file.size != existing_file.size:
            logger.info("Deleting %s", name)
            Path(existing_file.canonical_path).unlink(missing_ok=True)
            report.deleted.append(name)

    for name, wanted_file in wanted_map.items():
        existing_file = existing_map.get(name)
        local_path = (local_root / name).resolve()

        # re-check the disk; the lookup alone may be stale
        if existing_file is not None and existing_file.size == wanted_file.size and local_path.is_file():
            logger.info("Keeping %s (already up to date)", name)
            report.kept.append(name)
        else:
            fetch_atomically(downloader, wanted_file.remote_path or wanted_file.canonical_path, local_path)
            report.downloaded.append(name)

        wanted_file.canonical_path = str(local_path)
        wanted_file.is_remote = False

    return report


def download_local_files(
    groups: Iterable[FileGroup],
    local_root: str | Path,
    downloader: Downloader,
    extension: str = ".versatiles",
) -> SyncReport:
    """Mirror the latest file of every group marked for local mirroring."""
    wanted = [g.latest_version for g in groups if g.mirror_locally and g.latest_version is not None]
    existing = scan_local_files(local_root, extension)
    return reconcile(wanted, existing, local_root, downloader)

"""Ensure every file has MD5 and SHA256 hashes, cached on local disk.

The cache mirrors the remote directory layout: the hash of
`<remote_root>/a/b.versatiles` lives in `<cache_root>/a/b.versatiles.md5`
with content `<hash> <basename>\\n`. Cached values are trusted as-is. Missing
ones are taken from a sidecar file next to the remote file, or computed on
the storage host, and written to the cache before the next file is handled.
"""

from __future__ import annotations

import logging
import os
import posixpath
import tempfile
import time
from pathlib import Path
from typing import Protocol

from .errors import ContractError, IntegrityError
from .file_ref import FileRef, Hashes

logger = logging.getLogger(__name__)

HASH_KINDS = ("md5", "sha256")
MIN_HASH_LENGTH = 32


class HashSource(Protocol):
    async def read_sidecar(self, remote_path: str, kind: str) -> str | None: ...

    async def compute_hash(self, remote_path: str, kind: str) -> str | None: ...


def parse_hash_output(output: str | None) -> str | None:
    """First whitespace token of `output` if it is at least 32 characters."""
    if not output:
        return None
    tokens = output.split()
    if not tokens or len(tokens[0]) < MIN_HASH_LENGTH:
        return None
    return tokens[0]


class ByteProgress:
    """Logs bytes done against a fixed total, with a rough ETA."""

    def __init__(self, total: int, label: str = "Hashing") -> None:
        self.total = total
        self.done = 0
        self.label = label
        self._start = time.monotonic()

    def increment(self, amount: int) -> None:
        self.done += amount
        elapsed = time.monotonic() - self._start
        percent = 100.0 * self.done / self.total if self.total else 100.0
        if self.done and elapsed > 0:
            eta = elapsed * (self.total - self.done) / self.done
            logger.info("%s: %s/%s bytes (%.1f%%), ETA %.0fs", self.label, self.done, self.total, percent, eta)
        else:
            logger.info("%s: %s/%s bytes (%.1f%%)", self.label, self.done, self.total, percent)


class HashCache:
    def __init__(self, cache_root: str | Path, source: HashSource, remote_root: str = "/home") -> None:
        self.cache_root = Path(cache_root)
        self.source = source
        self.remote_root = remote_root.rstrip("/")

    def cache_path(self, file: FileRef, kind: str) -> Path:
        """Local cache file for one `{file, kind}` pair."""
        locator = file.remote_path or file.canonical_path
        if self.remote_root and locator.startswith(self.remote_root + "/"):
            locator = locator[len(self.remote_root) :]
        rel = posixpath.normpath(locator.lstrip("/"))
        if rel.startswith("..") or rel in ("", "."):
            raise ContractError(f"cannot derive a hash cache path from {locator!r}")
        return self.cache_root / f"{rel}.{kind}"

    def read_cached(self, file: FileRef, kind: str) -> str | None:
        path = self.cache_path(file, kind)
        if not path.is_file():
            return None
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("Ignoring corrupt hash cache entry %s", path)
            return None
        return parse_hash_output(content)

    def write_cached(self, file: FileRef, kind: str, value: str) -> None:
        """Atomically write one cache entry; concurrent writers: last one wins."""
        path = self.cache_path(file, kind)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(f"{value} {file.display_name}\n")
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def obtain(self, file: FileRef, kind: str) -> str:
        """Fetch the remote sidecar, else compute remotely; raise if both fail."""
        locator = file.remote_path or file.canonical_path
        value = parse_hash_output(await self.source.read_sidecar(locator, kind))
        if value is None:
            logger.debug("Computing %s for %s", kind, file.display_name)
            value = parse_hash_output(await self.source.compute_hash(locator, kind))
        if value is None:
            raise IntegrityError(file.display_name, kind)
        return value

    async def ensure_hashes(self, files: list[FileRef]) -> None:
        """Populate `hashes` on every file, filling the cache as needed."""
        logger.info("Check hashes...")
        todos = [(file, kind) for file in files for kind in HASH_KINDS if self.read_cached(file, kind) is None]

        if todos:
            logger.info("Obtaining %s missing hashes", len(todos))
            progress = ByteProgress(sum(file.size for file, _ in todos))
            for file, kind in todos:
                value = await self.obtain(file, kind)
                self.write_cached(file, kind, value)
                progress.increment(file.size)

        logger.info("Read hashes...")
        for file in files:
            values = {}
            for kind in HASH_KINDS:
                value = self.read_cached(file, kind)
                if value is None:
                    raise IntegrityError(file.display_name, kind)
                values[kind] = value
            file.hashes = Hashes(**values)

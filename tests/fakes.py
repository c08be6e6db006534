"""In-memory stand-ins for the remote storage box."""

from __future__ import annotations

import hashlib
from pathlib import Path

from dlcatalog.errors import RemoteCommandError
from dlcatalog.file_ref import FileRef, from_remote_listing

FAKE_MD5 = "d41d8cd98f00b204e9800998ecf8427e"
FAKE_SHA = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def remote(name: str, size: int = 100, folder: str = "/home/data") -> FileRef:
    return from_remote_listing(f"{folder}/{name}", size, name, "/home")


def digest(path: str, kind: str) -> str:
    return hashlib.new(kind, path.encode("utf-8")).hexdigest()


class FakeStorage:
    """Implements the RemoteStorage methods the pipeline uses."""

    def __init__(self, files=None, sidecars=None, computable=True, failing_downloads=()):
        self.files = list(files or [])
        self.sidecars = dict(sidecars or {})
        self.computable = computable
        self.failing_downloads = set(failing_downloads)
        self.sizes = {f.remote_path: f.size for f in self.files}
        self.calls: list[tuple[str, str, str]] = []
        self.downloads: list[str] = []

    async def list_files(self):
        self.calls.append(("ls", "", ""))
        return list(self.files)

    async def read_sidecar(self, remote_path, kind):
        self.calls.append(("cat", remote_path, kind))
        return self.sidecars.get((remote_path, kind))

    async def compute_hash(self, remote_path, kind):
        self.calls.append(("sum", remote_path, kind))
        if not self.computable:
            return None
        return f"{digest(remote_path, kind)}  {remote_path}\n"

    def download(self, remote_path, local_path):
        self.downloads.append(remote_path)
        size = self.sizes.get(remote_path, 100)
        if remote_path in self.failing_downloads:
            Path(local_path).write_bytes(b"\0" * (size // 2))
            raise RemoteCommandError(["scp", remote_path, local_path], 1, "connection reset")
        Path(local_path).write_bytes(b"\0" * size)

"""SSH/SCP transport to the remote storage box.

Every call is bounded by a timeout; a call that does not answer in time
counts as a failure of that call. Transient failures are retried with
exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import subprocess
import time

from .config import Config
from .errors import DiscoveryError, RemoteCommandError
from .file_ref import FileRef, parse_ls_listing

logger = logging.getLogger(__name__)


class RemoteStorage:
    """Remote file lister, sidecar reader, hasher and copier."""

    def __init__(self, config: Config) -> None:
        self.config = config

    def _ssh_options(self, port_flag: str) -> list[str]:
        return [
            "-i",
            self.config.ssh_key,
            port_flag,
            str(self.config.ssh_port),
            "-o",
            "BatchMode=yes",
            "-o",
            "StrictHostKeyChecking=accept-new",
        ]

    def ssh_command(self, *remote_args: str) -> list[str]:
        remote = " ".join(shlex.quote(arg) for arg in remote_args)
        return ["ssh", *self._ssh_options("-p"), self.config.storage_url, remote]

    def scp_command(self, remote_path: str, local_path: str) -> list[str]:
        return ["scp", *self._ssh_options("-P"), f"{self.config.storage_url}:{remote_path}", local_path]

    async def _exec(self, command: list[str], timeout: float) -> str:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise RemoteCommandError(command, None) from None
        if proc.returncode != 0:
            raise RemoteCommandError(command, proc.returncode, stderr.decode("utf-8", "replace"))
        return stdout.decode("utf-8", "replace")

    async def run_ssh(self, *remote_args: str, retries: int | None = None) -> str:
        """Run a command on the storage host; return its stdout."""
        command = self.ssh_command(*remote_args)
        max_retries = self.config.max_retries if retries is None else retries
        for attempt in range(max_retries):
            try:
                return await self._exec(command, self.config.timeout_sec)
            except RemoteCommandError as exc:
                logger.warning("Remote call failed, retrying (%s/%s): %s", attempt + 1, max_retries, exc)
            await asyncio.sleep((2**attempt) * self.config.retry_delay_sec)
        return await self._exec(command, self.config.timeout_sec)

    async def list_files(self) -> list[FileRef]:
        """All files under the remote root that carry the configured extension."""
        logger.info("Scanning remote storage %s:%s", self.config.storage_url, self.config.remote_root)
        try:
            output = await self.run_ssh("ls", "-lR", self.config.remote_root)
        except RemoteCommandError as exc:
            raise DiscoveryError(f"failed to scan remote storage: {exc}") from exc
        files = parse_ls_listing(output, self.config.remote_root, self.config.extension)
        logger.info("Found %s %s files", len(files), self.config.extension)
        return files

    async def read_sidecar(self, remote_path: str, kind: str) -> str | None:
        """Content of `<remote_path>.<kind>`, or None when it cannot be read."""
        try:
            return await self.run_ssh("cat", f"{remote_path}.{kind}", retries=0)
        except RemoteCommandError as exc:
            logger.debug("No remote %s sidecar for %s: %s", kind, remote_path, exc)
            return None

    async def compute_hash(self, remote_path: str, kind: str) -> str | None:
        """Output of `<kind>sum <remote_path>` on the storage host, or None."""
        try:
            return await self.run_ssh(f"{kind}sum", remote_path)
        except RemoteCommandError as exc:
            logger.error("Remote %ssum failed for %s: %s", kind, remote_path, exc)
            return None

    def _copy(self, command: list[str]) -> None:
        try:
            result = subprocess.run(command, capture_output=True, timeout=self.config.copy_timeout_sec)
        except subprocess.TimeoutExpired:
            raise RemoteCommandError(command, None) from None
        if result.returncode != 0:
            raise RemoteCommandError(command, result.returncode, result.stderr.decode("utf-8", "replace"))

    def download(self, remote_path: str, local_path: str) -> None:
        """Copy a remote file to `local_path` with scp. Blocking."""
        command = self.scp_command(remote_path, local_path)
        max_retries = self.config.max_retries
        for attempt in range(max_retries):
            try:
                return self._copy(command)
            except RemoteCommandError as exc:
                logger.warning("Copy failed, retrying (%s/%s): %s", attempt + 1, max_retries, exc)
            time.sleep((2**attempt) * self.config.retry_delay_sec)
        self._copy(command)

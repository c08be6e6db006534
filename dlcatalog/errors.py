"""Exception taxonomy for the catalog pipeline."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for all pipeline failures."""


class ConfigError(CatalogError):
    """Required configuration is missing or malformed."""


class DiscoveryError(CatalogError):
    """Remote listing failed or found no files."""


class RemoteCommandError(CatalogError):
    """A remote SSH/SCP call failed, timed out or returned garbage."""

    def __init__(self, command: list[str], returncode: int | None, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr.strip()
        status = "timed out" if returncode is None else f"exit status {returncode}"
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"{command[0]} {status}{detail}")


class IntegrityError(CatalogError):
    """A file's hash could be neither fetched nor computed."""

    def __init__(self, filename: str, kind: str) -> None:
        self.filename = filename
        self.kind = kind
        super().__init__(f"could not obtain {kind} hash for {filename!r}")


class MirrorSyncError(CatalogError):
    """A wanted file could not be copied into the local mirror."""


class ContractError(CatalogError, ValueError):
    """Raised by accessors when a caller breaks a precondition."""

"""Runtime configuration loaded from a YAML file."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .errors import ConfigError

DEFAULT_VOLUME_FOLDER = "/volumes"


@dataclass(slots=True)
class Config:
    """Runtime configuration loaded from config.yaml."""

    storage_url: str = ""
    ssh_key: str = "/app/.ssh/storage"
    ssh_port: int = 23
    remote_root: str = "/home"
    extension: str = ".versatiles"
    domain: str = ""
    volume_folder: str = DEFAULT_VOLUME_FOLDER
    timeout_sec: float = 120.0
    copy_timeout_sec: float = 3600.0
    max_retries: int = 2
    retry_delay_sec: float = 1.0
    host: str = "0.0.0.0"
    port: int = 8081

    def validate(self) -> None:
        """Raise ConfigError unless the remote target and public domain are set."""
        if not self.storage_url:
            raise ConfigError("storage_url is not set (config key or $STORAGE_URL)")
        if not self.domain:
            raise ConfigError("domain is not set (config key or $DOMAIN)")
        if not self.extension.startswith("."):
            raise ConfigError(f"extension must start with '.', got {self.extension!r}")

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}/"

    @property
    def tiles_folder(self) -> Path:
        return Path(self.volume_folder) / "tiles"

    @property
    def content_folder(self) -> Path:
        return Path(self.volume_folder) / "content"

    @property
    def data_folder(self) -> Path:
        return Path(self.volume_folder) / "data"

    @property
    def hash_cache_folder(self) -> Path:
        return Path(self.volume_folder) / "hash_cache"


def load_config(config_path: Path | None = None, environ: dict[str, str] | None = None) -> Config:
    """Load config.yaml and apply defaults for missing keys.

    `storage_url` and `domain` fall back to $STORAGE_URL and $DOMAIN. Passing
    no path yields a config built from defaults and the environment alone.
    """
    env = os.environ if environ is None else environ
    data: object = {}
    if config_path is not None:
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("config.yaml must be a mapping")

    try:
        return Config(
            storage_url=str(data.get("storage_url") or env.get("STORAGE_URL", "")),
            ssh_key=str(data.get("ssh_key", "/app/.ssh/storage")),
            ssh_port=int(data.get("ssh_port", 23)),
            remote_root=str(data.get("remote_root", "/home")).rstrip("/") or "/",
            extension=str(data.get("extension", ".versatiles")),
            domain=str(data.get("domain") or env.get("DOMAIN", "")).strip("/"),
            volume_folder=str(data.get("volume_folder", DEFAULT_VOLUME_FOLDER)),
            timeout_sec=float(data.get("timeout_sec", 120)),
            copy_timeout_sec=float(data.get("copy_timeout_sec", 3600)),
            max_retries=int(data.get("max_retries", 2)),
            retry_delay_sec=float(data.get("retry_delay_sec", 1.0)),
            host=str(data.get("host", "0.0.0.0")),
            port=int(data.get("port", 8081)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid config value: {exc}") from exc

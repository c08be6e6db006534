"""Check the local mirror folder against the last written catalog."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .config import Config
from .pipeline import GROUPS_FILENAME

logger = logging.getLogger(__name__)


def load_expected(path: Path) -> dict[str, int]:
    """Names and sizes of the latest files of locally mirrored groups."""
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    entries: dict[str, int] = {}
    if not isinstance(data, list):
        return entries
    for group in data:
        if not isinstance(group, dict) or not group.get("local"):
            continue
        latest: Any = group.get("latestFile")
        if not isinstance(latest, dict):
            continue
        name, size = latest.get("filename"), latest.get("size")
        if isinstance(name, str) and isinstance(size, int):
            entries[name] = size
    return entries


def verify_mirror(config: Config) -> list[str]:
    """Return a list of problems; empty means the mirror matches the catalog."""
    problems: list[str] = []
    tiles = config.tiles_folder
    groups_path = config.data_folder / GROUPS_FILENAME

    if not groups_path.is_file():
        return [f"catalog not found: {groups_path}"]
    try:
        expected = load_expected(groups_path)
    except (OSError, json.JSONDecodeError) as exc:
        return [f"failed to load catalog: {exc}"]

    actual: dict[str, int] = {}
    if tiles.is_dir():
        for path in tiles.iterdir():
            if path.is_file() and path.name.endswith(config.extension):
                actual[path.name] = path.stat().st_size

    for name, expected_size in sorted(expected.items()):
        if name not in actual:
            problems.append(f"missing file: {name}")
        elif actual[name] != expected_size:
            problems.append(f"size mismatch: {name} (expected={expected_size}, actual={actual[name]})")

    for name in sorted(set(actual) - set(expected)):
        problems.append(f"extra file not in catalog: {name}")

    return problems


def main(config: Config) -> int:
    problems = verify_mirror(config)
    for problem in problems:
        logger.error("[NG] %s", problem)
    if not problems:
        logger.info("[OK] local mirror matches catalog")
    return 1 if problems else 0

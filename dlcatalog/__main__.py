"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from . import server, verify
from .config import load_config
from .errors import CatalogError
from .pipeline import run


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """CLI options."""
    parser = argparse.ArgumentParser(prog="dlcatalog", description="Catalog and mirror versioned data files")
    parser.add_argument("--config", default=None, help="Path to config YAML file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Run one update")
    sub.add_parser("serve", help="Serve the HTTP update trigger")
    sub.add_parser("verify", help="Check the local mirror against the catalog")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    config_path = Path(args.config) if args.config else None
    if config_path is not None and not config_path.exists():
        raise SystemExit(f"config file not found: {config_path}")

    try:
        config = load_config(config_path)
        if args.command == "serve":
            config.validate()
            server.serve(config)
        elif args.command == "verify":
            raise SystemExit(verify.main(config))
        else:
            asyncio.run(run(config))
    except CatalogError as exc:
        logging.error("%s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()

"""Operator command line for Backpack."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger

from core.exceptions import ConfigurationError
from core.logging_config import setup_logging_from_env
from core.settings import get_settings
from core.storage import create_storage_provider, prepare_local_root
from core.thumbnails import regenerate_thumbnails


def _read_names(args: argparse.Namespace) -> list[str]:
    names = list(args.names)
    if args.names_file:
        if str(args.names_file) == "-":
            lines = sys.stdin.read().splitlines()
        else:
            lines = args.names_file.read_text(encoding="utf-8").splitlines()
        names.extend(line.strip() for line in lines if line.strip())
    return names


def _log_progress(done: int, total: int, name: str) -> None:
    logger.info("[{done}/{total}] {name}", done=done, total=total, name=name)


def generate_thumbnails(args: argparse.Namespace) -> int:
    settings = get_settings(args.config)
    if settings.storage.provider == "local":
        prepare_local_root(settings.storage.local.path)
    storage = create_storage_provider(settings.storage)

    names = _read_names(args)
    logger.info("Regenerating image thumbnails")
    report = asyncio.run(
        regenerate_thumbnails(
            storage,
            names,
            size=settings.thumbnails.size,
            image_format=settings.thumbnails.format,
            concurrency=args.concurrency or settings.thumbnails.concurrency,
            progress=_log_progress,
        )
    )
    print(json.dumps(report.summary(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="backpack", description="Backpack storage maintenance")
    parser.add_argument("--config", type=str, default=None, help="YAML configuration file (default: $BACKPACK_CONFIG or config/default.yaml)")
    commands = parser.add_subparsers(dest="command", required=True)

    thumbs = commands.add_parser("generate-thumbnails", help="Regenerate thumb/<name> for stored images")
    thumbs.add_argument("names", nargs="*", help="Stored object names")
    thumbs.add_argument("--names-file", type=Path, help="File with one object name per line, '-' for stdin")
    thumbs.add_argument("--concurrency", type=int, default=None, help="Items processed at once (default from settings)")
    thumbs.set_defaults(handler=generate_thumbnails)
    return parser


def main(argv: list[str] | None = None) -> int:
    setup_logging_from_env("cli")
    args = build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except (ConfigurationError, FileNotFoundError) as exc:
        logger.error("Configuration problem: {error}", error=str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())

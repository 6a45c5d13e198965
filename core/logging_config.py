"""Structured logging configuration for Backpack."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any

from loguru import logger

_TRUTHY = {"true", "1", "yes"}


class JSONFormatter:
    """JSON formatter for structured logging."""

    def __init__(self, service: str) -> None:
        self.service = service

    def __call__(self, record: dict[str, Any]) -> str:
        log_data = {
            "timestamp": record["time"].isoformat(),
            "service": self.service,
            "level": record["level"].name,
            "message": record["message"],
            "module": record.get("module", ""),
            "function": record.get("function", ""),
            "line": record.get("line", 0),
        }

        exception = record.get("exception")
        if exception:
            log_data["exception"] = {
                "type": exception.type.__name__ if exception.type else None,
                "value": str(exception.value) if exception.value else None,
            }

        if record.get("extra"):
            log_data.update({key: str(value) for key, value in record["extra"].items()})

        # loguru treats the returned string as a format template
        serialized = json.dumps(log_data, ensure_ascii=False)
        return serialized.replace("{", "{{").replace("}", "}}") + "\n"


def _console_format(service: str) -> str:
    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        f"<magenta>{service}</magenta> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )


def setup_logging(
    *,
    service: str = "backpack",
    level: str = "INFO",
    json_format: bool = False,
    log_file: Path | None = None,
    rotation: str = "10 MB",
) -> None:
    """Configure logging for a Backpack process.

    Args:
        service: Name of the process (api, worker, cli) attached to every record.
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Emit JSON lines on stderr instead of the coloured console format.
        log_file: Optional file sink. It always receives JSON lines.
        rotation: Size or age at which the file sink rolls over.
    """
    logger.remove()

    structured = JSONFormatter(service)
    logger.add(
        sys.stderr,
        format=structured if json_format else _console_format(service),
        level=level,
        colorize=not json_format,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=structured,
            level=level,
            rotation=rotation,
            retention="7 days",
            compression="zip",
            enqueue=True,
        )


def setup_logging_from_env(service: str) -> None:
    """Configure logging from LOG_LEVEL, JSON_LOGGING, LOG_FILE and LOG_ROTATION."""
    log_file = os.getenv("LOG_FILE")
    setup_logging(
        service=service,
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        json_format=os.getenv("JSON_LOGGING", "false").lower() in _TRUTHY,
        log_file=Path(log_file) if log_file else None,
        rotation=os.getenv("LOG_ROTATION", "10 MB"),
    )


__all__ = ["JSONFormatter", "setup_logging", "setup_logging_from_env"]

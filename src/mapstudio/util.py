"""Logging setup, topology cache keys, and CLI output files."""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
PACKAGE_LOGGER = "mapstudio"


def setup_logging(log_file: Path | None = None, verbose: bool = False) -> logging.Logger:
    """Send `mapstudio.*` records to stderr and, when given, to `log_file`.

    Calling it again replaces the handlers of the previous call.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger


def topology_cache_key(path: Path) -> str:
    """Cache key derived from the bytes of a topology file."""
    return "topology:" + hashlib.sha256(path.read_bytes()).hexdigest()


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def write_report_json(path: Path, payload: dict[str, Any]) -> None:
    """Write a render report; summary counters keep their insertion order."""
    write_text(path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")

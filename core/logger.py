"""Logging configuration for the watermark remover."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Mapping, Optional

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_CONSOLE_FORMAT = "%(levelname)s | %(name)s | %(message)s"


def _resolve_log_path(filename: str) -> Path:
    expanded = Path(os.path.expandvars(filename)).expanduser()
    try:
        expanded.parent.mkdir(parents=True, exist_ok=True)
        return expanded
    except OSError:
        fallback_dir = Path("./logs")
        fallback_dir.mkdir(parents=True, exist_ok=True)
        return fallback_dir / Path(filename).name


def _resolve_level(value: Any) -> int:
    level = logging.getLevelName(str(value).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level: {value}")
    return level


def _has_file_handler(root_logger: logging.Logger, log_path: Path) -> bool:
    return any(
        isinstance(h, RotatingFileHandler)
        and Path(getattr(h, "baseFilename", "")).resolve() == log_path.resolve()
        for h in root_logger.handlers
    )


def setup_logging(settings: Mapping[str, Any], *, force: bool = False) -> None:
    """Configure root handlers from the ``logging`` config section.

    ``force`` closes and drops existing root handlers first.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(_resolve_level(settings.get("level", "INFO")))

    if force:
        for handler in list(root_logger.handlers):
            handler.close()
            root_logger.removeHandler(handler)

    console_settings = settings.get("console", {}) or {}
    if console_settings.get("enabled", True):
        # RotatingFileHandler subclasses StreamHandler, so match the type exactly.
        if not any(type(h) is logging.StreamHandler for h in root_logger.handlers):
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(
                logging.Formatter(console_settings.get("format", DEFAULT_CONSOLE_FORMAT))
            )
            root_logger.addHandler(console_handler)

    file_settings = settings.get("file", {}) or {}
    if file_settings.get("enabled", False):
        filename = file_settings.get("filename")
        if not filename:
            raise ValueError("File logging enabled but no filename provided.")
        log_path = _resolve_log_path(filename)
        if not _has_file_handler(root_logger, log_path):
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=int(file_settings.get("rotate_bytes", 1_048_576)),
                backupCount=int(file_settings.get("backups", 5)),
                encoding="utf-8",
            )
            file_handler.setFormatter(logging.Formatter(file_settings.get("format", DEFAULT_FORMAT)))
            root_logger.addHandler(file_handler)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Helper to retrieve a module-specific logger."""
    return logging.getLogger(name)


__all__ = ["setup_logging", "get_logger", "DEFAULT_FORMAT", "DEFAULT_CONSOLE_FORMAT"]

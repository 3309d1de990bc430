from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import os


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LEVEL_ENV = "BUILDPIPE_LOG_LEVEL"

_configured = False


def _ensure_base_logger() -> None:
    global _configured
    if _configured:
        return
    level = os.getenv(LEVEL_ENV, "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
    )
    _configured = True


def configure(level: str | None = None, log_file: Path | None = None) -> None:
    """Apply CLI logging options on top of the base configuration."""
    _ensure_base_logger()
    root = logging.getLogger("buildpipe")
    if level:
        root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if log_file and not any(
        isinstance(h, RotatingFileHandler) and h.baseFilename == os.path.abspath(log_file)
        for h in root.handlers
    ):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    _ensure_base_logger()
    return logging.getLogger(name)

"""
Ephemeral Chat Relay - Logging Setup

Configures the root logger from application settings.
"""

import logging
import os
from pathlib import Path
from typing import List

from relay.config import Settings


def _parse_level(value, default: int) -> int:
    if isinstance(value, int):
        return value
    text = str(value or "").strip().upper()
    if not text:
        return default
    if text == "WARN":
        text = "WARNING"
    level = logging.getLevelName(text)
    if isinstance(level, int):
        return level
    try:
        return int(text)
    except ValueError:
        return default


def configure_logging(settings: Settings) -> None:
    """
    Install console (and optional file) handlers on the root logger.

    Safe to call more than once; previously installed handlers are replaced.
    """
    level = logging.DEBUG if settings.DEBUG else _parse_level(settings.LOG_LEVEL, logging.INFO)

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if settings.LOG_FILE and settings.LOG_FILE.strip():
        path = Path(os.path.expanduser(settings.LOG_FILE))
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    formatter = logging.Formatter(settings.LOG_FORMAT or "%(asctime)s %(levelname)s %(name)s: %(message)s")
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)

    # Per-request access lines are noisy for long-lived streams
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.WARNING))
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    logging.captureWarnings(True)

"""Process-wide logging setup shared by the API factory and the offline client.

One stdout handler on the root logger; module loggers propagate to it. The
level comes from the caller or `FIELDSYNC_LOG_LEVEL`. httpx's per-request
INFO lines are lowered to WARNING so sync drains do not flood the console.
"""

from __future__ import annotations

import logging
import os
from logging.config import dictConfig
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"
_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_level(level: Optional[str]) -> str:
    token = (level or os.getenv("FIELDSYNC_LOG_LEVEL") or "INFO").strip().upper()
    return token if token in _LEVELS else "INFO"


def build_logging_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
        },
    }


def configure_logging(level: Optional[str] = None) -> None:
    """Install the root handler once; later calls are no-ops.

    Returning early when the root logger already has handlers keeps reloaders
    and test runners from doubling every line.
    """
    if logging.getLogger().handlers:
        return
    dictConfig(build_logging_config(_resolve_level(level)))


__all__ = ["LOG_FORMAT", "build_logging_config", "configure_logging"]

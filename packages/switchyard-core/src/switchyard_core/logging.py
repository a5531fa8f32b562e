from __future__ import annotations

import json
import logging
import os
import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from switchyard_core.config import LoggingConfig

_ROOT = "switchyard"
_LEVEL_ENV = "SWITCHYARD_LOG_LEVEL"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": record.created,
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(
    config: LoggingConfig | None = None,
    *,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure and return the root switchyard logger.

    The level comes from ``SWITCHYARD_LOG_LEVEL`` when set, otherwise
    from *config*. Calling this twice leaves the first handler in place.
    """
    logger = logging.getLogger(_ROOT)
    if logger.handlers:
        return logger

    level = os.environ.get(_LEVEL_ENV) or (config.level if config else "INFO")
    json_output = config.json if config else False

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        ))

    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger under the switchyard namespace."""
    return logging.getLogger(f"{_ROOT}.{name}")

"""
Process-wide logging setup.

LoggingConfig() is idempotent: the first call installs a single stream
handler on the root logger, later calls only adjust the level.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from app.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_HANDLER_NAME = "linedesk-stream"


class LoggingConfig:
    def __init__(self, level: Optional[str] = None) -> None:
        self.level = (level or get_settings().log_level or "INFO").upper()
        self._configure()

    def _configure(self) -> None:
        root = logging.getLogger()
        root.setLevel(self.level)
        if any(h.get_name() == _HANDLER_NAME for h in root.handlers):
            return
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        # uvicorn access lines are noisy next to per-event ingestion logs
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str = "linedesk") -> logging.Logger:
    return logging.getLogger(name)

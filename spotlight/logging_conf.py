# spotlight/logging_conf.py
from __future__ import annotations

import json
import logging
from logging.config import dictConfig
from typing import Any


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs to stdout."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # Include standard extras if present
        for extra_key in ("module", "funcName", "lineno"):
            val = getattr(record, extra_key, None)
            if val:
                payload[extra_key] = val
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure stdlib logging for uvicorn/fastapi and our module loggers.

    Application messages go through AppLogger; this only covers the library
    loggers and module-level diagnostics (spotlight.rotation, spotlight.data_client).
    """
    log_level = log_level.upper()
    formatter = "json" if json_logs else "plain"

    dict_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": JsonFormatter,
            },
            "plain": {
                "format": "%(levelname)s %(name)s %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "uvicorn": {"level": log_level, "handlers": ["console"], "propagate": False},
            "uvicorn.error": {"level": log_level, "handlers": ["console"], "propagate": False},
            # request lines come from our timing middleware instead
            "uvicorn.access": {"level": "WARNING", "handlers": ["console"], "propagate": False},
            "fastapi": {"level": log_level, "handlers": ["console"], "propagate": False},
            "httpx": {"level": "WARNING", "handlers": ["console"], "propagate": False},
            "spotlight": {"level": log_level, "handlers": ["console"], "propagate": False},
        },
    }

    dictConfig(dict_config)

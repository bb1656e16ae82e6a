"""Unified logging utilities for the Cilium agent."""
from __future__ import annotations

import logging
import sys

import orjson

from .env_flags import is_truthy_env

DEFAULT_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            'ts': record.created,
            'level': record.levelname,
            'logger': record.name,
            'thread': record.threadName,
            'msg': record.getMessage(),
        }
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode('utf-8')


def setup_logging(level: str = 'INFO', json_logs: bool | None = None,
                  fmt: str = DEFAULT_FORMAT) -> logging.Logger:
    """Configure root logging with a single stdout handler.

    Existing root handlers are removed to avoid duplicate lines on re-init.
    `json_logs=None` defers to the CILIUM_JSON_LOGS environment flag.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()

    if json_logs is None:
        json_logs = is_truthy_env('CILIUM_JSON_LOGS')

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)
    if json_logs:
        console.setFormatter(JsonFormatter())
    else:
        console.setFormatter(logging.Formatter(fmt))
    root.addHandler(console)
    return root


__all__ = ["DEFAULT_FORMAT", "JsonFormatter", "setup_logging"]

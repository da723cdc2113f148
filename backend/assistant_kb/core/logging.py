"""Logging utilities for the assistant knowledge base."""

from __future__ import annotations

import logging
import os
import re
import sys
from typing import Any

import orjson

ROOT_LOGGER = "assistant_kb"
_DEFAULT_LEVEL = os.environ.get("AKB_LOG_LEVEL", "INFO")
_DEFAULT_JSON = os.environ.get("AKB_LOG_FORMAT", "json").lower() != "text"

# Provider error bodies get logged verbatim; keys must not leak with them.
_SECRET_RE = re.compile(r"(Bearer\s+)?\bsk-[A-Za-z0-9_-]{8,}")


def redact(message: str) -> str:
    return _SECRET_RE.sub("[redacted]", message)


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``ctx_*`` extras become top-level fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }
        for key, value in record.__dict__.items():
            if key.startswith("ctx_") and value is not None:
                payload[key[4:]] = value
        if record.exc_info:
            payload["exc_info"] = redact(self.formatException(record.exc_info))
        return orjson.dumps(payload, default=str).decode("utf-8")


class TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def configure_logging(level: str | int = _DEFAULT_LEVEL, use_json: bool = _DEFAULT_JSON) -> None:
    """Attach a single stdout handler to the package logger.

    Only the ``assistant_kb`` logger is touched so an embedding server keeps
    its own root configuration.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if use_json else TextFormatter())
    logger.handlers = [handler]
    logger.propagate = False


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Return a logger below the package logger, configuring it on first use."""
    if not logging.getLogger(ROOT_LOGGER).handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter", "TextFormatter", "redact"]

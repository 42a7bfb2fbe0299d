"""Structured logging helpers for the try-on studio."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict

_DEFAULT_EXCLUDE_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}
# Fields that carry image payloads; never dump them into logs.
_IMAGE_KEYS = {"base64", "image", "photo", "final_image", "image_url", "url"}
_MAX_STRING = 200


class JsonFormatter(logging.Formatter):
    """Emit one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        record_message = super().format(record)
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record_message,
        }

        for key, value in record.__dict__.items():
            if key in _DEFAULT_EXCLUDE_KEYS or key in payload:
                continue
            payload[key] = redact_for_log(value, key)
        return json.dumps(payload)


def configure_logging(level: int | str | None = None) -> None:
    """Configure root logging with JSON output."""

    desired_level = level or os.getenv("LOG_LEVEL", "INFO")
    logging.root.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=desired_level, handlers=[handler])


def _redact_string(value: str) -> str:
    if value.startswith("data:"):
        header = value.split(",", 1)[0]
        return f"[{header} {len(value)} chars]"
    if len(value) > _MAX_STRING:
        return f"[{len(value)} chars]"
    return value


def redact_for_log(payload: Any, key: str | None = None) -> Any:
    """Recursively shorten image payloads so logs stay readable."""

    if payload is None:
        return None
    if isinstance(payload, str):
        if key in _IMAGE_KEYS:
            return f"[image {len(payload)} chars]"
        return _redact_string(payload)
    if isinstance(payload, (int, float, bool)):
        return payload
    if isinstance(payload, (list, tuple)):
        return [redact_for_log(item) for item in payload]
    if isinstance(payload, dict):
        return {k: redact_for_log(v, k) for k, v in payload.items()}
    return _redact_string(str(payload))


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""

    return logging.getLogger(name)

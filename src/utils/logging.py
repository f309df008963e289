"""Shared logging configuration and logger factory."""

from __future__ import annotations

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict


_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_LOG_ROOT = _PROJECT_ROOT / "log"
_LOG_FILE_NAME = "gallery_sync.log"
_LEVEL_ENV = "GALLERY_SYNC_LOG_LEVEL"


def _record_extras(record: logging.LogRecord, ignore: set[str]) -> Dict[str, Any]:
    """Return fields attached to ``record`` through ``extra=``."""

    standard_keys = set(logging.makeLogRecord({}).__dict__.keys()) | ignore
    return {key: value for key, value in record.__dict__.items() if key not in standard_keys}


class _StructuredFormatter(logging.Formatter):
    """Formatter that renders records as single-line JSON objects (JSONL-friendly)."""

    def format(self, record: logging.LogRecord) -> str:
        extras = _record_extras(record, {"stack_info"})

        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        payload.update(extras)

        return json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)


class _ConsoleFormatter(logging.Formatter):
    """Console formatter that appends ``extra`` fields as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = _record_extras(record, {"stack_info", "asctime", "message"})
        if not extras:
            return base

        parts = [f"{key}={value!r}" for key, value in sorted(extras.items())]
        return f"{base} | " + " ".join(parts)


def _configure_root_logger() -> None:
    """Attach console and rotating-file handlers to the root logger once."""

    root = logging.getLogger()
    if root.handlers:
        return

    level_name = os.getenv(_LEVEL_ENV, "INFO").upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(_ConsoleFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(console_handler)

    try:
        _LOG_ROOT.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            _LOG_ROOT / _LOG_FILE_NAME,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(_StructuredFormatter())
        root.addHandler(file_handler)
    except OSError:
        # Read-only checkouts still get console logging.
        pass


class _MergingAdapter(logging.LoggerAdapter):
    """Adapter that merges call-site ``extra`` over the adapter base mapping."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str, extra: Dict[str, Any] | None = None) -> logging.LoggerAdapter:
    """Return a structured logger adapter for the given name.

    The first call configures the root handlers. ``extra`` is a base mapping
    attached to every record emitted through the returned adapter.
    """

    _configure_root_logger()
    logger = logging.getLogger(name)
    return _MergingAdapter(logger, extra or {})


__all__ = ["get_logger"]

"""Logging helpers for the quiz engine."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from ..config import config

__all__ = [
    "JsonLogFormatter",
    "configure_logger",
]


class JsonLogFormatter(logging.Formatter):
    """Emit log records as structured JSON lines."""

    _RESERVED = {
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

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = {
            key: _coerce_value(value)
            for key, value in record.__dict__.items()
            if key not in self._RESERVED
        }
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logger(
    name: str = "eduquiz",
    *,
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    verbose: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure and return a namespaced logger.

    Calling it again reuses the handlers it installed earlier. A JSON file
    handler is added when ``log_dir`` is given; a plain stderr handler when
    ``verbose`` is set.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_coerce_level(level or config.logging.log_level))

    if log_dir is not None:
        _ensure_file_handler(
            logger,
            Path(log_dir) / f"{name.rsplit('.', 1)[-1]}.log",
            max_bytes=max_bytes,
            backup_count=backup_count,
        )

    if verbose:
        _ensure_console_handler(logger)

    return logger


def _coerce_level(level: str) -> int:
    numeric = logging.getLevelName(level.upper())
    if isinstance(numeric, int):
        return numeric
    return logging.INFO


def _ensure_file_handler(
    logger: logging.Logger, path: Path, *, max_bytes: int, backup_count: int
) -> RotatingFileHandler:
    for handler in logger.handlers:
        if getattr(handler, "_eduquiz_file", False):
            return handler  # type: ignore[return-value]
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(JsonLogFormatter())
    handler._eduquiz_file = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return handler


def _ensure_console_handler(logger: logging.Logger) -> logging.Handler:
    for handler in logger.handlers:
        if getattr(handler, "_eduquiz_console", False):
            return handler
    console = logging.StreamHandler(stream=sys.stderr)
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    console._eduquiz_console = True  # type: ignore[attr-defined]
    logger.addHandler(console)
    return console


def _coerce_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _coerce_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_coerce_value(item) for item in value]
    return repr(value)

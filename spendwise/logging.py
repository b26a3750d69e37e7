"""Logging helpers shared by the Spendwise service, client and CLI.

Every helper honours ``SPENDWISE_LOG_LEVEL`` and ``SPENDWISE_LOG_FORMAT`` so
operators can raise verbosity without touching code. ``SPENDWISE_JSON_LOGS``
adds a JSON-lines file handler suitable for shipping to a log collector.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Final

CONSOLE_FORMAT: Final[str] = "[%(levelname)s] %(name)s: %(message)s"
DEFAULT_LEVEL: Final[str] = "INFO"
LOG_DIR: Final[Path] = Path("logs")
LOG_PATH: Final[Path] = LOG_DIR / "spendwise.log"
JSON_ENV_FLAG: Final[str] = "SPENDWISE_JSON_LOGS"
LEVEL_ENV_FLAG: Final[str] = "SPENDWISE_LOG_LEVEL"
FORMAT_ENV_FLAG: Final[str] = "SPENDWISE_LOG_FORMAT"
CONSOLE_MARKER: Final[str] = "_spendwise_console"
JSON_MARKER: Final[str] = "_spendwise_json"


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON payloads."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "source": record.name,
            "message": record.getMessage(),
        }
        for key in ("method", "path", "status_code", "user_id"):
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _resolve_level(level: str | int | None) -> int:
    """Pick the level from the environment first, then the explicit argument."""

    env_level = os.environ.get(LEVEL_ENV_FLAG)
    if env_level:
        candidate = env_level.strip().upper()
    elif isinstance(level, str):
        candidate = level.strip().upper()
    elif isinstance(level, int):
        return int(level)
    else:
        candidate = DEFAULT_LEVEL
    resolved = logging.getLevelName(candidate)
    return int(resolved) if isinstance(resolved, int) else logging.INFO


def _resolve_format() -> str:
    fmt = os.environ.get(FORMAT_ENV_FLAG, CONSOLE_FORMAT).strip()
    return fmt or CONSOLE_FORMAT


def _json_logging_enabled(explicit: bool) -> bool:
    if explicit:
        return True
    value = os.environ.get(JSON_ENV_FLAG)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_resolve_format()))
    return handler


def _json_file_handler() -> logging.Handler:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(LOG_PATH, encoding="utf-8")
    handler.setFormatter(JsonFormatter())
    return handler


def _attach_once(logger: logging.Logger, marker: str, build: Callable[[], logging.Handler], level: int) -> None:
    """Add the handler tagged ``marker`` unless present; either way apply ``level``."""

    handler = next((h for h in logger.handlers if getattr(h, marker, False)), None)
    if handler is None:
        handler = build()
        setattr(handler, marker, True)
        logger.addHandler(handler)
    handler.setLevel(level)


def setup_logger(
    name: str,
    json_format: bool = False,
    level: str | int | None = None,
) -> logging.Logger:
    """Configure and return a Spendwise logger.

    Calling it repeatedly for the same name never stacks handlers; the
    existing ones are re-levelled instead.
    """

    resolved_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(resolved_level)
    # Propagation stays on so capture handlers (pytest caplog) still see records.
    logger.propagate = True
    _attach_once(logger, CONSOLE_MARKER, _console_handler, resolved_level)
    if _json_logging_enabled(json_format):
        _attach_once(logger, JSON_MARKER, _json_file_handler, resolved_level)
    return logger


def configure_cli_logging(json_logs: bool, level: str | int | None = None) -> None:
    """Reconfigure the package logger for a CLI run."""

    if json_logs:
        os.environ[JSON_ENV_FLAG] = "1"
    else:
        os.environ.pop(JSON_ENV_FLAG, None)
    # Child loggers propagate here, so only the package logger owns handlers.
    setup_logger("spendwise", json_format=json_logs, level=level)


__all__ = ["JsonFormatter", "configure_cli_logging", "setup_logger"]

"""
Logging configuration for image-for-me.

Two sinks under the log directory (`~/.image-for-me/logs` unless
`IMAGE_FOR_ME_LOG_DIR` is set):
- `image-for-me.log`: human-readable, rotating
- `events.jsonl`: one JSON object per line (generations, retries, fallbacks,
  backend errors)

Console output goes to stderr; stdout belongs to the MCP stdio transport.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from ..config.paths import get_log_directory
from ..config.settings import Settings, get_settings

EVENTS_LOGGER_NAME = "image_for_me.events"
LOG_FILE_NAME = "image-for-me.log"
EVENTS_FILE_NAME = "events.jsonl"

# Event fields whose values are never written to disk
SECRET_FIELD_MARKERS = ("api_key", "token", "authorization", "secret")

_configured = False


def _rotating_handler(
    path: Path, settings: Settings, level: int, formatter: logging.Formatter
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _attach_once(logger: logging.Logger, path: Path, make_handler) -> None:
    target = str(path)
    for handler in logger.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == target:
            return
    logger.addHandler(make_handler())


def configure_logging(settings: Settings | None = None) -> None:
    """Configure console, rotating file and JSONL event logging (idempotent)."""
    global _configured
    if _configured:
        return

    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    human_formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    if not any(
        type(handler) is logging.StreamHandler for handler in root_logger.handlers
    ):
        console = logging.StreamHandler()  # stderr
        console.setLevel(level)
        console.setFormatter(human_formatter)
        root_logger.addHandler(console)

    events_logger = logging.getLogger(EVENTS_LOGGER_NAME)
    events_logger.setLevel(level)
    events_logger.propagate = False

    try:
        log_dir = get_log_directory(settings)
        log_file = log_dir / LOG_FILE_NAME
        events_file = log_dir / EVENTS_FILE_NAME
        _attach_once(
            root_logger,
            log_file,
            lambda: _rotating_handler(log_file, settings, level, human_formatter),
        )
        _attach_once(
            events_logger,
            events_file,
            lambda: _rotating_handler(events_file, settings, level, logging.Formatter("%(message)s")),
        )
    except OSError:
        root_logger.exception("Failed to initialize file logging; continuing with console logging only")

    _configured = True


def reset_logging() -> None:
    """Detach file handlers so the next `configure_logging` call starts fresh."""
    global _configured
    for logger in (logging.getLogger(), logging.getLogger(EVENTS_LOGGER_NAME)):
        for handler in list(logger.handlers):
            if isinstance(handler, RotatingFileHandler):
                logger.removeHandler(handler)
                handler.close()
    _configured = False


def redact_fields(fields: dict[str, Any], log_prompts: bool) -> dict[str, Any]:
    """Drop prompts (unless enabled) and mask anything that looks like a credential."""
    redacted: dict[str, Any] = {}
    for key, value in fields.items():
        if key == "prompt" and not log_prompts:
            continue
        if any(marker in key.lower() for marker in SECRET_FIELD_MARKERS):
            value = "***"
        redacted[key] = value
    return redacted


def log_event(event: str, **fields: Any) -> None:
    """Write a structured event to the JSONL events log. Never raises."""
    try:
        settings = get_settings()
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            **redact_fields(fields, settings.log_prompts),
        }
        logging.getLogger(EVENTS_LOGGER_NAME).info(
            json.dumps(payload, ensure_ascii=False, default=str)
        )
    except Exception:
        logging.getLogger(__name__).debug("Failed to write events log entry", exc_info=True)

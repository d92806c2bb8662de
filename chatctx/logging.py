"""structlog setup for chatctx, with visitor contact data masked in every event."""

from __future__ import annotations

import json
import logging
import re
import sys
from typing import Any, TextIO

import structlog

LOGGER_ROOT = "chatctx"

_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
# 10+ digits with optional separators; dates and message ids stay below that.
_PHONE_RE = re.compile(r"(?<!\w)\+?(?:\d[\s().-]{0,2}){9,14}\d(?!\w)")
_CONTACT_PATTERNS = (_EMAIL_RE, _PHONE_RE)


def mask_secret(value: str) -> str:
    """Mask *value*, keeping only its first 2 and last 2 characters.

    >>> mask_secret("jane@example.com")
    'ja****om'
    """
    if len(value) <= 6:
        return "****"
    return f"{value[:2]}****{value[-2:]}"


def _redact_value(value: str) -> str:
    for pattern in _CONTACT_PATTERNS:
        value = pattern.sub(lambda m: mask_secret(m.group(0)), value)
    return value


def _redact_any(value: Any) -> Any:
    if isinstance(value, str):
        return _redact_value(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_any(v) for v in value)
    if isinstance(value, dict):
        return {k: _redact_any(v) for k, v in value.items()}
    return value


def _redact_event(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Processor masking emails and phone numbers, including inside lists and dicts."""
    return {key: _redact_any(val) for key, val in event_dict.items()}


def _renderer(json_output: bool) -> Any:
    if not json_output:
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer(
        serializer=json.dumps, ensure_ascii=False, default=str
    )


def setup_logging(
    json_output: bool = True,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Route structlog through stdlib logging on the ``chatctx`` logger.

    Args:
        json_output: JSON lines when True, plain console lines otherwise.
        level: Level name applied to the ``chatctx`` hierarchy.
        stream: Destination for the handler; stderr by default.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            _redact_event,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_output),
            ],
        )
    )

    root = logging.getLogger(LOGGER_ROOT)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
    root.propagate = False


def get_logger(name: str = LOGGER_ROOT) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

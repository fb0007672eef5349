"""Structured logging for groupcrypt.

Records go to stderr so stdout stays free for command output. Every record
carries ``ts``, ``level``, ``component`` and ``msg``; fields that could hold
key material or passphrases are masked before rendering.
"""
from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping

import structlog

_ROOT = "groupcrypt"
_FALLBACK_LEVEL = logging.INFO
_MASK = "[redacted]"

#: Event fields that must never be rendered verbatim.
SENSITIVE_FIELDS = frozenset({"file_key", "passphrase", "private_key", "plaintext", "record"})

EventDict = MutableMapping[str, Any]


def configure_logging(level: str | None = None, json_output: bool = True) -> None:
    numeric_level = _parse_level(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.basicConfig(level=numeric_level, handlers=[handler], force=True)

    renderer: Any = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", key="ts"),
            structlog.stdlib.add_log_level,
            _add_component,
            _mask_sensitive,
            _event_as_msg,
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )


def _add_component(logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    # "groupcrypt.services.keywrap" -> "services.keywrap"
    if "component" not in event_dict:
        name = getattr(logger, "name", None) or _ROOT
        prefix = f"{_ROOT}."
        event_dict["component"] = name[len(prefix):] if name.startswith(prefix) else name
    return event_dict


def _mask_sensitive(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    for key in SENSITIVE_FIELDS.intersection(event_dict):
        event_dict[key] = _MASK
    return event_dict


def _event_as_msg(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    if "msg" not in event_dict:
        event_dict["msg"] = event_dict.pop("event", "")
    return event_dict


def _parse_level(level: str | None) -> int:
    if not level:
        return _FALLBACK_LEVEL
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else _FALLBACK_LEVEL


__all__ = ["SENSITIVE_FIELDS", "configure_logging"]

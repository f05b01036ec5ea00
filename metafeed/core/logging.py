from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Union

import structlog

from metafeed.core.request_id import log_context

EventDict = Dict[str, Any]


# -------- Processors ---------------------------------------------------------

def _stamp(service_name: str):
    """ts (UTC, ms precision), lowercase level and the emitting service."""
    def _inner(_: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("ts", datetime.now(timezone.utc).isoformat(timespec="milliseconds"))
        event_dict["level"] = str(event_dict.get("level") or method_name or "info").lower()
        event_dict.setdefault("service", service_name)
        return event_dict
    return _inner


def _add_log_context(_: Any, __: str, event_dict: EventDict) -> EventDict:
    # request_id / run_id / source_url, whichever are bound right now
    for key, value in log_context().items():
        event_dict.setdefault(key, value)
    return event_dict


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


# -------- Public API ---------------------------------------------------------

_logger: structlog.BoundLogger | None = None


def configure_logging(service_name: str = "api", *, level: Union[int, str] = logging.INFO) -> None:
    """
    One JSON-lines structlog stack on stderr, shared by the feed API
    ("api") and the refresh worker ("worker").
    """
    global _logger

    numeric_level = _resolve_level(level)
    logging.basicConfig(level=numeric_level, format="%(message)s", stream=sys.stderr, force=True)

    structlog.configure(
        processors=[
            _stamp(service_name),
            _add_log_context,
            structlog.processors.EventRenamer("event"),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    _logger = structlog.get_logger()


def get_logger() -> structlog.BoundLogger:
    if _logger is None:
        configure_logging("api")
    return _logger

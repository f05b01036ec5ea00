from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

# Log correlation context. The API binds a request id, the refresh worker a
# run id, and the aggregator the feed URL it is currently processing; the
# logging processors copy whatever is bound into every event.
_request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)
_run_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("run_id", default=None)
_source_url_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("source_url", default=None)

_CONTEXT_FIELDS = (
    ("request_id", _request_id_ctx),
    ("run_id", _run_id_ctx),
    ("source_url", _source_url_ctx),
)


@contextmanager
def _bound(ctx: contextvars.ContextVar[Optional[str]], value: str) -> Iterator[str]:
    token = ctx.set(value)
    try:
        yield value
    finally:
        ctx.reset(token)


# -------- Request ID (API middleware) ----------------------------------------

def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)


def clear_request_id() -> None:
    _request_id_ctx.set(None)


# -------- Run ID (refresh worker) / source (aggregator) ----------------------

def with_run_id(run_id: Optional[str] = None):
    """Bind a run id for one cache refresh; a fresh one is generated if omitted."""
    return _bound(_run_id_ctx, run_id or uuid.uuid4().hex)


def with_source_url(url: str):
    return _bound(_source_url_ctx, url)


def log_context() -> Dict[str, str]:
    """Everything currently bound, skipping unset fields."""
    return {name: value for name, ctx in _CONTEXT_FIELDS if (value := ctx.get())}

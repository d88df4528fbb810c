from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Mapping


TRACE_HEADER = "X-Trace-Id"

_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)


def new_trace_id() -> str:
    tid = uuid.uuid4().hex
    _trace_id.set(tid)
    return tid


def set_trace_id(tid: str | None) -> None:
    _trace_id.set(tid)


def get_trace_id() -> str | None:
    return _trace_id.get()


def trace_id_from_headers(headers: Mapping[str, str]) -> str:
    """Reuse the caller's trace id when it sent one, otherwise start a new trace."""
    incoming = (headers.get(TRACE_HEADER) or "").strip()
    if incoming:
        set_trace_id(incoming[:64])
        return incoming[:64]
    return new_trace_id()

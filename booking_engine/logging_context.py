"""Trace ids for booking engine log lines.

Every CLI command and demo scenario runs under one trace id, so the
log lines of a single accept (request move, day claim, booking insert,
notifications) can be grepped out of a busy log. Services log through
``get_trace_logger``; entry points open a ``trace_scope``.

Usage:
    from booking_engine.logging_context import get_trace_logger, trace_scope

    logger = get_trace_logger(__name__)
    with trace_scope("CLI") as trace_id:
        logger.info("Expiring due requests")  # record.trace_id == trace_id
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_trace_id: ContextVar[str] = ContextVar("trace_id", default="NO_TRACE_ID")


def set_trace_id(trace_id: str) -> None:
    _trace_id.set(trace_id)


def get_trace_id() -> str:
    return _trace_id.get()


@contextmanager
def trace_scope(prefix: str) -> Iterator[str]:
    """Run the block under a fresh ``<prefix>-<8 hex>`` id, then restore the old one."""
    token = _trace_id.set(f"{prefix}-{uuid.uuid4().hex[:8]}")
    try:
        yield _trace_id.get()
    finally:
        _trace_id.reset(token)


class TraceIdFilter(logging.Filter):
    """Stamps ``record.trace_id`` so formats can use ``%(trace_id)s``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = _trace_id.get()  # type: ignore[attr-defined]
        return True


def get_trace_logger(name: str) -> logging.Logger:
    """``logging.getLogger(name)`` with one TraceIdFilter attached."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, TraceIdFilter) for f in logger.filters):
        logger.addFilter(TraceIdFilter())
    return logger

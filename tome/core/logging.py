"""Logging setup with tome/operation correlation fields.

Records emitted while a container operation runs carry the tome name and the
operation (``add``, ``set``, ``update`` ...) so that compaction and rebuild
messages from several containers in one process can be told apart.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from opentelemetry import trace


@dataclass(frozen=True, slots=True)
class CorrelationContext:
    tome: str | None = None
    operation: str | None = None


_EMPTY_CONTEXT = CorrelationContext()
_CORRELATION_CONTEXT: contextvars.ContextVar[CorrelationContext | None] = contextvars.ContextVar(
    "tome_correlation_context",
    default=None,
)


def get_correlation_context() -> CorrelationContext:
    context = _CORRELATION_CONTEXT.get()
    if context is None:
        return _EMPTY_CONTEXT
    return context


def _current_trace_id() -> str:
    ctx = trace.get_current_span().get_span_context()
    if ctx.trace_id:
        return format(ctx.trace_id, "032x")
    return ""


class CorrelationFilter(logging.Filter):
    """Inject correlation fields into every ``LogRecord`` before formatting."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_correlation_context()
        record.tome = context.tome
        record.operation = context.operation
        record.otel_trace_id = _current_trace_id()
        return True


_CORRELATION_FIELDS = (("tome", "tome"), ("operation", "operation"), ("otel_trace_id", "trace_id"))


class _JsonFormatter(logging.Formatter):
    """One JSON object per record; correlation fields appear only when set."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr, key in _CORRELATION_FIELDS:
            value = getattr(record, attr, None)
            if value:
                payload[key] = value
        if record.exc_info is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(level: int | str = logging.INFO, json_output: bool = False) -> None:
    """Configure the root logger once with correlation-aware handlers."""

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.filters.clear()

    handler = logging.StreamHandler(stream=sys.stdout)
    if json_output:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s "
            "tome=%(tome)s operation=%(operation)s trace_id=%(otel_trace_id)s "
            "%(message)s",
        )
    handler.setFormatter(formatter)

    correlation_filter = CorrelationFilter()
    handler.addFilter(correlation_filter)
    root_logger.addFilter(correlation_filter)
    root_logger.addHandler(handler)


@contextmanager
def correlation_scope(
    *,
    tome: str | None = None,
    operation: str | None = None,
) -> Iterator[None]:
    """Apply correlation fields for the duration of the block.

    Nested scopes inherit outer values unless explicitly overridden, so a
    subscriber that reads ``tome`` during ``add`` logs the inner ``rebuild``
    operation under the same tome name.
    """

    current = get_correlation_context()
    updated = CorrelationContext(
        tome=current.tome if tome is None else tome,
        operation=current.operation if operation is None else operation,
    )
    token = _CORRELATION_CONTEXT.set(updated)
    try:
        yield
    finally:
        _CORRELATION_CONTEXT.reset(token)


__all__ = [
    "CorrelationContext",
    "CorrelationFilter",
    "correlation_scope",
    "get_correlation_context",
    "setup_logging",
]

"""Observability helpers."""

from csdash.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_fetch_attempt,
    record_extraction,
    record_fallback,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_fetch_attempt",
    "record_extraction",
    "record_fallback",
]

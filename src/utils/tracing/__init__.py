"""
Distributed tracing using OpenTelemetry.

Instruments:
- Split-update sessions and parallel runs
- Individual range transactions
- Connection pool acquisition

Tracing is a no-op until initialize_tracing() is called.
"""

from .context import add_span_attributes, add_span_event, trace_operation
from .decorators import trace_function
from .tracer import (
    get_tracer,
    initialize_tracing,
    shutdown_tracing,
)

__all__ = [
    "initialize_tracing",
    "get_tracer",
    "shutdown_tracing",
    "trace_operation",
    "trace_function",
    "add_span_attributes",
    "add_span_event",
]

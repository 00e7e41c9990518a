"""
Distributed tracing using OpenTelemetry.

Instruments table reconciliation runs and per-side page fetches.
Exporters are only attached when an OTLP endpoint or console export
is requested; otherwise spans are recorded by a provider with no
exporters and cost next to nothing.
"""

from .context import add_span_attributes, add_span_event, trace_operation
from .tracer import get_tracer, initialize_tracing, shutdown_tracing

__all__ = [
    "initialize_tracing",
    "get_tracer",
    "shutdown_tracing",
    "trace_operation",
    "add_span_attributes",
    "add_span_event",
]

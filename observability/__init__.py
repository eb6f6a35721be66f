"""Observability: run-scoped logging and optional Logfire tracing.

setup_logging / set_run_context:
    Console + rotating file logging with the active IngestRun id on every record.

setup_tracing / trace_operation:
    Logfire spans around pipeline stages (no-op unless ENABLE_LOGFIRE=true).
"""

from observability.logging import setup_logging, set_run_context, clear_context
from observability.tracing import setup_tracing, trace_operation, TracingContext

__all__ = [
    "setup_logging",
    "set_run_context",
    "clear_context",
    "setup_tracing",
    "trace_operation",
    "TracingContext",
]

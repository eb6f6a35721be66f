"""Optional Logfire tracing for ingestion runs.

When enabled, Logfire is configured once at process start and pydantic-ai
summary calls are instrumented automatically. Pipeline stages are wrapped
with trace_operation(), which degrades to a timing-only no-op when tracing
is off.

Requirements:
    pip install logfire

Enable via configuration:
    ENABLE_LOGFIRE=true
    LOGFIRE_TOKEN=your-token  # Optional for cloud dashboard
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator

logger = logging.getLogger(__name__)


@dataclass
class TracingContext:
    """Process-wide tracing state."""
    enabled: bool = False
    service_name: str = "techpulse"
    token: str = ""
    _logfire_configured: bool = field(default=False, init=False)


_context = TracingContext()


def setup_tracing(
    enabled: bool = False,
    service_name: str = "techpulse",
    token: str = "",
) -> TracingContext:
    """Configure Logfire and instrument pydantic-ai.

    Failures (missing package, bad token) disable tracing instead of raising.

    Returns:
        The process-wide TracingContext
    """
    _context.enabled = enabled
    _context.service_name = service_name
    _context.token = token

    if not enabled:
        logger.debug("Tracing disabled")
        return _context

    try:
        import logfire

        logfire.configure(
            service_name=service_name,
            token=token if token else None,
        )
        logfire.instrument_pydantic_ai()
        _context._logfire_configured = True
        logger.info("Logfire tracing enabled | service=%s", service_name)
    except ImportError:
        logger.warning("Logfire not installed. Tracing disabled.")
        _context.enabled = False
    except Exception as e:
        logger.error("Failed to configure Logfire: %s", e)
        _context.enabled = False

    return _context


def tracing_enabled() -> bool:
    return _context.enabled and _context._logfire_configured


@contextmanager
def trace_operation(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[dict[str, Any], None, None]:
    """Trace one pipeline stage.

    Yields a dict; keys added to it during the stage are attached to the span
    when it closes.

    Args:
        name: Span name
        attributes: Attributes set when the span opens
    """
    span_attrs = attributes or {}
    start = time.monotonic()

    try:
        if tracing_enabled():
            import logfire

            with logfire.span(name, **span_attrs) as span:
                result_attrs: dict[str, Any] = {}
                yield result_attrs
                for key, value in result_attrs.items():
                    span.set_attribute(key, value)
        else:
            yield {}
    finally:
        logger.debug("Stage done | name=%s duration=%.2fs", name, time.monotonic() - start)

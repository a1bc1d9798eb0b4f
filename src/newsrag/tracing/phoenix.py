"""
Arize Phoenix tracing integration.

Sets up OpenTelemetry tracing for the chunking and retrieval pipeline.
Traces are sent to a Phoenix instance for visualization.

Usage:
    from newsrag.tracing import setup_tracing
    setup_tracing()  # Call once at application startup
"""

import functools
import logging
from typing import Any, Callable, TypeVar

from newsrag.config import settings

F = TypeVar("F", bound=Callable[..., Any])

logger = logging.getLogger(__name__)


def setup_tracing() -> bool:
    """
    Register a Phoenix tracer provider.

    Requires the ``tracing`` extra and a Phoenix collector at
    settings.phoenix_endpoint.

    Returns:
        True if tracing was registered
    """
    if not settings.enable_tracing:
        return False

    try:
        from phoenix.otel import register

        register(
            project_name="newsrag",
            endpoint=f"{settings.phoenix_endpoint}/v1/traces",
        )
    except ImportError:
        logger.warning(
            "Phoenix tracing dependencies not installed. "
            "Install with: pip install newsrag[tracing]"
        )
        return False
    except Exception as e:
        logger.warning("Failed to setup tracing: %s", e)
        return False

    logger.info("Tracing to %s", settings.phoenix_endpoint)
    return True


def traced(name: str | None = None) -> Callable[[F], F]:
    """
    Decorator to add a tracing span to a function.

    Args:
        name: Span name (defaults to function name)

    Example:
        @traced("ensure_chunks")
        def ensure_chunks(...):
            ...
    """

    def decorator(func: F) -> F:
        span_name = name or func.__name__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not settings.enable_tracing:
                return func(*args, **kwargs)

            try:
                from opentelemetry import trace
            except ImportError:
                return func(*args, **kwargs)

            tracer = trace.get_tracer(__name__)
            with tracer.start_as_current_span(span_name) as span:
                span.set_attribute("function.name", func.__name__)
                span.set_attribute("function.module", func.__module__)

                result = func(*args, **kwargs)

                span.set_attribute("result.type", type(result).__name__)
                return result

        return wrapper  # type: ignore

    return decorator


def add_span_attributes(**attributes: Any) -> None:
    """
    Add attributes to the current span.

    Example:
        add_span_attributes(article_id="abc", chunks_created=4)
    """
    if not settings.enable_tracing:
        return

    try:
        from opentelemetry import trace
    except ImportError:
        return

    span = trace.get_current_span()
    for key, value in attributes.items():
        if isinstance(value, (str, int, float, bool)):
            span.set_attribute(key, value)
        else:
            span.set_attribute(key, str(value))

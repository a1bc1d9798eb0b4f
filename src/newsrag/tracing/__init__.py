"""
Observability and tracing with Arize Phoenix.

Provides OpenTelemetry-based spans around chunking and retrieval.
"""

from newsrag.tracing.phoenix import add_span_attributes, setup_tracing, traced

__all__ = ["add_span_attributes", "setup_tracing", "traced"]

"""
Observability module for workflow context propagation and structured logging.

- Automatic context propagation (tool, thread, node) via ContextVar
- Structured JSON logging for production
- Human-readable logging for development
"""

from mcp_workflow.observability.logging import (
    clear_trace_context,
    configure_logging,
    get_trace_context,
    set_trace_context,
)

__all__ = [
    "configure_logging",
    "get_trace_context",
    "set_trace_context",
    "clear_trace_context",
]

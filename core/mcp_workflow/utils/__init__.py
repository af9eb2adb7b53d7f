"""Shared utilities."""

from mcp_workflow.utils.io import atomic_write

__all__ = ["atomic_write"]

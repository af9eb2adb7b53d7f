"""Execution helpers for nodes: progress reporting and subprocess commands."""

from mcp_workflow.execution.command_runner import CommandResult, CommandRunner, ProgressParseResult
from mcp_workflow.execution.progress import (
    McpProgressReporter,
    NoOpProgressReporter,
    ProgressReporter,
    create_progress_reporter,
)

__all__ = [
    "CommandResult",
    "CommandRunner",
    "ProgressParseResult",
    "McpProgressReporter",
    "NoOpProgressReporter",
    "ProgressReporter",
    "create_progress_reporter",
]

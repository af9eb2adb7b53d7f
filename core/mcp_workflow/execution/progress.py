"""
Progress reporting for long-running node work.

Nodes receive a ProgressReporter through their NodeContext. Over MCP the
reporter forwards to the FastMCP request context as progress notifications;
everywhere else it is a no-op.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastmcp import Context

logger = logging.getLogger(__name__)

PROGRESS_TOTAL = 100


class ProgressReporter(ABC):
    """Reports progress of a long-running operation."""

    @abstractmethod
    async def report(
        self, progress: float, total: float = PROGRESS_TOTAL, message: str | None = None
    ) -> None:
        """Report progress; ``progress`` is measured against ``total``."""


class NoOpProgressReporter(ProgressReporter):
    async def report(
        self, progress: float, total: float = PROGRESS_TOTAL, message: str | None = None
    ) -> None:
        return None


class McpProgressReporter(ProgressReporter):
    """
    Sends progress notifications through a FastMCP request context.

    Progress is normalised to a percentage. Notification failures never
    interrupt the work being reported on.
    """

    def __init__(self, ctx: "Context"):
        self.ctx = ctx

    async def report(
        self, progress: float, total: float = PROGRESS_TOTAL, message: str | None = None
    ) -> None:
        percentage = round(progress / total * PROGRESS_TOTAL) if total > 0 else 0
        try:
            await self.ctx.report_progress(
                progress=percentage,
                total=PROGRESS_TOTAL,
                message=message or f"Progress: {percentage}%",
            )
        except Exception as e:
            logger.debug(f"Progress notification failed: {e}")


def create_progress_reporter(ctx: "Context | None") -> ProgressReporter:
    """MCP reporter when a request context is available, otherwise no-op."""
    if ctx is None:
        return NoOpProgressReporter()
    return McpProgressReporter(ctx)

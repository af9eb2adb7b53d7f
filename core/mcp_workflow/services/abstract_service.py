"""Base class for services that obtain results from an external actor."""

import logging
from typing import TypeVar

from pydantic import BaseModel

from mcp_workflow.graph.interrupt import NodeContext
from mcp_workflow.graph.tool_executor import (
    InterruptToolExecutor,
    ResultValidator,
    ToolExecutor,
    execute_tool_with_logging,
)
from mcp_workflow.schemas.metadata import InterruptData

ResultT = TypeVar("ResultT", bound=BaseModel)


class AbstractService:
    """
    Shared plumbing for services.

    The tool executor and logger are injectable so tests can run a service
    without suspending a real workflow.
    """

    def __init__(
        self,
        service_name: str,
        tool_executor: ToolExecutor | None = None,
        logger: logging.Logger | None = None,
    ):
        self.service_name = service_name
        self.tool_executor = tool_executor or InterruptToolExecutor()
        self.logger = logger or logging.getLogger(f"mcp_workflow.services.{service_name}")

    def execute_tool_with_logging(
        self,
        ctx: NodeContext,
        data: InterruptData,
        result_schema: type[ResultT],
        validator: ResultValidator | None = None,
    ) -> ResultT:
        return execute_tool_with_logging(
            self.tool_executor, self.logger, ctx, data, result_schema, validator
        )

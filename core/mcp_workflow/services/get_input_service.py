"""Get Input service - solicits user input for unfulfilled properties."""

import logging
from typing import Any, Protocol

from mcp_workflow.graph.interrupt import NodeContext
from mcp_workflow.graph.tool_executor import ToolExecutor
from mcp_workflow.schemas.metadata import NodeGuidanceData
from mcp_workflow.services.abstract_service import AbstractService
from mcp_workflow.tools.get_input import (
    GetInputProperty,
    GetInputWorkflowResult,
    create_get_input_metadata,
    generate_get_input_guidance,
)


class GetInputServiceProvider(Protocol):
    def get_input(self, ctx: NodeContext, unfulfilled_properties: list[GetInputProperty]) -> Any:
        """Ask the user about the given properties and return their raw response."""
        ...


class GetInputService(AbstractService):
    """
    Requests input in direct guidance mode.

    The orchestrator renders the task guidance itself, so no separate
    get-input tool call is needed between orchestrator calls.
    """

    def __init__(
        self,
        tool_id: str,
        tool_executor: ToolExecutor | None = None,
        logger: logging.Logger | None = None,
    ):
        super().__init__("GetInputService", tool_executor, logger)
        self.tool_id = tool_id

    def get_input(self, ctx: NodeContext, unfulfilled_properties: list[GetInputProperty]) -> Any:
        self.logger.debug(
            f"Requesting input for {[p.property_name for p in unfulfilled_properties]}"
        )
        metadata = create_get_input_metadata(self.tool_id)
        guidance = NodeGuidanceData(
            node_id=metadata.tool_id,
            task_guidance=generate_get_input_guidance(unfulfilled_properties),
            result_schema=GetInputWorkflowResult,
        )
        result = self.execute_tool_with_logging(ctx, guidance, GetInputWorkflowResult)
        return result.user_utterance

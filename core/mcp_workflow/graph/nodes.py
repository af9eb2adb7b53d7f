"""
Reusable nodes.

- AbstractToolNode: base for nodes that delegate work to an external actor
- GetUserInputNode: asks the user for properties that are still missing
- UserInputExtractionNode: maps the latest user input onto properties
- FailureReportNode: terminal node that records why a workflow failed
"""

import logging
from typing import Any, TypeVar

from pydantic import BaseModel

from mcp_workflow.errors import GraphContractError, WorkflowFatalError
from mcp_workflow.graph.interrupt import NodeContext
from mcp_workflow.graph.node import BaseNode
from mcp_workflow.graph.tool_executor import (
    InterruptToolExecutor,
    ResultValidator,
    ToolExecutor,
    execute_tool_with_logging,
)
from mcp_workflow.schemas.metadata import InterruptData
from mcp_workflow.schemas.property_metadata import (
    IsPropertyFulfilled,
    PropertyMetadataCollection,
    default_is_property_fulfilled,
    required_property_names,
)
from mcp_workflow.schemas.state import WorkflowState
from mcp_workflow.services.get_input_service import GetInputService, GetInputServiceProvider
from mcp_workflow.services.input_extraction_service import (
    InputExtractionService,
    InputExtractionServiceProvider,
)
from mcp_workflow.tools.get_input import GetInputProperty

ResultT = TypeVar("ResultT", bound=BaseModel)

DEFAULT_MAX_INPUT_ATTEMPTS = 5


class AbstractToolNode(BaseNode):
    """Node that obtains its result from a participant tool."""

    def __init__(
        self,
        name: str,
        tool_executor: ToolExecutor | None = None,
        logger: logging.Logger | None = None,
    ):
        super().__init__(name)
        self.tool_executor = tool_executor or InterruptToolExecutor()
        self.logger = logger or logging.getLogger(f"mcp_workflow.nodes.{type(self).__name__}")

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


def _check_state_property(state_type: type[WorkflowState] | None, name: str) -> None:
    if state_type is not None and name not in state_type.model_fields:
        raise GraphContractError(f"{state_type.__name__} has no field '{name}'")


class GetUserInputNode(BaseNode):
    """
    Asks the user for every required property that is not yet fulfilled.

    Each visit counts as one attempt in ``retry_counts[name]``. Once
    ``max_attempts`` visits have happened without the properties being
    fulfilled, the node raises WorkflowFatalError instead of asking again.
    """

    def __init__(
        self,
        get_input_service: GetInputServiceProvider,
        required_properties: PropertyMetadataCollection,
        is_property_fulfilled: IsPropertyFulfilled = default_is_property_fulfilled,
        user_input_property: str = "user_input",
        max_attempts: int = DEFAULT_MAX_INPUT_ATTEMPTS,
        name: str = "get_user_input",
    ):
        super().__init__(name)
        self.get_input_service = get_input_service
        self.required_properties = required_properties
        self.is_property_fulfilled = is_property_fulfilled
        self.user_input_property = user_input_property
        self.max_attempts = max_attempts

    def unfulfilled_properties(self, state: WorkflowState) -> list[GetInputProperty]:
        unfulfilled = []
        for name in required_property_names(self.required_properties):
            result = self.is_property_fulfilled(state, name)
            if not result.is_fulfilled:
                meta = self.required_properties[name]
                unfulfilled.append(
                    GetInputProperty(
                        property_name=name,
                        friendly_name=meta.friendly_name,
                        description=meta.description,
                        reason=result.reason,
                    )
                )
        return unfulfilled

    def execute(self, state: WorkflowState, ctx: NodeContext) -> dict[str, Any]:
        attempts = state.retry_counts.get(self.name, 0)
        unfulfilled = self.unfulfilled_properties(state)
        if attempts >= self.max_attempts:
            missing = ", ".join(p.friendly_name for p in unfulfilled) or "required properties"
            raise WorkflowFatalError(
                f"Could not collect {missing} after {attempts} attempts"
            )
        user_response = self.get_input_service.get_input(ctx, unfulfilled)
        return {
            self.user_input_property: user_response,
            "retry_counts": {self.name: attempts + 1},
        }


class UserInputExtractionNode(BaseNode):
    """Extracts property values from the user input stored in the state."""

    def __init__(
        self,
        extraction_service: InputExtractionServiceProvider,
        required_properties: PropertyMetadataCollection,
        user_input_property: str = "user_input",
        name: str = "user_input_extraction",
    ):
        super().__init__(name)
        self.extraction_service = extraction_service
        self.required_properties = required_properties
        self.user_input_property = user_input_property

    def execute(self, state: WorkflowState, ctx: NodeContext) -> dict[str, Any]:
        user_input = getattr(state, self.user_input_property)
        result = self.extraction_service.extract_properties(
            ctx, user_input, self.required_properties
        )
        return dict(result.extracted_properties)


class FailureReportNode(BaseNode):
    """Logs the accumulated fatal errors; the orchestrator reports them to the caller."""

    def __init__(self, name: str = "failure_report", logger: logging.Logger | None = None):
        super().__init__(name)
        self.logger = logger or logging.getLogger(f"mcp_workflow.nodes.{type(self).__name__}")

    def execute(self, state: WorkflowState, ctx: NodeContext) -> dict[str, Any]:
        for message in state.workflow_fatal_error_messages:
            self.logger.error(f"Workflow failure: {message}")
        return {}


def create_get_user_input_node(
    required_properties: PropertyMetadataCollection,
    tool_id: str,
    get_input_service: GetInputServiceProvider | None = None,
    tool_executor: ToolExecutor | None = None,
    logger: logging.Logger | None = None,
    is_property_fulfilled: IsPropertyFulfilled = default_is_property_fulfilled,
    user_input_property: str = "user_input",
    max_attempts: int = DEFAULT_MAX_INPUT_ATTEMPTS,
    state_type: type[WorkflowState] | None = None,
    name: str = "get_user_input",
) -> GetUserInputNode:
    """
    Build a GetUserInputNode with a default GetInputService.

    ``get_input_service`` takes precedence over ``tool_id``; pass
    ``state_type`` to have ``user_input_property`` checked up front.
    """
    _check_state_property(state_type, user_input_property)
    service = get_input_service or GetInputService(tool_id, tool_executor, logger)
    return GetUserInputNode(
        get_input_service=service,
        required_properties=required_properties,
        is_property_fulfilled=is_property_fulfilled,
        user_input_property=user_input_property,
        max_attempts=max_attempts,
        name=name,
    )


def create_user_input_extraction_node(
    required_properties: PropertyMetadataCollection,
    tool_id: str,
    extraction_service: InputExtractionServiceProvider | None = None,
    tool_executor: ToolExecutor | None = None,
    logger: logging.Logger | None = None,
    user_input_property: str = "user_input",
    state_type: type[WorkflowState] | None = None,
    name: str = "user_input_extraction",
) -> UserInputExtractionNode:
    _check_state_property(state_type, user_input_property)
    if state_type is not None:
        for prop in required_properties:
            _check_state_property(state_type, prop)
    service = extraction_service or InputExtractionService(tool_id, tool_executor, logger)
    return UserInputExtractionNode(
        extraction_service=service,
        required_properties=required_properties,
        user_input_property=user_input_property,
        name=name,
    )

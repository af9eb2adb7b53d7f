"""Reusable routers: property fulfillment and fatal-error checks."""

import logging

from mcp_workflow.graph.router import BaseRouter
from mcp_workflow.schemas.property_metadata import (
    IsPropertyFulfilled,
    PropertyMetadataCollection,
    default_is_property_fulfilled,
    required_property_names,
)
from mcp_workflow.schemas.state import WorkflowState

logger = logging.getLogger(__name__)


class CheckPropertiesFulfilledRouter(BaseRouter):
    """
    Routes on whether every required property has a value.

    Routes to ``fulfilled_node`` only when all required properties pass
    ``is_property_fulfilled``; any gap routes to ``unfulfilled_node``.
    """

    def __init__(
        self,
        fulfilled_node: str,
        unfulfilled_node: str,
        required_properties: PropertyMetadataCollection,
        is_property_fulfilled: IsPropertyFulfilled = default_is_property_fulfilled,
    ):
        super().__init__([fulfilled_node, unfulfilled_node])
        self.fulfilled_node = fulfilled_node
        self.unfulfilled_node = unfulfilled_node
        self.required_properties = required_properties
        self.is_property_fulfilled = is_property_fulfilled

    def unfulfilled_properties(self, state: WorkflowState) -> list[str]:
        return [
            name
            for name in required_property_names(self.required_properties)
            if not self.is_property_fulfilled(state, name).is_fulfilled
        ]

    def execute(self, state: WorkflowState) -> str:
        unfulfilled = self.unfulfilled_properties(state)
        if unfulfilled:
            logger.debug(
                f"Properties not fulfilled, routing to {self.unfulfilled_node}: {unfulfilled}"
            )
            return self.unfulfilled_node
        logger.debug(f"All properties fulfilled, routing to {self.fulfilled_node}")
        return self.fulfilled_node


class CheckFatalErrorsRouter(BaseRouter):
    """Routes to ``failure_node`` when the state has accumulated fatal error messages."""

    def __init__(self, success_node: str, failure_node: str):
        super().__init__([success_node, failure_node])
        self.success_node = success_node
        self.failure_node = failure_node

    def execute(self, state: WorkflowState) -> str:
        if state.has_fatal_errors():
            count = len(state.workflow_fatal_error_messages)
            logger.debug(f"{count} fatal error(s), routing to {self.failure_node}")
            return self.failure_node
        return self.success_node

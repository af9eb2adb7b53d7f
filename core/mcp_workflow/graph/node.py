"""
Node Protocol - the unit of work in a workflow graph.

A node reads the full workflow state and returns a partial patch. It may
be synchronous or a coroutine; the executor awaits either form.
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from mcp_workflow.errors import GraphContractError
from mcp_workflow.graph.interrupt import NodeContext
from mcp_workflow.schemas.state import WorkflowState

NodeResult = dict[str, Any] | None
NodeFunction = Callable[[Any, NodeContext], NodeResult | Awaitable[NodeResult]]


class BaseNode(ABC):
    """Base class for all workflow nodes."""

    def __init__(self, name: str):
        if not name:
            raise GraphContractError("Node name must be a non-empty string")
        self.name = name

    @abstractmethod
    def execute(self, state: WorkflowState, ctx: NodeContext) -> NodeResult | Awaitable[NodeResult]:
        """Do the node's work and return a partial state patch."""

    async def run(self, state: WorkflowState, ctx: NodeContext) -> dict[str, Any]:
        result = self.execute(state, ctx)
        if inspect.isawaitable(result):
            result = await result
        if result is None:
            return {}
        if not isinstance(result, dict):
            raise GraphContractError(
                f"Node '{self.name}' returned {type(result).__name__}, expected a dict patch"
            )
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionNode(BaseNode):
    """Adapts a plain ``fn(state, ctx) -> patch`` callable into a node."""

    def __init__(self, name: str, fn: NodeFunction):
        super().__init__(name)
        self.fn = fn

    def execute(self, state: WorkflowState, ctx: NodeContext) -> NodeResult | Awaitable[NodeResult]:
        return self.fn(state, ctx)

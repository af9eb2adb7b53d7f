"""
Router Protocol - conditional edges.

A router inspects the state and names the next node. Routers must be
deterministic and total: every state maps to exactly one declared target.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

from mcp_workflow.errors import GraphContractError
from mcp_workflow.schemas.state import WorkflowState


class BaseRouter(ABC):
    """Base class for conditional-edge routers."""

    def __init__(self, targets: Iterable[str]):
        self.targets: tuple[str, ...] = tuple(dict.fromkeys(targets))
        if not self.targets:
            raise GraphContractError(f"{type(self).__name__} must declare at least one target")

    @abstractmethod
    def execute(self, state: WorkflowState) -> str:
        """Return the name of the next node (one of ``targets``)."""

    def route(self, state: WorkflowState) -> str:
        """Evaluate the router and enforce that the result is a declared target."""
        target = self.execute(state)
        if target not in self.targets:
            raise GraphContractError(
                f"{type(self).__name__} returned '{target}', which is not one of its "
                f"declared targets {list(self.targets)}"
            )
        return target


class FunctionRouter(BaseRouter):
    """Adapts a plain ``fn(state) -> node name`` callable into a router."""

    def __init__(self, fn: Callable[[Any], str], targets: Iterable[str]):
        super().__init__(targets)
        self.fn = fn

    def execute(self, state: WorkflowState) -> str:
        return self.fn(state)

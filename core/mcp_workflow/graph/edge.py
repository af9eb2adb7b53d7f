"""
Edge Protocol - How nodes connect in a graph.

Two edge kinds exist:
- EdgeSpec: unconditional, source always continues to target
- ConditionalEdgeSpec: a router picks the target from the current state

Every node has exactly one outgoing edge of either kind. The END sentinel
terminates the workflow.
"""

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mcp_workflow.errors import GraphContractError
from mcp_workflow.graph.node import BaseNode
from mcp_workflow.graph.router import BaseRouter
from mcp_workflow.schemas.state import WorkflowState

END = "__end__"

DEFAULT_COMPLETION_SUMMARY = (
    "The workflow has concluded. No further workflow actions are forthcoming."
)


class EdgeSpec(BaseModel):
    """
    Unconditional edge.

    Example:
        EdgeSpec(source="extract_input", target="check_properties")
    """

    source: str = Field(description="Source node name")
    target: str = Field(description="Target node name, or END")
    description: str = ""


class ConditionalEdgeSpec(BaseModel):
    """Edge whose target is chosen by a router at runtime."""

    source: str = Field(description="Source node name")
    router: BaseRouter
    description: str = ""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def targets(self) -> tuple[str, ...]:
        return self.router.targets


class GraphSpec(BaseModel):
    """
    Complete description of a workflow graph.

    Example:
        GraphSpec(
            id="project-intake",
            state_type=IntakeState,
            entry_node="extract_input",
            nodes=[extract_node, get_input_node, finish_node],
            edges=[EdgeSpec(source="get_input", target="extract_input")],
            conditional_edges=[
                ConditionalEdgeSpec(source="extract_input", router=properties_router),
            ],
        )
    """

    id: str
    description: str = ""
    state_type: type[WorkflowState] = WorkflowState

    entry_node: str
    nodes: list[BaseNode] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)
    conditional_edges: list[ConditionalEdgeSpec] = Field(default_factory=list)

    # Node that receives control when another node raises WorkflowFatalError.
    # None means the workflow ends immediately as failed.
    failure_node: str | None = None

    max_steps: int = Field(default=100, ge=1, description="Node executions allowed per advance")

    # Builds the completion report from the final state
    summary_builder: Callable[[Any], str] | None = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def get_node(self, name: str) -> BaseNode | None:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def require_node(self, name: str) -> BaseNode:
        node = self.get_node(name)
        if node is None:
            raise GraphContractError(f"Graph '{self.id}' has no node named '{name}'")
        return node

    def node_names(self) -> list[str]:
        return [node.name for node in self.nodes]

    def outgoing_targets(self, name: str) -> list[str]:
        targets = [edge.target for edge in self.edges if edge.source == name]
        for edge in self.conditional_edges:
            if edge.source == name:
                targets.extend(edge.targets)
        return targets

    def next_node(self, current: str, state: WorkflowState) -> str:
        """
        Resolve the node that follows ``current`` for the given state.

        Raises:
            GraphContractError: No outgoing edge, or the router broke its contract
        """
        for edge in self.conditional_edges:
            if edge.source == current:
                target = edge.router.route(state)
                if target != END and self.get_node(target) is None:
                    raise GraphContractError(
                        f"Router on '{current}' selected unknown node '{target}'"
                    )
                return target
        for edge in self.edges:
            if edge.source == current:
                return edge.target
        raise GraphContractError(f"Node '{current}' has no outgoing edge")

    def initial_state(self, user_input: Any = None) -> WorkflowState:
        return self.state_type(user_input=user_input)

    def completion_summary(self, state: WorkflowState) -> str:
        if self.summary_builder is None:
            return DEFAULT_COMPLETION_SUMMARY
        return self.summary_builder(state)

    def validate(self) -> list[str]:
        """Validate the graph structure. Returns a list of errors (empty when valid)."""
        errors = []
        names = self.node_names()
        known = set(names)

        duplicates = sorted({name for name in names if names.count(name) > 1})
        for name in duplicates:
            errors.append(f"Duplicate node name '{name}'")

        if self.entry_node not in known:
            errors.append(f"Entry node '{self.entry_node}' not found")

        if self.failure_node is not None and self.failure_node not in known:
            errors.append(f"Failure node '{self.failure_node}' not found")

        for edge in self.edges:
            if edge.source not in known:
                errors.append(f"Edge references missing source '{edge.source}'")
            if edge.target != END and edge.target not in known:
                errors.append(f"Edge '{edge.source}' -> '{edge.target}' references missing target")

        for edge in self.conditional_edges:
            if edge.source not in known:
                errors.append(f"Conditional edge references missing source '{edge.source}'")
            for target in edge.targets:
                if target != END and target not in known:
                    errors.append(
                        f"Router on '{edge.source}' declares missing target '{target}'"
                    )

        for name in dict.fromkeys(names):
            outgoing = [e for e in self.edges if e.source == name]
            outgoing += [e for e in self.conditional_edges if e.source == name]
            if not outgoing:
                errors.append(f"Node '{name}' has no outgoing edge")
            elif len(outgoing) > 1:
                errors.append(f"Node '{name}' has {len(outgoing)} outgoing edges (ambiguous)")

        # Reachability from the entry node (and the failure node, which is
        # entered out-of-band on WorkflowFatalError)
        roots = [n for n in (self.entry_node, self.failure_node) if n in known]
        reachable: set[str] = set()
        to_visit = list(roots)
        while to_visit:
            current = to_visit.pop()
            if current in reachable or current == END:
                continue
            reachable.add(current)
            to_visit.extend(self.outgoing_targets(current))

        for name in dict.fromkeys(names):
            if name not in reachable:
                errors.append(f"Node '{name}' is unreachable from entry node")

        return errors

    def ensure_valid(self) -> None:
        errors = self.validate()
        if errors:
            raise GraphContractError(f"Invalid graph '{self.id}': " + "; ".join(errors))

"""Shared fixtures: a small greeting workflow and helpers for driving it."""

from typing import Any

import pytest
from pydantic import BaseModel

from mcp_workflow.errors import WorkflowFatalError
from mcp_workflow.graph import END, EdgeSpec, FunctionNode, GraphSpec, NodeContext
from mcp_workflow.graph.nodes import AbstractToolNode, FailureReportNode
from mcp_workflow.observability.logging import clear_trace_context
from mcp_workflow.schemas import LlmMetadata, ToolInvocationData, WorkflowState
from mcp_workflow.schemas.metadata import WorkflowToolInput

# === TEST WORKFLOW ===


class GreetingState(WorkflowState):
    name: str | None = None
    greeting: str | None = None
    confirmed: bool | None = None


class AskNameInput(WorkflowToolInput):
    prompt: str


class NameResult(BaseModel):
    name: str


class ConfirmResult(BaseModel):
    confirmed: bool


def invocation(tool_name: str, is_complete: bool = False, **values: Any) -> ToolInvocationData:
    return ToolInvocationData(
        llm_metadata=LlmMetadata(
            name=tool_name, description=f"{tool_name} tool", input_schema=AskNameInput
        ),
        input=values,
        is_complete=is_complete,
    )


class AskNameNode(AbstractToolNode):
    def __init__(self, **kwargs: Any):
        super().__init__("ask_name", **kwargs)

    def execute(self, state: GreetingState, ctx: NodeContext) -> dict[str, Any]:
        data = invocation("ask-name", prompt="Who are you?")
        result = self.execute_tool_with_logging(ctx, data, NameResult)
        return {"name": result.name}


class ConfirmNode(AbstractToolNode):
    def __init__(self, **kwargs: Any):
        super().__init__("confirm", **kwargs)

    def execute(self, state: GreetingState, ctx: NodeContext) -> dict[str, Any]:
        result = self.execute_tool_with_logging(
            ctx, invocation("confirm", greeting=state.greeting), ConfirmResult
        )
        if not result.confirmed:
            raise WorkflowFatalError("Greeting was rejected")
        return {"confirmed": True}


def build_greeting_graph(**node_kwargs: Any) -> GraphSpec:
    """ask_name -> greet -> confirm -> END, with a failure report node."""
    return GraphSpec(
        id="greeting",
        state_type=GreetingState,
        entry_node="ask_name",
        nodes=[
            AskNameNode(**node_kwargs),
            FunctionNode("greet", lambda state, ctx: {"greeting": f"Hello, {state.name}!"}),
            ConfirmNode(**node_kwargs),
            FailureReportNode("failure"),
        ],
        edges=[
            EdgeSpec(source="ask_name", target="greet"),
            EdgeSpec(source="greet", target="confirm"),
            EdgeSpec(source="confirm", target=END),
            EdgeSpec(source="failure", target=END),
        ],
        failure_node="failure",
        summary_builder=lambda state: state.greeting,
    )


class MockToolExecutor:
    """Returns queued results instead of suspending; records every call."""

    def __init__(self, *results: Any):
        self.results = list(results)
        self.calls: list[Any] = []

    def execute(self, ctx, data, result_schema=None):
        self.calls.append(data)
        return self.results.pop(0)


# === FIXTURES ===


@pytest.fixture(autouse=True)
def _reset_trace_context():
    clear_trace_context()
    yield
    clear_trace_context()


@pytest.fixture
def greeting_graph() -> GraphSpec:
    return build_greeting_graph()


@pytest.fixture
def node_context() -> NodeContext:
    return NodeContext(thread_id="thread-1", node_id="node-1")

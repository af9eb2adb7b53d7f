"""
Tests for GraphExecutor.

Covers suspend/resume symmetry, multi-suspend nodes, fatal-error routing,
crash recovery, the step limit, and the executor's contract checks.
"""

from typing import Any

import pytest
from conftest import GreetingState, MockToolExecutor, build_greeting_graph

from mcp_workflow.errors import GraphContractError, WorkflowFatalError, WorkflowValidationError
from mcp_workflow.execution import ProgressReporter
from mcp_workflow.graph import END, EdgeSpec, FunctionNode, FunctionRouter, GraphExecutor, GraphSpec
from mcp_workflow.graph.edge import ConditionalEdgeSpec
from mcp_workflow.observability import get_trace_context
from mcp_workflow.schemas import Checkpoint, ThreadStatus, ToolInvocationData

# === HELPER FUNCTIONS ===


def new_checkpoint(thread_id: str = "thread-1") -> Checkpoint:
    return Checkpoint.create(thread_id)


def single_node_graph(fn, **overrides) -> GraphSpec:
    params = {
        "id": "single",
        "state_type": GreetingState,
        "entry_node": "only",
        "nodes": [FunctionNode("only", fn)],
        "edges": [EdgeSpec(source="only", target=END)],
    }
    params.update(overrides)
    return GraphSpec(**params)


class RecordingReporter(ProgressReporter):
    def __init__(self):
        self.reports: list[tuple[float, float, str | None]] = []

    async def report(self, progress: float, total: float = 100, message: str | None = None) -> None:
        self.reports.append((progress, total, message))


# === SUSPEND AND RESUME ===


class TestSuspendResume:
    """A thread advances one suspend point per call."""

    @pytest.mark.asyncio
    async def test_first_advance_suspends_at_first_tool(self, greeting_graph):
        executor = GraphExecutor(greeting_graph)

        result = await executor.advance(new_checkpoint(), user_input="hello")

        assert result.is_suspended
        assert isinstance(result.interrupt, ToolInvocationData)
        assert result.interrupt.target_name == "ask-name"
        pending = result.checkpoint.pending_interrupt
        assert pending.node_id == "ask_name"
        assert pending.tool_name == "ask-name"
        assert pending.expected_schema["required"] == ["name"]
        assert result.checkpoint.state["user_input"] == "hello"
        assert result.checkpoint.next_node == "ask_name"

    @pytest.mark.asyncio
    async def test_resume_runs_to_next_suspend_point(self, greeting_graph):
        executor = GraphExecutor(greeting_graph)
        first = await executor.advance(new_checkpoint(), user_input="hello")

        second = await executor.advance(first.checkpoint, resume_value={"name": "Ada"})

        assert second.is_suspended
        assert second.interrupt.target_name == "confirm"
        assert second.interrupt.input == {"greeting": "Hello, Ada!"}
        assert second.checkpoint.execution_path == ["ask_name", "greet"]
        assert second.interrupt_id != first.interrupt_id

    @pytest.mark.asyncio
    async def test_full_run_completes(self, greeting_graph):
        executor = GraphExecutor(greeting_graph)
        result = await executor.advance(new_checkpoint(), user_input="hello")
        result = await executor.advance(result.checkpoint, resume_value={"name": "Ada"})

        result = await executor.advance(result.checkpoint, resume_value={"confirmed": True})

        assert result.is_completed
        assert result.interrupt is None
        assert result.state.confirmed is True
        assert result.checkpoint.pending_interrupt is None
        assert result.checkpoint.next_node is None
        assert result.checkpoint.execution_path == ["ask_name", "greet", "confirm"]

    @pytest.mark.asyncio
    async def test_checkpoint_argument_not_mutated(self, greeting_graph):
        executor = GraphExecutor(greeting_graph)
        first = await executor.advance(new_checkpoint(), user_input="hello")
        snapshot = first.checkpoint.model_dump()

        await executor.advance(first.checkpoint, resume_value={"name": "Ada"})

        assert first.checkpoint.model_dump() == snapshot

    @pytest.mark.asyncio
    async def test_invalid_resume_value_raises_validation_error(self, greeting_graph):
        executor = GraphExecutor(greeting_graph)
        first = await executor.advance(new_checkpoint(), user_input="hello")

        with pytest.raises(WorkflowValidationError) as exc_info:
            await executor.advance(first.checkpoint, resume_value={"nickname": "Ada"})

        assert exc_info.value.fields == ["name"]
        assert "Field 'name'" in exc_info.value.messages()[0]

    @pytest.mark.asyncio
    async def test_suspended_thread_requires_resume_value(self, greeting_graph):
        executor = GraphExecutor(greeting_graph)
        first = await executor.advance(new_checkpoint(), user_input="hello")

        with pytest.raises(GraphContractError, match="needs a resume value"):
            await executor.advance(first.checkpoint)

    @pytest.mark.asyncio
    async def test_resume_value_none_is_a_value(self):
        def node(state, ctx):
            return {"greeting": repr(ctx.suspend("ask"))}

        executor = GraphExecutor(single_node_graph(node))
        first = await executor.advance(new_checkpoint())

        result = await executor.advance(first.checkpoint, resume_value=None)

        assert result.is_completed
        assert result.state.greeting == "None"


class TestMultiSuspendNode:
    """A node with several suspend points re-executes and replays earlier answers."""

    @pytest.mark.asyncio
    async def test_each_suspend_point_receives_its_own_value(self):
        calls = []

        def two_questions(state, ctx):
            calls.append(list(ctx.resume_values))
            first = ctx.suspend("first name?")
            second = ctx.suspend("last name?")
            return {"name": f"{first} {second}"}

        executor = GraphExecutor(single_node_graph(two_questions))

        result = await executor.advance(new_checkpoint())
        assert result.interrupt == "first name?"

        result = await executor.advance(result.checkpoint, resume_value="Ada")
        assert result.interrupt == "last name?"
        assert result.checkpoint.pending_interrupt.resume_values == ["Ada"]

        result = await executor.advance(result.checkpoint, resume_value="Lovelace")
        assert result.is_completed
        assert result.state.name == "Ada Lovelace"
        assert calls == [[], ["Ada"], ["Ada", "Lovelace"]]


# === FAILURE ROUTING ===


class TestFatalErrors:
    @pytest.mark.asyncio
    async def test_fatal_error_routes_to_failure_node(self, greeting_graph):
        executor = GraphExecutor(greeting_graph)
        result = await executor.advance(new_checkpoint(), user_input="hello")
        result = await executor.advance(result.checkpoint, resume_value={"name": "Ada"})

        result = await executor.advance(result.checkpoint, resume_value={"confirmed": False})

        assert result.is_failed
        assert result.checkpoint.messages == ["Greeting was rejected"]
        assert result.state.workflow_fatal_error_messages == ["Greeting was rejected"]
        assert result.checkpoint.execution_path[-2:] == ["confirm", "failure"]

    @pytest.mark.asyncio
    async def test_fatal_error_without_failure_node_ends_failed(self):
        def node(state, ctx):
            raise WorkflowFatalError("missing environment")

        executor = GraphExecutor(single_node_graph(node))
        result = await executor.advance(new_checkpoint())

        assert result.is_failed
        assert result.checkpoint.messages == ["missing environment"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_propagates(self):
        def node(state, ctx):
            raise RuntimeError("bug")

        executor = GraphExecutor(single_node_graph(node))

        with pytest.raises(RuntimeError, match="bug"):
            await executor.advance(new_checkpoint())


# === CONTRACTS ===


class TestExecutorContracts:
    def test_invalid_graph_rejected_at_construction(self):
        graph = single_node_graph(lambda s, c: None, entry_node="missing")

        with pytest.raises(GraphContractError):
            GraphExecutor(graph)

    @pytest.mark.asyncio
    async def test_step_limit(self):
        graph = GraphSpec(
            id="loop",
            state_type=GreetingState,
            entry_node="spin",
            nodes=[FunctionNode("spin", lambda state, ctx: None)],
            conditional_edges=[
                ConditionalEdgeSpec(
                    source="spin", router=FunctionRouter(lambda s: "spin", ["spin", END])
                ),
            ],
            max_steps=5,
        )
        executor = GraphExecutor(graph)

        with pytest.raises(GraphContractError, match="exceeded 5 steps"):
            await executor.advance(new_checkpoint())

    @pytest.mark.asyncio
    async def test_terminal_checkpoint_cannot_advance(self, greeting_graph):
        checkpoint = new_checkpoint()
        checkpoint.status = ThreadStatus.COMPLETED

        with pytest.raises(GraphContractError, match="already completed"):
            await GraphExecutor(greeting_graph).advance(checkpoint)

    @pytest.mark.asyncio
    async def test_continues_interrupted_run_at_next_node(self, greeting_graph):
        checkpoint = new_checkpoint()
        checkpoint.next_node = "greet"
        checkpoint.state = GreetingState(name="Ada").to_snapshot()

        result = await GraphExecutor(greeting_graph).advance(checkpoint)

        assert result.is_suspended
        assert result.checkpoint.pending_interrupt.node_id == "confirm"
        assert result.state.greeting == "Hello, Ada!"


# === NODE CONTEXT PLUMBING ===


class TestNodeContextPlumbing:
    @pytest.mark.asyncio
    async def test_tool_executor_substitutes_external_actor(self):
        tool_executor = MockToolExecutor({"name": "Ada"}, {"confirmed": True})
        executor = GraphExecutor(build_greeting_graph(tool_executor=tool_executor))

        result = await executor.advance(new_checkpoint(), user_input="hello")

        assert result.is_completed
        assert result.state.greeting == "Hello, Ada!"
        assert [call.target_name for call in tool_executor.calls] == ["ask-name", "confirm"]

    @pytest.mark.asyncio
    async def test_progress_reporter_and_config_reach_nodes(self):
        seen: dict[str, Any] = {}

        async def node(state, ctx):
            await ctx.progress_reporter.report(50, message="halfway")
            seen["config"] = dict(ctx.config)
            seen["thread_id"] = ctx.thread_id
            return None

        reporter = RecordingReporter()
        executor = GraphExecutor(single_node_graph(node))

        await executor.advance(
            new_checkpoint("thread-9"), progress_reporter=reporter, config={"timeout": 30}
        )

        assert reporter.reports == [(50, 100, "halfway")]
        assert seen == {"config": {"timeout": 30}, "thread_id": "thread-9"}

    @pytest.mark.asyncio
    async def test_trace_context_carries_graph_and_node(self, greeting_graph):
        await GraphExecutor(greeting_graph).advance(new_checkpoint(), user_input="hello")

        context = get_trace_context()
        assert context["graph_id"] == "greeting"
        assert context["node_id"] == "ask_name"

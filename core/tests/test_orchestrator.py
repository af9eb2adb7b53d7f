"""
Tests for OrchestratorTool.

Drives the greeting workflow through stateless calls against an in-memory
checkpoint store, the way an MCP client would.
"""

import json
import re
from typing import Any

import pytest
from conftest import GreetingState, NameResult, build_greeting_graph, invocation
from fastmcp import Client, FastMCP

from mcp_workflow.errors import CheckpointConflictError, PersistenceError
from mcp_workflow.graph import END, EdgeSpec, FunctionNode, GraphSpec
from mcp_workflow.schemas import NodeGuidanceData, ThreadStatus, WorkflowStateData
from mcp_workflow.storage import InMemoryCheckpointStore
from mcp_workflow.storage.state_manager import WorkflowStateManager
from mcp_workflow.tools import (
    CompletionOutput,
    ContinuationOutput,
    FailureOutput,
    OrchestratorConfig,
    OrchestratorTool,
    generate_thread_id,
)
from mcp_workflow.tools.orchestrator import input_digest, output_from_wire, output_to_wire

TOOL_ID = "greeting-orchestrator"

# === HELPER FUNCTIONS ===


def make_orchestrator(graph: GraphSpec | None = None, **config: Any) -> OrchestratorTool:
    return OrchestratorTool(
        OrchestratorConfig(
            tool_id=TOOL_ID,
            graph=graph or build_greeting_graph(),
            state_manager=WorkflowStateManager(environment="test"),
            **config,
        )
    )


async def call(tool: OrchestratorTool, user_input: Any = None, token: Any = None):
    raw: dict[str, Any] = {"userInput": user_input}
    if token is not None:
        raw["workflowStateData"] = token
    return await tool.handle_request(raw)


def wire_token(output) -> dict[str, Any]:
    return output.workflow_state_data.to_wire()


def single_node_graph(fn) -> GraphSpec:
    return GraphSpec(
        id="single",
        state_type=GreetingState,
        entry_node="only",
        nodes=[FunctionNode("only", fn)],
        edges=[EdgeSpec(source="only", target=END)],
    )


class FailingStore(InMemoryCheckpointStore):
    """In-memory store whose writes fail with a given error."""

    def __init__(self, error: Exception):
        super().__init__()
        self.error = error

    async def _save(self, checkpoint):
        raise self.error


def with_store(tool: OrchestratorTool, store) -> OrchestratorTool:
    tool.state_manager._store = store
    return tool


# === HAPPY PATH ===


class TestWorkflowLifecycle:
    """Start, resume and finish a workflow across independent calls."""

    @pytest.mark.asyncio
    async def test_start_returns_instructions_and_token(self):
        tool = make_orchestrator()

        output = await call(tool, "Please greet me")

        assert isinstance(output, ContinuationOutput)
        token = output.workflow_state_data
        assert re.match(r"^mcpw-\d+-[0-9a-z]{6}$", token.thread_id)
        assert token.interrupt_id
        assert token.expected_input_schema["required"] == ["name"]
        assert "**MCP Server Tool Name**: ask-name" in output.instructions_for_caller
        assert f"`{TOOL_ID}`" in output.instructions_for_caller

        checkpoint = await tool.store.read(token.thread_id)
        assert checkpoint.version == 1
        assert checkpoint.status == ThreadStatus.SUSPENDED
        assert checkpoint.pending_interrupt.interrupt_id == token.interrupt_id
        assert checkpoint.state["user_input"] == "Please greet me"

    @pytest.mark.asyncio
    async def test_full_run_completes_and_deletes_checkpoint(self):
        tool = make_orchestrator()

        first = await call(tool, "hi")
        second = await call(tool, {"name": "Ada"}, wire_token(first))
        assert isinstance(second, ContinuationOutput)
        assert "**MCP Server Tool Name**: confirm" in second.instructions_for_caller
        assert second.workflow_state_data.thread_id == first.workflow_state_data.thread_id

        final = await call(tool, {"confirmed": True}, wire_token(second))

        assert final == CompletionOutput(summary="Hello, Ada!")
        assert not await tool.store.exists(first.workflow_state_data.thread_id)

    @pytest.mark.asyncio
    async def test_fatal_error_returns_failure_payload(self):
        tool = make_orchestrator()
        first = await call(tool, "hi")
        second = await call(tool, {"name": "Ada"}, wire_token(first))

        final = await call(tool, {"confirmed": False}, wire_token(second))

        assert isinstance(final, FailureOutput)
        assert final.messages == ["Greeting was rejected"]
        assert not await tool.store.exists(first.workflow_state_data.thread_id)

    @pytest.mark.asyncio
    async def test_fresh_threads_are_independent(self):
        tool = make_orchestrator()

        first = await call(tool, "one")
        second = await call(tool, "two", {"thread_id": ""})

        assert first.workflow_state_data.thread_id != second.workflow_state_data.thread_id
        assert len(await tool.store.list_threads()) == 2

    @pytest.mark.asyncio
    async def test_node_config_carries_thread_id(self):
        seen = {}

        def node(state, ctx):
            seen.update(ctx.config)
            return None

        tool = make_orchestrator(single_node_graph(node), node_config={"region": "eu"})

        output = await call(tool, "go")

        assert isinstance(output, CompletionOutput)
        assert seen["region"] == "eu"
        assert seen["thread_id"].startswith("mcpw-")


# === RETRIES AND STALE TOKENS ===


class TestRetrySafety:
    @pytest.mark.asyncio
    async def test_retried_resume_replays_response(self):
        tool = make_orchestrator()
        first = await call(tool, "hi")
        thread_id = first.workflow_state_data.thread_id

        second = await call(tool, {"name": "Ada"}, wire_token(first))
        retried = await call(tool, {"name": "Ada"}, wire_token(first))

        assert output_to_wire(retried) == output_to_wire(second)
        assert (await tool.store.read(thread_id)).version == 2

    @pytest.mark.asyncio
    async def test_retry_with_different_input_is_rejected(self):
        tool = make_orchestrator()
        first = await call(tool, "hi")
        second = await call(tool, {"name": "Ada"}, wire_token(first))

        retried = await call(tool, {"name": "Grace"}, wire_token(first))

        assert isinstance(retried, FailureOutput)
        assert "different input" in retried.messages[0]
        assert retried.workflow_state_data.interrupt_id == second.workflow_state_data.interrupt_id

    @pytest.mark.asyncio
    async def test_stale_token_is_rejected(self):
        tool = make_orchestrator()
        first = await call(tool, "hi")
        stale = {**wire_token(first), "interrupt_id": "not-the-pending-one"}

        output = await call(tool, {"name": "Ada"}, stale)

        assert isinstance(output, FailureOutput)
        assert "stale" in output.messages[0]
        assert output.workflow_state_data.interrupt_id == first.workflow_state_data.interrupt_id
        assert (await tool.store.read(first.workflow_state_data.thread_id)).version == 1

    @pytest.mark.asyncio
    async def test_side_effects_run_once_per_resume(self):
        side_effects = []

        def node(state, ctx):
            answer = ctx.suspend(invocation("ask-name", prompt="name?"))
            side_effects.append(answer["name"])
            ctx.suspend(invocation("confirm", greeting=answer["name"]))

        tool = make_orchestrator(single_node_graph(node))
        first = await call(tool, "hi")

        await call(tool, {"name": "Ada"}, wire_token(first))
        await call(tool, {"name": "Ada"}, wire_token(first))

        assert side_effects == ["Ada"]


# === RECOVERY ===


class TestRecovery:
    @pytest.mark.asyncio
    async def test_missing_checkpoint_starts_fresh(self):
        tool = make_orchestrator()
        token = {"thread_id": "mcpw-1700000000000-abcdef", "interrupt_id": "gone"}

        output = await call(tool, "start again", token)

        assert isinstance(output, ContinuationOutput)
        assert output.workflow_state_data.thread_id == "mcpw-1700000000000-abcdef"
        checkpoint = await tool.store.read("mcpw-1700000000000-abcdef")
        assert checkpoint.state["user_input"] == "start again"

    @pytest.mark.asyncio
    async def test_invalid_resume_keeps_checkpoint_at_suspend_point(self):
        tool = make_orchestrator()
        first = await call(tool, "hi")
        thread_id = first.workflow_state_data.thread_id

        rejected = await call(tool, {"nickname": "Ada"}, wire_token(first))

        assert isinstance(rejected, FailureOutput)
        assert any("'name'" in message for message in rejected.messages)
        assert rejected.workflow_state_data.interrupt_id == first.workflow_state_data.interrupt_id
        assert (await tool.store.read(thread_id)).version == 1

        corrected = await call(tool, {"name": "Ada"}, wire_token(first))
        assert isinstance(corrected, ContinuationOutput)

    @pytest.mark.asyncio
    async def test_checkpoint_of_other_graph_is_not_resumed(self):
        tool = make_orchestrator()
        first = await call(tool, "hi")
        other = make_orchestrator(single_node_graph(lambda state, ctx: None))
        other.state_manager._store = tool.store

        output = await call(other, {"name": "Ada"}, wire_token(first))

        assert isinstance(output, CompletionOutput)

    @pytest.mark.asyncio
    async def test_unexpected_node_error_fails_thread(self):
        def node(state, ctx):
            answer = ctx.suspend(invocation("ask-name", prompt="name?"))
            if answer == "explode":
                raise RuntimeError("kaboom")
            return None

        tool = make_orchestrator(single_node_graph(node))
        first = await call(tool, "hi")
        thread_id = first.workflow_state_data.thread_id

        failed = await call(tool, "explode", wire_token(first))

        assert isinstance(failed, FailureOutput)
        assert failed.messages[0] == "Workflow execution failed: kaboom"
        checkpoint = await tool.store.read(thread_id)
        assert checkpoint.status == ThreadStatus.FAILED

        replayed = await call(tool, "explode", wire_token(first))
        assert output_to_wire(replayed) == output_to_wire(failed)

    @pytest.mark.asyncio
    async def test_new_thread_failure_returns_thread_id(self):
        def node(state, ctx):
            raise RuntimeError("boom on start")

        tool = make_orchestrator(single_node_graph(node))

        failed = await call(tool, "hi")

        assert isinstance(failed, FailureOutput)
        thread_id = failed.workflow_state_data.thread_id
        assert re.match(r"^mcpw-\d+-[0-9a-z]{6}$", thread_id)
        assert failed.workflow_state_data.interrupt_id is None
        assert (await tool.store.read(thread_id)).status == ThreadStatus.FAILED

        replayed = await call(tool, "hi", wire_token(failed))
        assert output_to_wire(replayed) == output_to_wire(failed)

    @pytest.mark.asyncio
    async def test_invalid_thread_id(self):
        tool = make_orchestrator()

        output = await call(tool, "hi", {"thread_id": "../../etc/passwd"})

        assert isinstance(output, FailureOutput)
        assert "Invalid thread id" in output.messages[0]

    @pytest.mark.asyncio
    async def test_malformed_workflow_state_data(self):
        tool = make_orchestrator()

        output = await call(tool, "hi", "not-an-object")

        assert isinstance(output, FailureOutput)
        assert any("workflowStateData" in message for message in output.messages)
        assert await tool.store.list_threads() == []


# === PERSISTENCE ===


class TestPersistence:
    @pytest.mark.asyncio
    async def test_write_failure_is_reported_not_hidden(self):
        tool = with_store(make_orchestrator(), FailingStore(PersistenceError("disk full")))

        output = await call(tool, "hi")

        assert isinstance(output, FailureOutput)
        assert "could not be saved" in output.messages[0]
        assert output.workflow_state_data is None

    @pytest.mark.asyncio
    async def test_conflict_returns_supplied_token(self):
        tool = make_orchestrator()
        first = await call(tool, "hi")
        thread_id = first.workflow_state_data.thread_id
        conflicting = FailingStore(CheckpointConflictError(thread_id, 1, 2))
        conflicting._checkpoints = tool.store._checkpoints
        with_store(tool, conflicting)

        output = await call(tool, {"name": "Ada"}, wire_token(first))

        assert isinstance(output, FailureOutput)
        assert "concurrently" in output.messages[0]
        assert output.workflow_state_data.interrupt_id == first.workflow_state_data.interrupt_id

    @pytest.mark.asyncio
    async def test_keep_terminal_checkpoints_replays_completion(self):
        tool = make_orchestrator(keep_terminal_checkpoints=True)
        first = await call(tool, "hi")
        second = await call(tool, {"name": "Ada"}, wire_token(first))
        final = await call(tool, {"confirmed": True}, wire_token(second))

        checkpoint = await tool.store.read(first.workflow_state_data.thread_id)
        assert checkpoint.status == ThreadStatus.COMPLETED
        assert checkpoint.terminal_response == {"completed": True, "summary": "Hello, Ada!"}

        replayed = await call(tool, {"confirmed": True}, wire_token(second))
        assert replayed == final


# === PROMPTS ===


class TestInstructions:
    @pytest.mark.asyncio
    async def test_final_interrupt_ends_thread(self):
        def node(state, ctx):
            ctx.suspend(invocation("show-result", is_complete=True, prompt="All done"))

        tool = make_orchestrator(single_node_graph(node))

        output = await call(tool, "hi", {"thread_id": "final-thread"})

        assert isinstance(output, CompletionOutput)
        assert output_to_wire(output) == {
            "completed": True,
            "summary": "The workflow has concluded. No further workflow actions are forthcoming.",
        }
        assert not await tool.store.exists("final-thread")

    @pytest.mark.asyncio
    async def test_final_interrupt_replays_completion_when_kept(self):
        def node(state, ctx):
            ctx.suspend(invocation("show-result", is_complete=True, prompt="All done"))

        tool = make_orchestrator(single_node_graph(node), keep_terminal_checkpoints=True)

        output = await call(tool, "hi", {"thread_id": "final-thread"})
        again = await call(tool, "hi", {"thread_id": "final-thread"})

        checkpoint = await tool.store.read("final-thread")
        assert checkpoint.status == ThreadStatus.COMPLETED
        assert checkpoint.pending_interrupt is None
        assert isinstance(again, CompletionOutput)
        assert again == output

    @pytest.mark.asyncio
    async def test_final_guidance_step_completes(self):
        def node(state, ctx):
            ctx.suspend(
                NodeGuidanceData(
                    node_id="farewell",
                    task_guidance="Say goodbye.",
                    result_schema=NameResult,
                    is_complete=True,
                )
            )

        tool = make_orchestrator(single_node_graph(node))

        assert isinstance(await call(tool, "hi"), CompletionOutput)

    @pytest.mark.asyncio
    async def test_node_guidance_prompt(self):
        def node(state, ctx):
            ctx.suspend(
                NodeGuidanceData(
                    node_id="name-guidance",
                    task_guidance="# TASK\nAsk the user for their name.",
                    result_schema=NameResult,
                    example_output='{"name": "Ada"}',
                )
            )

        tool = make_orchestrator(single_node_graph(node))

        output = await call(tool, "hi")
        prompt = output.instructions_for_caller

        assert prompt.startswith("# TASK\nAsk the user for their name.")
        assert "# Result Format" in prompt
        assert json.dumps(NameResult.model_json_schema(by_alias=True)) in prompt
        assert '{"name": "Ada"}' in prompt
        assert "# Return to the Orchestrator" in prompt
        assert json.dumps(output.workflow_state_data.to_wire()) in prompt
        assert output.workflow_state_data.expected_input_schema["required"] == ["name"]

    @pytest.mark.asyncio
    async def test_custom_return_guidance(self):
        def return_guidance(token: WorkflowStateData) -> str:
            return f"Send the name back with thread {token.thread_id}."

        def node(state, ctx):
            ctx.suspend(
                NodeGuidanceData(
                    node_id="name-guidance",
                    task_guidance="Ask for a name.",
                    result_schema=NameResult,
                    return_guidance=return_guidance,
                )
            )

        tool = make_orchestrator(single_node_graph(node))

        output = await call(tool, "hi")

        thread_id = output.workflow_state_data.thread_id
        expected = f"Send the name back with thread {thread_id}."
        assert output.instructions_for_caller.rstrip().endswith(expected)
        assert "# Return to the Orchestrator" not in output.instructions_for_caller


# === WIRE FORMAT ===


class TestWireFormat:
    def test_output_round_trip(self):
        outputs = [
            ContinuationOutput(
                instructions_for_caller="do it",
                workflow_state_data=WorkflowStateData(thread_id="t", interrupt_id="i"),
            ),
            CompletionOutput(summary="done"),
            FailureOutput(messages=["bad"]),
        ]
        for output in outputs:
            assert output_from_wire(output_to_wire(output)) == output

    def test_failure_wire_form(self):
        wire = output_to_wire(FailureOutput(messages=["bad"]))
        assert wire == {"failed": True, "messages": ["bad"]}

    def test_generate_thread_id(self):
        ids = {generate_thread_id() for _ in range(20)}

        assert len(ids) == 20
        assert all(re.match(r"^mcpw-\d+-[0-9a-z]{6}$", thread_id) for thread_id in ids)

    def test_input_digest_is_key_order_independent(self):
        assert input_digest({"a": 1, "b": 2}) == input_digest({"b": 2, "a": 1})
        assert input_digest({"a": 1}) != input_digest({"a": 2})


# === MCP TRANSPORT ===


class TestMcpTransport:
    @pytest.mark.asyncio
    async def test_registration(self):
        mcp = FastMCP("greeting")
        make_orchestrator().register(mcp)

        tools = await mcp.get_tools()

        assert TOOL_ID in tools

    @pytest.mark.asyncio
    async def test_calls_through_client(self):
        mcp = FastMCP("greeting")
        make_orchestrator().register(mcp)

        async with Client(mcp) as client:
            result = await client.call_tool(TOOL_ID, {"userInput": "hi"})
            first = json.loads(result.content[0].text)
            result = await client.call_tool(
                TOOL_ID,
                {"userInput": {"name": "Ada"}, "workflowStateData": first["workflowStateData"]},
            )
            second = json.loads(result.content[0].text)

        assert "ask-name" in first["instructionsForCaller"]
        assert "confirm" in second["instructionsForCaller"]
        assert second["workflowStateData"]["thread_id"] == first["workflowStateData"]["thread_id"]

"""
Orchestrator Tool - drives a workflow graph through stateless tool calls.

Every call carries the opaque ``workflowStateData`` token from the previous
response. The orchestrator loads the thread's checkpoint, advances the
graph to its next suspend point (or to the end), persists the new
checkpoint, and answers with instructions for the caller.

Thread lifecycle:
    not started -> running -> suspended -> ... -> completed | failed

Guarantees per call:
- A resumed value that fails validation leaves the checkpoint untouched
- A response is only reported once its checkpoint has been persisted
- Re-sending the same call (same token, same input) replays the cached
  response instead of advancing twice
"""

import asyncio
import hashlib
import json
import logging
import secrets
import string
import time
import weakref
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from fastmcp import Context
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcp_workflow.errors import (
    CheckpointConflictError,
    PersistenceError,
    WorkflowValidationError,
)
from mcp_workflow.execution.progress import create_progress_reporter
from mcp_workflow.graph.edge import GraphSpec
from mcp_workflow.graph.executor import AdvanceResult, GraphExecutor
from mcp_workflow.observability.logging import set_trace_context
from mcp_workflow.schemas.checkpoint import Checkpoint, LastExchange, ThreadStatus
from mcp_workflow.schemas.metadata import (
    USER_INPUT,
    WORKFLOW_STATE_DATA,
    InterruptData,
    NodeGuidanceData,
    ToolInvocationData,
    ToolMetadata,
    WorkflowStateData,
    schema_to_text,
)
from mcp_workflow.storage.checkpoint_store import BaseCheckpointStore, validate_thread_id
from mcp_workflow.storage.state_manager import WorkflowStateManager
from mcp_workflow.tools.base import AbstractTool

logger = logging.getLogger(__name__)

THREAD_ID_PREFIX = "mcpw"
_BASE36 = string.digits + string.ascii_lowercase


def generate_thread_id() -> str:
    """Unique thread id: ``mcpw-<epoch ms>-<6 base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{THREAD_ID_PREFIX}-{int(time.time() * 1000)}-{suffix}"


def input_digest(value: Any) -> str:
    """SHA-256 of the canonical JSON form of a caller-supplied value."""
    canonical = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class OrchestratorInput(BaseModel):
    user_input: Any = Field(
        default=None,
        alias=USER_INPUT,
        description="The result of the previous workflow tool, or the initial request",
    )
    workflow_state_data: WorkflowStateData = Field(
        default_factory=WorkflowStateData,
        alias=WORKFLOW_STATE_DATA,
        description=(
            "Opaque workflow state from the previous response; omit to start a new workflow"
        ),
    )

    model_config = ConfigDict(populate_by_name=True)


class ContinuationOutput(BaseModel):
    instructions_for_caller: str = Field(alias="instructionsForCaller")
    workflow_state_data: WorkflowStateData = Field(alias=WORKFLOW_STATE_DATA)

    model_config = ConfigDict(populate_by_name=True)


class CompletionOutput(BaseModel):
    completed: Literal[True] = True
    summary: str


class FailureOutput(BaseModel):
    failed: Literal[True] = True
    messages: list[str]
    workflow_state_data: WorkflowStateData | None = Field(default=None, alias=WORKFLOW_STATE_DATA)

    model_config = ConfigDict(populate_by_name=True)


OrchestratorOutput = ContinuationOutput | CompletionOutput | FailureOutput


def output_to_wire(output: OrchestratorOutput) -> dict[str, Any]:
    return output.model_dump(by_alias=True, exclude_none=True)


def output_from_wire(data: Mapping[str, Any]) -> OrchestratorOutput:
    if data.get("failed"):
        return FailureOutput.model_validate(data)
    if data.get("completed"):
        return CompletionOutput.model_validate(data)
    return ContinuationOutput.model_validate(data)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class OrchestratorConfig:
    """
    Everything an orchestrator needs for one workflow family.

    ``node_config`` is handed to every node through its context, so nodes
    never read process-wide settings directly.
    """

    tool_id: str
    graph: GraphSpec
    title: str = "Workflow Orchestrator"
    description: str = (
        "Orchestrates a multi-step workflow. Call with no workflowStateData to start a new "
        "workflow; afterwards always pass back the workflowStateData you were given."
    )
    state_manager: WorkflowStateManager | None = None
    keep_terminal_checkpoints: bool = False
    node_config: Mapping[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class OrchestratorTool(AbstractTool):
    def __init__(self, config: OrchestratorConfig):
        super().__init__(
            ToolMetadata(
                tool_id=config.tool_id,
                title=config.title,
                description=config.description,
                input_schema=OrchestratorInput,
            )
        )
        self.config = config
        self.graph = config.graph
        self.executor = GraphExecutor(config.graph)
        self.state_manager = config.state_manager or WorkflowStateManager(environment="production")
        self._thread_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def store(self) -> BaseCheckpointStore:
        return self.state_manager.store

    # -- transport -----------------------------------------------------------

    def build_handler(self) -> Callable[..., Any]:
        tool = self

        async def orchestrate(
            ctx: Context,
            userInput: Any = None,  # noqa: N803
            workflowStateData: dict[str, Any] | None = None,  # noqa: N803
        ) -> dict:
            """Continue (or start) the orchestrated workflow."""
            raw: dict[str, Any] = {USER_INPUT: userInput}
            if workflowStateData is not None:
                raw[WORKFLOW_STATE_DATA] = workflowStateData
            return output_to_wire(await tool.handle_request(raw, ctx))

        return orchestrate

    async def handle_request(
        self, raw_input: Mapping[str, Any], ctx: Context | None = None
    ) -> OrchestratorOutput:
        """Validate the wire input and process it. Never raises."""
        try:
            tool_input = OrchestratorInput.model_validate(dict(raw_input))
        except ValidationError as e:
            error = WorkflowValidationError.from_pydantic(e, subject="orchestrator input")
            logger.warning(str(error))
            return FailureOutput(messages=error.messages())

        try:
            return await self.process_request(tool_input, ctx)
        except Exception as e:
            logger.exception(f"Unhandled error in orchestrator '{self.tool_id}'")
            return FailureOutput(messages=[f"Internal orchestrator error: {e}"])

    # -- request processing --------------------------------------------------

    async def process_request(
        self, tool_input: OrchestratorInput, ctx: Context | None = None
    ) -> OrchestratorOutput:
        supplied = tool_input.workflow_state_data
        thread_id = supplied.thread_id or generate_thread_id()
        set_trace_context(tool_id=self.tool_id, thread_id=thread_id)

        try:
            validate_thread_id(thread_id)
        except PersistenceError as e:
            return FailureOutput(messages=[str(e)])

        logger.info(
            "Processing orchestrator request",
            extra={"event": "resume" if supplied.thread_id else "start"},
        )

        lock = self._thread_locks.get(thread_id)
        if lock is None:
            lock = asyncio.Lock()
            self._thread_locks[thread_id] = lock

        async with lock:
            return await self._process_thread(thread_id, tool_input, ctx)

    async def _load_checkpoint(
        self, thread_id: str, is_new_thread: bool
    ) -> tuple[Checkpoint, bool]:
        """
        Load the thread's checkpoint, or create a fresh one.

        Returns:
            (checkpoint, fresh). A fresh checkpoint that replaces an unusable
            stored one keeps the stored version so the replacing write passes
            the version check.
        """
        if is_new_thread:
            return Checkpoint.create(thread_id, self.graph.id), True

        checkpoint = await self.store.read(thread_id)
        if checkpoint is None:
            logger.warning(f"No usable checkpoint for thread {thread_id}; starting a new run")
        elif checkpoint.graph_id and checkpoint.graph_id != self.graph.id:
            logger.warning(
                f"Checkpoint for thread {thread_id} belongs to graph '{checkpoint.graph_id}'; "
                "starting a new run"
            )
        elif checkpoint.status.is_terminal and checkpoint.terminal_response is None:
            logger.warning(
                f"Thread {thread_id} already {checkpoint.status.value}; starting a new run"
            )
        else:
            return checkpoint, False

        fresh = Checkpoint.create(thread_id, self.graph.id)
        if checkpoint is not None:
            fresh.version = checkpoint.version
        return fresh, True

    async def _process_thread(
        self,
        thread_id: str,
        tool_input: OrchestratorInput,
        ctx: Context | None,
    ) -> OrchestratorOutput:
        supplied = tool_input.workflow_state_data
        checkpoint, fresh = await self._load_checkpoint(
            thread_id, is_new_thread=not supplied.thread_id
        )

        if checkpoint.status.is_terminal and checkpoint.terminal_response is not None:
            logger.info("Replaying terminal response", extra={"event": "replay"})
            return output_from_wire(checkpoint.terminal_response)

        digest = input_digest(tool_input.user_input)
        token_interrupt = supplied.interrupt_id
        last = checkpoint.last_exchange
        pending = checkpoint.pending_interrupt

        if token_interrupt and last and token_interrupt == last.resumed_interrupt_id:
            if last.input_digest == digest:
                logger.info("Replaying response for retried call", extra={"event": "replay"})
                return output_from_wire(last.response)
            return FailureOutput(
                messages=[
                    "This workflow step was already completed with a different input. "
                    "Continue with the workflowStateData from the latest response."
                ],
                workflow_state_data=self._token_for(checkpoint),
            )

        is_resume = pending is not None
        stale = pending is None or token_interrupt != pending.interrupt_id
        if token_interrupt and not fresh and stale:
            logger.warning(f"Stale workflowStateData for interrupt {token_interrupt}")
            return FailureOutput(
                messages=[
                    "The supplied workflowStateData is stale. "
                    "Continue with the workflowStateData from the latest response."
                ],
                workflow_state_data=self._token_for(checkpoint),
            )

        reporter = create_progress_reporter(ctx)
        node_config = {**self.config.node_config, "thread_id": thread_id}
        try:
            if is_resume:
                result = await self.executor.advance(
                    checkpoint,
                    resume_value=tool_input.user_input,
                    progress_reporter=reporter,
                    config=node_config,
                )
            else:
                result = await self.executor.advance(
                    checkpoint,
                    user_input=tool_input.user_input,
                    progress_reporter=reporter,
                    config=node_config,
                )
        except WorkflowValidationError as e:
            logger.warning(f"Resumed value rejected: {e}", extra={"event": "validation_failed"})
            return FailureOutput(
                messages=e.messages(), workflow_state_data=self._token_for(checkpoint)
            )
        except Exception as e:
            logger.exception("Workflow advance failed")
            return await self._fail_thread(checkpoint, f"Workflow execution failed: {e}")

        response = self._build_response(result)
        try:
            await self._persist(checkpoint, result, response, digest if is_resume else None)
        except CheckpointConflictError as e:
            logger.warning(str(e), extra={"event": "conflict"})
            return FailureOutput(
                messages=[
                    "Another request advanced this workflow concurrently. "
                    "Re-send the same request to receive its result."
                ],
                workflow_state_data=supplied if supplied.thread_id else None,
            )
        except PersistenceError as e:
            logger.error(f"Failed to persist workflow state: {e}")
            return FailureOutput(
                messages=[f"The workflow state could not be saved: {e}"],
                workflow_state_data=None if fresh else self._token_for(checkpoint),
            )
        return response

    # -- persistence ---------------------------------------------------------

    async def _persist(
        self,
        loaded: Checkpoint,
        result: AdvanceResult,
        response: OrchestratorOutput,
        digest: str | None,
    ) -> None:
        advanced = result.checkpoint
        wire = output_to_wire(response)

        if result.is_suspended and not self._is_final_interrupt(result.interrupt):
            if digest is not None and loaded.pending_interrupt is not None:
                advanced.last_exchange = LastExchange(
                    resumed_interrupt_id=loaded.pending_interrupt.interrupt_id,
                    input_digest=digest,
                    response=wire,
                )
            await self.store.write(advanced, expected_version=loaded.version)
            return

        # Terminal: completed, failed, or suspended on a final interrupt
        if result.is_suspended:
            advanced.pending_interrupt = None
            advanced.next_node = None
            advanced.status = ThreadStatus.COMPLETED

        if self.config.keep_terminal_checkpoints:
            advanced.terminal_response = wire
            await self.store.write(advanced, expected_version=loaded.version)
        else:
            await self.store.delete(loaded.thread_id)
        logger.info(
            f"Thread finished with status {advanced.status.value}", extra={"event": "finalized"}
        )

    async def _fail_thread(self, loaded: Checkpoint, message: str) -> FailureOutput:
        """Record the last safe state as failed so the thread is not resumed mid-way."""
        failed = loaded.model_copy(deep=True)
        failed.graph_id = self.graph.id
        failed.status = ThreadStatus.FAILED
        failed.pending_interrupt = None
        failed.messages = [message]
        response = FailureOutput(
            messages=[message, "Start a new workflow to try again."],
            workflow_state_data=self._token_for(failed),
        )
        failed.terminal_response = output_to_wire(response)
        try:
            await self.store.write(failed, expected_version=loaded.version)
        except PersistenceError as e:
            logger.error(f"Could not record failed state for thread {loaded.thread_id}: {e}")
        return response

    # -- response building ---------------------------------------------------

    @staticmethod
    def _token_for(checkpoint: Checkpoint) -> WorkflowStateData:
        pending = checkpoint.pending_interrupt
        return WorkflowStateData(
            thread_id=checkpoint.thread_id,
            interrupt_id=pending.interrupt_id if pending else None,
            expected_input_schema=pending.expected_schema if pending else None,
        )

    @staticmethod
    def _is_final_interrupt(data: InterruptData | None) -> bool:
        return data is not None and data.is_complete

    def _build_response(self, result: AdvanceResult) -> OrchestratorOutput:
        if result.is_suspended:
            if result.interrupt is None:
                raise RuntimeError("Workflow suspended without interrupt data")
            if self._is_final_interrupt(result.interrupt):
                return CompletionOutput(summary=self.graph.completion_summary(result.state))
            token = self._token_for(result.checkpoint)
            return ContinuationOutput(
                instructions_for_caller=self.create_orchestration_prompt(result.interrupt, token),
                workflow_state_data=token,
            )
        if result.is_failed:
            messages = list(result.checkpoint.messages) or ["The workflow failed."]
            return FailureOutput(messages=messages)
        return CompletionOutput(summary=self.graph.completion_summary(result.state))

    def create_orchestration_prompt(self, data: InterruptData, token: WorkflowStateData) -> str:
        if isinstance(data, NodeGuidanceData):
            return self._create_guidance_prompt(data, token)
        return self._create_delegation_prompt(data, token)

    def _return_instructions(self, token: WorkflowStateData) -> str:
        return f"""
# Return to the Orchestrator

Once the task is done, invoke the `{self.tool_id}` tool with the following input values:

- `{USER_INPUT}`: The structured result of your task, conforming to the result schema above.
- `{WORKFLOW_STATE_DATA}`: {json.dumps(token.to_wire())}

`{WORKFLOW_STATE_DATA}` is opaque workflow state. Pass it back exactly as given, without
modification.
"""

    def _create_delegation_prompt(self, data: ToolInvocationData, token: WorkflowStateData) -> str:
        return f"""
# Your Role

You are participating in a workflow orchestration process. The current
(`{self.tool_id}`) MCP server tool is the orchestrator, and is sending
you instructions on what to do next. These instructions describe the next participating
MCP server tool to invoke, along with its input schema and input values.

# Your Task

Invoke the following MCP server tool:

**MCP Server Tool Name**: {data.llm_metadata.name}
**MCP Server Tool Input Schema**:
```json
{json.dumps(data.llm_metadata.input_json_schema())}
```
**MCP Server Tool Input Values**:
```json
{json.dumps(data.input, default=str)}
```

## Additional Input: `{WORKFLOW_STATE_DATA}`

`{WORKFLOW_STATE_DATA}` is an additional input parameter that is
specified in the input schema above, and should be passed to the next MCP server tool
invocation, with the following object value:

```json
{json.dumps(token.to_wire())}
```

This represents opaque workflow state data that should be round-tripped back to the
`{self.tool_id}` MCP server tool orchestrator at the completion of the
next MCP server tool invocation, without modification. These instructions will be further
specified by the next MCP server tool invocation.

The MCP server tool you invoke will respond with its output, along with further
instructions for continuing the workflow.
"""

    def _create_guidance_prompt(self, data: NodeGuidanceData, token: WorkflowStateData) -> str:
        sections = [data.task_guidance.rstrip()]
        sections.append(
            "# Result Format\n\n"
            "The result of your task must conform to the following JSON schema:\n\n"
            f"```json\n{schema_to_text(data.result_schema)}\n```"
        )
        if data.example_output:
            sections.append(f"## Example Output\n\n```json\n{data.example_output}\n```")

        if data.return_guidance is not None:
            sections.append(data.return_guidance(token))
        else:
            sections.append(self._return_instructions(token).strip())
        return "\n\n".join(sections) + "\n"

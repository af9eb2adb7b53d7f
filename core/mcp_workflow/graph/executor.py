"""
Graph Executor - advances a workflow thread to its next suspend point.

The executor is stateless between calls: everything it needs comes from the
checkpoint it is handed, and everything it learns goes into the checkpoint
it returns. Persisting that checkpoint is the caller's job.

One advance:
1. Resume the pending node with the new value (or start at the entry node)
2. Run nodes, merging their patches into the state
3. Follow edges/routers until a node suspends or END is reached
"""

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from mcp_workflow.errors import GraphContractError, WorkflowFatalError
from mcp_workflow.execution.progress import ProgressReporter
from mcp_workflow.graph.edge import END, GraphSpec
from mcp_workflow.graph.interrupt import GraphInterrupt, NodeContext
from mcp_workflow.observability.logging import set_trace_context
from mcp_workflow.schemas.checkpoint import Checkpoint, PendingInterrupt, ThreadStatus
from mcp_workflow.schemas.metadata import InterruptData, result_json_schema
from mcp_workflow.schemas.state import WorkflowState

logger = logging.getLogger(__name__)

_NO_RESUME = object()


@dataclass
class AdvanceResult:
    """Outcome of one advance. ``checkpoint`` has not been persisted yet."""

    checkpoint: Checkpoint
    state: WorkflowState
    interrupt: InterruptData | None = None
    steps_executed: int = 0

    @property
    def is_suspended(self) -> bool:
        return self.checkpoint.status == ThreadStatus.SUSPENDED

    @property
    def is_completed(self) -> bool:
        return self.checkpoint.status == ThreadStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.checkpoint.status == ThreadStatus.FAILED

    @property
    def interrupt_id(self) -> str | None:
        pending = self.checkpoint.pending_interrupt
        return pending.interrupt_id if pending else None


def new_interrupt_id() -> str:
    return uuid.uuid4().hex[:16]


class GraphExecutor:
    """
    Executes a GraphSpec against checkpoints.

    Raises out of advance():
        WorkflowValidationError: A resumed value failed its schema; the
            stored checkpoint stays at the pending suspend point
        GraphContractError: The graph or a node/router broke its contract
        Exception: Anything else a node raised unexpectedly
    """

    def __init__(self, graph: GraphSpec, validate: bool = True):
        if validate:
            graph.ensure_valid()
        self.graph = graph

    async def advance(
        self,
        checkpoint: Checkpoint,
        resume_value: Any = _NO_RESUME,
        user_input: Any = None,
        progress_reporter: ProgressReporter | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> AdvanceResult:
        """
        Advance a thread until it suspends, completes or fails.

        Args:
            checkpoint: Current checkpoint; never mutated
            resume_value: Value for the pending suspend point
            user_input: Initial input when the thread starts fresh
            progress_reporter: Forwarded to nodes through their context
            config: Per-advance configuration forwarded to nodes
        """
        working = checkpoint.model_copy(deep=True)
        working.graph_id = self.graph.id
        working.messages = []
        set_trace_context(graph_id=self.graph.id)

        resume_values: list[Any] = []
        if working.pending_interrupt is not None:
            if resume_value is _NO_RESUME:
                raise GraphContractError(
                    f"Thread '{working.thread_id}' is suspended and needs a resume value"
                )
            pending = working.pending_interrupt
            current = pending.node_id
            resume_values = [*pending.resume_values, resume_value]
            state = self.graph.state_type.from_snapshot(working.state)
            logger.info(
                f"Resuming node '{current}' (suspend point {len(resume_values) - 1})",
                extra={"event": "resume", "node_id": current},
            )
        elif working.status.is_terminal:
            raise GraphContractError(f"Thread '{working.thread_id}' already {working.status.value}")
        elif working.next_node is not None:
            # Interrupted mid-advance (e.g. process crash); continue where it stopped
            current = working.next_node
            state = self.graph.state_type.from_snapshot(working.state)
            logger.info(f"Continuing interrupted run at '{current}'")
        else:
            current = self.graph.entry_node
            state = self.graph.initial_state(user_input)
            logger.info(
                f"Starting graph '{self.graph.id}' at '{current}'",
                extra={"event": "start", "node_id": current},
            )

        steps = 0
        while True:
            if current == END:
                return self._finish(working, state, steps)

            steps += 1
            if steps > self.graph.max_steps:
                raise GraphContractError(
                    f"Graph '{self.graph.id}' exceeded {self.graph.max_steps} steps in one advance"
                )

            node = self.graph.require_node(current)
            set_trace_context(node_id=current)
            ctx = NodeContext(
                thread_id=working.thread_id,
                node_id=current,
                resume_values=resume_values,
                progress_reporter=progress_reporter,
                config=config,
            )

            try:
                patch = await node.run(state, ctx)
            except GraphInterrupt as interrupt:
                return self._suspend(working, state, current, interrupt, resume_values, steps)
            except WorkflowFatalError as e:
                logger.warning(
                    f"Node '{current}' reported a fatal error: {e}", extra={"node_id": current}
                )
                patch = {"workflow_fatal_error_messages": [str(e)]}
                state = state.apply_patch(patch)
                self._record_visit(working, current)
                working.pending_interrupt = None
                resume_values = []
                current = self._failure_target(current)
                working.next_node = current if current != END else None
                working.state = state.to_snapshot()
                working.status = ThreadStatus.RUNNING
                continue

            state = state.apply_patch(patch)
            self._record_visit(working, current)
            working.pending_interrupt = None
            resume_values = []

            current = self.graph.next_node(current, state)
            logger.debug(f"Routing to '{current}'", extra={"event": "route"})
            working.next_node = current if current != END else None
            working.state = state.to_snapshot()
            working.status = ThreadStatus.RUNNING

    def _failure_target(self, failed_node: str) -> str:
        failure_node = self.graph.failure_node
        if failure_node is None or failure_node == failed_node:
            return END
        return failure_node

    @staticmethod
    def _record_visit(checkpoint: Checkpoint, node_id: str) -> None:
        checkpoint.execution_path.append(node_id)
        checkpoint.node_visit_counts[node_id] = checkpoint.node_visit_counts.get(node_id, 0) + 1

    def _suspend(
        self,
        checkpoint: Checkpoint,
        state: WorkflowState,
        node_id: str,
        interrupt: GraphInterrupt,
        resume_values: list[Any],
        steps: int,
    ) -> AdvanceResult:
        data = interrupt.data
        expected_schema = interrupt.expected_schema or result_json_schema(data)
        checkpoint.pending_interrupt = PendingInterrupt(
            interrupt_id=new_interrupt_id(),
            node_id=node_id,
            tool_name=getattr(data, "target_name", ""),
            expected_schema=expected_schema,
            resume_values=resume_values[: interrupt.index],
        )
        checkpoint.status = ThreadStatus.SUSPENDED
        checkpoint.next_node = node_id
        # State as of node entry; the node re-executes from the start on resume
        checkpoint.state = state.to_snapshot()
        logger.info(
            f"Node '{node_id}' suspended for '{checkpoint.pending_interrupt.tool_name}'",
            extra={
                "event": "suspend",
                "node_id": node_id,
                "tool_name": checkpoint.pending_interrupt.tool_name,
            },
        )
        return AdvanceResult(
            checkpoint=checkpoint, state=state, interrupt=data, steps_executed=steps
        )

    def _finish(self, checkpoint: Checkpoint, state: WorkflowState, steps: int) -> AdvanceResult:
        checkpoint.pending_interrupt = None
        checkpoint.next_node = None
        checkpoint.state = state.to_snapshot()
        if state.has_fatal_errors():
            checkpoint.status = ThreadStatus.FAILED
            checkpoint.messages = list(state.workflow_fatal_error_messages)
            logger.warning(
                f"Graph '{self.graph.id}' ended with fatal errors", extra={"event": "failed"}
            )
        else:
            checkpoint.status = ThreadStatus.COMPLETED
            logger.info(f"Graph '{self.graph.id}' completed", extra={"event": "completed"})
        return AdvanceResult(checkpoint=checkpoint, state=state, steps_executed=steps)

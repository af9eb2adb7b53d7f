"""
Checkpoint Schema - Durable snapshot of one workflow thread.

A checkpoint holds the full WorkflowState snapshot plus the bookkeeping the
executor needs to resume: where the graph stopped, which suspend point is
pending, and the resume values already fed to the suspended node.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ThreadStatus(StrEnum):
    """Lifecycle of a workflow thread."""

    RUNNING = "running"  # Advance in progress (or interrupted by a crash)
    SUSPENDED = "suspended"  # Waiting for an external actor
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ThreadStatus.COMPLETED, ThreadStatus.FAILED)


class PendingInterrupt(BaseModel):
    """The suspend point a thread is paused at."""

    interrupt_id: str
    node_id: str
    tool_name: str = ""
    expected_schema: dict[str, Any] | None = None
    # Values already returned by earlier suspend() calls of this node run
    resume_values: list[Any] = Field(default_factory=list)


class LastExchange(BaseModel):
    """The last successfully applied resume, kept so a retried call can be replayed."""

    resumed_interrupt_id: str
    input_digest: str
    response: dict[str, Any]


class Checkpoint(BaseModel):
    """Snapshot of a workflow thread between orchestrator calls."""

    thread_id: str
    graph_id: str = ""
    version: int = 0

    status: ThreadStatus = ThreadStatus.RUNNING
    state: dict[str, Any] = Field(default_factory=dict)

    next_node: str | None = None
    pending_interrupt: PendingInterrupt | None = None
    execution_path: list[str] = Field(default_factory=list)
    node_visit_counts: dict[str, int] = Field(default_factory=dict)

    last_exchange: LastExchange | None = None
    terminal_response: dict[str, Any] | None = None
    messages: list[str] = Field(default_factory=list)

    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    updated_at: str = Field(default_factory=lambda: datetime.now().isoformat())

    model_config = {"extra": "allow"}

    @classmethod
    def create(cls, thread_id: str, graph_id: str = "") -> "Checkpoint":
        """Fresh checkpoint for a thread that has not run yet."""
        return cls(thread_id=thread_id, graph_id=graph_id)

    def touch(self) -> None:
        self.updated_at = datetime.now().isoformat()


class CheckpointSummary(BaseModel):
    """Lightweight listing entry for maintenance commands."""

    thread_id: str
    graph_id: str = ""
    version: int = 0
    status: ThreadStatus = ThreadStatus.RUNNING
    next_node: str | None = None
    pending_tool: str | None = None
    updated_at: str = ""

    @classmethod
    def from_checkpoint(cls, checkpoint: Checkpoint) -> "CheckpointSummary":
        pending = checkpoint.pending_interrupt
        return cls(
            thread_id=checkpoint.thread_id,
            graph_id=checkpoint.graph_id,
            version=checkpoint.version,
            status=checkpoint.status,
            next_node=checkpoint.next_node,
            pending_tool=pending.tool_name if pending else None,
            updated_at=checkpoint.updated_at,
        )

"""Checkpoint persistence and the well-known workflow directory."""

from mcp_workflow.storage.checkpoint_store import (
    BaseCheckpointStore,
    CheckpointStore,
    InMemoryCheckpointStore,
    validate_thread_id,
)
from mcp_workflow.storage.well_known_directory import WellKnownDirectory

__all__ = [
    "BaseCheckpointStore",
    "CheckpointStore",
    "InMemoryCheckpointStore",
    "WellKnownDirectory",
    "validate_thread_id",
]

"""
Workflow State Manager - picks the checkpoint store for an environment.

- production: file store in <well-known dir>/workflow-state/
- test: in-memory store, nothing touches disk
"""

import logging
from pathlib import Path

from mcp_workflow.config import WorkflowEnvironment
from mcp_workflow.storage.checkpoint_store import (
    BaseCheckpointStore,
    CheckpointStore,
    InMemoryCheckpointStore,
)
from mcp_workflow.storage.well_known_directory import WellKnownDirectory

logger = logging.getLogger(__name__)


class WorkflowStateManager:
    """Creates (once) and hands out the checkpoint store for this process."""

    def __init__(
        self,
        environment: WorkflowEnvironment = "production",
        project_path: str | Path | None = None,
    ):
        self.environment = environment
        self.well_known_directory = WellKnownDirectory(project_path)
        self._store: BaseCheckpointStore | None = None

    @property
    def store(self) -> BaseCheckpointStore:
        if self._store is None:
            self._store = self._create_store()
        return self._store

    def _create_store(self) -> BaseCheckpointStore:
        if self.environment == "test":
            logger.debug("Using in-memory checkpoint store")
            return InMemoryCheckpointStore()
        state_dir = self.well_known_directory.workflow_state_dir
        logger.debug(f"Using file checkpoint store at {state_dir}")
        return CheckpointStore(state_dir)

"""
Suspend/Resume primitive.

A node suspends by calling ``ctx.suspend(data)``. On the first run this
raises GraphInterrupt, which the executor turns into a pending interrupt in
the checkpoint. When the thread is resumed the node is re-executed from the
start, and the i-th suspend() call returns the i-th resume value instead of
raising. Nodes must therefore be deterministic up to their suspend points.
"""

from collections.abc import Mapping
from typing import Any

from mcp_workflow.execution.progress import NoOpProgressReporter, ProgressReporter


class GraphInterrupt(Exception):  # noqa: N818
    """Control-flow signal raised by NodeContext.suspend(); never an error."""

    def __init__(self, data: Any, index: int, expected_schema: dict[str, Any] | None = None):
        super().__init__(f"Node suspended at point {index}")
        self.data = data
        self.index = index
        self.expected_schema = expected_schema


class NodeContext:
    """
    Everything a node may use besides the state.

    ``config`` is the per-advance configuration mapping. Nodes read settings
    from here instead of from process-wide environment variables.
    """

    def __init__(
        self,
        thread_id: str,
        node_id: str,
        resume_values: list[Any] | None = None,
        progress_reporter: ProgressReporter | None = None,
        config: Mapping[str, Any] | None = None,
    ):
        self.thread_id = thread_id
        self.node_id = node_id
        self.resume_values = list(resume_values or [])
        self.progress_reporter = progress_reporter or NoOpProgressReporter()
        self.config: Mapping[str, Any] = dict(config or {})
        self._suspend_calls = 0

    def suspend(self, data: Any, expected_schema: dict[str, Any] | None = None) -> Any:
        """
        Pause the workflow until an external actor supplies a value.

        Returns:
            The resume value for this suspend point (on re-execution)

        Raises:
            GraphInterrupt: The suspend point has no resume value yet
        """
        index = self._suspend_calls
        self._suspend_calls += 1
        if index < len(self.resume_values):
            return self.resume_values[index]
        raise GraphInterrupt(data, index, expected_schema)

    @property
    def suspend_calls(self) -> int:
        return self._suspend_calls

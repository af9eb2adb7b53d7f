"""
Error taxonomy for workflow orchestration.

Only WorkflowValidationError and WorkflowFatalError are expected to be handled
inside a workflow. Everything else surfaces to the orchestrator's top-level
handler, which turns it into a structured failure response.
"""

from typing import Any


class WorkflowError(Exception):
    """Base class for all workflow engine errors."""


class WorkflowValidationError(WorkflowError):
    """
    A resumed or initial input failed its declared schema.

    Recoverable: the caller is told which fields were wrong and may retry
    the same call with corrected input.
    """

    def __init__(
        self, message: str, fields: list[str] | None = None, errors: list[Any] | None = None
    ):
        super().__init__(message)
        self.fields = fields or []
        self.errors = errors or []

    @classmethod
    def from_pydantic(cls, exc: Any, subject: str = "input") -> "WorkflowValidationError":
        """Build from a pydantic ValidationError, keeping the offending field paths."""
        details = exc.errors()
        fields = []
        parts = []
        for err in details:
            loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
            fields.append(loc)
            parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
        message = f"Invalid {subject}: " + "; ".join(parts)
        return cls(message, fields=fields, errors=details)

    def messages(self) -> list[str]:
        """One human-readable message per violated field."""
        if not self.errors:
            return [str(self)]
        return [
            f"Field '{'.'.join(str(p) for p in e.get('loc', ())) or '<root>'}': "
            f"{e.get('msg', 'invalid value')}"
            for e in self.errors
        ]


class WorkflowFatalError(WorkflowError):
    """A node determined that the workflow cannot proceed."""


class PersistenceError(WorkflowError):
    """Checkpoint storage failed."""


class CheckpointConflictError(PersistenceError):
    """The stored checkpoint changed since it was read (concurrent resume)."""

    def __init__(self, thread_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"Checkpoint for thread '{thread_id}' is at version {actual_version}, "
            f"expected {expected_version}"
        )
        self.thread_id = thread_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class GraphContractError(WorkflowError):
    """A graph definition or node/router broke its contract (a bug, not a runtime condition)."""

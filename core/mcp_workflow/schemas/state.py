"""
Workflow State Schema - The record threaded through every node.

Each workflow family subclasses WorkflowState with its own domain fields.
Nodes and routers read the full state but only ever return a partial patch;
apply_patch merges the patch into a new, validated state instance.
"""

from collections.abc import Callable
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from mcp_workflow.errors import GraphContractError


def replace_value(old: Any, new: Any) -> Any:
    return new


def append_values(old: list | None, new: list | Any) -> list:
    """Concatenate lists; a scalar patch value is appended as one item."""
    items = list(old or [])
    if isinstance(new, list | tuple):
        items.extend(new)
    elif new is not None:
        items.append(new)
    return items


def merge_dicts(old: dict | None, new: dict | None) -> dict:
    merged = dict(old or {})
    merged.update(new or {})
    return merged


class WorkflowState(BaseModel):
    """
    Base state for all workflows.

    Subclasses add domain fields. Field-level merge behaviour is declared in
    ``reducers``; fields without a reducer are replaced by the patch value.
    """

    user_input: Any = None
    workflow_fatal_error_messages: list[str] = Field(default_factory=list)
    retry_counts: dict[str, int] = Field(default_factory=dict)

    reducers: ClassVar[dict[str, Callable[[Any, Any], Any]]] = {
        "workflow_fatal_error_messages": append_values,
        "retry_counts": merge_dicts,
    }

    model_config = {"validate_assignment": True}

    def apply_patch(self, patch: dict[str, Any] | None) -> "WorkflowState":
        """
        Merge a node/router patch into a copy of this state.

        Raises:
            GraphContractError: If the patch is not a dict or names unknown fields
        """
        if not patch:
            return self
        if not isinstance(patch, dict):
            raise GraphContractError(
                f"State patch must be a dict, got {type(patch).__name__}"
            )

        fields = type(self).model_fields
        unknown = [key for key in patch if key not in fields]
        if unknown:
            raise GraphContractError(
                f"Patch for {type(self).__name__} names unknown fields: {sorted(unknown)}"
            )

        data = self.model_dump()
        for key, value in patch.items():
            reducer = self.reducers.get(key, replace_value)
            data[key] = reducer(data.get(key), value)
        return type(self).model_validate(data)

    def has_fatal_errors(self) -> bool:
        return bool(self.workflow_fatal_error_messages)

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-compatible snapshot for checkpoint storage."""
        return self.model_dump(mode="json")

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any] | None) -> "WorkflowState":
        return cls.model_validate(snapshot or {})

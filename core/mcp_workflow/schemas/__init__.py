"""Schemas: workflow state, tool-invocation protocol, checkpoints, property metadata."""

from mcp_workflow.schemas.checkpoint import (
    Checkpoint,
    CheckpointSummary,
    LastExchange,
    PendingInterrupt,
    ThreadStatus,
)
from mcp_workflow.schemas.metadata import (
    USER_INPUT,
    WORKFLOW_STATE_DATA,
    InterruptData,
    LlmMetadata,
    NodeGuidanceData,
    ToolInvocationData,
    ToolMetadata,
    WorkflowStateData,
    WorkflowToolInput,
    WorkflowToolMetadata,
    WorkflowToolOutput,
    is_node_guidance_data,
)
from mcp_workflow.schemas.property_metadata import (
    IsPropertyFulfilled,
    PropertyFulfilledResult,
    PropertyMetadata,
    PropertyMetadataCollection,
    default_is_property_fulfilled,
)
from mcp_workflow.schemas.state import WorkflowState, append_values, merge_dicts

__all__ = [
    # State
    "WorkflowState",
    "append_values",
    "merge_dicts",
    # Checkpoint
    "Checkpoint",
    "CheckpointSummary",
    "LastExchange",
    "PendingInterrupt",
    "ThreadStatus",
    # Tool invocation
    "USER_INPUT",
    "WORKFLOW_STATE_DATA",
    "InterruptData",
    "LlmMetadata",
    "NodeGuidanceData",
    "ToolInvocationData",
    "ToolMetadata",
    "WorkflowStateData",
    "WorkflowToolInput",
    "WorkflowToolMetadata",
    "WorkflowToolOutput",
    "is_node_guidance_data",
    # Properties
    "IsPropertyFulfilled",
    "PropertyFulfilledResult",
    "PropertyMetadata",
    "PropertyMetadataCollection",
    "default_is_property_fulfilled",
]

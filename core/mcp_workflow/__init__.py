"""
mcp_workflow - checkpointed workflow orchestration over stateless MCP tool calls.

A workflow is a graph of nodes and routers. An orchestrator tool advances the
graph one suspend point per call, persisting a checkpoint per thread, so a
long-running human-in-the-loop process survives across independent calls.
"""

from mcp_workflow.config import WorkflowConfig
from mcp_workflow.errors import (
    CheckpointConflictError,
    GraphContractError,
    PersistenceError,
    WorkflowError,
    WorkflowFatalError,
    WorkflowValidationError,
)
from mcp_workflow.graph import (
    END,
    BaseNode,
    BaseRouter,
    ConditionalEdgeSpec,
    EdgeSpec,
    FunctionNode,
    FunctionRouter,
    GraphExecutor,
    GraphSpec,
    NodeContext,
)
from mcp_workflow.schemas import (
    Checkpoint,
    LlmMetadata,
    NodeGuidanceData,
    PropertyMetadata,
    ToolInvocationData,
    WorkflowState,
    WorkflowStateData,
)
from mcp_workflow.storage import CheckpointStore, InMemoryCheckpointStore
from mcp_workflow.storage.state_manager import WorkflowStateManager
from mcp_workflow.tools import (
    GetInputTool,
    InputExtractionTool,
    OrchestratorConfig,
    OrchestratorTool,
)

__version__ = "0.1.0"

__all__ = [
    "WorkflowConfig",
    # Errors
    "CheckpointConflictError",
    "GraphContractError",
    "PersistenceError",
    "WorkflowError",
    "WorkflowFatalError",
    "WorkflowValidationError",
    # Graph
    "END",
    "BaseNode",
    "BaseRouter",
    "ConditionalEdgeSpec",
    "EdgeSpec",
    "FunctionNode",
    "FunctionRouter",
    "GraphExecutor",
    "GraphSpec",
    "NodeContext",
    # Schemas
    "Checkpoint",
    "LlmMetadata",
    "NodeGuidanceData",
    "PropertyMetadata",
    "ToolInvocationData",
    "WorkflowState",
    "WorkflowStateData",
    # Storage
    "CheckpointStore",
    "InMemoryCheckpointStore",
    "WorkflowStateManager",
    # Tools
    "GetInputTool",
    "InputExtractionTool",
    "OrchestratorConfig",
    "OrchestratorTool",
]

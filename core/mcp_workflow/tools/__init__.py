"""MCP tools: the workflow orchestrator and the built-in participant tools."""

from mcp_workflow.tools.base import AbstractTool, AbstractWorkflowTool
from mcp_workflow.tools.get_input import GetInputTool, create_get_input_metadata
from mcp_workflow.tools.input_extraction import (
    InputExtractionTool,
    create_input_extraction_metadata,
)
from mcp_workflow.tools.orchestrator import (
    CompletionOutput,
    ContinuationOutput,
    FailureOutput,
    OrchestratorConfig,
    OrchestratorInput,
    OrchestratorTool,
    generate_thread_id,
)

__all__ = [
    "AbstractTool",
    "AbstractWorkflowTool",
    "GetInputTool",
    "InputExtractionTool",
    "create_get_input_metadata",
    "create_input_extraction_metadata",
    "CompletionOutput",
    "ContinuationOutput",
    "FailureOutput",
    "OrchestratorConfig",
    "OrchestratorInput",
    "OrchestratorTool",
    "generate_thread_id",
]

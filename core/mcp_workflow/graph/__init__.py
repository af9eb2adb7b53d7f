"""Graph structures: nodes, routers, edges, and the suspend/resume executor.

Reusable nodes and routers live in ``mcp_workflow.graph.nodes`` and
``mcp_workflow.graph.routers``.
"""

from mcp_workflow.graph.edge import END, ConditionalEdgeSpec, EdgeSpec, GraphSpec
from mcp_workflow.graph.executor import AdvanceResult, GraphExecutor
from mcp_workflow.graph.interrupt import GraphInterrupt, NodeContext
from mcp_workflow.graph.node import BaseNode, FunctionNode
from mcp_workflow.graph.router import BaseRouter, FunctionRouter
from mcp_workflow.graph.tool_executor import (
    InterruptToolExecutor,
    ToolExecutor,
    execute_tool_with_logging,
)

__all__ = [
    # Edges
    "END",
    "ConditionalEdgeSpec",
    "EdgeSpec",
    "GraphSpec",
    # Execution
    "AdvanceResult",
    "GraphExecutor",
    "GraphInterrupt",
    "NodeContext",
    # Nodes and routers
    "BaseNode",
    "FunctionNode",
    "BaseRouter",
    "FunctionRouter",
    # Tool execution
    "InterruptToolExecutor",
    "ToolExecutor",
    "execute_tool_with_logging",
]

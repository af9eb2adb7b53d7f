"""
Tool base classes.

AbstractTool owns registration on a FastMCP server. AbstractWorkflowTool adds
the post-invocation instructions that send the caller back to the
orchestrator with its result.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from fastmcp import FastMCP
from pydantic import BaseModel

from mcp_workflow.schemas.metadata import (
    USER_INPUT,
    WORKFLOW_STATE_DATA,
    ToolMetadata,
    WorkflowStateData,
    WorkflowToolMetadata,
    WorkflowToolOutput,
    schema_to_text,
)

logger = logging.getLogger(__name__)


class AbstractTool(ABC):
    """A tool that can be registered on a FastMCP server."""

    def __init__(self, metadata: ToolMetadata):
        self.metadata = metadata

    @property
    def tool_id(self) -> str:
        return self.metadata.tool_id

    @abstractmethod
    def build_handler(self) -> Callable[..., Any]:
        """
        Build the function FastMCP exposes.

        Its signature is the tool's wire input schema, so parameter names
        are the camelCase wire names.
        """

    def register(self, mcp: FastMCP) -> None:
        """Register this tool with the MCP server."""
        mcp.tool(name=self.tool_id, description=self.metadata.description)(self.build_handler())
        logger.info(f"Registered tool '{self.tool_id}'")


class AbstractWorkflowTool(AbstractTool):
    """A participant tool in an orchestrated workflow."""

    metadata: WorkflowToolMetadata

    def __init__(self, metadata: WorkflowToolMetadata, orchestrator_tool_id: str):
        super().__init__(metadata)
        self.orchestrator_tool_id = orchestrator_tool_id

    def finalize_workflow_tool_output(
        self,
        prompt: str,
        workflow_state_data: WorkflowStateData,
        result_schema: type[BaseModel] | str | None = None,
    ) -> WorkflowToolOutput:
        """
        Append the instructions that route the caller back to the orchestrator.

        This does not invoke the orchestrator. It tells the caller to do so
        with its formatted result as ``userInput``.
        """
        schema = result_schema or self.metadata.result_schema
        schema_text = schema_to_text(schema) if schema is not None else "{}"
        state_json = json.dumps(workflow_state_data.to_wire())

        post_instructions = f"""

# Post-Tool-Invocation Instructions

## 1. Format the results from the execution of your task

The output of your task should conform to the following JSON schema:

```json
{schema_text}
```

A string representation of this JSON schema can also be found in the `resultSchema`
field of this tool's output.

## 2. Invoke the next tool to continue the workflow

You MUST initiate the following actions to proceed with the in-progress workflow you are
participating in.

### 2.1. Invoke the `{self.orchestrator_tool_id}` tool

Invoke the `{self.orchestrator_tool_id}` tool to continue the workflow.

### 2.2 Provide input values to the tool

Provide the following input values to the `{self.orchestrator_tool_id}` tool:

- `{USER_INPUT}`: The structured results from the execution of your task, as specified in the
  first Post-Tool-Invocation step.
- `{WORKFLOW_STATE_DATA}`: {state_json}

This will continue the workflow orchestration process.
"""
        return WorkflowToolOutput(
            prompt_for_llm=prompt + post_instructions,
            result_schema=schema_text,
            workflow_state_data=workflow_state_data,
        )

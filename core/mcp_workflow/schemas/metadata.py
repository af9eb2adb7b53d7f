"""
Tool Invocation Protocol - what a suspended node asks the external actor to do.

Two shapes of interrupt data exist:

- ToolInvocationData (delegate mode): "invoke participant tool X with input Y".
- NodeGuidanceData (direct guidance mode): the orchestrator renders the task
  guidance itself, saving one round trip through a participant tool.

WorkflowStateData is the opaque session token every response carries and
every caller must hand back unmodified.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Wire property names, single source of truth
WORKFLOW_STATE_DATA = "workflowStateData"
USER_INPUT = "userInput"


class WorkflowStateData(BaseModel):
    """Opaque workflow session token, round-tripped byte-for-byte by the caller."""

    thread_id: str = Field(default="", description="Unique identifier for the workflow session")
    expected_input_schema: dict[str, Any] | None = Field(
        default=None,
        alias="expectedInputSchema",
        description="JSON schema of the result the pending step expects",
    )
    interrupt_id: str | None = Field(
        default=None,
        description="Identifier of the suspend point this token was issued for",
    )

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class WorkflowToolInput(BaseModel):
    """Base input for all workflow-participating tools."""

    workflow_state_data: WorkflowStateData = Field(
        alias=WORKFLOW_STATE_DATA,
        description=(
            "Workflow session state for continuation. Required for all workflow-aware "
            "tools, but optional for the orchestrator tool, because it can also start "
            "new workflows."
        ),
    )

    model_config = ConfigDict(populate_by_name=True)


class WorkflowToolOutput(BaseModel):
    """Standard output of every participant tool."""

    prompt_for_llm: str = Field(
        alias="promptForLLM",
        description="Complete prompt with instructions and post-processing guidance",
    )
    result_schema: str = Field(
        alias="resultSchema",
        description="The string-serialized JSON schema of the expected result of the task",
    )
    workflow_state_data: WorkflowStateData = Field(alias=WORKFLOW_STATE_DATA)

    model_config = ConfigDict(populate_by_name=True)


@dataclass(frozen=True)
class LlmMetadata:
    """Metadata about the participant tool to invoke."""

    name: str
    description: str
    input_schema: type[BaseModel]

    def input_json_schema(self) -> dict[str, Any]:
        return self.input_schema.model_json_schema(by_alias=True)


@dataclass(frozen=True)
class ToolInvocationData:
    """
    One suspend point in delegate mode.

    ``input`` holds business-level values only; the workflowStateData
    envelope is added by the orchestrator. ``is_complete`` marks the end of
    the workflow: the orchestrator answers with a completion payload instead
    of an instruction.
    """

    llm_metadata: LlmMetadata
    input: dict[str, Any] = field(default_factory=dict)
    is_complete: bool = False

    @property
    def target_name(self) -> str:
        return self.llm_metadata.name


@dataclass(frozen=True)
class NodeGuidanceData:
    """
    One suspend point in direct guidance mode.

    ``return_guidance`` replaces the orchestrator's default "return to the
    orchestrator" prompt; it receives the token to embed.
    """

    node_id: str
    task_guidance: str
    result_schema: type[BaseModel]
    example_output: str | None = None
    return_guidance: Callable[[WorkflowStateData], str] | None = None
    is_complete: bool = False

    @property
    def target_name(self) -> str:
        return self.node_id


InterruptData = ToolInvocationData | NodeGuidanceData


def is_node_guidance_data(data: Any) -> bool:
    return isinstance(data, NodeGuidanceData)


def result_json_schema(
    data: InterruptData, result_schema: type[BaseModel] | None = None
) -> dict[str, Any] | None:
    """JSON schema of the value the caller must send back for this interrupt."""
    if result_schema is not None:
        return result_schema.model_json_schema(by_alias=True)
    if isinstance(data, NodeGuidanceData):
        return data.result_schema.model_json_schema(by_alias=True)
    return None


def schema_to_text(schema: type[BaseModel] | dict[str, Any] | str) -> str:
    """Compact JSON text for a pydantic model class, a JSON schema dict or a rendered string."""
    if isinstance(schema, str):
        return schema
    if isinstance(schema, dict):
        return json.dumps(schema)
    return json.dumps(schema.model_json_schema(by_alias=True))


@dataclass(frozen=True)
class ToolMetadata:
    """General description of a registered tool."""

    tool_id: str
    title: str
    description: str
    input_schema: type[BaseModel]


@dataclass(frozen=True)
class WorkflowToolMetadata(ToolMetadata):
    """Participant tool metadata; ``result_schema`` is the shape the caller must return."""

    result_schema: type[BaseModel] | None = None

"""
Get Input tool - asks the user for the properties a workflow still needs.

The same guidance text is used in two places: the participant tool below
(delegate mode) and GetInputService, which hands it to the orchestrator
directly as NodeGuidanceData.
"""

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mcp_workflow.schemas.metadata import (
    WorkflowStateData,
    WorkflowToolInput,
    WorkflowToolMetadata,
)
from mcp_workflow.tools.base import AbstractWorkflowTool

logger = logging.getLogger(__name__)


class GetInputProperty(BaseModel):
    """The metadata for a property to be queried, used to formulate a prompting question."""

    property_name: str = Field(alias="propertyName", description="The name of the property")
    friendly_name: str = Field(
        alias="friendlyName", description="The friendly name of the property"
    )
    description: str = Field(description="The description of the property")
    reason: str | None = Field(default=None, description="Why the property is not yet fulfilled")

    model_config = ConfigDict(populate_by_name=True)


class GetInputWorkflowInput(WorkflowToolInput):
    properties_requiring_input: list[GetInputProperty] = Field(
        alias="propertiesRequiringInput",
        description="The metadata for the properties that require input from the user",
    )


class GetInputWorkflowResult(BaseModel):
    user_utterance: Any = Field(
        alias="userUtterance", description="The user's response to the question"
    )

    model_config = ConfigDict(populate_by_name=True)


def create_get_input_metadata(tool_id: str) -> WorkflowToolMetadata:
    return WorkflowToolMetadata(
        tool_id=tool_id,
        title="Get User Input",
        description="Provides a prompt to the user to elicit their input for a set of properties",
        input_schema=GetInputWorkflowInput,
        result_schema=GetInputWorkflowResult,
    )


def describe_properties(properties: list[GetInputProperty]) -> str:
    """Prompt-friendly description of the properties requiring input."""
    blocks = []
    for prop in properties:
        lines = [
            f"- Property Name: {prop.property_name}",
            f"- Friendly Name: {prop.friendly_name}",
            f"- Description: {prop.description}",
        ]
        if prop.reason:
            lines.append(f"- Reason Input Is Needed: {prop.reason}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def generate_get_input_guidance(properties: list[GetInputProperty]) -> str:
    return f"""
# ROLE
You are an input gathering tool, responsible for explicitly requesting and gathering the
user's input for a set of unfulfilled properties.

# TASK
Your job is to provide a prompt to the user that outlines the details for a set of properties
that require the user's input. The prompt should be polite and conversational.

# CONTEXT
Here is the list of properties that require the user's input, along with their describing
metadata:

{describe_properties(properties)}

# INSTRUCTIONS
1. Based on the properties listed in "CONTEXT", generate a prompt that outlines the details
   for each property.
2. Present the prompt to the user and instruct the user to provide their input.
3. **IMPORTANT:** YOU MUST NOW WAIT for the user to provide a follow-up response to your prompt.
    1. You CANNOT PROCEED FROM THIS STEP until the user has provided THEIR OWN INPUT VALUE.
4. Return the user's response to the orchestrator for further processing, as described
   below.
"""


class GetInputTool(AbstractWorkflowTool):
    """Participant tool that renders the input-gathering prompt."""

    def __init__(self, tool_id: str, orchestrator_tool_id: str):
        super().__init__(create_get_input_metadata(tool_id), orchestrator_tool_id)

    def handle_request(self, tool_input: GetInputWorkflowInput):
        guidance = generate_get_input_guidance(tool_input.properties_requiring_input)
        return self.finalize_workflow_tool_output(guidance, tool_input.workflow_state_data)

    def build_handler(self) -> Callable[..., Any]:
        tool = self

        def get_input(
            propertiesRequiringInput: list[GetInputProperty],  # noqa: N803
            workflowStateData: WorkflowStateData,  # noqa: N803
        ) -> dict:
            """Provides a prompt to the user to elicit their input for a set of properties."""
            output = tool.handle_request(
                GetInputWorkflowInput(
                    properties_requiring_input=propertiesRequiringInput,
                    workflow_state_data=workflowStateData,
                )
            )
            count = len(propertiesRequiringInput)
            logger.debug(f"get-input prompt generated for {count} properties")
            return output.model_dump(by_alias=True, exclude_none=True)

        return get_input

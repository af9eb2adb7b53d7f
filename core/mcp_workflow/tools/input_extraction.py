"""Input Extraction tool - parses a free-form user utterance into structured properties."""

import json
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


class PropertyToExtract(BaseModel):
    """The name of a property and its description, to correlate with the user input."""

    property_name: str = Field(alias="propertyName", description="The name of the property")
    description: str = Field(description="The description of the property")

    model_config = ConfigDict(populate_by_name=True)


class InputExtractionWorkflowInput(WorkflowToolInput):
    user_utterance: Any = Field(
        alias="userUtterance",
        description=(
            "Raw user input - can be text, structured data, or any format describing their request"
        ),
    )
    properties_to_extract: list[PropertyToExtract] = Field(
        alias="propertiesToExtract",
        description="The array of properties to extract from the user input",
    )
    result_schema: str = Field(
        alias="resultSchema",
        description="The JSON schema defining the extracted properties structure, as a string",
    )


class InputExtractionWorkflowResult(BaseModel):
    """Structural shape of an extraction result; per-property values are validated separately."""

    extracted_properties: dict[str, Any] = Field(
        default_factory=dict,
        alias="extractedProperties",
        description="Extracted property values keyed by property name",
    )

    model_config = ConfigDict(populate_by_name=True)


def create_input_extraction_metadata(tool_id: str) -> WorkflowToolMetadata:
    return WorkflowToolMetadata(
        tool_id=tool_id,
        title="Input Extraction",
        description="Parses user input and extracts structured project properties",
        input_schema=InputExtractionWorkflowInput,
        result_schema=InputExtractionWorkflowResult,
    )


def generate_extraction_guidance(
    user_utterance: Any,
    properties: list[PropertyToExtract],
) -> str:
    property_lines = "\n".join(f"- {p.property_name}: {p.description}" for p in properties)
    if isinstance(user_utterance, str):
        utterance = user_utterance
    else:
        utterance = json.dumps(user_utterance, default=str)
    return f"""
# ROLE
You are an input extraction tool. You read what the user said and map it onto a fixed set of
named properties.

# TASK
Extract a value for each of the following properties from the user input. Use `null` for any
property the user input does not clearly provide. Do not guess or invent values.

# PROPERTIES
{property_lines}

# USER INPUT
{utterance}

# INSTRUCTIONS
1. Correlate the user input with each property description above.
2. Produce an object whose `extractedProperties` field maps each property name to its value.
3. Return the object to the orchestrator, as described below.
"""


class InputExtractionTool(AbstractWorkflowTool):
    """Participant tool that renders the extraction prompt."""

    def __init__(self, tool_id: str, orchestrator_tool_id: str):
        super().__init__(create_input_extraction_metadata(tool_id), orchestrator_tool_id)

    def handle_request(self, tool_input: InputExtractionWorkflowInput):
        guidance = generate_extraction_guidance(
            tool_input.user_utterance, tool_input.properties_to_extract
        )
        # The dynamic schema built for this run replaces the generic result schema
        return self.finalize_workflow_tool_output(
            guidance, tool_input.workflow_state_data, result_schema=tool_input.result_schema
        )

    def build_handler(self) -> Callable[..., Any]:
        tool = self

        def input_extraction(
            userUtterance: Any,  # noqa: N803
            propertiesToExtract: list[PropertyToExtract],  # noqa: N803
            resultSchema: str,  # noqa: N803
            workflowStateData: WorkflowStateData,  # noqa: N803
        ) -> dict:
            """Parses user input and extracts structured project properties."""
            output = tool.handle_request(
                InputExtractionWorkflowInput(
                    user_utterance=userUtterance,
                    properties_to_extract=propertiesToExtract,
                    result_schema=resultSchema,
                    workflow_state_data=workflowStateData,
                )
            )
            count = len(propertiesToExtract)
            logger.debug(f"input-extraction prompt generated for {count} properties")
            return output.model_dump(by_alias=True, exclude_none=True)

        return input_extraction

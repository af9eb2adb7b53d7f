"""
Input Extraction service - turns a user utterance into validated property values.

The extraction result is validated in two passes. The overall structure
must match; then each extracted value is checked against its property's
type. Values that fail are dropped (the property stays unfulfilled and the
workflow asks for it again) rather than failing the whole resume.
"""

import json
import logging
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from mcp_workflow.graph.interrupt import NodeContext
from mcp_workflow.graph.tool_executor import ToolExecutor
from mcp_workflow.schemas.metadata import LlmMetadata, ToolInvocationData
from mcp_workflow.schemas.property_metadata import PropertyMetadataCollection
from mcp_workflow.services.abstract_service import AbstractService
from mcp_workflow.tools.input_extraction import (
    InputExtractionWorkflowResult,
    PropertyToExtract,
    create_input_extraction_metadata,
)


class ExtractionResult(BaseModel):
    extracted_properties: dict[str, Any] = Field(default_factory=dict)


class InputExtractionServiceProvider(Protocol):
    def extract_properties(
        self, ctx: NodeContext, user_input: Any, properties: PropertyMetadataCollection
    ) -> ExtractionResult:
        """Extract and validate structured properties from raw user input."""
        ...


def build_property_results_schema(properties: PropertyMetadataCollection) -> type[BaseModel]:
    """Pydantic model describing ``{"extractedProperties": {...}}`` for these properties."""
    property_fields: dict[str, Any] = {
        name: (meta.type_ | None, Field(default=None, description=meta.description))
        for name, meta in properties.items()
    }
    extracted = create_model(
        "ExtractedProperties",
        __config__=ConfigDict(extra="allow"),
        **property_fields,
    )
    return create_model(
        "PropertyExtractionResult",
        __config__=ConfigDict(populate_by_name=True),
        extracted_properties=(extracted, Field(alias="extractedProperties")),
    )


class InputExtractionService(AbstractService):
    def __init__(
        self,
        tool_id: str,
        tool_executor: ToolExecutor | None = None,
        logger: logging.Logger | None = None,
    ):
        super().__init__("InputExtractionService", tool_executor, logger)
        self.tool_id = tool_id

    def extract_properties(
        self, ctx: NodeContext, user_input: Any, properties: PropertyMetadataCollection
    ) -> ExtractionResult:
        self.logger.debug(f"Starting property extraction for {len(properties)} properties")

        properties_to_extract = [
            PropertyToExtract(property_name=name, description=meta.description)
            for name, meta in properties.items()
        ]
        result_schema_text = json.dumps(
            build_property_results_schema(properties).model_json_schema(by_alias=True)
        )
        metadata = create_input_extraction_metadata(self.tool_id)

        data = ToolInvocationData(
            llm_metadata=LlmMetadata(
                name=metadata.tool_id,
                description=metadata.description,
                input_schema=metadata.input_schema,
            ),
            input={
                "userUtterance": user_input,
                "propertiesToExtract": [p.model_dump(by_alias=True) for p in properties_to_extract],
                "resultSchema": result_schema_text,
            },
        )

        def validate_and_filter(
            raw_result: Any, schema: type[InputExtractionWorkflowResult]
        ) -> ExtractionResult:
            return self._validate_and_filter(raw_result, properties, schema)

        result = self.execute_tool_with_logging(
            ctx, data, InputExtractionWorkflowResult, validator=validate_and_filter
        )

        self.logger.info(
            f"Property extraction completed: {sorted(result.extracted_properties)}"
        )
        return result

    def _validate_and_filter(
        self,
        raw_result: Any,
        properties: PropertyMetadataCollection,
        schema: type[InputExtractionWorkflowResult],
    ) -> ExtractionResult:
        # Structural failure raises and is reported as a validation error
        structure = schema.model_validate(raw_result)

        validated: dict[str, Any] = {}
        invalid: list[str] = []
        for name, value in structure.extracted_properties.items():
            if value is None:
                continue
            meta = properties.get(name)
            if meta is None:
                self.logger.warning(f"Unknown property in extraction result: '{name}'")
                continue
            try:
                validated[name] = meta.validate_value(value)
            except (ValidationError, ValueError) as e:
                invalid.append(name)
                self.logger.debug(f"Property '{name}' failed validation: {e}")

        if invalid:
            self.logger.info(f"Some properties failed validation: {invalid}")

        return ExtractionResult(extracted_properties=validated)

"""Services that obtain results from the external actor on behalf of nodes."""

from mcp_workflow.services.abstract_service import AbstractService
from mcp_workflow.services.get_input_service import GetInputService, GetInputServiceProvider
from mcp_workflow.services.input_extraction_service import (
    ExtractionResult,
    InputExtractionService,
    InputExtractionServiceProvider,
    build_property_results_schema,
)

__all__ = [
    "AbstractService",
    "ExtractionResult",
    "GetInputService",
    "GetInputServiceProvider",
    "InputExtractionService",
    "InputExtractionServiceProvider",
    "build_property_results_schema",
]

"""Runtime configuration for the Project Intake workflow."""

from dataclasses import dataclass

from mcp_workflow.config import WorkflowConfig

default_config = WorkflowConfig.load()


@dataclass
class WorkflowMetadata:
    name: str = "Project Intake"
    version: str = "1.0.0"
    description: str = (
        "Collects the details needed to start a new mobile project (name, platform and "
        "package identifier), then asks the user to review them before finishing."
    )
    server_name: str = "project-intake"


metadata = WorkflowMetadata()

# Tool ids registered on the MCP server
ORCHESTRATOR_TOOL_ID = "project-intake-orchestrator"
GET_INPUT_TOOL_ID = "project-intake-get-input"
INPUT_EXTRACTION_TOOL_ID = "project-intake-input-extraction"
REVIEW_TOOL_ID = "project-intake-review"

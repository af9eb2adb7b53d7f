"""State, properties and nodes for the Project Intake workflow."""

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from mcp_workflow.errors import WorkflowFatalError
from mcp_workflow.graph.interrupt import NodeContext
from mcp_workflow.graph.nodes import AbstractToolNode
from mcp_workflow.schemas import LlmMetadata, PropertyMetadata, ToolInvocationData, WorkflowState
from mcp_workflow.schemas.metadata import WorkflowToolInput, WorkflowToolMetadata

_PACKAGE_ID = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*(\.[a-zA-Z][a-zA-Z0-9_]*)+$")


def _check_package_id(value: str) -> str:
    value = value.strip()
    if not _PACKAGE_ID.match(value):
        raise ValueError("package id must be reverse-DNS, e.g. com.example.app")
    return value.lower()


class IntakeState(WorkflowState):
    project_name: str | None = None
    platform: Literal["iOS", "Android"] | None = None
    package_id: str | None = None
    review_approved: bool | None = None
    review_notes: str | None = None


# Properties the workflow must collect before the review step
PROJECT_PROPERTIES = {
    "project_name": PropertyMetadata(
        friendly_name="project name",
        description="The name of the mobile project to create",
        type_=str,
    ),
    "platform": PropertyMetadata(
        friendly_name="target platform",
        description="The mobile platform to target, either iOS or Android",
        type_=Literal["iOS", "Android"],
    ),
    "package_id": PropertyMetadata(
        friendly_name="package identifier",
        description="The reverse-DNS package identifier of the app, e.g. com.example.app",
        type_=str,
        validator=_check_package_id,
    ),
}


# ---------------------------------------------------------------------------
# Review participant tool contract
# ---------------------------------------------------------------------------


class ReviewInput(WorkflowToolInput):
    project_name: str = Field(alias="projectName", description="The project name to review")
    platform: str = Field(description="The target platform to review")
    package_id: str = Field(alias="packageId", description="The package identifier to review")


class ReviewResult(BaseModel):
    approved: bool = Field(description="Whether the user approved the project details")
    notes: str = Field(default="", description="Any remarks the user made during review")

    model_config = ConfigDict(populate_by_name=True)


def create_review_metadata(tool_id: str) -> WorkflowToolMetadata:
    return WorkflowToolMetadata(
        tool_id=tool_id,
        title="Project Review",
        description="Presents the collected project details to the user for approval",
        input_schema=ReviewInput,
        result_schema=ReviewResult,
    )


class ReviewProjectNode(AbstractToolNode):
    """Asks the user to approve the collected project details."""

    def __init__(self, tool_id: str, **kwargs: Any):
        super().__init__("review_project", **kwargs)
        self.tool_id = tool_id

    def execute(self, state: IntakeState, ctx: NodeContext) -> dict[str, Any]:
        metadata = create_review_metadata(self.tool_id)
        data = ToolInvocationData(
            llm_metadata=LlmMetadata(
                name=metadata.tool_id,
                description=metadata.description,
                input_schema=metadata.input_schema,
            ),
            input={
                "projectName": state.project_name,
                "platform": state.platform,
                "packageId": state.package_id,
            },
        )
        result = self.execute_tool_with_logging(ctx, data, ReviewResult)
        if not result.approved:
            reason = f": {result.notes}" if result.notes else ""
            raise WorkflowFatalError(f"The user rejected the project details{reason}")
        return {"review_approved": True, "review_notes": result.notes}


def build_summary(state: IntakeState) -> str:
    return (
        f"Project '{state.project_name}' ({state.platform}, {state.package_id}) "
        "has been captured and approved."
    )


__all__ = [
    "IntakeState",
    "PROJECT_PROPERTIES",
    "ReviewInput",
    "ReviewProjectNode",
    "ReviewResult",
    "build_summary",
    "create_review_metadata",
]

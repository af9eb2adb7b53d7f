"""Workflow graph and MCP server construction for Project Intake."""

from collections.abc import Callable
from typing import Any

from fastmcp import FastMCP

from mcp_workflow.config import DEFAULT_MAX_STEPS, WorkflowConfig
from mcp_workflow.graph import END, ConditionalEdgeSpec, EdgeSpec, GraphSpec
from mcp_workflow.graph.nodes import (
    FailureReportNode,
    create_get_user_input_node,
    create_user_input_extraction_node,
)
from mcp_workflow.graph.routers import CheckPropertiesFulfilledRouter
from mcp_workflow.graph.tool_executor import ToolExecutor
from mcp_workflow.schemas import WorkflowStateData
from mcp_workflow.storage.state_manager import WorkflowStateManager
from mcp_workflow.tools import (
    GetInputTool,
    InputExtractionTool,
    OrchestratorConfig,
    OrchestratorTool,
)
from mcp_workflow.tools.base import AbstractWorkflowTool

from .config import (
    GET_INPUT_TOOL_ID,
    INPUT_EXTRACTION_TOOL_ID,
    ORCHESTRATOR_TOOL_ID,
    REVIEW_TOOL_ID,
    default_config,
    metadata,
)
from .nodes import (
    PROJECT_PROPERTIES,
    IntakeState,
    ReviewInput,
    ReviewProjectNode,
    build_summary,
    create_review_metadata,
)

entry_node = "extract_input"
failure_node = "failure_report"


def build_graph(
    tool_executor: ToolExecutor | None = None, max_steps: int = DEFAULT_MAX_STEPS
) -> GraphSpec:
    """
    Build the intake graph.

    Flow: extract_input -> (get_user_input -> extract_input)* -> review_project -> END
    """
    extract_node = create_user_input_extraction_node(
        required_properties=PROJECT_PROPERTIES,
        tool_id=INPUT_EXTRACTION_TOOL_ID,
        tool_executor=tool_executor,
        state_type=IntakeState,
        name="extract_input",
    )
    get_input_node = create_get_user_input_node(
        required_properties=PROJECT_PROPERTIES,
        tool_id=GET_INPUT_TOOL_ID,
        tool_executor=tool_executor,
        state_type=IntakeState,
        name="get_user_input",
    )
    review_node = ReviewProjectNode(REVIEW_TOOL_ID, tool_executor=tool_executor)

    return GraphSpec(
        id="project-intake",
        description=metadata.description,
        state_type=IntakeState,
        entry_node=entry_node,
        nodes=[extract_node, get_input_node, review_node, FailureReportNode(failure_node)],
        edges=[
            EdgeSpec(source="get_user_input", target="extract_input"),
            EdgeSpec(source="review_project", target=END),
            EdgeSpec(source=failure_node, target=END),
        ],
        conditional_edges=[
            ConditionalEdgeSpec(
                source="extract_input",
                router=CheckPropertiesFulfilledRouter(
                    fulfilled_node="review_project",
                    unfulfilled_node="get_user_input",
                    required_properties=PROJECT_PROPERTIES,
                ),
            ),
        ],
        failure_node=failure_node,
        max_steps=max_steps,
        summary_builder=build_summary,
    )


class ReviewTool(AbstractWorkflowTool):
    """Participant tool: shows the collected details and asks for approval."""

    def __init__(
        self, tool_id: str = REVIEW_TOOL_ID, orchestrator_tool_id: str = ORCHESTRATOR_TOOL_ID
    ):
        super().__init__(create_review_metadata(tool_id), orchestrator_tool_id)

    def handle_request(self, tool_input: ReviewInput):
        prompt = f"""
# TASK
Show the user the project details below and ask whether they are correct.

- Project Name: {tool_input.project_name}
- Platform: {tool_input.platform}
- Package Identifier: {tool_input.package_id}

Wait for the user's answer. Record `approved` as true only if the user confirms, and copy
any remarks into `notes`.
"""
        return self.finalize_workflow_tool_output(prompt, tool_input.workflow_state_data)

    def build_handler(self) -> Callable[..., Any]:
        tool = self

        def review_project(
            projectName: str,  # noqa: N803
            platform: str,
            packageId: str,  # noqa: N803
            workflowStateData: WorkflowStateData,  # noqa: N803
        ) -> dict:
            """Presents the collected project details to the user for approval."""
            output = tool.handle_request(
                ReviewInput(
                    project_name=projectName,
                    platform=platform,
                    package_id=packageId,
                    workflow_state_data=workflowStateData,
                )
            )
            return output.model_dump(by_alias=True)

        return review_project


class ProjectIntakeWorkflow:
    """
    Project Intake - property collection with a human review step.

    Wires the graph, the orchestrator and the participant tools onto a
    FastMCP server.
    """

    def __init__(self, config: WorkflowConfig | None = None):
        self.config = config or default_config
        self.graph = build_graph(max_steps=self.config.max_steps)

    def create_orchestrator(self) -> OrchestratorTool:
        return OrchestratorTool(
            OrchestratorConfig(
                tool_id=ORCHESTRATOR_TOOL_ID,
                graph=self.graph,
                title=f"{metadata.name} Orchestrator",
                state_manager=WorkflowStateManager(
                    environment=self.config.environment,
                    project_path=self.config.project_path,
                ),
                keep_terminal_checkpoints=self.config.keep_terminal_checkpoints,
            )
        )

    def create_server(self) -> FastMCP:
        mcp = FastMCP(metadata.server_name)
        for tool in (
            self.create_orchestrator(),
            GetInputTool(GET_INPUT_TOOL_ID, ORCHESTRATOR_TOOL_ID),
            InputExtractionTool(INPUT_EXTRACTION_TOOL_ID, ORCHESTRATOR_TOOL_ID),
            ReviewTool(),
        ):
            tool.register(mcp)
        return mcp

    def info(self) -> dict[str, Any]:
        return {
            "name": metadata.name,
            "version": metadata.version,
            "description": metadata.description,
            "nodes": self.graph.node_names(),
            "entry_node": self.graph.entry_node,
            "failure_node": self.graph.failure_node,
        }

    def validate(self) -> dict[str, Any]:
        errors = self.graph.validate()
        return {"valid": not errors, "errors": errors}


default_workflow = ProjectIntakeWorkflow()

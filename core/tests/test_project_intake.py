"""
End-to-end tests for the Project Intake template workflow.
"""

from pathlib import Path

import pytest
from project_intake import ProjectIntakeWorkflow, ReviewTool, build_graph
from project_intake.config import (
    GET_INPUT_TOOL_ID,
    INPUT_EXTRACTION_TOOL_ID,
    ORCHESTRATOR_TOOL_ID,
    REVIEW_TOOL_ID,
)
from project_intake.nodes import PROJECT_PROPERTIES, ReviewInput

from mcp_workflow.config import WorkflowConfig
from mcp_workflow.schemas import WorkflowStateData
from mcp_workflow.tools import CompletionOutput, ContinuationOutput, FailureOutput

# === HELPER FUNCTIONS ===


def make_workflow(tmp_path: Path) -> ProjectIntakeWorkflow:
    return ProjectIntakeWorkflow(WorkflowConfig(project_path=str(tmp_path), environment="test"))


async def step(orchestrator, user_input, previous=None):
    raw = {"userInput": user_input}
    if previous is not None:
        raw["workflowStateData"] = previous.workflow_state_data.to_wire()
    return await orchestrator.handle_request(raw)


async def collect_until_review(orchestrator):
    """Drive the intake up to the review step, asking once for the package id."""
    output = await step(orchestrator, "Create an iOS app called Weather")
    assert f"**MCP Server Tool Name**: {INPUT_EXTRACTION_TOOL_ID}" in output.instructions_for_caller

    output = await step(
        orchestrator,
        {"extractedProperties": {"project_name": "Weather", "platform": "iOS"}},
        output,
    )
    assert "package identifier" in output.instructions_for_caller

    output = await step(orchestrator, {"userUtterance": "com.Example.Weather"}, output)
    assert '"userUtterance": "com.Example.Weather"' in output.instructions_for_caller

    output = await step(
        orchestrator,
        {"extractedProperties": {"package_id": "com.Example.Weather"}},
        output,
    )
    assert f"**MCP Server Tool Name**: {REVIEW_TOOL_ID}" in output.instructions_for_caller
    return output


# === WORKFLOW ===


class TestProjectIntakeWorkflow:
    @pytest.mark.asyncio
    async def test_collects_properties_and_completes(self, tmp_path: Path):
        orchestrator = make_workflow(tmp_path).create_orchestrator()

        review = await collect_until_review(orchestrator)
        assert '"packageId": "com.example.weather"' in review.instructions_for_caller

        final = await step(orchestrator, {"approved": True, "notes": ""}, review)

        assert isinstance(final, CompletionOutput)
        assert final.summary == (
            "Project 'Weather' (iOS, com.example.weather) has been captured and approved."
        )

    @pytest.mark.asyncio
    async def test_rejected_review_fails(self, tmp_path: Path):
        orchestrator = make_workflow(tmp_path).create_orchestrator()
        review = await collect_until_review(orchestrator)

        final = await step(orchestrator, {"approved": False, "notes": "wrong name"}, review)

        assert isinstance(final, FailureOutput)
        assert final.messages == ["The user rejected the project details: wrong name"]

    @pytest.mark.asyncio
    async def test_invalid_extracted_values_are_asked_again(self, tmp_path: Path):
        orchestrator = make_workflow(tmp_path).create_orchestrator()
        output = await step(orchestrator, "An app for Windows")

        output = await step(
            orchestrator,
            {"extractedProperties": {"project_name": "Weather", "platform": "Windows"}},
            output,
        )

        assert isinstance(output, ContinuationOutput)
        assert "target platform" in output.instructions_for_caller
        assert "- Property Name: platform" in output.instructions_for_caller

    @pytest.mark.asyncio
    async def test_everything_extracted_up_front_skips_get_input(self, tmp_path: Path):
        orchestrator = make_workflow(tmp_path).create_orchestrator()
        output = await step(orchestrator, "Weather, Android, com.example.weather")

        output = await step(
            orchestrator,
            {
                "extractedProperties": {
                    "project_name": "Weather",
                    "platform": "Android",
                    "package_id": "com.example.weather",
                }
            },
            output,
        )

        assert f"**MCP Server Tool Name**: {REVIEW_TOOL_ID}" in output.instructions_for_caller


class TestWorkflowStructure:
    def test_graph_is_valid(self, tmp_path: Path):
        result = make_workflow(tmp_path).validate()
        assert result == {"valid": True, "errors": []}

    def test_info(self, tmp_path: Path):
        info = make_workflow(tmp_path).info()

        assert info["entry_node"] == "extract_input"
        assert info["failure_node"] == "failure_report"
        assert set(info["nodes"]) == {
            "extract_input",
            "get_user_input",
            "review_project",
            "failure_report",
        }

    def test_max_steps_from_config(self, tmp_path: Path):
        config = WorkflowConfig(project_path=str(tmp_path), environment="test", max_steps=7)
        assert ProjectIntakeWorkflow(config).graph.max_steps == 7

    def test_properties_match_state(self):
        graph = build_graph()
        assert set(PROJECT_PROPERTIES) <= set(graph.state_type.model_fields)

    @pytest.mark.asyncio
    async def test_server_registers_all_tools(self, tmp_path: Path):
        mcp = make_workflow(tmp_path).create_server()

        tools = await mcp.get_tools()

        assert set(tools) == {
            ORCHESTRATOR_TOOL_ID,
            GET_INPUT_TOOL_ID,
            INPUT_EXTRACTION_TOOL_ID,
            REVIEW_TOOL_ID,
        }


class TestReviewTool:
    def test_prompt_lists_details_and_returns_to_orchestrator(self):
        output = ReviewTool().handle_request(
            ReviewInput(
                project_name="Weather",
                platform="iOS",
                package_id="com.example.weather",
                workflow_state_data=WorkflowStateData(thread_id="mcpw-1-abcdef"),
            )
        )

        assert "- Package Identifier: com.example.weather" in output.prompt_for_llm
        assert f"Invoke the `{ORCHESTRATOR_TOOL_ID}` tool" in output.prompt_for_llm
        assert "approved" in output.result_schema

"""
Project Intake Workflow - collect and confirm the details of a new mobile project.

Extracts project properties from the user's request, asks for whatever is
still missing, and finishes with a human review of the collected details.
"""

from .agent import ProjectIntakeWorkflow, ReviewTool, build_graph, default_workflow
from .config import WorkflowMetadata, default_config, metadata

__version__ = "1.0.0"

__all__ = [
    "ProjectIntakeWorkflow",
    "ReviewTool",
    "build_graph",
    "default_workflow",
    "WorkflowMetadata",
    "default_config",
    "metadata",
]

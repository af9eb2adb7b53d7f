"""Shared workflow configuration utilities.

Centralises reading of <well-known dir>/configuration.json so that the
orchestrator, the CLI and workflow templates share one implementation.
Environment variables take precedence over the file.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from mcp_workflow.storage.well_known_directory import WellKnownDirectory

WorkflowEnvironment = Literal["production", "test"]

DEFAULT_MAX_STEPS = 100
DEFAULT_CHECKPOINT_MAX_AGE_DAYS = 7

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------


def get_workflow_config(project_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration.json from the well-known directory ({} if absent or invalid)."""
    config_file = WellKnownDirectory(project_path).configuration_path
    if not config_file.exists():
        return {}
    try:
        with open(config_file, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_environment(project_path: str | Path | None = None) -> WorkflowEnvironment:
    """'production' persists checkpoints to disk; 'test' keeps them in memory."""
    value = os.environ.get("MCP_WORKFLOW_ENV") or get_workflow_config(project_path).get(
        "environment", "production"
    )
    return "test" if str(value).lower() == "test" else "production"


def get_log_level(project_path: str | Path | None = None) -> str:
    logging_cfg = get_workflow_config(project_path).get("logging", {})
    return os.environ.get("LOG_LEVEL") or logging_cfg.get("level", "INFO")


def get_log_format(project_path: str | Path | None = None) -> str:
    logging_cfg = get_workflow_config(project_path).get("logging", {})
    return os.environ.get("LOG_FORMAT") or logging_cfg.get("format", "auto")


def get_checkpoint_max_age_days(project_path: str | Path | None = None) -> int:
    checkpoints = get_workflow_config(project_path).get("checkpoints", {})
    return int(checkpoints.get("max_age_days", DEFAULT_CHECKPOINT_MAX_AGE_DAYS))


def get_keep_terminal_checkpoints(project_path: str | Path | None = None) -> bool:
    checkpoints = get_workflow_config(project_path).get("checkpoints", {})
    return bool(checkpoints.get("keep_terminal", False))


def get_max_steps(project_path: str | Path | None = None) -> int:
    """Node executions allowed in one advance before the graph is considered stuck."""
    return int(get_workflow_config(project_path).get("max_steps", DEFAULT_MAX_STEPS))


# ---------------------------------------------------------------------------
# WorkflowConfig – shared across orchestrators and templates
# ---------------------------------------------------------------------------


@dataclass
class WorkflowConfig:
    """Runtime configuration for an orchestrator and its checkpoint store."""

    project_path: str | None = field(default_factory=lambda: os.environ.get("PROJECT_PATH"))
    environment: WorkflowEnvironment = "production"
    log_level: str = "INFO"
    log_format: str = "auto"
    log_to_file: bool = True
    checkpoint_max_age_days: int = DEFAULT_CHECKPOINT_MAX_AGE_DAYS
    keep_terminal_checkpoints: bool = False
    max_steps: int = DEFAULT_MAX_STEPS

    @classmethod
    def load(cls, project_path: str | Path | None = None) -> "WorkflowConfig":
        """Build from configuration.json plus environment overrides."""
        project = str(project_path) if project_path else os.environ.get("PROJECT_PATH")
        return cls(
            project_path=project,
            environment=get_environment(project),
            log_level=get_log_level(project),
            log_format=get_log_format(project),
            checkpoint_max_age_days=get_checkpoint_max_age_days(project),
            keep_terminal_checkpoints=get_keep_terminal_checkpoints(project),
            max_steps=get_max_steps(project),
        )

    @property
    def well_known_directory(self) -> WellKnownDirectory:
        return WellKnownDirectory(self.project_path)

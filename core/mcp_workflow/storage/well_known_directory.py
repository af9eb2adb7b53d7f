"""
Well-Known Directory - Where workflow state and logs live on disk.

Layout:
    <PROJECT_PATH or home>/.mcp-workflow/
        configuration.json      # Optional user configuration
        workflow-state/         # One checkpoint file per thread
        workflow_logs.jsonl     # Structured log sink
"""

import os
from pathlib import Path
from typing import Any

WELL_KNOWN_DIR_NAME = ".mcp-workflow"

WELL_KNOWN_FILES = {
    "configuration": "configuration.json",
    "workflow_state_dir": "workflow-state",
    "workflow_logs": "workflow_logs.jsonl",
}


class WellKnownDirectory:
    """Resolves (and lazily creates) the per-project workflow directory."""

    def __init__(self, project_path: str | Path | None = None):
        if project_path:
            base = Path(project_path).expanduser().resolve()
        elif os.environ.get("PROJECT_PATH"):
            base = Path(os.environ["PROJECT_PATH"]).expanduser().resolve()
        else:
            base = Path.home()
        self.path = base / WELL_KNOWN_DIR_NAME

    def ensure(self) -> Path:
        """Create the directory if needed; safe to call repeatedly."""
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path

    def exists(self) -> bool:
        return self.path.is_dir()

    def file_path(self, name: str) -> Path:
        """Absolute path of a file inside the directory (directory is created)."""
        return self.ensure() / name

    @property
    def configuration_path(self) -> Path:
        return self.path / WELL_KNOWN_FILES["configuration"]

    @property
    def workflow_state_dir(self) -> Path:
        return self.path / WELL_KNOWN_FILES["workflow_state_dir"]

    @property
    def workflow_logs_path(self) -> Path:
        return self.path / WELL_KNOWN_FILES["workflow_logs"]

    def info(self) -> dict[str, Any]:
        """Directory status for debugging and the `info` CLI command."""
        exists = self.exists()
        return {
            "exists": exists,
            "path": str(self.path),
            "files": [
                {
                    "name": name,
                    "path": str(self.path / name),
                    "exists": exists and (self.path / name).exists(),
                }
                for name in WELL_KNOWN_FILES.values()
            ],
        }

"""Workflow document loader with name-based resolution and YAML parsing."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from .models import WorkflowNode, WorkflowNotFoundError, WorkflowValidationError, parse_workflow

logger = logging.getLogger(__name__)

WORKFLOW_SUFFIXES = (".yaml", ".yml", ".json")


class WorkflowLoader:
    """Loads workflow documents from YAML or JSON files."""

    def __init__(self, workflows_path: str | None = None):
        """Initialize the workflow loader.

        Args:
            workflows_path: Directory searched when loading by name
        """
        self.workflows_path = Path(workflows_path or os.getcwd())

    def load(self, name_or_path: str) -> list[WorkflowNode]:
        """Load a workflow by file path or by name inside ``workflows_path``.

        Raises:
            WorkflowNotFoundError: If no matching file exists
            WorkflowValidationError: If the document is malformed
        """
        candidate = Path(name_or_path)
        if candidate.suffix in WORKFLOW_SUFFIXES and candidate.exists():
            return self._load_from_file(candidate)

        searched = []
        for suffix in WORKFLOW_SUFFIXES:
            path = self.workflows_path / f"{name_or_path}{suffix}"
            searched.append(str(path))
            if path.exists():
                return self._load_from_file(path)

        raise WorkflowNotFoundError(
            f"Workflow '{name_or_path}' not found. Searched:\n  - " + "\n  - ".join(searched)
        )

    def _load_from_file(self, file_path: Path) -> list[WorkflowNode]:
        logger.debug(f"Loading workflow from {file_path}")
        try:
            with open(file_path, encoding="utf-8") as f:
                content = f.read()
        except FileNotFoundError as e:
            raise WorkflowNotFoundError(f"Workflow file not found: {file_path}") from e

        try:
            return self.parse(content)
        except WorkflowValidationError as e:
            raise WorkflowValidationError(f"Error loading workflow from {file_path}: {e}") from e

    @staticmethod
    def parse(content: str) -> list[WorkflowNode]:
        """Parse YAML (or JSON) text holding a workflow document.

        The document is either a list of nodes or a chat response object whose
        ``workflow`` field holds that list.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise WorkflowValidationError(f"Invalid YAML syntax: {e}") from e

        return parse_workflow(data)

    @staticmethod
    def from_response(response: Any) -> list[WorkflowNode] | None:
        """Workflow carried by a chat response, or None when it has none."""
        workflow = getattr(response, "workflow", None)
        if workflow is None and isinstance(response, dict):
            workflow = response.get("workflow")
        if not workflow:
            return None
        return parse_workflow(workflow)


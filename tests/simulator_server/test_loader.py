"""Tests for loading workflow documents from files."""

import json

import pytest

from wavesim.simulator_server.workflow.loader import WorkflowLoader
from wavesim.simulator_server.workflow.models import (
    UserInteraction,
    WorkflowNotFoundError,
    WorkflowValidationError,
)

YAML_WORKFLOW = """
- id: ask
  type: user_interaction
  prompt:
    en-US: "Name?"
  fields:
    - name: name
      type: text
- id: check
  type: decision
  expression: "replies.name == 'Bob'"
  if_block:
    - id: greet
      type: user_interaction
"""


@pytest.fixture
def workflows_dir(tmp_path):
    (tmp_path / "greeting.yaml").write_text(YAML_WORKFLOW)
    (tmp_path / "wrapped.json").write_text(
        json.dumps({"message": "ok", "workflow": [{"type": "api_call", "api_name": "Lookup"}]})
    )
    (tmp_path / "broken.yml").write_text("- id: [unclosed")
    return tmp_path


class TestWorkflowLoader:
    """Test WorkflowLoader."""

    def test_load_by_name(self, workflows_dir):
        """Test resolving a name inside the workflows directory."""
        nodes = WorkflowLoader(str(workflows_dir)).load("greeting")

        assert [node.id for node in nodes] == ["ask", "check"]
        assert isinstance(nodes[0], UserInteraction)
        assert nodes[1].if_block[0].id == "greet"

    def test_load_by_path(self, workflows_dir):
        """Test loading a file path directly."""
        nodes = WorkflowLoader().load(str(workflows_dir / "wrapped.json"))

        assert nodes[0].variable_name == "lookup"

    def test_not_found(self, workflows_dir):
        """Test that the error lists every searched path."""
        with pytest.raises(WorkflowNotFoundError) as exc_info:
            WorkflowLoader(str(workflows_dir)).load("missing")

        message = str(exc_info.value)
        assert "missing.yaml" in message
        assert "missing.json" in message

    def test_invalid_yaml(self, workflows_dir):
        """Test that syntax errors are reported with the file name."""
        with pytest.raises(WorkflowValidationError, match="broken.yml"):
            WorkflowLoader(str(workflows_dir)).load("broken")

    def test_parse_text(self):
        """Test parsing document text without a file."""
        nodes = WorkflowLoader.parse('[{"type": "user_interaction"}]')

        assert nodes[0].id == "step_0"

    def test_from_response(self):
        """Test reading the workflow carried by a chat response."""
        assert len(WorkflowLoader.from_response({"workflow": [{"type": "user_interaction"}]})) == 1
        assert WorkflowLoader.from_response({"message": "no workflow"}) is None


"""Tests for workflow document parsing."""

import pytest

from wavesim.simulator_server.workflow.models import (
    ApiCall,
    Decision,
    DoWhile,
    UnknownNode,
    UserInteraction,
    WhileLoop,
    WorkflowValidationError,
    find_expression_usages,
    find_node,
    iter_nodes,
    localized_text,
    parse_workflow,
    prompt_text,
)


class TestParseWorkflow:
    """Test conversion of raw documents into nodes."""

    def test_node_types(self, shopping_workflow):
        """Test that each node type maps to its class."""
        nodes = parse_workflow(shopping_workflow)

        assert isinstance(nodes[0], UserInteraction)
        assert isinstance(nodes[1], Decision)
        assert isinstance(nodes[1].if_block[0], ApiCall)
        assert nodes[0].fields[0].name == "budget"
        assert nodes[0].fields[0].required is True
        assert nodes[1].if_block[1].fields[0].attributes.label_expression == "$.title"

    def test_generated_ids(self):
        """Test ids derived from node positions."""
        nodes = parse_workflow([
            {"type": "user_interaction"},
            {
                "type": "decision",
                "expression": "true",
                "if_block": [{"type": "api_call", "api_name": "Lookup"}],
                "else_block": [{"type": "user_interaction"}],
            },
        ])

        assert [node.id for node in iter_nodes(nodes)] == [
            "step_0",
            "step_1",
            "step_1.if_block.0",
            "step_1.else_block.0",
        ]

    def test_loops(self):
        """Test while and do-while nodes."""
        nodes = parse_workflow([
            {"type": "while_loop", "expression": "false", "actions": [{"type": "user_interaction"}]},
            {"type": "do_while", "expression": "false", "actions": []},
        ])

        assert type(nodes[0]) is WhileLoop
        assert isinstance(nodes[1], DoWhile)
        assert nodes[1].type == "do_while"
        assert nodes[0].actions[0].id == "step_0.actions.0"

    def test_response_variable_name(self):
        """Test normalization of the response variable name."""
        nodes = parse_workflow([
            {"type": "api_call", "api_name": "Search Products"},
            {"type": "api_call", "api_name": "x", "response": "My  Var"},
            {"type": "api_call", "api_name": "x", "response_var": "Result"},
            {"type": "api_call"},
        ])

        assert [node.variable_name for node in nodes] == ["search_products", "my_var", "result", "unknown_api"]

    def test_workflow_wrapper(self):
        """Test that a response object carrying a workflow is accepted."""
        nodes = parse_workflow({"message": "Here you go", "workflow": [{"type": "user_interaction"}]})

        assert len(nodes) == 1

    def test_unknown_types_are_kept(self):
        """Test that unrecognized nodes survive parsing."""
        nodes = parse_workflow([{"id": "x", "type": "send_email", "to": "a@b.c"}])

        assert isinstance(nodes[0], UnknownNode)
        assert nodes[0].to_dict() == {"id": "x", "type": "send_email", "to": "a@b.c"}

    def test_invalid_documents(self):
        """Test that malformed documents are rejected."""
        with pytest.raises(WorkflowValidationError):
            parse_workflow({"type": "user_interaction"})
        with pytest.raises(WorkflowValidationError):
            parse_workflow(["not a node"])
        with pytest.raises(WorkflowValidationError):
            parse_workflow([{"type": "decision", "if_block": "oops"}])
        with pytest.raises(WorkflowValidationError):
            parse_workflow([{"type": "user_interaction", "fields": [{"type": "text"}]}])
        with pytest.raises(WorkflowValidationError, match="Unsupported field type 'slider'"):
            parse_workflow([{"id": "ask", "type": "user_interaction", "fields": [{"name": "volume", "type": "slider"}]}])

    def test_duplicate_ids(self):
        """Test that node ids must be unique across the tree."""
        with pytest.raises(WorkflowValidationError, match="Duplicate node id: a"):
            parse_workflow([
                {"id": "a", "type": "user_interaction"},
                {"type": "while_loop", "actions": [{"id": "a", "type": "user_interaction"}]},
            ])

    def test_find_node(self, shopping_workflow):
        """Test lookup of nested nodes."""
        nodes = parse_workflow(shopping_workflow)

        assert find_node(nodes, "pick_product").type == "user_interaction"
        assert find_node(nodes, "missing") is None


class TestLocalizedText:
    """Test localized expressions and prompts."""

    def test_localized_text(self):
        """Test that the locale entry wins only when present and non-empty."""
        assert localized_text({"en-US": "a > 1"}) == "a > 1"
        assert localized_text({"fr-FR": "b"}, "fr-FR") == "b"
        assert localized_text({"fr-FR": "b"}) == {"fr-FR": "b"}
        assert localized_text({"en-US": ""}) == {"en-US": ""}
        assert localized_text("plain") == "plain"

    def test_prompt_text(self):
        """Test resolution of string, list and map prompts."""
        assert prompt_text("Hi") == "Hi"
        assert prompt_text(["First", "Second"]) == "First"
        assert prompt_text({"en-US": ["Hi there"]}) == "Hi there"
        assert prompt_text({"de-DE": "Hallo"}) == '{"de-DE":"Hallo"}'
        assert prompt_text(None) == ""
        assert prompt_text([]) == ""


class TestExpressionUsages:
    """Test find_expression_usages."""

    def test_collects_options_and_labels_in_order(self):
        """Test unique option and label expressions that read a response."""
        nodes = parse_workflow([
            {
                "type": "user_interaction",
                "fields": [
                    {"name": "a", "attributes": {"options": "api_responses.search.items"}},
                    {"name": "b", "attributes": {"options": "api_responses.other.items"}},
                ],
            },
            {
                "type": "while_loop",
                "expression": "true",
                "actions": [
                    {
                        "type": "user_interaction",
                        "fields": [
                            {
                                "name": "c",
                                "attributes": {
                                    "options": "api_responses.search.items",
                                    "label_expression": "api_responses.search.label",
                                },
                            }
                        ],
                    }
                ],
            },
        ])

        assert find_expression_usages(nodes, "search") == [
            "api_responses.search.items",
            "api_responses.search.label",
        ]
        assert find_expression_usages(nodes, "missing") == []

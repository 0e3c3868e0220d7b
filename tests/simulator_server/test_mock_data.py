"""Tests for mock payload prompts and parsing."""

import pytest

from wavesim.simulator_server.config import SimulatorConfig, set_config
from wavesim.simulator_server.errors import InvalidPayloadError
from wavesim.simulator_server.workflow.mock_data import (
    DEFAULT_MOCK_PAYLOAD,
    ChatResponse,
    EchoChatTransport,
    build_mock_prompt,
    default_mock_payload,
    extract_json_block,
    generate_mock_payload,
    parse_mock_payload,
)
from wavesim.simulator_server.workflow.models import find_node, parse_workflow


class FencedTransport:
    """Transport that answers with a fenced JSON block."""

    def send_message(self, text, model_id):
        return ChatResponse(content='Sure!\n```json\n{"items": [{"title": "A"}]}\n```\nEnjoy.')

    def list_models(self):
        return ["test-model"]


@pytest.fixture
def workflow(shopping_workflow):
    return parse_workflow(shopping_workflow)


class TestMockPrompt:
    """Test build_mock_prompt."""

    def test_prompt_lists_expressions(self, workflow):
        """Test the prompt when option expressions read the response."""
        step = find_node(workflow, "search")

        assert build_mock_prompt(workflow, step) == (
            "Give a json example as the value of 'api_responses.search' to match value of these "
            'freemarker expressions: ["api_responses.search.items"], return the json value only, '
            "do not include the key api_responses.search"
        )

    def test_prompt_without_expressions(self):
        """Test the generic prompt when nothing reads the response."""
        nodes = parse_workflow([{"id": "call", "type": "api_call", "api_name": "Weather Lookup"}])
        step = nodes[0]

        assert step.variable_name == "weather_lookup"
        assert build_mock_prompt(nodes, step) == (
            'create a realistic json response for an API named "Weather Lookup" '
            "(variable: api_responses.weather_lookup)"
        )


class TestPayloadParsing:
    """Test extraction and validation of payload text."""

    def test_extract_json_block(self):
        """Test fenced, bare-fenced and plain replies."""
        assert extract_json_block('text ```json\n{"a": 1}\n``` more') == '{"a": 1}'
        assert extract_json_block("```\n[1, 2]\n```") == "[1, 2]"
        assert extract_json_block('{"a": 1}') == '{"a": 1}'

    def test_parse_mock_payload(self):
        """Test that valid JSON text parses."""
        assert parse_mock_payload('{"found": true, "items": []}') == {"found": True, "items": []}

    def test_invalid_payloads(self):
        """Test that malformed or non-finite JSON is rejected."""
        with pytest.raises(InvalidPayloadError):
            parse_mock_payload("not json")
        with pytest.raises(InvalidPayloadError):
            parse_mock_payload('{"score": NaN}')

    def test_default_payload_is_a_copy(self):
        """Test that callers cannot modify the default payload."""
        payload = default_mock_payload()
        payload["products"].append("Speaker C")

        assert payload != DEFAULT_MOCK_PAYLOAD
        assert DEFAULT_MOCK_PAYLOAD["products"] == ["Speaker A", "Speaker B"]


class TestMockGeneration:
    """Test generate_mock_payload with offline transports."""

    def test_fenced_reply(self, workflow):
        """Test that the JSON block of a reply is returned."""
        step = find_node(workflow, "search")

        text = generate_mock_payload(FencedTransport(), workflow, step, "test-model")

        assert parse_mock_payload(text) == {"items": [{"title": "A"}]}

    def test_echo_transport(self, workflow):
        """Test the canned offline reply."""
        transport = EchoChatTransport()
        step = find_node(workflow, "search")

        text = generate_mock_payload(transport, workflow, step, "gpt-4.1-mini")

        prompt, model = transport.sent[0]
        assert model == "gpt-4.1-mini"
        assert text == (
            f'This is a mock response to: "{prompt}". '
            "The actual API integration will replace this with real agent responses."
        )
        assert transport.list_models() == ["gpt-4.1-mini"]

    def test_configured_model(self, workflow):
        """Test that the configured mock model is used when none is given."""
        set_config(SimulatorConfig(mock_model="local-llm"))
        transport = EchoChatTransport()

        generate_mock_payload(transport, workflow, find_node(workflow, "search"))

        assert transport.sent[0][1] == "local-llm"

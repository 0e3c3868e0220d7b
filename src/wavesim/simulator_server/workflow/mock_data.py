"""Mock payload support for API call steps.

Builds the prompt sent to a chat backend to generate an example response,
extracts the JSON it returns and validates it before it reaches the
interpreter.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from ..config import get_config
from ..errors import InvalidPayloadError
from .models import ApiCall, WorkflowNode, find_expression_usages
from .values import is_structured_data

logger = logging.getLogger(__name__)

DEFAULT_MOCK_PAYLOAD = {
    "status": "success",
    "data": "Mock Data",
    "found": True,
    "products": ["Speaker A", "Speaker B"],
}


@dataclass
class ChatResponse:
    """Reply of a chat backend."""

    content: str
    workflow: list[dict[str, Any]] | None = None


class ChatTransport(Protocol):
    """Interface of the chat/completions backend."""

    def send_message(self, text: str, model_id: str) -> ChatResponse: ...

    def list_models(self) -> list[str]: ...


class EchoChatTransport:
    """Offline transport that answers every message with a canned reply."""

    def __init__(self, models: list[str] | None = None):
        self.models = models or ["gpt-4.1-mini"]
        self.sent: list[tuple[str, str]] = []

    def send_message(self, text: str, model_id: str) -> ChatResponse:
        self.sent.append((text, model_id))
        return ChatResponse(
            content=(
                f'This is a mock response to: "{text}". '
                "The actual API integration will replace this with real agent responses."
            )
        )

    def list_models(self) -> list[str]:
        return list(self.models)


def build_mock_prompt(workflow: list[WorkflowNode], step: ApiCall) -> str:
    """Prompt asking a chat backend for an example response of ``step``.

    When option or label expressions read the response, the prompt lists them
    so the generated payload fits what the workflow expects.
    """
    name = step.variable_name
    expressions = find_expression_usages(workflow, name)

    if expressions:
        return (
            f"Give a json example as the value of 'api_responses.{name}' to match value of these "
            f"freemarker expressions: {json.dumps(expressions, separators=(',', ':'))}, return the json "
            f"value only, do not include the key api_responses.{name}"
        )
    return (
        f'create a realistic json response for an API named "{step.api_name or "unknown"}" '
        f"(variable: api_responses.{name})"
    )


def extract_json_block(text: str) -> str:
    """Return the contents of the first fenced code block in ``text``, if any."""
    if "```json" in text:
        return text.split("```json", 1)[1].split("```", 1)[0].strip()
    if "```" in text:
        return text.split("```", 1)[1].split("```", 1)[0].strip()
    return text


def parse_mock_payload(text: str) -> Any:
    """Parse payload text into structured data.

    Raises:
        InvalidPayloadError: if ``text`` is not valid JSON
    """
    try:
        payload = json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        raise InvalidPayloadError(f"Invalid JSON in mock response: {e}") from e

    if not is_structured_data(payload):
        raise InvalidPayloadError("Mock response is not valid structured data")
    return payload


def default_mock_payload() -> dict[str, Any]:
    """Payload offered before anything has been generated."""
    return json.loads(json.dumps(DEFAULT_MOCK_PAYLOAD))


def generate_mock_payload(
    transport: ChatTransport,
    workflow: list[WorkflowNode],
    step: ApiCall,
    model_id: str | None = None,
) -> str:
    """Ask ``transport`` for an example payload and return its JSON text.

    ``model_id`` defaults to the configured ``mock_model``.
    """
    model_id = model_id or get_config().mock_model
    prompt = build_mock_prompt(workflow, step)
    logger.debug(f"[Mock Gen] Invoking chat endpoint. Payload: {json.dumps({'model': model_id, 'message': prompt})}")
    response = transport.send_message(prompt, model_id)
    return extract_json_block(response.content)

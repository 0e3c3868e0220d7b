"""Dataclass models for simulator MCP tool output schemas."""

from dataclasses import dataclass
from typing import Any


@dataclass
class SimulatorStateResponse:
    """Response schema for tools that drive or inspect a simulation."""

    session_id: str
    status: str  # "running" | "awaiting_input" | "awaiting_call" | "completed" | "failed"
    step: dict[str, Any] | None = None  # Halted node or completion marker
    prompt: str | None = None  # Rendered prompt of a user interaction step
    inputs: dict[str, Any] | None = None  # Stored replies for the step's fields
    context: dict[str, Any] | None = None
    history_depth: int = 0
    error: dict[str, Any] | None = None


@dataclass
class FieldOptionsResponse:
    """Response schema for simulator_field_options tool."""

    session_id: str
    step_id: str | None
    fields: list[dict[str, Any]]
    error: dict[str, Any] | None = None


@dataclass
class MockPromptResponse:
    """Response schema for simulator_mock_prompt tool."""

    session_id: str
    response_var: str
    prompt: str
    expressions: list[str]
    default_payload: dict[str, Any]
    model: str = ""
    error: dict[str, Any] | None = None


@dataclass
class ExpressionResponse:
    """Response schema for expression_evaluate and expression_interpolate tools."""

    result: Any = None
    error: dict[str, Any] | None = None

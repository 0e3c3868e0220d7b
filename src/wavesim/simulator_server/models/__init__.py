"""Simulator server models package."""

from .simulator_models import (
    ExpressionResponse,
    FieldOptionsResponse,
    MockPromptResponse,
    SimulatorStateResponse,
)

__all__ = [
    "SimulatorStateResponse",
    "FieldOptionsResponse",
    "MockPromptResponse",
    "ExpressionResponse",
]

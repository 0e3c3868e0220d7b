"""Error taxonomy for the workflow simulator."""

from .models import (
    InterpreterError,
    InvalidPayloadError,
    InvalidStateError,
    LoopLimitExceededError,
    NoHistoryError,
    SimulatorError,
    StepError,
    UnreachableNodeError,
    ValidationError,
)

__all__ = [
    "SimulatorError",
    "InterpreterError",
    "ValidationError",
    "InvalidPayloadError",
    "NoHistoryError",
    "InvalidStateError",
    "UnreachableNodeError",
    "LoopLimitExceededError",
    "StepError",
]

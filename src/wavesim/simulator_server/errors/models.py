"""Error models for the workflow simulator."""

import traceback
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class SimulatorError(Exception):
    """Base class for every error raised by the simulator."""

    code = "SIMULATOR_ERROR"


class InterpreterError(SimulatorError):
    """Raised by the workflow interpreter; reported to callers inside a StepResult."""

    code = "INTERPRETER_ERROR"
    fatal = False


class ValidationError(InterpreterError):
    """Raised when a required field is missing from submitted user input."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, missing_fields: list[str] | None = None):
        super().__init__(message)
        self.missing_fields = missing_fields or []


class InvalidPayloadError(InterpreterError):
    """Raised when an API response payload is not well-formed structured data."""

    code = "INVALID_PAYLOAD"


class NoHistoryError(InterpreterError):
    """Raised when going back with an empty history."""

    code = "NO_HISTORY"


class InvalidStateError(InterpreterError):
    """Raised when a submit does not match the step the interpreter is halted on."""

    code = "INVALID_STATE"


class UnreachableNodeError(InterpreterError):
    """Raised when auto-advance meets a node of an unrecognized type."""

    code = "UNREACHABLE_NODE"
    fatal = True


class LoopLimitExceededError(InterpreterError):
    """Raised when a configured loop or transition ceiling is exceeded."""

    code = "LOOP_LIMIT_EXCEEDED"
    fatal = True


@dataclass
class StepError:
    """Serialisable record of an interpreter-level failure."""

    id: str
    code: str
    error_type: str
    message: str
    step_id: str | None
    timestamp: datetime
    fatal: bool = False
    stack_trace: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exception: Exception, step_id: str | None = None) -> "StepError":
        """Create a StepError from an exception."""
        details: dict[str, Any] = {}
        missing = getattr(exception, "missing_fields", None)
        if missing:
            details["missing_fields"] = list(missing)

        return cls(
            id=f"err_{uuid.uuid4().hex[:8]}",
            code=getattr(exception, "code", "OPERATION_FAILED"),
            error_type=type(exception).__name__,
            message=str(exception),
            step_id=step_id,
            timestamp=datetime.now(),
            fatal=getattr(exception, "fatal", False),
            stack_trace=traceback.format_exc() if exception.__traceback__ else None,
            details=details,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "code": self.code,
            "error_type": self.error_type,
            "message": self.message,
            "step_id": self.step_id,
            "timestamp": self.timestamp.isoformat(),
            "fatal": self.fatal,
            "details": self.details,
        }

"""Implementation of the expression MCP tools."""

import logging
from datetime import date, datetime
from typing import Any

from ..models.simulator_models import ExpressionResponse
from ..sessions import get_session_manager
from ..workflow.expressions import evaluate
from ..workflow.variables import interpolate

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    """Render dates as ISO strings so results serialize cleanly."""
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    return value


def _resolve_context(
    context: dict[str, Any] | None, session_id: str | None
) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """Pick the explicit context or the context of a running session."""
    if session_id:
        session = get_session_manager().get(session_id)
        if session is None:
            return None, {"code": "NOT_FOUND", "message": f"Simulation session not found: {session_id}"}
        with session.lock:
            return session.interpreter.context.as_dict(), None
    return context or {}, None


def expression_evaluate_impl(
    expression: Any,
    context: dict[str, Any] | None = None,
    session_id: str | None = None,
) -> ExpressionResponse:
    """Evaluate an expression against a context or a session's context."""
    variables, error = _resolve_context(context, session_id)
    if error:
        return ExpressionResponse(error=error)

    logger.debug(f"Evaluating expression: {expression!r}")
    return ExpressionResponse(result=_jsonable(evaluate(expression, variables)))


def expression_interpolate_impl(
    text: str,
    context: dict[str, Any] | None = None,
    session_id: str | None = None,
) -> ExpressionResponse:
    """Expand ``${...}`` placeholders in text against a context or a session's context."""
    variables, error = _resolve_context(context, session_id)
    if error:
        return ExpressionResponse(error=error)

    return ExpressionResponse(result=_jsonable(interpolate(text, variables)))

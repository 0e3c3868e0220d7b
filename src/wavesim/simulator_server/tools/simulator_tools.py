"""Implementation of the simulator MCP tools."""

import logging
from typing import Any

from ..config import get_config
from ..errors import InvalidPayloadError
from ..models.simulator_models import FieldOptionsResponse, MockPromptResponse, SimulatorStateResponse
from ..sessions import SimulationSession, get_session_manager
from ..workflow.interpreter import StepResult, WorkflowInterpreter
from ..workflow.loader import WorkflowLoader
from ..workflow.mock_data import build_mock_prompt, default_mock_payload, extract_json_block, parse_mock_payload
from ..workflow.models import (
    ApiCall,
    UserInteraction,
    WorkflowNotFoundError,
    WorkflowValidationError,
    find_expression_usages,
    parse_workflow,
)

logger = logging.getLogger(__name__)


def _error(code: str, message: str) -> dict[str, Any]:
    return {"code": code, "message": message}


def _not_found(session_id: str) -> SimulatorStateResponse:
    logger.error(f"Simulation session not found: {session_id}")
    return SimulatorStateResponse(
        session_id=session_id,
        status="failed",
        error=_error("NOT_FOUND", f"Simulation session not found: {session_id}"),
    )


def _state_response(session: SimulationSession, result: StepResult | None = None) -> SimulatorStateResponse:
    """Describe the current state of a session, including the error of ``result``."""
    interpreter = session.interpreter
    step = interpreter.current_step()
    error = result.error if result is not None else interpreter.error

    return SimulatorStateResponse(
        session_id=session.session_id,
        status=interpreter.status.value,
        step=step.to_dict() if step is not None else None,
        prompt=interpreter.render_prompt(),
        inputs=interpreter.restore_inputs() if isinstance(step, UserInteraction) else None,
        context=interpreter.context.to_dict(),
        history_depth=interpreter.history_depth,
        error=error.to_dict() if error else None,
    )


def simulator_start_impl(workflow: list[Any] | dict[str, Any] | str) -> SimulatorStateResponse:
    """Start a simulation from a workflow document or a workflow name/path.

    Args:
        workflow: Workflow node list, chat response carrying ``workflow``, or
            the name or path of a YAML/JSON workflow file

    Returns:
        SimulatorStateResponse for the new session
    """
    config = get_config()
    logger.info("Starting workflow simulation")

    try:
        if isinstance(workflow, str):
            nodes = WorkflowLoader(config.workflow_definitions_path).load(workflow)
        else:
            nodes = parse_workflow(workflow)
    except WorkflowNotFoundError as e:
        return SimulatorStateResponse(session_id="", status="failed", error=_error("NOT_FOUND", str(e)))
    except WorkflowValidationError as e:
        return SimulatorStateResponse(session_id="", status="failed", error=_error("INVALID_INPUT", str(e)))

    interpreter = WorkflowInterpreter(nodes, config=config)
    session = get_session_manager().create(interpreter)
    logger.debug(f"Created simulation session {session.session_id} ({interpreter.status.value})")
    return _state_response(session)


def simulator_status_impl(session_id: str) -> SimulatorStateResponse:
    """Get the current state of a simulation."""
    session = get_session_manager().get(session_id)
    if session is None:
        return _not_found(session_id)
    with session.lock:
        return _state_response(session)


def simulator_submit_input_impl(session_id: str, values: dict[str, Any] | None) -> SimulatorStateResponse:
    """Submit field values for the halted user interaction step."""
    session = get_session_manager().get(session_id)
    if session is None:
        return _not_found(session_id)
    with session.lock:
        result = session.interpreter.submit_user_input(values or {})
        return _state_response(session, result)


def simulator_submit_api_response_impl(
    session_id: str,
    payload: Any,
    response_var: str | None = None,
) -> SimulatorStateResponse:
    """Submit a mock response payload for the halted API call step.

    A string payload is treated as JSON text; a fenced ```json block is unwrapped.
    """
    session = get_session_manager().get(session_id)
    if session is None:
        return _not_found(session_id)

    if isinstance(payload, str):
        try:
            payload = parse_mock_payload(extract_json_block(payload))
        except InvalidPayloadError as e:
            with session.lock:
                response = _state_response(session)
            response.error = _error(e.code, str(e))
            return response

    with session.lock:
        result = session.interpreter.submit_api_response(response_var, payload)
        return _state_response(session, result)


def simulator_back_impl(session_id: str) -> SimulatorStateResponse:
    """Go back to the previous interactive step."""
    session = get_session_manager().get(session_id)
    if session is None:
        return _not_found(session_id)
    with session.lock:
        result = session.interpreter.go_back()
        return _state_response(session, result)


def simulator_reset_impl(session_id: str) -> SimulatorStateResponse:
    """Restart a simulation from the first node."""
    session = get_session_manager().get(session_id)
    if session is None:
        return _not_found(session_id)
    with session.lock:
        result = session.interpreter.reset()
        return _state_response(session, result)


def simulator_field_options_impl(session_id: str) -> FieldOptionsResponse:
    """Evaluate the fields of the halted user interaction step."""
    session = get_session_manager().get(session_id)
    if session is None:
        return FieldOptionsResponse(
            session_id=session_id,
            step_id=None,
            fields=[],
            error=_error("NOT_FOUND", f"Simulation session not found: {session_id}"),
        )

    with session.lock:
        step = session.interpreter.current_step()
        if not isinstance(step, UserInteraction):
            return FieldOptionsResponse(
                session_id=session_id,
                step_id=None,
                fields=[],
                error=_error("INVALID_STATE", "Simulation is not awaiting user input"),
            )
        return FieldOptionsResponse(session_id=session_id, step_id=step.id, fields=session.interpreter.field_options())


def simulator_mock_prompt_impl(session_id: str) -> MockPromptResponse:
    """Build the mock-generation prompt for the halted API call step."""
    session = get_session_manager().get(session_id)
    if session is None:
        return MockPromptResponse(
            session_id=session_id,
            response_var="",
            prompt="",
            expressions=[],
            default_payload={},
            error=_error("NOT_FOUND", f"Simulation session not found: {session_id}"),
        )

    with session.lock:
        interpreter = session.interpreter
        step = interpreter.current_step()
        if not isinstance(step, ApiCall):
            return MockPromptResponse(
                session_id=session_id,
                response_var="",
                prompt="",
                expressions=[],
                default_payload={},
                error=_error("INVALID_STATE", "Simulation is not awaiting an API response"),
            )

        return MockPromptResponse(
            session_id=session_id,
            response_var=step.variable_name,
            prompt=build_mock_prompt(interpreter.workflow, step),
            expressions=find_expression_usages(interpreter.workflow, step.variable_name),
            default_payload=default_mock_payload(),
            model=get_config().mock_model,
        )

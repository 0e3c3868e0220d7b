"""Simulator server tools implementations."""

from typing import Any

from ...utils.json_parameter_middleware import json_convert
from ..models.simulator_models import (
    ExpressionResponse,
    FieldOptionsResponse,
    MockPromptResponse,
    SimulatorStateResponse,
)
from .expression_tools import expression_evaluate_impl, expression_interpolate_impl
from .simulator_tools import (
    simulator_back_impl,
    simulator_field_options_impl,
    simulator_mock_prompt_impl,
    simulator_reset_impl,
    simulator_start_impl,
    simulator_status_impl,
    simulator_submit_api_response_impl,
    simulator_submit_input_impl,
)


def register_simulator_tools(mcp):
    """Register simulator and expression tools with the MCP server."""

    @mcp.tool
    @json_convert
    def simulator_start(workflow: list[dict[str, Any]] | dict[str, Any] | str) -> SimulatorStateResponse:
        """Start a step-by-step simulation of a workflow.

        Use this tool when:
        - Walking through a generated workflow the way an end user would
        - Checking which branch a decision takes for given answers
        - Testing loops before publishing a workflow

        Args:
            workflow: Node list, an object with a "workflow" field, or the name/path
                of a YAML or JSON workflow file

        Examples:
            simulator_start([{"type": "user_interaction", "fields": [{"name": "budget", "type": "numeric"}]}])
            → {"session_id": "sim_1a2b3c4d", "status": "awaiting_input", "step": {"id": "step_0", ...}}

        The simulation halts at every user_interaction (submit with simulator_submit_input)
        and api_call (submit with simulator_submit_api_response) node.
        """
        return simulator_start_impl(workflow)

    @mcp.tool
    @json_convert
    def simulator_status(session_id: str) -> SimulatorStateResponse:
        """Get the halted step, context and history depth of a simulation.

        Args:
            session_id: Session returned by simulator_start
        """
        return simulator_status_impl(session_id)

    @mcp.tool
    @json_convert
    def simulator_submit_input(session_id: str, values: dict[str, Any] | None = None) -> SimulatorStateResponse:
        """Answer the halted user_interaction step and continue.

        Every field not marked optional must have a non-empty value. Values are
        stored under context.replies.<field name>.

        Args:
            session_id: Session returned by simulator_start
            values: Field name to value mapping

        Examples:
            simulator_submit_input("sim_1a2b3c4d", {"budget": 500})
            → {"status": "awaiting_call", "step": {"type": "api_call", "api_name": "search", ...}}
        """
        return simulator_submit_input_impl(session_id, values)

    @mcp.tool
    @json_convert
    def simulator_submit_api_response(
        session_id: str,
        payload: Any,
        response_var: str | None = None,
    ) -> SimulatorStateResponse:
        """Provide a mock response for the halted api_call step and continue.

        Args:
            session_id: Session returned by simulator_start
            payload: JSON value or JSON text (a fenced ```json block is accepted)
            response_var: Name under context.api_responses; defaults to the step's
                response variable

        Examples:
            simulator_submit_api_response("sim_1a2b3c4d", {"found": true})
            → {"status": "completed", "step": {"type": "end", ...}}
        """
        return simulator_submit_api_response_impl(session_id, payload, response_var)

    @mcp.tool
    @json_convert
    def simulator_back(session_id: str) -> SimulatorStateResponse:
        """Return to the previous interactive step, restoring its context.

        Args:
            session_id: Session returned by simulator_start
        """
        return simulator_back_impl(session_id)

    @mcp.tool
    @json_convert
    def simulator_reset(session_id: str) -> SimulatorStateResponse:
        """Restart a simulation from its first node with an empty context.

        Args:
            session_id: Session returned by simulator_start
        """
        return simulator_reset_impl(session_id)

    @mcp.tool
    @json_convert
    def simulator_field_options(session_id: str) -> FieldOptionsResponse:
        """Evaluate options, labels and date bounds of the halted step's fields.

        Args:
            session_id: Session returned by simulator_start
        """
        return simulator_field_options_impl(session_id)

    @mcp.tool
    @json_convert
    def simulator_mock_prompt(session_id: str) -> MockPromptResponse:
        """Build a prompt for generating a mock payload for the halted api_call step.

        The prompt lists every option/label expression that reads the response so
        a generated payload fits the rest of the workflow.

        Args:
            session_id: Session returned by simulator_start
        """
        return simulator_mock_prompt_impl(session_id)

    @mcp.tool
    @json_convert
    def expression_evaluate(
        expression: str,
        context: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> ExpressionResponse:
        """Evaluate a workflow expression.

        Args:
            expression: Expression such as "replies.budget > 100" or
                "api_responses.search.items?map(x -> x.name)?join(', ')"
            context: Values paths resolve against
            session_id: Use the context of a running simulation instead

        Examples:
            expression_evaluate("100 > 50 && 'a' == 'a'")
            → {"result": true}

        Failures never raise: a malformed expression yields null.
        """
        return expression_evaluate_impl(expression, context, session_id)

    @mcp.tool
    @json_convert
    def expression_interpolate(
        text: str,
        context: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> ExpressionResponse:
        """Expand ${...} placeholders in text.

        Args:
            text: Text such as "Budget: ${replies.budget}"
            context: Values paths resolve against
            session_id: Use the context of a running simulation instead
        """
        return expression_interpolate_impl(text, context, session_id)


__all__ = [
    "register_simulator_tools",
    "simulator_start_impl",
    "simulator_status_impl",
    "simulator_submit_input_impl",
    "simulator_submit_api_response_impl",
    "simulator_back_impl",
    "simulator_reset_impl",
    "simulator_field_options_impl",
    "simulator_mock_prompt_impl",
    "expression_evaluate_impl",
    "expression_interpolate_impl",
]

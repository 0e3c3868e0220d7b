"""Stack-based workflow interpreter with history and backward navigation.

The interpreter walks the workflow tree one node at a time. Decisions and
loops are expanded automatically; user interaction and API call nodes halt the
walk until the caller submits input or a response payload. Each submit saves
a snapshot of the state it replaced so ``go_back`` can restore it exactly.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..config import SimulatorConfig, get_config
from ..errors import (
    InterpreterError,
    InvalidPayloadError,
    InvalidStateError,
    LoopLimitExceededError,
    NoHistoryError,
    StepError,
    UnreachableNodeError,
    ValidationError,
)
from .context import ExecutionFrame, FrameKind, SimulationContext, Snapshot
from .expressions import evaluate
from .fields import describe_fields, render_prompt, restore_inputs
from .models import (
    ApiCall,
    Decision,
    DoWhile,
    UserInteraction,
    WhileLoop,
    WorkflowNode,
    find_expression_usages,
    localized_text,
    parse_workflow,
)
from .values import is_structured_data, to_boolean

logger = logging.getLogger(__name__)


class InterpreterStatus(Enum):
    """Execution states of a simulation."""

    RUNNING = "running"
    AWAITING_INPUT = "awaiting_input"
    AWAITING_CALL = "awaiting_call"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class WorkflowCompleted:
    """Marker returned as the current step once the workflow has finished."""

    replies: dict[str, Any] = field(default_factory=dict)
    api_responses: dict[str, Any] = field(default_factory=dict)
    type: str = "end"
    ended: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "ended": self.ended,
            "replies": self.replies,
            "api_responses": self.api_responses,
        }


@dataclass
class StepResult:
    """Outcome of a caller-driven interpreter operation."""

    success: bool
    status: InterpreterStatus
    step: WorkflowNode | WorkflowCompleted | None = None
    error: StepError | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "step": self.step.to_dict() if self.step is not None else None,
            "error": self.error.to_dict() if self.error else None,
        }


class WorkflowInterpreter:
    """Drives a workflow simulation.

    Callers must serialize calls into one instance; the interpreter never runs
    work on its own.
    """

    def __init__(
        self,
        workflow: Any = None,
        config: SimulatorConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config or get_config()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.workflow: list[WorkflowNode] = []
        self.stack: list[ExecutionFrame] = []
        self.context = SimulationContext.empty(self._clock())
        self.history: list[Snapshot] = []
        self.status = InterpreterStatus.RUNNING
        self.error: StepError | None = None
        self.debug_log: list[str] = []
        self.reset(workflow if workflow is not None else [])

    # Caller-facing operations

    def reset(self, workflow: Any = None) -> StepResult:
        """Restart the simulation, optionally with a new workflow.

        Raises:
            WorkflowValidationError: if ``workflow`` is not a valid document
        """
        if workflow is not None:
            self.workflow = parse_workflow(workflow)

        self.stack = [ExecutionFrame(nodes=self.workflow, kind=FrameKind.ROOT)]
        self.context = SimulationContext.empty(self._clock())
        self.history = []
        self.status = InterpreterStatus.RUNNING
        self.error = None
        self._log(f"[Reset] {len(self.workflow)} top-level nodes")
        self._run()
        return self._result()

    def current_step(self) -> WorkflowNode | WorkflowCompleted | None:
        """The node the simulation is halted on, or the completion marker."""
        if self.status in (InterpreterStatus.AWAITING_INPUT, InterpreterStatus.AWAITING_CALL):
            return self.stack[-1].current_node()
        if self.status == InterpreterStatus.COMPLETED:
            snapshot = self.context.copy()
            return WorkflowCompleted(replies=snapshot.replies, api_responses=snapshot.api_responses)
        return None

    def submit_user_input(self, values: dict[str, Any] | None) -> StepResult:
        """Store answers for the halted user interaction step and advance."""
        try:
            step = self._require(UserInteraction)
            values = dict(values or {})
            missing = [f.name for f in step.fields if f.required and _is_blank(values.get(f.name))]
            if missing:
                raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing)
        except InterpreterError as e:
            return self._failure(e)

        self._log(f"[Input] {step.id} | Fields: {', '.join(values) or '-'}")
        self._commit(self.context.with_replies(values))
        return self._result()

    def submit_api_response(self, response_var: str | None, payload: Any) -> StepResult:
        """Store a response payload for the halted API call step and advance.

        A blank ``response_var`` falls back to the step's own variable name.
        """
        try:
            step = self._require(ApiCall)
            name = (response_var or "").strip() or step.variable_name
            if not is_structured_data(payload):
                raise InvalidPayloadError(f"Response payload for '{name}' is not valid structured data")
        except InterpreterError as e:
            return self._failure(e)

        self._log(f"[Api] {step.id} | Stored as api_responses.{name}")
        self._commit(self.context.with_api_response(name, payload))
        return self._result()

    def go_back(self) -> StepResult:
        """Restore the state saved by the most recent submit."""
        if not self.history:
            return self._failure(NoHistoryError("No previous step to go back to"))

        snapshot = self.history.pop()
        self.stack = snapshot.restore_stack()
        self.context = snapshot.context.copy()
        self.status = InterpreterStatus.RUNNING
        self.error = None
        self._log(f"[Back] History depth: {len(self.history)}")
        self._run()
        return self._result()

    # Read-only queries

    @property
    def history_depth(self) -> int:
        return len(self.history)

    def list_expressions_referencing(self, response_var: str) -> list[str]:
        """Option and label expressions that read ``api_responses.<response_var>``."""
        return find_expression_usages(self.workflow, response_var)

    def field_options(self) -> list[dict[str, Any]]:
        """Evaluated fields of the halted user interaction step."""
        step = self.current_step()
        if not isinstance(step, UserInteraction):
            return []
        return describe_fields(step, self.context.as_dict())

    def render_prompt(self) -> str | None:
        """Prompt of the halted user interaction step with placeholders expanded."""
        step = self.current_step()
        if not isinstance(step, UserInteraction):
            return None
        return render_prompt(step, self.context.as_dict(), self.config.locale)

    def restore_inputs(self) -> dict[str, Any]:
        """Stored replies for the fields of the halted step."""
        step = self.current_step()
        if not isinstance(step, UserInteraction):
            return {}
        return restore_inputs(step, self.context)

    def to_dict(self) -> dict[str, Any]:
        step = self.current_step()
        return {
            "status": self.status.value,
            "step": step.to_dict() if step is not None else None,
            "context": self.context.to_dict(),
            "stack": [frame.to_dict() for frame in self.stack],
            "history_depth": self.history_depth,
            "error": self.error.to_dict() if self.error else None,
        }

    # Internals

    def _require(self, node_type: type) -> Any:
        """Return the halted node when it is of ``node_type``."""
        if self.status == InterpreterStatus.FAILED:
            raise InvalidStateError("Simulation has failed; reset or go back first")
        step = self.current_step()
        if not isinstance(step, node_type):
            raise InvalidStateError(f"Not awaiting a {node_type.__name__} step (status: {self.status.value})")
        return step

    def _commit(self, context: SimulationContext):
        """Save history, swap in ``context`` and advance past the halted node."""
        self.history.append(Snapshot.capture(self.stack, self.context))
        self.context = context
        self.stack[-1].advance()
        self.status = InterpreterStatus.RUNNING
        self._run()

    def _run(self):
        """Auto-advance, turning fatal errors into a failed status."""
        try:
            self._auto_advance()
        except (UnreachableNodeError, LoopLimitExceededError) as e:
            self.status = InterpreterStatus.FAILED
            self.error = StepError.from_exception(e, step_id=self._failure_step_id())
            logger.error(f"Simulation failed: {e}")
            self._log(f"[Error] {e}")

    def _auto_advance(self):
        """Advance through non-interactive nodes until a halt or completion."""
        max_steps = self.config.max_auto_steps
        max_passes = self.config.max_loop_iterations
        loop_passes: dict[int, int] = {}
        transitions = 0

        while True:
            transitions += 1
            if max_steps and transitions > max_steps:
                raise LoopLimitExceededError(f"Auto-advance exceeded {max_steps} transitions")

            frame = self.stack[-1]
            variables = self.context.as_dict()

            if not frame.has_more_nodes():
                if frame.kind == FrameKind.LOOP_BLOCK:
                    repeat = evaluate(frame.loop_expression, variables)
                    if to_boolean(repeat):
                        passes = loop_passes.get(id(frame), 0) + 1
                        if max_passes and passes > max_passes:
                            raise LoopLimitExceededError(
                                f"Loop {frame.owner_id} repeated more than {max_passes} times"
                            )
                        loop_passes[id(frame)] = passes
                        frame.index = 0
                        self._log(f"[Loop] {frame.owner_id} | Repeat")
                        continue
                    self._log(f"[Loop] {frame.owner_id} | Exit")

                if len(self.stack) > 1:
                    loop_passes.pop(id(self.stack.pop()), None)
                    self.stack[-1].advance()
                    continue

                self.status = InterpreterStatus.COMPLETED
                self._log("[End] Workflow completed")
                return

            node = frame.current_node()

            if isinstance(node, Decision):
                expression = localized_text(node.expression, self.config.locale)
                result = evaluate(expression, variables)
                block = node.if_block if to_boolean(result) else node.else_block
                self._log(
                    f"[Decision] Expr: {expression!r} | Result: {result} | "
                    f"Keys: {', '.join(self.context.api_responses)}"
                )
                if block:
                    self.stack.append(ExecutionFrame(nodes=block, kind=FrameKind.DECISION_BLOCK, owner_id=node.id))
                else:
                    frame.advance()

            elif isinstance(node, DoWhile):
                self._log(f"[DoWhile] {node.id} | Enter")
                self._push_loop(node)

            elif isinstance(node, WhileLoop):
                expression = localized_text(node.expression, self.config.locale)
                enter = evaluate(expression, variables)
                self._log(f"[While] Expr: {expression!r} | Enter: {to_boolean(enter)}")
                if to_boolean(enter):
                    self._push_loop(node)
                else:
                    frame.advance()

            elif isinstance(node, UserInteraction):
                self.status = InterpreterStatus.AWAITING_INPUT
                self._log(f"[Halt] {node.id} | Awaiting input")
                return

            elif isinstance(node, ApiCall):
                self.status = InterpreterStatus.AWAITING_CALL
                self._log(f"[Halt] {node.id} | Awaiting response for api_responses.{node.variable_name}")
                return

            else:
                raise UnreachableNodeError(f"Unrecognized node type '{node.type}' at node {node.id}")

    def _push_loop(self, node: WhileLoop):
        self.stack.append(
            ExecutionFrame(
                nodes=node.actions,
                kind=FrameKind.LOOP_BLOCK,
                loop_expression=localized_text(node.expression, self.config.locale),
                owner_id=node.id,
            )
        )

    def _failure_step_id(self) -> str | None:
        frame = self.stack[-1]
        node = frame.current_node()
        return node.id if node is not None else frame.owner_id

    def _failure(self, error: InterpreterError) -> StepResult:
        """Report a non-fatal error; state is left unchanged."""
        step = self.current_step()
        step_id = step.id if isinstance(step, WorkflowNode) else None
        logger.warning(f"Interpreter operation rejected: {error}")
        return StepResult(
            success=False,
            status=self.status,
            step=step,
            error=StepError.from_exception(error, step_id=step_id),
        )

    def _result(self) -> StepResult:
        """Report the state after an operation; a fatal run counts as failure."""
        return StepResult(
            success=self.status != InterpreterStatus.FAILED,
            status=self.status,
            step=self.current_step(),
            error=self.error,
        )

    def _log(self, message: str):
        logger.debug(message)
        self.debug_log.append(message)
        overflow = len(self.debug_log) - self.config.debug_log_limit
        if overflow > 0:
            del self.debug_log[:overflow]


def _is_blank(value: Any) -> bool:
    """A required answer is missing when absent, null or an empty string."""
    return value is None or (isinstance(value, str) and value == "")

"""Execution context for the workflow simulator.

Holds the frame stack the interpreter walks, the expression context it
evaluates against and the snapshots used for backward navigation.
"""

import copy
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .models import WorkflowNode


class FrameKind(Enum):
    """Kinds of execution frames."""

    ROOT = "root"
    DECISION_BLOCK = "decision_block"
    LOOP_BLOCK = "loop_block"


@dataclass
class ExecutionFrame:
    """One level of the execution stack: a node list and a cursor into it.

    ``nodes`` is a view into the workflow tree and is never copied.
    """

    nodes: list[WorkflowNode]
    index: int = 0
    kind: FrameKind = FrameKind.ROOT
    loop_expression: Any = None
    owner_id: str | None = None

    def has_more_nodes(self) -> bool:
        """Check if the cursor still points at a node."""
        return self.index < len(self.nodes)

    def current_node(self) -> WorkflowNode | None:
        """Get the node under the cursor."""
        if self.has_more_nodes():
            return self.nodes[self.index]
        return None

    def advance(self):
        """Move the cursor to the next node."""
        self.index += 1

    def copy(self) -> "ExecutionFrame":
        """Copy the frame state, sharing the node list."""
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "index": self.index,
            "length": len(self.nodes),
            "owner_id": self.owner_id,
            "loop_expression": self.loop_expression,
        }


@dataclass(frozen=True)
class SimulationContext:
    """Values expressions are evaluated against.

    Instances are never mutated once built; every write produces a new
    context so earlier snapshots stay intact.
    """

    replies: dict[str, Any] = field(default_factory=dict)
    api_responses: dict[str, Any] = field(default_factory=dict)
    now: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def empty(cls, now: datetime | None = None) -> "SimulationContext":
        """Create a context with no replies or responses."""
        return cls(replies={}, api_responses={}, now=now or datetime.now(UTC))

    def with_replies(self, values: dict[str, Any]) -> "SimulationContext":
        """Return a copy with ``values`` merged into ``replies``."""
        replies = copy.deepcopy(self.replies)
        replies.update(copy.deepcopy(values))
        return SimulationContext(replies=replies, api_responses=copy.deepcopy(self.api_responses), now=self.now)

    def with_api_response(self, name: str, payload: Any) -> "SimulationContext":
        """Return a copy with ``api_responses[name]`` set to ``payload``."""
        responses = copy.deepcopy(self.api_responses)
        responses[name] = copy.deepcopy(payload)
        return SimulationContext(replies=copy.deepcopy(self.replies), api_responses=responses, now=self.now)

    def copy(self) -> "SimulationContext":
        """Deep copy of the context."""
        return SimulationContext(
            replies=copy.deepcopy(self.replies),
            api_responses=copy.deepcopy(self.api_responses),
            now=self.now,
        )

    def as_dict(self) -> dict[str, Any]:
        """Context in the shape expressions resolve paths against."""
        return {"replies": self.replies, "api_responses": self.api_responses, "now": self.now}

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly form of the context."""
        return {
            "replies": copy.deepcopy(self.replies),
            "api_responses": copy.deepcopy(self.api_responses),
            "now": self.now.isoformat(),
        }


@dataclass(frozen=True)
class Snapshot:
    """Saved frame stack and context taken before an interactive advance."""

    stack: tuple[ExecutionFrame, ...]
    context: SimulationContext

    @classmethod
    def capture(cls, stack: list[ExecutionFrame], context: SimulationContext) -> "Snapshot":
        return cls(stack=tuple(frame.copy() for frame in stack), context=context.copy())

    def restore_stack(self) -> list[ExecutionFrame]:
        """Fresh frames for the interpreter to own; the snapshot stays untouched."""
        return [frame.copy() for frame in self.stack]

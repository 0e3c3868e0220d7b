"""Workflow node models for the simulator.

A workflow is an ordered list of nodes. Decision and loop nodes own nested
node lists, so the whole document is a tree.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from ..errors import SimulatorError

DEFAULT_LOCALE = "en-US"

FIELD_TYPES = ("text", "numeric", "date", "multiple_choice", "multiple_select")


class WorkflowNotFoundError(SimulatorError):
    """Raised when a workflow document cannot be found."""

    code = "NOT_FOUND"


class WorkflowValidationError(SimulatorError):
    """Raised when a workflow document is malformed."""

    code = "INVALID_WORKFLOW"


@dataclass
class FieldAttributes:
    """Attributes of an input field; options, label and bounds are expressions."""

    optional: bool = False
    options: Any = None
    label_expression: Any = None
    min: Any = None
    max: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FieldAttributes":
        data = dict(data or {})
        return cls(
            optional=bool(data.pop("optional", False)),
            options=data.pop("options", None),
            label_expression=data.pop("label_expression", None),
            min=data.pop("min", None),
            max=data.pop("max", None),
            extra=data,
        )

    def to_dict(self) -> dict[str, Any]:
        result = dict(self.extra)
        if self.optional:
            result["optional"] = True
        for key in ("options", "label_expression", "min", "max"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


@dataclass
class Field:
    """An input field of a user interaction step."""

    name: str
    type: str = "text"
    attributes: FieldAttributes = field(default_factory=FieldAttributes)

    @property
    def required(self) -> bool:
        return not self.attributes.optional

    @property
    def label(self) -> str:
        """Display label derived from the field name."""
        return self.name.replace("_", " ")

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type, "attributes": self.attributes.to_dict()}


@dataclass
class WorkflowNode:
    """Base class for all workflow nodes."""

    id: str
    type: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type}


@dataclass
class UserInteraction(WorkflowNode):
    """Halts the simulation until the caller supplies field values."""

    type: str = "user_interaction"
    prompt: Any = None
    fields: list[Field] = field(default_factory=list)
    ended: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "prompt": self.prompt,
            "fields": [f.to_dict() for f in self.fields],
            "ended": self.ended,
        }


@dataclass
class ApiCall(WorkflowNode):
    """Halts the simulation until the caller supplies a mock response payload."""

    type: str = "api_call"
    api_name: str = ""
    response_var: str = ""
    ended: bool = False

    @property
    def variable_name(self) -> str:
        """Normalized name under which the response is stored in ``api_responses``."""
        raw_name = self.response_var or self.api_name or "unknown_api"
        return re.sub(r"\s+", "_", raw_name).lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "api_name": self.api_name,
            "response_var": self.response_var,
            "ended": self.ended,
        }


@dataclass
class Decision(WorkflowNode):
    """Routes into ``if_block`` or ``else_block`` depending on its expression."""

    type: str = "decision"
    expression: Any = None
    if_block: list[WorkflowNode] = field(default_factory=list)
    else_block: list[WorkflowNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "expression": self.expression,
            "if_block": [n.to_dict() for n in self.if_block],
            "else_block": [n.to_dict() for n in self.else_block],
        }


@dataclass
class WhileLoop(WorkflowNode):
    """Repeats ``actions`` while its expression holds; checked before each pass."""

    type: str = "while_loop"
    expression: Any = None
    actions: list[WorkflowNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "expression": self.expression,
            "actions": [n.to_dict() for n in self.actions],
        }


@dataclass
class DoWhile(WhileLoop):
    """Runs ``actions`` once, then repeats while its expression holds."""

    type: str = "do_while"


@dataclass
class UnknownNode(WorkflowNode):
    """Node whose type the simulator does not recognize; kept for run-time reporting."""

    definition: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {**self.definition, **super().to_dict()}


def parse_workflow(document: Any) -> list[WorkflowNode]:
    """Convert a raw workflow document (list of dicts) into nodes.

    Nodes without an ``id`` get one derived from their position, e.g.
    ``step_2.if_block.0``.

    Raises:
        WorkflowValidationError: if the document is not a list of mappings or
            node ids are duplicated
    """
    if isinstance(document, dict) and "workflow" in document:
        document = document["workflow"]
    if not isinstance(document, list):
        raise WorkflowValidationError("Workflow must be a list of nodes")

    nodes = _parse_nodes(document, "step")
    seen: set[str] = set()
    for node in iter_nodes(nodes):
        if node.id in seen:
            raise WorkflowValidationError(f"Duplicate node id: {node.id}")
        seen.add(node.id)
    return nodes


def _parse_nodes(items: list[Any], prefix: str) -> list[WorkflowNode]:
    nodes = []
    for i, item in enumerate(items):
        default_id = f"{prefix}_{i}" if prefix == "step" else f"{prefix}.{i}"
        nodes.append(_parse_node(item, default_id))
    return nodes


def _parse_node(item: Any, default_id: str) -> WorkflowNode:
    if isinstance(item, WorkflowNode):
        return item
    if not isinstance(item, dict):
        raise WorkflowValidationError(f"Workflow node at {default_id} must be a mapping")

    node_id = str(item.get("id") or default_id)
    node_type = item.get("type", "unknown")

    def block(key: str) -> list[WorkflowNode]:
        children = item.get(key) or []
        if not isinstance(children, list):
            raise WorkflowValidationError(f"'{key}' of node {node_id} must be a list")
        return _parse_nodes(children, f"{node_id}.{key}")

    if node_type == "user_interaction":
        fields = []
        for raw_field in item.get("fields") or []:
            if not isinstance(raw_field, dict) or not raw_field.get("name"):
                raise WorkflowValidationError(f"Field of node {node_id} must be a mapping with a name")
            field_type = raw_field.get("type", "text")
            if field_type not in FIELD_TYPES:
                raise WorkflowValidationError(f"Unsupported field type '{field_type}' in node {node_id}")
            fields.append(
                Field(
                    name=str(raw_field["name"]),
                    type=field_type,
                    attributes=FieldAttributes.from_dict(raw_field.get("attributes")),
                )
            )
        return UserInteraction(id=node_id, prompt=item.get("prompt"), fields=fields, ended=bool(item.get("ended", False)))

    if node_type == "api_call":
        return ApiCall(
            id=node_id,
            api_name=item.get("api_name") or "",
            response_var=item.get("response_var") or item.get("response") or "",
            ended=bool(item.get("ended", False)),
        )

    if node_type == "decision":
        return Decision(
            id=node_id,
            expression=item.get("expression"),
            if_block=block("if_block"),
            else_block=block("else_block"),
        )

    if node_type == "while_loop":
        return WhileLoop(id=node_id, expression=item.get("expression"), actions=block("actions"))

    if node_type == "do_while":
        return DoWhile(id=node_id, expression=item.get("expression"), actions=block("actions"))

    definition = {k: v for k, v in item.items() if k not in ("id", "type")}
    return UnknownNode(id=node_id, type=str(node_type), definition=definition)


def child_blocks(node: WorkflowNode) -> list[list[WorkflowNode]]:
    """Nested node lists owned by ``node``."""
    if isinstance(node, Decision):
        return [node.if_block, node.else_block]
    if isinstance(node, WhileLoop):
        return [node.actions]
    return []


def iter_nodes(nodes: list[WorkflowNode]):
    """Yield every node of the tree in document order."""
    for node in nodes:
        yield node
        for block in child_blocks(node):
            yield from iter_nodes(block)


def find_node(nodes: list[WorkflowNode], node_id: str) -> WorkflowNode | None:
    """Find a node anywhere in the tree by id."""
    return next((node for node in iter_nodes(nodes) if node.id == node_id), None)


def localized_text(value: Any, locale: str = DEFAULT_LOCALE) -> Any:
    """Resolve the locale entry of a localized expression.

    A map yields its locale entry when that entry is non-empty; anything else
    (including a map without the entry) is returned unchanged.
    """
    if isinstance(value, dict) and value.get(locale):
        return value[locale]
    return value


def prompt_text(value: Any, locale: str = DEFAULT_LOCALE) -> str:
    """Resolve a localized prompt to plain text.

    Strings pass through, lists resolve their first element and maps resolve
    their locale entry, falling back to the JSON encoding of the map.
    """
    if not value:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return prompt_text(value[0], locale)
    if isinstance(value, dict):
        if value.get(locale):
            return prompt_text(value[locale], locale)
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def find_expression_usages(nodes: list[WorkflowNode], variable_name: str) -> list[str]:
    """Collect option and label expressions that reference ``api_responses.<variable_name>``.

    Results are unique and in document order.
    """
    needle = f"api_responses.{variable_name}"
    expressions: list[str] = []

    for node in iter_nodes(nodes):
        if not isinstance(node, UserInteraction):
            continue
        for f in node.fields:
            for expression in (f.attributes.options, f.attributes.label_expression):
                if isinstance(expression, str) and needle in expression and expression not in expressions:
                    expressions.append(expression)

    return expressions

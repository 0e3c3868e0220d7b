"""Field rendering helpers for user interaction steps.

Evaluates option lists, labels and date bounds against the current context
and recovers previously stored answers after backward navigation.
"""

import copy
import json
import logging
from typing import Any

from .context import SimulationContext
from .expressions import evaluate
from .models import DEFAULT_LOCALE, Field, UserInteraction, prompt_text
from .values import display_string, to_string
from .variables import interpolate

logger = logging.getLogger(__name__)

CHOICE_TYPES = ("multiple_choice", "multiple_select")


def normalize_options(items: list[Any]) -> list[Any]:
    """Turn bare strings and numbers into ``{"label", "value"}`` options."""
    options = []
    for item in items:
        if isinstance(item, str) or (isinstance(item, int | float) and not isinstance(item, bool)):
            text = to_string(item)
            options.append({"label": text, "value": text})
        else:
            options.append(item)
    return options


def evaluate_field_options(field: Field, context: dict[str, Any]) -> list[Any]:
    """Evaluate a field's ``options`` and apply its ``label_expression``.

    An options string that does not evaluate to a list but looks like a JSON
    array is parsed as one.
    """
    expression = field.attributes.options
    if not expression:
        return []

    options: list[Any] = []
    result = evaluate(expression, context)
    if isinstance(result, list):
        options = normalize_options(result)
    elif isinstance(expression, str) and expression.startswith("["):
        try:
            parsed = json.loads(expression)
        except json.JSONDecodeError as e:
            logger.debug(f"Options of field {field.name} are not a JSON array: {e}")
            parsed = None
        if isinstance(parsed, list):
            options = normalize_options(parsed)

    label_expression = field.attributes.label_expression
    if isinstance(label_expression, str) and label_expression.startswith("$.") and options:
        label_key = label_expression[2:]
        options = [
            {**option, "label": option[label_key]} if isinstance(option, dict) and label_key in option else option
            for option in options
        ]

    return options


def field_bounds(field: Field, context: dict[str, Any]) -> dict[str, Any]:
    """Evaluate ``min`` and ``max`` of a date field."""
    if field.type != "date":
        return {}
    attributes = field.attributes
    return {
        "min": evaluate(attributes.min, context) if attributes.min else None,
        "max": evaluate(attributes.max, context) if attributes.max else None,
    }


def describe_fields(step: UserInteraction, context: dict[str, Any]) -> list[dict[str, Any]]:
    """Render-ready description of every field of a step."""
    described = []
    for field in step.fields:
        entry: dict[str, Any] = {
            "name": field.name,
            "label": field.label,
            "type": field.type,
            "required": field.required,
        }
        if field.type in CHOICE_TYPES or field.attributes.options:
            entry["options"] = evaluate_field_options(field, context)
        entry.update(field_bounds(field, context))
        described.append(entry)
    return described


def restore_inputs(step: UserInteraction, context: SimulationContext) -> dict[str, Any]:
    """Previously stored replies for the fields of ``step``."""
    return {
        field.name: copy.deepcopy(context.replies[field.name])
        for field in step.fields
        if field.name in context.replies
    }


def render_prompt(step: UserInteraction, context: dict[str, Any], locale: str = DEFAULT_LOCALE) -> str:
    """Localized prompt of ``step`` with its placeholders expanded."""
    rendered = interpolate(prompt_text(step.prompt, locale), context)
    if isinstance(rendered, str):
        return rendered
    return display_string(rendered)

"""Variable resolution and string interpolation for workflow text."""

from typing import Any

from .values import UNDEFINED, display_string, is_nullish, parse_int_prefix, parse_number


def resolve_variable(path: str, context: Any) -> Any:
    """Resolve a dotted path such as ``api_responses.search.0.name``.

    Returns None as soon as an intermediate value is null or missing, and
    ``UNDEFINED`` when the final key does not exist.
    """
    current = context

    for part in path.split("."):
        if is_nullish(current):
            return None
        current = _get_member(current, part)

    return current


def _get_member(value: Any, part: str) -> Any:
    """Look up one path segment on a list, string or map."""
    if isinstance(value, list | str):
        if part == "length":
            return len(value)
        if isinstance(value, str):
            if part.isdigit() and str(int(part)) == part and int(part) < len(value):
                return value[int(part)]
            return UNDEFINED
        if parse_number(part) is None and part.strip():
            return UNDEFINED
        index = parse_int_prefix(part)
        if index is None or index < 0 or index >= len(value):
            return UNDEFINED
        return value[index]

    if isinstance(value, dict):
        return value.get(part, UNDEFINED)

    return UNDEFINED


def find_placeholders(text: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` spans of balanced ``${...}`` regions in ``text``.

    Braces inside quoted strings do not count towards nesting. An opening
    ``${`` without a matching brace is not a placeholder.
    """
    spans = []
    i = 0

    while True:
        start = text.find("${", i)
        if start < 0:
            break

        depth = 0
        quote = None
        end = -1
        for j in range(start + 1, len(text)):
            char = text[j]
            if char in ("'", '"') and text[j - 1] != "\\":
                if quote == char:
                    quote = None
                elif quote is None:
                    quote = char
            if quote:
                continue
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    end = j + 1
                    break

        if end < 0:
            break
        spans.append((start, end))
        i = end

    return spans


def interpolate(text: str, context: dict[str, Any]) -> Any:
    """Expand ``${...}`` placeholders in ``text``.

    Text that is exactly one placeholder returns the raw evaluated value so
    booleans, numbers and lists keep their type; otherwise each placeholder is
    replaced by its string form (null renders empty).
    """
    # Import here to avoid circular import
    from .expressions import evaluate

    if not isinstance(text, str):
        return text

    spans = find_placeholders(text)
    if not spans:
        return text

    if len(spans) == 1:
        start, end = spans[0]
        if text[start:end] == text:
            return evaluate(text[start + 2 : end - 1], context)

    parts = []
    cursor = 0
    for start, end in spans:
        parts.append(text[cursor:start])
        parts.append(display_string(evaluate(text[start + 2 : end - 1], context)))
        cursor = end
    parts.append(text[cursor:])
    return "".join(parts)

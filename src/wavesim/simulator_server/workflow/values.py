"""Value model for the simulator expression language.

Values are plain Python objects: ``None``, ``bool``, ``int``/``float``, ``str``,
``list`` and ``dict`` (insertion ordered). Workflows are authored against a
JavaScript runtime, so every operator coerces its operands with the same loose
rules that runtime applies. The helpers below are the only place those rules
live; the evaluator and the interpreter never rely on Python's own coercions.
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any


class _Undefined:
    """Result of resolving a path whose final key does not exist."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "UNDEFINED"

    def __bool__(self):
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


UNDEFINED = _Undefined()

_DECIMAL_PATTERN = re.compile(r"^[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|Infinity)$")
_RADIX_PATTERN = re.compile(r"^0([xXoObB])([0-9a-fA-F]+)$")
_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
_LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")
_RADIX_BASES = {"x": 16, "o": 8, "b": 2}


def is_nullish(value: Any) -> bool:
    """True for null and for a missing value."""
    return value is None or value is UNDEFINED


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def parse_number(text: str) -> int | float | None:
    """Parse ``text`` the way ``Number(text)`` does, returning None for NaN.

    Empty text is not a number here; callers that need ``Number("") == 0``
    handle that case themselves.
    """
    text = text.strip()
    if not text:
        return None

    radix = _RADIX_PATTERN.match(text)
    if radix:
        try:
            return int(radix.group(2), _RADIX_BASES[radix.group(1).lower()])
        except ValueError:
            return None

    if not _DECIMAL_PATTERN.match(text):
        return None
    if text.endswith("Infinity"):
        return float("-inf") if text.startswith("-") else float("inf")
    if _INTEGER_PATTERN.match(text):
        return int(text)
    return float(text)


def parse_int_prefix(text: str) -> int | None:
    """Leading integer of ``text`` (``parseInt`` semantics), or None."""
    match = _LEADING_INT_PATTERN.match(text)
    return int(match.group(1)) if match else None


def to_boolean(value: Any) -> bool:
    """Convert a value to boolean using JavaScript truthiness."""
    if is_nullish(value):
        return False
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return len(value) > 0
    return True


def to_primitive(value: Any) -> Any:
    """Reduce lists and maps to the primitive JavaScript would compare."""
    if isinstance(value, list | dict):
        return to_string(value)
    return value


def to_number(value: Any) -> int | float:
    """Convert a value to a number using JavaScript rules (NaN on failure)."""
    if value is UNDEFINED:
        return float("nan")
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if _is_number(value):
        return value
    if isinstance(value, str):
        if not value.strip():
            return 0
        parsed = parse_number(value)
        return float("nan") if parsed is None else parsed
    if isinstance(value, datetime):
        return value.timestamp() * 1000
    if isinstance(value, list | dict):
        return to_number(to_primitive(value))
    return float("nan")


def format_number(value: int | float) -> str:
    """Render a number the way JavaScript's ``String(n)`` does."""
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    if 1e-6 <= abs(value) < 1e21:
        return format(Decimal(repr(value)), "f")
    return re.sub(r"e([+-])0*(\d)", r"e\1\2", repr(value))


def to_string(value: Any) -> str:
    """Convert a value to its JavaScript ``String(value)`` form."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if _is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join(display_string(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    if isinstance(value, datetime | date):
        return value.isoformat()
    return str(value)


def display_string(value: Any) -> str:
    """String form used for concatenation and interpolation (null renders empty)."""
    if is_nullish(value):
        return ""
    return to_string(value)


def loose_equals(left: Any, right: Any) -> bool:
    """Implement JavaScript ``==``."""
    if is_nullish(left) or is_nullish(right):
        return is_nullish(left) and is_nullish(right)

    if isinstance(left, list | dict) and isinstance(right, list | dict):
        return left is right

    if isinstance(left, bool):
        return loose_equals(1 if left else 0, right)
    if isinstance(right, bool):
        return loose_equals(left, 1 if right else 0)

    if _is_number(left) and _is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if _is_number(left) and isinstance(right, str):
        return left == to_number(right)
    if isinstance(left, str) and _is_number(right):
        return to_number(left) == right

    if isinstance(left, list | dict):
        return loose_equals(to_primitive(left), right)
    if isinstance(right, list | dict):
        return loose_equals(left, to_primitive(right))

    return left == right


def compare(operator: str, left: Any, right: Any) -> bool:
    """Implement JavaScript relational operators (``<``, ``>``, ``<=``, ``>=``)."""
    left = to_primitive(left)
    right = to_primitive(right)

    if isinstance(left, str) and isinstance(right, str):
        a, b = left, right
    else:
        a, b = to_number(left), to_number(right)
        if math.isnan(a) or math.isnan(b):
            return False

    if operator == "<":
        return a < b
    if operator == ">":
        return a > b
    if operator == "<=":
        return a <= b
    if operator == ">=":
        return a >= b
    raise ValueError(f"Unknown relational operator: {operator}")


def normalize(value: Any) -> Any:
    """Replace a missing value by null at an API boundary."""
    return None if value is UNDEFINED else value


def is_structured_data(value: Any) -> bool:
    """True when ``value`` is well-formed JSON-compatible data."""
    if value is None or isinstance(value, bool | str):
        return True
    if _is_number(value):
        return not (isinstance(value, float) and (math.isnan(value) or math.isinf(value)))
    if isinstance(value, list):
        return all(is_structured_data(item) for item in value)
    if isinstance(value, dict):
        return all(isinstance(key, str) and is_structured_data(item) for key, item in value.items())
    return False

"""JSON parameter conversion for FastMCP tools.

MCP clients frequently send structured tool arguments (workflow documents,
reply maps, expression contexts) as JSON text. The ``json_convert`` decorator
parses such arguments according to the wrapped function's type hints before
the tool body runs.
"""

import functools
import inspect
import json
import types
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar, Union, get_args, get_origin, get_type_hints

F = TypeVar("F", bound=Callable[..., Any])

CONTAINER_TYPES = (list, dict, tuple)


class JSONParameterMiddleware:
    """Converts JSON string parameters to the container types a tool declares."""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def _accepts(self, expected_type: Any) -> tuple[type, ...]:
        """Container types accepted by an annotation (empty for scalars and Any)."""
        origin = get_origin(expected_type)
        if origin in (types.UnionType, Union):
            accepted: tuple[type, ...] = ()
            for arg in get_args(expected_type):
                accepted += self._accepts(arg)
            return accepted
        target = origin or expected_type
        if target in CONTAINER_TYPES:
            return (target,)
        if isinstance(target, type) and issubclass(target, Mapping):
            return (dict,)
        if isinstance(target, type) and issubclass(target, Sequence) and not issubclass(target, str):
            return (list,)
        return ()

    def _convert_value(self, value: Any, expected_type: Any, param_name: str) -> Any:
        """Parse ``value`` when it is JSON text standing in for a container.

        Raises:
            ValueError: if the text is not JSON or holds the wrong container type
        """
        if not isinstance(value, str):
            return value

        accepted = self._accepts(expected_type)
        if not accepted:
            return value

        text = value.strip()
        if not text.startswith(("[", "{")):
            if str in get_args(expected_type) or expected_type is str:
                return value
            raise ValueError(f"Parameter '{param_name}' expected {self._names(accepted)} but got string")

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in parameter '{param_name}': {e}") from e

        if tuple in accepted and isinstance(parsed, list):
            parsed = tuple(parsed)
        if not isinstance(parsed, accepted):
            raise ValueError(
                f"Parameter '{param_name}' must be a {self._names(accepted)}, got {type(parsed).__name__} from JSON"
            )

        if self.debug:
            print(f"[JSONMiddleware] Converted {param_name} from JSON string to {type(parsed).__name__}")  # noqa: T201
        return parsed

    @staticmethod
    def _names(accepted: tuple[type, ...]) -> str:
        return " or ".join(t.__name__ for t in accepted)

    def _convert_arguments(self, sig: inspect.Signature, hints: dict[str, Any], args, kwargs) -> dict[str, Any]:
        bound = sig.bind(*args, **kwargs)
        bound.apply_defaults()
        return {
            name: self._convert_value(value, hints[name], name) if name in hints else value
            for name, value in bound.arguments.items()
        }

    def convert(self, func: F) -> F:
        """Wrap ``func`` so its JSON string parameters are parsed first.

        Invalid parameters produce ``{"error": {"code": "INVALID_INPUT", ...}}``
        instead of calling the tool.
        """
        sig = inspect.signature(func)
        hints = get_type_hints(func)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    converted = self._convert_arguments(sig, hints, args, kwargs)
                except ValueError as e:
                    return {"error": {"code": "INVALID_INPUT", "message": str(e)}}
                return await func(**converted)

            return async_wrapper  # type: ignore

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                converted = self._convert_arguments(sig, hints, args, kwargs)
            except ValueError as e:
                return {"error": {"code": "INVALID_INPUT", "message": str(e)}}
            return func(**converted)

        return wrapper  # type: ignore


# Global middleware instance for convenience
_default_middleware = JSONParameterMiddleware()


def json_convert(func: F) -> F:
    """Apply JSON parameter conversion to a tool function.

    Usage:
        @mcp.tool
        @json_convert
        def my_tool(values: dict[str, Any] | str) -> dict:
            return {"count": len(values)}
    """
    return _default_middleware.convert(func)

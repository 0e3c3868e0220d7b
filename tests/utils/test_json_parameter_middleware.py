"""Tests for JSON Parameter Middleware."""

import asyncio
from typing import Any

import pytest

from wavesim.utils.json_parameter_middleware import JSONParameterMiddleware, json_convert


class TestJSONParameterMiddleware:
    """Test JSONParameterMiddleware class functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.middleware = JSONParameterMiddleware()

    def test_init_default(self):
        """Test middleware initialization with default parameters."""
        assert JSONParameterMiddleware().debug is False
        assert JSONParameterMiddleware(debug=True).debug is True

    def test_accepted_containers(self):
        """Test which container types an annotation accepts."""
        assert self.middleware._accepts(list[dict[str, Any]]) == (list,)
        assert self.middleware._accepts(dict[str, Any] | None) == (dict,)
        assert self.middleware._accepts(list[Any] | dict[str, Any] | str) == (list, dict)
        assert self.middleware._accepts(str) == ()
        assert self.middleware._accepts(Any) == ()

    def test_convert_json_text(self):
        """Test parsing JSON text into the declared container."""
        assert self.middleware._convert_value('{"a": 1}', dict[str, Any], "values") == {"a": 1}
        assert self.middleware._convert_value(" [1, 2] ", list[int], "items") == [1, 2]

    def test_passthrough(self):
        """Test values that are left alone."""
        values = {"a": 1}
        assert self.middleware._convert_value(values, dict[str, Any], "values") is values
        assert self.middleware._convert_value("greeting", list[Any] | str, "workflow") == "greeting"
        assert self.middleware._convert_value("{not json", Any, "payload") == "{not json"

    def test_rejections(self):
        """Test text that cannot become the declared container."""
        with pytest.raises(ValueError, match="expected dict"):
            self.middleware._convert_value("plain", dict[str, Any] | None, "values")
        with pytest.raises(ValueError, match="Invalid JSON"):
            self.middleware._convert_value("{oops", dict[str, Any], "values")
        with pytest.raises(ValueError, match="must be a dict"):
            self.middleware._convert_value("[1]", dict[str, Any], "values")


class TestJsonConvertDecorator:
    """Test the json_convert decorator."""

    def test_sync_function(self):
        """Test conversion before a sync tool runs."""

        @json_convert
        def count(values: dict[str, Any] | None = None, label: str = "n") -> dict:
            return {label: len(values or {})}

        assert count('{"a": 1, "b": 2}') == {"n": 2}
        assert count(values={"a": 1}, label="k") == {"k": 1}
        assert count.__name__ == "count"

    def test_invalid_input_error(self):
        """Test that bad parameters produce an error response."""

        @json_convert
        def count(values: dict[str, Any]) -> dict:
            return {"n": len(values)}

        result = count("[1, 2]")

        assert result["error"]["code"] == "INVALID_INPUT"

    def test_async_function(self):
        """Test conversion before an async tool runs."""

        @json_convert
        async def total(items: list[int]) -> int:
            return sum(items)

        assert asyncio.run(total("[1, 2, 3]")) == 6

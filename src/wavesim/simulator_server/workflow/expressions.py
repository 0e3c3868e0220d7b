"""Expression evaluation engine for the workflow simulator.

Evaluates the template-expression dialect used by workflow conditions, field
options and prompt placeholders. Supports logical and comparison operators,
string concatenation, object literals, ``?then(a, b)``, the ``??`` existence
test and ``?stage`` builtin chains (``string``, ``size``, ``has_content``,
``join``, ``split``, ``map``). Operands are coerced with JavaScript rules, see
``values``.
"""

import logging
from enum import Enum
from functools import lru_cache
from typing import Any

from ..errors import SimulatorError
from .values import (
    UNDEFINED,
    compare,
    display_string,
    is_nullish,
    loose_equals,
    normalize,
    parse_number,
    to_boolean,
    to_string,
)
from .variables import resolve_variable

logger = logging.getLogger(__name__)


class ExpressionError(SimulatorError):
    """Raised when expression parsing or evaluation fails."""

    code = "EXPRESSION_ERROR"


class TokenType(Enum):
    """Token types for expression parsing."""

    WORD = "WORD"
    STRING = "STRING"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACE = "LBRACE"
    RBRACE = "RBRACE"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    DOLLAR_BRACE = "DOLLAR_BRACE"
    COMMA = "COMMA"
    COLON = "COLON"
    OR = "OR"
    AND = "AND"
    EQ = "EQ"
    NE = "NE"
    GE = "GE"
    LE = "LE"
    GT = "GT"
    LT = "LT"
    PLUS = "PLUS"
    NOT = "NOT"
    QUESTION = "QUESTION"
    EXISTS = "EXISTS"
    ARROW = "ARROW"
    OTHER = "OTHER"
    EOF = "EOF"


OPENERS = {TokenType.LPAREN, TokenType.LBRACE, TokenType.LBRACKET, TokenType.DOLLAR_BRACE}
CLOSERS = {TokenType.RPAREN, TokenType.RBRACE, TokenType.RBRACKET}

# Two-character operators, checked before their one-character prefixes
DOUBLE_OPERATORS = {
    "||": TokenType.OR,
    "&&": TokenType.AND,
    "==": TokenType.EQ,
    "!=": TokenType.NE,
    ">=": TokenType.GE,
    "<=": TokenType.LE,
    "??": TokenType.EXISTS,
    "->": TokenType.ARROW,
    "${": TokenType.DOLLAR_BRACE,
}

SINGLE_OPERATORS = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    ">": TokenType.GT,
    "<": TokenType.LT,
    "+": TokenType.PLUS,
    "!": TokenType.NOT,
    "?": TokenType.QUESTION,
    "|": TokenType.OTHER,
    "&": TokenType.OTHER,
    "=": TokenType.OTHER,
}

WORD_BREAKS = set(SINGLE_OPERATORS) | {"'", '"'}

RELATIONAL_OPERATORS = [
    (TokenType.GE, ">="),
    (TokenType.LE, "<="),
    (TokenType.GT, ">"),
    (TokenType.LT, "<"),
]


class Token:
    """A token in an expression."""

    def __init__(self, type_: TokenType, value: str, position: int = 0, end: int | None = None):
        self.type = type_
        self.value = value
        self.position = position
        self.end = position + len(value) if end is None else end

    def __repr__(self):
        return f"Token({self.type}, {self.value!r})"


class ExpressionLexer:
    """Tokenizes expression text.

    Quoted strings become a single STRING token holding the raw inner text, so
    quote characters never reach the parser. Anything that is not an operator,
    a bracket or whitespace is collected into WORD tokens (paths, numbers,
    keywords).
    """

    def __init__(self, text: str):
        self.text = text
        self.position = 0
        self.current_char = self.text[0] if text else None

    def advance(self, count: int = 1):
        """Move forward ``count`` characters."""
        self.position += count
        if self.position >= len(self.text):
            self.current_char = None
        else:
            self.current_char = self.text[self.position]

    def peek_next(self, offset: int = 1) -> str | None:
        """Peek at a character ahead of the current position."""
        peek_pos = self.position + offset
        if peek_pos >= len(self.text):
            return None
        return self.text[peek_pos]

    def skip_whitespace(self):
        """Skip whitespace characters."""
        while self.current_char is not None and self.current_char.isspace():
            self.advance()

    def read_string(self, quote_char: str) -> Token:
        """Read a quoted string; a backslash before a quote keeps it literal."""
        start = self.position
        self.advance()  # opening quote

        while self.current_char is not None:
            if self.current_char == quote_char and self.text[self.position - 1] != "\\":
                self.advance()  # closing quote
                return Token(TokenType.STRING, self.text[start + 1 : self.position - 1], start, self.position)
            self.advance()

        raise ExpressionError(f"Unterminated string starting at position {start}")

    def read_word(self) -> Token:
        """Read a run of characters up to the next operator, bracket or space."""
        start = self.position
        while self.current_char is not None:
            char = self.current_char
            if char.isspace() or char in WORD_BREAKS:
                break
            pair = char + (self.peek_next() or "")
            if pair in ("->", "${"):
                break
            self.advance()
        return Token(TokenType.WORD, self.text[start : self.position], start)

    def tokenize(self) -> list[Token]:
        """Tokenize the entire expression."""
        tokens = []

        while self.current_char is not None:
            self.skip_whitespace()
            if self.current_char is None:
                break

            start = self.position
            char = self.current_char
            pair = char + (self.peek_next() or "")

            if char in ("'", '"'):
                tokens.append(self.read_string(char))
            elif pair in DOUBLE_OPERATORS:
                tokens.append(Token(DOUBLE_OPERATORS[pair], pair, start))
                self.advance(2)
            elif char in SINGLE_OPERATORS:
                tokens.append(Token(SINGLE_OPERATORS[char], char, start))
                self.advance()
            else:
                tokens.append(self.read_word())

        tokens.append(Token(TokenType.EOF, "", len(self.text)))
        return tokens


class ExpressionParser:
    """Parses a token list into an expression AST.

    Every level works on a half-open token span ``[lo, hi)``. A binary level
    splits its span at operators found at nesting depth 0 and hands the parts
    down to the next level, so precedence is decided by which level sees an
    operator first rather than by operator binding strength.
    """

    def __init__(self, tokens: list[Token], text: str):
        self.tokens = tokens
        self.text = text
        self.end = len(tokens) - 1  # exclude EOF

    def parse(self) -> dict[str, Any]:
        """Parse the full token list."""
        return self.parse_expression(0, self.end)

    # Span helpers

    def _raw(self, lo: int, hi: int) -> str:
        """Source text covered by the tokens in ``[lo, hi)``."""
        if lo >= hi:
            return ""
        return self.text[self.tokens[lo].position : self.tokens[hi - 1].end]

    def _top_level(self, lo: int, hi: int):
        """Yield ``(index, token)`` for tokens at nesting depth 0."""
        depth = 0
        for i in range(lo, hi):
            token = self.tokens[i]
            if token.type in OPENERS:
                if depth == 0:
                    yield i, token
                depth += 1
            elif token.type in CLOSERS:
                depth -= 1
                if depth == 0:
                    yield i, token
            elif depth == 0:
                yield i, token

    def _closing(self, lo: int, hi: int) -> int:
        """Index of the token closing the group opened at ``lo``, or -1."""
        depth = 0
        for i in range(lo, hi):
            token_type = self.tokens[i].type
            if token_type in OPENERS:
                depth += 1
            elif token_type in CLOSERS:
                depth -= 1
                if depth == 0:
                    return i
        return -1

    def _is_group(self, lo: int, hi: int, opener_types: set[TokenType]) -> bool:
        """True when the span is exactly one bracketed group of the given kind."""
        return hi - lo >= 2 and self.tokens[lo].type in opener_types and self._closing(lo, hi) == hi - 1

    def _split(self, lo: int, hi: int, delimiter: TokenType) -> list[tuple[int, int]]:
        """Split a span at top-level delimiter tokens."""
        parts = []
        start = lo
        for i, token in self._top_level(lo, hi):
            if token.type == delimiter:
                parts.append((start, i))
                start = i + 1
        parts.append((start, hi))
        return parts

    # Precedence levels

    def parse_expression(self, lo: int, hi: int) -> dict[str, Any]:
        """Full expression entry point, optionally wrapped in ``${...}``."""
        if lo >= hi:
            return {"type": "literal", "value": None}
        if self._is_group(lo, hi, {TokenType.DOLLAR_BRACE}):
            return self.parse_logical(lo + 1, hi - 1)
        return self.parse_logical(lo, hi)

    def parse_logical(self, lo: int, hi: int) -> dict[str, Any]:
        """Parse ``||`` (all operands evaluated)."""
        parts = self._split(lo, hi, TokenType.OR)
        if len(parts) > 1:
            return {"type": "logical", "operator": "||", "operands": [self.parse_and(a, b) for a, b in parts]}
        return self.parse_and(lo, hi)

    def parse_and(self, lo: int, hi: int) -> dict[str, Any]:
        """Parse ``&&`` (all operands evaluated)."""
        parts = self._split(lo, hi, TokenType.AND)
        if len(parts) > 1:
            return {"type": "logical", "operator": "&&", "operands": [self.parse_then(a, b) for a, b in parts]}
        return self.parse_then(lo, hi)

    def parse_then(self, lo: int, hi: int) -> dict[str, Any]:
        """Parse a trailing ``condition?then(a, b)``."""
        markers = [i for i, _ in self._top_level(lo, hi) if self._is_then_marker(i, hi)]
        if markers and markers[-1] > lo:
            q = markers[-1]
            if self._closing(q + 2, hi) == hi - 1:
                args = self._split(q + 3, hi - 1, TokenType.COMMA)
                if len(args) == 2:
                    return {
                        "type": "then",
                        "condition": self.parse_logical(lo, q),
                        "when_true": self.parse_then(*args[0]),
                        "when_false": self.parse_then(*args[1]),
                    }
        return self.parse_equality(lo, hi)

    def _is_then_marker(self, i: int, hi: int) -> bool:
        """True when tokens at ``i`` spell ``?then(`` with nothing in between."""
        if i + 2 >= hi or self.tokens[i].type != TokenType.QUESTION:
            return False
        word = self.tokens[i + 1]
        paren = self.tokens[i + 2]
        return (
            word.type == TokenType.WORD
            and word.value == "then"
            and word.position == self.tokens[i].end
            and paren.type == TokenType.LPAREN
            and paren.position == word.end
        )

    def parse_equality(self, lo: int, hi: int) -> dict[str, Any]:
        """Parse ``==`` then ``!=``; only the first two operands take part."""
        for token_type, operator in ((TokenType.EQ, "=="), (TokenType.NE, "!=")):
            parts = self._split(lo, hi, token_type)
            if len(parts) > 1:
                return {
                    "type": "binary",
                    "operator": operator,
                    "left": self.parse_relational(*parts[0]),
                    "right": self.parse_relational(*parts[1]),
                }
        return self.parse_relational(lo, hi)

    def parse_relational(self, lo: int, hi: int) -> dict[str, Any]:
        """Parse ``>=``, ``<=``, ``>``, ``<`` in that order."""
        for token_type, operator in RELATIONAL_OPERATORS:
            parts = self._split(lo, hi, token_type)
            if len(parts) > 1:
                return {
                    "type": "binary",
                    "operator": operator,
                    "left": self.parse_value(*parts[0]),
                    "right": self.parse_value(*parts[1]),
                }
        return self.parse_value(lo, hi)

    def parse_value(self, lo: int, hi: int) -> dict[str, Any]:
        """Parse the value level: groups, literals, concatenation, builtins and paths."""
        if lo >= hi:
            return {"type": "path", "path": ""}

        if self._is_group(lo, hi, {TokenType.LPAREN, TokenType.DOLLAR_BRACE}):
            return self.parse_logical(lo + 1, hi - 1)

        if self._is_group(lo, hi, {TokenType.LBRACE}):
            return self.parse_object(lo + 1, hi - 1)

        parts = self._split(lo, hi, TokenType.PLUS)
        if len(parts) > 1:
            return {"type": "concat", "parts": [self.parse_value(a, b) for a, b in parts]}

        if self.tokens[lo].type == TokenType.NOT:
            return {"type": "unary", "operator": "!", "operand": self.parse_value(lo + 1, hi)}

        if self.tokens[hi - 1].type == TokenType.EXISTS:
            return {"type": "exists", "path": self._raw(lo, hi - 1)}

        if any(token.type in (TokenType.QUESTION, TokenType.EXISTS) for _, token in self._top_level(lo, hi)):
            return self.parse_builtin_chain(lo, hi)

        return self.parse_literal(self._raw(lo, hi))

    def parse_object(self, lo: int, hi: int) -> dict[str, Any]:
        """Parse the inside of ``{ key: expr, ... }``."""
        properties = []
        for start, stop in self._split(lo, hi, TokenType.COMMA):
            colon = next(
                (i for i, token in self._top_level(start, stop) if token.type == TokenType.COLON),
                None,
            )
            if colon is None:
                continue
            key = self._raw(start, colon)
            if len(key) >= 2 and key[0] in ("'", '"') and key[-1] == key[0]:
                key = key[1:-1]
            properties.append((key, self.parse_expression(colon + 1, stop)))
        return {"type": "object", "properties": properties}

    def parse_builtin_chain(self, lo: int, hi: int) -> dict[str, Any]:
        """Parse ``base?stage?stage(...)``; ``??`` separates an empty stage."""
        segments = []
        start = lo
        for i, token in self._top_level(lo, hi):
            if token.type == TokenType.QUESTION:
                segments.append((start, i))
                start = i + 1
            elif token.type == TokenType.EXISTS:
                segments.append((start, i))
                segments.append((i, i))
                start = i + 1
        segments.append((start, hi))

        base = self.parse_expression(*segments[0])
        stages = [self.parse_stage(a, b) for a, b in segments[1:]]
        return {"type": "builtin_chain", "base": base, "stages": stages}

    def parse_stage(self, lo: int, hi: int) -> dict[str, Any]:
        """Parse one pipeline stage of a builtin chain."""
        raw = self._raw(lo, hi)

        if raw in ("string", "size", "has_content"):
            return {"name": raw}

        for name in ("join", "split"):
            if raw.startswith(f"{name}(") and raw.endswith(")"):
                content = self.text[self.tokens[lo + 1].end : self.tokens[hi - 1].position]
                separator = ","
                if len(content) >= 2 and content[0] in ("'", '"') and content[-1] == content[0]:
                    separator = content[1:-1]
                return {"name": name, "separator": separator}

        if raw.startswith("map(") and raw.endswith(")"):
            arrows = [i for i, token in self._top_level(lo + 2, hi - 1) if token.type == TokenType.ARROW]
            if arrows:
                body_end = arrows[1] if len(arrows) > 1 else hi - 1
                return {
                    "name": "map",
                    "variable": self._raw(lo + 2, arrows[0]),
                    "body": self.parse_expression(arrows[0] + 1, body_end),
                }

        return {"name": "unknown", "raw": raw}

    def parse_literal(self, raw: str) -> dict[str, Any]:
        """Parse quoted strings, numbers and keywords; anything else is a path."""
        if len(raw) >= 2 and raw[0] in ("'", '"') and raw[-1] == raw[0]:
            return {"type": "literal", "value": raw[1:-1]}

        number = parse_number(raw)
        if number is not None:
            return {"type": "literal", "value": number}

        if raw == "true":
            return {"type": "literal", "value": True}
        if raw == "false":
            return {"type": "literal", "value": False}
        if raw == "null":
            return {"type": "literal", "value": None}

        return {"type": "path", "path": raw}


@lru_cache(maxsize=512)
def parse_expression(expression: str) -> dict[str, Any]:
    """Tokenize and parse an expression string into an AST."""
    tokens = ExpressionLexer(expression).tokenize()
    return ExpressionParser(tokens, expression).parse()


class ExpressionEvaluator:
    """Evaluates parsed expression ASTs against a context."""

    def evaluate(self, expression: str, context: dict[str, Any]) -> Any:
        """Evaluate an expression string against a context.

        Raises:
            ExpressionError: if the expression cannot be parsed or evaluated
        """
        if not expression.strip():
            return None

        try:
            ast = parse_expression(expression)
            return normalize(self._evaluate_node(ast, context))
        except ExpressionError:
            raise
        except Exception as e:
            raise ExpressionError(f"Failed to evaluate expression '{expression}': {str(e)}") from e

    def _evaluate_nested(self, node: dict[str, Any], context: dict[str, Any]) -> Any:
        """Evaluate a nested full expression, absorbing its failures to null."""
        try:
            return self._evaluate_node(node, context)
        except Exception as e:
            logger.warning(f"Nested expression evaluation failed: {e}")
            return None

    def _evaluate_node(self, node: dict[str, Any], context: dict[str, Any]) -> Any:
        """Evaluate a single AST node."""
        node_type = node["type"]

        if node_type == "literal":
            return node["value"]

        elif node_type == "path":
            return resolve_variable(node["path"], context)

        elif node_type == "logical":
            values = [self._evaluate_node(operand, context) for operand in node["operands"]]
            result = values[0]
            for value in values[1:]:
                if node["operator"] == "||":
                    result = result if to_boolean(result) else value
                else:
                    result = value if to_boolean(result) else result
            return result

        elif node_type == "then":
            condition = self._evaluate_node(node["condition"], context)
            branch = node["when_true"] if to_boolean(condition) else node["when_false"]
            return self._evaluate_node(branch, context)

        elif node_type == "binary":
            left = self._evaluate_node(node["left"], context)
            right = self._evaluate_node(node["right"], context)
            return self._evaluate_binary_op(node["operator"], left, right)

        elif node_type == "unary":
            return not to_boolean(self._evaluate_node(node["operand"], context))

        elif node_type == "concat":
            return "".join(display_string(self._evaluate_node(part, context)) for part in node["parts"])

        elif node_type == "object":
            return {
                key: normalize(self._evaluate_nested(value, context))
                for key, value in node["properties"]
            }

        elif node_type == "exists":
            return not is_nullish(resolve_variable(node["path"], context))

        elif node_type == "builtin_chain":
            value = self._evaluate_nested(node["base"], context)
            for stage in node["stages"]:
                value = self._apply_stage(stage, value, context)
            return value

        else:
            raise ExpressionError(f"Unknown node type: {node_type}")

    def _evaluate_binary_op(self, op: str, left: Any, right: Any) -> bool:
        """Evaluate a comparison operator."""
        if op == "==":
            return loose_equals(left, right)
        elif op == "!=":
            return not loose_equals(left, right)
        return compare(op, left, right)

    def _apply_stage(self, stage: dict[str, Any], value: Any, context: dict[str, Any]) -> Any:
        """Apply one builtin stage; stages that do not fit the value pass it through."""
        name = stage["name"]

        if name == "string":
            return to_string(value) if to_boolean(value) else ""

        if name == "size":
            if isinstance(value, list | dict | str):
                return len(value)
            return 0

        if name == "has_content":
            if is_nullish(value):
                return False
            if isinstance(value, list | dict | str):
                return len(value) > 0
            return True

        if name == "join" and isinstance(value, list):
            return stage["separator"].join(display_string(item) for item in value)

        if name == "split" and isinstance(value, str):
            separator = stage["separator"]
            if separator == "":
                return list(value)
            return value.split(separator)

        if name == "map" and isinstance(value, list):
            variable = stage["variable"]
            return [
                normalize(self._evaluate_nested(stage["body"], {**context, variable: item}))
                for item in value
            ]

        return value


_evaluator = ExpressionEvaluator()


def evaluate(expression: Any, context: dict[str, Any] | None = None) -> Any:
    """Evaluate ``expression`` against ``context`` without ever raising.

    Non-string input is already a value and is returned unchanged. Failures are
    logged and produce None.
    """
    if not isinstance(expression, str):
        return expression

    try:
        return _evaluator.evaluate(expression, context or {})
    except Exception as e:
        logger.warning(f"Expression evaluation failed: {expression!r}: {e}")
        return None


def evaluate_condition(expression: Any, context: dict[str, Any] | None = None) -> bool:
    """Evaluate an expression and coerce the result to a boolean."""
    return to_boolean(evaluate(expression, context))


__all__ = [
    "ExpressionError",
    "ExpressionEvaluator",
    "ExpressionLexer",
    "ExpressionParser",
    "Token",
    "TokenType",
    "UNDEFINED",
    "evaluate",
    "evaluate_condition",
    "parse_expression",
]

"""Rendering of filter values as SQL literals or bound parameters."""

from decimal import Decimal
from typing import Any, Dict, List, Sequence, Union

from .errors import ValidationError

Scalar = Union[str, int, float, Decimal]


def format_value(value: Any) -> str:
    """
    Render a filter value as an inline SQL literal.

    Strings are single-quoted with embedded quotes doubled, numbers are left
    bare, and lists become a comma-separated run of formatted elements that
    the caller wraps in parentheses.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Boolean filter values are not supported: {value!r}")
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(v) for v in value)
    raise ValidationError(f"Unsupported filter value type: {type(value).__name__}")


def unquote_literal(literal: str) -> str:
    """Reverse ``format_value`` for a single string literal."""
    if len(literal) < 2 or literal[0] != "'" or literal[-1] != "'":
        raise ValueError(f"Not a quoted SQL string literal: {literal!r}")
    return literal[1:-1].replace("''", "'")


class LiteralRenderer:
    """Inlines values into the SQL text. Used for SQL shown to users."""

    def render(self, value: Any) -> str:
        return format_value(value)

    def render_list(self, values: Sequence[Any]) -> str:
        return format_value(list(values))

    @property
    def parameters(self) -> Dict[str, Any]:
        return {}


class ParameterBinder:
    """Emits ``:pN`` placeholders and collects the values to bind at execution."""

    def __init__(self, prefix: str = "p"):
        self.prefix = prefix
        self._values: Dict[str, Any] = {}

    def render(self, value: Any) -> str:
        if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
            raise ValidationError(f"Unsupported filter value type: {type(value).__name__}")
        name = f"{self.prefix}{len(self._values)}"
        self._values[name] = value
        return f":{name}"

    def render_list(self, values: Sequence[Any]) -> str:
        placeholders: List[str] = [self.render(v) for v in values]
        return ", ".join(placeholders)

    @property
    def parameters(self) -> Dict[str, Any]:
        return dict(self._values)

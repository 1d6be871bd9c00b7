"""
DSL Values
==========

Runtime value helpers shared by the interpreter, element builders and
modifier handlers.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from dsl_playground.core.dsl.nodes import UINode

MAX_DISPLAY_LENGTH = 100_000
MAX_INTEGER_BITS = 4096
# Decimal digits read before the bit limit is checked.
MAX_INTEGER_DIGITS = 1300


@dataclass(frozen=True)
class Symbol:
    """Symbol literal such as ``:center``."""

    name: str

    def __str__(self) -> str:
        return self.name


def type_name(value: Any) -> str:
    """DSL-facing type name of a runtime value."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "Boolean"
    if isinstance(value, int):
        return "Integer"
    if isinstance(value, float):
        return "Float"
    if isinstance(value, str):
        return "String"
    if isinstance(value, Symbol):
        return "Symbol"
    if isinstance(value, list):
        return "Array"
    if isinstance(value, range):
        return "Range"
    if isinstance(value, UINode):
        return f"Element({value.element})"
    return type(value).__name__


def to_display(value: Any, limit: int = MAX_DISPLAY_LENGTH, check: Optional[Callable[[], None]] = None) -> str:
    """
    String conversion used by interpolation, ``to_s`` and attributes.

    Strings pass through unchanged. Arrays are rendered in their inspect form
    under ``limit``; ``check`` is called once per rendered value so a caller
    can enforce a time budget.

    Raises:
        ValueError: If the rendered text would exceed ``limit`` characters
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, Symbol):
        return value.name
    return inspect_value(value, limit, check)


def inspect_value(value: Any, limit: int = MAX_DISPLAY_LENGTH, check: Optional[Callable[[], None]] = None) -> str:
    """
    Developer-facing representation, as in error messages.

    Nested arrays are walked iteratively. Every visited value writes at least
    one character, so the walk stops within ``limit`` steps even when the
    same array is referenced many times.

    Raises:
        ValueError: If the representation would exceed ``limit`` characters
    """
    output = _Output(limit)
    frames: List[List[Any]] = []
    current = value
    while True:
        if check is not None:
            check()
        if isinstance(current, list):
            output.write("[")
            frames.append([iter(current), False])
        else:
            output.write(_inspect_scalar(current))

        current = _DONE
        while frames:
            frame = frames[-1]
            item = next(frame[0], _DONE)
            if item is _DONE:
                frames.pop()
                output.write("]")
                continue
            if frame[1]:
                output.write(", ")
            frame[1] = True
            current = item
            break
        if current is _DONE:
            return output.text()


_DONE = object()


class _Output:
    """Length-capped text accumulator."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.length = 0
        self.parts: List[str] = []

    def write(self, text: str) -> None:
        self.length += len(text)
        if self.length > self.limit:
            raise ValueError(f"String exceeds the maximum length of {self.limit} characters")
        self.parts.append(text)

    def text(self) -> str:
        return "".join(self.parts)


def _inspect_scalar(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
    if isinstance(value, Symbol):
        return f":{value.name}"
    if isinstance(value, range):
        return f"{value.start}...{value.stop}"
    if isinstance(value, UINode):
        return f"#<{value.element}>"
    return str(value)


def truthy(value: Any) -> bool:
    """Only ``nil`` and ``false`` are falsy."""
    return value is not None and value is not False


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def word(value: Any) -> str:
    """Symbol or string argument as a plain word."""
    if isinstance(value, Symbol):
        return value.name
    if isinstance(value, str):
        return value
    if is_number(value):
        return str(value)
    raise TypeError(f"expected a String or Symbol, got {type_name(value)}")

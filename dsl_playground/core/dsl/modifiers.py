"""
Modifier Handlers
=================

Explicit table from modifier name to the handler that augments a node.
Handlers are keyed by canonical name; the registry resolves aliases first.
Handlers raise ``TypeError`` or ``ValueError`` on bad arguments; the
interpreter turns those into runtime faults located at the modifier call.
"""

import re
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping

from dsl_playground.core.dsl.nodes import UINode
from dsl_playground.core.dsl.values import is_number, to_display, type_name, word

Handler = Callable[[UINode, List[Any], Dict[str, Any]], None]

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")

# Tailwind class prefix per spacing modifier.
SPACING_PREFIXES = {
    "padding": "p",
    "p": "p",
    "px": "px",
    "py": "py",
    "pt": "pt",
    "pb": "pb",
    "pl": "pl",
    "pr": "pr",
    "margin": "m",
    "m": "m",
    "mx": "mx",
    "my": "my",
    "mt": "mt",
    "mb": "mb",
}

# Modifiers that map one argument onto `prefix-value`.
VALUE_PREFIXES = {
    "font_size": "text",
    "font_weight": "font",
    "text_align": "text",
    "line_height": "leading",
    "w": "w",
    "h": "h",
    "max_w": "max-w",
    "min_h": "min-h",
    "gap": "gap",
    "opacity": "opacity",
}

# Modifiers without arguments that add a fixed class list.
FLAG_CLASSES = {
    "bold": "font-bold",
    "italic": "italic",
    "underline": "underline",
    "truncate": "truncate",
    "hidden": "hidden",
    "items_center": "items-center",
    "justify_center": "justify-center",
    "justify_between": "justify-between",
}

# Modifiers with an optional size argument: bare class or `prefix-size`.
OPTIONAL_SIZE = {"flex": "flex", "rounded": "rounded", "shadow": "shadow", "border": "border"}

# Color modifiers: class prefix and the style property used for hex values.
COLOR_TARGETS = {
    "bg": ("bg", "background-color"),
    "text_color": ("text", "color"),
    "border_color": ("border", "border-color"),
}


def _arguments(name: str, args: List[Any], kwargs: Dict[str, Any], minimum: int, maximum: int) -> None:
    if kwargs:
        raise TypeError(f"'{name}' does not take keyword arguments")
    if not minimum <= len(args) <= maximum:
        expected = str(minimum) if minimum == maximum else f"{minimum}..{maximum}"
        raise TypeError(f"wrong number of arguments for '{name}' (given {len(args)}, expected {expected})")


def _token(name: str, value: Any) -> str:
    """Single class-safe word from a number, string or symbol argument."""
    if is_number(value):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value)
    text = word(value).strip()
    if not text or any(ch.isspace() for ch in text):
        raise ValueError(f"invalid value for '{name}': {to_display(value)!r}")
    return text


def spacing_handler(name: str) -> Handler:
    prefix = SPACING_PREFIXES[name]

    def handle(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
        _arguments(name, args, kwargs, 1, 1)
        value = args[0]
        if is_number(value) and value < 0:
            node.add_class(f"-{prefix}-{_token(name, -value)}")
        else:
            node.add_class(f"{prefix}-{_token(name, value)}")

    return handle


def value_handler(name: str) -> Handler:
    prefix = VALUE_PREFIXES[name]

    def handle(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
        _arguments(name, args, kwargs, 1, 1)
        node.add_class(f"{prefix}-{_token(name, args[0])}")

    return handle


def flag_handler(name: str) -> Handler:
    classes = FLAG_CLASSES[name]

    def handle(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
        _arguments(name, args, kwargs, 0, 0)
        node.add_class(classes)

    return handle


def optional_size_handler(name: str) -> Handler:
    prefix = OPTIONAL_SIZE[name]

    def handle(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
        _arguments(name, args, kwargs, 0, 1)
        if not args or args[0] is None or args[0] is True:
            node.add_class(prefix)
        else:
            node.add_class(f"{prefix}-{_token(name, args[0])}")

    return handle


def color_handler(name: str) -> Handler:
    prefix, style_property = COLOR_TARGETS[name]

    def handle(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
        _arguments(name, args, kwargs, 1, 1)
        color = _token(name, args[0])
        if color.startswith("#"):
            if not HEX_COLOR.match(color):
                raise ValueError(f"invalid hex color for '{name}': {color!r}")
            node.styles[style_property] = color
        else:
            node.add_class(f"{prefix}-{color}")

    return handle


def handle_hover(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
    _arguments("hover", args, kwargs, 1, 1)
    node.add_class(*(f"hover:{token}" for token in word(args[0]).split()))


def handle_disabled(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
    _arguments("disabled", args, kwargs, 0, 1)
    if not args or args[0] is True:
        node.attributes["disabled"] = "disabled"
    elif args[0] is False or args[0] is None:
        node.attributes.pop("disabled", None)
    else:
        raise TypeError(f"disabled expects true or false, got {type_name(args[0])}")


def handle_on_click(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
    _arguments("on_click", args, kwargs, 1, 1)
    node.attributes["data-action"] = f"click->{_token('on_click', args[0])}"


def handle_tw(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
    _arguments("tw", args, kwargs, 1, 1)
    node.add_class(word(args[0]))


def handle_style(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
    _arguments("style", args, kwargs, 1, 1)
    for declaration in word(args[0]).split(";"):
        if not declaration.strip():
            continue
        prop, sep, value = declaration.partition(":")
        if not sep or not prop.strip() or not value.strip():
            raise ValueError(f"invalid style declaration: {declaration.strip()!r}")
        node.styles[prop.strip().lower()] = value.strip()


def handle_attr(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
    _arguments("attr", args, kwargs, 2, 2)
    name = word(args[0]).strip().lower()
    if not name:
        raise ValueError("attribute name must not be empty")
    node.attributes[name] = to_display(args[1])


def handle_data(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
    if args:
        raise TypeError("'data' takes keyword arguments only, e.g. .data(controller: \"tabs\")")
    if not kwargs:
        raise TypeError("'data' requires at least one keyword argument")
    for key, value in kwargs.items():
        node.attributes[f"data-{key.replace('_', '-')}"] = to_display(value)


def attribute_handler(name: str, attribute: str) -> Handler:
    def handle(node: UINode, args: List[Any], kwargs: Dict[str, Any]) -> None:
        _arguments(name, args, kwargs, 1, 1)
        node.attributes[attribute] = to_display(args[0])

    return handle


def _build_table() -> Dict[str, Handler]:
    table: Dict[str, Handler] = {}
    for name in SPACING_PREFIXES:
        table[name] = spacing_handler(name)
    for name in VALUE_PREFIXES:
        table[name] = value_handler(name)
    for name in FLAG_CLASSES:
        table[name] = flag_handler(name)
    for name in OPTIONAL_SIZE:
        table[name] = optional_size_handler(name)
    for name in COLOR_TARGETS:
        table[name] = color_handler(name)
    table.update(
        {
            "hover": handle_hover,
            "disabled": handle_disabled,
            "on_click": handle_on_click,
            "tw": handle_tw,
            "style": handle_style,
            "attr": handle_attr,
            "data": handle_data,
            "id": attribute_handler("id", "id"),
            "title": attribute_handler("title", "title"),
            "aria_label": attribute_handler("aria_label", "aria-label"),
        }
    )
    return table


MODIFIER_HANDLERS: Mapping[str, Handler] = MappingProxyType(_build_table())
"""
Element Builders
================

Explicit table from element name to the builder that turns bound arguments
into node classes, attributes and text. Layout classes follow Tailwind CSS
conventions.
"""

from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Tuple

from dsl_playground.core.dsl.nodes import UINode
from dsl_playground.core.dsl.values import Symbol, to_display, type_name, word
from dsl_playground.models.schemas import ElementDefinition

Builder = Callable[[UINode, Dict[str, Any]], None]

ALIGNMENTS = {
    "top": "start",
    "leading": "start",
    "start": "start",
    "center": "center",
    "bottom": "end",
    "trailing": "end",
    "end": "end",
    "stretch": "stretch",
    "baseline": "baseline",
}

JUSTIFICATIONS = {
    "start": "start",
    "leading": "start",
    "center": "center",
    "end": "end",
    "trailing": "end",
    "between": "between",
    "around": "around",
    "evenly": "evenly",
}

# Distributions that fill the main axis instead of spacing children.
FILLING_JUSTIFICATIONS = frozenset({"between", "around", "evenly"})

CARD_SHADOWS = {0: "shadow-none", 1: "shadow", 2: "shadow-md", 3: "shadow-lg", 4: "shadow-xl"}

LIST_STYLES = {"none": "list-none", "disc": "list-disc list-inside", "decimal": "list-decimal list-inside"}

SCROLL_AXES = {"vertical": "overflow-y-auto", "horizontal": "overflow-x-auto", "both": "overflow-auto"}


def bind_arguments(
    definition: ElementDefinition, args: List[Any], kwargs: Dict[str, Any]
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Bind call arguments to an element's declared parameters.

    Args:
        definition: Element definition from the registry
        args: Positional argument values
        kwargs: Keyword argument values

    Returns:
        Tuple of (bound parameters, extra keyword arguments)

    Raises:
        TypeError: On too many positional arguments or missing required ones
    """
    positional = [p for p in definition.parameters if not p.keyword]
    if len(args) > len(positional):
        raise TypeError(
            f"wrong number of arguments for '{definition.name}' "
            f"(given {len(args)}, expected at most {len(positional)})"
        )

    bound: Dict[str, Any] = {}
    for param, value in zip(positional, args):
        bound[param.name] = value

    declared = {p.name for p in definition.parameters}
    extras: Dict[str, Any] = {}
    for key, value in kwargs.items():
        if key in declared:
            if key in bound:
                raise TypeError(f"argument '{key}' given twice for '{definition.name}'")
            bound[key] = value
        else:
            extras[key] = value

    missing = [p.name for p in definition.parameters if p.required and p.name not in bound]
    if missing:
        raise TypeError(f"missing required argument '{missing[0]}' for '{definition.name}'")

    return bound, extras


def _integer(args: Dict[str, Any], name: str, default: int) -> int:
    value = args.get(name, default)
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an Integer, got {type_name(value)}")
    return value


def _choice(args: Dict[str, Any], name: str, default: str, choices: Mapping[str, str]) -> str:
    value = word(args.get(name, default))
    if value not in choices:
        allowed = ", ".join(sorted(choices))
        raise ValueError(f"unknown {name} '{value}' (expected one of: {allowed})")
    return choices[value]


def _text(args: Dict[str, Any], name: str) -> str:
    value = args.get(name)
    if isinstance(value, UINode):
        raise TypeError(f"{name} must be a value, got an element")
    return to_display(value)


def _stack(node: UINode, args: Dict[str, Any], direction: str) -> None:
    spacing = _integer(args, "spacing", 8)
    alignment = _choice(args, "alignment", "center", ALIGNMENTS)
    justify = _choice(args, "justify", "start", JUSTIFICATIONS)

    node.add_class("flex", f"flex-{direction}", f"items-{alignment}", f"justify-{justify}")
    if justify in FILLING_JUSTIFICATIONS:
        node.add_class("h-full" if direction == "col" else "w-full")
    elif spacing > 0:
        node.add_class(f"space-{'y' if direction == 'col' else 'x'}-{spacing}")


def build_vstack(node: UINode, args: Dict[str, Any]) -> None:
    _stack(node, args, "col")


def build_hstack(node: UINode, args: Dict[str, Any]) -> None:
    _stack(node, args, "row")


def build_zstack(node: UINode, args: Dict[str, Any]) -> None:
    node.add_class("relative")


def build_grid(node: UINode, args: Dict[str, Any]) -> None:
    columns = max(1, _integer(args, "columns", 2))
    spacing = _integer(args, "spacing", 8)

    node.add_class("grid", "grid-cols-1")
    if columns >= 2:
        node.add_class("sm:grid-cols-2")
    if columns > 2:
        node.add_class(f"lg:grid-cols-{columns}")
    if spacing > 0:
        node.add_class(f"gap-{spacing}")


def build_scroll_view(node: UINode, args: Dict[str, Any]) -> None:
    node.add_class(_choice(args, "axis", "vertical", SCROLL_AXES))


def build_spacer(node: UINode, args: Dict[str, Any]) -> None:
    node.add_class("flex-1")
    if args.get("min_length") is not None:
        length = _integer(args, "min_length", 0)
        node.styles["min-width"] = f"{length}px"
        node.styles["min-height"] = f"{length}px"


def build_divider(node: UINode, args: Dict[str, Any]) -> None:
    node.add_class("border-t", "border-gray-300")


def build_text(node: UINode, args: Dict[str, Any]) -> None:
    node.text = _text(args, "content")


def build_label(node: UINode, args: Dict[str, Any]) -> None:
    node.text = _text(args, "content")
    if args.get("for_input") is not None:
        node.attributes["for"] = to_display(args["for_input"])


def build_button(node: UINode, args: Dict[str, Any]) -> None:
    node.text = _text(args, "title")
    node.attributes["type"] = word(args.get("type", "button"))


def build_link(node: UINode, args: Dict[str, Any]) -> None:
    node.text = _text(args, "title")
    node.attributes["href"] = to_display(args["destination"])


def build_image(node: UINode, args: Dict[str, Any]) -> None:
    node.attributes["src"] = to_display(args["src"])
    node.attributes["alt"] = to_display(args.get("alt", ""))
    node.attributes["loading"] = "lazy"


def build_textfield(node: UINode, args: Dict[str, Any]) -> None:
    node.attributes["type"] = word(args.get("type", "text"))
    for name in ("name", "placeholder", "value"):
        if args.get(name) is not None:
            node.attributes[name] = to_display(args[name])


def build_textarea(node: UINode, args: Dict[str, Any]) -> None:
    node.attributes["rows"] = str(_integer(args, "rows", 4))
    for name in ("name", "placeholder"):
        if args.get(name) is not None:
            node.attributes[name] = to_display(args[name])
    node.text = to_display(args.get("value", ""))


def build_form(node: UINode, args: Dict[str, Any]) -> None:
    node.attributes["action"] = to_display(args["action"])
    node.attributes["method"] = _choice(args, "method", "post", {"get": "get", "post": "post"})


def build_select(node: UINode, args: Dict[str, Any]) -> None:
    if args.get("name") is not None:
        node.attributes["name"] = to_display(args["name"])


def build_option(node: UINode, args: Dict[str, Any]) -> None:
    value = to_display(args["value"])
    node.attributes["value"] = value
    content = args.get("content")
    node.text = value if content is None else to_display(content)
    if args.get("selected") is True:
        node.attributes["selected"] = "selected"


def build_card(node: UINode, args: Dict[str, Any]) -> None:
    elevation = _integer(args, "elevation", 1)
    node.add_class("rounded-lg", "bg-white", CARD_SHADOWS.get(elevation, "shadow-2xl"))


def build_list(node: UINode, args: Dict[str, Any]) -> None:
    style = args.get("style", Symbol("none"))
    node.add_class(_choice({"style": style}, "style", "none", LIST_STYLES))
    if word(style) == "decimal":
        node.tag = "ol"


def build_generic(node: UINode, args: Dict[str, Any]) -> None:
    pass


ELEMENT_BUILDERS: Mapping[str, Builder] = MappingProxyType(
    {
        "swift_ui": build_generic,
        "vstack": build_vstack,
        "hstack": build_hstack,
        "zstack": build_zstack,
        "grid": build_grid,
        "scroll_view": build_scroll_view,
        "spacer": build_spacer,
        "divider": build_divider,
        "text": build_text,
        "label": build_label,
        "button": build_button,
        "link": build_link,
        "image": build_image,
        "textfield": build_textfield,
        "textarea": build_textarea,
        "form": build_form,
        "select": build_select,
        "option": build_option,
        "card": build_card,
        "list": build_list,
        "list_item": build_generic,
        "div": build_generic,
        "span": build_generic,
        "section": build_generic,
        "header": build_generic,
        "footer": build_generic,
        "nav": build_generic,
    }
)


def extra_attribute_name(key: str) -> str:
    """Keyword argument name as an HTML attribute name."""
    if key == "class_name":
        return "class"
    return key.replace("_", "-")

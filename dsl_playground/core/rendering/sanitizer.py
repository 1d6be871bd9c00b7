"""
Markup Sanitizer
================

Allow-list checks applied to every class token, attribute and inline style
before a node is serialized. The allow-lists come from settings; the
sanitizer itself only decides whether a value passes.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from dsl_playground.config.logging import get_logger
from dsl_playground.config.settings import Settings, get_settings
from dsl_playground.core.dsl.nodes import UINode
from dsl_playground.models.schemas import SourceLocation

logger = get_logger(__name__)

URL_ATTRIBUTES = frozenset({"href", "src", "action"})

# Schemes rejected regardless of configuration.
BLOCKED_SCHEMES = frozenset({"javascript", "vbscript", "file"})

ATTRIBUTE_NAME = re.compile(r"^[a-z][a-z0-9\-]*$")
URL_SCHEME = re.compile(r"^([a-z][a-z0-9+.\-]*):")
DATA_IMAGE = re.compile(r"^data:image/(?:png|gif|jpeg|jpg|webp);base64,[a-z0-9+/=\s]*$", re.IGNORECASE)
CONTROL_CHARS = re.compile(r"[\x00-\x20\x7f]+")
# Script-bearing schemes refused at the start of any attribute value.
SCRIPT_VALUE = re.compile(r"^(javascript|vbscript):|^data:text/html")

COLOR_FUNCTION = re.compile(
    r"(?:rgba?|hsla?)\(\s*[-+]?[\d.]+%?(?:\s*[,/\s]\s*[-+]?[\d.]+%?){2,3}\s*\)",
    re.IGNORECASE,
)
STYLE_TOKEN = re.compile(
    r"^(?:-?[a-zA-Z][a-zA-Z0-9\-]*"
    r"|[-+]?(?:\d+\.?\d*|\.\d+)(?:px|em|rem|%|vh|vw|vmin|vmax|ch|ex|pt|fr|deg|s|ms)?"
    r"|#(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8}))$"
)
STYLE_SEPARATORS = re.compile(r"[\s,]+")
FORBIDDEN_STYLE_TEXT = re.compile(r"[;{}<>\"'\\]|/\*")


class SanitizationError(Exception):
    """Exception raised when strict sanitization rejects a value."""

    def __init__(self, message: str, location: Optional[SourceLocation] = None):
        super().__init__(message)
        self.message = message
        self.location = location


@dataclass
class CleanNode:
    """Sanitized rendering data for one node."""

    classes: List[str] = field(default_factory=list)
    attributes: List[Tuple[str, str]] = field(default_factory=list)
    styles: List[Tuple[str, str]] = field(default_factory=list)


class Sanitizer:
    """Allow-list sanitizer for node classes, attributes and styles."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.strict = self.settings.sanitizer_mode == "strict"
        self.allowed_attributes = frozenset(a.lower() for a in self.settings.allowed_attributes)
        self.allowed_prefixes = tuple(p.lower() for p in self.settings.allowed_attribute_prefixes)
        self.allowed_css_properties = frozenset(p.lower() for p in self.settings.allowed_css_properties)
        self.allowed_schemes = frozenset(s.lower() for s in self.settings.allowed_url_schemes)
        self.class_pattern = re.compile(self.settings.class_token_pattern)
        self.logger: Any = logger.bind(component="sanitizer")

    # Individual checks; each returns a rejection reason or None.

    def check_class(self, token: str) -> Optional[str]:
        if len(token) > self.settings.max_class_token_length:
            return "class token is too long"
        if not self.class_pattern.match(token):
            return "class token contains disallowed characters"
        lowered = token.lower()
        if "javascript:" in lowered or "data:" in lowered:
            return "class token embeds a URL scheme"
        return None

    def check_attribute_name(self, name: str) -> Optional[str]:
        if not ATTRIBUTE_NAME.match(name):
            return "attribute name is malformed"
        if name.startswith("on"):
            return "event handler attributes are not allowed"
        if name in ("class", "style"):
            return f"'{name}' must be set through modifiers"
        if name in self.allowed_attributes or name.startswith(self.allowed_prefixes):
            return None
        return "attribute is not on the allow-list"

    def check_url(self, name: str, value: str) -> Optional[str]:
        normalized = CONTROL_CHARS.sub("", value).lower()
        match = URL_SCHEME.match(normalized)
        if match is None:
            return None

        scheme = match.group(1)
        if scheme in BLOCKED_SCHEMES:
            return f"'{scheme}:' URLs are not allowed"
        if scheme == "data":
            if name == "src" and DATA_IMAGE.match(value.strip()):
                return None
            return "only base64 image data URLs are allowed in 'src'"
        if scheme not in self.allowed_schemes:
            return f"URL scheme '{scheme}' is not allowed"
        return None

    def check_attribute_value(self, name: str, value: str) -> Optional[str]:
        if name in URL_ATTRIBUTES:
            return self.check_url(name, value)
        match = SCRIPT_VALUE.match(CONTROL_CHARS.sub("", value).lower())
        if match is None:
            return None
        scheme = match.group(1)
        if scheme is None:
            return "'data:text/html' values are not allowed"
        return f"'{scheme}:' values are not allowed"

    def check_style(self, prop: str, value: str) -> Optional[str]:
        if prop not in self.allowed_css_properties:
            return "style property is not on the allow-list"
        value = value.strip()
        if not value:
            return "style value is empty"
        if FORBIDDEN_STYLE_TEXT.search(value):
            return "style value contains disallowed characters"
        remainder = COLOR_FUNCTION.sub(" ", value).strip()
        for token in STYLE_SEPARATORS.split(remainder):
            if token and not STYLE_TOKEN.match(token):
                return f"style value token '{token}' is not allowed"
        return None

    # Node cleaning

    def clean(self, node: UINode, warnings: List[str]) -> CleanNode:
        """
        Sanitize a node's classes, attributes and styles.

        Args:
            node: Node to sanitize
            warnings: Receives one message per dropped value

        Returns:
            CleanNode holding only accepted values

        Raises:
            SanitizationError: On the first rejection in strict mode
        """
        clean = CleanNode()

        for token in node.classes:
            reason = self.check_class(token)
            if reason:
                self._reject(node, f"class '{token}'", reason, warnings)
            else:
                clean.classes.append(token)

        for name, value in node.attributes.items():
            name = name.lower()
            reason = self.check_attribute_name(name)
            if reason is None:
                reason = self.check_attribute_value(name, value)
            if reason:
                self._reject(node, f"attribute '{name}'", reason, warnings)
            else:
                clean.attributes.append((name, value))

        for prop, value in node.styles.items():
            prop = prop.lower()
            reason = self.check_style(prop, value)
            if reason:
                self._reject(node, f"style '{prop}'", reason, warnings)
            else:
                clean.styles.append((prop, value.strip()))

        return clean

    def _reject(self, node: UINode, subject: str, reason: str, warnings: List[str]) -> None:
        location = node.location
        message = (
            f"Dropped {subject} on '{node.element}' at line {location.line}, "
            f"column {location.column}: {reason}"
        )
        self.logger.info("Sanitizer rejected value", element=node.element, subject=subject, reason=reason)
        if self.strict:
            raise SanitizationError(
                f"Rejected {subject} on '{node.element}': {reason}", location
            )
        warnings.append(message)


def style_text(styles: List[Tuple[str, str]]) -> str:
    return "; ".join(f"{prop}: {value}" for prop, value in styles)


def attribute_map(clean: CleanNode) -> Dict[str, str]:
    """Ordered attribute mapping as serialized: class, attributes, style."""
    attributes: Dict[str, str] = {}
    if clean.classes:
        attributes["class"] = " ".join(clean.classes)
    for name, value in clean.attributes:
        attributes[name] = value
    if clean.styles:
        attributes["style"] = style_text(clean.styles)
    return attributes

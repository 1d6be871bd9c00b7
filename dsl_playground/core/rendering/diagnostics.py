"""
Diagnostic Formatter
====================

Turns evaluation and render faults into end-user diagnostics: a one-line
summary, a source excerpt with a caret marker, suggestions for misspelled
names, and an HTML block whose developer trace starts collapsed.
"""

import difflib
import re
from typing import Any, List, Optional, Sequence

import jinja2

from dsl_playground.config.logging import get_logger
from dsl_playground.core.dsl.interpreter import VALUE_METHODS
from dsl_playground.core.dsl.registry import ElementRegistry
from dsl_playground.core.rendering.html_generator import create_template_environment
from dsl_playground.models.schemas import DiagnosticPayload, Fault, FaultKind, SourceLocation

logger = get_logger(__name__)

# Lines of source shown above the faulting line.
CONTEXT_LINES = 2

QUOTED_NAME = re.compile(r"'([^']+)'")

KIND_HINTS = {
    FaultKind.SECURITY_VIOLATION: "Only registered elements and their modifiers are available in the playground.",
    FaultKind.TIMEOUT: "Check loops for a missing 'break' or an exit condition that is never reached.",
}


def summarize(fault: Fault) -> str:
    """One-line summary, e.g. ``SyntaxError at line 3, column 5: ...``."""
    if fault.location is None:
        return f"{fault.kind.value}: {fault.message}"
    return (
        f"{fault.kind.value} at line {fault.location.line}, "
        f"column {fault.location.column}: {fault.message}"
    )


def excerpt(source: str, location: SourceLocation) -> Optional[str]:
    """
    Source lines ending at the fault location with a caret marker beneath.

    Args:
        source: Submitted source
        location: Fault location

    Returns:
        Excerpt text, or None if the location lies outside the source
    """
    lines = source.split("\n")
    if location.line > len(lines):
        return None

    first = max(1, location.line - CONTEXT_LINES)
    width = len(str(location.line))
    rendered = [
        f"{number:>{width}} | {lines[number - 1]}" for number in range(first, location.line + 1)
    ]

    text = lines[location.line - 1]
    column = min(location.column, len(text) + 1)
    span = 1
    if location.end_line in (None, location.line) and location.end_column:
        span = max(1, min(location.end_column, len(text) + 1) - column)
    rendered.append(f"{' ' * width} | {' ' * (column - 1)}{'^' * span}")
    return "\n".join(rendered)


class DiagnosticFormatter:
    """Formats faults for display in the playground."""

    def __init__(self, registry: Optional[ElementRegistry] = None) -> None:
        self.registry = registry
        self.logger: Any = logger.bind(component="diagnostic_formatter")
        self.env = create_template_environment()

    def format(self, fault: Fault, source: Optional[str] = None) -> DiagnosticPayload:
        """
        Build a diagnostic payload.

        Args:
            fault: Fault from evaluation or rendering
            source: Submitted source used for the excerpt

        Returns:
            DiagnosticPayload including its HTML rendering
        """
        payload = DiagnosticPayload(
            kind=fault.kind,
            message=fault.message,
            summary=summarize(fault),
            location=fault.location,
            excerpt=excerpt(source, fault.location) if source is not None and fault.location else None,
            hints=self.hints(fault),
            trace=fault.trace,
        )
        payload.html = self._render_html(payload)
        return payload

    def hints(self, fault: Fault) -> List[str]:
        hints: List[str] = []
        if fault.cause == "RegistryMiss":
            match = QUOTED_NAME.search(fault.message)
            if match:
                suggestions = difflib.get_close_matches(match.group(1), self._known_names(), n=3, cutoff=0.6)
                if suggestions:
                    hints.append("Did you mean " + " or ".join(f"'{name}'" for name in suggestions) + "?")
        kind_hint = KIND_HINTS.get(fault.kind)
        if kind_hint:
            hints.append(kind_hint)
        return hints

    def _known_names(self) -> Sequence[str]:
        names = list(VALUE_METHODS)
        if self.registry is not None:
            names = list(self.registry.names()) + list(self.registry.all_modifier_names()) + names
        return names

    def _render_html(self, payload: DiagnosticPayload) -> str:
        try:
            template = self.env.get_template("diagnostic.html")
            return template.render(
                kind_class=payload.kind.value.lower(),
                summary=payload.summary,
                excerpt=payload.excerpt,
                hints=payload.hints,
                trace=payload.trace,
                collapsed=payload.collapsed,
            )
        except jinja2.TemplateError as e:
            self.logger.error("Diagnostic template failed", error=str(e))
            return ""

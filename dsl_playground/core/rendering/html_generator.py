"""
HTML Generator
==============

Serialize sandbox node trees into sanitized HTML markup, and wrap rendered
fragments into a standalone preview document.
"""

import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import jinja2
from markupsafe import Markup, escape

from dsl_playground.config.logging import get_logger
from dsl_playground.config.settings import Settings, get_settings
from dsl_playground.core.dsl.nodes import NodeKind, NodeTree, UINode
from dsl_playground.core.rendering.sanitizer import (
    SanitizationError,
    Sanitizer,
    attribute_map,
)
from dsl_playground.models.schemas import Fault, FaultKind, RenderResult

logger = get_logger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

TAG_NAME = re.compile(r"^[a-z][a-z0-9]*$")


class RenderingError(Exception):
    """Exception raised when a node tree cannot be serialized."""

    pass


def create_template_environment(enable_async: bool = False) -> jinja2.Environment:
    """Jinja2 environment over the bundled templates with HTML autoescaping."""
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=jinja2.select_autoescape(["html", "xml"]),
        enable_async=enable_async,
    )
    env.filters["plural_of"] = lambda word, count: word if count == 1 else f"{word}s"
    return env


class Renderer:
    """Sanitizing HTML renderer for node trees."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.sanitizer = Sanitizer(self.settings)
        self.logger: Any = logger.bind(component="renderer")
        self._setup_jinja2_environment()

    def _setup_jinja2_environment(self) -> None:
        """Setup Jinja2 template environment."""
        self.env = create_template_environment(enable_async=True)

    def render(self, tree: NodeTree) -> RenderResult:
        """
        Render a node tree to markup.

        The output is assembled completely before it is returned; a failure
        anywhere in the walk yields a fault and no partial markup.

        Args:
            tree: Node tree from a successful evaluation

        Returns:
            RenderResult with markup and sanitizer warnings, or a fault
        """
        start_time = time.time()
        warnings: List[str] = []

        try:
            parts: List[str] = []
            self._render_node(tree.root, parts, warnings)
            markup = "".join(parts)

            self.logger.info(
                "Rendering completed",
                nodes=tree.node_count,
                markup_length=len(markup),
                warnings=len(warnings),
            )
            return RenderResult(
                success=True,
                markup=markup,
                warnings=warnings,
                processing_time=time.time() - start_time,
            )

        except SanitizationError as e:
            self.logger.warning("Rendering rejected by sanitizer", error=e.message)
            return RenderResult(
                success=False,
                fault=Fault(
                    kind=FaultKind.SECURITY_VIOLATION,
                    message=e.message,
                    location=e.location,
                    cause="sanitizer",
                ),
                processing_time=time.time() - start_time,
            )
        except Exception as e:
            error_msg = f"Rendering failed: {e}"
            self.logger.error("Rendering failed", error=error_msg)
            return RenderResult(
                success=False,
                fault=Fault(
                    kind=FaultKind.RUNTIME_ERROR,
                    message=error_msg,
                    location=tree.root.location,
                    cause=type(e).__name__,
                ),
                processing_time=time.time() - start_time,
            )

    async def render_document(self, tree: NodeTree, title: str = "DSL Playground Preview") -> RenderResult:
        """
        Render a node tree inside the standalone preview document.

        Args:
            tree: Node tree from a successful evaluation
            title: Document title

        Returns:
            RenderResult whose markup is a complete HTML document
        """
        result = self.render(tree)
        if not result.success:
            return result

        try:
            template = self.env.get_template("preview.html")
            html = await template.render_async(
                title=title,
                body=Markup(result.markup),
                stylesheet_url=self.settings.preview_stylesheet_url,
                app_name=self.settings.app_name,
            )
        except jinja2.TemplateError as e:
            error_msg = f"Template rendering failed: {e}"
            self.logger.error("Preview document failed", error=error_msg)
            return RenderResult(
                success=False,
                warnings=result.warnings,
                fault=Fault(kind=FaultKind.RUNTIME_ERROR, message=error_msg, cause="TemplateError"),
            )

        return result.model_copy(update={"markup": html})

    def _render_node(self, node: UINode, parts: List[str], warnings: List[str]) -> None:
        if node.kind == NodeKind.FRAGMENT:
            for child in node.children:
                self._render_node(child, parts, warnings)
            return

        if not TAG_NAME.match(node.tag):
            raise RenderingError(f"Invalid tag name '{node.tag}' for element '{node.element}'")

        clean = self.sanitizer.clean(node, warnings)
        parts.append(f"<{node.tag}{self._build_attributes(attribute_map(clean))}>")

        if node.kind == NodeKind.VOID:
            return

        if node.text is not None:
            parts.append(str(escape(node.text)))
        for child in node.children:
            self._render_node(child, parts, warnings)
        parts.append(f"</{node.tag}>")

    def _build_attributes(self, attributes: Dict[str, str]) -> Markup:
        """Build an escaped HTML attribute string."""
        if not attributes:
            return Markup("")
        pairs = [Markup('{}="{}"').format(Markup(name), value) for name, value in attributes.items()]
        return Markup(" ") + Markup(" ").join(pairs)

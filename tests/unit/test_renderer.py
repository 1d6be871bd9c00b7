"""
Unit Tests for HTML Renderer and Sanitizer
==========================================

Serialization of node trees and allow-list enforcement.
"""

import pytest

from dsl_playground.core.dsl.nodes import NodeKind, NodeTree, UINode
from dsl_playground.core.rendering.html_generator import create_template_environment
from dsl_playground.core.rendering.sanitizer import CleanNode, Sanitizer, attribute_map, style_text
from dsl_playground.models.schemas import FaultKind, SourceLocation

from tests.utils.assertions import (
    assert_fault,
    assert_successful_evaluation,
    assert_texts_in_order,
    assert_valid_html_fragment,
)


def render_source(evaluate, renderer, source):
    tree = assert_successful_evaluation(evaluate(source))
    return renderer.render(tree)


def node(element="div", tag="div", kind=NodeKind.CONTAINER, **fields):
    return UINode(element=element, tag=tag, kind=kind, location=SourceLocation(line=1, column=1), **fields)


class TestSanitizerChecks:
    """Individual allow-list checks."""

    @pytest.fixture
    def sanitizer(self, test_settings):
        return Sanitizer(test_settings)

    @pytest.mark.parametrize("token", ["p-4", "sm:grid-cols-2", "w-1/2", "-mt-2", "hover:bg-blue-600", "bg-[#fff]"])
    def test_accepts_utility_classes(self, sanitizer, token):
        assert sanitizer.check_class(token) is None

    @pytest.mark.parametrize("token", ['a"b', "<script>", "x{y}", "a;b"])
    def test_rejects_malformed_classes(self, sanitizer, token):
        assert sanitizer.check_class(token) is not None

    def test_rejects_long_class(self, sanitizer):
        assert sanitizer.check_class("a" * 65) == "class token is too long"

    def test_rejects_scheme_in_class(self, sanitizer):
        assert sanitizer.check_class("bg-[url(javascript:x)]") is not None

    @pytest.mark.parametrize("name", ["id", "href", "data-action", "aria-label", "placeholder"])
    def test_allowed_attributes(self, sanitizer, name):
        assert sanitizer.check_attribute_name(name) is None

    def test_event_handlers_rejected(self, sanitizer):
        assert sanitizer.check_attribute_name("onclick") == "event handler attributes are not allowed"
        assert sanitizer.check_attribute_name("onmouseover") == "event handler attributes are not allowed"

    def test_class_and_style_attributes_rejected(self, sanitizer):
        assert sanitizer.check_attribute_name("style") == "'style' must be set through modifiers"
        assert sanitizer.check_attribute_name("class") == "'class' must be set through modifiers"

    def test_unlisted_and_malformed_attributes_rejected(self, sanitizer):
        assert sanitizer.check_attribute_name("formaction") == "attribute is not on the allow-list"
        assert sanitizer.check_attribute_name("x y") == "attribute name is malformed"

    @pytest.mark.parametrize(
        "url",
        ["https://example.com", "http://a.b/c?d=1", "mailto:a@b.c", "/relative/path", "#anchor", "page.html"],
    )
    def test_allowed_urls(self, sanitizer, url):
        assert sanitizer.check_url("href", url) is None

    @pytest.mark.parametrize(
        "url",
        ["javascript:alert(1)", "JaVaScRiPt:alert(1)", " java\tscript:alert(1)", "vbscript:x", "file:///etc/passwd"],
    )
    def test_blocked_urls(self, sanitizer, url):
        assert sanitizer.check_url("href", url) is not None

    def test_unlisted_scheme(self, sanitizer):
        assert sanitizer.check_url("href", "ftp://host/file") == "URL scheme 'ftp' is not allowed"

    def test_attribute_values_checked_for_script_schemes(self, sanitizer):
        assert sanitizer.check_attribute_value("data-url", "javascript:alert(1)") == "'javascript:' values are not allowed"
        assert sanitizer.check_attribute_value("title", "\x00 JaVa\nScript:x") == "'javascript:' values are not allowed"
        assert sanitizer.check_attribute_value("data-frame", "DATA:text/html,x") == "'data:text/html' values are not allowed"
        assert sanitizer.check_attribute_value("title", "Hello") is None
        assert sanitizer.check_attribute_value("href", "ftp://host") == "URL scheme 'ftp' is not allowed"

    def test_data_urls(self, sanitizer):
        assert sanitizer.check_url("src", "data:image/png;base64,iVBORw0KGgo=") is None
        assert sanitizer.check_url("href", "data:image/png;base64,iVBORw0KGgo=") is not None
        assert sanitizer.check_url("src", "data:text/html;base64,PHNjcmlwdD4=") is not None
        assert sanitizer.check_url("src", "data:image/svg+xml;base64,PHN2Zz4=") is not None

    @pytest.mark.parametrize(
        "prop,value",
        [
            ("color", "#ff0000"),
            ("color", "rgb(255, 0, 0)"),
            ("margin", "0 auto"),
            ("width", "50%"),
            ("font-family", "system-ui, sans-serif"),
            ("border", "1px solid rgba(0, 0, 0, 0.5)"),
        ],
    )
    def test_allowed_styles(self, sanitizer, prop, value):
        assert sanitizer.check_style(prop, value) is None

    @pytest.mark.parametrize(
        "prop,value",
        [
            ("position", "fixed"),
            ("background", "url(javascript:alert(1))"),
            ("color", "red; position: fixed"),
            ("width", "expression(alert(1))"),
            ("color", "red /* comment */"),
            ("color", "   "),
        ],
    )
    def test_rejected_styles(self, sanitizer, prop, value):
        assert sanitizer.check_style(prop, value) is not None

    def test_clean_drop_mode_warns(self, sanitizer):
        warnings = []
        clean = sanitizer.clean(
            node(classes=["p-4", "<x>"], attributes={"id": "a", "onclick": "x()"}, styles={"color": "red", "position": "fixed"}),
            warnings,
        )
        assert clean.classes == ["p-4"]
        assert clean.attributes == [("id", "a")]
        assert clean.styles == [("color", "red")]
        assert len(warnings) == 3
        assert warnings[1] == (
            "Dropped attribute 'onclick' on 'div' at line 1, column 1: event handler attributes are not allowed"
        )

    def test_attribute_map_order(self):
        clean = CleanNode(classes=["a", "b"], attributes=[("id", "x")], styles=[("color", "red"), ("width", "1px")])
        assert list(attribute_map(clean).items()) == [
            ("class", "a b"),
            ("id", "x"),
            ("style", "color: red; width: 1px"),
        ]
        assert style_text([]) == ""


class TestRenderer:
    """Rendering of evaluated node trees."""

    def test_single_text(self, evaluate, renderer):
        result = render_source(evaluate, renderer, 'text("Hello World")')
        assert result.success is True
        assert result.markup == "<span>Hello World</span>"
        assert result.warnings == []

    def test_nested_layout(self, evaluate, renderer):
        result = render_source(
            evaluate, renderer, 'hstack(justify: :between) { text("Left"); text("Right") }'
        )
        assert result.markup == (
            '<div class="flex flex-row items-center justify-between w-full">'
            "<span>Left</span><span>Right</span></div>"
        )

    def test_sample_document(self, evaluate, renderer, sample_source):
        result = render_source(evaluate, renderer, sample_source)
        assert_valid_html_fragment(result.markup)
        assert_texts_in_order(result.markup, ["Title", "Item 1", "Item 2", "Item 3"])
        assert 'class="text-2xl font-bold"' in result.markup

    def test_text_is_escaped(self, evaluate, renderer):
        result = render_source(evaluate, renderer, 'text("<script>alert(1)</script> & more")')
        assert result.markup == "<span>&lt;script&gt;alert(1)&lt;/script&gt; &amp; more</span>"

    def test_attribute_values_are_escaped(self, evaluate, renderer):
        result = render_source(evaluate, renderer, 'text("x").title("a\\"b<c>")')
        assert 'title="a&#34;b&lt;c&gt;"' in result.markup

    def test_void_element(self, evaluate, renderer):
        result = render_source(evaluate, renderer, 'image(src: "/a.png", alt: "A")')
        assert result.markup == '<img src="/a.png" alt="A" loading="lazy">'

    def test_fragment_renders_children_only(self, evaluate, renderer):
        result = render_source(evaluate, renderer, 'text("a")\ndivider')
        assert result.markup == '<span>a</span><hr class="border-t border-gray-300">'

    def test_hex_color_style(self, evaluate, renderer):
        result = render_source(evaluate, renderer, 'text("x").bg("#336699")')
        assert result.markup == '<span style="background-color: #336699">x</span>'

    def test_dropped_values_warn(self, evaluate, renderer):
        result = render_source(
            evaluate, renderer, 'link("x", destination: "javascript:alert(1)").style("position: fixed")'
        )
        assert result.success is True
        assert result.markup == "<a>x</a>"
        assert len(result.warnings) == 2
        assert "'javascript:' URLs are not allowed" in result.warnings[0]

    def test_strict_mode_faults(self, evaluate, strict_renderer):
        tree = assert_successful_evaluation(evaluate('link("x", destination: "javascript:alert(1)")'))
        result = strict_renderer.render(tree)
        assert_fault(result, FaultKind.SECURITY_VIOLATION, "Rejected attribute 'href' on 'link'")
        assert result.fault.cause == "sanitizer"
        assert result.fault.location.line == 1

    def test_invalid_tag_faults_without_partial_markup(self, renderer):
        root = node(children=[])
        root.append(node(element="text", tag="span", kind=NodeKind.LEAF, text="ok"))
        root.append(node(element="bad", tag="scr ipt", kind=NodeKind.LEAF))
        result = renderer.render(NodeTree(root=root))
        assert_fault(result, FaultKind.RUNTIME_ERROR, "Invalid tag name 'scr ipt'")

    def test_render_is_deterministic(self, evaluate, renderer, sample_source):
        tree = assert_successful_evaluation(evaluate(sample_source))
        assert renderer.render(tree).markup == renderer.render(tree).markup

    async def test_render_document(self, evaluate, renderer):
        tree = assert_successful_evaluation(evaluate('text("Hi")'))
        result = await renderer.render_document(tree, title="A <b> title")
        assert result.success is True
        assert result.markup.startswith("<!DOCTYPE html>")
        assert '<main id="dsl-preview"><span>Hi</span></main>' in result.markup
        assert "<title>A &lt;b&gt; title</title>" in result.markup
        assert "stylesheet" not in result.markup

    async def test_render_document_stylesheet(self, evaluate, test_settings):
        from dsl_playground.core.rendering.html_generator import Renderer

        settings = test_settings.model_copy(update={"preview_stylesheet_url": "https://cdn.example.com/tw.css"})
        tree = assert_successful_evaluation(evaluate('text("Hi")'))
        result = await Renderer(settings).render_document(tree)
        assert '<link rel="stylesheet" href="https://cdn.example.com/tw.css">' in result.markup

    async def test_render_document_propagates_fault(self, evaluate, strict_renderer):
        tree = assert_successful_evaluation(evaluate('text("x").attr("onclick", "y")'))
        result = await strict_renderer.render_document(tree)
        assert_fault(result, FaultKind.SECURITY_VIOLATION)


class TestTemplateEnvironment:
    """Test cases for the shared Jinja2 environment."""

    def test_autoescape_enabled(self):
        env = create_template_environment()
        template = env.from_string("{{ value }}")
        assert template.render(value="<b>") == "&lt;b&gt;"

    def test_plural_filter(self):
        env = create_template_environment()
        template = env.from_string("{{ 'hint' | plural_of(n) }}")
        assert template.render(n=1) == "hint"
        assert template.render(n=2) == "hints"

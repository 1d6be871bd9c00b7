"""
Unit Tests for Diagnostic Formatter
===================================
"""

from dsl_playground.core.rendering.diagnostics import DiagnosticFormatter, excerpt, summarize
from dsl_playground.models.schemas import Fault, FaultKind, SourceLocation


def location(line, column, end_column=None):
    return SourceLocation(line=line, column=column, end_line=line, end_column=end_column)


class TestSummary:
    """Test cases for one-line summaries."""

    def test_with_location(self):
        fault = Fault(kind=FaultKind.SYNTAX_ERROR, message="Unmatched '}'", location=location(3, 5))
        assert summarize(fault) == "SyntaxError at line 3, column 5: Unmatched '}'"

    def test_without_location(self):
        fault = Fault(kind=FaultKind.TIMEOUT, message="Too slow")
        assert summarize(fault) == "Timeout: Too slow"


class TestExcerpt:
    """Test cases for source excerpts."""

    def test_caret_under_span(self):
        source = 'vstack {\n  texx("Hi")\n}'
        text = excerpt(source, location(2, 3, end_column=7))
        assert text == '1 | vstack {\n2 |   texx("Hi")\n  |   ^^^^'

    def test_context_lines_limited(self):
        source = "a\nb\nc\nd\ne"
        text = excerpt(source, location(5, 1))
        assert text.splitlines()[0] == "3 | c"

    def test_gutter_width(self):
        source = "\n".join(f"line{i}" for i in range(1, 12))
        text = excerpt(source, location(10, 1))
        assert text.splitlines()[-2] == "10 | line10"
        assert text.splitlines()[-1] == "   | ^"

    def test_out_of_range(self):
        assert excerpt("one line", location(4, 1)) is None

    def test_column_clamped(self):
        text = excerpt("ab", location(1, 40))
        assert text.splitlines()[-1] == "  |   ^"


class TestDiagnosticFormatter:
    """Test cases for full diagnostic payloads."""

    def test_registry_miss_suggestions(self, evaluate, formatter):
        source = 'vstack {\n  texx("Hi")\n}'
        result = evaluate(source)
        diagnostic = formatter.format(result.fault, source)
        assert diagnostic.kind == FaultKind.RUNTIME_ERROR
        assert diagnostic.summary.startswith("RuntimeError at line 2, column 3:")
        assert diagnostic.hints[0].startswith("Did you mean 'text'")
        assert diagnostic.excerpt.splitlines()[1] == '2 |   texx("Hi")'

    def test_value_method_suggestions(self, evaluate, formatter):
        result = evaluate('text("a".upcas)')
        diagnostic = formatter.format(result.fault)
        assert "'upcase'" in diagnostic.hints[0]

    def test_no_suggestion_for_unrelated_names(self, formatter):
        fault = Fault(
            kind=FaultKind.RUNTIME_ERROR,
            message="undefined element or method 'qqqqqqqq'",
            cause="RegistryMiss",
        )
        assert formatter.format(fault).hints == []

    def test_security_hint(self, formatter):
        fault = Fault(kind=FaultKind.SECURITY_VIOLATION, message="Access to constant 'File' is not allowed")
        diagnostic = formatter.format(fault)
        assert diagnostic.hints == [
            "Only registered elements and their modifiers are available in the playground."
        ]

    def test_html_rendering(self, formatter):
        fault = Fault(
            kind=FaultKind.TIMEOUT,
            message="Evaluation exceeded the time budget of 2 seconds",
            location=location(1, 1),
            trace="  in vstack (line 1, column 1)",
        )
        diagnostic = formatter.format(fault, "loop do\nend")
        assert diagnostic.collapsed is True
        assert 'class="dsl-diagnostic dsl-diagnostic-timeout"' in diagnostic.html
        assert "<details" in diagnostic.html
        assert "<details class=\"dsl-diagnostic-trace\" open" not in diagnostic.html
        assert 'aria-label="1 hint"' in diagnostic.html

    def test_html_escapes_source(self, formatter):
        fault = Fault(kind=FaultKind.SYNTAX_ERROR, message="Unexpected <", location=location(1, 1))
        diagnostic = formatter.format(fault, "<script>")
        assert "<script>" not in diagnostic.html
        assert "&lt;script&gt;" in diagnostic.html

    def test_formatter_without_registry(self):
        fault = Fault(kind=FaultKind.RUNTIME_ERROR, message="undefined method 'sise' for Array", cause="RegistryMiss")
        diagnostic = DiagnosticFormatter().format(fault)
        assert "'size'" in diagnostic.hints[0]

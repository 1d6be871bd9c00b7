"""
Unit Tests for Signature Help Engine
====================================
"""

from dsl_playground.models.schemas import ContextDescriptor

from tests.utils.helpers import split_cursor


def help_marked(analyzer, engine, text):
    source, line, column = split_cursor(text)
    return engine.signature_help(analyzer.analyze(source, line, column))


class TestSignatureHelp:
    """Test cases for signature help."""

    def test_first_argument(self, analyzer, signature_engine):
        signature = help_marked(analyzer, signature_engine, "text(|")
        assert signature is not None
        assert signature.element_name == "text"
        assert signature.active_parameter_index == 0
        assert [p.name for p in signature.parameters] == ["content"]
        assert signature.parameters[0].required is True
        assert signature.label == "text(content: String)"

    def test_second_positional_argument(self, analyzer, signature_engine):
        signature = help_marked(analyzer, signature_engine, 'option("s", |')
        assert signature.element_name == "option"
        assert signature.active_parameter_index == 1
        assert signature.parameters[1].name == "content"

    def test_keyword_argument_selects_parameter(self, analyzer, signature_engine):
        signature = help_marked(analyzer, signature_engine, "vstack(spacing: 4, justify: |")
        assert signature.element_name == "vstack"
        assert signature.parameters[signature.active_parameter_index].name == "justify"

    def test_index_clamped_to_last_parameter(self, analyzer, signature_engine):
        signature = help_marked(analyzer, signature_engine, 'text("a", "b", |')
        assert signature.active_parameter_index == 0

    def test_modifier_signature(self, analyzer, signature_engine):
        signature = help_marked(analyzer, signature_engine, 'text("a").padding(|')
        assert signature.element_name == "padding"
        assert signature.label == ".padding(size: Integer | String)"

    def test_innermost_call_wins(self, analyzer, signature_engine):
        signature = help_marked(analyzer, signature_engine, 'vstack {\n  button(|')
        assert signature.element_name == "button"

    def test_parameter_labels_include_defaults(self, analyzer, signature_engine):
        signature = help_marked(analyzer, signature_engine, "card(|")
        assert signature.parameters[0].label == "elevation: Integer = 1"
        assert signature.parameters[0].default == "1"

    def test_no_enclosing_call(self, analyzer, signature_engine):
        assert help_marked(analyzer, signature_engine, "vstack {\n  |") is None

    def test_unknown_call(self, analyzer, signature_engine):
        assert help_marked(analyzer, signature_engine, "frobnicate(|") is None

    def test_element_without_parameters(self, signature_engine):
        descriptor = ContextDescriptor(line=1, column=1, active_call="div", argument_index=3)
        signature = signature_engine.signature_help(descriptor)
        assert signature.parameters == []
        assert signature.active_parameter_index == 0

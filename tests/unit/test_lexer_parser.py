"""
Unit Tests for DSL Lexer and Parser
===================================

Tokenization, grammar coverage and syntax error locations.
"""

import pytest

from dsl_playground.core.dsl.errors import DSLSecurityError, DSLSyntaxError
from dsl_playground.core.dsl.lexer import TokenType, tokenize
from dsl_playground.core.dsl.parser import parse_program
from dsl_playground.core.dsl.syntax import Call, Name, StringLiteral, walk
from dsl_playground.models.schemas import FaultKind


class TestLexer:
    """Test cases for the lexer."""

    def test_basic_call(self):
        tokens = tokenize('text("Hello")')
        types = [t.type for t in tokens]
        assert types == [
            TokenType.IDENT,
            TokenType.LPAREN,
            TokenType.STRING,
            TokenType.RPAREN,
            TokenType.EOF,
        ]
        assert tokens[2].value == "Hello"

    def test_positions_are_one_based(self):
        tokens = tokenize('vstack {\n  text("a")\n}')
        text_token = next(t for t in tokens if t.value == "text")
        assert (text_token.line, text_token.column) == (2, 3)

    def test_keyword_label_and_symbol(self):
        tokens = tokenize("hstack(justify: :between)")
        types = [t.type for t in tokens]
        assert TokenType.COLON in types
        symbol = next(t for t in tokens if t.type == TokenType.SYMBOL)
        assert symbol.value == "between"

    def test_capitalized_identifier_is_constant(self):
        tokens = tokenize("File.read")
        assert tokens[0].type == TokenType.CONSTANT

    @pytest.mark.parametrize(
        "source,token_type",
        [
            ("$stdout", TokenType.GLOBAL),
            ("@name", TokenType.IVAR),
            ("@@count", TokenType.IVAR),
            ("`ls`", TokenType.BACKTICK),
            ("%x(ls)", TokenType.SHELL),
            ("a::b", TokenType.DCOLON),
        ],
    )
    def test_escape_tokens_are_recognized(self, source, token_type):
        assert token_type in [t.type for t in tokenize(source)]

    def test_newlines_inside_parentheses_are_not_separators(self):
        tokens = tokenize('button(\n  "Go",\n  type: "submit"\n)')
        assert TokenType.NEWLINE not in [t.type for t in tokens]

    def test_newlines_inside_braces_are_separators(self):
        tokens = tokenize('vstack {\n  text("a")\n}')
        assert TokenType.NEWLINE in [t.type for t in tokens]

    def test_comments_skipped_unless_kept(self):
        source = 'text("a") # greeting'
        assert TokenType.COMMENT not in [t.type for t in tokenize(source)]
        assert TokenType.COMMENT in [t.type for t in tokenize(source, keep_comments=True)]

    def test_unterminated_string_strict(self):
        with pytest.raises(DSLSyntaxError, match="Unterminated string literal") as exc_info:
            tokenize('text("Hello')
        assert exc_info.value.location.line == 1
        assert exc_info.value.location.column == 6

    def test_unterminated_string_tolerant(self):
        tokens = tokenize('text("Hello', tolerant=True)
        string = next(t for t in tokens if t.type == TokenType.STRING)
        assert string.terminated is False
        assert tokens[-1].type == TokenType.EOF

    def test_unexpected_character(self):
        with pytest.raises(DSLSyntaxError, match="Unexpected character '~'"):
            tokenize("text(~)")

    def test_huge_integer_literal_strict(self):
        with pytest.raises(DSLSyntaxError, match="Integer literal exceeds 4096 bits") as exc_info:
            tokenize("x = " + "9" * 5000)
        assert exc_info.value.location.line == 1
        assert exc_info.value.location.column == 5

    def test_huge_integer_literal_tolerant(self):
        tokens = tokenize("9" * 5000, tolerant=True)
        assert tokens[0].type == TokenType.NUMBER
        assert tokens[0].value == 0

    def test_float_literal_out_of_range(self):
        with pytest.raises(DSLSyntaxError, match="Float literal is out of range"):
            tokenize("9" * 400 + ".5")

    def test_non_ascii_digit_is_not_a_number(self):
        with pytest.raises(DSLSyntaxError, match="Unexpected character"):
            tokenize("x = \u00b2")

    def test_unicode_escapes(self):
        tokens = tokenize(r'"caf\u00e9 \u{1F600}"')
        assert tokens[0].value == "caf\u00e9 \U0001f600"

    def test_unicode_escape_in_single_quotes_is_literal(self):
        tokens = tokenize(r"'\u00e9'")
        assert tokens[0].value == "\\u00e9"

    @pytest.mark.parametrize("literal", [r'"\u{110000}"', r'"\uD800"', r'"\uZZ"'])
    def test_invalid_unicode_escape(self, literal):
        with pytest.raises(DSLSyntaxError, match="Invalid Unicode escape"):
            tokenize(literal)

    def test_interpolation_parts(self):
        tokens = tokenize('"Item #{i + 1}!"')
        string = tokens[0]
        assert string.parts[0] == "Item "
        assert string.parts[1].source == "i + 1"
        assert string.parts[2] == "!"


class TestParser:
    """Test cases for the parser."""

    def test_element_with_block(self):
        program = parse_program('vstack(spacing: 4) {\n  text("a")\n  text("b")\n}')
        assert len(program.body) == 1
        call = program.body[0]
        assert isinstance(call, Call)
        assert call.name == "vstack"
        assert call.kwargs[0][0] == "spacing"
        assert call.block is not None
        assert [s.name for s in call.block.body] == ["text", "text"]

    def test_modifier_chain(self):
        program = parse_program('text("Hi").bold.padding(4)')
        outer = program.body[0]
        assert isinstance(outer, Call)
        assert outer.name == "padding"
        assert outer.receiver.name == "bold"
        assert outer.receiver.receiver.name == "text"

    def test_do_block_with_params(self):
        program = parse_program("3.times do |i|\n  text(i)\nend")
        call = program.body[0]
        assert call.name == "times"
        assert call.block.params == ["i"]

    def test_bare_name(self):
        program = parse_program("spacer")
        assert isinstance(program.body[0], (Name, Call))

    def test_interpolated_string_is_parsed(self):
        program = parse_program('text("Hi #{name}")')
        literal = program.body[0].args[0]
        assert isinstance(literal, StringLiteral)
        names = [node.name for node in walk(program) if isinstance(node, (Name, Call))]
        assert "name" in names

    def test_unmatched_closing_brace(self):
        source = 'vstack {\n  text("a")\n}\n}'
        with pytest.raises(DSLSyntaxError, match="Unmatched '}'") as exc_info:
            parse_program(source)
        location = exc_info.value.location
        assert (location.line, location.column) == (4, 1)
        assert exc_info.value.kind == FaultKind.SYNTAX_ERROR

    def test_unmatched_end(self):
        with pytest.raises(DSLSyntaxError, match="Unmatched 'end'") as exc_info:
            parse_program('text("a")\nend')
        assert exc_info.value.location.line == 2

    def test_missing_closing_brace(self):
        with pytest.raises(DSLSyntaxError, match="Missing '}'"):
            parse_program('vstack {\n  text("a")\n')

    def test_unclosed_paren(self):
        with pytest.raises(DSLSyntaxError):
            parse_program('text("a"')

    def test_positional_after_keyword(self):
        with pytest.raises(DSLSyntaxError, match="Positional argument after keyword"):
            parse_program('button(type: "submit", "Go")')

    def test_duplicate_keyword(self):
        with pytest.raises(DSLSyntaxError, match="Duplicate keyword argument 'spacing'"):
            parse_program("vstack(spacing: 1, spacing: 2) {}")

    @pytest.mark.parametrize("keyword", ["def", "class", "begin", "return", "lambda"])
    def test_unsupported_keywords(self, keyword):
        with pytest.raises(DSLSyntaxError, match=f"'{keyword}' is not supported"):
            parse_program(f"{keyword} foo")

    def test_nesting_depth_limit(self):
        source = "vstack { " * 10 + "}" * 10
        parse_program(source, max_depth=32)
        with pytest.raises(DSLSyntaxError, match="Nesting deeper than 5 levels"):
            parse_program(source, max_depth=5)

    def test_forbidden_token_raises_security_error(self):
        with pytest.raises(DSLSecurityError, match="Access to constant 'File'") as exc_info:
            parse_program('text("a")\nFile.read("/etc/passwd")')
        assert exc_info.value.location.line == 2
        assert exc_info.value.kind == FaultKind.SECURITY_VIOLATION

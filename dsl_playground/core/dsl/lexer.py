"""
DSL Lexer
=========

Tokenizer for the playground DSL. Runs in strict mode for evaluation, where any
malformed input raises ``DSLSyntaxError``, and in tolerant mode for editor
intelligence, where malformed input degrades into ERROR or unterminated tokens.
"""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union

from dsl_playground.core.dsl.errors import DSLSyntaxError
from dsl_playground.core.dsl.values import MAX_INTEGER_BITS, MAX_INTEGER_DIGITS
from dsl_playground.models.schemas import SourceLocation


class TokenType(str, Enum):
    """Token types produced by the lexer."""

    IDENT = "identifier"
    CONSTANT = "constant"
    KEYWORD = "keyword"
    STRING = "string"
    NUMBER = "number"
    SYMBOL = "symbol"
    GLOBAL = "global"
    IVAR = "instance_variable"
    BACKTICK = "backtick"
    SHELL = "shell"
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    LBRACKET = "["
    RBRACKET = "]"
    DOT = "."
    DOT2 = ".."
    DOT3 = "..."
    COMMA = ","
    COLON = ":"
    DCOLON = "::"
    ARROW = "=>"
    ASSIGN = "="
    OP_ASSIGN = "op="
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    AND = "&&"
    OR = "||"
    BANG = "!"
    PIPE = "|"
    SEMI = ";"
    NEWLINE = "newline"
    COMMENT = "comment"
    ERROR = "error"
    EOF = "eof"


KEYWORDS = frozenset(
    {"do", "end", "if", "elsif", "else", "unless", "while", "then", "break", "true", "false", "nil"}
)

# Keywords that open a construct closed by `end`.
BLOCK_OPENERS = frozenset({"do", "if", "unless", "while"})

_SINGLE_CHAR_TOKENS = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ",": TokenType.COMMA,
    ";": TokenType.SEMI,
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "!": TokenType.BANG,
    "|": TokenType.PIPE,
    "=": TokenType.ASSIGN,
}

_TWO_CHAR_TOKENS = {
    "==": TokenType.EQ,
    "!=": TokenType.NE,
    "<=": TokenType.LE,
    ">=": TokenType.GE,
    "&&": TokenType.AND,
    "||": TokenType.OR,
    "=>": TokenType.ARROW,
    "::": TokenType.DCOLON,
}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "s": " ", "e": "\x1b"}
_UNICODE_ESCAPE = re.compile(r"u(?:([0-9a-fA-F]{4})|\{([0-9a-fA-F]{1,6})\})")


@dataclass
class Interpolation:
    """Embedded `#{...}` expression inside a double-quoted string."""

    source: str
    line: int
    column: int


StringPart = Union[str, Interpolation]


@dataclass
class Token:
    """Lexical token with 1-based position and character offsets."""

    type: TokenType
    value: Any
    line: int
    column: int
    start: int
    end: int
    end_line: int = 0
    end_column: int = 0
    terminated: bool = True
    parts: List[StringPart] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Token text as it is shown in messages."""
        if self.type == TokenType.NEWLINE:
            return "newline"
        if self.type == TokenType.EOF:
            return "end of input"
        if self.type == TokenType.STRING:
            return "string literal"
        return str(self.value)

    def is_keyword(self, *names: str) -> bool:
        return self.type == TokenType.KEYWORD and self.value in names

    def location(self) -> SourceLocation:
        return SourceLocation(
            line=self.line,
            column=self.column,
            end_line=self.end_line or self.line,
            end_column=self.end_column or self.column + 1,
        )


def is_digit(ch: str) -> bool:
    return len(ch) == 1 and "0" <= ch <= "9"


def is_ident_start(ch: str) -> bool:
    return ch == "_" or ch.isalpha()


def is_ident_char(ch: str) -> bool:
    return ch == "_" or ch.isalnum()


class Lexer:
    """Converts DSL source into a token list."""

    def __init__(
        self,
        source: str,
        tolerant: bool = False,
        keep_comments: bool = False,
        line: int = 1,
        column: int = 1,
    ) -> None:
        self.source = source
        self.tolerant = tolerant
        self.keep_comments = keep_comments
        self.pos = 0
        self.line = line
        self.column = column
        self.tokens: List[Token] = []
        # Open brackets; newlines inside ( or [ are not statement separators.
        self._groups: List[str] = []

    def tokenize(self) -> List[Token]:
        """
        Tokenize the whole source.

        Returns:
            Token list terminated by an EOF token

        Raises:
            DSLSyntaxError: In strict mode, on malformed input
        """
        source = self.source
        while self.pos < len(source):
            ch = source[self.pos]

            if ch in " \t\r\f\v":
                self._advance()
            elif ch == "\\" and self._peek(1) == "\n":
                self._advance(2)
            elif ch == "\n":
                self._newline()
            elif ch == "#":
                self._comment()
            elif ch == '"' or ch == "'":
                self._string(ch)
            elif is_digit(ch):
                self._number()
            elif is_ident_start(ch):
                self._identifier()
            elif ch == ":":
                self._colon()
            elif ch == "$":
                self._sigil(TokenType.GLOBAL, 1)
            elif ch == "@":
                self._sigil(TokenType.IVAR, 2 if self._peek(1) == "@" else 1)
            elif ch == "`":
                self._backtick()
            elif ch == "%" and self._peek(1) == "x" and self._peek(2) and self._peek(2) in "({[<|!":
                self._shell()
            elif ch == ".":
                self._dots()
            else:
                self._operator(ch)

        self._emit(TokenType.EOF, "", self.pos, self.line, self.column)
        return self.tokens

    # Scanning helpers

    def _peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.source[index] if index < len(self.source) else ""

    def _advance(self, count: int = 1) -> None:
        for _ in range(count):
            if self.pos >= len(self.source):
                return
            if self.source[self.pos] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1

    def _emit(
        self,
        token_type: TokenType,
        value: Any,
        start: int,
        line: int,
        column: int,
        terminated: bool = True,
        parts: Optional[List[StringPart]] = None,
    ) -> Token:
        token = Token(
            type=token_type,
            value=value,
            line=line,
            column=column,
            start=start,
            end=self.pos,
            end_line=self.line,
            end_column=self.column,
            terminated=terminated,
            parts=parts or [],
        )
        self.tokens.append(token)
        return token

    def _error(self, message: str, line: int, column: int) -> None:
        if not self.tolerant:
            raise DSLSyntaxError(
                message,
                SourceLocation(line=line, column=column, end_line=line, end_column=column + 1),
            )

    # Token scanners

    def _newline(self) -> None:
        start, line, column = self.pos, self.line, self.column
        self._advance()
        if self._groups and self._groups[-1] != "{":
            return
        if self.tokens and self.tokens[-1].type == TokenType.NEWLINE:
            return
        self._emit(TokenType.NEWLINE, "\n", start, line, column)

    def _comment(self) -> None:
        start, line, column = self.pos, self.line, self.column
        while self.pos < len(self.source) and self.source[self.pos] != "\n":
            self._advance()
        if self.keep_comments:
            self._emit(TokenType.COMMENT, self.source[start : self.pos], start, line, column)

    def _string(self, quote: str) -> None:
        start, line, column = self.pos, self.line, self.column
        self._advance()
        parts: List[StringPart] = []
        buffer: List[str] = []
        terminated = False

        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch == quote:
                self._advance()
                terminated = True
                break
            if ch == "\\":
                nxt = self._peek(1)
                if quote == "'":
                    buffer.append(nxt if nxt in ("'", "\\") else "\\" + nxt)
                elif nxt == "u":
                    buffer.append(self._unicode_escape())
                    continue
                else:
                    buffer.append(_ESCAPES.get(nxt, nxt))
                self._advance(2)
                continue
            if quote == '"' and ch == "#" and self._peek(1) == "{":
                if buffer:
                    parts.append("".join(buffer))
                    buffer = []
                interpolation = self._interpolation()
                if interpolation is None:
                    break
                parts.append(interpolation)
                continue
            buffer.append(ch)
            self._advance()

        if buffer:
            parts.append("".join(buffer))

        if not terminated:
            self._error("Unterminated string literal", line, column)

        value = "".join(p for p in parts if isinstance(p, str))
        self._emit(TokenType.STRING, value, start, line, column, terminated=terminated, parts=parts)

    def _unicode_escape(self) -> str:
        """Decode a `\\uXXXX` or `\\u{X...}` escape starting at the backslash."""
        line, column = self.line, self.column
        match = _UNICODE_ESCAPE.match(self.source, self.pos + 1)
        if match is None:
            self._error("Invalid Unicode escape", line, column)
            self._advance(2)
            return "u"
        code = int(match.group(1) or match.group(2), 16)
        self._advance(match.end() - self.pos)
        if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
            self._error("Invalid Unicode escape", line, column)
            return "\ufffd"
        return chr(code)

    def _interpolation(self) -> Optional[Interpolation]:
        line, column = self.line, self.column
        self._advance(2)
        inner_start = self.pos
        inner_line, inner_column = self.line, self.column
        depth = 1
        quote: Optional[str] = None

        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if quote:
                if ch == "\\":
                    self._advance(2)
                    continue
                if ch == quote:
                    quote = None
            elif ch in "\"'":
                quote = ch
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    inner = self.source[inner_start : self.pos]
                    self._advance()
                    return Interpolation(inner, inner_line, inner_column)
            self._advance()

        self._error("Unterminated string interpolation", line, column)
        return None

    def _number(self) -> None:
        start, line, column = self.pos, self.line, self.column
        while is_digit(self._peek()) or (self._peek() == "_" and is_digit(self._peek(1))):
            self._advance()
        is_float = False
        if self._peek() == "." and is_digit(self._peek(1)):
            is_float = True
            self._advance()
            while is_digit(self._peek()) or (self._peek() == "_" and is_digit(self._peek(1))):
                self._advance()
        text = self.source[start : self.pos].replace("_", "")
        value: Union[int, float] = 0
        if is_float:
            value = float(text)
            if math.isinf(value):
                self._error("Float literal is out of range", line, column)
                value = 0.0
        elif len(text) > MAX_INTEGER_DIGITS or int(text).bit_length() > MAX_INTEGER_BITS:
            self._error(f"Integer literal exceeds {MAX_INTEGER_BITS} bits", line, column)
        else:
            value = int(text)
        self._emit(TokenType.NUMBER, value, start, line, column)

    def _read_identifier(self) -> str:
        start = self.pos
        while is_ident_char(self._peek()):
            self._advance()
        if self._peek() in ("?", "!") and self._peek(1) != "=":
            self._advance()
        return self.source[start : self.pos]

    def _identifier(self) -> None:
        start, line, column = self.pos, self.line, self.column
        name = self._read_identifier()
        if name in KEYWORDS:
            token_type = TokenType.KEYWORD
        elif name[0].isupper():
            token_type = TokenType.CONSTANT
        else:
            token_type = TokenType.IDENT
        self._emit(token_type, name, start, line, column)

    def _colon(self) -> None:
        start, line, column = self.pos, self.line, self.column
        if self._peek(1) == ":":
            self._advance(2)
            self._emit(TokenType.DCOLON, "::", start, line, column)
            return

        prev = self.source[self.pos - 1] if self.pos > 0 else ""
        if is_ident_start(self._peek(1)) and not (is_ident_char(prev) or prev in "?!"):
            self._advance()
            name = self._read_identifier()
            self._emit(TokenType.SYMBOL, name, start, line, column)
            return

        self._advance()
        self._emit(TokenType.COLON, ":", start, line, column)

    def _sigil(self, token_type: TokenType, width: int) -> None:
        start, line, column = self.pos, self.line, self.column
        self._advance(width)
        self._read_identifier()
        self._emit(token_type, self.source[start : self.pos], start, line, column)

    def _backtick(self) -> None:
        start, line, column = self.pos, self.line, self.column
        self._advance()
        while self.pos < len(self.source) and self.source[self.pos] != "`":
            self._advance()
        self._advance()
        self._emit(TokenType.BACKTICK, self.source[start : self.pos], start, line, column)

    def _shell(self) -> None:
        start, line, column = self.pos, self.line, self.column
        closers = {"(": ")", "{": "}", "[": "]", "<": ">"}
        opener = self._peek(2)
        closer = closers.get(opener, opener)
        self._advance(3)
        while self.pos < len(self.source) and self.source[self.pos] != closer:
            self._advance()
        self._advance()
        self._emit(TokenType.SHELL, self.source[start : self.pos], start, line, column)

    def _dots(self) -> None:
        start, line, column = self.pos, self.line, self.column
        if self._peek(1) == "." and self._peek(2) == ".":
            self._advance(3)
            self._emit(TokenType.DOT3, "...", start, line, column)
        elif self._peek(1) == ".":
            self._advance(2)
            self._emit(TokenType.DOT2, "..", start, line, column)
        else:
            self._advance()
            self._emit(TokenType.DOT, ".", start, line, column)

    def _operator(self, ch: str) -> None:
        start, line, column = self.pos, self.line, self.column
        pair = ch + self._peek(1)

        if pair in ("+=", "-=", "*=", "/="):
            self._advance(2)
            self._emit(TokenType.OP_ASSIGN, ch, start, line, column)
            return
        if pair in _TWO_CHAR_TOKENS:
            self._advance(2)
            self._emit(_TWO_CHAR_TOKENS[pair], pair, start, line, column)
            return
        if ch in _SINGLE_CHAR_TOKENS:
            token_type = _SINGLE_CHAR_TOKENS[ch]
            if token_type in (TokenType.LPAREN, TokenType.LBRACKET, TokenType.LBRACE):
                self._groups.append(ch)
            elif token_type in (TokenType.RPAREN, TokenType.RBRACKET, TokenType.RBRACE):
                if self._groups:
                    self._groups.pop()
            self._advance()
            self._emit(token_type, ch, start, line, column)
            return

        self._error(f"Unexpected character '{ch}'", line, column)
        self._advance()
        self._emit(TokenType.ERROR, ch, start, line, column)


def tokenize(source: str, tolerant: bool = False, keep_comments: bool = False) -> List[Token]:
    """Tokenize DSL source."""
    return Lexer(source, tolerant=tolerant, keep_comments=keep_comments).tokenize()

"""
DSL Parser
==========

Recursive-descent parser for the playground DSL. The grammar is closed: element
calls with keyword arguments and blocks, modifier chains, literals, local
variables, conditionals and loops. Anything outside it is a syntax error, and
tokens that name host-level capabilities are rejected as security violations.
"""

from typing import Callable, List, Optional, Set, Tuple, Union

from dsl_playground.config.logging import get_logger
from dsl_playground.core.dsl.errors import DSLSecurityError, DSLSyntaxError
from dsl_playground.core.dsl.lexer import Lexer, Token, TokenType
from dsl_playground.core.dsl.syntax import (
    ArrayLiteral,
    Assign,
    BinaryOp,
    Block,
    Break,
    Call,
    If,
    Literal,
    Name,
    Node,
    Program,
    RangeLiteral,
    StringLiteral,
    SymbolLiteral,
    UnaryOp,
    While,
)
from dsl_playground.models.schemas import SourceLocation

logger = get_logger(__name__)

# Ruby constructs that exist outside the DSL grammar.
UNSUPPORTED_KEYWORDS = frozenset(
    {
        "def",
        "class",
        "module",
        "begin",
        "rescue",
        "ensure",
        "return",
        "next",
        "redo",
        "retry",
        "yield",
        "super",
        "alias",
        "undef",
        "case",
        "when",
        "until",
        "for",
        "lambda",
        "proc",
    }
)

FORBIDDEN_TOKENS = {
    TokenType.CONSTANT: "Access to constant '{}' is not allowed in the sandbox",
    TokenType.GLOBAL: "Global variable '{}' is not allowed in the sandbox",
    TokenType.IVAR: "Instance and class variables ('{}') are not allowed in the sandbox",
    TokenType.BACKTICK: "Shell command execution is not allowed in the sandbox",
    TokenType.SHELL: "Shell command execution is not allowed in the sandbox",
    TokenType.DCOLON: "Scope resolution '::' is not allowed in the sandbox",
}

_BINARY_LEVELS: List[Set[TokenType]] = [
    {TokenType.OR},
    {TokenType.AND},
    {TokenType.EQ, TokenType.NE},
    {TokenType.LT, TokenType.LE, TokenType.GT, TokenType.GE},
    {TokenType.PLUS, TokenType.MINUS},
    {TokenType.STAR, TokenType.SLASH, TokenType.PERCENT},
]

Terminator = Callable[[Token], bool]


def forbidden_token_error(token: Token) -> DSLSecurityError:
    """Build the security error for a token outside the sandbox surface."""
    return DSLSecurityError(
        FORBIDDEN_TOKENS[token.type].format(token.value),
        token.location(),
        cause=f"forbidden token: {token.type.value}",
    )


def _span(start: Token, end: Token) -> SourceLocation:
    return SourceLocation(
        line=start.line,
        column=start.column,
        end_line=end.end_line or end.line,
        end_column=end.end_column or end.column + 1,
    )


class Parser:
    """Builds a syntax tree from strict lexer output."""

    def __init__(self, tokens: List[Token], max_depth: int = 32) -> None:
        self.tokens = tokens
        self.index = 0
        self.max_depth = max_depth
        self._depth = 0

    # Token helpers

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    @property
    def previous(self) -> Token:
        return self.tokens[self.index - 1] if self.index > 0 else self.tokens[0]

    def _peek(self, offset: int = 1) -> Token:
        index = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def _advance(self) -> Token:
        token = self.current
        if token.type != TokenType.EOF:
            self.index += 1
        return token

    def _check(self, token_type: TokenType) -> bool:
        return self.current.type == token_type

    def _accept(self, token_type: TokenType) -> Optional[Token]:
        if self._check(token_type):
            return self._advance()
        return None

    def _accept_keyword(self, name: str) -> Optional[Token]:
        if self.current.is_keyword(name):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, message: str) -> Token:
        if self._check(token_type):
            return self._advance()
        raise self._error(message)

    def _error(self, message: str, token: Optional[Token] = None) -> DSLSyntaxError:
        token = token or self.current
        return DSLSyntaxError(message, token.location())

    def _skip_newlines(self) -> None:
        while self.current.type == TokenType.NEWLINE:
            self._advance()

    def _skip_separators(self) -> None:
        while self.current.type in (TokenType.NEWLINE, TokenType.SEMI):
            self._advance()

    def _enter(self) -> None:
        self._depth += 1
        if self._depth > self.max_depth:
            raise self._error(f"Nesting deeper than {self.max_depth} levels")

    def _leave(self) -> None:
        self._depth -= 1

    # Statements

    def parse(self) -> Program:
        """
        Parse a complete program.

        Returns:
            Program node

        Raises:
            DSLSyntaxError: If the source does not match the grammar
            DSLSecurityError: If a forbidden token is encountered
        """
        start = self.current
        body = self._parse_statements(lambda token: False)
        if not self._check(TokenType.EOF):
            raise self._unexpected(self.current)
        return Program(location=_span(start, self.previous), body=body)

    def _parse_statements(self, terminator: Terminator) -> List[Node]:
        body: List[Node] = []
        while True:
            self._skip_separators()
            if self._check(TokenType.EOF) or terminator(self.current):
                return body
            body.append(self._parse_statement())
            if not (
                self.current.type in (TokenType.NEWLINE, TokenType.SEMI, TokenType.EOF)
                or terminator(self.current)
            ):
                raise self._unexpected(self.current)

    def _parse_statement(self) -> Node:
        token = self.current

        if token.is_keyword("if", "unless"):
            return self._parse_conditional()
        if token.is_keyword("while"):
            return self._parse_while()
        if token.is_keyword("break"):
            self._advance()
            return Break(location=token.location())

        if token.type == TokenType.IDENT and self._peek().type in (TokenType.ASSIGN, TokenType.OP_ASSIGN):
            self._check_name(token)
            self._advance()
            operator = self._advance()
            self._skip_newlines()
            value = self._parse_expression()
            return Assign(
                location=_span(token, self.previous),
                name=token.value,
                value=value,
                op=operator.value if operator.type == TokenType.OP_ASSIGN else None,
            )

        return self._parse_expression()

    def _parse_conditional(self) -> Node:
        keyword = self._advance()
        node = self._parse_conditional_tail(keyword, negate=keyword.value == "unless")
        self._expect_end(keyword)
        node.location = _span(keyword, self.previous)
        return node

    def _parse_conditional_tail(self, keyword: Token, negate: bool) -> If:
        condition = self._parse_expression()
        self._accept_keyword("then")
        body = self._parse_statements(lambda t: t.is_keyword("elsif", "else", "end"))

        orelse: List[Node] = []
        branch = self.current
        if branch.is_keyword("elsif") and not negate:
            self._advance()
            orelse = [self._parse_conditional_tail(branch, negate=False)]
        elif branch.is_keyword("else"):
            self._advance()
            orelse = self._parse_statements(lambda t: t.is_keyword("end"))

        return If(
            location=_span(keyword, self.previous),
            condition=condition,
            body=body,
            orelse=orelse,
            negate=negate,
        )

    def _parse_while(self) -> Node:
        keyword = self._advance()
        condition = self._parse_expression()
        body = self._parse_statements(lambda t: t.is_keyword("end"))
        self._expect_end(keyword)
        return While(location=_span(keyword, self.previous), condition=condition, body=body)

    def _expect_end(self, opener: Token) -> None:
        if not self._accept_keyword("end"):
            raise self._error(
                f"Missing 'end' to close '{opener.value}' opened at line {opener.line}, "
                f"column {opener.column}"
            )

    # Expressions

    def _parse_expression(self) -> Node:
        self._enter()
        try:
            left = self._parse_binary(0)
            if self.current.type in (TokenType.DOT2, TokenType.DOT3):
                operator = self._advance()
                right = self._parse_binary(0)
                left = RangeLiteral(
                    location=_span_nodes(left, right),
                    start=left,
                    stop=right,
                    exclusive=operator.type == TokenType.DOT3,
                )
            return left
        finally:
            self._leave()

    def _parse_binary(self, level: int) -> Node:
        if level >= len(_BINARY_LEVELS):
            return self._parse_unary()

        left = self._parse_binary(level + 1)
        while self.current.type in _BINARY_LEVELS[level]:
            operator = self._advance()
            self._skip_newlines()
            right = self._parse_binary(level + 1)
            left = BinaryOp(location=_span_nodes(left, right), op=operator.value, left=left, right=right)
        return left

    def _parse_unary(self) -> Node:
        token = self.current
        if token.type in (TokenType.MINUS, TokenType.BANG, TokenType.PLUS):
            self._advance()
            self._enter()
            try:
                operand = self._parse_unary()
            finally:
                self._leave()
            return UnaryOp(location=_span(token, self.previous), op=token.value, operand=operand)
        return self._parse_postfix()

    def _parse_postfix(self) -> Node:
        node = self._parse_primary()
        while True:
            if self._check(TokenType.NEWLINE) and self._next_significant().type == TokenType.DOT:
                self._skip_newlines()

            if self._check(TokenType.DOT):
                self._advance()
                self._skip_newlines()
                name_token = self.current
                if name_token.type in FORBIDDEN_TOKENS:
                    raise forbidden_token_error(name_token)
                if name_token.type != TokenType.IDENT:
                    raise self._error(f"Expected a method name after '.', found {name_token.text}")
                self._advance()
                node = self._parse_call_tail(name_token, receiver=node)
            elif self._check(TokenType.LBRACKET) and self.current.start == self.previous.end:
                open_token = self._advance()
                index = self._parse_expression()
                self._expect(TokenType.RBRACKET, "Missing ']' to close index")
                node = Call(location=_span(open_token, self.previous), name="[]", receiver=node, args=[index])
            else:
                return node

    def _next_significant(self) -> Token:
        offset = 0
        while self._peek(offset).type == TokenType.NEWLINE:
            offset += 1
        return self._peek(offset)

    def _parse_call_tail(self, name_token: Token, receiver: Optional[Node]) -> Node:
        args: List[Node] = []
        kwargs: List[Tuple[str, Node]] = []
        has_parens = False

        if self._check(TokenType.LPAREN):
            has_parens = True
            args, kwargs = self._parse_arguments(name_token)

        block = None
        if self._check(TokenType.LBRACE) or self.current.is_keyword("do"):
            block = self._parse_block()

        start = receiver.location if receiver is not None else name_token.location()
        location = SourceLocation(
            line=start.line,
            column=start.column,
            end_line=self.previous.end_line,
            end_column=self.previous.end_column,
        )
        if receiver is None and not has_parens and block is None:
            return Name(location=location, name=name_token.value)
        return Call(
            location=location,
            name=name_token.value,
            receiver=receiver,
            args=args,
            kwargs=kwargs,
            block=block,
        )

    def _parse_arguments(self, name_token: Token) -> Tuple[List[Node], List[Tuple[str, Node]]]:
        open_paren = self._advance()
        args: List[Node] = []
        kwargs: List[Tuple[str, Node]] = []

        while not self._check(TokenType.RPAREN):
            if self._check(TokenType.EOF):
                raise self._error(
                    f"Missing ')' to close call to '{name_token.value}' opened at line "
                    f"{open_paren.line}, column {open_paren.column}"
                )

            token = self.current
            label: Optional[str] = None
            if token.type == TokenType.IDENT and self._peek().type == TokenType.COLON:
                label = token.value
                self._advance()
                self._advance()
            elif token.type == TokenType.SYMBOL and self._peek().type == TokenType.ARROW:
                label = token.value
                self._advance()
                self._advance()

            value = self._parse_expression()
            if label is not None:
                if any(existing == label for existing, _ in kwargs):
                    raise self._error(f"Duplicate keyword argument '{label}'", token)
                kwargs.append((label, value))
            elif kwargs:
                raise self._error("Positional argument after keyword arguments", token)
            else:
                args.append(value)

            if not self._accept(TokenType.COMMA) and not self._check(TokenType.RPAREN):
                if self._check(TokenType.EOF):
                    continue
                raise self._error(f"Expected ',' or ')' in arguments, found {self.current.text}")

        self._advance()
        return args, kwargs

    def _parse_block(self) -> Block:
        opener = self._advance()
        brace = opener.type == TokenType.LBRACE
        closer_text = "}" if brace else "end"

        params: List[str] = []
        self._skip_newlines()
        if self._accept(TokenType.PIPE):
            while not self._check(TokenType.PIPE):
                param = self._expect(TokenType.IDENT, "Expected a block parameter name")
                self._check_name(param)
                params.append(param.value)
                if not self._accept(TokenType.COMMA):
                    break
            self._expect(TokenType.PIPE, "Missing '|' after block parameters")

        def terminator(token: Token) -> bool:
            if brace:
                return token.type == TokenType.RBRACE
            return token.is_keyword("end")

        self._enter()
        try:
            body = self._parse_statements(terminator)
        finally:
            self._leave()

        if not terminator(self.current):
            raise self._error(
                f"Missing '{closer_text}' to close block opened at line {opener.line}, "
                f"column {opener.column}"
            )
        self._advance()
        return Block(location=_span(opener, self.previous), params=params, body=body)

    def _parse_primary(self) -> Node:
        token = self.current

        if token.type in FORBIDDEN_TOKENS:
            raise forbidden_token_error(token)

        if token.type == TokenType.NUMBER:
            self._advance()
            return Literal(location=token.location(), value=token.value)

        if token.type == TokenType.STRING:
            self._advance()
            return self._string_literal(token)

        if token.type == TokenType.SYMBOL:
            self._advance()
            return SymbolLiteral(location=token.location(), name=token.value)

        if token.type == TokenType.KEYWORD and token.value in ("true", "false", "nil"):
            self._advance()
            value = {"true": True, "false": False, "nil": None}[token.value]
            return Literal(location=token.location(), value=value)

        if token.type == TokenType.LPAREN:
            self._advance()
            self._skip_newlines()
            node = self._parse_expression()
            self._skip_newlines()
            self._expect(TokenType.RPAREN, "Missing ')' to close parenthesized expression")
            return node

        if token.type == TokenType.LBRACKET:
            return self._array_literal()

        if token.type == TokenType.IDENT:
            self._check_name(token)
            self._advance()
            return self._parse_call_tail(token, receiver=None)

        raise self._unexpected(token)

    def _array_literal(self) -> Node:
        opener = self._advance()
        items: List[Node] = []
        while not self._check(TokenType.RBRACKET):
            if self._check(TokenType.EOF):
                raise self._error(
                    f"Missing ']' to close array opened at line {opener.line}, column {opener.column}"
                )
            items.append(self._parse_expression())
            if not self._accept(TokenType.COMMA) and not self._check(TokenType.RBRACKET):
                raise self._error(f"Expected ',' or ']' in array, found {self.current.text}")
        self._advance()
        return ArrayLiteral(location=_span(opener, self.previous), items=items)

    def _string_literal(self, token: Token) -> Node:
        parts: List[Union[str, List[Node]]] = []
        for part in token.parts:
            if isinstance(part, str):
                parts.append(part)
                continue
            tokens = Lexer(part.source, line=part.line, column=part.column).tokenize()
            inner = Parser(tokens, max_depth=self.max_depth - self._depth)
            parts.append(inner.parse().body)
        return StringLiteral(location=token.location(), parts=parts)

    def _check_name(self, token: Token) -> None:
        if token.value in UNSUPPORTED_KEYWORDS:
            raise self._error(f"'{token.value}' is not supported in the playground DSL", token)

    def _unexpected(self, token: Token) -> DSLSyntaxError:
        if token.type == TokenType.RBRACE:
            return self._error("Unmatched '}' with no open block", token)
        if token.type == TokenType.RPAREN:
            return self._error("Unmatched ')'", token)
        if token.type == TokenType.RBRACKET:
            return self._error("Unmatched ']'", token)
        if token.is_keyword("end"):
            return self._error("Unmatched 'end' with no open block", token)
        if token.type == TokenType.EOF:
            return self._error("Unexpected end of input", token)
        return self._error(f"Unexpected {token.text}", token)


def _span_nodes(left: Node, right: Node) -> SourceLocation:
    return SourceLocation(
        line=left.location.line,
        column=left.location.column,
        end_line=right.location.end_line,
        end_column=right.location.end_column,
    )


def parse_program(source: str, max_depth: int = 32) -> Program:
    """
    Lex and parse DSL source in strict mode.

    Args:
        source: DSL source text
        max_depth: Maximum syntactic nesting depth

    Returns:
        Program node

    Raises:
        DSLSyntaxError: On malformed source
        DSLSecurityError: On tokens outside the sandbox surface
    """
    tokens = Lexer(source).tokenize()
    for token in tokens:
        if token.type in FORBIDDEN_TOKENS:
            raise forbidden_token_error(token)
    return Parser(tokens, max_depth=max_depth).parse()

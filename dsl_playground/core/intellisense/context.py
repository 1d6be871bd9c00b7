"""
Context Analyzer
================

Classifies the syntactic context at an editor cursor so completion and
signature help know what to offer. Works on incomplete, invalid source: the
text before the cursor is tokenized in tolerant mode and a nesting stack of
brackets and ``do``/``if``/``while`` ... ``end`` blocks is rebuilt from it.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from dsl_playground.config.logging import get_logger
from dsl_playground.core.dsl.lexer import Lexer, Token, TokenType, is_ident_char
from dsl_playground.models.schemas import ContextDescriptor, ContextKind

logger = get_logger(__name__)

# Keywords after which a new statement starts.
STATEMENT_KEYWORDS = frozenset({"do", "then", "else"})

# Conditional keywords open a block only at the start of a statement.
CONDITIONAL_OPENERS = frozenset({"if", "unless", "while"})

_CLOSERS = {
    TokenType.RPAREN: "(",
    TokenType.RBRACKET: "[",
    TokenType.RBRACE: "{",
}

_BLOCK_FRAMES = frozenset({"do", "if", "unless", "while"})


@dataclass
class Frame:
    """Unclosed bracket or block at the cursor."""

    opener: str
    owner: Optional[str] = None
    commas: int = 0
    keyword: Optional[str] = None
    params_open: bool = False


def cursor_offset(source: str, line: int, column: int) -> int:
    """
    Character offset of a 1-based line/column cursor.

    Positions past the end of a line or of the buffer are clamped.
    """
    lines = source.split("\n")
    line = min(max(line, 1), len(lines))
    offset = sum(len(text) + 1 for text in lines[: line - 1])
    return offset + min(max(column, 1) - 1, len(lines[line - 1]))


def _statement_start(tokens: List[Token], index: int, closing_pipes: Set[int]) -> bool:
    if index < 0:
        return True
    token = tokens[index]
    if token.type in (TokenType.NEWLINE, TokenType.SEMI, TokenType.LBRACE, TokenType.ASSIGN):
        return True
    if token.type == TokenType.PIPE and index in closing_pipes:
        return True
    return token.type == TokenType.KEYWORD and token.value in STATEMENT_KEYWORDS


class ContextAnalyzer:
    """Rebuilds the nesting context at a cursor from partial source."""

    def __init__(self) -> None:
        self.logger: Any = logger.bind(component="context_analyzer")

    def analyze(self, source: str, line: int, column: int) -> ContextDescriptor:
        """
        Classify the context at a cursor.

        Args:
            source: Full editor buffer, possibly invalid
            line: 1-based cursor line
            column: 1-based cursor column in codepoints

        Returns:
            ContextDescriptor; ``Unknown`` when the context cannot be decided
        """
        try:
            return self._analyze(source, line, column)
        except Exception as e:
            self.logger.warning("Context analysis failed", error=str(e), line=line, column=column)
            return ContextDescriptor(line=line, column=column, kind=ContextKind.UNKNOWN)

    def _analyze(self, source: str, line: int, column: int) -> ContextDescriptor:
        offset = cursor_offset(source, line, column)
        before = source[:offset]
        following = source[offset : offset + 1]

        tokens = Lexer(before, tolerant=True, keep_comments=True).tokenize()[:-1]
        descriptor = ContextDescriptor(line=line, column=column)

        if tokens and tokens[-1].type == TokenType.COMMENT:
            return descriptor
        tokens = [token for token in tokens if token.type != TokenType.COMMENT]

        prefix = ""
        last = tokens[-1] if tokens else None
        if (
            last is not None
            and last.type in (TokenType.IDENT, TokenType.KEYWORD, TokenType.CONSTANT)
            and last.end == len(before)
        ):
            prefix = last.value
            tokens = tokens[:-1]
        descriptor.prefix = prefix

        frames, closing_pipes = self._scan(tokens)
        descriptor.depth = len(frames)
        descriptor.call_stack = [frame.owner for frame in frames if frame.owner]

        call_frame = next((f for f in reversed(frames) if f.opener == "(" and f.owner), None)
        if call_frame is not None:
            descriptor.active_call = call_frame.owner
            descriptor.argument_index = call_frame.commas
            descriptor.active_keyword = call_frame.keyword

        significant = [t for t in tokens if t.type != TokenType.NEWLINE]
        previous_significant = significant[-1] if significant else None
        previous = tokens[-1] if tokens else None
        if previous_significant is not None:
            descriptor.last_token = previous_significant.text

        top = frames[-1] if frames else None
        in_call = top is not None and top.opener == "(" and top.owner is not None

        if previous is not None and previous.type == TokenType.STRING and not previous.terminated:
            descriptor.kind = ContextKind.ARGUMENT_LIST if in_call else ContextKind.UNKNOWN
            return descriptor

        if prefix and following and is_ident_char(following):
            return descriptor

        if previous_significant is not None and previous_significant.type == TokenType.DOT:
            descriptor.kind = ContextKind.MODIFIER_CHAIN
            descriptor.receiver = self._chain_head(tokens, len(tokens) - 1, closing_pipes)
            return descriptor

        if in_call:
            descriptor.kind = ContextKind.ARGUMENT_LIST
            return descriptor

        if top is not None and top.opener in ("(", "["):
            return descriptor

        if _statement_start(tokens, len(tokens) - 1, closing_pipes):
            descriptor.kind = ContextKind.NEW_CALL
        return descriptor

    def _scan(self, tokens: List[Token]) -> Tuple[List[Frame], Set[int]]:
        """Forward pass rebuilding the unclosed frames before the cursor."""
        frames: List[Frame] = []
        closing_pipes: Set[int] = set()
        closed_calls: Dict[int, Optional[str]] = {}

        for index, token in enumerate(tokens):
            previous = tokens[index - 1] if index > 0 else None
            top = frames[-1] if frames else None

            if token.type == TokenType.LPAREN:
                owner = previous.value if previous is not None and previous.type == TokenType.IDENT else None
                frames.append(Frame("(", owner=owner))
            elif token.type == TokenType.LBRACKET:
                frames.append(Frame("["))
            elif token.type == TokenType.LBRACE or token.is_keyword("do"):
                frames.append(Frame(token.value, owner=self._block_owner(tokens, index, closed_calls)))
            elif token.is_keyword(*CONDITIONAL_OPENERS) and _statement_start(tokens, index - 1, closing_pipes):
                frames.append(Frame(token.value))
            elif token.type in _CLOSERS:
                frame = self._pop(frames, {_CLOSERS[token.type]})
                if frame is not None and frame.opener == "(":
                    closed_calls[index] = frame.owner
            elif token.is_keyword("end"):
                self._pop(frames, _BLOCK_FRAMES)
            elif token.type == TokenType.PIPE and top is not None and top.opener in ("{", "do"):
                if previous is not None and (previous.type == TokenType.LBRACE or previous.is_keyword("do")):
                    top.params_open = True
                elif top.params_open:
                    top.params_open = False
                    closing_pipes.add(index)
            elif token.type == TokenType.COMMA and top is not None and top.opener == "(":
                top.commas += 1
                top.keyword = None
            elif (
                token.type == TokenType.COLON
                and top is not None
                and top.opener == "("
                and previous is not None
                and previous.type == TokenType.IDENT
            ):
                top.keyword = previous.value
            elif (
                token.type == TokenType.ARROW
                and top is not None
                and top.opener == "("
                and previous is not None
                and previous.type == TokenType.SYMBOL
            ):
                top.keyword = previous.value

        return frames, closing_pipes

    def _pop(self, frames: List[Frame], openers: Set[str]) -> Optional[Frame]:
        # Unbalanced closers are ignored; depth never drops below zero.
        for position in range(len(frames) - 1, -1, -1):
            if frames[position].opener in openers:
                frame = frames[position]
                del frames[position:]
                return frame
        return None

    def _block_owner(self, tokens: List[Token], index: int, closed_calls: Dict[int, Optional[str]]) -> Optional[str]:
        if index == 0:
            return None
        previous = tokens[index - 1]
        if previous.type == TokenType.IDENT:
            return previous.value
        if previous.type == TokenType.RPAREN:
            return closed_calls.get(index - 1)
        return None

    def _chain_head(self, tokens: List[Token], dot_index: int, closing_pipes: Set[int]) -> Optional[str]:
        """Name of the call that starts the modifier chain ending at ``dot_index``."""
        index = dot_index - 1
        while index >= 0:
            token = tokens[index]
            if token.type == TokenType.NEWLINE:
                index -= 1
                continue
            if token.type in _CLOSERS or token.is_keyword("end"):
                index = self._group_start(tokens, index, closing_pipes) - 1
                continue
            if token.type == TokenType.IDENT:
                before = index - 1
                while before >= 0 and tokens[before].type == TokenType.NEWLINE:
                    before -= 1
                if before >= 0 and tokens[before].type == TokenType.DOT:
                    index = before - 1
                    continue
                return token.value
            return None
        return None

    def _group_start(self, tokens: List[Token], close_index: int, closing_pipes: Set[int]) -> int:
        """Index of the opener matching the closer at ``close_index``, or -1."""
        closer = tokens[close_index]
        depth = 0
        for index in range(close_index, -1, -1):
            token = tokens[index]
            if closer.is_keyword("end"):
                if token.is_keyword("end"):
                    depth += 1
                elif token.is_keyword("do") or (
                    token.is_keyword(*CONDITIONAL_OPENERS)
                    and _statement_start(tokens, index - 1, closing_pipes)
                ):
                    depth -= 1
            elif token.type == closer.type:
                depth += 1
            elif token.type == TokenType.LPAREN and closer.type == TokenType.RPAREN:
                depth -= 1
            elif token.type == TokenType.LBRACKET and closer.type == TokenType.RBRACKET:
                depth -= 1
            elif token.type == TokenType.LBRACE and closer.type == TokenType.RBRACE:
                depth -= 1
            if depth == 0:
                return index
        return -1

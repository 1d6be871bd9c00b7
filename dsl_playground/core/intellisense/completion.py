"""
Completion Engine
=================

Produces ranked completion candidates from the element registry for a
classified cursor context. Insert texts are snippets with ``${n:default}``
placeholders derived from each entry's first example.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from dsl_playground.config.logging import get_logger
from dsl_playground.core.dsl.lexer import Lexer, Token, TokenType
from dsl_playground.core.dsl.registry import ElementRegistry
from dsl_playground.models.schemas import (
    CompletionItem,
    CompletionKind,
    ContextDescriptor,
    ContextKind,
    ElementDefinition,
    ModifierDefinition,
    ParameterSpec,
)

logger = get_logger(__name__)

Definition = Union[ElementDefinition, ModifierDefinition]

# Control keywords offered alongside elements at the start of a statement.
CONTROL_KEYWORDS: Tuple[Tuple[str, str, str], ...] = (
    ("if", "if ${1:condition}\n  $0\nend", "Run the body when the condition is truthy."),
    ("unless", "unless ${1:condition}\n  $0\nend", "Run the body when the condition is falsy."),
    ("while", "while ${1:condition}\n  $0\nend", "Repeat the body while the condition is truthy."),
    ("loop", "loop do\n  $0\nend", "Repeat the body until `break`."),
)


def common_prefix_length(left: str, right: str) -> int:
    """Length of the exact, case-sensitive common prefix."""
    length = 0
    for a, b in zip(left, right):
        if a != b:
            break
        length += 1
    return length


def escape_placeholder(text: str) -> str:
    """Escape snippet metacharacters inside a placeholder default."""
    return text.replace("\\", "\\\\").replace("$", "\\$").replace("}", "\\}")


def _quoted(text: str) -> str:
    return escape_placeholder(text.replace("\\", "\\\\").replace('"', '\\"'))


def example_arguments(name: str, example: str) -> Tuple[List[Optional[Token]], Dict[str, Token]]:
    """
    First-level arguments of the first ``name(...)`` call in an example.

    Returns:
        Tuple of (positional value tokens, keyword value tokens by label);
        only single-token values are collected
    """
    tokens = [t for t in Lexer(example, tolerant=True).tokenize() if t.type != TokenType.NEWLINE]
    for index, token in enumerate(tokens[:-1]):
        if token.type == TokenType.IDENT and token.value == name and tokens[index + 1].type == TokenType.LPAREN:
            return _split_arguments(tokens, index + 2)
    return [], {}


def _split_arguments(tokens: List[Token], start: int) -> Tuple[List[Optional[Token]], Dict[str, Token]]:
    positional: List[Optional[Token]] = []
    keywords: Dict[str, Token] = {}
    depth = 0
    argument: List[Token] = []

    def flush() -> None:
        if len(argument) == 3 and argument[0].type == TokenType.IDENT and argument[1].type == TokenType.COLON:
            keywords[argument[0].value] = argument[2]
        elif len(argument) == 1:
            positional.append(argument[0])
        else:
            positional.append(None)

    for token in tokens[start:]:
        if token.type in (TokenType.LPAREN, TokenType.LBRACKET, TokenType.LBRACE):
            depth += 1
        elif token.type in (TokenType.RPAREN, TokenType.RBRACKET, TokenType.RBRACE):
            if depth == 0:
                if argument:
                    flush()
                break
            depth -= 1
        elif token.type == TokenType.COMMA and depth == 0:
            flush()
            argument = []
            continue
        elif token.type == TokenType.EOF:
            break
        argument.append(token)

    return positional, keywords


class CompletionEngine:
    """Registry-driven completion candidates."""

    def __init__(self, registry: ElementRegistry) -> None:
        self.registry = registry
        self.logger: Any = logger.bind(component="completion_engine")
        self._element_items: Dict[str, CompletionItem] = {
            definition.name: self._item(definition, CompletionKind.FUNCTION)
            for definition in registry.all()
        }
        self._modifier_items: Dict[str, CompletionItem] = {
            definition.name: self._item(definition, CompletionKind.METHOD)
            for definition in registry.modifiers()
        }
        self._keyword_items: List[CompletionItem] = [
            CompletionItem(
                label=label,
                kind=CompletionKind.KEYWORD,
                insert_text=snippet,
                documentation=documentation,
                detail=label,
                is_snippet=True,
            )
            for label, snippet, documentation in CONTROL_KEYWORDS
        ]

    def complete(self, descriptor: ContextDescriptor, prefix: Optional[str] = None) -> List[CompletionItem]:
        """
        Ranked candidates for a cursor context.

        Args:
            descriptor: Context at the cursor
            prefix: Typed prefix; defaults to the descriptor's prefix

        Returns:
            Candidates ordered by longest exact common prefix, then label
        """
        prefix = descriptor.prefix if prefix is None else prefix
        try:
            if descriptor.kind == ContextKind.NEW_CALL:
                candidates = list(self._element_items.values()) + self._keyword_items
            elif descriptor.kind == ContextKind.MODIFIER_CHAIN:
                candidates = self._modifier_candidates(descriptor.receiver)
            else:
                return []
            return self.rank(candidates, prefix)
        except Exception as e:
            self.logger.error("Completion failed", error=str(e), kind=descriptor.kind.value)
            return []

    @staticmethod
    def rank(candidates: Sequence[CompletionItem], prefix: str) -> List[CompletionItem]:
        lowered = prefix.lower()
        matches = [item for item in candidates if item.label.lower().startswith(lowered)]
        return sorted(matches, key=lambda item: (-common_prefix_length(item.label, prefix), item.label))

    def _modifier_candidates(self, receiver: Optional[str]) -> List[CompletionItem]:
        definition = self.registry.lookup(receiver) if receiver else None
        if definition is None:
            if receiver:
                self.logger.debug("RegistryMiss resolving modifier chain", receiver=receiver)
            names: Sequence[str] = self.registry.all_modifier_names()
        else:
            names = definition.modifiers
        return [self._modifier_items[name] for name in names if name in self._modifier_items]

    # Item construction

    def _item(self, definition: Definition, kind: CompletionKind) -> CompletionItem:
        insert_text, is_snippet = self.insert_text(definition)
        return CompletionItem(
            label=definition.name,
            kind=kind,
            insert_text=insert_text,
            documentation=self._documentation(definition),
            detail=definition.signature_label,
            is_snippet=is_snippet,
        )

    def insert_text(self, definition: Definition) -> Tuple[str, bool]:
        """Insert text for an element or modifier and whether it is a snippet."""
        required = definition.required_parameters
        if not required:
            return f"{definition.name}()", False

        positional: List[Optional[Token]] = []
        keywords: Dict[str, Token] = {}
        values: Sequence[str] = definition.values if isinstance(definition, ModifierDefinition) else ()
        if definition.examples:
            positional, keywords = example_arguments(definition.name, definition.examples[0])

        parts: List[str] = []
        number = 1
        positional_params = [p for p in definition.parameters if not p.keyword]
        for param in required:
            if param.type_hint.startswith("**"):
                parts.append(f'${{{number}:key}}: "${{{number + 1}:value}}"')
                number += 2
                continue

            example: Optional[Token] = None
            if param.keyword:
                example = keywords.get(param.name)
            else:
                position = positional_params.index(param)
                if position < len(positional):
                    example = positional[position]

            placeholder = self._placeholder(param, example, number, values)
            parts.append(f"{param.name}: {placeholder}" if param.keyword else placeholder)
            number += 1

        return f"{definition.name}({', '.join(parts)})", True

    def _placeholder(
        self, param: ParameterSpec, example: Optional[Token], number: int, values: Sequence[str]
    ) -> str:
        if example is not None and example.type == TokenType.STRING:
            return f'"${{{number}:{_quoted(example.value)}}}"'
        if example is not None and example.type == TokenType.SYMBOL:
            return f":${{{number}:{escape_placeholder(example.value)}}}"
        if example is not None and example.type in (TokenType.NUMBER, TokenType.IDENT, TokenType.KEYWORD):
            return f"${{{number}:{escape_placeholder(str(example.value))}}}"

        fallback = values[0] if values else param.name
        if fallback.isdigit() or "String" not in param.type_hint:
            return f"${{{number}:{escape_placeholder(fallback)}}}"
        return f'"${{{number}:{_quoted(fallback)}}}"'

    def _documentation(self, definition: Definition) -> str:
        text = definition.description
        if definition.examples:
            text += "\n\n```ruby\n" + "\n\n".join(definition.examples) + "\n```"
        return text

"""
DSL Syntax Tree
===============

Node types produced by the parser and walked by the interpreter.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

from dsl_playground.models.schemas import SourceLocation


@dataclass
class Node:
    location: SourceLocation


@dataclass
class Program(Node):
    body: List[Node] = field(default_factory=list)


@dataclass
class Literal(Node):
    """Number, boolean or nil literal."""

    value: Any = None


@dataclass
class StringLiteral(Node):
    """String literal; interpolated segments hold parsed statement lists."""

    parts: List[Union[str, List[Node]]] = field(default_factory=list)


@dataclass
class SymbolLiteral(Node):
    name: str = ""


@dataclass
class ArrayLiteral(Node):
    items: List[Node] = field(default_factory=list)


@dataclass
class RangeLiteral(Node):
    start: Optional[Node] = None
    stop: Optional[Node] = None
    exclusive: bool = False


@dataclass
class Name(Node):
    """Bare identifier: a local variable or a call without arguments."""

    name: str = ""


@dataclass
class Block(Node):
    params: List[str] = field(default_factory=list)
    body: List[Node] = field(default_factory=list)


@dataclass
class Call(Node):
    name: str = ""
    receiver: Optional[Node] = None
    args: List[Node] = field(default_factory=list)
    kwargs: List[Tuple[str, Node]] = field(default_factory=list)
    block: Optional[Block] = None


@dataclass
class Assign(Node):
    name: str = ""
    value: Optional[Node] = None
    op: Optional[str] = None


@dataclass
class BinaryOp(Node):
    op: str = ""
    left: Optional[Node] = None
    right: Optional[Node] = None


@dataclass
class UnaryOp(Node):
    op: str = ""
    operand: Optional[Node] = None


@dataclass
class If(Node):
    condition: Optional[Node] = None
    body: List[Node] = field(default_factory=list)
    orelse: List[Node] = field(default_factory=list)
    negate: bool = False


@dataclass
class While(Node):
    condition: Optional[Node] = None
    body: List[Node] = field(default_factory=list)


@dataclass
class Break(Node):
    pass


def walk(node: Node):
    """Yield ``node`` and every node below it, depth first."""
    stack: List[Any] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, list):
            stack.extend(reversed(current))
            continue
        if current is None:
            continue
        yield current
        if isinstance(current, Program):
            stack.append(current.body)
        elif isinstance(current, StringLiteral):
            stack.extend(part for part in reversed(current.parts) if isinstance(part, list))
        elif isinstance(current, ArrayLiteral):
            stack.append(current.items)
        elif isinstance(current, RangeLiteral):
            stack.extend([current.stop, current.start])
        elif isinstance(current, Block):
            stack.append(current.body)
        elif isinstance(current, Call):
            stack.extend([current.block, [value for _, value in current.kwargs], current.args, current.receiver])
        elif isinstance(current, Assign):
            stack.append(current.value)
        elif isinstance(current, BinaryOp):
            stack.extend([current.right, current.left])
        elif isinstance(current, UnaryOp):
            stack.append(current.operand)
        elif isinstance(current, If):
            stack.extend([current.orelse, current.body, current.condition])
        elif isinstance(current, While):
            stack.extend([current.body, current.condition])

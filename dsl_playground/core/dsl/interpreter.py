"""
DSL Interpreter
===============

Tree-walking interpreter over the closed DSL grammar. Syntax nodes, value
methods, elements and modifiers are all dispatched through explicit tables;
a name outside those tables has no execution path.

Each evaluation gets a fresh interpreter, scope and parent stack. The only
guard against non-terminating programs is the cooperative ``ExecutionBudget``,
checked on every evaluated node and every loop iteration.
"""

import math
import re
import time
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from dsl_playground.config.logging import get_logger
from dsl_playground.core.dsl.elements import (
    ELEMENT_BUILDERS,
    bind_arguments,
    build_generic,
    extra_attribute_name,
)
from dsl_playground.core.dsl.errors import DSLError, DSLRuntimeError, DSLTimeoutError, RegistryMiss
from dsl_playground.core.dsl.modifiers import MODIFIER_HANDLERS
from dsl_playground.core.dsl.nodes import NodeKind, UINode
from dsl_playground.core.dsl.registry import ElementRegistry
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
from dsl_playground.core.dsl.values import (
    MAX_INTEGER_BITS,
    MAX_INTEGER_DIGITS,
    Symbol,
    inspect_value,
    is_number,
    to_display,
    truthy,
    type_name,
)
from dsl_playground.models.schemas import ElementDefinition, SourceLocation

logger = get_logger(__name__)

MAX_COLLECTION_SIZE = 100_000
MAX_ROUND_DIGITS = 4096

# Python errors raised by builders, handlers and value methods on bad input.
_RUNTIME_ERRORS = (TypeError, ValueError, ZeroDivisionError, IndexError, KeyError, OverflowError)

_LEADING_INT = re.compile(r"^\s*[-+]?\d+")
_LEADING_FLOAT = re.compile(r"^\s*[-+]?\d+(?:\.\d+)?")


class ExecutionBudget:
    """Cooperative wall-clock deadline for one evaluation."""

    def __init__(self, timeout: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.timeout = timeout
        self._clock = clock
        self.started = clock()
        self.deadline = self.started + timeout

    @property
    def elapsed(self) -> float:
        return self._clock() - self.started

    def check(self, location: Optional[SourceLocation] = None) -> None:
        """
        Abort the evaluation once the deadline has passed.

        Raises:
            DSLTimeoutError: If the budget is exhausted
        """
        if self._clock() > self.deadline:
            raise DSLTimeoutError(
                f"Evaluation exceeded the time budget of {self.timeout:g} seconds",
                location,
                cause="wall-clock budget",
            )


class Scope:
    """Local variables. Blocks see and update variables of enclosing scopes."""

    def __init__(self, parent: Optional["Scope"] = None) -> None:
        self.parent = parent
        self.variables: Dict[str, Any] = {}

    def _owner(self, name: str) -> Optional["Scope"]:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.variables:
                return scope
            scope = scope.parent
        return None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._owner(name) is not None

    def get(self, name: str) -> Any:
        owner = self._owner(name)
        return owner.variables[name] if owner is not None else None

    def assign(self, name: str, value: Any) -> None:
        owner = self._owner(name) or self
        owner.variables[name] = value

    def define(self, name: str, value: Any) -> None:
        self.variables[name] = value


class _BreakSignal(Exception):
    def __init__(self, location: SourceLocation) -> None:
        super().__init__("break")
        self.location = location


# Value methods without blocks


class MethodContext:
    """Limits a value method runs under: the evaluation budget and the string cap."""

    def __init__(self, budget: ExecutionBudget, max_string_length: int, location: SourceLocation) -> None:
        self.budget = budget
        self.max_string_length = max_string_length
        self.location = location

    def check(self) -> None:
        self.budget.check(self.location)


ValueMethod = Callable[[Any, List[Any], MethodContext], Any]


def _receiver(value: Any, method: str, *types: type) -> None:
    if isinstance(value, bool) and bool not in types:
        raise RegistryMiss(f"undefined method '{method}' for {type_name(value)}")
    if not isinstance(value, types):
        raise RegistryMiss(f"undefined method '{method}' for {type_name(value)}")


def _arity(method: str, args: List[Any], minimum: int, maximum: int) -> None:
    if not minimum <= len(args) <= maximum:
        raise TypeError(f"wrong number of arguments for '{method}' (given {len(args)})")


def _collection(value: Any, method: str) -> List[Any]:
    _receiver(value, method, list, range)
    if isinstance(value, range) and len(value) > MAX_COLLECTION_SIZE:
        raise ValueError(f"range too large for '{method}' (more than {MAX_COLLECTION_SIZE} items)")
    return list(value)


def _string_too_long(limit: int) -> ValueError:
    return ValueError(f"String exceeds the maximum length of {limit} characters")


def _to_i(value: Any, args: List[Any], context: MethodContext) -> Any:
    _receiver(value, "to_i", int, float, str)
    _arity("to_i", args, 0, 0)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match is None:
            return 0
        digits = match.group().strip().lstrip("+-")
        if len(digits) > MAX_INTEGER_DIGITS or int(digits).bit_length() > MAX_INTEGER_BITS:
            raise OverflowError(f"Integer result exceeds {MAX_INTEGER_BITS} bits")
        return int(match.group())
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"cannot convert {value} to Integer")
    return int(value)


def _to_f(value: Any, args: List[Any], context: MethodContext) -> Any:
    _receiver(value, "to_f", int, float, str)
    _arity("to_f", args, 0, 0)
    if isinstance(value, str):
        match = _LEADING_FLOAT.match(value)
        return float(match.group()) if match else 0.0
    return float(value)


def _to_sym(value: Any, args: List[Any], context: MethodContext) -> Any:
    _receiver(value, "to_sym", str, Symbol)
    _arity("to_sym", args, 0, 0)
    return value if isinstance(value, Symbol) else Symbol(value)


def _round(value: Any, args: List[Any], context: MethodContext) -> Any:
    _receiver(value, "round", int, float)
    _arity("round", args, 0, 1)
    if args:
        digits = args[0]
        if not isinstance(digits, int) or isinstance(digits, bool):
            raise TypeError("round expects an Integer number of digits")
        if abs(digits) > MAX_ROUND_DIGITS:
            raise ValueError(f"round digits must be between -{MAX_ROUND_DIGITS} and {MAX_ROUND_DIGITS}")
        return round(value, digits)
    if isinstance(value, float):
        # Half away from zero.
        return int(math.copysign(math.floor(abs(value) + 0.5), value))
    return value


def _number_method(name: str, fn: Callable[[Any], Any]) -> ValueMethod:
    def method(value: Any, args: List[Any], context: MethodContext) -> Any:
        _receiver(value, name, int, float)
        _arity(name, args, 0, 0)
        return fn(value)

    return method


def _integer_method(name: str, fn: Callable[[int], Any]) -> ValueMethod:
    def method(value: Any, args: List[Any], context: MethodContext) -> Any:
        _receiver(value, name, int)
        _arity(name, args, 0, 0)
        return fn(value)

    return method


def _string_method(name: str, fn: Callable[[str], Any]) -> ValueMethod:
    def method(value: Any, args: List[Any], context: MethodContext) -> Any:
        _receiver(value, name, str)
        _arity(name, args, 0, 0)
        return fn(value)

    return method


def _length(value: Any, args: List[Any], context: MethodContext) -> int:
    _receiver(value, "length", str, list, range)
    _arity("length", args, 0, 0)
    return len(value)


def _reverse(value: Any, args: List[Any], context: MethodContext) -> Any:
    _receiver(value, "reverse", str, list)
    _arity("reverse", args, 0, 0)
    return value[::-1]


def _empty(value: Any, args: List[Any], context: MethodContext) -> bool:
    _receiver(value, "empty?", str, list, range)
    _arity("empty?", args, 0, 0)
    return len(value) == 0


def _include(value: Any, args: List[Any], context: MethodContext) -> bool:
    _receiver(value, "include?", str, list, range)
    _arity("include?", args, 1, 1)
    target = args[0]
    if isinstance(value, str):
        if not isinstance(target, str):
            raise TypeError(f"no implicit conversion of {type_name(target)} into String")
        return target in value
    if isinstance(value, range):
        # Membership is arithmetic; a range is never walked.
        if not is_number(target):
            return False
        if isinstance(target, float):
            if not target.is_integer():
                return False
            target = int(target)
        return target in value
    return any(_equals(item, target, context.check) for item in value)


def _affix(name: str, test: Callable[[str, str], bool]) -> ValueMethod:
    def method(value: Any, args: List[Any], context: MethodContext) -> Any:
        _receiver(value, name, str)
        _arity(name, args, 1, 1)
        if not isinstance(args[0], str):
            raise TypeError(f"no implicit conversion of {type_name(args[0])} into String")
        return test(value, args[0])

    return method


def _split(value: Any, args: List[Any], context: MethodContext) -> List[str]:
    _receiver(value, "split", str)
    _arity("split", args, 0, 1)
    if not args or args[0] is None or args[0] == " ":
        return value.split()
    if not isinstance(args[0], str):
        raise TypeError(f"no implicit conversion of {type_name(args[0])} into String")
    if args[0] == "":
        return list(value)
    return value.split(args[0])


def _join(value: Any, args: List[Any], context: MethodContext) -> str:
    _receiver(value, "join", list)
    _arity("join", args, 0, 1)
    limit = context.max_string_length
    separator = to_display(args[0], limit, context.check) if args else ""
    pieces: List[str] = []
    length = 0
    for item in value:
        piece = to_display(item, limit, context.check)
        length += len(piece) + (len(separator) if pieces else 0)
        if length > limit:
            raise _string_too_long(limit)
        pieces.append(piece)
    return separator.join(pieces)


def _ends(name: str, first: bool) -> ValueMethod:
    def method(value: Any, args: List[Any], context: MethodContext) -> Any:
        _receiver(value, name, list, range)
        _arity(name, args, 0, 1)
        if not args:
            if len(value) == 0:
                return None
            return value[0] if first else value[-1]
        count = args[0]
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise ValueError(f"{name} expects a non-negative Integer")
        if first:
            return _collection(value[:count], name)
        return _collection(value[max(len(value) - count, 0) :], name) if count else []

    return method


def _aggregate(name: str, fn: Callable[[List[Any]], Any]) -> ValueMethod:
    def method(value: Any, args: List[Any], context: MethodContext) -> Any:
        items = _collection(value, name)
        _arity(name, args, 0, 0)
        return fn(items)

    return method


def _sum(items: List[Any]) -> Any:
    total: Any = 0
    for item in items:
        if not is_number(item):
            raise TypeError(f"{type_name(item)} can't be coerced into Integer")
        total += item
        if isinstance(total, int) and total.bit_length() > MAX_INTEGER_BITS:
            raise OverflowError(f"Integer result exceeds {MAX_INTEGER_BITS} bits")
    return total


def _extreme(pick: Callable[..., Any]) -> Callable[[List[Any]], Any]:
    def fn(items: List[Any]) -> Any:
        if not items:
            return None
        for item in items:
            if not (is_number(item) or isinstance(item, str)):
                raise TypeError(f"comparison of {type_name(item)} failed")
        return pick(items)

    return fn


def _to_a(value: Any, args: List[Any], context: MethodContext) -> List[Any]:
    _arity("to_a", args, 0, 0)
    return _collection(value, "to_a")


def _index(value: Any, args: List[Any], context: MethodContext) -> Any:
    _receiver(value, "[]", list, str, range)
    _arity("[]", args, 1, 1)
    index = args[0]
    if not isinstance(index, int) or isinstance(index, bool):
        raise TypeError(f"no implicit conversion of {type_name(index)} into Integer")
    if -len(value) <= index < len(value):
        return value[index]
    return None


def _is_nil(value: Any, args: List[Any], context: MethodContext) -> bool:
    _arity("nil?", args, 0, 0)
    return value is None


def _to_s(value: Any, args: List[Any], context: MethodContext) -> str:
    _arity("to_s", args, 0, 0)
    return to_display(value, context.max_string_length, context.check)


def _inspect(value: Any, args: List[Any], context: MethodContext) -> str:
    _arity("inspect", args, 0, 0)
    return inspect_value(value, context.max_string_length, context.check)


VALUE_METHODS: Mapping[str, ValueMethod] = MappingProxyType(
    {
        "to_s": _to_s,
        "inspect": _inspect,
        "to_i": _to_i,
        "to_f": _to_f,
        "to_sym": _to_sym,
        "abs": _number_method("abs", abs),
        "round": _round,
        "floor": _number_method("floor", math.floor),
        "ceil": _number_method("ceil", math.ceil),
        "zero?": _number_method("zero?", lambda v: v == 0),
        "even?": _integer_method("even?", lambda v: v % 2 == 0),
        "odd?": _integer_method("odd?", lambda v: v % 2 == 1),
        "upcase": _string_method("upcase", str.upper),
        "downcase": _string_method("downcase", str.lower),
        "capitalize": _string_method("capitalize", str.capitalize),
        "strip": _string_method("strip", str.strip),
        "length": _length,
        "size": _length,
        "reverse": _reverse,
        "empty?": _empty,
        "include?": _include,
        "start_with?": _affix("start_with?", str.startswith),
        "end_with?": _affix("end_with?", str.endswith),
        "split": _split,
        "join": _join,
        "first": _ends("first", first=True),
        "last": _ends("last", first=False),
        "sum": _aggregate("sum", _sum),
        "count": _aggregate("count", len),
        "min": _aggregate("min", _extreme(min)),
        "max": _aggregate("max", _extreme(max)),
        "to_a": _to_a,
        "[]": _index,
        "nil?": _is_nil,
    }
)


def _equals(left: Any, right: Any, check: Optional[Callable[[], None]] = None) -> bool:
    if check is not None:
        check()
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    if isinstance(left, list):
        if left is right:
            return True
        return len(left) == len(right) and all(_equals(a, b, check) for a, b in zip(left, right))
    return bool(left == right)


def _compare(op: str, left: Any, right: Any) -> bool:
    comparable = (is_number(left) and is_number(right)) or (
        isinstance(left, str) and isinstance(right, str)
    )
    if not comparable:
        raise TypeError(f"comparison of {type_name(left)} with {inspect_value(right)} failed")
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


class Interpreter:
    """Evaluates a parsed program into top-level UI nodes."""

    def __init__(
        self,
        registry: ElementRegistry,
        budget: ExecutionBudget,
        max_string_length: int = 100_000,
    ) -> None:
        self.registry = registry
        self.budget = budget
        self.max_string_length = max_string_length
        self.roots: List[UINode] = []
        self.warnings: List[str] = []
        self._parents: List[UINode] = []
        self.logger: Any = logger.bind(component="interpreter")

        self._dispatch: Dict[type, Callable[[Any, Scope], Any]] = {
            Literal: self._literal,
            StringLiteral: self._string,
            SymbolLiteral: self._symbol,
            ArrayLiteral: self._array,
            RangeLiteral: self._range,
            Name: self._name,
            Call: self._call,
            Assign: self._assign,
            BinaryOp: self._binary,
            UnaryOp: self._unary,
            If: self._if,
            While: self._while,
            Break: self._break,
        }
        self._block_methods: Dict[str, Callable[..., Any]] = {
            "times": self._times,
            "upto": self._upto,
            "each": self._each,
            "each_with_index": self._each_with_index,
            "map": self._map,
        }

    def run(self, program: Program) -> Tuple[List[UINode], List[str]]:
        """
        Execute a program.

        Args:
            program: Parsed and capability-checked program

        Returns:
            Tuple of (top-level nodes in document order, warnings)

        Raises:
            DSLRuntimeError: If execution fails
            DSLTimeoutError: If the execution budget runs out
        """
        scope = Scope()
        try:
            self._execute(program.body, scope)
        except _BreakSignal as signal:
            raise DSLRuntimeError("'break' used outside of a loop", signal.location)
        except RecursionError:
            raise DSLRuntimeError("stack level too deep", program.location)

        if not self.roots:
            self._warn(program.location, "Source produced no elements")

        self.logger.debug("Program executed", roots=len(self.roots), warnings=len(self.warnings))
        return self.roots, self.warnings

    # Core dispatch

    def _execute(self, body: List[Node], scope: Scope) -> Any:
        result = None
        for statement in body:
            result = self._evaluate(statement, scope)
        return result

    def _evaluate(self, node: Node, scope: Scope) -> Any:
        self.budget.check(node.location)
        handler = self._dispatch.get(type(node))
        if handler is None:
            raise DSLRuntimeError(f"Unsupported construct '{type(node).__name__}'", node.location)
        try:
            return handler(node, scope)
        except RegistryMiss as exc:
            raise DSLRuntimeError(str(exc), node.location, cause="RegistryMiss") from exc
        except _RUNTIME_ERRORS as exc:
            raise DSLRuntimeError(str(exc) or type(exc).__name__, node.location) from exc

    def _warn(self, location: SourceLocation, message: str) -> None:
        self.warnings.append(f"line {location.line}, column {location.column}: {message}")
        self.logger.debug("Evaluation warning", message=message, line=location.line)

    # Literals

    def _literal(self, node: Literal, scope: Scope) -> Any:
        return node.value

    def _symbol(self, node: SymbolLiteral, scope: Scope) -> Symbol:
        return Symbol(node.name)

    def _string(self, node: StringLiteral, scope: Scope) -> str:
        context = self._context(node.location)
        pieces: List[str] = []
        length = 0
        for part in node.parts:
            if isinstance(part, str):
                piece = part
            else:
                piece = to_display(self._execute(part, scope), self.max_string_length, context.check)
            length += len(piece)
            if length > self.max_string_length:
                raise _string_too_long(self.max_string_length)
            pieces.append(piece)
        return "".join(pieces)

    def _array(self, node: ArrayLiteral, scope: Scope) -> List[Any]:
        return [self._evaluate(item, scope) for item in node.items]

    def _range(self, node: RangeLiteral, scope: Scope) -> range:
        start = self._evaluate(node.start, scope)
        stop = self._evaluate(node.stop, scope)
        for bound in (start, stop):
            if not isinstance(bound, int) or isinstance(bound, bool):
                raise TypeError(f"bad value for range: {inspect_value(bound)}")
        return range(start, stop if node.exclusive else stop + 1)

    # Names, calls and elements

    def _name(self, node: Name, scope: Scope) -> Any:
        if node.name in scope:
            return scope.get(node.name)
        return self._call_function(node.name, [], [], None, node, scope)

    def _call(self, node: Call, scope: Scope) -> Any:
        if node.receiver is None:
            return self._call_function(node.name, node.args, node.kwargs, node.block, node, scope)

        receiver = self._evaluate(node.receiver, scope)
        if isinstance(receiver, UINode):
            return self._apply_modifier(receiver, node, scope)
        return self._call_method(receiver, node, scope)

    def _call_function(
        self,
        name: str,
        arg_nodes: List[Node],
        kwarg_nodes: List[Tuple[str, Node]],
        block: Optional[Block],
        node: Node,
        scope: Scope,
    ) -> Any:
        if name == "loop":
            return self._loop(arg_nodes, kwarg_nodes, block, node, scope)

        definition = self.registry.lookup(name)
        if definition is not None:
            return self._build_element(definition, arg_nodes, kwarg_nodes, block, node, scope)

        if name in scope:
            raise DSLRuntimeError(f"'{name}' is a local variable, not an element", node.location)
        if self.registry.lookup_modifier(name) is not None:
            raise DSLRuntimeError(
                f"'{name}' is a modifier; chain it onto an element, e.g. text(\"Hi\").{name}(...)",
                node.location,
                cause="RegistryMiss",
            )
        raise DSLRuntimeError(
            f"undefined element or method '{name}'", node.location, cause="RegistryMiss"
        )

    def _arguments(
        self, arg_nodes: List[Node], kwarg_nodes: List[Tuple[str, Node]], scope: Scope
    ) -> Tuple[List[Any], Dict[str, Any]]:
        args = [self._evaluate(arg, scope) for arg in arg_nodes]
        kwargs = {label: self._evaluate(value, scope) for label, value in kwarg_nodes}
        return args, kwargs

    def _build_element(
        self,
        definition: ElementDefinition,
        arg_nodes: List[Node],
        kwarg_nodes: List[Tuple[str, Node]],
        block: Optional[Block],
        node: Node,
        scope: Scope,
    ) -> UINode:
        args, kwargs = self._arguments(arg_nodes, kwarg_nodes, scope)
        bound, extras = bind_arguments(definition, args, kwargs)

        element = UINode(
            element=definition.name,
            tag=definition.tag,
            kind=NodeKind(definition.kind.value),
            location=node.location,
        )
        ELEMENT_BUILDERS.get(definition.name, build_generic)(element, bound)
        for key, value in extras.items():
            self._apply_extra(element, key, value)

        # Attach before running the block so children follow document order.
        if self._parents:
            self._parents[-1].append(element)
        else:
            element.attached = True
            self.roots.append(element)

        if block is not None:
            if element.kind != NodeKind.CONTAINER:
                raise DSLRuntimeError(
                    f"'{definition.name}' cannot contain child elements", block.location
                )
            self._parents.append(element)
            try:
                self._run_block(block, scope, [])
            except DSLError as exc:
                exc.add_frame(
                    f"{definition.name} (line {node.location.line}, column {node.location.column})"
                )
                raise
            finally:
                self._parents.pop()

        return element

    def _apply_extra(self, element: UINode, key: str, value: Any) -> None:
        if value is None or value is False:
            return
        if key == "class_name":
            element.add_class(to_display(value))
            return
        name = extra_attribute_name(key)
        element.attributes[name] = name if value is True else to_display(value)

    def _apply_modifier(self, element: UINode, node: Call, scope: Scope) -> UINode:
        args, kwargs = self._arguments(node.args, node.kwargs, scope)
        if node.block is not None:
            raise DSLRuntimeError(f"Modifier '{node.name}' does not take a block", node.block.location)

        definition = self.registry.lookup_modifier(node.name)
        handler = MODIFIER_HANDLERS.get(definition.name) if definition is not None else None
        if definition is None or handler is None:
            self._warn(node.location, f"Unknown modifier '{node.name}' on '{element.element}' was ignored")
            return element

        owner = self.registry.lookup(element.element)
        if owner is not None and definition.name not in owner.modifiers:
            self._warn(node.location, f"Modifier '{node.name}' is not declared for '{element.element}'")

        handler(element, args, kwargs)
        return element

    def _call_method(self, receiver: Any, node: Call, scope: Scope) -> Any:
        if node.name in self._block_methods:
            args, kwargs = self._arguments(node.args, node.kwargs, scope)
            if kwargs:
                raise TypeError(f"'{node.name}' does not take keyword arguments")
            return self._block_methods[node.name](receiver, args, node.block, node, scope)

        method = VALUE_METHODS.get(node.name)
        if method is None:
            raise RegistryMiss(f"undefined method '{node.name}' for {type_name(receiver)}")
        if node.block is not None:
            raise TypeError(f"'{node.name}' does not take a block")

        args, kwargs = self._arguments(node.args, node.kwargs, scope)
        if kwargs:
            raise TypeError(f"'{node.name}' does not take keyword arguments")
        result = method(receiver, args, self._context(node.location))
        if isinstance(result, str):
            return self._checked_string(result)
        return result

    def _run_block(self, block: Block, scope: Scope, values: List[Any]) -> Any:
        inner = Scope(scope)
        for index, param in enumerate(block.params):
            inner.define(param, values[index] if index < len(values) else None)
        return self._execute(block.body, inner)

    # Iteration

    def _require_block(self, name: str, block: Optional[Block]) -> Block:
        if block is None:
            raise TypeError(f"'{name}' requires a block")
        return block

    def _iterate(self, items: Any, block: Block, node: Node, scope: Scope, with_index: bool = False) -> None:
        for index, item in enumerate(items):
            self.budget.check(node.location)
            try:
                self._run_block(block, scope, [item, index] if with_index else [item])
            except _BreakSignal:
                return

    def _loop(
        self,
        arg_nodes: List[Node],
        kwarg_nodes: List[Tuple[str, Node]],
        block: Optional[Block],
        node: Node,
        scope: Scope,
    ) -> None:
        if arg_nodes or kwarg_nodes:
            raise TypeError("'loop' does not take arguments")
        body = self._require_block("loop", block)
        while True:
            self.budget.check(node.location)
            try:
                self._run_block(body, scope, [])
            except _BreakSignal:
                return None

    def _times(self, receiver: Any, args: List[Any], block: Optional[Block], node: Node, scope: Scope) -> Any:
        _receiver(receiver, "times", int)
        _arity("times", args, 0, 0)
        self._iterate(range(receiver), self._require_block("times", block), node, scope)
        return receiver

    def _upto(self, receiver: Any, args: List[Any], block: Optional[Block], node: Node, scope: Scope) -> Any:
        _receiver(receiver, "upto", int)
        _arity("upto", args, 1, 1)
        limit = args[0]
        if not isinstance(limit, int) or isinstance(limit, bool):
            raise TypeError(f"no implicit conversion of {type_name(limit)} into Integer")
        self._iterate(range(receiver, limit + 1), self._require_block("upto", block), node, scope)
        return receiver

    def _each(self, receiver: Any, args: List[Any], block: Optional[Block], node: Node, scope: Scope) -> Any:
        _receiver(receiver, "each", list, range)
        _arity("each", args, 0, 0)
        self._iterate(receiver, self._require_block("each", block), node, scope)
        return receiver

    def _each_with_index(
        self, receiver: Any, args: List[Any], block: Optional[Block], node: Node, scope: Scope
    ) -> Any:
        _receiver(receiver, "each_with_index", list, range)
        _arity("each_with_index", args, 0, 0)
        self._iterate(
            receiver,
            self._require_block("each_with_index", block),
            node,
            scope,
            with_index=True,
        )
        return receiver

    def _map(self, receiver: Any, args: List[Any], block: Optional[Block], node: Node, scope: Scope) -> Any:
        _receiver(receiver, "map", list, range)
        _arity("map", args, 0, 0)
        body = self._require_block("map", block)
        results: List[Any] = []
        for item in receiver:
            self.budget.check(node.location)
            try:
                results.append(self._run_block(body, scope, [item]))
            except _BreakSignal:
                return None
            if len(results) > MAX_COLLECTION_SIZE:
                raise ValueError(f"collection exceeds {MAX_COLLECTION_SIZE} items")
        return results

    # Operators and statements

    def _assign(self, node: Assign, scope: Scope) -> Any:
        value = self._evaluate(node.value, scope)
        if node.op is not None:
            if node.name not in scope:
                raise DSLRuntimeError(f"undefined local variable '{node.name}'", node.location)
            value = self._operate(node.op, scope.get(node.name), value, node.location)
        scope.assign(node.name, value)
        return value

    def _binary(self, node: BinaryOp, scope: Scope) -> Any:
        left = self._evaluate(node.left, scope)
        if node.op == "&&":
            return self._evaluate(node.right, scope) if truthy(left) else left
        if node.op == "||":
            return left if truthy(left) else self._evaluate(node.right, scope)
        right = self._evaluate(node.right, scope)
        return self._operate(node.op, left, right, node.location)

    def _operate(self, op: str, left: Any, right: Any, location: SourceLocation) -> Any:
        check = self._context(location).check
        if op == "==":
            return _equals(left, right, check)
        if op == "!=":
            return not _equals(left, right, check)
        if op in ("<", "<=", ">", ">="):
            return _compare(op, left, right)

        if is_number(left) and is_number(right):
            return self._arithmetic(op, left, right)

        if op == "+":
            if isinstance(left, str):
                if not isinstance(right, str):
                    raise TypeError(f"no implicit conversion of {type_name(right)} into String")
                return self._checked_string(left + right)
            if isinstance(left, list) and isinstance(right, list):
                return self._checked_collection(left + right)
        if op == "-" and isinstance(left, list) and isinstance(right, list):
            return [item for item in left if not any(_equals(item, other, check) for other in right)]
        if op == "*" and isinstance(left, (str, list)) and isinstance(right, int) and not isinstance(right, bool):
            if right < 0:
                raise ValueError("negative argument")
            limit = self.max_string_length if isinstance(left, str) else MAX_COLLECTION_SIZE
            if len(left) * right > limit:
                raise ValueError(f"result would exceed the maximum size of {limit}")
            return left * right

        raise TypeError(f"undefined method '{op}' for {type_name(left)} with {type_name(right)}")

    def _arithmetic(self, op: str, left: Any, right: Any) -> Any:
        if op == "+":
            result = left + right
        elif op == "-":
            result = left - right
        elif op == "*":
            result = left * right
        elif op in ("/", "%"):
            if right == 0:
                raise ZeroDivisionError("divided by 0")
            if op == "%":
                result = left % right
            elif isinstance(left, int) and isinstance(right, int):
                result = left // right
            else:
                result = left / right
        else:
            raise TypeError(f"unsupported operator '{op}'")

        if isinstance(result, int) and result.bit_length() > MAX_INTEGER_BITS:
            raise OverflowError(f"Integer result exceeds {MAX_INTEGER_BITS} bits")
        return result

    def _unary(self, node: UnaryOp, scope: Scope) -> Any:
        operand = self._evaluate(node.operand, scope)
        if node.op == "!":
            return not truthy(operand)
        if not is_number(operand):
            raise TypeError(f"undefined method '{node.op}@' for {type_name(operand)}")
        return -operand if node.op == "-" else operand

    def _if(self, node: If, scope: Scope) -> Any:
        condition = truthy(self._evaluate(node.condition, scope))
        if node.negate:
            condition = not condition
        return self._execute(node.body if condition else node.orelse, scope)

    def _while(self, node: While, scope: Scope) -> None:
        while truthy(self._evaluate(node.condition, scope)):
            self.budget.check(node.location)
            try:
                self._execute(node.body, scope)
            except _BreakSignal:
                break
        return None

    def _break(self, node: Break, scope: Scope) -> None:
        raise _BreakSignal(node.location)

    # Size guards

    def _context(self, location: SourceLocation) -> MethodContext:
        return MethodContext(self.budget, self.max_string_length, location)

    def _checked_string(self, value: str) -> str:
        if len(value) > self.max_string_length:
            raise _string_too_long(self.max_string_length)
        return value

    def _checked_collection(self, value: List[Any]) -> List[Any]:
        if len(value) > MAX_COLLECTION_SIZE:
            raise ValueError(f"collection exceeds {MAX_COLLECTION_SIZE} items")
        return value

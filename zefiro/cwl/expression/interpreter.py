from __future__ import annotations

import json
import math
from collections.abc import Callable, MutableMapping, MutableSequence
from typing import Any

from zefiro.core.exception import (
    ExpressionTypeError,
    UndefinedReference,
    UnsupportedExpression,
)
from zefiro.cwl.expression.parser import (
    ArrayLiteral,
    Assign,
    Binary,
    Call,
    Conditional,
    ExprStmt,
    Identifier,
    If,
    Index,
    Literal,
    Member,
    Node,
    ObjectLiteral,
    Program,
    Return,
    Unary,
    VarDecl,
    to_property_name,
)

GLOBALS = ("inputs", "outputs", "self", "runtime")
READ_ONLY_GLOBALS = ("inputs", "outputs", "runtime")


class _Return(Exception):
    def __init__(self, value: Any):
        super().__init__()
        self.value: Any = value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    elif _is_number(value):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    elif isinstance(value, str):
        return value != ""
    else:
        return True


def to_js_string(value: Any) -> str:
    if value is None:
        return "null"
    elif isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        elif math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        elif value.is_integer():
            return str(int(value))
        else:
            return repr(value)
    elif isinstance(value, str):
        return value
    elif isinstance(value, MutableSequence):
        return ",".join("" if v is None else to_js_string(v) for v in value)
    elif isinstance(value, MutableMapping):
        return "[object Object]"
    else:
        return str(value)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    elif isinstance(value, bool):
        return "boolean"
    elif _is_number(value):
        return "number"
    elif isinstance(value, str):
        return "string"
    elif isinstance(value, MutableSequence):
        return "array"
    else:
        return "object"


def _slice_bounds(length: int, start: Any = None, end: Any = None) -> tuple[int, int]:
    start = 0 if start is None else int(start)
    end = length if end is None else int(end)
    if start < 0:
        start = max(length + start, 0)
    if end < 0:
        end = max(length + end, 0)
    return min(start, length), min(end, length)


def _string_replace(value: str, old: Any, new: Any) -> str:
    return value.replace(to_js_string(old), to_js_string(new), 1)


def _string_split(value: str, separator: Any = None, limit: Any = None) -> list[str]:
    if separator is None:
        parts = [value]
    elif separator == "":
        parts = list(value)
    else:
        parts = value.split(to_js_string(separator))
    return parts if limit is None else parts[: int(limit)]


def _substring(value: str, start: Any = None, end: Any = None) -> str:
    length = len(value)
    start = min(max(int(start or 0), 0), length)
    end = length if end is None else min(max(int(end), 0), length)
    return value[min(start, end) : max(start, end)]


STRING_METHODS: MutableMapping[str, Callable[..., Any]] = {
    "charAt": lambda s, i=0: s[int(i)] if 0 <= int(i) < len(s) else "",
    "concat": lambda s, *args: s + "".join(to_js_string(a) for a in args),
    "endsWith": lambda s, suffix: s.endswith(to_js_string(suffix)),
    "includes": lambda s, sub: to_js_string(sub) in s,
    "indexOf": lambda s, sub: s.find(to_js_string(sub)),
    "replace": _string_replace,
    "slice": lambda s, start=None, end=None: s[slice(*_slice_bounds(len(s), start, end))],
    "split": _string_split,
    "startsWith": lambda s, prefix: s.startswith(to_js_string(prefix)),
    "substring": _substring,
    "toLowerCase": lambda s: s.lower(),
    "toUpperCase": lambda s: s.upper(),
    "trim": lambda s: s.strip(),
}

ARRAY_METHODS: MutableMapping[str, Callable[..., Any]] = {
    "concat": lambda a, *args: list(a)
    + [v for arg in args for v in (arg if isinstance(arg, MutableSequence) else [arg])],
    "includes": lambda a, v: v in a,
    "indexOf": lambda a, v: a.index(v) if v in a else -1,
    "join": lambda a, sep=",": to_js_string(sep).join(
        "" if v is None else to_js_string(v) for v in a
    ),
    "slice": lambda a, start=None, end=None: list(a[slice(*_slice_bounds(len(a), start, end))]),
}


class Interpreter:
    """Evaluates parsed expressions against a CWL evaluation context."""

    def __init__(self, context: MutableMapping[str, Any]):
        self.globals: MutableMapping[str, Any] = {
            name: context.get(name) for name in GLOBALS
        }
        self.locals: MutableMapping[str, Any] = {}
        self.constants: set[str] = set()
        self.read_only: MutableMapping[int, str] = {}
        for name in READ_ONLY_GLOBALS:
            self._protect(self.globals[name], name)

    def _assign(self, node: Assign) -> Any:
        value = self.evaluate(node.value)
        target = node.target
        if isinstance(target, Identifier):
            if target.name in self.locals:
                if target.name in self.constants:
                    raise ExpressionTypeError(
                        f"Assignment to constant variable `{target.name}`",
                        offset=node.offset,
                    )
                current = self.locals[target.name]
                self.locals[target.name] = self._compound(node, current, value, None)
            elif target.name in GLOBALS:
                raise ExpressionTypeError(
                    f"Cannot reassign `{target.name}`", offset=node.offset
                )
            else:
                raise UndefinedReference(
                    f"Assignment to undeclared variable `{target.name}`",
                    offset=target.offset,
                )
            return self.locals[target.name]
        container = self.evaluate(target.obj)
        # Aliases of read-only objects are read-only too
        if (root := self.read_only.get(id(container))) is not None:
            raise ExpressionTypeError(
                f"Cannot modify the read-only `{root}` object", offset=node.offset
            )
        key = (
            target.name
            if isinstance(target, Member)
            else self._get_key(container, self.evaluate(target.index), target)
        )
        if isinstance(container, MutableMapping):
            if node.op != "=" and key not in container:
                raise UndefinedReference(
                    f"Property `{key}` is not defined", offset=target.offset
                )
            container[key] = self._compound(
                node, container.get(key), value, (container, key)
            )
            return container[key]
        elif isinstance(container, MutableSequence) and isinstance(key, int):
            if not 0 <= key < len(container):
                raise UndefinedReference(
                    f"Index {key} is out of range", offset=target.offset
                )
            container[key] = self._compound(node, container[key], value, None)
            return container[key]
        else:
            raise ExpressionTypeError(
                f"Cannot set property `{key}` of {_type_name(container)}",
                offset=target.offset,
            )

    def _binary(self, node: Binary) -> Any:
        if node.op == "&&":
            left = self.evaluate(node.left)
            return self.evaluate(node.right) if is_truthy(left) else left
        elif node.op == "||":
            left = self.evaluate(node.left)
            return left if is_truthy(left) else self.evaluate(node.right)
        return self._apply(
            node.op, self.evaluate(node.left), self.evaluate(node.right), node.offset
        )

    def _apply(self, op: str, left: Any, right: Any, offset: int) -> Any:
        match op:
            case "+":
                if _is_number(left) and _is_number(right):
                    return left + right
                elif (isinstance(left, str) or isinstance(right, str)) and all(
                    v is None or isinstance(v, (str, bool, int, float))
                    for v in (left, right)
                ):
                    return to_js_string(left) + to_js_string(right)
                else:
                    raise ExpressionTypeError(
                        f"Operator `+` cannot be applied to "
                        f"{_type_name(left)} and {_type_name(right)}",
                        offset=offset,
                    )
            case "-" | "*" | "/" | "%":
                if not (_is_number(left) and _is_number(right)):
                    raise ExpressionTypeError(
                        f"Operator `{op}` cannot be applied to "
                        f"{_type_name(left)} and {_type_name(right)}",
                        offset=offset,
                    )
                if op == "-":
                    return left - right
                elif op == "*":
                    return left * right
                elif right == 0:
                    raise ExpressionTypeError(
                        "Division by zero" if op == "/" else "Modulo by zero",
                        offset=offset,
                    )
                elif op == "/":
                    if isinstance(left, int) and isinstance(right, int) and left % right == 0:
                        return left // right
                    return left / right
                elif isinstance(left, float) or isinstance(right, float):
                    return math.fmod(left, right)
                else:
                    return (abs(left) % abs(right)) * (1 if left >= 0 else -1)
            case "<" | ">" | "<=" | ">=":
                if not (
                    (_is_number(left) and _is_number(right))
                    or (isinstance(left, str) and isinstance(right, str))
                ):
                    raise ExpressionTypeError(
                        f"Operator `{op}` cannot compare "
                        f"{_type_name(left)} and {_type_name(right)}",
                        offset=offset,
                    )
                match op:
                    case "<":
                        return left < right
                    case ">":
                        return left > right
                    case "<=":
                        return left <= right
                    case _:
                        return left >= right
            case "==" | "===":
                return self._equals(left, right)
            case "!=" | "!==":
                return not self._equals(left, right)
            case _:
                raise UnsupportedExpression(
                    f"The `{op}` operator is not supported", offset=offset
                )

    def _call(self, node: Call) -> Any:
        if not isinstance(node.callee, Member):
            raise UnsupportedExpression(
                "Only a limited set of string and array methods can be called",
                offset=node.offset,
            )
        name = node.callee.name
        if name not in STRING_METHODS and name not in ARRAY_METHODS:
            raise UnsupportedExpression(
                f"Method `{name}` is not supported", offset=node.callee.offset
            )
        target = self.evaluate(node.callee.obj)
        args = [self.evaluate(arg) for arg in node.args]
        if isinstance(target, str):
            methods = STRING_METHODS
        elif isinstance(target, MutableSequence):
            methods = ARRAY_METHODS
        else:
            methods = {}
        if name not in methods:
            raise UnsupportedExpression(
                f"Method `{name}` is not supported on {_type_name(target)}",
                offset=node.callee.offset,
            )
        try:
            return methods[name](target, *args)
        except (TypeError, ValueError) as e:
            raise ExpressionTypeError(
                f"Invalid arguments for method `{name}`: {e}", offset=node.offset
            ) from e

    def _compound(
        self,
        node: Assign,
        current: Any,
        value: Any,
        owner: tuple[MutableMapping[str, Any], str] | None,
    ) -> Any:
        if node.op == "=":
            return value
        op = node.op[:-1]
        # Appending to the location of a File or Directory moves it under a prefix
        if (
            op == "+"
            and owner is not None
            and owner[1] in ("location", "path")
            and owner[0].get("class") in ("File", "Directory")
            and isinstance(current, str)
            and isinstance(value, str)
        ):
            return value + current
        return self._apply(op, current, value, node.offset)

    def _equals(self, left: Any, right: Any) -> bool:
        if _is_number(left) and _is_number(right):
            return left == right
        elif type(left) is not type(right):
            return False
        elif isinstance(left, (MutableMapping, MutableSequence)):
            return left is right
        else:
            return left == right

    def _get_key(self, container: Any, key: Any, node: Node) -> Any:
        if isinstance(container, MutableSequence):
            if _is_number(key) and float(key).is_integer():
                return int(key)
            elif key == "length":
                return key
            raise ExpressionTypeError(
                f"Invalid array index `{to_js_string(key)}`", offset=node.offset
            )
        elif isinstance(container, str):
            if _is_number(key) and float(key).is_integer():
                return int(key)
            return to_js_string(key)
        elif _is_number(key):
            return to_property_name(key)
        elif isinstance(key, str):
            return key
        else:
            raise ExpressionTypeError(
                f"Invalid property key of type {_type_name(key)}", offset=node.offset
            )

    def _get_property(self, container: Any, key: Any, node: Node) -> Any:
        if container is None:
            raise UndefinedReference(
                f"Cannot read property `{key}` of null", offset=node.offset
            )
        elif isinstance(container, MutableMapping):
            if key not in container:
                raise UndefinedReference(
                    f"Property `{key}` is not defined", offset=node.offset
                )
            return container[key]
        elif isinstance(container, (MutableSequence, str)):
            if key == "length":
                return len(container)
            elif isinstance(key, int):
                if not 0 <= key < len(container):
                    raise UndefinedReference(
                        f"Index {key} is out of range", offset=node.offset
                    )
                return container[key]
            raise UndefinedReference(
                f"Property `{key}` is not defined on {_type_name(container)}",
                offset=node.offset,
            )
        else:
            raise UndefinedReference(
                f"Cannot read property `{key}` of {_type_name(container)}",
                offset=node.offset,
            )

    def _protect(self, value: Any, root: str) -> None:
        if (
            isinstance(value, (MutableMapping, MutableSequence))
            and id(value) not in self.read_only
        ):
            self.read_only[id(value)] = root
            for item in value.values() if isinstance(value, MutableMapping) else value:
                self._protect(item, root)

    def _unary(self, node: Unary) -> Any:
        value = self.evaluate(node.operand)
        if node.op == "!":
            return not is_truthy(value)
        elif not _is_number(value):
            raise ExpressionTypeError(
                f"Operator `{node.op}` cannot be applied to {_type_name(value)}",
                offset=node.offset,
            )
        return -value if node.op == "-" else value

    def evaluate(self, node: Node) -> Any:
        if isinstance(node, Literal):
            return node.value
        elif isinstance(node, Identifier):
            if node.name in self.locals:
                return self.locals[node.name]
            elif node.name in self.globals:
                return self.globals[node.name]
            raise UndefinedReference(
                f"Reference `{node.name}` is not defined", offset=node.offset
            )
        elif isinstance(node, Member):
            return self._get_property(self.evaluate(node.obj), node.name, node)
        elif isinstance(node, Index):
            container = self.evaluate(node.obj)
            key = self._get_key(container, self.evaluate(node.index), node)
            return self._get_property(container, key, node)
        elif isinstance(node, Call):
            return self._call(node)
        elif isinstance(node, ArrayLiteral):
            return [self.evaluate(e) for e in node.elements]
        elif isinstance(node, ObjectLiteral):
            return {k: self.evaluate(v) for k, v in node.entries}
        elif isinstance(node, Unary):
            return self._unary(node)
        elif isinstance(node, Binary):
            return self._binary(node)
        elif isinstance(node, Conditional):
            return (
                self.evaluate(node.consequent)
                if is_truthy(self.evaluate(node.test))
                else self.evaluate(node.alternate)
            )
        elif isinstance(node, Assign):
            return self._assign(node)
        else:
            raise UnsupportedExpression(
                f"Unsupported construct {type(node).__name__}", offset=node.offset
            )

    def execute(self, program: Program) -> Any:
        try:
            self._execute_block(program.body)
        except _Return as r:
            return r.value
        return None

    def _execute_block(self, statements: MutableSequence[Node]) -> None:
        for statement in statements:
            self._execute_statement(statement)

    def _execute_statement(self, statement: Node) -> None:
        if isinstance(statement, VarDecl):
            for name, init in statement.declarations:
                if name in GLOBALS:
                    raise ExpressionTypeError(
                        f"Cannot redeclare `{name}`", offset=statement.offset
                    )
                if name in self.constants:
                    raise ExpressionTypeError(
                        f"Cannot redeclare constant `{name}`", offset=statement.offset
                    )
                self.locals[name] = self.evaluate(init) if init is not None else None
                if statement.kind == "const":
                    self.constants.add(name)
        elif isinstance(statement, ExprStmt):
            self.evaluate(statement.expr)
        elif isinstance(statement, Return):
            raise _Return(
                self.evaluate(statement.expr) if statement.expr is not None else None
            )
        elif isinstance(statement, If):
            if is_truthy(self.evaluate(statement.test)):
                self._execute_block(statement.consequent)
            elif statement.alternate is not None:
                self._execute_block(statement.alternate)
        else:
            self.evaluate(statement)


def to_interpolation_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    elif isinstance(value, float) and value.is_integer():
        return str(int(value))
    return json.dumps(value, sort_keys=True)

from __future__ import annotations

import copy
from collections.abc import MutableMapping, MutableSequence
from typing import Any

from zefiro.core.exception import (
    ExpressionSyntaxError,
    ExpressionTypeError,
    UnsupportedExpression,
)
from zefiro.cwl.expression.interpreter import Interpreter, to_interpolation_string
from zefiro.cwl.expression.parser import (
    Assign,
    Identifier,
    Index,
    Literal,
    Member,
    Node,
    Parser,
    is_parameter_reference,
)

PARAMETER_REFERENCE = "$("
SCRIPT = "${"

_CLOSING = {"(": ")", "[": "]", "{": "}"}


class Region:
    __slots__ = ("kind", "body", "start", "end")

    def __init__(self, kind: str, body: str, start: int, end: int):
        self.kind: str = kind
        self.body: str = body
        self.start: int = start
        self.end: int = end


def _find_region_end(text: str, start: int) -> int:
    stack = [_CLOSING[text[start]]]
    i = start + 1
    while i < len(text):
        c = text[i]
        if c in ("'", '"'):
            i += 1
            while i < len(text) and text[i] != c:
                i += 2 if text[i] == "\\" else 1
            if i >= len(text):
                break
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = len(text) if end == -1 else end
            continue
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                break
            i = end + 2
            continue
        elif c in _CLOSING:
            stack.append(_CLOSING[c])
        elif c in (")", "]", "}"):
            if c != stack.pop():
                raise ExpressionSyntaxError(f"Unbalanced `{c}` in expression", offset=i)
            if not stack:
                return i
        i += 1
    raise ExpressionSyntaxError(
        "Unterminated expression", offset=start - 1
    )


def scan(text: str) -> MutableSequence[str | Region]:
    """Split a string field into literal chunks and expression regions."""
    parts: MutableSequence[str | Region] = []
    literal = []
    i = 0
    while i < len(text):
        c = text[i]
        if c == "\\" and text.startswith(("$(", "${"), i + 1):
            literal.append(text[i + 1 : i + 3])
            i += 3
        elif c == "\\" and text.startswith(("\\$(", "\\${"), i + 1):
            literal.append("\\")
            i += 2
        elif text.startswith((PARAMETER_REFERENCE, SCRIPT), i):
            end = _find_region_end(text, i + 1)
            if literal:
                parts.append("".join(literal))
                literal = []
            parts.append(Region(text[i : i + 2], text[i + 2 : end], i, end + 1))
            i = end + 1
        else:
            literal.append(c)
            i += 1
    if literal:
        parts.append("".join(literal))
    return parts


def needs_expression(text: Any) -> bool:
    return isinstance(text, str) and any(isinstance(p, Region) for p in scan(text))


def _contains_assignment(node: Node) -> bool:
    return any(isinstance(n, Assign) for n in node.walk())


def _evaluate_region(
    region: Region, context: MutableMapping[str, Any], full_js: bool
) -> Any:
    if region.kind == PARAMETER_REFERENCE:
        return evaluate_parameter_reference(
            region.body, context, full_js=full_js, base_offset=region.start + 2
        )
    else:
        return evaluate_script(
            region.body, context, full_js=full_js, base_offset=region.start + 2
        )


def evaluate_parameter_reference(
    expression: str,
    context: MutableMapping[str, Any],
    full_js: bool = True,
    base_offset: int = 0,
) -> Any:
    ast = Parser(expression, base_offset).parse_reference()
    if not full_js and not is_parameter_reference(ast):
        raise UnsupportedExpression(
            "Only parameter references are allowed without InlineJavascriptRequirement",
            offset=ast.offset,
        )
    if _contains_assignment(ast):
        raise ExpressionTypeError(
            "Parameter references cannot modify their context", offset=ast.offset
        )
    return Interpreter(copy.deepcopy(context)).evaluate(ast)


def evaluate_script(
    body: str,
    context: MutableMapping[str, Any],
    full_js: bool = True,
    base_offset: int = 0,
) -> Any:
    if not full_js:
        raise UnsupportedExpression(
            "Script blocks require InlineJavascriptRequirement",
            offset=max(base_offset - 2, 0),
        )
    program = Parser(body, base_offset).parse_program()
    return Interpreter(copy.deepcopy(context)).execute(program)


def interpolate(
    text: str,
    context: MutableMapping[str, Any],
    full_js: bool = True,
    strip_whitespace: bool = True,
) -> Any:
    parts = scan(text)
    regions = [p for p in parts if isinstance(p, Region)]
    if len(regions) == 1:
        literals = [p for p in parts if isinstance(p, str)]
        if all(
            (not lit.strip()) if strip_whitespace else not lit for lit in literals
        ):
            return _evaluate_region(regions[0], context, full_js)
    chunks = []
    for part in parts:
        if isinstance(part, Region):
            chunks.append(
                to_interpolation_string(_evaluate_region(part, context, full_js))
            )
        else:
            chunks.append(part)
    return "".join(chunks)


def _get_input_name(node: Node) -> str | None:
    if (
        isinstance(node, (Member, Index))
        and isinstance(node.obj, Identifier)
        and node.obj.name == "inputs"
    ):
        if isinstance(node, Member):
            return node.name
        elif isinstance(node.index, Literal) and isinstance(node.index.value, str):
            return node.index.value
    return None


def get_dependencies(text: Any) -> set[str]:
    """Return the input ids an expression field refers to."""
    dependencies = set()
    if not isinstance(text, str):
        return dependencies
    for part in scan(text):
        if isinstance(part, Region):
            parser = Parser(part.body, part.start + 2)
            ast = (
                parser.parse_reference()
                if part.kind == PARAMETER_REFERENCE
                else parser.parse_program()
            )
            for node in ast.walk():
                if (name := _get_input_name(node)) is not None:
                    dependencies.add(name)
    return dependencies

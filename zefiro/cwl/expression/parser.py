from __future__ import annotations

from collections.abc import Iterator, MutableSequence
from typing import Any

from zefiro.core.exception import ExpressionSyntaxError, UnsupportedExpression
from zefiro.cwl.expression.lexer import EOF, NAME, NUMBER, PUNCT, STRING, Lexer, Token

ASSIGNMENT_OPERATORS = ("=", "+=", "-=", "*=", "/=", "%=")
BINARY_PRECEDENCE = {
    "||": 1,
    "&&": 2,
    "==": 3,
    "!=": 3,
    "===": 3,
    "!==": 3,
    "<": 4,
    ">": 4,
    "<=": 4,
    ">=": 4,
    "+": 5,
    "-": 5,
    "*": 6,
    "/": 6,
    "%": 6,
}
UNSUPPORTED_KEYWORDS = frozenset(
    {
        "async",
        "await",
        "break",
        "case",
        "catch",
        "class",
        "continue",
        "debugger",
        "delete",
        "do",
        "export",
        "finally",
        "for",
        "function",
        "import",
        "in",
        "instanceof",
        "new",
        "switch",
        "this",
        "throw",
        "try",
        "typeof",
        "void",
        "while",
        "with",
        "yield",
    }
)
UNSUPPORTED_OPERATORS = frozenset(
    {"**=", "...", "=>", "++", "--", "??", "?.", "**", "&", "|", "^", "~"}
)


class Node:
    __slots__ = ("offset",)

    def children(self) -> Iterator[Node]:
        return iter(())

    def walk(self) -> Iterator[Node]:
        yield self
        for child in self.children():
            yield from child.walk()


class Literal(Node):
    __slots__ = ("value",)

    def __init__(self, value: Any, offset: int):
        self.value: Any = value
        self.offset: int = offset


class Identifier(Node):
    __slots__ = ("name",)

    def __init__(self, name: str, offset: int):
        self.name: str = name
        self.offset: int = offset


class Member(Node):
    __slots__ = ("obj", "name")

    def __init__(self, obj: Node, name: str, offset: int):
        self.obj: Node = obj
        self.name: str = name
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield self.obj


class Index(Node):
    __slots__ = ("obj", "index")

    def __init__(self, obj: Node, index: Node, offset: int):
        self.obj: Node = obj
        self.index: Node = index
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield self.obj
        yield self.index


class Call(Node):
    __slots__ = ("callee", "args")

    def __init__(self, callee: Node, args: MutableSequence[Node], offset: int):
        self.callee: Node = callee
        self.args: MutableSequence[Node] = args
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield self.callee
        yield from self.args


class ArrayLiteral(Node):
    __slots__ = ("elements",)

    def __init__(self, elements: MutableSequence[Node], offset: int):
        self.elements: MutableSequence[Node] = elements
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield from self.elements


class ObjectLiteral(Node):
    __slots__ = ("entries",)

    def __init__(self, entries: MutableSequence[tuple[str, Node]], offset: int):
        self.entries: MutableSequence[tuple[str, Node]] = entries
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        for _, value in self.entries:
            yield value


class Unary(Node):
    __slots__ = ("op", "operand")

    def __init__(self, op: str, operand: Node, offset: int):
        self.op: str = op
        self.operand: Node = operand
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield self.operand


class Binary(Node):
    __slots__ = ("op", "left", "right")

    def __init__(self, op: str, left: Node, right: Node, offset: int):
        self.op: str = op
        self.left: Node = left
        self.right: Node = right
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield self.left
        yield self.right


class Conditional(Node):
    __slots__ = ("test", "consequent", "alternate")

    def __init__(self, test: Node, consequent: Node, alternate: Node, offset: int):
        self.test: Node = test
        self.consequent: Node = consequent
        self.alternate: Node = alternate
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield self.test
        yield self.consequent
        yield self.alternate


class Assign(Node):
    __slots__ = ("op", "target", "value")

    def __init__(self, op: str, target: Node, value: Node, offset: int):
        self.op: str = op
        self.target: Node = target
        self.value: Node = value
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield self.target
        yield self.value


class VarDecl(Node):
    __slots__ = ("kind", "declarations")

    def __init__(
        self,
        kind: str,
        declarations: MutableSequence[tuple[str, Node | None]],
        offset: int,
    ):
        self.kind: str = kind
        self.declarations: MutableSequence[tuple[str, Node | None]] = declarations
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        for _, init in self.declarations:
            if init is not None:
                yield init


class ExprStmt(Node):
    __slots__ = ("expr",)

    def __init__(self, expr: Node, offset: int):
        self.expr: Node = expr
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield self.expr


class Return(Node):
    __slots__ = ("expr",)

    def __init__(self, expr: Node | None, offset: int):
        self.expr: Node | None = expr
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        if self.expr is not None:
            yield self.expr


class If(Node):
    __slots__ = ("test", "consequent", "alternate")

    def __init__(
        self,
        test: Node,
        consequent: MutableSequence[Node],
        alternate: MutableSequence[Node] | None,
        offset: int,
    ):
        self.test: Node = test
        self.consequent: MutableSequence[Node] = consequent
        self.alternate: MutableSequence[Node] | None = alternate
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield self.test
        yield from self.consequent
        if self.alternate is not None:
            yield from self.alternate


class Program(Node):
    __slots__ = ("body",)

    def __init__(self, body: MutableSequence[Node], offset: int):
        self.body: MutableSequence[Node] = body
        self.offset: int = offset

    def children(self) -> Iterator[Node]:
        yield from self.body


def is_parameter_reference(node: Node) -> bool:
    if isinstance(node, Identifier):
        return True
    elif isinstance(node, Member):
        return is_parameter_reference(node.obj)
    elif isinstance(node, Index):
        return (
            isinstance(node.index, Literal)
            and isinstance(node.index.value, (str, int))
            and not isinstance(node.index.value, bool)
            and is_parameter_reference(node.obj)
        )
    else:
        return False


class Parser:
    def __init__(self, text: str, base_offset: int = 0):
        self.tokens: MutableSequence[Token] = Lexer(text, base_offset).tokenize()
        self.index: int = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != EOF:
            self.index += 1
        return token

    def _check_unsupported(self, token: Token) -> None:
        if token.kind == NAME and token.value in UNSUPPORTED_KEYWORDS:
            raise UnsupportedExpression(
                f"The `{token.value}` construct is not supported", offset=token.offset
            )
        elif token.is_punct(*UNSUPPORTED_OPERATORS):
            raise UnsupportedExpression(
                f"The `{token.value}` operator is not supported", offset=token.offset
            )

    def _expect(self, value: str) -> Token:
        token = self.current
        if not token.is_punct(value):
            self._check_unsupported(token)
            raise ExpressionSyntaxError(
                f"Expected `{value}` but found {self._describe(token)}",
                offset=token.offset,
            )
        return self._advance()

    @staticmethod
    def _describe(token: Token) -> str:
        return "end of expression" if token.kind == EOF else f"`{token.value}`"

    def _expect_end(self) -> None:
        if self.current.kind != EOF:
            self._check_unsupported(self.current)
            raise ExpressionSyntaxError(
                f"Unexpected {self._describe(self.current)}",
                offset=self.current.offset,
            )

    def _parse_arguments(self) -> MutableSequence[Node]:
        args = []
        if not self.current.is_punct(")"):
            while True:
                args.append(self.parse_assignment())
                if self.current.is_punct(","):
                    self._advance()
                else:
                    break
        self._expect(")")
        return args

    def _parse_block(self) -> MutableSequence[Node]:
        self._expect("{")
        body = []
        while not self.current.is_punct("}"):
            if self.current.kind == EOF:
                raise ExpressionSyntaxError(
                    "Unterminated block", offset=self.current.offset
                )
            if (statement := self.parse_statement()) is not None:
                body.append(statement)
        self._advance()
        return body

    def _parse_body(self) -> MutableSequence[Node]:
        if self.current.is_punct("{"):
            return self._parse_block()
        statement = self.parse_statement()
        return [statement] if statement is not None else []

    def _parse_declaration(self) -> VarDecl:
        token = self._advance()
        declarations = []
        while True:
            name = self.current
            if name.kind != NAME:
                raise ExpressionSyntaxError(
                    f"Expected a variable name but found {self._describe(name)}",
                    offset=name.offset,
                )
            self._check_unsupported(name)
            self._advance()
            init = None
            if self.current.is_punct("="):
                self._advance()
                init = self.parse_assignment()
            elif token.value == "const":
                raise ExpressionSyntaxError(
                    f"Missing initializer in const declaration `{name.value}`",
                    offset=name.offset,
                )
            declarations.append((name.value, init))
            if self.current.is_punct(","):
                self._advance()
            else:
                return VarDecl(token.value, declarations, token.offset)

    def _parse_object(self) -> ObjectLiteral:
        start = self._expect("{")
        entries = []
        while not self.current.is_punct("}"):
            key = self._advance()
            if key.kind in (NAME, STRING):
                name = key.value
            elif key.kind == NUMBER:
                name = to_property_name(key.value)
            else:
                self._check_unsupported(key)
                raise ExpressionSyntaxError(
                    f"Invalid object key {self._describe(key)}", offset=key.offset
                )
            self._expect(":")
            entries.append((name, self.parse_assignment()))
            if self.current.is_punct(","):
                self._advance()
            elif not self.current.is_punct("}"):
                raise ExpressionSyntaxError(
                    f"Expected `,` or `}}` but found {self._describe(self.current)}",
                    offset=self.current.offset,
                )
        self._advance()
        return ObjectLiteral(entries, start.offset)

    def _parse_postfix(self) -> Node:
        node = self._parse_primary()
        while True:
            token = self.current
            if token.is_punct("."):
                self._advance()
                name = self._advance()
                if name.kind != NAME:
                    raise ExpressionSyntaxError(
                        f"Expected a property name but found {self._describe(name)}",
                        offset=name.offset,
                    )
                node = Member(node, name.value, token.offset)
            elif token.is_punct("["):
                self._advance()
                index = self.parse_expression()
                self._expect("]")
                node = Index(node, index, token.offset)
            elif token.is_punct("("):
                self._advance()
                node = Call(node, self._parse_arguments(), token.offset)
            elif token.is_punct("?.", "++", "--"):
                self._check_unsupported(token)
            else:
                return node

    def _parse_primary(self) -> Node:
        token = self._advance()
        if token.kind in (NUMBER, STRING):
            return Literal(token.value, token.offset)
        elif token.kind == NAME:
            self._check_unsupported(token)
            if token.value == "true":
                return Literal(True, token.offset)
            elif token.value == "false":
                return Literal(False, token.offset)
            elif token.value in ("null", "undefined"):
                return Literal(None, token.offset)
            elif token.value in ("var", "let", "const", "return", "if", "else"):
                raise ExpressionSyntaxError(
                    f"Unexpected keyword `{token.value}`", offset=token.offset
                )
            elif self.current.is_punct("=>"):
                self._check_unsupported(self.current)
            return Identifier(token.value, token.offset)
        elif token.is_punct("("):
            node = self.parse_expression()
            self._expect(")")
            if self.current.is_punct("=>"):
                self._check_unsupported(self.current)
            return node
        elif token.is_punct("["):
            elements = []
            while not self.current.is_punct("]"):
                elements.append(self.parse_assignment())
                if self.current.is_punct(","):
                    self._advance()
                elif not self.current.is_punct("]"):
                    raise ExpressionSyntaxError(
                        f"Expected `,` or `]` but found {self._describe(self.current)}",
                        offset=self.current.offset,
                    )
            self._advance()
            return ArrayLiteral(elements, token.offset)
        elif token.is_punct("{"):
            self.index -= 1
            return self._parse_object()
        else:
            self._check_unsupported(token)
            raise ExpressionSyntaxError(
                f"Unexpected {self._describe(token)}", offset=token.offset
            )

    def _parse_unary(self) -> Node:
        token = self.current
        if token.is_punct("!", "-", "+"):
            self._advance()
            return Unary(token.value, self._parse_unary(), token.offset)
        self._check_unsupported(token)
        return self._parse_postfix()

    def _parse_binary(self, min_precedence: int) -> Node:
        left = self._parse_unary()
        while True:
            token = self.current
            if token.kind == NAME and token.value in ("in", "instanceof"):
                self._check_unsupported(token)
            if token.is_punct(*UNSUPPORTED_OPERATORS - {"++", "--"}):
                self._check_unsupported(token)
            precedence = (
                BINARY_PRECEDENCE.get(token.value) if token.kind == PUNCT else None
            )
            if precedence is None or precedence < min_precedence:
                return left
            self._advance()
            right = self._parse_binary(precedence + 1)
            left = Binary(token.value, left, right, token.offset)

    def parse_assignment(self) -> Node:
        target = self.parse_conditional()
        token = self.current
        if token.is_punct(*ASSIGNMENT_OPERATORS):
            if not isinstance(target, (Identifier, Member, Index)):
                raise ExpressionSyntaxError(
                    "Invalid left-hand side in assignment", offset=token.offset
                )
            self._advance()
            return Assign(token.value, target, self.parse_assignment(), token.offset)
        return target

    def parse_conditional(self) -> Node:
        test = self._parse_binary(1)
        if self.current.is_punct("?"):
            token = self._advance()
            consequent = self.parse_assignment()
            self._expect(":")
            alternate = self.parse_assignment()
            return Conditional(test, consequent, alternate, token.offset)
        return test

    def parse_expression(self) -> Node:
        node = self.parse_assignment()
        if self.current.is_punct(","):
            raise UnsupportedExpression(
                "The comma operator is not supported", offset=self.current.offset
            )
        return node

    def parse_reference(self) -> Node:
        if self.current.kind == EOF:
            raise ExpressionSyntaxError(
                "Empty parameter reference", offset=self.current.offset
            )
        node = self.parse_expression()
        self._expect_end()
        return node

    def parse_program(self) -> Program:
        body = []
        offset = self.current.offset
        while self.current.kind != EOF:
            if (statement := self.parse_statement()) is not None:
                body.append(statement)
        return Program(body, offset)

    def parse_statement(self) -> Node | None:
        token = self.current
        if token.is_punct(";"):
            self._advance()
            return None
        elif token.is_punct("{"):
            return If(Literal(True, token.offset), self._parse_block(), None, token.offset)
        elif token.is_name("var", "let", "const"):
            statement = self._parse_declaration()
        elif token.is_name("return"):
            self._advance()
            if (
                self.current.is_punct(";", "}")
                or self.current.kind == EOF
                or self.current.newline_before
            ):
                statement = Return(None, token.offset)
            else:
                statement = Return(self.parse_expression(), token.offset)
        elif token.is_name("if"):
            self._advance()
            self._expect("(")
            test = self.parse_expression()
            self._expect(")")
            consequent = self._parse_body()
            alternate = None
            if self.current.is_name("else"):
                self._advance()
                alternate = self._parse_body()
            return If(test, consequent, alternate, token.offset)
        else:
            self._check_unsupported(token)
            statement = ExprStmt(self.parse_expression(), token.offset)
        if self.current.is_punct(";"):
            self._advance()
        elif not (
            self.current.is_punct("}")
            or self.current.kind == EOF
            or self.current.newline_before
        ):
            self._check_unsupported(self.current)
            raise ExpressionSyntaxError(
                f"Expected `;` but found {self._describe(self.current)}",
                offset=self.current.offset,
            )
        return statement


def to_property_name(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

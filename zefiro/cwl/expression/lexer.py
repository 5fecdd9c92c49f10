from __future__ import annotations

import re
from collections.abc import MutableSequence

from zefiro.core.exception import ExpressionSyntaxError, UnsupportedExpression

EOF = "EOF"
NAME = "NAME"
NUMBER = "NUMBER"
PUNCT = "PUNCT"
STRING = "STRING"

PUNCTUATORS = (
    "===",
    "!==",
    "**=",
    "...",
    "=>",
    "==",
    "!=",
    "<=",
    ">=",
    "&&",
    "||",
    "+=",
    "-=",
    "*=",
    "/=",
    "%=",
    "++",
    "--",
    "??",
    "?.",
    "**",
    "(",
    ")",
    "[",
    "]",
    "{",
    "}",
    ".",
    ",",
    ";",
    ":",
    "?",
    "+",
    "-",
    "*",
    "/",
    "%",
    "<",
    ">",
    "=",
    "!",
    "&",
    "|",
    "^",
    "~",
)

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}
_NAME_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_NUMBER_RE = re.compile(
    r"0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
)


class Token:
    __slots__ = ("kind", "value", "offset", "newline_before")

    def __init__(self, kind: str, value, offset: int):
        self.kind: str = kind
        self.value = value
        self.offset: int = offset
        self.newline_before: bool = False

    def __repr__(self) -> str:
        return f"Token({self.kind}, {self.value!r}, {self.offset})"

    def is_punct(self, *values: str) -> bool:
        return self.kind == PUNCT and self.value in values

    def is_name(self, *values: str) -> bool:
        return self.kind == NAME and self.value in values


class Lexer:
    def __init__(self, text: str, base_offset: int = 0):
        self.text: str = text
        self.base_offset: int = base_offset
        self.pos: int = 0

    def _error(self, message: str, pos: int) -> ExpressionSyntaxError:
        return ExpressionSyntaxError(message, offset=self.base_offset + pos)

    def _read_string(self, quote: str) -> str:
        start = self.pos
        self.pos += 1
        chars = []
        while self.pos < len(self.text):
            c = self.text[self.pos]
            if c == quote:
                self.pos += 1
                return "".join(chars)
            elif c == "\\":
                if self.pos + 1 >= len(self.text):
                    break
                e = self.text[self.pos + 1]
                if e == "u":
                    code = self.text[self.pos + 2 : self.pos + 6]
                    if not re.fullmatch(r"[0-9a-fA-F]{4}", code):
                        raise self._error("Invalid unicode escape sequence", self.pos)
                    chars.append(chr(int(code, 16)))
                    self.pos += 6
                elif e == "x":
                    code = self.text[self.pos + 2 : self.pos + 4]
                    if not re.fullmatch(r"[0-9a-fA-F]{2}", code):
                        raise self._error("Invalid hexadecimal escape sequence", self.pos)
                    chars.append(chr(int(code, 16)))
                    self.pos += 4
                elif e == "\n":
                    self.pos += 2
                else:
                    chars.append(_ESCAPES.get(e, e))
                    self.pos += 2
            elif c == "\n":
                raise self._error("Unterminated string literal", start)
            else:
                chars.append(c)
                self.pos += 1
        raise self._error("Unterminated string literal", start)

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.text):
            c = self.text[self.pos]
            if c.isspace():
                self.pos += 1
            elif self.text.startswith("//", self.pos):
                end = self.text.find("\n", self.pos)
                self.pos = len(self.text) if end == -1 else end + 1
            elif self.text.startswith("/*", self.pos):
                end = self.text.find("*/", self.pos + 2)
                if end == -1:
                    raise self._error("Unterminated comment", self.pos)
                self.pos = end + 2
            else:
                return

    def tokenize(self) -> MutableSequence[Token]:
        tokens = []
        while True:
            skipped = self.pos
            self._skip_whitespace()
            if self.pos >= len(self.text):
                tokens.append(Token(EOF, None, self.base_offset + self.pos))
                return tokens
            start = self.pos
            c = self.text[start]
            if c in ("'", '"'):
                tokens.append(
                    Token(STRING, self._read_string(c), self.base_offset + start)
                )
            elif c == "`":
                raise UnsupportedExpression(
                    "Template literals are not supported",
                    offset=self.base_offset + start,
                )
            elif c.isdigit() or (
                c == "." and start + 1 < len(self.text) and self.text[start + 1].isdigit()
            ):
                match = _NUMBER_RE.match(self.text, start)
                literal = match.group(0)
                self.pos = match.end()
                if literal[:2] in ("0x", "0X"):
                    value = int(literal, 16)
                elif any(ch in literal for ch in ".eE"):
                    value = float(literal)
                else:
                    value = int(literal)
                tokens.append(Token(NUMBER, value, self.base_offset + start))
            elif match := _NAME_RE.match(self.text, start):
                self.pos = match.end()
                tokens.append(Token(NAME, match.group(0), self.base_offset + start))
            else:
                for punct in PUNCTUATORS:
                    if self.text.startswith(punct, start):
                        self.pos += len(punct)
                        tokens.append(Token(PUNCT, punct, self.base_offset + start))
                        break
                else:
                    raise self._error(f"Unexpected character `{c}`", start)
            tokens[-1].newline_before = "\n" in self.text[skipped:start]

from __future__ import annotations

import copy
import os
from collections.abc import Iterator, Mapping, MutableMapping, MutableSequence
from typing import IO, Any

from jinja2 import StrictUndefined, Template, TemplateError, TemplateSyntaxError
from typing_extensions import Self

from zefiro.core.exception import ParseError, ValuesError
from zefiro.cwl.loader import dump_yaml, get_position, load_yaml, to_plain
from zefiro.cwl.utils import (
    SUPPORTED_SCHEMES,
    get_scheme,
    get_token_class,
    update_file_token,
)

FILE_FIELDS = (
    "class",
    "location",
    "path",
    "basename",
    "dirname",
    "nameroot",
    "nameext",
    "size",
    "checksum",
    "contents",
    "format",
    "secondaryFiles",
)
DIRECTORY_FIELDS = ("class", "location", "path", "basename", "dirname", "listing")


def _parse_location(node: MutableMapping[str, Any], key: str) -> str:
    location = node[key]
    if not isinstance(location, str) or not location:
        raise ValuesError(
            f"Field `{key}` of a {node['class']} object must be a non-empty string",
            *get_position(node, key),
        )
    if (scheme := get_scheme(location)) is not None and scheme not in SUPPORTED_SCHEMES:
        raise ValuesError(
            f"Unsupported URI scheme `{scheme}` in {node['class']} location `{location}`",
            *get_position(node, key),
        )
    return str(location)


def parse_value(value: Any) -> Any:
    if isinstance(value, MutableMapping):
        if (token_class := get_token_class(value)) in ("File", "Directory"):
            if "location" not in value and "path" not in value:
                raise ValuesError(
                    f"A {token_class} object requires a `location` or a `path` field",
                    *get_position(value),
                )
            for key in value.keys():
                if key not in (
                    FILE_FIELDS if token_class == "File" else DIRECTORY_FIELDS
                ):
                    raise ValuesError(
                        f"Unknown field `{key}` in {token_class} object",
                        *get_position(value, key),
                    )
            token = to_plain(value)
            for key in ("location", "path"):
                if key in value:
                    token[key] = _parse_location(value, key)
            token.setdefault("location", token.get("path"))
            if token_class == "File":
                if "size" in token and (
                    isinstance(token["size"], bool)
                    or not isinstance(token["size"], int)
                    or token["size"] < 0
                ):
                    raise ValuesError(
                        "Field `size` of a File object must be a non-negative integer",
                        *get_position(value, "size"),
                    )
            elif "listing" in value:
                if not isinstance(value["listing"], MutableSequence):
                    raise ValuesError(
                        "Field `listing` of a Directory object must be a list",
                        *get_position(value, "listing"),
                    )
                token["listing"] = []
                for entry in value["listing"]:
                    if get_token_class(entry) not in ("File", "Directory"):
                        raise ValuesError(
                            "Directory listings can only contain File or Directory objects",
                            *get_position(value, "listing"),
                        )
                    token["listing"].append(parse_value(entry))
            return update_file_token(token)
        elif "class" in value and not isinstance(value["class"], str):
            raise ValuesError(
                "Field `class` must be a string", *get_position(value, "class")
            )
        else:
            return {str(k): parse_value(v) for k, v in value.items()}
    elif isinstance(value, MutableSequence):
        return [parse_value(v) for v in value]
    else:
        return to_plain(value)


class Values(Mapping):
    """Read-only collection of runtime values, keyed by parameter id."""

    def __init__(self, values: MutableMapping[str, Any] | None = None):
        self._values: MutableMapping[str, Any] = dict(values or {})

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Values):
            return self._values == other._values
        return NotImplemented

    def __getitem__(self, key: str) -> Any:
        return copy.deepcopy(self._values[key])

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Values({self._values!r})"

    @classmethod
    def from_path(cls, path: str | os.PathLike) -> Self:
        try:
            with open(path) as f:
                return cls.from_string(f)
        except OSError as e:
            raise ValuesError(f"Cannot read values document {path}: {e}") from e

    @classmethod
    def from_string(cls, text: str | IO) -> Self:
        return cls.from_yaml(load_yaml(text))

    @classmethod
    def from_template(
        cls, template: str, variables: MutableMapping[str, Any] | None = None
    ) -> Self:
        try:
            text = Template(template, undefined=StrictUndefined).render(
                **(variables or {})
            )
        except TemplateSyntaxError as e:
            raise ParseError(
                f"Invalid values template: {e.message}",
                line=e.lineno - 1 if e.lineno else None,
            ) from e
        except TemplateError as e:
            raise ValuesError(f"Cannot render values template: {e}") from e
        return cls.from_string(text)

    @classmethod
    def from_yaml(cls, document: Any) -> Self:
        if document is None:
            return cls()
        if not isinstance(document, MutableMapping):
            raise ValuesError(
                f"A values document must be a mapping, got {type(document).__name__}",
                *get_position(document),
            )
        values = {}
        for key, value in document.items():
            if not isinstance(key, str):
                raise ValuesError(
                    f"Parameter ids must be strings, got `{key}`",
                    *get_position(document),
                )
            values[key] = parse_value(value)
        return cls(values)

    def save(self) -> MutableMapping[str, Any]:
        return copy.deepcopy(self._values)

    def to_string(self) -> str:
        return dump_yaml(self.save())

    def to_yaml(self, stream: IO) -> None:
        dump_yaml(self.save(), stream)

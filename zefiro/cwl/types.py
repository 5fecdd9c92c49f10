from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import MutableMapping, MutableSequence
from typing import Any

from zefiro.core.exception import InvalidType, MalformedDocument
from zefiro.cwl.binding import INT32_MAX, INT32_MIN, InputBinding
from zefiro.cwl.loader import (
    check_fields,
    check_mapping,
    get_position,
    require_field,
    to_plain,
)
from zefiro.cwl.utils import get_token_class

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

PRIMITIVE_TYPES = (
    "null",
    "boolean",
    "int",
    "long",
    "float",
    "double",
    "string",
    "File",
    "Directory",
)


class CWLType(ABC):
    """Canonical representation of a CWL type declaration."""

    __slots__ = ()

    def __eq__(self, other: Any) -> bool:
        return type(self) is type(other) and self.save() == other.save()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.save()!r})"

    @abstractmethod
    def accepts(self, value: Any) -> bool:
        """Check whether a value has the shape described by this type."""
        ...

    def is_optional(self) -> bool:
        return False

    @abstractmethod
    def save(self) -> Any: ...


class PrimitiveType(CWLType):
    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name: str = name

    def accepts(self, value: Any) -> bool:
        match self.name:
            case "null":
                return value is None
            case "boolean":
                return isinstance(value, bool)
            case "int":
                return (
                    isinstance(value, int)
                    and not isinstance(value, bool)
                    and INT32_MIN <= value <= INT32_MAX
                )
            case "long":
                return (
                    isinstance(value, int)
                    and not isinstance(value, bool)
                    and INT64_MIN <= value <= INT64_MAX
                )
            case "float" | "double":
                return isinstance(value, (int, float)) and not isinstance(value, bool)
            case "string":
                return isinstance(value, str)
            case "File" | "Directory":
                return get_token_class(value) == self.name
            case _:
                return False

    def is_optional(self) -> bool:
        return self.name == "null"

    def save(self) -> str:
        return self.name


class ArrayType(CWLType):
    __slots__ = ("items",)

    def __init__(self, items: CWLType):
        self.items: CWLType = items

    def accepts(self, value: Any) -> bool:
        return isinstance(value, MutableSequence) and all(
            self.items.accepts(v) for v in value
        )

    def save(self) -> MutableMapping[str, Any]:
        return {"type": "array", "items": self.items.save()}


class RecordField:
    __slots__ = ("name", "type", "input_binding")

    def __init__(
        self, name: str, type: CWLType, input_binding: InputBinding | None = None
    ):
        self.name: str = name
        self.type: CWLType = type
        self.input_binding: InputBinding | None = input_binding

    def save(self) -> MutableMapping[str, Any]:
        field = {"name": self.name, "type": self.type.save()}
        if self.input_binding is not None:
            field["inputBinding"] = self.input_binding.save()
        return field


class RecordType(CWLType):
    __slots__ = ("name", "fields")

    def __init__(self, fields: MutableSequence[RecordField], name: str | None = None):
        self.fields: MutableSequence[RecordField] = fields
        self.name: str | None = name

    def accepts(self, value: Any) -> bool:
        return (
            isinstance(value, MutableMapping)
            and get_token_class(value) not in ("File", "Directory")
            and all(f.type.accepts(value.get(f.name)) for f in self.fields)
        )

    def save(self) -> MutableMapping[str, Any]:
        record = {"type": "record"}
        if self.name is not None:
            record["name"] = self.name
        record["fields"] = [f.save() for f in self.fields]
        return record


class EnumType(CWLType):
    __slots__ = ("name", "symbols")

    def __init__(self, symbols: MutableSequence[str], name: str | None = None):
        self.symbols: MutableSequence[str] = symbols
        self.name: str | None = name

    def accepts(self, value: Any) -> bool:
        return isinstance(value, str) and value in self.symbols

    def save(self) -> MutableMapping[str, Any]:
        enum = {"type": "enum"}
        if self.name is not None:
            enum["name"] = self.name
        enum["symbols"] = list(self.symbols)
        return enum


class UnionType(CWLType):
    __slots__ = ("alternatives",)

    def __init__(self, alternatives: MutableSequence[CWLType]):
        self.alternatives: MutableSequence[CWLType] = alternatives

    def accepts(self, value: Any) -> bool:
        return any(t.accepts(value) for t in self.alternatives)

    def is_optional(self) -> bool:
        return any(t.is_optional() for t in self.alternatives)

    def get_alternative(self, value: Any) -> CWLType | None:
        for t in self.alternatives:
            if t.accepts(value):
                return t
        return None

    def save(self) -> MutableSequence[Any]:
        return [t.save() for t in self.alternatives]


def _get_name(value: str) -> str:
    return value.split("/")[-1].lstrip("#")


def _parse_fields(node: MutableMapping[str, Any]) -> MutableSequence[RecordField]:
    fields = node.get("fields") or []
    # Fields can be expressed as a name-keyed mapping
    if isinstance(fields, MutableMapping):
        fields = [
            (
                {**field, "name": name}
                if isinstance(field, MutableMapping) and "type" in field
                else {"name": name, "type": field}
            )
            for name, field in fields.items()
        ]
    elif not isinstance(fields, MutableSequence):
        raise MalformedDocument(
            "Field `fields` of a record type must be a list or a mapping",
            *get_position(node, "fields"),
        )
    record_fields = []
    names = set()
    for field in fields:
        check_mapping(field, "record field")
        check_fields(field, ("name", "type", "inputBinding", "doc", "label"), "record field")
        name = _get_name(str(require_field(field, "name", "record field")))
        if name in names:
            raise MalformedDocument(
                f"Duplicate field `{name}` in record type", *get_position(field)
            )
        names.add(name)
        record_fields.append(
            RecordField(
                name=name,
                type=parse_type(require_field(field, "type", "record field"), field),
                input_binding=(
                    InputBinding.parse(field["inputBinding"])
                    if field.get("inputBinding") is not None
                    else None
                ),
            )
        )
    return record_fields


def parse_type(type_def: Any, parent: Any = None, key: str = "type") -> CWLType:
    position = get_position(parent, key) if parent is not None else get_position(type_def)
    if isinstance(type_def, str):
        if type_def.endswith("?"):
            return UnionType(
                [PrimitiveType("null"), parse_type(type_def[:-1], parent, key)]
            )
        elif type_def.endswith("[]"):
            return ArrayType(parse_type(type_def[:-2], parent, key))
        elif type_def in PRIMITIVE_TYPES:
            return PrimitiveType(str(type_def))
        else:
            raise InvalidType(f"Unknown type `{type_def}`", *position)
    elif isinstance(type_def, MutableSequence):
        if not type_def:
            raise InvalidType("A union type must have at least one alternative", *position)
        alternatives = []
        for i, t in enumerate(type_def):
            parsed = parse_type(t, type_def, i)
            for alt in (
                parsed.alternatives if isinstance(parsed, UnionType) else [parsed]
            ):
                if alt not in alternatives:
                    alternatives.append(alt)
        return alternatives[0] if len(alternatives) == 1 else UnionType(alternatives)
    elif isinstance(type_def, MutableMapping):
        match type_def.get("type"):
            case "array":
                check_fields(type_def, ("type", "items", "name", "doc", "label"), "array type")
                return ArrayType(
                    parse_type(require_field(type_def, "items", "array type"), type_def, "items")
                )
            case "record":
                check_fields(type_def, ("type", "fields", "name", "doc", "label"), "record type")
                return RecordType(
                    fields=_parse_fields(type_def),
                    name=_get_name(str(type_def["name"])) if "name" in type_def else None,
                )
            case "enum":
                check_fields(type_def, ("type", "symbols", "name", "doc", "label"), "enum type")
                symbols = require_field(type_def, "symbols", "enum type")
                if not isinstance(symbols, MutableSequence) or not all(
                    isinstance(s, str) for s in symbols
                ):
                    raise InvalidType(
                        "Field `symbols` of an enum type must be a list of strings",
                        *get_position(type_def, "symbols"),
                    )
                return EnumType(
                    symbols=[_get_name(s) for s in to_plain(symbols)],
                    name=_get_name(str(type_def["name"])) if "name" in type_def else None,
                )
            case None:
                raise InvalidType("Type mapping without an explicit `type` key", *position)
            case str() | list() | dict() as nested if set(type_def.keys()) == {"type"}:
                return parse_type(nested, type_def)
            case other:
                raise InvalidType(f"Unsupported type `{other}`", *position)
    else:
        raise InvalidType(
            f"Invalid type declaration of kind {type(type_def).__name__}", *position
        )

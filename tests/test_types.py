from __future__ import annotations

import pytest
from pytest import raises

from zefiro.core.exception import InvalidType, UnsupportedField
from zefiro.cwl.types import (
    ArrayType,
    EnumType,
    PrimitiveType,
    RecordType,
    UnionType,
    parse_type,
)


def test_optional_shorthand():
    """Check that the `?` suffix expands to a union with null."""
    parsed = parse_type("string?")
    assert isinstance(parsed, UnionType)
    assert parsed.save() == ["null", "string"]
    assert parsed.is_optional()
    assert parsed.accepts(None)
    assert parsed.accepts("x")
    assert not parsed.accepts(1)


def test_array_shorthand():
    """Check that the `[]` suffix expands to an array type."""
    parsed = parse_type("File[]")
    assert parsed == ArrayType(PrimitiveType("File"))
    assert parsed.save() == {"type": "array", "items": "File"}
    assert parsed.accepts([{"class": "File", "location": "a.txt"}])
    assert not parsed.accepts([{"class": "Directory", "location": "a"}])
    assert parse_type("int[]?").save() == [
        "null",
        {"type": "array", "items": "int"},
    ]


def test_union_flattening():
    """Check that nested unions are flattened and duplicates are dropped."""
    parsed = parse_type(["null", "string?", ["int", "string"]])
    assert parsed.save() == ["null", "string", "int"]
    assert parse_type(["int"]) == PrimitiveType("int")


@pytest.mark.parametrize(
    "type_name,accepted,rejected",
    [
        ("boolean", [True, False], [0, "true", None]),
        ("int", [0, -5, 2**31 - 1], [2**31, True, 1.5, "1"]),
        ("long", [2**40], [2**63, False]),
        ("float", [1.5, 2], ["1.5", None]),
        ("double", [1e100], [True]),
        ("string", ["", "a"], [1, None]),
        ("null", [None], ["", 0]),
    ],
)
def test_primitive_accepts(type_name, accepted, rejected):
    """Check the values each primitive type accepts."""
    parsed = parse_type(type_name)
    for value in accepted:
        assert parsed.accepts(value)
    for value in rejected:
        assert not parsed.accepts(value)


def test_record_type():
    """Check record types declared with both list and mapping fields."""
    as_list = parse_type(
        {
            "type": "record",
            "name": "#sample",
            "fields": [
                {"name": "id", "type": "string"},
                {"name": "reads", "type": "File[]"},
            ],
        }
    )
    as_map = parse_type(
        {
            "type": "record",
            "name": "sample",
            "fields": {"id": "string", "reads": {"type": "File[]"}},
        }
    )
    assert isinstance(as_list, RecordType)
    assert as_list == as_map
    assert as_list.name == "sample"
    assert as_list.accepts({"id": "s1", "reads": []})
    assert not as_list.accepts({"id": "s1"})
    assert not as_list.accepts({"class": "File", "location": "x"})


def test_enum_type():
    """Check that enum symbols are normalized and enforced."""
    parsed = parse_type({"type": "enum", "symbols": ["#mode/fast", "slow"]})
    assert isinstance(parsed, EnumType)
    assert parsed.symbols == ["fast", "slow"]
    assert parsed.accepts("fast")
    assert not parsed.accepts("medium")


def test_nested_type_mapping():
    """Check that a mapping carrying only a nested `type` is unwrapped."""
    assert parse_type({"type": {"type": "array", "items": "string"}}) == ArrayType(
        PrimitiveType("string")
    )


def test_invalid_types():
    """Check that unknown or malformed type declarations are rejected."""
    with raises(InvalidType):
        parse_type("Any")
    with raises(InvalidType):
        parse_type([])
    with raises(InvalidType):
        parse_type({"items": "string"})
    with raises(InvalidType):
        parse_type({"type": "map", "values": "string"})
    with raises(InvalidType):
        parse_type({"type": "enum", "symbols": [1, 2]})
    with raises(InvalidType):
        parse_type(42)


def test_unsupported_type_fields():
    """Check that unexpected keys inside a type declaration are rejected."""
    with raises(UnsupportedField):
        parse_type({"type": "array", "items": "string", "inputBinding": {}})

from __future__ import annotations

import io
from collections.abc import Iterable, MutableMapping, MutableSequence
from typing import IO, Any

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import MarkedYAMLError, YAMLError
from ruamel.yaml.scalarfloat import ScalarFloat

from zefiro.core.exception import (
    MalformedDocument,
    MissingRequiredField,
    ParseError,
    UnsupportedField,
)

# Fields of the CWL v1.2 object model that are recognized but not implemented
CWL_UNSUPPORTED_FIELDS = frozenset(
    {
        "dockerFile",
        "dockerImageId",
        "dockerImport",
        "dockerLoad",
        "dockerOutputDirectory",
        "expressionLib",
        "format",
        "intent",
        "linkMerge",
        "loadListing",
        "permanentFailCodes",
        "pickValue",
        "scatter",
        "scatterMethod",
        "secondaryFiles",
        "shellQuote",
        "stderr",
        "stdin",
        "stdout",
        "streamable",
        "successCodes",
        "temporaryFailCodes",
    }
)


def check_fields(
    node: MutableMapping[str, Any], supported: Iterable[str], element: str
) -> None:
    supported = set(supported)
    for key in node.keys():
        if key in supported or is_extension_field(key):
            continue
        if key in CWL_UNSUPPORTED_FIELDS:
            message = f"Field `{key}` of {element} is not supported"
        else:
            message = f"Unknown field `{key}` in {element}"
        raise UnsupportedField(message, *get_position(node, key))


def check_mapping(node: Any, element: str, parent: Any = None, key: Any = None):
    if not isinstance(node, MutableMapping):
        raise MalformedDocument(
            f"The {element} must be a mapping, got {type(node).__name__}",
            *(get_position(parent, key) if parent is not None else get_position(node)),
        )
    return node


def check_value(
    node: MutableMapping[str, Any],
    key: str,
    types: type | tuple[type, ...],
    element: str,
) -> Any:
    value = node.get(key)
    if value is not None and (
        not isinstance(value, types)
        or (isinstance(value, bool) and bool not in _as_tuple(types))
    ):
        names = " or ".join(t.__name__ for t in _as_tuple(types))
        raise MalformedDocument(
            f"Field `{key}` of {element} must be of type {names}",
            *get_position(node, key),
        )
    return value


def dump_yaml(data: Any, stream: IO | None = None) -> str | None:
    yaml = YAML()
    yaml.default_flow_style = False
    if stream is not None:
        yaml.dump(data, stream)
        return None
    buffer = io.StringIO()
    yaml.dump(data, buffer)
    return buffer.getvalue()


def get_position(node: Any, key: Any = None) -> tuple[int | None, int | None]:
    try:
        if isinstance(node, CommentedMap):
            if key is not None and key in node:
                line, column = node.lc.key(key)
            else:
                line, column = node.lc.line, node.lc.col
            return line, column
        elif isinstance(node, CommentedSeq):
            if isinstance(key, int) and 0 <= key < len(node):
                line, column = node.lc.item(key)
            else:
                line, column = node.lc.line, node.lc.col
            return line, column
    except (AttributeError, KeyError, TypeError):
        pass
    return None, None


def is_extension_field(key: Any) -> bool:
    return isinstance(key, str) and (
        key in ("$namespaces", "$schemas", "$base") or ":" in key
    )


def load_yaml(source: str | IO) -> Any:
    yaml = YAML()
    try:
        return yaml.load(source)
    except MarkedYAMLError as e:
        mark = e.problem_mark or e.context_mark
        raise ParseError(
            f"Invalid YAML document: {e.problem or e.context}",
            line=mark.line if mark else None,
            column=mark.column if mark else None,
            offset=mark.index if mark else None,
        ) from e
    except YAMLError as e:
        raise ParseError(f"Invalid YAML document: {e}") from e


def require_field(node: MutableMapping[str, Any], key: str, element: str) -> Any:
    if key not in node or node[key] is None:
        raise MissingRequiredField(
            f"Missing required field `{key}` in {element}", *get_position(node)
        )
    return node[key]


def strip_id(value: str) -> str:
    return value[1:] if value.startswith("#") else value


def to_plain(value: Any) -> Any:
    if isinstance(value, MutableMapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    elif isinstance(value, MutableSequence):
        return [to_plain(v) for v in value]
    elif isinstance(value, bool):
        return bool(value)
    elif isinstance(value, ScalarFloat):
        return value
    elif isinstance(value, int):
        return int(value)
    elif isinstance(value, float):
        return float(value)
    elif isinstance(value, str):
        return str(value)
    else:
        return value


def _as_tuple(types: type | tuple[type, ...]) -> tuple[type, ...]:
    return types if isinstance(types, tuple) else (types,)

from __future__ import annotations

import copy
import posixpath
import urllib.parse
from collections.abc import MutableMapping, MutableSequence
from typing import Any

from zefiro.cwl import expression

CONTENT_LIMIT = 64 * 1024

SUPPORTED_SCHEMES = ("file", "ftp", "gs", "http", "https", "s3")


def build_context(
    inputs: MutableMapping[str, Any],
    outputs: MutableMapping[str, Any] | None = None,
    self_value: Any = None,
    runtime: MutableMapping[str, Any] | None = None,
) -> MutableMapping[str, Any]:
    return {
        "inputs": copy.deepcopy(dict(inputs)),
        "outputs": copy.deepcopy(dict(outputs or {})),
        "self": copy.deepcopy(self_value),
        "runtime": copy.deepcopy(dict(runtime or {})),
    }


def eval_expression(
    expression_str: Any,
    context: MutableMapping[str, Any],
    full_js: bool = False,
    strip_whitespace: bool = True,
) -> Any:
    if isinstance(expression_str, str) and (
        "$(" in expression_str or "${" in expression_str
    ):
        return expression.interpolate(
            expression_str,
            context,
            full_js=full_js,
            strip_whitespace=strip_whitespace,
        )
    else:
        return expression_str


def get_basename(location: str) -> str:
    if "://" in location:
        location = urllib.parse.unquote(urllib.parse.urlsplit(location).path)
    return posixpath.basename(location.rstrip("/"))


def get_scheme(location: str) -> str | None:
    if "://" in location:
        return urllib.parse.urlsplit(location).scheme
    return None


def get_token_class(token_value: Any) -> str | None:
    if isinstance(token_value, MutableMapping):
        return token_value.get("class")
    else:
        return None


def get_token_repr(token_value: MutableMapping[str, Any]) -> str:
    return token_value.get("path") or token_value["location"]


def infer_type_from_token(token_value: Any) -> str:
    if isinstance(token_value, MutableMapping):
        return get_token_class(token_value) or "record"
    elif isinstance(token_value, MutableSequence):
        return "array"
    elif isinstance(token_value, str):
        return "string"
    elif isinstance(token_value, bool):
        return "boolean"
    elif isinstance(token_value, int):
        return "long"
    elif isinstance(token_value, float):
        return "double"
    else:
        return "null"


def update_file_token(token_value: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    if "basename" not in token_value:
        token_value["basename"] = get_basename(token_value["location"])
    if get_token_class(token_value) == "File":
        nameroot, nameext = posixpath.splitext(token_value["basename"])
        token_value.setdefault("nameroot", nameroot)
        token_value.setdefault("nameext", nameext)
    return token_value

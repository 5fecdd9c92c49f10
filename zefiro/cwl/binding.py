from __future__ import annotations

from collections.abc import MutableMapping, MutableSequence
from typing import Any

from typing_extensions import Self

from zefiro.core.exception import MalformedDocument
from zefiro.cwl.loader import (
    check_fields,
    check_mapping,
    check_value,
    get_position,
    to_plain,
)

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class InputBinding:
    __slots__ = ("position", "prefix", "separate", "item_separator", "value_from")

    def __init__(
        self,
        position: int = 0,
        prefix: str | None = None,
        separate: bool = True,
        item_separator: str | None = None,
        value_from: Any = None,
    ):
        self.position: int = position
        self.prefix: str | None = prefix
        self.separate: bool = separate
        self.item_separator: str | None = item_separator
        self.value_from: Any = value_from

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, InputBinding) and self.save() == other.save()

    def __repr__(self) -> str:
        return f"InputBinding({self.save()!r})"

    @classmethod
    def parse(cls, node: Any, element: str = "inputBinding") -> Self:
        check_mapping(node, element)
        check_fields(
            node, ("position", "prefix", "separate", "itemSeparator", "valueFrom"), element
        )
        position = check_value(node, "position", int, element)
        if position is not None and not INT32_MIN <= position <= INT32_MAX:
            raise MalformedDocument(
                f"Field `position` of {element} must be a 32-bit integer",
                *get_position(node, "position"),
            )
        separate = check_value(node, "separate", bool, element)
        return cls(
            position=position if position is not None else 0,
            prefix=check_value(node, "prefix", str, element),
            separate=separate if separate is not None else True,
            item_separator=check_value(node, "itemSeparator", str, element),
            value_from=to_plain(node.get("valueFrom")),
        )

    def save(self) -> MutableMapping[str, Any]:
        binding = {}
        if self.position != 0:
            binding["position"] = self.position
        if self.prefix is not None:
            binding["prefix"] = self.prefix
        if not self.separate:
            binding["separate"] = False
        if self.item_separator is not None:
            binding["itemSeparator"] = self.item_separator
        if self.value_from is not None:
            binding["valueFrom"] = self.value_from
        return binding


class OutputBinding:
    __slots__ = ("glob", "output_eval", "load_contents")

    def __init__(
        self,
        glob: str | MutableSequence[str] | None = None,
        output_eval: str | None = None,
        load_contents: bool = False,
    ):
        self.glob: str | MutableSequence[str] | None = glob
        self.output_eval: str | None = output_eval
        self.load_contents: bool = load_contents

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, OutputBinding) and self.save() == other.save()

    def __repr__(self) -> str:
        return f"OutputBinding({self.save()!r})"

    @classmethod
    def parse(cls, node: Any, element: str = "outputBinding") -> Self:
        check_mapping(node, element)
        check_fields(node, ("glob", "outputEval", "loadContents"), element)
        glob = check_value(node, "glob", (str, MutableSequence), element)
        if isinstance(glob, MutableSequence) and not all(
            isinstance(g, str) for g in glob
        ):
            raise MalformedDocument(
                f"Field `glob` of {element} must contain only strings",
                *get_position(node, "glob"),
            )
        load_contents = check_value(node, "loadContents", bool, element)
        return cls(
            glob=to_plain(glob),
            output_eval=to_plain(check_value(node, "outputEval", str, element)),
            load_contents=bool(load_contents),
        )

    def save(self) -> MutableMapping[str, Any]:
        binding = {}
        if self.glob is not None:
            binding["glob"] = self.glob
        if self.output_eval is not None:
            binding["outputEval"] = self.output_eval
        if self.load_contents:
            binding["loadContents"] = True
        return binding

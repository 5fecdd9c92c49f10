from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import MutableMapping, MutableSequence
from typing import Any

from typing_extensions import Self

from zefiro.core.exception import MalformedDocument, UnknownClass
from zefiro.cwl.loader import (
    check_fields,
    check_mapping,
    check_value,
    get_position,
    require_field,
    to_plain,
)
from zefiro.cwl.utils import eval_expression
from zefiro.log_handler import logger

DEFAULT_CORES = 1
DEFAULT_RAM = 1024
DEFAULT_TMPDIR = 1024
DEFAULT_OUTDIR = 1024


class Requirement(ABC):
    __slots__ = ()

    class_name: str = ""

    def __eq__(self, other: Any) -> bool:
        return type(self) is type(other) and self.save() == other.save()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.save()!r})"

    @classmethod
    @abstractmethod
    def parse(cls, node: MutableMapping[str, Any]) -> Self: ...

    def save(self) -> MutableMapping[str, Any]:
        return {"class": self.class_name}


class DockerRequirement(Requirement):
    __slots__ = ("docker_pull",)

    class_name = "DockerRequirement"

    def __init__(self, docker_pull: str):
        self.docker_pull: str = docker_pull

    @classmethod
    def parse(cls, node: MutableMapping[str, Any]) -> Self:
        check_fields(node, ("class", "dockerPull"), cls.class_name)
        require_field(node, "dockerPull", cls.class_name)
        return cls(docker_pull=str(check_value(node, "dockerPull", str, cls.class_name)))

    def save(self) -> MutableMapping[str, Any]:
        return {**super().save(), "dockerPull": self.docker_pull}


class InlineJavascriptRequirement(Requirement):
    __slots__ = ()

    class_name = "InlineJavascriptRequirement"

    @classmethod
    def parse(cls, node: MutableMapping[str, Any]) -> Self:
        check_fields(node, ("class",), cls.class_name)
        return cls()


class ResourceRequirement(Requirement):
    __slots__ = ("values",)

    class_name = "ResourceRequirement"
    fields = (
        "coresMin",
        "coresMax",
        "ramMin",
        "ramMax",
        "tmpdirMin",
        "tmpdirMax",
        "outdirMin",
        "outdirMax",
    )
    defaults = {
        "cores": DEFAULT_CORES,
        "ram": DEFAULT_RAM,
        "tmpdir": DEFAULT_TMPDIR,
        "outdir": DEFAULT_OUTDIR,
    }

    def __init__(self, values: MutableMapping[str, int | float | str] | None = None):
        self.values: MutableMapping[str, int | float | str] = dict(values or {})

    @classmethod
    def parse(cls, node: MutableMapping[str, Any]) -> Self:
        check_fields(node, ("class", *cls.fields), cls.class_name)
        values = {}
        for field in cls.fields:
            if (value := check_value(node, field, (int, float, str), cls.class_name)) is not None:
                if not isinstance(value, str) and value < 0:
                    raise MalformedDocument(
                        f"Field `{field}` of {cls.class_name} must not be negative",
                        *get_position(node, field),
                    )
                values[field] = to_plain(value)
        return cls(values)

    def _evaluate(
        self, field: str, context: MutableMapping[str, Any], full_js: bool
    ) -> int | float | None:
        if (value := self.values.get(field)) is None:
            return None
        value = eval_expression(value, context, full_js=full_js)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedDocument(
                f"Field `{field}` of {self.class_name} must evaluate to a number"
            )
        return value

    def get_resources(
        self, context: MutableMapping[str, Any], full_js: bool = False
    ) -> MutableMapping[str, MutableMapping[str, int | float]]:
        resources = {"min": {}, "max": {}}
        for name, default in self.defaults.items():
            min_value = self._evaluate(f"{name}Min", context, full_js)
            max_value = self._evaluate(f"{name}Max", context, full_js)
            if min_value is None:
                min_value = max_value if max_value is not None else default
            if max_value is None:
                max_value = min_value
            resources["min"][name] = min_value
            resources["max"][name] = max_value
        return resources

    def save(self) -> MutableMapping[str, Any]:
        return {
            **super().save(),
            **{f: self.values[f] for f in self.fields if f in self.values},
        }


class ScatterFeatureRequirement(Requirement):
    __slots__ = ()

    class_name = "ScatterFeatureRequirement"

    @classmethod
    def parse(cls, node: MutableMapping[str, Any]) -> Self:
        check_fields(node, ("class",), cls.class_name)
        return cls()


class ToolTimeLimit(Requirement):
    __slots__ = ("timelimit",)

    class_name = "ToolTimeLimit"

    def __init__(self, timelimit: int | str):
        self.timelimit: int | str = timelimit

    @classmethod
    def parse(cls, node: MutableMapping[str, Any]) -> Self:
        check_fields(node, ("class", "timelimit"), cls.class_name)
        require_field(node, "timelimit", cls.class_name)
        timelimit = check_value(node, "timelimit", (int, str), cls.class_name)
        if isinstance(timelimit, int) and timelimit < 0:
            raise MalformedDocument(
                f"Field `timelimit` of {cls.class_name} must not be negative",
                *get_position(node, "timelimit"),
            )
        return cls(timelimit=to_plain(timelimit))

    def get_timelimit(
        self, context: MutableMapping[str, Any], full_js: bool = False
    ) -> int:
        timelimit = eval_expression(self.timelimit, context, full_js=full_js)
        if isinstance(timelimit, bool) or not isinstance(timelimit, int):
            raise MalformedDocument(
                f"Field `timelimit` of {self.class_name} must evaluate to an integer"
            )
        return timelimit

    def save(self) -> MutableMapping[str, Any]:
        return {**super().save(), "timelimit": self.timelimit}


class WorkReuse(Requirement):
    __slots__ = ("enable_reuse",)

    class_name = "WorkReuse"

    def __init__(self, enable_reuse: bool | str = True):
        self.enable_reuse: bool | str = enable_reuse

    @classmethod
    def parse(cls, node: MutableMapping[str, Any]) -> Self:
        check_fields(node, ("class", "enableReuse"), cls.class_name)
        enable_reuse = check_value(node, "enableReuse", (bool, str), cls.class_name)
        return cls(enable_reuse=True if enable_reuse is None else to_plain(enable_reuse))

    def save(self) -> MutableMapping[str, Any]:
        return {**super().save(), "enableReuse": self.enable_reuse}


class UnknownRequirement(Requirement):
    __slots__ = ("name", "body")

    def __init__(self, name: str, body: MutableMapping[str, Any]):
        self.name: str = name
        self.body: MutableMapping[str, Any] = body

    @property
    def class_name(self) -> str:
        return self.name

    @classmethod
    def parse(cls, node: MutableMapping[str, Any]) -> Self:
        return cls(name=str(node["class"]), body=to_plain(node))

    def save(self) -> MutableMapping[str, Any]:
        return dict(self.body)


requirement_classes: MutableMapping[str, type[Requirement]] = {
    "DockerRequirement": DockerRequirement,
    "InlineJavascriptRequirement": InlineJavascriptRequirement,
    "ResourceRequirement": ResourceRequirement,
    "ScatterFeatureRequirement": ScatterFeatureRequirement,
    "ToolTimeLimit": ToolTimeLimit,
    "WorkReuse": WorkReuse,
}


def parse_requirements(
    node: Any, tolerant: bool = False, element: str = "requirements"
) -> MutableMapping[str, Requirement]:
    if node is None:
        return {}
    # Requirements can be expressed as a class-keyed mapping
    if isinstance(node, MutableMapping):
        entries = []
        for name, body in node.items():
            if body is None:
                body = {}
            check_mapping(body, f"{element} entry", node, name)
            entries.append(({**body, "class": name}, body))
    elif isinstance(node, MutableSequence):
        entries = []
        for i, body in enumerate(node):
            check_mapping(body, f"{element} entry", node, i)
            entries.append((body, body))
    else:
        raise MalformedDocument(
            f"Field `{element}` must be a list or a mapping", *get_position(node)
        )
    requirements = {}
    for entry, source in entries:
        name = require_field(entry, "class", f"{element} entry")
        if not isinstance(name, str):
            raise MalformedDocument(
                f"The class of {element} entries must be a string",
                *get_position(source, "class"),
            )
        if name in requirements:
            raise MalformedDocument(
                f"Duplicate {element} entry `{name}`", *get_position(source)
            )
        if name in requirement_classes:
            requirements[name] = requirement_classes[name].parse(
                source if "class" in source else entry
            )
        elif tolerant:
            logger.warning(f"Ignoring unknown {element} entry `{name}`")
            requirements[name] = UnknownRequirement.parse(entry)
        else:
            raise UnknownClass(
                f"Unknown {element} class `{name}`",
                *get_position(source, "class" if "class" in source else None),
            )
    return requirements

from __future__ import annotations

import json
import math
from collections.abc import MutableMapping, MutableSequence
from enum import Enum
from importlib.resources import files
from typing import Any

from jsonschema.validators import validator_for
from typing_extensions import Self

from zefiro.core.exception import ConfigurationError, ResolutionError
from zefiro.cwl import utils
from zefiro.cwl.context import RuntimeContext
from zefiro.cwl.requirement import (
    DEFAULT_CORES,
    DEFAULT_OUTDIR,
    DEFAULT_RAM,
    DEFAULT_TMPDIR,
    DockerRequirement,
    ResourceRequirement,
    ToolTimeLimit,
)
from zefiro.cwl.resolver import ResolvedInvocation, bind_inputs
from zefiro.cwl.schema import Schema
from zefiro.cwl.values import Values


class JobPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class JobResources:
    __slots__ = ("cpus", "ram", "disk")

    def __init__(self, cpus: int | float, ram: int, disk: int):
        self.cpus: int | float = cpus
        self.ram: int = ram
        self.disk: int = disk

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, JobResources):
            return self.to_dict() == other.to_dict()
        return NotImplemented

    def __repr__(self) -> str:
        return f"JobResources(cpus={self.cpus}, ram={self.ram}, disk={self.disk})"

    @classmethod
    def from_dict(cls, resources: MutableMapping[str, Any]) -> Self:
        return cls(cpus=resources["cpus"], ram=resources["ram"], disk=resources["disk"])

    def to_dict(self) -> MutableMapping[str, Any]:
        return {"cpus": self.cpus, "ram": self.ram, "disk": self.disk}


def _load_schema() -> MutableMapping[str, Any]:
    return json.loads(
        files(__package__)
        .joinpath("schemas")
        .joinpath("job_message.json")
        .read_text("utf-8")
    )


class JobMessage:
    """Hand-off message describing a resolved tool invocation to the job queue."""

    __slots__ = (
        "id",
        "image",
        "min_resources",
        "max_resources",
        "timelimit",
        "args",
        "priority",
    )

    def __init__(
        self,
        id: str,
        image: str,
        min_resources: JobResources,
        max_resources: JobResources,
        timelimit: int,
        args: MutableSequence[str],
        priority: JobPriority = JobPriority.MEDIUM,
    ):
        self.id: str = id
        self.image: str = image
        self.min_resources: JobResources = min_resources
        self.max_resources: JobResources = max_resources
        self.timelimit: int = timelimit
        self.args: MutableSequence[str] = args
        self.priority: JobPriority = priority

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, JobMessage):
            return self.to_dict() == other.to_dict()
        return NotImplemented

    @classmethod
    def from_dict(cls, message: MutableMapping[str, Any]) -> Self:
        schema = _load_schema()
        validator = validator_for(schema)(schema)
        if errors := sorted(validator.iter_errors(message), key=str):
            raise ConfigurationError(
                "The job message is invalid because:\n{error_msgs}".format(
                    error_msgs="\n".join([f" - {err}" for err in errors])
                )
            )
        return cls(
            id=message["id"],
            image=message["image"],
            min_resources=JobResources.from_dict(message["min_resources"]),
            max_resources=JobResources.from_dict(message["max_resources"]),
            timelimit=message["timelimit"],
            args=list(message["args"]),
            priority=JobPriority(message["priority"]),
        )

    @classmethod
    def from_json(cls, text: str) -> Self:
        try:
            message = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"The job message is not valid JSON: {e.msg}", offset=e.pos
            ) from e
        return cls.from_dict(message)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "image": self.image,
            "min_resources": self.min_resources.to_dict(),
            "max_resources": self.max_resources.to_dict(),
            "timelimit": self.timelimit,
            "args": list(self.args),
            "priority": self.priority.value,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _to_resources(resources: MutableMapping[str, int | float]) -> JobResources:
    return JobResources(
        cpus=resources["cores"],
        ram=math.ceil(resources["ram"]),
        disk=math.ceil(resources["tmpdir"]) + math.ceil(resources["outdir"]),
    )


def build_job_message(
    job_id: str,
    schema: Schema,
    invocation: ResolvedInvocation,
    values: Values | MutableMapping[str, Any],
    runtime_context: RuntimeContext | None = None,
    priority: JobPriority | str | None = None,
    config: MutableMapping[str, Any] | None = None,
) -> JobMessage:
    job_config = (config or {}).get("job", {})
    process = schema.process
    if not isinstance(
        docker := process.get_requirement("DockerRequirement"), DockerRequirement
    ):
        raise ResolutionError(
            f"Tool `{process.id}` declares no DockerRequirement to run the job with"
        )
    context = utils.build_context(
        bind_inputs(schema, values),
        runtime=(runtime_context or RuntimeContext()).to_dict(),
    )
    if isinstance(
        resource := process.get_requirement("ResourceRequirement"), ResourceRequirement
    ):
        resources = resource.get_resources(context, full_js=schema.full_js)
        min_resources = _to_resources(resources["min"])
        max_resources = _to_resources(resources["max"])
    else:
        defaults = job_config.get("resources", {})
        min_resources = max_resources = JobResources(
            cpus=defaults.get("cpus", DEFAULT_CORES),
            ram=defaults.get("ram", DEFAULT_RAM),
            disk=defaults.get("disk", DEFAULT_TMPDIR + DEFAULT_OUTDIR),
        )
    if isinstance(
        time_limit := process.get_requirement("ToolTimeLimit"), ToolTimeLimit
    ):
        timelimit = time_limit.get_timelimit(context, full_js=schema.full_js)
    else:
        timelimit = job_config.get("timelimit", 0)
    if priority is None:
        priority = job_config.get("priority", JobPriority.MEDIUM.value)
    return JobMessage(
        id=job_id,
        image=docker.docker_pull,
        min_resources=min_resources,
        max_resources=max_resources,
        timelimit=timelimit,
        args=list(invocation.argv),
        priority=JobPriority(priority),
    )

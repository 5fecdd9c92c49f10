from __future__ import annotations

import copy
import os
from collections.abc import Iterable, Iterator, MutableMapping, MutableSequence
from pathlib import Path
from typing import IO, Any

from typing_extensions import Self

from zefiro.core.exception import (
    ExpressionError,
    MalformedDocument,
    MissingRequiredField,
    ParseError,
    UnknownClass,
    UnsupportedField,
    ValuesError,
    VersionMismatch,
)
from zefiro.cwl import expression
from zefiro.cwl.binding import InputBinding, OutputBinding
from zefiro.cwl.context import LoadingContext
from zefiro.cwl.loader import (
    check_fields,
    check_mapping,
    check_value,
    dump_yaml,
    get_position,
    load_yaml,
    require_field,
    strip_id,
    to_plain,
)
from zefiro.cwl.requirement import (
    Requirement,
    UnknownRequirement,
    parse_requirements,
)
from zefiro.cwl.types import CWLType, RecordType, parse_type
from zefiro.cwl.values import parse_value

CWL_VERSION = "v1.2"

_PARAMETER_FIELDS = ("id", "type", "label", "doc")


def _check_expression(
    value: Any,
    input_ids: Iterable[str],
    node: Any,
    key: Any,
    element: str,
) -> None:
    if isinstance(value, MutableSequence):
        for v in value:
            _check_expression(v, input_ids, node, key, element)
        return
    if not isinstance(value, str):
        return
    try:
        dependencies = expression.get_dependencies(value)
    except ExpressionError as e:
        raise MalformedDocument(
            f"Invalid expression in field `{key}` of {element}: {e}",
            *get_position(node, key),
        ) from e
    if undeclared := sorted(dependencies - set(input_ids)):
        raise MalformedDocument(
            "Expression in field `{key}` of {element} references undeclared "
            "input{s} {names}".format(
                key=key,
                element=element,
                s="s" if len(undeclared) > 1 else "",
                names=", ".join(f"`{n}`" for n in undeclared),
            ),
            *get_position(node, key),
        )


def _check_version(node: MutableMapping[str, Any], required: bool) -> None:
    if "cwlVersion" not in node:
        if required:
            raise MissingRequiredField(
                "Missing required field `cwlVersion`", *get_position(node)
            )
        return
    if node["cwlVersion"] != CWL_VERSION:
        raise VersionMismatch(
            f"Unsupported CWL version `{node['cwlVersion']}`: only {CWL_VERSION} is supported",
            *get_position(node, "cwlVersion"),
        )


def _iter_idmap(
    node: MutableMapping[str, Any], key: str, element: str, predicate: str
) -> Iterator[tuple[str, MutableMapping[str, Any]]]:
    entries = node.get(key)
    if entries is None:
        return
    ids = set()
    if isinstance(entries, MutableMapping):
        items = []
        for entry_id, body in entries.items():
            if not isinstance(body, MutableMapping):
                body = {predicate: body}
            items.append((str(entry_id), body))
    elif isinstance(entries, MutableSequence):
        items = []
        for i, body in enumerate(entries):
            check_mapping(body, element, entries, i)
            entry_id = require_field(body, "id", element)
            if not isinstance(entry_id, str):
                raise MalformedDocument(
                    f"The id of {element} must be a string", *get_position(body, "id")
                )
            items.append((entry_id, body))
    else:
        raise MalformedDocument(
            f"Field `{key}` must be a list or a mapping", *get_position(node, key)
        )
    for entry_id, body in items:
        entry_id = strip_id(entry_id).split("/")[-1]
        if entry_id in ids:
            raise MalformedDocument(
                f"Duplicate {element} id `{entry_id}`", *get_position(body)
            )
        ids.add(entry_id)
        yield entry_id, body


def _parse_default(
    body: MutableMapping[str, Any], type_: CWLType, element: str
) -> Any:
    if body.get("default") is None:
        return None
    try:
        default = parse_value(body["default"])
    except ValuesError as e:
        raise MalformedDocument(
            f"Invalid default value of {element}: {e.message}",
            *get_position(body, "default"),
        ) from e
    if not type_.accepts(default):
        raise MalformedDocument(
            f"Default value of {element} does not match its type",
            *get_position(body, "default"),
        )
    return default


def _parse_text(body: MutableMapping[str, Any], key: str, element: str) -> Any:
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, MutableSequence):
        if not all(isinstance(v, str) for v in value):
            raise MalformedDocument(
                f"Field `{key}` of {element} must be a string or a list of strings",
                *get_position(body, key),
            )
        return to_plain(value)
    return str(check_value(body, key, str, element))


def _save_common(obj: Any, result: MutableMapping[str, Any]) -> None:
    if obj.label is not None:
        result["label"] = obj.label
    if obj.doc is not None:
        result["doc"] = obj.doc


class InputParameter:
    __slots__ = ("id", "type", "default", "input_binding", "label", "doc")

    def __init__(
        self,
        id: str,
        type: CWLType,
        default: Any = None,
        input_binding: InputBinding | None = None,
        label: str | None = None,
        doc: str | MutableSequence[str] | None = None,
    ):
        self.id: str = id
        self.type: CWLType = type
        self.default: Any = default
        self.input_binding: InputBinding | None = input_binding
        self.label: str | None = label
        self.doc: str | MutableSequence[str] | None = doc

    @classmethod
    def parse(cls, id: str, body: MutableMapping[str, Any], element: str) -> Self:
        element = f"{element} `{id}`"
        check_fields(body, (*_PARAMETER_FIELDS, "default", "inputBinding"), element)
        type_ = parse_type(require_field(body, "type", element), body)
        return cls(
            id=id,
            type=type_,
            default=_parse_default(body, type_, element),
            input_binding=(
                InputBinding.parse(body["inputBinding"])
                if body.get("inputBinding") is not None
                else None
            ),
            label=_parse_text(body, "label", element),
            doc=_parse_text(body, "doc", element),
        )

    def save(self) -> MutableMapping[str, Any]:
        parameter = {"id": self.id, "type": self.type.save()}
        _save_common(self, parameter)
        if self.default is not None:
            parameter["default"] = self.default
        if self.input_binding is not None:
            parameter["inputBinding"] = self.input_binding.save()
        return parameter


class OutputParameter:
    __slots__ = ("id", "type", "output_binding", "output_source", "label", "doc")

    def __init__(
        self,
        id: str,
        type: CWLType,
        output_binding: OutputBinding | None = None,
        output_source: str | MutableSequence[str] | None = None,
        label: str | None = None,
        doc: str | MutableSequence[str] | None = None,
    ):
        self.id: str = id
        self.type: CWLType = type
        self.output_binding: OutputBinding | None = output_binding
        self.output_source: str | MutableSequence[str] | None = output_source
        self.label: str | None = label
        self.doc: str | MutableSequence[str] | None = doc

    @classmethod
    def parse(
        cls, id: str, body: MutableMapping[str, Any], element: str, workflow: bool
    ) -> Self:
        element = f"{element} `{id}`"
        check_fields(
            body,
            (*_PARAMETER_FIELDS, "outputSource" if workflow else "outputBinding"),
            element,
        )
        return cls(
            id=id,
            type=parse_type(require_field(body, "type", element), body),
            output_binding=(
                OutputBinding.parse(body["outputBinding"])
                if body.get("outputBinding") is not None
                else None
            ),
            output_source=_parse_text(body, "outputSource", element),
            label=_parse_text(body, "label", element),
            doc=_parse_text(body, "doc", element),
        )

    def save(self) -> MutableMapping[str, Any]:
        parameter = {"id": self.id, "type": self.type.save()}
        _save_common(self, parameter)
        if self.output_binding is not None:
            parameter["outputBinding"] = self.output_binding.save()
        if self.output_source is not None:
            parameter["outputSource"] = self.output_source
        return parameter


class Process:
    class_name: str = ""

    def __init__(
        self,
        id: str | None,
        inputs: MutableSequence[InputParameter],
        outputs: MutableSequence[OutputParameter],
        requirements: MutableMapping[str, Requirement] | None = None,
        hints: MutableMapping[str, Requirement] | None = None,
        label: str | None = None,
        doc: str | MutableSequence[str] | None = None,
    ):
        self.id: str | None = id
        self.inputs: MutableSequence[InputParameter] = inputs
        self.outputs: MutableSequence[OutputParameter] = outputs
        self.requirements: MutableMapping[str, Requirement] = requirements or {}
        self.hints: MutableMapping[str, Requirement] = hints or {}
        self.label: str | None = label
        self.doc: str | MutableSequence[str] | None = doc

    def get_input(self, input_id: str) -> InputParameter | None:
        return next((p for p in self.inputs if p.id == input_id), None)

    def get_output(self, output_id: str) -> OutputParameter | None:
        return next((p for p in self.outputs if p.id == output_id), None)

    def get_requirement(self, class_name: str) -> Requirement | None:
        return self.requirements.get(class_name, self.hints.get(class_name))

    def has_requirement(self, class_name: str) -> bool:
        return self.get_requirement(class_name) is not None

    def save(self) -> MutableMapping[str, Any]:
        process = {"class": self.class_name}
        if self.id is not None:
            process["id"] = self.id
        _save_common(self, process)
        return process

    def _save_requirements(self, process: MutableMapping[str, Any]) -> None:
        if self.requirements:
            process["requirements"] = [r.save() for r in self.requirements.values()]
        if self.hints:
            process["hints"] = [r.save() for r in self.hints.values()]


def _parse_requirement_fields(
    node: MutableMapping[str, Any], loading_context: LoadingContext
) -> tuple[MutableMapping[str, Requirement], MutableMapping[str, Requirement]]:
    return (
        parse_requirements(
            node.get("requirements"), loading_context.tolerant, "requirements"
        ),
        parse_requirements(node.get("hints"), True, "hints"),
    )


class CommandLineTool(Process):
    class_name = "CommandLineTool"
    fields = (
        "cwlVersion",
        "class",
        "id",
        "label",
        "doc",
        "baseCommand",
        "arguments",
        "inputs",
        "outputs",
        "requirements",
        "hints",
    )

    def __init__(
        self,
        id: str | None,
        base_command: MutableSequence[str],
        arguments: MutableSequence[str | InputBinding],
        inputs: MutableSequence[InputParameter],
        outputs: MutableSequence[OutputParameter],
        requirements: MutableMapping[str, Requirement] | None = None,
        hints: MutableMapping[str, Requirement] | None = None,
        label: str | None = None,
        doc: str | MutableSequence[str] | None = None,
    ):
        super().__init__(id, inputs, outputs, requirements, hints, label, doc)
        self.base_command: MutableSequence[str] = base_command
        self.arguments: MutableSequence[str | InputBinding] = arguments

    @classmethod
    def parse(
        cls,
        node: MutableMapping[str, Any],
        loading_context: LoadingContext,
        default_id: str | None = None,
    ) -> Self:
        check_fields(node, cls.fields, cls.class_name)
        base_command = node.get("baseCommand")
        if base_command is None:
            base_command = []
        elif isinstance(base_command, str):
            base_command = [base_command]
        elif not isinstance(base_command, MutableSequence) or not all(
            isinstance(c, str) for c in base_command
        ):
            raise MalformedDocument(
                "Field `baseCommand` must be a string or a list of strings",
                *get_position(node, "baseCommand"),
            )
        arguments = []
        if (args := node.get("arguments")) is not None:
            if not isinstance(args, MutableSequence):
                raise MalformedDocument(
                    "Field `arguments` must be a list", *get_position(node, "arguments")
                )
            for i, arg in enumerate(args):
                if isinstance(arg, MutableMapping):
                    require_field(arg, "valueFrom", "argument")
                    arguments.append(InputBinding.parse(arg, "argument"))
                elif isinstance(arg, (str, int, float)) and not isinstance(arg, bool):
                    arguments.append(str(arg))
                else:
                    raise MalformedDocument(
                        "Arguments must be strings or binding mappings",
                        *get_position(args, i),
                    )
        requirements, hints = _parse_requirement_fields(node, loading_context)
        tool = cls(
            id=strip_id(str(node["id"])) if node.get("id") is not None else default_id,
            base_command=to_plain(base_command),
            arguments=arguments,
            inputs=[
                InputParameter.parse(i, body, "input")
                for i, body in _iter_idmap(node, "inputs", "input", "type")
            ],
            outputs=[
                OutputParameter.parse(i, body, "output", workflow=False)
                for i, body in _iter_idmap(node, "outputs", "output", "type")
            ],
            requirements=requirements,
            hints=hints,
            label=_parse_text(node, "label", cls.class_name),
            doc=_parse_text(node, "doc", cls.class_name),
        )
        tool._check_expressions(node)
        return tool

    def _check_expressions(self, node: MutableMapping[str, Any]) -> None:
        input_ids = [p.id for p in self.inputs]
        for i, arg in enumerate(self.arguments):
            _check_expression(
                arg.value_from if isinstance(arg, InputBinding) else arg,
                input_ids,
                node.get("arguments"),
                i,
                "arguments",
            )
        for parameter in self.inputs:
            if parameter.input_binding is not None:
                _check_expression(
                    parameter.input_binding.value_from,
                    input_ids,
                    node,
                    "inputs",
                    f"input `{parameter.id}`",
                )
            if isinstance(parameter.type, RecordType):
                for field in parameter.type.fields:
                    if field.input_binding is not None:
                        _check_expression(
                            field.input_binding.value_from,
                            input_ids,
                            node,
                            "inputs",
                            f"field `{field.name}` of input `{parameter.id}`",
                        )
        for parameter in self.outputs:
            if (binding := parameter.output_binding) is not None:
                for key, value in (("glob", binding.glob), ("outputEval", binding.output_eval)):
                    _check_expression(
                        value, input_ids, node, "outputs", f"output `{parameter.id}` ({key})"
                    )
        for requirement in self.requirements.values():
            if isinstance(requirement, UnknownRequirement):
                continue
            for value in requirement.save().values():
                _check_expression(
                    value, input_ids, node, "requirements", requirement.class_name
                )

    def save(self) -> MutableMapping[str, Any]:
        tool = super().save()
        if self.base_command:
            tool["baseCommand"] = (
                self.base_command[0]
                if len(self.base_command) == 1
                else list(self.base_command)
            )
        if self.arguments:
            tool["arguments"] = [
                a.save() if isinstance(a, InputBinding) else a for a in self.arguments
            ]
        tool["inputs"] = [p.save() for p in self.inputs]
        tool["outputs"] = [p.save() for p in self.outputs]
        self._save_requirements(tool)
        return tool


class WorkflowStepInput:
    __slots__ = ("id", "source", "default", "value_from")

    def __init__(
        self,
        id: str,
        source: str | MutableSequence[str] | None = None,
        default: Any = None,
        value_from: str | None = None,
    ):
        self.id: str = id
        self.source: str | MutableSequence[str] | None = source
        self.default: Any = default
        self.value_from: str | None = value_from

    @classmethod
    def parse(cls, id: str, body: MutableMapping[str, Any], element: str) -> Self:
        element = f"{element} `{id}`"
        check_fields(body, ("id", "source", "default", "valueFrom", "label"), element)
        source = _parse_text(body, "source", element)
        if isinstance(source, str):
            source = strip_id(source)
        elif source is not None:
            source = [strip_id(s) for s in source]
        try:
            default = parse_value(body["default"]) if body.get("default") is not None else None
        except ValuesError as e:
            raise MalformedDocument(
                f"Invalid default value of {element}: {e.message}",
                *get_position(body, "default"),
            ) from e
        return cls(
            id=id,
            source=source,
            default=default,
            value_from=to_plain(check_value(body, "valueFrom", str, element)),
        )

    def save(self) -> MutableMapping[str, Any]:
        step_input = {"id": self.id}
        if self.source is not None:
            step_input["source"] = self.source
        if self.default is not None:
            step_input["default"] = self.default
        if self.value_from is not None:
            step_input["valueFrom"] = self.value_from
        return step_input


class WorkflowStep:
    fields = ("id", "run", "in", "out", "when", "requirements", "hints", "label", "doc")

    def __init__(
        self,
        id: str,
        run: str | CommandLineTool,
        in_: MutableSequence[WorkflowStepInput],
        out: MutableSequence[str],
        when: str | None = None,
        requirements: MutableMapping[str, Requirement] | None = None,
        hints: MutableMapping[str, Requirement] | None = None,
        label: str | None = None,
        doc: str | MutableSequence[str] | None = None,
    ):
        self.id: str = id
        self.run: str | CommandLineTool = run
        self.in_: MutableSequence[WorkflowStepInput] = in_
        self.out: MutableSequence[str] = out
        self.when: str | None = when
        self.requirements: MutableMapping[str, Requirement] = requirements or {}
        self.hints: MutableMapping[str, Requirement] = hints or {}
        self.label: str | None = label
        self.doc: str | MutableSequence[str] | None = doc

    @classmethod
    def parse(
        cls, id: str, body: MutableMapping[str, Any], loading_context: LoadingContext
    ) -> Self:
        element = f"step `{id}`"
        check_fields(body, cls.fields, element)
        run = require_field(body, "run", element)
        if isinstance(run, MutableMapping):
            _check_version(run, required=False)
            match run.get("class"):
                case "CommandLineTool":
                    run = CommandLineTool.parse(run, loading_context, default_id=id)
                case "Workflow":
                    raise UnsupportedField(
                        f"Inline workflows in {element} are not supported",
                        *get_position(body, "run"),
                    )
                case None:
                    raise MissingRequiredField(
                        f"Missing required field `class` in the process of {element}",
                        *get_position(run),
                    )
                case other:
                    raise UnknownClass(
                        f"Unknown process class `{other}` in {element}",
                        *get_position(run, "class"),
                    )
        elif isinstance(run, str):
            run = str(run)
        else:
            raise MalformedDocument(
                f"Field `run` of {element} must be a string or a mapping",
                *get_position(body, "run"),
            )
        out = []
        if (outs := require_field(body, "out", element)) is not None:
            if not isinstance(outs, MutableSequence):
                raise MalformedDocument(
                    f"Field `out` of {element} must be a list", *get_position(body, "out")
                )
            for i, o in enumerate(outs):
                if isinstance(o, MutableMapping):
                    check_fields(o, ("id",), f"output of {element}")
                    o = require_field(o, "id", f"output of {element}")
                if not isinstance(o, str):
                    raise MalformedDocument(
                        f"Invalid output id in {element}", *get_position(outs, i)
                    )
                o = strip_id(o).split("/")[-1]
                if o in out:
                    raise MalformedDocument(
                        f"Duplicate output id `{o}` in {element}", *get_position(outs, i)
                    )
                out.append(o)
        requirements, hints = _parse_requirement_fields(body, loading_context)
        step = cls(
            id=id,
            run=run,
            in_=[
                WorkflowStepInput.parse(i, b, f"input of {element}")
                for i, b in _iter_idmap(body, "in", f"input of {element}", "source")
            ],
            out=out,
            when=to_plain(check_value(body, "when", str, element)),
            requirements=requirements,
            hints=hints,
            label=_parse_text(body, "label", element),
            doc=_parse_text(body, "doc", element),
        )
        step._check_ids(body)
        return step

    def check_tool(self, tool: Process, body: Any = None) -> None:
        element = f"step `{self.id}`"
        for step_input in self.in_:
            if tool.get_input(step_input.id) is None:
                raise MalformedDocument(
                    f"Input `{step_input.id}` of {element} is not declared by its tool",
                    *get_position(body, "in"),
                )
        for output_id in self.out:
            if tool.get_output(output_id) is None:
                raise MalformedDocument(
                    f"Output `{output_id}` of {element} is not declared by its tool",
                    *get_position(body, "out"),
                )

    def _check_ids(self, body: MutableMapping[str, Any]) -> None:
        element = f"step `{self.id}`"
        step_inputs = [i.id for i in self.in_]
        if isinstance(self.run, CommandLineTool):
            self.check_tool(self.run, body)
        _check_expression(self.when, step_inputs, body, "when", element)
        for step_input in self.in_:
            _check_expression(
                step_input.value_from,
                step_inputs,
                body,
                "in",
                f"input `{step_input.id}` of {element}",
            )

    def save(self) -> MutableMapping[str, Any]:
        step = {
            "id": self.id,
            "run": self.run.save() if isinstance(self.run, CommandLineTool) else self.run,
            "in": [i.save() for i in self.in_],
            "out": list(self.out),
        }
        if self.when is not None:
            step["when"] = self.when
        if self.requirements:
            step["requirements"] = [r.save() for r in self.requirements.values()]
        if self.hints:
            step["hints"] = [r.save() for r in self.hints.values()]
        _save_common(self, step)
        return step


class Workflow(Process):
    class_name = "Workflow"
    fields = (
        "cwlVersion",
        "class",
        "id",
        "label",
        "doc",
        "inputs",
        "outputs",
        "steps",
        "requirements",
        "hints",
    )

    def __init__(
        self,
        id: str | None,
        inputs: MutableSequence[InputParameter],
        outputs: MutableSequence[OutputParameter],
        steps: MutableSequence[WorkflowStep],
        requirements: MutableMapping[str, Requirement] | None = None,
        hints: MutableMapping[str, Requirement] | None = None,
        label: str | None = None,
        doc: str | MutableSequence[str] | None = None,
    ):
        super().__init__(id, inputs, outputs, requirements, hints, label, doc)
        self.steps: MutableSequence[WorkflowStep] = steps

    @classmethod
    def parse(
        cls,
        node: MutableMapping[str, Any],
        loading_context: LoadingContext,
        default_id: str | None = None,
    ) -> Self:
        check_fields(node, cls.fields, cls.class_name)
        require_field(node, "steps", cls.class_name)
        requirements, hints = _parse_requirement_fields(node, loading_context)
        workflow = cls(
            id=strip_id(str(node["id"])) if node.get("id") is not None else default_id,
            inputs=[
                InputParameter.parse(i, body, "input")
                for i, body in _iter_idmap(node, "inputs", "input", "type")
            ],
            outputs=[
                OutputParameter.parse(i, body, "output", workflow=True)
                for i, body in _iter_idmap(node, "outputs", "output", "type")
            ],
            steps=[
                WorkflowStep.parse(i, body, loading_context)
                for i, body in _iter_idmap(node, "steps", "step", "run")
            ],
            requirements=requirements,
            hints=hints,
            label=_parse_text(node, "label", cls.class_name),
            doc=_parse_text(node, "doc", cls.class_name),
        )
        workflow._check_sources(node)
        return workflow

    def _check_source(self, source: str, node: Any, key: str, element: str) -> None:
        if "/" in source:
            step_id, output_id = source.split("/", 1)
            if (step := self.get_step(step_id)) is None:
                raise MalformedDocument(
                    f"Source `{source}` of {element} refers to an undeclared step",
                    *get_position(node, key),
                )
            elif output_id not in step.out:
                raise MalformedDocument(
                    f"Source `{source}` of {element} refers to an undeclared output "
                    f"of step `{step_id}`",
                    *get_position(node, key),
                )
        elif self.get_input(source) is None:
            raise MalformedDocument(
                f"Source `{source}` of {element} refers to an undeclared input",
                *get_position(node, key),
            )

    def _check_sources(self, node: MutableMapping[str, Any]) -> None:
        for step in self.steps:
            for step_input in step.in_:
                sources = (
                    [step_input.source]
                    if isinstance(step_input.source, str)
                    else step_input.source or []
                )
                for source in sources:
                    self._check_source(
                        source,
                        node,
                        "steps",
                        f"input `{step_input.id}` of step `{step.id}`",
                    )
        for output in self.outputs:
            sources = (
                [output.output_source]
                if isinstance(output.output_source, str)
                else output.output_source or []
            )
            for source in sources:
                self._check_source(
                    strip_id(source), node, "outputs", f"output `{output.id}`"
                )

    def get_step(self, step_id: str) -> WorkflowStep | None:
        return next((s for s in self.steps if s.id == step_id), None)

    def save(self) -> MutableMapping[str, Any]:
        workflow = super().save()
        workflow["inputs"] = [p.save() for p in self.inputs]
        workflow["outputs"] = [p.save() for p in self.outputs]
        workflow["steps"] = [s.save() for s in self.steps]
        self._save_requirements(workflow)
        return workflow


process_classes: MutableMapping[str, type[CommandLineTool | Workflow]] = {
    "CommandLineTool": CommandLineTool,
    "Workflow": Workflow,
}


class Schema:
    """A parsed CWL document, either a `CommandLineTool` or a `Workflow`."""

    def __init__(self, process: CommandLineTool | Workflow, base_path: str | None = None):
        self.process: CommandLineTool | Workflow = process
        self.base_path: str | None = base_path

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Schema):
            return self.save() == other.save()
        return NotImplemented

    def __repr__(self) -> str:
        return f"Schema({self.process.class_name}, id={self.process.id!r})"

    @property
    def full_js(self) -> bool:
        return self.process.has_requirement("InlineJavascriptRequirement")

    @classmethod
    def from_path(
        cls, path: str | os.PathLike, loading_context: LoadingContext | None = None
    ) -> Self:
        try:
            with open(path) as f:
                document = load_yaml(f)
        except OSError as e:
            raise ParseError(f"Cannot read CWL document {path}: {e}") from e
        return cls.from_yaml(
            document,
            loading_context,
            default_id=Path(path).stem,
            base_path=str(Path(path).parent),
        )

    @classmethod
    def from_string(
        cls, text: str | IO, loading_context: LoadingContext | None = None
    ) -> Self:
        return cls.from_yaml(load_yaml(text), loading_context)

    @classmethod
    def from_yaml(
        cls,
        document: Any,
        loading_context: LoadingContext | None = None,
        default_id: str | None = None,
        base_path: str | None = None,
    ) -> Self:
        loading_context = loading_context or LoadingContext()
        check_mapping(document, "CWL document")
        _check_version(document, required=True)
        class_name = require_field(document, "class", "CWL document")
        if class_name not in process_classes:
            raise UnknownClass(
                f"Unknown CWL document class `{class_name}`",
                *get_position(document, "class"),
            )
        return cls(
            process_classes[class_name].parse(document, loading_context, default_id),
            base_path,
        )

    def get_step_tool(
        self, step_id: str, loading_context: LoadingContext | None = None
    ) -> Schema:
        if not isinstance(self.process, Workflow):
            raise MalformedDocument(
                f"Document `{self.process.id}` is not a Workflow and has no steps"
            )
        if (step := self.process.get_step(step_id)) is None:
            raise MalformedDocument(f"Step `{step_id}` is not declared")
        if isinstance(step.run, CommandLineTool):
            schema = Schema(copy.copy(step.run), self.base_path)
        elif step.run.startswith("#"):
            raise MalformedDocument(
                f"Step `{step_id}` refers to an in-document process, which is not supported"
            )
        else:
            path = (
                os.path.join(self.base_path, step.run)
                if self.base_path is not None
                else step.run
            )
            schema = Schema.from_path(path, loading_context)
            step.check_tool(schema.process)
        # Workflow and step requirements apply to the step tool unless it overrides them
        schema.process.requirements = dict(schema.process.requirements)
        for scope in (step.requirements, self.process.requirements):
            for name, requirement in scope.items():
                schema.process.requirements.setdefault(name, requirement)
        return schema

    def save(self) -> MutableMapping[str, Any]:
        return {"cwlVersion": CWL_VERSION, **self.process.save()}

    def to_string(self) -> str:
        return dump_yaml(self.save())

    def to_yaml(self, stream: IO) -> None:
        dump_yaml(self.save(), stream)

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Mapping, MutableMapping, MutableSequence
from typing import Any

from zefiro.core.exception import (
    MissingRequiredInput,
    ResolutionError,
    TypeMismatch,
)
from zefiro.cwl import utils
from zefiro.cwl.command import build_command_line
from zefiro.cwl.context import RuntimeContext
from zefiro.cwl.listing import ListingProvider
from zefiro.cwl.processor import OutputProcessor
from zefiro.cwl.schema import CommandLineTool, Schema, Workflow
from zefiro.cwl.values import Values
from zefiro.log_handler import logger


class ResolvedInvocation:
    __slots__ = ("argv", "outputs")

    def __init__(
        self, argv: MutableSequence[str], outputs: MutableMapping[str, Any]
    ):
        self.argv: MutableSequence[str] = argv
        self.outputs: MutableMapping[str, Any] = outputs

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, ResolvedInvocation):
            return self.to_dict() == other.to_dict()
        return NotImplemented

    def __repr__(self) -> str:
        return f"ResolvedInvocation(argv={self.argv!r}, outputs={self.outputs!r})"

    def to_dict(self) -> MutableMapping[str, Any]:
        return {"argv": list(self.argv), "outputs": copy.deepcopy(self.outputs)}


def _get_tool(schema: Schema) -> CommandLineTool:
    if not isinstance(schema.process, CommandLineTool):
        raise ResolutionError(
            f"Only CommandLineTool documents can be resolved, got {schema.process.class_name}"
        )
    return schema.process


def _get_runtime(runtime_context: RuntimeContext | None) -> MutableMapping[str, Any]:
    return (runtime_context or RuntimeContext()).to_dict()


def bind_inputs(schema: Schema, values: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """Type-check values against the declared inputs and fill in defaults."""
    process = schema.process
    declared = {p.id for p in process.inputs}
    for key in values:
        if key not in declared:
            logger.warning(f"Ignoring value `{key}`: no such input in `{process.id}`")
    inputs = {}
    for parameter in process.inputs:
        value = values.get(parameter.id)
        if value is None:
            value = copy.deepcopy(parameter.default)
        if value is None and not parameter.type.is_optional():
            raise MissingRequiredInput(
                f"Missing required input `{parameter.id}` of `{process.id}`"
            )
        if not parameter.type.accepts(value):
            raise TypeMismatch(
                f"Value of input `{parameter.id}` does not match its type "
                f"{parameter.type.save()}: got {utils.infer_type_from_token(value)}"
            )
        inputs[parameter.id] = value
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            f"Bound inputs of `{process.id}`: {json.dumps(inputs, sort_keys=True, default=str)}"
        )
    return inputs


def build_command(
    schema: Schema,
    inputs: MutableMapping[str, Any],
    runtime_context: RuntimeContext | None = None,
) -> MutableSequence[str]:
    tool = _get_tool(schema)
    argv = build_command_line(
        tool, inputs, _get_runtime(runtime_context), full_js=schema.full_js
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Command of `{tool.id}`: {argv}")
    return argv


def collect_outputs(
    schema: Schema,
    inputs: MutableMapping[str, Any],
    listing_provider: ListingProvider,
    runtime_context: RuntimeContext | None = None,
) -> MutableMapping[str, Any]:
    tool = _get_tool(schema)
    runtime = _get_runtime(runtime_context)
    outputs = {}
    for parameter in tool.outputs:
        outputs[parameter.id] = OutputProcessor(
            parameter, listing_provider, full_js=schema.full_js
        ).process(inputs, outputs, runtime)
    return outputs


def resolve(
    schema: Schema,
    values: Values | Mapping[str, Any],
    runtime_context: RuntimeContext | None = None,
    listing_provider: ListingProvider | None = None,
) -> ResolvedInvocation:
    _get_tool(schema)
    inputs = bind_inputs(schema, values)
    argv = build_command(schema, inputs, runtime_context)
    outputs = (
        collect_outputs(schema, inputs, listing_provider, runtime_context)
        if listing_provider is not None
        else {}
    )
    return ResolvedInvocation(argv=argv, outputs=outputs)


def _get_source_value(
    source: str,
    values: Mapping[str, Any],
    step_outputs: Mapping[str, Mapping[str, Any]],
) -> Any:
    if "/" in source:
        step_id, output_id = source.split("/", 1)
        return copy.deepcopy(step_outputs.get(step_id, {}).get(output_id))
    else:
        return copy.deepcopy(values.get(source))


def build_step_values(
    workflow: Schema,
    step_id: str,
    values: Values | Mapping[str, Any],
    step_outputs: Mapping[str, Mapping[str, Any]] | None = None,
) -> Values | None:
    """Compute the input values of a workflow step from upstream results.

    Returns ``None`` when the step's ``when`` condition evaluates to false.
    """
    if not isinstance(workflow.process, Workflow):
        raise ResolutionError(
            f"Step values can only be built for Workflow documents, got "
            f"{workflow.process.class_name}"
        )
    if (step := workflow.process.get_step(step_id)) is None:
        raise ResolutionError(f"Step `{step_id}` is not declared")
    step_outputs = step_outputs or {}
    workflow_inputs = bind_inputs(workflow, values)
    full_js = workflow.full_js or "InlineJavascriptRequirement" in step.requirements
    step_values = {}
    for step_input in step.in_:
        if isinstance(step_input.source, str):
            value = _get_source_value(step_input.source, workflow_inputs, step_outputs)
        elif step_input.source is not None:
            value = [
                _get_source_value(s, workflow_inputs, step_outputs)
                for s in step_input.source
            ]
        else:
            value = None
        if value is None:
            value = copy.deepcopy(step_input.default)
        step_values[step_input.id] = value
    results = {}
    for step_input in step.in_:
        if step_input.value_from is not None:
            context = utils.build_context(
                step_values, self_value=step_values[step_input.id]
            )
            results[step_input.id] = utils.eval_expression(
                step_input.value_from, context, full_js=full_js
            )
        else:
            results[step_input.id] = step_values[step_input.id]
    if step.when is not None:
        condition = utils.eval_expression(
            step.when, utils.build_context(results), full_js=full_js
        )
        if not isinstance(condition, bool):
            raise TypeMismatch(
                f"Condition of step `{step_id}` must evaluate to a boolean, got {condition!r}"
            )
        if not condition:
            logger.info(f"Skipping step `{step_id}`: its condition is false")
            return None
    return Values(results)

from __future__ import annotations

from collections.abc import MutableMapping, MutableSequence
from decimal import Decimal
from typing import Any

from ruamel.yaml import RoundTripRepresenter
from ruamel.yaml.scalarfloat import ScalarFloat

from zefiro.core.exception import TypeMismatch
from zefiro.cwl import utils
from zefiro.cwl.binding import InputBinding
from zefiro.cwl.schema import CommandLineTool
from zefiro.cwl.types import CWLType, RecordType, UnionType


def _get_record_type(value: Any, input_type: CWLType | None) -> RecordType | None:
    if isinstance(input_type, RecordType):
        return input_type
    elif isinstance(input_type, UnionType):
        alternative = input_type.get_alternative(value)
        return alternative if isinstance(alternative, RecordType) else None
    else:
        return None


def _get_value_for_command(token: Any) -> Any:
    if isinstance(token, MutableMapping):
        if utils.get_token_class(token) in ("File", "Directory"):
            return utils.get_token_repr(token)
        else:
            raise TypeMismatch(
                f"Unsupported value {token} in command line array"
            )
    elif isinstance(token, MutableSequence):
        raise TypeMismatch(f"Unsupported nested array {token} in command line")
    else:
        return token


def _get_value_repr(value: Any) -> str:
    if isinstance(value, ScalarFloat):
        rep = RoundTripRepresenter()
        dec_value = Decimal(rep.represent_scalar_float(value).value)
        if "E" in str(dec_value):
            return str(dec_value.quantize(1))
        return str(dec_value)
    elif isinstance(value, bool):
        return "true" if value else "false"
    else:
        return str(value)


def _with_prefix(binding: InputBinding, tokens: MutableSequence[str]) -> MutableSequence[str]:
    if binding.prefix is None:
        return tokens
    elif binding.separate:
        return [binding.prefix, *tokens]
    else:
        return [binding.prefix + tokens[0], *tokens[1:]]


class CommandToken:
    __slots__ = ("binding", "name", "input_type", "order")

    def __init__(
        self,
        binding: InputBinding,
        order: int,
        name: str | None = None,
        input_type: CWLType | None = None,
    ):
        self.binding: InputBinding = binding
        self.order: int = order
        self.name: str | None = name
        self.input_type: CWLType | None = input_type

    @property
    def sort_key(self) -> tuple[int, int]:
        return self.binding.position, self.order

    def _compute_record(self, value: MutableMapping[str, Any]) -> MutableSequence[str]:
        if (record_type := _get_record_type(value, self.input_type)) is None:
            raise TypeMismatch(
                f"Unsupported record value for `{self.name}` in command line"
            )
        fields = sorted(
            (
                CommandToken(field.input_binding, i, field.name, field.type)
                for i, field in enumerate(record_type.fields)
                if field.input_binding is not None
            ),
            key=lambda t: t.sort_key,
        )
        tokens = [self.binding.prefix] if self.binding.prefix is not None else []
        for field in fields:
            tokens.extend(field.compute_tokens(value.get(field.name)))
        return tokens

    def compute_tokens(self, value: Any) -> MutableSequence[str]:
        if value is None:
            return []
        elif isinstance(value, bool):
            return [self.binding.prefix] if value and self.binding.prefix else []
        elif isinstance(value, MutableSequence):
            if not value:
                return []
            items = [_get_value_repr(_get_value_for_command(v)) for v in value]
            if self.binding.item_separator is not None:
                return _with_prefix(
                    self.binding, [self.binding.item_separator.join(items)]
                )
            elif self.binding.prefix is not None and self.binding.separate:
                return [token for item in items for token in (self.binding.prefix, item)]
            else:
                return _with_prefix(self.binding, items)
        elif isinstance(value, MutableMapping):
            if utils.get_token_class(value) in ("File", "Directory"):
                return _with_prefix(self.binding, [utils.get_token_repr(value)])
            return self._compute_record(value)
        else:
            return _with_prefix(self.binding, [_get_value_repr(value)])

    def get_tokens(
        self,
        inputs: MutableMapping[str, Any],
        runtime: MutableMapping[str, Any],
        full_js: bool = False,
    ) -> MutableSequence[str]:
        value = inputs.get(self.name) if self.name is not None else None
        if self.binding.value_from is not None:
            context = utils.build_context(inputs, self_value=value, runtime=runtime)
            value = utils.eval_expression(
                self.binding.value_from, context, full_js=full_js
            )
        return self.compute_tokens(value)


def get_command_tokens(tool: CommandLineTool) -> MutableSequence[CommandToken]:
    tokens = []
    for argument in tool.arguments:
        tokens.append(
            CommandToken(
                argument
                if isinstance(argument, InputBinding)
                else InputBinding(value_from=argument),
                len(tokens),
            )
        )
    for parameter in tool.inputs:
        if parameter.input_binding is not None:
            tokens.append(
                CommandToken(
                    parameter.input_binding, len(tokens), parameter.id, parameter.type
                )
            )
    return sorted(tokens, key=lambda t: t.sort_key)


def build_command_line(
    tool: CommandLineTool,
    inputs: MutableMapping[str, Any],
    runtime: MutableMapping[str, Any],
    full_js: bool = False,
) -> MutableSequence[str]:
    command = list(tool.base_command)
    for token in get_command_tokens(tool):
        command.extend(token.get_tokens(inputs, runtime, full_js))
    return command

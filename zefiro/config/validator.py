from __future__ import annotations

import os
from collections.abc import Iterable, MutableMapping
from typing import Any

from jsonschema import ValidationError
from jsonschema.validators import validator_for
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from zefiro.config.schema import ZefiroSchema
from zefiro.core.exception import ConfigurationError


def handle_errors(errors: Iterable[ValidationError]) -> None:
    if not (errors := list(sorted(errors, key=str))):
        return
    raise ConfigurationError(
        "The Zefiro configuration is invalid because:\n{error_msgs}".format(
            error_msgs="\n".join([f" - {err}" for err in errors])
        )
    )


class ZefiroValidator:
    def __init__(self) -> None:
        super().__init__()
        self.schema: ZefiroSchema = ZefiroSchema()
        self.yaml = YAML(typ="safe")

    def validate_file(self, config_file: str | os.PathLike) -> MutableMapping[str, Any]:
        try:
            with open(config_file) as f:
                config = self.yaml.load(f)
        except YAMLError as e:
            raise ConfigurationError(
                f"The Zefiro configuration file {config_file} is not valid YAML: {e}"
            ) from e
        return self.validate(config)

    def validate(self, config: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        if not isinstance(config, MutableMapping) or "version" not in config:
            raise ConfigurationError(
                "The `version` clause is mandatory and should be equal to `v1.0`."
            )
        schema = self.schema.get_config(config["version"]).contents
        cls = validator_for(schema)
        validator = cls(schema, registry=self.schema.registry)
        handle_errors(validator.iter_errors(config))
        return config

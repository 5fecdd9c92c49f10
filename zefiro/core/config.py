from __future__ import annotations

import json
from collections.abc import MutableMapping

from referencing import Registry, Resource

from zefiro.core.exception import ConfigurationError


class Schema:
    def __init__(self, configs: MutableMapping[str, str]):
        self.configs: MutableMapping[str, str] = configs
        self.registry: Registry = Registry()

    def add_schema(self, schema: str) -> Resource:
        resource = Resource.from_contents(json.loads(schema))
        self.registry = resource @ self.registry
        return resource

    def dump(self, version: str, pretty: bool = False) -> str:
        if version not in self.configs:
            raise ConfigurationError(
                f"Version {version} is unsupported. The `version` clause should be equal to `v1.0`."
            )
        output = self.registry.contents(self.configs[version])
        return json.dumps(output, indent=4) if pretty else json.dumps(output)

    def get_config(self, version: str) -> Resource:
        if version not in self.configs:
            raise ConfigurationError(
                f"Version {version} is unsupported. The `version` clause should be equal to `v1.0`."
            )
        return self.registry[self.configs[version]]

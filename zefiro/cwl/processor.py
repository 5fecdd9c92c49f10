from __future__ import annotations

import logging
import posixpath
from collections.abc import MutableMapping, MutableSequence
from fnmatch import fnmatchcase
from typing import Any

from zefiro.core.exception import GlobNoMatch, TypeMismatch
from zefiro.cwl import utils
from zefiro.cwl.listing import ListingProvider, relativize
from zefiro.cwl.schema import OutputParameter
from zefiro.cwl.types import ArrayType, CWLType, PrimitiveType, UnionType
from zefiro.log_handler import logger


def _is_single_file(output_type: CWLType) -> bool:
    alternatives = (
        output_type.alternatives if isinstance(output_type, UnionType) else [output_type]
    )
    return not any(isinstance(t, ArrayType) for t in alternatives) and any(
        isinstance(t, PrimitiveType) and t.name in ("File", "Directory")
        for t in alternatives
    )


def _match_segments(
    pattern: MutableSequence[str], segments: MutableSequence[str]
) -> bool:
    if not pattern:
        return not segments
    elif pattern[0] == "**":
        return any(
            _match_segments(pattern[1:], segments[i:])
            for i in range(len(segments) + 1)
        )
    elif not segments:
        return False
    else:
        return fnmatchcase(segments[0], pattern[0]) and _match_segments(
            pattern[1:], segments[1:]
        )


def match_glob(pattern: str, path: str) -> bool:
    """Match a relative path against a glob pattern, segment by segment."""
    return _match_segments(
        [p for p in posixpath.normpath(pattern).split("/") if p],
        [s for s in posixpath.normpath(path).split("/") if s],
    )


class OutputProcessor:
    def __init__(
        self,
        parameter: OutputParameter,
        listing_provider: ListingProvider,
        full_js: bool = False,
    ):
        self.parameter: OutputParameter = parameter
        self.listing_provider: ListingProvider = listing_provider
        self.full_js: bool = full_js

    def _get_patterns(self, context: MutableMapping[str, Any]) -> MutableSequence[str]:
        globs = self.parameter.output_binding.glob
        patterns = []
        for glob in globs if isinstance(globs, MutableSequence) else [globs]:
            value = utils.eval_expression(glob, context, full_js=self.full_js)
            for pattern in value if isinstance(value, MutableSequence) else [value]:
                if utils.get_token_class(pattern) in ("File", "Directory"):
                    pattern = utils.get_token_repr(pattern)
                if not isinstance(pattern, str):
                    raise TypeMismatch(
                        f"Glob of output `{self.parameter.id}` must evaluate to "
                        f"strings, got {pattern!r}"
                    )
                patterns.append(pattern)
        return patterns

    def _glob(
        self, patterns: MutableSequence[str], outdir: str | None
    ) -> MutableSequence[MutableMapping[str, Any]]:
        matches = {}
        for entry in self.listing_provider.get_listing(outdir):
            path = relativize(entry["location"], outdir)
            for pattern in patterns:
                if match_glob(relativize(pattern, outdir), path):
                    matches.setdefault(path, entry)
        return [matches[path] for path in sorted(matches)]

    def _load_contents(self, matches: MutableSequence[MutableMapping[str, Any]]) -> None:
        for match in matches:
            if utils.get_token_class(match) == "File":
                match["contents"] = self.listing_provider.get_contents(match)

    def process(
        self,
        inputs: MutableMapping[str, Any],
        outputs: MutableMapping[str, Any],
        runtime: MutableMapping[str, Any],
    ) -> Any:
        binding = self.parameter.output_binding
        context = utils.build_context(inputs, outputs, runtime=runtime)
        if binding is None or (binding.glob is None and binding.output_eval is None):
            if self.parameter.id in inputs:
                value = inputs[self.parameter.id]
            else:
                value = runtime.get(self.parameter.id)
        else:
            self_value = None
            if binding.glob is not None:
                patterns = self._get_patterns(context)
                self_value = self._glob(patterns, runtime.get("outdir"))
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug(
                        f"Output `{self.parameter.id}` glob {patterns} matched "
                        f"{[m['location'] for m in self_value]}"
                    )
                if not self_value and (
                    _is_single_file(self.parameter.type)
                    and not self.parameter.type.is_optional()
                ):
                    raise GlobNoMatch(
                        f"No entry matches glob {patterns} of output `{self.parameter.id}`"
                    )
                if binding.load_contents:
                    self._load_contents(self_value)
            if binding.output_eval is not None:
                context = utils.build_context(inputs, outputs, self_value, runtime)
                value = utils.eval_expression(
                    binding.output_eval, context, full_js=self.full_js
                )
            elif _is_single_file(self.parameter.type):
                if len(self_value) > 1:
                    raise TypeMismatch(
                        f"Output `{self.parameter.id}` expects a single entry but glob "
                        f"matched {len(self_value)}"
                    )
                value = self_value[0] if self_value else None
            else:
                value = self_value
        if not self.parameter.type.accepts(value):
            raise TypeMismatch(
                f"Value of output `{self.parameter.id}` does not match its type "
                f"{self.parameter.type.save()}: got {utils.infer_type_from_token(value)}"
            )
        return value

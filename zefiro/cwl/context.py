from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

from typing_extensions import Self

from zefiro.cwl.requirement import (
    DEFAULT_CORES,
    DEFAULT_OUTDIR,
    DEFAULT_RAM,
    DEFAULT_TMPDIR,
)

DEFAULT_OUTDIR_PATH = "/var/spool/cwl"
DEFAULT_TMPDIR_PATH = "/tmp"


class LoadingContext:
    __slots__ = ("tolerant",)

    def __init__(self, tolerant: bool = False):
        self.tolerant: bool = tolerant

    @classmethod
    def from_config(cls, config: MutableMapping[str, Any]) -> Self:
        return cls(tolerant=config.get("parser", {}).get("tolerant", False))


class RuntimeContext:
    __slots__ = ("outdir", "tmpdir", "cores", "ram", "outdir_size", "tmpdir_size")

    def __init__(
        self,
        outdir: str | None = None,
        tmpdir: str | None = None,
        cores: int | float = DEFAULT_CORES,
        ram: int | float = DEFAULT_RAM,
        outdir_size: int | float = DEFAULT_OUTDIR,
        tmpdir_size: int | float = DEFAULT_TMPDIR,
    ):
        self.outdir: str = outdir or DEFAULT_OUTDIR_PATH
        self.tmpdir: str = tmpdir or DEFAULT_TMPDIR_PATH
        self.cores: int | float = cores
        self.ram: int | float = ram
        self.outdir_size: int | float = outdir_size
        self.tmpdir_size: int | float = tmpdir_size

    @classmethod
    def from_config(cls, config: MutableMapping[str, Any]) -> Self:
        runtime = config.get("runtime", {})
        return cls(
            outdir=runtime.get("outdir"),
            tmpdir=runtime.get("tmpdir"),
            cores=runtime.get("cores", DEFAULT_CORES),
            ram=runtime.get("ram", DEFAULT_RAM),
            outdir_size=runtime.get("outdirSize", DEFAULT_OUTDIR),
            tmpdir_size=runtime.get("tmpdirSize", DEFAULT_TMPDIR),
        )

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "outdir": self.outdir,
            "tmpdir": self.tmpdir,
            "cores": self.cores,
            "ram": self.ram,
            "outdirSize": self.outdir_size,
            "tmpdirSize": self.tmpdir_size,
        }

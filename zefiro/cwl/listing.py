from __future__ import annotations

import os
import posixpath
from abc import ABC, abstractmethod
from collections.abc import Iterable, MutableMapping, MutableSequence
from typing import Any

from zefiro.core.exception import ResolutionError
from zefiro.cwl.utils import CONTENT_LIMIT, get_token_class, update_file_token


class ListingProvider(ABC):
    """Supplies the entries produced in an output directory after execution."""

    @abstractmethod
    def get_listing(self, outdir: str) -> MutableSequence[MutableMapping[str, Any]]: ...

    def get_contents(self, entry: MutableMapping[str, Any]) -> str | None:
        return entry.get("contents")


class StaticListingProvider(ListingProvider):
    def __init__(self, entries: Iterable[str | MutableMapping[str, Any]]):
        self.entries: MutableSequence[MutableMapping[str, Any]] = []
        for entry in entries:
            if isinstance(entry, str):
                if entry.endswith("/"):
                    entry = {"class": "Directory", "location": entry.rstrip("/")}
                else:
                    entry = {"class": "File", "location": entry}
            elif get_token_class(entry) not in ("File", "Directory"):
                raise ResolutionError(
                    f"Listing entries must be File or Directory objects, got {entry}"
                )
            else:
                entry = dict(entry)
            self.entries.append(update_file_token(entry))

    def get_listing(self, outdir: str) -> MutableSequence[MutableMapping[str, Any]]:
        return [dict(e) for e in self.entries]


class LocalListingProvider(ListingProvider):
    def get_contents(self, entry: MutableMapping[str, Any]) -> str | None:
        if (contents := super().get_contents(entry)) is not None:
            return contents
        path = entry.get("path", entry["location"])
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                return f.read(CONTENT_LIMIT)
        except OSError as e:
            raise ResolutionError(f"Cannot read contents of {path}: {e}") from e

    def get_listing(self, outdir: str) -> MutableSequence[MutableMapping[str, Any]]:
        listing = []
        for dirpath, dirnames, filenames in os.walk(outdir):
            dirnames.sort()
            for name in dirnames:
                path = os.path.join(dirpath, name)
                listing.append(
                    update_file_token(
                        {"class": "Directory", "location": path, "path": path}
                    )
                )
            for name in sorted(filenames):
                path = os.path.join(dirpath, name)
                listing.append(
                    update_file_token(
                        {
                            "class": "File",
                            "location": path,
                            "path": path,
                            "size": os.path.getsize(path),
                        }
                    )
                )
        return listing


def relativize(location: str, outdir: str | None) -> str:
    if outdir and (
        location == outdir or location.startswith(outdir.rstrip("/") + "/")
    ):
        return posixpath.relpath(location, outdir)
    return location

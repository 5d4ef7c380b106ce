"""Directory listings emulated over a flat key namespace."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from s3wagon.domain.keys import SEPARATOR, canonicalize_key, relative_to_base
from s3wagon.infra.storage.client import StoreClient

logger = logging.getLogger("s3wagon.listing")


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    """A leaf object or a pseudo-directory, named relative to the base dir."""

    name: str
    is_prefix: bool = False

    def __str__(self) -> str:
        return self.name


class DirectoryLister:
    """Rebuilds one level of a directory tree from a prefix/delimiter query."""

    def __init__(self, client: StoreClient, *, bucket: str, base_dir: str) -> None:
        self._client = client
        self._bucket = bucket
        self._base_dir = base_dir

    def query_prefix(self, directory: str | None) -> str:
        prefix = canonicalize_key(self._base_dir, directory or "")
        return f"{prefix}{SEPARATOR}" if prefix else ""

    def list(self, directory: str | None = None) -> tuple[DirectoryEntry, ...]:
        """List the objects and pseudo-directories directly under ``directory``.

        Blank names and the placeholder object some tools create for the
        directory itself are left out. Sub-directories are not descended into.
        """
        directory = (directory or "").strip()
        prefix = self.query_prefix(directory)
        listing = self._client.list_objects(
            bucket=self._bucket, prefix=prefix, delimiter=SEPARATOR
        )
        own_names = {directory, relative_to_base(self._base_dir, prefix)}

        entries: dict[DirectoryEntry, None] = {}
        for key in listing.keys:
            name = relative_to_base(self._base_dir, key)
            if name.strip() and name not in own_names:
                entries[DirectoryEntry(name=name)] = None
        for common_prefix in listing.common_prefixes:
            name = relative_to_base(self._base_dir, common_prefix)
            if name.strip() and name not in own_names:
                entries[DirectoryEntry(name=name, is_prefix=True)] = None

        logger.debug(
            "directory_listed",
            extra={"extra": {"prefix": prefix, "entries": len(entries)}},
        )
        return tuple(entries)

    def walk(self, directory: str | None = None) -> Iterator[DirectoryEntry]:
        """Yield every leaf object below ``directory``, one query per level."""
        for entry in self.list(directory):
            if entry.is_prefix:
                yield from self.walk(entry.name)
            else:
                yield entry

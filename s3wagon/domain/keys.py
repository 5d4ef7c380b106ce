"""Mapping of hierarchical repository paths onto flat store keys.

Keys are resolved with an explicit segment stack rather than through the
host filesystem, so the result is identical on every platform and nothing is
touched on disk.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from s3wagon.domain.errors import InvalidPathError

SEPARATOR = "/"
S3_SCHEME = "s3"


@dataclass(frozen=True, slots=True)
class RepositoryLocation:
    """Parsed ``scheme://host/rootPath`` repository URL."""

    scheme: str
    host: str
    root_path: str

    @classmethod
    def parse(cls, url: str) -> "RepositoryLocation":
        parts = urlsplit((url or "").strip())
        if not parts.netloc:
            raise InvalidPathError(f"Repository URL has no bucket: {url!r}")
        return cls(
            scheme=parts.scheme or S3_SCHEME,
            host=parts.netloc,
            root_path=parts.path or SEPARATOR,
        )

    @property
    def bucket(self) -> str:
        return self.host

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}{self.root_path}"


def normalize_base_dir(root_path: str | None) -> str:
    """Turn a repository root path into a key prefix.

    ``/`` gives ``""``; ``/snapshot`` and ``/snapshot/`` both give
    ``snapshot/``.
    """
    path = root_path or ""
    if path.startswith(SEPARATOR):
        path = path[1:]
    if not path:
        return ""
    return path.rstrip(SEPARATOR) + SEPARATOR


def _resolve_segments(path: str) -> list[str]:
    stack: list[str] = []
    for segment in path.split(SEPARATOR):
        if segment in ("", "."):
            continue
        if segment == "..":
            # Clamp at the store root: surplus ".." segments are dropped
            if stack:
                stack.pop()
            continue
        stack.append(segment)
    return stack


def canonicalize_key(base_dir: str, relative_path: str) -> str:
    """Resolve ``relative_path`` under ``base_dir`` into a canonical store key.

    Backslashes are treated as separators, ``.`` segments are dropped and
    ``..`` segments pop the previous segment. A ``..`` that would climb above
    the store root is discarded.

    Raises:
        InvalidPathError: If the path contains characters no key may hold.
    """
    candidate = f"{base_dir or ''}{SEPARATOR}{relative_path or ''}"
    if "\x00" in candidate:
        raise InvalidPathError(f"Path contains a NUL character: {relative_path!r}")
    return SEPARATOR.join(_resolve_segments(candidate.replace("\\", SEPARATOR)))


def relative_to_base(base_dir: str, key: str) -> str:
    """Strip ``base_dir`` from ``key`` when present."""
    if base_dir and key.startswith(base_dir):
        return key[len(base_dir) :]
    return key


def s3_uri(bucket: str, key: str) -> str:
    return f"{S3_SCHEME}://{bucket}/{key}"

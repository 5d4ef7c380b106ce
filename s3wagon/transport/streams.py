"""Stream-style access for callers that read or write file objects.

Both helpers stage the payload in a temporary file in the process temp
directory and reuse the file-based transport operations, so the atomicity
and strategy selection of ``ObjectTransport`` apply unchanged.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Iterator

if TYPE_CHECKING:
    from s3wagon.transport.object_transport import ObjectTransport


def _staging_path(prefix: str) -> Path:
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=".tmp")
    os.close(fd)
    return Path(name)


@contextmanager
def open_download(transport: "ObjectTransport", resource_name: str) -> Iterator[BinaryIO]:
    """Yield a readable stream over the downloaded resource."""
    staging = _staging_path("download.s3.")
    try:
        transport.get(resource_name, staging)
        with staging.open("rb") as stream:
            yield stream
    finally:
        staging.unlink(missing_ok=True)


@contextmanager
def open_upload(transport: "ObjectTransport", resource_name: str) -> Iterator[BinaryIO]:
    """Yield a writable stream that is uploaded when the block exits cleanly.

    Nothing is uploaded if the block raises.
    """
    staging = _staging_path("upload.s3.")
    try:
        with staging.open("wb") as stream:
            yield stream
        transport.put(staging, resource_name)
    finally:
        staging.unlink(missing_ok=True)

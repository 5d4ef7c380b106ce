"""Repository operations on top of a flat object store.

ObjectTransport maps repository paths onto store keys, downloads into a
temporary sibling file that is renamed into place only once complete, and
uploads through the strategy that fits the payload size.
"""

from __future__ import annotations

import enum
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from s3wagon.common.formatting import format_duration, format_rate, format_size
from s3wagon.domain.errors import ResourceNotFoundError, TransferError
from s3wagon.domain.keys import canonicalize_key, s3_uri
from s3wagon.domain.listing import DirectoryEntry, DirectoryLister
from s3wagon.infra.observability.metrics import record_transfer
from s3wagon.infra.storage.client import (
    ObjectHead,
    ObjectNotFoundError,
    StorageError,
    StoreClient,
)
from s3wagon.transport.session import Credentials, Session
from s3wagon.transport.strategy import (
    ProgressCallback,
    TransferDescriptor,
    select_strategy,
)

logger = logging.getLogger("s3wagon.transfer")

DEFAULT_FILE_MODE = 0o644


class ProbeStatus(enum.Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome of a metadata lookup, with the failure kept as a value."""

    status: ProbeStatus
    head: ObjectHead | None = None
    error: StorageError | None = None

    @property
    def found(self) -> bool:
        return self.status is ProbeStatus.FOUND


def _to_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


class ObjectTransport:
    """Get, put, existence and listing operations for one repository.

    The transport exclusively owns its session. All operations block the
    calling thread until they finish or fail.
    """

    supports_directory_copy = True

    def __init__(
        self,
        session: Session | None = None,
        *,
        progress_listener: ProgressCallback | None = None,
    ) -> None:
        self._session = session or Session()
        self._progress_listener = progress_listener

    @property
    def session(self) -> Session:
        return self._session

    def connect(
        self,
        location: str,
        credentials: Credentials | None,
        endpoint: str | None = None,
        **kwargs,
    ) -> None:
        self._session.connect(location, credentials, endpoint, **kwargs)

    def disconnect(self) -> None:
        self._session.disconnect()

    def __enter__(self) -> "ObjectTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

    @property
    def _client(self) -> StoreClient:
        return self._session.client

    def key(self, resource_name: str) -> str:
        """Canonical store key of ``resource_name`` under the base dir."""
        return canonicalize_key(self._session.base_dir, resource_name)

    def uri(self, resource_name: str) -> str:
        return s3_uri(self._session.bucket, self.key(resource_name))

    def get(self, resource_name: str, destination: str | os.PathLike[str]) -> None:
        """Download ``resource_name`` to ``destination``.

        The object is streamed into a temporary file next to the destination
        and renamed over it only after the stream completed, so the
        destination never holds partial content.

        Raises:
            ResourceNotFoundError: If the object does not exist.
            TransferError: On any other failure.
        """
        client = self._client
        bucket = self._session.bucket
        key = self.key(resource_name)
        uri = s3_uri(bucket, key)
        destination = Path(destination)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f"{destination.name}.", suffix=".tmp", dir=destination.parent
            )
        except OSError as exc:
            raise TransferError(
                "Cannot create temporary file for download", uri=uri, cause=exc
            ) from exc

        tmp_path = Path(tmp_name)
        logger.info("downloading: [%s]...", uri)
        started = time.monotonic()
        try:
            with os.fdopen(fd, "wb") as target:
                size = client.get_object(bucket=bucket, object_key=key, target=target)
                target.flush()
                os.fsync(target.fileno())
            mode = (
                destination.stat().st_mode & 0o777
                if destination.exists()
                else DEFAULT_FILE_MODE
            )
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, destination)
        except ObjectNotFoundError as exc:
            record_transfer("get", "stream", "not_found")
            raise ResourceNotFoundError(f"Resource does not exist: {uri}") from exc
        except (StorageError, OSError) as exc:
            record_transfer("get", "stream", "failure")
            raise TransferError(
                f"Failed to get resource into {destination}", uri=uri, cause=exc
            ) from exc
        finally:
            tmp_path.unlink(missing_ok=True)

        seconds = time.monotonic() - started
        record_transfer("get", "stream", "success", size=size, seconds=seconds)
        elapsed = int(seconds * 1000)
        logger.info(
            "downloaded: [%s] %s in %s (%s)",
            uri,
            format_size(size),
            format_duration(elapsed),
            format_rate(elapsed, size),
        )

    def get_if_newer(
        self,
        resource_name: str,
        destination: str | os.PathLike[str],
        timestamp_millis: int,
    ) -> bool:
        """Download only when the remote object is newer than the timestamp."""
        if not self.is_newer(resource_name, timestamp_millis):
            return False
        self.get(resource_name, destination)
        return True

    def put(self, source: str | os.PathLike[str], resource_name: str) -> None:
        """Upload ``source`` as ``resource_name``.

        Raises:
            ResourceNotFoundError: If ``source`` is not a regular file.
            TransferError: If the upload fails.
        """
        source = Path(source)
        if not source.is_file():
            raise ResourceNotFoundError(f"Source file does not exist: {source}")
        client = self._client
        descriptor = TransferDescriptor.for_upload(source, self.key(resource_name))
        strategy = select_strategy(
            descriptor.size,
            self._session.settings,
            listener=self._progress_listener,
        )
        logger.debug(
            "upload_strategy",
            extra={
                "extra": {
                    "key": descriptor.store_key,
                    "size": descriptor.size,
                    "strategy": strategy.name,
                }
            },
        )
        strategy.upload(client, bucket=self._session.bucket, descriptor=descriptor)

    def put_directory(
        self, source_dir: str | os.PathLike[str], destination_dir: str
    ) -> list[str]:
        """Upload every file below ``source_dir`` under ``destination_dir``.

        The store has no directory objects, so only files are written, keyed
        by their path relative to ``source_dir``.

        Returns:
            The store keys written, in upload order.
        """
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise ResourceNotFoundError(f"Source directory does not exist: {source_dir}")
        keys: list[str] = []
        for path in sorted(p for p in source_dir.rglob("*") if p.is_file()):
            resource_name = f"{destination_dir}/{path.relative_to(source_dir).as_posix()}"
            self.put(path, resource_name)
            keys.append(self.key(resource_name))
        return keys

    def probe(self, resource_name: str) -> ProbeResult:
        """Look up object metadata without raising for store failures."""
        client = self._client
        try:
            head = client.head_object(
                bucket=self._session.bucket, object_key=self.key(resource_name)
            )
        except ObjectNotFoundError:
            return ProbeResult(status=ProbeStatus.NOT_FOUND)
        except StorageError as exc:
            return ProbeResult(status=ProbeStatus.ERROR, error=exc)
        return ProbeResult(status=ProbeStatus.FOUND, head=head)

    def exists(self, resource_name: str) -> bool:
        result = self.probe(resource_name)
        if result.status is ProbeStatus.ERROR:
            logger.warning(
                "existence check failed for [%s]: %s",
                self.uri(resource_name),
                result.error,
            )
        return result.found

    def is_newer(self, resource_name: str, timestamp_millis: int) -> bool:
        """True if the remote object was modified strictly after the timestamp.

        Raises:
            ResourceNotFoundError: If the object does not exist.
            TransferError: If the metadata cannot be read.
        """
        uri = self.uri(resource_name)
        result = self.probe(resource_name)
        if result.status is ProbeStatus.NOT_FOUND:
            raise ResourceNotFoundError(f"Resource does not exist: {uri}")
        if result.status is ProbeStatus.ERROR:
            raise TransferError(
                "Failed to read metadata", uri=uri, cause=result.error
            ) from result.error
        assert result.head is not None
        if result.head.last_modified is None:
            raise TransferError("Store returned no last-modified time", uri=uri)
        return _to_millis(result.head.last_modified) > timestamp_millis

    def list(self, directory: str | None = None) -> tuple[DirectoryEntry, ...]:
        """List one level of ``directory``; see DirectoryLister.list."""
        lister = self._lister()
        try:
            return lister.list(directory)
        except StorageError as exc:
            uri = s3_uri(self._session.bucket, lister.query_prefix(directory))
            raise TransferError(
                f"Listing of directory {directory!r} failed", uri=uri, cause=exc
            ) from exc

    def walk(self, directory: str | None = None) -> Iterator[DirectoryEntry]:
        lister = self._lister()
        try:
            yield from lister.walk(directory)
        except StorageError as exc:
            uri = s3_uri(self._session.bucket, lister.query_prefix(directory))
            raise TransferError(
                f"Walking directory {directory!r} failed", uri=uri, cause=exc
            ) from exc

    def get_file_list(self, directory: str | None = None) -> list[str]:
        return [entry.name for entry in self.list(directory)]

    def delete(self, resource_name: str) -> None:
        client = self._client
        uri = self.uri(resource_name)
        try:
            client.delete_object(
                bucket=self._session.bucket, object_key=self.key(resource_name)
            )
        except StorageError as exc:
            raise TransferError("Delete failed", uri=uri, cause=exc) from exc
        logger.info("deleted: [%s]", uri)

    def _lister(self) -> DirectoryLister:
        return DirectoryLister(
            self._client,
            bucket=self._session.bucket,
            base_dir=self._session.base_dir,
        )

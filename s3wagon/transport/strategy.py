"""Upload strategies selected by payload size.

Small payloads go to the store in one request. Payloads at or above the
multipart threshold are split into parts that are uploaded concurrently,
retried independently and reassembled by the store on completion.
"""

from __future__ import annotations

import logging
import math
import mimetypes
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from s3wagon.common.config import Settings
from s3wagon.common.formatting import format_duration, format_rate, format_size
from s3wagon.domain.errors import TransferError
from s3wagon.domain.keys import s3_uri
from s3wagon.infra.observability.metrics import PART_RETRIES, record_transfer
from s3wagon.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    ObjectNotFoundError,
    StorageError,
    StoreClient,
)

logger = logging.getLogger("s3wagon.transfer")
_log_retry = before_sleep_log(logger, logging.WARNING)

# Maximum part number allowed by S3
MAX_PART_NUMBER = 10000
DEFAULT_CONTENT_TYPE = "application/octet-stream"

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True, slots=True)
class TransferDescriptor:
    """What to move where, built once per get/put call."""

    local_path: Path
    store_key: str
    size: int
    content_type: str

    @classmethod
    def for_upload(cls, local_path: Path, store_key: str) -> "TransferDescriptor":
        guessed, _ = mimetypes.guess_type(local_path.name)
        return cls(
            local_path=local_path,
            store_key=store_key,
            size=local_path.stat().st_size,
            content_type=guessed or DEFAULT_CONTENT_TYPE,
        )


@dataclass(frozen=True, slots=True)
class PartRange:
    part_number: int
    offset: int
    length: int


class TransferStrategy(Protocol):
    name: str

    def upload(
        self,
        client: StoreClient,
        *,
        bucket: str,
        descriptor: TransferDescriptor,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Store ``descriptor.local_path`` under ``descriptor.store_key``.

        Blocks until the object is stored.

        Raises:
            TransferError: If the upload fails.
        """
        ...


def _before_part_retry(retry_state: RetryCallState) -> None:
    PART_RETRIES.inc()
    _log_retry(retry_state)


def _log_done(strategy: str, uri: str, size: int, started: float) -> None:
    seconds = time.monotonic() - started
    record_transfer("put", strategy, "success", size=size, seconds=seconds)
    elapsed = int(seconds * 1000)
    logger.info(
        "uploaded: [%s] %s in %s (%s)",
        uri,
        format_size(size),
        format_duration(elapsed),
        format_rate(elapsed, size),
    )


class SingleShotStrategy:
    """Uploads the whole file with one ``put_object`` request."""

    name = "single-shot"

    def upload(
        self,
        client: StoreClient,
        *,
        bucket: str,
        descriptor: TransferDescriptor,
        progress: ProgressCallback | None = None,
    ) -> None:
        uri = s3_uri(bucket, descriptor.store_key)
        logger.info("uploading: [%s] %s", uri, format_size(descriptor.size))
        started = time.monotonic()
        try:
            with descriptor.local_path.open("rb") as body:
                client.put_object(
                    bucket=bucket,
                    object_key=descriptor.store_key,
                    body=body,
                    content_type=descriptor.content_type,
                )
        except (StorageError, OSError) as exc:
            record_transfer("put", self.name, "failure")
            raise TransferError("Upload failed", uri=uri, cause=exc) from exc
        if progress is not None:
            progress(descriptor.size, descriptor.size)
        _log_done(self.name, uri, descriptor.size, started)


class ChunkedStrategy:
    """Multipart upload with a bounded worker pool and per-part retries."""

    name = "chunked"

    def __init__(
        self,
        *,
        chunk_size: int,
        max_workers: int = 4,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")
        self.chunk_size = chunk_size
        self.max_workers = max_workers
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = backoff_seconds

    def plan_parts(self, size: int) -> list[PartRange]:
        """Split ``size`` bytes into part ranges, growing parts past the S3 part limit."""
        chunk = max(self.chunk_size, math.ceil(size / MAX_PART_NUMBER))
        if size == 0:
            return [PartRange(part_number=1, offset=0, length=0)]
        return [
            PartRange(
                part_number=index + 1,
                offset=offset,
                length=min(chunk, size - offset),
            )
            for index, offset in enumerate(range(0, size, chunk))
        ]

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=10),
            retry=retry_if_exception_type(StorageError),
            before_sleep=_before_part_retry,
            reraise=True,
        )

    def _upload_part(
        self,
        client: StoreClient,
        upload: MultipartUpload,
        descriptor: TransferDescriptor,
        part: PartRange,
    ) -> tuple[CompletedPart, int]:
        with descriptor.local_path.open("rb") as source:
            source.seek(part.offset)
            data = source.read(part.length)
        completed = self._retrying()(
            client.upload_part,
            bucket=upload.bucket,
            object_key=upload.object_key,
            upload_id=upload.upload_id,
            part_number=part.part_number,
            data=data,
        )
        return completed, part.length

    def upload(
        self,
        client: StoreClient,
        *,
        bucket: str,
        descriptor: TransferDescriptor,
        progress: ProgressCallback | None = None,
    ) -> None:
        uri = s3_uri(bucket, descriptor.store_key)
        parts = self.plan_parts(descriptor.size)
        logger.info(
            "uploading: [%s] %s in %d parts",
            uri,
            format_size(descriptor.size),
            len(parts),
        )
        started = time.monotonic()
        try:
            upload = client.init_multipart_upload(
                bucket=bucket,
                object_key=descriptor.store_key,
                content_type=descriptor.content_type,
            )
        except StorageError as exc:
            record_transfer("put", self.name, "failure")
            raise TransferError(
                "Could not start multipart upload", uri=uri, cause=exc
            ) from exc

        try:
            completed = self._upload_parts(client, upload, descriptor, parts, progress)
            client.complete_multipart_upload(
                bucket=bucket,
                object_key=descriptor.store_key,
                upload_id=upload.upload_id,
                parts=completed,
            )
        except (StorageError, OSError) as exc:
            self._abort(client, upload, uri)
            record_transfer("put", self.name, "failure")
            raise TransferError("Multipart upload failed", uri=uri, cause=exc) from exc
        except BaseException:
            # Listener errors and interrupts must not leave parts on the store
            self._abort(client, upload, uri)
            record_transfer("put", self.name, "failure")
            raise
        _log_done(self.name, uri, descriptor.size, started)

    def _upload_parts(
        self,
        client: StoreClient,
        upload: MultipartUpload,
        descriptor: TransferDescriptor,
        parts: list[PartRange],
        progress: ProgressCallback | None,
    ) -> list[CompletedPart]:
        completed: list[CompletedPart] = []
        transferred = 0
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(parts)),
            thread_name_prefix="s3wagon-part",
        )
        try:
            futures = [
                executor.submit(self._upload_part, client, upload, descriptor, part)
                for part in parts
            ]
            for future in as_completed(futures):
                part, length = future.result()
                completed.append(part)
                transferred += length
                if progress is not None:
                    progress(transferred, descriptor.size)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
        return sorted(completed, key=lambda p: p.part_number)

    @staticmethod
    def _abort(client: StoreClient, upload: MultipartUpload, uri: str) -> None:
        try:
            client.abort_multipart_upload(
                bucket=upload.bucket,
                object_key=upload.object_key,
                upload_id=upload.upload_id,
            )
        except ObjectNotFoundError:
            # NoSuchUpload: the store already discarded the parts
            logger.debug("multipart upload for [%s] already gone", uri)
        except StorageError:
            logger.warning("abort failed for [%s]", uri, exc_info=True)


class StreamingStrategy:
    """Delegates to another strategy and reports progress while it runs."""

    name = "streaming"

    def __init__(self, inner: TransferStrategy, listener: ProgressCallback) -> None:
        self.inner = inner
        self.listener = listener

    def upload(
        self,
        client: StoreClient,
        *,
        bucket: str,
        descriptor: TransferDescriptor,
        progress: ProgressCallback | None = None,
    ) -> None:
        def _report(transferred: int, total: int) -> None:
            self.listener(transferred, total)
            if progress is not None:
                progress(transferred, total)

        self.inner.upload(
            client, bucket=bucket, descriptor=descriptor, progress=_report
        )


def select_strategy(
    size: int,
    settings: Settings,
    *,
    listener: ProgressCallback | None = None,
) -> TransferStrategy:
    """Pick single-shot below the multipart threshold, chunked at or above it."""
    strategy: TransferStrategy
    if size < settings.S3_MULTIPART_THRESHOLD_BYTES:
        strategy = SingleShotStrategy()
    else:
        strategy = ChunkedStrategy(
            chunk_size=settings.S3_MULTIPART_CHUNK_SIZE_BYTES,
            max_workers=settings.S3_MAX_CONCURRENCY,
            max_retries=settings.S3_MAX_RETRIES,
        )
    if listener is not None:
        return StreamingStrategy(strategy, listener)
    return strategy

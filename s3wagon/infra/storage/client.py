"""Store client protocol and data types.

This module defines the narrow interface the transport layer consumes from an
object store: single-shot and multipart uploads, streaming downloads,
metadata lookups and delimiter-based listings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class ObjectNotFoundError(StorageError):
    """Raised when the store reports that a key does not exist."""


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    last_modified: datetime | None
    etag: str | None = None
    content_type: str | None = None


@dataclass(frozen=True, slots=True)
class ObjectListing:
    """Keys and common prefixes returned by a prefix/delimiter query."""

    keys: tuple[str, ...] = field(default_factory=tuple)
    common_prefixes: tuple[str, ...] = field(default_factory=tuple)


class StoreClient(Protocol):
    """Object store operations used by the transport.

    Failures surface as StorageError, and as ObjectNotFoundError when the
    store reports a missing key or upload.
    """

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: BinaryIO,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        """Store an object in a single request.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            body: Readable binary stream with the object content.
            content_type: MIME type of the object.
            metadata: Custom metadata to attach to the object.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> CompletedPart:
        """Upload one part of a multipart upload.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            upload_id: Multipart upload ID from init_multipart_upload.
            part_number: Part number (1-based, max 10000).
            data: Part payload.

        Returns:
            CompletedPart with the ETag assigned by the store.

        Raises:
            StorageError: If the upload fails.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Complete a multipart upload by combining all parts.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def get_object(self, *, bucket: str, object_key: str, target: BinaryIO) -> int:
        """Stream an object into a writable binary file object.

        Returns:
            Number of bytes written to ``target``.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            StorageError: If the operation fails.
        """
        ...

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            StorageError: If the operation fails.
        """
        ...

    def list_objects(
        self, *, bucket: str, prefix: str, delimiter: str = "/"
    ) -> ObjectListing:
        """List keys and common prefixes directly under ``prefix``.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def create_bucket(self, *, bucket: str) -> None:
        """Create a bucket. Used by test setups."""
        ...

    def delete_bucket(self, *, bucket: str) -> None:
        """Delete an empty bucket. Used by test teardowns."""
        ...

    def close(self) -> None:
        """Release connection pools held by the client."""
        ...

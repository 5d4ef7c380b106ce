"""boto3 backend of the StoreClient protocol.

Every botocore failure is translated into StorageError, or into
ObjectNotFoundError for the not-found error codes, so callers never handle
botocore exceptions directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO, Sequence

from s3wagon.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    ObjectHead,
    ObjectListing,
    ObjectNotFoundError,
    StorageError,
)

if TYPE_CHECKING:
    from s3wagon.common.config import Settings

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NoSuchUpload", "NotFound"})
DOWNLOAD_CHUNK_BYTES = 1024 * 1024


def _error_code(exc: Exception) -> str | None:
    response = getattr(exc, "response", None)
    if not isinstance(response, dict):
        return None
    code = response.get("Error", {}).get("Code")
    return str(code) if code is not None else None


def _translate(exc: Exception, message: str) -> StorageError:
    if _error_code(exc) in NOT_FOUND_CODES:
        return ObjectNotFoundError(f"{message}: {exc}")
    return StorageError(f"{message}: {exc}")


class S3StorageClient:
    """StoreClient talking to AWS S3 or an S3-compatible endpoint.

    One instance wraps one boto3 client and is bound to one set of
    credentials. boto3 clients are thread safe, so part uploads share it.
    """

    def __init__(
        self,
        *,
        settings: "Settings",
        access_key_id: str,
        secret_access_key: str,
        endpoint_url: str | None = None,
    ) -> None:
        """Initialize the S3 client.

        Args:
            settings: Settings with region, SSL and timeout configuration.
            access_key_id: Access key of the repository credentials.
            secret_access_key: Secret key of the repository credentials.
            endpoint_url: Custom endpoint. When set, path-style addressing is
                used instead of virtual-host addressing.

        Raises:
            StorageError: If boto3 is not installed.
        """
        self._settings = settings
        self._endpoint_url = endpoint_url or None
        self._client = self._build_client(
            settings,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            endpoint_url=self._endpoint_url,
        )

    @property
    def endpoint_url(self) -> str | None:
        return self._endpoint_url

    @staticmethod
    def _build_client(
        settings: "Settings",
        *,
        access_key_id: str,
        secret_access_key: str,
        endpoint_url: str | None,
    ) -> Any:
        """Create a boto3 S3 client bound to the given credentials."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required by the S3 transport"
            ) from exc

        addressing_style = "path" if endpoint_url else "virtual"
        config = Config(
            signature_version="s3v4",
            connect_timeout=settings.S3_CONNECT_TIMEOUT_SECONDS,
            read_timeout=settings.S3_READ_TIMEOUT_MILLIS / 1000.0,
            retries={"max_attempts": settings.S3_MAX_RETRIES, "mode": "standard"},
            s3={"addressing_style": addressing_style},
        )

        return boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=settings.S3_REGION,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: BinaryIO,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> None:
        """Store an object in a single request."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata

        try:
            self._client.put_object(**params)
        except Exception as exc:
            raise _translate(exc, "Failed to put object") from exc

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise _translate(exc, "Failed to create multipart upload") from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> CompletedPart:
        """Upload one part of a multipart upload."""
        try:
            response = self._client.upload_part(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=data,
            )
        except Exception as exc:
            raise _translate(exc, f"Failed to upload part {part_number}") from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageError(f"S3 response missing ETag for part {part_number}")

        return CompletedPart(part_number=int(part_number), etag=str(etag))

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Complete a multipart upload by combining all parts."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in sorted(parts, key=lambda p: p.part_number)
            ]
        }

        try:
            self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise _translate(exc, "Failed to complete multipart upload") from exc

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise _translate(exc, "Failed to abort multipart upload") from exc

    def get_object(self, *, bucket: str, object_key: str, target: BinaryIO) -> int:
        """Stream an object into ``target`` chunk by chunk."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
            body = response["Body"]
            written = 0
            try:
                for chunk in body.iter_chunks(DOWNLOAD_CHUNK_BYTES):
                    target.write(chunk)
                    written += len(chunk)
            finally:
                body.close()
        except OSError:
            raise
        except Exception as exc:
            raise _translate(exc, "Failed to get object") from exc
        return written

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        try:
            response = self._client.head_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _translate(exc, "Failed to get object metadata") from exc

        size = response.get("ContentLength")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            last_modified=response.get("LastModified"),
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
        )

    def list_objects(
        self, *, bucket: str, prefix: str, delimiter: str = "/"
    ) -> ObjectListing:
        """List keys and common prefixes directly under ``prefix``."""
        keys: list[str] = []
        prefixes: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(
                Bucket=bucket, Prefix=prefix, Delimiter=delimiter
            ):
                for obj in page.get("Contents", []):
                    keys.append(obj["Key"])
                for common in page.get("CommonPrefixes", []):
                    prefixes.append(common["Prefix"])
        except Exception as exc:
            raise _translate(exc, "Failed to list objects") from exc

        return ObjectListing(keys=tuple(keys), common_prefixes=tuple(prefixes))

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _translate(exc, "Failed to delete object") from exc

    def create_bucket(self, *, bucket: str) -> None:
        """Create a bucket in the configured region."""
        params: dict[str, Any] = {"Bucket": bucket}
        region = self._settings.S3_REGION
        if region and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._client.create_bucket(**params)
        except Exception as exc:
            raise _translate(exc, "Failed to create bucket") from exc

    def delete_bucket(self, *, bucket: str) -> None:
        """Delete an empty bucket."""
        try:
            self._client.delete_bucket(Bucket=bucket)
        except Exception as exc:
            raise _translate(exc, "Failed to delete bucket") from exc

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        try:
            self._client.close()
        except Exception as exc:
            raise StorageError(f"Failed to close S3 client: {exc}") from exc

"""Store clients consumed by the transport: the protocol and its boto3 backend."""

from .client import (
    CompletedPart,
    MultipartUpload,
    ObjectHead,
    ObjectListing,
    ObjectNotFoundError,
    StorageError,
    StoreClient,
)

__all__ = [
    "CompletedPart",
    "MultipartUpload",
    "ObjectHead",
    "ObjectListing",
    "ObjectNotFoundError",
    "StorageError",
    "StoreClient",
]

"""Maven-style artifact repository transport over S3-compatible object stores."""

from s3wagon.common.logging import setup_logging
from s3wagon.domain.errors import (
    AuthenticationError,
    InvalidPathError,
    ResourceNotFoundError,
    TransferError,
    WagonConnectionError,
    WagonError,
)
from s3wagon.transport import Credentials, ObjectTransport, Session

__version__ = "0.1.0"

__all__ = [
    "AuthenticationError",
    "Credentials",
    "InvalidPathError",
    "ObjectTransport",
    "ResourceNotFoundError",
    "Session",
    "TransferError",
    "WagonConnectionError",
    "WagonError",
    "setup_logging",
]

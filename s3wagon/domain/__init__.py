from .errors import (
    AuthenticationError,
    InvalidPathError,
    ResourceNotFoundError,
    TransferError,
    WagonConnectionError,
    WagonError,
)
from .keys import RepositoryLocation, canonicalize_key, normalize_base_dir
from .listing import DirectoryEntry, DirectoryLister

__all__ = [
    "AuthenticationError",
    "InvalidPathError",
    "ResourceNotFoundError",
    "TransferError",
    "WagonConnectionError",
    "WagonError",
    "RepositoryLocation",
    "canonicalize_key",
    "normalize_base_dir",
    "DirectoryEntry",
    "DirectoryLister",
]

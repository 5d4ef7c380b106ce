from __future__ import annotations


class WagonError(Exception):
    """Base class for transport level exceptions."""


class InvalidPathError(WagonError):
    """Raised when a repository path cannot be resolved into a store key."""


class AuthenticationError(WagonError):
    """Raised when a session is opened without usable credentials."""


class WagonConnectionError(WagonError):
    """Raised when a session cannot be opened or is used outside its lifetime."""


class ResourceNotFoundError(WagonError):
    """Raised when the requested resource does not exist."""


class TransferError(WagonError):
    """Raised when moving bytes to or from the store fails.

    ``uri`` always carries the fully qualified ``s3://bucket/key`` of the
    object involved.
    """

    def __init__(
        self, message: str, *, uri: str, cause: BaseException | None = None
    ) -> None:
        super().__init__(f"{message} [{uri}]")
        self.uri = uri
        self.cause = cause

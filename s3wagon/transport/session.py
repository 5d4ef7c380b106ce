"""Connection lifecycle for one repository.

A Session binds credentials and an optional endpoint override to a store
client. Each transport owns its own session, so several repositories can be
connected side by side.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable

from s3wagon.common.config import RepositoryOptions, Settings, get_settings
from s3wagon.domain.errors import AuthenticationError, WagonConnectionError
from s3wagon.domain.keys import RepositoryLocation, normalize_base_dir
from s3wagon.infra.storage.client import StorageError, StoreClient
from s3wagon.infra.storage.s3_client import S3StorageClient

logger = logging.getLogger("s3wagon.session")

CREDENTIALS_HINT = (
    "The S3 transport needs the access key as the username and the secret key "
    "as the password, e.g.\n"
    "  <server>\n"
    "    <id>my.server</id>\n"
    "    <username>[Access Key ID]</username>\n"
    "    <password>[Secret Access Key]</password>\n"
    "  </server>"
)


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str = field(repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Credentials | None":
        if not settings.S3_ACCESS_KEY_ID or not settings.S3_SECRET_ACCESS_KEY:
            return None
        return cls(settings.S3_ACCESS_KEY_ID, settings.S3_SECRET_ACCESS_KEY)

    @property
    def is_complete(self) -> bool:
        return bool(
            (self.access_key_id or "").strip()
            and (self.secret_access_key or "").strip()
        )


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


ClientFactory = Callable[[Settings, Credentials, str | None], StoreClient]


def build_s3_client(
    settings: Settings, credentials: Credentials, endpoint: str | None
) -> StoreClient:
    return S3StorageClient(
        settings=settings,
        access_key_id=credentials.access_key_id,
        secret_access_key=credentials.secret_access_key,
        endpoint_url=endpoint,
    )


class Session:
    """Owns the store client of one repository connection.

    Not safe for concurrent connect/disconnect calls; use one session per
    connection. A session that has been disconnected cannot be reused.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._base_settings = settings or get_settings()
        self._settings = self._base_settings
        self._client_factory = client_factory or build_s3_client
        self._state = SessionState.DISCONNECTED
        self._torn_down = False
        self._client: StoreClient | None = None
        self._location: RepositoryLocation | None = None
        self._base_dir = ""
        self._endpoint: str | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def client(self) -> StoreClient:
        if self._client is None or not self.is_connected:
            raise WagonConnectionError("Session is not connected")
        return self._client

    @property
    def location(self) -> RepositoryLocation:
        if self._location is None:
            raise WagonConnectionError("Session is not connected")
        return self._location

    @property
    def bucket(self) -> str:
        return self.location.bucket

    @property
    def base_dir(self) -> str:
        return self._base_dir

    @property
    def endpoint(self) -> str | None:
        return self._endpoint

    @property
    def multipart_threshold(self) -> int:
        return self._settings.S3_MULTIPART_THRESHOLD_BYTES

    def connect(
        self,
        location: RepositoryLocation | str,
        credentials: Credentials | None,
        endpoint: str | None = None,
        *,
        options: RepositoryOptions | None = None,
    ) -> None:
        """Open the session against ``location``.

        Args:
            location: Repository location or its ``s3://bucket/root`` URL.
            credentials: Access and secret key. Both must be non-blank.
            endpoint: Endpoint override; switches the client to path-style
                addressing. Falls back to the configured endpoint.
            options: Per-repository options layered over the settings.

        Raises:
            AuthenticationError: If credentials are missing or blank.
            WagonConnectionError: If the session is in use, already torn
                down, the location is malformed, or the client cannot be
                built.
        """
        if self._torn_down:
            raise WagonConnectionError("Session was disconnected and cannot be reused")
        if self._state is not SessionState.DISCONNECTED:
            raise WagonConnectionError(f"Session is already {self._state.value}")
        if credentials is None or not credentials.is_complete:
            raise AuthenticationError(CREDENTIALS_HINT)

        self._state = SessionState.CONNECTING
        try:
            if isinstance(location, str):
                location = RepositoryLocation.parse(location)
            logger.debug("connecting to %s", location.url)
            settings = self._base_settings
            if options is not None:
                settings = settings.with_options(options)
            resolved_endpoint = (endpoint or "").strip() or settings.S3_ENDPOINT_URL
            client = self._client_factory(settings, credentials, resolved_endpoint)
        except Exception as exc:
            self._state = SessionState.DISCONNECTED
            raise WagonConnectionError("Could not connect to repository") from exc

        if resolved_endpoint:
            logger.info("using s3 endpoint: [%s]", resolved_endpoint)
        self._settings = settings
        self._client = client
        self._endpoint = resolved_endpoint
        self._location = location
        self._base_dir = normalize_base_dir(location.root_path)
        self._state = SessionState.CONNECTED
        logger.info(
            "connected",
            extra={
                "extra": {
                    "bucket": location.bucket,
                    "base_dir": self._base_dir,
                    "endpoint": resolved_endpoint,
                }
            },
        )

    def disconnect(self) -> None:
        """Release the client. Safe to call more than once."""
        if self._client is None:
            self._state = SessionState.DISCONNECTED
            return
        client, self._client = self._client, None
        self._state = SessionState.DISCONNECTED
        self._torn_down = True
        try:
            client.close()
        except StorageError as exc:
            raise WagonConnectionError("Could not disconnect from repository") from exc
        logger.debug("disconnected")

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

from __future__ import annotations

import pytest

from s3wagon.common.config import Settings, get_settings
from s3wagon.transport.object_transport import ObjectTransport
from s3wagon.transport.session import Credentials, Session
from tests.transport.mock_store import MockStoreClient

BUCKET = "maven.example.org"
REPOSITORY_URL = f"s3://{BUCKET}/release/"


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    for name in (
        "S3_ENDPOINT_URL",
        "S3_ACCESS_KEY_ID",
        "S3_SECRET_ACCESS_KEY",
        "LOG_LEVEL",
        "LOG_JSON",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def settings() -> Settings:
    # Small threshold and chunks keep multipart tests fast
    return Settings(
        S3_MULTIPART_THRESHOLD_BYTES=64 * 1024,
        S3_MULTIPART_CHUNK_SIZE_BYTES=16 * 1024,
        S3_MAX_CONCURRENCY=4,
        S3_MAX_RETRIES=2,
    )


@pytest.fixture()
def credentials() -> Credentials:
    return Credentials("test-key", "test-secret")


@pytest.fixture()
def mock_store() -> MockStoreClient:
    return MockStoreClient()


@pytest.fixture()
def session(settings, credentials, mock_store):
    session = Session(
        settings=settings,
        client_factory=lambda _settings, _credentials, _endpoint: mock_store,
    )
    session.connect(REPOSITORY_URL, credentials)
    yield session
    session.disconnect()


@pytest.fixture()
def transport(session) -> ObjectTransport:
    return ObjectTransport(session)

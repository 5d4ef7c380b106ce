"""Tests for the Session lifecycle."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from s3wagon.common.config import RepositoryOptions, Settings
from s3wagon.domain.errors import (
    AuthenticationError,
    InvalidPathError,
    WagonConnectionError,
)
from s3wagon.infra.storage.client import StorageError
from s3wagon.infra.storage.s3_client import S3StorageClient
from s3wagon.transport.session import Credentials, Session, SessionState
from tests.transport.mock_store import MockStoreClient


@pytest.fixture()
def factory():
    store = MockStoreClient()
    factory = MagicMock(return_value=store)
    factory.store = store
    return factory


class TestConnect:
    def test_connects_and_derives_base_dir(self, settings, credentials, factory):
        session = Session(settings=settings, client_factory=factory)

        session.connect("s3://maven.example.org/snapshot", credentials)

        assert session.state is SessionState.CONNECTED
        assert session.bucket == "maven.example.org"
        assert session.base_dir == "snapshot/"
        assert session.client is factory.store
        factory.assert_called_once_with(settings, credentials, None)

    def test_root_location_has_empty_base_dir(self, settings, credentials, factory):
        session = Session(settings=settings, client_factory=factory)

        session.connect("s3://bucket/", credentials)

        assert session.base_dir == ""

    @pytest.mark.parametrize(
        "bad_credentials",
        [
            None,
            Credentials("", "secret"),
            Credentials("key", ""),
            Credentials("   ", "secret"),
            Credentials("key", "  "),
        ],
    )
    def test_missing_credentials(self, settings, factory, bad_credentials):
        session = Session(settings=settings, client_factory=factory)

        with pytest.raises(AuthenticationError, match="username"):
            session.connect("s3://bucket/", bad_credentials)

        assert session.state is SessionState.DISCONNECTED
        factory.assert_not_called()

    def test_endpoint_override_is_passed_to_factory(self, settings, credentials, factory):
        session = Session(settings=settings, client_factory=factory)

        session.connect("s3://bucket/", credentials, "http://localhost:9000")

        assert session.endpoint == "http://localhost:9000"
        factory.assert_called_once_with(settings, credentials, "http://localhost:9000")

    def test_endpoint_falls_back_to_settings(self, credentials, factory):
        settings = Settings(S3_ENDPOINT_URL="http://minio:9000")
        session = Session(settings=settings, client_factory=factory)

        session.connect("s3://bucket/", credentials)

        assert session.endpoint == "http://minio:9000"

    def test_repository_options_override_settings(self, settings, credentials, factory):
        session = Session(settings=settings, client_factory=factory)
        options = RepositoryOptions.from_mapping(
            {"multipartChunkSize": "1024", "endpoint": "http://ceph:7480"}
        )

        session.connect("s3://bucket/", credentials, options=options)

        assert session.settings.S3_MULTIPART_CHUNK_SIZE_BYTES == 1024
        assert session.endpoint == "http://ceph:7480"

    def test_factory_failure_is_connection_error(self, settings, credentials):
        def broken(*_args):
            raise StorageError("boto3 missing")

        session = Session(settings=settings, client_factory=broken)

        with pytest.raises(WagonConnectionError, match="Could not connect"):
            session.connect("s3://bucket/", credentials)
        assert session.state is SessionState.DISCONNECTED

    def test_malformed_location_is_connection_error(self, settings, credentials, factory):
        session = Session(settings=settings, client_factory=factory)

        with pytest.raises(WagonConnectionError, match="Could not connect") as excinfo:
            session.connect("not-a-repository-url", credentials)

        assert isinstance(excinfo.value.__cause__, InvalidPathError)
        assert session.state is SessionState.DISCONNECTED
        factory.assert_not_called()

    def test_cannot_connect_twice(self, session, credentials):
        with pytest.raises(WagonConnectionError, match="already connected"):
            session.connect("s3://bucket/", credentials)

    def test_default_factory_builds_s3_client(self, settings, credentials):
        with patch.object(S3StorageClient, "_build_client", return_value=MagicMock()) as build:
            session = Session(settings=settings)
            session.connect("s3://bucket/", credentials, "http://localhost:9000")

        assert isinstance(session.client, S3StorageClient)
        assert build.call_args.kwargs["endpoint_url"] == "http://localhost:9000"
        assert build.call_args.kwargs["access_key_id"] == "test-key"


class TestDisconnect:
    def test_disconnect_closes_client(self, settings, credentials, factory):
        session = Session(settings=settings, client_factory=factory)
        session.connect("s3://bucket/", credentials)

        session.disconnect()

        assert factory.store.closed is True
        assert session.state is SessionState.DISCONNECTED
        with pytest.raises(WagonConnectionError):
            _ = session.client

    def test_disconnect_is_idempotent(self, settings, credentials, factory):
        session = Session(settings=settings, client_factory=factory)
        session.disconnect()
        session.connect("s3://bucket/", credentials)

        session.disconnect()
        session.disconnect()

        assert session.state is SessionState.DISCONNECTED

    def test_session_cannot_be_reused(self, settings, credentials, factory):
        session = Session(settings=settings, client_factory=factory)
        session.connect("s3://bucket/", credentials)
        session.disconnect()

        with pytest.raises(WagonConnectionError, match="cannot be reused"):
            session.connect("s3://bucket/", credentials)

    def test_close_failure_is_connection_error(self, settings, credentials):
        store = MockStoreClient()
        store.close = MagicMock(side_effect=StorageError("close failed"))  # type: ignore[method-assign]
        session = Session(settings=settings, client_factory=lambda *_: store)
        session.connect("s3://bucket/", credentials)

        with pytest.raises(WagonConnectionError, match="disconnect"):
            session.disconnect()
        assert session.state is SessionState.DISCONNECTED

    def test_context_manager(self, settings, credentials, factory):
        with Session(settings=settings, client_factory=factory) as session:
            session.connect("s3://bucket/", credentials)

        assert factory.store.closed is True

    def test_sessions_are_independent(self, settings, credentials):
        first_store, second_store = MockStoreClient(), MockStoreClient()
        first = Session(settings=settings, client_factory=lambda *_: first_store)
        second = Session(settings=settings, client_factory=lambda *_: second_store)
        first.connect("s3://one/a", credentials)
        second.connect("s3://two/b", credentials)

        first.disconnect()

        assert second.is_connected
        assert second.client is second_store
        assert second.base_dir == "b/"


def test_credentials_repr_hides_secret():
    assert "secret" not in repr(Credentials("key", "very-secret"))


def test_credentials_from_settings():
    assert Credentials.from_settings(Settings()) is None
    credentials = Credentials.from_settings(
        Settings(S3_ACCESS_KEY_ID="k", S3_SECRET_ACCESS_KEY="s")
    )
    assert credentials == Credentials("k", "s")

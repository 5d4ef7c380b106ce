"""Tests for upload strategy selection and execution."""

from __future__ import annotations

import os

import pytest

from s3wagon.common.config import Settings
from s3wagon.domain.errors import TransferError
from s3wagon.transport.strategy import (
    MAX_PART_NUMBER,
    ChunkedStrategy,
    SingleShotStrategy,
    StreamingStrategy,
    TransferDescriptor,
    select_strategy,
)
from tests.transport.mock_store import MockStoreClient

BUCKET = "bucket"


def _descriptor(tmp_path, payload: bytes, name: str = "artifact.jar") -> TransferDescriptor:
    source = tmp_path / name
    source.write_bytes(payload)
    return TransferDescriptor.for_upload(source, f"release/{name}")


class TestTransferDescriptor:
    def test_for_upload(self, tmp_path):
        descriptor = _descriptor(tmp_path, b"12345", name="lib.txt")

        assert descriptor.size == 5
        assert descriptor.store_key == "release/lib.txt"
        assert descriptor.content_type == "text/plain"

    def test_unknown_extension_falls_back(self, tmp_path):
        descriptor = _descriptor(tmp_path, b"", name="lib.unknownext")

        assert descriptor.content_type == "application/octet-stream"


class TestSelectStrategy:
    def test_below_threshold_is_single_shot(self):
        settings = Settings(S3_MULTIPART_THRESHOLD_BYTES=100)

        assert isinstance(select_strategy(99, settings), SingleShotStrategy)

    def test_at_threshold_is_chunked(self):
        settings = Settings(
            S3_MULTIPART_THRESHOLD_BYTES=100,
            S3_MULTIPART_CHUNK_SIZE_BYTES=10,
            S3_MAX_CONCURRENCY=3,
            S3_MAX_RETRIES=5,
        )

        strategy = select_strategy(100, settings)

        assert isinstance(strategy, ChunkedStrategy)
        assert strategy.chunk_size == 10
        assert strategy.max_workers == 3
        assert strategy.max_retries == 5

    def test_listener_wraps_in_streaming(self):
        strategy = select_strategy(1, Settings(), listener=lambda done, total: None)

        assert isinstance(strategy, StreamingStrategy)
        assert isinstance(strategy.inner, SingleShotStrategy)

    def test_default_threshold_is_100_mib(self):
        assert Settings().S3_MULTIPART_THRESHOLD_BYTES == 100 * 1024 * 1024


class TestSingleShotStrategy:
    def test_uploads_in_one_request(self, tmp_path):
        store = MockStoreClient()
        descriptor = _descriptor(tmp_path, b"small payload")

        SingleShotStrategy().upload(store, bucket=BUCKET, descriptor=descriptor)

        assert store.data(BUCKET, "release/artifact.jar") == b"small payload"
        assert store.calls == ["put_object"]

    def test_wraps_store_failure(self, tmp_path):
        store = MockStoreClient()
        store.put_object = _raise_storage_error  # type: ignore[method-assign]
        descriptor = _descriptor(tmp_path, b"x")

        with pytest.raises(TransferError) as excinfo:
            SingleShotStrategy().upload(store, bucket=BUCKET, descriptor=descriptor)
        assert excinfo.value.uri == "s3://bucket/release/artifact.jar"


def _raise_storage_error(**_kwargs):
    from s3wagon.infra.storage.client import StorageError

    raise StorageError("boom")


class TestChunkedStrategy:
    def _strategy(self, **overrides) -> ChunkedStrategy:
        options = {"chunk_size": 10, "max_workers": 3, "max_retries": 2, "backoff_seconds": 0}
        options.update(overrides)
        return ChunkedStrategy(**options)

    def test_plan_parts(self):
        parts = self._strategy().plan_parts(25)

        assert [(p.part_number, p.offset, p.length) for p in parts] == [
            (1, 0, 10),
            (2, 10, 10),
            (3, 20, 5),
        ]

    def test_plan_parts_empty_payload(self):
        parts = self._strategy().plan_parts(0)

        assert len(parts) == 1
        assert parts[0].length == 0

    def test_plan_parts_respects_part_limit(self):
        parts = self._strategy(chunk_size=1).plan_parts(MAX_PART_NUMBER * 3)

        assert len(parts) <= MAX_PART_NUMBER

    def test_rejects_invalid_configuration(self):
        with pytest.raises(ValueError):
            ChunkedStrategy(chunk_size=0)
        with pytest.raises(ValueError):
            ChunkedStrategy(chunk_size=10, max_workers=0)

    def test_reassembles_parts_in_order(self, tmp_path):
        store = MockStoreClient()
        payload = os.urandom(95)
        descriptor = _descriptor(tmp_path, payload)

        self._strategy().upload(store, bucket=BUCKET, descriptor=descriptor)

        assert store.data(BUCKET, "release/artifact.jar") == payload
        upload = store.uploads["mock-upload-1"]
        assert upload["completed"] is True
        assert sorted(upload["parts"]) == list(range(1, 11))

    def test_retries_failing_part(self, tmp_path):
        store = MockStoreClient(part_failures={2: 2})
        payload = os.urandom(30)
        descriptor = _descriptor(tmp_path, payload)

        self._strategy(max_retries=2).upload(store, bucket=BUCKET, descriptor=descriptor)

        assert store.data(BUCKET, "release/artifact.jar") == payload
        attempts = store.uploads["mock-upload-1"]["attempts"]
        assert attempts[2] == 3
        assert attempts[1] == 1

    def test_exhausted_retries_abort_and_raise(self, tmp_path):
        store = MockStoreClient(part_failures={2: 5})
        descriptor = _descriptor(tmp_path, os.urandom(30))

        with pytest.raises(TransferError) as excinfo:
            self._strategy(max_retries=1).upload(
                store, bucket=BUCKET, descriptor=descriptor
            )

        assert excinfo.value.uri == "s3://bucket/release/artifact.jar"
        upload = store.uploads["mock-upload-1"]
        assert upload["aborted"] is True
        assert upload["completed"] is False
        assert upload["attempts"][2] == 2
        assert f"{BUCKET}/release/artifact.jar" not in store.objects

    def test_failing_progress_callback_aborts_upload(self, tmp_path):
        store = MockStoreClient()
        descriptor = _descriptor(tmp_path, os.urandom(30))

        def broken_listener(done: int, total: int) -> None:
            raise RuntimeError("listener failed")

        with pytest.raises(RuntimeError, match="listener failed"):
            self._strategy().upload(
                store, bucket=BUCKET, descriptor=descriptor, progress=broken_listener
            )

        upload = store.uploads["mock-upload-1"]
        assert upload["aborted"] is True
        assert upload["completed"] is False
        assert f"{BUCKET}/release/artifact.jar" not in store.objects

    def test_reports_progress(self, tmp_path):
        store = MockStoreClient()
        descriptor = _descriptor(tmp_path, os.urandom(25))
        seen: list[tuple[int, int]] = []

        self._strategy().upload(
            store,
            bucket=BUCKET,
            descriptor=descriptor,
            progress=lambda done, total: seen.append((done, total)),
        )

        assert len(seen) == 3
        assert seen[-1] == (25, 25)
        assert [done for done, _ in seen] == sorted(done for done, _ in seen)


class TestStreamingStrategy:
    def test_forwards_progress_to_listener(self, tmp_path):
        store = MockStoreClient()
        descriptor = _descriptor(tmp_path, b"abc")
        seen: list[tuple[int, int]] = []

        StreamingStrategy(SingleShotStrategy(), lambda d, t: seen.append((d, t))).upload(
            store, bucket=BUCKET, descriptor=descriptor
        )

        assert seen == [(3, 3)]
        assert store.data(BUCKET, "release/artifact.jar") == b"abc"

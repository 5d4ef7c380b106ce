from __future__ import annotations

import os
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Mapping

ENV_FILE = Path(".env")

MIB = 1024 * 1024
DEFAULT_MULTIPART_THRESHOLD_BYTES = 100 * MIB
# Smaller than the SDK default so proxies such as nginx or cloudflare accept the parts
DEFAULT_MULTIPART_CHUNK_SIZE_BYTES = 10 * MIB
DEFAULT_READ_TIMEOUT_MILLIS = 60 * 1000

OPTION_USAGE = (
    "Repository options are given per server, e.g.\n"
    "  <server>\n"
    "    <id>my.server</id>\n"
    "    <configuration>\n"
    "      <{name}>10485760</{name}>\n"
    "    </configuration>\n"
    "  </server>"
)


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_int(name: str, value: object) -> int:
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ValueError(
            f"The {name} option needs to be an integer.\n"
            + OPTION_USAGE.format(name=name)
        ) from exc


@dataclass(frozen=True)
class RepositoryOptions:
    """Per-repository options that override environment settings."""

    endpoint: str | None = None
    multipart_chunk_size: int | None = None
    multipart_threshold: int | None = None
    read_timeout_millis: int | None = None
    max_concurrency: int | None = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, object] | None) -> "RepositoryOptions":
        """Parse options keyed by their build-tool names (``multipartChunkSize``...)."""
        values = values or {}

        def _int_option(name: str) -> int | None:
            raw = values.get(name)
            if raw is None or not str(raw).strip():
                return None
            return _as_int(name, raw)

        endpoint = str(values.get("endpoint") or "").strip()
        return cls(
            endpoint=endpoint or None,
            multipart_chunk_size=_int_option("multipartChunkSize"),
            multipart_threshold=_int_option("multipartThreshold"),
            read_timeout_millis=_int_option("readTimeoutMillis"),
            max_concurrency=_int_option("maxConcurrency"),
        )


@dataclass
class Settings:
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str | None = None
    S3_USE_SSL: bool = True
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_MULTIPART_THRESHOLD_BYTES: int = DEFAULT_MULTIPART_THRESHOLD_BYTES
    S3_MULTIPART_CHUNK_SIZE_BYTES: int = DEFAULT_MULTIPART_CHUNK_SIZE_BYTES
    S3_MAX_CONCURRENCY: int = 4
    S3_MAX_RETRIES: int = 3
    S3_READ_TIMEOUT_MILLIS: int = DEFAULT_READ_TIMEOUT_MILLIS
    S3_CONNECT_TIMEOUT_SECONDS: int = 10
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    def __post_init__(self) -> None:
        for name in (
            "S3_MULTIPART_THRESHOLD_BYTES",
            "S3_MULTIPART_CHUNK_SIZE_BYTES",
            "S3_MAX_CONCURRENCY",
            "S3_MAX_RETRIES",
            "S3_READ_TIMEOUT_MILLIS",
        ):
            if int(getattr(self, name)) <= 0:
                raise ValueError(f"{name} must be positive.")

    def with_options(self, options: RepositoryOptions) -> "Settings":
        """Return a copy with the repository options applied on top."""
        overrides: dict[str, object] = {}
        if options.endpoint:
            overrides["S3_ENDPOINT_URL"] = options.endpoint
        if options.multipart_chunk_size is not None:
            overrides["S3_MULTIPART_CHUNK_SIZE_BYTES"] = options.multipart_chunk_size
        if options.multipart_threshold is not None:
            overrides["S3_MULTIPART_THRESHOLD_BYTES"] = options.multipart_threshold
        if options.read_timeout_millis is not None:
            overrides["S3_READ_TIMEOUT_MILLIS"] = options.read_timeout_millis
        if options.max_concurrency is not None:
            overrides["S3_MAX_CONCURRENCY"] = options.max_concurrency
        return replace(self, **overrides)

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL") or None,
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID"),
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY"),
            S3_MULTIPART_THRESHOLD_BYTES=_as_int(
                "S3_MULTIPART_THRESHOLD_BYTES",
                os.environ.get(
                    "S3_MULTIPART_THRESHOLD_BYTES", cls.S3_MULTIPART_THRESHOLD_BYTES
                ),
            ),
            S3_MULTIPART_CHUNK_SIZE_BYTES=_as_int(
                "S3_MULTIPART_CHUNK_SIZE_BYTES",
                os.environ.get(
                    "S3_MULTIPART_CHUNK_SIZE_BYTES", cls.S3_MULTIPART_CHUNK_SIZE_BYTES
                ),
            ),
            S3_MAX_CONCURRENCY=int(
                os.environ.get("S3_MAX_CONCURRENCY", cls.S3_MAX_CONCURRENCY)
            ),
            S3_MAX_RETRIES=int(os.environ.get("S3_MAX_RETRIES", cls.S3_MAX_RETRIES)),
            S3_READ_TIMEOUT_MILLIS=int(
                os.environ.get("S3_READ_TIMEOUT_MILLIS", cls.S3_READ_TIMEOUT_MILLIS)
            ),
            S3_CONNECT_TIMEOUT_SECONDS=int(
                os.environ.get(
                    "S3_CONNECT_TIMEOUT_SECONDS", cls.S3_CONNECT_TIMEOUT_SECONDS
                )
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            LOG_JSON=_as_bool(os.environ.get("LOG_JSON"), cls.LOG_JSON),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()

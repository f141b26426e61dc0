"""Blob storage for report photos: S3 in production, local disk in dev.

Keys are ``{timestamp_ms}_{random}_{filename}``, optionally under a folder
prefix such as ``reports/{report_id}/``. Both stores expose the same async
``put`` / ``delete_many`` pair; blocking I/O runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

from inspector_pro.config import MediaConfig

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


@dataclass
class StoredObject:
    key: str
    url: str


class MediaStore(Protocol):
    """Operations the report saga needs from blob storage."""

    async def put(self, stream: BinaryIO | bytes, key: str, content_type: str) -> StoredObject:
        ...

    async def delete_many(self, keys: list[str]) -> None:
        ...


def sanitize_filename(filename: str) -> str:
    return _WHITESPACE.sub("_", str(filename or "file").strip()) or "file"


def make_key(filename: str = "file", prefix: str = "") -> str:
    """Globally unique object key: timestamp + random component + filename."""
    key = f"{int(time.time() * 1000)}_{secrets.token_urlsafe(12)}_{sanitize_filename(filename)}"
    if prefix:
        return f"{prefix.rstrip('/')}/{key}"
    return key


def report_prefix(report_id: str) -> str:
    return f"reports/{report_id}/"


def _read_all(stream: BinaryIO | bytes) -> bytes:
    if isinstance(stream, (bytes, bytearray)):
        return bytes(stream)
    return stream.read()


class LocalMediaStore:
    """Stores objects as files under ``base_dir``; for dev and single-host deployments."""

    def __init__(self, base_dir: str, public_base_url: str):
        self._base = Path(base_dir)
        self._public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self._base / key).resolve()
        if self._base.resolve() not in path.parents:
            raise ValueError(f"Key escapes media root: {key}")
        return path

    def _put_sync(self, stream: BinaryIO | bytes, key: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_read_all(stream))

    def _delete_sync(self, keys: list[str]) -> None:
        for key in keys:
            self._path(key).unlink(missing_ok=True)

    async def put(self, stream: BinaryIO | bytes, key: str, content_type: str) -> StoredObject:
        await asyncio.to_thread(self._put_sync, stream, key)
        return StoredObject(key=key, url=f"{self._public_base_url}/{key}")

    async def delete_many(self, keys: list[str]) -> None:
        if not keys:
            raise ValueError("keys must be a non-empty list")
        await asyncio.to_thread(self._delete_sync, list(keys))

    def read(self, key: str) -> bytes:
        return self._path(key).read_bytes()


class S3MediaStore:
    """S3 bucket store using boto3."""

    def __init__(self, bucket: str, region: str = "", client=None):
        if not bucket:
            raise ValueError("An S3 bucket name is required")
        self.bucket = bucket
        self.region = region
        if client is None:
            import boto3
            client = boto3.client("s3", region_name=region or None)
        self._client = client

    def _url(self, key: str) -> str:
        if self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def _put_sync(self, stream: BinaryIO | bytes, key: str, content_type: str) -> None:
        body = io.BytesIO(stream) if isinstance(stream, (bytes, bytearray)) else stream
        self._client.upload_fileobj(
            body, self.bucket, key,
            ExtraArgs={"ContentType": content_type or "application/octet-stream"},
        )

    def _delete_sync(self, keys: list[str]) -> None:
        # DeleteObjects accepts at most 1000 keys per request
        for i in range(0, len(keys), 1000):
            chunk = keys[i:i + 1000]
            resp = self._client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": k} for k in chunk], "Quiet": True},
            )
            errors = resp.get("Errors") or []
            if errors:
                raise RuntimeError(f"S3 failed to delete {len(errors)} object(s): {errors[0]}")

    async def put(self, stream: BinaryIO | bytes, key: str, content_type: str) -> StoredObject:
        await asyncio.to_thread(self._put_sync, stream, key, content_type)
        return StoredObject(key=key, url=self._url(key))

    async def delete_many(self, keys: list[str]) -> None:
        if not keys:
            raise ValueError("keys must be a non-empty list")
        await asyncio.to_thread(self._delete_sync, list(keys))


def build_media_store(config: MediaConfig) -> MediaStore:
    if config.backend == "s3":
        logger.info("Using S3 media store (bucket=%s)", config.s3_bucket)
        return S3MediaStore(config.s3_bucket, config.s3_region)
    logger.info("Using local media store at %s", config.base_dir)
    return LocalMediaStore(config.base_dir, config.public_base_url)

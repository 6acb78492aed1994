"""Binary storage backends addressed by object key."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import HousekeeperSettings
from ..exceptions import BlobNotFoundError, BlobStoreError


class BlobStore(Protocol):
    """Key-addressed binary storage consumed by the collector and deleter."""

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return the key."""

    def get(self, key: str) -> bytes:
        """Return stored bytes, raising :class:`BlobNotFoundError` if absent."""

    def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing key is not an error."""


@dataclass(slots=True)
class LocalBlobStore:
    """Store blobs as files below ``root`` mirroring the key hierarchy."""

    root: Path
    log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def path_for(self, key: str) -> Path:
        root = self.root.resolve()
        target = (root / key).resolve()
        if target == root or root not in target.parents:
            raise BlobStoreError(f"object key '{key}' escapes the storage root")
        return target

    def put(self, key: str, data: bytes, content_type: str) -> str:
        target = self.path_for(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise BlobStoreError(f"failed to write '{key}': {exc}") from exc
        self.log.debug("media.blob.put", extra={"key": key, "content_type": content_type, "size": len(data)})
        return key

    def get(self, key: str) -> bytes:
        target = self.path_for(key)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise BlobNotFoundError(f"object '{key}' not found") from exc
        except OSError as exc:
            raise BlobStoreError(f"failed to read '{key}': {exc}") from exc

    def delete(self, key: str) -> None:
        target = self.path_for(key)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise BlobStoreError(f"failed to delete '{key}': {exc}") from exc
        self._prune_empty_parents(target.parent)

    def _prune_empty_parents(self, directory: Path) -> None:
        root = self.root.resolve()
        while directory != root and root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent


class S3BlobStore:
    """S3-compatible storage (AWS S3, MinIO) through boto3."""

    def __init__(self, client: Any, bucket: str) -> None:
        self._client = client
        self._bucket = bucket
        self._logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: HousekeeperSettings) -> "S3BlobStore":
        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )
        return cls(client, settings.s3_bucket)

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as exc:
            raise BlobStoreError(f"failed to upload '{key}': {exc}") from exc
        return key

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in {"NoSuchKey", "404"}:
                raise BlobNotFoundError(f"object '{key}' not found") from exc
            raise BlobStoreError(f"failed to download '{key}': {exc}") from exc
        except BotoCoreError as exc:
            raise BlobStoreError(f"failed to download '{key}': {exc}") from exc
        return response["Body"].read()

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise BlobStoreError(f"failed to delete '{key}': {exc}") from exc
        self._logger.debug("media.blob.deleted", extra={"key": key, "bucket": self._bucket})


def build_blob_store(settings: HousekeeperSettings) -> BlobStore:
    if settings.blob_backend == "s3":
        return S3BlobStore.from_settings(settings)
    return LocalBlobStore(root=settings.media_root)

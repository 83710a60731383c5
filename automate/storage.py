"""
Storage abstraction for S3-compatible object storage and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from automate.errors import StorageError


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(
        self, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        ...

    def public_url(self, path: str) -> Optional[str]:
        ...


def _join_public_url(base_url: str | None, path: str) -> Optional[str]:
    if not base_url:
        return None
    return f"{base_url.rstrip('/')}/{quote(path)}"


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: Optional[str] = "https://example.test/storage"
    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def upload_bytes(
        self, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        if path in self.stored_objects:
            raise StorageError(f"The resource already exists: {path}")
        self.stored_objects[path] = data

    def public_url(self, path: str) -> Optional[str]:
        return _join_public_url(self.base_url, path)

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client for the vehicle document bucket.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(
        self, path: str, data: bytes, content_type: str | None = None
    ) -> None:
        extra = {"ContentType": content_type} if content_type else {}
        try:
            # Existing keys are never overwritten.
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                IfNoneMatch="*",
                **extra,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    def public_url(self, path: str) -> Optional[str]:
        return _join_public_url(self.public_base_url, path)

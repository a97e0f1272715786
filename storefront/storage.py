"""
Storage abstraction for S3-compatible buckets and in-memory testing.
"""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Tuple

import boto3
from botocore.config import Config

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def unique_object_name(folder: str, filename: str) -> str:
    """Object key of the form `<folder>/<epoch ms>-<random hex>-<sanitized name>`."""
    safe_name = _UNSAFE_NAME_CHARS.sub("_", filename or "file")
    return f"{folder}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe_name}"


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        ...

    def public_url(self, bucket: str, path: str) -> str:
        ...

    def presign_get(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        ...

    def presign_put(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        ...

    def get_bytes(self, bucket: str, path: str) -> bytes:
        ...

    def delete(self, bucket: str, path: str) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: Dict[Tuple[str, str], bytes] = field(default_factory=dict)
    content_types: Dict[Tuple[str, str], str] = field(default_factory=dict)

    def upload_bytes(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        self.stored_objects[(bucket, path)] = bytes(data)
        self.content_types[(bucket, path)] = content_type
        return path

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/{bucket}/{path}"

    def presign_get(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{bucket}/{path}?op=get&expires={expires_in}"

    def presign_put(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{bucket}/{path}?op=put&expires={expires_in}"

    def get_bytes(self, bucket: str, path: str) -> bytes:
        stored = self.stored_objects.get((bucket, path))
        if stored is None:
            raise FileNotFoundError(f"{bucket}/{path}")
        return stored

    def delete(self, bucket: str, path: str) -> None:
        self.stored_objects.pop((bucket, path), None)
        self.content_types.pop((bucket, path), None)


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client. Each logical bucket maps to `<bucket_prefix><bucket>`.
    """

    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    bucket_prefix: str = ""
    public_base_url: Optional[str] = None

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def _bucket(self, bucket: str) -> str:
        return f"{self.bucket_prefix}{bucket}"

    def upload_bytes(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        self._client.put_object(
            Bucket=self._bucket(bucket),
            Key=path,
            Body=data,
            ContentType=content_type,
        )
        return path

    def public_url(self, bucket: str, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{self._bucket(bucket)}/{path}"
        endpoint = (self.endpoint or "").rstrip("/")
        if endpoint:
            return f"{endpoint}/{self._bucket(bucket)}/{path}"
        return f"https://{self._bucket(bucket)}.s3.{self.region}.amazonaws.com/{path}"

    def presign_get(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self._bucket(bucket), "Key": path},
            ExpiresIn=expires_in,
        )

    def presign_put(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        # We include a dummy content type so uploads work in browsers by default.
        return self._client.generate_presigned_url(
            ClientMethod="put_object",
            Params={
                "Bucket": self._bucket(bucket),
                "Key": path,
                "ContentType": "application/octet-stream",
            },
            ExpiresIn=expires_in,
        )

    def get_bytes(self, bucket: str, path: str) -> bytes:
        response = self._client.get_object(Bucket=self._bucket(bucket), Key=path)
        return response["Body"].read()

    def delete(self, bucket: str, path: str) -> None:
        self._client.delete_object(Bucket=self._bucket(bucket), Key=path)

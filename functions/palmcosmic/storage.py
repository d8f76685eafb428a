"""
Object storage for palm images, blog images, avatars and illustrations.

Everything lives in one bucket; the former per-feature buckets are path
prefixes (see ``shared.constants``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

MISSING_OBJECT_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class StorageClient(Protocol):
    """Object storage used by the API and the worker."""

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        ...

    def public_url(self, path: str) -> str:
        ...

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...

    def presign_put(self, path: str, expires_in: int = 3600) -> str:
        ...

    def get_bytes(self, path: str) -> bytes:
        ...

    def delete(self, path: str) -> None:
        ...

    def delete_prefix(self, prefix: str) -> int:
        ...

    def path_from_url(self, url: str) -> Optional[str]:
        ...


@dataclass
class InMemoryStorageClient:
    """Keeps uploaded objects in memory, keyed by path."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)
    content_types: dict = field(default_factory=dict)

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        self.stored_objects[path] = bytes(data)
        self.content_types[path] = content_type

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"

    def presign_put(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=put&expires={expires_in}"

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored

    def delete(self, path: str) -> None:
        self.stored_objects.pop(path, None)
        self.content_types.pop(path, None)

    def delete_prefix(self, prefix: str) -> int:
        paths = [path for path in self.stored_objects if path.startswith(prefix)]
        for path in paths:
            self.delete(path)
        return len(paths)

    def path_from_url(self, url: str) -> Optional[str]:
        return _strip_base(url, self.public_url(""))


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS S3, Supabase storage, COS, MinIO).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
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
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        if self.endpoint:
            host = self.endpoint.split("://", 1)[-1].rstrip("/")
            return f"https://{self.bucket}.{host}/{path}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{path}"

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=expires_in,
        )

    def presign_put(self, path: str, expires_in: int = 3600) -> str:
        # Uploads from the app are always normalised to JPEG.
        return self._client.generate_presigned_url(
            ClientMethod="put_object",
            Params={
                "Bucket": self.bucket,
                "Key": path,
                "ContentType": "image/jpeg",
            },
            ExpiresIn=expires_in,
        )

    def get_bytes(self, path: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=path)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_OBJECT_CODES:
                raise FileNotFoundError(path) from e
            raise
        return response["Body"].read()

    def delete(self, path: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=path)

    def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            keys = [{"Key": item["Key"]} for item in page.get("Contents", [])]
            if not keys:
                continue
            # list_objects_v2 pages hold at most 1000 keys, the delete_objects limit.
            self._client.delete_objects(
                Bucket=self.bucket, Delete={"Objects": keys, "Quiet": True}
            )
            deleted += len(keys)
        return deleted

    def path_from_url(self, url: str) -> Optional[str]:
        return _strip_base(url, self.public_url(""))


def _strip_base(url: str, base: str) -> Optional[str]:
    """Returns the object path of a public URL, or None for foreign URLs."""
    if not url or not url.startswith(base):
        return None
    path = url[len(base):].split("?", 1)[0]
    return path or None

"""
core/storage.py -- S3-compatible object storage via the minio SDK.

A thin wrapper: bucket bootstrap, upload, presigned download URLs, delete and
list. Works against AWS S3 (endpoint "s3.amazonaws.com") or any S3-compatible
server (MinIO, R2, ...).

Presigned URL lifetime comes from S3_EXPIRES ("1d".."7d"). S3 caps presigned
URLs at seven days, so longer values are rejected at construction time.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from minio import Minio
from minio.error import S3Error

from core.config import Settings
from core.duration import parse_duration

logger = logging.getLogger("authstarter.storage")

_MAX_PRESIGN_SECONDS = 7 * 24 * 60 * 60


@dataclass(frozen=True)
class UploadResult:
    key: str
    signed_url: str


class StorageProvider:
    """Object storage bound to a single bucket."""

    def __init__(
        self,
        bucket: str,
        *,
        endpoint: str = "",
        access_key: str = "",
        secret_key: str = "",
        region: Optional[str] = None,
        secure: bool = True,
        expires: str = "1d",
        client: Optional[Minio] = None,
    ) -> None:
        """Create a provider.

        Args:
            bucket: Bucket every operation targets.
            endpoint: Server host[:port], e.g. "s3.amazonaws.com" or "localhost:9000".
            access_key / secret_key: Credentials.
            region: Optional region, used for bucket creation and signing.
            secure: Use HTTPS.
            expires: Presigned URL lifetime as a duration string.
            client: Pre-built Minio client (tests inject a mock here).
        """
        self.bucket = bucket
        self.expires = expires
        self.expires_in = parse_duration(expires)
        if self.expires_in > _MAX_PRESIGN_SECONDS:
            raise ValueError(f"Presigned URL expiry cannot exceed 7 days: {expires!r}")
        self.client = client or Minio(
            endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
            region=region or None,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageProvider":
        return cls(
            settings.s3_bucket,
            endpoint=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            region=settings.s3_region,
            secure=settings.s3_secure,
            expires=settings.s3_expires,
        )

    def initialize(self) -> None:
        """Ensure the bucket exists, creating it if necessary."""
        if self.client.bucket_exists(self.bucket):
            logger.info("Storage bucket ready: %s", self.bucket)
            return
        self.client.make_bucket(self.bucket)
        logger.info("Storage bucket created: %s", self.bucket)

    def expires_object(self) -> tuple[int, datetime]:
        """Return (seconds, absolute UTC expiry) for a URL signed right now."""
        return self.expires_in, datetime.now(timezone.utc) + timedelta(seconds=self.expires_in)

    def get_presigned_url(self, key: str) -> str:
        return self.client.presigned_get_object(self.bucket, key, expires=timedelta(seconds=self.expires_in))

    def upload_file(
        self,
        local_path: str,
        directory: str,
        filename: Optional[str] = None,
        content_type: str = "application/octet-stream",
    ) -> UploadResult:
        """Upload a local file under directory/filename and return a signed URL for it."""
        name = filename or Path(local_path).name
        key = "/".join(part.strip("/") for part in (directory, name) if part)
        self.client.fput_object(self.bucket, key, local_path, content_type=content_type)
        logger.info("Uploaded %s to %s/%s", local_path, self.bucket, key)
        return UploadResult(key=key, signed_url=self.get_presigned_url(key))

    def delete_file(self, key: str) -> None:
        self.client.remove_object(self.bucket, key)

    def list_objects(self, prefix: str = "") -> list[str]:
        """Return object keys under prefix (recursive)."""
        try:
            return [obj.object_name for obj in self.client.list_objects(self.bucket, prefix=prefix, recursive=True)]
        except S3Error as exc:
            if exc.code == "NoSuchBucket":
                return []
            raise

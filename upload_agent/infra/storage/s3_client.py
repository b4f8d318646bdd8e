"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from io import BytesIO
from typing import TYPE_CHECKING, Any

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config

from upload_agent.infra.storage.client import ObjectAcl, StorageError, StoredObject

if TYPE_CHECKING:
    from upload_agent.common.config import BucketConfig, Settings

# boto3 switches to a multipart upload above this size
MULTIPART_THRESHOLD_BYTES = 8 * 1024 * 1024


class S3StorageClient:
    """S3-compatible object storage client scoped to one bucket's credentials.

    Uses boto3 for all storage operations; uploads go through boto3's
    managed transfer, which splits large buffers into multipart uploads.
    """

    def __init__(
        self,
        *,
        region: str,
        access_key: str,
        secret_key: str,
        endpoint_url: str | None = None,
        addressing_style: str = "auto",
    ) -> None:
        self.region = region
        self._client = self._build_client(
            region=region,
            access_key=access_key,
            secret_key=secret_key,
            endpoint_url=endpoint_url,
            addressing_style=addressing_style,
        )
        self._transfer_config = TransferConfig(
            multipart_threshold=MULTIPART_THRESHOLD_BYTES
        )

    @classmethod
    def from_bucket_config(
        cls,
        config: "BucketConfig",
        settings: "Settings | None" = None,
    ) -> "S3StorageClient":
        """Build a client from a bucket configuration entry."""
        return cls(
            region=config.region,
            access_key=config.access_key,
            secret_key=config.secret_key,
            endpoint_url=settings.S3_ENDPOINT_URL if settings else None,
            addressing_style=settings.S3_ADDRESSING_STYLE if settings else "auto",
        )

    @staticmethod
    def _build_client(
        *,
        region: str,
        access_key: str,
        secret_key: str,
        endpoint_url: str | None,
        addressing_style: str,
    ) -> Any:
        """Create a boto3 S3 client."""
        style = (addressing_style or "auto").strip().lower()
        config = Config(signature_version="s3v4", s3={"addressing_style": style})

        return boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=config,
        )

    def upload_bytes(
        self,
        *,
        bucket: str,
        object_key: str,
        data: bytes,
        content_type: str,
        acl: ObjectAcl,
    ) -> StoredObject:
        """Upload an in-memory buffer with an explicit content type and ACL."""
        try:
            self._client.upload_fileobj(
                BytesIO(data),
                bucket,
                object_key,
                ExtraArgs={"ContentType": content_type, "ACL": str(acl)},
                Config=self._transfer_config,
            )
        except Exception as exc:
            raise StorageError(f"Failed to upload object: {exc}") from exc

        return StoredObject(
            bucket=bucket,
            object_key=object_key,
            content_type=content_type,
            acl=acl,
            size_bytes=len(data),
        )

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if filename:
            # Escape quotes in filename for Content-Disposition header
            safe_filename = filename.replace('"', '\\"')
            params["ResponseContentDisposition"] = (
                f'attachment; filename="{safe_filename}"'
            )

        try:
            url = self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise StorageError(f"Failed to generate download URL: {exc}") from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        return str(url)

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise StorageError(f"Failed to delete object: {exc}") from exc

"""Object operations keyed by bucket name.

This module provides the service layer between the upload agent and the
storage clients: key generation, folder validation, visibility resolution,
presigned download URLs and deletes.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass

from upload_agent.common.config import DEFAULT_PRESIGN_EXPIRES_SECONDS
from upload_agent.common.errors import (
    BucketNotConfiguredError,
    InvalidContentTypeError,
    InvalidFolderError,
    ValidationError,
)
from upload_agent.infra.observability.metrics import OBJECT_OPERATIONS, UPLOADED_BYTES
from upload_agent.infra.storage.client import ObjectAcl
from upload_agent.infra.storage.registry import ClientRegistry, RegisteredBucket

logger = logging.getLogger(__name__)

# "/segment(/segment)*", no empty segments, no trailing slash, no NUL bytes
FOLDER_PATTERN = re.compile(r"^/[^/\x00]+(?:/[^/\x00]+)*$")


@dataclass(frozen=True, slots=True)
class UploadRequest:
    """Input data for uploading one buffer."""

    data: bytes
    bucket_name: str
    content_type: str
    folder: str | None = None
    private: bool | None = None


@dataclass(frozen=True, slots=True)
class PresignRequest:
    """Input data for building a presigned download URL."""

    key: str
    bucket_name: str
    expires_in: int = DEFAULT_PRESIGN_EXPIRES_SECONDS
    filename: str | None = None


def validate_folder(folder: str | None) -> str | None:
    """Return the folder to use, or None when no folder was given."""
    if not folder:
        return None
    if not FOLDER_PATTERN.match(folder):
        raise InvalidFolderError(
            "Invalid folder path. It must start with '/', must not end with '/' "
            "and must not contain empty segments or invalid characters."
        )
    return folder


def build_object_key(folder: str | None) -> str:
    object_id = str(uuid.uuid4())
    return f"{folder}/{object_id}" if folder else object_id


class ObjectService:
    """Upload, presign and delete objects through the registered clients."""

    def __init__(self, registry: ClientRegistry) -> None:
        self._registry = registry

    def _lookup(self, bucket_name: str) -> RegisteredBucket:
        try:
            return self._registry.get(bucket_name)
        except BucketNotConfiguredError:
            logger.warning(
                "storage client not found bucket=%s",
                bucket_name,
                extra={"extra": {"bucket": bucket_name}},
            )
            raise

    def check_target(self, bucket_name: str, folder: str | None) -> None:
        """Fail early when the bucket or folder would be rejected by upload()."""
        self._lookup(bucket_name)
        validate_folder(folder)

    async def upload(self, req: UploadRequest) -> str:
        """Upload a buffer under a fresh random key and return the key."""
        entry = self._lookup(req.bucket_name)
        folder = validate_folder(req.folder)
        if not req.content_type:
            raise InvalidContentTypeError("Invalid content type")

        private = req.private
        if private is None:
            private = entry.config.default_private
        acl = ObjectAcl.for_visibility(private)
        key = build_object_key(folder)

        try:
            await asyncio.to_thread(
                entry.client.upload_bytes,
                bucket=req.bucket_name,
                object_key=key,
                data=req.data,
                content_type=req.content_type,
                acl=acl,
            )
        except Exception:
            OBJECT_OPERATIONS.labels("upload", req.bucket_name, "error").inc()
            logger.error(
                "object upload failed bucket=%s key=%s",
                req.bucket_name,
                key,
                exc_info=True,
            )
            raise

        OBJECT_OPERATIONS.labels("upload", req.bucket_name, "ok").inc()
        UPLOADED_BYTES.labels(req.bucket_name).inc(len(req.data))
        logger.info(
            "object uploaded bucket=%s key=%s acl=%s size=%s",
            req.bucket_name,
            key,
            acl,
            len(req.data),
            extra={
                "extra": {
                    "bucket": req.bucket_name,
                    "key": key,
                    "acl": str(acl),
                    "content_type": req.content_type,
                    "size_bytes": len(req.data),
                }
            },
        )
        return key

    async def presign(self, req: PresignRequest) -> str:
        """Return a time-limited GET URL for an object."""
        if req.expires_in <= 0:
            raise ValidationError("expires_in must be positive")
        entry = self._lookup(req.bucket_name)
        try:
            url = await asyncio.to_thread(
                entry.client.presign_download,
                bucket=req.bucket_name,
                object_key=req.key,
                expires_in=req.expires_in,
                filename=req.filename,
            )
        except Exception:
            OBJECT_OPERATIONS.labels("presign", req.bucket_name, "error").inc()
            logger.error(
                "presign failed bucket=%s key=%s",
                req.bucket_name,
                req.key,
                exc_info=True,
            )
            raise
        OBJECT_OPERATIONS.labels("presign", req.bucket_name, "ok").inc()
        return url

    async def delete(self, key: str, bucket_name: str) -> bool:
        entry = self._lookup(bucket_name)
        try:
            await asyncio.to_thread(
                entry.client.delete_object, bucket=bucket_name, object_key=key
            )
        except Exception:
            OBJECT_OPERATIONS.labels("delete", bucket_name, "error").inc()
            logger.error(
                "object delete failed bucket=%s key=%s",
                bucket_name,
                key,
                exc_info=True,
            )
            raise
        OBJECT_OPERATIONS.labels("delete", bucket_name, "ok").inc()
        logger.info("object deleted bucket=%s key=%s", bucket_name, key)
        return True

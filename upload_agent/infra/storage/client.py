"""Storage client protocol and data types.

This module defines the interface the object operations expect from a
storage backend: a single managed upload, presigned downloads and deletes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from upload_agent.common.errors import StorageError

__all__ = ["ObjectAcl", "StoredObject", "StorageClient", "StorageError"]


class ObjectAcl(StrEnum):
    """Canned ACL applied to an uploaded object."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"

    @classmethod
    def for_visibility(cls, private: bool) -> "ObjectAcl":
        return cls.PRIVATE if private else cls.PUBLIC_READ


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Result of a completed upload."""

    bucket: str
    object_key: str
    content_type: str
    acl: ObjectAcl
    size_bytes: int


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    One client is scoped to one bucket's region and credentials.
    """

    def upload_bytes(
        self,
        *,
        bucket: str,
        object_key: str,
        data: bytes,
        content_type: str,
        acl: ObjectAcl,
    ) -> StoredObject:
        """Upload an in-memory buffer.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            data: Object content.
            content_type: MIME type stored with the object.
            acl: Canned ACL for the object.

        Returns:
            StoredObject describing what was written.

        Raises:
            StorageError: If the upload fails.
        """
        ...

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            expires_in: URL expiration time in seconds.
            filename: Optional filename for Content-Disposition header.

        Returns:
            Presigned URL for GET request.

        Raises:
            StorageError: If URL generation fails.
        """
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage.

        Raises:
            StorageError: If the operation fails.
        """
        ...

"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
a boto3 implementation for S3-compatible services, and the per-bucket client
registry used by the object operations.
"""

from .client import ObjectAcl, StorageClient, StorageError, StoredObject
from .registry import ClientFactory, ClientRegistry, RegisteredBucket
from .s3_client import S3StorageClient

__all__ = [
    "ClientFactory",
    "ClientRegistry",
    "ObjectAcl",
    "RegisteredBucket",
    "S3StorageClient",
    "StorageClient",
    "StorageError",
    "StoredObject",
]

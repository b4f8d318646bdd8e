"""Upload agent façade.

The agent owns the client registry built from its bucket configurations and
ties together content sniffing, optional image recompression and the object
operations. Call ``create()`` once before handling traffic.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from fastapi import Request

from upload_agent.common.config import (
    DEFAULT_PRESIGN_EXPIRES_SECONDS,
    BucketConfig,
    Settings,
)
from upload_agent.common.errors import InvalidFileTypeError, MissingFileError
from upload_agent.common.tasks import gather_fail_fast
from upload_agent.domain.uploads import (
    MultiUpload,
    ReceivedFile,
    ReceivedFiles,
    SingleUpload,
)
from upload_agent.infra.imaging.optimizer import ImageOptimizer
from upload_agent.infra.imaging.sniffing import is_image_mime, sniff_mime
from upload_agent.infra.storage.registry import ClientFactory, ClientRegistry
from upload_agent.infra.storage.s3_client import S3StorageClient
from upload_agent.services.object_service import (
    ObjectService,
    PresignRequest,
    UploadRequest,
)

logger = logging.getLogger(__name__)


class UploadAgent:
    """Single entry point for uploading, signing and deleting objects."""

    def __init__(
        self,
        configs: Iterable[BucketConfig],
        *,
        registry: ClientRegistry | None = None,
        client_factory: ClientFactory | None = None,
        optimizer: ImageOptimizer | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self._configs = tuple(configs)
        if registry is None:
            registry = ClientRegistry(client_factory)
        self._registry = registry
        self._objects = ObjectService(self._registry)
        self._optimizer = optimizer or ImageOptimizer()
        self._max_concurrency = max_concurrency
        self._ready = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadAgent":
        return cls(
            settings.UPLOAD_BUCKETS,
            client_factory=lambda config: S3StorageClient.from_bucket_config(
                config, settings
            ),
            optimizer=ImageOptimizer(
                max_width=settings.IMAGE_MAX_DIMENSION,
                max_height=settings.IMAGE_MAX_DIMENSION,
                quality=settings.IMAGE_QUALITY,
            ),
            max_concurrency=settings.UPLOAD_MAX_CONCURRENCY,
        )

    @property
    def configs(self) -> tuple[BucketConfig, ...]:
        return self._configs

    @property
    def registry(self) -> ClientRegistry:
        return self._registry

    @property
    def is_ready(self) -> bool:
        return self._ready

    def create(self) -> "UploadAgent":
        """Register a storage client for every configured bucket."""
        registered = self._registry.register(self._configs)
        self._ready = True
        logger.info(
            "upload agent ready buckets=%s",
            ",".join(registered),
            extra={"extra": {"buckets": registered}},
        )
        return self

    async def upload_from_request(
        self,
        source: Request | ReceivedFiles,
        *,
        bucket_name: str,
        folder: str | None = None,
        private: bool | None = None,
        optimize: bool = False,
    ) -> str | list[str]:
        """Upload the file(s) parsed by the upload dependency.

        A single upload returns one key; a batch returns the keys in input
        order. Any failure inside a batch fails the whole call.
        """
        received = self._received_files(source)
        if isinstance(received, SingleUpload):
            return await self._upload_received(
                received.file,
                bucket_name=bucket_name,
                folder=folder,
                private=private,
                optimize=optimize,
            )
        return await gather_fail_fast(
            [
                self._upload_received(
                    file,
                    bucket_name=bucket_name,
                    folder=folder,
                    private=private,
                    optimize=optimize,
                )
                for file in received.files
            ],
            limit=self._max_concurrency,
        )

    async def upload_buffer(
        self,
        data: bytes,
        *,
        bucket_name: str,
        folder: str | None = None,
        private: bool | None = None,
        optimize: bool = False,
    ) -> str:
        """Upload raw bytes, trusting only their magic bytes for the type."""
        content_type = sniff_mime(data)
        if content_type is None:
            raise InvalidFileTypeError()
        return await self.upload_file(
            data,
            content_type=content_type,
            bucket_name=bucket_name,
            folder=folder,
            private=private,
            optimize=optimize,
        )

    async def upload_file(
        self,
        data: bytes,
        *,
        content_type: str,
        bucket_name: str,
        folder: str | None = None,
        private: bool | None = None,
        optimize: bool = False,
    ) -> str:
        self._objects.check_target(bucket_name, folder)
        if optimize and is_image_mime(content_type):
            optimized = await self._optimizer.compress(data)
            data, content_type = optimized.data, optimized.content_type
        return await self._objects.upload(
            UploadRequest(
                data=data,
                bucket_name=bucket_name,
                content_type=content_type,
                folder=folder,
                private=private,
            )
        )

    async def presign(
        self,
        key: str,
        *,
        bucket_name: str,
        expires_in: int = DEFAULT_PRESIGN_EXPIRES_SECONDS,
        filename: str | None = None,
    ) -> str:
        return await self._objects.presign(
            PresignRequest(
                key=key,
                bucket_name=bucket_name,
                expires_in=expires_in,
                filename=filename,
            )
        )

    async def delete_object(self, key: str, *, bucket_name: str) -> bool:
        return await self._objects.delete(key, bucket_name)

    async def _upload_received(
        self,
        file: ReceivedFile,
        *,
        bucket_name: str,
        folder: str | None,
        private: bool | None,
        optimize: bool,
    ) -> str:
        return await self.upload_file(
            file.data,
            content_type=file.content_type,
            bucket_name=bucket_name,
            folder=folder,
            private=private,
            optimize=optimize,
        )

    @staticmethod
    def _received_files(source: Request | ReceivedFiles) -> ReceivedFiles:
        if isinstance(source, (SingleUpload, MultiUpload)):
            return source
        received = getattr(source.state, "upload", None)
        if received is None:
            raise MissingFileError(
                "Request carries no parsed upload; attach the upload dependency"
            )
        return received


def create_upload_agent(configs: Iterable[BucketConfig], **kwargs) -> UploadAgent:
    """Build an unconfigured agent; call ``create()`` on the result."""
    return UploadAgent(configs, **kwargs)

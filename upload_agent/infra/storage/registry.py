"""Per-bucket storage client registry."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from upload_agent.common.config import BucketConfig
from upload_agent.common.errors import BucketNotConfiguredError
from upload_agent.infra.storage.client import StorageClient
from upload_agent.infra.storage.s3_client import S3StorageClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[BucketConfig], StorageClient]


@dataclass(frozen=True, slots=True)
class RegisteredBucket:
    config: BucketConfig
    client: StorageClient


class ClientRegistry:
    """Holds one configured storage client per bucket name.

    Entries are only added or overwritten, never removed. The registry is
    meant to be populated once before request traffic starts.
    """

    def __init__(self, factory: ClientFactory | None = None) -> None:
        self._factory = factory or S3StorageClient.from_bucket_config
        self._buckets: dict[str, RegisteredBucket] = {}

    def register(
        self,
        configs: Iterable[BucketConfig],
        *,
        factory: ClientFactory | None = None,
    ) -> list[str]:
        """Build and store a client for every config.

        A failure for one bucket is logged and does not stop the others.
        Returns the names registered by this call.
        """
        build = factory or self._factory
        registered: list[str] = []
        for config in configs:
            logger.info(
                "registering storage client bucket=%s region=%s",
                config.bucket_name,
                config.region,
            )
            try:
                client = build(config)
            except Exception:
                logger.exception(
                    "storage client construction failed bucket=%s",
                    config.bucket_name,
                    extra={"extra": {"bucket": config.bucket_name}},
                )
                continue
            self._buckets[config.bucket_name] = RegisteredBucket(config, client)
            registered.append(config.bucket_name)
        return registered

    def get(self, bucket_name: str) -> RegisteredBucket:
        try:
            return self._buckets[bucket_name]
        except KeyError:
            raise BucketNotConfiguredError(bucket_name) from None

    def names(self) -> list[str]:
        return list(self._buckets)

    def __contains__(self, bucket_name: object) -> bool:
        return bucket_name in self._buckets

    def __len__(self) -> int:
        return len(self._buckets)

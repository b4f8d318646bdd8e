from __future__ import annotations

import pytest

from upload_agent.common.config import BucketConfig, get_settings
from upload_agent.infra.storage.registry import ClientRegistry
from upload_agent.services.agent import UploadAgent
from tests.services.mock_storage import MockStorageClient

PRIVATE_BUCKET = "private-bucket"
PUBLIC_BUCKET = "public-bucket"


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    monkeypatch.delenv("UPLOAD_BUCKETS", raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def bucket_configs() -> list[BucketConfig]:
    return [
        BucketConfig(
            bucket_name=PRIVATE_BUCKET,
            region="us-east-1",
            access_key="private-key",
            secret_key="private-secret",
            default_private=True,
        ),
        BucketConfig(
            bucket_name=PUBLIC_BUCKET,
            region="eu-west-1",
            access_key="public-key",
            secret_key="public-secret",
            default_private=False,
        ),
    ]


@pytest.fixture()
def mock_storage() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture()
def registry(mock_storage) -> ClientRegistry:
    return ClientRegistry(lambda config: mock_storage)


@pytest.fixture()
def agent(bucket_configs, registry) -> UploadAgent:
    return UploadAgent(bucket_configs, registry=registry).create()

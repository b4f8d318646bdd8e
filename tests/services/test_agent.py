"""Tests for the UploadAgent façade."""

from __future__ import annotations

import asyncio
import io
import time
from types import SimpleNamespace

import pytest
from PIL import Image

from upload_agent.common.config import BucketConfig, Settings
from upload_agent.common.errors import (
    BucketNotConfiguredError,
    ImageProcessingError,
    InvalidFileTypeError,
    InvalidFolderError,
    MissingFileError,
    StorageError,
)
from upload_agent.domain.uploads import MultiUpload, ReceivedFile, SingleUpload
from upload_agent.infra.storage.client import ObjectAcl
from upload_agent.infra.storage.registry import ClientRegistry
from upload_agent.services.agent import UploadAgent, create_upload_agent
from tests.images import make_image_bytes
from tests.services.mock_storage import MockStorageClient


def _file(data: bytes, content_type: str, name: str = "file") -> ReceivedFile:
    return ReceivedFile(
        field_name=name, filename=f"{name}.bin", content_type=content_type, data=data
    )


class TestLifecycle:
    def test_agent_starts_unconfigured(self, bucket_configs, registry):
        agent = create_upload_agent(bucket_configs, registry=registry)

        assert isinstance(agent, UploadAgent)
        assert agent.is_ready is False
        assert len(agent.registry) == 0

    def test_create_registers_buckets_and_chains(self, bucket_configs, registry):
        agent = UploadAgent(bucket_configs, registry=registry)

        assert agent.create() is agent
        assert agent.is_ready is True
        assert sorted(agent.registry.names()) == ["private-bucket", "public-bucket"]

    def test_create_is_idempotent(self, bucket_configs, registry):
        agent = UploadAgent(bucket_configs, registry=registry)

        agent.create().create()

        assert sorted(agent.registry.names()) == ["private-bucket", "public-bucket"]

    @pytest.mark.asyncio
    async def test_operations_before_create_hit_missing_bucket(
        self, bucket_configs, registry, mock_storage
    ):
        agent = UploadAgent(bucket_configs, registry=registry)

        with pytest.raises(BucketNotConfiguredError):
            await agent.upload_file(
                b"x", content_type="text/plain", bucket_name="private-bucket"
            )
        assert mock_storage.calls == []

    def test_from_settings_wires_optimizer_and_buckets(self, bucket_configs):
        settings = Settings(
            UPLOAD_BUCKETS=bucket_configs,
            IMAGE_MAX_DIMENSION=512,
            IMAGE_QUALITY=60,
            UPLOAD_MAX_CONCURRENCY=2,
        )

        agent = UploadAgent.from_settings(settings)

        assert agent.configs == tuple(bucket_configs)
        assert agent._optimizer.max_width == 512
        assert agent._optimizer.quality == 60
        assert agent._max_concurrency == 2


class TestUploadBuffer:
    @pytest.mark.asyncio
    async def test_sniffs_content_type(self, agent, mock_storage):
        png = make_image_bytes((10, 10))

        key = await agent.upload_buffer(png, bucket_name="private-bucket")

        stored = mock_storage.stored("private-bucket", key)
        assert stored["content_type"] == "image/png"
        assert stored["data"] == png

    @pytest.mark.asyncio
    async def test_unrecognized_content_fails_without_upload(
        self, agent, mock_storage
    ):
        with pytest.raises(InvalidFileTypeError, match="Invalid file type"):
            await agent.upload_buffer(b"just text", bucket_name="private-bucket")

        assert mock_storage.upload_calls == 0

    @pytest.mark.asyncio
    async def test_optimize_transcodes_images(self, agent, mock_storage):
        png = make_image_bytes((2400, 1200))

        key = await agent.upload_buffer(
            png, bucket_name="private-bucket", optimize=True
        )

        stored = mock_storage.stored("private-bucket", key)
        assert stored["content_type"] == "image/webp"
        assert stored["data"] != png
        with Image.open(io.BytesIO(stored["data"])) as image:
            assert image.size == (2000, 1000)

    @pytest.mark.asyncio
    async def test_optimize_skips_non_images(self, agent, mock_storage):
        pdf = b"%PDF-1.4\n" + b"0" * 64

        key = await agent.upload_buffer(
            pdf, bucket_name="private-bucket", optimize=True
        )

        stored = mock_storage.stored("private-bucket", key)
        assert stored["content_type"] == "application/pdf"
        assert stored["data"] == pdf

    @pytest.mark.asyncio
    async def test_visibility_and_folder_pass_through(self, agent, mock_storage):
        png = make_image_bytes((4, 4))

        key = await agent.upload_buffer(
            png, bucket_name="public-bucket", folder="/avatars", private=True
        )

        assert key.startswith("/avatars/")
        assert mock_storage.stored("public-bucket", key)["acl"] == ObjectAcl.PRIVATE


class TestUploadFromRequest:
    @pytest.mark.asyncio
    async def test_single_upload_returns_one_key(self, agent, mock_storage):
        received = SingleUpload(_file(b"hello", "text/plain"))

        key = await agent.upload_from_request(received, bucket_name="public-bucket")

        assert isinstance(key, str)
        stored = mock_storage.stored("public-bucket", key)
        assert stored["data"] == b"hello"
        assert stored["acl"] == ObjectAcl.PUBLIC_READ

    @pytest.mark.asyncio
    async def test_reads_parsed_upload_from_request_state(self, agent, mock_storage):
        request = SimpleNamespace(
            state=SimpleNamespace(upload=SingleUpload(_file(b"abc", "text/csv")))
        )

        key = await agent.upload_from_request(request, bucket_name="private-bucket")

        assert mock_storage.stored("private-bucket", key)["content_type"] == "text/csv"

    @pytest.mark.asyncio
    async def test_request_without_parsed_upload(self, agent):
        request = SimpleNamespace(state=SimpleNamespace())

        with pytest.raises(MissingFileError):
            await agent.upload_from_request(request, bucket_name="private-bucket")

    @pytest.mark.asyncio
    async def test_batch_preserves_input_order(self, agent, mock_storage):
        payloads = [f"file-{i}".encode() for i in range(5)]
        received = MultiUpload(
            tuple(_file(p, "text/plain", name="files") for p in payloads)
        )

        keys = await agent.upload_from_request(
            received, bucket_name="private-bucket", folder="/batch"
        )

        assert len(keys) == 5
        assert len(set(keys)) == 5
        assert [mock_storage.stored("private-bucket", k)["data"] for k in keys] == (
            payloads
        )

    @pytest.mark.asyncio
    async def test_batch_fails_as_a_whole(self, agent, mock_storage):
        mock_storage.failing_payloads.add(b"bad")
        received = MultiUpload(
            (
                _file(b"good-1", "text/plain"),
                _file(b"bad", "text/plain"),
                _file(b"good-2", "text/plain"),
            )
        )

        with pytest.raises(StorageError, match="injected failure"):
            await agent.upload_from_request(received, bucket_name="private-bucket")

    @pytest.mark.asyncio
    async def test_batch_optimizes_only_images(self, agent, mock_storage):
        jpeg = make_image_bytes((30, 30), fmt="JPEG")
        received = MultiUpload(
            (_file(jpeg, "image/jpeg"), _file(b"notes", "text/plain"))
        )

        image_key, text_key = await agent.upload_from_request(
            received, bucket_name="private-bucket", optimize=True
        )

        assert mock_storage.stored("private-bucket", image_key)["content_type"] == (
            "image/webp"
        )
        text = mock_storage.stored("private-bucket", text_key)
        assert text["content_type"] == "text/plain"
        assert text["data"] == b"notes"

    @pytest.mark.asyncio
    async def test_optimize_false_keeps_original_bytes(self, agent, mock_storage):
        jpeg = make_image_bytes((30, 30), fmt="JPEG")

        key = await agent.upload_from_request(
            SingleUpload(_file(jpeg, "image/jpeg")), bucket_name="private-bucket"
        )

        stored = mock_storage.stored("private-bucket", key)
        assert stored["data"] == jpeg
        assert stored["content_type"] == "image/jpeg"

    @pytest.mark.asyncio
    async def test_corrupt_image_with_optimize_fails(self, agent, mock_storage):
        with pytest.raises(ImageProcessingError):
            await agent.upload_from_request(
                SingleUpload(_file(b"not really a png", "image/png")),
                bucket_name="private-bucket",
                optimize=True,
            )

        assert mock_storage.upload_calls == 0

    @pytest.mark.asyncio
    async def test_invalid_folder_fails_before_optimizing(self, agent, mock_storage):
        with pytest.raises(InvalidFolderError):
            await agent.upload_from_request(
                SingleUpload(_file(b"not really a png", "image/png")),
                bucket_name="private-bucket",
                folder="no-leading-slash",
                optimize=True,
            )

        assert mock_storage.calls == []

    @pytest.mark.asyncio
    async def test_concurrency_limit_bounds_in_flight_uploads(self, bucket_configs):
        in_flight = 0
        peak = 0

        class SlowStorage(MockStorageClient):
            def upload_bytes(self, **kwargs):
                nonlocal in_flight, peak
                with self._lock:
                    in_flight += 1
                    peak = max(peak, in_flight)
                try:
                    time.sleep(0.05)
                    return super().upload_bytes(**kwargs)
                finally:
                    with self._lock:
                        in_flight -= 1

        storage = SlowStorage()
        agent = UploadAgent(
            bucket_configs,
            registry=ClientRegistry(lambda config: storage),
            max_concurrency=2,
        ).create()
        received = MultiUpload(
            tuple(_file(f"{i}".encode(), "text/plain") for i in range(6))
        )

        keys = await agent.upload_from_request(received, bucket_name="private-bucket")

        assert len(keys) == 6
        assert peak <= 2


class TestPresignAndDelete:
    @pytest.mark.asyncio
    async def test_upload_then_presign(self, agent):
        key = await agent.upload_file(
            b"data", content_type="text/plain", bucket_name="private-bucket"
        )

        url = await agent.presign(key, bucket_name="private-bucket")

        assert url.startswith(f"https://mock-s3/private-bucket/{key}")

    @pytest.mark.asyncio
    async def test_presign_unregistered_bucket(self, agent):
        with pytest.raises(BucketNotConfiguredError):
            await agent.presign("k", bucket_name="elsewhere")

    @pytest.mark.asyncio
    async def test_delete(self, agent, mock_storage):
        key = await agent.upload_file(
            b"data", content_type="text/plain", bucket_name="private-bucket"
        )

        assert await agent.delete_object(key, bucket_name="private-bucket") is True
        assert mock_storage.objects == {}


@pytest.mark.asyncio
async def test_separate_agents_do_not_share_clients():
    first_storage, second_storage = MockStorageClient(), MockStorageClient()
    config = BucketConfig(
        bucket_name="shared-name", region="r", access_key="a", secret_key="s"
    )
    first = UploadAgent(
        [config], registry=ClientRegistry(lambda c: first_storage)
    ).create()
    second = UploadAgent(
        [config], registry=ClientRegistry(lambda c: second_storage)
    ).create()

    await asyncio.gather(
        first.upload_file(b"1", content_type="text/plain", bucket_name="shared-name"),
        second.upload_file(b"2", content_type="text/plain", bucket_name="shared-name"),
    )

    assert first_storage.upload_calls == 1
    assert second_storage.upload_calls == 1

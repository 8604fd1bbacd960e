"""
Unit tests for LifecycleManager.
"""

import pytest
from unittest.mock import AsyncMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_media.app.cache.status_cache import MemoryStatusCache, NullStatusCache, status_key
from service_media.app.media.lifecycle import LifecycleManager
from service_media.app.media.models import MediaStatus
from service_media.app.persistence.records import InMemoryRecordStore
from shared.errors import DependencyError, NotFoundError, ValidationError
from shared.metrics import MetricsCollector


OWNER = "user-1"


class CountingRecordStore(InMemoryRecordStore):
    """In-memory store that counts single-record reads."""

    def __init__(self):
        super().__init__()
        self.reads = 0

    async def get(self, owner_id, record_id):
        self.reads += 1
        return await super().get(owner_id, record_id)


class SequenceClock:
    """Returns increasing timestamps so ordering is deterministic."""

    def __init__(self):
        self.ticks = 0

    def __call__(self) -> str:
        self.ticks += 1
        return f"2024-01-01T00:00:{self.ticks:02d}.000Z"


@pytest.fixture
def store():
    return CountingRecordStore()


@pytest.fixture
def cache():
    return MemoryStatusCache()


@pytest.fixture
def metrics():
    return MetricsCollector("media-test")


@pytest.fixture
def manager(store, cache, metrics):
    return LifecycleManager(store, cache, metrics=metrics, clock=SequenceClock())


class TestCreate:
    """Test cases for record creation."""

    @pytest.mark.asyncio
    async def test_create(self, manager, store, cache):
        record_id, object_key = await manager.create(OWNER, "clip.mp4", "video/mp4")

        assert object_key == f"{OWNER}/{record_id}/clip.mp4"
        record = await store.get(OWNER, record_id)
        assert record.status == MediaStatus.UPLOADING
        assert record.original_name == "clip.mp4"
        assert record.content_type == "video/mp4"
        assert record.size_bytes is None
        assert record.created_at == record.updated_at
        # Creation never touches the cache
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_default_content_type(self, manager, store):
        record_id, _ = await manager.create(OWNER, "clip.bin")
        record = await store.get(OWNER, record_id)
        assert record.content_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, manager):
        first, _ = await manager.create(OWNER, "a.mp4")
        second, _ = await manager.create(OWNER, "a.mp4")
        assert first != second

    @pytest.mark.asyncio
    async def test_injected_id_factory(self, store, cache):
        manager = LifecycleManager(store, cache, id_factory=lambda: "fixed-id")
        record_id, object_key = await manager.create(OWNER, "a.mp4")
        assert record_id == "fixed-id"
        assert object_key == f"{OWNER}/fixed-id/a.mp4"


class TestFinalize:
    """Test cases for finalize."""

    @pytest.mark.asyncio
    async def test_finalize_writes_through(self, manager, store, cache):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        await manager.finalize(OWNER, record_id, size_bytes=1024, duration_sec=12.5)

        record = await store.get(OWNER, record_id)
        assert record.status == MediaStatus.READY
        assert record.size_bytes == 1024
        assert record.duration_sec == 12.5
        assert record.updated_at > record.created_at

        cached = await cache.get(status_key(OWNER, record_id))
        assert cached == {"status": "READY", "updatedAt": record.updated_at}

    @pytest.mark.asyncio
    async def test_status_after_finalize_needs_no_read(self, manager, store):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        await manager.finalize(OWNER, record_id, size_bytes=10)
        reads = store.reads

        status = await manager.get_status(OWNER, record_id)
        assert status["status"] == "READY"
        assert store.reads == reads

    @pytest.mark.asyncio
    async def test_finalize_unknown_record_upserts(self, manager, store):
        await manager.finalize(OWNER, "never-created", size_bytes=1)
        record = await store.get(OWNER, "never-created")
        assert record.status == MediaStatus.READY

    @pytest.mark.asyncio
    async def test_finalize_twice(self, manager, store):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        await manager.finalize(OWNER, record_id, size_bytes=1)
        await manager.finalize(OWNER, record_id, size_bytes=2)
        assert (await store.get(OWNER, record_id)).size_bytes == 2

    @pytest.mark.asyncio
    async def test_finalize_rejected_while_transcoding(self, manager, store, cache):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        await manager.request_transcode(OWNER, record_id, "720p")

        with pytest.raises(ValidationError):
            await manager.finalize(OWNER, record_id)

        assert (await store.get(OWNER, record_id)).status == "TRANSCODING:720p"
        assert (await cache.get(status_key(OWNER, record_id)))["status"] == "TRANSCODING:720p"

    @pytest.mark.asyncio
    async def test_finalize_rejected_after_failure(self, manager, store):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        await manager.request_transcode(OWNER, record_id, "720p")
        await manager.fail_transcode(OWNER, record_id)

        with pytest.raises(ValidationError):
            await manager.finalize(OWNER, record_id)
        assert (await store.get(OWNER, record_id)).status == MediaStatus.FAILED


class TestDownloadKey:
    """Test cases for resolving a record's object key."""

    @pytest.mark.asyncio
    async def test_download_key(self, manager):
        record_id, object_key = await manager.create(OWNER, "clip.mp4")
        assert await manager.download_key(OWNER, record_id) == object_key

    @pytest.mark.asyncio
    async def test_unknown_record(self, manager):
        with pytest.raises(NotFoundError):
            await manager.download_key(OWNER, "missing")

    @pytest.mark.asyncio
    async def test_record_without_object(self, manager):
        await manager.finalize(OWNER, "ghost")
        with pytest.raises(NotFoundError):
            await manager.download_key(OWNER, "ghost")


class TestTranscode:
    """Test cases for the transcode transitions."""

    @pytest.mark.asyncio
    async def test_request_transcode(self, manager, store, cache):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        await manager.finalize(OWNER, record_id)

        record = await manager.request_transcode(OWNER, record_id, "1080p")

        assert record.status == "TRANSCODING:1080p"
        assert (await store.get(OWNER, record_id)).status == "TRANSCODING:1080p"
        assert (await cache.get(status_key(OWNER, record_id)))["status"] == "TRANSCODING:1080p"

    @pytest.mark.asyncio
    async def test_request_transcode_from_uploading(self, manager):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        record = await manager.request_transcode(OWNER, record_id, "720p")
        assert record.status == "TRANSCODING:720p"

    @pytest.mark.asyncio
    async def test_request_transcode_unknown_record(self, manager, cache):
        with pytest.raises(NotFoundError):
            await manager.request_transcode(OWNER, "missing", "720p")
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_request_transcode_twice(self, manager):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        await manager.request_transcode(OWNER, record_id, "720p")

        with pytest.raises(ValidationError):
            await manager.request_transcode(OWNER, record_id, "1080p")

    @pytest.mark.asyncio
    async def test_complete_transcode(self, manager, store, cache):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        await manager.request_transcode(OWNER, record_id, "720p")

        record = await manager.complete_transcode(OWNER, record_id)

        assert record.status == MediaStatus.READY
        assert (await store.get(OWNER, record_id)).status == MediaStatus.READY
        assert (await cache.get(status_key(OWNER, record_id)))["status"] == MediaStatus.READY

    @pytest.mark.asyncio
    async def test_fail_then_retry(self, manager, store):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        await manager.request_transcode(OWNER, record_id, "720p")

        failed = await manager.fail_transcode(OWNER, record_id, "codec not supported")
        assert failed.status == MediaStatus.FAILED
        assert (await store.get(OWNER, record_id)).error == "codec not supported"

        retried = await manager.request_transcode(OWNER, record_id, "480p")
        assert retried.status == "TRANSCODING:480p"
        assert (await store.get(OWNER, record_id)).error is None

    @pytest.mark.asyncio
    async def test_finish_requires_transcoding(self, manager):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        await manager.finalize(OWNER, record_id)

        with pytest.raises(ValidationError):
            await manager.complete_transcode(OWNER, record_id)
        with pytest.raises(ValidationError):
            await manager.fail_transcode(OWNER, record_id)

    @pytest.mark.asyncio
    async def test_finish_unknown_record(self, manager):
        with pytest.raises(NotFoundError):
            await manager.complete_transcode(OWNER, "missing")


class TestGetStatus:
    """Test cases for cache-aside status reads."""

    @pytest.mark.asyncio
    async def test_second_read_is_served_from_cache(self, manager, store, metrics):
        record_id, _ = await manager.create(OWNER, "clip.mp4")

        first = await manager.get_status(OWNER, record_id)
        assert store.reads == 1
        second = await manager.get_status(OWNER, record_id)
        assert store.reads == 1

        assert first == second
        assert first["status"] == MediaStatus.UPLOADING
        assert metrics.get_counter_value("status_cache_requests_total", result="miss") == 1
        assert metrics.get_counter_value("status_cache_requests_total", result="hit") == 1

    @pytest.mark.asyncio
    async def test_unknown_record(self, manager, cache):
        with pytest.raises(NotFoundError):
            await manager.get_status(OWNER, "missing")
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_without_cache_every_read_hits_store(self, store):
        manager = LifecycleManager(store, NullStatusCache())
        record_id, _ = await manager.create(OWNER, "clip.mp4")

        await manager.get_status(OWNER, record_id)
        await manager.get_status(OWNER, record_id)
        assert store.reads == 2

    @pytest.mark.asyncio
    async def test_owners_are_isolated(self, manager):
        record_id, _ = await manager.create(OWNER, "clip.mp4")
        with pytest.raises(NotFoundError):
            await manager.get_status("someone-else", record_id)

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, cache):
        store = InMemoryRecordStore()
        store.get = AsyncMock(side_effect=DependencyError("dynamodb", "Request timed out"))
        manager = LifecycleManager(store, cache)

        with pytest.raises(DependencyError):
            await manager.get_status(OWNER, "any")

    @pytest.mark.asyncio
    async def test_ttl_is_passed_to_cache(self, store):
        cache = AsyncMock()
        cache.get.return_value = None
        manager = LifecycleManager(store, cache, status_ttl=45)
        record_id, _ = await manager.create(OWNER, "clip.mp4")

        await manager.get_status(OWNER, record_id)
        key, value, ttl = cache.set.call_args.args
        assert key == status_key(OWNER, record_id)
        assert value["status"] == MediaStatus.UPLOADING
        assert ttl == 45


class TestListRecords:
    """Test cases for listing."""

    @pytest.mark.asyncio
    async def test_newest_first(self, manager):
        first, _ = await manager.create(OWNER, "a.mp4")
        second, _ = await manager.create(OWNER, "b.mp4")
        await manager.create("other-user", "c.mp4")

        records = await manager.list_records(OWNER)
        assert [record.record_id for record in records] == [second, first]

    @pytest.mark.asyncio
    async def test_scenario(self, manager, store):
        """Create, list, finalize, then read status from the cache."""
        record_id, _ = await manager.create(OWNER, "clip.mp4", "video/mp4")

        listed = await manager.list_records(OWNER)
        assert [(r.record_id, r.status) for r in listed] == [(record_id, MediaStatus.UPLOADING)]

        await manager.finalize(OWNER, record_id, size_bytes=2048, duration_sec=3.0)
        reads = store.reads
        status = await manager.get_status(OWNER, record_id)

        assert status["status"] == MediaStatus.READY
        assert store.reads == reads

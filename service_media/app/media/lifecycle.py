"""
Media record lifecycle.

Owns every status transition of a record and keeps the status cache in
step with the store: mutations write through, reads are cache-aside.
"""

import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from shared.errors import NotFoundError, ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..cache.status_cache import StatusCache, status_key
from ..persistence.records import RecordStore
from .models import DEFAULT_CONTENT_TYPE, MediaRecord, MediaStatus, utc_now_iso


FINALIZABLE = frozenset({MediaStatus.UPLOADING, MediaStatus.READY})


def _new_record_id() -> str:
    return str(uuid.uuid4())


class LifecycleManager:
    """Creates records and moves them through their states."""

    def __init__(
        self,
        store: RecordStore,
        cache: StatusCache,
        status_ttl: int = 30,
        metrics: Optional[MetricsCollector] = None,
        id_factory: Callable[[], str] = _new_record_id,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.store = store
        self.cache = cache
        self.status_ttl = status_ttl
        self.metrics = metrics
        self._id_factory = id_factory
        self._clock = clock
        self.logger = get_logger("media.lifecycle")

    @staticmethod
    def object_key(owner_id: str, record_id: str, name: str) -> str:
        return f"{owner_id}/{record_id}/{name}"

    async def create(self, owner_id: str, name: str, content_type: Optional[str] = None) -> Tuple[str, str]:
        """Register a new upload and return ``(record_id, object_key)``."""
        record_id = self._id_factory()
        object_key = self.object_key(owner_id, record_id, name)
        now = self._clock()

        await self.store.put(MediaRecord(
            owner_id=owner_id,
            record_id=record_id,
            object_key=object_key,
            original_name=name,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            status=MediaStatus.UPLOADING,
            created_at=now,
            updated_at=now,
        ))

        self.logger.info("Upload initiated", owner_id=owner_id, record_id=record_id)
        return record_id, object_key

    async def finalize(
        self,
        owner_id: str,
        record_id: str,
        size_bytes: Optional[int] = None,
        duration_sec: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Mark an upload complete.

        Only ``UPLOADING`` and ``READY`` records may be finalized. An unknown
        record id is upserted as ``READY``, like the store's own update.
        """
        record = await self.store.get(owner_id, record_id)
        if record is not None and record.status not in FINALIZABLE:
            raise ValidationError(
                "Video cannot be finalized in its current state",
                details={"record_id": record_id, "status": record.status},
            )

        now = self._clock()
        attributes: Dict[str, Any] = {"status": MediaStatus.READY, "updatedAt": now}
        if size_bytes is not None:
            attributes["sizeBytes"] = size_bytes
        if duration_sec is not None:
            attributes["durationSec"] = duration_sec

        await self.store.update(owner_id, record_id, attributes)
        entry = await self._write_status(owner_id, record_id, MediaStatus.READY, now)

        self.logger.info("Upload finalized", owner_id=owner_id, record_id=record_id)
        return entry

    async def request_transcode(self, owner_id: str, record_id: str, preset: str) -> MediaRecord:
        """Hand a record to the transcoder with ``preset``."""
        record = await self._require(owner_id, record_id)
        if MediaStatus.is_transcoding(record.status):
            raise ValidationError(
                "Video is already being transcoded",
                details={"record_id": record_id, "status": record.status},
            )

        status = MediaStatus.transcoding(preset)
        now = self._clock()
        await self.store.update(owner_id, record_id, {"status": status, "updatedAt": now, "error": None})
        await self._write_status(owner_id, record_id, status, now)

        self.logger.info("Transcode requested", owner_id=owner_id, record_id=record_id, preset=preset)
        return record.model_copy(update={"status": status, "updated_at": now, "error": None})

    async def complete_transcode(self, owner_id: str, record_id: str) -> MediaRecord:
        """Transcoder finished: ``TRANSCODING:<preset> -> READY``."""
        return await self._finish_transcode(owner_id, record_id, MediaStatus.READY, None)

    async def fail_transcode(self, owner_id: str, record_id: str, reason: Optional[str] = None) -> MediaRecord:
        """Transcoder gave up: ``TRANSCODING:<preset> -> FAILED``."""
        return await self._finish_transcode(owner_id, record_id, MediaStatus.FAILED, reason or "Transcode failed")

    async def _finish_transcode(
        self, owner_id: str, record_id: str, status: str, error: Optional[str]
    ) -> MediaRecord:
        record = await self._require(owner_id, record_id)
        if not MediaStatus.is_transcoding(record.status):
            raise ValidationError(
                "Video is not being transcoded",
                details={"record_id": record_id, "status": record.status},
            )

        now = self._clock()
        await self.store.update(owner_id, record_id, {"status": status, "updatedAt": now, "error": error})
        await self._write_status(owner_id, record_id, status, now)

        self.logger.info("Transcode finished", owner_id=owner_id, record_id=record_id, status=status)
        return record.model_copy(update={"status": status, "updated_at": now, "error": error})

    async def get_status(self, owner_id: str, record_id: str) -> Dict[str, Any]:
        """Current ``{status, updatedAt}``, served from the cache when possible."""
        key = status_key(owner_id, record_id)
        cached = await self.cache.get(key)
        if cached is not None:
            self._count("hit")
            return cached

        self._count("miss")
        record = await self._require(owner_id, record_id)
        entry = self._entry(record.status, record.updated_at)
        await self.cache.set(key, entry, self.status_ttl)
        return entry

    async def download_key(self, owner_id: str, record_id: str) -> str:
        """Object key of a record that has an uploaded object."""
        record = await self._require(owner_id, record_id)
        if not record.object_key:
            # finalize upserts, so a record can exist without ever being initiated
            raise NotFoundError("Video file not found", details={"owner_id": owner_id, "record_id": record_id})
        return record.object_key

    async def list_records(self, owner_id: str) -> List[MediaRecord]:
        """All of an owner's records, newest first."""
        return await self.store.query_by_owner(owner_id)

    async def _require(self, owner_id: str, record_id: str) -> MediaRecord:
        record = await self.store.get(owner_id, record_id)
        if record is None:
            raise NotFoundError("Video not found", details={"owner_id": owner_id, "record_id": record_id})
        return record

    async def _write_status(self, owner_id: str, record_id: str, status: str, updated_at: str) -> Dict[str, Any]:
        entry = self._entry(status, updated_at)
        await self.cache.set(status_key(owner_id, record_id), entry, self.status_ttl)
        return entry

    @staticmethod
    def _entry(status: str, updated_at: Optional[str]) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"status": status}
        if updated_at:
            entry["updatedAt"] = updated_at
        return entry

    def _count(self, result: str):
        if self.metrics:
            self.metrics.increment_counter("status_cache_requests_total", result=result)

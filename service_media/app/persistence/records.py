"""
Record store interface and in-memory implementation.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from ..media.models import MediaRecord


class RecordStore(ABC):
    """Durable store of media records keyed by (owner id, record id)."""

    backend = "abstract"

    @abstractmethod
    async def put(self, record: MediaRecord) -> None:
        """Write a whole record, replacing any existing one."""

    @abstractmethod
    async def get(self, owner_id: str, record_id: str) -> Optional[MediaRecord]:
        """Read one record, ``None`` when absent."""

    @abstractmethod
    async def update(self, owner_id: str, record_id: str, attributes: Dict[str, Any]) -> None:
        """Set ``attributes`` on a record, creating the key if it is absent.

        A ``None`` value removes the attribute.
        """

    @abstractmethod
    async def query_by_owner(self, owner_id: str) -> List[MediaRecord]:
        """All records of an owner, newest first."""

    async def close(self) -> None:
        """Release held resources."""

    async def health_check(self) -> bool:
        return True


def newest_first(records: List[MediaRecord]) -> List[MediaRecord]:
    return sorted(records, key=lambda record: record.created_at or "", reverse=True)


class InMemoryRecordStore(RecordStore):
    """Process-local store with the same semantics as the DynamoDB store."""

    backend = "memory"

    def __init__(self):
        self._items: Dict[Tuple[str, str], Dict[str, Any]] = {}

    async def put(self, record: MediaRecord) -> None:
        self._items[(record.owner_id, record.record_id)] = record.to_item()

    async def get(self, owner_id: str, record_id: str) -> Optional[MediaRecord]:
        item = self._items.get((owner_id, record_id))
        return MediaRecord.from_item(copy.deepcopy(item)) if item is not None else None

    async def update(self, owner_id: str, record_id: str, attributes: Dict[str, Any]) -> None:
        item = self._items.setdefault(
            (owner_id, record_id),
            {"userId": owner_id, "videoId": record_id}
        )
        for attribute, value in attributes.items():
            # None removes the attribute, as a DynamoDB REMOVE would
            if value is None:
                item.pop(attribute, None)
            else:
                item[attribute] = value

    async def query_by_owner(self, owner_id: str) -> List[MediaRecord]:
        records = [
            MediaRecord.from_item(copy.deepcopy(item))
            for (owner, _), item in self._items.items()
            if owner == owner_id
        ]
        return newest_first(records)

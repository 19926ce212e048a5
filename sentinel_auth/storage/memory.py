"""
In-Memory Record Store

Holds serialized snapshots so callers never share mutable records with
the store, matching the file store's semantics.
"""

from typing import Any, Dict, List, Sequence, Type

from sentinel_auth.exceptions import RecordNotFoundError
from sentinel_auth.storage.base import RecordStore, T


class MemoryRecordStore(RecordStore[T]):
    """Record store kept in process memory."""

    def __init__(
        self,
        record_type: Type[T],
        unique_fields: Sequence[str] = (),
        collection: str = "record",
    ):
        super().__init__(record_type, unique_fields, collection)
        self._rows: List[Dict[str, Any]] = []

    async def list_all(self) -> List[T]:
        return [self.record_type.from_dict(row) for row in self._rows]

    async def append(self, record: T) -> None:
        self._check_unique(await self.list_all(), record)
        self._rows.append(record.to_dict())

    async def update_by_id(self, record: T) -> None:
        for index, existing in enumerate(await self.list_all()):
            if existing.id == record.id:
                self._rows[index] = record.to_dict()
                return
        raise RecordNotFoundError(record.id, self.collection)

    async def replace_all(self, records: Sequence[T]) -> None:
        self._rows = [r.to_dict() for r in records]

    def __len__(self) -> int:
        return len(self._rows)

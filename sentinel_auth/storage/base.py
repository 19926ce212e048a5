"""
Record Store Contract

Generic list/get/append/update-by-id storage for one kind of record.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Mapping, Optional, Protocol, Sequence, Type, TypeVar

from sentinel_auth.exceptions import DuplicateRecordError


class Record(Protocol):
    """A storable record: a stable string id and a dict codec."""

    @property
    def id(self) -> str: ...

    def to_dict(self) -> Dict[str, Any]: ...

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Any: ...


T = TypeVar("T", bound=Record)


class RecordStore(ABC, Generic[T]):
    """
    Storage for one record kind.

    Updates follow a read-all / mutate-one / write-all discipline. Updates
    to different records are safe; two concurrent updates of the same
    record are last-writer-wins, so an interleaved change (for example a
    failed-login counter bump) can be lost. There is no cross-process or
    cross-operation locking.
    """

    def __init__(
        self,
        record_type: Type[T],
        unique_fields: Sequence[str] = (),
        collection: str = "record",
    ):
        self.record_type = record_type
        self.unique_fields = tuple(unique_fields)
        self.collection = collection

    @abstractmethod
    async def list_all(self) -> List[T]:
        """Return every record."""

    async def get_by_id(self, record_id: str) -> Optional[T]:
        for record in await self.list_all():
            if record.id == record_id:
                return record
        return None

    @abstractmethod
    async def append(self, record: T) -> None:
        """
        Insert a new record.

        Raises:
            DuplicateRecordError: If the id or a unique field is taken
        """

    @abstractmethod
    async def update_by_id(self, record: T) -> None:
        """
        Replace the record with the same id.

        Raises:
            RecordNotFoundError: If no record has that id
        """

    @abstractmethod
    async def replace_all(self, records: Sequence[T]) -> None:
        """Overwrite the whole collection."""

    async def delete_by_id(self, record_id: str) -> bool:
        """Remove a record. Returns True if something was removed."""
        records = await self.list_all()
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) == len(records):
            return False
        await self.replace_all(remaining)
        return True

    def _check_unique(self, existing: Sequence[T], record: T) -> None:
        for other in existing:
            if other.id == record.id:
                raise DuplicateRecordError("id", record.id, self.collection)
            for field_name in self.unique_fields:
                value = getattr(record, field_name)
                if getattr(other, field_name) == value:
                    raise DuplicateRecordError(field_name, str(value), self.collection)

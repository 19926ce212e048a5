"""
JSON-Lines Record Store

One record per line in a flat text file. New records are appended;
updates rewrite the whole file through a temporary file so a crash never
leaves a half-written collection behind.
"""

import json
import logging
from pathlib import Path
from typing import List, Sequence, Type, Union

import aiofiles
import aiofiles.os

from sentinel_auth.exceptions import RecordNotFoundError, StoreError
from sentinel_auth.storage.base import RecordStore, T


logger = logging.getLogger("SENTINEL_FileStore")


class JsonlRecordStore(RecordStore[T]):
    """File-backed record store."""

    def __init__(
        self,
        path: Union[str, Path],
        record_type: Type[T],
        unique_fields: Sequence[str] = (),
        collection: str = "record",
    ):
        super().__init__(record_type, unique_fields, collection)
        self.path = Path(path)

    async def _ensure_file(self) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        if not await aiofiles.os.path.exists(self.path):
            async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
                await f.write("")

    async def _read_lines(self) -> List[str]:
        try:
            await self._ensure_file()
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                content = await f.read()
        except OSError as e:
            raise StoreError(f"Cannot read {self.path}: {e}") from e
        return [line for line in content.split("\n") if line.strip()]

    async def _write_lines(self, lines: List[str]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        payload = "".join(line.rstrip() + "\n" for line in lines)
        try:
            await self._ensure_file()
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Cannot write {self.path}: {e}") from e

    async def list_all(self) -> List[T]:
        records: List[T] = []
        for lineno, line in enumerate(await self._read_lines(), start=1):
            try:
                records.append(self.record_type.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed {self.collection} at {self.path}:{lineno}: {e}")
        return records

    async def append(self, record: T) -> None:
        self._check_unique(await self.list_all(), record)
        line = json.dumps(record.to_dict())
        try:
            async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                await f.write(line + "\n")
        except OSError as e:
            raise StoreError(f"Cannot append to {self.path}: {e}") from e

    async def update_by_id(self, record: T) -> None:
        records = await self.list_all()
        found = False
        lines = []
        for existing in records:
            if existing.id == record.id:
                found = True
                lines.append(json.dumps(record.to_dict()))
            else:
                lines.append(json.dumps(existing.to_dict()))
        if not found:
            raise RecordNotFoundError(record.id, self.collection)
        await self._write_lines(lines)

    async def replace_all(self, records: Sequence[T]) -> None:
        await self._write_lines([json.dumps(r.to_dict()) for r in records])

"""Record stores and repositories."""

from sentinel_auth.storage.base import RecordStore
from sentinel_auth.storage.file_store import JsonlRecordStore
from sentinel_auth.storage.memory import MemoryRecordStore
from sentinel_auth.storage.roles import RoleRepository
from sentinel_auth.storage.sessions import SessionRepository
from sentinel_auth.storage.users import UserRepository

__all__ = [
    "RecordStore",
    "JsonlRecordStore",
    "MemoryRecordStore",
    "RoleRepository",
    "SessionRepository",
    "UserRepository",
]

"""
Session Repository
"""

from datetime import datetime
from typing import List, Optional

from sentinel_auth.domain.session import Session
from sentinel_auth.exceptions import RecordNotFoundError, SessionNotFoundError
from sentinel_auth.storage.base import RecordStore


class SessionRepository:
    """Read and write sessions."""

    def __init__(self, store: RecordStore[Session]):
        self.store = store

    async def list_sessions(self) -> List[Session]:
        return await self.store.list_all()

    async def get_by_id(self, session_id: str) -> Optional[Session]:
        return await self.store.get_by_id(session_id)

    async def list_by_user(self, user_id: str) -> List[Session]:
        return [s for s in await self.store.list_all() if s.user_id == user_id]

    async def list_active_by_user(
        self, user_id: str, at: Optional[datetime] = None
    ) -> List[Session]:
        return [s for s in await self.list_by_user(user_id) if s.is_active(at)]

    async def add(self, session: Session) -> None:
        await self.store.append(session)

    async def update(self, session: Session) -> None:
        """
        Persist changes to an existing session.

        Raises:
            SessionNotFoundError: If no session has this id
        """
        try:
            await self.store.update_by_id(session)
        except RecordNotFoundError as e:
            raise SessionNotFoundError() from e

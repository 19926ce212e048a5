"""
User Repository

User records on top of a record store, with email uniqueness enforced
at write time.
"""

from typing import List, Optional

from sentinel_auth.domain.user import User, is_valid_email, normalize_email
from sentinel_auth.exceptions import (
    DuplicateRecordError,
    EmailTakenError,
    RecordNotFoundError,
    UserNotFoundError,
)
from sentinel_auth.storage.base import RecordStore


class UserRepository:
    """Read and write users."""

    def __init__(self, store: RecordStore[User]):
        self.store = store

    async def list_users(self) -> List[User]:
        return await self.store.list_all()

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return await self.store.get_by_id(user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Find a user by normalized email. Malformed emails match nobody."""
        target = normalize_email(email)
        if not is_valid_email(target):
            return None
        for user in await self.store.list_all():
            if normalize_email(user.email) == target:
                return user
        return None

    async def add(self, user: User) -> None:
        """
        Insert a new user.

        Raises:
            EmailTakenError: If the email is already registered
        """
        try:
            await self.store.append(user)
        except DuplicateRecordError as e:
            if e.field_name == "email":
                raise EmailTakenError() from e
            raise

    async def update(self, user: User) -> None:
        """
        Persist changes to an existing user.

        Raises:
            UserNotFoundError: If no user has this id
        """
        try:
            await self.store.update_by_id(user)
        except RecordNotFoundError as e:
            raise UserNotFoundError() from e

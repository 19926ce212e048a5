"""
Role Repository

The role catalog, keyed by role name. The RBAC evaluator receives a
snapshot of this catalog per call and never mutates it.
"""

import logging
from typing import List, Optional, Sequence

from sentinel_auth.access.permissions import PermissionLike
from sentinel_auth.access.roles import Role, normalize_permissions, preset_roles
from sentinel_auth.exceptions import RecordNotFoundError
from sentinel_auth.storage.base import RecordStore


logger = logging.getLogger("SENTINEL_RoleRepository")


class RoleRepository:
    """Read and write custom role definitions."""

    def __init__(self, store: RecordStore[Role]):
        self.store = store

    async def list_roles(self) -> List[Role]:
        return await self.store.list_all()

    async def get_by_name(self, name: str) -> Optional[Role]:
        return await self.store.get_by_id(name.strip())

    async def add(self, role: Role) -> None:
        """
        Insert a new role.

        Raises:
            DuplicateRecordError: If a role with this name exists
        """
        await self.store.append(role)

    async def upsert(
        self,
        name: str,
        permissions: Sequence[PermissionLike] = (),
        description: Optional[str] = None,
    ) -> Role:
        """
        Create a role or replace its permissions.

        The existing description is kept when none is given.

        Raises:
            ValueError: If the name is blank
        """
        name = name.strip()
        if not name:
            raise ValueError("Role name is required")

        perms = normalize_permissions(permissions)
        current = await self.get_by_name(name)
        if current is None:
            role = Role(name=name, permissions=perms, description=description)
            await self.store.append(role)
        else:
            role = Role(
                name=name,
                permissions=perms,
                description=description if description is not None else current.description,
            )
            await self.store.update_by_id(role)
        return role

    async def delete(self, name: str) -> bool:
        return await self.store.delete_by_id(name.strip())

    async def add_permissions(self, name: str, extras: Sequence[PermissionLike]) -> Role:
        """
        Extend an existing role with more permissions.

        Raises:
            RecordNotFoundError: If the role does not exist
        """
        current = await self.get_by_name(name)
        if current is None:
            raise RecordNotFoundError(name, "role")
        return await self.upsert(
            name, [*current.permissions, *extras], description=current.description
        )

    async def replace_permissions(self, name: str, permissions: Sequence[PermissionLike]) -> Role:
        return await self.upsert(name, permissions)

    async def seed_presets_if_empty(self) -> bool:
        """Write the built-in presets when the catalog is empty."""
        if await self.store.list_all():
            return False
        await self.store.replace_all(preset_roles())
        logger.info("Seeded role catalog with built-in presets")
        return True

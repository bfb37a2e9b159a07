from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.models import Permission, Role
from app.repositories.base import BaseRepository


class RoleRepository(BaseRepository[Role]):
    model = Role
    label = "Role"

    async def get_by_name(self, name: str) -> Role | None:
        return await self.first(select(Role).where(Role.name == name))

    async def find_many(self, ids) -> list[Role]:
        if not ids:
            return []
        return await self.all(select(Role).where(Role.id.in_(ids)))

    async def list_with_permissions(self) -> list[Role]:
        return await self.all(select(Role).options(selectinload(Role.permissions)).order_by(Role.id))


class PermissionRepository(BaseRepository[Permission]):
    model = Permission
    label = "Permission"

    async def list_all(self) -> list[Permission]:
        return await self.all(select(Permission).order_by(Permission.name))

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import selectinload

from app.dtos import UserFilters
from app.enums import UserStatus
from app.models import Permission, Role, User, UserFollower, permission_role, role_user
from app.repositories.base import BaseRepository
from app.utils import utcnow


class UserRepository(BaseRepository[User]):
    model = User
    label = "User"
    sortable = frozenset({"created_at", "name", "email", "updated_at"})

    async def get_with_roles(self, id: int) -> User | None:
        return await self.get(id, selectinload(User.roles))

    async def get_with_roles_or_fail(self, id: int) -> User:
        return await self.get_or_fail(id, selectinload(User.roles))

    async def get_by_email(self, email: str) -> User | None:
        return await self.first(select(User).where(func.lower(User.email) == email.lower()))

    async def email_taken(self, email: str, exclude_id: int | None = None) -> bool:
        criteria = [func.lower(User.email) == email.lower()]
        if exclude_id is not None:
            criteria.append(User.id != exclude_id)
        return await self.exists(*criteria)

    async def paginate_admin(self, filters: UserFilters, page: int, per_page: int):
        stmt: Select = select(User)
        if filters.search:
            term = f"%{filters.search}%"
            stmt = stmt.where(or_(User.name.ilike(term), User.email.ilike(term)))
        if filters.role_id is not None:
            stmt = stmt.where(User.roles.any(Role.id == filters.role_id))
        if filters.status is UserStatus.BANNED:
            stmt = stmt.where(User.banned_at.is_not(None))
        elif filters.status is UserStatus.BLOCKED:
            stmt = stmt.where(User.blocked_at.is_not(None))
        elif filters.status is UserStatus.ACTIVE:
            stmt = stmt.where(User.banned_at.is_(None), User.blocked_at.is_(None))
        if filters.created_after is not None:
            stmt = stmt.where(User.created_at >= filters.created_after)
        if filters.created_before is not None:
            stmt = stmt.where(User.created_at <= filters.created_before)
        stmt = self.order_by(stmt, filters.sort_by, filters.sort_order)
        return await self.paginate(stmt, page, per_page, selectinload(User.roles))

    # ------------------------------------------------------------------
    # Roles and permissions
    # ------------------------------------------------------------------

    async def role_and_permission_names(self, user_id: int) -> tuple[frozenset[str], frozenset[str]]:
        """The user's role names and the union of their roles' permission names."""
        role_rows = await self.db.execute(
            select(Role.name).join(role_user, role_user.c.role_id == Role.id).where(role_user.c.user_id == user_id)
        )
        permission_rows = await self.db.execute(
            select(Permission.name)
            .join(permission_role, permission_role.c.permission_id == Permission.id)
            .join(role_user, role_user.c.role_id == permission_role.c.role_id)
            .where(role_user.c.user_id == user_id)
            .distinct()
        )
        return frozenset(role_rows.scalars()), frozenset(permission_rows.scalars())

    async def sync_roles(self, user: User, roles: list[Role]) -> None:
        await self.db.execute(delete(role_user).where(role_user.c.user_id == user.id))
        if roles:
            await self.db.execute(
                role_user.insert(), [{"user_id": user.id, "role_id": role.id} for role in roles]
            )
        await self.db.flush()

    # ------------------------------------------------------------------
    # Follow graph
    # ------------------------------------------------------------------

    async def follow(self, follower_id: int, following_id: int) -> bool:
        """
        Insert the edge unless it already exists.

        ON CONFLICT DO NOTHING lets two racing requests both succeed while
        the primary key keeps the edge unique.  Returns True when a new edge
        was created.
        """
        values = {"follower_id": follower_id, "following_id": following_id, "created_at": utcnow()}
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(UserFollower).values(**values).on_conflict_do_nothing()
        elif dialect == "sqlite":
            stmt = sqlite.insert(UserFollower).values(**values).on_conflict_do_nothing()
        else:
            if await self.is_following(follower_id, following_id):
                return False
            self.db.add(UserFollower(**values))
            await self.db.flush()
            return True
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def unfollow(self, follower_id: int, following_id: int) -> bool:
        result = await self.db.execute(
            delete(UserFollower).where(
                UserFollower.follower_id == follower_id,
                UserFollower.following_id == following_id,
            )
        )
        return result.rowcount > 0

    async def is_following(self, follower_id: int, following_id: int) -> bool:
        stmt = select(func.count()).select_from(UserFollower).where(
            UserFollower.follower_id == follower_id,
            UserFollower.following_id == following_id,
        )
        return (await self.db.execute(stmt)).scalar_one() > 0

    async def follow_counts(self, user_id: int) -> dict[str, int]:
        followers = await self.db.execute(
            select(func.count()).select_from(UserFollower).where(UserFollower.following_id == user_id)
        )
        following = await self.db.execute(
            select(func.count()).select_from(UserFollower).where(UserFollower.follower_id == user_id)
        )
        return {"followers_count": followers.scalar_one(), "following_count": following.scalar_one()}

    async def paginate_followers(self, user_id: int, page: int, per_page: int):
        stmt = (
            select(User)
            .join(UserFollower, UserFollower.follower_id == User.id)
            .where(UserFollower.following_id == user_id)
            .order_by(UserFollower.created_at.desc(), User.id.desc())
        )
        return await self.paginate(stmt, page, per_page)

    async def paginate_following(self, user_id: int, page: int, per_page: int):
        stmt = (
            select(User)
            .join(UserFollower, UserFollower.following_id == User.id)
            .where(UserFollower.follower_id == user_id)
            .order_by(UserFollower.created_at.desc(), User.id.desc())
        )
        return await self.paginate(stmt, page, per_page)

    # ------------------------------------------------------------------
    # Audience resolution
    # ------------------------------------------------------------------

    async def all_ids(self) -> set[int]:
        return set((await self.db.execute(select(User.id))).scalars())

    async def ids_with_role(self, role_id: int) -> set[int]:
        stmt = select(role_user.c.user_id).where(role_user.c.role_id == role_id)
        return set((await self.db.execute(stmt)).scalars())

    async def existing_ids(self, ids) -> set[int]:
        if not ids:
            return set()
        return set((await self.db.execute(select(User.id).where(User.id.in_(ids)))).scalars())

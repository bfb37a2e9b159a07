"""
User service — self-service profile, the follow graph and user
administration.

Administrative actions (delete, ban, block) and social actions (follow)
can never target the acting user; those are refused with a 403 before any
row is touched.  Banning or blocking a user also revokes every token they
hold, so the change takes effect on their next request.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.dtos import CreateUserDTO, UpdateProfileDTO, UpdateUserDTO, UserFilters
from app.enums import UserRole
from app.events import UserDeleted, UserFollowed, UserSuspensionChanged, UserUnfollowed, dispatcher
from app.exceptions import ValidationError
from app.models import Permission, Role, User
from app.policies import AuthContext, authorize, ensure_not_self
from app.repositories.base import Page
from app.repositories.roles import PermissionRepository, RoleRepository
from app.repositories.tokens import AuthTokenRepository
from app.repositories.users import UserRepository
from app.security import hash_password
from app.utils import utcnow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Self-service
# ---------------------------------------------------------------------------

async def get_me(db: AsyncSession, ctx: AuthContext) -> tuple[User, frozenset[str], frozenset[str]]:
    user = await UserRepository(db).get_with_roles_or_fail(ctx.user.id)
    return user, ctx.roles, ctx.permissions


async def update_profile(db: AsyncSession, ctx: AuthContext, dto: UpdateProfileDTO) -> User:
    authorize(ctx.has_permission("edit_profile"))
    repo = UserRepository(db)
    user = await repo.get_with_roles_or_fail(ctx.user.id)
    await repo.update(user, dto.changes())
    return user


async def get_profile(
    db: AsyncSession, user_id: int, viewer_id: int | None = None
) -> tuple[User, dict[str, int], bool | None]:
    """Return ``(user, follow_counts, is_following)``; the flag is None for guests."""
    repo = UserRepository(db)
    user = await repo.get_or_fail(user_id)
    counts = await repo.follow_counts(user.id)
    is_following = None
    if viewer_id is not None and viewer_id != user.id:
        is_following = await repo.is_following(viewer_id, user.id)
    return user, counts, is_following


async def follow(db: AsyncSession, ctx: AuthContext, user_id: int) -> dict[str, int]:
    """
    Follow *user_id*.  Following someone twice is a no-op and does not
    notify them again.
    """
    authorize(ctx.has_permission("follow_users"))
    ensure_not_self(ctx, user_id, "You cannot follow yourself.")
    repo = UserRepository(db)
    target = await repo.get_or_fail(user_id)

    if await repo.follow(ctx.user.id, target.id):
        logger.info("User %s followed user %s", ctx.user.id, target.id)
        await dispatcher.dispatch(db, UserFollowed(ctx.user.id, target.id, ctx.user.name))
    return await repo.follow_counts(target.id)


async def unfollow(db: AsyncSession, ctx: AuthContext, user_id: int) -> dict[str, int]:
    authorize(ctx.has_permission("unfollow_users"))
    ensure_not_self(ctx, user_id, "You cannot unfollow yourself.")
    repo = UserRepository(db)
    target = await repo.get_or_fail(user_id)

    if await repo.unfollow(ctx.user.id, target.id):
        await dispatcher.dispatch(db, UserUnfollowed(ctx.user.id, target.id))
    return await repo.follow_counts(target.id)


async def list_followers(db: AsyncSession, user_id: int, page: int, per_page: int) -> Page:
    repo = UserRepository(db)
    await repo.get_or_fail(user_id)
    return await repo.paginate_followers(user_id, page, per_page)


async def list_following(db: AsyncSession, user_id: int, page: int, per_page: int) -> Page:
    repo = UserRepository(db)
    await repo.get_or_fail(user_id)
    return await repo.paginate_following(user_id, page, per_page)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

async def _resolve_roles(db: AsyncSession, role_ids) -> list[Role]:
    roles = await RoleRepository(db).find_many(role_ids)
    missing = set(role_ids) - {r.id for r in roles}
    if missing:
        raise ValidationError.single("role_ids", f"The selected roles are invalid: {sorted(missing)}.")
    return roles


async def list_users(
    db: AsyncSession, ctx: AuthContext, filters: UserFilters, page: int, per_page: int
) -> Page:
    authorize(ctx.has_permission("view_users"))
    return await UserRepository(db).paginate_admin(filters, page, per_page)


async def get_user(db: AsyncSession, ctx: AuthContext, user_id: int) -> User:
    authorize(ctx.has_permission("view_users"))
    return await UserRepository(db).get_with_roles_or_fail(user_id)


async def create_user(db: AsyncSession, ctx: AuthContext, dto: CreateUserDTO) -> User:
    """Create a user; without explicit roles the subscriber role is assigned."""
    authorize(ctx.has_permission("create_users"))
    repo = UserRepository(db)
    if await repo.email_taken(dto.email):
        raise ValidationError.single("email", "The email has already been taken.")

    if dto.role_ids:
        authorize(ctx.has_permission("assign_roles"))
        roles = await _resolve_roles(db, dto.role_ids)
    else:
        default = await RoleRepository(db).get_by_name(UserRole.SUBSCRIBER.value)
        roles = [default] if default is not None else []

    user = await repo.create(
        name=dto.name,
        email=dto.email,
        password=hash_password(dto.password),
        bio=dto.bio,
        avatar_url=dto.avatar_url,
    )
    await repo.sync_roles(user, roles)
    logger.info("User %s created by user %s", user.id, ctx.user.id)
    return await repo.get_with_roles_or_fail(user.id)


async def update_user(db: AsyncSession, ctx: AuthContext, user_id: int, dto: UpdateUserDTO) -> User:
    authorize(ctx.has_permission("edit_users"))
    repo = UserRepository(db)
    user = await repo.get_with_roles_or_fail(user_id)

    changes = dto.column_changes()
    if "email" in changes and await repo.email_taken(changes["email"], exclude_id=user.id):
        raise ValidationError.single("email", "The email has already been taken.")
    if dto.password:
        changes["password"] = hash_password(dto.password)
    await repo.update(user, changes)

    if "role_ids" in dto.changes():
        authorize(ctx.has_permission("assign_roles"))
        await repo.sync_roles(user, await _resolve_roles(db, dto.role_ids))
    return await repo.get_with_roles_or_fail(user.id)


async def delete_user(db: AsyncSession, ctx: AuthContext, user_id: int) -> None:
    authorize(ctx.has_permission("delete_users"))
    ensure_not_self(ctx, user_id, "You cannot delete your own account.")
    repo = UserRepository(db)
    user = await repo.get_or_fail(user_id)
    email = user.email
    await repo.delete(user)
    logger.info("User %s deleted by user %s", user_id, ctx.user.id)
    await dispatcher.dispatch(db, UserDeleted(user_id, email))


async def _set_suspension(
    db: AsyncSession, ctx: AuthContext, user_id: int, action: str, column: str, value
) -> User:
    ensure_not_self(ctx, user_id, f"You cannot {action} yourself.")
    repo = UserRepository(db)
    user = await repo.get_with_roles_or_fail(user_id)
    await repo.update(user, {column: value})
    if value is not None:
        await AuthTokenRepository(db).revoke_for_user(user.id)
    logger.info("User %s: %s by user %s", user.id, action, ctx.user.id)
    await dispatcher.dispatch(db, UserSuspensionChanged(user.id, action))
    return user


async def ban(db: AsyncSession, ctx: AuthContext, user_id: int) -> User:
    authorize(ctx.has_permission("ban_users"))
    return await _set_suspension(db, ctx, user_id, "ban", "banned_at", utcnow())


async def unban(db: AsyncSession, ctx: AuthContext, user_id: int) -> User:
    authorize(ctx.has_permission("ban_users"))
    return await _set_suspension(db, ctx, user_id, "unban", "banned_at", None)


async def block(db: AsyncSession, ctx: AuthContext, user_id: int) -> User:
    authorize(ctx.has_permission("block_users"))
    return await _set_suspension(db, ctx, user_id, "block", "blocked_at", utcnow())


async def unblock(db: AsyncSession, ctx: AuthContext, user_id: int) -> User:
    authorize(ctx.has_permission("block_users"))
    return await _set_suspension(db, ctx, user_id, "unblock", "blocked_at", None)


async def list_roles(db: AsyncSession, ctx: AuthContext) -> list[Role]:
    authorize(ctx.has_permission("view_users"))
    return await RoleRepository(db).list_with_permissions()


async def list_permissions(db: AsyncSession, ctx: AuthContext) -> list[Permission]:
    authorize(ctx.has_permission("view_users"))
    return await PermissionRepository(db).list_all()

"""Per-recipient notification rows: the inbox side of notifications."""
from sqlalchemy.ext.asyncio import AsyncSession

from app.dtos import UserNotificationFilters
from app.models import UserNotification
from app.policies import AuthContext, authorize
from app.repositories.base import Page
from app.repositories.notifications import UserNotificationRepository


async def _get_own(repo: UserNotificationRepository, ctx: AuthContext, row_id: int) -> UserNotification:
    row = await repo.get_with_notification(row_id)
    authorize(ctx.owns(row.user_id), "You can only access your own notifications.")
    return row


async def list_notifications(
    db: AsyncSession, ctx: AuthContext, filters: UserNotificationFilters, page: int, per_page: int
) -> Page:
    authorize(ctx.has_permission("read_notifications"))
    return await UserNotificationRepository(db).paginate_for_user(ctx.user.id, filters, page, per_page)


async def unread_count(db: AsyncSession, ctx: AuthContext) -> int:
    return await UserNotificationRepository(db).unread_count(ctx.user.id)


async def mark_read(db: AsyncSession, ctx: AuthContext, row_id: int) -> UserNotification:
    repo = UserNotificationRepository(db)
    row = await _get_own(repo, ctx, row_id)
    if not row.is_read:
        await repo.update(row, {"is_read": True})
    return row


async def mark_all_read(db: AsyncSession, ctx: AuthContext) -> int:
    """Returns the number of rows flipped to read."""
    return await UserNotificationRepository(db).mark_all_read(ctx.user.id)


async def delete(db: AsyncSession, ctx: AuthContext, row_id: int) -> None:
    repo = UserNotificationRepository(db)
    await repo.delete(await _get_own(repo, ctx, row_id))

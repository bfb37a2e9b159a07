from sqlalchemy import String, cast, func, select, update
from sqlalchemy.orm import joinedload, selectinload

from app.dtos import NotificationFilters, UserNotificationFilters
from app.enums import NotificationType
from app.models import Notification, UserNotification
from app.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    model = Notification
    label = "Notification"

    async def get_detail(self, id: int) -> Notification:
        return await self.get_or_fail(id, selectinload(Notification.audiences))

    async def paginate_admin(self, filters: NotificationFilters, page: int, per_page: int):
        stmt = select(Notification)
        if filters.type is not None:
            stmt = stmt.where(Notification.type == filters.type)
        if filters.search:
            # message is JSON; search the serialised document.
            stmt = stmt.where(cast(Notification.message, String).ilike(f"%{filters.search}%"))
        if filters.created_after is not None:
            stmt = stmt.where(Notification.created_at >= filters.created_after)
        if filters.created_before is not None:
            stmt = stmt.where(Notification.created_at <= filters.created_before)
        stmt = self.order_by(stmt, "created_at", "desc")
        return await self.paginate(stmt, page, per_page, selectinload(Notification.audiences))

    async def counts_by_type(self) -> dict[str, int]:
        rows = await self.db.execute(
            select(Notification.type, func.count()).group_by(Notification.type)
        )
        counts = {t.value: 0 for t in NotificationType}
        for type_, total in rows.all():
            counts[NotificationType(type_).value] = total
        return counts

    async def recipient_count(self, notification_id: int) -> int:
        stmt = select(func.count()).select_from(UserNotification).where(
            UserNotification.notification_id == notification_id
        )
        return (await self.db.execute(stmt)).scalar_one()


class UserNotificationRepository(BaseRepository[UserNotification]):
    model = UserNotification
    label = "Notification"

    async def get_with_notification(self, id: int) -> UserNotification:
        return await self.get_or_fail(id, joinedload(UserNotification.notification))

    async def fan_out(self, notification_id: int, user_ids) -> int:
        """Materialise one row per recipient; returns the number of rows."""
        rows = [
            UserNotification(user_id=user_id, notification_id=notification_id, is_read=False)
            for user_id in sorted(set(user_ids))
        ]
        self.db.add_all(rows)
        await self.db.flush()
        return len(rows)

    async def paginate_for_user(
        self, user_id: int, filters: UserNotificationFilters, page: int, per_page: int
    ):
        stmt = select(UserNotification).where(UserNotification.user_id == user_id)
        if filters.is_read is not None:
            stmt = stmt.where(UserNotification.is_read.is_(filters.is_read))
        if filters.type is not None:
            stmt = stmt.where(
                UserNotification.notification.has(Notification.type == filters.type)
            )
        stmt = self.order_by(stmt, "created_at", "desc")
        return await self.paginate(stmt, page, per_page, joinedload(UserNotification.notification))

    async def unread_count(self, user_id: int) -> int:
        return await self.count(UserNotification.user_id == user_id, UserNotification.is_read.is_(False))

    async def mark_all_read(self, user_id: int) -> int:
        result = await self.db.execute(
            update(UserNotification)
            .where(UserNotification.user_id == user_id, UserNotification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

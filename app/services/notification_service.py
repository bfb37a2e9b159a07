"""
Notification service — authoring notifications and fanning them out.

A notification is stored once with its audience descriptors; at creation
time every descriptor is resolved to user ids and one ``UserNotification``
row is written per distinct recipient.  Read state then lives on those rows
and is never recomputed from the audience.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dtos import AudienceDTO, CreateNotificationDTO, NotificationFilters
from app.enums import AudienceType, NotificationType
from app.events import NotificationCreated, dispatcher
from app.exceptions import ValidationError
from app.models import Article, Notification, NotificationAudience, article_categories
from app.repositories.notifications import NotificationRepository, UserNotificationRepository
from app.repositories.roles import RoleRepository
from app.repositories.taxonomy import CategoryRepository
from app.repositories.users import UserRepository

logger = logging.getLogger(__name__)


async def _validate_audiences(db: AsyncSession, audiences: tuple[AudienceDTO, ...]) -> None:
    errors: list[str] = []
    users, roles, categories = UserRepository(db), RoleRepository(db), CategoryRepository(db)
    for audience in audiences:
        if audience.type is AudienceType.USER and not await users.exists(users.model.id == audience.id):
            errors.append(f"User {audience.id} does not exist.")
        elif audience.type is AudienceType.ROLE and not await roles.exists(roles.model.id == audience.id):
            errors.append(f"Role {audience.id} does not exist.")
        elif audience.type is AudienceType.CATEGORY and not await categories.exists(
            categories.model.id == audience.id
        ):
            errors.append(f"Category {audience.id} does not exist.")
    if errors:
        raise ValidationError({"audiences": errors})


async def resolve_recipients(db: AsyncSession, audiences: tuple[AudienceDTO, ...]) -> set[int]:
    """
    Resolve audience descriptors to a set of user ids.

    ``category`` resolves to the authors of articles filed under that
    category.
    """
    users = UserRepository(db)
    recipients: set[int] = set()
    for audience in audiences:
        if audience.type is AudienceType.ALL:
            # Everyone is already covered; nothing else can add recipients.
            return await users.all_ids()
        if audience.type is AudienceType.USER:
            recipients |= await users.existing_ids([audience.id])
        elif audience.type is AudienceType.ROLE:
            recipients |= await users.ids_with_role(audience.id)
        elif audience.type is AudienceType.CATEGORY:
            rows = await db.execute(
                select(Article.created_by)
                .join(article_categories, article_categories.c.article_id == Article.id)
                .where(article_categories.c.category_id == audience.id)
                .distinct()
            )
            recipients |= set(rows.scalars())
    return recipients


async def create_notification(db: AsyncSession, dto: CreateNotificationDTO) -> tuple[Notification, int]:
    """Store the notification and its audiences, then fan out.  Returns (notification, recipients)."""
    await _validate_audiences(db, dto.audiences)

    notification = Notification(
        type=dto.type,
        message=dto.message,
        audiences=[
            NotificationAudience(audience_type=a.type, audience_id=None if a.type is AudienceType.ALL else a.id)
            for a in dict.fromkeys(dto.audiences)
        ],
    )
    db.add(notification)
    await db.flush()

    recipients = await resolve_recipients(db, dto.audiences)
    count = await UserNotificationRepository(db).fan_out(notification.id, recipients)
    logger.info(
        "Notification %s (%s) delivered to %d recipient(s)", notification.id, dto.type.value, count
    )

    await dispatcher.dispatch(db, NotificationCreated(notification.id, dto.type.value, count))
    return notification, count


async def notify_user(
    db: AsyncSession,
    user_id: int,
    type: NotificationType,
    title: str,
    body: str,
    priority: str = "normal",
) -> Notification:
    """Shortcut for a single-recipient notification."""
    dto = CreateNotificationDTO(
        type=type,
        title=title,
        body=body,
        priority=priority,
        audiences=(AudienceDTO(type=AudienceType.USER, id=user_id),),
    )
    notification, _ = await create_notification(db, dto)
    return notification


async def list_notifications(db: AsyncSession, filters: NotificationFilters, page: int, per_page: int):
    return await NotificationRepository(db).paginate_admin(filters, page, per_page)


async def get_notification(db: AsyncSession, notification_id: int) -> tuple[Notification, int]:
    repo = NotificationRepository(db)
    notification = await repo.get_detail(notification_id)
    return notification, await repo.recipient_count(notification.id)


async def get_stats(db: AsyncSession) -> dict:
    repo = NotificationRepository(db)
    rows = UserNotificationRepository(db)
    by_type = await repo.counts_by_type()
    return {
        "total": sum(by_type.values()),
        "by_type": by_type,
        "deliveries": await rows.count(),
        "unread": await rows.count(rows.model.is_read.is_(False)),
    }

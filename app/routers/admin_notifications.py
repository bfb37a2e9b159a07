from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, require_permission
from app.dtos import CreateNotificationDTO, NotificationFilters
from app.enums import NotificationType
from app.policies import AuthContext
from app.responses import api_success
from app.schemas import NotificationCreateRequest
from app.serializers import notification_to_dict, paginated
from app.services import notification_service

router = APIRouter(prefix="/api/v1/admin/notifications", tags=["admin: notifications"])


@router.get("")
async def list_notifications(
    pagination: PaginationParams = Depends(),
    type: NotificationType | None = None,
    search: str | None = None,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    ctx: AuthContext = Depends(require_permission("view_notifications")),
    db: AsyncSession = Depends(get_db),
):
    filters = NotificationFilters(
        type=type, search=search, created_after=created_after, created_before=created_before
    )
    page = await notification_service.list_notifications(db, filters, pagination.page, pagination.per_page)
    return api_success(paginated(page, notification_to_dict))


@router.get("/stats")
async def notification_stats(
    ctx: AuthContext = Depends(require_permission("view_notifications")),
    db: AsyncSession = Depends(get_db),
):
    return api_success(await notification_service.get_stats(db))


@router.post("", status_code=201)
async def create_notification(
    data: NotificationCreateRequest,
    ctx: AuthContext = Depends(require_permission("send_notifications")),
    db: AsyncSession = Depends(get_db),
):
    notification, recipients = await notification_service.create_notification(
        db, CreateNotificationDTO.from_request(data)
    )
    return api_success(notification_to_dict(notification, recipients), "Notification sent.", 201)


@router.get("/{notification_id}")
async def get_notification(
    notification_id: int,
    ctx: AuthContext = Depends(require_permission("view_notifications")),
    db: AsyncSession = Depends(get_db),
):
    notification, recipients = await notification_service.get_notification(db, notification_id)
    return api_success(notification_to_dict(notification, recipients))

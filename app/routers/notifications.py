from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, get_auth_context
from app.dtos import UserNotificationFilters
from app.enums import NotificationType
from app.policies import AuthContext
from app.responses import api_success
from app.serializers import paginated, user_notification_to_dict
from app.services import user_notification_service

router = APIRouter(prefix="/api/v1/user/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    pagination: PaginationParams = Depends(),
    is_read: bool | None = None,
    type: NotificationType | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    filters = UserNotificationFilters(is_read=is_read, type=type)
    page = await user_notification_service.list_notifications(
        db, ctx, filters, pagination.page, pagination.per_page
    )
    return api_success(paginated(page, user_notification_to_dict))


@router.get("/unread-count")
async def unread_count(ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    return api_success({"unread_count": await user_notification_service.unread_count(db, ctx)})


@router.post("/mark-all-read")
async def mark_all_read(ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    updated = await user_notification_service.mark_all_read(db, ctx)
    return api_success({"updated": updated}, "All notifications marked as read.")


@router.post("/{notification_id}/mark-read")
async def mark_read(
    notification_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    row = await user_notification_service.mark_read(db, ctx, notification_id)
    return api_success(user_notification_to_dict(row), "Notification marked as read.")


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await user_notification_service.delete(db, ctx, notification_id)
    return api_success(None, "Notification deleted.")

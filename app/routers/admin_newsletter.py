from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, get_auth_context
from app.dtos import SubscriberFilters
from app.policies import AuthContext
from app.responses import api_success
from app.serializers import paginated, subscriber_to_dict
from app.services import newsletter_service

router = APIRouter(prefix="/api/v1/admin/newsletter/subscribers", tags=["admin: newsletter"])


@router.get("")
async def list_subscribers(
    pagination: PaginationParams = Depends(),
    search: str | None = None,
    status: str | None = Query(None, pattern="^(verified|unverified)$"),
    subscribed_after: datetime | None = None,
    subscribed_before: datetime | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    filters = SubscriberFilters(
        search=search, status=status, subscribed_after=subscribed_after, subscribed_before=subscribed_before
    )
    page = await newsletter_service.list_subscribers(db, ctx, filters, pagination.page, pagination.per_page)
    return api_success(paginated(page, subscriber_to_dict))


@router.get("/{subscriber_id}")
async def get_subscriber(
    subscriber_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return api_success(subscriber_to_dict(await newsletter_service.get_subscriber(db, ctx, subscriber_id)))


@router.delete("/{subscriber_id}")
async def delete_subscriber(
    subscriber_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await newsletter_service.delete_subscriber(db, ctx, subscriber_id)
    return api_success(None, "Subscriber deleted.")

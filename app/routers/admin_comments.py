from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, get_auth_context
from app.dtos import CommentFilters
from app.enums import CommentStatus
from app.policies import AuthContext
from app.responses import api_success
from app.schemas import DeleteRequest, ModerationRequest
from app.serializers import admin_comment_to_dict, paginated
from app.services import comment_service

router = APIRouter(prefix="/api/v1/admin/comments", tags=["admin: comments"])


@router.get("")
async def list_comments(
    pagination: PaginationParams = Depends(),
    status: CommentStatus | None = None,
    search: str | None = None,
    user_id: int | None = None,
    article_id: int | None = None,
    parent_comment_id: int | None = None,
    approved_by: int | None = None,
    has_reports: bool | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    filters = CommentFilters(
        status=status,
        search=search,
        user_id=user_id,
        article_id=article_id,
        parent_comment_id=parent_comment_id,
        approved_by=approved_by,
        has_reports=has_reports,
        sort_order=pagination.sort_order,
    )
    page = await comment_service.list_comments(db, ctx, filters, pagination.page, pagination.per_page)
    return api_success(paginated(page, admin_comment_to_dict))


@router.get("/{comment_id}")
async def get_comment(comment_id: int, ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    return api_success(admin_comment_to_dict(await comment_service.get_comment(db, ctx, comment_id)))


@router.post("/{comment_id}/approve")
async def approve_comment(
    comment_id: int,
    data: ModerationRequest | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.approve_comment(db, ctx, comment_id, data.moderator_notes if data else None)
    return api_success(admin_comment_to_dict(comment), "Comment approved.")


@router.post("/{comment_id}/reject")
async def reject_comment(
    comment_id: int,
    data: ModerationRequest | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.reject_comment(db, ctx, comment_id, data.moderator_notes if data else None)
    return api_success(admin_comment_to_dict(comment), "Comment rejected.")


@router.post("/{comment_id}/spam")
async def mark_spam(
    comment_id: int,
    data: ModerationRequest | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.mark_spam(db, ctx, comment_id, data.moderator_notes if data else None)
    return api_success(admin_comment_to_dict(comment), "Comment marked as spam.")


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    data: DeleteRequest | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, ctx, comment_id, data.reason if data else None)
    return api_success(None, "Comment deleted.")

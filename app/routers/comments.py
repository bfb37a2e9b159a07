from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, get_auth_context
from app.dtos import CreateCommentDTO
from app.policies import AuthContext
from app.responses import api_success
from app.schemas import CommentCreateRequest, CommentUpdateRequest, DeleteRequest, ReportRequest
from app.serializers import comment_to_dict, paginated
from app.services import comment_service

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])


@router.get("/own")
async def list_own_comments(
    pagination: PaginationParams = Depends(),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    page = await comment_service.list_own_comments(db, ctx, pagination.page, pagination.per_page)
    return api_success(paginated(page, comment_to_dict))


@router.post("")
async def create_comment(
    data: CommentCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.create_comment(db, ctx, CreateCommentDTO.from_request(data, ctx.user.id))
    return api_success(comment_to_dict(comment), "Comment submitted and awaiting moderation.")


@router.put("/{comment_id}")
async def update_comment(
    comment_id: int,
    data: CommentUpdateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.update_comment(db, ctx, comment_id, data.content)
    return api_success(comment_to_dict(comment), "Comment updated.")


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: int,
    data: DeleteRequest | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, ctx, comment_id, data.reason if data else None)
    return api_success(None, "Comment deleted.")


@router.post("/{comment_id}/report")
async def report_comment(
    comment_id: int,
    data: ReportRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.report_comment(db, ctx, comment_id, data.reason)
    return api_success({"id": comment.id, "report_count": comment.report_count}, "Comment reported.")

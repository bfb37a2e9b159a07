from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, client_ip, get_auth_context, get_optional_auth
from app.dtos import ArticleFilters
from app.enums import ReactionType
from app.policies import AuthContext, authorize
from app.responses import api_success
from app.schemas import ReportRequest
from app.serializers import (
    paginated,
    public_article_to_dict,
    threaded_comment_to_dict,
)
from app.services import article_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])


@router.get("")
async def list_articles(
    pagination: PaginationParams = Depends(),
    search: str | None = None,
    category_slug: str | None = None,
    tag_slug: str | None = None,
    author_id: int | None = None,
    is_featured: bool | None = None,
    published_after: datetime | None = None,
    published_before: datetime | None = None,
    sort_by: str = Query("published_at", pattern="^(published_at|created_at|title)$"),
    db: AsyncSession = Depends(get_db),
):
    filters = ArticleFilters(
        search=search,
        category_slug=category_slug,
        tag_slug=tag_slug,
        author_id=author_id,
        is_featured=is_featured,
        published_after=published_after,
        published_before=published_before,
        sort_by=sort_by,
        sort_order=pagination.sort_order,
    )
    page = await article_service.list_articles(db, filters, pagination.page, pagination.per_page)
    return api_success(paginated(page, public_article_to_dict))


@router.get("/{slug}")
async def get_article(slug: str, db: AsyncSession = Depends(get_db)):
    return api_success(await article_service.get_article(db, slug))


@router.get("/{slug}/comments")
async def list_comments(
    slug: str,
    pagination: PaginationParams = Depends(),
    parent_id: int | None = None,
    replies_per_page: int = Query(3, ge=0, le=20),
    db: AsyncSession = Depends(get_db),
):
    page, replies, counts = await article_service.list_comments(
        db, slug, pagination.page, pagination.per_page, parent_id, replies_per_page
    )
    return api_success(
        paginated(page, lambda c: threaded_comment_to_dict(c, replies.get(c.id, []), counts.get(c.id, 0)))
    )


async def _react(reaction: ReactionType, slug: str, ctx: AuthContext | None, ip: str | None, db: AsyncSession):
    if ctx is not None:
        authorize(ctx.has_permission(f"{reaction.value}_posts"))
    data = await article_service.react(
        db, slug, reaction, ctx.user.id if ctx else None, None if ctx else ip
    )
    return api_success(data, f"Article {reaction.value}d.")


@router.post("/{slug}/like")
async def like_article(
    slug: str,
    ctx: AuthContext | None = Depends(get_optional_auth),
    ip: str | None = Depends(client_ip),
    db: AsyncSession = Depends(get_db),
):
    return await _react(ReactionType.LIKE, slug, ctx, ip, db)


@router.post("/{slug}/dislike")
async def dislike_article(
    slug: str,
    ctx: AuthContext | None = Depends(get_optional_auth),
    ip: str | None = Depends(client_ip),
    db: AsyncSession = Depends(get_db),
):
    return await _react(ReactionType.DISLIKE, slug, ctx, ip, db)


@router.post("/{slug}/report")
async def report_article(
    slug: str,
    data: ReportRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.report(db, ctx, slug, data.reason)
    return api_success({"id": article.id, "report_count": article.report_count}, "Article reported.")

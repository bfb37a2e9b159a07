from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, get_auth_context
from app.dtos import ArticleFilters, CreateArticleDTO, UpdateArticleDTO
from app.enums import ArticleStatus
from app.policies import AuthContext
from app.responses import api_success
from app.schemas import ArticleCreateRequest, ArticleUpdateRequest, ReportRequest
from app.serializers import article_detail_to_dict, article_to_dict, paginated
from app.services import article_admin_service, article_status_service

router = APIRouter(prefix="/api/v1/admin/articles", tags=["admin: articles"])


@router.get("")
async def list_articles(
    pagination: PaginationParams = Depends(),
    search: str | None = None,
    status: ArticleStatus | None = None,
    author_id: int | None = None,
    category_id: int | None = None,
    tag_id: int | None = None,
    is_featured: bool | None = None,
    is_pinned: bool | None = None,
    has_reports: bool | None = None,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    published_after: datetime | None = None,
    published_before: datetime | None = None,
    sort_by: str = Query("created_at", pattern="^(created_at|published_at|title|updated_at|report_count)$"),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    filters = ArticleFilters(
        search=search,
        status=status,
        author_id=author_id,
        category_id=category_id,
        tag_id=tag_id,
        is_featured=is_featured,
        is_pinned=is_pinned,
        has_reports=has_reports,
        created_after=created_after,
        created_before=created_before,
        published_after=published_after,
        published_before=published_before,
        sort_by=sort_by,
        sort_order=pagination.sort_order,
    )
    page = await article_admin_service.list_articles(db, ctx, filters, pagination.page, pagination.per_page)
    return api_success(paginated(page, article_to_dict))


@router.post("", status_code=201)
async def create_article(
    data: ArticleCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    article = await article_admin_service.create_article(db, ctx, CreateArticleDTO.from_request(data, ctx.user.id))
    return api_success(article_detail_to_dict(article), "Article created.", 201)


@router.get("/{article_id}")
async def get_article(article_id: int, ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    return api_success(article_detail_to_dict(await article_admin_service.get_article(db, ctx, article_id)))


@router.put("/{article_id}")
async def update_article(
    article_id: int,
    data: ArticleUpdateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    article = await article_admin_service.update_article(db, ctx, article_id, UpdateArticleDTO.from_request(data))
    return api_success(article_detail_to_dict(article), "Article updated.")


@router.delete("/{article_id}")
async def delete_article(article_id: int, ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    await article_admin_service.delete_article(db, ctx, article_id)
    return api_success(None, "Article deleted.")


# ---------------------------------------------------------------------------
# Lifecycle and flags: POST /{id}/<action>
# ---------------------------------------------------------------------------

_ACTIONS = {
    "approve": (article_status_service.approve, "Article approved."),
    "reject": (article_status_service.reject, "Article rejected."),
    "archive": (article_status_service.archive, "Article archived."),
    "restore": (article_status_service.restore, "Article restored."),
    "trash": (article_status_service.trash, "Article moved to trash."),
    "restore-from-trash": (article_status_service.restore_from_trash, "Article restored from trash."),
    "feature": (article_status_service.feature, "Article feature flag toggled."),
    "unfeature": (article_status_service.unfeature, "Article unfeatured."),
    "pin": (article_status_service.pin, "Article pinned."),
    "unpin": (article_status_service.unpin, "Article unpinned."),
    "clear-reports": (article_status_service.clear_reports, "Article reports cleared."),
}


def _action_route(action: str):
    handler, message = _ACTIONS[action]

    async def endpoint(
        article_id: int,
        ctx: AuthContext = Depends(get_auth_context),
        db: AsyncSession = Depends(get_db),
    ):
        return api_success(article_detail_to_dict(await handler(db, ctx, article_id)), message)

    endpoint.__name__ = f"{action.replace('-', '_')}_article"
    return endpoint


for _action in _ACTIONS:
    router.add_api_route(f"/{{article_id}}/{_action}", _action_route(_action), methods=["POST"])


@router.post("/{article_id}/report")
async def report_article(
    article_id: int,
    data: ReportRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    article = await article_status_service.report(db, ctx, article_id, data.reason)
    return api_success(article_detail_to_dict(article), "Article reported.")

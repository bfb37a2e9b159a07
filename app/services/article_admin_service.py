"""
Article management — listing, creation, editing and deletion for the
admin area.  Lifecycle transitions live in ``article_status_service``.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache
from app.dtos import ArticleFilters, CreateArticleDTO, UpdateArticleDTO
from app.events import ArticleCreated, ArticleDeleted, ArticleUpdated, dispatcher
from app.exceptions import ValidationError
from app.models import Article, Media
from app.policies import (
    AuthContext,
    authorize,
    can_create_article,
    can_delete_article,
    can_update_article,
    can_view_article,
)
from app.repositories.articles import ArticleRepository
from app.repositories.base import Page
from app.utils import utcnow

logger = logging.getLogger(__name__)


async def _resolve_relations(
    repo: ArticleRepository, category_ids, tag_ids, featured_media_id=None
) -> tuple[list, list]:
    errors: dict[str, list[str]] = {}

    categories = await repo.find_categories(category_ids or ())
    missing = set(category_ids or ()) - {c.id for c in categories}
    if missing:
        errors["category_ids"] = [f"The selected categories are invalid: {sorted(missing)}."]

    tags = await repo.find_tags(tag_ids or ())
    missing = set(tag_ids or ()) - {t.id for t in tags}
    if missing:
        errors["tag_ids"] = [f"The selected tags are invalid: {sorted(missing)}."]

    if featured_media_id is not None and await repo.db.get(Media, featured_media_id) is None:
        errors["featured_media_id"] = ["The selected featured media is invalid."]

    if errors:
        raise ValidationError(errors)
    return categories, tags


async def list_articles(
    db: AsyncSession, ctx: AuthContext, filters: ArticleFilters, page: int, per_page: int
) -> Page:
    """
    Paginated management listing.

    Users without ``edit_others_posts`` only ever see their own articles,
    whatever filters they pass.
    """
    authorize(ctx.has_permission("view_posts"))
    owner_id = None if ctx.has_permission("edit_others_posts") else ctx.user.id
    return await ArticleRepository(db).paginate_admin(filters, page, per_page, owner_id=owner_id)


async def get_article(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    article = await ArticleRepository(db).get_detail(article_id)
    authorize(can_view_article(ctx, article))
    if not ctx.has_permission("edit_others_posts"):
        authorize(ctx.owns(article.created_by))
    return article


async def create_article(db: AsyncSession, ctx: AuthContext, dto: CreateArticleDTO) -> Article:
    """
    Create an article; its status is derived from ``published_at``.

    Published and scheduled articles record their creator as approver.
    """
    authorize(can_create_article(ctx))
    repo = ArticleRepository(db)

    if await repo.slug_exists(dto.slug):
        raise ValidationError.single("slug", "The slug has already been taken.")
    categories, tags = await _resolve_relations(repo, dto.category_ids, dto.tag_ids, dto.featured_media_id)

    article = Article(**dto.to_columns(utcnow()))
    article.categories = categories
    article.tags = tags
    db.add(article)
    await db.flush()
    logger.info("Article %s created by user %s with status %s", article.id, ctx.user.id, article.status.value)

    await dispatcher.dispatch(db, ArticleCreated(article.id, ctx.user.id))
    return await repo.get_detail(article.id)


async def update_article(
    db: AsyncSession, ctx: AuthContext, article_id: int, dto: UpdateArticleDTO
) -> Article:
    """
    Partially update an article.

    Only fields present in the request change; an explicit null clears a
    nullable column.  Status is never changed here.
    """
    repo = ArticleRepository(db)
    article = await repo.get_detail(article_id)
    authorize(can_update_article(ctx, article))

    changes = dto.column_changes()
    old_slug = article.slug
    if "slug" in changes and await repo.slug_exists(changes["slug"], exclude_id=article.id):
        raise ValidationError.single("slug", "The slug has already been taken.")

    categories, tags = await _resolve_relations(
        repo,
        dto.category_ids or (),
        dto.tag_ids or (),
        changes.get("featured_media_id"),
    )
    if "category_ids" in dto.changes():
        article.categories = categories
    if "tag_ids" in dto.changes():
        article.tags = tags

    changes["updated_by"] = ctx.user.id
    await repo.update(article, changes)
    await cache.invalidate_article(old_slug, article.slug)

    await dispatcher.dispatch(db, ArticleUpdated(article.id))
    return await repo.get_detail(article.id)


async def delete_article(db: AsyncSession, ctx: AuthContext, article_id: int) -> None:
    """Hard delete; comments, reactions and join rows cascade."""
    repo = ArticleRepository(db)
    article = await repo.get_or_fail(article_id)
    authorize(can_delete_article(ctx, article))

    slug = article.slug
    await repo.delete(article)
    await cache.invalidate_article(slug)
    await dispatcher.dispatch(db, ArticleDeleted(article_id, slug))

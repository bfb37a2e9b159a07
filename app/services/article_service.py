"""
Article service — public reads and reader reactions.

Design notes
------------
- Only publicly visible articles are served: status ``published`` or
  ``scheduled`` with ``published_at <= now``.  Scheduling is therefore a
  query-time predicate; nothing flips an article's status on a timer.
- The detail view goes through the cache-aside pattern (Redis, then the
  database) keyed by slug.  Every mutation of an article, its reactions or
  its approved comments drops that key.  List responses are not cached.
- Eager loading uses ``joinedload`` for many-to-one (author, featured
  media) and ``selectinload`` for collections (categories, tags) so list
  pages cost a fixed number of queries.
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency in the router layer.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import article_key, cache
from app.config import settings
from app.dtos import ArticleFilters
from app.enums import ReactionType
from app.events import ArticleReactionAdded, dispatcher
from app.exceptions import NotFoundError, ValidationError
from app.models import Article
from app.policies import AuthContext
from app.repositories.articles import ArticleRepository
from app.repositories.base import Page
from app.repositories.comments import CommentRepository
from app.serializers import public_article_detail_to_dict
from app.services import article_status_service

logger = logging.getLogger(__name__)


async def list_articles(db: AsyncSession, filters: ArticleFilters, page: int, per_page: int) -> Page:
    """Visible articles, pinned first, then by the requested sort."""
    return await ArticleRepository(db).paginate_public(filters, page, per_page)


async def get_article(db: AsyncSession, slug: str) -> dict:
    """
    Return the public detail dict for *slug*.

    On a cache miss three extra aggregates are computed (approved comment
    count and like/dislike totals) and the whole dict is cached.
    """
    key = article_key(slug)
    cached = await cache.get(key)
    if cached:
        return cached

    repo = ArticleRepository(db)
    article = await repo.get_by_slug(slug, visible_only=True)
    if article is None:
        raise NotFoundError("Article")

    data = public_article_detail_to_dict(
        article,
        {
            "comments_count": await repo.count_approved_comments(article.id),
            "reactions": await repo.reaction_counts(article.id),
        },
    )
    await cache.set(key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def list_comments(
    db: AsyncSession,
    slug: str,
    page: int,
    per_page: int,
    parent_id: int | None = None,
    replies_per_page: int = 3,
) -> tuple[Page, dict, dict]:
    """
    One page of an article's approved thread.

    Returns ``(page, replies, replies_count)``: the first
    *replies_per_page* approved replies of every comment on the page and
    each comment's total reply count.  Only one level of replies is
    materialised; deeper levels are fetched by passing *parent_id*.
    """
    article = await ArticleRepository(db).get_by_slug(slug, visible_only=True)
    if article is None:
        raise NotFoundError("Article")

    comments = CommentRepository(db)
    result = await comments.paginate_for_article(article.id, page, per_page, parent_id)
    replies, counts = await comments.replies_for(
        article.id, [c.id for c in result.items], replies_per_page
    )
    return result, replies, counts


async def react(
    db: AsyncSession,
    slug: str,
    reaction: ReactionType,
    user_id: int | None,
    ip_address: str | None,
) -> dict:
    """
    Like or dislike a visible article.

    Reactions are keyed by user when authenticated, otherwise by client IP.
    Repeating the same reaction is a no-op; switching replaces the opposite
    reaction.
    """
    repo = ArticleRepository(db)
    article = await repo.get_by_slug(slug)
    if article is None:
        raise NotFoundError("Article")
    if not await repo.is_visible(article.id):
        raise ValidationError.single("article", "Only published articles can receive reactions.")
    if user_id is None and not ip_address:
        raise ValidationError.single("ip_address", "Unable to determine the client address.")

    existing = await repo.find_reaction(article.id, reaction, user_id, ip_address)
    if existing is None:
        await repo.remove_reactions(article.id, user_id, ip_address)
        await repo.add_reaction(article.id, reaction, user_id, ip_address)
        await cache.invalidate_article(article.slug)
        await dispatcher.dispatch(db, ArticleReactionAdded(article.id, reaction.value, user_id))

    counts = await repo.reaction_counts(article.id)
    return {"article_id": article.id, "reaction": reaction.value, **counts}


async def report(db: AsyncSession, ctx: AuthContext, slug: str, reason: str | None) -> Article:
    """Reader-facing report of a visible article, addressed by slug."""
    article = await ArticleRepository(db).get_by_slug(slug, visible_only=True)
    if article is None:
        raise NotFoundError("Article")
    return await article_status_service.report(db, ctx, article.id, reason)

"""
Article lifecycle transitions, feature/pin flags and reports.

Allowed transitions::

    approve             draft | review       -> published
    reject              draft | review       -> draft
    archive             published            -> archived
    restore             archived             -> published
    trash               any but trashed      -> trashed
    restore_from_trash  trashed              -> draft

Anything else raises a 422 on the ``status`` field.  Feature and pin are
orthogonal flags, and reports only bump counters; neither touches status.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache
from app.enums import ArticleStatus
from app.events import (
    ArticleApproved,
    ArticleFlagChanged,
    ArticleReported,
    ArticleStatusChanged,
    dispatcher,
)
from app.exceptions import ValidationError
from app.models import Article
from app.policies import AuthContext, authorize, can_trash_article
from app.repositories.articles import ArticleRepository
from app.utils import utcnow

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[str, tuple[frozenset[ArticleStatus], ArticleStatus]] = {
    "approve": (frozenset({ArticleStatus.DRAFT, ArticleStatus.REVIEW}), ArticleStatus.PUBLISHED),
    "reject": (frozenset({ArticleStatus.DRAFT, ArticleStatus.REVIEW}), ArticleStatus.DRAFT),
    "archive": (frozenset({ArticleStatus.PUBLISHED}), ArticleStatus.ARCHIVED),
    "restore": (frozenset({ArticleStatus.ARCHIVED}), ArticleStatus.PUBLISHED),
    "trash": (frozenset(ArticleStatus) - {ArticleStatus.TRASHED}, ArticleStatus.TRASHED),
    "restore_from_trash": (frozenset({ArticleStatus.TRASHED}), ArticleStatus.DRAFT),
}

_PERMISSIONS = {
    "approve": "approve_posts",
    "reject": "approve_posts",
    "archive": "archive_posts",
    "restore": "restore_posts",
    "restore_from_trash": "restore_posts",
}


def ensure_transition(article: Article, action: str) -> ArticleStatus:
    """Return the target status for *action*, or raise when it is not allowed."""
    sources, target = _TRANSITIONS[action]
    if article.status not in sources:
        raise ValidationError.single(
            "status",
            f"Cannot {action.replace('_', ' ')} an article with status {article.status.value}.",
        )
    return target


async def _transition(
    db: AsyncSession, ctx: AuthContext, article_id: int, action: str, **values
) -> Article:
    repo = ArticleRepository(db)
    article = await repo.get_detail(article_id)
    if action == "trash":
        authorize(can_trash_article(ctx, article))
    else:
        authorize(ctx.has_permission(_PERMISSIONS[action]))

    previous = article.status
    target = ensure_transition(article, action)
    await repo.update(article, {"status": target, "updated_by": ctx.user.id, **values})
    await cache.invalidate_article(article.slug)
    logger.info("Article %s %s: %s -> %s", article.id, action, previous.value, target.value)

    await dispatcher.dispatch(
        db, ArticleStatusChanged(article.id, action, previous.value, target.value)
    )
    return await repo.get_detail(article.id)


async def approve(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    """Publish now and record the approver."""
    article = await _transition(
        db, ctx, article_id, "approve", approved_by=ctx.user.id, published_at=utcnow()
    )
    await dispatcher.dispatch(
        db, ArticleApproved(article.id, article.title, article.created_by, ctx.user.id)
    )
    return article


async def reject(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    """Send back to draft; the reviewer is recorded in ``approved_by``."""
    return await _transition(db, ctx, article_id, "reject", approved_by=ctx.user.id)


async def archive(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    return await _transition(db, ctx, article_id, "archive")


async def restore(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    return await _transition(db, ctx, article_id, "restore")


async def trash(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    return await _transition(db, ctx, article_id, "trash")


async def restore_from_trash(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    return await _transition(db, ctx, article_id, "restore_from_trash")


# ---------------------------------------------------------------------------
# Flags
# ---------------------------------------------------------------------------

async def _set_flag(db: AsyncSession, ctx: AuthContext, article_id: int, flag: str, value: bool) -> Article:
    repo = ArticleRepository(db)
    article = await repo.get_detail(article_id)
    await repo.update(
        article,
        {
            f"is_{flag}": value,
            f"{flag}_at": utcnow() if value else None,
            "updated_by": ctx.user.id,
        },
    )
    await cache.invalidate_article(article.slug)
    await dispatcher.dispatch(db, ArticleFlagChanged(article.id, flag, value))
    return await repo.get_detail(article.id)


async def feature(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    """Toggle the featured flag."""
    authorize(ctx.has_permission("feature_posts"))
    article = await ArticleRepository(db).get_or_fail(article_id)
    return await _set_flag(db, ctx, article_id, "featured", not article.is_featured)


async def unfeature(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    """Always clears the flag, whatever its current value."""
    authorize(ctx.has_permission("feature_posts"))
    return await _set_flag(db, ctx, article_id, "featured", False)


async def pin(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    authorize(ctx.has_permission("pin_posts"))
    return await _set_flag(db, ctx, article_id, "pinned", True)


async def unpin(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    authorize(ctx.has_permission("pin_posts"))
    return await _set_flag(db, ctx, article_id, "pinned", False)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

async def report(db: AsyncSession, ctx: AuthContext, article_id: int, reason: str | None) -> Article:
    """Count one report.  Status is untouched; moderators act on ``has_reports``."""
    authorize(ctx.has_permission("report_posts"))
    repo = ArticleRepository(db)
    article = await repo.get_or_fail(article_id)
    await repo.increment_reports(article, reason)
    await cache.invalidate_article(article.slug)
    await dispatcher.dispatch(db, ArticleReported(article.id, article.report_count, reason))
    return await repo.get_detail(article.id)


async def clear_reports(db: AsyncSession, ctx: AuthContext, article_id: int) -> Article:
    authorize(ctx.has_permission("approve_posts"))
    repo = ArticleRepository(db)
    article = await repo.get_detail(article_id)
    await repo.update(article, {"report_count": 0, "last_reported_at": None, "report_reason": None})
    await cache.invalidate_article(article.slug)
    return await repo.get_detail(article.id)

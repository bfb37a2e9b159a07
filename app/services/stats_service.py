"""Dashboard totals for the admin area."""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache
from app.enums import ArticleStatus, CommentStatus
from app.models import Article, Comment, NewsletterSubscriber, Notification, User
from app.policies import AuthContext, authorize


async def _count(db: AsyncSession, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return (await db.execute(stmt)).scalar_one()


async def _grouped(db: AsyncSession, column, enum_cls) -> dict[str, int]:
    counts = {member.value: 0 for member in enum_cls}
    rows = await db.execute(select(column, func.count()).group_by(column))
    for value, total in rows.all():
        counts[enum_cls(value).value] = total
    return counts


async def get_stats(db: AsyncSession, ctx: AuthContext) -> dict:
    authorize(ctx.has_permission("view_dashboard"))

    total_articles = await _count(db, Article)
    total_comments = await _count(db, Comment, Comment.deleted_at.is_(None))
    avg_comments = total_comments / total_articles if total_articles > 0 else 0

    return {
        "total_articles": total_articles,
        "articles_by_status": await _grouped(db, Article.status, ArticleStatus),
        "total_comments": total_comments,
        "comments_by_status": await _grouped(db, Comment.status, CommentStatus),
        "reported_articles": await _count(db, Article, Article.report_count > 0),
        "reported_comments": await _count(db, Comment, Comment.report_count > 0, Comment.deleted_at.is_(None)),
        "total_users": await _count(db, User),
        "total_subscribers": await _count(
            db, NewsletterSubscriber,
            NewsletterSubscriber.is_verified.is_(True),
            NewsletterSubscriber.unsubscribed_at.is_(None),
        ),
        "total_notifications": await _count(db, Notification),
        "avg_comments_per_article": round(avg_comments, 2),
        "cache_info": cache.stats,
    }

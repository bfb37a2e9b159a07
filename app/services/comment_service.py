"""
Comment service — reader comments and their moderation.

New comments start ``pending`` and only appear publicly once approved.
Moderators may move a comment between ``approved``, ``rejected`` and
``spam`` at any time.  Reports accumulate independently of status, and
deletion is a soft delete that records who removed the comment and why.
Every change that affects the public thread drops the parent article's
cached detail (it carries the approved comment count).
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache
from app.dtos import CommentFilters, CreateCommentDTO
from app.enums import CommentStatus
from app.events import (
    CommentApproved,
    CommentCreated,
    CommentDeleted,
    CommentModerated,
    CommentReported,
    dispatcher,
)
from app.exceptions import NotFoundError, ValidationError
from app.models import Article, Comment
from app.policies import AuthContext, authorize, can_delete_comment, can_update_comment
from app.repositories.articles import ArticleRepository
from app.repositories.base import Page
from app.repositories.comments import CommentRepository
from app.utils import utcnow

logger = logging.getLogger(__name__)


async def _get_live(repo: CommentRepository, comment_id: int) -> Comment:
    comment = await repo.get_or_fail(comment_id, *repo.detail_options())
    if comment.deleted_at is not None:
        raise NotFoundError("Comment")
    return comment


async def _invalidate(db: AsyncSession, article_id: int) -> None:
    article = await db.get(Article, article_id)
    if article is not None:
        await cache.invalidate_article(article.slug)


async def create_comment(db: AsyncSession, ctx: AuthContext, dto: CreateCommentDTO) -> Comment:
    """
    Add a pending comment to a publicly visible article.

    A reply's parent must be a live comment on the same article.
    """
    authorize(ctx.has_permission("create_comments"))
    if not await ArticleRepository(db).is_visible(dto.article_id):
        raise NotFoundError("Article")

    repo = CommentRepository(db)
    if dto.parent_comment_id is not None:
        parent = await repo.get(dto.parent_comment_id)
        if parent is None or parent.deleted_at is not None or parent.article_id != dto.article_id:
            raise ValidationError.single(
                "parent_comment_id", "The parent comment must belong to the same article."
            )

    comment = await repo.create(
        article_id=dto.article_id,
        user_id=dto.user_id,
        parent_comment_id=dto.parent_comment_id,
        content=dto.content,
        status=CommentStatus.PENDING,
    )
    logger.info("Comment %s created on article %s", comment.id, dto.article_id)
    await dispatcher.dispatch(
        db, CommentCreated(comment.id, comment.article_id, comment.user_id, comment.status.value)
    )
    return await repo.get_or_fail(comment.id, *repo.detail_options())


async def update_comment(db: AsyncSession, ctx: AuthContext, comment_id: int, content: str) -> Comment:
    repo = CommentRepository(db)
    comment = await _get_live(repo, comment_id)
    authorize(can_update_comment(ctx, comment))
    await repo.update(comment, {"content": content.strip()})
    await _invalidate(db, comment.article_id)
    return comment


async def delete_comment(
    db: AsyncSession, ctx: AuthContext, comment_id: int, reason: str | None = None
) -> Comment:
    """Soft delete.  Replies and the article stay untouched."""
    repo = CommentRepository(db)
    comment = await _get_live(repo, comment_id)
    authorize(can_delete_comment(ctx, comment))
    await repo.update(
        comment,
        {"deleted_at": utcnow(), "deleted_by": ctx.user.id, "deleted_reason": reason},
    )
    await _invalidate(db, comment.article_id)
    await dispatcher.dispatch(db, CommentDeleted(comment.id, ctx.user.id, reason))
    return comment


async def report_comment(
    db: AsyncSession, ctx: AuthContext, comment_id: int, reason: str | None
) -> Comment:
    authorize(ctx.has_permission("report_comments"))
    repo = CommentRepository(db)
    comment = await _get_live(repo, comment_id)
    await repo.increment_reports(comment, reason)
    await dispatcher.dispatch(db, CommentReported(comment.id, comment.report_count, reason))
    return comment


async def list_own_comments(db: AsyncSession, ctx: AuthContext, page: int, per_page: int) -> Page:
    return await CommentRepository(db).paginate_for_user(ctx.user.id, page, per_page)


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------

async def list_comments(
    db: AsyncSession, ctx: AuthContext, filters: CommentFilters, page: int, per_page: int
) -> Page:
    authorize(ctx.has_permission("comment_moderate"))
    return await CommentRepository(db).paginate_admin(filters, page, per_page)


async def get_comment(db: AsyncSession, ctx: AuthContext, comment_id: int) -> Comment:
    authorize(ctx.has_permission("comment_moderate"))
    return await _get_live(CommentRepository(db), comment_id)


async def _moderate(
    db: AsyncSession,
    ctx: AuthContext,
    comment_id: int,
    status: CommentStatus,
    notes: str | None,
) -> Comment:
    repo = CommentRepository(db)
    comment = await _get_live(repo, comment_id)
    values: dict = {"status": status}
    if notes is not None:
        values["moderator_notes"] = notes
    if status is CommentStatus.APPROVED:
        values.update(approved_by=ctx.user.id, approved_at=utcnow())
    await repo.update(comment, values)
    await _invalidate(db, comment.article_id)
    logger.info("Comment %s marked %s by user %s", comment.id, status.value, ctx.user.id)

    await dispatcher.dispatch(db, CommentModerated(comment.id, status.value, ctx.user.id))
    if status is CommentStatus.APPROVED:
        await dispatcher.dispatch(
            db, CommentApproved(comment.id, comment.article_id, comment.user_id, status.value)
        )
    return await repo.get_or_fail(comment.id, *repo.detail_options())


async def approve_comment(
    db: AsyncSession, ctx: AuthContext, comment_id: int, notes: str | None = None
) -> Comment:
    authorize(ctx.has_permission("approve_comments"))
    return await _moderate(db, ctx, comment_id, CommentStatus.APPROVED, notes)


async def reject_comment(
    db: AsyncSession, ctx: AuthContext, comment_id: int, notes: str | None = None
) -> Comment:
    authorize(ctx.has_permission("comment_moderate"))
    return await _moderate(db, ctx, comment_id, CommentStatus.REJECTED, notes)


async def mark_spam(
    db: AsyncSession, ctx: AuthContext, comment_id: int, notes: str | None = None
) -> Comment:
    authorize(ctx.has_permission("comment_moderate"))
    return await _moderate(db, ctx, comment_id, CommentStatus.SPAM, notes)

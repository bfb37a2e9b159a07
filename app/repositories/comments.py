from collections import defaultdict

from sqlalchemy import Select, func, select, update
from sqlalchemy.orm import joinedload

from app.dtos import CommentFilters
from app.enums import CommentStatus
from app.models import Comment
from app.repositories.base import BaseRepository
from app.utils import utcnow


class CommentRepository(BaseRepository[Comment]):
    model = Comment
    label = "Comment"
    sortable = frozenset({"created_at", "updated_at", "report_count"})

    @staticmethod
    def detail_options() -> tuple:
        return (joinedload(Comment.user), joinedload(Comment.approver), joinedload(Comment.article))

    def _public_base(self, article_id: int) -> Select:
        return select(Comment).where(
            Comment.article_id == article_id,
            Comment.status == CommentStatus.APPROVED,
            Comment.deleted_at.is_(None),
        )

    async def paginate_for_article(
        self, article_id: int, page: int, per_page: int, parent_id: int | None = None
    ):
        """Approved, non-deleted comments at one level of the thread."""
        stmt = self._public_base(article_id)
        if parent_id is None:
            stmt = stmt.where(Comment.parent_comment_id.is_(None))
        else:
            stmt = stmt.where(Comment.parent_comment_id == parent_id)
        stmt = self.order_by(stmt, "created_at", "desc")
        return await self.paginate(stmt, page, per_page, joinedload(Comment.user))

    async def replies_for(
        self, article_id: int, parent_ids: list[int], limit: int
    ) -> tuple[dict[int, list[Comment]], dict[int, int]]:
        """
        First *limit* approved replies and the total reply count for each
        parent, in two queries regardless of how many parents there are.
        """
        if not parent_ids:
            return {}, {}
        base = self._public_base(article_id).where(Comment.parent_comment_id.in_(parent_ids))

        sub = base.subquery()
        count_stmt = select(sub.c.parent_comment_id, func.count()).group_by(sub.c.parent_comment_id)
        counts = {parent_id: total for parent_id, total in (await self.db.execute(count_stmt)).all()}

        rows = await self.all(
            base.options(joinedload(Comment.user)).order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        replies: dict[int, list[Comment]] = defaultdict(list)
        for reply in rows:
            if len(replies[reply.parent_comment_id]) < limit:
                replies[reply.parent_comment_id].append(reply)
        return dict(replies), counts

    def _apply_filters(self, stmt: Select, filters: CommentFilters) -> Select:
        if filters.status is not None:
            stmt = stmt.where(Comment.status == filters.status)
        if filters.search:
            stmt = stmt.where(Comment.content.ilike(f"%{filters.search}%"))
        if filters.user_id is not None:
            stmt = stmt.where(Comment.user_id == filters.user_id)
        if filters.article_id is not None:
            stmt = stmt.where(Comment.article_id == filters.article_id)
        if filters.parent_comment_id is not None:
            stmt = stmt.where(Comment.parent_comment_id == filters.parent_comment_id)
        if filters.approved_by is not None:
            stmt = stmt.where(Comment.approved_by == filters.approved_by)
        if filters.has_reports is True:
            stmt = stmt.where(Comment.report_count > 0)
        elif filters.has_reports is False:
            stmt = stmt.where(Comment.report_count == 0)
        return stmt

    async def paginate_admin(self, filters: CommentFilters, page: int, per_page: int):
        stmt = self._apply_filters(select(Comment).where(Comment.deleted_at.is_(None)), filters)
        stmt = self.order_by(stmt, "created_at", filters.sort_order)
        return await self.paginate(stmt, page, per_page, *self.detail_options())

    async def paginate_for_user(self, user_id: int, page: int, per_page: int):
        stmt = select(Comment).where(Comment.user_id == user_id, Comment.deleted_at.is_(None))
        stmt = self.order_by(stmt, "created_at", "desc")
        return await self.paginate(stmt, page, per_page, joinedload(Comment.article))

    async def increment_reports(self, comment: Comment, reason: str | None) -> Comment:
        """Atomic counter bump; see ``ArticleRepository.increment_reports``."""
        await self.db.execute(
            update(Comment)
            .where(Comment.id == comment.id)
            .values(
                report_count=Comment.report_count + 1,
                last_reported_at=utcnow(),
                report_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(comment, ["report_count", "last_reported_at", "report_reason"])
        return comment

from datetime import datetime

from sqlalchemy import Select, and_, delete, func, or_, select, update
from sqlalchemy.orm import joinedload, selectinload

from app.dtos import ArticleFilters
from app.enums import ArticleStatus, CommentStatus, ReactionType
from app.models import Article, ArticleLike, Category, Comment, Tag
from app.repositories.base import BaseRepository
from app.utils import utcnow

PUBLIC_STATUSES = (ArticleStatus.PUBLISHED, ArticleStatus.SCHEDULED)


def visible_clause(now: datetime | None = None):
    """
    Public visibility predicate.

    Scheduled articles become visible once their publication date has
    passed; nothing flips their status in the background.
    """
    return and_(
        Article.status.in_(PUBLIC_STATUSES),
        Article.published_at.is_not(None),
        Article.published_at <= (now or utcnow()),
    )


class ArticleRepository(BaseRepository[Article]):
    model = Article
    label = "Article"
    sortable = frozenset({"created_at", "published_at", "title", "updated_at", "report_count"})

    @staticmethod
    def detail_options() -> tuple:
        # joinedload for many-to-one, selectinload for collections (N+1 prevention)
        return (
            joinedload(Article.author),
            joinedload(Article.approver),
            joinedload(Article.featured_media),
            selectinload(Article.categories),
            selectinload(Article.tags),
        )

    @staticmethod
    def list_options() -> tuple:
        return (
            joinedload(Article.author),
            selectinload(Article.categories),
            selectinload(Article.tags),
        )

    async def get_detail(self, id: int) -> Article:
        return await self.get_or_fail(id, *self.detail_options())

    async def get_by_slug(self, slug: str, visible_only: bool = False) -> Article | None:
        stmt = (
            select(Article)
            .where(Article.slug == slug)
            .options(*self.detail_options())
            .execution_options(populate_existing=True)
        )
        if visible_only:
            stmt = stmt.where(visible_clause())
        return await self.first(stmt)

    async def slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        criteria = [Article.slug == slug]
        if exclude_id is not None:
            criteria.append(Article.id != exclude_id)
        return await self.exists(*criteria)

    async def is_visible(self, article_id: int) -> bool:
        return await self.exists(Article.id == article_id, visible_clause())

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def _apply_filters(self, stmt: Select, filters: ArticleFilters) -> Select:
        if filters.search:
            term = f"%{filters.search}%"
            stmt = stmt.where(
                or_(
                    Article.title.ilike(term),
                    Article.subtitle.ilike(term),
                    Article.excerpt.ilike(term),
                    Article.content_markdown.ilike(term),
                )
            )
        if filters.status is not None:
            stmt = stmt.where(Article.status == filters.status)
        if filters.author_id is not None:
            stmt = stmt.where(Article.created_by == filters.author_id)
        # EXISTS rather than JOIN so an article never appears twice on a page.
        if filters.category_id is not None:
            stmt = stmt.where(Article.categories.any(Category.id == filters.category_id))
        if filters.category_slug:
            stmt = stmt.where(Article.categories.any(Category.slug == filters.category_slug))
        if filters.tag_id is not None:
            stmt = stmt.where(Article.tags.any(Tag.id == filters.tag_id))
        if filters.tag_slug:
            stmt = stmt.where(Article.tags.any(Tag.slug == filters.tag_slug))
        if filters.is_featured is not None:
            stmt = stmt.where(Article.is_featured.is_(filters.is_featured))
        if filters.is_pinned is not None:
            stmt = stmt.where(Article.is_pinned.is_(filters.is_pinned))
        if filters.has_reports is True:
            stmt = stmt.where(Article.report_count > 0)
        elif filters.has_reports is False:
            stmt = stmt.where(Article.report_count == 0)
        if filters.created_after is not None:
            stmt = stmt.where(Article.created_at >= filters.created_after)
        if filters.created_before is not None:
            stmt = stmt.where(Article.created_at <= filters.created_before)
        if filters.published_after is not None:
            stmt = stmt.where(Article.published_at >= filters.published_after)
        if filters.published_before is not None:
            stmt = stmt.where(Article.published_at <= filters.published_before)
        return stmt

    async def paginate_public(self, filters: ArticleFilters, page: int, per_page: int):
        stmt = self._apply_filters(select(Article).where(visible_clause()), filters)
        # Pinned articles lead the feed regardless of the requested sort.
        stmt = self.order_by(stmt.order_by(Article.is_pinned.desc()), filters.sort_by, filters.sort_order)
        return await self.paginate(stmt, page, per_page, *self.list_options())

    async def paginate_admin(
        self, filters: ArticleFilters, page: int, per_page: int, owner_id: int | None = None
    ):
        stmt = self._apply_filters(select(Article), filters)
        if owner_id is not None:
            stmt = stmt.where(Article.created_by == owner_id)
        stmt = self.order_by(stmt, filters.sort_by, filters.sort_order)
        return await self.paginate(stmt, page, per_page, *self.list_options())

    # ------------------------------------------------------------------
    # Relations
    # ------------------------------------------------------------------

    async def find_categories(self, ids) -> list[Category]:
        if not ids:
            return []
        return list((await self.db.execute(select(Category).where(Category.id.in_(ids)))).scalars())

    async def find_tags(self, ids) -> list[Tag]:
        if not ids:
            return []
        return list((await self.db.execute(select(Tag).where(Tag.id.in_(ids)))).scalars())

    async def count_approved_comments(self, article_id: int) -> int:
        stmt = select(func.count()).select_from(Comment).where(
            Comment.article_id == article_id,
            Comment.status == CommentStatus.APPROVED,
            Comment.deleted_at.is_(None),
        )
        return (await self.db.execute(stmt)).scalar_one()

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def increment_reports(self, article: Article, reason: str | None) -> Article:
        """
        Record one report with a single UPDATE so concurrent reports are
        never lost to a read-modify-write race.
        """
        await self.db.execute(
            update(Article)
            .where(Article.id == article.id)
            .values(
                report_count=Article.report_count + 1,
                last_reported_at=utcnow(),
                report_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(article, ["report_count", "last_reported_at", "report_reason"])
        return article

    # ------------------------------------------------------------------
    # Reactions
    # ------------------------------------------------------------------

    async def find_reaction(
        self, article_id: int, reaction: ReactionType, user_id: int | None, ip_address: str | None
    ) -> ArticleLike | None:
        stmt = select(ArticleLike).where(
            ArticleLike.article_id == article_id, ArticleLike.type == reaction
        )
        if user_id is not None:
            stmt = stmt.where(ArticleLike.user_id == user_id)
        else:
            stmt = stmt.where(ArticleLike.user_id.is_(None), ArticleLike.ip_address == ip_address)
        return await self.first(stmt)

    async def remove_reactions(self, article_id: int, user_id: int | None, ip_address: str | None) -> None:
        stmt = delete(ArticleLike).where(ArticleLike.article_id == article_id)
        if user_id is not None:
            stmt = stmt.where(ArticleLike.user_id == user_id)
        else:
            stmt = stmt.where(ArticleLike.user_id.is_(None), ArticleLike.ip_address == ip_address)
        await self.db.execute(stmt)

    async def add_reaction(
        self, article_id: int, reaction: ReactionType, user_id: int | None, ip_address: str | None
    ) -> ArticleLike:
        like = ArticleLike(
            article_id=article_id,
            type=reaction,
            user_id=user_id,
            ip_address=None if user_id is not None else ip_address,
        )
        self.db.add(like)
        await self.db.flush()
        return like

    async def reaction_counts(self, article_id: int) -> dict[str, int]:
        stmt = (
            select(ArticleLike.type, func.count())
            .where(ArticleLike.article_id == article_id)
            .group_by(ArticleLike.type)
        )
        counts = {r.value: 0 for r in ReactionType}
        for reaction, total in (await self.db.execute(stmt)).all():
            counts[ReactionType(reaction).value] = total
        return counts

from sqlalchemy import func, select

from app.dtos import SubscriberFilters
from app.models import NewsletterSubscriber
from app.repositories.base import BaseRepository


class NewsletterSubscriberRepository(BaseRepository[NewsletterSubscriber]):
    model = NewsletterSubscriber
    label = "Subscriber"
    sortable = frozenset({"created_at", "subscribed_at", "email"})

    async def get_by_email(self, email: str) -> NewsletterSubscriber | None:
        return await self.first(
            select(NewsletterSubscriber).where(func.lower(NewsletterSubscriber.email) == email.lower())
        )

    async def paginate_admin(self, filters: SubscriberFilters, page: int, per_page: int):
        stmt = select(NewsletterSubscriber)
        if filters.search:
            stmt = stmt.where(NewsletterSubscriber.email.ilike(f"%{filters.search}%"))
        if filters.status == "verified":
            stmt = stmt.where(NewsletterSubscriber.is_verified.is_(True))
        elif filters.status == "unverified":
            stmt = stmt.where(NewsletterSubscriber.is_verified.is_(False))
        if filters.subscribed_after is not None:
            stmt = stmt.where(NewsletterSubscriber.subscribed_at >= filters.subscribed_after)
        if filters.subscribed_before is not None:
            stmt = stmt.where(NewsletterSubscriber.subscribed_at <= filters.subscribed_before)
        stmt = self.order_by(stmt, "created_at", "desc")
        return await self.paginate(stmt, page, per_page)

"""
Newsletter subscriptions.

Both subscribing and unsubscribing are confirmed by a token mailed to the
address.  Only the token's hash is stored, together with an expiry; an
unknown, mismatched or expired token is answered with 404 so the endpoints
reveal nothing about which addresses are subscribed.
"""
import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.dtos import SubscriberFilters
from app.events import (
    NewsletterSubscriberDeleted,
    NewsletterSubscriberUnsubscribed,
    NewsletterSubscriberVerified,
    NewsletterSubscriptionRequested,
    NewsletterUnsubscriptionRequested,
    dispatcher,
)
from app.exceptions import NotFoundError, ValidationError
from app.models import NewsletterSubscriber
from app.policies import AuthContext, authorize
from app.repositories.base import Page
from app.repositories.newsletter import NewsletterSubscriberRepository
from app.repositories.users import UserRepository
from app.security import hash_token, verify_token_hash
from app.utils import ensure_aware, random_token, utcnow

logger = logging.getLogger(__name__)


def _fresh_token() -> tuple[str, dict]:
    token = random_token()
    return token, {
        "verification_token": hash_token(token),
        "verification_token_expires_at": utcnow() + timedelta(minutes=settings.NEWSLETTER_TOKEN_EXPIRE_MINUTES),
    }


async def _get_by_token(repo: NewsletterSubscriberRepository, email: str, token: str) -> NewsletterSubscriber:
    subscriber = await repo.get_by_email(email)
    if (
        subscriber is None
        or subscriber.verification_token is None
        or subscriber.verification_token_expires_at is None
        or ensure_aware(subscriber.verification_token_expires_at) <= utcnow()
        or not verify_token_hash(token, subscriber.verification_token)
    ):
        raise NotFoundError("Subscriber", "Invalid or expired verification token.")
    return subscriber


async def subscribe(db: AsyncSession, email: str) -> NewsletterSubscriber:
    """
    Start (or restart) a subscription.

    Existing rows are reused: the address becomes unverified again and a
    new token replaces any previous one.  A subscription that is verified
    and still active keeps its original ``subscribed_at``.
    """
    repo = NewsletterSubscriberRepository(db)
    email = email.lower()
    token, token_columns = _fresh_token()
    user = await UserRepository(db).get_by_email(email)
    user_id = user.id if user is not None else None

    subscriber = await repo.get_by_email(email)
    if subscriber is None:
        subscriber = await repo.create(
            email=email, is_verified=False, subscribed_at=utcnow(), user_id=user_id, **token_columns
        )
    else:
        values = {**token_columns, "is_verified": False}
        if not (subscriber.is_verified and subscriber.unsubscribed_at is None):
            values.update(subscribed_at=utcnow(), unsubscribed_at=None)
        if user_id is not None:
            values["user_id"] = user_id
        await repo.update(subscriber, values)

    logger.info("Newsletter subscription requested for subscriber %s", subscriber.id)
    await dispatcher.dispatch(db, NewsletterSubscriptionRequested(subscriber.id, subscriber.email, token))
    return subscriber


async def verify(db: AsyncSession, email: str, token: str) -> NewsletterSubscriber:
    repo = NewsletterSubscriberRepository(db)
    subscriber = await _get_by_token(repo, email, token)
    await repo.update(
        subscriber,
        {"is_verified": True, "verification_token": None, "verification_token_expires_at": None},
    )
    await dispatcher.dispatch(db, NewsletterSubscriberVerified(subscriber.id, subscriber.email))
    return subscriber


async def request_unsubscribe(db: AsyncSession, email: str) -> NewsletterSubscriber:
    """Only verified, currently active subscriptions can be cancelled."""
    repo = NewsletterSubscriberRepository(db)
    subscriber = await repo.get_by_email(email)
    if subscriber is None or not subscriber.is_verified or subscriber.unsubscribed_at is not None:
        raise ValidationError.single("email", "This email is not subscribed to the newsletter.")

    token, token_columns = _fresh_token()
    await repo.update(subscriber, token_columns)
    await dispatcher.dispatch(db, NewsletterUnsubscriptionRequested(subscriber.id, subscriber.email, token))
    return subscriber


async def verify_unsubscribe(db: AsyncSession, email: str, token: str) -> NewsletterSubscriber:
    repo = NewsletterSubscriberRepository(db)
    subscriber = await _get_by_token(repo, email, token)
    # Subscription and unsubscription share the token column; only an active
    # subscription can hold an unsubscription token.
    if not subscriber.is_verified or subscriber.unsubscribed_at is not None:
        raise NotFoundError("Subscriber", "Invalid or expired verification token.")
    await repo.update(
        subscriber,
        {
            "is_verified": False,
            "unsubscribed_at": utcnow(),
            "verification_token": None,
            "verification_token_expires_at": None,
        },
    )
    logger.info("Subscriber %s unsubscribed", subscriber.id)
    await dispatcher.dispatch(db, NewsletterSubscriberUnsubscribed(subscriber.id, subscriber.email))
    return subscriber


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

async def list_subscribers(
    db: AsyncSession, ctx: AuthContext, filters: SubscriberFilters, page: int, per_page: int
) -> Page:
    authorize(ctx.has_permission("view_newsletter_subscribers"))
    return await NewsletterSubscriberRepository(db).paginate_admin(filters, page, per_page)


async def get_subscriber(db: AsyncSession, ctx: AuthContext, subscriber_id: int) -> NewsletterSubscriber:
    authorize(ctx.has_permission("view_newsletter_subscribers"))
    return await NewsletterSubscriberRepository(db).get_or_fail(subscriber_id)


async def delete_subscriber(db: AsyncSession, ctx: AuthContext, subscriber_id: int) -> None:
    authorize(ctx.has_permission("manage_newsletter_subscribers"))
    repo = NewsletterSubscriberRepository(db)
    subscriber = await repo.get_or_fail(subscriber_id)
    email = subscriber.email
    await repo.delete(subscriber)
    await dispatcher.dispatch(db, NewsletterSubscriberDeleted(subscriber_id, email))

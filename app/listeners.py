"""
Domain event listeners.

Importing this module subscribes the listeners to ``app.events.dispatcher``;
``app.main`` does so once at startup.  Listeners run inside the session of
the request that dispatched the event.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app import events
from app.enums import CommentStatus, NotificationType
from app.events import dispatcher
from app.models import Article
from app.services import notification_service

logger = logging.getLogger(__name__)


@dispatcher.listens_for(events.CommentCreated, events.CommentApproved)
async def notify_author_of_comment(db: AsyncSession, event) -> None:
    if event.status != CommentStatus.APPROVED.value:
        return
    article = await db.get(Article, event.article_id)
    if article is None or article.created_by == event.user_id:
        return
    await notification_service.notify_user(
        db,
        article.created_by,
        NotificationType.NEW_COMMENT,
        title="New comment on your article",
        body=f'A new comment was posted on "{article.title}".',
    )


@dispatcher.listens_for(events.ArticleApproved)
async def notify_author_of_publication(db: AsyncSession, event: events.ArticleApproved) -> None:
    if event.author_id == event.approved_by:
        return
    await notification_service.notify_user(
        db,
        event.author_id,
        NotificationType.ARTICLE_PUBLISHED,
        title="Your article was published",
        body=f'"{event.title}" has been approved and published.',
    )


@dispatcher.listens_for(events.UserFollowed)
async def notify_followed_user(db: AsyncSession, event: events.UserFollowed) -> None:
    await notification_service.notify_user(
        db,
        event.following_id,
        NotificationType.SYSTEM_ALERT,
        title="New follower",
        body=f"{event.follower_name} started following you.",
        priority="low",
    )


# Mail delivery is handled outside this service; the events carrying a
# token are logged without the token itself.
@dispatcher.listens_for(
    events.NewsletterSubscriptionRequested,
    events.NewsletterUnsubscriptionRequested,
)
async def log_newsletter_mail(db: AsyncSession, event) -> None:
    logger.info("%s queued for subscriber %s", type(event).__name__, event.subscriber_id)


@dispatcher.listens_for(events.PasswordResetRequested)
async def log_password_reset(db: AsyncSession, event: events.PasswordResetRequested) -> None:
    logger.info("Password reset requested for a registered account")


@dispatcher.listens_for(
    events.ArticleCreated,
    events.ArticleUpdated,
    events.ArticleDeleted,
    events.ArticleStatusChanged,
    events.ArticleFlagChanged,
    events.ArticleReported,
    events.ArticleReactionAdded,
    events.CommentModerated,
    events.CommentReported,
    events.CommentDeleted,
    events.UserRegistered,
    events.UserLoggedIn,
    events.UserLoggedOut,
    events.UserSuspensionChanged,
    events.UserDeleted,
    events.UserUnfollowed,
    events.NotificationCreated,
    events.NewsletterSubscriberVerified,
    events.NewsletterSubscriberUnsubscribed,
    events.NewsletterSubscriberDeleted,
)
async def log_event(db: AsyncSession, event) -> None:
    # Emails are personal data; log ids only.
    fields = {k: v for k, v in vars(event).items() if k not in ("email", "token")}
    logger.info("%s %s", type(event).__name__, fields)

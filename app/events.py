"""
In-process domain events.

Services dispatch events after a state change; listeners registered in
``app.listeners`` run immediately, inside the caller's session, so any rows
they write share the request transaction.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Type

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

Listener = Callable[[AsyncSession, Any], Awaitable[None]]


class EventDispatcher:
    """Maps event classes to the async listeners subscribed to them."""

    def __init__(self) -> None:
        self._listeners: Dict[Type, List[Listener]] = defaultdict(list)

    def subscribe(self, event_cls: Type, listener: Listener) -> None:
        if listener not in self._listeners[event_cls]:
            self._listeners[event_cls].append(listener)

    def listens_for(self, *event_classes: Type):
        """Decorator form of ``subscribe``."""
        def decorator(listener: Listener) -> Listener:
            for event_cls in event_classes:
                self.subscribe(event_cls, listener)
            return listener
        return decorator

    async def dispatch(self, db: AsyncSession, event: Any) -> None:
        listeners = list(self._listeners.get(type(event), ()))
        logger.debug("Dispatching %s to %d listener(s)", type(event).__name__, len(listeners))
        for listener in listeners:
            await listener(db, event)


# Module-level singleton shared by services and listeners.
dispatcher = EventDispatcher()


# ---------------------------------------------------------------------------
# Article events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ArticleCreated:
    article_id: int
    created_by: int


@dataclass(frozen=True)
class ArticleUpdated:
    article_id: int


@dataclass(frozen=True)
class ArticleDeleted:
    article_id: int
    slug: str


@dataclass(frozen=True)
class ArticleStatusChanged:
    """Emitted for every lifecycle transition (approve, archive, trash, ...)."""

    article_id: int
    action: str
    previous_status: str
    status: str


@dataclass(frozen=True)
class ArticleApproved:
    article_id: int
    title: str
    author_id: int
    approved_by: int


@dataclass(frozen=True)
class ArticleFlagChanged:
    """Feature/pin toggles."""

    article_id: int
    flag: str
    value: bool


@dataclass(frozen=True)
class ArticleReported:
    article_id: int
    report_count: int
    reason: str | None


@dataclass(frozen=True)
class ArticleReactionAdded:
    article_id: int
    reaction: str
    user_id: int | None


# ---------------------------------------------------------------------------
# Comment events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CommentCreated:
    comment_id: int
    article_id: int
    user_id: int | None
    status: str


@dataclass(frozen=True)
class CommentApproved:
    comment_id: int
    article_id: int
    user_id: int | None
    status: str


@dataclass(frozen=True)
class CommentModerated:
    comment_id: int
    status: str
    moderated_by: int


@dataclass(frozen=True)
class CommentReported:
    comment_id: int
    report_count: int
    reason: str | None


@dataclass(frozen=True)
class CommentDeleted:
    comment_id: int
    deleted_by: int
    reason: str | None


# ---------------------------------------------------------------------------
# User events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UserRegistered:
    user_id: int
    email: str


@dataclass(frozen=True)
class UserLoggedIn:
    user_id: int


@dataclass(frozen=True)
class UserLoggedOut:
    user_id: int


@dataclass(frozen=True)
class PasswordResetRequested:
    email: str
    token: str


@dataclass(frozen=True)
class UserSuspensionChanged:
    """Ban/unban/block/unblock."""

    user_id: int
    action: str


@dataclass(frozen=True)
class UserDeleted:
    user_id: int
    email: str


@dataclass(frozen=True)
class UserFollowed:
    follower_id: int
    following_id: int
    follower_name: str


@dataclass(frozen=True)
class UserUnfollowed:
    follower_id: int
    following_id: int


# ---------------------------------------------------------------------------
# Notification / newsletter events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NotificationCreated:
    notification_id: int
    type: str
    recipient_count: int


@dataclass(frozen=True)
class NewsletterSubscriptionRequested:
    subscriber_id: int
    email: str
    token: str


@dataclass(frozen=True)
class NewsletterSubscriberVerified:
    subscriber_id: int
    email: str


@dataclass(frozen=True)
class NewsletterUnsubscriptionRequested:
    subscriber_id: int
    email: str
    token: str


@dataclass(frozen=True)
class NewsletterSubscriberUnsubscribed:
    subscriber_id: int
    email: str


@dataclass(frozen=True)
class NewsletterSubscriberDeleted:
    subscriber_id: int
    email: str

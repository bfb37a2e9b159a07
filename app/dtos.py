"""
Data transfer objects passed from routers to services.

DTOs are frozen dataclasses built from validated request schemas with
``from_request``.  Update DTOs distinguish "field omitted" from "field set to
null": omitted fields hold the ``UNSET`` sentinel and are skipped by
``changes()``, while an explicit ``None`` clears the column.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any

from app.enums import (
    ArticleStatus,
    AudienceType,
    CommentStatus,
    MediaType,
    NotificationType,
    UserStatus,
)
from app.utils import ensure_aware, slugify, utcnow


class _Unset:
    """Marker type for a field that was not present in the request."""

    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def is_set(value: Any) -> bool:
    return value is not UNSET


def _provided(payload, name: str) -> Any:
    """Return the payload value for *name*, or UNSET when it was omitted."""
    if name not in payload.model_fields_set:
        return UNSET
    return getattr(payload, name)


class PartialUpdate:
    """Mixin for update DTOs whose fields default to UNSET."""

    def changes(self, *exclude: str) -> dict[str, Any]:
        """Fields that were provided, keyed by column name."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in exclude and is_set(getattr(self, f.name))
        }


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreateArticleDTO:
    slug: str
    title: str
    content_markdown: str
    created_by: int
    subtitle: str | None = None
    excerpt: str | None = None
    content_html: str | None = None
    published_at: datetime | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    featured_media_id: int | None = None
    category_ids: tuple[int, ...] = ()
    tag_ids: tuple[int, ...] = ()

    @classmethod
    def from_request(cls, payload, created_by: int) -> "CreateArticleDTO":
        return cls(
            slug=payload.slug or slugify(payload.title),
            title=payload.title,
            subtitle=payload.subtitle,
            excerpt=payload.excerpt,
            content_markdown=payload.content_markdown,
            content_html=payload.content_html,
            published_at=ensure_aware(payload.published_at),
            meta_title=payload.meta_title,
            meta_description=payload.meta_description,
            featured_media_id=payload.featured_media_id,
            category_ids=tuple(payload.category_ids),
            tag_ids=tuple(payload.tag_ids),
            created_by=created_by,
        )

    def status(self, now: datetime | None = None) -> ArticleStatus:
        """No date is a draft; a future date is scheduled; otherwise published."""
        if self.published_at is None:
            return ArticleStatus.DRAFT
        if self.published_at > (now or utcnow()):
            return ArticleStatus.SCHEDULED
        return ArticleStatus.PUBLISHED

    def approved_by(self, now: datetime | None = None) -> int | None:
        if self.status(now) in (ArticleStatus.PUBLISHED, ArticleStatus.SCHEDULED):
            return self.created_by
        return None

    def to_columns(self, now: datetime | None = None) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "title": self.title,
            "subtitle": self.subtitle,
            "excerpt": self.excerpt,
            "content_markdown": self.content_markdown,
            "content_html": self.content_html,
            "status": self.status(now),
            "published_at": self.published_at,
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "featured_media_id": self.featured_media_id,
            "created_by": self.created_by,
            "approved_by": self.approved_by(now),
        }


@dataclass(frozen=True)
class UpdateArticleDTO(PartialUpdate):
    slug: str = UNSET
    title: str = UNSET
    subtitle: str | None = UNSET
    excerpt: str | None = UNSET
    content_markdown: str = UNSET
    content_html: str | None = UNSET
    published_at: datetime | None = UNSET
    meta_title: str | None = UNSET
    meta_description: str | None = UNSET
    featured_media_id: int | None = UNSET
    category_ids: tuple[int, ...] = UNSET
    tag_ids: tuple[int, ...] = UNSET

    @classmethod
    def from_request(cls, payload) -> "UpdateArticleDTO":
        values = {f.name: _provided(payload, f.name) for f in fields(cls)}
        if is_set(values["published_at"]):
            values["published_at"] = ensure_aware(values["published_at"])
        for name in ("category_ids", "tag_ids"):
            if is_set(values[name]):
                values[name] = tuple(values[name] or ())
        return cls(**values)

    def column_changes(self) -> dict[str, Any]:
        return self.changes("category_ids", "tag_ids")


@dataclass(frozen=True)
class ArticleFilters:
    search: str | None = None
    status: ArticleStatus | None = None
    author_id: int | None = None
    category_id: int | None = None
    category_slug: str | None = None
    tag_id: int | None = None
    tag_slug: str | None = None
    is_featured: bool | None = None
    is_pinned: bool | None = None
    has_reports: bool | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    published_after: datetime | None = None
    published_before: datetime | None = None
    sort_by: str = "published_at"
    sort_order: str = "desc"


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreateCommentDTO:
    article_id: int
    user_id: int
    content: str
    parent_comment_id: int | None = None

    @classmethod
    def from_request(cls, payload, user_id: int) -> "CreateCommentDTO":
        return cls(
            article_id=payload.article_id,
            user_id=user_id,
            content=payload.content.strip(),
            parent_comment_id=payload.parent_comment_id,
        )


@dataclass(frozen=True)
class CommentFilters:
    status: CommentStatus | None = None
    search: str | None = None
    user_id: int | None = None
    article_id: int | None = None
    parent_comment_id: int | None = None
    approved_by: int | None = None
    has_reports: bool | None = None
    sort_order: str = "desc"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

_PROFILE_FIELDS = ("name", "bio", "avatar_url", "twitter", "facebook", "linkedin", "github", "website")


@dataclass(frozen=True)
class RegisterUserDTO:
    name: str
    email: str
    password: str

    @classmethod
    def from_request(cls, payload) -> "RegisterUserDTO":
        return cls(name=payload.name.strip(), email=payload.email.lower(), password=payload.password)


@dataclass(frozen=True)
class UpdateProfileDTO(PartialUpdate):
    name: str = UNSET
    bio: str | None = UNSET
    avatar_url: str | None = UNSET
    twitter: str | None = UNSET
    facebook: str | None = UNSET
    linkedin: str | None = UNSET
    github: str | None = UNSET
    website: str | None = UNSET

    @classmethod
    def from_request(cls, payload) -> "UpdateProfileDTO":
        return cls(**{name: _provided(payload, name) for name in _PROFILE_FIELDS})


@dataclass(frozen=True)
class CreateUserDTO:
    name: str
    email: str
    password: str
    role_ids: tuple[int, ...] = ()
    bio: str | None = None
    avatar_url: str | None = None

    @classmethod
    def from_request(cls, payload) -> "CreateUserDTO":
        role_ids = tuple(payload.role_ids or ())
        if payload.role_id is not None and payload.role_id not in role_ids:
            role_ids = (payload.role_id,) + role_ids
        return cls(
            name=payload.name.strip(),
            email=payload.email.lower(),
            password=payload.password,
            role_ids=role_ids,
            bio=payload.bio,
            avatar_url=payload.avatar_url,
        )


@dataclass(frozen=True)
class UpdateUserDTO(PartialUpdate):
    name: str = UNSET
    email: str = UNSET
    password: str = UNSET
    bio: str | None = UNSET
    avatar_url: str | None = UNSET
    twitter: str | None = UNSET
    facebook: str | None = UNSET
    linkedin: str | None = UNSET
    github: str | None = UNSET
    website: str | None = UNSET
    role_ids: tuple[int, ...] = UNSET

    @classmethod
    def from_request(cls, payload) -> "UpdateUserDTO":
        values = {f.name: _provided(payload, f.name) for f in fields(cls)}
        if is_set(values["email"]) and values["email"] is not None:
            values["email"] = values["email"].lower()
        if is_set(values["role_ids"]):
            values["role_ids"] = tuple(values["role_ids"] or ())
        return cls(**values)

    def column_changes(self) -> dict[str, Any]:
        return self.changes("password", "role_ids")


@dataclass(frozen=True)
class UserFilters:
    search: str | None = None
    role_id: int | None = None
    status: UserStatus | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreateCategoryDTO:
    name: str
    slug: str
    parent_id: int | None = None

    @classmethod
    def from_request(cls, payload) -> "CreateCategoryDTO":
        return cls(name=payload.name, slug=payload.slug or slugify(payload.name), parent_id=payload.parent_id)


@dataclass(frozen=True)
class UpdateCategoryDTO(PartialUpdate):
    name: str = UNSET
    slug: str = UNSET
    parent_id: int | None = UNSET

    @classmethod
    def from_request(cls, payload) -> "UpdateCategoryDTO":
        return cls(
            name=_provided(payload, "name"),
            slug=_provided(payload, "slug"),
            parent_id=_provided(payload, "parent_id"),
        )


@dataclass(frozen=True)
class CreateTagDTO:
    name: str
    slug: str

    @classmethod
    def from_request(cls, payload) -> "CreateTagDTO":
        return cls(name=payload.name, slug=payload.slug or slugify(payload.name))


@dataclass(frozen=True)
class UpdateTagDTO(PartialUpdate):
    name: str = UNSET
    slug: str = UNSET

    @classmethod
    def from_request(cls, payload) -> "UpdateTagDTO":
        return cls(name=_provided(payload, "name"), slug=_provided(payload, "slug"))


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UploadMediaDTO:
    file_name: str
    mime_type: str
    content: bytes
    uploaded_by: int
    name: str | None = None
    alt_text: str | None = None
    caption: str | None = None
    description: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class UpdateMediaDTO(PartialUpdate):
    name: str = UNSET
    alt_text: str | None = UNSET
    caption: str | None = UNSET
    description: str | None = UNSET

    @classmethod
    def from_request(cls, payload) -> "UpdateMediaDTO":
        return cls(**{f.name: _provided(payload, f.name) for f in fields(cls)})


@dataclass(frozen=True)
class MediaFilters:
    type: MediaType | None = None
    search: str | None = None
    uploaded_by: int | None = None


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AudienceDTO:
    type: AudienceType
    id: int | None = None


@dataclass(frozen=True)
class CreateNotificationDTO:
    type: NotificationType
    title: str
    body: str
    priority: str = "normal"
    audiences: tuple[AudienceDTO, ...] = field(default_factory=tuple)

    @classmethod
    def from_request(cls, payload) -> "CreateNotificationDTO":
        return cls(
            type=payload.type,
            title=payload.message.title,
            body=payload.message.body,
            priority=payload.message.priority,
            audiences=tuple(AudienceDTO(type=a.type, id=a.id) for a in payload.audiences),
        )

    @property
    def message(self) -> dict[str, str]:
        return {"title": self.title, "body": self.body, "priority": self.priority}


@dataclass(frozen=True)
class NotificationFilters:
    type: NotificationType | None = None
    search: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None


@dataclass(frozen=True)
class UserNotificationFilters:
    is_read: bool | None = None
    type: NotificationType | None = None


# ---------------------------------------------------------------------------
# Newsletter
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SubscriberFilters:
    search: str | None = None
    status: str | None = None  # "verified" | "unverified"
    subscribed_after: datetime | None = None
    subscribed_before: datetime | None = None

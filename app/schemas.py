"""
Request bodies.

Only inbound payloads are modelled here; responses are plain dicts built by
``app.serializers`` and wrapped in the API envelope.
"""
from datetime import datetime
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from app.enums import AudienceType, NotificationType

_SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


def _reject_null(value, info: ValidationInfo):
    # Defaults are not validated, so this only fires for an explicit null.
    if value is None:
        raise ValueError(f"The {info.field_name} field may not be null.")
    return value


class _PasswordConfirmation(RequestModel):
    password: str = Field(min_length=8, max_length=255)
    password_confirmation: str

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        if value != info.data.get("password"):
            raise ValueError("The password field confirmation does not match.")
        return value


# --- Auth ---

class RegisterRequest(_PasswordConfirmation):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr


class LoginRequest(RequestModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ForgotPasswordRequest(RequestModel):
    email: EmailStr


class ResetPasswordRequest(_PasswordConfirmation):
    email: EmailStr
    token: str = Field(min_length=1)


# --- Articles ---

class ArticleCreateRequest(RequestModel):
    slug: str | None = Field(None, max_length=255, pattern=_SLUG_PATTERN)
    title: str = Field(min_length=1, max_length=255)
    subtitle: str | None = Field(None, max_length=255)
    excerpt: str | None = Field(None, max_length=500)
    content_markdown: str = Field(min_length=1)
    content_html: str | None = None
    published_at: datetime | None = None
    meta_title: str | None = Field(None, max_length=255)
    meta_description: str | None = Field(None, max_length=500)
    featured_media_id: int | None = None
    category_ids: list[int] = []
    tag_ids: list[int] = []


class ArticleUpdateRequest(RequestModel):
    slug: str | None = Field(None, max_length=255, pattern=_SLUG_PATTERN)
    title: str | None = Field(None, min_length=1, max_length=255)
    subtitle: str | None = Field(None, max_length=255)
    excerpt: str | None = Field(None, max_length=500)
    content_markdown: str | None = Field(None, min_length=1)
    content_html: str | None = None
    published_at: datetime | None = None
    meta_title: str | None = Field(None, max_length=255)
    meta_description: str | None = Field(None, max_length=500)
    featured_media_id: int | None = None
    category_ids: list[int] | None = None
    tag_ids: list[int] | None = None

    not_null = field_validator("slug", "title", "content_markdown")(_reject_null)


class ReportRequest(RequestModel):
    reason: str | None = Field(None, max_length=1000)


# --- Comments ---

class CommentCreateRequest(RequestModel):
    article_id: int
    content: str = Field(min_length=1, max_length=5000)
    parent_comment_id: int | None = None


class CommentUpdateRequest(RequestModel):
    content: str = Field(min_length=1, max_length=5000)


class ModerationRequest(RequestModel):
    moderator_notes: str | None = Field(None, max_length=1000)


class DeleteRequest(RequestModel):
    reason: str | None = Field(None, max_length=1000)


# --- Users ---

class _ProfileFields(RequestModel):
    bio: str | None = Field(None, max_length=1000)
    avatar_url: str | None = Field(None, max_length=500)
    twitter: str | None = Field(None, max_length=255)
    facebook: str | None = Field(None, max_length=255)
    linkedin: str | None = Field(None, max_length=255)
    github: str | None = Field(None, max_length=255)
    website: str | None = Field(None, max_length=255)


class ProfileUpdateRequest(_ProfileFields):
    name: str | None = Field(None, min_length=1, max_length=255)

    not_null = field_validator("name")(_reject_null)


class UserCreateRequest(RequestModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=255)
    role_id: int | None = None
    role_ids: list[int] | None = None
    bio: str | None = Field(None, max_length=1000)
    avatar_url: str | None = Field(None, max_length=500)


class UserUpdateRequest(_ProfileFields):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=8, max_length=255)
    role_ids: list[int] | None = None

    not_null = field_validator("name", "email", "password")(_reject_null)


# --- Taxonomy ---

class CategoryCreateRequest(RequestModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str | None = Field(None, max_length=255, pattern=_SLUG_PATTERN)
    parent_id: int | None = None


class CategoryUpdateRequest(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, max_length=255, pattern=_SLUG_PATTERN)
    parent_id: int | None = None

    not_null = field_validator("name", "slug")(_reject_null)


class TagCreateRequest(RequestModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str | None = Field(None, max_length=255, pattern=_SLUG_PATTERN)


class TagUpdateRequest(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, max_length=255, pattern=_SLUG_PATTERN)

    not_null = field_validator("name", "slug")(_reject_null)


# --- Media ---

class MediaUpdateRequest(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    alt_text: str | None = Field(None, max_length=1000)
    caption: str | None = Field(None, max_length=1000)
    description: str | None = Field(None, max_length=5000)

    not_null = field_validator("name")(_reject_null)


# --- Notifications ---

class NotificationMessage(RequestModel):
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(min_length=1, max_length=5000)
    priority: Literal["low", "normal", "high"] = "normal"


class AudienceSpec(RequestModel):
    type: AudienceType
    id: int | None = None

    @model_validator(mode="after")
    def id_required_for_targeted(self):
        if self.type is not AudienceType.ALL and self.id is None:
            raise ValueError(f"An id is required for the {self.type.value} audience.")
        return self


class NotificationCreateRequest(RequestModel):
    type: NotificationType
    message: NotificationMessage
    audiences: list[AudienceSpec] = Field(min_length=1)


# --- Newsletter ---

class NewsletterSubscribeRequest(RequestModel):
    email: EmailStr


class NewsletterTokenRequest(RequestModel):
    email: EmailStr
    token: str = Field(min_length=1)

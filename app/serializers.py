"""
Resource serialisers.

Each helper turns an ORM instance into the plain dict placed in the
``data`` member of the envelope.  Relationships are only rendered when the
repository eager-loaded them; with ``lazy="noload"`` an unloaded
relationship reads as empty/None, so callers choose the loader options that
match the resource they serialise.
"""
from typing import Any, Callable, Iterable

from app.models import (
    Article,
    Category,
    Comment,
    Media,
    Notification,
    NotificationAudience,
    NewsletterSubscriber,
    Permission,
    Role,
    Tag,
    User,
    UserNotification,
)
from app.repositories.base import Page
from app.utils import isoformat


def paginated(page: Page, serializer: Callable[[Any], dict]) -> dict:
    return {
        "items": [serializer(item) for item in page.items],
        "meta": {
            "current_page": page.page,
            "per_page": page.per_page,
            "total": page.total,
            "last_page": page.pages,
            "from": page.first_item,
            "to": page.last_item,
        },
    }


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def author_to_dict(user: User | None) -> dict | None:
    """Compact user reference embedded in other resources."""
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "avatar_url": user.avatar_url}


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "avatar_url": user.avatar_url,
        "bio": user.bio,
        "twitter": user.twitter,
        "facebook": user.facebook,
        "linkedin": user.linkedin,
        "github": user.github,
        "website": user.website,
        "banned_at": isoformat(user.banned_at),
        "blocked_at": isoformat(user.blocked_at),
        "roles": [role_to_dict(r) for r in user.roles],
        "created_at": isoformat(user.created_at),
        "updated_at": isoformat(user.updated_at),
    }


def profile_to_dict(user: User, counts: dict[str, int], is_following: bool | None = None) -> dict:
    """Public profile; no email or moderation timestamps."""
    data = {
        "id": user.id,
        "name": user.name,
        "avatar_url": user.avatar_url,
        "bio": user.bio,
        "twitter": user.twitter,
        "facebook": user.facebook,
        "linkedin": user.linkedin,
        "github": user.github,
        "website": user.website,
        "created_at": isoformat(user.created_at),
        **counts,
    }
    if is_following is not None:
        data["is_following"] = is_following
    return data


def me_to_dict(user: User, roles: Iterable[str], permissions: Iterable[str]) -> dict:
    data = user_to_dict(user)
    data["roles"] = sorted(roles)
    data["permissions"] = sorted(permissions)
    return data


def permission_to_dict(permission: Permission) -> dict:
    return {"id": permission.id, "name": permission.name, "slug": permission.slug}


def role_to_dict(role: Role, with_permissions: bool = False) -> dict:
    data = {"id": role.id, "name": role.name, "slug": role.slug}
    if with_permissions:
        data["permissions"] = [permission_to_dict(p) for p in role.permissions]
    return data


# ---------------------------------------------------------------------------
# Taxonomy / media
# ---------------------------------------------------------------------------

def category_to_dict(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "parent_id": category.parent_id,
        "created_at": isoformat(category.created_at),
    }


def tag_to_dict(tag: Tag) -> dict:
    return {"id": tag.id, "name": tag.name, "slug": tag.slug, "created_at": isoformat(tag.created_at)}


def media_to_dict(media: Media | None) -> dict | None:
    if media is None:
        return None
    return {
        "id": media.id,
        "name": media.name,
        "file_name": media.file_name,
        "mime_type": media.mime_type,
        "disk": media.disk,
        "path": media.path,
        "url": media.url,
        "size": media.size,
        "type": media.type.value,
        "alt_text": media.alt_text,
        "caption": media.caption,
        "description": media.description,
        "metadata": media.metadata_,
        "uploaded_by": media.uploaded_by,
        "uploader": author_to_dict(media.uploader),
        "created_at": isoformat(media.created_at),
        "updated_at": isoformat(media.updated_at),
    }


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------

def article_to_dict(article: Article) -> dict:
    """List view."""
    return {
        "id": article.id,
        "slug": article.slug,
        "title": article.title,
        "subtitle": article.subtitle,
        "excerpt": article.excerpt,
        "status": article.status.value,
        "status_display": article.status.display_name,
        "published_at": isoformat(article.published_at),
        "is_featured": article.is_featured,
        "featured_at": isoformat(article.featured_at),
        "is_pinned": article.is_pinned,
        "pinned_at": isoformat(article.pinned_at),
        "report_count": article.report_count,
        "created_by": article.created_by,
        "author": author_to_dict(article.author),
        "categories": [category_to_dict(c) for c in article.categories],
        "tags": [tag_to_dict(t) for t in article.tags],
        "created_at": isoformat(article.created_at),
        "updated_at": isoformat(article.updated_at),
    }


def article_detail_to_dict(article: Article, extra: dict | None = None) -> dict:
    """Detail view: list fields plus content, moderation and SEO fields."""
    data = article_to_dict(article)
    data.update(
        {
            "content_markdown": article.content_markdown,
            "content_html": article.content_html,
            "meta_title": article.meta_title,
            "meta_description": article.meta_description,
            "last_reported_at": isoformat(article.last_reported_at),
            "report_reason": article.report_reason,
            "approved_by": article.approved_by,
            "approver": author_to_dict(article.approver),
            "updated_by": article.updated_by,
            "featured_media": media_to_dict(article.featured_media),
        }
    )
    if extra:
        data.update(extra)
    return data


_MODERATION_FIELDS = ("report_count", "last_reported_at", "report_reason", "approved_by", "approver", "updated_by")


def public_article_to_dict(article: Article) -> dict:
    data = article_to_dict(article)
    data.pop("report_count")
    return data


def public_article_detail_to_dict(article: Article, extra: dict | None = None) -> dict:
    data = article_detail_to_dict(article, extra)
    for name in _MODERATION_FIELDS:
        data.pop(name, None)
    return data


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "article_id": comment.article_id,
        "parent_comment_id": comment.parent_comment_id,
        "content": comment.content,
        "status": comment.status.value,
        "status_display": comment.status.display_name,
        "user": author_to_dict(comment.user),
        "user_id": comment.user_id,
        "created_at": isoformat(comment.created_at),
        "updated_at": isoformat(comment.updated_at),
    }


def threaded_comment_to_dict(comment: Comment, replies: list[Comment], replies_count: int) -> dict:
    data = comment_to_dict(comment)
    data["replies"] = [comment_to_dict(r) for r in replies]
    data["replies_count"] = replies_count
    return data


def admin_comment_to_dict(comment: Comment) -> dict:
    data = comment_to_dict(comment)
    data.update(
        {
            "article": (
                {"id": comment.article.id, "title": comment.article.title, "slug": comment.article.slug}
                if comment.article is not None
                else None
            ),
            "approved_at": isoformat(comment.approved_at),
            "approved_by": comment.approved_by,
            "approver": author_to_dict(comment.approver),
            "report_count": comment.report_count,
            "last_reported_at": isoformat(comment.last_reported_at),
            "report_reason": comment.report_reason,
            "moderator_notes": comment.moderator_notes,
            "deleted_at": isoformat(comment.deleted_at),
            "deleted_reason": comment.deleted_reason,
            "deleted_by": comment.deleted_by,
        }
    )
    return data


# ---------------------------------------------------------------------------
# Notifications / newsletter
# ---------------------------------------------------------------------------

def audience_to_dict(audience: NotificationAudience) -> dict:
    return {"type": audience.audience_type.value, "id": audience.audience_id}


def notification_to_dict(notification: Notification, recipients: int | None = None) -> dict:
    data = {
        "id": notification.id,
        "type": notification.type.value,
        "message": notification.message,
        "audiences": [audience_to_dict(a) for a in notification.audiences],
        "created_at": isoformat(notification.created_at),
    }
    if recipients is not None:
        data["recipients_count"] = recipients
    return data


def user_notification_to_dict(row: UserNotification) -> dict:
    notification = row.notification
    return {
        "id": row.id,
        "is_read": row.is_read,
        "notification_id": row.notification_id,
        "type": notification.type.value if notification else None,
        "message": notification.message if notification else None,
        "created_at": isoformat(row.created_at),
        "updated_at": isoformat(row.updated_at),
    }


def subscriber_to_dict(subscriber: NewsletterSubscriber) -> dict:
    # verification_token never leaves the server.
    return {
        "id": subscriber.id,
        "email": subscriber.email,
        "user_id": subscriber.user_id,
        "is_verified": subscriber.is_verified,
        "subscribed_at": isoformat(subscriber.subscribed_at),
        "unsubscribed_at": isoformat(subscriber.unsubscribed_at),
        "created_at": isoformat(subscriber.created_at),
    }

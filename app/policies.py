"""
Authorization predicates.

Every predicate has the same shape: the actor may act on *any* resource
through an elevated permission, or on a resource they *own* (foreign-key
equality) through the ordinary permission.  Permissions come from the
request-scoped ``AuthContext`` built by ``app.dependencies``.
"""
from dataclasses import dataclass

from app.exceptions import AuthorizationError
from app.models import Article, Comment, Media, User


@dataclass(frozen=True)
class AuthContext:
    """The authenticated user plus the flat union of their role permissions."""

    user: User
    permissions: frozenset[str]
    roles: frozenset[str]

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def owns(self, owner_id: int | None) -> bool:
        return owner_id is not None and owner_id == self.user.id


def can_act(ctx: AuthContext, owner_id: int | None, any_permission: str, own_permission: str) -> bool:
    if ctx.has_permission(any_permission):
        return True
    return ctx.owns(owner_id) and ctx.has_permission(own_permission)


def authorize(allowed: bool, message: str | None = None) -> None:
    if not allowed:
        raise AuthorizationError(message)


# --- Articles ---

def can_view_article(ctx: AuthContext, article: Article) -> bool:
    return ctx.has_permission("view_posts")


def can_create_article(ctx: AuthContext) -> bool:
    return ctx.has_permission("create_posts")


def can_update_article(ctx: AuthContext, article: Article) -> bool:
    return can_act(ctx, article.created_by, "edit_others_posts", "edit_posts")


def can_delete_article(ctx: AuthContext, article: Article) -> bool:
    return can_act(ctx, article.created_by, "delete_others_posts", "delete_posts")


def can_trash_article(ctx: AuthContext, article: Article) -> bool:
    return ctx.has_permission("trash_posts") and can_delete_article(ctx, article)


# --- Comments ---

def can_update_comment(ctx: AuthContext, comment: Comment) -> bool:
    return can_act(ctx, comment.user_id, "edit_comments", "edit_own_comments")


def can_delete_comment(ctx: AuthContext, comment: Comment) -> bool:
    return can_act(ctx, comment.user_id, "delete_comments", "delete_own_comments")


# --- Media ---

def can_update_media(ctx: AuthContext, media: Media) -> bool:
    return can_act(ctx, media.uploaded_by, "manage_media", "edit_media")


def can_delete_media(ctx: AuthContext, media: Media) -> bool:
    return can_act(ctx, media.uploaded_by, "manage_media", "delete_media")


# --- Users ---

def ensure_not_self(ctx: AuthContext, user_id: int, message: str) -> None:
    """Reject administrative or social actions an actor targets at themselves."""
    if ctx.user.id == user_id:
        raise AuthorizationError(message)

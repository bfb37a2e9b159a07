"""
Permission catalogue and the default role → permission map.

``sync_roles_and_permissions`` is idempotent: it creates missing rows and
replaces each role's permission set with the one declared here.  It is used
by ``scripts/seed.py`` and by the test fixtures.
"""
import logging

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.enums import UserRole
from app.models import Permission, Role, permission_role

logger = logging.getLogger(__name__)

PERMISSIONS: tuple[str, ...] = (
    # Users
    "view_users", "create_users", "edit_users", "delete_users", "ban_users", "block_users",
    "assign_roles", "edit_profile", "view_own_profile",
    # Articles
    "view_posts", "create_posts", "edit_posts", "delete_posts", "publish_posts",
    "edit_others_posts", "delete_others_posts", "approve_posts", "feature_posts", "pin_posts",
    "archive_posts", "restore_posts", "trash_posts", "report_posts", "like_posts", "dislike_posts",
    # Comments
    "comment_moderate", "create_comments", "edit_comments", "delete_comments", "approve_comments",
    "report_comments", "view_comments", "edit_own_comments", "delete_own_comments",
    # Taxonomy
    "manage_categories", "manage_tags",
    # Newsletter
    "view_newsletter_subscribers", "manage_newsletter_subscribers",
    # Notifications
    "view_notifications", "send_notifications", "read_notifications",
    # Media
    "upload_media", "view_media", "edit_media", "delete_media", "manage_media",
    # Dashboard
    "view_dashboard",
    # Social
    "follow_users", "unfollow_users", "view_user_profiles",
    # General
    "access_api",
)

_READER = (
    "edit_profile", "view_own_profile", "view_posts", "report_posts", "like_posts", "dislike_posts",
    "create_comments", "report_comments", "view_comments", "edit_own_comments",
    "delete_own_comments", "follow_users", "unfollow_users", "view_user_profiles",
    "read_notifications", "access_api",
)

_WRITER = _READER + (
    "create_posts", "edit_posts", "delete_posts", "trash_posts", "upload_media", "view_media",
)

ROLE_PERMISSIONS: dict[UserRole, tuple[str, ...]] = {
    UserRole.ADMINISTRATOR: PERMISSIONS,
    UserRole.EDITOR: _WRITER + (
        "view_users", "publish_posts", "edit_others_posts", "delete_others_posts", "approve_posts",
        "feature_posts", "pin_posts", "archive_posts", "restore_posts", "comment_moderate",
        "edit_comments", "delete_comments", "approve_comments", "manage_categories", "manage_tags",
        "view_newsletter_subscribers", "view_notifications", "edit_media", "delete_media",
        "manage_media", "view_dashboard",
    ),
    UserRole.AUTHOR: _WRITER + (
        "publish_posts", "archive_posts", "restore_posts", "edit_media", "delete_media",
    ),
    UserRole.CONTRIBUTOR: _WRITER,
    UserRole.SUBSCRIBER: _READER,
}


def _slug(name: str) -> str:
    return name.replace("_", "-")


async def sync_roles_and_permissions(db: AsyncSession) -> dict[str, Role]:
    """Create missing roles/permissions and sync each role's permissions."""
    existing = {p.name: p for p in (await db.execute(select(Permission))).scalars()}
    for name in PERMISSIONS:
        if name not in existing:
            permission = Permission(name=name, slug=_slug(name))
            db.add(permission)
            existing[name] = permission
    await db.flush()

    roles = {r.name: r for r in (await db.execute(select(Role))).scalars()}
    for role_name, permission_names in ROLE_PERMISSIONS.items():
        role = roles.get(role_name.value)
        if role is None:
            role = Role(name=role_name.value, slug=role_name.value)
            db.add(role)
            await db.flush()
            roles[role.name] = role

        await db.execute(delete(permission_role).where(permission_role.c.role_id == role.id))
        rows = [
            {"role_id": role.id, "permission_id": existing[name].id}
            for name in dict.fromkeys(permission_names)
        ]
        await db.execute(insert(permission_role), rows)
        logger.info("Synced %d permission(s) for role %s", len(rows), role.name)

    await db.flush()
    return roles

"""
Direct service-layer tests — exercises business logic without HTTP overhead.

These tests call service functions directly with a database session and
an ``AuthContext``, covering the rules that are awkward to reach through
the endpoints: transition tables, audience resolution, reaction switching
and the dashboard aggregates.
"""
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dtos import ArticleFilters, AudienceDTO, CreateArticleDTO, CreateCommentDTO
from app.enums import ArticleStatus, AudienceType, CommentStatus, ReactionType, UserRole
from app.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.models import Article, Role
from app.services import (
    article_admin_service,
    article_service,
    article_status_service,
    comment_service,
    notification_service,
    stats_service,
)
from app.utils import utcnow


# ---------------------------------------------------------------------------
# article_status_service
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("status, action, expected", [
    (ArticleStatus.DRAFT, "approve", ArticleStatus.PUBLISHED),
    (ArticleStatus.REVIEW, "reject", ArticleStatus.DRAFT),
    (ArticleStatus.PUBLISHED, "archive", ArticleStatus.ARCHIVED),
    (ArticleStatus.ARCHIVED, "restore", ArticleStatus.PUBLISHED),
    (ArticleStatus.SCHEDULED, "trash", ArticleStatus.TRASHED),
    (ArticleStatus.TRASHED, "restore_from_trash", ArticleStatus.DRAFT),
])
def test_ensure_transition_allowed(status, action, expected):
    assert article_status_service.ensure_transition(Article(status=status), action) is expected


@pytest.mark.parametrize("status, action", [
    (ArticleStatus.PUBLISHED, "approve"),
    (ArticleStatus.DRAFT, "archive"),
    (ArticleStatus.PUBLISHED, "restore"),
    (ArticleStatus.TRASHED, "trash"),
    (ArticleStatus.DRAFT, "restore_from_trash"),
])
def test_ensure_transition_rejected(status, action):
    with pytest.raises(ValidationError) as exc:
        article_status_service.ensure_transition(Article(status=status), action)
    assert "status" in exc.value.errors


@pytest.mark.asyncio
async def test_approve_publishes_and_records_approver(
    db_session: AsyncSession, make_user, make_article, auth_context
):
    author = await make_user(UserRole.AUTHOR)
    editor = await make_user(UserRole.EDITOR)
    draft = await make_article(author, status=ArticleStatus.DRAFT)

    article = await article_status_service.approve(db_session, await auth_context(editor), draft.id)
    assert article.status is ArticleStatus.PUBLISHED
    assert article.approved_by == editor.id
    assert article.published_at is not None


# ---------------------------------------------------------------------------
# article_admin_service / article_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article_via_service(db_session: AsyncSession, make_user, auth_context):
    author = await make_user(UserRole.AUTHOR)
    dto = CreateArticleDTO(
        slug="service-article",
        title="Service Article",
        content_markdown="Body",
        created_by=author.id,
        published_at=utcnow() + timedelta(hours=2),
    )
    article = await article_admin_service.create_article(db_session, await auth_context(author), dto)
    assert article.status is ArticleStatus.SCHEDULED
    assert article.approved_by == author.id
    assert article.author.id == author.id
    assert article.categories == []

    # Scheduled for later, so not yet public.
    page = await article_service.list_articles(db_session, ArticleFilters(), 1, 10)
    assert page.total == 0


@pytest.mark.asyncio
async def test_create_article_rejects_unknown_tags(db_session: AsyncSession, make_user, auth_context):
    contributor = await make_user(UserRole.CONTRIBUTOR)
    dto = CreateArticleDTO(
        slug="tags", title="Tags", content_markdown="Body", created_by=contributor.id, tag_ids=(404,)
    )
    with pytest.raises(ValidationError) as exc:
        await article_admin_service.create_article(db_session, await auth_context(contributor), dto)
    assert "tag_ids" in exc.value.errors


@pytest.mark.asyncio
async def test_react_switches_reaction(db_session: AsyncSession, make_user, make_article):
    author = await make_user(UserRole.AUTHOR)
    reader = await make_user(UserRole.SUBSCRIBER)
    article = await make_article(author)

    result = await article_service.react(db_session, article.slug, ReactionType.LIKE, reader.id, None)
    assert (result["like"], result["dislike"]) == (1, 0)
    # Repeating is a no-op.
    result = await article_service.react(db_session, article.slug, ReactionType.LIKE, reader.id, None)
    assert (result["like"], result["dislike"]) == (1, 0)
    result = await article_service.react(db_session, article.slug, ReactionType.DISLIKE, reader.id, None)
    assert (result["like"], result["dislike"]) == (0, 1)


@pytest.mark.asyncio
async def test_guest_reaction_needs_address(db_session: AsyncSession, make_user, make_article):
    author = await make_user(UserRole.AUTHOR)
    article = await make_article(author)
    with pytest.raises(ValidationError):
        await article_service.react(db_session, article.slug, ReactionType.LIKE, None, None)


@pytest.mark.asyncio
async def test_get_article_unknown_slug(db_session: AsyncSession):
    with pytest.raises(NotFoundError):
        await article_service.get_article(db_session, "nope")


# ---------------------------------------------------------------------------
# comment_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_comment_is_pending(db_session: AsyncSession, make_user, make_article, auth_context):
    author = await make_user(UserRole.AUTHOR)
    reader = await make_user(UserRole.SUBSCRIBER)
    article = await make_article(author)

    comment = await comment_service.create_comment(
        db_session, await auth_context(reader), CreateCommentDTO(article.id, reader.id, "Nice post")
    )
    assert comment.status is CommentStatus.PENDING
    assert comment.user.id == reader.id


@pytest.mark.asyncio
async def test_moderation_requires_permission(db_session: AsyncSession, make_user, make_article, auth_context):
    author = await make_user(UserRole.AUTHOR)
    article = await make_article(author)
    ctx = await auth_context(author)
    comment = await comment_service.create_comment(
        db_session, ctx, CreateCommentDTO(article.id, author.id, "Self comment")
    )
    with pytest.raises(AuthorizationError):
        await comment_service.approve_comment(db_session, ctx, comment.id)


# ---------------------------------------------------------------------------
# notification_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_resolve_recipients_unions_audiences(db_session: AsyncSession, make_user):
    editor = await make_user(UserRole.EDITOR)
    author = await make_user(UserRole.AUTHOR)
    await make_user(UserRole.SUBSCRIBER)
    editor_role = (await db_session.execute(select(Role).where(Role.name == "editor"))).scalar_one()

    recipients = await notification_service.resolve_recipients(db_session, (
        AudienceDTO(AudienceType.ROLE, editor_role.id),
        AudienceDTO(AudienceType.USER, author.id),
        AudienceDTO(AudienceType.USER, editor.id),
    ))
    assert recipients == {editor.id, author.id}


@pytest.mark.asyncio
async def test_resolve_recipients_all(db_session: AsyncSession, make_user):
    users = [await make_user(UserRole.SUBSCRIBER) for _ in range(3)]
    recipients = await notification_service.resolve_recipients(
        db_session, (AudienceDTO(AudienceType.USER, users[0].id), AudienceDTO(AudienceType.ALL))
    )
    assert recipients == {u.id for u in users}


# ---------------------------------------------------------------------------
# stats_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_dashboard_stats(db_session: AsyncSession, make_user, make_article, auth_context):
    editor = await make_user(UserRole.EDITOR)
    await make_article(editor)
    await make_article(editor, status=ArticleStatus.DRAFT)

    stats = await stats_service.get_stats(db_session, await auth_context(editor))
    assert stats["total_articles"] == 2
    assert stats["articles_by_status"]["published"] == 1
    assert stats["articles_by_status"]["draft"] == 1
    assert stats["articles_by_status"]["trashed"] == 0
    assert stats["total_users"] == 1
    assert stats["avg_comments_per_article"] == 0
    assert stats["cache_info"]["connected"] is False


@pytest.mark.asyncio
async def test_dashboard_stats_requires_permission(db_session: AsyncSession, make_user, auth_context):
    author = await make_user(UserRole.AUTHOR)
    with pytest.raises(AuthorizationError):
        await stats_service.get_stats(db_session, await auth_context(author))

"""
DTO tests — request models are turned into plain dataclasses; these checks
cover the omitted-vs-null distinction and derived values.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.dtos import (
    UNSET,
    AudienceDTO,
    CreateArticleDTO,
    CreateNotificationDTO,
    CreateUserDTO,
    UpdateArticleDTO,
    UpdateProfileDTO,
    is_set,
)
from app.enums import ArticleStatus, AudienceType
from app.schemas import (
    ArticleCreateRequest,
    ArticleUpdateRequest,
    NotificationCreateRequest,
    ProfileUpdateRequest,
    UserCreateRequest,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_unset_is_falsy_and_distinct_from_none():
    assert not UNSET
    assert UNSET is not None
    assert not is_set(UNSET)
    assert is_set(None)


def test_update_profile_changes_keep_explicit_null():
    payload = ProfileUpdateRequest.model_validate({"bio": None, "github": "octo"})
    dto = UpdateProfileDTO.from_request(payload)
    assert dto.changes() == {"bio": None, "github": "octo"}
    assert dto.name is UNSET


def test_update_article_normalises_collections():
    payload = ArticleUpdateRequest.model_validate({"tag_ids": None, "subtitle": "New"})
    dto = UpdateArticleDTO.from_request(payload)
    assert dto.tag_ids == ()
    assert dto.category_ids is UNSET
    assert dto.column_changes() == {"subtitle": "New"}


def test_create_article_derives_slug_from_title():
    payload = ArticleCreateRequest.model_validate({"title": "  Hello, World!  ", "content_markdown": "Body"})
    dto = CreateArticleDTO.from_request(payload, created_by=7)
    assert dto.title == "Hello, World!"
    assert dto.slug == "hello-world"
    assert dto.created_by == 7


@pytest.mark.parametrize("offset, expected", [
    (None, ArticleStatus.DRAFT),
    (timedelta(days=1), ArticleStatus.SCHEDULED),
    (timedelta(0), ArticleStatus.PUBLISHED),
    (-timedelta(days=1), ArticleStatus.PUBLISHED),
])
def test_create_article_status_from_published_at(offset, expected):
    published_at = None if offset is None else NOW + offset
    dto = CreateArticleDTO(slug="s", title="T", content_markdown="B", created_by=1, published_at=published_at)
    assert dto.status(NOW) is expected
    columns = dto.to_columns(NOW)
    assert columns["status"] is expected
    assert columns["approved_by"] == (None if expected is ArticleStatus.DRAFT else 1)


def test_naive_published_at_treated_as_utc():
    payload = ArticleCreateRequest.model_validate(
        {"title": "T", "content_markdown": "B", "published_at": "2024-06-01T10:00:00"}
    )
    dto = CreateArticleDTO.from_request(payload, created_by=1)
    assert dto.published_at.tzinfo is not None
    assert dto.status(NOW) is ArticleStatus.PUBLISHED


def test_create_user_merges_role_id_into_role_ids():
    payload = UserCreateRequest.model_validate({
        "name": "Someone",
        "email": "Someone@Example.com",
        "password": "password123",
        "role_id": 3,
        "role_ids": [1, 3],
    })
    dto = CreateUserDTO.from_request(payload)
    assert dto.email == "someone@example.com"
    assert dto.role_ids == (1, 3)

    payload = UserCreateRequest.model_validate({
        "name": "Someone", "email": "s@example.com", "password": "password123", "role_id": 2,
    })
    assert CreateUserDTO.from_request(payload).role_ids == (2,)


def test_notification_dto_collects_message_and_audiences():
    payload = NotificationCreateRequest.model_validate({
        "type": "newsletter",
        "message": {"title": "Issue 12", "body": "This week..."},
        "audiences": [{"type": "all"}, {"type": "role", "id": 2}],
    })
    dto = CreateNotificationDTO.from_request(payload)
    assert dto.message == {"title": "Issue 12", "body": "This week...", "priority": "normal"}
    assert dto.audiences == (AudienceDTO(AudienceType.ALL, None), AudienceDTO(AudienceType.ROLE, 2))

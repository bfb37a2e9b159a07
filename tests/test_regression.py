"""
Regression tests for issues found during code review.

1. Every error, including framework 404s and request validation, must use
   the {status, message, data, error} envelope
2. Report counters must not lose increments (atomic UPDATE, not read-modify-write)
3. X-Query-Count must report the actual query count (not always 0)
4. CORS must not set allow_credentials=true with allow_origins=*
5. Updating an article must never change its status
6. An unexpected error on an authenticated request must still be logged and
   rendered as the generic 500 envelope
7. X-Forwarded-For is only honoured behind a trusted proxy and must be a
   valid address
"""
import logging

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.enums import ArticleStatus, UserRole
from app.main import app
from app.models import Article
from app.services import article_status_service, taxonomy_service


# ---------------------------------------------------------------------------
# 1. Envelope on every error path
# ---------------------------------------------------------------------------

def _assert_error_envelope(body: dict) -> None:
    assert set(body) == {"status", "message", "data", "error"}
    assert body["status"] is False
    assert body["data"] is None
    assert body["message"]


@pytest.mark.asyncio
async def test_unknown_route_uses_envelope(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/does-not-exist")
    assert resp.status_code == 404
    _assert_error_envelope(resp.json())


@pytest.mark.asyncio
async def test_request_validation_uses_envelope(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/login", json={"email": "not-an-email"})
    assert resp.status_code == 422
    body = resp.json()
    _assert_error_envelope(body)
    assert body["error"]["password"] == ["The password field is required."]
    assert "email" in body["error"]


@pytest.mark.asyncio
async def test_query_parameter_validation_uses_envelope(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/articles?per_page=0")
    assert resp.status_code == 422
    _assert_error_envelope(resp.json())
    assert "per_page" in resp.json()["error"]


@pytest.mark.asyncio
async def test_auth_errors_use_envelope(async_client: AsyncClient, make_user, auth_headers):
    resp = await async_client.get("/api/v1/me")
    assert resp.status_code == 401
    _assert_error_envelope(resp.json())
    assert resp.json()["message"] == "Unauthenticated."

    user = await make_user(UserRole.SUBSCRIBER)
    resp = await async_client.get("/api/v1/admin/stats", headers=await auth_headers(user))
    assert resp.status_code == 403
    _assert_error_envelope(resp.json())
    assert resp.json()["message"] == "This action is unauthorized."


@pytest.mark.asyncio
async def test_not_found_names_the_model(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/articles/missing-slug")
    assert resp.status_code == 404
    _assert_error_envelope(resp.json())
    assert resp.json()["message"] == "Article not found"


# ---------------------------------------------------------------------------
# 2. Report counters
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_report_count_uses_database_value(
    db_session: AsyncSession, make_user, make_article, auth_context
):
    """Each report is one UPDATE ... SET report_count = report_count + 1."""
    author = await make_user(UserRole.AUTHOR)
    reader = await make_user(UserRole.SUBSCRIBER)
    article = await make_article(author)
    ctx = await auth_context(reader)

    await article_status_service.report(db_session, ctx, article.id, "spam")
    await article_status_service.report(db_session, ctx, article.id, "spam again")
    await db_session.commit()

    fresh = (await db_session.execute(
        select(Article).where(Article.id == article.id).execution_options(populate_existing=True)
    )).scalar_one()
    assert fresh.report_count == 2
    assert fresh.report_reason == "spam again"
    assert fresh.status is ArticleStatus.PUBLISHED


# ---------------------------------------------------------------------------
# 3. X-Query-Count
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_query_count_header_reports_queries(async_client: AsyncClient, make_user, make_article):
    author = await make_user(UserRole.AUTHOR)
    article = await make_article(author)

    resp = await async_client.get(f"/api/v1/articles/{article.slug}")
    assert resp.status_code == 200
    assert int(resp.headers["x-query-count"]) > 0
    assert float(resp.headers["x-response-time-ms"]) >= 0

    resp = await async_client.get("/health")
    assert resp.headers["x-query-count"] == "0"


@pytest.mark.asyncio
async def test_security_headers_present(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.headers["x-content-type-options"] == "nosniff"
    assert resp.headers["x-frame-options"] == "DENY"
    assert resp.headers["referrer-policy"] == "strict-origin-when-cross-origin"


# ---------------------------------------------------------------------------
# 4. CORS headers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cors_no_credentials_with_wildcard_origin(async_client: AsyncClient):
    """
    When allow_origins=["*"], the response must NOT include
    Access-Control-Allow-Credentials: true, per the CORS specification.
    """
    resp = await async_client.options(
        "/api/v1/articles",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    cred_header = resp.headers.get("access-control-allow-credentials", "").lower()
    assert cred_header != "true", (
        "CORS must not combine allow_origins=* with allow_credentials=true"
    )


# ---------------------------------------------------------------------------
# 5. Status only changes through lifecycle actions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_with_past_published_at_keeps_draft(
    async_client: AsyncClient, make_user, make_article, auth_headers
):
    author = await make_user(UserRole.AUTHOR)
    article = await make_article(author, status=ArticleStatus.DRAFT)

    resp = await async_client.put(
        f"/api/v1/admin/articles/{article.id}",
        json={"published_at": "2020-01-01T00:00:00Z"},
        headers=await auth_headers(author),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "draft"
    assert (await async_client.get(f"/api/v1/articles/{article.slug}")).status_code == 404


# ---------------------------------------------------------------------------
# 6. Unexpected errors on authenticated requests
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unexpected_error_for_authenticated_user(make_user, auth_headers, monkeypatch, caplog):
    admin = await make_user(UserRole.ADMINISTRATOR)
    headers = await auth_headers(admin)

    async def broken(*args, **kwargs):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(taxonomy_service, "create_tag", broken)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    with caplog.at_level(logging.ERROR, logger="app.exceptions"):
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post("/api/v1/admin/tags", json={"name": "Boom"}, headers=headers)

    assert resp.status_code == 500
    body = resp.json()
    _assert_error_envelope(body)
    assert body["message"] == "Something went wrong. Please try again later."
    assert body["error"] == {"code": "server_error"}
    assert "database exploded" not in resp.text

    records = [r for r in caplog.records if r.levelno == logging.ERROR and r.name == "app.exceptions"]
    assert len(records) == 1
    assert isinstance(records[0].exc_info[1], RuntimeError)
    assert f"'user_id': {admin.id}" in records[0].getMessage()


# ---------------------------------------------------------------------------
# 7. Client address for guest reactions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_forwarded_header_ignored_without_trusted_proxy(
    async_client: AsyncClient, make_user, make_article
):
    author = await make_user(UserRole.AUTHOR)
    article = await make_article(author)

    for address in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
        resp = await async_client.post(
            f"/api/v1/articles/{article.slug}/like", headers={"X-Forwarded-For": address}
        )
        assert resp.status_code == 200

    # Every request came from the same peer, so only one guest like counts.
    data = (await async_client.get(f"/api/v1/articles/{article.slug}")).json()["data"]
    assert data["reactions"]["like"] == 1


@pytest.mark.asyncio
async def test_forwarded_header_from_trusted_proxy(
    async_client: AsyncClient, make_user, make_article, monkeypatch
):
    monkeypatch.setattr(settings, "TRUSTED_PROXIES", ["127.0.0.1"])
    author = await make_user(UserRole.AUTHOR)
    article = await make_article(author)

    await async_client.post(f"/api/v1/articles/{article.slug}/like", headers={"X-Forwarded-For": "10.0.0.1"})
    await async_client.post(
        f"/api/v1/articles/{article.slug}/like", headers={"X-Forwarded-For": "10.0.0.2, 127.0.0.1"}
    )
    # Not an address: falls back to the proxy itself.
    await async_client.post(
        f"/api/v1/articles/{article.slug}/like", headers={"X-Forwarded-For": "x" * 60}
    )

    data = (await async_client.get(f"/api/v1/articles/{article.slug}")).json()["data"]
    assert data["reactions"]["like"] == 3

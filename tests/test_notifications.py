"""
Notification tests — authoring and fan-out by audience, the recipient inbox
and ownership checks.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.enums import UserRole
from app.models import Category, Role


def _payload(*audiences, type="system_alert"):
    return {
        "type": type,
        "message": {"title": "Heads up", "body": "Maintenance tonight", "priority": "high"},
        "audiences": list(audiences),
    }


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_audience_all_reaches_every_user(async_client: AsyncClient, make_user, auth_headers):
    admin = await make_user(UserRole.ADMINISTRATOR)
    for _ in range(3):
        await make_user(UserRole.SUBSCRIBER)

    resp = await async_client.post(
        "/api/v1/admin/notifications", json=_payload({"type": "all"}), headers=await auth_headers(admin)
    )
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["recipients_count"] == 4
    assert data["audiences"] == [{"type": "all", "id": None}]
    assert data["message"]["priority"] == "high"


@pytest.mark.asyncio
async def test_overlapping_audiences_deliver_once(
    async_client: AsyncClient, make_user, auth_headers, db_session: AsyncSession
):
    """A user matched by several audiences still gets a single inbox row."""
    admin = await make_user(UserRole.ADMINISTRATOR)
    author = await make_user(UserRole.AUTHOR)
    await make_user(UserRole.SUBSCRIBER)
    author_role = (await db_session.execute(select(Role).where(Role.name == "author"))).scalar_one()

    resp = await async_client.post(
        "/api/v1/admin/notifications",
        json=_payload({"type": "user", "id": author.id}, {"type": "role", "id": author_role.id}),
        headers=await auth_headers(admin),
    )
    assert resp.json()["data"]["recipients_count"] == 1

    inbox = (await async_client.get("/api/v1/user/notifications", headers=await auth_headers(author))).json()
    assert inbox["data"]["meta"]["total"] == 1


@pytest.mark.asyncio
async def test_category_audience_targets_its_authors(
    async_client: AsyncClient, make_user, make_article, auth_headers, db_session: AsyncSession
):
    admin = await make_user(UserRole.ADMINISTRATOR)
    filed = await make_user(UserRole.AUTHOR)
    elsewhere = await make_user(UserRole.AUTHOR)
    category = Category(name="Python", slug="python")
    db_session.add(category)
    await db_session.commit()
    await make_article(filed, categories=[category])
    await make_article(elsewhere)

    resp = await async_client.post(
        "/api/v1/admin/notifications",
        json=_payload({"type": "category", "id": category.id}),
        headers=await auth_headers(admin),
    )
    assert resp.json()["data"]["recipients_count"] == 1
    unread = (await async_client.get(
        "/api/v1/user/notifications/unread-count", headers=await auth_headers(filed)
    )).json()["data"]
    assert unread == {"unread_count": 1}


@pytest.mark.asyncio
async def test_unknown_audience_target_is_rejected(async_client: AsyncClient, make_user, auth_headers):
    admin = await make_user(UserRole.ADMINISTRATOR)
    resp = await async_client.post(
        "/api/v1/admin/notifications",
        json=_payload({"type": "user", "id": 9999}),
        headers=await auth_headers(admin),
    )
    assert resp.status_code == 422
    assert "audiences" in resp.json()["error"]


@pytest.mark.asyncio
async def test_targeted_audience_requires_id(async_client: AsyncClient, make_user, auth_headers):
    admin = await make_user(UserRole.ADMINISTRATOR)
    resp = await async_client.post(
        "/api/v1/admin/notifications", json=_payload({"type": "role"}), headers=await auth_headers(admin)
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_sending_requires_permission(async_client: AsyncClient, make_user, auth_headers):
    editor = await make_user(UserRole.EDITOR)
    resp = await async_client.post(
        "/api/v1/admin/notifications", json=_payload({"type": "all"}), headers=await auth_headers(editor)
    )
    assert resp.status_code == 403
    # Editors may still browse what was sent.
    assert (await async_client.get("/api/v1/admin/notifications", headers=await auth_headers(editor))).status_code == 200


@pytest.mark.asyncio
async def test_admin_notification_detail_and_stats(async_client: AsyncClient, make_user, auth_headers):
    admin = await make_user(UserRole.ADMINISTRATOR)
    await make_user(UserRole.SUBSCRIBER)
    headers = await auth_headers(admin)
    created = (await async_client.post(
        "/api/v1/admin/notifications", json=_payload({"type": "all"}, type="newsletter"), headers=headers
    )).json()["data"]

    detail = (await async_client.get(f"/api/v1/admin/notifications/{created['id']}", headers=headers)).json()["data"]
    assert detail["recipients_count"] == 2

    stats = (await async_client.get("/api/v1/admin/notifications/stats", headers=headers)).json()["data"]
    assert stats["by_type"]["newsletter"] == 1
    assert stats["deliveries"] == 2
    assert stats["unread"] == 2


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_mark_read_and_mark_all_read(async_client: AsyncClient, make_user, auth_headers):
    admin = await make_user(UserRole.ADMINISTRATOR)
    reader = await make_user(UserRole.SUBSCRIBER)
    admin_headers = await auth_headers(admin)
    for _ in range(3):
        await async_client.post(
            "/api/v1/admin/notifications",
            json=_payload({"type": "user", "id": reader.id}),
            headers=admin_headers,
        )

    headers = await auth_headers(reader)
    items = (await async_client.get("/api/v1/user/notifications", headers=headers)).json()["data"]["items"]
    assert len(items) == 3

    resp = await async_client.post(f"/api/v1/user/notifications/{items[0]['id']}/mark-read", headers=headers)
    assert resp.json()["data"]["is_read"] is True

    unread = (await async_client.get("/api/v1/user/notifications?is_read=false", headers=headers)).json()
    assert unread["data"]["meta"]["total"] == 2

    resp = await async_client.post("/api/v1/user/notifications/mark-all-read", headers=headers)
    assert resp.json()["data"] == {"updated": 2}
    count = (await async_client.get("/api/v1/user/notifications/unread-count", headers=headers)).json()["data"]
    assert count["unread_count"] == 0


@pytest.mark.asyncio
async def test_inbox_filter_by_type(async_client: AsyncClient, make_user, auth_headers):
    admin = await make_user(UserRole.ADMINISTRATOR)
    reader = await make_user(UserRole.SUBSCRIBER)
    admin_headers = await auth_headers(admin)
    target = {"type": "user", "id": reader.id}
    await async_client.post("/api/v1/admin/notifications", json=_payload(target), headers=admin_headers)
    await async_client.post(
        "/api/v1/admin/notifications", json=_payload(target, type="newsletter"), headers=admin_headers
    )

    resp = await async_client.get(
        "/api/v1/user/notifications?type=newsletter", headers=await auth_headers(reader)
    )
    items = resp.json()["data"]["items"]
    assert [i["type"] for i in items] == ["newsletter"]


@pytest.mark.asyncio
async def test_cannot_touch_someone_elses_notification(async_client: AsyncClient, make_user, auth_headers):
    admin = await make_user(UserRole.ADMINISTRATOR)
    owner = await make_user(UserRole.SUBSCRIBER)
    intruder = await make_user(UserRole.SUBSCRIBER)
    await async_client.post(
        "/api/v1/admin/notifications",
        json=_payload({"type": "user", "id": owner.id}),
        headers=await auth_headers(admin),
    )
    row_id = (await async_client.get(
        "/api/v1/user/notifications", headers=await auth_headers(owner)
    )).json()["data"]["items"][0]["id"]

    headers = await auth_headers(intruder)
    resp = await async_client.post(f"/api/v1/user/notifications/{row_id}/mark-read", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["message"] == "You can only access your own notifications."
    assert (await async_client.delete(f"/api/v1/user/notifications/{row_id}", headers=headers)).status_code == 403


@pytest.mark.asyncio
async def test_delete_own_notification(async_client: AsyncClient, make_user, auth_headers):
    admin = await make_user(UserRole.ADMINISTRATOR)
    reader = await make_user(UserRole.SUBSCRIBER)
    await async_client.post(
        "/api/v1/admin/notifications",
        json=_payload({"type": "user", "id": reader.id}),
        headers=await auth_headers(admin),
    )
    headers = await auth_headers(reader)
    row_id = (await async_client.get("/api/v1/user/notifications", headers=headers)).json()["data"]["items"][0]["id"]

    assert (await async_client.delete(f"/api/v1/user/notifications/{row_id}", headers=headers)).status_code == 200
    assert (await async_client.post(
        f"/api/v1/user/notifications/{row_id}/mark-read", headers=headers
    )).status_code == 404

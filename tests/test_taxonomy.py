"""
Taxonomy tests — public category/tag listings and their administration,
including the category tree rules.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.enums import UserRole
from app.models import Category


async def _category(client: AsyncClient, headers, name: str, parent_id: int | None = None) -> dict:
    resp = await client.post(
        "/api/v1/admin/categories", json={"name": name, "parent_id": parent_id}, headers=headers
    )
    assert resp.status_code == 201
    return resp.json()["data"]


async def _fresh(db: AsyncSession, category_id: int) -> Category | None:
    result = await db.execute(
        select(Category).where(Category.id == category_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_and_list_categories(async_client: AsyncClient, make_user, auth_headers):
    editor = await make_user(UserRole.EDITOR)
    headers = await auth_headers(editor)
    created = await _category(async_client, headers, "Web Development")
    assert created["slug"] == "web-development"
    await _category(async_client, headers, "Backend", parent_id=created["id"])

    listing = (await async_client.get("/api/v1/categories")).json()["data"]
    assert [c["name"] for c in listing] == ["Backend", "Web Development"]
    assert listing[0]["parent_id"] == created["id"]


@pytest.mark.asyncio
async def test_author_cannot_manage_categories(async_client: AsyncClient, make_user, auth_headers):
    author = await make_user(UserRole.AUTHOR)
    resp = await async_client.post(
        "/api/v1/admin/categories", json={"name": "Nope"}, headers=await auth_headers(author)
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_category_slug(async_client: AsyncClient, make_user, auth_headers):
    editor = await make_user(UserRole.EDITOR)
    headers = await auth_headers(editor)
    await _category(async_client, headers, "Python")
    resp = await async_client.post("/api/v1/admin/categories", json={"name": "Python"}, headers=headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["slug"] == ["The slug has already been taken."]


@pytest.mark.asyncio
async def test_unknown_parent_rejected(async_client: AsyncClient, make_user, auth_headers):
    editor = await make_user(UserRole.EDITOR)
    resp = await async_client.post(
        "/api/v1/admin/categories", json={"name": "Orphan", "parent_id": 9999}, headers=await auth_headers(editor)
    )
    assert resp.status_code == 422
    assert "parent_id" in resp.json()["error"]


@pytest.mark.asyncio
async def test_category_cycles_rejected(async_client: AsyncClient, make_user, auth_headers):
    """A category can be neither its own parent nor a child of its descendants."""
    editor = await make_user(UserRole.EDITOR)
    headers = await auth_headers(editor)
    root = await _category(async_client, headers, "Root")
    child = await _category(async_client, headers, "Child", parent_id=root["id"])
    grandchild = await _category(async_client, headers, "Grandchild", parent_id=child["id"])

    for parent_id in (root["id"], grandchild["id"]):
        resp = await async_client.put(
            f"/api/v1/admin/categories/{root['id']}", json={"parent_id": parent_id}, headers=headers
        )
        assert resp.status_code == 422
        assert "parent_id" in resp.json()["error"]

    # Moving a leaf to the top is fine.
    resp = await async_client.put(
        f"/api/v1/admin/categories/{grandchild['id']}", json={"parent_id": None}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["parent_id"] is None


@pytest.mark.asyncio
async def test_delete_category_reparents_children(
    async_client: AsyncClient, make_user, auth_headers, db_session: AsyncSession
):
    editor = await make_user(UserRole.EDITOR)
    headers = await auth_headers(editor)
    root = await _category(async_client, headers, "Root")
    middle = await _category(async_client, headers, "Middle", parent_id=root["id"])
    leaf = await _category(async_client, headers, "Leaf", parent_id=middle["id"])

    resp = await async_client.delete(f"/api/v1/admin/categories/{middle['id']}", headers=headers)
    assert resp.status_code == 200
    assert await _fresh(db_session, middle["id"]) is None
    assert (await _fresh(db_session, leaf["id"])).parent_id == root["id"]


@pytest.mark.asyncio
async def test_delete_category_with_children(
    async_client: AsyncClient, make_user, auth_headers, db_session: AsyncSession
):
    editor = await make_user(UserRole.EDITOR)
    headers = await auth_headers(editor)
    root = await _category(async_client, headers, "Root")
    child = await _category(async_client, headers, "Child", parent_id=root["id"])
    grandchild = await _category(async_client, headers, "Grandchild", parent_id=child["id"])

    resp = await async_client.delete(f"/api/v1/admin/categories/{root['id']}?delete_children=true", headers=headers)
    assert resp.status_code == 200
    for category_id in (root["id"], child["id"], grandchild["id"]):
        assert await _fresh(db_session, category_id) is None


@pytest.mark.asyncio
async def test_delete_missing_category(async_client: AsyncClient, make_user, auth_headers):
    editor = await make_user(UserRole.EDITOR)
    resp = await async_client.delete("/api/v1/admin/categories/9999", headers=await auth_headers(editor))
    assert resp.status_code == 404
    assert resp.json()["status"] is False


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_tag_crud(async_client: AsyncClient, make_user, auth_headers):
    editor = await make_user(UserRole.EDITOR)
    headers = await auth_headers(editor)

    resp = await async_client.post("/api/v1/admin/tags", json={"name": "Async IO"}, headers=headers)
    assert resp.status_code == 201
    tag = resp.json()["data"]
    assert tag["slug"] == "async-io"

    resp = await async_client.put(f"/api/v1/admin/tags/{tag['id']}", json={"name": "AsyncIO"}, headers=headers)
    assert resp.json()["data"]["name"] == "AsyncIO"
    assert resp.json()["data"]["slug"] == "async-io"

    resp = await async_client.put(f"/api/v1/admin/tags/{tag['id']}", json={"name": None}, headers=headers)
    assert resp.status_code == 422

    assert [t["name"] for t in (await async_client.get("/api/v1/tags")).json()["data"]] == ["AsyncIO"]
    assert (await async_client.delete(f"/api/v1/admin/tags/{tag['id']}", headers=headers)).status_code == 200
    assert (await async_client.get("/api/v1/tags")).json()["data"] == []


@pytest.mark.asyncio
async def test_author_cannot_manage_tags(async_client: AsyncClient, make_user, auth_headers):
    author = await make_user(UserRole.AUTHOR)
    resp = await async_client.post("/api/v1/admin/tags", json={"name": "Nope"}, headers=await auth_headers(author))
    assert resp.status_code == 403

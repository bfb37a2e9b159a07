"""
Media library tests — uploads land on disk under a temporary MEDIA_ROOT,
image dimensions are recorded, and ownership governs edits and deletes.
"""
import io
from pathlib import Path

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from PIL import Image

from app.config import settings
from app.dtos import UploadMediaDTO
from app.enums import UserRole
from app.exceptions import ValidationError
from app.repositories.media import MediaRepository
from app.services import media_service


@pytest.fixture(autouse=True)
def media_root(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "MEDIA_ROOT", str(tmp_path))
    return tmp_path


def _png(width: int = 4, height: int = 3) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color="red").save(buffer, format="PNG")
    return buffer.getvalue()


async def _upload(client: AsyncClient, headers, content: bytes = b"", mime: str = "image/png", **form) -> dict:
    resp = await client.post(
        "/api/v1/media",
        files={"file": ("photo.png", content or _png(), mime)},
        data=form,
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_upload_image(async_client: AsyncClient, make_user, auth_headers, media_root: Path):
    author = await make_user(UserRole.AUTHOR)
    data = await _upload(async_client, await auth_headers(author), alt_text="A red square")

    assert data["type"] == "image"
    assert data["name"] == "photo.png"
    assert data["alt_text"] == "A red square"
    assert data["metadata"] == {"width": 4, "height": 3, "dimensions": "4x3"}
    assert data["uploader"]["id"] == author.id
    assert data["url"].endswith(data["file_name"])
    assert (media_root / data["path"]).read_bytes() == _png()


@pytest.mark.asyncio
async def test_upload_rejects_disallowed_type(async_client: AsyncClient, make_user, auth_headers):
    author = await make_user(UserRole.AUTHOR)
    resp = await async_client.post(
        "/api/v1/media",
        files={"file": ("run.sh", b"#!/bin/sh", "application/x-sh")},
        headers=await auth_headers(author),
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["file"] == ["The file type is not allowed."]


@pytest.mark.asyncio
async def test_upload_rejects_empty_file(async_client: AsyncClient, make_user, auth_headers):
    author = await make_user(UserRole.AUTHOR)
    resp = await async_client.post(
        "/api/v1/media",
        files={"file": ("empty.png", b"", "image/png")},
        headers=await auth_headers(author),
    )
    assert resp.status_code == 422
    assert "file" in resp.json()["error"]


@pytest.mark.asyncio
async def test_upload_rejects_oversized_file(
    async_client: AsyncClient, make_user, auth_headers, monkeypatch, media_root: Path
):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 16)
    author = await make_user(UserRole.AUTHOR)
    resp = await async_client.post(
        "/api/v1/media",
        files={"file": ("notes.txt", b"x" * 32, "text/plain")},
        headers=await auth_headers(author),
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["file"] == ["The file may not be greater than 0 kilobytes."]
    assert not any(media_root.rglob("*"))


class ChunkedFile:
    def __init__(self, size: int):
        self.remaining = size
        self.reads = 0

    async def read(self, size: int = -1) -> bytes:
        self.reads += 1
        chunk = min(size, self.remaining)
        self.remaining -= chunk
        return b"x" * chunk


@pytest.mark.asyncio
async def test_read_upload_stops_past_limit(monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 10)
    monkeypatch.setattr(media_service, "UPLOAD_CHUNK_SIZE", 4)

    assert await media_service.read_upload(ChunkedFile(10)) == b"x" * 10

    upload = ChunkedFile(1000)
    with pytest.raises(ValidationError):
        await media_service.read_upload(upload)
    assert upload.reads == 3


@pytest.mark.asyncio
async def test_failed_insert_removes_stored_file(
    db_session: AsyncSession, make_user, auth_context, monkeypatch, media_root: Path
):
    author = await make_user(UserRole.AUTHOR)

    async def failing_create(self, **values):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(MediaRepository, "create", failing_create)
    dto = UploadMediaDTO(file_name="photo.png", mime_type="image/png", content=_png(), uploaded_by=author.id)
    with pytest.raises(RuntimeError):
        await media_service.upload(db_session, await auth_context(author), dto)
    assert not [p for p in media_root.rglob("*") if p.is_file()]


@pytest.mark.asyncio
async def test_document_upload_has_no_dimensions(async_client: AsyncClient, make_user, auth_headers):
    author = await make_user(UserRole.AUTHOR)
    resp = await async_client.post(
        "/api/v1/media",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=await auth_headers(author),
    )
    data = resp.json()["data"]
    assert data["type"] == "document"
    assert data["metadata"] == {}


@pytest.mark.asyncio
async def test_subscriber_cannot_upload(async_client: AsyncClient, make_user, auth_headers):
    user = await make_user(UserRole.SUBSCRIBER)
    resp = await async_client.post(
        "/api/v1/media",
        files={"file": ("photo.png", _png(), "image/png")},
        headers=await auth_headers(user),
    )
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_library_filters_by_type(async_client: AsyncClient, make_user, auth_headers):
    author = await make_user(UserRole.AUTHOR)
    headers = await auth_headers(author)
    await _upload(async_client, headers)
    await async_client.post(
        "/api/v1/media", files={"file": ("notes.txt", b"hello", "text/plain")}, headers=headers
    )

    images = (await async_client.get("/api/v1/media?type=image", headers=headers)).json()["data"]
    assert images["meta"]["total"] == 1
    assert images["items"][0]["mime_type"] == "image/png"

    everything = (await async_client.get("/api/v1/media", headers=headers)).json()["data"]
    assert everything["meta"]["total"] == 2


@pytest.mark.asyncio
async def test_update_own_media_only(async_client: AsyncClient, make_user, auth_headers):
    owner = await make_user(UserRole.AUTHOR)
    other = await make_user(UserRole.AUTHOR)
    editor = await make_user(UserRole.EDITOR)
    media = await _upload(async_client, await auth_headers(owner))

    resp = await async_client.put(
        f"/api/v1/media/{media['id']}", json={"caption": "Updated"}, headers=await auth_headers(owner)
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["caption"] == "Updated"
    assert resp.json()["data"]["name"] == "photo.png"

    resp = await async_client.put(
        f"/api/v1/media/{media['id']}", json={"caption": "Hijacked"}, headers=await auth_headers(other)
    )
    assert resp.status_code == 403

    resp = await async_client.put(
        f"/api/v1/media/{media['id']}", json={"caption": "Curated"}, headers=await auth_headers(editor)
    )
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_delete_removes_file(async_client: AsyncClient, make_user, auth_headers, media_root: Path):
    owner = await make_user(UserRole.AUTHOR)
    headers = await auth_headers(owner)
    media = await _upload(async_client, headers)
    stored = media_root / media["path"]
    assert stored.exists()

    assert (await async_client.delete(f"/api/v1/media/{media['id']}", headers=headers)).status_code == 200
    assert not stored.exists()
    assert (await async_client.get(f"/api/v1/media/{media['id']}", headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_contributor_cannot_delete_own_media(async_client: AsyncClient, make_user, auth_headers):
    """Contributors may upload but deleting needs delete_media."""
    contributor = await make_user(UserRole.CONTRIBUTOR)
    headers = await auth_headers(contributor)
    media = await _upload(async_client, headers)
    assert (await async_client.delete(f"/api/v1/media/{media['id']}", headers=headers)).status_code == 403


@pytest.mark.asyncio
async def test_failed_row_delete_keeps_file(
    async_client: AsyncClient, db_session: AsyncSession, make_user, auth_headers, auth_context, monkeypatch,
    media_root: Path,
):
    owner = await make_user(UserRole.AUTHOR)
    media = await _upload(async_client, await auth_headers(owner))

    async def failing_delete(self, instance):
        raise RuntimeError("delete failed")

    monkeypatch.setattr(MediaRepository, "delete", failing_delete)
    with pytest.raises(RuntimeError):
        await media_service.delete_media(db_session, await auth_context(owner), media["id"])
    assert (media_root / media["path"]).exists()

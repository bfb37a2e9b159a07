"""
Media library — uploads, metadata edits and deletion.

Files are written under ``MEDIA_ROOT/YYYY/MM/<uuid>.<ext>`` and served from
``MEDIA_URL``; the row keeps the relative path.  The media type is derived
from the MIME type, which must be one of the allowed image, video or
document types.
"""
import io
import logging
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os
from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.config import settings
from app.dtos import MediaFilters, UpdateMediaDTO, UploadMediaDTO
from app.enums import MediaType
from app.exceptions import ValidationError
from app.models import Media
from app.policies import AuthContext, authorize, can_delete_media, can_update_media
from app.repositories.base import Page
from app.repositories.media import MediaRepository
from app.utils import utcnow

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024

ALLOWED_TYPES: dict[MediaType, frozenset[str]] = {
    MediaType.IMAGE: frozenset({
        "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "image/svg+xml",
    }),
    MediaType.VIDEO: frozenset({
        "video/mp4", "video/mpeg", "video/quicktime", "video/x-msvideo", "video/webm",
    }),
    MediaType.DOCUMENT: frozenset({
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/plain",
    }),
}


def media_type_for(mime_type: str) -> MediaType | None:
    for media_type, mime_types in ALLOWED_TYPES.items():
        if mime_type in mime_types:
            return media_type
    return None


def _image_metadata(content: bytes) -> dict:
    try:
        with Image.open(io.BytesIO(content)) as image:
            width, height = image.size
    except (UnidentifiedImageError, OSError):
        # SVGs and truncated uploads carry no raster dimensions.
        return {}
    return {"width": width, "height": height, "dimensions": f"{width}x{height}"}


def _too_large() -> ValidationError:
    return ValidationError.single(
        "file", f"The file may not be greater than {settings.MAX_UPLOAD_SIZE // 1024} kilobytes."
    )


async def read_upload(file: UploadFile) -> bytes:
    """Read an upload in chunks, giving up as soon as it passes MAX_UPLOAD_SIZE."""
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            return b"".join(chunks)
        total += len(chunk)
        if total > settings.MAX_UPLOAD_SIZE:
            raise _too_large()
        chunks.append(chunk)


async def upload(db: AsyncSession, ctx: AuthContext, dto: UploadMediaDTO) -> Media:
    authorize(ctx.has_permission("upload_media"))
    if dto.size == 0:
        raise ValidationError.single("file", "The file must not be empty.")
    if dto.size > settings.MAX_UPLOAD_SIZE:
        raise _too_large()
    media_type = media_type_for(dto.mime_type)
    if media_type is None:
        raise ValidationError.single("file", "The file type is not allowed.")

    now = utcnow()
    extension = Path(dto.file_name).suffix.lower()
    stored_name = f"{uuid.uuid4().hex}{extension}"
    relative = Path(f"{now:%Y}") / f"{now:%m}" / stored_name
    target = Path(settings.MEDIA_ROOT) / relative

    await aiofiles.os.makedirs(target.parent, exist_ok=True)
    async with aiofiles.open(target, "wb") as fh:
        await fh.write(dto.content)

    try:
        media = await MediaRepository(db).create(
            name=dto.name or dto.file_name,
            file_name=stored_name,
            mime_type=dto.mime_type,
            disk="local",
            path=relative.as_posix(),
            url=f"{settings.MEDIA_URL.rstrip('/')}/{relative.as_posix()}",
            size=dto.size,
            type=media_type,
            alt_text=dto.alt_text,
            caption=dto.caption,
            description=dto.description,
            metadata_=_image_metadata(dto.content) if media_type is MediaType.IMAGE else {},
            uploaded_by=dto.uploaded_by,
        )
    except Exception:
        await aiofiles.os.remove(target)
        raise
    logger.info("Media %s uploaded by user %s (%d bytes)", media.id, dto.uploaded_by, dto.size)
    return await get_media(db, ctx, media.id)


async def list_media(
    db: AsyncSession, ctx: AuthContext, filters: MediaFilters, page: int, per_page: int
) -> Page:
    authorize(ctx.has_permission("view_media"))
    return await MediaRepository(db).paginate_library(filters, page, per_page)


async def get_media(db: AsyncSession, ctx: AuthContext, media_id: int) -> Media:
    authorize(ctx.has_permission("view_media") or ctx.has_permission("upload_media"))
    return await MediaRepository(db).get_or_fail(media_id, joinedload(Media.uploader))


async def update_media(db: AsyncSession, ctx: AuthContext, media_id: int, dto: UpdateMediaDTO) -> Media:
    repo = MediaRepository(db)
    media = await repo.get_or_fail(media_id, joinedload(Media.uploader))
    authorize(can_update_media(ctx, media))
    return await repo.update(media, dto.changes())


async def delete_media(db: AsyncSession, ctx: AuthContext, media_id: int) -> None:
    """Remove the row, then the stored file (if still present)."""
    repo = MediaRepository(db)
    media = await repo.get_or_fail(media_id)
    authorize(can_delete_media(ctx, media))

    target = Path(settings.MEDIA_ROOT) / media.path
    await repo.delete(media)
    if await aiofiles.os.path.exists(target):
        await aiofiles.os.remove(target)
    logger.info("Media %s deleted by user %s", media_id, ctx.user.id)

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, get_auth_context
from app.dtos import MediaFilters, UpdateMediaDTO, UploadMediaDTO
from app.enums import MediaType
from app.policies import AuthContext
from app.responses import api_success
from app.schemas import MediaUpdateRequest
from app.serializers import media_to_dict, paginated
from app.services import media_service

router = APIRouter(prefix="/api/v1/media", tags=["media"])


@router.get("")
async def media_library(
    pagination: PaginationParams = Depends(),
    type: MediaType | None = None,
    search: str | None = None,
    uploaded_by: int | None = None,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    filters = MediaFilters(type=type, search=search, uploaded_by=uploaded_by)
    page = await media_service.list_media(db, ctx, filters, pagination.page, pagination.per_page)
    return api_success(paginated(page, media_to_dict))


@router.post("", status_code=201)
async def upload_media(
    file: UploadFile = File(...),
    name: str | None = Form(None, max_length=255),
    alt_text: str | None = Form(None, max_length=500),
    caption: str | None = Form(None, max_length=500),
    description: str | None = Form(None, max_length=1000),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    dto = UploadMediaDTO(
        file_name=file.filename or "upload",
        mime_type=file.content_type or "application/octet-stream",
        content=await media_service.read_upload(file),
        uploaded_by=ctx.user.id,
        name=name,
        alt_text=alt_text,
        caption=caption,
        description=description,
    )
    media = await media_service.upload(db, ctx, dto)
    return api_success(media_to_dict(media), "Media uploaded.", 201)


@router.get("/{media_id}")
async def get_media(media_id: int, ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    return api_success(media_to_dict(await media_service.get_media(db, ctx, media_id)))


@router.put("/{media_id}")
async def update_media(
    media_id: int,
    data: MediaUpdateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    media = await media_service.update_media(db, ctx, media_id, UpdateMediaDTO.from_request(data))
    return api_success(media_to_dict(media), "Media updated.")


@router.delete("/{media_id}")
async def delete_media(media_id: int, ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    await media_service.delete_media(db, ctx, media_id)
    return api_success(None, "Media deleted.")

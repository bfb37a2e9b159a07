from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_auth_context
from app.dtos import CreateCategoryDTO, CreateTagDTO, UpdateCategoryDTO, UpdateTagDTO
from app.policies import AuthContext
from app.responses import api_success
from app.schemas import CategoryCreateRequest, CategoryUpdateRequest, TagCreateRequest, TagUpdateRequest
from app.serializers import category_to_dict, tag_to_dict
from app.services import taxonomy_service

router = APIRouter(prefix="/api/v1/admin", tags=["admin: taxonomy"])


# --- Categories ---

@router.post("/categories", status_code=201)
async def create_category(
    data: CategoryCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    category = await taxonomy_service.create_category(db, ctx, CreateCategoryDTO.from_request(data))
    return api_success(category_to_dict(category), "Category created.", 201)


@router.put("/categories/{category_id}")
async def update_category(
    category_id: int,
    data: CategoryUpdateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    category = await taxonomy_service.update_category(db, ctx, category_id, UpdateCategoryDTO.from_request(data))
    return api_success(category_to_dict(category), "Category updated.")


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    delete_children: bool = False,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await taxonomy_service.delete_category(db, ctx, category_id, delete_children)
    return api_success(None, "Category deleted.")


# --- Tags ---

@router.post("/tags", status_code=201)
async def create_tag(
    data: TagCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    tag = await taxonomy_service.create_tag(db, ctx, CreateTagDTO.from_request(data))
    return api_success(tag_to_dict(tag), "Tag created.", 201)


@router.put("/tags/{tag_id}")
async def update_tag(
    tag_id: int,
    data: TagUpdateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    tag = await taxonomy_service.update_tag(db, ctx, tag_id, UpdateTagDTO.from_request(data))
    return api_success(tag_to_dict(tag), "Tag updated.")


@router.delete("/tags/{tag_id}")
async def delete_tag(tag_id: int, ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    await taxonomy_service.delete_tag(db, ctx, tag_id)
    return api_success(None, "Tag deleted.")

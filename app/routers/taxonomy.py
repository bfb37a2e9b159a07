from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.responses import api_success
from app.serializers import category_to_dict, tag_to_dict
from app.services import taxonomy_service

router = APIRouter(prefix="/api/v1", tags=["taxonomy"])


@router.get("/categories")
async def list_categories(db: AsyncSession = Depends(get_db)):
    return api_success([category_to_dict(c) for c in await taxonomy_service.list_categories(db)])


@router.get("/tags")
async def list_tags(db: AsyncSession = Depends(get_db)):
    return api_success([tag_to_dict(t) for t in await taxonomy_service.list_tags(db)])

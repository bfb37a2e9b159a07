from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_auth_context
from app.policies import AuthContext
from app.responses import api_success
from app.services import stats_service

router = APIRouter(prefix="/api/v1/admin/stats", tags=["admin: stats"])


@router.get("")
async def get_stats(ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    return api_success(await stats_service.get_stats(db, ctx))

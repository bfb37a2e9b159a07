from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, get_auth_context, get_optional_auth
from app.dtos import UpdateProfileDTO
from app.policies import AuthContext
from app.responses import api_success
from app.schemas import ProfileUpdateRequest
from app.serializers import author_to_dict, me_to_dict, paginated, profile_to_dict, user_to_dict
from app.services import user_service

router = APIRouter(prefix="/api/v1", tags=["users"])


@router.get("/me")
async def me(ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    user, roles, permissions = await user_service.get_me(db, ctx)
    return api_success(me_to_dict(user, roles, permissions))


@router.put("/profile")
async def update_profile(
    data: ProfileUpdateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_profile(db, ctx, UpdateProfileDTO.from_request(data))
    return api_success(user_to_dict(user), "Profile updated.")


@router.get("/users/{user_id}")
async def view_profile(
    user_id: int,
    ctx: AuthContext | None = Depends(get_optional_auth),
    db: AsyncSession = Depends(get_db),
):
    user, counts, is_following = await user_service.get_profile(db, user_id, ctx.user.id if ctx else None)
    return api_success(profile_to_dict(user, counts, is_following))


@router.post("/users/{user_id}/follow")
async def follow(user_id: int, ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    counts = await user_service.follow(db, ctx, user_id)
    return api_success(counts, "User followed.")


@router.post("/users/{user_id}/unfollow")
async def unfollow(user_id: int, ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    counts = await user_service.unfollow(db, ctx, user_id)
    return api_success(counts, "User unfollowed.")


@router.get("/users/{user_id}/followers")
async def followers(user_id: int, pagination: PaginationParams = Depends(), db: AsyncSession = Depends(get_db)):
    page = await user_service.list_followers(db, user_id, pagination.page, pagination.per_page)
    return api_success(paginated(page, author_to_dict))


@router.get("/users/{user_id}/following")
async def following(user_id: int, pagination: PaginationParams = Depends(), db: AsyncSession = Depends(get_db)):
    page = await user_service.list_following(db, user_id, pagination.page, pagination.per_page)
    return api_success(paginated(page, author_to_dict))

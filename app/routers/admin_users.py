from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, get_auth_context
from app.dtos import CreateUserDTO, UpdateUserDTO, UserFilters
from app.enums import UserStatus
from app.policies import AuthContext
from app.responses import api_success
from app.schemas import UserCreateRequest, UserUpdateRequest
from app.serializers import paginated, permission_to_dict, role_to_dict, user_to_dict
from app.services import user_service

router = APIRouter(prefix="/api/v1/admin", tags=["admin: users"])


@router.get("/users")
async def list_users(
    pagination: PaginationParams = Depends(),
    search: str | None = None,
    role_id: int | None = None,
    status: UserStatus | None = None,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    sort_by: str = Query("created_at", pattern="^(created_at|name|email|updated_at)$"),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    filters = UserFilters(
        search=search,
        role_id=role_id,
        status=status,
        created_after=created_after,
        created_before=created_before,
        sort_by=sort_by,
        sort_order=pagination.sort_order,
    )
    page = await user_service.list_users(db, ctx, filters, pagination.page, pagination.per_page)
    return api_success(paginated(page, user_to_dict))


@router.post("/users", status_code=201)
async def create_user(
    data: UserCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.create_user(db, ctx, CreateUserDTO.from_request(data))
    return api_success(user_to_dict(user), "User created.", 201)


@router.get("/users/{user_id}")
async def get_user(user_id: int, ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    return api_success(user_to_dict(await user_service.get_user(db, ctx, user_id)))


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    data: UserUpdateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_user(db, ctx, user_id, UpdateUserDTO.from_request(data))
    return api_success(user_to_dict(user), "User updated.")


@router.delete("/users/{user_id}")
async def delete_user(user_id: int, ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    await user_service.delete_user(db, ctx, user_id)
    return api_success(None, "User deleted.")


_SUSPENSIONS = {
    "ban": (user_service.ban, "User banned."),
    "unban": (user_service.unban, "User unbanned."),
    "block": (user_service.block, "User blocked."),
    "unblock": (user_service.unblock, "User unblocked."),
}


def _suspension_route(action: str):
    handler, message = _SUSPENSIONS[action]

    async def endpoint(
        user_id: int,
        ctx: AuthContext = Depends(get_auth_context),
        db: AsyncSession = Depends(get_db),
    ):
        return api_success(user_to_dict(await handler(db, ctx, user_id)), message)

    endpoint.__name__ = f"{action}_user"
    return endpoint


for _action in _SUSPENSIONS:
    router.add_api_route(f"/users/{{user_id}}/{_action}", _suspension_route(_action), methods=["POST"])


@router.get("/roles")
async def list_roles(ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    roles = await user_service.list_roles(db, ctx)
    return api_success([role_to_dict(r, with_permissions=True) for r in roles])


@router.get("/permissions")
async def list_permissions(ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    return api_success([permission_to_dict(p) for p in await user_service.list_permissions(db, ctx)])

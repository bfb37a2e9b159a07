from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_auth_context, get_refresh_user
from app.dtos import RegisterUserDTO
from app.models import User
from app.policies import AuthContext
from app.responses import api_success
from app.schemas import ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest
from app.serializers import user_to_dict
from app.services import auth_service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", status_code=201)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    user, tokens = await auth_service.register(db, RegisterUserDTO.from_request(data))
    return api_success({"user": user_to_dict(user), **tokens}, "Registration successful.", 201)


@router.post("/login")
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    user, tokens = await auth_service.login(db, data.email, data.password)
    return api_success({"user": user_to_dict(user), **tokens}, "Login successful.")


@router.post("/refresh")
async def refresh(user: User = Depends(get_refresh_user), db: AsyncSession = Depends(get_db)):
    return api_success(await auth_service.refresh(db, user), "Token refreshed.")


@router.post("/logout")
async def logout(ctx: AuthContext = Depends(get_auth_context), db: AsyncSession = Depends(get_db)):
    await auth_service.logout(db, ctx.user)
    return api_success(None, "Logged out.")


@router.post("/forgot-password")
async def forgot_password(data: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    await auth_service.forgot_password(db, data.email)
    return api_success(None, "If the email exists, a password reset link has been sent.")


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    await auth_service.reset_password(db, data.email, data.token, data.password)
    return api_success(None, "Your password has been reset.")

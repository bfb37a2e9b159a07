"""
Authentication — registration, token issue/refresh/revocation and the
password reset flow.

Every issued JWT is backed by an ``auth_tokens`` row keyed by its ``jti``.
A token is accepted only while its signature, expiry and ability check out
*and* the row still exists, so deleting rows is how tokens are revoked.
"""
import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.dtos import RegisterUserDTO
from app.enums import TokenAbility, UserRole
from app.events import PasswordResetRequested, UserLoggedIn, UserLoggedOut, UserRegistered, dispatcher
from app.exceptions import AuthenticationError, AuthorizationError, ValidationError
from app.models import AuthToken, User
from app.policies import AuthContext
from app.repositories.roles import RoleRepository
from app.repositories.tokens import AuthTokenRepository, PasswordResetTokenRepository
from app.repositories.users import UserRepository
from app.security import (
    create_token,
    decode_token,
    hash_password,
    hash_token,
    verify_password,
    verify_token_hash,
)
from app.utils import ensure_aware, random_token, utcnow

logger = logging.getLogger(__name__)

_LIFETIMES = {
    TokenAbility.ACCESS_API: lambda: timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    TokenAbility.REFRESH_TOKEN: lambda: timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
}


async def build_auth_context(db: AsyncSession, user: User) -> AuthContext:
    """Resolve the user's roles and permission union for this request."""
    roles, permissions = await UserRepository(db).role_and_permission_names(user.id)
    return AuthContext(user=user, permissions=permissions, roles=roles)


async def issue_token(db: AsyncSession, user: User, ability: TokenAbility) -> tuple[str, AuthToken]:
    lifetime = _LIFETIMES[ability]()
    encoded, jti, expires_at = create_token(user.id, ability, lifetime)
    row = await AuthTokenRepository(db).create(
        user_id=user.id, jti=jti, ability=ability, expires_at=expires_at
    )
    return encoded, row


def _token_payload(access: tuple[str, AuthToken], refresh: tuple[str, AuthToken] | None = None) -> dict:
    data = {
        "access_token": access[0],
        "token_type": "Bearer",
        "access_token_expires_at": ensure_aware(access[1].expires_at).isoformat(),
    }
    if refresh is not None:
        data["refresh_token"] = refresh[0]
        data["refresh_token_expires_at"] = ensure_aware(refresh[1].expires_at).isoformat()
    return data


async def authenticate_token(db: AsyncSession, token: str, ability: TokenAbility) -> tuple[User, AuthToken]:
    """
    Resolve a bearer token to its user.

    Raises ``AuthenticationError`` when the token is malformed, expired,
    carries the wrong ability, or has been revoked.
    """
    payload = decode_token(token)
    if payload is None or payload.get("ability") != ability.value:
        raise AuthenticationError()

    row = await AuthTokenRepository(db).get_by_jti(payload.get("jti", ""))
    if row is None or ensure_aware(row.expires_at) <= utcnow():
        raise AuthenticationError()

    user = await UserRepository(db).get(row.user_id)
    if user is None or str(user.id) != payload.get("sub"):
        raise AuthenticationError()
    return user, row


async def register(db: AsyncSession, dto: RegisterUserDTO) -> tuple[User, dict]:
    """Create a subscriber account and sign it in."""
    repo = UserRepository(db)
    if await repo.email_taken(dto.email):
        raise ValidationError.single("email", "The email has already been taken.")

    user = await repo.create(name=dto.name, email=dto.email, password=hash_password(dto.password))
    role = await RoleRepository(db).get_by_name(UserRole.SUBSCRIBER.value)
    if role is not None:
        await repo.sync_roles(user, [role])

    tokens = _token_payload(
        await issue_token(db, user, TokenAbility.ACCESS_API),
        await issue_token(db, user, TokenAbility.REFRESH_TOKEN),
    )
    logger.info("User %s registered", user.id)
    await dispatcher.dispatch(db, UserRegistered(user.id, user.email))
    return await repo.get_with_roles_or_fail(user.id), tokens


async def login(db: AsyncSession, email: str, password: str) -> tuple[User, dict]:
    """
    Exchange credentials for a fresh access/refresh pair.

    Previous tokens are revoked so one login means one live session.
    Suspended accounts are refused with 403.
    """
    repo = UserRepository(db)
    user = await repo.get_by_email(email)
    if user is None or not verify_password(password, user.password):
        raise AuthenticationError("Invalid credentials.")
    if user.banned_at is not None:
        raise AuthorizationError("Your account has been banned.")
    if user.blocked_at is not None:
        raise AuthorizationError("Your account has been blocked.")

    await AuthTokenRepository(db).revoke_for_user(user.id)
    tokens = _token_payload(
        await issue_token(db, user, TokenAbility.ACCESS_API),
        await issue_token(db, user, TokenAbility.REFRESH_TOKEN),
    )
    logger.info("User %s logged in", user.id)
    await dispatcher.dispatch(db, UserLoggedIn(user.id))
    return await repo.get_with_roles_or_fail(user.id), tokens


async def refresh(db: AsyncSession, user: User) -> dict:
    """Replace the user's access tokens; the refresh token stays valid."""
    await AuthTokenRepository(db).revoke_for_user(user.id, TokenAbility.ACCESS_API)
    return _token_payload(await issue_token(db, user, TokenAbility.ACCESS_API))


async def logout(db: AsyncSession, user: User) -> None:
    await AuthTokenRepository(db).revoke_for_user(user.id)
    logger.info("User %s logged out", user.id)
    await dispatcher.dispatch(db, UserLoggedOut(user.id))


async def forgot_password(db: AsyncSession, email: str) -> None:
    """
    Store a hashed reset token for *email*.

    Unknown addresses succeed silently so the endpoint cannot be used to
    probe for accounts.
    """
    user = await UserRepository(db).get_by_email(email)
    if user is None:
        return
    token = random_token()
    await PasswordResetTokenRepository(db).replace(user.email, hash_token(token))
    await dispatcher.dispatch(db, PasswordResetRequested(user.email, token))


async def reset_password(db: AsyncSession, email: str, token: str, password: str) -> None:
    users = UserRepository(db)
    user = await users.get_by_email(email)
    if user is None:
        raise ValidationError.single("email", "We can't find a user with that email address.")

    resets = PasswordResetTokenRepository(db)
    record = await resets.get_for_email(user.email)
    expired = (
        record is not None
        and ensure_aware(record.created_at) + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES) <= utcnow()
    )
    if record is None or expired or not verify_token_hash(token, record.token):
        raise ValidationError.single("token", "This password reset token is invalid.")

    await users.update(user, {"password": hash_password(password)})
    await resets.clear(user.email)
    await AuthTokenRepository(db).revoke_for_user(user.id)
    logger.info("Password reset for user %s", user.id)

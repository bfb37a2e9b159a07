"""
Password hashing and JWT helpers.

Tokens are signed JWTs carrying ``sub`` (user id), ``jti`` and ``ability``.
Validity additionally requires the ``jti`` to still exist in the
``auth_tokens`` table; see ``app.services.auth_service``.
"""
from datetime import datetime, timedelta
from uuid import uuid4

import jwt
from passlib.context import CryptContext

from app.config import settings
from app.enums import TokenAbility
from app.utils import utcnow

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# Verification/reset tokens are hashed with the same context as passwords.
hash_token = hash_password
verify_token_hash = verify_password


def create_token(user_id: int, ability: TokenAbility, expires_delta: timedelta) -> tuple[str, str, datetime]:
    """Return ``(encoded_jwt, jti, expires_at)`` for a new token."""
    expires_at = utcnow() + expires_delta
    jti = uuid4().hex
    payload = {
        "sub": str(user_id),
        "jti": jti,
        "ability": ability.value,
        "exp": expires_at,
    }
    encoded = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return encoded, jti, expires_at


def decode_token(token: str) -> dict | None:
    """Decode *token* and verify its signature; None when invalid or expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None

from sqlalchemy import delete, select

from app.enums import TokenAbility
from app.models import AuthToken, PasswordResetToken
from app.repositories.base import BaseRepository


class AuthTokenRepository(BaseRepository[AuthToken]):
    model = AuthToken
    label = "Token"

    async def get_by_jti(self, jti: str) -> AuthToken | None:
        return await self.first(select(AuthToken).where(AuthToken.jti == jti))

    async def revoke_for_user(self, user_id: int, ability: TokenAbility | None = None) -> None:
        stmt = delete(AuthToken).where(AuthToken.user_id == user_id)
        if ability is not None:
            stmt = stmt.where(AuthToken.ability == ability)
        await self.db.execute(stmt.execution_options(synchronize_session=False))


class PasswordResetTokenRepository(BaseRepository[PasswordResetToken]):
    model = PasswordResetToken
    label = "Password reset token"

    async def get_for_email(self, email: str) -> PasswordResetToken | None:
        return await self.first(select(PasswordResetToken).where(PasswordResetToken.email == email))

    async def replace(self, email: str, hashed_token: str) -> PasswordResetToken:
        await self.clear(email)
        return await self.create(email=email, token=hashed_token)

    async def clear(self, email: str) -> None:
        await self.db.execute(delete(PasswordResetToken).where(PasswordResetToken.email == email))

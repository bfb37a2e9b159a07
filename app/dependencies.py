import ipaddress

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.enums import TokenAbility
from app.exceptions import AuthenticationError, AuthorizationError
from app.models import User
from app.policies import AuthContext
from app.services import auth_service

bearer_scheme = HTTPBearer(auto_error=False)


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination /
    sorting query parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: PaginationParams = Depends(PaginationParams)):
            ...

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    per_page:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    sort_order:
        ``"asc"`` or ``"desc"`` (enforced by the regex pattern).
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        per_page: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
        sort_order: str = Query(
            "desc",
            pattern="^(asc|desc)$",
            description="Sort direction: 'asc' or 'desc'.",
        ),
    ) -> None:
        self.page = page
        # Respect the application-level hard ceiling even if the schema
        # already validates le=100, so a settings change is sufficient.
        self.per_page = min(per_page, settings.MAX_PAGE_SIZE)
        self.sort_order = sort_order


async def _context_for(
    request: Request, db: AsyncSession, credentials: HTTPAuthorizationCredentials | None, ability: TokenAbility
) -> AuthContext:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError()
    user, _ = await auth_service.authenticate_token(db, credentials.credentials, ability)
    ctx = await auth_service.build_auth_context(db, user)
    request.state.user_id = user.id
    return ctx


async def get_auth_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthContext:
    """The caller's ``AuthContext``, rebuilt from the database on every request."""
    return await _context_for(request, db, credentials, TokenAbility.ACCESS_API)


async def get_optional_auth(
    request: Request,
    db: AsyncSession = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthContext | None:
    """Like ``get_auth_context`` but guests (and stale tokens) resolve to None."""
    if credentials is None:
        return None
    try:
        return await _context_for(request, db, credentials, TokenAbility.ACCESS_API)
    except AuthenticationError:
        return None


async def get_refresh_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> User:
    ctx = await _context_for(request, db, credentials, TokenAbility.REFRESH_TOKEN)
    return ctx.user


def require_permission(permission: str):
    """Dependency factory: the caller must hold *permission*."""

    async def dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not ctx.has_permission(permission):
            raise AuthorizationError()
        return ctx

    return dependency


def client_ip(request: Request) -> str | None:
    """Address used to key guest reactions.

    The first X-Forwarded-For entry is used only when the direct peer is one of
    ``settings.TRUSTED_PROXIES`` and the entry parses as an IP address.
    """
    peer = request.client.host if request.client else None
    forwarded = request.headers.get("x-forwarded-for")
    if not forwarded or peer not in settings.TRUSTED_PROXIES:
        return peer
    candidate = forwarded.split(",")[0].strip()
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return peer

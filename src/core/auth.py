"""Bearer token authentication for FastAPI routes."""
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from core.config import get_settings
from db.session import get_async_session
from models.member import Member
from services.exceptions import AuthenticationRequiredError
from services.member_service import get_member
from services.token_service import RenewalResult, TokenConfig, TokenService

logger = logging.getLogger(__name__)


RENEWED_TOKEN_HEADER = "X-Renewed-Token"

# Case-sensitive scheme, exactly one space, token without whitespace
_BEARER_PATTERN = re.compile(r"Bearer (\S+)")


@dataclass(frozen=True)
class AuthResult:
    """Outcome of authenticating one request."""

    principal: Member | None = None
    renewal: RenewalResult = field(default_factory=RenewalResult)


@lru_cache
def get_token_service() -> TokenService:
    """
    Get the process-wide token service.

    Raises:
        ConfigurationError: If JWT_SECRET is not configured.
    """
    return TokenService(TokenConfig.from_settings(get_settings()))


def extract_bearer_token(header: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header, else None."""
    if not header:
        return None
    match = _BEARER_PATTERN.fullmatch(header.strip())
    if match is None:
        return None
    return match.group(1)


async def authenticate(
    authorization: str | None,
    db: AsyncSession,
    token_service: TokenService,
) -> AuthResult:
    """
    Resolve the member behind an Authorization header.

    A missing or malformed header, an invalid or expired token, and an unknown
    member all produce an AuthResult without a principal. The caller cannot
    tell these cases apart.

    When a member is resolved, the token is renewed if it is stale. Renewal is
    best effort: a failure is logged and the request proceeds.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        return AuthResult()

    member_id = token_service.resolve_principal_id(token)
    if member_id is None:
        return AuthResult()

    member = await get_member(db, member_id)
    if member is None:
        return AuthResult()

    renewal = token_service.try_renew(token)
    if renewal.error is not None:
        logger.warning("Token renewal failed for member %s: %s", member.id, renewal.error)
    return AuthResult(principal=member, renewal=renewal)


async def get_current_principal(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
    token_service: TokenService = Depends(get_token_service),
) -> Member | None:
    """
    Dependency returning the authenticated member, or None for anonymous requests.

    A renewed token is stored on ``request.state`` for RenewedTokenMiddleware.
    """
    result = await authenticate(request.headers.get("Authorization"), db, token_service)
    if result.renewal.renewed:
        request.state.renewed_token = result.renewal.token
    return result.principal


async def require_principal(
    principal: Member | None = Depends(get_current_principal),
) -> Member:
    """Dependency that requires an authenticated member (401 otherwise)."""
    if principal is None:
        raise AuthenticationRequiredError()
    return principal


class RenewedTokenMiddleware(BaseHTTPMiddleware):
    """Copy a token renewed during the request into the X-Renewed-Token header."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        renewed_token = getattr(request.state, "renewed_token", None)
        if renewed_token:
            response.headers[RENEWED_TOKEN_HEADER] = renewed_token
        return response

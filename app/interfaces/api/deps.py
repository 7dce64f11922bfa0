"""FastAPI dependencies — request context, bearer auth, role gates, rate limits."""

from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from app.config import Settings, get_settings
from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.core.security import RequestContext
from app.application.services.audit_service import AuditLogWriter
from app.application.services.auth_service import AccessTokenDenylist
from app.application.services.rate_limiter import RateLimiter
from app.application.services.token_service import (
    INVALID_TOKEN,
    SessionContextMismatch,
    TokenClaims,
    TokenService,
)
from app.domain.models.audit_log import AuditEventType
from app.domain.models.user import Role, User
from app.domain.repositories.user_repository import UserRepository
from app.interfaces.deps import (
    get_audit_writer,
    get_denylist,
    get_rate_limiter,
    get_token_service,
    get_user_repository,
)

security = HTTPBearer(auto_error=False)


def client_ip(request: Request, trust_proxy_headers: bool) -> str:
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_request_context(request: Request, settings: Settings = Depends(get_settings)) -> RequestContext:
    return RequestContext.build(
        ip=client_ip(request, settings.TRUST_PROXY_HEADERS),
        user_agent=request.headers.get("user-agent"),
        include_ip=settings.TOKEN_BINDING_INCLUDE_IP,
    )


async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    context: RequestContext = Depends(get_request_context),
    tokens: TokenService = Depends(get_token_service),
    denylist: AccessTokenDenylist = Depends(get_denylist),
    audit: AuditLogWriter = Depends(get_audit_writer),
) -> TokenClaims:
    """Validate the bearer token: signature and expiry, then device binding."""
    if credentials is None:
        raise UnauthorizedException("Access denied. No token provided.")

    try:
        claims = tokens.decode_access(credentials.credentials, context)
    except SessionContextMismatch as exc:
        await audit.record(
            AuditEventType.SESSION_CONTEXT_MISMATCH, context, exc.claims.user_id, {"token": "access"}
        )
        raise

    if await denylist.is_revoked(claims.jti):
        raise UnauthorizedException(INVALID_TOKEN)
    return claims


async def get_current_user(
    claims: TokenClaims = Depends(get_token_claims),
    users: UserRepository = Depends(get_user_repository),
) -> User:
    """Extract and validate the current user from the access token."""
    user = await run_in_threadpool(users.get_by_id, claims.user_id)
    if user is None:
        raise UnauthorizedException(INVALID_TOKEN)
    return user


def require_role(*roles: Role):
    """Gate a route on the caller's stored role."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise ForbiddenException(
                f"Requires role {' or '.join(r.value for r in roles)}",
            )
        return user

    return dependency


def rate_limit(rule_name: str):
    """Count the request against a named rule before the handler runs."""

    async def dependency(
        response: Response,
        limiter: RateLimiter = Depends(get_rate_limiter),
        context: RequestContext = Depends(get_request_context),
    ) -> None:
        rule = getattr(limiter.rules, rule_name)
        status = await limiter.hit(rule, context.ip)
        response.headers.update(status.headers())

    return dependency

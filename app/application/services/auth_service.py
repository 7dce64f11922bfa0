"""Auth service — registration, login, refresh rotation and logout."""

from datetime import datetime, timezone
from typing import NoReturn, Optional

import structlog
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import ConflictException, RateLimitExceededException, UnauthorizedException
from app.core.security import PasswordHasher, RequestContext
from app.application.services.audit_service import AuditLogWriter
from app.application.services.rate_limiter import LoginLockout
from app.application.services.token_service import (
    INVALID_TOKEN,
    SessionContextMismatch,
    TokenClaims,
    TokenPair,
    TokenService,
)
from app.domain.models.audit_log import AuditEventType
from app.domain.models.user import User
from app.domain.repositories.user_repository import UserRepository
from app.domain.schemas.auth import UserCreate
from app.infrastructure.counter_store import CounterStore
from app.infrastructure.repositories.refresh_token_repository import SQLAlchemyRefreshTokenRepository

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


class AccessTokenDenylist:
    """Access-token ids revoked before expiry, kept only as long as the token lives."""

    def __init__(self, store: CounterStore):
        self.store = store

    @staticmethod
    def _key(jti: str) -> str:
        return f"denylist:{jti}"

    async def revoke(self, claims: TokenClaims) -> None:
        await self.store.set_flag(self._key(claims.jti), claims.remaining_seconds())

    async def is_revoked(self, jti: str) -> bool:
        return await self.store.exists(self._key(jti))


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        refresh_tokens: SQLAlchemyRefreshTokenRepository,
        hasher: PasswordHasher,
        tokens: TokenService,
        audit: AuditLogWriter,
        lockout: LoginLockout,
        denylist: AccessTokenDenylist,
    ):
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.hasher = hasher
        self.tokens = tokens
        self.audit = audit
        self.lockout = lockout
        self.denylist = denylist

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def register(self, data: UserCreate, context: RequestContext) -> User:
        # Fast path only: the unique index decides when two requests race
        if await run_in_threadpool(self.users.get_by_email, data.email):
            raise ConflictException("Email already registered")

        password_hash = await run_in_threadpool(self.hasher.hash, data.password)
        user = await run_in_threadpool(self.users.create_user, data.email, password_hash, data.role)
        await self.audit.record(AuditEventType.REGISTER, context, user.id, {"role": user.role.value})
        logger.info("User registered", user_id=user.id, role=user.role.value)
        return user

    async def login(self, email: str, password: str, context: RequestContext) -> tuple[User, TokenPair]:
        if await self.lockout.is_locked(email):
            raise RateLimitExceededException(
                "Too many failed login attempts. Try again later.",
                retry_after=self.lockout.lockout_seconds,
            )

        user = await run_in_threadpool(self.users.get_by_email, email)
        if user is None:
            await run_in_threadpool(self.hasher.dummy_verify, password)
            valid = False
        else:
            valid = await run_in_threadpool(self.hasher.verify, password, user.password_hash)

        if not valid:
            user_id = user.id if user else None
            locked_now = await self.lockout.register_failure(email)
            await self.audit.record(AuditEventType.LOGIN_FAILURE, context, user_id, {"email": email})
            if locked_now:
                await self.audit.record(AuditEventType.ACCOUNT_LOCKOUT, context, user_id, {"email": email})
            raise UnauthorizedException(INVALID_CREDENTIALS)

        await self.lockout.reset(email)
        user = await run_in_threadpool(self.users.touch_last_login, user, self._now())
        pair = await self._issue(user, context)
        await self.audit.record(AuditEventType.LOGIN_SUCCESS, context, user.id)
        return user, pair

    async def _issue(self, user: User, context: RequestContext) -> TokenPair:
        pair = self.tokens.issue_pair(user, context)
        await run_in_threadpool(
            self.refresh_tokens.create,
            {"jti": pair.refresh_jti, "user_id": user.id, "expires_at": pair.refresh_expires_at},
        )
        return pair

    async def refresh(self, refresh_token: str, context: RequestContext) -> tuple[User, TokenPair]:
        try:
            claims = self.tokens.decode_refresh(refresh_token, context)
        except SessionContextMismatch as exc:
            await self.audit.record(
                AuditEventType.SESSION_CONTEXT_MISMATCH, context, exc.claims.user_id, {"token": "refresh"}
            )
            raise

        record = await run_in_threadpool(self.refresh_tokens.get_by_id, claims.jti)
        if record is None or record.user_id != claims.user_id:
            raise UnauthorizedException(INVALID_TOKEN)
        if record.is_revoked:
            await self._handle_reuse(claims, context)

        user = await run_in_threadpool(self.users.get_by_id, claims.user_id)
        if user is None:
            raise UnauthorizedException(INVALID_TOKEN)

        pair = self.tokens.issue_pair(user, context)
        rotated = await run_in_threadpool(
            self.refresh_tokens.revoke_if_active, claims.jti, self._now(), pair.refresh_jti
        )
        if not rotated:
            # A concurrent refresh already consumed this token
            await self._handle_reuse(claims, context)

        await run_in_threadpool(
            self.refresh_tokens.create,
            {"jti": pair.refresh_jti, "user_id": user.id, "expires_at": pair.refresh_expires_at},
        )
        await self.audit.record(AuditEventType.TOKEN_REFRESH, context, user.id)
        return user, pair

    async def _handle_reuse(self, claims: TokenClaims, context: RequestContext) -> NoReturn:
        revoked = await run_in_threadpool(self.refresh_tokens.revoke_all_for_user, claims.user_id, self._now())
        await self.audit.record(
            AuditEventType.REFRESH_TOKEN_REUSE,
            context,
            claims.user_id,
            {"jti": claims.jti, "revoked": revoked},
        )
        raise UnauthorizedException(INVALID_TOKEN)

    async def logout(
        self,
        user: User,
        access_claims: TokenClaims,
        context: RequestContext,
        refresh_token: Optional[str] = None,
    ) -> None:
        await self.denylist.revoke(access_claims)

        if refresh_token:
            try:
                refresh_claims = self.tokens.decode_refresh(refresh_token, context)
            except UnauthorizedException:
                # Expired or foreign refresh tokens have nothing left to revoke
                refresh_claims = None
            if refresh_claims is not None and refresh_claims.user_id == user.id:
                await run_in_threadpool(
                    self.refresh_tokens.revoke_if_active, refresh_claims.jti, self._now(), None
                )

        await self.audit.record(AuditEventType.LOGOUT, context, user.id)

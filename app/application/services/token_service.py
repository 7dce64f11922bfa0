"""Token service — signs and verifies device-bound access/refresh JWTs."""

import hmac
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from app.config import Settings
from app.core.exceptions import UnauthorizedException
from app.core.security import RequestContext
from app.domain.models.user import Role, User

ACCESS = "access"
REFRESH = "refresh"

INVALID_TOKEN = "Invalid or expired token"
CONTEXT_MISMATCH = "Session context mismatch"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    refresh_jti: str


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    role: Role | None
    fingerprint: str
    jti: str
    expires_at: datetime

    def remaining_seconds(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        return max(0, int((self.expires_at - now).total_seconds()))


class SessionContextMismatch(UnauthorizedException):
    """A correctly signed token presented from a different device context."""

    def __init__(self, claims: TokenClaims):
        super().__init__(CONTEXT_MISMATCH)
        self.claims = claims


class TokenService:
    """Issues and validates tokens.

    Access and refresh tokens are signed with separate secrets and both
    carry the binding fingerprint of the request that obtained them.
    Validation is stateless: signature, expiry, then binding.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("token signing secrets are required")
        self._secrets = {ACCESS: access_secret, REFRESH: refresh_secret}
        self._ttls = {ACCESS: access_ttl, REFRESH: refresh_ttl}
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            access_secret=settings.JWT_SECRET,
            refresh_secret=settings.REFRESH_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    @property
    def access_ttl_seconds(self) -> int:
        return int(self._ttls[ACCESS].total_seconds())

    def _encode(self, kind: str, claims: dict, now: datetime) -> tuple[str, str, datetime]:
        jti = uuid.uuid4().hex
        expires_at = now + self._ttls[kind]
        payload = {
            **claims,
            "typ": kind,
            "jti": jti,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)
        return token, jti, expires_at

    def issue_pair(self, user: User, context: RequestContext, now: datetime | None = None) -> TokenPair:
        now = now or datetime.now(timezone.utc)
        access_token, _, access_exp = self._encode(
            ACCESS,
            {"sub": str(user.id), "role": user.role.value, "bnd": context.fingerprint},
            now,
        )
        refresh_token, refresh_jti, refresh_exp = self._encode(
            REFRESH,
            {"sub": str(user.id), "bnd": context.fingerprint},
            now,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=access_exp,
            refresh_expires_at=refresh_exp,
            refresh_jti=refresh_jti,
        )

    def _decode(self, kind: str, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, self._secrets[kind], algorithms=[self.algorithm])
        except JWTError as exc:
            raise UnauthorizedException(INVALID_TOKEN) from exc

        if payload.get("typ") != kind:
            raise UnauthorizedException(INVALID_TOKEN)

        try:
            user_id = int(payload["sub"])
            fingerprint = str(payload["bnd"])
            jti = str(payload["jti"])
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
            role = Role(payload["role"]) if kind == ACCESS else None
        except (KeyError, TypeError, ValueError) as exc:
            raise UnauthorizedException(INVALID_TOKEN) from exc

        return TokenClaims(user_id=user_id, role=role, fingerprint=fingerprint, jti=jti, expires_at=expires_at)

    def _check_binding(self, claims: TokenClaims, context: RequestContext) -> TokenClaims:
        if not hmac.compare_digest(claims.fingerprint, context.fingerprint):
            raise SessionContextMismatch(claims)
        return claims

    def decode_access(self, token: str, context: RequestContext) -> TokenClaims:
        return self._check_binding(self._decode(ACCESS, token), context)

    def decode_refresh(self, token: str, context: RequestContext) -> TokenClaims:
        return self._check_binding(self._decode(REFRESH, token), context)

"""Fixed-window rate limiting over the shared counter store.

Each (rule, client) pair gets a counter that starts with the first request
and expires with the window. A burst straddling a window boundary can admit
up to twice the nominal limit; that imprecision is accepted.
"""

from dataclasses import dataclass

import structlog

from app.config import Settings
from app.core.exceptions import RateLimitExceededException
from app.infrastructure.counter_store import CounterStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitStatus:
    limit: int
    remaining: int
    reset_after: int

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }


@dataclass(frozen=True)
class RateLimitRules:
    register: RateLimitRule
    login: RateLimitRule
    refresh: RateLimitRule
    api: RateLimitRule

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimitRules":
        return cls(
            register=RateLimitRule("register", 5, 24 * 60 * 60),
            login=RateLimitRule("login", 10, 6 * 60),
            refresh=RateLimitRule("refresh", 30, 15 * 60),
            api=RateLimitRule("api", settings.RATE_LIMIT_API_MAX, 15 * 60),
        )


class RateLimiter:
    def __init__(self, store: CounterStore, rules: RateLimitRules):
        self.store = store
        self.rules = rules

    @staticmethod
    def key_for(rule: RateLimitRule, client_key: str) -> str:
        return f"rl:{rule.name}:{client_key}"

    async def hit(self, rule: RateLimitRule, client_key: str) -> RateLimitStatus:
        """Count one request; raise once the window's budget is spent."""
        count, ttl = await self.store.incr(self.key_for(rule, client_key), rule.window_seconds)
        if count > rule.limit:
            logger.warning(
                "Rate limit exceeded",
                rule=rule.name,
                client=client_key,
                count=count,
                limit=rule.limit,
            )
            raise RateLimitExceededException(retry_after=ttl)
        return RateLimitStatus(limit=rule.limit, remaining=rule.limit - count, reset_after=ttl)


class LoginLockout:
    """Counts failed logins per normalized email and locks the account out.

    Unknown emails are counted too, so a lockout says nothing about whether
    an account exists.
    """

    def __init__(self, store: CounterStore, max_attempts: int, lockout_seconds: int):
        self.store = store
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds

    @staticmethod
    def _key(email: str) -> str:
        return f"lockout:{email}"

    async def is_locked(self, email: str) -> bool:
        return await self.store.get(self._key(email)) >= self.max_attempts

    async def register_failure(self, email: str) -> bool:
        """Record a failure; True when this failure triggered the lockout."""
        count, _ = await self.store.incr(self._key(email), self.lockout_seconds)
        return count == self.max_attempts

    async def reset(self, email: str) -> None:
        await self.store.delete(self._key(email))

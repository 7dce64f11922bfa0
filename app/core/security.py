"""Password hashing and request binding fingerprints."""

import hashlib
from dataclasses import dataclass

from passlib.context import CryptContext


class PasswordHasher:
    """Salted bcrypt hashing through passlib.

    bcrypt draws a fresh salt per call, so two hashes of the same password
    never share stored bytes, and its checker compares in constant time.
    """

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )
        # Verified against unknown emails so login timing matches a real check
        self._dummy_hash = self._context.hash("not-a-real-password")

    def hash(self, plaintext: str) -> str:
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        try:
            return self._context.verify(plaintext, hashed)
        except (ValueError, TypeError):
            # Unrecognized or corrupt hash record
            return False

    def dummy_verify(self, plaintext: str) -> None:
        self._context.verify(plaintext, self._dummy_hash)


def hash_user_agent(user_agent: str | None) -> str:
    return hashlib.sha256((user_agent or "").encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RequestContext:
    """Where a request came from, as far as token binding and auditing care."""

    ip: str
    user_agent_hash: str
    fingerprint: str

    @classmethod
    def build(cls, ip: str, user_agent: str | None, include_ip: bool = True) -> "RequestContext":
        ua_hash = hash_user_agent(user_agent)
        if include_ip:
            fingerprint = hashlib.sha256(f"{ua_hash}|{ip}".encode("utf-8")).hexdigest()
        else:
            fingerprint = ua_hash
        return cls(ip=ip, user_agent_hash=ua_hash, fingerprint=fingerprint)

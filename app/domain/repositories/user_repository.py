"""
User Repository Interface.
Credential store operations keyed by id or normalized email.
"""

from datetime import datetime
from typing import Optional

from app.domain.repositories.base import BaseRepository
from app.domain.models.user import Role, User


class UserRepository(BaseRepository[User]):
    """Interface for User-specific operations."""

    def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by normalized email."""
        ...

    def create_user(self, email: str, password_hash: str, role: Role) -> User:
        """Insert a user. Raises ConflictException when the email is taken."""
        ...

    def touch_last_login(self, user: User, when: datetime) -> User:
        """Record a successful login."""
        ...

"""
SQLAlchemy Implementation of User Repository.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictException
from app.domain.models.user import Role, User
from app.domain.repositories.user_repository import UserRepository
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyUserRepository(SQLAlchemyRepository[User], UserRepository):
    """User repository implementation using SQLAlchemy."""

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def create_user(self, email: str, password_hash: str, role: Role) -> User:
        user = User(email=email, password_hash=password_hash, role=role)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # The unique index on email decides concurrent registrations
            self.db.rollback()
            raise ConflictException("Email already registered") from exc
        self.db.refresh(user)
        return user

    def touch_last_login(self, user: User, when: datetime) -> User:
        return self.update(user, {"last_login": when})

"""
SQLAlchemy repository for persisted refresh-token records.
"""

from datetime import datetime

from app.domain.models.refresh_token import RefreshToken
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyRefreshTokenRepository(SQLAlchemyRepository[RefreshToken]):

    def revoke_if_active(self, jti: str, when: datetime, replaced_by: str | None = None) -> bool:
        """Revoke one record; False when it was already revoked or is unknown.

        The conditional UPDATE makes concurrent rotations of the same token
        produce exactly one winner.
        """
        count = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.jti == jti, RefreshToken.revoked_at.is_(None))
            .update(
                {RefreshToken.revoked_at: when, RefreshToken.replaced_by: replaced_by},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return count == 1

    def revoke_all_for_user(self, user_id: int, when: datetime) -> int:
        count = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .update({RefreshToken.revoked_at: when}, synchronize_session=False)
        )
        self.db.commit()
        return count

    def delete_expired(self, now: datetime) -> int:
        count = (
            self.db.query(RefreshToken)
            .filter(RefreshToken.expires_at < now)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return count

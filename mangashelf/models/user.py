from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String, Text

from mangashelf.db.base import Base

ROLES = ("user", "mod", "admin")


class User(Base):
    """Local mirror of an identity-provider account; only what entitlement checks need."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    external_uid = Column(String, unique=True, nullable=False, index=True)  # provider subject
    username = Column(String, nullable=True)
    role = Column(String, nullable=False, default="user", index=True)  # user / mod / admin
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    # Moderation
    is_banned = Column(Boolean, nullable=False, default=False)
    ban_reason = Column(Text, nullable=True)
    banned_at = Column(DateTime(timezone=True), nullable=True)
    ban_expires_at = Column(DateTime(timezone=True), nullable=True)  # null = permanent

    def is_access_blocked(self) -> bool:
        """Banned and the ban has not expired yet."""
        if not self.is_banned:
            return False
        if self.ban_expires_at is None:
            return True
        expires = self.ban_expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) < expires

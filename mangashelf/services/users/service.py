import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mangashelf.core.errors import NotFoundError
from mangashelf.models.user import ROLES, User

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_or_create_by_external_uid(self, external_uid: str, username: str | None = None) -> User:
        user = self.db.query(User).filter(User.external_uid == external_uid).one_or_none()
        if user:
            if username is not None and user.username != username:
                user.username = username
                self.db.add(user)
                self.db.flush()
            return user
        user = User(external_uid=external_uid, username=username, role="user", is_banned=False)
        try:
            with self.db.begin_nested():
                self.db.add(user)
                self.db.flush()
        except IntegrityError:
            return self.db.query(User).filter(User.external_uid == external_uid).one()
        logger.info("user_created", extra={"user_id": user.id})
        return user

    def get(self, user_id: str) -> User | None:
        return self.db.query(User).filter(User.id == user_id).one_or_none()

    def _require(self, user_id: str) -> User:
        user = self.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def set_role(self, user_id: str, role: str) -> User:
        if role not in ROLES:
            raise ValueError(f"unknown role: {role}")
        user = self._require(user_id)
        user.role = role
        self.db.add(user)
        self.db.flush()
        return user

    def ban(self, user_id: str, reason: str | None = None, expires_at: datetime | None = None) -> User:
        user = self._require(user_id)
        user.is_banned = True
        user.ban_reason = reason
        user.banned_at = datetime.now(timezone.utc)
        user.ban_expires_at = expires_at
        self.db.add(user)
        self.db.flush()
        logger.info("user_banned", extra={"user_id": user_id, "reason": reason})
        return user

    def unban(self, user_id: str) -> User:
        user = self._require(user_id)
        user.is_banned = False
        user.ban_reason = None
        user.banned_at = None
        user.ban_expires_at = None
        self.db.add(user)
        self.db.flush()
        logger.info("user_unbanned", extra={"user_id": user_id})
        return user

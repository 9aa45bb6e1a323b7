"""
Request dependencies: database session, Redis, identity.

Identity comes from the external provider as a bearer JWT; ``sub`` is the provider's
user id. The local User row is created on first sight.
"""
import logging

import jwt
import redis
from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from mangashelf.core.config import settings
from mangashelf.db.session import get_db
from mangashelf.models.user import User
from mangashelf.services.idempotency import IdempotencyStore
from mangashelf.services.users.service import UserService

logger = logging.getLogger("auth")

bearer_scheme = HTTPBearer(auto_error=False)

_redis_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


def _decode(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.info("auth_invalid_token", extra={"error": str(e)})
        raise HTTPException(status_code=401, detail="Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


def _resolve_user(payload: dict, db: Session) -> User:
    user = UserService(db).get_or_create_by_external_uid(str(payload["sub"]), payload.get("username"))
    db.commit()
    if user.is_access_blocked():
        logger.warning("auth_banned_user", extra={"user_id": user.id})
        raise HTTPException(status_code=403, detail="User is banned")
    return user


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User | None:
    """None for anonymous callers; an invalid token is still rejected."""
    if credentials is None:
        return None
    return _resolve_user(_decode(credentials.credentials), db)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return _resolve_user(_decode(credentials.credentials), db)


def require_roles(*roles: str):
    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


def idempotency_guard(
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    user: User = Depends(get_current_user),
    redis_client: redis.Redis = Depends(get_redis),
) -> str | None:
    """Rejects a repeated Idempotency-Key within idempotency_ttl. Fails open on Redis errors."""
    if not idempotency_key:
        return None
    key = f"{user.id}:{idempotency_key}"
    try:
        if not IdempotencyStore(redis_client).check_and_set(key):
            raise HTTPException(status_code=409, detail="Duplicate request")
    except redis.RedisError as e:
        logger.warning("idempotency_redis_error", extra={"error": str(e)})
        return None
    return key


def release_idempotency_key(redis_client: redis.Redis, key: str | None) -> None:
    """Failed requests give their key back so a corrected retry is not rejected."""
    if not key:
        return
    try:
        IdempotencyStore(redis_client).release(key)
    except redis.RedisError as e:
        logger.warning("idempotency_redis_error", extra={"error": str(e)})

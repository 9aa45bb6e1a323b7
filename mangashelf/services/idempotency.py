import redis

from mangashelf.core.config import settings


class IdempotencyStore:
    def __init__(self, client: redis.Redis) -> None:
        self.client = client
        self.default_ttl = settings.idempotency_ttl

    def check_and_set(self, key: str, ttl_seconds: int | None = None) -> bool:
        """Atomic operation: setnx + expire in one call. False = key already seen."""
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl
        created = self.client.set(f"idempotency:{key}", "1", nx=True, ex=ttl)
        return created is not None

    def release(self, key: str) -> None:
        """Forget a key whose request failed, so the client may retry it."""
        self.client.delete(f"idempotency:{key}")

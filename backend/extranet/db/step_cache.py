"""Per-option step cache: a convenience mirror of form values, never authoritative."""

import json
from datetime import datetime, timedelta
from typing import Any, Protocol

import redis


def cut_off_key(option_id: str) -> str:
    """Cache key of the cut-off form of an option."""
    return f"cutOff_{option_id}"


def pricing_category_key(option_id: str) -> str:
    """Cache key of the pricing category chosen in the schedule detail flow."""
    return f"availability_{option_id}_pricingType"


class StepCache(Protocol):
    """Key/value mirror of step form values."""

    def get(self, key: str) -> dict[str, Any] | None:
        """Cached value, or None if absent or expired."""
        ...

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Store a value with a TTL."""
        ...

    def delete(self, key: str) -> None:
        """Drop a value."""
        ...


class InMemoryStepCache:
    """In-memory implementation of StepCache."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[dict[str, Any], datetime]] = {}

    def get(self, key: str) -> dict[str, Any] | None:
        """Get cached value if fresh, None otherwise."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if datetime.now() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Store value with TTL."""
        self._entries[key] = (value, datetime.now() + timedelta(seconds=ttl_seconds))

    def delete(self, key: str) -> None:
        """Drop value if present."""
        self._entries.pop(key, None)


class RedisStepCache:
    """Redis-based StepCache storing JSON with SETEX."""

    def __init__(self, redis_client: redis.Redis, namespace: str = "extranet:step") -> None:
        """Initialize cache.

        Args:
            redis_client: Redis client
            namespace: Key prefix
        """
        self._redis = redis_client
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def get(self, key: str) -> dict[str, Any] | None:
        """Get cached value, None if absent."""
        raw = self._redis.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Store value with TTL."""
        self._redis.setex(self._key(key), ttl_seconds, json.dumps(value))

    def delete(self, key: str) -> None:
        """Drop value."""
        self._redis.delete(self._key(key))

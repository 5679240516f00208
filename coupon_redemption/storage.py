"""
Counter store used by the coupon core.

Every piece of shared state (coupon records, per-user window counters and
redemption locks) lives behind :class:`CounterStore`. The production backend
is Redis; tests run the same adapter against ``fakeredis``.

A missing key is a normal result: ``get`` returns ``None`` and ``delete``
is a no-op.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator, Optional

import redis
from redis.exceptions import RedisError

from .config import get_settings
from .errors import StoreUnavailable

logger = logging.getLogger(__name__)


class CounterStore(ABC):
    """Key-value contract the repository and engine depend on."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Unconditional overwrite."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def set_if_absent(self, key: str, value: str) -> bool:
        """Set ``key`` only if it does not exist yet. Returns whether it was set."""
        pass

    @abstractmethod
    def try_acquire(self, key: str, ttl_ms: int) -> bool:
        """Set ``key`` only if absent, expiring after ``ttl_ms``.

        Returns whether this caller now holds the key.
        """
        pass

    @abstractmethod
    def increment_and_expire(self, key: str, ttl_seconds: int) -> int:
        """Atomically increment ``key`` (from 0 if absent) and reset its expiry."""
        pass


@contextmanager
def _store_call(operation: str, key: Optional[str] = None) -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        logger.error("Redis %s failed for key %s", operation, key, exc_info=True)
        raise StoreUnavailable(operation, key) from exc


class RedisCounterStore(CounterStore):
    LOCK_SENTINEL = "1"

    def __init__(self, client: redis.Redis):
        self._client = client

    def get(self, key: str) -> Optional[str]:
        with _store_call("get", key):
            value = self._client.get(key)
        if isinstance(value, bytes):
            value = value.decode()
        return value

    def set(self, key: str, value: str) -> None:
        with _store_call("set", key):
            self._client.set(key, value)

    def delete(self, key: str) -> None:
        with _store_call("delete", key):
            self._client.delete(key)

    def set_if_absent(self, key: str, value: str) -> bool:
        with _store_call("set_if_absent", key):
            created = self._client.set(key, value, nx=True)
        return bool(created)

    def try_acquire(self, key: str, ttl_ms: int) -> bool:
        with _store_call("try_acquire", key):
            acquired = self._client.set(key, self.LOCK_SENTINEL, nx=True, px=ttl_ms)
        return bool(acquired)

    def increment_and_expire(self, key: str, ttl_seconds: int) -> int:
        with _store_call("increment_and_expire", key):
            pipe = self._client.pipeline(transaction=True)
            pipe.incr(key)
            pipe.expire(key, ttl_seconds)
            value, _ = pipe.execute()
        return int(value)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError as exc:
            logger.error("Error connecting to Redis: %s", exc)
            return False


@lru_cache
def get_redis() -> redis.Redis:
    settings = get_settings()
    logger.info("Creating Redis client for %s", settings.redis_url)
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)

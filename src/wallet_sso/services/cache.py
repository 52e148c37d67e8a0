# src/wallet_sso/services/cache.py
"""Best-effort cache in front of the backing store.

The cache is never authoritative. Every backend failure is logged, counted and
reported to the caller as a miss or a no-op, so a Redis outage only costs
latency.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TypeVar

import redis.asyncio as aioredis
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from wallet_sso.db.time import Clock, SystemClock

if TYPE_CHECKING:
    from wallet_sso.core.settings import Settings

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

SESSION_PREFIX = "session"
CHALLENGE_PREFIX = "challenge"
CLIENT_PREFIX = "client"
RATELIMIT_PREFIX = "ratelimit"


class CacheBackendError(RuntimeError):
    """A cache backend could not complete an operation."""


class CacheBackend(Protocol):
    """Minimal key/value contract the cache layer relies on."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def clear_pattern(self, pattern: str) -> int: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class RedisCacheBackend:
    """Cache backend on `redis.asyncio`."""

    def __init__(self, redis_url: str, *, socket_timeout: float = 5.0) -> None:
        self.redis_url = redis_url
        self.client = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    async def get(self, key: str) -> str | None:
        try:
            return await self.client.get(key)
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, value, ex=max(1, ttl_seconds))
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.client.delete(key))
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc

    async def clear_pattern(self, pattern: str) -> int:
        try:
            keys = [key async for key in self.client.scan_iter(match=pattern)]
            if not keys:
                return 0
            return int(await self.client.delete(*keys))
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as exc:
            raise CacheBackendError(str(exc)) from exc

    async def close(self) -> None:
        await self.client.aclose()


class MemoryCacheBackend:
    """In-process backend with TTLs measured on the injected clock."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._entries: dict[str, tuple[str, int]] = {}

    def _live(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock.now_ms() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock.now_ms() + ttl_seconds * 1000)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def clear_pattern(self, pattern: str) -> int:
        matches = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        for key in matches:
            del self._entries[key]
        return len(matches)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()


class NullCacheBackend:
    """Backend used when caching is disabled; every lookup misses."""

    async def get(self, key: str) -> str | None:
        return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        return None

    async def delete(self, key: str) -> bool:
        return False

    async def clear_pattern(self, pattern: str) -> int:
        return 0

    async def ping(self) -> bool:
        return False

    async def close(self) -> None:
        return None


@dataclass(frozen=True)
class CacheStrategies:
    """TTL policy in seconds per cached entity kind."""

    session: int = 900
    challenge: int = 300
    client: int = 7_200
    ratelimit: int = 60

    @classmethod
    def from_settings(cls, settings: Settings) -> CacheStrategies:
        return cls(**settings.cache_ttls)

    def ttl_for(self, prefix: str) -> int:
        return {
            SESSION_PREFIX: self.session,
            CHALLENGE_PREFIX: self.challenge,
            CLIENT_PREFIX: self.client,
            RATELIMIT_PREFIX: self.ratelimit,
        }.get(prefix, self.session)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def as_dict(self) -> dict[str, float]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "errors": self.errors,
            "hit_rate": self.hit_rate,
        }


class CacheService:
    """Namespaced, typed access to a cache backend with usage statistics."""

    def __init__(
        self,
        backend: CacheBackend | None = None,
        strategies: CacheStrategies | None = None,
    ) -> None:
        self.backend: CacheBackend = backend or NullCacheBackend()
        self.strategies = strategies or CacheStrategies()
        self._stats = CacheStats()

    @classmethod
    def from_settings(cls, settings: Settings) -> CacheService:
        """Build the cache described by `settings`; no Redis URL disables caching."""
        strategies = CacheStrategies.from_settings(settings)
        if not settings.redis_url:
            logger.info("Redis URL not configured, caching disabled")
            return cls(NullCacheBackend(), strategies)
        backend = RedisCacheBackend(
            settings.redis_url,
            socket_timeout=settings.redis_socket_timeout_seconds,
        )
        return cls(backend, strategies)

    @property
    def enabled(self) -> bool:
        return not isinstance(self.backend, NullCacheBackend)

    @staticmethod
    def make_key(prefix: str, key: str) -> str:
        return f"{prefix}:{key}"

    async def get(self, prefix: str, key: str, model: type[M]) -> M | None:
        """Return the cached `model` stored under `prefix:key`, or None."""
        full_key = self.make_key(prefix, key)
        try:
            raw = await self.backend.get(full_key)
        except CacheBackendError as exc:
            self._stats.errors += 1
            self._stats.misses += 1
            logger.warning("Cache get failed for %s: %s", full_key, exc)
            return None

        if raw is None:
            self._stats.misses += 1
            return None

        try:
            value = model.model_validate_json(raw)
        except ValidationError as exc:
            self._stats.errors += 1
            self._stats.misses += 1
            logger.warning("Discarding undecodable cache entry %s: %s", full_key, exc)
            await self.delete(prefix, key)
            return None
        self._stats.hits += 1
        return value

    async def set(
        self,
        prefix: str,
        key: str,
        value: BaseModel,
        ttl_seconds: int | None = None,
    ) -> bool:
        """Store `value` under `prefix:key` using the prefix's TTL by default."""
        full_key = self.make_key(prefix, key)
        ttl = ttl_seconds if ttl_seconds is not None else self.strategies.ttl_for(prefix)
        try:
            await self.backend.set(full_key, value.model_dump_json(), ttl)
        except CacheBackendError as exc:
            self._stats.errors += 1
            logger.warning("Cache set failed for %s: %s", full_key, exc)
            return False
        self._stats.sets += 1
        return True

    async def delete(self, prefix: str, key: str) -> bool:
        full_key = self.make_key(prefix, key)
        try:
            deleted = await self.backend.delete(full_key)
        except CacheBackendError as exc:
            self._stats.errors += 1
            logger.warning("Cache delete failed for %s: %s", full_key, exc)
            return False
        self._stats.deletes += 1
        return deleted

    async def invalidate(self, prefix: str, pattern: str = "*") -> int:
        """Drop every key under `prefix` matching `pattern`."""
        full_pattern = self.make_key(prefix, pattern)
        try:
            removed = await self.backend.clear_pattern(full_pattern)
        except CacheBackendError as exc:
            self._stats.errors += 1
            logger.warning("Cache invalidation failed for %s: %s", full_pattern, exc)
            return 0
        self._stats.deletes += removed
        return removed

    async def ping(self) -> bool:
        try:
            return await self.backend.ping()
        except CacheBackendError as exc:
            self._stats.errors += 1
            logger.warning("Cache ping failed: %s", exc)
            return False

    async def close(self) -> None:
        await self.backend.close()

    def stats(self) -> CacheStats:
        return self._stats

    def reset_stats(self) -> None:
        self._stats = CacheStats()

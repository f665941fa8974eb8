"""
Redis-backed cache.

Cache failures never break a request: Redis errors are logged and the
operation returns its fallback value (the default, False, or an empty result).
"""

import logging
import pickle
from typing import Any, Callable, Dict, Iterable, List, Optional

import redis

from .config import RedisConfig

# Get logger instance
logger = logging.getLogger(__name__)

# One-byte type tags in front of stored values
_TEXT = b"s"
_PICKLED = b"p"


class Cache:
    """Key/value cache over a Redis client.

    Keys are namespaced as ``prefix:key``, or ``prefix:tenant:<id>:key`` for
    a tenant-scoped cache. Strings are stored as tagged UTF-8 text, ints as
    plain digits and other values as tagged pickles. Strings are never
    unpickled.
    """

    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = "switchyard",
                 tenant_id: Optional[str] = None):
        self.client = client if client is not None else redis.Redis()
        self.prefix = prefix
        self.tenant_id = tenant_id

    @classmethod
    def from_config(cls, config: RedisConfig, prefix: str = "switchyard") -> "Cache":
        """Create a cache connected with the given settings."""
        return cls(redis.Redis.from_url(config.url), prefix)

    def for_tenant(self, tenant_id: str) -> "TenantCache":
        """Return a view of this cache whose keys are scoped to ``tenant_id``."""
        return TenantCache(Cache(self.client, self.prefix, tenant_id))

    def get(self, key: str, default: Any = None) -> Any:
        try:
            value = self.client.get(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Cache get error: {e}")
            return default
        if value is None:
            return default
        return self._loads(value)

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Store ``value``; a ``ttl`` of 0 or less stores it without expiry."""
        try:
            if ttl > 0:
                return bool(self.client.setex(self._key(key), ttl, self._dumps(value)))
            return bool(self.client.set(self._key(key), self._dumps(value)))
        except redis.RedisError as e:
            logger.warning(f"Cache set error: {e}")
            return False

    def delete(self, key: str) -> bool:
        try:
            return self.client.delete(self._key(key)) > 0
        except redis.RedisError as e:
            logger.warning(f"Cache delete error: {e}")
            return False

    def has(self, key: str) -> bool:
        try:
            return self.client.exists(self._key(key)) > 0
        except redis.RedisError as e:
            logger.warning(f"Cache exists error: {e}")
            return False

    def get_many(self, keys: Iterable[str], default: Any = None) -> Dict[str, Any]:
        keys = list(keys)
        try:
            values = self.client.mget([self._key(key) for key in keys])
        except redis.RedisError as e:
            logger.warning(f"Cache get_many error: {e}")
            return dict.fromkeys(keys, default)
        return {
            key: self._loads(value) if value is not None else default
            for key, value in zip(keys, values)
        }

    def set_many(self, values: Dict[str, Any], ttl: int = 3600) -> bool:
        """Store several values; with a positive ``ttl`` they are written in one transaction."""
        encoded = {self._key(key): self._dumps(value) for key, value in values.items()}
        try:
            if ttl > 0:
                pipe = self.client.pipeline(transaction=True)
                for key, value in encoded.items():
                    pipe.setex(key, ttl, value)
                return all(pipe.execute())
            return bool(self.client.mset(encoded))
        except redis.RedisError as e:
            logger.warning(f"Cache set_many error: {e}")
            return False

    def remember(self, key: str, callback: Callable[[], Any], ttl: int = 3600) -> Any:
        """Return the cached value for ``key``, computing and storing it on a miss."""
        value = self.get(key)
        if value is not None:
            return value
        value = callback()
        self.set(key, value, ttl)
        return value

    def increment(self, key: str, value: int = 1) -> Optional[int]:
        """Increment a counter; returns None when Redis is unavailable."""
        try:
            return self.client.incrby(self._key(key), value)
        except redis.RedisError as e:
            logger.warning(f"Cache increment error: {e}")
            return None

    def decrement(self, key: str, value: int = 1) -> Optional[int]:
        """Decrement a counter; returns None when Redis is unavailable."""
        try:
            return self.client.decrby(self._key(key), value)
        except redis.RedisError as e:
            logger.warning(f"Cache decrement error: {e}")
            return None

    def flush(self, pattern: str = "*") -> bool:
        """Delete every key in this cache's namespace matching ``pattern``."""
        try:
            keys = self.client.keys(self._key(pattern))
            if not keys:
                return True
            return self.client.delete(*keys) > 0
        except redis.RedisError as e:
            logger.warning(f"Cache flush error: {e}")
            return False

    def stats(self) -> Dict[str, Any]:
        """Server-wide hit/miss counters and memory usage."""
        try:
            info = self.client.info()
        except redis.RedisError as e:
            logger.warning(f"Cache stats error: {e}")
            return {}

        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        total = hits + misses
        return {
            "hits": hits,
            "misses": misses,
            "hit_ratio": round(hits / total * 100, 2) if total > 0 else 0.0,
            "memory_used": info.get("used_memory_human", "0B"),
            "connected_clients": info.get("connected_clients", 0),
        }

    def _key(self, key: str) -> str:
        parts: List[str] = [self.prefix]
        if self.tenant_id:
            parts.extend(["tenant", self.tenant_id])
        parts.append(key)
        return ":".join(parts)

    def _dumps(self, value: Any) -> bytes:
        # Plain ints stay untagged so INCRBY/DECRBY can operate on them
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value).encode("ascii")
        if isinstance(value, str):
            return _TEXT + value.encode("utf-8")
        return _PICKLED + pickle.dumps(value)

    def _loads(self, value: bytes) -> Any:
        """Decode a stored value.

        Only values written with the pickle tag are unpickled. Untagged values
        (counters written by INCRBY, or data from other clients) are returned
        as an int when they are one, else as text.
        """
        if value.startswith(_PICKLED):
            try:
                return pickle.loads(value[1:])
            except (pickle.UnpicklingError, EOFError, ValueError, TypeError, IndexError, KeyError) as e:
                logger.warning(f"Cache value could not be unpickled: {e}")
        elif value.startswith(_TEXT):
            return value[1:].decode("utf-8", errors="replace")

        text = value.decode("utf-8", errors="replace")
        try:
            return int(text)
        except ValueError:
            return text


class TenantCache:
    """The tenant-scoped subset of the cache API."""

    def __init__(self, cache: Cache):
        self._cache = cache

    @property
    def tenant_id(self) -> Optional[str]:
        return self._cache.tenant_id

    def get(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        return self._cache.set(key, value, ttl)

    def delete(self, key: str) -> bool:
        return self._cache.delete(key)

    def has(self, key: str) -> bool:
        return self._cache.has(key)

    def remember(self, key: str, callback: Callable[[], Any], ttl: int = 3600) -> Any:
        return self._cache.remember(key, callback, ttl)

    def flush(self, pattern: str = "*") -> bool:
        return self._cache.flush(pattern)

"""Cache backends holding the registry's derived state.

The registry stores JSON-compatible values only (plain dicts / lists / strings),
keyed by identifier strings plus the well-known keys ``"manifest"`` and
``"rights_manifest"``. Everything in the cache can be rebuilt from the live
type universe, so eviction is always safe.

Provides:
- ``CacheBackend`` — protocol consumed by the registry.
- ``MemoryCacheBackend`` — per-process dict; values are copied on read and write.
- ``RedisCacheBackend`` — shared Redis, JSON values under a key prefix.
- ``create_cache_backend()`` — picks one from a RegistryConfig.

Backends raise ``CacheBackendError`` on failure; the registry facade decides
whether to degrade or propagate.
"""

from __future__ import annotations

import copy
import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional, Protocol, runtime_checkable

from .config import RegistryConfig
from .exceptions import CacheBackendError, ConfigurationError

logger = logging.getLogger(__name__)

MANIFEST_KEY = "manifest"
RIGHTS_MANIFEST_KEY = "rights_manifest"


@runtime_checkable
class CacheBackend(Protocol):
    def get(self, key: str) -> Any: ...

    def has(self, key: str) -> bool: ...

    def set(self, key: str, value: Any) -> None: ...

    def set_many(self, items: Mapping[str, Any]) -> None:
        """Write every item or none of them."""
        ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> bool: ...


class MemoryCacheBackend:
    """Dict-backed cache for single-process deployments and tests.

    Values are deep-copied in both directions so a caller holding a fetched
    manifest never observes a later write.
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def has(self, key: str) -> bool:
        return key in self._data

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def set_many(self, items: Mapping[str, Any]) -> None:
        staged = {key: copy.deepcopy(value) for key, value in items.items()}
        self._data.update(staged)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> bool:
        self._data.clear()
        return True

    def keys(self) -> list[str]:
        return sorted(self._data)


class RedisCacheBackend:
    """Redis-backed cache shared by every process serving the application.

    Args:
        redis_url: Redis URL; ignored when ``client`` is given.
        client: Pre-built synchronous redis client (DI / tests).
        prefix: Namespace for every key this backend writes.
        ttl_seconds: Expiry applied on every write (None = no expiry).

    ``set_many`` runs inside a MULTI/EXEC pipeline so the manifest and the
    rights manifest are never observed half-written.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        *,
        client: Any = None,
        prefix: str = "entityregistry",
        ttl_seconds: Optional[int] = None,
    ) -> None:
        if client is None:
            if not redis_url:
                raise ConfigurationError("RedisCacheBackend needs redis_url or client")
            import redis as redis_sync

            client = redis_sync.from_url(redis_url, decode_responses=True)
        self._redis = client
        self._prefix = prefix
        self._ttl = ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    @contextmanager
    def _op(self, operation: str, key: str) -> Iterator[None]:
        try:
            yield
        except CacheBackendError:
            raise
        except Exception as e:
            logger.warning("Registry cache %s failed for %s: %s", operation, key, e)
            raise CacheBackendError(
                f"Cache {operation} failed for '{key}': {e}",
                operation=operation,
                key=key,
            ) from e

    def get(self, key: str) -> Any:
        with self._op("get", key):
            raw = self._redis.get(self._key(key))
            if raw is None:
                return None
            return json.loads(raw)

    def has(self, key: str) -> bool:
        with self._op("has", key):
            return bool(self._redis.exists(self._key(key)))

    def set(self, key: str, value: Any) -> None:
        with self._op("set", key):
            self._redis.set(self._key(key), json.dumps(value), ex=self._ttl)

    def set_many(self, items: Mapping[str, Any]) -> None:
        with self._op("set_many", ",".join(items)):
            payload = {self._key(key): json.dumps(value) for key, value in items.items()}
            pipe = self._redis.pipeline(transaction=True)
            for key, raw in payload.items():
                pipe.set(key, raw, ex=self._ttl)
            pipe.execute()

    def delete(self, key: str) -> None:
        with self._op("delete", key):
            self._redis.delete(self._key(key))

    def clear(self) -> bool:
        with self._op("clear", f"{self._prefix}:*"):
            keys = list(self._redis.scan_iter(match=f"{self._prefix}:*"))
            if keys:
                self._redis.delete(*keys)
            logger.info("Registry cache cleared: %d keys under '%s'", len(keys), self._prefix)
            return True

    def close(self) -> None:
        self._redis.close()


def create_cache_backend(config: RegistryConfig) -> CacheBackend:
    """Redis when ``config.redis_url`` is set, otherwise an in-memory backend."""
    if config.redis_url:
        return RedisCacheBackend(
            config.redis_url,
            prefix=config.cache_prefix,
            ttl_seconds=config.cache_ttl_seconds,
        )
    logger.debug("REDIS_URL not set, registry cache is per-process")
    return MemoryCacheBackend()


__all__ = [
    "MANIFEST_KEY",
    "RIGHTS_MANIFEST_KEY",
    "CacheBackend",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "create_cache_backend",
]

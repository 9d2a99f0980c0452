"""
In-memory cache for OData list results.

Keys are built from (entity, user, query) so two users never share a cached
page. Entries expire after a TTL that grows for expensive queries; when the
cache is full the oldest entry is evicted. Writes to an entity call
``invalidate(entity)``.
"""

import copy
import hashlib
import logging
import threading
import time
from typing import Any, Dict, Optional

from estoque.core.config import get_odata_cache_max_size, get_odata_cache_ttl
from estoque.core.odata.parser import ODataQuery

logger = logging.getLogger(__name__)

PUBLIC_USER = "public"


class CacheItem:
    """Class representing a cached item with expiration."""

    def __init__(self, value: Any, expires_at: float):
        self.value = value
        self.created_at = time.time()
        self.expires_at = expires_at

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) > self.expires_at


class ODataCache:
    """Thread-safe TTL cache keyed by entity, user and canonical query."""

    def __init__(self, default_ttl: Optional[int] = None, max_size: Optional[int] = None):
        self.default_ttl = default_ttl if default_ttl is not None else get_odata_cache_ttl()
        self.max_size = max_size if max_size is not None else get_odata_cache_max_size()
        self._cache: Dict[str, CacheItem] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def build_key(entity: str, query: ODataQuery, user_id: Optional[str] = None) -> str:
        digest = hashlib.sha256(query.canonical_json().encode("utf-8")).hexdigest()[:16]
        return f"{entity}:{user_id or PUBLIC_USER}:{digest}"

    def get(self, entity: str, query: ODataQuery, user_id: Optional[str] = None) -> Any:
        """Return a copy of the cached value, or None on miss/expiry."""
        key = self.build_key(entity, query, user_id)
        with self._lock:
            item = self._cache.get(key)
            if item is None:
                self._misses += 1
                logger.debug("OData cache miss", extra={"context": {"key": key}})
                return None
            if item.is_expired():
                del self._cache[key]
                self._misses += 1
                logger.debug("OData cache miss (expired)", extra={"context": {"key": key}})
                return None
            self._hits += 1
            logger.debug("OData cache hit", extra={"context": {"key": key}})
            return copy.deepcopy(item.value)

    def set(
        self,
        entity: str,
        query: ODataQuery,
        value: Any,
        user_id: Optional[str] = None,
        ttl: Optional[int] = None,
    ) -> None:
        key = self.build_key(entity, query, user_id)
        ttl_seconds = ttl if ttl is not None else self.get_optimal_ttl(query)
        with self._lock:
            if key not in self._cache and len(self._cache) >= self.max_size:
                self._evict_oldest()
            self._cache[key] = CacheItem(copy.deepcopy(value), time.time() + ttl_seconds)

    def _evict_oldest(self) -> None:
        now = time.time()
        expired = [k for k, item in self._cache.items() if item.is_expired(now)]
        for key in expired:
            del self._cache[key]
        if expired or not self._cache:
            return
        oldest_key = min(self._cache, key=lambda k: self._cache[k].created_at)
        del self._cache[oldest_key]
        logger.debug("OData cache evicted oldest entry", extra={"context": {"key": oldest_key}})

    def invalidate(self, entity: Optional[str] = None) -> int:
        """Drop all entries of ``entity`` (or everything). Returns the count removed."""
        with self._lock:
            if entity is None:
                removed = len(self._cache)
                self._cache.clear()
            else:
                prefix = f"{entity}:"
                keys = [k for k in self._cache if k.startswith(prefix)]
                for key in keys:
                    del self._cache[key]
                removed = len(keys)
        if removed:
            logger.info(
                "OData cache invalidated",
                extra={"context": {"entity": entity or "*", "removed": removed}},
            )
        return removed

    def purge_expired(self) -> int:
        """Drop expired entries. Returns the count removed."""
        now = time.time()
        with self._lock:
            expired = [k for k, item in self._cache.items() if item.is_expired(now)]
            for key in expired:
                del self._cache[key]
        if expired:
            logger.debug(
                "OData cache purged expired entries",
                extra={"context": {"removed": len(expired)}},
            )
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    @staticmethod
    def is_complex_query(query: ODataQuery) -> bool:
        return bool(
            query.condition_count > 3
            or query.expand
            or (query.skip or 0) > 100
            or query.count
        )

    def get_optimal_ttl(self, query: ODataQuery) -> int:
        ttl = self.default_ttl
        if self.is_complex_query(query):
            ttl *= 2
        if query.count:
            ttl //= 2
        return max(ttl, 1)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            now = time.time()
            size = sum(1 for item in self._cache.values() if not item.is_expired(now))
            lookups = self._hits + self._misses
            return {
                "size": size,
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
            }


odata_cache = ODataCache()

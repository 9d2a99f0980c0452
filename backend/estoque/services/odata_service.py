"""
OData list orchestration with the in-memory result cache.

Controllers hand over a ``fetch`` callable producing the serialized payload;
this service decides whether a cached copy can answer instead.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from estoque.core.config import get_odata_cache_enabled
from estoque.core.odata.cache import ODataCache, odata_cache
from estoque.core.odata.parser import ODataQuery

logger = logging.getLogger(__name__)

CATEGORIES = "categories"
COMPANIES = "companies"
PRODUCTS = "products"
TAXES = "taxes"
SALES = "sales"


def invalidate_cache(*entities: str, cache: Optional[ODataCache] = None) -> int:
    """Drop cached OData results of ``entities``; returns entries removed."""
    target = cache or odata_cache
    return sum(target.invalidate(entity) for entity in entities)


class ODataListService:
    """Serve OData list payloads, from cache when possible."""

    def __init__(self, cache: Optional[ODataCache] = None) -> None:
        self.cache = cache or odata_cache

    def list(
        self,
        entity_name: str,
        query: Optional[ODataQuery],
        user_id: Optional[str],
        fetch: Callable[[], Dict[str, Any]],
        cache_enabled: Optional[bool] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        """Return ``(payload, cached)``.

        ``query=None`` is the default listing and is cached under an empty
        query. ``$count`` results are never stored.
        """
        enabled = get_odata_cache_enabled() if cache_enabled is None else cache_enabled
        key_query = query if query is not None else ODataQuery()

        if not enabled or key_query.count:
            return fetch(), False

        cached = self.cache.get(entity_name, key_query, user_id)
        if cached is not None:
            logger.debug(
                "OData result served from cache",
                extra={"context": {"entity": entity_name, "user_id": user_id}},
            )
            return cached, True

        payload = fetch()
        self.cache.set(entity_name, key_query, payload, user_id)
        return payload, False

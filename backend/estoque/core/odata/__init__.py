from .cache import ODataCache, odata_cache
from .parser import (
    Comparison,
    LogicalGroup,
    Negation,
    ODataQuery,
    OrderBy,
    parse_odata_query,
)
from .translator import (
    EntityQueryConfig,
    ODataTranslator,
    resolve_page,
)

__all__ = [
    "Comparison",
    "EntityQueryConfig",
    "LogicalGroup",
    "Negation",
    "ODataCache",
    "ODataQuery",
    "ODataTranslator",
    "OrderBy",
    "odata_cache",
    "parse_odata_query",
    "resolve_page",
]

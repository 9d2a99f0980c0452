# Services package initialization
# One use-case class per domain plus the cached OData list service

from . import category_service
from . import company_service
from . import odata_service
from . import product_service
from . import sale_service
from . import tax_service

__all__ = [
    "category_service",
    "company_service",
    "odata_service",
    "product_service",
    "sale_service",
    "tax_service",
]

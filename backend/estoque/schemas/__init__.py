"""
Schemas package - response serializers.

Domain entities are turned into the camelCase JSON documents the API
returns; ``serialize_page`` also applies OData ``$expand``/``$select``.
"""

from .dtos import (
    category_to_dict,
    company_to_dict,
    product_to_dict,
    sale_item_to_dict,
    sale_summary_to_dict,
    sale_to_dict,
    serialize_page,
    tax_to_dict,
)

__all__ = [
    "category_to_dict",
    "company_to_dict",
    "product_to_dict",
    "sale_item_to_dict",
    "sale_summary_to_dict",
    "sale_to_dict",
    "serialize_page",
    "tax_to_dict",
]

# Controllers package initialization
# One blueprint per domain plus health checks; registered in main.create_app

from . import (
    category_controller,
    company_controller,
    health_controller,
    product_controller,
    sale_controller,
    tax_controller,
)

__all__ = [
    "category_controller",
    "company_controller",
    "health_controller",
    "product_controller",
    "sale_controller",
    "tax_controller",
]

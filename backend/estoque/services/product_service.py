"""
Product use cases, including stock and reservation operations.

Stock arithmetic lives on the ``Product`` entity; this service loads,
checks references and persists.
"""

import logging
from typing import Any, Dict, List, Optional

from estoque.core.exceptions import ConflictError, NotFoundError, ValidationError
from estoque.core.odata.parser import ODataQuery
from estoque.domain.entities import Product
from estoque.domain.interfaces import (
    ICategoryRepository,
    ICompanyRepository,
    IProductRepository,
)
from estoque.domain.pagination import PaginatedResult
from estoque.services.odata_service import PRODUCTS, invalidate_cache

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "short_description",
    "sku",
    "barcode",
    "price",
    "cost_price",
    "min_stock_level",
    "max_stock_level",
    "weight",
    "height",
    "width",
    "length",
    "image_url",
    "is_active",
    "is_featured",
    "is_digital",
    "category_id",
    "company_id",
)


class ProductService:
    """Application service for product use cases."""

    def __init__(
        self,
        product_repo: IProductRepository,
        company_repo: ICompanyRepository,
        category_repo: ICategoryRepository,
    ) -> None:
        self.product_repo = product_repo
        self.company_repo = company_repo
        self.category_repo = category_repo

    def _require(self, product_id: str, include_deleted: bool = False) -> Product:
        product = self.product_repo.get_by_id(product_id, include_deleted=include_deleted)
        if product is None:
            raise NotFoundError("Produto")
        return product

    def _check_references(self, data: Dict[str, Any], product_id: Optional[str] = None) -> None:
        if data.get("company_id") and self.company_repo.get_by_id(data["company_id"]) is None:
            raise NotFoundError("Empresa", "Empresa não encontrada")
        if data.get("category_id") and self.category_repo.get_by_id(data["category_id"]) is None:
            raise NotFoundError("Categoria", "Categoria não encontrada")
        if data.get("sku"):
            existing = self.product_repo.get_by_sku(data["sku"])
            if existing is not None and existing.id != product_id:
                raise ConflictError("Já existe um produto com este SKU")
        if data.get("barcode"):
            existing = self.product_repo.get_by_barcode(data["barcode"])
            if existing is not None and existing.id != product_id:
                raise ConflictError("Já existe um produto com este código de barras")

    def create_product(self, data: Dict[str, Any]) -> Product:
        self._check_references(data)
        values = {key: data[key] for key in EDITABLE_FIELDS if key in data}
        values["stock_quantity"] = data.get("stock_quantity") or 0
        try:
            product = Product(**values)
        except ValueError as e:
            raise ValidationError(str(e))
        created = self.product_repo.create(product)
        invalidate_cache(PRODUCTS)
        logger.info(
            "Product created",
            extra={"context": {"product_id": created.id, "company_id": created.company_id}},
        )
        return created

    def get_product(self, product_id: str) -> Product:
        return self._require(product_id)

    def list_products(self, filters: Dict[str, Any]) -> PaginatedResult:
        return self.product_repo.find_with_filters(filters)

    def list_odata(self, query: Optional[ODataQuery]) -> PaginatedResult:
        return self.product_repo.find_odata(query)

    def update_product(self, product_id: str, data: Dict[str, Any]) -> Product:
        product = self._require(product_id)
        self._check_references(data, product_id)

        for key in EDITABLE_FIELDS:
            if key in data:
                setattr(product, key, data[key])
        if "stock_quantity" in data:
            product.update_stock(data["stock_quantity"])
        try:
            product.__post_init__()
        except ValueError as e:
            raise ValidationError(str(e))

        updated = self.product_repo.update(product)
        invalidate_cache(PRODUCTS)
        logger.info("Product updated", extra={"context": {"product_id": product_id}})
        return updated

    def delete_product(self, product_id: str) -> None:
        self._require(product_id)
        self.product_repo.soft_delete(product_id)
        invalidate_cache(PRODUCTS)
        logger.info("Product deleted", extra={"context": {"product_id": product_id}})

    def restore_product(self, product_id: str) -> Product:
        product = self._require(product_id, include_deleted=True)
        if not product.is_deleted:
            raise ConflictError("Produto não está excluído")
        self.product_repo.restore(product_id)
        invalidate_cache(PRODUCTS)
        logger.info("Product restored", extra={"context": {"product_id": product_id}})
        return self._require(product_id)

    # ---- stock ---------------------------------------------------------

    def _save_stock(self, product: Product, operation: str, quantity: int) -> Product:
        saved = self.product_repo.save_stock(product)
        invalidate_cache(PRODUCTS)
        logger.info(
            "Product stock changed",
            extra={
                "context": {
                    "product_id": product.id,
                    "operation": operation,
                    "quantity": quantity,
                    "stock_quantity": saved.stock_quantity,
                    "reserved_quantity": saved.reserved_quantity,
                }
            },
        )
        return saved

    def update_stock(self, product_id: str, quantity: int) -> Product:
        product = self._require(product_id)
        product.update_stock(quantity)
        return self._save_stock(product, "set", quantity)

    def reserve_stock(self, product_id: str, quantity: int) -> Product:
        product = self._require(product_id)
        product.reserve_stock(quantity)
        return self._save_stock(product, "reserve", quantity)

    def release_stock(self, product_id: str, quantity: int) -> Product:
        product = self._require(product_id)
        product.release_stock(quantity)
        return self._save_stock(product, "release", quantity)

    def list_low_stock(self, company_id: Optional[str] = None) -> List[Product]:
        return self.product_repo.list_low_stock(company_id)

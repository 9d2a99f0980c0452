"""
Category use cases.

Names are unique among live categories and a category cannot be removed
while live products or subcategories still point at it.
"""

import logging
from typing import Any, Dict, Optional

from estoque.core.exceptions import ConflictError, NotFoundError, ValidationError
from estoque.core.odata.parser import ODataQuery
from estoque.domain.entities import Category
from estoque.domain.interfaces import ICategoryRepository
from estoque.domain.pagination import PaginatedResult
from estoque.services.odata_service import CATEGORIES, PRODUCTS, TAXES, invalidate_cache

logger = logging.getLogger(__name__)


class CategoryService:
    """Application service for category use cases."""

    def __init__(self, category_repo: ICategoryRepository) -> None:
        self.category_repo = category_repo

    def _require(self, category_id: str, include_deleted: bool = False) -> Category:
        category = self.category_repo.get_by_id(category_id, include_deleted=include_deleted)
        if category is None:
            raise NotFoundError("Categoria", "Categoria não encontrada")
        return category

    def _check_parent(self, parent_id: Optional[str], category_id: Optional[str] = None) -> None:
        if not parent_id:
            return
        if parent_id == category_id:
            raise ValidationError("Categoria não pode ser pai de si mesma")
        if self.category_repo.get_by_id(parent_id) is None:
            raise NotFoundError("Categoria pai", "Categoria pai não encontrada")

    def _check_name(self, name: str, category_id: Optional[str] = None) -> None:
        existing = self.category_repo.get_by_name(name)
        if existing is not None and existing.id != category_id:
            raise ConflictError("Já existe uma categoria com este nome")

    def create_category(self, data: Dict[str, Any]) -> Category:
        self._check_name(data["name"])
        self._check_parent(data.get("parent_category_id"))
        try:
            category = Category(
                name=data["name"],
                description=data.get("description"),
                short_description=data.get("short_description"),
                parent_category_id=data.get("parent_category_id"),
            )
        except ValueError as e:
            raise ValidationError(str(e))
        created = self.category_repo.create(category)
        invalidate_cache(CATEGORIES)
        logger.info("Category created", extra={"context": {"category_id": created.id}})
        return created

    def get_category(self, category_id: str) -> Category:
        return self._require(category_id)

    def list_categories(self, filters: Dict[str, Any]) -> PaginatedResult:
        return self.category_repo.find_with_filters(filters)

    def list_odata(self, query: Optional[ODataQuery]) -> PaginatedResult:
        return self.category_repo.find_odata(query)

    def update_category(self, category_id: str, data: Dict[str, Any]) -> Category:
        category = self._require(category_id)
        if "name" in data:
            self._check_name(data["name"], category_id)
        if data.get("parent_category_id"):
            self._check_parent(data["parent_category_id"], category_id)

        for key in ("name", "description", "short_description", "parent_category_id"):
            if key in data:
                setattr(category, key, data[key])
        try:
            category.__post_init__()
        except ValueError as e:
            raise ValidationError(str(e))

        updated = self.category_repo.update(category)
        # products and taxes expose category.name through $filter and $expand
        invalidate_cache(CATEGORIES, PRODUCTS, TAXES)
        logger.info("Category updated", extra={"context": {"category_id": category_id}})
        return updated

    def delete_category(self, category_id: str) -> None:
        self._require(category_id)
        products = self.category_repo.count_active_products(category_id)
        if products:
            raise ConflictError(
                f"Categoria possui {products} produto(s) vinculado(s) e não pode ser excluída"
            )
        if self.category_repo.count_subcategories(category_id):
            raise ConflictError("Categoria possui subcategorias e não pode ser excluída")
        self.category_repo.soft_delete(category_id)
        invalidate_cache(CATEGORIES)
        logger.info("Category deleted", extra={"context": {"category_id": category_id}})

    def restore_category(self, category_id: str) -> Category:
        category = self._require(category_id, include_deleted=True)
        if not category.is_deleted:
            raise ConflictError("Categoria não está excluída")
        self._check_name(category.name, category_id)
        self.category_repo.restore(category_id)
        invalidate_cache(CATEGORIES)
        logger.info("Category restored", extra={"context": {"category_id": category_id}})
        return self._require(category_id)

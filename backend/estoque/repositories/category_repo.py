"""Category repository implementation."""

from typing import Any, Dict, Optional

from sqlalchemy import func, select

from estoque.core.odata.translator import EntityQueryConfig
from estoque.db.base import Category as DbCategory
from estoque.db.base import Product as DbProduct
from estoque.domain.entities import Category as DomainCategory
from estoque.domain.interfaces import ICategoryRepository
from estoque.domain.pagination import PaginatedResult
from estoque.repositories.base_repository import SQLAlchemyRepository, contains_pattern

CATEGORY_QUERY_CONFIG = EntityQueryConfig(
    model=DbCategory,
    fields={
        "id": DbCategory.id,
        "name": DbCategory.name,
        "description": DbCategory.description,
        "shortDescription": DbCategory.short_description,
        "parentCategoryId": DbCategory.parent_category_id,
        "isDeleted": DbCategory.is_deleted,
        "createdAt": DbCategory.created_at,
        "updatedAt": DbCategory.updated_at,
        "deletedAt": DbCategory.deleted_at,
    },
    expand={"parent": DbCategory.parent},
    default_order=(("name", "ASC"),),
)


class CategoryRepository(SQLAlchemyRepository, ICategoryRepository):
    """Repository for Category persistence operations."""

    model = DbCategory
    query_config = CATEGORY_QUERY_CONFIG
    resource_name = "Categoria"

    def get_by_name(self, name: str) -> Optional[DomainCategory]:
        stmt = self._base_query().where(func.lower(DbCategory.name) == name.strip().lower())
        row = self.db.scalars(stmt).first()
        return self._to_domain(row) if row else None

    def count_active_products(self, category_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(DbProduct)
            .where(DbProduct.category_id == category_id, DbProduct.is_deleted.is_(False))
        )
        return self.db.scalar(stmt) or 0

    def count_subcategories(self, category_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(DbCategory)
            .where(DbCategory.parent_category_id == category_id, DbCategory.is_deleted.is_(False))
        )
        return self.db.scalar(stmt) or 0

    def find_with_filters(self, filters: Dict[str, Any]) -> PaginatedResult:
        stmt = self._deleted_scope(select(DbCategory), filters)
        if filters.get("name"):
            stmt = stmt.where(DbCategory.name.ilike(contains_pattern(filters["name"]), escape="\\"))
        if filters.get("parent_category_id"):
            stmt = stmt.where(DbCategory.parent_category_id == filters["parent_category_id"])
        stmt = self._ordered(stmt, DbCategory.name, "ASC", DbCategory.id)
        return self.paginate(stmt, filters.get("page", 1), filters.get("page_size"))

    def _values(self, entity: DomainCategory) -> Dict[str, Any]:
        return {
            "name": entity.name.strip(),
            "description": entity.description,
            "short_description": entity.short_description,
            "parent_category_id": entity.parent_category_id,
            "is_deleted": entity.is_deleted,
            "deleted_at": entity.deleted_at,
        }

    def _expand(self, row: DbCategory, names) -> Dict[str, Any]:
        expanded: Dict[str, Any] = {}
        if "parent" in names:
            expanded["parent"] = self._to_domain(row.parent) if row.parent else None
        return expanded

    def _to_domain(self, db_category: DbCategory) -> Optional[DomainCategory]:
        if not db_category:
            return None
        return DomainCategory(
            id=db_category.id,
            name=db_category.name,
            description=db_category.description,
            short_description=db_category.short_description,
            parent_category_id=db_category.parent_category_id,
            is_deleted=db_category.is_deleted,
            created_at=db_category.created_at,
            updated_at=db_category.updated_at,
            deleted_at=db_category.deleted_at,
        )

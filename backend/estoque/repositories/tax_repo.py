from typing import Any, Dict, List, Optional

from sqlalchemy import select

from estoque.core.odata.translator import EntityQueryConfig
from estoque.db.base import Category as DbCategory
from estoque.db.base import Tax as DbTax
from estoque.domain.entities import Tax as DomainTax
from estoque.domain.interfaces import ITaxRepository
from estoque.domain.pagination import PaginatedResult
from estoque.repositories.base_repository import SQLAlchemyRepository, contains_pattern
from estoque.repositories.category_repo import CategoryRepository

TAX_QUERY_CONFIG = EntityQueryConfig(
    model=DbTax,
    fields={
        "id": DbTax.id,
        "name": DbTax.name,
        "description": DbTax.description,
        "percentage": DbTax.percentage,
        "categoryId": DbTax.category_id,
        "isActive": DbTax.is_active,
        "isDeleted": DbTax.is_deleted,
        "createdAt": DbTax.created_at,
        "updatedAt": DbTax.updated_at,
        "deletedAt": DbTax.deleted_at,
        "category.name": DbCategory.name,
    },
    joins={"category": DbTax.category},
    expand={"category": DbTax.category},
    default_order=(("name", "ASC"),),
)


class TaxRepository(SQLAlchemyRepository, ITaxRepository):
    """Repository for Tax persistence operations."""

    model = DbTax
    query_config = TAX_QUERY_CONFIG
    resource_name = "Imposto"

    def list_by_category(self, category_id: str, only_active: bool = True) -> List[DomainTax]:
        stmt = self._base_query().where(DbTax.category_id == category_id)
        if only_active:
            stmt = stmt.where(DbTax.is_active.is_(True))
        return self._to_domain_list(self.db.scalars(stmt.order_by(DbTax.name.asc())).all())

    def find_with_filters(self, filters: Dict[str, Any]) -> PaginatedResult:
        stmt = select(DbTax).where(DbTax.is_deleted.is_(False))
        if filters.get("name"):
            stmt = stmt.where(DbTax.name.ilike(contains_pattern(filters["name"]), escape="\\"))
        if filters.get("category_id"):
            stmt = stmt.where(DbTax.category_id == filters["category_id"])
        if filters.get("is_active") is not None:
            stmt = stmt.where(DbTax.is_active.is_(filters["is_active"]))
        if filters.get("min_percentage") is not None:
            stmt = stmt.where(DbTax.percentage >= filters["min_percentage"])
        if filters.get("max_percentage") is not None:
            stmt = stmt.where(DbTax.percentage <= filters["max_percentage"])
        stmt = self._ordered(stmt, DbTax.name, "ASC", DbTax.id)
        return self.paginate(stmt, filters.get("page", 1), filters.get("page_size"))

    def _values(self, entity: DomainTax) -> Dict[str, Any]:
        return {
            "name": entity.name.strip(),
            "description": entity.description,
            "percentage": entity.percentage,
            "category_id": entity.category_id,
            "is_active": entity.is_active,
            "is_deleted": entity.is_deleted,
            "deleted_at": entity.deleted_at,
        }

    def _expand(self, row: DbTax, names) -> Dict[str, Any]:
        if "category" not in names:
            return {}
        return {"category": CategoryRepository(self.db)._to_domain(row.category)}

    def _to_domain(self, db_tax: DbTax) -> Optional[DomainTax]:
        if not db_tax:
            return None
        return DomainTax(
            id=db_tax.id,
            name=db_tax.name,
            description=db_tax.description,
            percentage=db_tax.percentage,
            category_id=db_tax.category_id,
            is_active=db_tax.is_active,
            is_deleted=db_tax.is_deleted,
            created_at=db_tax.created_at,
            updated_at=db_tax.updated_at,
            deleted_at=db_tax.deleted_at,
        )

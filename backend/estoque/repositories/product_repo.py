"""Product repository implementation."""

from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, or_, select

from estoque.core.config import get_low_stock_threshold
from estoque.core.exceptions import NotFoundError
from estoque.core.odata.translator import EntityQueryConfig
from estoque.db.base import Category as DbCategory
from estoque.db.base import Company as DbCompany
from estoque.db.base import Product as DbProduct
from estoque.domain.entities import Product as DomainProduct
from estoque.domain.interfaces import IProductRepository
from estoque.domain.pagination import PaginatedResult
from estoque.repositories.base_repository import SQLAlchemyRepository, contains_pattern
from estoque.repositories.category_repo import CategoryRepository
from estoque.repositories.company_repo import CompanyRepository

PRODUCT_QUERY_CONFIG = EntityQueryConfig(
    model=DbProduct,
    fields={
        "id": DbProduct.id,
        "name": DbProduct.name,
        "description": DbProduct.description,
        "shortDescription": DbProduct.short_description,
        "sku": DbProduct.sku,
        "barcode": DbProduct.barcode,
        "price": DbProduct.price,
        "costPrice": DbProduct.cost_price,
        "stockQuantity": DbProduct.stock_quantity,
        "reservedQuantity": DbProduct.reserved_quantity,
        "minStockLevel": DbProduct.min_stock_level,
        "maxStockLevel": DbProduct.max_stock_level,
        "weight": DbProduct.weight,
        "isActive": DbProduct.is_active,
        "isFeatured": DbProduct.is_featured,
        "isDigital": DbProduct.is_digital,
        "categoryId": DbProduct.category_id,
        "companyId": DbProduct.company_id,
        "isDeleted": DbProduct.is_deleted,
        "createdAt": DbProduct.created_at,
        "updatedAt": DbProduct.updated_at,
        "deletedAt": DbProduct.deleted_at,
        "category.name": DbCategory.name,
        "company.name": DbCompany.name,
    },
    joins={"category": DbProduct.category, "company": DbProduct.company},
    expand={"category": DbProduct.category, "company": DbProduct.company},
    default_order=(("name", "ASC"),),
)

ORDERABLE_FIELDS = {
    "name": DbProduct.name,
    "price": DbProduct.price,
    "createdAt": DbProduct.created_at,
    "updatedAt": DbProduct.updated_at,
    "stockQuantity": DbProduct.stock_quantity,
}


class ProductRepository(SQLAlchemyRepository, IProductRepository):
    """Repository for Product persistence and stock counters."""

    model = DbProduct
    query_config = PRODUCT_QUERY_CONFIG
    resource_name = "Produto"

    def get_by_sku(self, sku: str) -> Optional[DomainProduct]:
        row = self.db.scalars(select(DbProduct).where(DbProduct.sku == sku.strip())).first()
        return self._to_domain(row) if row else None

    def get_by_barcode(self, barcode: str) -> Optional[DomainProduct]:
        row = self.db.scalars(
            select(DbProduct).where(DbProduct.barcode == barcode.strip())
        ).first()
        return self._to_domain(row) if row else None

    def get_many(self, product_ids: List[str], for_update: bool = False) -> Dict[str, DomainProduct]:
        """Live products by id; ``for_update`` locks the rows on PostgreSQL."""
        if not product_ids:
            return {}
        stmt = self._base_query().where(DbProduct.id.in_(set(product_ids)))
        if for_update:
            stmt = stmt.with_for_update()
        return {row.id: self._to_domain(row) for row in self.db.scalars(stmt).all()}

    def list_low_stock(self, company_id: Optional[str] = None) -> List[DomainProduct]:
        level = func.coalesce(DbProduct.min_stock_level, get_low_stock_threshold())
        stmt = self._base_query().where(
            DbProduct.is_active.is_(True),
            DbProduct.stock_quantity > 0,
            DbProduct.stock_quantity <= level,
        )
        if company_id:
            stmt = stmt.where(DbProduct.company_id == company_id)
        stmt = stmt.order_by(DbProduct.stock_quantity.asc(), DbProduct.name.asc())
        return self._to_domain_list(self.db.scalars(stmt).all())

    def find_with_filters(self, filters: Dict[str, Any]) -> PaginatedResult:
        stmt = select(DbProduct).where(DbProduct.is_deleted.is_(False))

        if filters.get("name"):
            stmt = stmt.where(DbProduct.name.ilike(contains_pattern(filters["name"]), escape="\\"))
        if filters.get("sku"):
            stmt = stmt.where(DbProduct.sku.ilike(contains_pattern(filters["sku"]), escape="\\"))
        if filters.get("barcode"):
            stmt = stmt.where(DbProduct.barcode == filters["barcode"])
        if filters.get("category_id"):
            stmt = stmt.where(DbProduct.category_id == filters["category_id"])
        if filters.get("company_id"):
            stmt = stmt.where(DbProduct.company_id == filters["company_id"])
        if filters.get("min_price") is not None:
            stmt = stmt.where(DbProduct.price >= filters["min_price"])
        if filters.get("max_price") is not None:
            stmt = stmt.where(DbProduct.price <= filters["max_price"])
        if filters.get("is_active") is not None:
            stmt = stmt.where(DbProduct.is_active.is_(filters["is_active"]))
        if filters.get("is_featured") is not None:
            stmt = stmt.where(DbProduct.is_featured.is_(filters["is_featured"]))
        if filters.get("search_term"):
            pattern = contains_pattern(filters["search_term"])
            stmt = stmt.where(
                or_(
                    DbProduct.name.ilike(pattern, escape="\\"),
                    DbProduct.description.ilike(pattern, escape="\\"),
                    DbProduct.sku.ilike(pattern, escape="\\"),
                )
            )

        # Stock filters are mutually exclusive; the first one set wins
        if filters.get("in_stock"):
            stmt = stmt.where(DbProduct.stock_quantity > 0)
        elif filters.get("low_stock"):
            stmt = stmt.where(
                and_(
                    DbProduct.min_stock_level.is_not(None),
                    DbProduct.stock_quantity <= DbProduct.min_stock_level,
                    DbProduct.stock_quantity > 0,
                )
            )
        elif filters.get("out_of_stock"):
            stmt = stmt.where(DbProduct.stock_quantity <= 0)

        order_column = ORDERABLE_FIELDS.get(filters.get("order_by") or "createdAt", DbProduct.created_at)
        stmt = self._ordered(stmt, order_column, filters.get("order_direction") or "DESC", DbProduct.id)
        return self.paginate(stmt, filters.get("page", 1), filters.get("page_size"))

    def save_stock(self, product: DomainProduct, commit: bool = True) -> DomainProduct:
        row = self.get_model(product.id)
        if row is None:
            raise NotFoundError(self.resource_name)
        row.stock_quantity = product.stock_quantity
        row.reserved_quantity = product.reserved_quantity
        if not commit:
            self.db.flush()
            return self._to_domain(row)
        self.db.commit()
        self.db.refresh(row)
        return self._to_domain(row)

    def _values(self, entity: DomainProduct) -> Dict[str, Any]:
        return {
            "name": entity.name.strip(),
            "description": entity.description,
            "short_description": entity.short_description,
            "sku": entity.sku,
            "barcode": entity.barcode,
            "price": entity.price,
            "cost_price": entity.cost_price,
            "stock_quantity": entity.stock_quantity,
            "reserved_quantity": entity.reserved_quantity,
            "min_stock_level": entity.min_stock_level,
            "max_stock_level": entity.max_stock_level,
            "weight": entity.weight,
            "height": entity.height,
            "width": entity.width,
            "length": entity.length,
            "image_url": entity.image_url,
            "is_active": entity.is_active,
            "is_featured": entity.is_featured,
            "is_digital": entity.is_digital,
            "category_id": entity.category_id,
            "company_id": entity.company_id,
            "is_deleted": entity.is_deleted,
            "deleted_at": entity.deleted_at,
        }

    def _expand(self, row: DbProduct, names) -> Dict[str, Any]:
        expanded: Dict[str, Any] = {}
        if "category" in names:
            expanded["category"] = CategoryRepository(self.db)._to_domain(row.category)
        if "company" in names:
            expanded["company"] = CompanyRepository(self.db)._to_domain(row.company)
        return expanded

    def _to_domain(self, db_product: DbProduct) -> Optional[DomainProduct]:
        if not db_product:
            return None
        return DomainProduct(
            id=db_product.id,
            name=db_product.name,
            description=db_product.description,
            short_description=db_product.short_description,
            sku=db_product.sku,
            barcode=db_product.barcode,
            price=db_product.price,
            cost_price=db_product.cost_price,
            stock_quantity=db_product.stock_quantity or 0,
            reserved_quantity=db_product.reserved_quantity or 0,
            min_stock_level=db_product.min_stock_level,
            max_stock_level=db_product.max_stock_level,
            weight=db_product.weight,
            height=db_product.height,
            width=db_product.width,
            length=db_product.length,
            image_url=db_product.image_url,
            is_active=db_product.is_active,
            is_featured=db_product.is_featured,
            is_digital=db_product.is_digital,
            category_id=db_product.category_id,
            company_id=db_product.company_id,
            is_deleted=db_product.is_deleted,
            created_at=db_product.created_at,
            updated_at=db_product.updated_at,
            deleted_at=db_product.deleted_at,
        )

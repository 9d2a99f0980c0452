"""Sale repository implementation.

Items are written together with the sale header; after creation only the
header is updated (items are frozen once the sale exists).
"""

from typing import Any, Dict, Optional

from sqlalchemy import select

from estoque.core.odata.translator import EntityQueryConfig
from estoque.db.base import Company as DbCompany
from estoque.db.base import Sale as DbSale
from estoque.db.base import SaleItem as DbSaleItem
from estoque.domain.entities import Sale as DomainSale
from estoque.domain.entities import SaleItem as DomainSaleItem
from estoque.domain.interfaces import ISaleRepository
from estoque.domain.pagination import PaginatedResult
from estoque.repositories.base_repository import SQLAlchemyRepository
from estoque.repositories.company_repo import CompanyRepository

SALE_QUERY_CONFIG = EntityQueryConfig(
    model=DbSale,
    fields={
        "id": DbSale.id,
        "saleNumber": DbSale.sale_number,
        "customerId": DbSale.customer_id,
        "companyId": DbSale.company_id,
        "saleType": DbSale.sale_type,
        "paymentType": DbSale.payment_type,
        "status": DbSale.status,
        "totalAmount": DbSale.total_amount,
        "totalCost": DbSale.total_cost,
        "discountValue": DbSale.discount_value,
        "taxValue": DbSale.tax_value,
        "shippingValue": DbSale.shipping_value,
        "netAmount": DbSale.net_amount,
        "saleDate": DbSale.sale_date,
        "paymentDueDate": DbSale.payment_due_date,
        "deliveryDate": DbSale.delivery_date,
        "paymentInstallments": DbSale.payment_installments,
        "deliveryMethod": DbSale.delivery_method,
        "trackingCode": DbSale.tracking_code,
        "isDeleted": DbSale.is_deleted,
        "createdAt": DbSale.created_at,
        "updatedAt": DbSale.updated_at,
        "deletedAt": DbSale.deleted_at,
        "company.name": DbCompany.name,
    },
    joins={"company": DbSale.company},
    expand={"company": DbSale.company, "items": DbSale.items},
    default_order=(("saleDate", "DESC"),),
)

HEADER_FIELDS = (
    "customer_id",
    "company_id",
    "sale_number",
    "total_amount",
    "total_cost",
    "discount_value",
    "tax_value",
    "shipping_value",
    "net_amount",
    "sale_date",
    "payment_due_date",
    "delivery_date",
    "notes",
    "internal_notes",
    "payment_installments",
    "delivery_method",
    "tracking_code",
    "is_deleted",
    "deleted_at",
)


class SaleRepository(SQLAlchemyRepository, ISaleRepository):
    """Repository for Sale and SaleItem persistence operations."""

    model = DbSale
    query_config = SALE_QUERY_CONFIG
    resource_name = "Venda"

    def get_by_number(self, sale_number: str) -> Optional[DomainSale]:
        row = self.db.scalars(select(DbSale).where(DbSale.sale_number == sale_number)).first()
        return self._to_domain(row) if row else None

    def create(self, entity: DomainSale) -> DomainSale:
        row = DbSale(id=entity.id, **self._values(entity))
        row.items = [self._item_row(item, entity.id) for item in entity.items]
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return self._to_domain(row)

    def find_with_filters(self, filters: Dict[str, Any]) -> PaginatedResult:
        stmt = select(DbSale).where(DbSale.is_deleted.is_(False))
        for key, column in (
            ("status", DbSale.status),
            ("sale_type", DbSale.sale_type),
            ("payment_type", DbSale.payment_type),
            ("customer_id", DbSale.customer_id),
            ("company_id", DbSale.company_id),
        ):
            if filters.get(key):
                stmt = stmt.where(column == filters[key])
        if filters.get("start_date") is not None:
            stmt = stmt.where(DbSale.sale_date >= filters["start_date"])
        if filters.get("end_date") is not None:
            stmt = stmt.where(DbSale.sale_date <= filters["end_date"])
        if filters.get("min_amount") is not None:
            stmt = stmt.where(DbSale.net_amount >= filters["min_amount"])
        if filters.get("max_amount") is not None:
            stmt = stmt.where(DbSale.net_amount <= filters["max_amount"])
        stmt = self._ordered(stmt, DbSale.sale_date, "DESC", DbSale.id)
        return self.paginate(stmt, filters.get("page", 1), filters.get("page_size"))

    def _values(self, entity: DomainSale) -> Dict[str, Any]:
        values = {name: getattr(entity, name) for name in HEADER_FIELDS}
        values["sale_type"] = entity.sale_type.value
        values["payment_type"] = entity.payment_type.value
        values["status"] = entity.status.value
        return values

    @staticmethod
    def _item_row(item: DomainSaleItem, sale_id: str) -> DbSaleItem:
        return DbSaleItem(
            id=item.id,
            sale_id=sale_id,
            product_id=item.product_id,
            name=item.name,
            sku=item.sku,
            quantity=item.quantity,
            unit_price=item.unit_price,
            cost_price=item.cost_price,
            discount_value=item.discount_value,
            tax_rate=item.tax_rate,
            tax_value=item.tax_value,
            total_price=item.total_price,
            total_cost=item.total_cost,
        )

    def _expand(self, row: DbSale, names) -> Dict[str, Any]:
        expanded: Dict[str, Any] = {}
        if "company" in names:
            expanded["company"] = CompanyRepository(self.db)._to_domain(row.company)
        if "items" in names:
            expanded["items"] = [self._item_to_domain(item) for item in row.items]
        return expanded

    @staticmethod
    def _item_to_domain(db_item: DbSaleItem) -> DomainSaleItem:
        return DomainSaleItem(
            id=db_item.id,
            sale_id=db_item.sale_id,
            product_id=db_item.product_id,
            name=db_item.name,
            sku=db_item.sku,
            quantity=db_item.quantity,
            unit_price=db_item.unit_price,
            cost_price=db_item.cost_price,
            discount_value=db_item.discount_value,
            tax_rate=db_item.tax_rate,
            is_deleted=db_item.is_deleted,
            created_at=db_item.created_at,
            updated_at=db_item.updated_at,
            deleted_at=db_item.deleted_at,
        )

    def _to_domain(self, db_sale: DbSale) -> Optional[DomainSale]:
        if not db_sale:
            return None
        return DomainSale(
            id=db_sale.id,
            customer_id=db_sale.customer_id,
            company_id=db_sale.company_id,
            sale_number=db_sale.sale_number,
            sale_type=db_sale.sale_type,
            payment_type=db_sale.payment_type,
            status=db_sale.status,
            total_amount=db_sale.total_amount,
            total_cost=db_sale.total_cost,
            discount_value=db_sale.discount_value,
            tax_value=db_sale.tax_value,
            shipping_value=db_sale.shipping_value,
            net_amount=db_sale.net_amount,
            sale_date=db_sale.sale_date,
            payment_due_date=db_sale.payment_due_date,
            delivery_date=db_sale.delivery_date,
            notes=db_sale.notes,
            internal_notes=db_sale.internal_notes,
            payment_installments=db_sale.payment_installments or 1,
            delivery_method=db_sale.delivery_method,
            tracking_code=db_sale.tracking_code,
            items=[self._item_to_domain(item) for item in db_sale.items],
            is_deleted=db_sale.is_deleted,
            created_at=db_sale.created_at,
            updated_at=db_sale.updated_at,
            deleted_at=db_sale.deleted_at,
        )

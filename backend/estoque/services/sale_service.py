"""
Sale use cases.

Stock follows the sale lifecycle:
- creation reserves every item's quantity
- leaving a reserving status (PENDING, CONFIRMED, IN_PROGRESS) for a
  fulfilment status consumes the reservation
- cancelling a reserving sale releases the reservation
- returning (or cancelling) a sale whose stock was already consumed puts
  the quantities back

Stock counters are flushed on the shared session and committed together
with the sale row.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from estoque.core.exceptions import (
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from estoque.core.odata.parser import ODataQuery
from estoque.domain.entities import (
    RESERVING_STATUSES,
    ZERO,
    Product,
    Sale,
    SaleItem,
    SaleStatus,
    generate_sale_number,
    money,
)
from estoque.domain.interfaces import (
    ICompanyRepository,
    IProductRepository,
    ISaleRepository,
    ITaxRepository,
)
from estoque.domain.pagination import PaginatedResult
from estoque.services.odata_service import PRODUCTS, SALES, invalidate_cache

logger = logging.getLogger(__name__)

SALE_NUMBER_ATTEMPTS = 5

EDITABLE_FIELDS = (
    "discount_value",
    "tax_value",
    "shipping_value",
    "payment_due_date",
    "delivery_date",
    "notes",
    "internal_notes",
    "delivery_method",
    "tracking_code",
    "payment_installments",
)

# Statuses after which the sold quantities have left the stock
CONSUMED_STATUSES = {SaleStatus.SHIPPED, SaleStatus.DELIVERED, SaleStatus.COMPLETED}


class SaleService:
    """Application service for sale use cases."""

    def __init__(
        self,
        sale_repo: ISaleRepository,
        product_repo: IProductRepository,
        company_repo: ICompanyRepository,
        tax_repo: Optional[ITaxRepository] = None,
    ) -> None:
        self.sale_repo = sale_repo
        self.product_repo = product_repo
        self.company_repo = company_repo
        self.tax_repo = tax_repo

    # ---- helpers -------------------------------------------------------

    def _require(self, sale_id: str, include_deleted: bool = False) -> Sale:
        sale = self.sale_repo.get_by_id(sale_id, include_deleted=include_deleted)
        if sale is None:
            raise NotFoundError("Venda", "Venda não encontrada")
        return sale

    def _unique_sale_number(self) -> str:
        for _ in range(SALE_NUMBER_ATTEMPTS):
            number = generate_sale_number()
            if self.sale_repo.get_by_number(number) is None:
                return number
        raise ConflictError("Não foi possível gerar um número de venda único")

    def _tax_rate(self, product: Product) -> Decimal:
        if self.tax_repo is None or not product.category_id:
            return ZERO
        taxes = self.tax_repo.list_by_category(product.category_id)
        return sum((tax.percentage for tax in taxes), ZERO)

    @staticmethod
    def _quantities(items: List[SaleItem]) -> "OrderedDict[str, int]":
        totals: "OrderedDict[str, int]" = OrderedDict()
        for item in items:
            totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
        return totals

    def _move_stock(self, sale: Sale, operation: str) -> None:
        """Apply ``operation`` (reserve/release/confirm/restock) to every item."""
        quantities = self._quantities(sale.items)
        products = self.product_repo.get_many(list(quantities), for_update=True)
        for product_id, quantity in quantities.items():
            product = products.get(product_id)
            if product is None:
                if operation == "reserve":
                    raise NotFoundError("Produto", f"Produto {product_id} não encontrado")
                logger.warning(
                    "Stock movement skipped for missing product",
                    extra={
                        "context": {
                            "sale_id": sale.id,
                            "product_id": product_id,
                            "operation": operation,
                        }
                    },
                )
                continue
            if operation == "reserve":
                product.reserve_stock(quantity)
            elif operation == "release":
                product.release_stock(quantity)
            elif operation == "confirm":
                product.confirm_reservation(quantity)
            else:
                product.restock(quantity)
            self.product_repo.save_stock(product, commit=False)
        logger.info(
            "Sale stock movement",
            extra={
                "context": {
                    "sale_id": sale.id,
                    "operation": operation,
                    "products": len(quantities),
                }
            },
        )

    def _apply_stock_effects(self, sale: Sale, previous: SaleStatus) -> None:
        current = sale.status
        if previous in RESERVING_STATUSES:
            if current == SaleStatus.CANCELLED:
                self._move_stock(sale, "release")
            elif current not in RESERVING_STATUSES:
                self._move_stock(sale, "confirm")
        elif previous in CONSUMED_STATUSES and current in (SaleStatus.RETURNED, SaleStatus.CANCELLED):
            self._move_stock(sale, "restock")

    def _save(self, sale: Sale) -> Sale:
        updated = self.sale_repo.update(sale)
        invalidate_cache(SALES, PRODUCTS)
        return updated

    # ---- use cases -----------------------------------------------------

    def create_sale(self, data: Dict[str, Any]) -> Sale:
        company_id = data["company_id"]
        if self.company_repo.get_by_id(company_id) is None:
            raise NotFoundError("Empresa", "Empresa não encontrada")

        raw_items = data["items"]
        products = self.product_repo.get_many([i["product_id"] for i in raw_items], for_update=True)
        items: List[SaleItem] = []
        for raw in raw_items:
            product = products.get(raw["product_id"])
            if product is None:
                raise NotFoundError("Produto", f"Produto {raw['product_id']} não encontrado")
            if not product.is_active:
                raise BusinessRuleError(f"Produto {product.name} está inativo")
            if product.company_id != company_id:
                raise BusinessRuleError(f"Produto {product.name} não pertence à empresa da venda")
            unit_price = raw.get("unit_price")
            try:
                item = SaleItem(
                    product_id=product.id,
                    name=product.name,
                    sku=product.sku,
                    quantity=raw["quantity"],
                    unit_price=unit_price if unit_price is not None else product.price,
                    cost_price=product.cost_price or ZERO,
                    discount_value=raw.get("discount_value") or ZERO,
                    tax_rate=self._tax_rate(product),
                )
            except ValueError as e:
                raise ValidationError(str(e))
            # shared entity per product, so repeated lines accumulate
            product.reserve_stock(item.quantity)
            items.append(item)

        try:
            sale = Sale(
                customer_id=data["customer_id"],
                company_id=company_id,
                sale_number=self._unique_sale_number(),
                sale_type=data["sale_type"],
                payment_type=data["payment_type"],
                status=SaleStatus.PENDING,
                discount_value=data.get("discount_value") or ZERO,
                shipping_value=data.get("shipping_value") or ZERO,
                sale_date=data.get("sale_date"),
                payment_due_date=data.get("payment_due_date"),
                delivery_date=data.get("delivery_date"),
                notes=data.get("notes"),
                internal_notes=data.get("internal_notes"),
                payment_installments=data.get("payment_installments") or 1,
                delivery_method=data.get("delivery_method"),
                tracking_code=data.get("tracking_code"),
                items=items,
            )
        except ValueError as e:
            raise ValidationError(str(e))

        for item in sale.items:
            item.sale_id = sale.id
        if data.get("tax_value") is not None:
            sale.tax_value = money(data["tax_value"])
        else:
            sale.tax_value = money(sum((item.tax_value for item in items), ZERO))
        sale.calculate_totals()

        for product in products.values():
            self.product_repo.save_stock(product, commit=False)
        created = self.sale_repo.create(sale)
        invalidate_cache(SALES, PRODUCTS)
        logger.info(
            "Sale created",
            extra={
                "context": {
                    "sale_id": created.id,
                    "sale_number": created.sale_number,
                    "items": len(created.items),
                    "net_amount": str(created.net_amount),
                }
            },
        )
        return created

    def get_sale(self, sale_id: str) -> Sale:
        return self._require(sale_id)

    def list_sales(self, filters: Dict[str, Any]) -> PaginatedResult:
        return self.sale_repo.find_with_filters(filters)

    def list_odata(self, query: Optional[ODataQuery]) -> PaginatedResult:
        return self.sale_repo.find_odata(query)

    def update_sale(self, sale_id: str, data: Dict[str, Any]) -> Sale:
        sale = self._require(sale_id)
        if not sale.can_be_edited:
            raise BusinessRuleError(f"Venda não pode ser editada no status {sale.status.value}")
        for key in EDITABLE_FIELDS:
            if key in data:
                value = data[key]
                if key in ("discount_value", "tax_value", "shipping_value"):
                    value = money(value)
                setattr(sale, key, value)
        sale.recalculate_net()
        updated = self._save(sale)
        logger.info("Sale updated", extra={"context": {"sale_id": sale_id}})
        return updated

    def update_status(self, sale_id: str, status: str, notes: Optional[str] = None) -> Sale:
        sale = self._require(sale_id)
        previous = sale.transition_to(SaleStatus(status))
        self._apply_stock_effects(sale, previous)
        if notes:
            sale.append_note(f"Status {previous.value} -> {sale.status.value}: {notes}")
        updated = self._save(sale)
        logger.info(
            "Sale status changed",
            extra={
                "context": {
                    "sale_id": sale_id,
                    "from": previous.value,
                    "to": sale.status.value,
                }
            },
        )
        return updated

    def process_payment(
        self,
        sale_id: str,
        payment_date: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> Sale:
        sale = self._require(sale_id, include_deleted=True)
        if sale.is_deleted:
            raise BusinessRuleError("Venda foi removida")
        if sale.status in (SaleStatus.CANCELLED, SaleStatus.REFUNDED, SaleStatus.RETURNED):
            raise BusinessRuleError(
                "Não é possível processar pagamento de venda cancelada, devolvida ou reembolsada"
            )
        if sale.status == SaleStatus.COMPLETED:
            raise BusinessRuleError("Pagamento desta venda já foi processado")

        previous = sale.status
        if sale.is_credit_sale:
            # credit sales are only confirmed; fulfilment continues afterwards
            if sale.status == SaleStatus.PENDING:
                sale.status = SaleStatus.CONFIRMED
        else:
            sale.status = SaleStatus.COMPLETED
        self._apply_stock_effects(sale, previous)

        if payment_date is not None:
            sale.payment_due_date = payment_date
        if notes:
            sale.append_note(f"Pagamento: {notes}")
        sale.recalculate_net()

        updated = self._save(sale)
        logger.info(
            "Sale payment processed",
            extra={
                "context": {
                    "sale_id": sale_id,
                    "from": previous.value,
                    "to": sale.status.value,
                    "credit": sale.is_credit_sale,
                }
            },
        )
        return updated

    def cancel_sale(
        self,
        sale_id: str,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Sale:
        sale = self._require(sale_id)
        if not sale.can_be_cancelled:
            raise BusinessRuleError(
                "Esta venda não pode ser cancelada (já foi cancelada, reembolsada ou devolvida)"
            )
        if sale.status == SaleStatus.COMPLETED:
            raise BusinessRuleError("Vendas completadas precisam ser devolvidas ao invés de canceladas")

        previous = sale.status
        sale.status = SaleStatus.CANCELLED
        self._apply_stock_effects(sale, previous)

        parts = []
        if reason:
            parts.append(f"Motivo: {reason}")
        if notes:
            parts.append(f"Observações: {notes}")
        if parts:
            sale.append_note("Cancelamento: " + " | ".join(parts))

        updated = self._save(sale)
        logger.info(
            "Sale cancelled",
            extra={"context": {"sale_id": sale_id, "from": previous.value}},
        )
        return updated

    def delete_sale(self, sale_id: str) -> None:
        sale = self._require(sale_id)
        if sale.status not in (SaleStatus.PENDING, SaleStatus.CANCELLED):
            raise BusinessRuleError("Apenas vendas pendentes ou canceladas podem ser excluídas")
        if sale.holds_reservation:
            self._move_stock(sale, "release")
        self.sale_repo.soft_delete(sale_id)
        invalidate_cache(SALES, PRODUCTS)
        logger.info("Sale deleted", extra={"context": {"sale_id": sale_id}})

    def restore_sale(self, sale_id: str) -> Sale:
        sale = self._require(sale_id, include_deleted=True)
        if not sale.is_deleted:
            raise ConflictError("Venda não está excluída")
        if sale.holds_reservation:
            self._move_stock(sale, "reserve")
        self.sale_repo.restore(sale_id)
        invalidate_cache(SALES, PRODUCTS)
        logger.info("Sale restored", extra={"context": {"sale_id": sale_id}})
        return self._require(sale_id)

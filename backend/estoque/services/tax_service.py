"""
Tax use cases.

Every tax points at an existing category. Calculation applies the percentage to a
non-negative base amount and refuses inactive taxes.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from estoque.core.exceptions import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from estoque.core.odata.parser import ODataQuery
from estoque.domain.entities import Tax, money
from estoque.domain.interfaces import ICategoryRepository, ITaxRepository
from estoque.domain.pagination import PaginatedResult
from estoque.services.odata_service import TAXES, invalidate_cache

logger = logging.getLogger(__name__)


class TaxService:
    """Application service for tax use cases."""

    def __init__(self, tax_repo: ITaxRepository, category_repo: ICategoryRepository) -> None:
        self.tax_repo = tax_repo
        self.category_repo = category_repo

    def _require(self, tax_id: str, include_deleted: bool = False) -> Tax:
        tax = self.tax_repo.get_by_id(tax_id, include_deleted=include_deleted)
        if tax is None:
            raise NotFoundError("Imposto")
        return tax

    def _check_category(self, category_id: Optional[str]) -> None:
        if category_id and self.category_repo.get_by_id(category_id) is None:
            raise NotFoundError("Categoria", "Categoria não encontrada")

    def create_tax(self, data: Dict[str, Any]) -> Tax:
        self._check_category(data.get("category_id"))
        try:
            tax = Tax(
                name=data["name"],
                description=data.get("description"),
                percentage=data["percentage"],
                category_id=data["category_id"],
                is_active=data.get("is_active", True),
            )
        except ValueError as e:
            raise ValidationError(str(e))
        created = self.tax_repo.create(tax)
        invalidate_cache(TAXES)
        logger.info("Tax created", extra={"context": {"tax_id": created.id}})
        return created

    def get_tax(self, tax_id: str) -> Tax:
        return self._require(tax_id)

    def list_taxes(self, filters: Dict[str, Any]) -> PaginatedResult:
        return self.tax_repo.find_with_filters(filters)

    def list_odata(self, query: Optional[ODataQuery]) -> PaginatedResult:
        return self.tax_repo.find_odata(query)

    def update_tax(self, tax_id: str, data: Dict[str, Any]) -> Tax:
        tax = self._require(tax_id)
        self._check_category(data.get("category_id"))
        for key in ("name", "description", "percentage", "category_id", "is_active"):
            if key in data:
                setattr(tax, key, data[key])
        try:
            tax.__post_init__()
        except ValueError as e:
            raise ValidationError(str(e))
        updated = self.tax_repo.update(tax)
        invalidate_cache(TAXES)
        logger.info("Tax updated", extra={"context": {"tax_id": tax_id}})
        return updated

    def delete_tax(self, tax_id: str) -> None:
        self._require(tax_id)
        self.tax_repo.soft_delete(tax_id)
        invalidate_cache(TAXES)
        logger.info("Tax deleted", extra={"context": {"tax_id": tax_id}})

    def restore_tax(self, tax_id: str) -> Tax:
        tax = self._require(tax_id, include_deleted=True)
        if not tax.is_deleted:
            raise ConflictError("Imposto não está excluído")
        self.tax_repo.restore(tax_id)
        invalidate_cache(TAXES)
        logger.info("Tax restored", extra={"context": {"tax_id": tax_id}})
        return self._require(tax_id)

    def calculate_tax(self, tax_id: str, amount: Decimal) -> Dict[str, Any]:
        """Apply the tax to ``amount``; inactive taxes are refused."""
        tax = self._require(tax_id)
        if not tax.is_active:
            raise BusinessRuleError("Imposto inativo não pode ser aplicado")
        amount = money(amount)
        if amount < 0:
            raise ValidationError("Valor base não pode ser negativo")
        tax_value = tax.calculate(amount)
        return {
            "tax_id": tax.id,
            "name": tax.name,
            "percentage": tax.percentage,
            "base_amount": amount,
            "tax_value": tax_value,
            "total_amount": money(amount + tax_value),
        }

"""
Unit tests for ProductService: reference checks, uniqueness and stock
operations delegated to the Product entity.
"""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from estoque.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from estoque.services.product_service import ProductService
from tests.factories.entity_factories import (
    build_category,
    build_company,
    build_product,
    new_uuid,
)
from tests.factories.repository_factories import (
    CategoryRepositoryFactory,
    CompanyRepositoryFactory,
    ProductRepositoryFactory,
)


@pytest.fixture
def product_repo() -> Mock:
    return ProductRepositoryFactory.create_mock_full()


@pytest.fixture
def company_repo() -> Mock:
    repo = CompanyRepositoryFactory.create_mock_full()
    repo.get_by_id.return_value = build_company()
    return repo


@pytest.fixture
def category_repo() -> Mock:
    repo = CategoryRepositoryFactory.create_mock_full()
    repo.get_by_id.return_value = build_category()
    return repo


@pytest.fixture
def service(product_repo, company_repo, category_repo) -> ProductService:
    return ProductService(product_repo, company_repo, category_repo)


def _data(**overrides):
    data = {
        "name": "Caderno 96 folhas",
        "price": Decimal("18.90"),
        "cost_price": Decimal("9.00"),
        "stock_quantity": 30,
        "company_id": new_uuid(),
        "category_id": new_uuid(),
        "sku": "CAD-96",
    }
    data.update(overrides)
    return data


def test_create_product(service, product_repo):
    created = service.create_product(_data())

    assert created.price == Decimal("18.90")
    assert created.stock_quantity == 30
    assert created.reserved_quantity == 0
    product_repo.create.assert_called_once()


def test_create_product_defaults_stock_to_zero(service):
    created = service.create_product(_data(stock_quantity=None))
    assert created.stock_quantity == 0


def test_create_product_unknown_company(service, company_repo):
    company_repo.get_by_id.return_value = None

    with pytest.raises(NotFoundError) as exc_info:
        service.create_product(_data())
    assert exc_info.value.message == "Empresa não encontrada"


def test_create_product_unknown_category(service, category_repo):
    category_repo.get_by_id.return_value = None

    with pytest.raises(NotFoundError):
        service.create_product(_data())


def test_create_product_duplicate_sku(service, product_repo):
    product_repo.get_by_sku.return_value = build_product(sku="CAD-96")

    with pytest.raises(ConflictError):
        service.create_product(_data())
    product_repo.create.assert_not_called()


def test_create_product_duplicate_barcode(service, product_repo):
    product_repo.get_by_barcode.return_value = build_product(barcode="7890000000000")

    with pytest.raises(ConflictError):
        service.create_product(_data(barcode="7890000000000"))


def test_update_product_same_sku_is_allowed(service, product_repo):
    product = build_product(sku="CAD-96")
    product_repo.get_by_id.return_value = product
    product_repo.get_by_sku.return_value = product

    updated = service.update_product(product.id, {"sku": "CAD-96", "price": Decimal("20")})

    assert updated.price == Decimal("20.00")


def test_update_product_stock_respects_reservation(service, product_repo):
    product = build_product(stock_quantity=10, reserved_quantity=8)
    product_repo.get_by_id.return_value = product

    with pytest.raises(BusinessRuleError):
        service.update_product(product.id, {"stock_quantity": 5})
    product_repo.update.assert_not_called()


def test_update_stock(service, product_repo):
    product = build_product(stock_quantity=10)
    product_repo.get_by_id.return_value = product

    saved = service.update_stock(product.id, 42)

    assert saved.stock_quantity == 42
    product_repo.save_stock.assert_called_once_with(product)


def test_reserve_stock(service, product_repo):
    product = build_product(stock_quantity=10, reserved_quantity=2)
    product_repo.get_by_id.return_value = product

    saved = service.reserve_stock(product.id, 5)

    assert saved.reserved_quantity == 7
    assert saved.available_quantity == 3


def test_reserve_stock_insufficient(service, product_repo):
    product = build_product(stock_quantity=3)
    product_repo.get_by_id.return_value = product

    with pytest.raises(BusinessRuleError) as exc_info:
        service.reserve_stock(product.id, 4)
    assert "Estoque insuficiente" in exc_info.value.message
    product_repo.save_stock.assert_not_called()


def test_release_stock_floors_at_zero(service, product_repo):
    product = build_product(stock_quantity=10, reserved_quantity=1)
    product_repo.get_by_id.return_value = product

    assert service.release_stock(product.id, 5).reserved_quantity == 0


def test_stock_operation_on_missing_product(service):
    with pytest.raises(NotFoundError):
        service.reserve_stock(new_uuid(), 1)


def test_list_low_stock_passes_company(service, product_repo):
    low = build_product(stock_quantity=1)
    product_repo.list_low_stock.return_value = [low]
    company_id = new_uuid()

    assert service.list_low_stock(company_id) == [low]
    product_repo.list_low_stock.assert_called_once_with(company_id)


def test_restore_product(service, product_repo):
    product = build_product()
    product.soft_delete()
    product_repo.get_by_id.return_value = product

    service.restore_product(product.id)

    product_repo.restore.assert_called_once_with(product.id)


def test_delete_missing_product(service, product_repo):
    with pytest.raises(NotFoundError):
        service.delete_product(new_uuid())
    product_repo.soft_delete.assert_not_called()

"""
Repository integration tests against the in-memory SQLite database.

Tests cover:
- Create/read round trips including JSON address and sale items
- Soft delete and restore visibility
- Filtered listings with paging
- OData listings: filter, order, count, expand
- Low-stock query and stock counter persistence
"""

from decimal import Decimal

import pytest

from estoque.core.odata.parser import parse_odata_query
from estoque.domain.entities import SaleStatus
from estoque.repositories.category_repo import CategoryRepository
from estoque.repositories.company_repo import CompanyRepository
from estoque.repositories.product_repo import ProductRepository
from estoque.repositories.sale_repo import SaleRepository
from estoque.repositories.tax_repo import TaxRepository
from tests.factories.entity_factories import (
    build_category,
    build_company,
    build_product,
    build_sale,
    build_sale_item,
    build_tax,
)


@pytest.fixture
def category_repo(db_session):
    return CategoryRepository(db_session)


@pytest.fixture
def company_repo(db_session):
    return CompanyRepository(db_session)


@pytest.fixture
def product_repo(db_session):
    return ProductRepository(db_session)


@pytest.fixture
def company(company_repo):
    return company_repo.create(build_company())


@pytest.fixture
def category(category_repo):
    return category_repo.create(build_category(name="Papelaria"))


def test_category_round_trip(category_repo, category):
    loaded = category_repo.get_by_id(category.id)

    assert loaded.name == "Papelaria"
    assert loaded.created_at is not None
    assert category_repo.get_by_name("PAPELARIA").id == category.id


def test_soft_delete_hides_and_restore_shows(category_repo, category):
    assert category_repo.soft_delete(category.id) is True

    assert category_repo.get_by_id(category.id) is None
    deleted = category_repo.get_by_id(category.id, include_deleted=True)
    assert deleted.is_deleted and deleted.deleted_at is not None
    assert category_repo.get_by_name("Papelaria") is None

    assert category_repo.restore(category.id) is True
    assert category_repo.get_by_id(category.id).is_deleted is False


def test_soft_delete_of_unknown_id(category_repo):
    assert category_repo.soft_delete("00000000-0000-4000-8000-000000000000") is False


def test_category_listing_scopes_deleted_rows(category_repo):
    live = category_repo.create(build_category(name="Livros"))
    gone = category_repo.create(build_category(name="Brinquedos"))
    category_repo.soft_delete(gone.id)

    live_page = category_repo.find_with_filters({})
    deleted_page = category_repo.find_with_filters({"is_active": False})

    assert [c.id for c in live_page.items] == [live.id]
    assert [c.id for c in deleted_page.items] == [gone.id]


def test_category_product_and_subcategory_counts(category_repo, product_repo, category, company):
    category_repo.create(build_category(name="Cadernos", parent_category_id=category.id))
    product_repo.create(build_product(company_id=company.id, category_id=category.id))

    assert category_repo.count_active_products(category.id) == 1
    assert category_repo.count_subcategories(category.id) == 1


def test_company_address_is_stored_as_json(company_repo, company):
    loaded = company_repo.get_by_id(company.id)

    assert loaded.address.city == "São Paulo"
    assert loaded.address.state == "SP"
    assert loaded.address.zip_code == "01001-000"


def test_company_lookups_include_deleted(company_repo, company):
    company_repo.soft_delete(company.id)

    assert company_repo.get_by_doc_id(company.doc_id).is_deleted is True
    assert company_repo.get_by_email(company.email.upper()).id == company.id


def test_product_filters_and_paging(product_repo, company):
    for index in range(5):
        product_repo.create(
            build_product(
                name=f"Caneta {index}",
                company_id=company.id,
                price=Decimal(10 + index),
                stock_quantity=index,
            )
        )

    page = product_repo.find_with_filters(
        {"min_price": Decimal("11"), "order_by": "price", "order_direction": "ASC", "page": 2, "page_size": 2}
    )

    assert page.total == 4
    assert page.total_pages == 2
    assert [p.name for p in page.items] == ["Caneta 3", "Caneta 4"]
    assert page.has_previous_page and not page.has_next_page


def test_product_stock_flags_filters(product_repo, company):
    product_repo.create(build_product(name="Zerado", company_id=company.id, stock_quantity=0))
    product_repo.create(build_product(name="Baixo", company_id=company.id, stock_quantity=2, min_stock_level=3))
    product_repo.create(build_product(name="Cheio", company_id=company.id, stock_quantity=50))

    def names(**filters):
        return sorted(p.name for p in product_repo.find_with_filters(filters).items)

    assert names(out_of_stock=True) == ["Zerado"]
    assert names(low_stock=True) == ["Baixo"]
    assert names(in_stock=True) == ["Baixo", "Cheio"]
    assert names(search_term="ixo") == ["Baixo"]


def test_list_low_stock_uses_threshold_fallback(product_repo, company, monkeypatch):
    monkeypatch.setenv("LOW_STOCK_THRESHOLD", "5")
    product_repo.create(build_product(name="Sem mínimo", company_id=company.id, stock_quantity=4, min_stock_level=None))
    product_repo.create(build_product(name="Abaixo", company_id=company.id, stock_quantity=1, min_stock_level=3))
    product_repo.create(build_product(name="Folgado", company_id=company.id, stock_quantity=40, min_stock_level=3))
    product_repo.create(
        build_product(name="Inativo", company_id=company.id, stock_quantity=1, min_stock_level=3, is_active=False)
    )

    low = product_repo.list_low_stock(company.id)

    assert [p.name for p in low] == ["Abaixo", "Sem mínimo"]


def test_save_stock_persists_counters(product_repo, company):
    product = product_repo.create(build_product(company_id=company.id, stock_quantity=10))
    product.reserve_stock(4)

    product_repo.save_stock(product)

    reloaded = product_repo.get_by_id(product.id)
    assert reloaded.stock_quantity == 10
    assert reloaded.reserved_quantity == 4


def test_get_many_skips_unknown_and_deleted(product_repo, company):
    keep = product_repo.create(build_product(company_id=company.id))
    drop = product_repo.create(build_product(company_id=company.id))
    product_repo.soft_delete(drop.id)

    found = product_repo.get_many([keep.id, drop.id, "00000000-0000-4000-8000-000000000000"])

    assert list(found) == [keep.id]


def test_product_odata_filter_order_and_count(product_repo, company, category):
    product_repo.create(build_product(name="Lápis", company_id=company.id, price=Decimal("2.50"), category_id=category.id))
    product_repo.create(build_product(name="Borracha", company_id=company.id, price=Decimal("1.20")))
    product_repo.create(build_product(name="Mochila", company_id=company.id, price=Decimal("150.00"), category_id=category.id))

    result = product_repo.find_odata(
        parse_odata_query("$filter=price lt 100 and category.name eq 'Papelaria'&$orderby=price desc")
    )
    assert [p.name for p in result.items] == ["Lápis"]

    ordered = product_repo.find_odata(parse_odata_query("$orderby=price desc&$top=2"))
    assert [p.name for p in ordered.items] == ["Mochila", "Lápis"]
    assert ordered.total == 3

    counted = product_repo.find_odata(parse_odata_query("$filter=price gt 2&$count=true"))
    assert counted.total == 2
    assert counted.items == []


def test_product_odata_expand(product_repo, company, category):
    product = product_repo.create(build_product(company_id=company.id, category_id=category.id))

    result = product_repo.find_odata(parse_odata_query("$expand=category,company"))

    expanded = result.expanded[product.id]
    assert expanded["category"].name == "Papelaria"
    assert expanded["company"].id == company.id


def test_product_odata_deleted_rows_on_request(product_repo, company):
    product = product_repo.create(build_product(company_id=company.id))
    product_repo.soft_delete(product.id)

    assert product_repo.find_odata(None).total == 0
    deleted = product_repo.find_odata(parse_odata_query("$filter=isDeleted eq true"))
    assert [p.id for p in deleted.items] == [product.id]


def test_tax_list_by_category(db_session, category):
    repo = TaxRepository(db_session)
    repo.create(build_tax(name="ICMS", category_id=category.id))
    repo.create(build_tax(name="IPI", category_id=category.id, is_active=False))

    assert [t.name for t in repo.list_by_category(category.id)] == ["ICMS"]
    assert len(repo.list_by_category(category.id, only_active=False)) == 2


def test_sale_with_items_round_trip(db_session, company, product_repo):
    product = product_repo.create(build_product(company_id=company.id))
    repo = SaleRepository(db_session)
    sale = build_sale(
        items=[build_sale_item(product_id=product.id, quantity=3)],
        company_id=company.id,
        shipping_value=Decimal("5"),
    )

    repo.create(sale)
    loaded = repo.get_by_id(sale.id)

    assert loaded.status == SaleStatus.PENDING
    assert loaded.net_amount == Decimal("35.00")
    assert [(i.product_id, i.quantity) for i in loaded.items] == [(product.id, 3)]
    assert repo.get_by_number(sale.sale_number).id == sale.id


def test_sale_status_filter_and_update(db_session, company):
    repo = SaleRepository(db_session)
    pending = build_sale(company_id=company.id)
    confirmed = build_sale(company_id=company.id, status=SaleStatus.CONFIRMED)
    repo.create(pending)
    repo.create(confirmed)

    page = repo.find_with_filters({"status": "CONFIRMED"})
    assert [s.id for s in page.items] == [confirmed.id]

    pending.transition_to(SaleStatus.CONFIRMED)
    repo.update(pending)
    assert repo.find_with_filters({"status": "CONFIRMED"}).total == 2

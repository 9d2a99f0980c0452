"""
Builders for domain entities and request payloads used across the tests.

Documents are generated with valid check digits so each company in a test
can get its own CPF/CNPJ.
"""

import itertools
import uuid
from decimal import Decimal

from estoque.domain.entities import (
    Category,
    Company,
    CompanyAddress,
    PaymentType,
    Product,
    Sale,
    SaleItem,
    SaleStatus,
    SaleType,
    Tax,
)

VALID_CPF = "529.982.247-25"
VALID_CNPJ = "11.222.333/0001-81"

_sequence = itertools.count(1)


def _cnpj_digit(digits, weights):
    remainder = sum(d * w for d, w in zip(digits, weights)) % 11
    return 0 if remainder < 2 else 11 - remainder


def make_cnpj(seed=None) -> str:
    """Digits-only CNPJ with valid check digits."""
    seed = next(_sequence) if seed is None else seed
    base = [int(ch) for ch in f"{seed:08d}"[-8:]] + [0, 0, 0, 1]
    first = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
    base.append(_cnpj_digit(base, first))
    base.append(_cnpj_digit(base, [6] + first))
    return "".join(str(d) for d in base)


def new_uuid() -> str:
    return str(uuid.uuid4())


# ---- domain entities ---------------------------------------------------


def build_category(**overrides) -> Category:
    values = {"name": f"Categoria {next(_sequence)}"}
    values.update(overrides)
    return Category(**values)


def build_company(**overrides) -> Company:
    values = {
        "name": "Loja Teste Ltda",
        "doc_id": make_cnpj(),
        "email": f"loja{next(_sequence)}@teste.com.br",
        "address": CompanyAddress(
            street="Rua A", number="10", city="São Paulo", state="sp", zip_code="01001000"
        ),
    }
    values.update(overrides)
    return Company(**values)


def build_product(**overrides) -> Product:
    values = {
        "name": "Caneta Azul",
        "price": Decimal("10.00"),
        "cost_price": Decimal("4.00"),
        "company_id": new_uuid(),
        "stock_quantity": 10,
        "min_stock_level": 3,
    }
    values.update(overrides)
    return Product(**values)


def build_tax(**overrides) -> Tax:
    values = {"name": "ICMS", "percentage": Decimal("18"), "category_id": new_uuid()}
    values.update(overrides)
    return Tax(**values)


def build_sale_item(**overrides) -> SaleItem:
    values = {
        "product_id": new_uuid(),
        "name": "Caneta Azul",
        "quantity": 2,
        "unit_price": Decimal("10.00"),
        "cost_price": Decimal("4.00"),
    }
    values.update(overrides)
    return SaleItem(**values)


def build_sale(items=None, **overrides) -> Sale:
    values = {
        "customer_id": new_uuid(),
        "company_id": new_uuid(),
        "sale_type": SaleType.RETAIL,
        "payment_type": PaymentType.CASH,
        "status": SaleStatus.PENDING,
        "items": list(items) if items is not None else [build_sale_item()],
    }
    values.update(overrides)
    sale = Sale(**values)
    for item in sale.items:
        item.sale_id = sale.id
    sale.calculate_totals()
    return sale


# ---- API payloads (camelCase) ------------------------------------------


def category_payload(**overrides) -> dict:
    payload = {"name": f"Categoria {next(_sequence)}", "description": "Descrição"}
    payload.update(overrides)
    return payload


def company_payload(**overrides) -> dict:
    payload = {
        "name": "Empresa Teste Ltda",
        "docId": make_cnpj(),
        "email": f"empresa{next(_sequence)}@teste.com.br",
        "phoneNumber": "(11) 98765-4321",
        "companyAddress": {
            "street": "Rua das Flores",
            "number": "100",
            "neighborhood": "Centro",
            "city": "São Paulo",
            "state": "SP",
            "zipCode": "01001-000",
        },
    }
    payload.update(overrides)
    return payload


def product_payload(company_id, **overrides) -> dict:
    payload = {
        "name": f"Produto {next(_sequence)}",
        "price": "25.50",
        "costPrice": "10.00",
        "stockQuantity": 20,
        "minStockLevel": 5,
        "companyId": company_id,
    }
    payload.update(overrides)
    return payload


def tax_payload(category_id, **overrides) -> dict:
    payload = {"name": "ICMS", "percentage": "18", "categoryId": category_id}
    payload.update(overrides)
    return payload


def sale_payload(company_id, items, **overrides) -> dict:
    payload = {
        "customerId": new_uuid(),
        "companyId": company_id,
        "saleType": "RETAIL",
        "paymentType": "CASH",
        "items": items,
    }
    payload.update(overrides)
    return payload

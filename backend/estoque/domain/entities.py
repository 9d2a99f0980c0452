"""
Domain entities - Pure business logic, no framework dependencies.

Every entity shares the soft-delete lifecycle of ``BaseEntity``. Stock and
sale rules live here so services only orchestrate persistence.
"""

import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from estoque.core.exceptions import BusinessRuleError
from estoque.utils.documents import (
    clean_document,
    format_document,
    format_phone,
    format_zip_code,
    get_document_type,
)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def money(value: Any) -> Decimal:
    """Round to cents (HALF_UP)."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class SaleStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"
    REFUNDED = "REFUNDED"


class SaleType(str, Enum):
    RETAIL = "RETAIL"
    WHOLESALE = "WHOLESALE"
    CONSIGNMENT = "CONSIGNMENT"
    SERVICE = "SERVICE"


class PaymentType(str, Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    PIX = "PIX"
    BANK_SLIP = "BANK_SLIP"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHECK = "CHECK"
    FINANCED = "FINANCED"
    INSTALLMENTS = "INSTALLMENTS"
    EXCHANGE = "EXCHANGE"
    CREDIT = "CREDIT"


CREDIT_PAYMENT_TYPES = {PaymentType.FINANCED, PaymentType.INSTALLMENTS, PaymentType.CREDIT}
CASH_PAYMENT_TYPES = {
    PaymentType.CASH,
    PaymentType.CREDIT_CARD,
    PaymentType.DEBIT_CARD,
    PaymentType.PIX,
}

SALE_TRANSITIONS: Dict[SaleStatus, set] = {
    SaleStatus.PENDING: {SaleStatus.CONFIRMED, SaleStatus.CANCELLED, SaleStatus.COMPLETED},
    SaleStatus.CONFIRMED: {
        SaleStatus.IN_PROGRESS,
        SaleStatus.SHIPPED,
        SaleStatus.COMPLETED,
        SaleStatus.CANCELLED,
    },
    SaleStatus.IN_PROGRESS: {SaleStatus.SHIPPED, SaleStatus.COMPLETED, SaleStatus.CANCELLED},
    SaleStatus.SHIPPED: {SaleStatus.DELIVERED, SaleStatus.RETURNED},
    SaleStatus.DELIVERED: {SaleStatus.COMPLETED, SaleStatus.RETURNED},
    SaleStatus.COMPLETED: {SaleStatus.RETURNED, SaleStatus.REFUNDED},
    SaleStatus.RETURNED: {SaleStatus.REFUNDED},
    SaleStatus.CANCELLED: set(),
    SaleStatus.REFUNDED: set(),
}

# Statuses in which sale items still hold a stock reservation
RESERVING_STATUSES = {SaleStatus.PENDING, SaleStatus.CONFIRMED, SaleStatus.IN_PROGRESS}


@dataclass
class BaseEntity:
    """Identity, timestamps and soft-delete lifecycle shared by all entities."""

    id: str = field(default_factory=new_id)
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_active_record(self) -> bool:
        return not self.is_deleted

    def soft_delete(self) -> None:
        self.is_deleted = True
        self.deleted_at = utcnow()

    def restore(self) -> None:
        self.is_deleted = False
        self.deleted_at = None


@dataclass
class Category(BaseEntity):
    name: str = ""
    description: Optional[str] = None
    short_description: Optional[str] = None
    parent_category_id: Optional[str] = None

    def __post_init__(self):
        """Validate business rules."""
        if not self.name or not self.name.strip():
            raise ValueError("Nome da categoria é obrigatório")
        if self.parent_category_id and self.parent_category_id == self.id:
            raise ValueError("Categoria não pode ser pai de si mesma")


@dataclass
class CompanyAddress:
    """Value object stored as JSON on the company row."""

    street: str = ""
    number: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "Brasil"
    complement: Optional[str] = None
    neighborhood: Optional[str] = None

    def __post_init__(self):
        self.state = (self.state or "").strip().upper()
        self.zip_code = format_zip_code(self.zip_code)

    def is_valid(self) -> bool:
        return bool(
            self.street
            and self.number
            and self.city
            and len(self.state) == 2
            and len(clean_document(self.zip_code)) == 8
        )

    def is_brazilian(self) -> bool:
        return (self.country or "").strip().lower() in ("brasil", "brazil", "br")

    def formatted(self) -> str:
        line = f"{self.street}, {self.number}"
        if self.complement:
            line += f" - {self.complement}"
        if self.neighborhood:
            line += f", {self.neighborhood}"
        return f"{line}, {self.city}/{self.state}, CEP {self.zip_code}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "street": self.street,
            "number": self.number,
            "complement": self.complement,
            "neighborhood": self.neighborhood,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["CompanyAddress"]:
        if not data:
            return None
        return cls(
            street=data.get("street") or "",
            number=str(data.get("number") or ""),
            city=data.get("city") or "",
            state=data.get("state") or "",
            zip_code=data.get("zip_code") or data.get("zipCode") or "",
            country=data.get("country") or "Brasil",
            complement=data.get("complement"),
            neighborhood=data.get("neighborhood"),
        )


@dataclass
class Company(BaseEntity):
    name: str = ""
    doc_id: str = ""
    email: str = ""
    description: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[CompanyAddress] = None

    def __post_init__(self):
        """Validate business rules."""
        if not self.name or not self.name.strip():
            raise ValueError("Nome da empresa é obrigatório")
        self.doc_id = clean_document(self.doc_id)
        if not self.doc_id:
            raise ValueError("Documento (CPF/CNPJ) é obrigatório")
        if not self.email or "@" not in self.email:
            raise ValueError("E-mail inválido")
        self.email = self.email.strip().lower()

    @property
    def document_type(self) -> str:
        return get_document_type(self.doc_id)

    @property
    def formatted_document(self) -> str:
        return format_document(self.doc_id)

    @property
    def formatted_phone(self) -> Optional[str]:
        return format_phone(self.phone_number) if self.phone_number else None

    def is_valid(self) -> bool:
        return bool(self.name and self.email and "@" in self.email) and self.document_type != "INVALID"


@dataclass
class Product(BaseEntity):
    name: str = ""
    price: Decimal = ZERO
    company_id: str = ""
    description: Optional[str] = None
    short_description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    cost_price: Optional[Decimal] = None
    stock_quantity: int = 0
    reserved_quantity: int = 0
    min_stock_level: Optional[int] = None
    max_stock_level: Optional[int] = None
    weight: Optional[Decimal] = None
    height: Optional[Decimal] = None
    width: Optional[Decimal] = None
    length: Optional[Decimal] = None
    image_url: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    is_digital: bool = False
    category_id: Optional[str] = None

    def __post_init__(self):
        """Validate business rules."""
        if not self.name or not self.name.strip():
            raise ValueError("Nome do produto é obrigatório")
        if not self.company_id:
            raise ValueError("Empresa do produto é obrigatória")
        self.price = money(self.price)
        if self.price <= ZERO:
            raise ValueError("Preço deve ser maior que zero")
        if self.cost_price is not None:
            self.cost_price = money(self.cost_price)
            if self.cost_price < ZERO:
                raise ValueError("Preço de custo não pode ser negativo")
        if self.stock_quantity < 0 or self.reserved_quantity < 0:
            raise ValueError("Quantidade em estoque não pode ser negativa")
        if self.reserved_quantity > self.stock_quantity:
            raise ValueError("Quantidade reservada excede o estoque")
        if (
            self.min_stock_level is not None
            and self.max_stock_level is not None
            and self.max_stock_level < self.min_stock_level
        ):
            raise ValueError("Estoque máximo deve ser maior ou igual ao mínimo")

    @property
    def available_quantity(self) -> int:
        return max(0, self.stock_quantity - self.reserved_quantity)

    @property
    def is_low_stock(self) -> bool:
        if self.min_stock_level is None:
            return False
        return 0 < self.stock_quantity <= self.min_stock_level

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock_quantity <= 0

    @property
    def profit_margin(self) -> Optional[Decimal]:
        if self.cost_price is None or self.price <= ZERO:
            return None
        return money((self.price - self.cost_price) / self.price * 100)

    def update_stock(self, quantity: int) -> None:
        if quantity < 0:
            raise BusinessRuleError("Quantidade em estoque não pode ser negativa")
        if quantity < self.reserved_quantity:
            raise BusinessRuleError(
                f"Estoque não pode ser menor que a quantidade reservada ({self.reserved_quantity})"
            )
        self.stock_quantity = quantity

    def reserve_stock(self, quantity: int) -> None:
        if quantity <= 0:
            raise BusinessRuleError("Quantidade a reservar deve ser maior que zero")
        if quantity > self.available_quantity:
            raise BusinessRuleError(
                f"Estoque insuficiente para {self.name}: disponível {self.available_quantity}, solicitado {quantity}"
            )
        self.reserved_quantity += quantity

    def release_stock(self, quantity: int) -> None:
        if quantity <= 0:
            raise BusinessRuleError("Quantidade a liberar deve ser maior que zero")
        self.reserved_quantity = max(0, self.reserved_quantity - quantity)

    def confirm_reservation(self, quantity: int) -> None:
        """Turn a reservation into an outbound movement."""
        if quantity <= 0:
            raise BusinessRuleError("Quantidade deve ser maior que zero")
        consumed = min(quantity, self.reserved_quantity)
        self.reserved_quantity -= consumed
        self.stock_quantity = max(0, self.stock_quantity - quantity)

    def restock(self, quantity: int) -> None:
        if quantity <= 0:
            raise BusinessRuleError("Quantidade deve ser maior que zero")
        self.stock_quantity += quantity


@dataclass
class Tax(BaseEntity):
    name: str = ""
    percentage: Decimal = ZERO
    category_id: str = ""
    description: Optional[str] = None
    is_active: bool = True

    def __post_init__(self):
        """Validate business rules."""
        if not self.name or not self.name.strip():
            raise ValueError("Nome do imposto é obrigatório")
        if not self.category_id:
            raise ValueError("Categoria do imposto é obrigatória")
        self.percentage = money(self.percentage)
        if self.percentage < ZERO or self.percentage > Decimal("100"):
            raise ValueError("Percentual deve estar entre 0 e 100")

    def calculate(self, amount: Decimal) -> Decimal:
        return money(Decimal(str(amount)) * self.percentage / Decimal("100"))


@dataclass
class SaleItem(BaseEntity):
    sale_id: Optional[str] = None
    product_id: str = ""
    name: str = ""
    sku: Optional[str] = None
    quantity: int = 1
    unit_price: Decimal = ZERO
    cost_price: Decimal = ZERO
    discount_value: Decimal = ZERO
    tax_rate: Decimal = ZERO

    def __post_init__(self):
        """Validate business rules."""
        if not self.product_id:
            raise ValueError("Produto do item é obrigatório")
        if self.quantity <= 0:
            raise ValueError("Quantidade do item deve ser maior que zero")
        self.unit_price = money(self.unit_price)
        self.cost_price = money(self.cost_price)
        self.discount_value = money(self.discount_value)
        self.tax_rate = money(self.tax_rate)
        if self.unit_price < ZERO:
            raise ValueError("Preço unitário não pode ser negativo")
        if self.discount_value > self.unit_price * self.quantity:
            raise ValueError("Desconto do item excede o valor do item")

    @property
    def total_price(self) -> Decimal:
        return money(self.unit_price * self.quantity - self.discount_value)

    @property
    def total_cost(self) -> Decimal:
        return money(self.cost_price * self.quantity)

    @property
    def tax_value(self) -> Decimal:
        return money(self.total_price * self.tax_rate / Decimal("100"))


def generate_sale_number(now: Optional[datetime] = None) -> str:
    """``V<DD><MM><YYYY>-<6 digits>``; the suffix is millisecond based."""
    now = now or utcnow()
    millis = int(now.timestamp() * 1000)
    suffix = (millis + random.randint(0, 999)) % 1_000_000
    return f"V{now:%d%m%Y}-{suffix:06d}"


@dataclass
class Sale(BaseEntity):
    customer_id: str = ""
    company_id: str = ""
    sale_number: str = ""
    sale_type: SaleType = SaleType.RETAIL
    payment_type: PaymentType = PaymentType.CASH
    status: SaleStatus = SaleStatus.PENDING
    total_amount: Decimal = ZERO
    total_cost: Decimal = ZERO
    discount_value: Decimal = ZERO
    tax_value: Decimal = ZERO
    shipping_value: Decimal = ZERO
    net_amount: Decimal = ZERO
    sale_date: Optional[datetime] = None
    payment_due_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    payment_installments: int = 1
    delivery_method: Optional[str] = None
    tracking_code: Optional[str] = None
    items: List[SaleItem] = field(default_factory=list)

    def __post_init__(self):
        """Validate business rules."""
        if not self.customer_id:
            raise ValueError("Cliente da venda é obrigatório")
        if not self.company_id:
            raise ValueError("Empresa da venda é obrigatória")
        self.sale_type = SaleType(self.sale_type)
        self.payment_type = PaymentType(self.payment_type)
        self.status = SaleStatus(self.status)
        if self.payment_installments < 1:
            raise ValueError("Número de parcelas deve ser ao menos 1")
        for name in ("total_amount", "total_cost", "discount_value", "tax_value", "shipping_value", "net_amount"):
            value = money(getattr(self, name))
            if value < ZERO:
                raise ValueError(f"{name} não pode ser negativo")
            setattr(self, name, value)
        if not self.sale_number:
            self.sale_number = generate_sale_number()
        if self.sale_date is None:
            self.sale_date = utcnow()

    # totals

    def calculate_totals(self) -> None:
        if self.items:
            self.total_amount = money(sum((i.total_price for i in self.items), ZERO))
            self.total_cost = money(sum((i.total_cost for i in self.items), ZERO))
        self.recalculate_net()

    def recalculate_net(self) -> None:
        net = self.total_amount + self.tax_value + self.shipping_value - self.discount_value
        if net < ZERO:
            raise BusinessRuleError("Desconto não pode exceder o valor da venda")
        self.net_amount = money(net)

    @property
    def profit(self) -> Decimal:
        return money(self.total_amount - self.total_cost)

    @property
    def profit_margin(self) -> Decimal:
        if self.total_amount == ZERO:
            return ZERO
        return money(self.profit / self.total_amount * 100)

    # classification

    @property
    def is_credit_sale(self) -> bool:
        return self.payment_type in CREDIT_PAYMENT_TYPES

    @property
    def is_cash_sale(self) -> bool:
        return self.payment_type in CASH_PAYMENT_TYPES

    @property
    def can_be_edited(self) -> bool:
        return self.status in (SaleStatus.PENDING, SaleStatus.CONFIRMED)

    @property
    def can_be_cancelled(self) -> bool:
        return self.status not in (SaleStatus.CANCELLED, SaleStatus.REFUNDED, SaleStatus.RETURNED)

    @property
    def holds_reservation(self) -> bool:
        return self.status in RESERVING_STATUSES

    def is_valid(self) -> bool:
        return bool(
            self.customer_id
            and self.company_id
            and self.sale_number
            and self.sale_type
            and self.payment_type
            and self.total_amount > ZERO
        )

    # state machine

    def can_transition_to(self, target: SaleStatus) -> bool:
        return SaleStatus(target) in SALE_TRANSITIONS[self.status]

    def transition_to(self, target: SaleStatus) -> SaleStatus:
        """Move to ``target``; returns the previous status."""
        target = SaleStatus(target)
        if not self.can_transition_to(target):
            raise BusinessRuleError(
                f"Transição de status inválida: {self.status.value} -> {target.value}"
            )
        previous = self.status
        self.status = target
        return previous

    def append_note(self, text: str) -> None:
        self.notes = f"{self.notes}\n{text}" if self.notes else text

"""
Common validation utilities for the e-Estoque controllers.

Validators read the camelCase JSON body sent by clients and produce
``cleaned_data`` with snake_case keys ready for the service layer. With
``partial=True`` (updates) only the keys present in the payload are
validated.
"""

import logging
import re
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from estoque.core.exceptions import ValidationError
from estoque.domain.entities import PaymentType, SaleStatus, SaleType
from estoque.utils.documents import (
    clean_document,
    format_zip_code,
    get_document_type,
)

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)
UF_RE = re.compile(r"^[A-Z]{2}$")
ZIP_RE = re.compile(r"^\d{5}-?\d{3}$")

_MISSING = object()


class ValidationResult:
    """Errors collected for one payload plus the normalised values."""

    def __init__(self):
        self.field_errors: List[Dict[str, str]] = []
        self.cleaned_data: Dict[str, Any] = {}

    @property
    def is_valid(self) -> bool:
        return not self.field_errors

    def add_error(self, message: str, field: Optional[str] = None):
        self.field_errors.append(
            {"code": "VALIDATION_ERROR", "message": message, "field": field or "general"}
        )
        logger.debug("Rejected field", extra={"context": {"field": field, "reason": message}})

    def raise_if_invalid(self) -> Dict[str, Any]:
        """Return ``cleaned_data`` or raise ``ValidationError`` listing every error."""
        if self.field_errors:
            raise ValidationError("Dados inválidos", details=list(self.field_errors))
        return self.cleaned_data


class BaseValidator:
    """Field helpers shared by the per-entity validators.

    Each helper records an error on ``result`` and returns None when the
    value is unusable, so a validator reports every bad field at once.
    """

    def validate(
        self, data: Dict[str, Any], partial: bool = False
    ) -> ValidationResult:  # pragma: no cover - interface definition
        raise NotImplementedError

    @staticmethod
    def _get(data: Dict[str, Any], key: str, partial: bool) -> Any:
        """Value for ``key``; ``_MISSING`` when absent in a partial payload."""
        if partial and key not in data:
            return _MISSING
        return data.get(key)

    @staticmethod
    def validate_required_field(
        value: Any, field_name: str, result: ValidationResult
    ) -> bool:
        """False (with an error) for None, empty or blank values."""
        if (
            value is None
            or value == ""
            or (isinstance(value, str) and value.strip() == "")
        ):
            result.add_error(f"{field_name} é obrigatório", field_name)
            return False
        return True

    @staticmethod
    def validate_datetime(
        value: Any, field_name: str, result: ValidationResult
    ) -> Optional[datetime]:
        """Validate ISO-8601 date/datetime strings."""
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, datetime.min.time(), tzinfo=timezone.utc)
        if isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                result.add_error("Data inválida. Use formato ISO 8601", field_name)
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        result.add_error("Formato de data inválido", field_name)
        return None

    @staticmethod
    def validate_decimal(
        value: Any,
        field_name: str,
        result: ValidationResult,
        min_value: Optional[Decimal] = None,
        max_value: Optional[Decimal] = None,
    ) -> Optional[Decimal]:
        """Parse numbers, accepting Brazilian ``1.234,56`` notation."""
        if value is None or value == "":
            return None

        if isinstance(value, bool):
            result.add_error("Valor inválido. Use formato numérico", field_name)
            return None

        if isinstance(value, Decimal):
            decimal_value = value
        else:
            try:
                if isinstance(value, str):
                    value = value.strip().replace(" ", "")
                    # Brazilian format (1.234,56 -> 1234.56)
                    if "," in value and "." in value:
                        value = value.replace(".", "").replace(",", ".")
                    elif "," in value:
                        value = value.replace(",", ".")
                decimal_value = Decimal(str(value))
            except (InvalidOperation, TypeError, ValueError):
                result.add_error("Valor inválido. Use formato numérico", field_name)
                return None

        if not decimal_value.is_finite():
            result.add_error("Valor inválido. Use formato numérico", field_name)
            return None

        if min_value is not None and decimal_value < min_value:
            result.add_error(f"Valor deve ser maior ou igual a {min_value}", field_name)
            return None

        if max_value is not None and decimal_value > max_value:
            result.add_error(f"Valor deve ser menor ou igual a {max_value}", field_name)
            return None

        return decimal_value

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        result: ValidationResult,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> Optional[int]:
        if value is None or value == "":
            return None

        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            result.add_error("Valor deve ser um número inteiro", field_name)
            return None

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            result.add_error("Valor deve ser um número inteiro", field_name)
            return None

        if min_value is not None and int_value < min_value:
            result.add_error(f"Valor deve ser maior ou igual a {min_value}", field_name)
            return None

        if max_value is not None and int_value > max_value:
            result.add_error(f"Valor deve ser menor ou igual a {max_value}", field_name)
            return None

        return int_value

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        result: ValidationResult,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        allowed_values: Optional[List[str]] = None,
    ) -> Optional[str]:
        """Strip and length-check text; None stays None."""
        if value is None:
            return None

        if not isinstance(value, str):
            value = str(value)

        value = value.strip()

        if min_length is not None and len(value) < min_length:
            result.add_error(f"Deve ter pelo menos {min_length} caracteres", field_name)
            return None

        if max_length is not None and len(value) > max_length:
            result.add_error(f"Deve ter no máximo {max_length} caracteres", field_name)
            return None

        if allowed_values is not None and value not in allowed_values:
            result.add_error(
                f"Valor deve ser um dos: {', '.join(allowed_values)}", field_name
            )
            return None

        return value if value else None

    @staticmethod
    def validate_boolean(
        value: Any, field_name: str, result: ValidationResult
    ) -> Optional[bool]:
        if value is None:
            return None
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        result.add_error("Valor deve ser verdadeiro ou falso", field_name)
        return None

    @staticmethod
    def validate_uuid(
        value: Any, field_name: str, result: ValidationResult
    ) -> Optional[str]:
        if value is None or value == "":
            return None
        try:
            return str(uuid.UUID(str(value)))
        except (ValueError, AttributeError, TypeError):
            result.add_error("Deve ser um UUID válido", field_name)
            return None

    @staticmethod
    def validate_email(
        value: Any, field_name: str, result: ValidationResult
    ) -> Optional[str]:
        if value is None or value == "":
            return None
        email = str(value).strip().lower()
        if len(email) > 255 or not EMAIL_RE.match(email):
            result.add_error("E-mail inválido", field_name)
            return None
        return email

    @staticmethod
    def validate_url(
        value: Any, field_name: str, result: ValidationResult
    ) -> Optional[str]:
        if value is None or value == "":
            return None
        url = str(value).strip()
        if len(url) > 500 or not URL_RE.match(url):
            result.add_error("URL inválida", field_name)
            return None
        return url

    # shared field rules

    def _text(
        self,
        data: Dict[str, Any],
        result: ValidationResult,
        key: str,
        target: str,
        partial: bool,
        required: bool = False,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> None:
        value = self._get(data, key, partial)
        if value is _MISSING:
            return
        if required and not self.validate_required_field(value, key, result):
            return
        if value is None:
            result.cleaned_data[target] = None
            return
        cleaned = self.validate_string(
            value, key, result, min_length=min_length, max_length=max_length
        )
        if cleaned is not None or result.is_valid:
            result.cleaned_data[target] = cleaned

    def _id(
        self,
        data: Dict[str, Any],
        result: ValidationResult,
        key: str,
        target: str,
        partial: bool,
        required: bool = False,
    ) -> None:
        value = self._get(data, key, partial)
        if value is _MISSING:
            return
        if required and not self.validate_required_field(value, key, result):
            return
        cleaned = self.validate_uuid(value, key, result)
        if cleaned is not None or value in (None, ""):
            result.cleaned_data[target] = cleaned

    def _flag(
        self, data: Dict[str, Any], result: ValidationResult, key: str, target: str
    ) -> None:
        if key not in data:
            return
        cleaned = self.validate_boolean(data.get(key), key, result)
        if cleaned is not None:
            result.cleaned_data[target] = cleaned


class CategoryValidator(BaseValidator):
    """Validator for Category payloads."""

    def validate(self, data: Dict[str, Any], partial: bool = False) -> ValidationResult:
        result = ValidationResult()
        self._text(data, result, "name", "name", partial, required=True, min_length=2, max_length=255)
        self._text(data, result, "description", "description", partial, max_length=5000)
        self._text(data, result, "shortDescription", "short_description", partial, max_length=500)
        self._id(data, result, "parentCategoryId", "parent_category_id", partial)
        return result


class CompanyValidator(BaseValidator):
    """Validator for Company payloads (document, e-mail and address)."""

    ADDRESS_LIMITS = {
        "street": 255,
        "number": 20,
        "complement": 100,
        "neighborhood": 100,
        "city": 100,
        "country": 100,
    }

    def validate(self, data: Dict[str, Any], partial: bool = False) -> ValidationResult:
        result = ValidationResult()
        self._text(data, result, "name", "name", partial, required=True, min_length=2, max_length=255)
        self._text(data, result, "description", "description", partial, max_length=5000)

        doc_id = self._get(data, "docId", partial)
        if doc_id is not _MISSING and self.validate_required_field(doc_id, "docId", result):
            if get_document_type(str(doc_id)) == "INVALID":
                result.add_error("CPF ou CNPJ inválido", "docId")
            else:
                result.cleaned_data["doc_id"] = clean_document(str(doc_id))

        email = self._get(data, "email", partial)
        if email is not _MISSING and self.validate_required_field(email, "email", result):
            cleaned = self.validate_email(email, "email", result)
            if cleaned:
                result.cleaned_data["email"] = cleaned

        phone = self._get(data, "phoneNumber", partial)
        if phone is not _MISSING:
            if phone in (None, ""):
                result.cleaned_data["phone_number"] = None
            else:
                digits = clean_document(str(phone))
                if len(digits) not in (10, 11):
                    result.add_error("Telefone deve ter 10 ou 11 dígitos", "phoneNumber")
                else:
                    result.cleaned_data["phone_number"] = digits

        address = self._get(data, "companyAddress", partial)
        if address is not _MISSING:
            if address is None:
                result.cleaned_data["address"] = None
            elif not isinstance(address, dict):
                result.add_error("Endereço deve ser um objeto", "companyAddress")
            else:
                cleaned_address = self._validate_address(address, result)
                if cleaned_address is not None:
                    result.cleaned_data["address"] = cleaned_address
        return result

    def _validate_address(
        self, address: Dict[str, Any], result: ValidationResult
    ) -> Optional[Dict[str, Any]]:
        cleaned: Dict[str, Any] = {}
        ok = True
        for key in ("street", "number", "city", "state", "zipCode"):
            if not self.validate_required_field(address.get(key), f"companyAddress.{key}", result):
                ok = False
        for key, limit in self.ADDRESS_LIMITS.items():
            value = self.validate_string(
                address.get(key), f"companyAddress.{key}", result, max_length=limit
            )
            cleaned[key] = value
        state = address.get("state")
        if state:
            state = str(state).strip().upper()
            if not UF_RE.match(state):
                result.add_error("UF deve ter 2 letras", "companyAddress.state")
                ok = False
            cleaned["state"] = state
        zip_code = address.get("zipCode")
        if zip_code:
            zip_code = str(zip_code).strip()
            if not ZIP_RE.match(zip_code):
                result.add_error("CEP inválido (00000-000)", "companyAddress.zipCode")
                ok = False
            cleaned["zip_code"] = format_zip_code(zip_code)
        cleaned["country"] = cleaned.get("country") or "Brasil"
        return cleaned if ok and result.is_valid else None


class ProductValidator(BaseValidator):
    """Validator for Product payloads."""

    def validate(self, data: Dict[str, Any], partial: bool = False) -> ValidationResult:
        result = ValidationResult()
        self._text(data, result, "name", "name", partial, required=True, min_length=2, max_length=255)
        self._text(data, result, "description", "description", partial, max_length=5000)
        self._text(data, result, "shortDescription", "short_description", partial, max_length=500)
        self._text(data, result, "sku", "sku", partial, max_length=50)
        self._text(data, result, "barcode", "barcode", partial, max_length=50)

        price = self._get(data, "price", partial)
        if price is not _MISSING and self.validate_required_field(price, "price", result):
            cleaned = self.validate_decimal(price, "price", result, min_value=Decimal("0.01"))
            if cleaned is not None:
                result.cleaned_data["price"] = cleaned

        if "costPrice" in data:
            cost = self.validate_decimal(data.get("costPrice"), "costPrice", result, min_value=Decimal("0"))
            if cost is not None or data.get("costPrice") in (None, ""):
                result.cleaned_data["cost_price"] = cost

        for key, target in (("weight", "weight"), ("height", "height"), ("width", "width"), ("length", "length")):
            if key in data:
                value = self.validate_decimal(data.get(key), key, result, min_value=Decimal("0.001"))
                if value is not None or data.get(key) in (None, ""):
                    result.cleaned_data[target] = value

        for key, target in (
            ("stockQuantity", "stock_quantity"),
            ("minStockLevel", "min_stock_level"),
            ("maxStockLevel", "max_stock_level"),
        ):
            if key in data:
                value = self.validate_integer(data.get(key), key, result, min_value=0)
                if value is not None:
                    result.cleaned_data[target] = value
                elif key != "stockQuantity" and data.get(key) in (None, ""):
                    result.cleaned_data[target] = None

        if "imageUrl" in data:
            url = self.validate_url(data.get("imageUrl"), "imageUrl", result)
            if url is not None or data.get("imageUrl") in (None, ""):
                result.cleaned_data["image_url"] = url

        self._flag(data, result, "isActive", "is_active")
        self._flag(data, result, "isFeatured", "is_featured")
        self._flag(data, result, "isDigital", "is_digital")
        self._id(data, result, "companyId", "company_id", partial, required=True)
        self._id(data, result, "categoryId", "category_id", partial)

        min_level = result.cleaned_data.get("min_stock_level")
        max_level = result.cleaned_data.get("max_stock_level")
        if min_level is not None and max_level is not None and max_level < min_level:
            result.add_error("Estoque máximo deve ser maior ou igual ao mínimo", "maxStockLevel")
        return result


class TaxValidator(BaseValidator):
    """Validator for Tax payloads."""

    def validate(self, data: Dict[str, Any], partial: bool = False) -> ValidationResult:
        result = ValidationResult()
        self._text(data, result, "name", "name", partial, required=True, min_length=2, max_length=255)
        self._text(data, result, "description", "description", partial, max_length=5000)
        percentage = self._get(data, "percentage", partial)
        if percentage is not _MISSING and self.validate_required_field(percentage, "percentage", result):
            cleaned = self.validate_decimal(
                percentage, "percentage", result, min_value=Decimal("0"), max_value=Decimal("100")
            )
            if cleaned is not None:
                result.cleaned_data["percentage"] = cleaned.quantize(Decimal("0.01"))
        self._id(data, result, "categoryId", "category_id", partial, required=True)
        self._flag(data, result, "isActive", "is_active")
        return result


class SaleValidator(BaseValidator):
    """Validator for Sale payloads (create and editable-field updates)."""

    SALE_TYPES = [t.value for t in SaleType]
    PAYMENT_TYPES = [p.value for p in PaymentType]
    UPDATABLE_FIELDS = (
        "discountValue",
        "taxValue",
        "shippingValue",
        "paymentDueDate",
        "deliveryDate",
        "notes",
        "internalNotes",
        "deliveryMethod",
        "trackingCode",
        "paymentInstallments",
    )

    def validate(self, data: Dict[str, Any], partial: bool = False) -> ValidationResult:
        result = ValidationResult()
        if partial:
            locked = sorted(k for k in data if k not in self.UPDATABLE_FIELDS)
            for key in locked:
                result.add_error("Campo não pode ser alterado após a criação", key)
        else:
            self._id(data, result, "customerId", "customer_id", partial, required=True)
            self._id(data, result, "companyId", "company_id", partial, required=True)
            for key, target, allowed in (
                ("saleType", "sale_type", self.SALE_TYPES),
                ("paymentType", "payment_type", self.PAYMENT_TYPES),
            ):
                if self.validate_required_field(data.get(key), key, result):
                    value = self.validate_string(
                        str(data.get(key)).upper(), key, result, allowed_values=allowed
                    )
                    if value:
                        result.cleaned_data[target] = value
            sale_date = self.validate_datetime(data.get("saleDate"), "saleDate", result)
            if sale_date is not None:
                result.cleaned_data["sale_date"] = sale_date
            self._validate_items(data.get("items"), result)

        for key, target in (
            ("discountValue", "discount_value"),
            ("taxValue", "tax_value"),
            ("shippingValue", "shipping_value"),
        ):
            if key in data:
                value = self.validate_decimal(data.get(key), key, result, min_value=Decimal("0"))
                if value is not None:
                    result.cleaned_data[target] = value

        for key, target in (("paymentDueDate", "payment_due_date"), ("deliveryDate", "delivery_date")):
            if key in data:
                result.cleaned_data[target] = self.validate_datetime(data.get(key), key, result)

        if "paymentInstallments" in data:
            installments = self.validate_integer(
                data.get("paymentInstallments"), "paymentInstallments", result, min_value=1, max_value=48
            )
            if installments is not None:
                result.cleaned_data["payment_installments"] = installments

        self._text(data, result, "notes", "notes", True, max_length=5000)
        self._text(data, result, "internalNotes", "internal_notes", True, max_length=5000)
        self._text(data, result, "deliveryMethod", "delivery_method", True, max_length=100)
        self._text(data, result, "trackingCode", "tracking_code", True, max_length=100)
        return result

    def _validate_items(self, items: Any, result: ValidationResult) -> None:
        if not isinstance(items, list) or not items:
            result.add_error("Venda deve ter ao menos um item", "items")
            return
        cleaned_items = []
        for index, item in enumerate(items):
            prefix = f"items[{index}]"
            if not isinstance(item, dict):
                result.add_error("Item deve ser um objeto", prefix)
                continue
            if not self.validate_required_field(item.get("productId"), f"{prefix}.productId", result):
                continue
            product_id = self.validate_uuid(item.get("productId"), f"{prefix}.productId", result)
            if not self.validate_required_field(item.get("quantity"), f"{prefix}.quantity", result):
                continue
            quantity = self.validate_integer(item.get("quantity"), f"{prefix}.quantity", result, min_value=1)
            unit_price = self.validate_decimal(
                item.get("unitPrice"), f"{prefix}.unitPrice", result, min_value=Decimal("0")
            )
            discount = self.validate_decimal(
                item.get("discountValue"), f"{prefix}.discountValue", result, min_value=Decimal("0")
            )
            if product_id and quantity:
                cleaned_items.append(
                    {
                        "product_id": product_id,
                        "quantity": quantity,
                        "unit_price": unit_price,
                        "discount_value": discount or Decimal("0"),
                    }
                )
        result.cleaned_data["items"] = cleaned_items


class StockQuantityValidator(BaseValidator):
    """Validator for stock operations (``stockQuantity`` or ``quantity``)."""

    def __init__(self, key: str = "quantity", min_value: int = 1):
        self.key = key
        self.min_value = min_value

    def validate(self, data: Dict[str, Any], partial: bool = False) -> ValidationResult:
        result = ValidationResult()
        if self.validate_required_field(data.get(self.key), self.key, result):
            value = self.validate_integer(data.get(self.key), self.key, result, min_value=self.min_value)
            if value is not None:
                result.cleaned_data["quantity"] = value
        return result


class SaleStatusValidator(BaseValidator):
    STATUSES = [s.value for s in SaleStatus]

    def validate(self, data: Dict[str, Any], partial: bool = False) -> ValidationResult:
        result = ValidationResult()
        if self.validate_required_field(data.get("status"), "status", result):
            status = self.validate_string(
                str(data.get("status")).upper(), "status", result, allowed_values=self.STATUSES
            )
            if status:
                result.cleaned_data["status"] = status
        self._text(data, result, "notes", "notes", True, max_length=2000)
        return result


class SalePaymentValidator(BaseValidator):
    def validate(self, data: Dict[str, Any], partial: bool = False) -> ValidationResult:
        result = ValidationResult()
        if "paymentDate" in data:
            result.cleaned_data["payment_date"] = self.validate_datetime(
                data.get("paymentDate"), "paymentDate", result
            )
        self._text(data, result, "paymentNotes", "notes", True, max_length=2000)
        return result


class SaleCancelValidator(BaseValidator):
    def validate(self, data: Dict[str, Any], partial: bool = False) -> ValidationResult:
        result = ValidationResult()
        self._text(data, result, "cancellationReason", "reason", True, max_length=500)
        self._text(data, result, "cancellationNotes", "notes", True, max_length=2000)
        return result


def get_validator(entity_type: str) -> BaseValidator:
    """Validator registered under ``entity_type``."""
    validators = {
        "category": CategoryValidator(),
        "company": CompanyValidator(),
        "product": ProductValidator(),
        "tax": TaxValidator(),
        "sale": SaleValidator(),
        "sale_status": SaleStatusValidator(),
        "sale_payment": SalePaymentValidator(),
        "sale_cancel": SaleCancelValidator(),
    }

    validator = validators.get(entity_type.lower())
    if not validator:
        raise ValueError(f"unknown validator {entity_type!r}")

    return validator


def validate_payload(entity_type: str, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate ``data`` and return cleaned data, raising ``ValidationError``."""
    return get_validator(entity_type).validate(data, partial=partial).raise_if_invalid()


def validate_uuid_param(value: str, field_name: str = "id") -> str:
    """Validate a UUID path parameter."""
    result = ValidationResult()
    cleaned = BaseValidator.validate_uuid(value, field_name, result)
    if not result.is_valid or cleaned is None:
        raise ValidationError(
            f"{field_name} deve ser um UUID válido",
            details=list(result.field_errors),
        )
    return cleaned

"""
Unit tests for payload validation.

Validators take camelCase request bodies and hand snake_case
``cleaned_data`` to the services; ``validate_payload`` raises a
``ValidationError`` listing every field error at once.
"""

import uuid
from decimal import Decimal

import pytest

from estoque.core.exceptions import ValidationError
from estoque.core.validation import (
    BaseValidator,
    CategoryValidator,
    CompanyValidator,
    ProductValidator,
    SaleValidator,
    StockQuantityValidator,
    ValidationResult,
    get_validator,
    validate_payload,
    validate_uuid_param,
)
from tests.factories.entity_factories import (
    VALID_CPF,
    company_payload,
    new_uuid,
    product_payload,
    sale_payload,
)


def _fields(result: ValidationResult):
    return [error["field"] for error in result.field_errors]


class TestPrimitiveValidators:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1.234,56", Decimal("1234.56")),
            ("10,5", Decimal("10.5")),
            ("  99.90 ", Decimal("99.90")),
            (7, Decimal("7")),
        ],
    )
    def test_decimal_accepts_brazilian_format(self, raw, expected):
        result = ValidationResult()
        assert BaseValidator.validate_decimal(raw, "price", result) == expected
        assert result.is_valid

    @pytest.mark.parametrize("raw", ["abc", True, "NaN", "1,2,3.4.5"])
    def test_decimal_rejects_garbage(self, raw):
        result = ValidationResult()
        assert BaseValidator.validate_decimal(raw, "price", result) is None
        assert not result.is_valid

    def test_decimal_bounds(self):
        result = ValidationResult()
        BaseValidator.validate_decimal("101", "percentage", result, max_value=Decimal("100"))
        assert result.field_errors[0]["message"] == "Valor deve ser menor ou igual a 100"

    @pytest.mark.parametrize("raw", [1.5, "x", False])
    def test_integer_rejects_non_integers(self, raw):
        result = ValidationResult()
        assert BaseValidator.validate_integer(raw, "quantity", result) is None
        assert not result.is_valid

    def test_integer_accepts_numeric_strings(self):
        result = ValidationResult()
        assert BaseValidator.validate_integer("12", "quantity", result) == 12

    def test_boolean_strings(self):
        result = ValidationResult()
        assert BaseValidator.validate_boolean("TRUE", "isActive", result) is True
        assert BaseValidator.validate_boolean("false", "isActive", result) is False
        assert BaseValidator.validate_boolean("sim", "isActive", result) is None
        assert not result.is_valid

    def test_datetime_naive_is_utc(self):
        result = ValidationResult()
        parsed = BaseValidator.validate_datetime("2024-05-01T10:00:00", "saleDate", result)
        assert parsed.tzinfo is not None
        assert BaseValidator.validate_datetime("01/05/2024", "saleDate", result) is None
        assert not result.is_valid

    def test_email_is_lower_cased(self):
        result = ValidationResult()
        assert BaseValidator.validate_email(" Ana@Loja.COM ", "email", result) == "ana@loja.com"
        assert BaseValidator.validate_email("ana@loja", "email", result) is None


class TestCategoryValidator:
    def test_create_payload(self):
        cleaned = validate_payload("category", {"name": " Papelaria ", "shortDescription": "Itens"})
        assert cleaned["name"] == "Papelaria"
        assert cleaned["short_description"] == "Itens"
        assert cleaned["parent_category_id"] is None

    def test_name_too_short(self):
        result = CategoryValidator().validate({"name": "A"})
        assert _fields(result) == ["name"]

    def test_missing_name(self):
        result = CategoryValidator().validate({"description": "x"})
        assert result.field_errors[0]["message"] == "name é obrigatório"

    def test_partial_update_only_touches_sent_keys(self):
        cleaned = validate_payload("category", {"description": "nova"}, partial=True)
        assert cleaned == {"description": "nova"}

    def test_parent_must_be_uuid(self):
        result = CategoryValidator().validate({"name": "Papelaria", "parentCategoryId": "abc"})
        assert _fields(result) == ["parentCategoryId"]


class TestCompanyValidator:
    def test_create_payload(self):
        payload = company_payload(docId=VALID_CPF)
        cleaned = validate_payload("company", payload)
        assert cleaned["doc_id"] == "52998224725"
        assert cleaned["phone_number"] == "11987654321"
        address = cleaned["address"]
        assert address["state"] == "SP"
        assert address["zip_code"] == "01001-000"
        assert address["country"] == "Brasil"

    def test_invalid_document(self):
        result = CompanyValidator().validate(company_payload(docId="123.456.789-00"))
        assert result.field_errors == [
            {"code": "VALIDATION_ERROR", "message": "CPF ou CNPJ inválido", "field": "docId"}
        ]

    def test_phone_digit_count(self):
        result = CompanyValidator().validate(company_payload(phoneNumber="1234"))
        assert _fields(result) == ["phoneNumber"]

    def test_address_required_parts(self):
        payload = company_payload()
        del payload["companyAddress"]["city"]
        payload["companyAddress"]["state"] = "São Paulo"
        result = CompanyValidator().validate(payload)
        assert "companyAddress.city" in _fields(result)
        assert "companyAddress.state" in _fields(result)
        assert "address" not in result.cleaned_data

    def test_address_must_be_object(self):
        result = CompanyValidator().validate(company_payload(companyAddress="Rua A"))
        assert _fields(result) == ["companyAddress"]

    def test_partial_email_change(self):
        cleaned = validate_payload("company", {"email": "Novo@Empresa.com"}, partial=True)
        assert cleaned == {"email": "novo@empresa.com"}


class TestProductValidator:
    def test_create_payload(self):
        company_id = new_uuid()
        cleaned = validate_payload(
            "product",
            product_payload(company_id, price="1.234,56", isActive="false", maxStockLevel=50),
        )
        assert cleaned["price"] == Decimal("1234.56")
        assert cleaned["cost_price"] == Decimal("10.00")
        assert cleaned["stock_quantity"] == 20
        assert cleaned["is_active"] is False
        assert cleaned["company_id"] == company_id

    def test_every_error_is_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload("product", {})
        fields = [error["field"] for error in exc_info.value.details]
        assert fields == ["name", "price", "companyId"]
        assert exc_info.value.status_code == 400

    def test_price_minimum(self):
        result = ProductValidator().validate(product_payload(new_uuid(), price="0"))
        assert _fields(result) == ["price"]

    def test_negative_stock(self):
        result = ProductValidator().validate(product_payload(new_uuid(), stockQuantity=-1))
        assert _fields(result) == ["stockQuantity"]

    def test_max_below_min(self):
        result = ProductValidator().validate(
            product_payload(new_uuid(), minStockLevel=10, maxStockLevel=2)
        )
        assert _fields(result) == ["maxStockLevel"]

    def test_image_url(self):
        result = ProductValidator().validate(product_payload(new_uuid(), imageUrl="ftp://x"))
        assert _fields(result) == ["imageUrl"]

    def test_partial_price_update(self):
        assert validate_payload("product", {"price": "12,00"}, partial=True) == {
            "price": Decimal("12.00")
        }


class TestTaxValidator:
    def test_percentage_is_quantized(self):
        cleaned = validate_payload("tax", {"name": "ISS", "percentage": "5,5", "categoryId": new_uuid()})
        assert cleaned["percentage"] == Decimal("5.50")

    @pytest.mark.parametrize("percentage", ["-1", "100.5"])
    def test_percentage_range(self, percentage):
        result = get_validator("tax").validate(
            {"name": "ISS", "percentage": percentage, "categoryId": new_uuid()}
        )
        assert _fields(result) == ["percentage"]

    def test_category_required(self):
        result = get_validator("tax").validate({"name": "ISS", "percentage": "5"})
        assert _fields(result) == ["categoryId"]


class TestSaleValidator:
    def test_create_payload(self):
        product_id = new_uuid()
        cleaned = validate_payload(
            "sale",
            sale_payload(
                new_uuid(),
                [{"productId": product_id, "quantity": 2, "unitPrice": "9,90"}],
                saleType="retail",
                shippingValue="15",
            ),
        )
        assert cleaned["sale_type"] == "RETAIL"
        assert cleaned["payment_type"] == "CASH"
        assert cleaned["shipping_value"] == Decimal("15")
        assert cleaned["items"] == [
            {
                "product_id": product_id,
                "quantity": 2,
                "unit_price": Decimal("9.90"),
                "discount_value": Decimal("0"),
            }
        ]

    def test_items_required(self):
        result = SaleValidator().validate(sale_payload(new_uuid(), []))
        assert _fields(result) == ["items"]

    def test_item_errors_are_indexed(self):
        items = [
            {"productId": new_uuid(), "quantity": 1},
            {"productId": "nope", "quantity": 0},
        ]
        result = SaleValidator().validate(sale_payload(new_uuid(), items))
        assert _fields(result) == ["items[1].productId", "items[1].quantity"]

    def test_unknown_payment_type(self):
        result = SaleValidator().validate(
            sale_payload(new_uuid(), [{"productId": new_uuid(), "quantity": 1}], paymentType="BITCOIN")
        )
        assert _fields(result) == ["paymentType"]

    def test_update_rejects_locked_fields(self):
        result = SaleValidator().validate(
            {"notes": "ok", "status": "COMPLETED", "companyId": new_uuid()}, partial=True
        )
        assert _fields(result) == ["companyId", "status"]

    def test_update_editable_fields(self):
        cleaned = validate_payload(
            "sale",
            {"discountValue": "5,00", "paymentInstallments": 3, "trackingCode": "BR123"},
            partial=True,
        )
        assert cleaned == {
            "discount_value": Decimal("5.00"),
            "payment_installments": 3,
            "tracking_code": "BR123",
        }

    def test_installment_limit(self):
        result = SaleValidator().validate({"paymentInstallments": 49}, partial=True)
        assert _fields(result) == ["paymentInstallments"]


class TestOperationValidators:
    def test_status_is_upper_cased(self):
        assert validate_payload("sale_status", {"status": "shipped"}) == {"status": "SHIPPED"}

    def test_status_must_be_known(self):
        with pytest.raises(ValidationError):
            validate_payload("sale_status", {"status": "LOST"})

    def test_cancel_fields_are_renamed(self):
        cleaned = validate_payload(
            "sale_cancel", {"cancellationReason": "Desistência", "cancellationNotes": "cliente"}
        )
        assert cleaned == {"reason": "Desistência", "notes": "cliente"}

    def test_stock_quantity_minimum(self):
        validator = StockQuantityValidator("stockQuantity", min_value=0)
        assert validator.validate({"stockQuantity": 0}).raise_if_invalid() == {"quantity": 0}
        assert not StockQuantityValidator().validate({"quantity": 0}).is_valid
        assert not StockQuantityValidator().validate({}).is_valid

    def test_unknown_entity_type(self):
        with pytest.raises(ValueError):
            get_validator("supplier")


class TestUuidParam:
    def test_normalizes(self):
        value = str(uuid.uuid4())
        assert validate_uuid_param(value.upper()) == value

    @pytest.mark.parametrize("value", ["abc", "", "1234"])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_uuid_param(value, "productId")
        assert exc_info.value.message == "productId deve ser um UUID válido"

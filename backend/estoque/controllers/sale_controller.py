"""
Sale controller - HTTP surface for sale use cases.

Besides CRUD, a sale moves through its lifecycle via ``/status``,
``/payment`` and ``/cancel``; stock effects happen in the service.
"""

from flask import Blueprint, request

from estoque.controllers.controller_helpers import (
    arg_datetime,
    arg_decimal,
    arg_text,
    base_filters,
    odata_list_response,
)
from estoque.core.api_utils import api_response, get_json_body
from estoque.core.auth_decorators import jwt_required, require_role
from estoque.core.exceptions import ValidationError
from estoque.core.limiter_config import READ_LIMIT, WRITE_LIMIT, limiter
from estoque.core.security import ROLE_ADMIN, ROLE_CREATE, ROLE_DELETE, ROLE_UPDATE
from estoque.core.validation import validate_payload, validate_uuid_param
from estoque.db.session import SessionLocal
from estoque.domain.entities import PaymentType, SaleStatus, SaleType
from estoque.repositories.company_repo import CompanyRepository
from estoque.repositories.product_repo import ProductRepository
from estoque.repositories.sale_repo import SaleRepository
from estoque.repositories.tax_repo import TaxRepository
from estoque.schemas.dtos import sale_summary_to_dict, sale_to_dict
from estoque.services.odata_service import SALES
from estoque.services.sale_service import SaleService

sales_bp = Blueprint("sales", __name__, url_prefix="/sales")


def _service(db) -> SaleService:
    return SaleService(
        SaleRepository(db),
        ProductRepository(db),
        CompanyRepository(db),
        TaxRepository(db),
    )


def _enum_arg(args, name: str, enum_cls):
    value = arg_text(args, name)
    if value is None:
        return None
    value = value.upper()
    allowed = [member.value for member in enum_cls]
    if value not in allowed:
        raise ValidationError(
            f"{name} deve ser um de: {', '.join(allowed)}",
            details=[{"code": "INVALID_FILTER", "message": f"{name} inválido", "field": name}],
        )
    return value


def _list_filters(args) -> dict:
    filters = base_filters(args)
    filters["status"] = _enum_arg(args, "status", SaleStatus)
    filters["sale_type"] = _enum_arg(args, "saleType", SaleType)
    filters["payment_type"] = _enum_arg(args, "paymentType", PaymentType)
    for arg, key in (("customerId", "customer_id"), ("companyId", "company_id")):
        value = arg_text(args, arg)
        if value:
            filters[key] = validate_uuid_param(value, arg)
    filters["start_date"] = arg_datetime(args, "startDate")
    filters["end_date"] = arg_datetime(args, "endDate")
    filters["min_amount"] = arg_decimal(args, "minAmount")
    filters["max_amount"] = arg_decimal(args, "maxAmount")
    return filters


@sales_bp.route("/", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_sales():
    """List sales with filters (status, type, payment, customer, company, dates, amounts)."""
    filters = _list_filters(request.args)
    db = SessionLocal()
    try:
        result = _service(db).list_sales(filters)
        return api_response(True, "Vendas listadas com sucesso", result.to_dict(sale_to_dict))
    finally:
        db.close()


@sales_bp.route("/odata", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_sales_odata():
    return odata_list_response(
        SALES,
        lambda db: _service(db).list_odata,
        sale_summary_to_dict,
        "Vendas listadas com sucesso",
    )


@sales_bp.route("/<sale_id>", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def get_sale(sale_id):
    sale_id = validate_uuid_param(sale_id)
    db = SessionLocal()
    try:
        sale = _service(db).get_sale(sale_id)
        return api_response(True, "Venda encontrada", sale_to_dict(sale))
    finally:
        db.close()


@sales_bp.route("/", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_CREATE, ROLE_UPDATE, ROLE_ADMIN)
def create_sale():
    """Create a PENDING sale and reserve stock for its items."""
    data = validate_payload("sale", get_json_body())
    db = SessionLocal()
    try:
        sale = _service(db).create_sale(data)
        return api_response(True, "Venda criada com sucesso", sale_to_dict(sale), 201)
    finally:
        db.close()


@sales_bp.route("/<sale_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def update_sale(sale_id):
    sale_id = validate_uuid_param(sale_id)
    data = validate_payload("sale", get_json_body(), partial=True)
    db = SessionLocal()
    try:
        sale = _service(db).update_sale(sale_id, data)
        return api_response(True, "Venda atualizada com sucesso", sale_to_dict(sale))
    finally:
        db.close()


@sales_bp.route("/<sale_id>/status", methods=["PATCH"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def update_sale_status(sale_id):
    sale_id = validate_uuid_param(sale_id)
    data = validate_payload("sale_status", get_json_body())
    db = SessionLocal()
    try:
        sale = _service(db).update_status(sale_id, data["status"], data.get("notes"))
        return api_response(True, "Status da venda atualizado com sucesso", sale_to_dict(sale))
    finally:
        db.close()


@sales_bp.route("/<sale_id>/payment", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def process_payment(sale_id):
    sale_id = validate_uuid_param(sale_id)
    data = validate_payload("sale_payment", request.get_json(silent=True) or {})
    db = SessionLocal()
    try:
        sale = _service(db).process_payment(
            sale_id, data.get("payment_date"), data.get("notes")
        )
        return api_response(True, "Pagamento processado com sucesso", sale_to_dict(sale))
    finally:
        db.close()


@sales_bp.route("/<sale_id>/cancel", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def cancel_sale(sale_id):
    sale_id = validate_uuid_param(sale_id)
    data = validate_payload("sale_cancel", request.get_json(silent=True) or {})
    db = SessionLocal()
    try:
        sale = _service(db).cancel_sale(sale_id, data.get("reason"), data.get("notes"))
        return api_response(True, "Venda cancelada com sucesso", sale_to_dict(sale))
    finally:
        db.close()


@sales_bp.route("/<sale_id>", methods=["DELETE"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_DELETE, ROLE_ADMIN)
def delete_sale(sale_id):
    sale_id = validate_uuid_param(sale_id)
    db = SessionLocal()
    try:
        _service(db).delete_sale(sale_id)
        return api_response(True, "Venda excluída com sucesso", None)
    finally:
        db.close()


@sales_bp.route("/<sale_id>/restore", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def restore_sale(sale_id):
    sale_id = validate_uuid_param(sale_id)
    db = SessionLocal()
    try:
        sale = _service(db).restore_sale(sale_id)
        return api_response(True, "Venda restaurada com sucesso", sale_to_dict(sale))
    finally:
        db.close()

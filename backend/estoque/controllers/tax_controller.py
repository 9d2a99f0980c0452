"""
Tax controller - HTTP surface for tax use cases.
"""

from flask import Blueprint, request

from estoque.controllers.controller_helpers import (
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
from estoque.repositories.category_repo import CategoryRepository
from estoque.repositories.tax_repo import TaxRepository
from estoque.schemas.dtos import tax_to_dict
from estoque.services.odata_service import TAXES
from estoque.services.tax_service import TaxService

taxes_bp = Blueprint("taxes", __name__, url_prefix="/taxes")


def _service(db) -> TaxService:
    return TaxService(TaxRepository(db), CategoryRepository(db))


@taxes_bp.route("/", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_taxes():
    """List taxes with filters (name, categoryId, isActive, percentage range)."""
    filters = base_filters(request.args)
    filters["name"] = arg_text(request.args, "name")
    category_id = arg_text(request.args, "categoryId")
    if category_id:
        filters["category_id"] = validate_uuid_param(category_id, "categoryId")
    filters["min_percentage"] = arg_decimal(request.args, "minPercentage")
    filters["max_percentage"] = arg_decimal(request.args, "maxPercentage")
    db = SessionLocal()
    try:
        result = _service(db).list_taxes(filters)
        return api_response(True, "Impostos listados com sucesso", result.to_dict(tax_to_dict))
    finally:
        db.close()


@taxes_bp.route("/odata", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_taxes_odata():
    return odata_list_response(
        TAXES,
        lambda db: _service(db).list_odata,
        tax_to_dict,
        "Impostos listados com sucesso",
    )


@taxes_bp.route("/<tax_id>", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def get_tax(tax_id):
    tax_id = validate_uuid_param(tax_id)
    db = SessionLocal()
    try:
        tax = _service(db).get_tax(tax_id)
        return api_response(True, "Imposto encontrado", tax_to_dict(tax))
    finally:
        db.close()


@taxes_bp.route("/<tax_id>/calculate", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def calculate_tax(tax_id):
    """Apply the tax to ``?amount=``."""
    tax_id = validate_uuid_param(tax_id)
    amount = arg_decimal(request.args, "amount")
    if amount is None:
        raise ValidationError(
            "amount é obrigatório",
            details=[{"code": "REQUIRED", "message": "amount é obrigatório", "field": "amount"}],
        )
    db = SessionLocal()
    try:
        result = _service(db).calculate_tax(tax_id, amount)
        return api_response(
            True,
            "Imposto calculado com sucesso",
            {
                "taxId": result["tax_id"],
                "name": result["name"],
                "percentage": float(result["percentage"]),
                "baseAmount": float(result["base_amount"]),
                "taxValue": float(result["tax_value"]),
                "totalAmount": float(result["total_amount"]),
            },
        )
    finally:
        db.close()


@taxes_bp.route("/", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_CREATE, ROLE_UPDATE, ROLE_ADMIN)
def create_tax():
    data = validate_payload("tax", get_json_body())
    db = SessionLocal()
    try:
        tax = _service(db).create_tax(data)
        return api_response(True, "Imposto criado com sucesso", tax_to_dict(tax), 201)
    finally:
        db.close()


@taxes_bp.route("/<tax_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def update_tax(tax_id):
    tax_id = validate_uuid_param(tax_id)
    data = validate_payload("tax", get_json_body(), partial=True)
    db = SessionLocal()
    try:
        tax = _service(db).update_tax(tax_id, data)
        return api_response(True, "Imposto atualizado com sucesso", tax_to_dict(tax))
    finally:
        db.close()


@taxes_bp.route("/<tax_id>", methods=["DELETE"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_DELETE, ROLE_ADMIN)
def delete_tax(tax_id):
    tax_id = validate_uuid_param(tax_id)
    db = SessionLocal()
    try:
        _service(db).delete_tax(tax_id)
        return api_response(True, "Imposto excluído com sucesso", None)
    finally:
        db.close()


@taxes_bp.route("/<tax_id>/restore", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def restore_tax(tax_id):
    tax_id = validate_uuid_param(tax_id)
    db = SessionLocal()
    try:
        tax = _service(db).restore_tax(tax_id)
        return api_response(True, "Imposto restaurado com sucesso", tax_to_dict(tax))
    finally:
        db.close()

"""
Company controller - HTTP surface for company use cases.
"""

from flask import Blueprint, request

from estoque.controllers.controller_helpers import arg_text, base_filters, odata_list_response
from estoque.core.api_utils import api_response, get_json_body
from estoque.core.auth_decorators import jwt_required, require_role
from estoque.core.limiter_config import READ_LIMIT, WRITE_LIMIT, limiter
from estoque.core.security import ROLE_ADMIN, ROLE_CREATE, ROLE_DELETE, ROLE_UPDATE
from estoque.core.validation import validate_payload, validate_uuid_param
from estoque.db.session import SessionLocal
from estoque.repositories.company_repo import CompanyRepository
from estoque.schemas.dtos import company_to_dict
from estoque.services.company_service import CompanyService
from estoque.services.odata_service import COMPANIES

companies_bp = Blueprint("companies", __name__, url_prefix="/companies")


def _service(db) -> CompanyService:
    return CompanyService(CompanyRepository(db))


@companies_bp.route("/", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_companies():
    """List companies with filters (name, email, docId, isActive)."""
    filters = base_filters(request.args)
    for arg, key in (("name", "name"), ("email", "email"), ("docId", "doc_id")):
        filters[key] = arg_text(request.args, arg)
    db = SessionLocal()
    try:
        result = _service(db).list_companies(filters)
        return api_response(True, "Empresas listadas com sucesso", result.to_dict(company_to_dict))
    finally:
        db.close()


@companies_bp.route("/odata", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_companies_odata():
    return odata_list_response(
        COMPANIES,
        lambda db: _service(db).list_odata,
        company_to_dict,
        "Empresas listadas com sucesso",
    )


@companies_bp.route("/<company_id>", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def get_company(company_id):
    company_id = validate_uuid_param(company_id)
    db = SessionLocal()
    try:
        company = _service(db).get_company(company_id)
        return api_response(True, "Empresa encontrada", company_to_dict(company))
    finally:
        db.close()


@companies_bp.route("/", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_CREATE, ROLE_UPDATE, ROLE_ADMIN)
def create_company():
    data = validate_payload("company", get_json_body())
    db = SessionLocal()
    try:
        company = _service(db).create_company(data)
        return api_response(True, "Empresa criada com sucesso", company_to_dict(company), 201)
    finally:
        db.close()


@companies_bp.route("/<company_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def update_company(company_id):
    company_id = validate_uuid_param(company_id)
    data = validate_payload("company", get_json_body(), partial=True)
    db = SessionLocal()
    try:
        company = _service(db).update_company(company_id, data)
        return api_response(True, "Empresa atualizada com sucesso", company_to_dict(company))
    finally:
        db.close()


@companies_bp.route("/<company_id>", methods=["DELETE"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_DELETE, ROLE_ADMIN)
def delete_company(company_id):
    company_id = validate_uuid_param(company_id)
    db = SessionLocal()
    try:
        _service(db).delete_company(company_id)
        return api_response(True, "Empresa excluída com sucesso", None)
    finally:
        db.close()


@companies_bp.route("/<company_id>/restore", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def restore_company(company_id):
    company_id = validate_uuid_param(company_id)
    db = SessionLocal()
    try:
        company = _service(db).restore_company(company_id)
        return api_response(True, "Empresa restaurada com sucesso", company_to_dict(company))
    finally:
        db.close()

"""
Category controller - HTTP surface for category use cases.
"""

from flask import Blueprint, request

from estoque.controllers.controller_helpers import arg_text, base_filters, odata_list_response
from estoque.core.api_utils import api_response, get_json_body
from estoque.core.auth_decorators import jwt_required, require_role
from estoque.core.limiter_config import READ_LIMIT, WRITE_LIMIT, limiter
from estoque.core.security import ROLE_ADMIN, ROLE_CREATE, ROLE_DELETE, ROLE_UPDATE
from estoque.core.validation import validate_payload, validate_uuid_param
from estoque.db.session import SessionLocal
from estoque.repositories.category_repo import CategoryRepository
from estoque.schemas.dtos import category_to_dict
from estoque.services.category_service import CategoryService
from estoque.services.odata_service import CATEGORIES

categories_bp = Blueprint("categories", __name__, url_prefix="/categories")


def _service(db) -> CategoryService:
    return CategoryService(CategoryRepository(db))


@categories_bp.route("/", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_categories():
    """List categories with filters (name, parentCategoryId, isActive)."""
    filters = base_filters(request.args)
    filters["name"] = arg_text(request.args, "name")
    parent_id = arg_text(request.args, "parentCategoryId")
    if parent_id:
        filters["parent_category_id"] = validate_uuid_param(parent_id, "parentCategoryId")
    db = SessionLocal()
    try:
        result = _service(db).list_categories(filters)
        return api_response(True, "Categorias listadas com sucesso", result.to_dict(category_to_dict))
    finally:
        db.close()


@categories_bp.route("/odata", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_categories_odata():
    return odata_list_response(
        CATEGORIES,
        lambda db: _service(db).list_odata,
        category_to_dict,
        "Categorias listadas com sucesso",
    )


@categories_bp.route("/<category_id>", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def get_category(category_id):
    category_id = validate_uuid_param(category_id)
    db = SessionLocal()
    try:
        category = _service(db).get_category(category_id)
        return api_response(True, "Categoria encontrada", category_to_dict(category))
    finally:
        db.close()


@categories_bp.route("/", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_CREATE, ROLE_UPDATE, ROLE_ADMIN)
def create_category():
    data = validate_payload("category", get_json_body())
    db = SessionLocal()
    try:
        category = _service(db).create_category(data)
        return api_response(True, "Categoria criada com sucesso", category_to_dict(category), 201)
    finally:
        db.close()


@categories_bp.route("/<category_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def update_category(category_id):
    category_id = validate_uuid_param(category_id)
    data = validate_payload("category", get_json_body(), partial=True)
    db = SessionLocal()
    try:
        category = _service(db).update_category(category_id, data)
        return api_response(True, "Categoria atualizada com sucesso", category_to_dict(category))
    finally:
        db.close()


@categories_bp.route("/<category_id>", methods=["DELETE"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_DELETE, ROLE_ADMIN)
def delete_category(category_id):
    category_id = validate_uuid_param(category_id)
    db = SessionLocal()
    try:
        _service(db).delete_category(category_id)
        return api_response(True, "Categoria excluída com sucesso", None)
    finally:
        db.close()


@categories_bp.route("/<category_id>/restore", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def restore_category(category_id):
    category_id = validate_uuid_param(category_id)
    db = SessionLocal()
    try:
        category = _service(db).restore_category(category_id)
        return api_response(True, "Categoria restaurada com sucesso", category_to_dict(category))
    finally:
        db.close()

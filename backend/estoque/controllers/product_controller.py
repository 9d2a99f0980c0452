"""
Product controller - HTTP surface for product and stock use cases.
"""

from flask import Blueprint, request

from estoque.controllers.controller_helpers import (
    arg_decimal,
    arg_text,
    base_filters,
    odata_list_response,
)
from estoque.core.api_utils import api_response, get_json_body, parse_bool_arg
from estoque.core.auth_decorators import jwt_required, require_role
from estoque.core.exceptions import ValidationError
from estoque.core.limiter_config import READ_LIMIT, WRITE_LIMIT, limiter
from estoque.core.security import ROLE_ADMIN, ROLE_CREATE, ROLE_DELETE, ROLE_UPDATE
from estoque.core.validation import (
    StockQuantityValidator,
    validate_payload,
    validate_uuid_param,
)
from estoque.db.session import SessionLocal
from estoque.repositories.category_repo import CategoryRepository
from estoque.repositories.company_repo import CompanyRepository
from estoque.repositories.product_repo import ORDERABLE_FIELDS, ProductRepository
from estoque.schemas.dtos import product_to_dict
from estoque.services.odata_service import PRODUCTS
from estoque.services.product_service import ProductService

products_bp = Blueprint("products", __name__, url_prefix="/products")


def _service(db) -> ProductService:
    return ProductService(ProductRepository(db), CompanyRepository(db), CategoryRepository(db))


def _list_filters(args) -> dict:
    filters = base_filters(args)
    for arg, key in (
        ("name", "name"),
        ("sku", "sku"),
        ("barcode", "barcode"),
        ("searchTerm", "search_term"),
    ):
        filters[key] = arg_text(args, arg)
    for arg, key in (("categoryId", "category_id"), ("companyId", "company_id")):
        value = arg_text(args, arg)
        if value:
            filters[key] = validate_uuid_param(value, arg)
    filters["min_price"] = arg_decimal(args, "minPrice")
    filters["max_price"] = arg_decimal(args, "maxPrice")
    for arg, key in (
        ("inStock", "in_stock"),
        ("lowStock", "low_stock"),
        ("outOfStock", "out_of_stock"),
        ("isFeatured", "is_featured"),
    ):
        filters[key] = parse_bool_arg(args.get(arg))

    order_by = arg_text(args, "orderBy")
    if order_by and order_by not in ORDERABLE_FIELDS:
        raise ValidationError(
            f"orderBy deve ser um de: {', '.join(ORDERABLE_FIELDS)}",
            details=[{"code": "INVALID_FILTER", "message": "orderBy inválido", "field": "orderBy"}],
        )
    direction = (arg_text(args, "orderDirection") or "DESC").upper()
    if direction not in ("ASC", "DESC"):
        raise ValidationError(
            "orderDirection deve ser ASC ou DESC",
            details=[{"code": "INVALID_FILTER", "message": "orderDirection inválido", "field": "orderDirection"}],
        )
    filters["order_by"] = order_by
    filters["order_direction"] = direction
    return filters


@products_bp.route("/", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_products():
    """List products with filters, stock flags and ordering."""
    filters = _list_filters(request.args)
    db = SessionLocal()
    try:
        result = _service(db).list_products(filters)
        return api_response(True, "Produtos listados com sucesso", result.to_dict(product_to_dict))
    finally:
        db.close()


@products_bp.route("/odata", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_products_odata():
    return odata_list_response(
        PRODUCTS,
        lambda db: _service(db).list_odata,
        product_to_dict,
        "Produtos listados com sucesso",
    )


@products_bp.route("/low-stock", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def list_low_stock():
    """Active products at or below their minimum stock level."""
    company_id = arg_text(request.args, "companyId")
    if company_id:
        company_id = validate_uuid_param(company_id, "companyId")
    db = SessionLocal()
    try:
        products = _service(db).list_low_stock(company_id)
        return api_response(
            True,
            "Produtos com estoque baixo listados com sucesso",
            [product_to_dict(p) for p in products],
        )
    finally:
        db.close()


@products_bp.route("/<product_id>", methods=["GET"])
@limiter.limit(READ_LIMIT)
@jwt_required
def get_product(product_id):
    product_id = validate_uuid_param(product_id)
    db = SessionLocal()
    try:
        product = _service(db).get_product(product_id)
        return api_response(True, "Produto encontrado", product_to_dict(product))
    finally:
        db.close()


@products_bp.route("/", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_CREATE, ROLE_UPDATE, ROLE_ADMIN)
def create_product():
    data = validate_payload("product", get_json_body())
    db = SessionLocal()
    try:
        product = _service(db).create_product(data)
        return api_response(True, "Produto criado com sucesso", product_to_dict(product), 201)
    finally:
        db.close()


@products_bp.route("/<product_id>", methods=["PUT"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def update_product(product_id):
    product_id = validate_uuid_param(product_id)
    data = validate_payload("product", get_json_body(), partial=True)
    db = SessionLocal()
    try:
        product = _service(db).update_product(product_id, data)
        return api_response(True, "Produto atualizado com sucesso", product_to_dict(product))
    finally:
        db.close()


@products_bp.route("/<product_id>", methods=["DELETE"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_DELETE, ROLE_ADMIN)
def delete_product(product_id):
    product_id = validate_uuid_param(product_id)
    db = SessionLocal()
    try:
        _service(db).delete_product(product_id)
        return api_response(True, "Produto excluído com sucesso", None)
    finally:
        db.close()


@products_bp.route("/<product_id>/restore", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def restore_product(product_id):
    product_id = validate_uuid_param(product_id)
    db = SessionLocal()
    try:
        product = _service(db).restore_product(product_id)
        return api_response(True, "Produto restaurado com sucesso", product_to_dict(product))
    finally:
        db.close()


@products_bp.route("/<product_id>/stock", methods=["PATCH"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def update_stock(product_id):
    """Set the absolute stock quantity (``{"stockQuantity": n}``)."""
    product_id = validate_uuid_param(product_id)
    data = StockQuantityValidator("stockQuantity", min_value=0).validate(get_json_body()).raise_if_invalid()
    db = SessionLocal()
    try:
        product = _service(db).update_stock(product_id, data["quantity"])
        return api_response(True, "Estoque atualizado com sucesso", product_to_dict(product))
    finally:
        db.close()


@products_bp.route("/<product_id>/reserve", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def reserve_stock(product_id):
    product_id = validate_uuid_param(product_id)
    data = StockQuantityValidator("quantity").validate(get_json_body()).raise_if_invalid()
    db = SessionLocal()
    try:
        product = _service(db).reserve_stock(product_id, data["quantity"])
        return api_response(True, "Estoque reservado com sucesso", product_to_dict(product))
    finally:
        db.close()


@products_bp.route("/<product_id>/release", methods=["POST"])
@limiter.limit(WRITE_LIMIT)
@require_role(ROLE_UPDATE, ROLE_ADMIN)
def release_stock(product_id):
    product_id = validate_uuid_param(product_id)
    data = StockQuantityValidator("quantity").validate(get_json_body()).raise_if_invalid()
    db = SessionLocal()
    try:
        product = _service(db).release_stock(product_id, data["quantity"])
        return api_response(True, "Reserva liberada com sucesso", product_to_dict(product))
    finally:
        db.close()

"""
Response serializers.

Domain entities are rendered as camelCase dictionaries. OData listings pass
through ``serialize_page`` which nests ``$expand`` relations and applies the
``$select`` projection (``id`` is always kept).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from estoque.core.odata.parser import ODataQuery
from estoque.domain.entities import Category, Company, Product, Sale, SaleItem, Tax
from estoque.domain.pagination import PaginatedResult


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _num(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _audit(entity: Any) -> Dict[str, Any]:
    return {
        "isDeleted": entity.is_deleted,
        "createdAt": _iso(entity.created_at),
        "updatedAt": _iso(entity.updated_at),
        "deletedAt": _iso(entity.deleted_at),
    }


def category_to_dict(category: Category) -> Dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "shortDescription": category.short_description,
        "parentCategoryId": category.parent_category_id,
        **_audit(category),
    }


def company_to_dict(company: Company) -> Dict[str, Any]:
    address = None
    if company.address is not None:
        address = {
            "street": company.address.street,
            "number": company.address.number,
            "complement": company.address.complement,
            "neighborhood": company.address.neighborhood,
            "city": company.address.city,
            "state": company.address.state,
            "zipCode": company.address.zip_code,
            "country": company.address.country,
            "formatted": company.address.formatted(),
        }
    return {
        "id": company.id,
        "name": company.name,
        "docId": company.doc_id,
        "documentType": company.document_type,
        "formattedDocument": company.formatted_document,
        "email": company.email,
        "description": company.description,
        "phoneNumber": company.phone_number,
        "formattedPhone": company.formatted_phone,
        "companyAddress": address,
        **_audit(company),
    }


def product_to_dict(product: Product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "shortDescription": product.short_description,
        "sku": product.sku,
        "barcode": product.barcode,
        "price": _num(product.price),
        "costPrice": _num(product.cost_price),
        "profitMargin": _num(product.profit_margin),
        "stockQuantity": product.stock_quantity,
        "reservedQuantity": product.reserved_quantity,
        "availableQuantity": product.available_quantity,
        "minStockLevel": product.min_stock_level,
        "maxStockLevel": product.max_stock_level,
        "isLowStock": product.is_low_stock,
        "isOutOfStock": product.is_out_of_stock,
        "weight": _num(product.weight),
        "height": _num(product.height),
        "width": _num(product.width),
        "length": _num(product.length),
        "imageUrl": product.image_url,
        "isActive": product.is_active,
        "isFeatured": product.is_featured,
        "isDigital": product.is_digital,
        "categoryId": product.category_id,
        "companyId": product.company_id,
        **_audit(product),
    }


def tax_to_dict(tax: Tax) -> Dict[str, Any]:
    return {
        "id": tax.id,
        "name": tax.name,
        "description": tax.description,
        "percentage": _num(tax.percentage),
        "categoryId": tax.category_id,
        "isActive": tax.is_active,
        **_audit(tax),
    }


def sale_item_to_dict(item: SaleItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "saleId": item.sale_id,
        "productId": item.product_id,
        "name": item.name,
        "sku": item.sku,
        "quantity": item.quantity,
        "unitPrice": _num(item.unit_price),
        "costPrice": _num(item.cost_price),
        "discountValue": _num(item.discount_value),
        "taxRate": _num(item.tax_rate),
        "taxValue": _num(item.tax_value),
        "totalPrice": _num(item.total_price),
        "totalCost": _num(item.total_cost),
    }


def sale_to_dict(sale: Sale, include_items: bool = True) -> Dict[str, Any]:
    data = {
        "id": sale.id,
        "saleNumber": sale.sale_number,
        "customerId": sale.customer_id,
        "companyId": sale.company_id,
        "saleType": sale.sale_type.value,
        "paymentType": sale.payment_type.value,
        "status": sale.status.value,
        "totalAmount": _num(sale.total_amount),
        "totalCost": _num(sale.total_cost),
        "discountValue": _num(sale.discount_value),
        "taxValue": _num(sale.tax_value),
        "shippingValue": _num(sale.shipping_value),
        "netAmount": _num(sale.net_amount),
        "profit": _num(sale.profit),
        "profitMargin": _num(sale.profit_margin),
        "isCreditSale": sale.is_credit_sale,
        "isCashSale": sale.is_cash_sale,
        "canBeEdited": sale.can_be_edited,
        "canBeCancelled": sale.can_be_cancelled,
        "saleDate": _iso(sale.sale_date),
        "paymentDueDate": _iso(sale.payment_due_date),
        "deliveryDate": _iso(sale.delivery_date),
        "notes": sale.notes,
        "internalNotes": sale.internal_notes,
        "paymentInstallments": sale.payment_installments,
        "deliveryMethod": sale.delivery_method,
        "trackingCode": sale.tracking_code,
        **_audit(sale),
    }
    if include_items:
        data["items"] = [sale_item_to_dict(item) for item in sale.items]
    return data


def sale_summary_to_dict(sale: Sale) -> Dict[str, Any]:
    return sale_to_dict(sale, include_items=False)


SERIALIZERS: Dict[type, Callable[[Any], Dict[str, Any]]] = {
    Category: category_to_dict,
    Company: company_to_dict,
    Product: product_to_dict,
    Tax: tax_to_dict,
    Sale: sale_to_dict,
    SaleItem: sale_item_to_dict,
}


def serialize_related(value: Any) -> Any:
    """Serialize an expanded relation (entity, list of entities or None)."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [serialize_related(v) for v in value]
    serializer = SERIALIZERS.get(type(value))
    return serializer(value) if serializer else value


def project(data: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    """Keep ``id`` plus the listed keys that exist on ``data``."""
    wanted = ["id"] + [f for f in fields if f != "id"]
    return {key: data[key] for key in wanted if key in data}


def serialize_page(
    result: PaginatedResult,
    serializer: Callable[[Any], Dict[str, Any]],
    query: Optional[ODataQuery] = None,
) -> Dict[str, Any]:
    """``{"items": [...], "pagination": {...}}`` honouring $expand/$select."""
    items: List[Dict[str, Any]] = []
    for entity in result.items:
        data = serializer(entity)
        expanded = result.expanded.get(entity.id, {})
        for name, related in expanded.items():
            data[name] = serialize_related(related)
        if query is not None and query.select:
            data = project(data, list(query.select) + list(expanded))
        items.append(data)
    return {"items": items, "pagination": result.pagination_dict()}

# Overview: Flask API routes for outlets, categories, and products.

"""
Catalog API Routes

DESIGN:
- Everyone signed in can read outlets, categories, and the POS catalog
- Writes need the can_manage_catalog capability (owners)
- Products are soft-deleted; sold variants cannot be removed
"""

from flask import Blueprint, request, jsonify, g

from ..services import catalog_service
from ..decorators import handle_service_errors, require_auth, require_capability, resolve_outlet_id


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


# =============================================================================
# OUTLETS & CATEGORIES
# =============================================================================

@catalog_bp.get("/outlets")
@require_auth
def list_outlets_route():
    outlets = catalog_service.list_outlets()
    if not g.capabilities.can_view_all_outlets:
        outlets = [o for o in outlets if o.id == g.capabilities.outlet_id]
    return jsonify({"items": [o.to_dict() for o in outlets], "count": len(outlets)}), 200


@catalog_bp.post("/outlets")
@require_auth
@require_capability("can_manage_catalog")
@handle_service_errors("create outlet")
def create_outlet_route():
    outlet = catalog_service.create_outlet(request.get_json(silent=True) or {})
    return jsonify(outlet.to_dict()), 201


@catalog_bp.get("/categories")
@require_auth
def list_categories_route():
    categories = catalog_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)}), 200


@catalog_bp.post("/categories")
@require_auth
@require_capability("can_manage_catalog")
@handle_service_errors("create category")
def create_category_route():
    data = request.get_json(silent=True) or {}
    category = catalog_service.create_category(data.get("name"))
    return jsonify(category.to_dict()), 201


# =============================================================================
# PRODUCTS
# =============================================================================

@catalog_bp.get("/products")
@require_auth
@handle_service_errors("list products")
def list_products_route():
    """
    Product list for the back office.

    Query params: outlet_id, include_inactive (owners only)
    """
    outlet_id = resolve_outlet_id(request.args.get("outlet_id"))
    include_inactive = (
        g.capabilities.can_manage_catalog
        and request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    )
    products = catalog_service.list_products(outlet_id=outlet_id, include_inactive=include_inactive)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@catalog_bp.get("/products/pos")
@require_auth
@handle_service_errors("load POS catalog")
def pos_catalog_route():
    """
    Active products sold at an outlet, priced for an order channel.

    Query params: outlet_id (owners), channel (default "store")
    """
    outlet_id = resolve_outlet_id(request.args.get("outlet_id"))
    if outlet_id is None:
        return jsonify({"error": "outlet_id required"}), 400
    return jsonify(catalog_service.pos_catalog(outlet_id, request.args.get("channel"))), 200


@catalog_bp.post("/products")
@require_auth
@require_capability("can_manage_catalog")
@handle_service_errors("create product")
def create_product_route():
    product = catalog_service.create_product(request.get_json(silent=True) or {})
    return jsonify(product.to_dict()), 201


@catalog_bp.patch("/products/<int:product_id>")
@require_auth
@require_capability("can_manage_catalog")
@handle_service_errors("update product")
def update_product_route(product_id: int):
    product = catalog_service.update_product(product_id, request.get_json(silent=True) or {})
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product.to_dict()), 200


@catalog_bp.delete("/products/<int:product_id>")
@require_auth
@require_capability("can_manage_catalog")
@handle_service_errors("deactivate product")
def delete_product_route(product_id: int):
    product = catalog_service.deactivate_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product.to_dict()), 200


@catalog_bp.put("/variants/<int:variant_id>/stock")
@require_auth
@require_capability("can_manage_catalog")
@handle_service_errors("set variant stock")
def set_stock_route(variant_id: int):
    data = request.get_json(silent=True) or {}
    if "stock" not in data:
        return jsonify({"error": "stock required"}), 400
    variant = catalog_service.adjust_stock(variant_id, data["stock"])
    if variant is None:
        return jsonify({"error": "Variant not found"}), 404
    return jsonify(variant.to_dict()), 200

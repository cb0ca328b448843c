# Overview: Flask API routes for customers and member lookup.

from flask import Blueprint, request, jsonify

from ..services import customer_service
from ..decorators import handle_service_errors, require_auth, require_capability, resolve_outlet_id


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@customers_bp.get("/")
@require_auth
@handle_service_errors("list customers")
def list_customers_route():
    outlet_id = resolve_outlet_id(request.args.get("outlet_id"))
    customers = customer_service.list_customers(outlet_id)
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.get("/members/<member_id>")
@require_auth
@handle_service_errors("look up member")
def member_lookup_route(member_id: str):
    """Validate a scanned member QR. 422 when the code is unknown or inactive."""
    customer = customer_service.find_member(member_id)
    return jsonify(customer.to_dict()), 200


@customers_bp.post("/<int:customer_id>/member")
@require_auth
@require_capability("can_manage_discounts")
@handle_service_errors("assign member id")
def assign_member_route(customer_id: int):
    """
    Request body: {"member_id": "MBR-0001"} (optional; generated when omitted)
    """
    data = request.get_json(silent=True) or {}
    customer = customer_service.assign_member_id(customer_id, data.get("member_id"))
    if customer is None:
        return jsonify({"error": "Customer not found"}), 404
    return jsonify(customer.to_dict()), 200

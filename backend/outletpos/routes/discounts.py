# Overview: Flask API routes for discount rule management.

"""
Discount Rule API Routes

Reading the active rules is open to every signed-in user (the POS shows
them); creating, editing, and deleting needs can_manage_discounts.
"""

from flask import Blueprint, request, jsonify, g

from ..services import discount_service
from ..decorators import handle_service_errors, require_auth, require_capability


discounts_bp = Blueprint("discounts", __name__, url_prefix="/api/discounts")


@discounts_bp.get("")
@discounts_bp.get("/")
@require_auth
def list_discounts_route():
    active_only = (
        not g.capabilities.can_manage_discounts
        or request.args.get("active", "").lower() in ("1", "true", "yes")
    )
    rules = discount_service.list_discount_rules(active_only=active_only)
    return jsonify({"items": [r.to_dict() for r in rules], "count": len(rules)}), 200


@discounts_bp.post("")
@discounts_bp.post("/")
@require_auth
@require_capability("can_manage_discounts")
@handle_service_errors("create discount rule")
def create_discount_route():
    rule = discount_service.create_discount_rule(request.get_json(silent=True) or {}, user_id=g.current_user.id)
    return jsonify(rule.to_dict()), 201


@discounts_bp.patch("/<int:rule_id>")
@require_auth
@require_capability("can_manage_discounts")
@handle_service_errors("update discount rule")
def update_discount_route(rule_id: int):
    rule = discount_service.update_discount_rule(rule_id, request.get_json(silent=True) or {})
    if rule is None:
        return jsonify({"error": "Discount not found"}), 404
    return jsonify(rule.to_dict()), 200


@discounts_bp.delete("/<int:rule_id>")
@require_auth
@require_capability("can_manage_discounts")
@handle_service_errors("delete discount rule")
def delete_discount_route(rule_id: int):
    outcome = discount_service.delete_discount_rule(rule_id)
    if outcome is None:
        return jsonify({"error": "Discount not found"}), 404
    return jsonify({"id": rule_id, "result": outcome}), 200

# Overview: Flask API routes for the caller's draft cart.

from flask import Blueprint, request, jsonify, g

from ..services import draft_service
from ..decorators import handle_service_errors, require_auth, resolve_outlet_id


drafts_bp = Blueprint("drafts", __name__, url_prefix="/api/drafts")


@drafts_bp.put("")
@drafts_bp.put("/")
@require_auth
@handle_service_errors("save draft cart")
def save_draft_route():
    """
    Request body: {"items": [{"variant_id": 7, "quantity": 2}], "order_channel": "store", "outlet_id": 1}
    """
    data = request.get_json(silent=True) or {}
    draft = draft_service.save_draft(
        g.current_user.id,
        data.get("items"),
        outlet_id=resolve_outlet_id(data.get("outlet_id")),
        channel=data.get("order_channel"),
    )
    return jsonify(draft.to_dict()), 200


@drafts_bp.get("/current")
@require_auth
def current_draft_route():
    draft = draft_service.get_current_draft(g.current_user.id)
    if draft is None:
        return jsonify({"error": "No draft cart"}), 404
    return jsonify(draft.to_dict()), 200


@drafts_bp.delete("/current")
@require_auth
def discard_draft_route():
    removed = draft_service.discard_drafts(g.current_user.id)
    return jsonify({"removed": removed}), 200

# Overview: Flask API routes for order channels and delivery-platform markups.

from flask import Blueprint, request, jsonify

from ..services import pricing_service
from ..decorators import handle_service_errors, require_auth, require_capability


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/platforms")
@require_auth
def get_platforms_route():
    """Configured markups plus the order channels the POS may offer."""
    channels = pricing_service.get_order_channels()
    return jsonify({
        "settings": pricing_service.get_platform_settings(),
        "order_channels": channels,
        "payment_methods": {c: list(pricing_service.allowed_payment_methods(c)) for c in channels},
    }), 200


@settings_bp.put("/platforms")
@require_auth
@require_capability("can_manage_settings")
@handle_service_errors("update platform settings")
def update_platforms_route():
    """
    Request body: {"GoFood": {"markup": 20}, "GrabFood": {"markup": 25}}
    """
    settings = pricing_service.update_platform_settings(request.get_json(silent=True))
    return jsonify({"settings": settings, "order_channels": pricing_service.get_order_channels()}), 200

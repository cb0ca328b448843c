# Overview: Flask API routes for checkout, transactions, and post-sale customer linking.

"""
Checkout API Routes

FLOW:
1. POST /api/checkout/quote  - price the cart, pick the discount, check stock (no writes)
2. POST /api/checkout        - record the sale (requires an open cashier session)
3. POST /api/transactions/<id>/customer - attach the customer when the receipt is sent

Cashiers always sell at their own outlet; owners pass outlet_id.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import customer_service, transaction_service
from ..decorators import handle_service_errors, require_auth, resolve_outlet_id
from ..validation import AccessDeniedError


sales_bp = Blueprint("sales", __name__, url_prefix="/api")


def _outlet_from(data: dict) -> int | None:
    return resolve_outlet_id(data.get("outlet_id"))


def _ensure_transaction_scope(transaction) -> None:
    caps = g.capabilities
    if not caps.can_view_all_outlets and transaction.outlet_id != caps.outlet_id:
        raise AccessDeniedError("Outlet access denied")


@sales_bp.post("/checkout/quote")
@require_auth
@handle_service_errors("quote checkout")
def quote_route():
    """
    Request body:
    {
        "outlet_id": 1,                 (owners)
        "order_channel": "GoFood",      (default "store")
        "items": [{"product_id": 3, "variant_id": 7, "quantity": 2}],
        "member_id": "MBR-1A2B3C4D",    (optional)
        "discount_rule_id": 5           (optional, pins a promotion)
    }
    """
    data = request.get_json(silent=True) or {}
    outlet_id = _outlet_from(data)
    if outlet_id is None:
        return jsonify({"error": "outlet_id required"}), 400

    quote = transaction_service.build_quote(
        outlet_id=outlet_id,
        items=data.get("items"),
        channel=data.get("order_channel"),
        member_id=data.get("member_id"),
        discount_rule_id=data.get("discount_rule_id"),
    )
    return jsonify(quote.to_dict()), 200


@sales_bp.post("/checkout")
@require_auth
@handle_service_errors("record sale")
def checkout_route():
    """
    Record a sale.

    Request body: the quote body plus
        "payment_method": "cash" | "qris" | "platform_balance",
        "cash_received": 100000          (cash only)

    Returns 201 with the transaction, 400 on bad input, 422 when a business
    rule refuses the sale, 409 when concurrent sales kept colliding.
    """
    data = request.get_json(silent=True) or {}
    outlet_id = _outlet_from(data)
    if outlet_id is None:
        return jsonify({"error": "outlet_id required"}), 400
    if not data.get("payment_method"):
        return jsonify({"error": "payment_method required"}), 400

    transaction = transaction_service.checkout(
        user=g.current_user,
        outlet_id=outlet_id,
        items=data.get("items"),
        payment_method=data.get("payment_method"),
        channel=data.get("order_channel"),
        cash_received=data.get("cash_received"),
        member_id=data.get("member_id"),
        discount_rule_id=data.get("discount_rule_id"),
    )
    return jsonify(transaction.to_dict()), 201


@sales_bp.get("/transactions")
@require_auth
@handle_service_errors("list transactions")
def list_transactions_route():
    """Query params: outlet_id (owners), cashier_session_id, limit (max 500)."""
    outlet_id = resolve_outlet_id(request.args.get("outlet_id"))
    limit = min(request.args.get("limit", 100, type=int) or 100, 500)
    transactions = transaction_service.list_transactions(
        outlet_id=outlet_id,
        cashier_session_id=request.args.get("cashier_session_id", type=int),
        limit=limit,
    )
    return jsonify({"items": [t.to_dict() for t in transactions], "count": len(transactions)}), 200


@sales_bp.get("/transactions/<int:transaction_id>")
@require_auth
@handle_service_errors("get transaction")
def get_transaction_route(transaction_id: int):
    transaction = transaction_service.get_transaction(transaction_id)
    if transaction is None:
        return jsonify({"error": "Transaction not found"}), 404
    _ensure_transaction_scope(transaction)
    return jsonify(transaction.to_dict()), 200


@sales_bp.post("/transactions/<int:transaction_id>/customer")
@require_auth
@handle_service_errors("link customer")
def link_customer_route(transaction_id: int):
    """
    Attach a customer to a recorded sale (digital receipt flow).

    Request body: {"phone": "0812...", "name": "Budi"}
    """
    transaction = transaction_service.get_transaction(transaction_id)
    if transaction is None:
        return jsonify({"error": "Transaction not found"}), 404
    _ensure_transaction_scope(transaction)

    data = request.get_json(silent=True) or {}
    if not data.get("phone"):
        return jsonify({"error": "phone required"}), 400

    transaction = customer_service.link_customer(transaction_id, data["phone"], data.get("name"))
    current_app.logger.info(
        "Transaction %s linked to customer %s", transaction.transaction_number, transaction.customer_id
    )
    return jsonify(transaction.to_dict()), 200

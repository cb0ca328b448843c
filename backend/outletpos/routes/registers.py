# Overview: Flask API routes for cashier sessions (cash drawer) and drawer expenses.

"""
Cash Drawer API Routes

DESIGN:
- Shift lifecycle: open -> close (immutable once closed)
- One open session per user; sales require it
- Expenses recorded while a session is open reduce its expected cash
- Cashiers see their own outlet only; owners see every outlet
"""

from flask import Blueprint, request, jsonify, g

from ..services import drawer_service, expense_service
from ..decorators import handle_service_errors, require_auth, resolve_outlet_id
from ..validation import AccessDeniedError


registers_bp = Blueprint("registers", __name__, url_prefix="/api")


@registers_bp.post("/drawer/open")
@require_auth
@handle_service_errors("open cashier session")
def open_drawer_route():
    """
    Request body: {"outlet_id": 1 (owners), "initial_cash": 500000}
    """
    data = request.get_json(silent=True) or {}
    outlet_id = resolve_outlet_id(data.get("outlet_id"))
    if outlet_id is None:
        return jsonify({"error": "outlet_id required"}), 400
    if data.get("initial_cash") is None:
        return jsonify({"error": "initial_cash required"}), 400

    session = drawer_service.open_drawer(g.current_user, outlet_id, data["initial_cash"])
    return jsonify(session.to_dict()), 201


@registers_bp.get("/drawer/current")
@require_auth
def current_drawer_route():
    """Live summary of the caller's open session; 404 when the drawer is closed."""
    summary = drawer_service.current_summary(g.current_user.id)
    if summary is None:
        return jsonify({"error": "No active cashier session"}), 404
    return jsonify(summary), 200


@registers_bp.post("/drawer/close")
@require_auth
@handle_service_errors("close cashier session")
def close_drawer_route():
    """
    Request body: {"counted_cash": 650000, "notes": "...", "session_id": 3 (optional)}

    Without session_id the caller's own open session is closed.
    """
    data = request.get_json(silent=True) or {}
    if data.get("counted_cash") is None:
        return jsonify({"error": "counted_cash required"}), 400

    session_id = data.get("session_id")
    if session_id is None:
        active = drawer_service.get_active_session(g.current_user.id)
        if active is None:
            return jsonify({"error": "No active cashier session"}), 404
        session_id = active.id

    session = drawer_service.close_drawer(
        session_id, data["counted_cash"], actor=g.current_user, notes=data.get("notes")
    )
    return jsonify(session.to_dict()), 200


@registers_bp.get("/drawer/sessions")
@require_auth
@handle_service_errors("list cashier sessions")
def list_sessions_route():
    """Session history. Query params: outlet_id (owners), user_id, limit."""
    outlet_id = resolve_outlet_id(request.args.get("outlet_id"))
    limit = min(request.args.get("limit", 50, type=int) or 50, 200)
    sessions = drawer_service.list_sessions(
        outlet_id=outlet_id,
        user_id=request.args.get("user_id", type=int),
        limit=limit,
    )
    return jsonify({"items": [s.to_dict() for s in sessions], "count": len(sessions)}), 200


@registers_bp.get("/drawer/sessions/<int:session_id>")
@require_auth
@handle_service_errors("get cashier session")
def get_session_route(session_id: int):
    session = drawer_service.get_session(session_id)
    if session is None:
        return jsonify({"error": "Session not found"}), 404
    if not g.capabilities.can_view_all_outlets and session.outlet_id != g.capabilities.outlet_id:
        raise AccessDeniedError("Outlet access denied")

    transactions = drawer_service.session_transactions(session.id)
    expenses = drawer_service.session_expenses(session.id)
    return jsonify({
        "session": session.to_dict(),
        "summary": drawer_service.summarize(session, transactions, expenses).to_dict(),
        "transactions": [t.to_dict() for t in transactions],
        "expenses": [e.to_dict() for e in expenses],
    }), 200


# =============================================================================
# EXPENSES
# =============================================================================

@registers_bp.post("/expenses")
@require_auth
@handle_service_errors("record expense")
def create_expense_route():
    """
    Request body: {"description": "Es batu", "amount": 20000, "category": "Bahan", "outlet_id": 1 (owners)}
    """
    data = dict(request.get_json(silent=True) or {})
    outlet_id = resolve_outlet_id(data.pop("outlet_id", None))
    expense = expense_service.record_expense(data, user=g.current_user, outlet_id=outlet_id)
    return jsonify(expense.to_dict()), 201


@registers_bp.get("/expenses")
@require_auth
@handle_service_errors("list expenses")
def list_expenses_route():
    outlet_id = resolve_outlet_id(request.args.get("outlet_id"))
    expenses = expense_service.list_expenses(
        outlet_id=outlet_id,
        cashier_session_id=request.args.get("cashier_session_id", type=int),
    )
    return jsonify({"items": [e.to_dict() for e in expenses], "count": len(expenses)}), 200

# Overview: Drawer expenses (cash paid out of the till).

from __future__ import annotations

from ..extensions import db
from ..models import Expense, Outlet
from ..validation import ModelValidationPolicy, ValidationError, enforce_rules_expense, validate_payload
from outletpos.time_utils import utcnow
from .drawer_service import get_active_session

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "amount", "category", "outlet_id", "occurred_at"},
    required_on_create={"description", "amount"},
)

DEFAULT_EXPENSE_CATEGORY = "Umum"


def record_expense(data: dict, *, user, outlet_id: int | None = None) -> Expense:
    """
    Record an expense paid from the drawer.

    The expense is linked to the user's active session when one exists, so it
    reduces that session's expected cash. Without a session it is still
    recorded against the outlet.
    """
    data = dict(data or {})
    if outlet_id is not None:
        data["outlet_id"] = outlet_id
    patch = validate_payload(model=Expense, payload=data, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_expense(patch)

    session = get_active_session(user.id, lock=True)
    resolved_outlet = patch.get("outlet_id") or (session.outlet_id if session else None) or user.outlet_id
    outlet = db.session.get(Outlet, resolved_outlet) if resolved_outlet else None
    if outlet is None:
        raise ValidationError("outlet_id required")

    expense = Expense(
        description=patch["description"],
        amount=patch["amount"],
        category=patch.get("category") or DEFAULT_EXPENSE_CATEGORY,
        outlet_id=outlet.id,
        outlet_name=outlet.name,
        cashier_session_id=session.id if session is not None and session.outlet_id == outlet.id else None,
        created_by_user_id=user.id,
        occurred_at=patch.get("occurred_at") or utcnow(),
    )
    db.session.add(expense)
    db.session.commit()
    return expense


def list_expenses(*, outlet_id: int | None = None, cashier_session_id: int | None = None, limit: int = 100) -> list[Expense]:
    q = db.session.query(Expense)
    if outlet_id is not None:
        q = q.filter_by(outlet_id=outlet_id)
    if cashier_session_id is not None:
        q = q.filter_by(cashier_session_id=cashier_session_id)
    return q.order_by(Expense.occurred_at.desc(), Expense.id.desc()).limit(limit).all()

# Overview: Cashier sessions (cash drawer shifts): open, live summary, close with variance.

"""
Cash Drawer Sessions

WHY: Each shift is a period of cash accountability for one cashier at one
outlet. The drawer is counted at close and compared with what the system
expects to be in it.

DESIGN PRINCIPLES:
- At most one active session per user (partial unique index + pre-check)
- Sessions are immutable once closed (active -> closed only)
- Sales and expenses link to the session via cashier_session_id
- Closing always succeeds; the variance is informational

RECONCILIATION:
    expected = initial_cash + cash sales - expenses
    variance = counted_cash - expected
Only cash sales count toward the drawer; QRIS and platform-balance sales are
reported but never expected in the drawer.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CashierSession, Expense, Outlet, Transaction
from ..validation import BusinessRuleError, ValidationError, coerce_int
from outletpos.time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update, run_with_retry


class DrawerError(BusinessRuleError):
    """Raised for cash drawer session errors."""


# =============================================================================
# PURE SESSION LIFECYCLE
# =============================================================================

def open_session(user, outlet, initial_cash: int, *, now=None) -> CashierSession:
    """Build a new active session. Nothing is persisted."""
    if initial_cash is None or initial_cash < 0:
        raise ValidationError("initial_cash must be >= 0")
    return CashierSession(
        user_id=user.id,
        user_name=user.name,
        outlet_id=outlet.id,
        outlet_name=outlet.name,
        status="active",
        initial_cash=initial_cash,
        start_time=now or utcnow(),
    )


@dataclass(frozen=True)
class DrawerSummary:
    """Sales and cash breakdown for one session."""
    initial_cash: int
    cash_sales: int
    qris_sales: int
    platform_sales: int
    total_expenses: int
    transaction_count: int
    expense_count: int

    @property
    def total_sales(self) -> int:
        return self.cash_sales + self.qris_sales + self.platform_sales

    @property
    def calculated_cash(self) -> int:
        return self.initial_cash + self.cash_sales - self.total_expenses

    def to_dict(self) -> dict:
        return {
            "initial_cash": self.initial_cash,
            "cash_sales": self.cash_sales,
            "qris_sales": self.qris_sales,
            "platform_sales": self.platform_sales,
            "total_sales": self.total_sales,
            "total_expenses": self.total_expenses,
            "calculated_cash": self.calculated_cash,
            "transaction_count": self.transaction_count,
            "expense_count": self.expense_count,
        }


def summarize(session, transactions, expenses) -> DrawerSummary:
    def _sum(method):
        return sum(t.total for t in transactions if t.payment_method == method)

    return DrawerSummary(
        initial_cash=session.initial_cash or 0,
        cash_sales=_sum("cash"),
        qris_sales=_sum("qris"),
        platform_sales=_sum("platform_balance"),
        total_expenses=sum(e.amount for e in expenses),
        transaction_count=len(transactions),
        expense_count=len(expenses),
    )


def close_session(session, transactions, expenses, counted_cash: int, *, now=None) -> CashierSession:
    """
    Close a session and record the cash variance.

    Args:
        session: the active session to close
        transactions: sales recorded during the session
        expenses: drawer expenses recorded during the session
        counted_cash: cash physically counted in the drawer

    Raises:
        DrawerError: the session is not active
        ValidationError: counted_cash is negative
    """
    if session.status != "active":
        raise DrawerError("Session already closed", details={"session_id": session.id})
    if counted_cash is None or counted_cash < 0:
        raise ValidationError("counted_cash must be >= 0")

    expected = summarize(session, transactions, expenses).calculated_cash

    session.status = "closed"
    session.end_time = now or utcnow()
    session.final_cash = counted_cash
    session.calculated_cash = expected
    session.difference = counted_cash - expected
    return session


# =============================================================================
# STORAGE
# =============================================================================

def get_active_session(user_id: int, *, lock: bool = False) -> CashierSession | None:
    """
    The user's open session, if any.

    Writers that link to the session (checkout, expenses) pass lock=True so
    the row stays locked until they commit; close_drawer takes the same lock,
    so a sale cannot attach to a session that closes underneath it.
    """
    q = db.session.query(CashierSession).filter_by(user_id=user_id, status="active")
    if lock:
        q = lock_for_update(q)
    return q.first()


def session_transactions(session_id: int) -> list[Transaction]:
    return (
        db.session.query(Transaction)
        .filter_by(cashier_session_id=session_id)
        .order_by(Transaction.created_at, Transaction.id)
        .all()
    )


def session_expenses(session_id: int) -> list[Expense]:
    return (
        db.session.query(Expense)
        .filter_by(cashier_session_id=session_id)
        .order_by(Expense.occurred_at, Expense.id)
        .all()
    )


def open_drawer(user, outlet_id: int, initial_cash) -> CashierSession:
    """
    Open and persist a session for the user.

    Raises DrawerError when the user already has an active session, whether
    found up front or rejected by the unique index on insert.
    """
    outlet = db.session.get(Outlet, coerce_int("outlet_id", outlet_id))
    if outlet is None:
        raise ValidationError("Outlet not found")
    initial_cash = coerce_int("initial_cash", initial_cash)

    existing = get_active_session(user.id)
    if existing is not None:
        raise DrawerError(
            "You already have an open cashier session",
            details={"session_id": existing.id, "outlet_id": existing.outlet_id},
        )

    session = open_session(user, outlet, initial_cash)
    db.session.add(session)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DrawerError("You already have an open cashier session")

    current_app.logger.info(
        "Cashier session %s opened by %s at %s with %s",
        session.id, user.username, outlet.name, initial_cash,
    )
    return session


def current_summary(user_id: int) -> dict | None:
    """Live view of the user's active session, or None when the drawer is closed."""
    session = get_active_session(user_id)
    if session is None:
        return None
    summary = summarize(session, session_transactions(session.id), session_expenses(session.id))
    return {"session": session.to_dict(), "summary": summary.to_dict(), "as_of": to_utc_z(utcnow())}


def close_drawer(session_id: int, counted_cash, *, actor, notes: str | None = None) -> CashierSession:
    """
    Count and close a session.

    Cashiers may only close their own session; owners may close any.
    Retried on optimistic-lock conflicts with a concurrent close.
    """
    counted_cash = coerce_int("counted_cash", counted_cash)

    def _close():
        session = lock_for_update(db.session.query(CashierSession).filter_by(id=session_id)).first()
        if session is None:
            raise ValidationError("Session not found")
        if actor.role != "owner" and session.user_id != actor.id:
            raise DrawerError("Only the session owner can close this session")

        close_session(
            session,
            session_transactions(session.id),
            session_expenses(session.id),
            counted_cash,
        )
        session.notes = (notes or "").strip() or None
        db.session.commit()
        return session

    session = run_with_retry(_close)
    current_app.logger.info(
        "Cashier session %s closed: expected=%s counted=%s difference=%s",
        session.id, session.calculated_cash, session.final_cash, session.difference,
    )
    return session


def list_sessions(*, outlet_id: int | None = None, user_id: int | None = None, limit: int = 50) -> list[CashierSession]:
    q = db.session.query(CashierSession)
    if outlet_id is not None:
        q = q.filter_by(outlet_id=outlet_id)
    if user_id is not None:
        q = q.filter_by(user_id=user_id)
    return q.order_by(CashierSession.start_time.desc(), CashierSession.id.desc()).limit(limit).all()


def get_session(session_id: int) -> CashierSession | None:
    return db.session.get(CashierSession, session_id)

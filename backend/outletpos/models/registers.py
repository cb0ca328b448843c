from __future__ import annotations

from ..extensions import db
from outletpos.time_utils import to_utc_z


class CashierSession(db.Model):
    """
    Cash drawer shift for one cashier at one outlet.

    LIFECYCLE:
    - active: drawer open, sales and expenses link to it via cashier_session_id
    - closed: counted, reconciled, never reopened or deleted

    At most one active session per user; the partial unique index below
    enforces it at insert time.
    """
    __tablename__ = "cashier_sessions"
    __table_args__ = (
        db.Index(
            "uq_cashier_sessions_user_active",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    user_name = db.Column(db.String(128), nullable=False)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    outlet_name = db.Column(db.String(128), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="active", index=True)  # active, closed

    # Cash tracking (whole currency units)
    initial_cash = db.Column(db.Integer, nullable=False, default=0)
    final_cash = db.Column(db.Integer, nullable=True)       # counted at close
    calculated_cash = db.Column(db.Integer, nullable=True)  # initial + cash sales - expenses
    difference = db.Column(db.Integer, nullable=True)       # final - calculated

    start_time = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("cashier_sessions", lazy=True))
    outlet = db.relationship("Outlet", backref=db.backref("cashier_sessions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "outlet_id": self.outlet_id,
            "outlet_name": self.outlet_name,
            "status": self.status,
            "initial_cash": self.initial_cash,
            "final_cash": self.final_cash,
            "calculated_cash": self.calculated_cash,
            "difference": self.difference,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time) if self.end_time else None,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class Expense(db.Model):
    """
    Cash paid out of the drawer (supplies, petty cash).

    Expenses recorded during an active session reduce that session's
    expected cash at close.
    """
    __tablename__ = "expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(64), nullable=False, default="Umum")

    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    outlet_name = db.Column(db.String(128), nullable=False)
    cashier_session_id = db.Column(db.Integer, db.ForeignKey("cashier_sessions.id"), nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    cashier_session = db.relationship("CashierSession", backref=db.backref("expenses", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount": self.amount,
            "category": self.category,
            "outlet_id": self.outlet_id,
            "outlet_name": self.outlet_name,
            "cashier_session_id": self.cashier_session_id,
            "created_by_user_id": self.created_by_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }

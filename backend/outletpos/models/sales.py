from __future__ import annotations

from ..extensions import db
from outletpos.time_utils import to_utc_z


class Transaction(db.Model):
    """
    Finalized sale.

    Immutable once recorded, except for the customer backfill performed after
    a digital receipt is sent (customer_id / customer_name).

    transaction_number is human readable: YYMMDD-<OUTLET CODE>-<NNN>.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_number", name="uq_transactions_number"),
        db.Index("ix_transactions_outlet_created", "outlet_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_number = db.Column(db.String(32), nullable=False)

    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    outlet_name = db.Column(db.String(128), nullable=False)

    order_channel = db.Column(db.String(32), nullable=False, default="store")
    payment_method = db.Column(db.String(32), nullable=False)  # cash, qris, platform_balance

    # Amounts in whole currency units
    subtotal = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    discount_rule_id = db.Column(db.Integer, db.ForeignKey("discount_rules.id"), nullable=True)
    discount_name = db.Column(db.String(255), nullable=True)
    total = db.Column(db.Integer, nullable=False)

    cash_received = db.Column(db.Integer, nullable=True)
    change = db.Column(db.Integer, nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(128), nullable=True)
    is_member = db.Column(db.Boolean, nullable=False, default=False)

    cashier_session_id = db.Column(db.Integer, db.ForeignKey("cashier_sessions.id"), nullable=True, index=True)
    cashier_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "TransactionLine",
        back_populates="transaction",
        order_by="TransactionLine.id",
        cascade="all, delete-orphan",
    )
    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))
    cashier_session = db.relationship("CashierSession", backref=db.backref("transactions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "outlet_id": self.outlet_id,
            "outlet_name": self.outlet_name,
            "order_channel": self.order_channel,
            "payment_method": self.payment_method,
            "subtotal": self.subtotal,
            "discount": {
                "rule_id": self.discount_rule_id,
                "name": self.discount_name,
                "amount": self.discount_amount,
            } if self.discount_amount else None,
            "total": self.total,
            "cash_received": self.cash_received,
            "change": self.change,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "is_member": self.is_member,
            "cashier_session_id": self.cashier_session_id,
            "cashier_user_id": self.cashier_user_id,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class TransactionLine(db.Model):
    """Line item snapshot (names and prices as they were at the time of sale)."""
    __tablename__ = "transaction_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False)

    product_name = db.Column(db.String(255), nullable=False)
    variant_name = db.Column(db.String(128), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)
    unit_cogs = db.Column(db.Integer, nullable=False, default=0)

    transaction = db.relationship("Transaction", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "variant_name": self.variant_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
            "unit_cogs": self.unit_cogs,
        }

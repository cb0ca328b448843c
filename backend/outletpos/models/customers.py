from __future__ import annotations

from ..extensions import db
from outletpos.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data, keyed by phone number.

    Customers are created (or found) when a receipt is sent after the sale,
    so their aggregates are updated incrementally as transactions get linked.
    A customer with a member_id is a loyalty member; the member code is what
    the cashier scans to unlock member-only discounts.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("phone_number", name="uq_customers_phone"),
        db.UniqueConstraint("member_id", name="uq_customers_member_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    phone_number = db.Column(db.String(32), nullable=False)
    member_id = db.Column(db.String(64), nullable=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Denormalized aggregates (updated when transactions are linked)
    total_spent = db.Column(db.Integer, nullable=False, default=0)
    first_transaction_date = db.Column(db.DateTime(timezone=True), nullable=True)
    last_transaction_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_member(self) -> bool:
        return bool(self.member_id) and bool(self.is_active)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone_number": self.phone_number,
            "member_id": self.member_id,
            "is_member": self.is_member,
            "outlet_id": self.outlet_id,
            "total_spent": self.total_spent,
            "first_transaction_date": to_utc_z(self.first_transaction_date),
            "last_transaction_date": to_utc_z(self.last_transaction_date),
            "transaction_ids": [t.id for t in self.transactions],
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }

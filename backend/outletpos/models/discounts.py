from __future__ import annotations

import json

from ..extensions import db
from outletpos.time_utils import to_utc_z


class DiscountRule(db.Model):
    """
    Owner-managed discount rule evaluated at checkout.

    discount_type: PERCENTAGE (discount_value is a whole percent) or
    FIXED_AMOUNT (discount_value is currency units).
    applies_to: ALL, MEMBER_ONLY, NON_MEMBER_ONLY.
    scope: ENTIRE_ORDER, SPECIFIC_PRODUCT (product_id), SPECIFIC_CATEGORY (category_id).
    bundled_product_ids: JSON array; every listed product must be in the cart.

    Only one rule ever applies to a transaction (best-of, not stacking).
    """
    __tablename__ = "discount_rules"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    valid_from = db.Column(db.DateTime(timezone=True), nullable=False)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)

    applies_to = db.Column(db.String(32), nullable=False, default="ALL")
    discount_type = db.Column(db.String(32), nullable=False)
    discount_value = db.Column(db.Integer, nullable=False)
    min_purchase = db.Column(db.Integer, nullable=True)
    max_discount_amount = db.Column(db.Integer, nullable=True)

    scope = db.Column(db.String(32), nullable=False, default="ENTIRE_ORDER")
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    bundled_product_ids = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def bundle_ids(self) -> list[int]:
        if not self.bundled_product_ids:
            return []
        try:
            raw = json.loads(self.bundled_product_ids)
        except ValueError:
            return []
        return [int(pid) for pid in raw if str(pid).lstrip("-").isdigit()]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "valid_from": to_utc_z(self.valid_from),
            "valid_until": to_utc_z(self.valid_until) if self.valid_until else None,
            "applies_to": self.applies_to,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "min_purchase": self.min_purchase,
            "max_discount_amount": self.max_discount_amount,
            "scope": self.scope,
            "product_id": self.product_id,
            "category_id": self.category_id,
            "bundled_product_ids": self.bundle_ids(),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }

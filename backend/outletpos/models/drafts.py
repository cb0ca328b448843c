from __future__ import annotations

import json

from ..extensions import db
from outletpos.time_utils import to_utc_z


class DraftCart(db.Model):
    """
    A cashier's unfinished cart, kept server-side so it survives reloads.

    Drafts expire after DRAFT_CART_TTL_HOURS and are reaped by the
    `drafts reap` CLI command.
    """
    __tablename__ = "draft_carts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True)
    order_channel = db.Column(db.String(32), nullable=False, default="store")
    items = db.Column(db.Text, nullable=False, default="[]")  # JSON [{variant_id, quantity}]

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def item_list(self) -> list[dict]:
        return json.loads(self.items or "[]")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "outlet_id": self.outlet_id,
            "order_channel": self.order_channel,
            "items": self.item_list(),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

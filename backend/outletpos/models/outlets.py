from __future__ import annotations

from ..extensions import db
from outletpos.time_utils import to_utc_z


class Outlet(db.Model):
    """
    A physical selling location.

    The outlet name doubles as the source of the short code embedded in
    transaction numbers (see transaction_service.outlet_code).
    """
    __tablename__ = "outlets"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    address = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        from ..services.transaction_service import outlet_code

        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "code": outlet_code(self.name),
            "created_at": to_utc_z(self.created_at),
        }

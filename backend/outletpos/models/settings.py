from __future__ import annotations

from ..extensions import db


class PlatformSetting(db.Model):
    """Markup percentage applied to base prices for one delivery channel."""
    __tablename__ = "platform_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    channel = db.Column(db.String(32), nullable=False, unique=True)
    markup = db.Column(db.Float, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {"channel": self.channel, "markup": self.markup}

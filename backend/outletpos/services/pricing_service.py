# Overview: Channel-aware sell prices and delivery-platform markup settings.

"""
Channel Pricing

Delivery platforms take a commission on every order, so non-store channels
sell at the base price plus a per-channel markup. Marked-up prices are
rounded to the nearest multiple of PRICE_ROUNDING_STEP (half up) so sticker
prices stay clean. The in-store channel never carries a markup.
"""

from __future__ import annotations

import math
from decimal import Decimal, ROUND_HALF_UP

from ..extensions import db
from ..models import PlatformSetting
from ..validation import ValidationError

IN_STORE_CHANNEL = "store"
DEFAULT_CHANNELS = ["store", "GoFood", "GrabFood", "ShopeeFood", "others"]
DEFAULT_ROUNDING_STEP = 500
# Upper bound for a channel markup, in percent. Keeps marked-up prices inside the integer columns.
MAX_MARKUP_PERCENT = 1000

PAYMENT_METHODS = ("cash", "qris", "platform_balance")
_STORE_PAYMENT_METHODS = ("cash", "qris")
_PLATFORM_PAYMENT_METHODS = ("cash", "platform_balance")


def resolve_price(variant, channel: str, markup_percent=0, step: int = DEFAULT_ROUNDING_STEP) -> int:
    """
    Sell price of a variant on a channel.

    store -> variant.price unchanged.
    others -> round_half_up(price * (1 + markup/100) / step) * step, never below 0.
    """
    base = variant.price
    if channel == IN_STORE_CHANNEL:
        return base

    markup = Decimal(str(markup_percent or 0))
    if not markup.is_finite() or markup < 0:
        markup = Decimal(0)
    marked_up = Decimal(base) * (Decimal(100) + markup) / Decimal(100)
    steps = (marked_up / Decimal(step)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return max(0, int(steps) * step)


def allowed_payment_methods(channel: str) -> tuple[str, ...]:
    """QRIS is only offered at the counter; platform balance only on delivery channels."""
    if channel == IN_STORE_CHANNEL:
        return _STORE_PAYMENT_METHODS
    return _PLATFORM_PAYMENT_METHODS


def get_platform_settings() -> dict[str, dict]:
    settings = db.session.query(PlatformSetting).order_by(PlatformSetting.channel).all()
    return {s.channel: {"markup": s.markup} for s in settings}


def get_channel_markup(channel: str) -> float:
    """Configured markup for a channel; unconfigured channels have none."""
    if channel == IN_STORE_CHANNEL:
        return 0
    setting = db.session.query(PlatformSetting).filter_by(channel=channel).first()
    return setting.markup if setting else 0


def get_order_channels() -> list[str]:
    configured = [s.channel for s in db.session.query(PlatformSetting).order_by(PlatformSetting.id).all()]
    channels: list[str] = []
    for channel in DEFAULT_CHANNELS + configured:
        if channel not in channels:
            channels.append(channel)
    return channels


def validate_channel(channel: str | None) -> str:
    if not channel:
        return IN_STORE_CHANNEL
    if channel not in get_order_channels():
        raise ValidationError(f"Unknown order channel: {channel}")
    return channel


def update_platform_settings(new_settings: dict) -> dict[str, dict]:
    """
    Upsert markups: {"GoFood": {"markup": 20}, ...}.

    The store channel cannot carry a markup.
    """
    if not isinstance(new_settings, dict) or not new_settings:
        raise ValidationError("settings must be a non-empty object")

    for channel, setting in new_settings.items():
        if channel == IN_STORE_CHANNEL:
            raise ValidationError("The store channel cannot have a markup")
        if not isinstance(setting, dict) or "markup" not in setting:
            raise ValidationError(f"markup required for channel {channel}")
        markup = setting["markup"]
        if isinstance(markup, bool) or not isinstance(markup, (int, float)):
            raise ValidationError(f"markup for {channel} must be a number")
        if isinstance(markup, float) and not math.isfinite(markup):
            raise ValidationError(f"markup for {channel} must be a finite number")
        if markup < 0 or markup > MAX_MARKUP_PERCENT:
            raise ValidationError(f"markup for {channel} must be between 0 and {MAX_MARKUP_PERCENT}")

        row = db.session.query(PlatformSetting).filter_by(channel=channel).first()
        if row:
            row.markup = markup
        else:
            db.session.add(PlatformSetting(channel=channel, markup=markup))

    db.session.commit()
    return get_platform_settings()

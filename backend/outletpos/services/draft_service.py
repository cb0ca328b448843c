# Overview: Server-side draft carts with a fixed time-to-live.

from __future__ import annotations

import json
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import DraftCart
from ..validation import coerce_int
from outletpos.time_utils import utcnow
from .cart_service import merge_items
from .pricing_service import validate_channel


def _ttl() -> timedelta:
    return timedelta(hours=current_app.config.get("DRAFT_CART_TTL_HOURS", 24))


def save_draft(user_id: int, items, *, outlet_id=None, channel: str | None = None) -> DraftCart:
    """
    Replace the user's draft with the given cart.

    A user keeps a single draft. Saving refreshes updated_at but keeps the
    original created_at, so the draft still expires TTL after it was started.
    """
    merged = merge_items(items)
    channel = validate_channel(channel)
    outlet_id = coerce_int("outlet_id", outlet_id) if outlet_id is not None else None
    now = utcnow()

    draft = get_current_draft(user_id, now=now)
    if draft is None:
        discard_drafts(user_id, commit=False)
        draft = DraftCart(user_id=user_id, created_at=now)
        db.session.add(draft)

    draft.outlet_id = outlet_id
    draft.order_channel = channel
    draft.items = json.dumps([{"variant_id": vid, "quantity": qty} for vid, qty in merged])
    draft.updated_at = now
    db.session.commit()
    return draft


def get_current_draft(user_id: int, *, now: datetime | None = None) -> DraftCart | None:
    """Newest draft that has not expired."""
    cutoff = (now or utcnow()) - _ttl()
    return (
        db.session.query(DraftCart)
        .filter(DraftCart.user_id == user_id, DraftCart.created_at > cutoff)
        .order_by(DraftCart.created_at.desc(), DraftCart.id.desc())
        .first()
    )


def discard_drafts(user_id: int, *, commit: bool = True) -> int:
    count = db.session.query(DraftCart).filter_by(user_id=user_id).delete(synchronize_session="fetch")
    if commit:
        db.session.commit()
    return count


def reap_expired(now: datetime | None = None) -> int:
    """Delete drafts older than the TTL. Returns how many were removed."""
    cutoff = (now or utcnow()) - _ttl()
    count = db.session.query(DraftCart).filter(DraftCart.created_at <= cutoff).delete(synchronize_session="fetch")
    db.session.commit()
    if count:
        current_app.logger.info("Reaped %d expired draft carts", count)
    return count

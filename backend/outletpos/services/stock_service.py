# Overview: Stock guard for checkout; availability checks and conditional decrements.

"""
Stock Guard

Only variants with track_stock=True are limited; untracked variants are
treated as unlimited.

INVARIANT: a tracked variant's stock never goes below zero. The decrement is
a conditional UPDATE (stock = stock - q WHERE stock >= q), so two checkouts
racing for the last units cannot both succeed even if both passed the
availability check. The losing checkout rolls back as a whole.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import update

from ..extensions import db
from ..models import ProductVariant
from ..validation import BusinessRuleError
from .concurrency import lock_for_update


class InsufficientStockError(BusinessRuleError):
    """Raised when a tracked variant cannot cover the requested quantity."""


@dataclass(frozen=True)
class AvailabilityResult:
    ok: bool
    failing_line: object | None = None
    available: int | None = None

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True}
        line = self.failing_line
        return {
            "ok": False,
            "product_id": line.product_id,
            "variant_id": line.variant_id,
            "requested_quantity": line.quantity,
            "available": self.available,
            "message": insufficient_stock_message(line),
        }


def insufficient_stock_message(line) -> str:
    return f"Insufficient stock for {line.product.name} ({line.variant.name})"


def check_availability(cart, stock_snapshot: dict[int, int]) -> AvailabilityResult:
    """
    Verify every tracked line fits in the known stock.

    Quantities for the same variant are accumulated across lines. Stops at the
    first line that does not fit. Variants missing from the snapshot count as
    having no stock.
    """
    required: dict[int, int] = {}
    for line in cart:
        if not line.variant.track_stock:
            continue
        required[line.variant_id] = required.get(line.variant_id, 0) + line.quantity
        available = stock_snapshot.get(line.variant_id, 0)
        if required[line.variant_id] > available:
            return AvailabilityResult(ok=False, failing_line=line, available=available)
    return AvailabilityResult(ok=True)


def fetch_stock_snapshot(variant_ids, *, lock: bool = False) -> dict[int, int]:
    """Current stock per variant id."""
    ids = list(variant_ids)
    if not ids:
        return {}
    q = db.session.query(ProductVariant).filter(ProductVariant.id.in_(ids))
    if lock:
        q = lock_for_update(q)
    return {v.id: v.stock for v in q.all()}


def decrement_variant_stock(variant_id: int, quantity: int) -> bool:
    """
    Conditionally take quantity units from a tracked variant.

    Returns False (and changes nothing) when the stock cannot cover it.
    Does not commit.
    """
    stmt = (
        update(ProductVariant)
        .where(
            ProductVariant.id == variant_id,
            ProductVariant.track_stock.is_(True),
            ProductVariant.stock >= quantity,
        )
        .values(stock=ProductVariant.stock - quantity)
        .execution_options(synchronize_session="fetch")
    )
    result = db.session.execute(stmt)
    return result.rowcount == 1


def commit_decrement(cart, decrement=decrement_variant_stock) -> None:
    """
    Decrement stock for every tracked line.

    Must run after check_availability passed and inside the same DB
    transaction that records the sale. A refused decrement means another sale
    took the stock in between; the caller rolls back.
    """
    for line in cart:
        if not line.variant.track_stock:
            continue
        if not decrement(line.variant_id, line.quantity):
            raise InsufficientStockError(
                insufficient_stock_message(line),
                details={
                    "product_id": line.product_id,
                    "variant_id": line.variant_id,
                    "requested_quantity": line.quantity,
                },
            )

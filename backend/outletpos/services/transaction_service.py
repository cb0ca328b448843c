# Overview: Transaction assembly, numbering, and the checkout unit of work.

"""
Transaction Assembler and Checkout

WHY: A sale touches three things that must agree: the priced cart, the
stock counts, and the recorded transaction. Checkout performs the stock
decrement and the transaction insert in ONE database transaction, so a
failure anywhere leaves neither behind.

NUMBERING: YYMMDD-<OUTLET CODE>-<NNN>, where NNN is the outlet's sale count
for that local business day plus one. Concurrent checkouts can compute the
same number; the unique constraint rejects the loser, which rolls back and
retries with a fresh read (bounded by TRANSACTION_NUMBER_ATTEMPTS).

FLOW (per attempt):
1. Build and price the cart for the channel
2. Resolve member identity and the discount (best-of, or a pinned rule)
3. Check availability against a locked stock snapshot
4. Assemble the transaction
5. Conditionally decrement stock, insert, flush, commit
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DiscountRule, Outlet, Transaction, TransactionLine
from ..validation import BusinessRuleError, ContentionError, ValidationError, coerce_int
from outletpos.time_utils import business_date, business_day_bounds, utcnow
from .cart_service import CartLine, build_cart, cart_subtotal
from .discount_service import (
    AppliedDiscount,
    discount_amount,
    fetch_active_discount_rules,
    rule_ineligibility,
    select_best_discount,
)
from .pricing_service import PAYMENT_METHODS, allowed_payment_methods, get_channel_markup, validate_channel
from .stock_service import (
    AvailabilityResult,
    InsufficientStockError,
    check_availability,
    commit_decrement,
    fetch_stock_snapshot,
    insufficient_stock_message,
)


class CheckoutError(BusinessRuleError):
    """Raised when a sale cannot be recorded for a business reason."""


# =============================================================================
# NUMBERING
# =============================================================================

def outlet_code(outlet_name: str) -> str:
    """
    Short outlet code: first letter of each word, uppercased, at most 4 chars.

    "Maujajan Kopi Senopati" -> "MKS"
    """
    words = re.findall(r"[A-Za-z0-9]+", outlet_name or "")
    code = "".join(word[0] for word in words).upper()[:4]
    return code or "OUT"


def format_transaction_number(day: date, code: str, sequence: int) -> str:
    return f"{day:%y%m%d}-{code}-{sequence:03d}"


def _sequence_of(transaction_number: str) -> int:
    tail = (transaction_number or "").rsplit("-", 1)[-1]
    return int(tail) if tail.isdigit() else 0


def next_transaction_sequence(outlet_id: int, day: date, utc_offset_hours: int = 0) -> int:
    """
    Next daily sequence for an outlet: existing sales that business day + 1.

    The highest issued suffix is honored as well, so a gap never produces a
    number that is already taken.
    """
    start, end = business_day_bounds(day, utc_offset_hours)
    numbers = [
        row[0]
        for row in db.session.query(Transaction.transaction_number).filter(
            Transaction.outlet_id == outlet_id,
            Transaction.created_at >= start,
            Transaction.created_at < end,
        ).all()
    ]
    highest = max((_sequence_of(n) for n in numbers), default=0)
    return max(len(numbers), highest) + 1


def allocate_transaction_number(outlet: Outlet, occurred_at: datetime) -> str:
    offset = current_app.config.get("BUSINESS_UTC_OFFSET_HOURS", 0)
    day = business_date(occurred_at, offset)
    sequence = next_transaction_sequence(outlet.id, day, offset)
    return format_transaction_number(day, outlet_code(outlet.name), sequence)


# =============================================================================
# ASSEMBLY (pure)
# =============================================================================

def assemble(
    cart: list[CartLine],
    channel: str,
    payment_method: str,
    applied_discount: AppliedDiscount | None,
    tender: int | None,
    member,
    outlet,
    session_id: int | None,
    *,
    transaction_number: str | None = None,
    cashier_user_id: int | None = None,
    occurred_at: datetime | None = None,
) -> Transaction:
    """
    Build an unsaved Transaction from a priced cart.

    total = subtotal - discount, never below 0. For cash payments the tender
    must cover the total; change = tender - total.

    Raises ValidationError on an empty cart, a bad quantity, an unknown or
    channel-incompatible payment method, or insufficient cash tendered.
    """
    if not cart:
        raise ValidationError("Cart is empty")
    for line in cart:
        if line.quantity < 1:
            raise ValidationError("quantity must be at least 1")

    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
    if payment_method not in allowed_payment_methods(channel):
        raise ValidationError(f"{payment_method} is not available for the {channel} channel")

    subtotal = cart_subtotal(cart)
    discount = applied_discount.amount if applied_discount else 0
    if discount < 0:
        raise ValidationError("discount amount cannot be negative")
    total = max(0, subtotal - discount)

    cash_received = None
    change = None
    if payment_method == "cash":
        if tender is None:
            raise ValidationError("cash_received is required for cash payments")
        if tender < total:
            raise ValidationError("Cash received is less than the total")
        cash_received = tender
        change = tender - total

    transaction = Transaction(
        transaction_number=transaction_number,
        outlet_id=outlet.id,
        outlet_name=outlet.name,
        order_channel=channel,
        payment_method=payment_method,
        subtotal=subtotal,
        discount_amount=discount,
        discount_rule_id=applied_discount.rule_id if applied_discount else None,
        discount_name=applied_discount.name if applied_discount else None,
        total=total,
        cash_received=cash_received,
        change=change,
        customer_id=member.id if member is not None else None,
        customer_name=member.name if member is not None else None,
        is_member=bool(member is not None and member.is_member),
        cashier_session_id=session_id,
        cashier_user_id=cashier_user_id,
        created_at=occurred_at or utcnow(),
    )
    transaction.lines = [
        TransactionLine(
            product_id=line.product_id,
            variant_id=line.variant_id,
            product_name=line.product.name,
            variant_name=line.variant.name,
            quantity=line.quantity,
            unit_price=line.price,
            line_total=line.line_total,
            unit_cogs=line.variant.cogs or 0,
        )
        for line in cart
    ]
    return transaction


# =============================================================================
# QUOTE
# =============================================================================

@dataclass
class CheckoutQuote:
    """Priced cart with its discount and stock verdict; nothing persisted."""
    outlet: Outlet
    channel: str
    cart: list[CartLine]
    member: object | None
    discount: AppliedDiscount | None
    availability: AvailabilityResult

    @property
    def subtotal(self) -> int:
        return cart_subtotal(self.cart)

    @property
    def total(self) -> int:
        return max(0, self.subtotal - (self.discount.amount if self.discount else 0))

    def to_dict(self) -> dict:
        return {
            "outlet_id": self.outlet.id,
            "order_channel": self.channel,
            "lines": [line.to_dict() for line in self.cart],
            "subtotal": self.subtotal,
            "discount": self.discount.to_dict() if self.discount else None,
            "total": self.total,
            "is_member": bool(self.member is not None and self.member.is_member),
            "customer_id": self.member.id if self.member is not None else None,
            "payment_methods": list(allowed_payment_methods(self.channel)),
            "availability": self.availability.to_dict(),
        }


def _pinned_discount(rule_id, cart, is_member: bool, subtotal: int, now: datetime) -> AppliedDiscount:
    rule = db.session.get(DiscountRule, coerce_int("discount_rule_id", rule_id))
    if rule is None:
        raise ValidationError("Discount not found")

    reason = rule_ineligibility(rule, cart, is_member, subtotal, now)
    if reason:
        raise CheckoutError(reason, details={"discount_rule_id": rule.id})

    amount = discount_amount(rule, cart, subtotal)
    if amount <= 0:
        raise CheckoutError(
            "This discount does not apply to anything in the cart",
            details={"discount_rule_id": rule.id},
        )
    return AppliedDiscount(rule_id=rule.id, name=rule.name, amount=amount)


def build_quote(
    *,
    outlet_id: int,
    items,
    channel: str | None = None,
    member_id: str | None = None,
    discount_rule_id: int | None = None,
    now: datetime | None = None,
    lock_stock: bool = False,
) -> CheckoutQuote:
    from .customer_service import find_member

    now = now or utcnow()
    channel = validate_channel(channel)

    outlet = db.session.get(Outlet, coerce_int("outlet_id", outlet_id))
    if outlet is None:
        raise ValidationError("Outlet not found")

    cart = build_cart(items, outlet_id=outlet.id, channel=channel, markup_percent=get_channel_markup(channel))
    member = find_member(member_id) if member_id else None
    is_member = bool(member is not None and member.is_member)
    subtotal = cart_subtotal(cart)

    if discount_rule_id is not None:
        discount = _pinned_discount(discount_rule_id, cart, is_member, subtotal, now)
    else:
        discount = select_best_discount(cart, is_member, fetch_active_discount_rules(), subtotal, now)

    snapshot = fetch_stock_snapshot(
        {line.variant_id for line in cart if line.variant.track_stock}, lock=lock_stock
    )
    availability = check_availability(cart, snapshot)

    return CheckoutQuote(
        outlet=outlet,
        channel=channel,
        cart=cart,
        member=member,
        discount=discount,
        availability=availability,
    )


# =============================================================================
# CHECKOUT
# =============================================================================

def _is_number_taken(transaction_number: str) -> bool:
    return db.session.query(Transaction.id).filter_by(transaction_number=transaction_number).first() is not None


def checkout(
    *,
    user,
    outlet_id: int,
    items,
    payment_method: str,
    channel: str | None = None,
    cash_received=None,
    member_id: str | None = None,
    discount_rule_id: int | None = None,
    now: datetime | None = None,
) -> Transaction:
    """
    Record a sale: price, discount, guard stock, decrement, persist.

    All-or-nothing. Requires an active cashier session for the user at the
    same outlet; the sale is linked to it for drawer reconciliation.

    Raises:
        ValidationError: malformed input, insufficient cash tendered
        CheckoutError / InsufficientStockError: business-rule rejection
        ContentionError: number/stock collisions persisted through every retry
    """
    from .customer_service import record_purchase
    from .drawer_service import get_active_session
    from .draft_service import discard_drafts

    tender = coerce_int("cash_received", cash_received) if cash_received is not None else None
    attempts = current_app.config.get("TRANSACTION_NUMBER_ATTEMPTS", 5)

    for attempt in range(1, attempts + 1):
        occurred_at = now or utcnow()

        session = get_active_session(user.id, lock=True)
        if session is None:
            raise CheckoutError("Open a cashier session before recording sales")

        quote = build_quote(
            outlet_id=outlet_id,
            items=items,
            channel=channel,
            member_id=member_id,
            discount_rule_id=discount_rule_id,
            now=occurred_at,
            lock_stock=True,
        )
        if session.outlet_id != quote.outlet.id:
            raise CheckoutError(
                "Your cashier session is open at another outlet",
                details={"session_outlet_id": session.outlet_id},
            )

        if not quote.availability.ok:
            line = quote.availability.failing_line
            raise InsufficientStockError(
                insufficient_stock_message(line),
                details=quote.availability.to_dict(),
            )

        transaction = assemble(
            quote.cart,
            quote.channel,
            payment_method,
            quote.discount,
            tender,
            quote.member,
            quote.outlet,
            session.id,
            transaction_number=allocate_transaction_number(quote.outlet, occurred_at),
            cashier_user_id=user.id,
            occurred_at=occurred_at,
        )

        try:
            commit_decrement(quote.cart)
            db.session.add(transaction)
            db.session.flush()
        except InsufficientStockError as exc:
            # Another sale took the stock after our snapshot; re-check from scratch.
            db.session.rollback()
            current_app.logger.warning(
                "Stock decrement refused for variant %s (attempt %d of %d)",
                exc.details.get("variant_id"), attempt, attempts,
            )
            continue
        except IntegrityError:
            number = transaction.transaction_number
            db.session.rollback()
            if not _is_number_taken(number):
                raise
            current_app.logger.warning(
                "Transaction number %s already taken (attempt %d of %d)", number, attempt, attempts
            )
            continue

        if quote.member is not None:
            record_purchase(quote.member, transaction)
        discard_drafts(user.id, commit=False)
        db.session.commit()
        current_app.logger.info(
            "Recorded sale %s at %s: total=%s via %s",
            transaction.transaction_number, transaction.outlet_name,
            transaction.total, transaction.payment_method,
        )
        return transaction

    raise ContentionError("The sale could not be recorded because of concurrent checkouts. Please try again.")


# =============================================================================
# QUERIES
# =============================================================================

def get_transaction(transaction_id: int) -> Transaction | None:
    return db.session.get(Transaction, transaction_id)


def list_transactions(
    *,
    outlet_id: int | None = None,
    cashier_session_id: int | None = None,
    limit: int = 100,
) -> list[Transaction]:
    q = db.session.query(Transaction)
    if outlet_id is not None:
        q = q.filter_by(outlet_id=outlet_id)
    if cashier_session_id is not None:
        q = q.filter_by(cashier_session_id=cashier_session_id)
    return q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()

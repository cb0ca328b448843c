# Overview: Discount rule evaluation (best single discount) and owner-side rule management.

"""
Discount Rule Evaluator

WHY: Outlets run several promotions at once (member deals, category promos,
bundle deals). A transaction gets exactly ONE discount: the rule that yields
the largest amount for the current cart. Discounts never stack.

EVALUATION (pure, no DB access):
1. Eligibility - a rule is skipped if any check fails:
   active, audience matches membership, cart total >= min_purchase,
   valid_from <= now <= valid_until, all bundled products in the cart.
2. Amount by scope:
   - ENTIRE_ORDER: percentage of the cart total, or the fixed amount
   - SPECIFIC_PRODUCT: percentage of / fixed amount off that product's lines
   - SPECIFIC_CATEGORY: percentage of / fixed amount off the category's lines
   Percentages are capped by max_discount_amount (when set and > 0).
   Every amount is clipped to the base it applies to, so no discount can
   exceed the cart total.
3. Best-of - the largest positive amount wins; ties keep the earlier rule.

Evaluation must be re-run whenever the cart, membership, or rule set changes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from ..extensions import db
from ..models import DiscountRule, Product, Category, Transaction
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_int,
    enforce_rules_discount,
    validate_payload,
)
from outletpos.time_utils import utcnow


@dataclass(frozen=True)
class AppliedDiscount:
    """The single discount applied to a transaction."""
    rule_id: int | None
    name: str
    amount: int

    def to_dict(self) -> dict:
        return {"rule_id": self.rule_id, "name": self.name, "amount": self.amount}


def _percent_of(base: int, percent) -> int:
    amount = Decimal(base) * Decimal(str(percent)) / Decimal(100)
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def rule_ineligibility(rule, cart, is_member: bool, cart_total: int, now: datetime) -> str | None:
    """
    Return why a rule cannot apply to this cart, or None when it is eligible.

    The messages are shown to the cashier when a specific promotion was
    requested and refused.
    """
    if not rule.is_active:
        return "This discount is not active"

    audience = rule.applies_to or "ALL"
    if audience == "MEMBER_ONLY" and not is_member:
        return "Members only: scan member QR first"
    if audience == "NON_MEMBER_ONLY" and is_member:
        return "This discount is not available to members"

    if rule.min_purchase and cart_total < rule.min_purchase:
        return f"Minimum purchase of {rule.min_purchase:,} not reached"

    if rule.valid_from is not None and now < rule.valid_from:
        return "This discount has not started yet"
    if rule.valid_until is not None and now > rule.valid_until:
        return "This discount has expired"

    bundle = rule.bundle_ids()
    if bundle:
        in_cart = {line.product_id for line in cart}
        missing = [pid for pid in bundle if pid not in in_cart]
        if missing:
            return "Bundle products missing from the cart"

    return None


def _scope_base(rule, cart, cart_total: int) -> int:
    if rule.scope == "ENTIRE_ORDER":
        return cart_total
    if rule.scope == "SPECIFIC_PRODUCT":
        if not rule.product_id:
            return 0
        return sum(line.line_total for line in cart if line.product_id == rule.product_id)
    if rule.scope == "SPECIFIC_CATEGORY":
        if not rule.category_id:
            return 0
        return sum(line.line_total for line in cart if line.category_id == rule.category_id)
    return 0


def discount_amount(rule, cart, cart_total: int) -> int:
    """Amount a rule would take off this cart (0 when it has nothing to apply to)."""
    base = _scope_base(rule, cart, cart_total)
    value = rule.discount_value or 0
    if base <= 0 or value <= 0:
        return 0

    if rule.discount_type == "PERCENTAGE":
        amount = _percent_of(base, value)
        if rule.max_discount_amount:
            amount = min(amount, rule.max_discount_amount)
    elif rule.discount_type == "FIXED_AMOUNT":
        amount = value
    else:
        return 0

    return max(0, min(amount, base))


def select_best_discount(
    cart,
    is_member: bool,
    rules,
    cart_total: int | None = None,
    now: datetime | None = None,
) -> AppliedDiscount | None:
    """
    Pick the single best discount for a cart.

    Args:
        cart: CartLine-like objects (product_id, category_id, line_total)
        is_member: a member identity was validated for this sale
        rules: candidate rules, in priority (iteration) order
        cart_total: order total used for min_purchase and ENTIRE_ORDER;
            defaults to the sum of line totals
        now: evaluation instant (UTC-naive); defaults to utcnow()
    """
    if cart_total is None:
        cart_total = sum(line.line_total for line in cart)
    if now is None:
        now = utcnow()

    best: AppliedDiscount | None = None
    for rule in rules:
        if rule_ineligibility(rule, cart, is_member, cart_total, now) is not None:
            continue
        amount = discount_amount(rule, cart, cart_total)
        if amount > 0 and (best is None or amount > best.amount):
            best = AppliedDiscount(rule_id=rule.id, name=rule.name, amount=amount)
    return best


# =============================================================================
# RULE STORAGE
# =============================================================================

DISCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "is_active", "valid_from", "valid_until", "applies_to",
        "discount_type", "discount_value", "min_purchase", "max_discount_amount",
        "scope", "product_id", "category_id",
    },
    required_on_create={"name", "discount_type", "discount_value", "valid_from"},
)

_RULE_FIELDS = sorted(DISCOUNT_POLICY.writable_fields)


def fetch_active_discount_rules() -> list[DiscountRule]:
    """Rules with the active flag set, oldest first (the evaluator checks dates)."""
    return db.session.query(DiscountRule).filter_by(is_active=True).order_by(DiscountRule.id).all()


def list_discount_rules(active_only: bool = False) -> list[DiscountRule]:
    q = db.session.query(DiscountRule)
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(DiscountRule.created_at.desc(), DiscountRule.id.desc()).all()


def _normalize_bundle(raw) -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValidationError("bundled_product_ids must be a list")
    ids = []
    for pid in raw:
        pid = coerce_int("bundled_product_ids", pid)
        if db.session.get(Product, pid) is None:
            raise ValidationError(f"Bundled product {pid} not found")
        if pid not in ids:
            ids.append(pid)
    return json.dumps(ids) if ids else None


def _check_targets(rule: dict) -> None:
    # Targets irrelevant to the scope are cleared so stale ids never linger.
    if rule.get("scope") != "SPECIFIC_PRODUCT":
        rule["product_id"] = None
    elif db.session.get(Product, rule["product_id"]) is None:
        raise ValidationError(f"Product {rule['product_id']} not found")

    if rule.get("scope") != "SPECIFIC_CATEGORY":
        rule["category_id"] = None
    elif db.session.get(Category, rule["category_id"]) is None:
        raise ValidationError(f"Category {rule['category_id']} not found")


def create_discount_rule(data: dict, user_id: int | None = None) -> DiscountRule:
    data = dict(data or {})
    bundle = _normalize_bundle(data.pop("bundled_product_ids", None))
    patch = validate_payload(model=DiscountRule, payload=data, policy=DISCOUNT_POLICY, partial=False)

    rule = {
        "is_active": True,
        "applies_to": "ALL",
        "scope": "ENTIRE_ORDER",
        "valid_until": None,
        "min_purchase": None,
        "max_discount_amount": None,
        "product_id": None,
        "category_id": None,
    }
    rule.update(patch)
    enforce_rules_discount(rule)
    _check_targets(rule)

    discount = DiscountRule(**rule, bundled_product_ids=bundle, created_by_user_id=user_id)
    db.session.add(discount)
    db.session.commit()
    return discount


def update_discount_rule(rule_id: int, data: dict) -> DiscountRule | None:
    discount = db.session.get(DiscountRule, rule_id)
    if discount is None:
        return None

    data = dict(data or {})
    bundle_given = "bundled_product_ids" in data
    bundle = _normalize_bundle(data.pop("bundled_product_ids", None))
    patch = validate_payload(model=DiscountRule, payload=data, policy=DISCOUNT_POLICY, partial=True)

    merged = {field: getattr(discount, field) for field in _RULE_FIELDS}
    merged.update(patch)
    enforce_rules_discount(merged)
    _check_targets(merged)

    for field in _RULE_FIELDS:
        setattr(discount, field, merged[field])
    if bundle_given:
        discount.bundled_product_ids = bundle

    db.session.commit()
    return discount


def delete_discount_rule(rule_id: int) -> str | None:
    """
    Delete a rule. Rules already applied to a sale are only deactivated,
    since transactions keep a reference to the rule that priced them.

    Returns "deleted", "deactivated", or None when the rule does not exist.
    """
    discount = db.session.get(DiscountRule, rule_id)
    if discount is None:
        return None

    used = db.session.query(Transaction.id).filter_by(discount_rule_id=rule_id).first()
    if used:
        discount.is_active = False
        db.session.commit()
        return "deactivated"

    db.session.delete(discount)
    db.session.commit()
    return "deleted"

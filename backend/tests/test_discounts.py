"""
Discount evaluator and rule management tests.

Verifies:
- Eligibility: audience, minimum purchase, validity window, bundles
- Amounts per scope with caps and clipping
- Best-of selection (single discount, ties keep the first rule)
- Rule create/update/delete validation
"""

import json
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from outletpos.models import DiscountRule
from outletpos.services import discount_service, transaction_service
from outletpos.services.discount_service import discount_amount, select_best_discount
from outletpos.validation import ValidationError

NOW = datetime(2026, 3, 10, 5, 0, 0)


def line(product_id, line_total, category_id=None):
    return SimpleNamespace(product_id=product_id, category_id=category_id, line_total=line_total)


def rule(rule_id=1, **kwargs):
    fields = {
        "id": rule_id,
        "name": f"Rule {rule_id}",
        "is_active": True,
        "valid_from": datetime(2020, 1, 1),
        "valid_until": None,
        "applies_to": "ALL",
        "discount_type": "PERCENTAGE",
        "discount_value": 10,
        "min_purchase": None,
        "max_discount_amount": None,
        "scope": "ENTIRE_ORDER",
        "product_id": None,
        "category_id": None,
        "bundled_product_ids": None,
    }
    fields.update(kwargs)
    return DiscountRule(**fields)


CART_100K = [line(1, 60000, category_id=10), line(2, 40000, category_id=20)]


# =============================================================================
# SCENARIOS
# =============================================================================


class TestScenarios:

    def test_percentage_capped(self):
        rules = [rule(discount_value=10, max_discount_amount=5000)]
        applied = select_best_discount(CART_100K, False, rules, now=NOW)
        assert applied.amount == 5000
        assert 100000 - applied.amount == 95000

    def test_min_purchase_not_reached(self):
        cart = [line(1, 40000)]
        rules = [rule(min_purchase=50000)]
        assert select_best_discount(cart, False, rules, now=NOW) is None

    def test_min_purchase_reached_exactly(self):
        cart = [line(1, 50000)]
        applied = select_best_discount(cart, False, [rule(min_purchase=50000)], now=NOW)
        assert applied.amount == 5000

    def test_member_only_skipped_for_non_member(self):
        rules = [rule(applies_to="MEMBER_ONLY", discount_value=90)]
        assert select_best_discount(CART_100K, False, rules, now=NOW) is None

    def test_member_only_applies_to_member(self):
        rules = [rule(applies_to="MEMBER_ONLY", discount_value=20)]
        assert select_best_discount(CART_100K, True, rules, now=NOW).amount == 20000

    def test_non_member_only_skipped_for_member(self):
        rules = [rule(applies_to="NON_MEMBER_ONLY")]
        assert select_best_discount(CART_100K, True, rules, now=NOW) is None


# =============================================================================
# ELIGIBILITY
# =============================================================================


class TestEligibility:

    def test_inactive_rule_skipped(self):
        assert select_best_discount(CART_100K, False, [rule(is_active=False)], now=NOW) is None

    def test_future_rule_skipped(self):
        rules = [rule(valid_from=NOW + timedelta(days=1))]
        assert select_best_discount(CART_100K, False, rules, now=NOW) is None

    def test_expired_rule_skipped(self):
        rules = [rule(valid_until=NOW - timedelta(seconds=1))]
        assert select_best_discount(CART_100K, False, rules, now=NOW) is None

    def test_rule_valid_until_now_applies(self):
        rules = [rule(valid_until=NOW)]
        assert select_best_discount(CART_100K, False, rules, now=NOW).amount == 10000

    def test_bundle_requires_every_product(self):
        bundle = rule(bundled_product_ids=json.dumps([1, 3]))
        assert select_best_discount(CART_100K, False, [bundle], now=NOW) is None

        cart = CART_100K + [line(3, 10000)]
        assert select_best_discount(cart, False, [bundle], now=NOW).amount == 11000

    def test_member_only_reason_message(self):
        reason = discount_service.rule_ineligibility(
            rule(applies_to="MEMBER_ONLY"), CART_100K, False, 100000, NOW
        )
        assert reason == "Members only: scan member QR first"


# =============================================================================
# AMOUNTS
# =============================================================================


class TestAmounts:

    def test_fixed_entire_order(self):
        r = rule(discount_type="FIXED_AMOUNT", discount_value=15000)
        assert discount_amount(r, CART_100K, 100000) == 15000

    def test_fixed_entire_order_clipped_to_total(self):
        r = rule(discount_type="FIXED_AMOUNT", discount_value=150000)
        assert discount_amount(r, CART_100K, 100000) == 100000

    def test_specific_product_percentage(self):
        r = rule(scope="SPECIFIC_PRODUCT", product_id=2, discount_value=50)
        assert discount_amount(r, CART_100K, 100000) == 20000

    def test_specific_product_sums_every_line(self):
        cart = [line(2, 10000), line(2, 5000), line(1, 30000)]
        r = rule(scope="SPECIFIC_PRODUCT", product_id=2, discount_value=10)
        assert discount_amount(r, cart, 45000) == 1500

    def test_specific_product_fixed_clipped_to_lines(self):
        r = rule(scope="SPECIFIC_PRODUCT", product_id=2, discount_type="FIXED_AMOUNT", discount_value=50000)
        assert discount_amount(r, CART_100K, 100000) == 40000

    def test_product_not_in_cart_gives_nothing(self):
        r = rule(scope="SPECIFIC_PRODUCT", product_id=99)
        assert discount_amount(r, CART_100K, 100000) == 0
        assert select_best_discount(CART_100K, False, [r], now=NOW) is None

    def test_specific_category(self):
        r = rule(scope="SPECIFIC_CATEGORY", category_id=10, discount_value=25)
        assert discount_amount(r, CART_100K, 100000) == 15000

    def test_category_percentage_capped(self):
        r = rule(scope="SPECIFIC_CATEGORY", category_id=10, discount_value=25, max_discount_amount=2000)
        assert discount_amount(r, CART_100K, 100000) == 2000

    def test_zero_cap_means_uncapped(self):
        r = rule(discount_value=10, max_discount_amount=0)
        assert discount_amount(r, CART_100K, 100000) == 10000

    def test_percentage_rounds_half_up(self):
        # 15% of 12,345 = 1,851.75 -> 1,852
        assert discount_amount(rule(discount_value=15), [line(1, 12345)], 12345) == 1852
        # 10% of 12,345 = 1,234.5 -> 1,235
        assert discount_amount(rule(discount_value=10), [line(1, 12345)], 12345) == 1235


# =============================================================================
# BEST-OF SELECTION
# =============================================================================


class TestBestOf:

    def test_largest_amount_wins(self):
        rules = [
            rule(1, discount_value=5),
            rule(2, discount_type="FIXED_AMOUNT", discount_value=12000),
            rule(3, scope="SPECIFIC_CATEGORY", category_id=10, discount_value=15),
        ]
        applied = select_best_discount(CART_100K, False, rules, now=NOW)
        assert applied.rule_id == 2
        assert applied.amount == 12000

    def test_discounts_never_stack(self):
        rules = [rule(1, discount_value=10), rule(2, discount_value=10)]
        assert select_best_discount(CART_100K, False, rules, now=NOW).amount == 10000

    def test_tie_keeps_first_rule(self):
        rules = [
            rule(7, discount_type="FIXED_AMOUNT", discount_value=10000),
            rule(3, discount_value=10),
        ]
        assert select_best_discount(CART_100K, False, rules, now=NOW).rule_id == 7

    def test_never_exceeds_full_entire_order_discount(self):
        full = discount_amount(rule(discount_value=100), CART_100K, 100000)
        rules = [
            rule(1, discount_type="FIXED_AMOUNT", discount_value=10_000_000),
            rule(2, scope="SPECIFIC_PRODUCT", product_id=1, discount_type="FIXED_AMOUNT", discount_value=10_000_000),
            rule(3, discount_value=100),
        ]
        assert select_best_discount(CART_100K, False, rules, now=NOW).amount <= full

    def test_idempotent(self):
        rules = [rule(1, discount_value=5), rule(2, scope="SPECIFIC_PRODUCT", product_id=1, discount_value=20)]
        first = select_best_discount(CART_100K, True, rules, now=NOW)
        second = select_best_discount(CART_100K, True, rules, now=NOW)
        assert first == second

    def test_empty_rules(self):
        assert select_best_discount(CART_100K, False, [], now=NOW) is None


# =============================================================================
# RULE MANAGEMENT
# =============================================================================


class TestRuleManagement:

    def _payload(self, **kwargs):
        data = {
            "name": "Promo Pagi",
            "discount_type": "PERCENTAGE",
            "discount_value": 10,
            "valid_from": "2026-01-01T00:00:00+07:00",
        }
        data.update(kwargs)
        return data

    def test_create_defaults(self, db_session, owner):
        created = discount_service.create_discount_rule(self._payload(), user_id=owner.id)
        assert created.scope == "ENTIRE_ORDER"
        assert created.applies_to == "ALL"
        assert created.is_active is True
        assert created.valid_from == datetime(2025, 12, 31, 17, 0, 0)
        assert created.created_by_user_id == owner.id

    def test_specific_product_requires_target(self, db_session):
        with pytest.raises(ValidationError):
            discount_service.create_discount_rule(self._payload(scope="SPECIFIC_PRODUCT"))

    def test_specific_category_target_must_exist(self, db_session):
        with pytest.raises(ValidationError):
            discount_service.create_discount_rule(self._payload(scope="SPECIFIC_CATEGORY", category_id=999))

    def test_percentage_over_100_rejected(self, db_session):
        with pytest.raises(ValidationError):
            discount_service.create_discount_rule(self._payload(discount_value=101))

    def test_short_name_rejected(self, db_session):
        with pytest.raises(ValidationError):
            discount_service.create_discount_rule(self._payload(name="ab"))

    def test_valid_until_must_follow_valid_from(self, db_session):
        with pytest.raises(ValidationError):
            discount_service.create_discount_rule(self._payload(valid_until="2025-12-01T00:00:00Z"))

    def test_unknown_field_rejected(self, db_session):
        with pytest.raises(ValidationError):
            discount_service.create_discount_rule(self._payload(version_id=9))

    def test_scope_change_clears_stale_target(self, db_session, make_product):
        product = make_product("Croissant", 20000)
        created = discount_service.create_discount_rule(
            self._payload(scope="SPECIFIC_PRODUCT", product_id=product.id)
        )
        updated = discount_service.update_discount_rule(created.id, {"scope": "ENTIRE_ORDER"})
        assert updated.product_id is None

    def test_bundle_products_must_exist(self, db_session):
        with pytest.raises(ValidationError):
            discount_service.create_discount_rule(self._payload(bundled_product_ids=[12345]))

    def test_delete_used_rule_deactivates(self, db_session, cashier, outlet, open_drawer, make_product):
        created = discount_service.create_discount_rule(self._payload())
        variant = make_product("Es Kopi Susu", 25000).variants[0]
        sale = transaction_service.checkout(
            user=cashier, outlet_id=outlet.id, items=[{"variant_id": variant.id, "quantity": 2}],
            payment_method="qris", now=NOW,
        )
        assert sale.discount_rule_id == created.id

        assert discount_service.delete_discount_rule(created.id) == "deactivated"
        kept = db_session.get(DiscountRule, created.id)
        assert kept is not None
        assert kept.is_active is False
        assert discount_service.list_discount_rules(active_only=True) == []

    def test_update_missing_rule(self, db_session):
        assert discount_service.update_discount_rule(404, {"name": "Nope"}) is None

    def test_delete_unused_rule(self, db_session):
        created = discount_service.create_discount_rule(self._payload())
        assert discount_service.delete_discount_rule(created.id) == "deleted"
        assert db_session.get(DiscountRule, created.id) is None
        assert discount_service.delete_discount_rule(created.id) is None

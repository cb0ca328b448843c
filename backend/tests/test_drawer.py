"""
Cash drawer session tests.

Verifies:
- expected = initial cash + cash sales - expenses
- Variance recorded at close (zero and shortfall)
- One active session per user
- Sessions close exactly once, by their cashier or an owner
- Expenses link to the active session at the same outlet
"""

from datetime import datetime
from types import SimpleNamespace

import pytest

from outletpos.models import CashierSession
from outletpos.services import drawer_service, expense_service, transaction_service
from outletpos.services.auth_service import create_user
from outletpos.services.drawer_service import DrawerError, close_session, open_session, summarize
from outletpos.validation import ValidationError

NOW = datetime(2026, 3, 10, 5, 0, 0)
PASSWORD = "Password123"


def sale(total, payment_method="cash"):
    return SimpleNamespace(total=total, payment_method=payment_method)


def expense(amount):
    return SimpleNamespace(amount=amount)


def active_session(initial_cash=500000):
    return SimpleNamespace(id=1, status="active", initial_cash=initial_cash)


# =============================================================================
# PURE LIFECYCLE
# =============================================================================


class TestPureLifecycle:

    def test_open_session(self):
        user = SimpleNamespace(id=3, name="Kasir Satu")
        outlet = SimpleNamespace(id=1, name="Maujajan Kopi Senopati")
        session = open_session(user, outlet, 500000, now=NOW)
        assert session.status == "active"
        assert session.initial_cash == 500000
        assert session.start_time == NOW
        assert session.outlet_name == "Maujajan Kopi Senopati"

    def test_open_with_negative_cash_rejected(self):
        user = SimpleNamespace(id=3, name="Kasir Satu")
        outlet = SimpleNamespace(id=1, name="Maujajan Kopi Senopati")
        with pytest.raises(ValidationError):
            open_session(user, outlet, -1)

    def test_close_balanced(self):
        session = close_session(
            active_session(), [sale(150000), sale(50000)], [expense(50000)], 650000, now=NOW
        )
        assert session.status == "closed"
        assert session.calculated_cash == 650000
        assert session.final_cash == 650000
        assert session.difference == 0
        assert session.end_time == NOW

    def test_close_with_shortfall(self):
        session = close_session(active_session(), [sale(200000)], [expense(50000)], 600000)
        assert session.calculated_cash == 650000
        assert session.difference == -50000

    def test_non_cash_sales_not_expected_in_drawer(self):
        session = close_session(
            active_session(),
            [sale(200000), sale(80000, "qris"), sale(45000, "platform_balance")],
            [],
            700000,
        )
        assert session.calculated_cash == 700000
        assert session.difference == 0

    def test_close_twice_rejected(self):
        session = close_session(active_session(), [], [], 500000)
        with pytest.raises(DrawerError, match="Session already closed"):
            close_session(session, [], [], 500000)

    def test_negative_count_rejected(self):
        with pytest.raises(ValidationError):
            close_session(active_session(), [], [], -5)

    def test_summary_breakdown(self):
        summary = summarize(
            active_session(100000),
            [sale(20000), sale(30000, "qris"), sale(40000, "platform_balance"), sale(5000)],
            [expense(7000), expense(3000)],
        )
        assert summary.cash_sales == 25000
        assert summary.qris_sales == 30000
        assert summary.platform_sales == 40000
        assert summary.total_sales == 95000
        assert summary.total_expenses == 10000
        assert summary.calculated_cash == 115000
        assert summary.to_dict()["transaction_count"] == 4
        assert summary.to_dict()["expense_count"] == 2


# =============================================================================
# PERSISTED SESSIONS
# =============================================================================


class TestDrawerService:

    def _sell(self, cashier, outlet, variant, quantity, payment_method="cash"):
        return transaction_service.checkout(
            user=cashier,
            outlet_id=outlet.id,
            items=[{"variant_id": variant.id, "quantity": quantity}],
            payment_method=payment_method,
            cash_received=variant.price * quantity if payment_method == "cash" else None,
            now=NOW,
        )

    def test_open_persists_active_session(self, db_session, cashier, outlet):
        session = drawer_service.open_drawer(cashier, outlet.id, 500000)
        assert session.id is not None
        assert drawer_service.get_active_session(cashier.id).id == session.id

    def test_second_open_rejected(self, db_session, cashier, outlet, other_outlet, open_drawer):
        with pytest.raises(DrawerError):
            drawer_service.open_drawer(cashier, other_outlet.id, 100000)
        assert db_session.query(CashierSession).count() == 1

    def test_concurrent_open_rejected_by_unique_index(self, db_session, cashier, other_outlet, open_drawer, monkeypatch):
        # Both requests passed the pre-check; only the partial unique index stands between them.
        monkeypatch.setattr(drawer_service, "get_active_session", lambda user_id, **kwargs: None)
        with pytest.raises(DrawerError):
            drawer_service.open_drawer(cashier, other_outlet.id, 100000)
        assert db_session.query(CashierSession).count() == 1
        assert db_session.query(CashierSession).filter_by(status="active").one().id == open_drawer.id

    def test_open_at_unknown_outlet(self, db_session, cashier):
        with pytest.raises(ValidationError):
            drawer_service.open_drawer(cashier, 9999, 0)

    def test_reconciles_sales_and_expenses(self, db_session, cashier, outlet, open_drawer, make_product):
        variant = make_product("Paket Keluarga", 100000).variants[0]
        self._sell(cashier, outlet, variant, 2)
        self._sell(cashier, outlet, variant, 1, payment_method="qris")
        expense_service.record_expense({"description": "Es batu", "amount": 50000}, user=cashier)

        current = drawer_service.current_summary(cashier.id)
        assert current["summary"]["cash_sales"] == 200000
        assert current["summary"]["qris_sales"] == 100000
        assert current["summary"]["calculated_cash"] == 650000

        closed = drawer_service.close_drawer(open_drawer.id, 650000, actor=cashier)
        assert closed.status == "closed"
        assert closed.calculated_cash == 650000
        assert closed.difference == 0
        assert drawer_service.current_summary(cashier.id) is None

    def test_close_records_shortfall(self, db_session, cashier, outlet, open_drawer, make_product):
        variant = make_product("Paket Keluarga", 100000).variants[0]
        self._sell(cashier, outlet, variant, 2)
        expense_service.record_expense({"description": "Gas", "amount": 50000}, user=cashier)

        closed = drawer_service.close_drawer(open_drawer.id, 600000, actor=cashier, notes="  kurang  ")
        assert closed.difference == -50000
        assert closed.notes == "kurang"

    def test_close_twice_rejected(self, db_session, cashier, open_drawer):
        drawer_service.close_drawer(open_drawer.id, 500000, actor=cashier)
        with pytest.raises(DrawerError):
            drawer_service.close_drawer(open_drawer.id, 500000, actor=cashier)

    def test_other_cashier_cannot_close(self, db_session, outlet, open_drawer):
        other = create_user("kasir2", "Kasir Dua", PASSWORD, role="cashier", outlet_id=outlet.id)
        with pytest.raises(DrawerError):
            drawer_service.close_drawer(open_drawer.id, 500000, actor=other)

    def test_owner_can_close_any_session(self, db_session, owner, open_drawer):
        closed = drawer_service.close_drawer(open_drawer.id, 450000, actor=owner)
        assert closed.difference == -50000

    def test_close_unknown_session(self, db_session, owner):
        with pytest.raises(ValidationError):
            drawer_service.close_drawer(4040, 0, actor=owner)

    def test_reopen_after_close(self, db_session, cashier, outlet, open_drawer):
        drawer_service.close_drawer(open_drawer.id, 500000, actor=cashier)
        reopened = drawer_service.open_drawer(cashier, outlet.id, 300000)
        assert reopened.id != open_drawer.id
        assert len(drawer_service.list_sessions(user_id=cashier.id)) == 2

    def test_sessions_reconcile_independently(self, db_session, cashier, outlet, open_drawer, make_product):
        variant = make_product("Americano", 20000).variants[0]
        self._sell(cashier, outlet, variant, 1)
        drawer_service.close_drawer(open_drawer.id, 520000, actor=cashier)

        second = drawer_service.open_drawer(cashier, outlet.id, 100000)
        closed = drawer_service.close_drawer(second.id, 100000, actor=cashier)
        assert closed.calculated_cash == 100000
        assert closed.difference == 0


# =============================================================================
# EXPENSES
# =============================================================================


class TestExpenses:

    def test_expense_linked_to_active_session(self, db_session, cashier, open_drawer):
        recorded = expense_service.record_expense({"description": "Plastik", "amount": 15000}, user=cashier)
        assert recorded.cashier_session_id == open_drawer.id
        assert recorded.category == "Umum"
        assert recorded.outlet_id == open_drawer.outlet_id

    def test_expense_after_close_not_linked(self, db_session, cashier, open_drawer):
        drawer_service.close_drawer(open_drawer.id, 500000, actor=cashier)
        recorded = expense_service.record_expense({"description": "Parkir", "amount": 5000}, user=cashier)
        assert recorded.cashier_session_id is None

    def test_expense_without_session(self, db_session, cashier, outlet):
        recorded = expense_service.record_expense({"description": "Plastik", "amount": 15000}, user=cashier)
        assert recorded.cashier_session_id is None
        assert recorded.outlet_id == outlet.id

    def test_expense_at_other_outlet_not_linked(self, db_session, cashier, other_outlet, open_drawer):
        recorded = expense_service.record_expense(
            {"description": "Galon", "amount": 20000}, user=cashier, outlet_id=other_outlet.id
        )
        assert recorded.cashier_session_id is None
        assert recorded.outlet_id == other_outlet.id

    def test_owner_without_outlet_must_choose(self, db_session, owner):
        with pytest.raises(ValidationError, match="outlet_id required"):
            expense_service.record_expense({"description": "Galon", "amount": 20000}, user=owner)

    @pytest.mark.parametrize("amount", [0, -100])
    def test_amount_must_be_positive(self, db_session, cashier, amount):
        with pytest.raises(ValidationError):
            expense_service.record_expense({"description": "Galon", "amount": amount}, user=cashier)

    def test_description_required(self, db_session, cashier):
        with pytest.raises(ValidationError):
            expense_service.record_expense({"amount": 1000}, user=cashier)

    def test_list_by_session(self, db_session, cashier, open_drawer):
        expense_service.record_expense({"description": "Plastik", "amount": 15000}, user=cashier)
        expense_service.record_expense({"description": "Gula", "amount": 10000}, user=cashier)
        listed = expense_service.list_expenses(cashier_session_id=open_drawer.id)
        assert {e.description for e in listed} == {"Plastik", "Gula"}

"""
Customer and member tests.

Verifies:
- Phone normalization
- Post-sale customer linking (create, no-op relink, conflict)
- Member code assignment and lookup
"""

from datetime import datetime

import pytest

from outletpos.models import Customer
from outletpos.services import customer_service, transaction_service
from outletpos.validation import BusinessRuleError, ConflictError, ValidationError

NOW = datetime(2026, 3, 10, 5, 0, 0)


@pytest.fixture
def sale(db_session, cashier, outlet, open_drawer, make_product):
    variant = make_product("Es Kopi Susu", 25000).variants[0]
    return transaction_service.checkout(
        user=cashier,
        outlet_id=outlet.id,
        items=[{"variant_id": variant.id, "quantity": 2}],
        payment_method="qris",
        now=NOW,
    )


class TestNormalizePhone:

    @pytest.mark.parametrize("raw,expected", [
        ("0812-3456-7890", "6281234567890"),
        ("+62 812 3456 7890", "6281234567890"),
        ("6281234567890", "6281234567890"),
        ("(021) 555 0199", "62215550199"),
    ])
    def test_normalized(self, raw, expected):
        assert customer_service.normalize_phone(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "12345", "abc"])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError):
            customer_service.normalize_phone(raw)


class TestLinkCustomer:

    def test_creates_customer_and_aggregates(self, db_session, sale):
        linked = customer_service.link_customer(sale.id, "0812-1111-2222", "Sari")

        customer = db_session.query(Customer).filter_by(phone_number="6281211112222").one()
        assert linked.customer_id == customer.id
        assert linked.customer_name == "Sari"
        assert customer.total_spent == 50000
        assert customer.first_transaction_date == NOW
        assert customer.last_transaction_date == NOW
        assert customer.is_member is False

    def test_unnamed_customer_gets_default_name(self, db_session, sale):
        customer_service.link_customer(sale.id, "081211112222")
        customer = db_session.query(Customer).one()
        assert customer.name == customer_service.DEFAULT_CUSTOMER_NAME

    def test_relinking_same_customer_is_noop(self, db_session, sale):
        customer_service.link_customer(sale.id, "081211112222", "Sari")
        customer_service.link_customer(sale.id, "+62 812 1111 2222", "Sari")

        customer = db_session.query(Customer).one()
        assert customer.total_spent == 50000

    def test_linking_another_customer_conflicts(self, db_session, sale):
        customer_service.link_customer(sale.id, "081211112222", "Sari")
        with pytest.raises(ConflictError):
            customer_service.link_customer(sale.id, "081299998888", "Joko")

    def test_existing_customer_accumulates(self, db_session, cashier, outlet, sale, make_product):
        customer_service.link_customer(sale.id, "081211112222", "Sari")

        variant = make_product("Americano", 20000).variants[0]
        later = datetime(2026, 3, 12, 3, 0, 0)
        second = transaction_service.checkout(
            user=cashier, outlet_id=outlet.id, items=[{"variant_id": variant.id, "quantity": 1}],
            payment_method="qris", now=later,
        )
        customer_service.link_customer(second.id, "081211112222")

        customer = db_session.query(Customer).one()
        assert customer.total_spent == 70000
        assert customer.first_transaction_date == NOW
        assert customer.last_transaction_date == later
        assert sorted(t.id for t in customer.transactions) == sorted([sale.id, second.id])

    def test_unknown_transaction(self, db_session):
        assert customer_service.link_customer(999, "081211112222") is None


class TestMembers:

    def test_assign_generated_member_id(self, db_session, sale):
        transaction = customer_service.link_customer(sale.id, "081211112222", "Sari")
        customer = customer_service.assign_member_id(transaction.customer_id)
        assert customer.member_id.startswith("MBR-")
        assert customer.is_member is True
        assert customer_service.find_member(customer.member_id).id == customer.id

    def test_assign_explicit_member_id(self, db_session, member):
        assert customer_service.assign_member_id(member.id, " MBR-0042 ").member_id == "MBR-0042"

    def test_member_id_unique(self, db_session, member, outlet):
        other = Customer(name="Ani", phone_number="6281300000000", outlet_id=outlet.id, total_spent=0)
        db_session.add(other)
        db_session.commit()
        with pytest.raises(ConflictError):
            customer_service.assign_member_id(other.id, "MBR-0001")

    def test_assign_unknown_customer(self, db_session):
        assert customer_service.assign_member_id(404) is None

    def test_find_member(self, db_session, member):
        assert customer_service.find_member(" MBR-0001 ").id == member.id

    def test_unknown_member_code(self, db_session, member):
        with pytest.raises(BusinessRuleError):
            customer_service.find_member("MBR-9999")

    def test_inactive_member_not_recognised(self, db_session, member):
        member.is_active = False
        db_session.commit()
        with pytest.raises(BusinessRuleError):
            customer_service.find_member("MBR-0001")

    def test_list_customers_by_outlet(self, db_session, member, other_outlet):
        db_session.add(Customer(name="Ani", phone_number="6281300000000", outlet_id=other_outlet.id, total_spent=0))
        db_session.commit()
        assert [c.name for c in customer_service.list_customers(outlet_id=member.outlet_id)] == ["Budi"]
        assert len(customer_service.list_customers()) == 2

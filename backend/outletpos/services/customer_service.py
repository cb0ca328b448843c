# Overview: Customer identity, member validation, and post-sale customer linking.

"""
Customers are identified by phone number. They are usually created after
the sale, when the cashier sends the digital receipt: the phone number finds
(or creates) the customer and the transaction is linked to them. Members
carry a member_id, scanned from their QR code at checkout.

Aggregates (total_spent, first/last transaction date) are updated once per
linked transaction, whether linked at checkout (member scan) or afterwards.
"""

from __future__ import annotations

import re
import secrets
from ..extensions import db
from ..models import Customer, Transaction
from ..validation import BusinessRuleError, ConflictError, ValidationError
from outletpos.time_utils import utcnow

DEFAULT_CUSTOMER_NAME = "Pelanggan"


def normalize_phone(phone: str | None) -> str:
    """
    Canonical phone: digits only, Indonesian trunk prefix 0 replaced by 62.

    "0812-3456-7890" -> "6281234567890"
    """
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        digits = "62" + digits[1:]
    if len(digits) < 8:
        raise ValidationError("A valid phone number is required")
    return digits


def find_member(member_id: str) -> Customer:
    """Resolve a scanned member code or refuse the sale's member pricing."""
    customer = db.session.query(Customer).filter_by(member_id=str(member_id).strip()).first()
    if customer is None or not customer.is_member:
        raise BusinessRuleError(
            "Member not recognised. Scan the member QR again.",
            details={"member_id": member_id},
        )
    return customer


def record_purchase(customer: Customer, transaction: Transaction) -> None:
    """Fold one transaction into the customer's aggregates. Does not commit."""
    occurred_at = transaction.created_at or utcnow()
    customer.total_spent = (customer.total_spent or 0) + transaction.total
    if customer.first_transaction_date is None or occurred_at < customer.first_transaction_date:
        customer.first_transaction_date = occurred_at
    if customer.last_transaction_date is None or occurred_at > customer.last_transaction_date:
        customer.last_transaction_date = occurred_at


def link_customer(
    transaction_id: int,
    phone: str,
    name: str | None = None,
    *,
    outlet_id: int | None = None,
) -> Transaction | None:
    """
    Attach a customer to an already recorded transaction.

    Finds the customer by phone or creates one. Linking the same customer
    twice is a no-op; a transaction linked to someone else is a conflict.
    Returns None when the transaction does not exist.
    """
    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        return None

    phone_number = normalize_phone(phone)
    name = (name or "").strip() or None

    customer = db.session.query(Customer).filter_by(phone_number=phone_number).first()

    if transaction.customer_id is not None:
        if customer is not None and transaction.customer_id == customer.id:
            return transaction
        raise ConflictError("Transaction is already linked to another customer")

    if customer is None:
        customer = Customer(
            name=name or DEFAULT_CUSTOMER_NAME,
            phone_number=phone_number,
            outlet_id=outlet_id if outlet_id is not None else transaction.outlet_id,
            total_spent=0,
            is_active=True,
        )
        db.session.add(customer)
        db.session.flush()
    elif name and customer.name == DEFAULT_CUSTOMER_NAME:
        customer.name = name

    record_purchase(customer, transaction)
    transaction.customer_id = customer.id
    transaction.customer_name = name or customer.name

    db.session.commit()
    return transaction


def assign_member_id(customer_id: int, member_id: str | None = None) -> Customer | None:
    """Make a customer a member. A member code is generated when none is given."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return None

    member_id = (member_id or "").strip() or f"MBR-{secrets.token_hex(4).upper()}"
    taken = db.session.query(Customer).filter(
        Customer.member_id == member_id, Customer.id != customer.id
    ).first()
    if taken:
        raise ConflictError(f"Member id {member_id} is already assigned")

    customer.member_id = member_id
    db.session.commit()
    return customer


def list_customers(outlet_id: int | None = None) -> list[Customer]:
    q = db.session.query(Customer)
    if outlet_id is not None:
        q = q.filter(Customer.outlet_id == outlet_id)
    return q.order_by(Customer.last_transaction_date.desc(), Customer.id.desc()).all()

# Overview: Payload validation against model metadata, plus the error types services raise.

"""
Input validation.

Route handlers pass raw JSON to the services; the services validate it
here against the SQLAlchemy column metadata and a per-model policy
(which fields a client may write, which are required on create) before
touching the database. Business rules that metadata cannot express live
in the enforce_rules_* helpers at the bottom.

Error types map to HTTP statuses in decorators.error_response:
ValidationError 400, AccessDeniedError 403, ConflictError and
ContentionError 409, BusinessRuleError 422.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from outletpos.time_utils import parse_iso_datetime

# Largest amount accepted anywhere (prices, expenses, discounts): Rp 999,999,999
MAX_PRICE = 999_999_999

DISCOUNT_TYPES = {"PERCENTAGE", "FIXED_AMOUNT"}
DISCOUNT_AUDIENCES = {"ALL", "MEMBER_ONLY", "NON_MEMBER_ONLY"}
DISCOUNT_SCOPES = {"ENTIRE_ORDER", "SPECIFIC_PRODUCT", "SPECIFIC_CATEGORY"}

_INT_RE = re.compile(r"^-?\d+$")
_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


class ValidationError(ValueError):
    """Malformed or out-of-range input."""


class ConflictError(ValueError):
    """The write collides with existing data (duplicate name, linked customer)."""


class BusinessRuleError(ValueError):
    """A rule the cashier can act on refused the request (stock, member, session)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ContentionError(RuntimeError):
    """Concurrent writers kept colliding; the caller should simply try again."""


class AccessDeniedError(PermissionError):
    """Authenticated, but the role or outlet binding forbids it."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    writable_fields is the allowlist clients may send for a model;
    required_on_create must all be present when partial=False.
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def coerce_int(key: str, value: Any) -> int:
    """
    Accept ints and plain digit strings ("42", "-3").

    Floats, decimals ("12.5"), exponents ("1e6") and bools are refused: every
    amount in the system is whole rupiah and ids are integers.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer")


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
        return value.strip().lower() in _TRUE_STRINGS
    raise ValidationError(f"{key} must be true or false")


def _coerce_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        parsed = parse_iso_datetime(value) if isinstance(value, str) else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    return parsed


def _coerce_value(col, value: Any):
    """Convert one JSON value to the Python type of its column."""
    coltype = col.type
    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)
    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be a number")
    if isinstance(coltype, Boolean):
        return _coerce_bool(col.key, value)
    if isinstance(coltype, DateTime):
        return _coerce_datetime(col.key, value)
    if isinstance(coltype, (String, Text)):
        return str(value).strip()
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Clean a JSON object into a patch for model.

    Only fields in policy.writable_fields that are real columns are accepted.
    Values are coerced to the column type; NULL, blank and over-length
    strings are checked against the column definition. With partial=False
    every required_on_create field must be present.

    Returns the cleaned patch. Raises ValidationError on the first problem.
    """
    payload = {} if payload is None else payload
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}

    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        value = _coerce_value(col, raw)
        if isinstance(value, str):
            if value == "" and not col.nullable:
                raise ValidationError(f"{key} cannot be blank")
            length = getattr(col.type, "length", None)
            if length and len(value) > length:
                raise ValidationError(f"{key} exceeds max length {length}")
        patch[key] = value

    return patch


def enforce_rules_variant(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for key in ("price", "cogs"):
        if key in patch and patch[key] is not None:
            amount = patch[key]
            if amount < 0:
                raise ValidationError(f"{key} must be >= 0")
            if amount > MAX_PRICE:
                raise ValidationError(f"{key} cannot exceed {MAX_PRICE:,}")

    if "stock" in patch and patch["stock"] is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")


def enforce_rules_discount(rule: dict) -> None:
    """
    Validate a complete (merged) discount rule.

    Scope targets are required iff the scope needs them; percentage values are
    bounded at 100.
    """
    if len(rule.get("name") or "") < 3:
        raise ValidationError("name must be at least 3 characters")

    discount_type = rule.get("discount_type")
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of {', '.join(sorted(DISCOUNT_TYPES))}")

    if rule.get("applies_to") not in DISCOUNT_AUDIENCES:
        raise ValidationError(f"applies_to must be one of {', '.join(sorted(DISCOUNT_AUDIENCES))}")

    value = rule.get("discount_value")
    if value is None or value <= 0:
        raise ValidationError("discount_value must be greater than 0")
    if discount_type == "PERCENTAGE" and value > 100:
        raise ValidationError("discount_value cannot exceed 100 for PERCENTAGE discounts")

    scope = rule.get("scope")
    if scope not in DISCOUNT_SCOPES:
        raise ValidationError(f"scope must be one of {', '.join(sorted(DISCOUNT_SCOPES))}")
    if scope == "SPECIFIC_PRODUCT" and not rule.get("product_id"):
        raise ValidationError("product_id is required for SPECIFIC_PRODUCT discounts")
    if scope == "SPECIFIC_CATEGORY" and not rule.get("category_id"):
        raise ValidationError("category_id is required for SPECIFIC_CATEGORY discounts")

    for key in ("min_purchase", "max_discount_amount"):
        if rule.get(key) is not None and rule[key] < 0:
            raise ValidationError(f"{key} must be >= 0")

    valid_from = rule.get("valid_from")
    valid_until = rule.get("valid_until")
    if valid_from is None:
        raise ValidationError("valid_from is required")
    if valid_until is not None and valid_until <= valid_from:
        raise ValidationError("valid_until must be after valid_from")


def enforce_rules_expense(patch: dict) -> None:
    if "amount" in patch:
        if patch["amount"] is None or patch["amount"] <= 0:
            raise ValidationError("amount must be > 0")
        if patch["amount"] > MAX_PRICE:
            raise ValidationError(f"amount cannot exceed {MAX_PRICE:,}")

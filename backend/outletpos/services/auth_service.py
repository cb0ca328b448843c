# Overview: Users, password hashing, bearer session tokens, and role capabilities.

"""
Authentication and Capabilities

WHY: Every sale and drawer count must be attributable to a user. Passwords
are hashed with bcrypt; login returns an opaque bearer token whose SHA-256
is the only thing stored.

ROLES:
- owner: every outlet, manages catalog, discounts, and platform settings
- cashier: bound to one outlet (user.outlet_id), sells and runs the drawer

Role checks happen once per request: require_auth turns the user's role
into a Capabilities object and handlers consult that object only.
"""

from __future__ import annotations

import hashlib
import re
import secrets
from dataclasses import dataclass
from datetime import timedelta

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import Outlet, SessionToken, User
from ..validation import ConflictError, ValidationError
from outletpos.time_utils import utcnow

ROLES = ("owner", "cashier")


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet strength requirements."""


@dataclass(frozen=True)
class Capabilities:
    """What the authenticated user may do; derived from the role alone."""
    role: str
    outlet_id: int | None
    can_select_outlet: bool
    can_manage_discounts: bool
    can_manage_catalog: bool
    can_manage_settings: bool
    can_view_all_outlets: bool

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "outlet_id": self.outlet_id,
            "can_select_outlet": self.can_select_outlet,
            "can_manage_discounts": self.can_manage_discounts,
            "can_manage_catalog": self.can_manage_catalog,
            "can_manage_settings": self.can_manage_settings,
            "can_view_all_outlets": self.can_view_all_outlets,
        }


def capabilities_for(user: User) -> Capabilities:
    is_owner = user.role == "owner"
    return Capabilities(
        role=user.role,
        outlet_id=user.outlet_id,
        can_select_outlet=is_owner,
        can_manage_discounts=is_owner,
        can_manage_catalog=is_owner,
        can_manage_settings=is_owner,
        can_view_all_outlets=is_owner,
    )


# =============================================================================
# PASSWORDS
# =============================================================================

def validate_password_strength(password: str) -> None:
    """
    Minimum 8 characters, with at least one letter and one digit.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Validate and bcrypt-hash a password. Cost comes from BCRYPT_ROUNDS."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# =============================================================================
# USERS
# =============================================================================

def create_user(
    username: str,
    name: str,
    password: str,
    *,
    role: str = "cashier",
    outlet_id: int | None = None,
    email: str | None = None,
) -> User:
    """
    Create a user.

    Cashiers must be bound to an existing outlet; owners may have none.

    Raises:
        ValidationError: bad role, missing outlet, weak password
        ConflictError: username already taken
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")

    if outlet_id is not None and db.session.get(Outlet, outlet_id) is None:
        raise ValidationError("Outlet not found")
    if role == "cashier" and outlet_id is None:
        raise ValidationError("Cashiers must be assigned to an outlet")

    if db.session.query(User).filter_by(username=username).first():
        raise ConflictError(f"Username {username} already exists")

    user = User(
        username=username,
        name=(name or "").strip() or username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        outlet_id=outlet_id,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """Returns the active user for these credentials, otherwise None."""
    user = db.session.query(User).filter(
        User.username == (username or "").strip(),
        User.is_active.is_(True),
    ).first()
    if user is None or not verify_password(password or "", user.password_hash):
        return None
    return user


# =============================================================================
# SESSION TOKENS
# =============================================================================

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(user: User) -> tuple[SessionToken, str]:
    """
    Issue a bearer token for the user.

    Returns (session_record, plaintext_token). Only the hash is persisted.
    """
    plaintext = secrets.token_hex(32)
    now = utcnow()
    ttl = timedelta(hours=current_app.config.get("SESSION_TOKEN_TTL_HOURS", 12))

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext),
        created_at=now,
        expires_at=now + ttl,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext


def validate_session(token: str) -> User | None:
    """User behind a live token; None when unknown, revoked, expired or deactivated."""
    if not token:
        return None
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None or session.is_revoked:
        return None
    if session.expires_at <= utcnow():
        return None
    user = session.user
    if user is None or not user.is_active:
        return None
    return user


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None or session.is_revoked:
        return False
    session.is_revoked = True
    db.session.commit()
    return True

"""
Authentication service tests.

Verifies:
- Password strength and bcrypt verification
- User creation rules per role
- Bearer token lifecycle (issue, validate, expire, revoke)
- Capabilities derived from role
"""

from datetime import timedelta

import pytest

from outletpos.services import auth_service
from outletpos.services.auth_service import PasswordValidationError
from outletpos.time_utils import utcnow
from outletpos.validation import ConflictError, ValidationError

from conftest import PASSWORD


class TestPasswords:

    @pytest.mark.parametrize("password", ["", "short1", "onlyletters", "12345678"])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_strong_password_accepted(self):
        auth_service.validate_password_strength("kopi2026")

    def test_hash_and_verify(self, app):
        hashed = auth_service.hash_password(PASSWORD)
        assert hashed != PASSWORD
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("Password124", hashed)

    def test_malformed_hash(self):
        assert auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash") is False


class TestUsers:

    def test_cashier_needs_outlet(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.create_user("kasir", "Kasir", PASSWORD, role="cashier")

    def test_unknown_outlet(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.create_user("kasir", "Kasir", PASSWORD, role="cashier", outlet_id=404)

    def test_unknown_role(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.create_user("boss", "Boss", PASSWORD, role="manager")

    def test_duplicate_username(self, db_session, owner):
        with pytest.raises(ConflictError):
            auth_service.create_user("owner", "Owner Two", PASSWORD, role="owner")

    def test_authenticate(self, db_session, cashier):
        assert auth_service.authenticate("kasir", PASSWORD).id == cashier.id
        assert auth_service.authenticate("kasir", "Password999") is None
        assert auth_service.authenticate("nobody", PASSWORD) is None

    def test_inactive_user_cannot_authenticate(self, db_session, cashier):
        cashier.is_active = False
        db_session.commit()
        assert auth_service.authenticate("kasir", PASSWORD) is None


class TestSessions:

    def test_token_lifecycle(self, db_session, cashier):
        session, token = auth_service.create_session(cashier)
        assert session.token_hash == auth_service.hash_token(token)
        assert session.token_hash != token
        assert auth_service.validate_session(token).id == cashier.id

        assert auth_service.revoke_session(token) is True
        assert auth_service.validate_session(token) is None
        assert auth_service.revoke_session(token) is False

    def test_expired_token(self, db_session, cashier):
        session, token = auth_service.create_session(cashier)
        session.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()
        assert auth_service.validate_session(token) is None

    def test_unknown_token(self, db_session):
        assert auth_service.validate_session("deadbeef") is None
        assert auth_service.validate_session("") is None


class TestCapabilities:

    def test_owner(self, db_session, owner):
        caps = auth_service.capabilities_for(owner)
        assert caps.can_select_outlet
        assert caps.can_manage_discounts
        assert caps.can_manage_catalog
        assert caps.can_view_all_outlets
        assert caps.outlet_id is None

    def test_cashier_bound_to_outlet(self, db_session, cashier, outlet):
        caps = auth_service.capabilities_for(cashier)
        assert not caps.can_select_outlet
        assert not caps.can_manage_discounts
        assert not caps.can_manage_settings
        assert caps.outlet_id == outlet.id

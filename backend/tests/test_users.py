"""Tests for staff accounts, passwords and the role permission matrix."""
import pytest

from medlab.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from medlab.core.permissions import (
    ALL_PERMISSIONS,
    PERM_DISPENSE,
    PERM_MANAGE_PATIENTS,
    PERM_MANAGE_PAYMENTS,
    PERM_VIEW_PATIENTS,
    ROLE_PERMISSIONS,
    has_permission,
    navigation_for,
)
from medlab.core.security import verify_password
from medlab.models.user import UserRole
from medlab.services import users

from conftest import TEST_PASSWORD


class TestAccounts:
    def test_create_normalises_email(self, db):
        """Emails are stored trimmed and lower-cased."""
        user = users.create_user(db, " Grace Akello ", " Grace@MedLab.test ", "LongEnough1", UserRole.NURSE)
        assert user.name == "Grace Akello"
        assert user.email == "grace@medlab.test"
        assert verify_password("LongEnough1", user.hashed_password)

    def test_duplicate_email(self, db, doctor):
        with pytest.raises(ConflictError):
            users.create_user(db, "Someone", doctor.email.upper(), "LongEnough1", UserRole.NURSE)

    @pytest.mark.parametrize("password, role", [("short", UserRole.NURSE), ("LongEnough1", "JANITOR")])
    def test_invalid_password_or_role(self, db, password, role):
        with pytest.raises(ValidationError):
            users.create_user(db, "Someone", "someone@medlab.test", password, role)

    def test_update_email_taken(self, db, doctor, cashier):
        with pytest.raises(ConflictError):
            users.update_user(db, cashier.id, email=doctor.email)
        # keeping one's own email is not a conflict
        assert users.update_user(db, cashier.id, email=cashier.email, is_active=False).is_active is False

    def test_list_doctors_skips_inactive(self, db, doctor, make_user):
        make_user(UserRole.DOCTOR, name="Dr. Retired", is_active=False)
        make_user(UserRole.NURSE)
        assert [u.id for u in users.list_doctors(db)] == [doctor.id]
        assert len(users.list_users(db, role=UserRole.DOCTOR)) == 2

    def test_profile_edit(self, db, doctor):
        updated = users.update_user_profile(db, doctor.id, name="Dr. S. Namusoke")
        assert updated.name == "Dr. S. Namusoke"
        assert updated.role == UserRole.DOCTOR

    def test_delete(self, db, admin, cashier):
        """Admins cannot delete their own account."""
        with pytest.raises(ValidationError):
            users.delete_user(db, admin.id, acting_user_id=admin.id)
        users.delete_user(db, cashier.id, acting_user_id=admin.id)
        with pytest.raises(NotFoundError):
            users.get_user(db, cashier.id)


class TestPasswords:
    def test_authenticate(self, db, doctor):
        assert users.authenticate(db, doctor.email.upper(), TEST_PASSWORD).id == doctor.id
        assert users.authenticate(db, doctor.email, "wrong-password") is None
        assert users.authenticate(db, "nobody@medlab.test", TEST_PASSWORD) is None

    def test_inactive_user_cannot_authenticate(self, db, make_user):
        user = make_user(UserRole.NURSE, is_active=False)
        assert users.authenticate(db, user.email, TEST_PASSWORD) is None

    def test_change_password(self, db, doctor):
        """Changing the password revokes the stored refresh token."""
        with pytest.raises(PermissionDeniedError):
            users.change_password(db, doctor.id, "not-it", "BrandNew123")
        users.record_login(db, doctor, "refresh-token")
        changed = users.change_password(db, doctor.id, TEST_PASSWORD, "BrandNew123")
        assert verify_password("BrandNew123", changed.hashed_password)
        assert changed.refresh_token is None

    def test_reset_password(self, db, doctor):
        """Reset issues a temporary password that signs in immediately."""
        user, temporary = users.reset_password(db, doctor.email)
        assert user.id == doctor.id
        assert len(temporary) >= users.MIN_PASSWORD_LENGTH
        assert users.authenticate(db, doctor.email, temporary) is not None
        with pytest.raises(NotFoundError):
            users.reset_password(db, "nobody@medlab.test")


class TestPermissions:
    def test_admin_has_everything(self):
        assert ROLE_PERMISSIONS[UserRole.ADMIN] == ALL_PERMISSIONS

    def test_every_role_can_view_patients(self):
        assert all(has_permission(role, PERM_VIEW_PATIENTS) for role in UserRole.ALL)

    def test_role_boundaries(self):
        assert not has_permission(UserRole.CASHIER, PERM_MANAGE_PATIENTS)
        assert has_permission(UserRole.CASHIER, PERM_MANAGE_PAYMENTS)
        assert not has_permission(UserRole.DOCTOR, PERM_DISPENSE)
        assert has_permission(UserRole.PHARMACIST, PERM_DISPENSE)
        assert not has_permission("JANITOR", PERM_VIEW_PATIENTS)

    def test_navigation(self):
        cashier_nav = [item["name"] for item in navigation_for(UserRole.CASHIER)]
        assert cashier_nav == ["Dashboard", "Payments", "Profile"]
        assert "Settings" in [item["name"] for item in navigation_for(UserRole.ADMIN)]

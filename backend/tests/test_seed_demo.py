"""Tests for the demo data seeder."""
from medlab.core.security import verify_password
from medlab.models.patient import Patient
from medlab.models.pharmacy import MedicationInventory
from medlab.models.user import User, UserRole
from medlab.seed_demo import (
    DEMO_ADMIN_EMAIL,
    DEMO_ADMIN_PASSWORD,
    DEMO_MEDICATIONS,
    DEMO_PATIENT_PHONE,
    DEMO_STAFF,
    DEMO_STAFF_PASSWORD,
    seed_demo_data,
)


class TestSeedDemoData:
    def test_creates_admin_user(self, db):
        seed_demo_data()
        admin = db.query(User).filter(User.email == DEMO_ADMIN_EMAIL).first()
        assert admin is not None
        assert admin.role == UserRole.ADMIN

    def test_creates_one_account_per_staff_role(self, db):
        seed_demo_data()
        roles = {user.role for user in db.query(User).all()}
        assert roles == set(UserRole.ALL)

    def test_creates_demo_patient_under_the_doctor(self, db):
        seed_demo_data()
        patient = db.query(Patient).filter(Patient.phone == DEMO_PATIENT_PHONE).first()
        assert patient is not None
        assert patient.name == "John Demo"
        assert patient.doctor.role == UserRole.DOCTOR

    def test_stocks_the_pharmacy(self, db):
        seed_demo_data()
        names = {item.name for item in db.query(MedicationInventory).all()}
        assert names == {name for name, *_ in DEMO_MEDICATIONS}

    def test_idempotent_on_second_call(self, db):
        """Calling seed_demo_data twice must not create duplicate records."""
        seed_demo_data()
        seed_demo_data()
        assert db.query(User).count() == 1 + len(DEMO_STAFF)
        assert db.query(Patient).filter(Patient.phone == DEMO_PATIENT_PHONE).count() == 1
        assert db.query(MedicationInventory).count() == len(DEMO_MEDICATIONS)

    def test_demo_passwords_are_hashed(self, db):
        """Passwords must be stored as bcrypt hashes, not plain text."""
        seed_demo_data()
        admin = db.query(User).filter(User.email == DEMO_ADMIN_EMAIL).first()
        doctor = db.query(User).filter(User.email == DEMO_STAFF[0][0]).first()

        assert admin.hashed_password != DEMO_ADMIN_PASSWORD
        assert verify_password(DEMO_ADMIN_PASSWORD, admin.hashed_password)
        assert verify_password(DEMO_STAFF_PASSWORD, doctor.hashed_password)

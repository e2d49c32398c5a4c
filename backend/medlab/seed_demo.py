"""
Demo data seeder for MedLab.

Creates one staff account per role with known credentials, a sample patient
and a small pharmacy stock, so every dashboard has something to show
immediately after a fresh start.

Credentials:
  Admin         : admin@medlab.demo      / Admin1234!
  Other roles   : <role>@medlab.demo     / Demo1234!
                  (doctor, nurse, reception, lab, pharmacy, cashier)

This seeder is idempotent: it is safe to call on every startup.
"""
import logging
from datetime import date

from .models import base as model_base
from .models.base import Base
from .models.user import User, UserRole
from .models.patient import Gender, Patient
from .models.pharmacy import MedicationInventory
from .core.security import get_password_hash

logger = logging.getLogger(__name__)

DEMO_ADMIN_EMAIL = "admin@medlab.demo"
DEMO_ADMIN_PASSWORD = "Admin1234!"
DEMO_STAFF_PASSWORD = "Demo1234!"

DEMO_STAFF = [
    ("doctor@medlab.demo", "Dr. Sarah Namusoke", UserRole.DOCTOR),
    ("nurse@medlab.demo", "Grace Akello", UserRole.NURSE),
    ("reception@medlab.demo", "Peter Okello", UserRole.RECEPTIONIST),
    ("lab@medlab.demo", "Moses Kato", UserRole.LAB_TECHNICIAN),
    ("pharmacy@medlab.demo", "Ruth Nakato", UserRole.PHARMACIST),
    ("cashier@medlab.demo", "David Ssempa", UserRole.CASHIER),
]

DEMO_PATIENT_PHONE = "+256 700 000001"

DEMO_MEDICATIONS = [
    # name, category, quantity, unit, unit price (UGX)
    ("Paracetamol 500mg", "Analgesics", 500, "tablets", 200),
    ("Amoxicillin 250mg", "Antibiotics", 300, "capsules", 500),
    ("Artemether/Lumefantrine", "Antimalarials", 15, "packs", 8000),
]


def seed_demo_data() -> None:
    """Create demo staff, a patient and pharmacy stock if they do not already exist."""
    Base.metadata.create_all(bind=model_base.engine)

    db = model_base.SessionLocal()
    try:
        _seed_users(db)
        doctor = db.query(User).filter(User.role == UserRole.DOCTOR).first()
        _seed_patient(db, doctor)
        _seed_inventory(db)
    finally:
        db.close()


# ── helpers ──────────────────────────────────────────────────────────────────

def _seed_users(db) -> None:
    accounts = [(DEMO_ADMIN_EMAIL, "Demo Admin", UserRole.ADMIN, DEMO_ADMIN_PASSWORD)]
    accounts += [(email, name, role, DEMO_STAFF_PASSWORD) for email, name, role in DEMO_STAFF]

    for email, name, role, password in accounts:
        if db.query(User).filter(User.email == email).first():
            continue
        db.add(User(
            name=name,
            email=email,
            hashed_password=get_password_hash(password),
            role=role,
        ))
        db.commit()
        logger.info("[seed] Created demo %s: %s", role.lower(), email)


def _seed_patient(db, doctor) -> Patient:
    patient = db.query(Patient).filter(Patient.phone == DEMO_PATIENT_PHONE).first()
    if not patient:
        patient = Patient(
            name="John Demo",
            phone=DEMO_PATIENT_PHONE,
            email="john.demo@example.com",
            address="Plot 4, Kampala Road, Kampala",
            date_of_birth=date(1985, 6, 15),
            gender=Gender.MALE,
            blood_group="O+",
            doctor_id=doctor.id if doctor else None,
        )
        db.add(patient)
        db.commit()
        db.refresh(patient)
        logger.info("[seed] Created demo patient: %s", patient.name)
    return patient


def _seed_inventory(db) -> None:
    for name, category, quantity, unit, unit_price in DEMO_MEDICATIONS:
        if db.query(MedicationInventory).filter(MedicationInventory.name == name).first():
            continue
        db.add(MedicationInventory(
            name=name,
            category=category,
            quantity=quantity,
            unit=unit,
            unit_price=unit_price,
        ))
        db.commit()
        logger.info("[seed] Stocked %d %s of %s", quantity, unit, name)

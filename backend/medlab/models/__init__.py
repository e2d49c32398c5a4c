"""Import every model so all mappers and tables are registered on ``Base``."""
from .base import Base
from .user import User, UserRole
from .patient import Patient
from .appointment import Appointment
from .clinical import Diagnosis, TestRequest, TestResult
from .pharmacy import MedicationInventory, MedicationDispense, Prescription, PrescriptionMedication
from .billing import Invoice, InvoiceItem, Payment
from .referral import Referral
from .audit import AuditLog

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Patient",
    "Appointment",
    "Diagnosis",
    "TestRequest",
    "TestResult",
    "MedicationInventory",
    "MedicationDispense",
    "Prescription",
    "PrescriptionMedication",
    "Invoice",
    "InvoiceItem",
    "Payment",
    "Referral",
    "AuditLog",
]

from sqlalchemy import Column, String, Date, Text, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid


class Gender:
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class Patient(Base, TimestampMixin):
    __tablename__ = "patients"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=False, index=True)
    address = Column(Text, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    blood_group = Column(String(5), nullable=True)
    doctor_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)

    doctor = relationship("User", foreign_keys=[doctor_id])
    appointments = relationship(
        "Appointment", back_populates="patient", cascade="all, delete-orphan",
        order_by="Appointment.date.desc()",
    )
    diagnoses = relationship(
        "Diagnosis", back_populates="patient", cascade="all, delete-orphan",
        order_by="Diagnosis.created_at.desc()",
    )
    test_results = relationship(
        "TestResult", back_populates="patient", cascade="all, delete-orphan",
        order_by="TestResult.created_at.desc()",
    )
    prescriptions = relationship(
        "Prescription", back_populates="patient", cascade="all, delete-orphan",
        order_by="Prescription.created_at.desc()",
    )
    dispenses = relationship("MedicationDispense", back_populates="patient", cascade="all, delete-orphan")
    payments = relationship(
        "Payment", back_populates="patient", cascade="all, delete-orphan",
        order_by="Payment.created_at.desc()",
    )
    invoices = relationship(
        "Invoice", back_populates="patient", cascade="all, delete-orphan",
        order_by="Invoice.created_at.desc()",
    )
    referrals = relationship(
        "Referral", back_populates="patient", cascade="all, delete-orphan",
        order_by="Referral.created_at.desc()",
    )

    @property
    def last_appointment(self):
        # appointments are ordered newest date first
        return self.appointments[0] if self.appointments else None

from sqlalchemy import Column, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid


class AppointmentStatus:
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"

    ALL = [SCHEDULED, COMPLETED, CANCELLED, NO_SHOW]


class PaymentState:
    UNPAID = "UNPAID"
    PAID = "PAID"


class Appointment(Base, TimestampMixin):
    __tablename__ = "appointments"

    id = Column(String, primary_key=True, default=generate_uuid)
    patient_id = Column(String, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(DateTime, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=AppointmentStatus.SCHEDULED)
    payment_status = Column(String(20), nullable=False, default=PaymentState.UNPAID)
    # Set once the consultation has been billed
    invoice_id = Column(String, ForeignKey("invoices.id"), nullable=True, index=True)

    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("User", foreign_keys=[doctor_id])
    invoice = relationship("Invoice", back_populates="appointments")

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid


class PaymentStatus:
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"

    ALL = [PENDING, COMPLETED, REFUNDED, CANCELLED]


class InvoiceStatus:
    PENDING = "PENDING"
    PAID = "PAID"

    ALL = [PENDING, PAID]


class PaymentMethod:
    CASH = "CASH"
    MOBILE_MONEY = "MOBILE_MONEY"
    CARD = "CARD"
    INSURANCE = "INSURANCE"
    BANK_TRANSFER = "BANK_TRANSFER"

    ALL = [CASH, MOBILE_MONEY, CARD, INSURANCE, BANK_TRANSFER]


class Invoice(Base, TimestampMixin):
    __tablename__ = "invoices"

    id = Column(String, primary_key=True, default=generate_uuid)
    patient_id = Column(String, ForeignKey("patients.id"), nullable=False, index=True)
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)
    amount = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=InvoiceStatus.PENDING)

    patient = relationship("Patient", back_populates="invoices")
    items = relationship(
        "InvoiceItem", back_populates="invoice", cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )
    payments = relationship("Payment", back_populates="invoice")
    appointments = relationship("Appointment", back_populates="invoice")
    test_requests = relationship("TestRequest", back_populates="invoice")
    dispenses = relationship("MedicationDispense", back_populates="invoice")


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(String, primary_key=True, default=generate_uuid)
    invoice_id = Column(String, ForeignKey("invoices.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(200), nullable=False)
    amount = Column(Integer, nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="items")


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=generate_uuid)
    patient_id = Column(String, ForeignKey("patients.id"), nullable=False, index=True)
    cashier_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    invoice_id = Column(String, ForeignKey("invoices.id"), nullable=True, index=True)
    amount = Column(Integer, nullable=False)
    payment_method = Column(String(50), nullable=False)
    receipt_number = Column(String(50), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.COMPLETED, index=True)
    description = Column(Text, nullable=True)
    confirmation_sent = Column(Boolean, nullable=False, default=False)
    confirmation_date = Column(DateTime, nullable=True)

    patient = relationship("Patient", back_populates="payments")
    cashier = relationship("User", foreign_keys=[cashier_id])
    invoice = relationship("Invoice", back_populates="payments")

from sqlalchemy import Column, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid


class TestStatus:
    __test__ = False

    REQUESTED = "REQUESTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    ALL = [REQUESTED, IN_PROGRESS, COMPLETED, CANCELLED]
    PENDING = [REQUESTED, IN_PROGRESS]


class Diagnosis(Base, TimestampMixin):
    """A doctor's clinical note for a visit. Immutable once recorded."""
    __tablename__ = "diagnoses"

    id = Column(String, primary_key=True, default=generate_uuid)
    patient_id = Column(String, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    summary = Column(String(255), nullable=False)
    detail = Column(Text, nullable=True)

    patient = relationship("Patient", back_populates="diagnoses")
    doctor = relationship("User", foreign_keys=[doctor_id])
    test_requests = relationship(
        "TestRequest", back_populates="diagnosis", cascade="all, delete-orphan",
        order_by="TestRequest.created_at",
    )
    prescriptions = relationship("Prescription", back_populates="diagnosis", cascade="all, delete-orphan")


class TestRequest(Base, TimestampMixin):
    __tablename__ = "test_requests"
    __test__ = False  # not a pytest class

    id = Column(String, primary_key=True, default=generate_uuid)
    diagnosis_id = Column(String, ForeignKey("diagnoses.id"), nullable=False, index=True)
    test_type = Column(String(100), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=TestStatus.REQUESTED, index=True)
    # Set once the test fee has been billed
    invoice_id = Column(String, ForeignKey("invoices.id"), nullable=True, index=True)

    diagnosis = relationship("Diagnosis", back_populates="test_requests")
    test_result = relationship(
        "TestResult", back_populates="test_request", uselist=False, cascade="all, delete-orphan",
    )
    invoice = relationship("Invoice", back_populates="test_requests")


class TestResult(Base, TimestampMixin):
    __tablename__ = "test_results"
    __test__ = False

    id = Column(String, primary_key=True, default=generate_uuid)
    test_request_id = Column(String, ForeignKey("test_requests.id"), nullable=False, unique=True)
    patient_id = Column(String, ForeignKey("patients.id"), nullable=False, index=True)
    technician_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    result = Column(Text, nullable=False)
    report_url = Column(String(500), nullable=True)

    test_request = relationship("TestRequest", back_populates="test_result")
    patient = relationship("Patient", back_populates="test_results")
    technician = relationship("User", foreign_keys=[technician_id])

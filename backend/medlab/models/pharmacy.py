from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Text, exists,
)
from sqlalchemy.orm import column_property, relationship
from .base import Base, TimestampMixin, generate_uuid


class DispenseStatus:
    DISPENSED = "DISPENSED"
    PENDING = "PENDING"  # derived: a line with no dispense records


class MedicationInventory(Base, TimestampMixin):
    __tablename__ = "medication_inventory"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False, index=True)
    category = Column(String(100), nullable=False, default="Uncategorized")
    quantity = Column(Integer, nullable=False, default=0)
    unit = Column(String(50), nullable=True)
    unit_price = Column(Integer, nullable=False, default=0)
    expiry_date = Column(Date, nullable=True)
    supplier = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    # Deleting an item unlinks prescription lines instead of removing them
    prescription_lines = relationship("PrescriptionMedication", back_populates="inventory_item")


class MedicationDispense(Base, TimestampMixin):
    __tablename__ = "medication_dispenses"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_dispense_quantity_positive"),)

    id = Column(String, primary_key=True, default=generate_uuid)
    patient_id = Column(String, ForeignKey("patients.id"), nullable=False, index=True)
    pharmacist_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    medication_id = Column(String, ForeignKey("prescription_medications.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=DispenseStatus.DISPENSED)
    picked_up = Column(Boolean, nullable=False, default=False)
    pickup_date = Column(DateTime, nullable=True)
    # Set once the dispensed quantity has been billed
    invoice_id = Column(String, ForeignKey("invoices.id"), nullable=True, index=True)

    patient = relationship("Patient", back_populates="dispenses")
    pharmacist = relationship("User", foreign_keys=[pharmacist_id])
    medication = relationship("PrescriptionMedication", back_populates="dispenses")
    invoice = relationship("Invoice", back_populates="dispenses")


class Prescription(Base, TimestampMixin):
    __tablename__ = "prescriptions"

    id = Column(String, primary_key=True, default=generate_uuid)
    patient_id = Column(String, ForeignKey("patients.id"), nullable=False, index=True)
    diagnosis_id = Column(String, ForeignKey("diagnoses.id"), nullable=False, index=True)

    patient = relationship("Patient", back_populates="prescriptions")
    diagnosis = relationship("Diagnosis", back_populates="prescriptions")
    medications = relationship(
        "PrescriptionMedication", back_populates="prescription", cascade="all, delete-orphan",
        order_by="PrescriptionMedication.created_at",
    )


class PrescriptionMedication(Base, TimestampMixin):
    __tablename__ = "prescription_medications"

    id = Column(String, primary_key=True, default=generate_uuid)
    prescription_id = Column(String, ForeignKey("prescriptions.id"), nullable=False, index=True)
    inventory_id = Column(String, ForeignKey("medication_inventory.id"), nullable=True, index=True)
    medication_name = Column(String(200), nullable=False)
    dosage = Column(String(100), nullable=False)
    frequency = Column(String(100), nullable=False)
    duration = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)

    # The single definition of "dispensed": at least one dispense record exists.
    is_dispensed = column_property(
        exists()
        .where(MedicationDispense.medication_id == id)
        .correlate_except(MedicationDispense)
    )

    prescription = relationship("Prescription", back_populates="medications")
    inventory_item = relationship("MedicationInventory", back_populates="prescription_lines")
    dispenses = relationship(
        "MedicationDispense", back_populates="medication", cascade="all, delete-orphan",
        order_by="MedicationDispense.created_at",
    )

    @property
    def dispense_status(self) -> str:
        return DispenseStatus.DISPENSED if self.is_dispensed else DispenseStatus.PENDING

"""
Prescriptions, dispensing and medication inventory.

Prescription lines are linked to an inventory item when they are written, so
dispensing and billing never have to match medications by name. A line counts
as dispensed as soon as one dispense record exists for it
(``PrescriptionMedication.is_dispensed``).
"""
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session, joinedload, selectinload

from ..core.cache import PHARMACY_VIEW, patient_view, view_cache
from ..core.config import settings
from ..core.errors import InsufficientInventoryError, NotFoundError, ValidationError
from ..models.base import atomic
from ..models.clinical import Diagnosis
from ..models.patient import Patient
from ..models.pharmacy import (
    DispenseStatus,
    MedicationDispense,
    MedicationInventory,
    Prescription,
    PrescriptionMedication,
)
from ..models.user import User

logger = logging.getLogger(__name__)

LINE_FIELDS = ("medication_name", "dosage", "frequency", "duration", "notes")
INVENTORY_FIELDS = (
    "name", "category", "quantity", "unit", "unit_price", "expiry_date", "supplier", "notes",
)


class PharmacyService:
    """Pharmacy operations. ``low_stock_threshold`` defaults to ``LOW_STOCK_THRESHOLD``."""

    def __init__(self, low_stock_threshold: Optional[int] = None):
        self.low_stock_threshold = (
            settings.LOW_STOCK_THRESHOLD if low_stock_threshold is None else low_stock_threshold
        )

    # ------------------------------------------------------------------
    # Prescriptions
    # ------------------------------------------------------------------

    def _prescription_query(self, db: Session):
        return db.query(Prescription).options(
            joinedload(Prescription.patient),
            joinedload(Prescription.diagnosis).joinedload(Diagnosis.doctor),
            selectinload(Prescription.medications)
            .selectinload(PrescriptionMedication.dispenses)
            .selectinload(MedicationDispense.pharmacist),
            selectinload(Prescription.medications).selectinload(PrescriptionMedication.inventory_item),
        )

    def _resolve_inventory(self, db: Session, line: Dict) -> Optional[MedicationInventory]:
        """Find the stock item a prescription line refers to, once, at prescribing time."""
        inventory_id = line.get("inventory_id")
        if inventory_id:
            item = db.query(MedicationInventory).filter(MedicationInventory.id == inventory_id).first()
            if item is None:
                raise NotFoundError("Medication", inventory_id)
            return item

        name = (line.get("medication_name") or "").strip()
        matches = (
            db.query(MedicationInventory)
            .filter(func.lower(MedicationInventory.name) == name.lower())
            .all()
        )
        if len(matches) > 1:
            raise ValidationError(
                f"Several inventory items are named '{name}'; choose one by inventory_id"
            )
        # Medications that are not stocked stay unlinked and cannot be dispensed here
        return matches[0] if matches else None

    def _build_lines(self, db: Session, medications: List[Dict]) -> List[PrescriptionMedication]:
        if not medications:
            raise ValidationError("A prescription needs at least one medication")
        lines = []
        for med in medications:
            item = self._resolve_inventory(db, med)
            if not (med.get("medication_name") or "").strip() and item is None:
                raise ValidationError("Medication name is required")
            data = {k: med.get(k) for k in LINE_FIELDS}
            if not (data["medication_name"] or "").strip():
                data["medication_name"] = item.name
            for required in ("dosage", "frequency", "duration"):
                if not (data[required] or "").strip():
                    raise ValidationError(f"Medication {required} is required")
            lines.append(PrescriptionMedication(inventory_item=item, **data))
        return lines

    def create_prescription(
        self, db: Session, patient_id: str, diagnosis_id: str, medications: List[Dict],
    ) -> Prescription:
        diagnosis = db.query(Diagnosis).filter(Diagnosis.id == diagnosis_id).first()
        if diagnosis is None:
            raise NotFoundError("Diagnosis", diagnosis_id)
        if diagnosis.patient_id != patient_id:
            raise ValidationError("Diagnosis does not belong to this patient")
        lines = self._build_lines(db, medications)

        with atomic(db):
            prescription = Prescription(patient_id=patient_id, diagnosis_id=diagnosis_id)
            prescription.medications = lines
            db.add(prescription)
        logger.info("Prescription %s written with %d line(s)", prescription.id, len(lines))
        view_cache.revalidate(patient_view(patient_id), PHARMACY_VIEW)
        return self.get_prescription(db, prescription.id)

    def update_prescription(self, db: Session, prescription_id: str, medications: List[Dict]) -> Prescription:
        """Replace the medication lines of a prescription that has not been dispensed from."""
        prescription = self.get_prescription(db, prescription_id)
        if any(line.is_dispensed for line in prescription.medications):
            raise ValidationError("A prescription cannot be changed once medication has been dispensed")
        lines = self._build_lines(db, medications)

        with atomic(db):
            prescription.medications = lines
        view_cache.revalidate(patient_view(prescription.patient_id), PHARMACY_VIEW)
        return self.get_prescription(db, prescription_id)

    def get_prescription(self, db: Session, prescription_id: str) -> Prescription:
        prescription = self._prescription_query(db).filter(Prescription.id == prescription_id).first()
        if prescription is None:
            raise NotFoundError("Prescription", prescription_id)
        return prescription

    def list_prescriptions(
        self, db: Session, patient_id: Optional[str] = None, status: Optional[str] = None,
    ) -> List[Prescription]:
        """Prescriptions, optionally those with a dispensed line (DISPENSED) or an open one (PENDING)."""
        q = self._prescription_query(db)
        if patient_id:
            q = q.filter(Prescription.patient_id == patient_id)
        if status == DispenseStatus.DISPENSED:
            q = q.filter(Prescription.medications.any(PrescriptionMedication.is_dispensed))
        elif status == DispenseStatus.PENDING:
            q = q.filter(Prescription.medications.any(~PrescriptionMedication.is_dispensed))
        elif status:
            raise ValidationError(f"Unknown dispense status: {status}")
        return q.order_by(Prescription.created_at.desc()).all()

    # ------------------------------------------------------------------
    # Dispensing
    # ------------------------------------------------------------------

    def dispense_medication(
        self,
        db: Session,
        patient_id: str,
        pharmacist_id: str,
        medication_id: str,
        quantity: int,
    ) -> MedicationDispense:
        """
        Release ``quantity`` units of a prescribed medication.
        The stock decrement is a guarded UPDATE in the same transaction as the
        dispense insert, so concurrent dispenses can never drive stock negative.
        """
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be a positive number")
        line = (
            db.query(PrescriptionMedication)
            .options(joinedload(PrescriptionMedication.prescription))
            .filter(PrescriptionMedication.id == medication_id)
            .first()
        )
        if line is None:
            raise NotFoundError("Prescribed medication", medication_id)
        if line.prescription.patient_id != patient_id:
            raise ValidationError("Medication was not prescribed to this patient")
        if db.query(User).filter(User.id == pharmacist_id).first() is None:
            raise NotFoundError("Pharmacist", pharmacist_id)
        if line.inventory_id is None:
            raise InsufficientInventoryError(
                f"{line.medication_name} is not stocked in the inventory", available=0, requested=quantity,
            )

        with atomic(db):
            result = db.execute(
                update(MedicationInventory)
                .where(
                    MedicationInventory.id == line.inventory_id,
                    MedicationInventory.quantity >= quantity,
                )
                .values(quantity=MedicationInventory.quantity - quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                available = (
                    db.query(MedicationInventory.quantity)
                    .filter(MedicationInventory.id == line.inventory_id)
                    .scalar()
                )
                raise InsufficientInventoryError(
                    f"Insufficient inventory: {available or 0} available, {quantity} requested",
                    available=available or 0,
                    requested=quantity,
                )
            dispense = MedicationDispense(
                patient_id=patient_id,
                pharmacist_id=pharmacist_id,
                medication_id=medication_id,
                quantity=quantity,
                status=DispenseStatus.DISPENSED,
            )
            db.add(dispense)
        logger.info("Dispensed %d of %s to patient %s", quantity, line.medication_name, patient_id)
        view_cache.revalidate(patient_view(patient_id), PHARMACY_VIEW)
        db.refresh(dispense)
        return dispense

    def confirm_medicine_pickup(self, db: Session, patient_id: str, now: Optional[datetime] = None) -> int:
        """Mark every dispensed, uncollected item of a patient as picked up."""
        with atomic(db):
            result = db.execute(
                update(MedicationDispense)
                .where(
                    MedicationDispense.patient_id == patient_id,
                    MedicationDispense.status == DispenseStatus.DISPENSED,
                    MedicationDispense.picked_up.is_(False),
                )
                .values(picked_up=True, pickup_date=now or datetime.now())
                .execution_options(synchronize_session=False)
            )
            picked_up = result.rowcount
        view_cache.revalidate(patient_view(patient_id), PHARMACY_VIEW)
        return picked_up

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def is_low_stock(self, item: MedicationInventory) -> bool:
        return item.quantity < self.low_stock_threshold

    def list_inventory(
        self, db: Session, query: Optional[str] = None, low_stock: bool = False,
    ) -> List[MedicationInventory]:
        q = db.query(MedicationInventory)
        if query:
            term = f"%{query}%"
            q = q.filter(or_(
                MedicationInventory.name.ilike(term),
                MedicationInventory.category.ilike(term),
            ))
        if low_stock:
            q = q.filter(MedicationInventory.quantity < self.low_stock_threshold)
        return q.order_by(MedicationInventory.updated_at.desc()).all()

    def get_medication(self, db: Session, medication_id: str) -> MedicationInventory:
        item = db.query(MedicationInventory).filter(MedicationInventory.id == medication_id).first()
        if item is None:
            raise NotFoundError("Medication", medication_id)
        return item

    def _validate_stock_fields(self, fields: Dict) -> None:
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Medication name is required")
        if fields.get("quantity") is not None and fields["quantity"] < 0:
            raise ValidationError("Quantity cannot be negative")
        if fields.get("unit_price") is not None and fields["unit_price"] < 0:
            raise ValidationError("Unit price cannot be negative")

    def create_medication(
        self,
        db: Session,
        name: str,
        quantity: int,
        unit: Optional[str] = None,
        unit_price: int = 0,
        category: Optional[str] = None,
        expiry_date: Optional[date] = None,
        supplier: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> MedicationInventory:
        fields = {"name": name, "quantity": quantity, "unit_price": unit_price}
        self._validate_stock_fields(fields)
        with atomic(db):
            item = MedicationInventory(
                name=name.strip(),
                category=category or "Uncategorized",
                quantity=quantity,
                unit=unit,
                unit_price=unit_price,
                expiry_date=expiry_date,
                supplier=supplier,
                notes=notes,
            )
            db.add(item)
        logger.info("Added %s to inventory (%d %s)", item.name, quantity, unit or "units")
        view_cache.revalidate(PHARMACY_VIEW)
        return item

    def update_medication(self, db: Session, medication_id: str, **fields) -> MedicationInventory:
        item = self.get_medication(db, medication_id)
        self._validate_stock_fields(fields)
        with atomic(db):
            for key, value in fields.items():
                if key in INVENTORY_FIELDS:
                    setattr(item, key, value)
        view_cache.revalidate(PHARMACY_VIEW)
        return item

    def delete_medication(self, db: Session, medication_id: str) -> None:
        item = self.get_medication(db, medication_id)
        with atomic(db):
            db.delete(item)
        view_cache.revalidate(PHARMACY_VIEW)

    def adjust_inventory(self, db: Session, medication_id: str, quantity_change: int) -> MedicationInventory:
        """Restock (positive) or write off (negative) units; stock never drops below zero."""
        item = self.get_medication(db, medication_id)
        with atomic(db):
            result = db.execute(
                update(MedicationInventory)
                .where(
                    MedicationInventory.id == medication_id,
                    MedicationInventory.quantity + quantity_change >= 0,
                )
                .values(quantity=MedicationInventory.quantity + quantity_change)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ValidationError("Cannot reduce inventory below zero")
        view_cache.revalidate(PHARMACY_VIEW)
        db.refresh(item)
        return item

    def check_medicine_stock(self, db: Session, medicine_name: str) -> Dict:
        item = (
            db.query(MedicationInventory)
            .filter(MedicationInventory.name.ilike(f"%{medicine_name}%"))
            .order_by(MedicationInventory.name)
            .first()
        )
        if item is None:
            raise NotFoundError("Medication")
        return {
            "medication": item,
            "isLowStock": self.is_low_stock(item),
            "isOutOfStock": item.quantity <= 0,
        }

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_pharmacy_stats(self, db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or datetime.now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        tomorrow = today + timedelta(days=1)
        dispensed_today = db.query(MedicationDispense).filter(
            MedicationDispense.created_at >= today,
            MedicationDispense.created_at < tomorrow,
            MedicationDispense.status == DispenseStatus.DISPENSED,
        )
        return {
            "pendingPrescriptions": (
                db.query(PrescriptionMedication).filter(~PrescriptionMedication.is_dispensed).count()
            ),
            "dispensedToday": dispensed_today.count(),
            "patientsToday": (
                dispensed_today.with_entities(MedicationDispense.patient_id).distinct().count()
            ),
            "lowStockItems": (
                db.query(MedicationInventory)
                .filter(MedicationInventory.quantity < self.low_stock_threshold)
                .count()
            ),
            "totalMedications": db.query(MedicationInventory).count(),
        }

    def get_inventory_stats(self, db: Session, today: Optional[date] = None) -> Dict:
        today = today or date.today()
        items = db.query(MedicationInventory).all()
        by_category = (
            db.query(
                MedicationInventory.category,
                func.count(MedicationInventory.id),
                func.coalesce(func.sum(MedicationInventory.quantity), 0),
            )
            .group_by(MedicationInventory.category)
            .order_by(MedicationInventory.category)
            .all()
        )
        return {
            "totalItems": len(items),
            "totalValue": sum(item.quantity * item.unit_price for item in items),
            "lowStockItems": sum(1 for item in items if self.is_low_stock(item)),
            "expiredItems": sum(1 for item in items if item.expiry_date and item.expiry_date < today),
            "itemsByCategory": [
                {"name": name, "count": count, "quantity": int(quantity)}
                for name, count, quantity in by_category
            ],
        }


pharmacy_service = PharmacyService()

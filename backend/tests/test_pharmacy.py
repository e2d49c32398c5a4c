"""Tests for prescriptions, dispensing and the medication inventory."""
from datetime import date, datetime

import pytest

from medlab.core.errors import InsufficientInventoryError, NotFoundError, ValidationError
from medlab.models.pharmacy import DispenseStatus, MedicationDispense, MedicationInventory
from medlab.services import clinical
from medlab.services.pharmacy import PharmacyService, pharmacy_service


def _line(name="Paracetamol", **extra):
    line = {"medication_name": name, "dosage": "500mg", "frequency": "3x daily", "duration": "5 days"}
    line.update(extra)
    return line


@pytest.fixture()
def diagnosis(db, patient, doctor):
    return clinical.create_diagnosis(db, patient.id, doctor.id, "Headache")


@pytest.fixture()
def stock(make_stock):
    return make_stock(name="Paracetamol", quantity=10, unit_price=200)


@pytest.fixture()
def prescription(db, patient, diagnosis, stock):
    return pharmacy_service.create_prescription(db, patient.id, diagnosis.id, [_line()])


class TestPrescriptions:
    def test_lines_link_to_stock_by_name(self, prescription, stock):
        line = prescription.medications[0]
        assert line.inventory_id == stock.id
        assert line.dispense_status == DispenseStatus.PENDING

    def test_name_match_is_case_insensitive(self, db, patient, diagnosis, stock):
        prescription = pharmacy_service.create_prescription(
            db, patient.id, diagnosis.id, [_line("paracetamol")],
        )
        assert prescription.medications[0].inventory_id == stock.id

    def test_unstocked_medication_stays_unlinked(self, db, patient, diagnosis):
        """A line naming no stocked item is kept without an inventory link."""
        prescription = pharmacy_service.create_prescription(db, patient.id, diagnosis.id, [_line("Rare Drug")])
        assert prescription.medications[0].inventory_id is None

    def test_ambiguous_name_needs_explicit_item(self, db, patient, diagnosis, make_stock):
        """Two items sharing a name cannot be resolved by name alone."""
        make_stock(name="Amoxicillin", category="Antibiotics")
        chosen = make_stock(name="Amoxicillin", category="Paediatric")
        with pytest.raises(ValidationError):
            pharmacy_service.create_prescription(db, patient.id, diagnosis.id, [_line("Amoxicillin")])

        prescription = pharmacy_service.create_prescription(
            db, patient.id, diagnosis.id, [_line("Amoxicillin", inventory_id=chosen.id)],
        )
        assert prescription.medications[0].inventory_id == chosen.id

    def test_unknown_inventory_id(self, db, patient, diagnosis):
        with pytest.raises(NotFoundError):
            pharmacy_service.create_prescription(db, patient.id, diagnosis.id, [_line(inventory_id="missing")])

    def test_line_fields_are_required(self, db, patient, diagnosis):
        with pytest.raises(ValidationError):
            pharmacy_service.create_prescription(db, patient.id, diagnosis.id, [])
        with pytest.raises(ValidationError):
            pharmacy_service.create_prescription(db, patient.id, diagnosis.id, [_line(dosage=" ")])

    def test_diagnosis_must_belong_to_patient(self, db, diagnosis, make_patient):
        other = make_patient(name="John Okello", phone="2")
        with pytest.raises(ValidationError):
            pharmacy_service.create_prescription(db, other.id, diagnosis.id, [_line()])

    def test_update_replaces_lines(self, db, prescription):
        updated = pharmacy_service.update_prescription(
            db, prescription.id, [_line(), _line("Vitamin C", dosage="1 tab")],
        )
        assert sorted(m.medication_name for m in updated.medications) == ["Paracetamol", "Vitamin C"]

    def test_update_refused_after_dispensing(self, db, patient, pharmacist, prescription):
        """Lines are locked once any of them has been dispensed."""
        pharmacy_service.dispense_medication(db, patient.id, pharmacist.id, prescription.medications[0].id, 1)
        with pytest.raises(ValidationError):
            pharmacy_service.update_prescription(db, prescription.id, [_line("Ibuprofen")])

    def test_filter_by_dispense_status(self, db, patient, pharmacist, prescription):
        """DISPENSED and PENDING are derived from dispense rows."""
        assert pharmacy_service.list_prescriptions(db, status=DispenseStatus.DISPENSED) == []
        pharmacy_service.dispense_medication(db, patient.id, pharmacist.id, prescription.medications[0].id, 2)
        assert [p.id for p in pharmacy_service.list_prescriptions(db, status=DispenseStatus.DISPENSED)] == [
            prescription.id
        ]
        assert pharmacy_service.list_prescriptions(db, status=DispenseStatus.PENDING) == []
        with pytest.raises(ValidationError):
            pharmacy_service.list_prescriptions(db, status="SHIPPED")


class TestDispensing:
    def test_dispense_decrements_stock(self, db, patient, pharmacist, prescription, stock):
        line_id = prescription.medications[0].id
        dispense = pharmacy_service.dispense_medication(db, patient.id, pharmacist.id, line_id, 4)

        assert dispense.quantity == 4
        assert dispense.status == DispenseStatus.DISPENSED
        assert pharmacy_service.get_medication(db, stock.id).quantity == 6
        assert pharmacy_service.get_prescription(db, prescription.id).medications[0].is_dispensed

    def test_over_dispense_changes_nothing(self, db, patient, pharmacist, prescription, stock):
        """A failed dispense leaves stock untouched and records no dispense."""
        with pytest.raises(InsufficientInventoryError) as exc_info:
            pharmacy_service.dispense_medication(db, patient.id, pharmacist.id, prescription.medications[0].id, 15)
        assert exc_info.value.available == 10
        assert exc_info.value.requested == 15
        assert pharmacy_service.get_medication(db, stock.id).quantity == 10
        assert db.query(MedicationDispense).count() == 0

    def test_exact_stock_can_be_dispensed(self, db, patient, pharmacist, prescription, stock):
        """Dispensing the full remaining quantity empties the shelf."""
        pharmacy_service.dispense_medication(db, patient.id, pharmacist.id, prescription.medications[0].id, 10)
        assert pharmacy_service.get_medication(db, stock.id).quantity == 0
        with pytest.raises(InsufficientInventoryError):
            pharmacy_service.dispense_medication(db, patient.id, pharmacist.id, prescription.medications[0].id, 1)

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_quantity_must_be_positive(self, db, patient, pharmacist, prescription, quantity):
        with pytest.raises(ValidationError):
            pharmacy_service.dispense_medication(
                db, patient.id, pharmacist.id, prescription.medications[0].id, quantity,
            )

    def test_unlinked_line_cannot_be_dispensed(self, db, patient, diagnosis, pharmacist):
        """Lines without an inventory link have no stock to draw from."""
        prescription = pharmacy_service.create_prescription(db, patient.id, diagnosis.id, [_line("Rare Drug")])
        with pytest.raises(InsufficientInventoryError):
            pharmacy_service.dispense_medication(db, patient.id, pharmacist.id, prescription.medications[0].id, 1)

    def test_wrong_patient(self, db, pharmacist, prescription, make_patient):
        other = make_patient(name="John Okello", phone="2")
        with pytest.raises(ValidationError):
            pharmacy_service.dispense_medication(db, other.id, pharmacist.id, prescription.medications[0].id, 1)

    def test_pickup_marks_every_uncollected_dispense(self, db, patient, pharmacist, prescription):
        """Pickup collects everything outstanding, and only once."""
        line_id = prescription.medications[0].id
        pharmacy_service.dispense_medication(db, patient.id, pharmacist.id, line_id, 1)
        pharmacy_service.dispense_medication(db, patient.id, pharmacist.id, line_id, 2)

        when = datetime(2025, 5, 1, 14, 0)
        assert pharmacy_service.confirm_medicine_pickup(db, patient.id, now=when) == 2
        assert pharmacy_service.confirm_medicine_pickup(db, patient.id) == 0
        picked = db.query(MedicationDispense).all()
        assert all(d.picked_up and d.pickup_date == when for d in picked)


class TestInventory:
    def test_create_defaults_category(self, db):
        item = pharmacy_service.create_medication(db, " Ibuprofen ", 50, unit="tablets", unit_price=150)
        assert item.name == "Ibuprofen"
        assert item.category == "Uncategorized"

    def test_create_rejects_negative_values(self, db):
        with pytest.raises(ValidationError):
            pharmacy_service.create_medication(db, "Ibuprofen", -1)
        with pytest.raises(ValidationError):
            pharmacy_service.create_medication(db, "Ibuprofen", 1, unit_price=-5)
        assert db.query(MedicationInventory).count() == 0

    def test_adjust(self, db, stock):
        """Adjustments never take stock below zero."""
        assert pharmacy_service.adjust_inventory(db, stock.id, 15).quantity == 25
        assert pharmacy_service.adjust_inventory(db, stock.id, -25).quantity == 0
        with pytest.raises(ValidationError):
            pharmacy_service.adjust_inventory(db, stock.id, -1)
        assert pharmacy_service.get_medication(db, stock.id).quantity == 0

    def test_update_and_delete(self, db, stock):
        updated = pharmacy_service.update_medication(db, stock.id, supplier="Quality Chemicals", quantity=30)
        assert updated.supplier == "Quality Chemicals"
        assert updated.quantity == 30
        pharmacy_service.delete_medication(db, stock.id)
        with pytest.raises(NotFoundError):
            pharmacy_service.get_medication(db, stock.id)

    def test_low_stock_filter_uses_threshold(self, db, make_stock):
        """Low stock follows the threshold the service was built with."""
        make_stock(name="Paracetamol", quantity=3)
        make_stock(name="Ibuprofen", quantity=40)
        service = PharmacyService(low_stock_threshold=5)
        assert [i.name for i in service.list_inventory(db, low_stock=True)] == ["Paracetamol"]
        assert [i.name for i in service.list_inventory(db, query="ibu")] == ["Ibuprofen"]

    def test_check_stock(self, db, make_stock):
        make_stock(name="Amoxicillin 250mg", quantity=0)
        status = pharmacy_service.check_medicine_stock(db, "amoxicillin")
        assert status["isOutOfStock"]
        assert status["isLowStock"]
        with pytest.raises(NotFoundError):
            pharmacy_service.check_medicine_stock(db, "Quinine")


class TestPharmacyStats:
    def test_pharmacy_stats(self, db, patient, pharmacist, prescription, make_stock):
        make_stock(name="Ibuprofen", quantity=100)
        pharmacy_service.dispense_medication(db, patient.id, pharmacist.id, prescription.medications[0].id, 2)

        stats = PharmacyService(low_stock_threshold=20).get_pharmacy_stats(db)
        assert stats == {
            "pendingPrescriptions": 0,
            "dispensedToday": 1,
            "patientsToday": 1,
            "lowStockItems": 1,
            "totalMedications": 2,
        }

    def test_inventory_stats(self, db, make_stock):
        make_stock(name="Paracetamol", quantity=10, unit_price=200, category="Analgesics")
        make_stock(
            name="Amoxicillin", quantity=30, unit_price=500, category="Antibiotics",
            expiry_date=date(2024, 12, 31),
        )
        stats = PharmacyService(low_stock_threshold=20).get_inventory_stats(db, today=date(2025, 1, 1))
        assert stats["totalItems"] == 2
        assert stats["totalValue"] == 10 * 200 + 30 * 500
        assert stats["lowStockItems"] == 1
        assert stats["expiredItems"] == 1
        assert stats["itemsByCategory"] == [
            {"name": "Analgesics", "count": 1, "quantity": 10},
            {"name": "Antibiotics", "count": 1, "quantity": 30},
        ]

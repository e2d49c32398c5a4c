"""Tests for the patient registry service."""
from datetime import date, datetime, timedelta

import pytest

from medlab.core.cache import PATIENTS_VIEW, patient_view, view_cache
from medlab.core.errors import NotFoundError, ValidationError
from medlab.models.appointment import Appointment
from medlab.models.billing import Payment
from medlab.models.clinical import Diagnosis, TestRequest, TestResult
from medlab.models.patient import Patient
from medlab.models.user import UserRole
from medlab.services import appointments, clinical, patients
from medlab.services.billing import billing_service


class TestRegistration:
    def test_create_patient_strips_and_persists(self, db, doctor):
        """Surrounding whitespace is trimmed before saving."""
        patient = patients.create_patient(
            db, name="  Jane Doe ", phone=" +256 700 111222 ", gender="FEMALE",
            date_of_birth=date(1990, 4, 2), doctor_id=doctor.id,
        )
        assert patient.id
        assert patient.name == "Jane Doe"
        assert patient.phone == "+256 700 111222"
        assert patient.doctor.name == doctor.name

    @pytest.mark.parametrize("missing", ["name", "phone"])
    def test_name_and_phone_are_required(self, db, missing):
        fields = {"name": "Jane Doe", "phone": "0700111222"}
        fields[missing] = "   "
        with pytest.raises(ValidationError):
            patients.create_patient(db, **fields)
        assert db.query(Patient).count() == 0

    def test_assigned_doctor_must_be_a_doctor(self, db, make_user):
        cashier = make_user(UserRole.CASHIER)
        with pytest.raises(ValidationError):
            patients.create_patient(db, name="Jane Doe", phone="0700", doctor_id=cashier.id)

    def test_unknown_doctor(self, db):
        with pytest.raises(NotFoundError):
            patients.create_patient(db, name="Jane Doe", phone="0700", doctor_id="missing")

    def test_mutation_invalidates_list_view(self, db):
        """Registering a patient bumps the patient list view."""
        before = view_cache.version(PATIENTS_VIEW)
        patients.create_patient(db, name="Jane Doe", phone="0700")
        assert view_cache.version(PATIENTS_VIEW) == before + 1


class TestSearchAndUpdate:
    def test_search_matches_name_email_and_phone(self, db, make_patient):
        make_patient(name="Jane Doe", phone="0700111", email="jane@example.com")
        make_patient(name="John Okello", phone="0772999")

        assert [p.name for p in patients.list_patients(db, "jane")] == ["Jane Doe"]
        assert [p.name for p in patients.list_patients(db, "0772")] == ["John Okello"]
        assert [p.name for p in patients.list_patients(db, "example.com")] == ["Jane Doe"]
        assert len(patients.list_patients(db)) == 2

    def test_update_rejects_blank_required_field(self, db, patient):
        with pytest.raises(ValidationError):
            patients.update_patient(db, patient.id, phone="")

    def test_update_and_assign_doctor(self, db, patient, doctor):
        updated = patients.update_patient(db, patient.id, address="Kampala")
        assert updated.address == "Kampala"
        assigned = patients.assign_doctor(db, patient.id, doctor.id)
        assert assigned.doctor_id == doctor.id

    def test_update_missing_patient(self, db):
        with pytest.raises(NotFoundError):
            patients.update_patient(db, "missing", name="X")


class TestPatientRecord:
    def test_record_aggregates_related_entities(self, db, patient, doctor, technician):
        """The record view carries every related entity, newest first."""
        appointments.create_appointment(db, patient.id, doctor.id, datetime(2025, 1, 10, 9))
        latest = appointments.create_appointment(db, patient.id, doctor.id, datetime(2025, 2, 10, 9))
        diagnosis = clinical.create_diagnosis(db, patient.id, doctor.id, "Malaria", test_requests=["Blood smear"])
        clinical.record_test_result(
            db, diagnosis.test_requests[0].id, patient.id, technician.id, "Positive for P. falciparum",
        )

        record = patients.get_patient(db, patient.id)
        assert [a.id for a in record.appointments][0] == latest.id
        assert patients.latest_appointment(record).id == latest.id
        assert record.diagnoses[0].summary == "Malaria"
        assert record.test_results[0].result.startswith("Positive")

    def test_missing_patient(self, db):
        with pytest.raises(NotFoundError):
            patients.get_patient(db, "missing")


class TestDeletion:
    def test_delete_cascades_to_dependents(self, db, patient, doctor, technician):
        """Deleting a patient removes all dependent clinical and billing rows."""
        appointments.create_appointment(db, patient.id, doctor.id, datetime(2025, 1, 10, 9))
        diagnosis = clinical.create_diagnosis(db, patient.id, doctor.id, "Anaemia", test_requests=["CBC"])
        clinical.record_test_result(db, diagnosis.test_requests[0].id, patient.id, technician.id, "Hb low")
        billing_service.process_payment(db, patient.id, 50000, "CASH")

        assert patient_view(patient.id) in view_cache.snapshot()
        lists_before = view_cache.version(PATIENTS_VIEW)
        patients.delete_patient(db, patient.id)

        assert db.query(Patient).count() == 0
        assert db.query(Appointment).count() == 0
        assert db.query(Diagnosis).count() == 0
        assert db.query(TestRequest).count() == 0
        assert db.query(TestResult).count() == 0
        assert db.query(Payment).count() == 0
        # the deleted record's view counter is dropped, the list view moves
        assert patient_view(patient.id) not in view_cache.snapshot()
        assert view_cache.version(PATIENTS_VIEW) == lists_before + 1

    def test_delete_missing_patient(self, db):
        with pytest.raises(NotFoundError):
            patients.delete_patient(db, "missing")


class TestPatientStats:
    def test_counts_relative_to_now(self, db, make_patient, doctor):
        """Stats windows are computed from the supplied clock."""
        now = datetime(2025, 3, 12, 15, 0)
        old = make_patient(name="Old Patient", phone="1")
        old.created_at = now - timedelta(days=30)
        db.commit()
        fresh = make_patient(name="New Patient", phone="2")
        fresh.created_at = now - timedelta(days=2)
        db.commit()

        appointments.create_appointment(db, fresh.id, doctor.id, datetime(2025, 3, 12, 0, 0))
        appointments.create_appointment(db, fresh.id, doctor.id, datetime(2025, 3, 12, 23, 59))
        appointments.create_appointment(db, old.id, doctor.id, datetime(2025, 3, 13, 0, 0))

        stats = patients.get_patient_stats(db, now)
        assert stats == {
            "totalPatients": 2,
            "todayAppointments": 2,
            "newPatientsThisWeek": 1,
            "pendingAppointments": 3,
        }

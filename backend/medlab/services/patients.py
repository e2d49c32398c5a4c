"""Patient registry: registration, search, the patient record aggregate, and deletion."""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ..core.cache import PATIENTS_VIEW, patient_view, view_cache
from ..core.errors import NotFoundError, ValidationError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.base import atomic
from ..models.clinical import Diagnosis, TestRequest, TestResult
from ..models.patient import Patient
from ..models.pharmacy import Prescription, PrescriptionMedication
from ..models.billing import Payment
from ..models.referral import Referral
from ..models.user import User, UserRole

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "phone")
UPDATABLE_FIELDS = (
    "name", "email", "phone", "address", "date_of_birth", "gender", "blood_group", "doctor_id",
)


def _check_required(fields: Dict) -> None:
    missing = [f for f in REQUIRED_FIELDS if not (fields.get(f) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def _check_doctor(db: Session, doctor_id: Optional[str]) -> None:
    if not doctor_id:
        return
    doctor = db.query(User).filter(User.id == doctor_id).first()
    if doctor is None:
        raise NotFoundError("Doctor", doctor_id)
    if doctor.role != UserRole.DOCTOR:
        raise ValidationError("Assigned user is not a doctor")


def list_patients(db: Session, query: Optional[str] = None) -> List[Patient]:
    """All patients, or those whose name, email or phone contains ``query``."""
    q = db.query(Patient).options(
        selectinload(Patient.doctor),
        selectinload(Patient.appointments),
    )
    if query:
        term = f"%{query}%"
        q = q.filter(or_(
            Patient.name.ilike(term),
            Patient.email.ilike(term),
            Patient.phone.ilike(term),
        ))
    return q.order_by(Patient.updated_at.desc()).all()


def latest_appointment(patient: Patient) -> Optional[Appointment]:
    return patient.last_appointment


def get_patient(db: Session, patient_id: str) -> Patient:
    """The full patient record with every related collection, newest first."""
    patient = (
        db.query(Patient)
        .options(
            selectinload(Patient.doctor),
            selectinload(Patient.appointments).selectinload(Appointment.doctor),
            selectinload(Patient.diagnoses).selectinload(Diagnosis.doctor),
            selectinload(Patient.diagnoses)
            .selectinload(Diagnosis.test_requests)
            .selectinload(TestRequest.test_result),
            selectinload(Patient.diagnoses)
            .selectinload(Diagnosis.prescriptions)
            .selectinload(Prescription.medications),
            selectinload(Patient.test_results).selectinload(TestResult.technician),
            selectinload(Patient.test_results).selectinload(TestResult.test_request),
            selectinload(Patient.prescriptions)
            .selectinload(Prescription.medications)
            .selectinload(PrescriptionMedication.dispenses),
            selectinload(Patient.payments).selectinload(Payment.cashier),
            selectinload(Patient.referrals).selectinload(Referral.referring_doctor),
            selectinload(Patient.referrals).selectinload(Referral.specialist),
        )
        .filter(Patient.id == patient_id)
        .first()
    )
    if patient is None:
        raise NotFoundError("Patient", patient_id)
    return patient


def create_patient(db: Session, **fields) -> Patient:
    _check_required(fields)
    _check_doctor(db, fields.get("doctor_id"))
    data = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
    data["name"] = data["name"].strip()
    data["phone"] = data["phone"].strip()
    with atomic(db):
        patient = Patient(**data)
        db.add(patient)
    db.refresh(patient)
    logger.info("Registered patient %s", patient.id)
    view_cache.revalidate(PATIENTS_VIEW)
    return patient


def update_patient(db: Session, patient_id: str, **fields) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if patient is None:
        raise NotFoundError("Patient", patient_id)
    for required in REQUIRED_FIELDS:
        if required in fields and not (fields[required] or "").strip():
            raise ValidationError(f"{required} cannot be blank")
    if "doctor_id" in fields:
        _check_doctor(db, fields["doctor_id"])

    with atomic(db):
        for key, value in fields.items():
            if key in UPDATABLE_FIELDS:
                setattr(patient, key, value)
    db.refresh(patient)
    view_cache.revalidate(patient_view(patient_id), PATIENTS_VIEW)
    return patient


def assign_doctor(db: Session, patient_id: str, doctor_id: str) -> Patient:
    return update_patient(db, patient_id, doctor_id=doctor_id)


def delete_patient(db: Session, patient_id: str) -> None:
    """Hard delete; every dependent record goes with the patient."""
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if patient is None:
        raise NotFoundError("Patient", patient_id)
    with atomic(db):
        db.delete(patient)
    logger.info("Deleted patient %s", patient_id)
    view_cache.revalidate(PATIENTS_VIEW)
    view_cache.forget(patient_view(patient_id))


def get_patient_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or datetime.now()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + timedelta(days=1)
    one_week_ago = today - timedelta(days=7)

    return {
        "totalPatients": db.query(Patient).count(),
        "todayAppointments": (
            db.query(Appointment)
            .filter(Appointment.date >= today, Appointment.date < tomorrow)
            .count()
        ),
        "newPatientsThisWeek": db.query(Patient).filter(Patient.created_at >= one_week_ago).count(),
        "pendingAppointments": (
            db.query(Appointment)
            .filter(Appointment.status == AppointmentStatus.SCHEDULED)
            .count()
        ),
    }

"""Appointment lifecycle. Slots are not checked for conflicts: a doctor may be double-booked."""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, aliased, joinedload

from ..core.cache import APPOINTMENTS_VIEW, patient_view, view_cache
from ..core.errors import NotFoundError, ValidationError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.base import atomic
from ..models.patient import Patient
from ..models.user import User
from .workflow import APPOINTMENT_TRANSITIONS, ensure_transition

logger = logging.getLogger(__name__)

WEEKDAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def week_start(now: datetime) -> datetime:
    """Local midnight of the most recent Sunday (today, if today is Sunday)."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    days_since_sunday = (midnight.weekday() + 1) % 7
    return midnight - timedelta(days=days_since_sunday)


def _load(db: Session, appointment_id: str) -> Appointment:
    appointment = (
        db.query(Appointment)
        .options(joinedload(Appointment.patient), joinedload(Appointment.doctor))
        .filter(Appointment.id == appointment_id)
        .first()
    )
    if appointment is None:
        raise NotFoundError("Appointment", appointment_id)
    return appointment


def get_appointment(db: Session, appointment_id: str) -> Appointment:
    return _load(db, appointment_id)


def list_appointments(
    db: Session, query: Optional[str] = None, status: Optional[str] = None,
) -> List[Appointment]:
    doctor = aliased(User)
    q = (
        db.query(Appointment)
        .join(Appointment.patient)
        .join(Appointment.doctor.of_type(doctor))
        .options(joinedload(Appointment.patient), joinedload(Appointment.doctor))
    )
    if query:
        term = f"%{query}%"
        q = q.filter(or_(Patient.name.ilike(term), doctor.name.ilike(term)))
    if status:
        q = q.filter(Appointment.status == status)
    return q.order_by(Appointment.date.desc()).all()


def create_appointment(
    db: Session,
    patient_id: str,
    doctor_id: str,
    date: datetime,
    notes: Optional[str] = None,
) -> Appointment:
    if db.query(Patient).filter(Patient.id == patient_id).first() is None:
        raise NotFoundError("Patient", patient_id)
    if db.query(User).filter(User.id == doctor_id).first() is None:
        raise NotFoundError("Doctor", doctor_id)
    if date is None:
        raise ValidationError("Appointment date is required")

    with atomic(db):
        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            date=date,
            notes=notes,
            status=AppointmentStatus.SCHEDULED,
        )
        db.add(appointment)
    logger.info("Scheduled appointment %s for patient %s", appointment.id, patient_id)
    view_cache.revalidate(APPOINTMENTS_VIEW, patient_view(patient_id))
    return _load(db, appointment.id)


def update_appointment(
    db: Session,
    appointment_id: str,
    date: Optional[datetime] = None,
    notes: Optional[str] = None,
    status: Optional[str] = None,
) -> Appointment:
    appointment = _load(db, appointment_id)
    if status is not None:
        ensure_transition("appointment", APPOINTMENT_TRANSITIONS, appointment.status, status)

    with atomic(db):
        if date is not None:
            appointment.date = date
        if notes is not None:
            appointment.notes = notes
        if status is not None:
            appointment.status = status
    view_cache.revalidate(APPOINTMENTS_VIEW, patient_view(appointment.patient_id))
    return _load(db, appointment_id)


def delete_appointment(db: Session, appointment_id: str) -> None:
    appointment = _load(db, appointment_id)
    patient_id = appointment.patient_id
    with atomic(db):
        db.delete(appointment)
    view_cache.revalidate(APPOINTMENTS_VIEW, patient_view(patient_id))


def get_weekly_appointment_stats(db: Session, now: Optional[datetime] = None) -> List[Dict]:
    """Current week's appointments per calendar day, Sunday first, zero-filled."""
    start = week_start(now or datetime.now())
    end = start + timedelta(days=7)

    rows = (
        db.query(Appointment.date, Appointment.status)
        .filter(Appointment.date >= start, Appointment.date < end)
        .all()
    )
    week = [{"day": label, "scheduled": 0, "completed": 0} for label in WEEKDAY_LABELS]
    for date, status in rows:
        index = (date.weekday() + 1) % 7
        week[index]["scheduled"] += 1
        if status == AppointmentStatus.COMPLETED:
            week[index]["completed"] += 1
    return week

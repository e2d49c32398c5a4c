import logging
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from ..core.cache import REFERRALS_VIEW, patient_view, view_cache
from ..core.errors import NotFoundError, ValidationError
from ..models.base import atomic
from ..models.patient import Patient
from ..models.referral import Referral, ReferralStatus
from ..models.user import User, UserRole
from .workflow import REFERRAL_TRANSITIONS, ensure_transition

logger = logging.getLogger(__name__)


def _query(db: Session):
    return db.query(Referral).options(
        joinedload(Referral.patient),
        joinedload(Referral.referring_doctor),
        joinedload(Referral.specialist),
    )


def get_referral(db: Session, referral_id: str) -> Referral:
    referral = _query(db).filter(Referral.id == referral_id).first()
    if referral is None:
        raise NotFoundError("Referral", referral_id)
    return referral


def refer_to_specialist(
    db: Session,
    patient_id: str,
    referring_doctor_id: str,
    specialist_id: str,
    reason: str,
    notes: Optional[str] = None,
) -> Referral:
    if not (reason or "").strip():
        raise ValidationError("Referral reason is required")
    if referring_doctor_id == specialist_id:
        raise ValidationError("A doctor cannot refer a patient to themselves")
    if db.query(Patient).filter(Patient.id == patient_id).first() is None:
        raise NotFoundError("Patient", patient_id)
    if db.query(User).filter(User.id == referring_doctor_id).first() is None:
        raise NotFoundError("Referring doctor", referring_doctor_id)
    specialist = db.query(User).filter(User.id == specialist_id).first()
    if specialist is None:
        raise NotFoundError("Specialist", specialist_id)
    if specialist.role != UserRole.DOCTOR:
        raise ValidationError("Patients can only be referred to doctors")

    with atomic(db):
        referral = Referral(
            patient_id=patient_id,
            referring_doctor_id=referring_doctor_id,
            specialist_id=specialist_id,
            reason=reason.strip(),
            notes=notes,
            status=ReferralStatus.PENDING,
        )
        db.add(referral)
    logger.info("Patient %s referred to %s", patient_id, specialist.name)
    view_cache.revalidate(REFERRALS_VIEW, patient_view(patient_id))
    return get_referral(db, referral.id)


def list_referrals(
    db: Session, patient_id: Optional[str] = None, status: Optional[str] = None,
) -> List[Referral]:
    q = _query(db)
    if patient_id:
        q = q.filter(Referral.patient_id == patient_id)
    if status:
        q = q.filter(Referral.status == status)
    return q.order_by(Referral.created_at.desc()).all()


def update_referral_status(db: Session, referral_id: str, status: str) -> Referral:
    referral = get_referral(db, referral_id)
    ensure_transition("referral", REFERRAL_TRANSITIONS, referral.status, status)
    with atomic(db):
        referral.status = status
    view_cache.revalidate(REFERRALS_VIEW, patient_view(referral.patient_id))
    return get_referral(db, referral_id)

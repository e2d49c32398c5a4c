from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..core.permissions import PERM_MANAGE_REFERRALS
from ..core.security import require_permission
from ..models.base import get_db
from ..models.user import User
from ..services import referrals as referral_service
from .schemas import ReferralDetail

router = APIRouter(prefix="/referrals", tags=["referrals"])


class ReferralCreate(BaseModel):
    patient_id: str
    specialist_id: str
    reason: str
    notes: Optional[str] = None


class ReferralStatusUpdate(BaseModel):
    status: str


@router.post("/", status_code=status.HTTP_201_CREATED)
def refer_to_specialist(
    body: ReferralCreate,
    db: Session = Depends(get_db),
    doctor: User = Depends(require_permission(PERM_MANAGE_REFERRALS)),
):
    referral = referral_service.refer_to_specialist(
        db, body.patient_id, doctor.id, body.specialist_id, body.reason, body.notes,
    )
    return {"success": True, "referral": ReferralDetail.model_validate(referral)}


@router.get("/")
def list_referrals(
    patient_id: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _doctor=Depends(require_permission(PERM_MANAGE_REFERRALS)),
):
    referrals = referral_service.list_referrals(db, patient_id, status)
    return {"referrals": [ReferralDetail.model_validate(r) for r in referrals]}


@router.put("/{referral_id}/status")
def update_referral_status(
    referral_id: str,
    body: ReferralStatusUpdate,
    db: Session = Depends(get_db),
    _doctor=Depends(require_permission(PERM_MANAGE_REFERRALS)),
):
    referral = referral_service.update_referral_status(db, referral_id, body.status)
    return {"success": True, "referral": ReferralDetail.model_validate(referral)}

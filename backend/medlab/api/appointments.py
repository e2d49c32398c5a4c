from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..core.permissions import PERM_MANAGE_APPOINTMENTS, PERM_VIEW_DASHBOARD
from ..core.security import require_permission
from ..models.base import get_db
from ..services import appointments as appointment_service
from .schemas import AppointmentDetail

router = APIRouter(prefix="/appointments", tags=["appointments"])


class AppointmentCreate(BaseModel):
    patient_id: str
    doctor_id: str
    date: datetime
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    date: Optional[datetime] = None
    notes: Optional[str] = None
    status: Optional[str] = None


@router.get("/")
def list_appointments(
    q: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_APPOINTMENTS)),
):
    appointments = appointment_service.list_appointments(db, q, status)
    return {"appointments": [AppointmentDetail.model_validate(a) for a in appointments]}


@router.get("/weekly")
def weekly_stats(
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    """This week's scheduled vs completed appointments, Sunday first."""
    return {"appointmentData": appointment_service.get_weekly_appointment_stats(db)}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_appointment(
    body: AppointmentCreate,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_APPOINTMENTS)),
):
    appointment = appointment_service.create_appointment(
        db, body.patient_id, body.doctor_id, body.date, body.notes,
    )
    return {"success": True, "appointment": AppointmentDetail.model_validate(appointment)}


@router.get("/{appointment_id}")
def get_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_APPOINTMENTS)),
):
    appointment = appointment_service.get_appointment(db, appointment_id)
    return {"success": True, "appointment": AppointmentDetail.model_validate(appointment)}


@router.put("/{appointment_id}")
def update_appointment(
    appointment_id: str,
    body: AppointmentUpdate,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_APPOINTMENTS)),
):
    appointment = appointment_service.update_appointment(
        db, appointment_id, date=body.date, notes=body.notes, status=body.status,
    )
    return {"success": True, "appointment": AppointmentDetail.model_validate(appointment)}


@router.delete("/{appointment_id}")
def delete_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_APPOINTMENTS)),
):
    appointment_service.delete_appointment(db, appointment_id)
    return {"success": True}

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..core.permissions import PERM_DELETE_PATIENTS, PERM_MANAGE_PATIENTS, PERM_VIEW_PATIENTS
from ..core.security import require_permission
from ..models.base import get_db
from ..services import patients as patient_service
from .schemas import PatientDetail, PatientSummary

router = APIRouter(prefix="/patients", tags=["patients"])


class PatientCreate(BaseModel):
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    doctor_id: Optional[str] = None


class PatientUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    doctor_id: Optional[str] = None


class DoctorAssignment(BaseModel):
    doctor_id: str


@router.get("/")
def list_patients(
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_PATIENTS)),
):
    """All patients, or a search by name, email or phone."""
    patients = patient_service.list_patients(db, q)
    return {"patients": [PatientSummary.model_validate(p) for p in patients]}


@router.get("/stats")
def patient_stats(
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_PATIENTS)),
):
    return {"success": True, "stats": patient_service.get_patient_stats(db)}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_patient(
    body: PatientCreate,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_PATIENTS)),
):
    patient = patient_service.create_patient(db, **body.model_dump())
    return {"success": True, "patient": PatientSummary.model_validate(patient)}


@router.get("/{patient_id}")
def get_patient(
    patient_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_PATIENTS)),
):
    """The full record: appointments, diagnoses, results, prescriptions, payments, referrals."""
    patient = patient_service.get_patient(db, patient_id)
    return {"success": True, "patient": PatientDetail.model_validate(patient)}


@router.put("/{patient_id}")
def update_patient(
    patient_id: str,
    body: PatientUpdate,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_PATIENTS)),
):
    patient = patient_service.update_patient(db, patient_id, **body.model_dump(exclude_unset=True))
    return {"success": True, "patient": PatientSummary.model_validate(patient)}


@router.put("/{patient_id}/doctor")
def assign_doctor(
    patient_id: str,
    body: DoctorAssignment,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_PATIENTS)),
):
    patient = patient_service.assign_doctor(db, patient_id, body.doctor_id)
    return {"success": True, "patient": PatientSummary.model_validate(patient)}


@router.delete("/{patient_id}")
def delete_patient(
    patient_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_DELETE_PATIENTS)),
):
    patient_service.delete_patient(db, patient_id)
    return {"success": True}

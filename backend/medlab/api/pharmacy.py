"""Prescriptions, dispensing and the medication inventory."""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..core.permissions import (
    PERM_DISPENSE,
    PERM_MANAGE_INVENTORY,
    PERM_PRESCRIBE,
    PERM_VIEW_PRESCRIPTIONS,
)
from ..core.security import require_permission
from ..models.base import get_db
from ..models.user import User
from ..services.pharmacy import pharmacy_service
from .schemas import DispenseResponse, InventoryResponse, PrescriptionDetail

router = APIRouter(prefix="/pharmacy", tags=["pharmacy"])


# ── Request schemas ──────────────────────────────────────────────────────────

class MedicationLine(BaseModel):
    medication_name: Optional[str] = None
    inventory_id: Optional[str] = None
    dosage: str
    frequency: str
    duration: str
    notes: Optional[str] = None


class PrescriptionCreate(BaseModel):
    patient_id: str
    diagnosis_id: str
    medications: List[MedicationLine]


class PrescriptionUpdate(BaseModel):
    medications: List[MedicationLine]


class DispenseRequest(BaseModel):
    patient_id: str
    medication_id: str
    quantity: int


class MedicationCreate(BaseModel):
    name: str
    quantity: int
    unit: Optional[str] = None
    unit_price: int = 0
    category: Optional[str] = None
    expiry_date: Optional[date] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None


class MedicationUpdate(BaseModel):
    name: Optional[str] = None
    quantity: Optional[int] = None
    unit: Optional[str] = None
    unit_price: Optional[int] = None
    category: Optional[str] = None
    expiry_date: Optional[date] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None


class InventoryAdjustment(BaseModel):
    quantity_change: int


# ── Prescriptions ────────────────────────────────────────────────────────────

@router.post("/prescriptions", status_code=status.HTTP_201_CREATED)
def create_prescription(
    body: PrescriptionCreate,
    db: Session = Depends(get_db),
    _doctor=Depends(require_permission(PERM_PRESCRIBE)),
):
    prescription = pharmacy_service.create_prescription(
        db, body.patient_id, body.diagnosis_id, [m.model_dump() for m in body.medications],
    )
    return {"success": True, "prescription": PrescriptionDetail.model_validate(prescription)}


@router.get("/prescriptions")
def list_prescriptions(
    patient_id: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_PRESCRIPTIONS)),
):
    """Prescriptions, filtered by DISPENSED / PENDING dispense status."""
    prescriptions = pharmacy_service.list_prescriptions(db, patient_id, status)
    return {"prescriptions": [PrescriptionDetail.model_validate(p) for p in prescriptions]}


@router.get("/prescriptions/{prescription_id}")
def get_prescription(
    prescription_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_PRESCRIPTIONS)),
):
    prescription = pharmacy_service.get_prescription(db, prescription_id)
    return {"success": True, "prescription": PrescriptionDetail.model_validate(prescription)}


@router.put("/prescriptions/{prescription_id}")
def update_prescription(
    prescription_id: str,
    body: PrescriptionUpdate,
    db: Session = Depends(get_db),
    _doctor=Depends(require_permission(PERM_PRESCRIBE)),
):
    prescription = pharmacy_service.update_prescription(
        db, prescription_id, [m.model_dump() for m in body.medications],
    )
    return {"success": True, "prescription": PrescriptionDetail.model_validate(prescription)}


# ── Dispensing ───────────────────────────────────────────────────────────────

@router.post("/dispense", status_code=status.HTTP_201_CREATED)
def dispense_medication(
    body: DispenseRequest,
    db: Session = Depends(get_db),
    pharmacist: User = Depends(require_permission(PERM_DISPENSE)),
):
    dispense = pharmacy_service.dispense_medication(
        db, body.patient_id, pharmacist.id, body.medication_id, body.quantity,
    )
    return {"success": True, "dispense": DispenseResponse.model_validate(dispense)}


@router.post("/pickup/{patient_id}")
def confirm_pickup(
    patient_id: str,
    db: Session = Depends(get_db),
    _pharmacist=Depends(require_permission(PERM_DISPENSE)),
):
    picked_up = pharmacy_service.confirm_medicine_pickup(db, patient_id)
    return {"success": True, "pickedUp": picked_up}


@router.get("/stats")
def pharmacy_stats(
    db: Session = Depends(get_db),
    _pharmacist=Depends(require_permission(PERM_DISPENSE)),
):
    return {"success": True, "stats": pharmacy_service.get_pharmacy_stats(db)}


# ── Inventory ────────────────────────────────────────────────────────────────

@router.get("/stock")
def check_stock(
    name: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_PRESCRIPTIONS)),
):
    stock = pharmacy_service.check_medicine_stock(db, name)
    return {
        "success": True,
        "medication": InventoryResponse.model_validate(stock["medication"]),
        "isLowStock": stock["isLowStock"],
        "isOutOfStock": stock["isOutOfStock"],
    }


@router.get("/inventory")
def list_inventory(
    q: Optional[str] = None,
    low_stock: bool = False,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_PRESCRIPTIONS)),
):
    items = pharmacy_service.list_inventory(db, q, low_stock)
    return {"inventory": [InventoryResponse.model_validate(i) for i in items]}


@router.get("/inventory/stats")
def inventory_stats(
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_INVENTORY)),
):
    return {"success": True, "stats": pharmacy_service.get_inventory_stats(db)}


@router.post("/inventory", status_code=status.HTTP_201_CREATED)
def create_medication(
    body: MedicationCreate,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_INVENTORY)),
):
    item = pharmacy_service.create_medication(db, **body.model_dump())
    return {"success": True, "medication": InventoryResponse.model_validate(item)}


@router.get("/inventory/{medication_id}")
def get_medication(
    medication_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_PRESCRIPTIONS)),
):
    item = pharmacy_service.get_medication(db, medication_id)
    return {"success": True, "medication": InventoryResponse.model_validate(item)}


@router.put("/inventory/{medication_id}")
def update_medication(
    medication_id: str,
    body: MedicationUpdate,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_INVENTORY)),
):
    item = pharmacy_service.update_medication(db, medication_id, **body.model_dump(exclude_unset=True))
    return {"success": True, "medication": InventoryResponse.model_validate(item)}


@router.post("/inventory/{medication_id}/adjust")
def adjust_inventory(
    medication_id: str,
    body: InventoryAdjustment,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_INVENTORY)),
):
    item = pharmacy_service.adjust_inventory(db, medication_id, body.quantity_change)
    return {"success": True, "medication": InventoryResponse.model_validate(item)}


@router.delete("/inventory/{medication_id}")
def delete_medication(
    medication_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_INVENTORY)),
):
    pharmacy_service.delete_medication(db, medication_id)
    return {"success": True}

"""Data for the printable receipt, prescription and lab report (camelCase keys)."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.permissions import PERM_MANAGE_PAYMENTS, PERM_VIEW_LAB_TESTS, PERM_VIEW_PRESCRIPTIONS
from ..core.security import require_permission
from ..models.base import get_db
from ..services import printing

router = APIRouter(prefix="/print", tags=["print"])


@router.get("/receipts/{payment_id}")
def receipt(
    payment_id: str,
    db: Session = Depends(get_db),
    _cashier=Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    data = printing.get_receipt_data(db, payment_id)
    return {"success": True, "receiptData": data.model_dump(by_alias=True, mode="json")}


@router.get("/prescriptions/{prescription_id}")
def prescription(
    prescription_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_PRESCRIPTIONS)),
):
    data = printing.get_prescription_print_data(db, prescription_id)
    return {"success": True, "prescriptionData": data.model_dump(by_alias=True, mode="json")}


@router.get("/lab-reports/{test_request_id}")
def lab_report(
    test_request_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_LAB_TESTS)),
):
    data = printing.get_test_report_data(db, test_request_id)
    return {"success": True, "reportData": data.model_dump(by_alias=True, mode="json")}

"""Invoices, payments and revenue reporting."""
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..core.permissions import PERM_MANAGE_PAYMENTS, PERM_VIEW_FINANCIAL_REPORTS
from ..core.security import require_permission
from ..models.base import get_db
from ..models.billing import PaymentStatus
from ..models.user import User
from ..services.billing import billing_service
from .schemas import InvoiceResponse, PaymentDetail

router = APIRouter(prefix="/billing", tags=["billing"])


class InvoiceRequest(BaseModel):
    patient_id: str


class PaymentRequest(BaseModel):
    patient_id: str
    amount: int
    payment_method: str
    invoice_id: Optional[str] = None


class PaymentCreate(PaymentRequest):
    status: str = PaymentStatus.COMPLETED
    description: Optional[str] = None
    receipt_number: Optional[str] = None


class PaymentUpdate(BaseModel):
    amount: Optional[int] = None
    payment_method: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None


# ── Invoices ─────────────────────────────────────────────────────────────────

@router.post("/invoices", status_code=status.HTTP_201_CREATED)
def generate_invoice(
    body: InvoiceRequest,
    db: Session = Depends(get_db),
    _cashier=Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    """Bill every unbilled consultation, completed test and dispensed medication."""
    invoice = billing_service.generate_invoice(db, body.patient_id)
    return {"success": True, "invoice": InvoiceResponse.model_validate(invoice)}


@router.get("/invoices")
def list_invoices(
    patient_id: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _cashier=Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    invoices = billing_service.list_invoices(db, patient_id, status)
    return {"invoices": [InvoiceResponse.model_validate(i) for i in invoices]}


@router.get("/invoices/{invoice_id}")
def get_invoice(
    invoice_id: str,
    db: Session = Depends(get_db),
    _cashier=Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    invoice = billing_service.get_invoice(db, invoice_id)
    return {"success": True, "invoice": InvoiceResponse.model_validate(invoice)}


# ── Payments ─────────────────────────────────────────────────────────────────

@router.post("/payments/process", status_code=status.HTTP_201_CREATED)
def process_payment(
    body: PaymentRequest,
    db: Session = Depends(get_db),
    cashier: User = Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    """Take a completed payment; settles the invoice once it is covered."""
    payment = billing_service.process_payment(
        db, body.patient_id, body.amount, body.payment_method,
        invoice_id=body.invoice_id, cashier_id=cashier.id,
    )
    return {"success": True, "payment": PaymentDetail.model_validate(payment)}


@router.post("/payments", status_code=status.HTTP_201_CREATED)
def create_payment(
    body: PaymentCreate,
    db: Session = Depends(get_db),
    cashier: User = Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    payment = billing_service.create_payment(
        db, body.patient_id, body.amount, body.payment_method,
        status=body.status,
        invoice_id=body.invoice_id,
        cashier_id=cashier.id,
        description=body.description,
        receipt_number=body.receipt_number,
    )
    return {"success": True, "payment": PaymentDetail.model_validate(payment)}


@router.get("/payments")
def list_payments(
    q: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _cashier=Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    payments = billing_service.list_payments(db, q, status)
    return {"payments": [PaymentDetail.model_validate(p) for p in payments]}


@router.get("/payments/stats")
def payment_stats(
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_FINANCIAL_REPORTS)),
):
    return {"success": True, "stats": billing_service.get_payment_stats(db)}


@router.get("/payments/revenue")
def revenue_data(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_FINANCIAL_REPORTS)),
):
    return {"revenueData": billing_service.get_revenue_data(db, year)}


@router.get("/payments/history/{patient_id}")
def payment_history(
    patient_id: str,
    db: Session = Depends(get_db),
    _cashier=Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    payments = billing_service.view_payment_history(db, patient_id)
    return {"payments": [PaymentDetail.model_validate(p) for p in payments]}


@router.get("/payments/{payment_id}")
def get_payment(
    payment_id: str,
    db: Session = Depends(get_db),
    _cashier=Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    payment = billing_service.get_payment(db, payment_id)
    return {"success": True, "payment": PaymentDetail.model_validate(payment)}


@router.put("/payments/{payment_id}")
def update_payment(
    payment_id: str,
    body: PaymentUpdate,
    db: Session = Depends(get_db),
    _cashier=Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    payment = billing_service.update_payment(db, payment_id, **body.model_dump(exclude_unset=True))
    return {"success": True, "payment": PaymentDetail.model_validate(payment)}


@router.delete("/payments/{payment_id}")
def delete_payment(
    payment_id: str,
    db: Session = Depends(get_db),
    _cashier=Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    billing_service.delete_payment(db, payment_id)
    return {"success": True}


@router.post("/payments/{payment_id}/confirmation")
def issue_confirmation(
    payment_id: str,
    db: Session = Depends(get_db),
    _cashier=Depends(require_permission(PERM_MANAGE_PAYMENTS)),
):
    payment = billing_service.issue_payment_confirmation(db, payment_id)
    return {"success": True, "payment": PaymentDetail.model_validate(payment)}

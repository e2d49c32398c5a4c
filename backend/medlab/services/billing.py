"""
Invoicing and payments.

An invoice bills everything a patient has not been billed for yet: one
consultation fee per unpaid appointment, one test fee per completed test
request, and the dispensed quantity of each medication at its inventory unit
price. Billed rows point at their invoice, so running ``generate_invoice``
twice never charges the same item twice.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from ..core.cache import PAYMENTS_VIEW, patient_view, view_cache
from ..core.config import settings
from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..models.appointment import Appointment, AppointmentStatus, PaymentState
from ..models.base import atomic
from ..models.billing import Invoice, InvoiceItem, InvoiceStatus, Payment, PaymentMethod, PaymentStatus
from ..models.clinical import Diagnosis, TestRequest, TestStatus
from ..models.patient import Patient
from ..models.pharmacy import DispenseStatus, MedicationDispense, PrescriptionMedication
from ..models.user import User
from .appointments import week_start
from .workflow import INVOICE_TRANSITIONS, PAYMENT_TRANSITIONS, ensure_transition

logger = logging.getLogger(__name__)

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

CONSULTATION_ITEM = "Consultation Fees"
TEST_ITEM = "Laboratory Tests"
MEDICATION_ITEM = "Medications"


def document_number(prefix: str, now: Optional[datetime] = None) -> str:
    """``PREFIX-YYYYMMDD-XXXXXXXX``; the random part keeps numbers unique within a day."""
    now = now or datetime.now()
    return f"{prefix}-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


class BillingService:
    def __init__(self, config=None):
        config = config or settings
        self.consultation_fee = config.CONSULTATION_FEE
        self.test_fee = config.TEST_FEE
        self.receipt_prefix = config.RECEIPT_PREFIX
        self.invoice_prefix = config.INVOICE_PREFIX

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def _invoice_query(self, db: Session):
        return db.query(Invoice).options(
            joinedload(Invoice.patient),
            selectinload(Invoice.items),
            selectinload(Invoice.payments),
        )

    def _unbilled(self, db: Session, patient_id: str):
        appointments = (
            db.query(Appointment)
            .filter(
                Appointment.patient_id == patient_id,
                Appointment.invoice_id.is_(None),
                Appointment.payment_status == PaymentState.UNPAID,
                Appointment.status != AppointmentStatus.CANCELLED,
            )
            .all()
        )
        tests = (
            db.query(TestRequest)
            .join(TestRequest.diagnosis)
            .filter(
                Diagnosis.patient_id == patient_id,
                TestRequest.invoice_id.is_(None),
                TestRequest.status == TestStatus.COMPLETED,
            )
            .all()
        )
        dispenses = (
            db.query(MedicationDispense)
            .options(
                joinedload(MedicationDispense.medication).joinedload(PrescriptionMedication.inventory_item)
            )
            .filter(
                MedicationDispense.patient_id == patient_id,
                MedicationDispense.invoice_id.is_(None),
                MedicationDispense.status == DispenseStatus.DISPENSED,
            )
            .all()
        )
        return appointments, tests, dispenses

    @staticmethod
    def _dispense_price(dispense: MedicationDispense) -> int:
        item = dispense.medication.inventory_item
        # Lines whose stock item was deleted can no longer be priced
        return dispense.quantity * item.unit_price if item is not None else 0

    def generate_invoice(self, db: Session, patient_id: str, now: Optional[datetime] = None) -> Invoice:
        if db.query(Patient).filter(Patient.id == patient_id).first() is None:
            raise NotFoundError("Patient", patient_id)
        appointments, tests, dispenses = self._unbilled(db, patient_id)
        if not (appointments or tests or dispenses):
            raise ValidationError("There is nothing to invoice for this patient")

        consultation_fees = len(appointments) * self.consultation_fee
        test_fees = len(tests) * self.test_fee
        medication_fees = sum(self._dispense_price(d) for d in dispenses)

        with atomic(db):
            invoice = Invoice(
                patient_id=patient_id,
                invoice_number=document_number(self.invoice_prefix, now),
                amount=consultation_fees + test_fees + medication_fees,
                status=InvoiceStatus.PENDING,
            )
            invoice.items = [
                InvoiceItem(position=0, name=CONSULTATION_ITEM, amount=consultation_fees),
                InvoiceItem(position=1, name=TEST_ITEM, amount=test_fees),
                InvoiceItem(position=2, name=MEDICATION_ITEM, amount=medication_fees),
            ]
            db.add(invoice)
            for row in [*appointments, *tests, *dispenses]:
                row.invoice = invoice
        logger.info(
            "Invoice %s issued to patient %s for %d UGX",
            invoice.invoice_number, patient_id, invoice.amount,
        )
        view_cache.revalidate(PAYMENTS_VIEW, patient_view(patient_id))
        return self.get_invoice(db, invoice.id)

    def get_invoice(self, db: Session, invoice_id: str) -> Invoice:
        invoice = self._invoice_query(db).filter(Invoice.id == invoice_id).first()
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def list_invoices(
        self, db: Session, patient_id: Optional[str] = None, status: Optional[str] = None,
    ) -> List[Invoice]:
        q = self._invoice_query(db)
        if patient_id:
            q = q.filter(Invoice.patient_id == patient_id)
        if status:
            q = q.filter(Invoice.status == status)
        return q.order_by(Invoice.created_at.desc()).all()

    def _settle(self, db: Session, invoice: Invoice) -> None:
        """Mark the invoice and its appointments PAID once completed payments cover it."""
        db.flush()
        paid = (
            db.query(func.coalesce(func.sum(Payment.amount), 0))
            .filter(Payment.invoice_id == invoice.id, Payment.status == PaymentStatus.COMPLETED)
            .scalar()
        )
        if paid < invoice.amount or invoice.status == InvoiceStatus.PAID:
            return
        ensure_transition("invoice", INVOICE_TRANSITIONS, invoice.status, InvoiceStatus.PAID)
        invoice.status = InvoiceStatus.PAID
        for appointment in invoice.appointments:
            appointment.payment_status = PaymentState.PAID
        logger.info("Invoice %s settled", invoice.invoice_number)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def _payment_query(self, db: Session):
        return db.query(Payment).options(
            joinedload(Payment.patient),
            joinedload(Payment.cashier),
            joinedload(Payment.invoice),
        )

    def _validate_payment(
        self, db: Session, patient_id: str, amount: int, payment_method: str,
        invoice_id: Optional[str], cashier_id: Optional[str],
    ) -> Optional[Invoice]:
        if amount is None or amount <= 0:
            raise ValidationError("Payment amount must be positive")
        if payment_method not in PaymentMethod.ALL:
            raise ValidationError(f"Unknown payment method: {payment_method}")
        if db.query(Patient).filter(Patient.id == patient_id).first() is None:
            raise NotFoundError("Patient", patient_id)
        if cashier_id and db.query(User).filter(User.id == cashier_id).first() is None:
            raise NotFoundError("Cashier", cashier_id)
        if not invoice_id:
            return None
        invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        if invoice.patient_id != patient_id:
            raise ValidationError("Invoice belongs to another patient")
        if invoice.status == InvoiceStatus.PAID:
            raise ConflictError("Invoice has already been paid")
        return invoice

    def create_payment(
        self,
        db: Session,
        patient_id: str,
        amount: int,
        payment_method: str,
        status: str = PaymentStatus.COMPLETED,
        invoice_id: Optional[str] = None,
        cashier_id: Optional[str] = None,
        description: Optional[str] = None,
        receipt_number: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Payment:
        """Record a payment; a COMPLETED payment may settle its invoice."""
        if status not in PAYMENT_TRANSITIONS:
            raise ValidationError(f"Unknown payment status: {status}")
        invoice = self._validate_payment(db, patient_id, amount, payment_method, invoice_id, cashier_id)
        if receipt_number and db.query(Payment).filter(Payment.receipt_number == receipt_number).first():
            raise ConflictError(f"Receipt number {receipt_number} is already in use")

        with atomic(db):
            payment = Payment(
                patient_id=patient_id,
                cashier_id=cashier_id,
                invoice_id=invoice_id,
                amount=amount,
                payment_method=payment_method,
                receipt_number=receipt_number or document_number(self.receipt_prefix, now),
                status=status,
                description=description,
            )
            db.add(payment)
            if invoice is not None and status == PaymentStatus.COMPLETED:
                self._settle(db, invoice)
        logger.info(
            "Payment %s of %d UGX (%s) recorded for patient %s",
            payment.receipt_number, amount, payment_method, patient_id,
        )
        view_cache.revalidate(PAYMENTS_VIEW, patient_view(patient_id))
        return self.get_payment(db, payment.id)

    def process_payment(
        self,
        db: Session,
        patient_id: str,
        amount: int,
        payment_method: str,
        invoice_id: Optional[str] = None,
        cashier_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Payment:
        return self.create_payment(
            db, patient_id, amount, payment_method,
            status=PaymentStatus.COMPLETED,
            invoice_id=invoice_id,
            cashier_id=cashier_id,
            now=now,
        )

    def update_payment(
        self,
        db: Session,
        payment_id: str,
        amount: Optional[int] = None,
        payment_method: Optional[str] = None,
        status: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Payment:
        payment = self.get_payment(db, payment_id)
        if status is not None:
            ensure_transition("payment", PAYMENT_TRANSITIONS, payment.status, status)
        if (amount is not None or payment_method is not None) and payment.status != PaymentStatus.PENDING:
            raise ValidationError("Only pending payments can change amount or method")
        if amount is not None and amount <= 0:
            raise ValidationError("Payment amount must be positive")
        if payment_method is not None and payment_method not in PaymentMethod.ALL:
            raise ValidationError(f"Unknown payment method: {payment_method}")

        with atomic(db):
            if amount is not None:
                payment.amount = amount
            if payment_method is not None:
                payment.payment_method = payment_method
            if description is not None:
                payment.description = description
            if status is not None:
                payment.status = status
                if status == PaymentStatus.COMPLETED and payment.invoice is not None:
                    self._settle(db, payment.invoice)
        if status == PaymentStatus.REFUNDED:
            logger.info("Payment %s refunded", payment.receipt_number)
        view_cache.revalidate(PAYMENTS_VIEW, patient_view(payment.patient_id))
        return self.get_payment(db, payment_id)

    def delete_payment(self, db: Session, payment_id: str) -> None:
        payment = self.get_payment(db, payment_id)
        if payment.status == PaymentStatus.COMPLETED:
            raise ValidationError("Completed payments cannot be deleted; refund them instead")
        patient_id = payment.patient_id
        with atomic(db):
            db.delete(payment)
        view_cache.revalidate(PAYMENTS_VIEW, patient_view(patient_id))

    def get_payment(self, db: Session, payment_id: str) -> Payment:
        payment = self._payment_query(db).filter(Payment.id == payment_id).first()
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        return payment

    def list_payments(
        self, db: Session, query: Optional[str] = None, status: Optional[str] = None,
    ) -> List[Payment]:
        q = self._payment_query(db).join(Payment.patient)
        if query:
            term = f"%{query}%"
            q = q.filter(or_(Patient.name.ilike(term), Payment.receipt_number.ilike(term)))
        if status:
            q = q.filter(Payment.status == status)
        return q.order_by(Payment.created_at.desc()).all()

    def view_payment_history(self, db: Session, patient_id: str) -> List[Payment]:
        return (
            self._payment_query(db)
            .filter(Payment.patient_id == patient_id)
            .order_by(Payment.created_at.desc())
            .all()
        )

    def issue_payment_confirmation(
        self, db: Session, payment_id: str, now: Optional[datetime] = None,
    ) -> Payment:
        payment = self.get_payment(db, payment_id)
        if payment.status != PaymentStatus.COMPLETED:
            raise ValidationError("Confirmations can only be issued for completed payments")
        with atomic(db):
            payment.confirmation_sent = True
            payment.confirmation_date = now or datetime.now()
        view_cache.revalidate(PAYMENTS_VIEW, patient_view(payment.patient_id))
        return payment

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _revenue_between(
        self, db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None,
    ) -> int:
        q = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
            Payment.status == PaymentStatus.COMPLETED
        )
        if start is not None:
            q = q.filter(Payment.created_at >= start)
        if end is not None:
            q = q.filter(Payment.created_at < end)
        return int(q.scalar())

    def get_payment_stats(self, db: Session, now: Optional[datetime] = None) -> Dict:
        """Completed revenue overall and for the calendar day, week (from Sunday) and month of ``now``."""
        now = now or datetime.now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week = week_start(now)
        month_start = today.replace(day=1)
        if month_start.month == 12:
            next_month = month_start.replace(year=month_start.year + 1, month=1)
        else:
            next_month = month_start.replace(month=month_start.month + 1)

        by_method = (
            db.query(Payment.payment_method, func.sum(Payment.amount), func.count(Payment.id))
            .filter(Payment.status == PaymentStatus.COMPLETED)
            .group_by(Payment.payment_method)
            .order_by(Payment.payment_method)
            .all()
        )
        return {
            "totalRevenue": self._revenue_between(db),
            "todayRevenue": self._revenue_between(db, today, today + timedelta(days=1)),
            "weekRevenue": self._revenue_between(db, week, week + timedelta(days=7)),
            "monthRevenue": self._revenue_between(db, month_start, next_month),
            "paymentMethods": [
                {"method": method, "amount": int(amount), "count": count}
                for method, amount, count in by_method
            ],
        }

    def get_revenue_data(self, db: Session, year: Optional[int] = None) -> List[Dict]:
        """Completed revenue per month of ``year`` (default: this year), January first."""
        year = year or datetime.now().year
        month = func.extract("month", Payment.created_at)
        rows = (
            db.query(month, func.sum(Payment.amount))
            .filter(
                Payment.status == PaymentStatus.COMPLETED,
                Payment.created_at >= datetime(year, 1, 1),
                Payment.created_at < datetime(year + 1, 1, 1),
            )
            .group_by(month)
            .all()
        )
        totals = {int(m): int(revenue) for m, revenue in rows}
        return [
            {"month": label, "revenue": totals.get(index + 1, 0)}
            for index, label in enumerate(MONTH_LABELS)
        ]


billing_service = BillingService()

"""
Flat documents for the printable receipt, prescription and lab report.
Each is a pydantic model serialized with camelCase keys
(``model_dump(by_alias=True)``) and carries the organization's letterhead.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import NotFoundError
from .billing import billing_service
from .clinical import get_test_request
from .pharmacy import pharmacy_service


class PrintModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HospitalInfo(PrintModel):
    name: str
    address: str
    phone: str
    email: str


def hospital_info() -> HospitalInfo:
    return HospitalInfo(
        name=settings.HOSPITAL_NAME,
        address=settings.HOSPITAL_ADDRESS,
        phone=settings.HOSPITAL_PHONE,
        email=settings.HOSPITAL_EMAIL,
    )


class ReceiptItem(PrintModel):
    name: str
    amount: int


class ReceiptData(PrintModel):
    receipt_number: str
    date: datetime
    patient_name: str
    patient_id: str
    amount: int
    payment_method: str
    description: Optional[str] = None
    cashier_name: str
    invoice_number: Optional[str] = None
    invoice_items: List[ReceiptItem] = []
    hospital_info: HospitalInfo


class PrintedMedication(PrintModel):
    id: str
    name: str
    dosage: str
    frequency: str
    duration: str
    notes: Optional[str] = None


class PrescriptionPrintData(PrintModel):
    prescription_id: str
    date: datetime
    patient_name: str
    patient_id: str
    doctor_name: str
    medications: List[PrintedMedication]
    diagnosis_notes: Optional[str] = None
    hospital_info: HospitalInfo


class LabReportData(PrintModel):
    test_id: str
    test_type: str
    patient_name: str
    patient_id: str
    doctor_name: str
    technician_name: str
    request_date: datetime
    result_date: datetime
    result: str
    report_url: Optional[str] = None
    hospital_info: HospitalInfo


def get_receipt_data(db: Session, payment_id: str) -> ReceiptData:
    payment = billing_service.get_payment(db, payment_id)
    invoice = payment.invoice
    return ReceiptData(
        receipt_number=payment.receipt_number,
        date=payment.created_at,
        patient_name=payment.patient.name,
        patient_id=payment.patient_id,
        amount=payment.amount,
        payment_method=payment.payment_method,
        description=payment.description,
        cashier_name=payment.cashier.name if payment.cashier else "System",
        invoice_number=invoice.invoice_number if invoice else None,
        invoice_items=[ReceiptItem(name=i.name, amount=i.amount) for i in invoice.items] if invoice else [],
        hospital_info=hospital_info(),
    )


def get_prescription_print_data(db: Session, prescription_id: str) -> PrescriptionPrintData:
    prescription = pharmacy_service.get_prescription(db, prescription_id)
    diagnosis = prescription.diagnosis
    notes = diagnosis.summary if not diagnosis.detail else f"{diagnosis.summary}\n\n{diagnosis.detail}"
    return PrescriptionPrintData(
        prescription_id=prescription.id,
        date=prescription.created_at,
        patient_name=prescription.patient.name,
        patient_id=prescription.patient_id,
        doctor_name=diagnosis.doctor.name,
        medications=[
            PrintedMedication(
                id=line.id,
                name=line.medication_name,
                dosage=line.dosage,
                frequency=line.frequency,
                duration=line.duration,
                notes=line.notes,
            )
            for line in prescription.medications
        ],
        diagnosis_notes=notes,
        hospital_info=hospital_info(),
    )


def get_test_report_data(db: Session, test_request_id: str) -> LabReportData:
    test_request = get_test_request(db, test_request_id)
    test_result = test_request.test_result
    if test_result is None:
        raise NotFoundError("Test result")
    diagnosis = test_request.diagnosis
    return LabReportData(
        test_id=test_request.id,
        test_type=test_request.test_type,
        patient_name=diagnosis.patient.name,
        patient_id=diagnosis.patient_id,
        doctor_name=diagnosis.doctor.name,
        technician_name=test_result.technician.name,
        request_date=test_request.created_at,
        result_date=test_result.created_at,
        result=test_result.result,
        report_url=test_result.report_url,
        hospital_info=hospital_info(),
    )

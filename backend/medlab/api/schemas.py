"""Response schemas shared across routers. Request bodies live beside their endpoints."""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserBrief(ORMModel):
    id: str
    name: str
    role: str


class UserResponse(ORMModel):
    id: str
    name: str
    email: str
    role: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime


class PatientBrief(ORMModel):
    id: str
    name: str
    phone: str


class AppointmentResponse(ORMModel):
    id: str
    patient_id: str
    date: datetime
    notes: Optional[str] = None
    status: str
    payment_status: str
    invoice_id: Optional[str] = None
    created_at: datetime
    doctor: Optional[UserBrief] = None


class AppointmentDetail(AppointmentResponse):
    patient: PatientBrief


class LabResultResponse(ORMModel):
    id: str
    test_request_id: str
    patient_id: str
    result: str
    report_url: Optional[str] = None
    created_at: datetime
    technician: Optional[UserBrief] = None


class LabRequestResponse(ORMModel):
    id: str
    diagnosis_id: str
    test_type: str
    status: str
    invoice_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    test_result: Optional[LabResultResponse] = None


class DiagnosisBrief(ORMModel):
    id: str
    summary: str
    patient: PatientBrief
    doctor: UserBrief


class LabRequestDetail(LabRequestResponse):
    diagnosis: DiagnosisBrief


class DispenseResponse(ORMModel):
    id: str
    patient_id: str
    medication_id: str
    quantity: int
    status: str
    picked_up: bool
    pickup_date: Optional[datetime] = None
    created_at: datetime
    pharmacist: Optional[UserBrief] = None


class MedicationLineResponse(ORMModel):
    id: str
    inventory_id: Optional[str] = None
    medication_name: str
    dosage: str
    frequency: str
    duration: str
    notes: Optional[str] = None
    is_dispensed: bool
    dispense_status: str
    dispenses: List[DispenseResponse] = []


class PrescriptionResponse(ORMModel):
    id: str
    patient_id: str
    diagnosis_id: str
    created_at: datetime
    medications: List[MedicationLineResponse]


class PrescriptionDetail(PrescriptionResponse):
    patient: PatientBrief
    diagnosis: DiagnosisBrief


class DiagnosisResponse(ORMModel):
    id: str
    patient_id: str
    summary: str
    detail: Optional[str] = None
    created_at: datetime
    doctor: UserBrief
    test_requests: List[LabRequestResponse] = []
    prescriptions: List[PrescriptionResponse] = []


class InventoryResponse(ORMModel):
    id: str
    name: str
    category: str
    quantity: int
    unit: Optional[str] = None
    unit_price: int
    expiry_date: Optional[date] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None
    updated_at: datetime


class InvoiceItemResponse(ORMModel):
    name: str
    amount: int


class PaymentResponse(ORMModel):
    id: str
    patient_id: str
    invoice_id: Optional[str] = None
    amount: int
    payment_method: str
    receipt_number: str
    status: str
    description: Optional[str] = None
    confirmation_sent: bool
    confirmation_date: Optional[datetime] = None
    created_at: datetime
    cashier: Optional[UserBrief] = None


class PaymentDetail(PaymentResponse):
    patient: PatientBrief


class InvoiceResponse(ORMModel):
    id: str
    patient_id: str
    invoice_number: str
    amount: int
    status: str
    created_at: datetime
    items: List[InvoiceItemResponse]
    payments: List[PaymentResponse] = []


class ReferralResponse(ORMModel):
    id: str
    patient_id: str
    reason: str
    notes: Optional[str] = None
    status: str
    created_at: datetime
    referring_doctor: UserBrief
    specialist: UserBrief


class ReferralDetail(ReferralResponse):
    patient: PatientBrief


class PatientSummary(ORMModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: str
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    blood_group: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    doctor: Optional[UserBrief] = None
    last_appointment: Optional[AppointmentResponse] = None


class PatientDetail(PatientSummary):
    address: Optional[str] = None
    appointments: List[AppointmentResponse] = []
    diagnoses: List[DiagnosisResponse] = []
    test_results: List[LabResultResponse] = []
    prescriptions: List[PrescriptionResponse] = []
    payments: List[PaymentResponse] = []
    invoices: List[InvoiceResponse] = []
    referrals: List[ReferralResponse] = []

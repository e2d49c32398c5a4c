"""Diagnoses and the lab test workflow."""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..core.permissions import PERM_PROCESS_LAB_TESTS, PERM_RECORD_DIAGNOSIS, PERM_VIEW_LAB_TESTS
from ..core.security import require_permission
from ..models.base import get_db
from ..models.user import User
from ..services import clinical
from .schemas import DiagnosisResponse, LabRequestDetail, LabResultResponse

router = APIRouter(tags=["clinical"])


# ── Request schemas ──────────────────────────────────────────────────────────

class DiagnosisCreate(BaseModel):
    patient_id: str
    summary: str
    detail: Optional[str] = None
    test_requests: List[str] = []


class LabTestSuggestion(BaseModel):
    patient_id: str
    test_types: List[str]
    notes: str = ""


class StatusUpdate(BaseModel):
    status: str


class ResultCreate(BaseModel):
    patient_id: str
    result: str
    report_url: Optional[str] = None


class ReportUpload(BaseModel):
    report_url: str


# ── Diagnoses ────────────────────────────────────────────────────────────────

@router.post("/diagnoses", status_code=status.HTTP_201_CREATED)
def create_diagnosis(
    body: DiagnosisCreate,
    db: Session = Depends(get_db),
    doctor: User = Depends(require_permission(PERM_RECORD_DIAGNOSIS)),
):
    """Record a diagnosis as the calling doctor, optionally ordering lab tests."""
    diagnosis = clinical.create_diagnosis(
        db, body.patient_id, doctor.id, body.summary, body.detail, body.test_requests,
    )
    return {"success": True, "diagnosis": DiagnosisResponse.model_validate(diagnosis)}


@router.get("/diagnoses")
def list_diagnoses(
    patient_id: Optional[str] = None,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_LAB_TESTS)),
):
    diagnoses = clinical.list_diagnoses(db, patient_id)
    return {"diagnoses": [DiagnosisResponse.model_validate(d) for d in diagnoses]}


@router.get("/diagnoses/{diagnosis_id}")
def get_diagnosis(
    diagnosis_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_LAB_TESTS)),
):
    diagnosis = clinical.get_diagnosis(db, diagnosis_id)
    return {"success": True, "diagnosis": DiagnosisResponse.model_validate(diagnosis)}


# ── Lab tests ────────────────────────────────────────────────────────────────

@router.post("/lab-tests/suggest", status_code=status.HTTP_201_CREATED)
def suggest_lab_tests(
    body: LabTestSuggestion,
    db: Session = Depends(get_db),
    doctor: User = Depends(require_permission(PERM_RECORD_DIAGNOSIS)),
):
    diagnosis = clinical.suggest_lab_tests(db, body.patient_id, doctor.id, body.test_types, body.notes)
    return {"success": True, "diagnosis": DiagnosisResponse.model_validate(diagnosis)}


@router.get("/lab-tests")
def list_lab_tests(
    q: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_LAB_TESTS)),
):
    requests = clinical.list_test_requests(db, q, status)
    return {"testRequests": [LabRequestDetail.model_validate(r) for r in requests]}


@router.get("/lab-tests/assigned")
def assigned_lab_tests(
    db: Session = Depends(get_db),
    technician: User = Depends(require_permission(PERM_PROCESS_LAB_TESTS)),
):
    """Open requests plus the ones the calling technician reported on."""
    requests = clinical.view_assigned_tests(db, technician.id)
    return {"testRequests": [LabRequestDetail.model_validate(r) for r in requests]}


@router.get("/lab-tests/stats")
def lab_test_stats(
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_LAB_TESTS)),
):
    return {"success": True, "stats": clinical.get_test_stats(db)}


@router.get("/lab-tests/history/{patient_id}")
def lab_test_history(
    patient_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_LAB_TESTS)),
):
    results = clinical.view_test_history(db, patient_id)
    return {"testResults": [LabResultResponse.model_validate(r) for r in results]}


@router.get("/lab-tests/{test_request_id}")
def get_lab_test(
    test_request_id: str,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_LAB_TESTS)),
):
    test_request = clinical.get_test_request(db, test_request_id)
    return {"success": True, "testRequest": LabRequestDetail.model_validate(test_request)}


@router.put("/lab-tests/{test_request_id}/status")
def update_lab_test_status(
    test_request_id: str,
    body: StatusUpdate,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_PROCESS_LAB_TESTS)),
):
    test_request = clinical.update_test_request(db, test_request_id, body.status)
    return {"success": True, "testRequest": LabRequestDetail.model_validate(test_request)}


@router.post("/lab-tests/{test_request_id}/result", status_code=status.HTTP_201_CREATED)
def record_lab_result(
    test_request_id: str,
    body: ResultCreate,
    db: Session = Depends(get_db),
    technician: User = Depends(require_permission(PERM_PROCESS_LAB_TESTS)),
):
    """Complete the request and store its result; a second call is rejected with 409."""
    test_result = clinical.record_test_result(
        db, test_request_id, body.patient_id, technician.id, body.result, body.report_url,
    )
    return {"success": True, "testResult": LabResultResponse.model_validate(test_result)}


@router.put("/lab-tests/{test_request_id}/report")
def upload_lab_report(
    test_request_id: str,
    body: ReportUpload,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_PROCESS_LAB_TESTS)),
):
    test_result = clinical.upload_test_report(db, test_request_id, body.report_url)
    return {"success": True, "testResult": LabResultResponse.model_validate(test_result)}

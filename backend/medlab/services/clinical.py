"""
Clinical workflow: diagnosis -> test request -> test result.

A test request moves REQUESTED -> IN_PROGRESS -> COMPLETED, or to CANCELLED
from either open state. Completion only happens through ``record_test_result``,
which flips the status and inserts the single result row in one transaction.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from ..core.cache import LAB_TESTS_VIEW, patient_view, view_cache
from ..core.config import settings
from ..core.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from ..models.base import atomic
from ..models.clinical import Diagnosis, TestRequest, TestResult, TestStatus
from ..models.patient import Patient
from ..models.pharmacy import Prescription
from ..models.user import User
from .workflow import TEST_REQUEST_TRANSITIONS, ensure_transition

logger = logging.getLogger(__name__)

LAB_TESTS_REQUESTED_SUMMARY = "Lab tests requested"


def _request_query(db: Session):
    return db.query(TestRequest).options(
        joinedload(TestRequest.diagnosis).joinedload(Diagnosis.patient),
        joinedload(TestRequest.diagnosis).joinedload(Diagnosis.doctor),
        joinedload(TestRequest.test_result).joinedload(TestResult.technician),
    )


def _diagnosis_query(db: Session):
    return db.query(Diagnosis).options(
        joinedload(Diagnosis.patient),
        joinedload(Diagnosis.doctor),
        selectinload(Diagnosis.test_requests).selectinload(TestRequest.test_result),
        selectinload(Diagnosis.prescriptions).selectinload(Prescription.medications),
    )


# ── Diagnoses ────────────────────────────────────────────────────────────────

def create_diagnosis(
    db: Session,
    patient_id: str,
    doctor_id: str,
    summary: str,
    detail: Optional[str] = None,
    test_requests: Optional[Iterable[str]] = None,
) -> Diagnosis:
    """Record a diagnosis, optionally ordering lab tests (one per test type)."""
    if not (summary or "").strip():
        raise ValidationError("Diagnosis summary is required")
    if db.query(Patient).filter(Patient.id == patient_id).first() is None:
        raise NotFoundError("Patient", patient_id)
    if db.query(User).filter(User.id == doctor_id).first() is None:
        raise NotFoundError("Doctor", doctor_id)

    test_types = [t.strip() for t in (test_requests or []) if t and t.strip()]
    with atomic(db):
        diagnosis = Diagnosis(
            patient_id=patient_id,
            doctor_id=doctor_id,
            summary=summary.strip(),
            detail=detail,
        )
        diagnosis.test_requests = [
            TestRequest(test_type=test_type, status=TestStatus.REQUESTED)
            for test_type in test_types
        ]
        db.add(diagnosis)
    logger.info(
        "Diagnosis %s recorded for patient %s with %d test request(s)",
        diagnosis.id, patient_id, len(test_types),
    )
    paths = [patient_view(patient_id)]
    if test_types:
        paths.append(LAB_TESTS_VIEW)
    view_cache.revalidate(*paths)
    return get_diagnosis(db, diagnosis.id)


def suggest_lab_tests(
    db: Session, patient_id: str, doctor_id: str, test_types: List[str], notes: str = "",
) -> Diagnosis:
    if not test_types:
        raise ValidationError("At least one test type is required")
    return create_diagnosis(
        db, patient_id, doctor_id,
        summary=LAB_TESTS_REQUESTED_SUMMARY,
        detail=notes,
        test_requests=test_types,
    )


def get_diagnosis(db: Session, diagnosis_id: str) -> Diagnosis:
    diagnosis = _diagnosis_query(db).filter(Diagnosis.id == diagnosis_id).first()
    if diagnosis is None:
        raise NotFoundError("Diagnosis", diagnosis_id)
    return diagnosis


def list_diagnoses(db: Session, patient_id: Optional[str] = None) -> List[Diagnosis]:
    q = _diagnosis_query(db)
    if patient_id:
        q = q.filter(Diagnosis.patient_id == patient_id)
    return q.order_by(Diagnosis.created_at.desc()).all()


# ── Test requests ────────────────────────────────────────────────────────────

def get_test_request(db: Session, test_request_id: str) -> TestRequest:
    test_request = _request_query(db).filter(TestRequest.id == test_request_id).first()
    if test_request is None:
        raise NotFoundError("Test request", test_request_id)
    return test_request


def list_test_requests(
    db: Session, query: Optional[str] = None, status: Optional[str] = None,
) -> List[TestRequest]:
    q = _request_query(db).join(TestRequest.diagnosis).join(Diagnosis.patient)
    if query:
        term = f"%{query}%"
        q = q.filter(or_(TestRequest.test_type.ilike(term), Patient.name.ilike(term)))
    if status:
        q = q.filter(TestRequest.status == status)
    return q.order_by(TestRequest.created_at.desc()).all()


def view_assigned_tests(db: Session, technician_id: Optional[str] = None) -> List[TestRequest]:
    """Open requests, plus the ones this technician has already reported on."""
    conditions = [TestRequest.status.in_(TestStatus.PENDING)]
    if technician_id:
        conditions.append(TestRequest.test_result.has(TestResult.technician_id == technician_id))
    return (
        _request_query(db)
        .filter(or_(*conditions))
        .order_by(TestRequest.created_at.desc())
        .all()
    )


def update_test_request(db: Session, test_request_id: str, status: str) -> TestRequest:
    test_request = get_test_request(db, test_request_id)
    if status == TestStatus.COMPLETED and test_request.status != TestStatus.COMPLETED:
        raise ValidationError("Record a test result to complete a test request")
    ensure_transition("test request", TEST_REQUEST_TRANSITIONS, test_request.status, status)

    with atomic(db):
        test_request.status = status
    logger.info("Test request %s is now %s", test_request_id, status)
    view_cache.revalidate(LAB_TESTS_VIEW, patient_view(test_request.diagnosis.patient_id))
    return get_test_request(db, test_request_id)


def record_test_result(
    db: Session,
    test_request_id: str,
    patient_id: str,
    technician_id: str,
    result: str,
    report_url: Optional[str] = None,
) -> TestResult:
    """Complete a test request and store its result, atomically and at most once."""
    test_request = get_test_request(db, test_request_id)
    if test_request.test_result is not None:
        raise ConflictError("A result has already been recorded for this test request")
    if test_request.status not in TestStatus.PENDING:
        raise InvalidTransitionError("test request", test_request.status, TestStatus.COMPLETED)
    if test_request.diagnosis.patient_id != patient_id:
        raise ValidationError("Test request does not belong to this patient")
    if db.query(User).filter(User.id == technician_id).first() is None:
        raise NotFoundError("Technician", technician_id)
    if not (result or "").strip():
        raise ValidationError("Test result is required")

    with atomic(db):
        test_request.status = TestStatus.COMPLETED
        test_result = TestResult(
            test_request=test_request,
            patient_id=patient_id,
            technician_id=technician_id,
            result=result,
            report_url=report_url,
        )
        db.add(test_result)
    logger.info("Result recorded for test request %s", test_request_id)
    view_cache.revalidate(LAB_TESTS_VIEW, patient_view(patient_id))
    db.refresh(test_result)
    return test_result


def upload_test_report(db: Session, test_request_id: str, report_url: str) -> TestResult:
    test_result = db.query(TestResult).filter(TestResult.test_request_id == test_request_id).first()
    if test_result is None:
        raise NotFoundError("Test result")
    with atomic(db):
        test_result.report_url = report_url
    view_cache.revalidate(LAB_TESTS_VIEW, patient_view(test_result.patient_id))
    return test_result


def view_test_history(db: Session, patient_id: str) -> List[TestResult]:
    return (
        db.query(TestResult)
        .options(
            joinedload(TestResult.technician),
            joinedload(TestResult.test_request)
            .joinedload(TestRequest.diagnosis)
            .joinedload(Diagnosis.doctor),
        )
        .filter(TestResult.patient_id == patient_id)
        .order_by(TestResult.created_at.desc())
        .all()
    )


# ── Statistics ───────────────────────────────────────────────────────────────

def get_test_stats(
    db: Session, now: Optional[datetime] = None, urgent_ratio: Optional[float] = None,
) -> Dict:
    now = now or datetime.now()
    ratio = settings.URGENT_TEST_RATIO if urgent_ratio is None else urgent_ratio
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + timedelta(days=1)
    one_week_ago = today - timedelta(days=7)

    count = func.count(TestRequest.id)
    by_type = (
        db.query(TestRequest.test_type, count)
        .group_by(TestRequest.test_type)
        .order_by(count.desc(), TestRequest.test_type)
        .limit(5)
        .all()
    )
    by_status = (
        db.query(TestRequest.status, count)
        .group_by(TestRequest.status)
        .all()
    )
    pending = db.query(TestRequest).filter(TestRequest.status.in_(TestStatus.PENDING)).count()
    completed_today = (
        db.query(TestResult)
        .filter(TestResult.created_at >= today, TestResult.created_at < tomorrow)
        .count()
    )
    weekly = db.query(TestRequest).filter(TestRequest.created_at >= one_week_ago).count()

    return {
        "testsByType": [{"name": name, "value": value} for name, value in by_type],
        "testsByStatus": [{"status": status, "count": value} for status, value in by_status],
        "pendingTests": pending,
        "completedToday": completed_today,
        "weeklyTestCount": weekly,
        # Placeholder heuristic: no urgency is captured on test requests
        "urgentTests": math.ceil(pending * ratio),
    }

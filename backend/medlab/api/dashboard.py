"""Dashboard cards and chart series."""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.cache import view_cache
from ..core.permissions import PERM_VIEW_DASHBOARD
from ..core.security import require_permission
from ..models.base import get_db
from ..models.user import User
from ..services import reporting

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats")
def dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    """Headline cards for the caller's role."""
    return {"stats": reporting.dashboard_stats(db, current_user.role)}


@router.get("/registrations")
def patient_registrations(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return {"patientData": reporting.patient_registrations_by_month(db, year)}


@router.get("/test-distribution")
def distribution_chart(
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return {"testData": reporting.test_distribution(db)}


@router.get("/appointments")
def appointment_week(
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return {"appointmentData": reporting.appointment_week(db)}


@router.get("/demographics")
def patient_demographics(
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return {"demographicsData": reporting.patient_demographics(db)}


@router.get("/test-results")
def results_chart(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return {"resultsData": reporting.test_results_by_month(db, year)}


@router.get("/versions")
def view_versions(
    prefix: str = "",
    _user=Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    """Invalidation counters per dashboard view; a changed value means refetch."""
    return {"views": view_cache.snapshot(prefix)}

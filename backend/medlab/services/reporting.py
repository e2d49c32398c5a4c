"""Read-only series for the dashboard charts. Every series is zero-filled."""
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models.appointment import Appointment
from ..models.billing import Payment, PaymentStatus
from ..models.clinical import TestRequest, TestResult, TestStatus
from ..models.patient import Gender, Patient
from ..models.user import UserRole
from .appointments import get_weekly_appointment_stats
from .billing import MONTH_LABELS

AGE_GROUPS = [
    ("0-10", 10), ("11-20", 20), ("21-30", 30), ("31-40", 40),
    ("41-50", 50), ("51-60", 60), ("61-70", 70), ("71+", None),
]

CRITICAL_KEYWORDS = ("critical", "urgent", "high risk")
ABNORMAL_KEYWORDS = ("abnormal", "elevated", "low")

FINANCE_ROLES = (UserRole.ADMIN, UserRole.CASHIER)


def _year_bounds(year: Optional[int]):
    year = year or datetime.now().year
    return datetime(year, 1, 1), datetime(year + 1, 1, 1)


def patient_registrations_by_month(db: Session, year: Optional[int] = None) -> List[Dict]:
    start, end = _year_bounds(year)
    series = [{"month": label, "count": 0} for label in MONTH_LABELS]
    rows = db.query(Patient.created_at).filter(Patient.created_at >= start, Patient.created_at < end)
    for (created_at,) in rows:
        series[created_at.month - 1]["count"] += 1
    return series


def test_distribution(db: Session) -> List[Dict]:
    """Test requests per test type, largest first."""
    count = func.count(TestRequest.id)
    rows = (
        db.query(TestRequest.test_type, count)
        .group_by(TestRequest.test_type)
        .order_by(count.desc(), TestRequest.test_type)
        .all()
    )
    if not rows:
        return [dict(entry) for entry in settings.TEST_DISTRIBUTION_FALLBACK]
    return [{"name": name or "Uncategorized", "value": value} for name, value in rows]


def appointment_week(db: Session, now: Optional[datetime] = None) -> List[Dict]:
    return get_weekly_appointment_stats(db, now)


def age_on(born: date, today: date) -> int:
    before_birthday = (today.month, today.day) < (born.month, born.day)
    return today.year - born.year - int(before_birthday)


def _age_group_index(age: int) -> int:
    for index, (_, upper) in enumerate(AGE_GROUPS):
        if upper is None or age <= upper:
            return index
    return len(AGE_GROUPS) - 1


def patient_demographics(db: Session, today: Optional[date] = None) -> List[Dict]:
    """Patients per age group and gender; patients without a birth date are skipped."""
    today = today or date.today()
    series = [{"age": label, "male": 0, "female": 0} for label, _ in AGE_GROUPS]
    rows = db.query(Patient.gender, Patient.date_of_birth).filter(Patient.date_of_birth.isnot(None))
    for gender, born in rows:
        bucket = series[_age_group_index(age_on(born, today))]
        if gender == Gender.MALE:
            bucket["male"] += 1
        elif gender == Gender.FEMALE:
            bucket["female"] += 1
    return series


def classify_result(result: str) -> str:
    text = (result or "").lower()
    if any(word in text for word in CRITICAL_KEYWORDS):
        return "critical"
    if any(word in text for word in ABNORMAL_KEYWORDS):
        return "abnormal"
    return "normal"


def test_results_by_month(db: Session, year: Optional[int] = None) -> List[Dict]:
    start, end = _year_bounds(year)
    series = [{"month": label, "normal": 0, "abnormal": 0, "critical": 0} for label in MONTH_LABELS]
    rows = db.query(TestResult.created_at, TestResult.result).filter(
        TestResult.created_at >= start, TestResult.created_at < end,
    )
    for created_at, result in rows:
        series[created_at.month - 1][classify_result(result)] += 1
    return series


def dashboard_stats(db: Session, role: str) -> List[Dict]:
    """Four headline cards; only finance roles see revenue."""
    stats = [
        {"title": "Total Patients", "value": db.query(Patient).count()},
        {"title": "Total Appointments", "value": db.query(Appointment).count()},
        {"title": "Total Lab Tests", "value": db.query(TestRequest).count()},
    ]
    if role in FINANCE_ROLES:
        revenue = (
            db.query(func.coalesce(func.sum(Payment.amount), 0))
            .filter(Payment.status == PaymentStatus.COMPLETED)
            .scalar()
        )
        stats.append({"title": "Total Revenue", "value": f"UGX {int(revenue):,}"})
    else:
        pending = db.query(TestRequest).filter(TestRequest.status.in_(TestStatus.PENDING)).count()
        stats.append({"title": "Pending Tests", "value": pending})
    return stats

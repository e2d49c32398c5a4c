"""
View invalidation signalling.

Every successful mutation marks the dashboard views that display the changed
records as stale. Each view path carries a version counter; clients poll
``GET /api/v1/dashboard/versions`` and refetch the views whose version moved.
"""
import logging
from threading import Lock
from typing import Dict

logger = logging.getLogger(__name__)

PATIENTS_VIEW = "/dashboard/patients"
APPOINTMENTS_VIEW = "/dashboard/appointments"
LAB_TESTS_VIEW = "/dashboard/lab-tests"
PHARMACY_VIEW = "/dashboard/pharmacy"
PAYMENTS_VIEW = "/dashboard/payments"
USERS_VIEW = "/dashboard/users"
PROFILE_VIEW = "/dashboard/profile"
REFERRALS_VIEW = "/dashboard/referrals"


def patient_view(patient_id: str) -> str:
    return f"{PATIENTS_VIEW}/{patient_id}"


class ViewCache:
    def __init__(self):
        self._versions: Dict[str, int] = {}
        self._lock = Lock()

    def revalidate(self, *paths: str) -> None:
        """Mark each view path as stale."""
        with self._lock:
            for path in paths:
                self._versions[path] = self._versions.get(path, 0) + 1
        for path in paths:
            logger.debug("View invalidated: %s", path)

    def forget(self, *paths: str) -> None:
        """Drop the counters of views whose record no longer exists."""
        with self._lock:
            for path in paths:
                self._versions.pop(path, None)

    def version(self, path: str) -> int:
        return self._versions.get(path, 0)

    def snapshot(self, prefix: str = "") -> Dict[str, int]:
        with self._lock:
            return {path: v for path, v in self._versions.items() if path.startswith(prefix)}


view_cache = ViewCache()

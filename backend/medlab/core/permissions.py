"""
Role-based permission matrix for MedLab.
Defines what each staff role is allowed to do, and which dashboard sections it sees.
"""
from typing import Dict, List

from ..models.user import UserRole

# Permission constants
PERM_VIEW_DASHBOARD = "view_dashboard"
PERM_VIEW_PATIENTS = "view_patients"
PERM_MANAGE_PATIENTS = "manage_patients"
PERM_DELETE_PATIENTS = "delete_patients"
PERM_MANAGE_APPOINTMENTS = "manage_appointments"
PERM_RECORD_DIAGNOSIS = "record_diagnosis"
PERM_VIEW_LAB_TESTS = "view_lab_tests"
PERM_PROCESS_LAB_TESTS = "process_lab_tests"
PERM_PRESCRIBE = "prescribe"
PERM_VIEW_PRESCRIPTIONS = "view_prescriptions"
PERM_DISPENSE = "dispense"
PERM_MANAGE_INVENTORY = "manage_inventory"
PERM_MANAGE_PAYMENTS = "manage_payments"
PERM_VIEW_FINANCIAL_REPORTS = "view_financial_reports"
PERM_MANAGE_REFERRALS = "manage_referrals"
PERM_MANAGE_USERS = "manage_users"
PERM_VIEW_AUDIT_LOGS = "view_audit_logs"
PERM_SYSTEM_CONFIG = "system_config"

ALL_PERMISSIONS = {
    PERM_VIEW_DASHBOARD,
    PERM_VIEW_PATIENTS,
    PERM_MANAGE_PATIENTS,
    PERM_DELETE_PATIENTS,
    PERM_MANAGE_APPOINTMENTS,
    PERM_RECORD_DIAGNOSIS,
    PERM_VIEW_LAB_TESTS,
    PERM_PROCESS_LAB_TESTS,
    PERM_PRESCRIBE,
    PERM_VIEW_PRESCRIPTIONS,
    PERM_DISPENSE,
    PERM_MANAGE_INVENTORY,
    PERM_MANAGE_PAYMENTS,
    PERM_VIEW_FINANCIAL_REPORTS,
    PERM_MANAGE_REFERRALS,
    PERM_MANAGE_USERS,
    PERM_VIEW_AUDIT_LOGS,
    PERM_SYSTEM_CONFIG,
}

# Role permission matrix
ROLE_PERMISSIONS: dict = {
    UserRole.ADMIN: ALL_PERMISSIONS,
    UserRole.DOCTOR: {
        PERM_VIEW_DASHBOARD,
        PERM_VIEW_PATIENTS,
        PERM_MANAGE_PATIENTS,
        PERM_MANAGE_APPOINTMENTS,
        PERM_RECORD_DIAGNOSIS,
        PERM_VIEW_LAB_TESTS,
        PERM_PRESCRIBE,
        PERM_VIEW_PRESCRIPTIONS,
        PERM_MANAGE_REFERRALS,
    },
    UserRole.NURSE: {
        PERM_VIEW_DASHBOARD,
        PERM_VIEW_PATIENTS,
        PERM_MANAGE_PATIENTS,
        PERM_MANAGE_APPOINTMENTS,
        PERM_VIEW_LAB_TESTS,
        PERM_VIEW_PRESCRIPTIONS,
    },
    UserRole.RECEPTIONIST: {
        PERM_VIEW_DASHBOARD,
        PERM_VIEW_PATIENTS,
        PERM_MANAGE_PATIENTS,
        PERM_MANAGE_APPOINTMENTS,
    },
    UserRole.LAB_TECHNICIAN: {
        PERM_VIEW_DASHBOARD,
        PERM_VIEW_PATIENTS,
        PERM_VIEW_LAB_TESTS,
        PERM_PROCESS_LAB_TESTS,
    },
    UserRole.PHARMACIST: {
        PERM_VIEW_DASHBOARD,
        PERM_VIEW_PATIENTS,
        PERM_VIEW_PRESCRIPTIONS,
        PERM_DISPENSE,
        PERM_MANAGE_INVENTORY,
    },
    UserRole.CASHIER: {
        PERM_VIEW_DASHBOARD,
        PERM_VIEW_PATIENTS,
        PERM_MANAGE_PAYMENTS,
        PERM_VIEW_FINANCIAL_REPORTS,
    },
}

# Dashboard sections, each visible to the roles holding its permission
NAVIGATION: List[Dict[str, str]] = [
    {"name": "Dashboard", "href": "/dashboard", "permission": PERM_VIEW_DASHBOARD},
    {"name": "Patients", "href": "/dashboard/patients", "permission": PERM_MANAGE_PATIENTS},
    {"name": "Appointments", "href": "/dashboard/appointments", "permission": PERM_MANAGE_APPOINTMENTS},
    {"name": "Lab Tests", "href": "/dashboard/lab-tests", "permission": PERM_VIEW_LAB_TESTS},
    {"name": "Payments", "href": "/dashboard/payments", "permission": PERM_MANAGE_PAYMENTS},
    {"name": "Pharmacy", "href": "/dashboard/pharmacy", "permission": PERM_DISPENSE},
    {"name": "Referrals", "href": "/dashboard/referrals", "permission": PERM_MANAGE_REFERRALS},
    {"name": "Profile", "href": "/dashboard/profile", "permission": PERM_VIEW_DASHBOARD},
    {"name": "Settings", "href": "/dashboard/settings", "permission": PERM_SYSTEM_CONFIG},
]


def has_permission(role: str, permission: str) -> bool:
    """Check if a role has a specific permission."""
    return permission in ROLE_PERMISSIONS.get(role, set())


def navigation_for(role: str) -> List[Dict[str, str]]:
    """Sidebar entries for a role."""
    return [
        {"name": item["name"], "href": item["href"]}
        for item in NAVIGATION
        if has_permission(role, item["permission"])
    ]

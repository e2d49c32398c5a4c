"""
Status transition tables for every workflow entity.

Only forward transitions are defined (refund is the one reversal of a
completed payment). Re-writing the current status is always accepted.
"""
from typing import Dict, FrozenSet

from ..core.errors import InvalidTransitionError, ValidationError
from ..models.appointment import AppointmentStatus
from ..models.billing import InvoiceStatus, PaymentStatus
from ..models.clinical import TestStatus
from ..models.referral import ReferralStatus

Transitions = Dict[str, FrozenSet[str]]

APPOINTMENT_TRANSITIONS: Transitions = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.NO_SHOW: frozenset({AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

TEST_REQUEST_TRANSITIONS: Transitions = {
    TestStatus.REQUESTED: frozenset({TestStatus.IN_PROGRESS, TestStatus.COMPLETED, TestStatus.CANCELLED}),
    TestStatus.IN_PROGRESS: frozenset({TestStatus.COMPLETED, TestStatus.CANCELLED}),
    TestStatus.COMPLETED: frozenset(),
    TestStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: Transitions = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.CANCELLED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
}

INVOICE_TRANSITIONS: Transitions = {
    InvoiceStatus.PENDING: frozenset({InvoiceStatus.PAID}),
    InvoiceStatus.PAID: frozenset(),
}

REFERRAL_TRANSITIONS: Transitions = {
    ReferralStatus.PENDING: frozenset({ReferralStatus.ACCEPTED, ReferralStatus.CANCELLED}),
    ReferralStatus.ACCEPTED: frozenset({ReferralStatus.COMPLETED, ReferralStatus.CANCELLED}),
    ReferralStatus.COMPLETED: frozenset(),
    ReferralStatus.CANCELLED: frozenset(),
}


def is_terminal(table: Transitions, status: str) -> bool:
    return not table.get(status)


def can_transition(table: Transitions, current: str, target: str) -> bool:
    return current == target or target in table.get(current, frozenset())


def ensure_transition(entity: str, table: Transitions, current: str, target: str) -> None:
    """Raise unless ``current -> target`` is an allowed move for ``entity``."""
    if target not in table:
        raise ValidationError(f"Unknown {entity} status: {target}")
    if not can_transition(table, current, target):
        raise InvalidTransitionError(entity, current, target)

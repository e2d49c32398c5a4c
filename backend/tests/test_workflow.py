"""Tests for the status transition tables."""
import pytest

from medlab.core.errors import InvalidTransitionError, ValidationError
from medlab.models.appointment import AppointmentStatus
from medlab.models.billing import InvoiceStatus, PaymentStatus
from medlab.models.clinical import TestStatus
from medlab.models.referral import ReferralStatus
from medlab.services.workflow import (
    APPOINTMENT_TRANSITIONS,
    INVOICE_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    REFERRAL_TRANSITIONS,
    TEST_REQUEST_TRANSITIONS,
    can_transition,
    ensure_transition,
    is_terminal,
)


class TestTransitionTables:
    def test_every_status_has_an_entry(self):
        assert set(APPOINTMENT_TRANSITIONS) == set(AppointmentStatus.ALL)
        assert set(TEST_REQUEST_TRANSITIONS) == set(TestStatus.ALL)
        assert set(PAYMENT_TRANSITIONS) == set(PaymentStatus.ALL)
        assert set(INVOICE_TRANSITIONS) == set(InvoiceStatus.ALL)
        assert set(REFERRAL_TRANSITIONS) == set(ReferralStatus.ALL)

    def test_terminal_states(self):
        assert is_terminal(APPOINTMENT_TRANSITIONS, AppointmentStatus.COMPLETED)
        assert is_terminal(TEST_REQUEST_TRANSITIONS, TestStatus.CANCELLED)
        assert is_terminal(INVOICE_TRANSITIONS, InvoiceStatus.PAID)
        assert not is_terminal(PAYMENT_TRANSITIONS, PaymentStatus.COMPLETED)

    def test_completed_test_never_reopens(self):
        for target in (TestStatus.REQUESTED, TestStatus.IN_PROGRESS, TestStatus.CANCELLED):
            assert not can_transition(TEST_REQUEST_TRANSITIONS, TestStatus.COMPLETED, target)

    def test_refund_is_the_only_way_out_of_completed_payment(self):
        """COMPLETED payments can only move to REFUNDED."""
        assert can_transition(PAYMENT_TRANSITIONS, PaymentStatus.COMPLETED, PaymentStatus.REFUNDED)
        assert not can_transition(PAYMENT_TRANSITIONS, PaymentStatus.COMPLETED, PaymentStatus.PENDING)
        assert not can_transition(PAYMENT_TRANSITIONS, PaymentStatus.REFUNDED, PaymentStatus.COMPLETED)

    def test_same_status_is_accepted(self):
        """Re-applying the current status is allowed, even from a terminal state."""
        assert can_transition(APPOINTMENT_TRANSITIONS, AppointmentStatus.COMPLETED, AppointmentStatus.COMPLETED)


class TestEnsureTransition:
    def test_allowed_move_passes(self):
        ensure_transition(
            "appointment", APPOINTMENT_TRANSITIONS, AppointmentStatus.SCHEDULED, AppointmentStatus.NO_SHOW,
        )

    def test_disallowed_move_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_transition(
                "referral", REFERRAL_TRANSITIONS, ReferralStatus.COMPLETED, ReferralStatus.PENDING,
            )
        assert exc_info.value.current == ReferralStatus.COMPLETED
        assert exc_info.value.status_code == 409
        assert "referral" in exc_info.value.message

    def test_unknown_status_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            ensure_transition("appointment", APPOINTMENT_TRANSITIONS, AppointmentStatus.SCHEDULED, "ARCHIVED")

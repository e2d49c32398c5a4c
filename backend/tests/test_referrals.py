"""Tests for specialist referrals."""
import pytest

from medlab.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from medlab.models.referral import ReferralStatus
from medlab.models.user import UserRole
from medlab.services import referrals


@pytest.fixture()
def specialist(make_user):
    return make_user(UserRole.DOCTOR, name="Dr. Peter Mugisha")


class TestReferrals:
    def test_refer(self, db, patient, doctor, specialist):
        referral = referrals.refer_to_specialist(
            db, patient.id, doctor.id, specialist.id, "  Cardiology review ", notes="ECG attached",
        )
        assert referral.status == ReferralStatus.PENDING
        assert referral.reason == "Cardiology review"
        assert referral.specialist.name == "Dr. Peter Mugisha"
        assert referral.referring_doctor.id == doctor.id

    def test_reason_required(self, db, patient, doctor, specialist):
        with pytest.raises(ValidationError):
            referrals.refer_to_specialist(db, patient.id, doctor.id, specialist.id, " ")

    def test_no_self_referral(self, db, patient, doctor):
        with pytest.raises(ValidationError):
            referrals.refer_to_specialist(db, patient.id, doctor.id, doctor.id, "Second opinion")

    def test_specialist_must_be_a_doctor(self, db, patient, doctor, pharmacist):
        with pytest.raises(ValidationError):
            referrals.refer_to_specialist(db, patient.id, doctor.id, pharmacist.id, "Medication review")

    def test_unknown_patient(self, db, doctor, specialist):
        with pytest.raises(NotFoundError):
            referrals.refer_to_specialist(db, "missing", doctor.id, specialist.id, "Review")

    def test_status_flow(self, db, patient, doctor, specialist):
        """Referrals move along the transition table and stop at terminal states."""
        referral = referrals.refer_to_specialist(db, patient.id, doctor.id, specialist.id, "Review")
        referrals.update_referral_status(db, referral.id, ReferralStatus.ACCEPTED)
        done = referrals.update_referral_status(db, referral.id, ReferralStatus.COMPLETED)
        assert done.status == ReferralStatus.COMPLETED
        with pytest.raises(InvalidTransitionError):
            referrals.update_referral_status(db, referral.id, ReferralStatus.CANCELLED)

    def test_list_filters(self, db, patient, make_patient, doctor, specialist):
        other = make_patient(name="John Okello", phone="2")
        first = referrals.refer_to_specialist(db, patient.id, doctor.id, specialist.id, "Review")
        referrals.refer_to_specialist(db, other.id, doctor.id, specialist.id, "Review")
        referrals.update_referral_status(db, first.id, ReferralStatus.CANCELLED)

        assert [r.id for r in referrals.list_referrals(db, patient_id=patient.id)] == [first.id]
        assert len(referrals.list_referrals(db, status=ReferralStatus.PENDING)) == 1
        assert len(referrals.list_referrals(db)) == 2

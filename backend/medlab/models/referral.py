from sqlalchemy import Column, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid


class ReferralStatus:
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    ALL = [PENDING, ACCEPTED, COMPLETED, CANCELLED]


class Referral(Base, TimestampMixin):
    __tablename__ = "referrals"

    id = Column(String, primary_key=True, default=generate_uuid)
    patient_id = Column(String, ForeignKey("patients.id"), nullable=False, index=True)
    referring_doctor_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    specialist_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ReferralStatus.PENDING)

    patient = relationship("Patient", back_populates="referrals")
    referring_doctor = relationship("User", foreign_keys=[referring_doctor_id])
    specialist = relationship("User", foreign_keys=[specialist_id])

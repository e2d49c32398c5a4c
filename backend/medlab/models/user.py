from sqlalchemy import Column, String, Boolean, DateTime
from .base import Base, TimestampMixin, generate_uuid


class UserRole:
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    RECEPTIONIST = "RECEPTIONIST"
    LAB_TECHNICIAN = "LAB_TECHNICIAN"
    PHARMACIST = "PHARMACIST"
    CASHIER = "CASHIER"

    ALL = [ADMIN, DOCTOR, NURSE, RECEPTIONIST, LAB_TECHNICIAN, PHARMACIST, CASHIER]


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.RECEPTIONIST)
    is_active = Column(Boolean, default=True, nullable=False)
    refresh_token = Column(String(500), nullable=True)
    last_login = Column(DateTime, nullable=True)

"""Shared fixtures: an isolated in-memory database per test, staff factories, an API client."""
import os

# Must be set before medlab.core.config is first imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUDIT_LOG_ENABLED"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"

from functools import lru_cache  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from medlab.core.security import create_access_token, get_password_hash  # noqa: E402
from medlab.models import base as model_base  # noqa: E402
from medlab.models.base import Base, get_db, make_engine  # noqa: E402
from medlab.models.patient import Patient  # noqa: E402
from medlab.models.pharmacy import MedicationInventory  # noqa: E402
from medlab.models.user import User, UserRole  # noqa: E402

TEST_PASSWORD = "Secret123!"


@lru_cache(maxsize=None)
def _hashed(password: str) -> str:
    # one bcrypt hash per distinct password per run
    return get_password_hash(password)


@pytest.fixture()
def engine(monkeypatch):
    """A fresh in-memory SQLite database wired into the app's module-level session factory."""
    test_engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=test_engine)
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    monkeypatch.setattr(model_base, "engine", test_engine)
    monkeypatch.setattr(model_base, "SessionLocal", TestSession)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture()
def db(engine):
    session = model_base.SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(role=UserRole.DOCTOR, name=None, email=None, password=TEST_PASSWORD, is_active=True):
        counter["n"] += 1
        user = User(
            name=name or f"{role.title()} {counter['n']}",
            email=email or f"{role.lower()}{counter['n']}@medlab.test",
            hashed_password=_hashed(password),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture()
def doctor(make_user):
    return make_user(UserRole.DOCTOR, name="Dr. Sarah Namusoke")


@pytest.fixture()
def technician(make_user):
    return make_user(UserRole.LAB_TECHNICIAN, name="Moses Kato")


@pytest.fixture()
def pharmacist(make_user):
    return make_user(UserRole.PHARMACIST, name="Ruth Nakato")


@pytest.fixture()
def cashier(make_user):
    return make_user(UserRole.CASHIER, name="David Ssempa")


@pytest.fixture()
def admin(make_user):
    return make_user(UserRole.ADMIN, name="Site Admin")


@pytest.fixture()
def make_patient(db):
    def _make(name="Jane Doe", phone="+256 700 111222", **fields):
        patient = Patient(name=name, phone=phone, **fields)
        db.add(patient)
        db.commit()
        return patient

    return _make


@pytest.fixture()
def patient(make_patient):
    return make_patient()


@pytest.fixture()
def make_stock(db):
    def _make(name="Paracetamol", quantity=10, unit_price=200, **fields):
        item = MedicationInventory(name=name, quantity=quantity, unit_price=unit_price, **fields)
        db.add(item)
        db.commit()
        return item

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user: User) -> dict:
        token = create_access_token({"sub": user.id, "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def client(engine):
    """API client; requests get their own session on the test database."""
    from medlab.main import app

    def _override_get_db():
        session = model_base.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()

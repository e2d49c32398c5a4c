from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List


class Settings(BaseSettings):
    APP_NAME: str = "MedLab Hospital & Laboratory Management"
    VERSION: str = "1.0.0"
    SECRET_KEY: str = "change-me-in-production-use-strong-random-key"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    DATABASE_URL: str = "sqlite:///./medlab.db"
    LOG_LEVEL: str = "INFO"

    AUDIT_LOG_ENABLED: bool = True
    SEED_DEMO_DATA: bool = True

    # Billing policy (whole Ugandan Shillings)
    CONSULTATION_FEE: int = 50000
    TEST_FEE: int = 30000
    RECEIPT_PREFIX: str = "REC"
    INVOICE_PREFIX: str = "INV"

    # Pharmacy
    LOW_STOCK_THRESHOLD: int = 20

    # Share of pending lab tests reported as urgent on the lab dashboard
    URGENT_TEST_RATIO: float = 0.05

    # Organization identity printed on receipts, prescriptions and lab reports
    HOSPITAL_NAME: str = "SSM Laboratory & Medical Center"
    HOSPITAL_ADDRESS: str = "123 Health Street, Kampala, Uganda"
    HOSPITAL_PHONE: str = "+256 700 123456"
    HOSPITAL_EMAIL: str = "info@ssmlab.com"

    # Shown on the test distribution chart while no test requests exist.
    # Set to an empty list to return an empty series instead.
    TEST_DISTRIBUTION_FALLBACK: List[Dict] = [
        {"name": "Complete Blood Count", "value": 35},
        {"name": "Urinalysis", "value": 25},
        {"name": "Blood Pressure", "value": 20},
        {"name": "X-Ray", "value": 20},
    ]

    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()

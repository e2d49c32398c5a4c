"""
MedLab - Hospital & Laboratory Management API
Patient registry, appointments, lab workflow, pharmacy and billing.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import (
    admin, appointments, auth, billing, clinical, dashboard, patients, pharmacy, printing, referrals, users,
)
from .core.audit_middleware import AuditMiddleware
from .core.config import settings
from .core.errors import MedLabError
from .models import base as model_base
from .seed_demo import seed_demo_data

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # NOTE: In production, use Alembic migrations instead of create_all()
    model_base.Base.metadata.create_all(bind=model_base.engine)
    if settings.SEED_DEMO_DATA:
        seed_demo_data()
    yield


app = FastAPI(
    title="MedLab Hospital & Laboratory Management API",
    description=(
        "Role-based hospital and laboratory management: patient records, appointments, "
        "diagnoses and lab tests, prescriptions and dispensing, invoicing and payments."
    ),
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(AuditMiddleware)


# ── Error envelope ───────────────────────────────────────────────────────────

@app.exception_handler(MedLabError)
async def medlab_error_handler(request: Request, exc: MedLabError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "code": exc.code})


HTTP_ERROR_CODES = {401: "unauthorized", 403: "permission_denied", 404: "not_found"}


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": HTTP_ERROR_CODES.get(exc.status_code, "http_error")},
        headers=exc.headers,
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"error": "The change conflicts with existing records", "code": "conflict"},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Operation failed", "code": "database_error"})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else "Invalid request"
    return JSONResponse(status_code=422, content={"error": message, "code": "validation_error"})


for module in (auth, users, patients, appointments, clinical, pharmacy, billing, referrals,
               dashboard, printing, admin):
    app.include_router(module.router, prefix="/api/v1")


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": settings.APP_NAME, "version": settings.VERSION}

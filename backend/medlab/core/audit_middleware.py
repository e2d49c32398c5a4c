"""
Audit logging middleware.
Auto-logs all requests to endpoints that expose patient records.
"""
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from ..models.audit import AuditLog
from ..models import base as model_base
from ..core.config import settings
from ..core.security import decode_access_token

logger = logging.getLogger(__name__)

# Endpoints that touch patient data - requests to these paths are logged
PHI_PATH_PREFIXES = (
    "/api/v1/patients",
    "/api/v1/appointments",
    "/api/v1/diagnoses",
    "/api/v1/lab-tests",
    "/api/v1/pharmacy",
    "/api/v1/billing",
    "/api/v1/referrals",
    "/api/v1/print",
)

ACTION_MAP = {
    "GET": "view",
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}


class AuditMiddleware(BaseHTTPMiddleware):
    """Middleware that auto-logs access to patient-record endpoints."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        if not settings.AUDIT_LOG_ENABLED:
            return response

        path = request.url.path
        if not any(path.startswith(prefix) for prefix in PHI_PATH_PREFIXES):
            return response

        if request.method not in ACTION_MAP:
            return response

        user_id = "anonymous"
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            payload = decode_access_token(auth_header[7:])
            if payload:
                user_id = payload.get("sub", "anonymous")

        # Derive resource type and ID from path, e.g. /api/v1/patients/<id>
        parts = [p for p in path.split("/") if p]
        resource_type = parts[2] if len(parts) >= 3 else "unknown"
        resource_id = parts[3] if len(parts) >= 4 else "collection"

        db = model_base.SessionLocal()
        try:
            db.add(AuditLog(
                user_id=user_id,
                action=ACTION_MAP[request.method],
                resource_type=resource_type,
                resource_id=resource_id,
                ip_address=request.client.host if request.client else None,
                request_method=request.method,
                request_path=path,
                status_code=str(response.status_code),
                user_agent=request.headers.get("User-Agent"),
            ))
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.warning(
                "Audit log write failed for %s %s (user=%s): %s",
                request.method, path, user_id, exc,
            )
        finally:
            db.close()

        return response

"""Authentication endpoints: login, refresh, me, change password, navigation."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pydantic import BaseModel

from ..models.base import get_db
from ..models.user import User
from ..core.permissions import PERM_MANAGE_USERS, navigation_for
from ..core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    get_current_user,
    require_permission,
)
from ..services import users as user_service
from .schemas import UserResponse

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Request schemas ──────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class ResetPasswordRequest(BaseModel):
    email: str


def _issue_tokens(db: Session, user: User) -> dict:
    access_token = create_access_token({"sub": user.id, "role": user.role})
    refresh_token = create_refresh_token({"sub": user.id})
    user_service.record_login(db, user, refresh_token)
    return {
        "success": True,
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "user": UserResponse.model_validate(user),
    }


# ── Endpoints ────────────────────────────────────────────────────────────────

@router.post("/login")
def login(req: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and receive JWT access + refresh tokens."""
    user = user_service.authenticate(db, req.email, req.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _issue_tokens(db, user)


@router.post("/refresh")
def refresh_token(req: RefreshRequest, db: Session = Depends(get_db)):
    """Exchange a valid refresh token for a new token pair."""
    payload = decode_access_token(req.refresh_token)
    if payload is None or payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user = db.query(User).filter(User.id == payload.get("sub")).first()
    if not user or user.refresh_token != req.refresh_token or not user.is_active:
        raise HTTPException(status_code=401, detail="Refresh token revoked or invalid")
    return _issue_tokens(db, user)


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    return {"success": True, "user": UserResponse.model_validate(current_user)}


@router.get("/navigation")
def get_navigation(current_user: User = Depends(get_current_user)):
    """Dashboard sections available to the caller's role."""
    return {"success": True, "navigation": navigation_for(current_user.role)}


@router.put("/password")
def change_password(
    req: ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user_service.change_password(db, current_user.id, req.current_password, req.new_password)
    return {"success": True}


@router.post("/reset-password")
def reset_password(
    req: ResetPasswordRequest,
    db: Session = Depends(get_db),
    _admin=Depends(require_permission(PERM_MANAGE_USERS)),
):
    """Admin-only: replace a user's password with a temporary one."""
    user, temporary_password = user_service.reset_password(db, req.email)
    return {"success": True, "user": UserResponse.model_validate(user), "temporary_password": temporary_password}

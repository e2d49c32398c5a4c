from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..core.permissions import PERM_MANAGE_USERS, PERM_VIEW_DASHBOARD
from ..core.security import get_current_user, require_permission
from ..models.base import get_db
from ..models.user import User
from ..services import users as user_service
from .schemas import UserBrief, UserResponse

router = APIRouter(prefix="/users", tags=["users"])


class UserCreate(BaseModel):
    name: str
    email: str
    password: str
    role: str


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class PasswordUpdate(BaseModel):
    new_password: str


@router.get("/")
def list_users(
    role: Optional[str] = None,
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_MANAGE_USERS)),
):
    users = user_service.list_users(db, role)
    return {"users": [UserResponse.model_validate(u) for u in users]}


@router.get("/doctors")
def list_doctors(
    db: Session = Depends(get_db),
    _user=Depends(require_permission(PERM_VIEW_DASHBOARD)),
):
    return {"doctors": [UserBrief.model_validate(u) for u in user_service.list_doctors(db)]}


@router.put("/profile")
def update_profile(
    body: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = user_service.update_user_profile(db, current_user.id, body.name, body.email)
    return {"success": True, "user": UserResponse.model_validate(user)}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    db: Session = Depends(get_db),
    _admin=Depends(require_permission(PERM_MANAGE_USERS)),
):
    user = user_service.create_user(db, body.name, body.email, body.password, body.role)
    return {"success": True, "user": UserResponse.model_validate(user)}


@router.get("/{user_id}")
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    _admin=Depends(require_permission(PERM_MANAGE_USERS)),
):
    return {"success": True, "user": UserResponse.model_validate(user_service.get_user(db, user_id))}


@router.put("/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdate,
    db: Session = Depends(get_db),
    _admin=Depends(require_permission(PERM_MANAGE_USERS)),
):
    user = user_service.update_user(db, user_id, **body.model_dump(exclude_unset=True))
    return {"success": True, "user": UserResponse.model_validate(user)}


@router.put("/{user_id}/password")
def update_user_password(
    user_id: str,
    body: PasswordUpdate,
    db: Session = Depends(get_db),
    _admin=Depends(require_permission(PERM_MANAGE_USERS)),
):
    user_service.update_user_password(db, user_id, body.new_password)
    return {"success": True}


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_permission(PERM_MANAGE_USERS)),
):
    user_service.delete_user(db, user_id, acting_user_id=admin.id)
    return {"success": True}

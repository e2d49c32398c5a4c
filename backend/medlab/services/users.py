"""Staff accounts: CRUD, profile edits and password management."""
import logging
import secrets
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.cache import PROFILE_VIEW, USERS_VIEW, view_cache
from ..core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ..core.security import get_password_hash, verify_password
from ..models.base import atomic
from ..models.user import User, UserRole

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _check_password(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _check_role(role: str) -> None:
    if role not in UserRole.ALL:
        raise ValidationError(f"Unknown role: {role}")


def _check_email_free(db: Session, email: str, user_id: Optional[str] = None) -> None:
    q = db.query(User).filter(User.email == email)
    if user_id:
        q = q.filter(User.id != user_id)
    if q.first() is not None:
        raise ConflictError("Email is already taken by another user")


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def list_users(db: Session, role: Optional[str] = None) -> List[User]:
    q = db.query(User)
    if role:
        q = q.filter(User.role == role)
    return q.order_by(User.name).all()


def list_doctors(db: Session) -> List[User]:
    return (
        db.query(User)
        .filter(User.role == UserRole.DOCTOR, User.is_active.is_(True))
        .order_by(User.name)
        .all()
    )


def create_user(db: Session, name: str, email: str, password: str, role: str) -> User:
    if not (name or "").strip():
        raise ValidationError("Name is required")
    if not (email or "").strip():
        raise ValidationError("Email is required")
    _check_role(role)
    _check_password(password)
    email = email.strip().lower()
    _check_email_free(db, email)

    with atomic(db):
        user = User(
            name=name.strip(),
            email=email,
            hashed_password=get_password_hash(password),
            role=role,
        )
        db.add(user)
    logger.info("Created %s account for %s", role, email)
    view_cache.revalidate(USERS_VIEW)
    return user


def update_user(
    db: Session,
    user_id: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> User:
    user = get_user(db, user_id)
    if role is not None:
        _check_role(role)
    if email is not None:
        email = email.strip().lower()
        _check_email_free(db, email, user_id)

    with atomic(db):
        if name is not None:
            user.name = name.strip()
        if email is not None:
            user.email = email
        if role is not None:
            user.role = role
        if is_active is not None:
            user.is_active = is_active
    view_cache.revalidate(USERS_VIEW)
    return user


def update_user_profile(
    db: Session, user_id: str, name: Optional[str] = None, email: Optional[str] = None,
) -> User:
    """Self-service edit; name and email only."""
    user = update_user(db, user_id, name=name, email=email)
    view_cache.revalidate(PROFILE_VIEW)
    return user


def update_user_password(db: Session, user_id: str, new_password: str) -> User:
    user = get_user(db, user_id)
    _check_password(new_password)
    with atomic(db):
        user.hashed_password = get_password_hash(new_password)
        user.refresh_token = None
    logger.info("Password set for user %s", user_id)
    return user


def change_password(db: Session, user_id: str, current_password: str, new_password: str) -> User:
    user = get_user(db, user_id)
    if not verify_password(current_password, user.hashed_password):
        raise PermissionDeniedError("Current password is incorrect")
    return update_user_password(db, user_id, new_password)


def reset_password(db: Session, email: str) -> Tuple[User, str]:
    """Replace the password with a random temporary one and return it."""
    user = get_user_by_email(db, email)
    if user is None:
        raise NotFoundError("Account")
    temporary = secrets.token_urlsafe(9)
    update_user_password(db, user.id, temporary)
    logger.info("Password reset for %s", user.email)
    return user, temporary


def delete_user(db: Session, user_id: str, acting_user_id: Optional[str] = None) -> None:
    user = get_user(db, user_id)
    if acting_user_id == user_id:
        raise ValidationError("You cannot delete your own account")
    with atomic(db):
        db.delete(user)
    logger.info("Deleted user %s", user_id)
    view_cache.revalidate(USERS_VIEW)


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = get_user_by_email(db, email)
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def record_login(db: Session, user: User, refresh_token: str) -> User:
    with atomic(db):
        user.refresh_token = refresh_token
        user.last_login = datetime.now()
    return user

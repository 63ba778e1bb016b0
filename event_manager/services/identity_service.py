"""Identity store: user records and password credentials."""
import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from event_manager.database import atomic
from event_manager.errors import ConflictError, InvalidCredentialsError, NotFoundError, ValidationError
from event_manager.models.user import User
from event_manager.security import hash_password, verify_password

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = ("name", "email", "profile_picture")


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def find_by_email(db: Session, email: str):
    return db.query(User).filter(User.email == _normalize_email(email)).first()


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def register(db: Session, name: str, email: str, password: str) -> User:
    """Create a user with a bcrypt-hashed password. Emails are unique."""
    if not name or not name.strip() or not email or not email.strip() or not password:
        raise ValidationError("All fields are required")

    email = _normalize_email(email)
    if find_by_email(db, email):
        logger.info("Registration rejected, email already in use: %s", email)
        raise ConflictError("User already exists")

    user = User(name=name.strip(), email=email, password_hash=hash_password(password))
    try:
        with atomic(db):
            db.add(user)
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same email.
        raise ConflictError("User already exists") from exc
    db.refresh(user)
    logger.info("Registered user %s (%s)", user.id, user.email)
    return user


def verify_credential(db: Session, email: str, password: str) -> User:
    user = find_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise InvalidCredentialsError()
    logger.info("User %s logged in", user.id)
    return user


def list_other_users(db: Session, user_id: str) -> list[User]:
    """All users except ``user_id``, for choosing attendees."""
    return db.query(User).filter(User.id != user_id).order_by(User.name).all()


def update_profile(db: Session, user_id: str, fields: dict[str, Any]) -> User:
    """Partial profile update for the caller's own record."""
    user = get_user(db, user_id)
    updates = {k: v for k, v in fields.items() if k in _PROFILE_FIELDS and v is not None}

    if "name" in updates and not updates["name"].strip():
        raise ValidationError("Name must not be empty")
    if "email" in updates:
        updates["email"] = _normalize_email(updates["email"])
        other = find_by_email(db, updates["email"])
        if other and other.id != user.id:
            raise ConflictError("Email is already in use")

    try:
        with atomic(db):
            for field, value in updates.items():
                setattr(user, field, value)
    except IntegrityError as exc:
        raise ConflictError("Email is already in use") from exc
    db.refresh(user)
    logger.info("Updated profile for user %s (%s)", user_id, ", ".join(sorted(updates)) or "no changes")
    return user

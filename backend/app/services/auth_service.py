# Overview: User accounts, bcrypt password hashing and role promotion.

"""
Authentication Service

Every document and edit request is attributable to a user. Passwords are
hashed with bcrypt and checked for strength on creation.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
- Roles change only through promote_user (admin-only at the HTTP layer)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ROLE_ADMIN, ROLE_USER, VALID_ROLES, User
from ..pagination import normalize_page, offset_for, page_response
from ..validation import ConflictError, NotFoundError, ValidationError
from app.time_utils import utcnow


USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]{3,64}$")
USER_SORT_FIELDS = {"username", "role", "created_at", "updated_at"}


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe via bcrypt.checkpw; malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_role(role: str | None) -> str:
    value = (role or ROLE_USER).strip().upper()
    if value not in VALID_ROLES:
        raise ValidationError(f"Invalid role specified. Must be one of: {', '.join(VALID_ROLES)}")
    return value


def create_user(username: str, password: str, role: str | None = None) -> User:
    """
    Raises:
        ValidationError: malformed username, weak password or unknown role
        ConflictError: username already taken
    """
    username = (username or "").strip()
    if not username or not password:
        raise ValidationError("Username and password are required")
    if not USERNAME_PATTERN.match(username):
        raise ValidationError("Username must be 3-64 characters: letters, digits, '_', '.', '-'")
    role = _normalize_role(role)

    if db.session.query(User.id).filter(User.username == username).first():
        raise ConflictError("Username is already taken")

    user = User(username=username, password_hash=hash_password(password), role=role)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username is already taken")

    current_app.logger.info("User %s created with role %s", user.username, user.role)
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Returns the active User whose password matches, else None.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.username == (username or "").strip(),
        User.is_active.is_(True),
    ).first()
    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user
    return None


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def promote_user(user_id: int) -> User:
    """Give a user the ADMIN role. Promoting an admin again is a no-op."""
    user = get_user(user_id)
    if user.role != ROLE_ADMIN:
        user.role = ROLE_ADMIN
        db.session.commit()
        current_app.logger.info("User %s promoted to admin", user.username)
    return user


def list_users(
    *,
    page: int | None = None,
    limit: int | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
) -> dict:
    page, limit = normalize_page(page, limit)
    field = sort_by if sort_by in USER_SORT_FIELDS else "created_at"
    column = getattr(User, field)
    ordering = column.asc() if (sort_order or "").lower() == "asc" else column.desc()

    query = db.session.query(User)
    total = query.count()
    users = query.order_by(ordering, User.id.asc()).offset(offset_for(page, limit)).limit(limit).all()
    return page_response([u.to_dict() for u in users], page=page, limit=limit, total=total)


def ensure_admin(username: str, password: str) -> tuple[User, bool]:
    """
    Bootstrap helper: create an ADMIN user, or promote an existing one.
    Returns (user, created).
    """
    existing = db.session.query(User).filter(User.username == (username or "").strip()).first()
    if existing:
        return promote_user(existing.id), False
    return create_user(username, password, ROLE_ADMIN), True

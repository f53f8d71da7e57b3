# Overview: Password handling, login, and the privileged staff-account path.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

PRIVILEGED CREATION:
Staff accounts are never self-registered. create_staff_account() is the only
way in, and it re-verifies from the requester's own token that the
requester is an admin, regardless of what the calling route already checked.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char
"""

import logging
import re

import bcrypt
from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError

from ..errors import AuthorizationError, ConflictError, ValidationError
from ..extensions import db
from ..models import User
from ..permissions import Role, ALL_ROLES
from atelier.time_utils import utcnow
from . import session_service
from .concurrency import run_with_retry
from .permission_service import log_security_event

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
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
    """Validate strength, then bcrypt-hash with cost factor 12."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _config_default(key: str, fallback: str) -> str:
    if not has_app_context():
        return fallback
    return current_app.config.get(key, fallback)


def create_user(
    email: str,
    password: str,
    name: str,
    role: str | None = None,
    location: str | None = None,
) -> User:
    """
    Create a staff user with bcrypt password hashing.

    role defaults to DEFAULT_STAFF_ROLE, location to DEFAULT_STAFF_LOCATION.

    Raises:
        ValidationError: Missing fields, bad email, unknown role, weak password
        ConflictError: Email already registered
    """
    email = (email or "").strip().lower()
    name = (name or "").strip()
    if not email or not password or not name:
        raise ValidationError("email, password, and name are required")
    if not EMAIL_RE.match(email):
        raise ValidationError("email is not a valid address")

    role = role or _config_default("DEFAULT_STAFF_ROLE", Role.TAILOR.value)
    if Role.parse(role) is None:
        raise ValidationError(f"Invalid role '{role}'. Must be one of: {', '.join(ALL_ROLES)}")
    location = (location or "").strip() or _config_default("DEFAULT_STAFF_LOCATION", "Unit 1")

    if db.session.query(User).filter(User.email == email).first():
        raise ConflictError("A user with this email already exists")

    password_hash = hash_password(password)

    def _op():
        user = User(
            email=email,
            name=name,
            password_hash=password_hash,
            role=Role.parse(role).value,
            location=location,
            is_active=True,
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent request registered the same email first
            db.session.rollback()
            raise ConflictError("A user with this email already exists")
        return user

    return run_with_retry(_op)


def authenticate(email: str, password: str) -> User | None:
    """
    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    email = (email or "").strip().lower()
    user = db.session.query(User).filter(
        User.email == email,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def create_staff_account(requester_token: str | None, payload: dict) -> int:
    """
    Privileged staff-account creation. Returns the new user id.

    Request payload: {email, password, name, role?, location?}

    The requester is re-verified from requester_token: the session must be
    valid and the requester's stored role must be admin.

    Raises:
        AuthorizationError: Missing/invalid token or requester not an admin
        ValidationError / ConflictError: see create_user
    """
    context = session_service.get_session(requester_token)
    if context is None:
        raise AuthorizationError("Unauthorized")

    requester = context.principal
    if requester.role is not Role.ADMIN:
        log_security_event(
            user_id=requester.user_id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource="users",
            action="createStaffAccount",
            reason="Forbidden: Admins only",
            location=requester.location,
        )
        raise AuthorizationError("Forbidden: Admins only")

    payload = payload or {}
    user = create_user(
        email=payload.get("email"),
        password=payload.get("password"),
        name=payload.get("name"),
        role=payload.get("role"),
        location=payload.get("location"),
    )

    logger.info("Admin %s created staff account %s (%s)", requester.user_id, user.id, user.role)
    log_security_event(
        user_id=requester.user_id,
        event_type="USER_CREATED",
        success=True,
        resource=f"users:{user.id}",
        action="createStaffAccount",
        reason=f"Created {user.role} {user.email}",
        location=requester.location,
    )
    return user.id

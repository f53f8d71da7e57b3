# Overview: Staff user administration (roles, locations, deletion).

"""
User administration.

Role and location changes and deletions are admin-only (manageUsers) and
subject to self-protection: nobody changes their own role or deletes
themself. Account creation goes through auth_service.create_staff_account.

Deleting a user, or moving a tailor to another role, leaves their orders
in place, unassigned.
"""

from __future__ import annotations

import logging

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Order, User
from ..permissions import Action, Role, ALL_ROLES
from atelier.time_utils import utcnow
from .concurrency import run_with_retry
from .permission_service import (
    SELF_CHANGE_ROLE,
    SELF_DELETE,
    log_security_event,
    require,
    require_not_self,
)

logger = logging.getLogger(__name__)


def _resource(user_id) -> str:
    return f"users:{user_id}"


def _load_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def _unassign_orders(user_id: int) -> int:
    """Unassign every order of user_id (version bumped). Caller commits."""
    return db.session.query(Order).filter(Order.assigned_tailor_id == user_id).update(
        {
            Order.assigned_tailor_id: None,
            Order.updated_at: utcnow(),
            Order.version_id: Order.version_id + 1,
        },
        synchronize_session=False,
    )


def list_users(principal, *, include_inactive: bool = False) -> list[User]:
    require(principal, Action.MANAGE_USERS, resource="users")
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.created_at.desc(), User.id.desc()).all()


def list_tailors(principal) -> list[User]:
    """Active tailors, for the assignment picker (admins and managers)."""
    require(principal, Action.ASSIGN_TAILOR, resource="users")
    return (
        db.session.query(User)
        .filter(User.role == Role.TAILOR.value, User.is_active.is_(True))
        .order_by(User.name.asc(), User.id.asc())
        .all()
    )


def change_role(principal, user_id: int, new_role) -> User:
    """
    Raises:
        AuthorizationError: not an admin, or targeting self
        ValidationError: unknown role
        NotFoundError: user missing
    """
    require(principal, Action.MANAGE_USERS, resource=_resource(user_id))
    require_not_self(principal, user_id, SELF_CHANGE_ROLE)

    role = Role.parse(new_role)
    if role is None:
        raise ValidationError(f"Invalid role: {new_role!r}. Must be one of {', '.join(ALL_ROLES)}")

    user = _load_user(user_id)
    previous = user.role

    def _op():
        current = _load_user(user_id)
        # Orders may only stay assigned to tailors
        if Role.parse(current.role) is Role.TAILOR and role is not Role.TAILOR:
            _unassign_orders(user_id)
        current.role = role.value
        db.session.commit()
        return current

    user = run_with_retry(_op)
    db.session.expire_all()
    logger.info("User %s role %s -> %s by admin %s", user_id, previous, role.value, principal.user_id)
    log_security_event(
        user_id=principal.user_id,
        event_type="ROLE_CHANGED",
        success=True,
        resource=_resource(user_id),
        action=Action.MANAGE_USERS.value,
        reason=f"{previous} -> {role.value}",
        location=principal.location,
    )
    return user


def change_location(principal, user_id: int, location: str | None) -> User:
    require(principal, Action.MANAGE_USERS, resource=_resource(user_id))
    _load_user(user_id)
    cleaned = (location or "").strip() or None

    def _op():
        current = _load_user(user_id)
        current.location = cleaned
        db.session.commit()
        return current

    user = run_with_retry(_op)
    logger.info("User %s moved to location %s by admin %s", user_id, cleaned, principal.user_id)
    return user


def delete_user(principal, user_id: int) -> None:
    """
    Remove a staff account.

    Orders assigned to the user are unassigned (version bumped) and their
    sessions are dropped with the row.
    """
    require(principal, Action.MANAGE_USERS, resource=_resource(user_id))
    require_not_self(principal, user_id, SELF_DELETE)
    user = _load_user(user_id)
    email = user.email

    def _op():
        _unassign_orders(user_id)
        current = _load_user(user_id)
        db.session.delete(current)
        db.session.commit()

    run_with_retry(_op)
    db.session.expire_all()

    logger.info("User %s (%s) deleted by admin %s", user_id, email, principal.user_id)
    log_security_event(
        user_id=principal.user_id,
        event_type="USER_DELETED",
        success=True,
        resource=_resource(user_id),
        action=Action.MANAGE_USERS.value,
        reason=f"Deleted {email}",
        location=principal.location,
    )

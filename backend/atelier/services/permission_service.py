# Overview: Access policy evaluation and security event logging.

"""
Access Policy

WHY: Every mutation in the workshop is gated by (role, ownership, location).
can_perform() is the single decision point; require() is the enforcing
wrapper that logs denials to the security_events audit trail.

RULES (evaluated in this precedence):
1. admin may perform every action unconditionally.
2. manager may perform everything except manageUsers. With location scoping
   on, order, finance, client and measurement actions are restricted to
   targets in the manager's own unit.
3. tailor may viewOrder / transitionOrder only on orders assigned to them.
   Nothing else.
4. Any other (absent/unknown) role is denied everything.

SELF-PROTECTION:
Nobody may change their own role or delete their own account, admins
included. This prevents the last admin from locking everyone out.

DESIGN PRINCIPLES:
- Fail closed: deny by default
- can_perform() is pure: no config, session or clock reads
- Log denials only
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app, has_app_context

from ..errors import AuthorizationError
from ..extensions import db
from ..models import SecurityEvent
from ..permissions import Action, Role, LOCATION_SCOPED_ACTIONS, TAILOR_OWNED_ACTIONS
from atelier.time_utils import utcnow

logger = logging.getLogger(__name__)


SELF_CHANGE_ROLE = "change_role"
SELF_DELETE = "delete"


@dataclass(frozen=True)
class ResourceTarget:
    """Ownership/location attributes of the resource an action is aimed at."""
    assigned_tailor_id: int | None = None
    location: str | None = None


def target_for(record) -> ResourceTarget:
    """Build a ResourceTarget from any record carrying location/assignment."""
    if record is None:
        return ResourceTarget()
    return ResourceTarget(
        assigned_tailor_id=getattr(record, "assigned_tailor_id", None),
        location=getattr(record, "location", None),
    )


def location_scoping_enabled() -> bool:
    if not has_app_context():
        return True
    return bool(current_app.config.get("LOCATION_SCOPING_ENABLED", True))


def can_perform(
    principal,
    action: Action,
    target: ResourceTarget | None = None,
    *,
    location_scoping: bool = True,
) -> bool:
    """
    Decide whether principal may perform action on target.

    target=None means "the action in general" (e.g. opening the finance
    page); per-record checks always pass a target.
    """
    if principal is None:
        return False

    role = Role.parse(principal.role)
    action = Action(action)

    if role is Role.ADMIN:
        return True

    if role is Role.MANAGER:
        if action is Action.MANAGE_USERS:
            return False
        if (
            location_scoping
            and action in LOCATION_SCOPED_ACTIONS
            and target is not None
            and principal.location
        ):
            return target.location == principal.location
        return True

    if role is Role.TAILOR:
        if action not in TAILOR_OWNED_ACTIONS or target is None:
            return False
        return (
            target.assigned_tailor_id is not None
            and target.assigned_tailor_id == principal.user_id
        )

    return False


def violates_self_protection(principal, target_user_id: int, operation: str) -> bool:
    """True if principal would change their own role or delete themself."""
    if operation not in (SELF_CHANGE_ROLE, SELF_DELETE):
        return False
    return principal is not None and principal.user_id == target_user_id


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    location: str | None = None,
) -> SecurityEvent:
    """
    Append an event to the security audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - INVALID_TRANSITION
    - STATUS_CONFLICT
    - SELF_PROTECTION_DENIED
    - LOGIN_FAILED
    - USER_CREATED / ROLE_CHANGED / USER_DELETED
    """
    event = SecurityEvent(
        user_id=user_id,
        location=location,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def require(
    principal,
    action: Action,
    target: ResourceTarget | None = None,
    *,
    resource: str | None = None,
) -> None:
    """
    Enforce can_perform(), raising AuthorizationError and logging on denial.

    Usage:
        require(principal, Action.ASSIGN_TAILOR, target_for(order), resource=f"orders:{order.id}")
    """
    action = Action(action)
    allowed = can_perform(principal, action, target, location_scoping=location_scoping_enabled())
    if allowed:
        return

    role = principal.role.value if principal is not None and principal.role else None
    reason = f"Role {role or 'none'} may not {action.value}"
    if target is not None and principal is not None and principal.role is Role.MANAGER:
        reason = f"{reason} outside location {principal.location}"

    logger.info("Denied %s for user %s on %s", action.value, getattr(principal, "user_id", None), resource)
    log_security_event(
        user_id=getattr(principal, "user_id", None),
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=action.value,
        reason=reason,
        location=getattr(principal, "location", None),
    )
    raise AuthorizationError(f"Permission denied: {action.value}")


def require_not_self(principal, target_user_id: int, operation: str) -> None:
    """
    Enforce the self-protection rule.

    Raises:
        AuthorizationError: principal targets their own role or account
    """
    if not violates_self_protection(principal, target_user_id, operation):
        return

    log_security_event(
        user_id=principal.user_id,
        event_type="SELF_PROTECTION_DENIED",
        success=False,
        resource=f"users:{target_user_id}",
        action=operation,
        reason="Users cannot change their own role or delete themselves",
        location=principal.location,
    )
    if operation == SELF_DELETE:
        raise AuthorizationError("You cannot delete your own account")
    raise AuthorizationError("You cannot change your own role")

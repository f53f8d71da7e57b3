# Overview: Order status state machine; pure functions, no database work.

"""
Order Lifecycle

================================================================================
STATE MACHINE:
    New -> In Progress -> Trial -> Alteration -> Completed -> Delivered
                               \\-------------> Completed

    Trial is the only branch point (fitting went fine -> Completed,
    fitting needs changes -> Alteration). Delivered is terminal.

RULES:
1. Cannot skip states (New -> Trial is forbidden)
2. Cannot reverse states (Completed -> Trial is forbidden)
3. Same-state "transitions" are not transitions
4. An unrecognized current status has no successors. This leniency is
   deliberate: callers use an empty successor set to disable the action,
   never to raise.
5. A missing status (NULL in legacy rows) is read as New.
================================================================================
"""

from __future__ import annotations

from enum import Enum

from ..errors import InvalidTransitionError, ValidationError


class OrderStatus(str, Enum):
    NEW = "New"
    IN_PROGRESS = "In Progress"
    TRIAL = "Trial"
    ALTERATION = "Alteration"
    COMPLETED = "Completed"
    DELIVERED = "Delivered"


# Canonical display order (dashboards group by this)
STATUS_FLOW = (
    OrderStatus.NEW,
    OrderStatus.IN_PROGRESS,
    OrderStatus.TRIAL,
    OrderStatus.ALTERATION,
    OrderStatus.COMPLETED,
    OrderStatus.DELIVERED,
)

_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.NEW: frozenset({OrderStatus.IN_PROGRESS}),
    OrderStatus.IN_PROGRESS: frozenset({OrderStatus.TRIAL}),
    OrderStatus.TRIAL: frozenset({OrderStatus.ALTERATION, OrderStatus.COMPLETED}),
    OrderStatus.ALTERATION: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
}

ACTIVE_EXCLUDED = frozenset({OrderStatus.COMPLETED, OrderStatus.DELIVERED})


def normalize_status(status) -> OrderStatus | None:
    """
    Map a stored/requested status to OrderStatus.

    None -> New (legacy rows). Unknown strings -> None.
    """
    if status is None:
        return OrderStatus.NEW
    if isinstance(status, OrderStatus):
        return status
    try:
        return OrderStatus(status)
    except ValueError:
        return None


def next_statuses(current) -> frozenset[OrderStatus]:
    """
    Statuses directly reachable from current.

    Unrecognized statuses yield an empty set (see RULES 4).
    """
    status = normalize_status(current)
    if status is None:
        return frozenset()
    return _TRANSITIONS[status]


def ordered_next_statuses(current) -> list[str]:
    """next_statuses in canonical flow order, as plain strings (for JSON)."""
    reachable = next_statuses(current)
    return [status.value for status in STATUS_FLOW if status in reachable]


def is_terminal(current) -> bool:
    return normalize_status(current) == OrderStatus.DELIVERED


def can_transition(from_status, to_status) -> bool:
    target = normalize_status(to_status) if to_status is not None else None
    if target is None:
        return False
    return target in next_statuses(from_status)


def validate_status(status) -> OrderStatus:
    """
    Parse a requested status.

    Raises:
        ValidationError: If status is missing or not one of the six statuses
    """
    if status is None or (isinstance(status, str) and not status.strip()):
        raise ValidationError("status is required")
    parsed = normalize_status(status)
    if parsed is None:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(s.value for s in STATUS_FLOW)}"
        )
    return parsed


def require_transition(from_status, to_status) -> OrderStatus:
    """
    Validate a transition request before anything is written.

    Returns the parsed target status.

    Raises:
        ValidationError: Target status is not a status at all
        InvalidTransitionError: Target is not in next_statuses(from_status)
    """
    target = validate_status(to_status)
    if target not in next_statuses(from_status):
        current = normalize_status(from_status)
        current_label = current.value if current else str(from_status)
        allowed = ordered_next_statuses(from_status)
        raise InvalidTransitionError(
            f"Cannot move order from {current_label} to {target.value}",
            details={"from": current_label, "to": target.value, "allowed": allowed},
        )
    return target

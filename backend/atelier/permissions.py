"""
Roles and actions evaluated by the access policy.

WHY: Roles and actions used to travel as loose strings. They are closed
enumerations here; anything that does not parse is treated as "no role"
and denied everything.

ROLE SUMMARY:
- admin:   every action, everywhere
- manager: everything except user administration, scoped to their unit
- tailor:  view and advance orders assigned to them, nothing else
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    TAILOR = "tailor"

    @classmethod
    def parse(cls, value) -> "Role | None":
        """Return the Role for value, or None for absent/unknown roles."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class Action(str, Enum):
    VIEW_ORDER = "viewOrder"
    CREATE_ORDER = "createOrder"
    TRANSITION_ORDER = "transitionOrder"
    ASSIGN_TAILOR = "assignTailor"
    VIEW_FINANCE = "viewFinance"
    MANAGE_USERS = "manageUsers"
    MANAGE_MEASUREMENTS = "manageMeasurements"
    MANAGE_CLIENTS = "manageClients"


# Manager actions that are restricted to targets in the manager's own unit
LOCATION_SCOPED_ACTIONS = frozenset({
    Action.VIEW_ORDER,
    Action.CREATE_ORDER,
    Action.TRANSITION_ORDER,
    Action.ASSIGN_TAILOR,
    Action.VIEW_FINANCE,
    Action.MANAGE_MEASUREMENTS,
    Action.MANAGE_CLIENTS,
})

# Tailors may only touch orders assigned to them
TAILOR_OWNED_ACTIONS = frozenset({
    Action.VIEW_ORDER,
    Action.TRANSITION_ORDER,
})

ALL_ROLES = tuple(role.value for role in Role)

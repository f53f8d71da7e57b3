# Overview: Identity resolver; maps an authenticated session to a Principal.

"""
Identity Resolver

WHY: The access policy and the order services never read ambient session
state. A request's identity is resolved once into an immutable Principal
value, which is then passed explicitly into every service call.

The identity provider yields only (user id, email). Role and location come
from a secondary lookup in the users table keyed by that user id.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import User
from ..permissions import Role


@dataclass(frozen=True)
class Principal:
    """
    The authenticated actor evaluated against the access policy.

    role is None when the stored role is absent or unknown; such principals
    are denied every action.
    """
    user_id: int
    role: Role | None
    location: str | None = None
    email: str | None = None
    name: str | None = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.role.value if self.role else None,
            "location": self.location,
            "email": self.email,
            "name": self.name,
        }


def principal_from_user(user: User) -> Principal:
    location = (user.location or "").strip() or None
    return Principal(
        user_id=user.id,
        role=Role.parse(user.role),
        location=location,
        email=user.email,
        name=user.name,
    )


def resolve_principal(user_id: int) -> Principal | None:
    """
    Look up role and location for an authenticated user id.

    Returns None if the user no longer exists or is deactivated.
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return None
    return principal_from_user(user)

# Overview: Client directory CRUD, location-scoped for managers.

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import NotFoundError
from ..extensions import db
from ..models import Client
from ..permissions import Action, Role
from ..validation import ModelValidationPolicy, validate_payload
from atelier.time_utils import utcnow
from .concurrency import run_with_retry
from .permission_service import ResourceTarget, require, target_for
from .scoping_service import RESOURCE_CLIENTS, scope_filter

logger = logging.getLogger(__name__)


CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "notes", "location"},
    required_on_create={"name", "phone"},
)


def _resource(client_id) -> str:
    return f"clients:{client_id}"


def _owning_location(principal, patch: dict) -> str | None:
    """Managers always file records under their own unit."""
    if principal.role is Role.MANAGER:
        return principal.location
    return patch.get("location")


def _load_client(client_id: int) -> Client:
    client = db.session.get(Client, client_id)
    if not client:
        raise NotFoundError(f"Client {client_id} not found")
    return client


def list_clients(principal, *, search: str | None = None, location: str | None = None) -> list[Client]:
    require(principal, Action.MANAGE_CLIENTS, resource=RESOURCE_CLIENTS)
    scope = scope_filter(principal, RESOURCE_CLIENTS, location=(location or "").strip() or None)
    query = scope.apply(db.session.query(Client), Client)

    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(Client.name.ilike(pattern), Client.phone.like(pattern), Client.email.ilike(pattern)))

    return query.order_by(Client.name.asc(), Client.id.asc()).all()


def get_client(principal, client_id: int) -> Client:
    client = _load_client(client_id)
    require(principal, Action.MANAGE_CLIENTS, target_for(client), resource=_resource(client_id))
    return client


def create_client(principal, payload: dict) -> Client:
    require(principal, Action.MANAGE_CLIENTS, resource=RESOURCE_CLIENTS)
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)
    patch["location"] = _owning_location(principal, patch)
    require(principal, Action.MANAGE_CLIENTS, ResourceTarget(location=patch["location"]), resource=RESOURCE_CLIENTS)

    def _op():
        client = Client(created_at=utcnow(), **patch)
        db.session.add(client)
        db.session.commit()
        return client

    client = run_with_retry(_op)
    logger.info("Client %s created by user %s", client.id, principal.user_id)
    return client


def update_client(principal, client_id: int, payload: dict) -> Client:
    client = _load_client(client_id)
    require(principal, Action.MANAGE_CLIENTS, target_for(client), resource=_resource(client_id))
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=True)
    if principal.role is Role.MANAGER:
        # Managers cannot move records to another unit
        patch.pop("location", None)

    def _op():
        current = _load_client(client_id)
        for key, value in patch.items():
            setattr(current, key, value)
        db.session.commit()
        return current

    return run_with_retry(_op)


def delete_client(principal, client_id: int) -> None:
    client = _load_client(client_id)
    require(principal, Action.MANAGE_CLIENTS, target_for(client), resource=_resource(client_id))

    def _op():
        current = db.session.get(Client, client_id)
        if current is not None:
            db.session.delete(current)
            db.session.commit()

    run_with_retry(_op)
    logger.info("Client %s deleted by user %s", client_id, principal.user_id)

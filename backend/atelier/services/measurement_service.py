# Overview: Measurement cards CRUD, location-scoped for managers.

from __future__ import annotations

import logging

from sqlalchemy import func, or_

from ..errors import NotFoundError
from ..extensions import db
from ..models import Measurement
from ..models.measurements import BODY_DIMENSIONS
from ..permissions import Action, Role
from ..validation import ModelValidationPolicy, enforce_rules_measurement, validate_payload
from atelier.time_utils import utcnow
from .concurrency import run_with_retry
from .permission_service import ResourceTarget, require, target_for
from .scoping_service import RESOURCE_MEASUREMENTS, scope_filter

logger = logging.getLogger(__name__)


MEASUREMENT_POLICY = ModelValidationPolicy(
    writable_fields={"client_name", "phone", "unit", "notes", "location", *BODY_DIMENSIONS},
    required_on_create={"client_name", "phone"},
)


def _resource(measurement_id) -> str:
    return f"measurements:{measurement_id}"


def _load_measurement(measurement_id: int) -> Measurement:
    measurement = db.session.get(Measurement, measurement_id)
    if not measurement:
        raise NotFoundError(f"Measurement {measurement_id} not found")
    return measurement


def next_sequence_number(phone: str) -> int:
    """1-based card counter per client phone."""
    current = db.session.query(func.max(Measurement.sequence_number)).filter(
        Measurement.phone == phone
    ).scalar()
    return (current or 0) + 1


def validate_measurement(principal, payload: dict) -> dict:
    """
    Validate and authorize a new card without writing it.

    Returns the cleaned patch (location resolved). Used by create and by the
    intake saga's up-front validation.
    """
    require(principal, Action.MANAGE_MEASUREMENTS, resource=RESOURCE_MEASUREMENTS)
    patch = validate_payload(model=Measurement, payload=payload, policy=MEASUREMENT_POLICY, partial=False)
    enforce_rules_measurement(patch)
    if principal.role is Role.MANAGER:
        patch["location"] = principal.location
    require(
        principal,
        Action.MANAGE_MEASUREMENTS,
        ResourceTarget(location=patch.get("location")),
        resource=RESOURCE_MEASUREMENTS,
    )
    return patch


def list_measurements(principal, *, search: str | None = None, location: str | None = None) -> list[Measurement]:
    require(principal, Action.MANAGE_MEASUREMENTS, resource=RESOURCE_MEASUREMENTS)
    scope = scope_filter(principal, RESOURCE_MEASUREMENTS, location=(location or "").strip() or None)
    query = scope.apply(db.session.query(Measurement), Measurement)

    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(Measurement.client_name.ilike(pattern), Measurement.phone.like(pattern)))

    return query.order_by(Measurement.created_at.desc(), Measurement.id.desc()).all()


def get_measurement(principal, measurement_id: int) -> Measurement:
    measurement = _load_measurement(measurement_id)
    require(principal, Action.MANAGE_MEASUREMENTS, target_for(measurement), resource=_resource(measurement_id))
    return measurement


def create_measurement(principal, payload: dict) -> Measurement:
    patch = validate_measurement(principal, payload)

    def _op():
        measurement = Measurement(
            sequence_number=next_sequence_number(patch["phone"]),
            created_at=utcnow(),
            **patch,
        )
        db.session.add(measurement)
        db.session.commit()
        return measurement

    measurement = run_with_retry(_op)
    logger.info("Measurement %s (#%s for %s) created", measurement.id, measurement.sequence_number, measurement.phone)
    return measurement


def update_measurement(principal, measurement_id: int, payload: dict) -> Measurement:
    measurement = _load_measurement(measurement_id)
    require(principal, Action.MANAGE_MEASUREMENTS, target_for(measurement), resource=_resource(measurement_id))
    patch = validate_payload(model=Measurement, payload=payload, policy=MEASUREMENT_POLICY, partial=True)
    enforce_rules_measurement(patch)
    if principal.role is Role.MANAGER:
        patch.pop("location", None)

    def _op():
        current = _load_measurement(measurement_id)
        for key, value in patch.items():
            setattr(current, key, value)
        db.session.commit()
        return current

    return run_with_retry(_op)


def delete_measurement(principal, measurement_id: int) -> None:
    """Delete a card. An order linked to it keeps existing, unlinked."""
    measurement = _load_measurement(measurement_id)
    require(principal, Action.MANAGE_MEASUREMENTS, target_for(measurement), resource=_resource(measurement_id))
    delete_measurement_row(measurement_id)
    logger.info("Measurement %s deleted by user %s", measurement_id, principal.user_id)


def delete_measurement_row(measurement_id: int) -> bool:
    """Delete without policy checks (intake compensation). False if already gone."""
    def _op():
        current = db.session.get(Measurement, measurement_id)
        if current is None:
            return False
        if current.order is not None:
            current.order.measurement_id = None
        db.session.delete(current)
        db.session.commit()
        return True

    return run_with_retry(_op)

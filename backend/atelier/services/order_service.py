# Overview: Order orchestrator; validates, authorizes and writes order changes.

"""
Order Orchestrator

WHY: The only place order rows are written. Every operation runs the same
sequence: load -> authorize -> validate -> single-row write. Validation and
authorization failures never reach the record store.

CONCURRENCY:
Status writes are compare-and-set: the new status is applied only if the
stored status still equals the status the caller observed. A mismatch is a
ConflictError; the caller re-fetches and retries. Tailor assignment can opt
into the same protection via expected_version (orders.version_id).

OPERATIONS:
- prepare_order(principal, payload) / create_order(principal, payload)
- change_status(principal, order_id, requested_status, expected_status=None)
- assign_tailor(principal, order_id, tailor_id, expected_version=None)
- list_orders(principal, status=None, search=None, location=None)
- get_order(principal, order_id)
- order_summary(principal, location=None)
"""

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Measurement, Order, User
from ..permissions import Action, Role
from atelier.time_utils import parse_iso_date, utcnow
from . import lifecycle_service
from .concurrency import compare_and_set, run_with_retry
from .lifecycle_service import OrderStatus, STATUS_FLOW, ACTIVE_EXCLUDED
from .permission_service import (
    ResourceTarget,
    can_perform,
    location_scoping_enabled,
    log_security_event,
    require,
    target_for,
)
from .scoping_service import RESOURCE_ORDERS, scope_filter

logger = logging.getLogger(__name__)


REQUIRED_ORDER_FIELDS = ("client_name", "garment_type", "delivery_date")


def _resource(order_id) -> str:
    return f"orders:{order_id}"


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _load_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


# =============================================================================
# CREATE
# =============================================================================

def prepare_order(principal, payload: dict) -> dict:
    """
    Authorize and validate an order payload without writing anything.

    Returns the cleaned column values (status, measurement link and audit
    fields excluded).
    """
    require(principal, Action.CREATE_ORDER, resource=RESOURCE_ORDERS)

    payload = payload or {}
    missing = [name for name in REQUIRED_ORDER_FIELDS if not _clean(payload.get(name))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    try:
        delivery_date = parse_iso_date(str(payload.get("delivery_date")))
    except ValueError:
        raise ValidationError("delivery_date must be an ISO-8601 date (YYYY-MM-DD)")

    if principal.role is Role.MANAGER:
        location = principal.location
    else:
        location = _clean(payload.get("location"))

    require(principal, Action.CREATE_ORDER, ResourceTarget(location=location), resource=RESOURCE_ORDERS)

    return {
        "client_name": _clean(payload.get("client_name")),
        "phone": _clean(payload.get("phone")),
        "garment_type": _clean(payload.get("garment_type")),
        "delivery_date": delivery_date,
        "location": location,
        "notes": _clean(payload.get("notes")),
    }


def create_order(principal, payload: dict) -> Order:
    """
    Create an order in status New.

    Tailors are rejected outright. A manager's order always lands in the
    manager's own location; admins may choose a location explicitly.

    Request payload: client_name, garment_type, delivery_date (required),
    phone, notes, measurement_id (optional), location (admin only).

    Raises:
        AuthorizationError, ValidationError, NotFoundError, ConflictError, UpstreamError
    """
    fields = prepare_order(principal, payload)
    payload = payload or {}

    measurement_id = payload.get("measurement_id")
    if measurement_id is not None:
        measurement = db.session.get(Measurement, measurement_id)
        if not measurement:
            raise NotFoundError(f"Measurement {measurement_id} not found")
        linked = db.session.query(Order.id).filter(Order.measurement_id == measurement_id).first()
        if linked:
            raise ConflictError(f"Measurement {measurement_id} is already linked to order {linked[0]}")

    def _op():
        order = Order(
            status=OrderStatus.NEW.value,
            measurement_id=measurement_id,
            **fields,
            created_by_user_id=principal.user_id,
            created_at=utcnow(),
        )
        db.session.add(order)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    logger.info("Order %s created by user %s at %s", order.id, principal.user_id, order.location)
    return order


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def _ownership_guards(principal) -> dict:
    """
    Order attributes the transitionOrder decision depended on. The status
    write only lands if they still hold.
    """
    if principal.role is Role.TAILOR:
        return {"assigned_tailor_id": principal.user_id}
    if principal.role is Role.MANAGER and principal.location and location_scoping_enabled():
        return {"location": principal.location}
    return {}


def change_status(principal, order_id: int, requested_status, *, expected_status=None) -> Order:
    """
    Move an order to requested_status.

    expected_status is the status the caller last observed. If omitted, the
    freshly loaded status is used. The write only happens if the stored
    status still equals it at write time.

    Raises:
        NotFoundError: Order does not exist
        AuthorizationError: Policy denies transitionOrder on this order
        ValidationError: requested/expected status malformed
        InvalidTransitionError: requested_status not in next_statuses(observed)
        ConflictError: Stored status changed since the caller observed it
    """
    order = _load_order(order_id)
    require(principal, Action.TRANSITION_ORDER, target_for(order), resource=_resource(order_id))

    if expected_status is None:
        observed = lifecycle_service.normalize_status(order.status)
        if observed is None:
            # Unknown stored status: nothing is reachable
            observed_label = order.status
        else:
            observed_label = observed.value
    else:
        observed = lifecycle_service.validate_status(expected_status)
        observed_label = observed.value

    try:
        target = lifecycle_service.require_transition(observed_label, requested_status)
    except InvalidTransitionError as exc:
        logger.info("Rejected transition on order %s: %s", order_id, exc.message)
        log_security_event(
            user_id=principal.user_id,
            event_type="INVALID_TRANSITION",
            success=False,
            resource=_resource(order_id),
            action=Action.TRANSITION_ORDER.value,
            reason=exc.message,
            location=principal.location,
        )
        raise

    guards = _ownership_guards(principal)
    written = run_with_retry(lambda: compare_and_set(
        Order,
        order_id,
        field="status",
        expected=observed_label,
        values={"status": target.value, "updated_at": utcnow()},
        match_null=observed is OrderStatus.NEW,
        guards=guards,
    ))

    if not written:
        current = db.session.get(Order, order_id)
        if current is None:
            raise NotFoundError(f"Order {order_id} not found")
        current_status = current.status or OrderStatus.NEW.value
        if current_status == observed_label and any(
            getattr(current, name) != value for name, value in guards.items()
        ):
            logger.info("Order %s was reassigned before user %s could move it", order_id, principal.user_id)
            log_security_event(
                user_id=principal.user_id,
                event_type="STATUS_CONFLICT",
                success=False,
                resource=_resource(order_id),
                action=Action.TRANSITION_ORDER.value,
                reason="Order reassigned or moved since it was loaded",
                location=principal.location,
            )
            raise ConflictError(
                "Order was reassigned since it was loaded; reload and retry",
                details={"expected": observed_label, "current": current_status, "reassigned": True},
            )
        logger.info(
            "Status conflict on order %s: expected %s, found %s",
            order_id, observed_label, current_status,
        )
        log_security_event(
            user_id=principal.user_id,
            event_type="STATUS_CONFLICT",
            success=False,
            resource=_resource(order_id),
            action=Action.TRANSITION_ORDER.value,
            reason=f"Expected {observed_label}, found {current_status}",
            location=principal.location,
        )
        raise ConflictError(
            "Order status changed since it was loaded; reload and retry",
            details={"expected": observed_label, "current": current_status},
        )

    order = _load_order(order_id)
    logger.info("Order %s moved %s -> %s by user %s", order_id, observed_label, target.value, principal.user_id)
    return order


# =============================================================================
# TAILOR ASSIGNMENT
# =============================================================================

def assign_tailor(principal, order_id: int, tailor_id: int | None, *, expected_version: int | None = None) -> Order:
    """
    Assign (or with tailor_id=None, unassign) a tailor.

    Raises:
        NotFoundError: Order or tailor user missing
        AuthorizationError: Policy denies assignTailor on this order
        ValidationError: tailor_id does not reference a user with role tailor
        ConflictError: expected_version given and the order changed meanwhile
    """
    order = _load_order(order_id)
    require(principal, Action.ASSIGN_TAILOR, target_for(order), resource=_resource(order_id))

    if tailor_id is not None:
        tailor = db.session.get(User, tailor_id)
        if not tailor:
            raise NotFoundError(f"User {tailor_id} not found")
        if Role.parse(tailor.role) is not Role.TAILOR:
            raise ValidationError(f"User {tailor_id} is not a tailor")
        if not tailor.is_active:
            raise ValidationError(f"Tailor {tailor_id} is not active")

    values = {"assigned_tailor_id": tailor_id, "updated_at": utcnow()}

    if expected_version is not None:
        written = run_with_retry(lambda: compare_and_set(
            Order, order_id, field="version_id", expected=expected_version, values=values,
        ))
        if not written:
            raise ConflictError(
                "Order changed since it was loaded; reload and retry",
                details={"expected_version": expected_version},
            )
    else:
        def _op():
            current = _load_order(order_id)
            current.assigned_tailor_id = tailor_id
            current.updated_at = values["updated_at"]
            db.session.commit()

        run_with_retry(_op)

    order = _load_order(order_id)
    logger.info("Order %s assigned to tailor %s by user %s", order_id, tailor_id, principal.user_id)
    return order


# =============================================================================
# QUERIES
# =============================================================================

def _status_clause(status):
    parsed = lifecycle_service.validate_status(status)
    if parsed is OrderStatus.NEW:
        return or_(Order.status == parsed.value, Order.status.is_(None))
    return Order.status == parsed.value


def scoped_orders_query(principal, *, location: str | None = None):
    scope = scope_filter(principal, RESOURCE_ORDERS, location=location)
    return scope.apply(db.session.query(Order), Order)


def list_orders(
    principal,
    *,
    status: str | None = None,
    search: str | None = None,
    location: str | None = None,
) -> list[Order]:
    """
    Orders visible to principal, newest first.

    status ("All" or None = any) and search (client name or phone substring)
    are UI filters conjoined with the principal's scope; they can only narrow.
    """
    query = scoped_orders_query(principal, location=_clean(location))

    if status and status != "All":
        query = query.filter(_status_clause(status))

    term = _clean(search)
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(Order.client_name.ilike(pattern), Order.phone.like(pattern)))

    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order(principal, order_id: int) -> Order:
    """
    Fetch one order.

    Orders outside the principal's visibility read as missing (no existence
    leak); the denial is still logged.
    """
    order = _load_order(order_id)
    if not can_perform(principal, Action.VIEW_ORDER, target_for(order), location_scoping=location_scoping_enabled()):
        log_security_event(
            user_id=getattr(principal, "user_id", None),
            event_type="PERMISSION_DENIED",
            success=False,
            resource=_resource(order_id),
            action=Action.VIEW_ORDER.value,
            reason="Order outside principal scope",
            location=getattr(principal, "location", None),
        )
        raise NotFoundError(f"Order {order_id} not found")
    return order


def order_capabilities(principal, order: Order) -> dict:
    """What the principal may do next with order (drives UI buttons)."""
    scoping = location_scoping_enabled()
    target = target_for(order)
    can_transition = can_perform(principal, Action.TRANSITION_ORDER, target, location_scoping=scoping)
    return {
        "next_statuses": lifecycle_service.ordered_next_statuses(order.status) if can_transition else [],
        "can_transition": can_transition,
        "can_assign": can_perform(principal, Action.ASSIGN_TAILOR, target, location_scoping=scoping),
        "can_view_finance": can_perform(principal, Action.VIEW_FINANCE, target, location_scoping=scoping),
    }


def order_summary(principal, *, location: str | None = None) -> dict:
    """Per-status counts and dashboard KPIs within principal's scope."""
    orders = scoped_orders_query(principal, location=_clean(location)).all()

    by_status = {status.value: 0 for status in STATUS_FLOW}
    for order in orders:
        status = order.status or OrderStatus.NEW.value
        by_status[status] = by_status.get(status, 0) + 1

    excluded = {status.value for status in ACTIVE_EXCLUDED}
    return {
        "by_status": by_status,
        "total": len(orders),
        "active": sum(1 for o in orders if (o.status or OrderStatus.NEW.value) not in excluded),
        "completed": by_status[OrderStatus.COMPLETED.value],
        "delivered": by_status[OrderStatus.DELIVERED.value],
    }


def delete_order_row(order_id: int) -> bool:
    """
    Remove an order (and its invoice) without policy checks.

    Only used to compensate a failed intake; returns False if already gone.
    """
    def _op():
        order = db.session.get(Order, order_id)
        if not order:
            return False
        db.session.delete(order)
        db.session.commit()
        return True

    return run_with_retry(_op)

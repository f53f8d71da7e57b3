# Overview: Client intake (measurement -> order -> invoice) as a compensated saga.

"""
Order intake.

Request payload:
    {
        "order": {client_name, garment_type, delivery_date, phone?, notes?, location?},
        "measurement": {shoulder?, chest?, ..., unit?, notes?} (optional),
        "invoice": {total_amount, due_date?, notes?} (optional)
    }

Everything that can be checked without writing (authorization, required
fields, dates, amounts) is checked up front, so a rejected intake leaves
no rows behind. The writes then run as a saga: a failure in a later step
deletes the rows of the earlier steps, newest first.
"""

from __future__ import annotations

import logging

from ..errors import ValidationError
from ..permissions import Action
from . import invoice_service, measurement_service, order_service
from .balance_service import ZERO
from .permission_service import ResourceTarget, require
from .saga import Saga

logger = logging.getLogger(__name__)


STEP_MEASUREMENT = "measurement"
STEP_ORDER = "order"
STEP_INVOICE = "invoice"


def _section(payload: dict, name: str) -> dict | None:
    section = payload.get(name)
    if section is None:
        return None
    if not isinstance(section, dict):
        raise ValidationError(f"{name} must be an object")
    return section


def intake_order(principal, payload: dict) -> dict:
    """
    Run the intake and return the created records.

    Returns:
        {"order": Order, "measurement": Measurement | None,
         "invoice": Invoice | None, "completed": [step names]}

    Raises:
        AuthorizationError / ValidationError: before any write
        SagaError: a write failed; details say which step failed and what
            was compensated
    """
    payload = payload or {}
    order_payload = _section(payload, STEP_ORDER)
    if order_payload is None:
        raise ValidationError("order is required")
    measurement_payload = _section(payload, STEP_MEASUREMENT)
    invoice_payload = _section(payload, STEP_INVOICE)

    order_fields = order_service.prepare_order(principal, order_payload)

    if measurement_payload is not None:
        measurement_payload = dict(measurement_payload)
        measurement_payload.setdefault("client_name", order_fields["client_name"])
        measurement_payload.setdefault("phone", order_fields["phone"])
        measurement_payload.setdefault("location", order_fields["location"])
        measurement_service.validate_measurement(principal, measurement_payload)

    if invoice_payload is not None:
        require(
            principal,
            Action.VIEW_FINANCE,
            ResourceTarget(location=order_fields["location"]),
            resource="invoices",
        )
        if invoice_payload.get("total_amount") in (None, ""):
            raise ValidationError("invoice.total_amount is required")
        total = invoice_service.parse_amount(invoice_payload.get("total_amount"), "total_amount")
        if total < ZERO:
            raise ValidationError("total_amount cannot be negative")
        invoice_service.parse_date(invoice_payload.get("due_date"), "due_date")

    saga = Saga("intake")

    if measurement_payload is not None:
        saga.step(
            STEP_MEASUREMENT,
            lambda done: measurement_service.create_measurement(principal, measurement_payload),
            lambda measurement: measurement_service.delete_measurement_row(measurement.id),
        )

    def _create_order(done):
        body = dict(order_payload)
        body["location"] = order_fields["location"]
        measurement = done.get(STEP_MEASUREMENT)
        if measurement is not None:
            body["measurement_id"] = measurement.id
        return order_service.create_order(principal, body)

    saga.step(STEP_ORDER, _create_order, lambda order: order_service.delete_order_row(order.id))

    if invoice_payload is not None:
        saga.step(
            STEP_INVOICE,
            lambda done: invoice_service.create_invoice(
                principal,
                done[STEP_ORDER].id,
                invoice_payload.get("total_amount"),
                invoice_number=invoice_payload.get("invoice_number"),
                due_date=invoice_payload.get("due_date"),
                notes=invoice_payload.get("notes"),
            ),
            lambda invoice: invoice_service.delete_invoice_row(invoice.id),
        )

    result = saga.run()
    order = result.results[STEP_ORDER]
    logger.info("Intake completed for order %s (%s)", order.id, ", ".join(result.completed))
    return {
        "order": order,
        "measurement": result.results.get(STEP_MEASUREMENT),
        "invoice": result.results.get(STEP_INVOICE),
        "completed": list(result.completed),
    }

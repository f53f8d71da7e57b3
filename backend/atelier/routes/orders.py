# Overview: Flask API routes for orders; parses input and returns JSON responses.

"""
Order API routes.

Every route passes g.principal explicitly into the order services; the
services own authorization and validation. Status writes are
compare-and-set: clients send the status they last saw as
expected_status and get 409 if someone moved the order first.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AtelierError, ValidationError
from ..services import intake_service, invoice_service, order_service
from ..services.saga import SagaError
from ..decorators import require_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_detail(order) -> dict:
    detail = order.to_dict()
    detail.update(order_service.order_capabilities(g.principal, order))
    return detail


def _optional_int(data: dict, name: str):
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    Query params:
    - status: one of the order statuses, or "All"
    - search: client name or phone substring
    - location: narrow to one unit (admins; managers are pinned anyway)
    """
    try:
        orders = order_service.list_orders(
            g.principal,
            status=request.args.get("status"),
            search=request.args.get("search"),
            location=request.args.get("location"),
        )
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/summary")
@require_auth
def order_summary_route():
    try:
        summary = order_service.order_summary(g.principal, location=request.args.get("location"))
        return jsonify(summary), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build order summary")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(g.principal, order_id)
        return jsonify({"order": _order_detail(order)}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Request body:
    - client_name, garment_type, delivery_date (YYYY-MM-DD): required
    - phone, notes, measurement_id, location (admin only): optional
    """
    try:
        data = request.get_json(silent=True) or {}
        if "measurement_id" in data:
            data["measurement_id"] = _optional_int(data, "measurement_id")
        order = order_service.create_order(g.principal, data)
        return jsonify({"order": _order_detail(order)}), 201
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/status")
@require_auth
def change_status_route(order_id: int):
    """
    Request body:
    - status: requested next status (required)
    - expected_status: status the client last saw (recommended)

    400 INVALID_TRANSITION for an unreachable status, 403 if the policy
    denies the transition, 409 if the order moved meanwhile.
    """
    try:
        data = request.get_json(silent=True) or {}
        requested = data.get("status")
        if not requested:
            return jsonify({"error": "status required", "code": "VALIDATION_ERROR"}), 400

        order = order_service.change_status(
            g.principal,
            order_id,
            requested,
            expected_status=data.get("expected_status"),
        )
        return jsonify({"order": _order_detail(order)}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/assign")
@require_auth
def assign_tailor_route(order_id: int):
    """
    Request body:
    - tailor_id: user id of a tailor, or null to unassign
    - expected_version: order version_id the client last saw (optional)
    """
    try:
        data = request.get_json(silent=True) or {}
        if "tailor_id" not in data:
            return jsonify({"error": "tailor_id required", "code": "VALIDATION_ERROR"}), 400

        order = order_service.assign_tailor(
            g.principal,
            order_id,
            _optional_int(data, "tailor_id"),
            expected_version=_optional_int(data, "expected_version"),
        )
        return jsonify({"order": _order_detail(order)}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to assign tailor")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/invoice")
@require_auth
def get_order_invoice_route(order_id: int):
    try:
        invoice = invoice_service.get_order_invoice(g.principal, order_id)
        return jsonify({"invoice": invoice.to_dict() if invoice else None}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load order invoice")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/intake")
@require_auth
def intake_route():
    """
    Create measurement, order and invoice in one request.

    Request body: {"order": {...}, "measurement": {...}?, "invoice": {...}?}

    On a failed write the response carries failed_step, completed and
    compensated so the client knows nothing was left half-created.
    """
    try:
        data = request.get_json(silent=True) or {}
        result = intake_service.intake_order(g.principal, data)
        return jsonify({
            "order": _order_detail(result["order"]),
            "measurement": result["measurement"].to_dict() if result["measurement"] else None,
            "invoice": result["invoice"].to_dict() if result["invoice"] else None,
            "completed": result["completed"],
        }), 201
    except SagaError as e:
        current_app.logger.warning("Intake failed at %s (compensated: %s)", e.failed_step, e.compensated)
        return jsonify(e.to_dict()), e.status_code
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to run order intake")
        return jsonify({"error": "Internal server error"}), 500

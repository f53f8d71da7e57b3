# Overview: Flask API routes for invoices and payments.

"""
Finance API routes.

All routes require viewFinance; managers only see invoices whose order
belongs to their unit. Amounts are returned as 2-decimal strings.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AtelierError, ValidationError
from ..services import invoice_service
from ..decorators import require_auth


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


@finance_bp.get("/invoices")
@require_auth
def list_invoices_route():
    """
    Query params:
    - status: unpaid | partially_paid | paid | cancelled | all
    - search: invoice number or client name substring
    - location
    """
    try:
        invoices = invoice_service.list_invoices(
            g.principal,
            status=request.args.get("status"),
            search=request.args.get("search"),
            location=request.args.get("location"),
        )
        return jsonify({"invoices": [i.to_dict() for i in invoices], "count": len(invoices)}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/summary")
@require_auth
def finance_summary_route():
    try:
        summary = invoice_service.finance_summary(g.principal, location=request.args.get("location"))
        return jsonify(summary), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build finance summary")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.post("/invoices")
@require_auth
def create_invoice_route():
    """
    Request body:
    - order_id: int (required)
    - total_amount: number or numeric string (required, >= 0)
    - invoice_number, due_date (YYYY-MM-DD), notes: optional
    """
    try:
        data = request.get_json(silent=True) or {}
        order_id = data.get("order_id")
        if order_id is None or data.get("total_amount") is None:
            raise ValidationError("order_id and total_amount required")
        if isinstance(order_id, bool) or not isinstance(order_id, int):
            raise ValidationError("order_id must be an integer")

        invoice = invoice_service.create_invoice(
            g.principal,
            order_id,
            data.get("total_amount"),
            invoice_number=data.get("invoice_number"),
            due_date=data.get("due_date"),
            notes=data.get("notes"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 201
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/invoices/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(g.principal, invoice_id)
        return jsonify({
            "invoice": invoice.to_dict(),
            "payments": [p.to_dict() for p in invoice.payments],
        }), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load invoice")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/invoices/<int:invoice_id>/payments")
@require_auth
def list_payments_route(invoice_id: int):
    try:
        payments = invoice_service.list_payments(g.principal, invoice_id)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.post("/invoices/<int:invoice_id>/payments")
@require_auth
def record_payment_route(invoice_id: int):
    """
    Request body:
    - amount: positive number (required)
    - method: cash | transfer | card | pos (required)
    - payment_date (YYYY-MM-DD), notes: optional
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("amount") is None or not data.get("method"):
            raise ValidationError("amount and method required")

        payment = invoice_service.record_payment(
            g.principal,
            invoice_id,
            data.get("amount"),
            data.get("method"),
            payment_date=data.get("payment_date"),
            notes=data.get("notes"),
        )
        invoice = invoice_service.get_invoice(g.principal, invoice_id)
        return jsonify({"payment": payment.to_dict(), "invoice": invoice.to_dict()}), 201
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.post("/invoices/<int:invoice_id>/cancel")
@require_auth
def cancel_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.cancel_invoice(g.principal, invoice_id)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel invoice")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Invoices and the append-only payment ledger.

"""
Invoice & Payment Service

WHY: Each order is billed by exactly one invoice. Payments are an
append-only ledger; an invoice's paid_amount is always the ledger sum and
its status is re-derived from (total, paid) after every payment.

DESIGN PRINCIPLES:
- Cancelled is absorbing: no payments, no re-derivation
- Finance is gated by viewFinance and scoped through the invoice's order
  (a manager only sees invoices of orders in their unit)
- Amounts are Decimal with 2 decimal places
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Invoice, Order, Payment
from ..permissions import Action
from atelier.time_utils import parse_iso_date, utcnow
from . import balance_service
from .balance_service import InvoiceStatus, VALID_INVOICE_STATUSES, ZERO
from .concurrency import lock_for_update, run_with_retry
from .permission_service import require, target_for
from .scoping_service import RESOURCE_ORDERS, scope_filter

logger = logging.getLogger(__name__)


PAYMENT_METHODS = ("cash", "transfer", "card", "pos")


def _resource(invoice_id) -> str:
    return f"invoices:{invoice_id}"


def parse_amount(value, field: str) -> Decimal:
    try:
        return balance_service.to_amount(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number")


def parse_date(value, field: str) -> date | None:
    if value is None or value == "":
        return None
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")


def _load_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def next_invoice_number(today: date | None = None) -> str:
    """INV-YYYYMMDD-NNNN, NNNN counting invoices issued that day."""
    today = today or utcnow().date()
    prefix = f"INV-{today:%Y%m%d}-"
    issued = db.session.query(func.count(Invoice.id)).filter(
        Invoice.invoice_number.like(f"{prefix}%")
    ).scalar() or 0
    return f"{prefix}{issued + 1:04d}"


# =============================================================================
# INVOICES
# =============================================================================

def create_invoice(
    principal,
    order_id: int,
    total_amount,
    *,
    invoice_number: str | None = None,
    due_date=None,
    notes: str | None = None,
) -> Invoice:
    """
    Issue the invoice for an order.

    Raises:
        NotFoundError: Order missing
        AuthorizationError: viewFinance denied for this order
        ValidationError: Negative/malformed total or due date
        ConflictError: Order already invoiced, or invoice number taken
    """
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    require(principal, Action.VIEW_FINANCE, target_for(order), resource=f"orders:{order_id}")

    total = parse_amount(total_amount, "total_amount")
    if total < ZERO:
        raise ValidationError("total_amount cannot be negative")
    due = parse_date(due_date, "due_date")

    if db.session.query(Invoice.id).filter(Invoice.order_id == order_id).first():
        raise ConflictError(f"Order {order_id} already has an invoice")

    def _op():
        invoice = Invoice(
            order_id=order_id,
            invoice_number=(invoice_number or "").strip() or next_invoice_number(),
            total_amount=total,
            paid_amount=ZERO,
            status=balance_service.derive_status(total, ZERO).value,
            due_date=due,
            notes=(notes or "").strip() or None,
            created_at=utcnow(),
        )
        db.session.add(invoice)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Invoice number or order already invoiced")
        return invoice

    invoice = run_with_retry(_op)
    logger.info("Invoice %s issued for order %s (%s)", invoice.invoice_number, order_id, total)
    return invoice


def record_payment(
    principal,
    invoice_id: int,
    amount,
    method: str,
    *,
    payment_date=None,
    notes: str | None = None,
) -> Payment:
    """
    Append a payment and re-derive the invoice balance.

    Raises:
        NotFoundError: Invoice missing
        AuthorizationError: viewFinance denied for the invoice's order
        ValidationError: Non-positive amount, unknown method, cancelled invoice
    """
    invoice = _load_invoice(invoice_id)
    require(principal, Action.VIEW_FINANCE, target_for(invoice.order), resource=_resource(invoice_id))

    value = parse_amount(amount, "amount")
    if value <= ZERO:
        raise ValidationError("Payment amount must be positive")
    method = (method or "").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method '{method}'. Must be one of: {', '.join(PAYMENT_METHODS)}")
    paid_on = parse_date(payment_date, "payment_date") or utcnow().date()

    def _op():
        locked = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not locked:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if locked.status == InvoiceStatus.CANCELLED.value:
            raise ValidationError("Cannot record a payment on a cancelled invoice")

        payment = Payment(
            invoice_id=invoice_id,
            amount=value,
            method=method,
            payment_date=paid_on,
            created_by_user_id=principal.user_id,
            notes=(notes or "").strip() or None,
            created_at=utcnow(),
        )
        db.session.add(payment)
        db.session.flush()

        _apply_ledger_total(locked)
        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    logger.info("Payment %s of %s recorded on invoice %s", payment.id, value, invoice_id)
    return payment


def _apply_ledger_total(invoice: Invoice) -> None:
    """paid_amount := sum(payments); status := derive_status(...)."""
    paid = db.session.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.invoice_id == invoice.id
    ).scalar()
    paid = balance_service.to_amount(paid)
    invoice.paid_amount = paid
    invoice.status = balance_service.derive_status(invoice.total_amount, paid, invoice.status).value


def cancel_invoice(principal, invoice_id: int) -> Invoice:
    """Cancel an invoice. Idempotent; cancelled is absorbing."""
    invoice = _load_invoice(invoice_id)
    require(principal, Action.VIEW_FINANCE, target_for(invoice.order), resource=_resource(invoice_id))

    if invoice.status == InvoiceStatus.CANCELLED.value:
        return invoice

    def _op():
        current = _load_invoice(invoice_id)
        current.status = InvoiceStatus.CANCELLED.value
        db.session.commit()
        return current

    invoice = run_with_retry(_op)
    logger.info("Invoice %s cancelled by user %s", invoice_id, principal.user_id)
    return invoice


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(principal, invoice_id: int) -> Invoice:
    invoice = _load_invoice(invoice_id)
    require(principal, Action.VIEW_FINANCE, target_for(invoice.order), resource=_resource(invoice_id))
    return invoice


def get_order_invoice(principal, order_id: int) -> Invoice | None:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    require(principal, Action.VIEW_FINANCE, target_for(order), resource=f"orders:{order_id}")
    return order.invoice


def list_invoices(
    principal,
    *,
    status: str | None = None,
    search: str | None = None,
    location: str | None = None,
) -> list[Invoice]:
    """
    Invoices visible to principal, newest first.

    Scope is the order scope applied through invoice.order. search matches
    the invoice number or the order's client name.
    """
    require(principal, Action.VIEW_FINANCE, resource="invoices")

    scope = scope_filter(principal, RESOURCE_ORDERS, location=(location or "").strip() or None)
    query = db.session.query(Invoice).join(Order, Invoice.order_id == Order.id)
    query = scope.apply(query, Order)

    if status and status != "all":
        if status not in VALID_INVOICE_STATUSES:
            raise ValidationError(
                f"Invalid invoice status '{status}'. Must be one of: {', '.join(sorted(VALID_INVOICE_STATUSES))}"
            )
        query = query.filter(Invoice.status == status)

    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(Invoice.invoice_number.ilike(pattern), Order.client_name.ilike(pattern)))

    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def finance_summary(principal, *, location: str | None = None) -> dict:
    """total_revenue / total_pending over the principal's visible invoices."""
    invoices = list_invoices(principal, location=location)
    summary = balance_service.summarize(invoices)
    return {
        "total_revenue": f"{summary['total_revenue']:.2f}",
        "total_pending": f"{summary['total_pending']:.2f}",
        "status_counts": summary["status_counts"],
        "invoice_count": len(invoices),
    }


def list_payments(principal, invoice_id: int) -> list[Payment]:
    invoice = get_invoice(principal, invoice_id)
    return list(invoice.payments)


def delete_invoice_row(invoice_id: int) -> bool:
    """Delete an invoice and its payments without policy checks (intake compensation)."""
    def _op():
        invoice = db.session.get(Invoice, invoice_id)
        if invoice is None:
            return False
        db.session.delete(invoice)
        db.session.commit()
        return True

    return run_with_retry(_op)

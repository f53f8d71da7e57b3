# Overview: Invoice balance calculator; derives payment status from amounts.

"""
Invoice Balance Calculator

STATUS DERIVATION:
    cancelled            -> cancelled (absorbing, never re-derived)
    paid <= 0            -> unpaid
    0 < paid < total     -> partially_paid
    paid >= total        -> paid

Monotonic: raising paid with total fixed never moves the status backward
along unpaid -> partially_paid -> paid.

Amounts are Decimal. Floats and strings are accepted and converted via str()
so that 0.1 + 0.2 style noise never reaches the ledger.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable


class InvoiceStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"


VALID_INVOICE_STATUSES = frozenset(status.value for status in InvoiceStatus)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_amount(value) -> Decimal:
    """Convert value to a 2-dp Decimal. Raises ValueError on garbage."""
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT)


def _status_value(status) -> str | None:
    if isinstance(status, InvoiceStatus):
        return status.value
    return status


def derive_status(total_amount, paid_amount, current_status=None) -> InvoiceStatus:
    if _status_value(current_status) == InvoiceStatus.CANCELLED.value:
        return InvoiceStatus.CANCELLED

    total = to_amount(total_amount)
    paid = to_amount(paid_amount)

    if paid <= ZERO:
        return InvoiceStatus.UNPAID
    if paid < total:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.PAID


def outstanding_balance(total_amount, paid_amount) -> Decimal:
    return max(ZERO, to_amount(total_amount) - to_amount(paid_amount))


def summarize(invoices: Iterable) -> dict:
    """
    Aggregate revenue figures over invoices (cancelled ones excluded).

    total_revenue = sum(paid_amount)
    total_pending = sum(total_amount - paid_amount)
    """
    total_revenue = ZERO
    total_pending = ZERO
    counts = {status.value: 0 for status in InvoiceStatus}

    for invoice in invoices:
        status = _status_value(invoice.status)
        if status in counts:
            counts[status] += 1
        if status == InvoiceStatus.CANCELLED.value:
            continue
        paid = to_amount(invoice.paid_amount)
        total_revenue += paid
        total_pending += to_amount(invoice.total_amount) - paid

    return {
        "total_revenue": total_revenue,
        "total_pending": total_pending,
        "status_counts": counts,
    }

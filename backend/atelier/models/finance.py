from __future__ import annotations

from ..extensions import db
from atelier.time_utils import to_utc_z, to_iso_date


def _money(value) -> str | None:
    if value is None:
        return None
    return f"{value:.2f}"


class Invoice(db.Model):
    """
    Invoice for exactly one order.

    paid_amount is derived: always the sum of the invoice's payments.
    status follows paid vs total (unpaid / partially_paid / paid) unless
    explicitly cancelled, which is absorbing.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_invoices_order"),
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_number = db.Column(db.String(32), nullable=False)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="unpaid", index=True)
    due_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship(
        "Order",
        backref=db.backref("invoice", uselist=False, lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        outstanding = None
        if self.total_amount is not None and self.paid_amount is not None:
            outstanding = max(self.total_amount - self.paid_amount, 0)
        return {
            "id": self.id,
            "order_id": self.order_id,
            "client_name": self.order.client_name if self.order else None,
            "invoice_number": self.invoice_number,
            "total_amount": _money(self.total_amount),
            "paid_amount": _money(self.paid_amount),
            "outstanding_balance": _money(outstanding),
            "status": self.status,
            "due_date": to_iso_date(self.due_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    Payment ledger entry.

    IMMUTABLE: Append-only. Corrections are new entries, never edits.
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    method = db.Column(db.String(16), nullable=False)  # cash | transfer | card | pos
    payment_date = db.Column(db.Date, nullable=False)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship(
        "Invoice",
        backref=db.backref("payments", lazy=True, cascade="all, delete-orphan", order_by="Payment.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount": _money(self.amount),
            "method": self.method,
            "payment_date": to_iso_date(self.payment_date),
            "created_by_user_id": self.created_by_user_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }

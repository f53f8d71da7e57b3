"""
Invoice balance calculator tests (pure, no database).
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from atelier.services import balance_service
from atelier.services.balance_service import InvoiceStatus


class TestDeriveStatus:

    def test_fully_paid(self):
        assert balance_service.derive_status(1000, 1000) is InvoiceStatus.PAID
        assert balance_service.outstanding_balance(1000, 1000) == Decimal("0.00")

    def test_partially_paid(self):
        assert balance_service.derive_status(1000, 400) is InvoiceStatus.PARTIALLY_PAID
        assert balance_service.outstanding_balance(1000, 400) == Decimal("600.00")

    def test_unpaid(self):
        assert balance_service.derive_status(1000, 0) is InvoiceStatus.UNPAID
        assert balance_service.derive_status("250.00", None) is InvoiceStatus.UNPAID

    def test_overpayment_is_paid_and_never_negative(self):
        assert balance_service.derive_status(100, 150) is InvoiceStatus.PAID
        assert balance_service.outstanding_balance(100, 150) == Decimal("0.00")

    def test_zero_total_with_no_payment_is_unpaid(self):
        assert balance_service.derive_status(0, 0) is InvoiceStatus.UNPAID

    @pytest.mark.parametrize("paid", [0, 1, 999, 1000, 5000])
    def test_cancelled_is_absorbing(self, paid):
        assert balance_service.derive_status(1000, paid, "cancelled") is InvoiceStatus.CANCELLED
        assert balance_service.derive_status(1000, paid, InvoiceStatus.CANCELLED) is InvoiceStatus.CANCELLED

    def test_status_monotone_in_paid_amount(self):
        rank = {InvoiceStatus.UNPAID: 0, InvoiceStatus.PARTIALLY_PAID: 1, InvoiceStatus.PAID: 2}
        previous = -1
        for paid in range(0, 1201, 50):
            current = rank[balance_service.derive_status(1000, paid)]
            assert current >= previous
            previous = current

    def test_cent_precision(self):
        assert balance_service.derive_status("10.00", "9.999") is InvoiceStatus.PAID
        assert balance_service.derive_status("10.00", "9.99") is InvoiceStatus.PARTIALLY_PAID


class TestToAmount:

    def test_rounds_to_cents(self):
        assert balance_service.to_amount("12.346") == Decimal("12.35")
        assert balance_service.to_amount(7) == Decimal("7.00")

    @pytest.mark.parametrize("value", ["abc", True, "NaN", "Infinity", [1]])
    def test_rejects_garbage(self, value):
        with pytest.raises(ValueError):
            balance_service.to_amount(value)


class TestSummarize:

    def test_cancelled_excluded_from_totals(self):
        invoices = [
            SimpleNamespace(total_amount=Decimal("1000"), paid_amount=Decimal("1000"), status="paid"),
            SimpleNamespace(total_amount=Decimal("1000"), paid_amount=Decimal("400"), status="partially_paid"),
            SimpleNamespace(total_amount=Decimal("500"), paid_amount=Decimal("0"), status="unpaid"),
            SimpleNamespace(total_amount=Decimal("9000"), paid_amount=Decimal("100"), status="cancelled"),
        ]
        summary = balance_service.summarize(invoices)

        assert summary["total_revenue"] == Decimal("1400.00")
        assert summary["total_pending"] == Decimal("1100.00")
        assert summary["status_counts"] == {
            "unpaid": 1,
            "partially_paid": 1,
            "paid": 1,
            "cancelled": 1,
        }

    def test_empty(self):
        summary = balance_service.summarize([])
        assert summary["total_revenue"] == Decimal("0.00")
        assert summary["total_pending"] == Decimal("0.00")

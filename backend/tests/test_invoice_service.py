"""
Invoice and payment ledger tests.
"""

from datetime import date
from decimal import Decimal

import pytest

from atelier.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from atelier.models import Invoice, Payment
from atelier.services import invoice_service


@pytest.fixture
def order(make_order):
    return make_order(location="Unit 1")


@pytest.fixture
def invoice(db_session, admin, order):
    return invoice_service.create_invoice(admin, order.id, "1000")


class TestCreateInvoice:

    def test_new_invoice_is_unpaid(self, db_session, invoice, order):
        assert invoice.status == "unpaid"
        assert invoice.total_amount == Decimal("1000.00")
        assert invoice.paid_amount == Decimal("0.00")
        assert invoice.order_id == order.id
        assert invoice.invoice_number.startswith("INV-")

    def test_invoice_numbers_count_up_per_day(self, db_session, admin, make_order):
        first = invoice_service.create_invoice(admin, make_order().id, 10)
        second = invoice_service.create_invoice(admin, make_order().id, 20)
        assert first.invoice_number.endswith("-0001")
        assert second.invoice_number.endswith("-0002")

    def test_next_invoice_number_format(self, db_session):
        assert invoice_service.next_invoice_number(date(2026, 3, 9)) == "INV-20260309-0001"

    def test_one_invoice_per_order(self, db_session, admin, invoice, order):
        with pytest.raises(ConflictError):
            invoice_service.create_invoice(admin, order.id, "50")

    def test_duplicate_invoice_number(self, db_session, admin, make_order):
        invoice_service.create_invoice(admin, make_order().id, 10, invoice_number="INV-CUSTOM")
        with pytest.raises(ConflictError):
            invoice_service.create_invoice(admin, make_order().id, 10, invoice_number="INV-CUSTOM")

    def test_negative_total(self, db_session, admin, order):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(admin, order.id, "-1")

    def test_garbage_total(self, db_session, admin, order):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(admin, order.id, "a lot")

    def test_tailor_cannot_bill(self, db_session, tailor, tailor_user, make_order):
        order = make_order(assigned_tailor_id=tailor_user.id)
        with pytest.raises(AuthorizationError):
            invoice_service.create_invoice(tailor, order.id, 100)

    def test_manager_of_other_unit_cannot_bill(self, db_session, manager2, order):
        with pytest.raises(AuthorizationError):
            invoice_service.create_invoice(manager2, order.id, 100)

    def test_missing_order(self, db_session, admin):
        with pytest.raises(NotFoundError):
            invoice_service.create_invoice(admin, 31337, 100)


class TestPayments:

    def test_partial_then_full_payment(self, db_session, manager, invoice):
        invoice_service.record_payment(manager, invoice.id, "400", "cash")
        current = db_session.get(Invoice, invoice.id)
        assert current.status == "partially_paid"
        assert current.to_dict()["outstanding_balance"] == "600.00"

        invoice_service.record_payment(manager, invoice.id, 600, "transfer")
        current = db_session.get(Invoice, invoice.id)
        assert current.status == "paid"
        assert current.paid_amount == Decimal("1000.00")
        assert current.to_dict()["outstanding_balance"] == "0.00"

    def test_paid_amount_is_ledger_sum(self, db_session, admin, invoice):
        for amount in ("100.10", "200.20", "0.70"):
            invoice_service.record_payment(admin, invoice.id, amount, "card")

        payments = invoice_service.list_payments(admin, invoice.id)
        assert [p.amount for p in payments] == [Decimal("100.10"), Decimal("200.20"), Decimal("0.70")]
        assert db_session.get(Invoice, invoice.id).paid_amount == Decimal("301.00")

    @pytest.mark.parametrize("amount", [0, "-5", "0.00"])
    def test_non_positive_amount(self, db_session, admin, invoice, amount):
        with pytest.raises(ValidationError):
            invoice_service.record_payment(admin, invoice.id, amount, "cash")
        assert db_session.query(Payment).count() == 0

    def test_unknown_method(self, db_session, admin, invoice):
        with pytest.raises(ValidationError):
            invoice_service.record_payment(admin, invoice.id, 10, "barter")

    def test_cancelled_invoice_rejects_payment(self, db_session, admin, invoice):
        invoice_service.cancel_invoice(admin, invoice.id)

        with pytest.raises(ValidationError):
            invoice_service.record_payment(admin, invoice.id, 10, "cash")

        assert db_session.get(Invoice, invoice.id).status == "cancelled"

    def test_cancel_is_idempotent(self, db_session, admin, invoice):
        invoice_service.cancel_invoice(admin, invoice.id)
        assert invoice_service.cancel_invoice(admin, invoice.id).status == "cancelled"

    def test_tailor_cannot_record_payment(self, db_session, tailor, invoice):
        with pytest.raises(AuthorizationError):
            invoice_service.record_payment(tailor, invoice.id, 10, "cash")


class TestFinanceQueries:

    def test_manager_sees_only_own_unit_invoices(self, db_session, admin, manager, make_order):
        mine = invoice_service.create_invoice(admin, make_order(location="Unit 1").id, 100)
        invoice_service.create_invoice(admin, make_order(location="Unit 2").id, 100)

        assert [i.id for i in invoice_service.list_invoices(manager)] == [mine.id]
        assert len(invoice_service.list_invoices(admin)) == 2

    def test_status_filter(self, db_session, admin, make_order):
        paid = invoice_service.create_invoice(admin, make_order().id, 100)
        invoice_service.create_invoice(admin, make_order().id, 100)
        invoice_service.record_payment(admin, paid.id, 100, "pos")

        assert [i.id for i in invoice_service.list_invoices(admin, status="paid")] == [paid.id]
        assert len(invoice_service.list_invoices(admin, status="all")) == 2

        with pytest.raises(ValidationError):
            invoice_service.list_invoices(admin, status="overdue")

    def test_search_by_client_name(self, db_session, admin, make_order):
        target = invoice_service.create_invoice(admin, make_order(client_name="Funke Akin").id, 100)
        invoice_service.create_invoice(admin, make_order(client_name="Emeka Nnamdi").id, 100)

        assert [i.id for i in invoice_service.list_invoices(admin, search="funke")] == [target.id]

    def test_summary_excludes_cancelled(self, db_session, admin, make_order):
        a = invoice_service.create_invoice(admin, make_order().id, 1000)
        b = invoice_service.create_invoice(admin, make_order().id, 1000)
        c = invoice_service.create_invoice(admin, make_order().id, 5000)
        invoice_service.record_payment(admin, a.id, 1000, "cash")
        invoice_service.record_payment(admin, b.id, 400, "cash")
        invoice_service.cancel_invoice(admin, c.id)

        summary = invoice_service.finance_summary(admin)

        assert summary["total_revenue"] == "1400.00"
        assert summary["total_pending"] == "600.00"
        assert summary["invoice_count"] == 3
        assert summary["status_counts"]["cancelled"] == 1

    def test_tailor_has_no_finance(self, db_session, tailor):
        with pytest.raises(AuthorizationError):
            invoice_service.list_invoices(tailor)

    def test_order_invoice_lookup(self, db_session, admin, invoice, order, make_order):
        assert invoice_service.get_order_invoice(admin, order.id).id == invoice.id
        assert invoice_service.get_order_invoice(admin, make_order().id) is None

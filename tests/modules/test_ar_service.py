"""
Tests for ARService.

Covers:
- Invoice numbering per issue year, never reused after deletion
- Duplicate invoice numbers fail loudly
- Payment status transitions and overpayment rejection
- AR aging per invoice and per tenant
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from freight_kernel.exceptions import (
    DuplicateInvoiceNumberError,
    InvalidPaymentAmountError,
    InvoiceNotFoundError,
    InvoiceStateError,
    OverpaymentError,
)
from freight_modules.ar import InvoiceStatus
from freight_modules.ar.orm import InvoiceModel


@pytest.fixture
def issue(ar_service, tenant_id, test_actor_id):
    def _issue(amount="2400.00", issue_date=date(2024, 1, 12), **kwargs):
        return ar_service.issue_invoice(
            tenant_id=tenant_id,
            load_id=kwargs.pop("load_id", uuid4()),
            amount=Decimal(amount),
            issue_date=issue_date,
            actor_id=test_actor_id,
            **kwargs,
        )
    return _issue


class TestIssueInvoice:

    def test_numbers_increase_from_floor(self, issue):
        first = issue()
        second = issue()

        assert first.invoice_number == "INV-2024-1000"
        assert second.invoice_number == "INV-2024-1001"
        assert first.status == InvoiceStatus.PENDING
        assert first.amount_paid == Decimal("0.00")

    def test_counter_per_issue_year(self, issue):
        issue(issue_date=date(2024, 12, 31))
        assert issue(issue_date=date(2025, 1, 2)).invoice_number == "INV-2025-1000"

    def test_counter_per_tenant(self, ar_service, issue, test_actor_id):
        issue()
        other = ar_service.issue_invoice(
            tenant_id="other-carrier",
            load_id=None,
            amount=Decimal("100.00"),
            issue_date=date(2024, 1, 12),
            actor_id=test_actor_id,
        )
        assert other.invoice_number == "INV-2024-1000"

    def test_deleted_number_not_reused(self, ar_service, issue, test_actor_id):
        issue()
        doomed = issue()

        ar_service.delete_invoice(doomed.id, test_actor_id)

        assert issue().invoice_number == "INV-2024-1002"
        with pytest.raises(InvoiceNotFoundError):
            ar_service.get_invoice(doomed.id)

    def test_explicit_duplicate_number_rejected(self, ar_service, issue, tenant_id):
        issue()

        with pytest.raises(DuplicateInvoiceNumberError) as exc_info:
            issue(invoice_number="INV-2024-1000")

        assert exc_info.value.invoice_number == "INV-2024-1000"
        assert len(ar_service.list_invoices(tenant_id)) == 1

    def test_imported_number_kept(self, ar_service, issue, tenant_id):
        issue(invoice_number="LEGACY-77")
        assert ar_service.get_invoice_by_number(tenant_id, "LEGACY-77").amount == Decimal("2400.00")

    def test_imported_number_in_minted_range_moves_counter(self, issue):
        assert issue().invoice_number == "INV-2024-1000"
        issue(invoice_number="INV-2024-1001")

        assert issue().invoice_number == "INV-2024-1002"
        assert issue().invoice_number == "INV-2024-1003"

    def test_imported_number_ahead_of_counter(self, issue):
        issue(invoice_number="INV-2024-1500")
        assert issue().invoice_number == "INV-2024-1501"

    def test_imported_number_behind_counter_leaves_it(self, issue):
        issue()
        issue()
        issue(invoice_number="INV-2023-0042")
        assert issue().invoice_number == "INV-2024-1002"
        assert issue(issue_date=date(2023, 6, 1)).invoice_number == "INV-2023-1000"

    def test_minted_number_already_taken_is_skipped(
        self, ar_service, issue, session, tenant_id, test_actor_id
    ):
        # Rows written without going through the counter.
        for number in ("INV-2024-1000", "INV-2024-1001"):
            session.add(InvoiceModel(
                id=uuid4(),
                tenant_id=tenant_id,
                invoice_number=number,
                load_id=None,
                amount=Decimal("50.00"),
                amount_paid=Decimal("0.00"),
                issue_date=date(2024, 1, 2),
                status=InvoiceStatus.PENDING.value,
                created_by_id=test_actor_id,
            ))
        session.commit()

        assert issue().invoice_number == "INV-2024-1002"
        assert issue().invoice_number == "INV-2024-1003"
        assert len(ar_service.list_invoices(tenant_id)) == 4

    def test_non_positive_amount_rejected(self, issue):
        with pytest.raises(ValueError):
            issue(amount="0.00")

    def test_invoice_with_payments_cannot_be_deleted(self, ar_service, issue, test_actor_id):
        invoice = issue()
        ar_service.record_payment(invoice.id, Decimal("100.00"), date(2024, 1, 20), test_actor_id)

        with pytest.raises(InvoiceStateError):
            ar_service.delete_invoice(invoice.id, test_actor_id)

        assert ar_service.get_invoice(invoice.id).amount_paid == Decimal("100.00")


class TestRecordPayment:

    def test_partial_then_paid(self, ar_service, issue, test_actor_id):
        invoice = issue("1000.00")

        ar_service.record_payment(invoice.id, Decimal("400.00"), date(2024, 1, 20), test_actor_id)
        assert ar_service.get_invoice(invoice.id).status == InvoiceStatus.PARTIAL

        ar_service.record_payment(
            invoice.id, Decimal("600.00"), date(2024, 2, 1), test_actor_id,
            method="ach", reference="TRX-9",
        )
        paid = ar_service.get_invoice(invoice.id)
        assert paid.status == InvoiceStatus.PAID
        assert paid.balance == Decimal("0.00")
        assert [p.amount for p in paid.payments] == [Decimal("400.00"), Decimal("600.00")]
        assert paid.payments[1].reference == "TRX-9"

    def test_overpayment_leaves_invoice_unchanged(self, ar_service, issue, test_actor_id):
        invoice = issue("1000.00")
        ar_service.record_payment(invoice.id, Decimal("900.00"), date(2024, 1, 20), test_actor_id)

        with pytest.raises(OverpaymentError) as exc_info:
            ar_service.record_payment(invoice.id, Decimal("100.01"), date(2024, 1, 21), test_actor_id)

        assert exc_info.value.max_amount == "100.00"
        after = ar_service.get_invoice(invoice.id)
        assert after.amount_paid == Decimal("900.00")
        assert after.status == InvoiceStatus.PARTIAL
        assert len(after.payments) == 1

    def test_exact_remaining_balance_accepted(self, ar_service, issue, test_actor_id):
        invoice = issue("1000.00")
        ar_service.record_payment(invoice.id, Decimal("999.99"), date(2024, 1, 20), test_actor_id)
        ar_service.record_payment(invoice.id, Decimal("0.01"), date(2024, 1, 21), test_actor_id)
        assert ar_service.get_invoice(invoice.id).is_paid

    def test_payment_on_paid_invoice_rejected(self, ar_service, issue, test_actor_id):
        invoice = issue("500.00")
        ar_service.record_payment(invoice.id, Decimal("500.00"), date(2024, 1, 20), test_actor_id)

        with pytest.raises(OverpaymentError):
            ar_service.record_payment(invoice.id, Decimal("0.01"), date(2024, 1, 21), test_actor_id)

    @pytest.mark.parametrize("amount", ["0.00", "-5.00"])
    def test_invalid_amount(self, ar_service, issue, test_actor_id, amount):
        invoice = issue()
        with pytest.raises(InvalidPaymentAmountError):
            ar_service.record_payment(invoice.id, Decimal(amount), date(2024, 1, 20), test_actor_id)

    def test_unknown_invoice(self, ar_service, test_actor_id):
        with pytest.raises(InvoiceNotFoundError):
            ar_service.record_payment(uuid4(), Decimal("1.00"), date(2024, 1, 20), test_actor_id)

    def test_overpayment_logged(self, ar_service, issue, test_actor_id, captured_logs):
        invoice = issue("10.00")
        with pytest.raises(OverpaymentError):
            ar_service.record_payment(invoice.id, Decimal("10.01"), date(2024, 1, 20), test_actor_id)

        rejected = [r for r in captured_logs() if r["message"] == "payment_rejected_overpayment"]
        assert rejected[-1]["invoice_id"] == str(invoice.id)

    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(cents=st.lists(st.integers(min_value=1, max_value=60_000), min_size=1, max_size=8))
    def test_paid_never_exceeds_amount(self, ar_service, issue, test_actor_id, cents):
        invoice = issue("1000.00")
        accepted = Decimal("0.00")

        for value in cents:
            amount = Decimal(value) / 100
            try:
                ar_service.record_payment(invoice.id, amount, date(2024, 1, 20), test_actor_id)
                accepted += amount
            except OverpaymentError:
                pass

        after = ar_service.get_invoice(invoice.id)
        assert after.amount_paid == accepted
        assert after.amount_paid <= after.amount
        assert after.is_paid == (after.amount_paid == after.amount)


class TestAging:

    def test_bucket_from_delivery_date(self, ar_service, issue):
        invoice = issue(issue_date=date(2024, 3, 1), delivery_date=date(2024, 1, 1))
        assert ar_service.aging_bucket(invoice.id, date(2024, 3, 5)) == "61-90"

    def test_bucket_falls_back_to_issue_date(self, ar_service, issue):
        invoice = issue(issue_date=date(2024, 1, 1))
        assert ar_service.aging_bucket(invoice.id, date(2024, 1, 31)) == "0-30"
        assert ar_service.aging_bucket(invoice.id, date(2024, 2, 1)) == "31-60"

    def test_paid_invoice_has_no_bucket(self, ar_service, issue, test_actor_id):
        invoice = issue("100.00")
        ar_service.record_payment(invoice.id, Decimal("100.00"), date(2024, 1, 20), test_actor_id)
        assert ar_service.aging_bucket(invoice.id, date(2024, 6, 1)) is None

    def test_summary_uses_outstanding_balance(self, ar_service, issue, tenant_id, test_actor_id):
        recent = issue("1000.00", issue_date=date(2024, 3, 20))
        issue("500.00", issue_date=date(2023, 11, 1))
        settled = issue("300.00", issue_date=date(2024, 3, 1))
        ar_service.record_payment(recent.id, Decimal("250.00"), date(2024, 3, 25), test_actor_id)
        ar_service.record_payment(settled.id, Decimal("300.00"), date(2024, 3, 25), test_actor_id)

        summary = ar_service.aging_summary(tenant_id, as_of=date(2024, 3, 31))

        assert summary["0-30"] == Decimal("750.00")
        assert summary["31-60"] == Decimal("0.00")
        assert summary["90+"] == Decimal("500.00")
        assert summary["total"] == Decimal("1250.00")

    def test_summary_defaults_to_clock_date(self, ar_service, issue, tenant_id):
        issue("100.00", issue_date=date(2023, 12, 20))
        # deterministic clock reads 2024-01-01
        assert ar_service.aging_summary(tenant_id)["0-30"] == Decimal("100.00")

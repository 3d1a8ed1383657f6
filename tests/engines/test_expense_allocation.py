"""
Tests for expense recovery allocation.

Covers:
- Spillover across settlements (partial then full recovery)
- Oldest-first ordering and sequential fill
- Floating vs load-tied eligibility
- Negative pool handling
- Ledger balance invariant (property-based)
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from freight_engines.expense_allocation import (
    LedgerState,
    allocate,
    allocation_order,
    eligible_expenses,
)
from freight_kernel.domain.dtos import ExpenseType, LedgerStatus, WarningCode
from freight_kernel.domain.values import ZERO
from freight_kernel.exceptions import LedgerInvariantError

DRIVER = uuid4()


def _ledger(total, expense_date=date(2024, 1, 5), sequence=0, load_id=None,
            expense_type=ExpenseType.INSURANCE, driver_id=DRIVER):
    return LedgerState.opened(
        expense_id=uuid4(),
        total_amount=Decimal(total),
        expense_type=expense_type,
        expense_date=expense_date,
        sequence=sequence,
        driver_id=driver_id,
        load_id=load_id,
    )


class TestSpillover:
    """A ledger is recovered across as many settlements as it takes."""

    def test_partial_then_full_recovery(self):
        ledger = _ledger("1000.00")

        first = allocate(Decimal("600.00"), [ledger])
        after_first = first.lines[0].after
        assert first.total_allocated == Decimal("600.00")
        assert after_first.amount_paid == Decimal("600.00")
        assert after_first.remaining_balance == Decimal("400.00")
        assert after_first.status == LedgerStatus.ACTIVE

        second = allocate(Decimal("500.00"), [after_first])
        after_second = second.lines[0].after
        assert second.total_allocated == Decimal("400.00")
        assert second.unallocated_pool == Decimal("100.00")
        assert after_second.amount_paid == Decimal("1000.00")
        assert after_second.remaining_balance == ZERO
        assert after_second.status == LedgerStatus.SETTLED

    def test_leftover_pool_flows_to_next_expense(self):
        older = _ledger("400.00", expense_date=date(2024, 1, 1))
        newer = _ledger("300.00", expense_date=date(2024, 1, 2))

        result = allocate(Decimal("500.00"), [older, newer])

        assert [line.amount for line in result.lines] == [Decimal("400.00"), Decimal("100.00")]
        assert result.lines[0].settles_expense
        assert not result.lines[1].settles_expense

    def test_pool_exhausted_stops(self):
        result = allocate(Decimal("100.00"), [_ledger("400.00"), _ledger("300.00")])
        assert len(result.lines) == 1
        assert result.unallocated_pool == ZERO

    def test_zero_pool_allocates_nothing(self):
        result = allocate(ZERO, [_ledger("400.00")])
        assert result.lines == ()
        assert result.is_valid

    def test_inputs_not_mutated(self):
        ledger = _ledger("1000.00")
        allocate(Decimal("600.00"), [ledger])
        assert ledger.amount_paid == ZERO

    def test_settled_ledgers_skipped(self):
        settled = _ledger("100.00").apply(Decimal("100.00"))
        active = _ledger("50.00")
        result = allocate(Decimal("80.00"), [settled, active])
        assert [line.expense_id for line in result.lines] == [active.expense_id]

    def test_by_expense_type(self):
        result = allocate(
            Decimal("500.00"),
            [_ledger("100.00", expense_type=ExpenseType.FUEL), _ledger("200.00")],
        )
        assert result.by_expense_type() == {
            "fuel": Decimal("100.00"),
            "insurance": Decimal("200.00"),
        }


class TestInvalidPool:

    def test_negative_pool_warns_and_allocates_nothing(self, captured_logs):
        result = allocate(Decimal("-50.00"), [_ledger("100.00")])

        assert result.lines == ()
        assert result.total_allocated == ZERO
        assert not result.is_valid
        assert result.warnings[0].code == WarningCode.INVALID_POOL
        assert any(r["message"] == "allocation_invalid_pool" for r in captured_logs())


class TestOrdering:

    def test_oldest_first(self):
        newer = _ledger("10.00", expense_date=date(2024, 3, 1))
        older = _ledger("10.00", expense_date=date(2024, 1, 1))
        assert allocation_order([newer, older]) == [older, newer]

    def test_same_date_breaks_ties_by_sequence(self):
        second = _ledger("10.00", sequence=2)
        first = _ledger("10.00", sequence=1)
        assert allocation_order([second, first]) == [first, second]


class TestEligibility:

    def test_floating_always_eligible(self):
        floating = _ledger("1000.00")
        assert eligible_expenses([floating], DRIVER, []) == [floating]

    def test_load_tied_only_for_selected_loads(self):
        selected, other = uuid4(), uuid4()
        tied = _ledger("50.00", load_id=selected)
        unrelated = _ledger("50.00", load_id=other)
        assert eligible_expenses([tied, unrelated], DRIVER, [selected]) == [tied]

    def test_other_drivers_excluded(self):
        theirs = _ledger("50.00", driver_id=uuid4())
        assert eligible_expenses([theirs], DRIVER, []) == []

    def test_settled_excluded(self):
        settled = _ledger("50.00").apply(Decimal("50.00"))
        assert eligible_expenses([settled], DRIVER, []) == []


class TestLedgerStateInvariant:

    def test_overpaid_state_rejected(self):
        ledger = _ledger("100.00")
        with pytest.raises(LedgerInvariantError):
            ledger.apply(Decimal("100.01"))

    def test_inconsistent_status_rejected(self):
        with pytest.raises(LedgerInvariantError):
            LedgerState(
                expense_id=uuid4(),
                total_amount=Decimal("100.00"),
                amount_paid=Decimal("100.00"),
                status=LedgerStatus.ACTIVE,
                expense_type=ExpenseType.FUEL,
                expense_date=date(2024, 1, 1),
            )

    def test_non_positive_total_rejected(self):
        with pytest.raises(LedgerInvariantError):
            _ledger("0.00")

    @settings(max_examples=100, deadline=None)
    @given(
        totals=st.lists(
            st.decimals(min_value=Decimal("0.01"), max_value=Decimal("5000"), places=2),
            min_size=1,
            max_size=6,
        ),
        pools=st.lists(
            st.decimals(min_value=Decimal("0"), max_value=Decimal("5000"), places=2),
            min_size=1,
            max_size=5,
        ),
    )
    def test_balance_invariant_across_settlements(self, totals, pools):
        """remaining = total - paid >= 0 after any sequence of settlements."""
        states = [_ledger(str(t), sequence=i) for i, t in enumerate(totals)]
        for pool in pools:
            result = allocate(pool, allocation_order(states))
            assert result.total_allocated + result.unallocated_pool == pool
            updated = {line.expense_id: line.after for line in result.lines}
            states = [updated.get(s.expense_id, s) for s in states]
            for state in states:
                assert ZERO <= state.remaining_balance == state.total_amount - state.amount_paid
                assert (state.status == LedgerStatus.SETTLED) == (state.remaining_balance == ZERO)

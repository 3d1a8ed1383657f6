"""
Tests for the Revenue & Pay Calculator.

Covers:
- Owner-operator commission revenue and pass-through pay
- Company driver pay: stored snapshot vs profile computation
- Missing profile handling (warning, never an exception)
- Type-level exclusion of pass-through pay from company costs
"""

from datetime import date
from decimal import Decimal

import pytest

from freight_engines.revenue import (
    CompanyDriverPay,
    PassThroughPay,
    add_company_cost,
    company_cost_total,
    revenue_and_pay,
    snapshot_driver_pay,
)
from freight_kernel.domain.dtos import DriverType, PayType, WarningCode
from freight_kernel.domain.values import ZERO
from freight_kernel.exceptions import PassThroughPayError


class TestOwnerOperatorRevenue:
    """Owner-operator loads recognize only the commission."""

    def test_ld_1001_commission_revenue(self, make_load, make_profile):
        """Rate $2,800 at 12% commission recognizes $336.00."""
        load = make_load(
            rate="2800.00",
            driver_type=DriverType.OWNER_OPERATOR,
            load_number="LD-1001",
        )
        profile = make_profile(pay_rate=None, commission_rate=Decimal("0.12"))

        result = revenue_and_pay(load, profile)

        assert result.recognized_revenue == Decimal("336.00")
        assert isinstance(result.driver_pay, PassThroughPay)
        assert result.driver_pay.amount == Decimal("2464.00")
        assert result.company_driver_pay == ZERO
        assert not result.has_warnings

    def test_commission_falls_back_to_one_minus_pay_rate(self, make_load, make_profile):
        load = make_load(rate="1000.00", driver_type=DriverType.OWNER_OPERATOR)
        result = revenue_and_pay(load, make_profile(pay_rate="0.85"))
        assert result.recognized_revenue == Decimal("150.00")
        assert result.driver_pay.amount == Decimal("850.00")

    def test_pass_through_pay_excluded_from_company_costs(self, make_load, make_profile):
        load = make_load(rate="2800.00", driver_type=DriverType.OWNER_OPERATOR)
        result = revenue_and_pay(load, make_profile(pay_rate=None, commission_rate=Decimal("0.12")))

        with pytest.raises(PassThroughPayError):
            add_company_cost(Decimal("100.00"), result.driver_pay)

    def test_missing_profile_gives_zero_revenue_with_one_warning(self, make_load):
        load = make_load(driver_type=DriverType.OWNER_OPERATOR)
        result = revenue_and_pay(load, None)

        assert result.recognized_revenue == ZERO
        assert result.driver_pay.amount == ZERO
        assert [w.code for w in result.warnings] == [WarningCode.MISSING_PROFILE]


class TestCompanyDriverPay:
    """Company drivers and owners driving their own trucks."""

    def test_full_rate_is_revenue(self, make_load, make_profile):
        result = revenue_and_pay(make_load(rate="2400.00"), make_profile())
        assert result.recognized_revenue == Decimal("2400.00")
        assert isinstance(result.driver_pay, CompanyDriverPay)
        assert result.driver_pay.amount == Decimal("600.00")
        assert result.pay_source == "computed"

    def test_owner_as_driver_is_company_cost(self, make_load, make_profile):
        load = make_load(driver_type=DriverType.OWNER_AS_DRIVER)
        result = revenue_and_pay(load, make_profile())
        assert result.recognized_revenue == Decimal("2400.00")
        assert result.driver_pay.is_company_cost

    def test_stored_pay_wins_over_profile(self, make_load, make_profile):
        load = make_load(rate="2400.00", stored_driver_pay="555.55")
        result = revenue_and_pay(load, make_profile(pay_rate="0.50"))
        assert result.driver_pay.amount == Decimal("555.55")
        assert result.pay_source == "stored"

    def test_stored_pay_needs_no_profile(self, make_load):
        result = revenue_and_pay(make_load(stored_driver_pay="300.00"), None)
        assert result.driver_pay.amount == Decimal("300.00")
        assert not result.has_warnings

    def test_per_mile(self, make_load, make_profile):
        load = make_load(miles=Decimal("512"))
        profile = make_profile(pay_type=PayType.PER_MILE, pay_rate=None, per_mile_rate=Decimal("0.55"))
        assert revenue_and_pay(load, profile).driver_pay.amount == Decimal("281.60")

    def test_per_mile_without_miles_warns(self, make_load, make_profile):
        profile = make_profile(pay_type=PayType.PER_MILE, pay_rate=None, per_mile_rate=Decimal("0.55"))
        result = revenue_and_pay(make_load(), profile)
        assert result.driver_pay.amount == ZERO
        assert result.warnings[0].code == WarningCode.MISSING_PROFILE

    def test_flat_rate(self, make_load, make_profile):
        profile = make_profile(pay_type=PayType.FLAT_RATE, pay_rate=None, flat_rate=Decimal("450"))
        assert revenue_and_pay(make_load(), profile).driver_pay.amount == Decimal("450.00")

    def test_missing_profile_is_warning_not_exception(self, make_load, captured_logs):
        result = revenue_and_pay(make_load(), None)

        assert result.driver_pay.amount == ZERO
        assert result.pay_source == "missing"
        assert result.warnings[0].code == WarningCode.MISSING_PROFILE
        logs = captured_logs()
        missing = [r for r in logs if r["message"] == "driver_profile_missing"]
        assert missing and missing[0]["level"] == "WARNING"


class TestRecognitionDate:

    def test_delivery_date(self, make_load, make_profile):
        load = make_load(delivery_date=date(2024, 2, 1), pickup_date=date(2024, 1, 30))
        assert revenue_and_pay(load, make_profile()).recognition_date == date(2024, 2, 1)

    def test_pickup_fallback(self, make_load, make_profile):
        load = make_load(delivery_date=None, pickup_date=date(2024, 1, 30))
        assert revenue_and_pay(load, make_profile()).recognition_date == date(2024, 1, 30)


class TestCompanyCostTotals:

    def test_sums_company_pay_and_amounts(self):
        total = company_cost_total([CompanyDriverPay(Decimal("600.00")), Decimal("150.25")])
        assert total == Decimal("750.25")

    def test_rejects_any_pass_through(self):
        with pytest.raises(PassThroughPayError):
            company_cost_total([CompanyDriverPay(Decimal("600.00")), PassThroughPay(Decimal("1.00"))])

    def test_negative_pay_rejected(self):
        with pytest.raises(ValueError):
            CompanyDriverPay(Decimal("-1.00"))


class TestSnapshot:

    def test_snapshot_keeps_existing(self, make_load, make_profile):
        load = make_load(stored_driver_pay="700.00")
        assert snapshot_driver_pay(load, make_profile()) == Decimal("700.00")

    def test_snapshot_computes_from_profile(self, make_load, make_profile):
        assert snapshot_driver_pay(make_load(), make_profile()) == Decimal("600.00")

    def test_snapshot_none_without_profile(self, make_load):
        assert snapshot_driver_pay(make_load(), None) is None

    def test_deterministic(self, make_load, make_profile):
        load, profile = make_load(), make_profile()
        assert revenue_and_pay(load, profile) == revenue_and_pay(load, profile)

"""Tests for the vesting calculation engine."""

from datetime import date
from decimal import Decimal

import pytest
from dateutil.relativedelta import relativedelta

from equitycalc.engines.vesting import VestingCalculator, completed_months
from equitycalc.exceptions import (
    DataValidationError,
    InvalidDateRangeError,
    NonPositiveShareCountError,
)
from equitycalc.models.enums import GrantType, VestingSchedule
from equitycalc.models.grant import Grant


@pytest.fixture
def calc():
    return VestingCalculator()


def _grant(schedule: VestingSchedule, shares: int = 1000, **kwargs) -> Grant:
    fields = dict(
        id="g-1",
        company_name="Acme",
        grant_type=GrantType.ISO,
        shares=shares,
        strike_price=Decimal("1"),
        current_fmv=Decimal("10"),
        vesting_start_date=date(2023, 1, 1),
        vesting_cliff_date=date(2024, 1, 1),
        vesting_end_date=date(2027, 1, 1),
        vesting_schedule=schedule,
    )
    fields.update(kwargs)
    return Grant(**fields)


class TestCompletedMonths:
    def test_whole_months(self):
        assert completed_months(date(2023, 1, 1), date(2024, 1, 1)) == 12

    def test_partial_month_not_counted(self):
        assert completed_months(date(2023, 1, 15), date(2023, 3, 14)) == 1

    def test_month_end_start(self):
        assert completed_months(date(2023, 1, 31), date(2023, 2, 27)) == 0
        assert completed_months(date(2023, 1, 31), date(2023, 2, 28)) == 1

    def test_before_start(self):
        assert completed_months(date(2023, 1, 1), date(2022, 6, 1)) == 0


class TestVestedShares:
    def test_cliff_catch_up(self, calc, monthly_iso):
        assert calc.vested_shares(monthly_iso, date(2024, 1, 1)) == 250

    def test_nothing_before_cliff(self, calc, monthly_iso):
        assert calc.vested_shares(monthly_iso, date(2023, 12, 31)) == 0
        assert calc.vested_shares(monthly_iso, date(2022, 1, 1)) == 0

    def test_monthly_after_cliff(self, calc, monthly_iso):
        # 13 of 48 months, floored
        assert calc.vested_shares(monthly_iso, date(2024, 2, 1)) == 270
        assert calc.vested_shares(monthly_iso, date(2024, 1, 31)) == 250

    def test_fully_vested_at_and_after_end(self, calc, monthly_iso):
        assert calc.vested_shares(monthly_iso, date(2027, 1, 1)) == 1000
        assert calc.vested_shares(monthly_iso, date(2030, 1, 1)) == 1000

    def test_monotonic_and_bounded(self, calc, monthly_iso):
        previous = 0
        point = date(2022, 12, 15)
        while point <= date(2027, 3, 1):
            vested = calc.vested_shares(monthly_iso, point)
            assert previous <= vested <= monthly_iso.shares
            previous = vested
            point += relativedelta(days=11)

    def test_quarterly(self, calc):
        grant = _grant(VestingSchedule.QUARTERLY, shares=1200)
        # 14 months elapsed, 12 of them in completed quarters
        assert calc.vested_shares(grant, date(2024, 3, 1)) == 300
        assert calc.vested_shares(grant, date(2024, 4, 1)) == 375

    def test_yearly(self, calc):
        grant = _grant(VestingSchedule.YEARLY)
        assert calc.vested_shares(grant, date(2025, 6, 1)) == 500

    def test_cliff_schedule_vests_at_end(self, calc):
        grant = _grant(VestingSchedule.CLIFF)
        assert calc.vested_shares(grant, date(2026, 12, 31)) == 0
        assert calc.vested_shares(grant, date(2027, 1, 1)) == 1000

    def test_default_cliff_and_end(self, calc):
        grant = Grant(
            company_name="Acme",
            grant_type="NSO",
            shares=480,
            vesting_start_date=date(2022, 1, 1),
        )
        assert grant.cliff_date == date(2023, 1, 1)
        assert grant.end_date == date(2026, 1, 1)
        assert calc.vested_shares(grant, date(2023, 1, 1)) == 120

    def test_percentage(self, calc, monthly_iso):
        assert calc.vesting_percentage(monthly_iso, date(2024, 1, 1)) == Decimal("25.00")
        assert calc.vesting_percentage(monthly_iso, date(2024, 2, 1)) == Decimal("27.00")


class TestValidation:
    def test_cliff_before_start(self, calc):
        grant = _grant(VestingSchedule.MONTHLY, vesting_cliff_date=date(2022, 1, 1))
        with pytest.raises(InvalidDateRangeError) as exc_info:
            calc.vested_shares(grant, date(2024, 1, 1))
        assert exc_info.value.grant_id == "g-1"
        assert exc_info.value.kind == "invalid_date_range"

    def test_end_before_cliff(self, calc):
        grant = _grant(VestingSchedule.MONTHLY, vesting_end_date=date(2023, 6, 1))
        with pytest.raises(InvalidDateRangeError):
            calc.validate(grant)

    def test_missing_start(self, calc):
        grant = _grant(
            VestingSchedule.MONTHLY,
            vesting_start_date=None,
            vesting_cliff_date=None,
            vesting_end_date=None,
        )
        with pytest.raises(InvalidDateRangeError):
            calc.validate(grant)

    def test_zero_shares(self, calc):
        with pytest.raises(NonPositiveShareCountError):
            calc.validate(_grant(VestingSchedule.MONTHLY, shares=0))

    def test_negative_fmv(self, calc):
        with pytest.raises(DataValidationError):
            calc.validate(_grant(VestingSchedule.MONTHLY, current_fmv=Decimal("-1")))


class TestDoubleTrigger:
    def test_nothing_vests_before_end(self, calc, double_trigger_rsu):
        assert calc.vested_shares(double_trigger_rsu, date(2025, 1, 1)) == 0
        assert calc.vested_shares(double_trigger_rsu, date(2027, 1, 1)) == 1000

    def test_liquidity_event_releases_time_vested(self, calc, double_trigger_rsu):
        result = calc.double_trigger(double_trigger_rsu, date(2025, 1, 1), Decimal("10"))
        assert result.time_vested_shares == 500
        assert result.vested_value == Decimal("5000")
        assert result.taxable_income == Decimal("5000")
        assert result.remaining_unvested_shares == 500

    def test_liquidity_before_cliff(self, calc, double_trigger_rsu):
        result = calc.double_trigger(double_trigger_rsu, date(2023, 6, 1), Decimal("10"))
        assert result.time_vested_shares == 0
        assert result.remaining_unvested_shares == 1000

    def test_rejects_single_trigger_grant(self, calc, monthly_iso):
        with pytest.raises(DataValidationError):
            calc.double_trigger(monthly_iso, date(2025, 1, 1), Decimal("10"))

    def test_no_upcoming_events(self, calc, double_trigger_rsu):
        assert calc.upcoming_events(double_trigger_rsu, date(2024, 6, 1)) == []


class TestSchedule:
    def test_monthly_schedule(self, calc, monthly_iso):
        events = calc.vesting_schedule(monthly_iso)
        assert len(events) == 37
        assert events[0].vest_date == date(2024, 1, 1)
        assert events[0].label == "Cliff Vesting"
        assert events[0].shares == 250
        assert events[1].label == "Regular Vesting"
        assert events[-1].vest_date == date(2027, 1, 1)
        assert events[-1].label == "Final Vesting"
        assert events[-1].cumulative_shares == 1000
        assert sum(e.shares for e in events) == 1000

    def test_schedule_agrees_with_point_in_time(self, calc, monthly_iso):
        for event in calc.vesting_schedule(monthly_iso):
            assert calc.vested_shares(monthly_iso, event.vest_date) == event.cumulative_shares

    def test_cliff_schedule_single_event(self, calc):
        events = calc.vesting_schedule(_grant(VestingSchedule.CLIFF))
        assert len(events) == 1
        assert events[0].label == "Final Vesting"
        assert events[0].shares == 1000

    def test_detailed_vesting(self, calc, monthly_iso):
        detail = calc.detailed_vesting(monthly_iso, date(2024, 1, 15))
        assert detail.vested_shares == 250
        assert detail.unvested_shares == 750
        assert detail.cliff_passed is True
        assert detail.fully_vested is False
        assert detail.next_vest_date == date(2024, 2, 1)
        assert detail.next_vest_shares == 20
        assert detail.days_until_next_vest == 17

    def test_detailed_vesting_when_complete(self, calc, monthly_iso):
        detail = calc.detailed_vesting(monthly_iso, date(2028, 1, 1))
        assert detail.fully_vested is True
        assert detail.next_vest_date is None
        assert detail.days_until_next_vest is None

    def test_upcoming_events_window(self, calc, monthly_iso):
        events = calc.upcoming_events(monthly_iso, date(2024, 1, 15), months_ahead=3)
        assert [e.vest_date for e in events] == [
            date(2024, 2, 1),
            date(2024, 3, 1),
            date(2024, 4, 1),
        ]
        assert events[0].value == Decimal("200.00")
        assert events[0].days_until == 17

    def test_combined_schedule(self, calc, monthly_iso, double_trigger_rsu):
        months = calc.combined_schedule(
            [monthly_iso, double_trigger_rsu], date(2024, 1, 1), months_ahead=2
        )
        assert [m.month for m in months] == ["2024-01", "2024-02", "2024-03"]
        assert [m.shares for m in months] == [250, 20, 21]
        assert months[-1].cumulative_shares == 291
        assert months[-1].cumulative_value == Decimal("2910.00")
        assert all(line.grant_id == "g-iso" for m in months for line in m.grants)

    def test_combined_schedule_rejects_undated_grant(self, calc, monthly_iso):
        undated = Grant(company_name="Acme", grant_type="ISO", shares=100)
        with pytest.raises(InvalidDateRangeError):
            calc.combined_schedule([monthly_iso, undated], date(2024, 1, 1))

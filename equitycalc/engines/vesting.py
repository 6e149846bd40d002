"""Vesting calculation engine.

Vesting is discrete: shares vest on whole-period boundaries counted in
calendar months from the vesting start. Before the cliff nothing vests; at
the cliff every period completed so far vests at once; from the end date on
the full grant is vested. The schedule generator and the point-in-time
calculation share one function, so they always agree.
"""

import logging
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from equitycalc.exceptions import (
    DataValidationError,
    InvalidDateRangeError,
    NonPositiveShareCountError,
)
from equitycalc.models.enums import VestingSchedule
from equitycalc.models.grant import Grant
from equitycalc.models.results import (
    DoubleTriggerResult,
    GrantVestingLine,
    MonthlyVesting,
    UpcomingVest,
    VestingDetail,
    VestingEvent,
)

logger = logging.getLogger(__name__)

CLIFF_LABEL = "Cliff Vesting"
REGULAR_LABEL = "Regular Vesting"
FINAL_LABEL = "Final Vesting"


def completed_months(start: date, as_of: date) -> int:
    """Whole calendar months from ``start`` to ``as_of``.

    A month counts once ``start + relativedelta(months=k)`` has been reached,
    so a Jan 31 start completes its first month on Feb 28 (or 29).
    """
    if as_of < start:
        return 0
    delta = relativedelta(as_of, start)
    months = delta.years * 12 + delta.months
    while start + relativedelta(months=months + 1) <= as_of:
        months += 1
    return months


class VestingCalculator:
    """Computes vested share counts, schedules and upcoming vest events."""

    def validate(self, grant: Grant) -> None:
        """Raise if the grant cannot be vested.

        Checks for a vesting start date, ``start <= cliff <= end``, a positive
        share count and non-negative prices.
        """
        start, cliff, end = grant.vesting_start_date, grant.cliff_date, grant.end_date
        if start is None or cliff is None or end is None:
            raise InvalidDateRangeError(grant.id, start, cliff, end)
        if not (start <= cliff <= end):
            raise InvalidDateRangeError(grant.id, start, cliff, end)
        if grant.shares <= 0:
            raise NonPositiveShareCountError("shares", grant.shares)
        if grant.strike_price < 0:
            raise DataValidationError("strike_price", "must not be negative")
        if grant.current_fmv < 0:
            raise DataValidationError("current_fmv", "must not be negative")

    def vested_shares(self, grant: Grant, as_of: date) -> int:
        """Shares vested as of ``as_of``.

        Double-trigger RSUs report 0 until the end date, since their time
        vesting alone does not release shares.
        """
        self.validate(grant)
        if as_of < grant.cliff_date:
            return 0
        if as_of >= grant.end_date:
            return grant.shares
        if grant.is_double_trigger:
            return 0
        return self._time_vested(grant, as_of)

    def vesting_percentage(self, grant: Grant, as_of: date) -> Decimal:
        vested = self.vested_shares(grant, as_of)
        return (Decimal(vested) * 100 / Decimal(grant.shares)).quantize(Decimal("0.01"))

    def _time_vested(self, grant: Grant, as_of: date) -> int:
        """Time-based vested shares, ignoring any liquidity condition."""
        start, cliff, end = grant.vesting_start_date, grant.cliff_date, grant.end_date
        if as_of < cliff:
            return 0
        if as_of >= end:
            return grant.shares

        period = grant.vesting_schedule.period_months
        if period is None:
            # cliff schedule: everything vests on the end date
            return 0

        total_months = completed_months(start, end)
        if total_months == 0:
            return 0
        elapsed = completed_months(start, as_of)
        completed = (elapsed // period) * period
        return grant.shares * completed // total_months

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    def vesting_schedule(self, grant: Grant) -> list[VestingEvent]:
        """Every date on which time-vested shares increase, in order."""
        self.validate(grant)
        start, cliff, end = grant.vesting_start_date, grant.cliff_date, grant.end_date

        candidates = {cliff, end}
        period = grant.vesting_schedule.period_months
        if period is not None:
            k = 1
            while True:
                vest_date = start + relativedelta(months=k * period)
                if vest_date >= end:
                    break
                if vest_date > cliff:
                    candidates.add(vest_date)
                k += 1

        events: list[VestingEvent] = []
        previous = 0
        for vest_date in sorted(candidates):
            cumulative = self._time_vested(grant, vest_date)
            if cumulative <= previous:
                continue
            if vest_date == end:
                label = FINAL_LABEL
            elif vest_date == cliff:
                label = CLIFF_LABEL
            else:
                label = REGULAR_LABEL
            events.append(
                VestingEvent(
                    vest_date=vest_date,
                    shares=cumulative - previous,
                    cumulative_shares=cumulative,
                    label=label,
                )
            )
            previous = cumulative
        return events

    def detailed_vesting(self, grant: Grant, as_of: date) -> VestingDetail:
        vested = self.vested_shares(grant, as_of)
        next_event = next(
            (e for e in self.vesting_schedule(grant) if e.vest_date > as_of), None
        )
        return VestingDetail(
            grant_id=grant.id,
            total_shares=grant.shares,
            vested_shares=vested,
            unvested_shares=grant.shares - vested,
            vesting_percentage=self.vesting_percentage(grant, as_of),
            cliff_passed=as_of >= grant.cliff_date,
            fully_vested=as_of >= grant.end_date,
            is_double_trigger=grant.is_double_trigger,
            next_vest_date=next_event.vest_date if next_event else None,
            next_vest_shares=next_event.shares if next_event else 0,
            days_until_next_vest=(
                (next_event.vest_date - as_of).days if next_event else None
            ),
        )

    def upcoming_events(
        self, grant: Grant, as_of: date, months_ahead: int = 6
    ) -> list[UpcomingVest]:
        """Vest events after ``as_of`` and up to ``months_ahead`` months out.

        Double-trigger RSUs have no upcoming events: nothing is released
        without the liquidity event.
        """
        if grant.is_double_trigger:
            logger.debug("Skipping double-trigger grant %s", grant.label)
            return []
        horizon = as_of + relativedelta(months=months_ahead)
        return [
            UpcomingVest(
                grant_id=grant.id,
                company_name=grant.company_name,
                grant_type=grant.grant_type,
                vest_date=event.vest_date,
                shares=event.shares,
                value=event.shares * grant.current_fmv,
                days_until=(event.vest_date - as_of).days,
            )
            for event in self.vesting_schedule(grant)
            if as_of < event.vest_date <= horizon
        ]

    def combined_schedule(
        self, grants: list[Grant], start: date, months_ahead: int = 36
    ) -> list[MonthlyVesting]:
        """Monthly vesting totals across grants, with running cumulative totals.

        Raises ``InvalidDateRangeError`` for a grant without usable vesting dates.
        """
        horizon = start + relativedelta(months=months_ahead)
        buckets: dict[str, list[GrantVestingLine]] = {}

        for grant in grants:
            self.validate(grant)
            if grant.is_double_trigger:
                logger.debug("Skipping double-trigger grant %s", grant.label)
                continue
            if start >= grant.end_date:
                continue
            for event in self.vesting_schedule(grant):
                if not (start <= event.vest_date <= horizon):
                    continue
                month = event.vest_date.strftime("%Y-%m")
                buckets.setdefault(month, []).append(
                    GrantVestingLine(
                        grant_id=grant.id,
                        company_name=grant.company_name,
                        grant_type=grant.grant_type,
                        shares=event.shares,
                        value=event.shares * grant.current_fmv,
                    )
                )

        schedule: list[MonthlyVesting] = []
        cumulative_shares = 0
        cumulative_value = Decimal("0")
        for month in sorted(buckets):
            lines = buckets[month]
            shares = sum(line.shares for line in lines)
            value = sum((line.value for line in lines), Decimal("0"))
            cumulative_shares += shares
            cumulative_value += value
            schedule.append(
                MonthlyVesting(
                    month=month,
                    shares=shares,
                    value=value,
                    cumulative_shares=cumulative_shares,
                    cumulative_value=cumulative_value,
                    grants=lines,
                )
            )
        return schedule

    def double_trigger(
        self, grant: Grant, liquidity_date: date, share_price: Decimal
    ) -> DoubleTriggerResult:
        """Shares released by a liquidity event for a double-trigger RSU.

        Only the time-vested portion releases; its value at ``share_price``
        is ordinary income.
        """
        if not grant.is_double_trigger:
            raise DataValidationError(
                "liquidity_event_only", f"{grant.label} is not a double-trigger RSU"
            )
        if share_price < 0:
            raise DataValidationError("share_price", "must not be negative")
        self.validate(grant)

        time_vested = self._time_vested(grant, liquidity_date)
        value = time_vested * share_price
        return DoubleTriggerResult(
            grant_id=grant.id,
            liquidity_date=liquidity_date,
            share_price=share_price,
            time_vested_shares=time_vested,
            vested_value=value,
            taxable_income=value,
            remaining_unvested_shares=grant.shares - time_vested,
        )

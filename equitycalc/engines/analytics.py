"""Portfolio analytics.

Aggregates vesting state across grants into totals, value distributions,
forecasts, a quarterly value history and a scenario comparison. Grants that
fail validation are skipped and reported in ``warnings``.
"""

import logging
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from equitycalc.engines.scenario import ScenarioEvaluator
from equitycalc.engines.vesting import VestingCalculator
from equitycalc.exceptions import EquityCalcError
from equitycalc.models.enums import GrantType, Timeframe
from equitycalc.models.grant import Grant, Scenario
from equitycalc.models.results import (
    AnalyticsSummary,
    ForecastPoint,
    NamedValue,
    PortfolioPoint,
    ScenarioComparison,
)
from equitycalc.models.settings import TaxSettings

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ALL_COMPANIES = "all"
FORECAST_MONTHS = 24
SUMMARY_FORECAST_ENTRIES = 12
PROJECTION_QUARTERS = 3
QUARTERLY_GROWTH = Decimal("0.025")


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    return part / whole * 100 if whole > 0 else ZERO


class PortfolioAnalytics:
    """Builds the analytics dashboard numbers for a set of grants."""

    def __init__(
        self,
        vesting: VestingCalculator | None = None,
        evaluator: ScenarioEvaluator | None = None,
    ) -> None:
        self.vesting = vesting or VestingCalculator()
        self.evaluator = evaluator or ScenarioEvaluator()
        self.warnings: list[str] = []

    def filter_grants(
        self,
        grants: list[Grant],
        as_of: date,
        timeframe: Timeframe | str = Timeframe.ALL,
        company: str = ALL_COMPANIES,
    ) -> list[Grant]:
        """Grants for ``company`` granted within the timeframe before ``as_of``."""
        timeframe = Timeframe(timeframe)
        selected = [
            g for g in grants if company == ALL_COMPANIES or g.company_name == company
        ]
        if timeframe.days is None:
            return selected

        in_window = []
        for grant in selected:
            granted = grant.grant_date or grant.vesting_start_date
            if granted is not None and (as_of - granted).days <= timeframe.days:
                in_window.append(grant)
        return in_window

    def _valid(self, grants: list[Grant]) -> list[Grant]:
        valid = []
        for grant in grants:
            try:
                self.vesting.validate(grant)
            except EquityCalcError as exc:
                logger.warning("Skipping grant %s: %s", grant.label, exc)
                self.warnings.append(f"Skipped {grant.label}: {exc}")
                continue
            valid.append(grant)
        return valid

    def summarize(
        self,
        grants: list[Grant],
        scenarios: list[Scenario],
        as_of: date,
        timeframe: Timeframe | str = Timeframe.ALL,
        company: str = ALL_COMPANIES,
        settings: TaxSettings | None = None,
    ) -> AnalyticsSummary:
        self.warnings = []
        timeframe = Timeframe(timeframe)
        selected = self.filter_grants(grants, as_of, timeframe, company)
        valid = self._valid(selected)

        total_shares = vested_total = 0
        current_value = exercise_cost = ZERO
        by_type: dict[str, Decimal] = {}
        by_company: dict[str, Decimal] = {}

        for grant in valid:
            vested = self.vesting.vested_shares(grant, as_of)
            value = vested * grant.current_fmv
            total_shares += grant.shares
            vested_total += vested
            current_value += value
            exercise_cost += vested * grant.strike_price
            type_name = grant.grant_type.value
            by_type[type_name] = by_type.get(type_name, ZERO) + value
            by_company[grant.company_name] = by_company.get(grant.company_name, ZERO) + value

        value_by_type = sorted(
            (NamedValue(name=name, value=value) for name, value in by_type.items()),
            key=lambda item: item.value,
            reverse=True,
        )
        company_total = sum(by_company.values(), ZERO)
        value_by_company = sorted(
            (
                NamedValue(name=name, value=value, percentage=_percent(value, company_total))
                for name, value in by_company.items()
            ),
            key=lambda item: item.value,
            reverse=True,
        )

        iso_value = by_type.get(GrantType.ISO.value, ZERO)
        nso_value = by_type.get(GrantType.NSO.value, ZERO)
        rsu_value = by_type.get(GrantType.RSU.value, ZERO)

        # scenarios on grants outside the filter are out of scope, not missing
        excluded_ids = {g.id for g in grants} - {g.id for g in valid}
        in_scope = [s for s in scenarios if s.grant_id not in excluded_ids]

        return AnalyticsSummary(
            as_of=as_of,
            timeframe=timeframe.value,
            company=company,
            grant_count=len(valid),
            total_shares=total_shares,
            vested_shares=vested_total,
            unvested_shares=total_shares - vested_total,
            current_value=current_value,
            exercise_cost=exercise_cost,
            potential_gain=current_value - exercise_cost,
            value_by_type=value_by_type,
            value_by_company=value_by_company,
            iso_value=iso_value,
            nso_value=nso_value,
            rsu_value=rsu_value,
            iso_percentage=_percent(iso_value, iso_value + rsu_value),
            rsu_percentage=_percent(rsu_value, iso_value + rsu_value),
            vesting_forecast=self.vesting_forecast(valid, as_of)[:SUMMARY_FORECAST_ENTRIES],
            portfolio_history=self.portfolio_history(valid, as_of),
            scenario_comparison=self.compare_scenarios(in_scope, valid, settings),
            warnings=list(self.warnings),
        )

    def vesting_forecast(
        self, grants: list[Grant], as_of: date, months: int = FORECAST_MONTHS
    ) -> list[ForecastPoint]:
        """Shares (and their current value) vesting in each of the next ``months`` months.

        Months with nothing vesting are omitted. Invalid grants are skipped
        and reported in ``warnings``.
        """
        buckets: dict[str, tuple[int, Decimal]] = {}
        for grant in self._valid(grants):
            if as_of >= grant.end_date:
                logger.debug("Skipping %s: vesting already complete", grant.label)
                continue
            previous = self.vesting.vested_shares(grant, as_of)
            for i in range(1, months + 1):
                point = as_of + relativedelta(months=i)
                vested = self.vesting.vested_shares(grant, point)
                newly = vested - previous
                previous = vested
                if newly <= 0:
                    continue
                key = point.strftime("%Y-%m")
                shares, value = buckets.get(key, (0, ZERO))
                buckets[key] = (shares + newly, value + newly * grant.current_fmv)

        return [
            ForecastPoint(month=key, shares=shares, value=value)
            for key, (shares, value) in sorted(buckets.items())
        ]

    def portfolio_history(
        self,
        grants: list[Grant],
        as_of: date,
        projection_quarters: int = PROJECTION_QUARTERS,
        quarterly_growth: Decimal = QUARTERLY_GROWTH,
    ) -> list[PortfolioPoint]:
        """Quarterly vested value from the earliest grant, then projected quarters.

        History uses today's FMV throughout. Projections compound
        ``quarterly_growth`` per quarter.
        """
        grants = self._valid(grants)
        if not grants:
            return []

        def granted(grant: Grant) -> date:
            return grant.grant_date or grant.vesting_start_date

        earliest = min(min(granted(g) for g in grants), as_of)
        point = date(earliest.year, (earliest.month - 1) // 3 * 3 + 1, 1)

        history: list[PortfolioPoint] = []
        while point <= as_of:
            value = sum(
                (
                    self.vesting.vested_shares(g, point) * g.current_fmv
                    for g in grants
                    if granted(g) <= point
                ),
                ZERO,
            )
            history.append(PortfolioPoint(point_date=point, value=value))
            point += relativedelta(months=3)

        for i in range(1, projection_quarters + 1):
            projected = as_of + relativedelta(months=3 * i)
            growth = (1 + quarterly_growth) ** i
            value = sum(
                (self.vesting.vested_shares(g, projected) * g.current_fmv * growth for g in grants),
                ZERO,
            )
            history.append(PortfolioPoint(point_date=projected, value=value, projected=True))
        return history

    def compare_scenarios(
        self,
        scenarios: list[Scenario],
        grants: list[Grant],
        settings: TaxSettings | None = None,
    ) -> list[ScenarioComparison]:
        """Net outcome of each scenario, best first.

        A scenario that cannot be evaluated (unknown grant, bad share count)
        becomes a warning instead of aborting the comparison.
        """
        rows = []
        for scenario in scenarios:
            try:
                result = self.evaluator.evaluate_scenario(scenario, grants, settings=settings)
            except EquityCalcError as exc:
                logger.warning("Skipping scenario %r: %s", scenario.name, exc)
                self.warnings.append(f"Skipped scenario '{scenario.name}': {exc}")
                continue
            rows.append(
                ScenarioComparison(
                    scenario_name=scenario.name,
                    grant_id=scenario.grant_id,
                    exit_type=scenario.exit_type,
                    share_price=scenario.share_price,
                    shares=result.shares,
                    gross_value=result.gross_proceeds,
                    exercise_cost=result.exercise_cost,
                    taxes=result.tax_liability,
                    net_value=result.net_proceeds,
                )
            )
        return sorted(rows, key=lambda row: row.net_value, reverse=True)

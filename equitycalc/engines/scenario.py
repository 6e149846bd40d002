"""Exit scenario evaluation.

Combines exercise cost, sale proceeds and the policy-table tax estimate into
the net outcome and return metrics for one grant under one exit price.
"""

import logging
from datetime import date
from decimal import Decimal

from equitycalc.engines.tax import TaxCalculator
from equitycalc.exceptions import (
    DataValidationError,
    GrantNotFoundError,
    NonPositiveShareCountError,
)
from equitycalc.models.enums import ExitType
from equitycalc.models.grant import Grant, Scenario
from equitycalc.models.results import ScenarioResult
from equitycalc.models.settings import TaxSettings

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
DAYS_PER_YEAR = Decimal("365")


def find_grant(grants: list[Grant], grant_id: str, scenario_name: str | None = None) -> Grant:
    for grant in grants:
        if grant.id == grant_id:
            return grant
    raise GrantNotFoundError(grant_id, scenario_name)


class ScenarioEvaluator:
    """Evaluates what a grant is worth after tax at a given exit price."""

    def __init__(self, tax_calculator: TaxCalculator | None = None) -> None:
        self.tax = tax_calculator or TaxCalculator()

    @staticmethod
    def exercise_cost(shares: int, strike_price: Decimal) -> Decimal:
        return shares * strike_price

    @staticmethod
    def gross_proceeds(shares: int, exit_price: Decimal) -> Decimal:
        return shares * exit_price

    @staticmethod
    def current_value(shares: int, fmv: Decimal) -> Decimal:
        return shares * fmv

    @staticmethod
    def return_percentage(current: Decimal, cost: Decimal) -> Decimal:
        """Percent gain of ``current`` over ``cost``; 0 when cost is 0."""
        if cost == 0:
            return ZERO
        return (current - cost) / cost * 100

    def evaluate(
        self,
        grant: Grant,
        exit_price: Decimal,
        shares: int,
        scenario_name: str,
        is_long_term: bool = True,
        settings: TaxSettings | None = None,
        exit_date: date | None = None,
        exit_type: ExitType = ExitType.CUSTOM,
    ) -> ScenarioResult:
        """Net proceeds and return metrics for selling ``shares`` at ``exit_price``.

        ``net_proceeds`` is exactly ``gross_proceeds - exercise_cost -
        tax_liability``. Ratios with a zero denominator are reported as 0.
        """
        if shares <= 0:
            raise NonPositiveShareCountError("shares", shares)

        strike = grant.strike_price
        exercise_cost = self.exercise_cost(shares, strike)
        gross = self.gross_proceeds(shares, exit_price)
        taxes = self.tax.calculate_taxes(
            grant, strike, exit_price, shares, is_long_term=is_long_term, settings=settings
        )
        net = gross - exercise_cost - taxes.total_tax

        if exercise_cost > 0:
            roi = net / exercise_cost * 100
            multiple = gross / exercise_cost
        else:
            roi = ZERO
            multiple = ZERO

        rate = taxes.effective_tax_rate
        break_even = strike / (1 - rate) if rate < 1 else strike

        return ScenarioResult(
            scenario_name=scenario_name,
            grant_id=grant.id,
            exit_type=exit_type,
            exit_price=exit_price,
            shares=shares,
            exercise_cost=exercise_cost,
            gross_proceeds=gross,
            exercise_income=taxes.exercise_income,
            capital_gain=taxes.capital_gain,
            amt_liability=taxes.amt_liability,
            federal_tax=taxes.federal_tax,
            state_tax=taxes.state_tax,
            tax_liability=taxes.total_tax,
            effective_tax_rate=rate,
            net_proceeds=net,
            roi_percentage=roi,
            multiple_on_investment=multiple,
            annualized_return=self.annualized_return(grant, roi, exercise_cost, exit_date),
            break_even_price=break_even,
        )

    def annualized_return(
        self,
        grant: Grant,
        roi_percentage: Decimal,
        exercise_cost: Decimal,
        exit_date: date | None,
    ) -> Decimal:
        """Compound yearly return over the holding years (at least one).

        Years run from the grant date (or vesting start) to ``exit_date``.
        """
        if exercise_cost == 0:
            return ZERO
        start = grant.grant_date or grant.vesting_start_date
        years = Decimal("1")
        if start is not None and exit_date is not None:
            years = max(Decimal((exit_date - start).days) / DAYS_PER_YEAR, Decimal("1"))

        growth = 1 + roi_percentage / 100
        if growth <= 0:
            return Decimal("-100")
        return (growth ** (1 / years) - 1) * 100

    def evaluate_scenario(
        self,
        scenario: Scenario,
        grants: list[Grant],
        is_long_term: bool = True,
        settings: TaxSettings | None = None,
    ) -> ScenarioResult:
        """Evaluate a stored scenario against its linked grant."""
        grant = find_grant(grants, scenario.grant_id, scenario.name)
        shares = scenario.shares_included if scenario.shares_included is not None else grant.shares
        if shares <= 0:
            raise NonPositiveShareCountError("shares_included", shares)
        if shares > grant.shares:
            raise DataValidationError(
                "shares_included",
                f"{shares} exceeds the {grant.shares} shares in {grant.label}",
            )
        logger.debug("Evaluating scenario %r on %s", scenario.name, grant.label)
        return self.evaluate(
            grant,
            scenario.share_price,
            shares,
            scenario.name,
            is_long_term=is_long_term,
            settings=settings,
            exit_date=scenario.exit_date,
            exit_type=scenario.exit_type,
        )

"""Tax calculation for equity grants.

Two calculators share one entry point:
  - ``calculate_taxes``: the per-grant-type policy table with flat rates
    from TaxSettings (RSU / NSO / ISO rules plus a flat AMT estimate)
  - ``calculate_comprehensive_tax``: progressive federal brackets, LTCG
    stacking, Medicare on supplemental wages, NIIT, Form 6251 AMT, ISO
    qualifying-disposition rules and multi-state allocation
"""

import logging
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from equitycalc.engines.amt import AMTCalculator
from equitycalc.engines.brackets import (
    ADDITIONAL_MEDICARE_TAX_RATE,
    ADDITIONAL_MEDICARE_TAX_THRESHOLD,
    FEDERAL_BRACKETS,
    FEDERAL_LTCG_BRACKETS,
    FEDERAL_STANDARD_DEDUCTION,
    ISO_YEARS_FROM_EXERCISE,
    ISO_YEARS_FROM_GRANT,
    LONG_TERM_HOLDING_DAYS,
    NIIT_RATE,
    NIIT_THRESHOLD,
    REGULAR_MEDICARE_TAX_RATE,
    STATE_CODES,
    STATE_TAX_RATES,
    UNKNOWN_STATE_RATE,
    apply_brackets,
    lookup,
    marginal_rate,
    stacked_ltcg_tax,
)
from equitycalc.exceptions import DataValidationError, NonPositiveShareCountError
from equitycalc.models.enums import DispositionType, FilingStatus, GrantType, HoldingPeriod
from equitycalc.models.grant import Grant
from equitycalc.models.results import (
    AMTDetail,
    ComprehensiveTaxResult,
    StateTaxLine,
    TaxAssumptions,
    TaxResult,
)
from equitycalc.models.settings import TaxSettings

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def held_long_term(acquired: date, sold: date) -> bool:
    """Long-term once the shares have been held more than 365 days."""
    return (sold - acquired).days > LONG_TERM_HOLDING_DAYS


def is_qualifying_disposition(grant_date: date, exercise_date: date, sale_date: date) -> bool:
    """ISO qualifying disposition per IRC Section 422(a)(1).

    The sale must fall after both the 2-year grant anniversary and the
    1-year exercise anniversary; a sale on either anniversary disqualifies.
    """
    return (
        sale_date > grant_date + relativedelta(years=ISO_YEARS_FROM_GRANT)
        and sale_date > exercise_date + relativedelta(years=ISO_YEARS_FROM_EXERCISE)
    )


def _check_inputs(strike_price: Decimal, exit_price: Decimal, shares: int) -> None:
    if shares <= 0:
        raise NonPositiveShareCountError("shares", shares)
    if strike_price < 0:
        raise DataValidationError("strike_price", "must not be negative")
    if exit_price < 0:
        raise DataValidationError("exit_price", "must not be negative")


class TaxCalculator:
    """Estimates tax owed on exercising and selling equity grants."""

    def __init__(self, amt_calculator: AMTCalculator | None = None) -> None:
        self.amt = amt_calculator or AMTCalculator()
        self.warnings: list[str] = []

    # ------------------------------------------------------------------
    # Policy table
    # ------------------------------------------------------------------

    def calculate_taxes(
        self,
        grant: Grant,
        strike_price: Decimal,
        exit_price: Decimal,
        shares: int,
        is_long_term: bool = True,
        settings: TaxSettings | None = None,
    ) -> TaxResult:
        """Flat-rate tax estimate by grant type.

        RSU: the full sale value is ordinary income; there is no capital gain.
        NSO: the exercise spread over FMV is ordinary income; growth above
        ``max(fmv, strike)`` is capital gain.
        ISO: no ordinary income; growth above strike is capital gain, and the
        exercise spread is AMT income.

        Losses are never taxed, so the total is never negative.
        """
        _check_inputs(strike_price, exit_price, shares)
        settings = settings or TaxSettings()
        fmv = grant.current_fmv
        cg_rate = settings.long_term_rate if is_long_term else settings.ordinary_rate

        exercise_income = ZERO
        capital_gain = ZERO
        amt_income = ZERO
        amt = ZERO

        if grant.grant_type == GrantType.RSU:
            exercise_income = shares * exit_price
        elif grant.grant_type == GrantType.NSO:
            exercise_income = max((fmv - strike_price) * shares, ZERO)
            capital_gain = (exit_price - max(fmv, strike_price)) * shares
        else:
            capital_gain = (exit_price - strike_price) * shares
            amt_income = max((fmv - strike_price) * shares, ZERO)
            if settings.include_amt:
                amt = self.amt.flat_estimate(amt_income)

        positive_gain = max(capital_gain, ZERO)
        exercise_tax = exercise_income * (settings.ordinary_rate + settings.state_rate)
        capital_gains_tax = positive_gain * (cg_rate + settings.state_rate)
        federal_tax = exercise_income * settings.ordinary_rate + positive_gain * cg_rate + amt
        state_tax = (exercise_income + positive_gain) * settings.state_rate
        total_tax = federal_tax + state_tax

        taxable = exercise_income + positive_gain
        return TaxResult(
            exercise_income=exercise_income,
            exercise_tax=exercise_tax,
            capital_gain=capital_gain,
            capital_gains_tax=capital_gains_tax,
            amt_income=amt_income,
            amt_liability=amt,
            federal_tax=federal_tax,
            state_tax=state_tax,
            total_tax=total_tax,
            effective_tax_rate=total_tax / taxable if taxable > 0 else ZERO,
            holding_period=(
                HoldingPeriod.LONG_TERM if is_long_term else HoldingPeriod.SHORT_TERM
            ),
        )

    # ------------------------------------------------------------------
    # Comprehensive
    # ------------------------------------------------------------------

    def calculate_comprehensive_tax(
        self,
        grant: Grant,
        exercise_price: Decimal,
        exit_price: Decimal,
        shares: int,
        settings: TaxSettings | None = None,
        exercise_date: date | None = None,
        sale_date: date | None = None,
    ) -> ComprehensiveTaxResult:
        """Bracket-based federal and state tax on one exercise-and-sale.

        ``exercise_date`` is the exercise date for options and the vest date
        for RSUs. The grant's ``current_fmv`` is taken as the FMV on that
        date. Federal ordinary tax is the increase over tax on
        ``settings.other_income`` alone; long-term gains are stacked on top.
        """
        _check_inputs(exercise_price, exit_price, shares)
        settings = settings or TaxSettings()
        self.warnings = []
        status, year = settings.filing_status, settings.tax_year

        if exercise_date is not None and sale_date is not None:
            if sale_date < exercise_date:
                raise DataValidationError("sale_date", "must not precede exercise_date")
            long_term = held_long_term(exercise_date, sale_date)
        else:
            long_term = True
            self.warnings.append(
                "Exercise or sale date missing; assuming a long-term holding period."
            )

        fmv = grant.current_fmv
        spread = max(fmv - exercise_price, ZERO) * shares
        ordinary_income = ZERO
        gain = ZERO
        amt_preference = ZERO
        medicare_applies = False
        disposition = DispositionType.NOT_APPLICABLE

        if grant.grant_type == GrantType.ISO:
            profit = (exit_price - exercise_price) * shares
            grant_date = grant.grant_date or grant.vesting_start_date or exercise_date
            if exercise_date is None or sale_date is None:
                # matches the long-term assumption above
                qualifying = True
            else:
                qualifying = is_qualifying_disposition(grant_date, exercise_date, sale_date)
            if qualifying:
                disposition = DispositionType.QUALIFYING
                gain = profit
                long_term = True
                amt_preference = spread
            else:
                disposition = DispositionType.DISQUALIFYING
                ordinary_income = max(min(spread, profit), ZERO)
                gain = profit - ordinary_income
        elif grant.grant_type == GrantType.NSO:
            ordinary_income = spread
            gain = (exit_price - max(fmv, exercise_price)) * shares
            medicare_applies = True
        else:
            ordinary_income = fmv * shares
            gain = (exit_price - fmv) * shares
            medicare_applies = True

        short_term_gain = ZERO if long_term else gain
        long_term_gain = gain if long_term else ZERO
        positive_st = max(short_term_gain, ZERO)
        positive_lt = max(long_term_gain, ZERO)

        # --- Federal ordinary tax, incremental over other income ---
        fed_brackets = lookup("federal", FEDERAL_BRACKETS, year, status)
        ltcg_brackets = lookup("LTCG", FEDERAL_LTCG_BRACKETS, year, status)
        std_ded = lookup("standard deduction", FEDERAL_STANDARD_DEDUCTION, year, status)

        base_taxable = max(settings.other_income - std_ded, ZERO)
        ordinary_taxable = base_taxable + ordinary_income + positive_st
        taxable_income = ordinary_taxable + positive_lt

        base_tax = apply_brackets(base_taxable, fed_brackets)
        ordinary_tax = apply_brackets(ordinary_taxable, fed_brackets)
        federal_ordinary_tax = ordinary_tax - base_tax
        federal_capital_gains_tax = stacked_ltcg_tax(
            positive_lt, taxable_income, ltcg_brackets
        )

        # --- Medicare on supplemental wages ---
        medicare_tax = ZERO
        if medicare_applies:
            medicare_tax = self.compute_medicare_tax(
                ordinary_income, settings.other_income, status
            )

        # --- NIIT ---
        niit = ZERO
        if settings.include_niit:
            investment_income = positive_st + positive_lt
            magi = settings.other_income + ordinary_income + investment_income
            niit = self.compute_niit(investment_income, magi, status)

        # --- AMT ---
        amt_detail: AMTDetail | None = None
        amt_liability = ZERO
        if settings.include_amt and amt_preference > 0:
            amt_detail = self.amt.liability(
                amt_income=amt_preference,
                regular_income=taxable_income,
                filing_status=status,
                tax_year=year,
                regular_tax=ordinary_tax + federal_capital_gains_tax,
                preferential_income=positive_lt,
            )
            amt_liability = amt_detail.amt

        federal_tax = (
            federal_ordinary_tax + federal_capital_gains_tax
            + medicare_tax + niit + amt_liability
        )

        # --- Prior-year AMT credit (Form 8801), incremental over other income ---
        amt_credit_used = ZERO
        amt_credit_remaining = ZERO
        if settings.prior_amt_credit > 0:
            with_sale = amt_detail or self.amt.liability(
                amt_income=ZERO,
                regular_income=taxable_income,
                filing_status=status,
                tax_year=year,
                regular_tax=ordinary_tax + federal_capital_gains_tax,
                preferential_income=positive_lt,
            )
            without_sale = self.amt.liability(
                amt_income=ZERO,
                regular_income=base_taxable,
                filing_status=status,
                tax_year=year,
                regular_tax=base_tax,
            )
            base_used, _ = self.amt.credit(
                settings.prior_amt_credit,
                without_sale.regular_tax,
                without_sale.tentative_minimum_tax,
            )
            total_used, amt_credit_remaining = self.amt.credit(
                settings.prior_amt_credit,
                with_sale.regular_tax,
                with_sale.tentative_minimum_tax,
            )
            amt_credit_used = max(total_used - base_used, ZERO)
            federal_tax -= amt_credit_used

        # --- State ---
        state_income = ordinary_income + positive_st + positive_lt
        state_breakdown = self.compute_state_tax(state_income, settings)
        state_tax = sum((line.tax for line in state_breakdown), ZERO)

        # --- Totals ---
        total_tax = federal_tax + state_tax
        gross_proceeds = exit_price * shares
        exercise_cost = ZERO if grant.grant_type == GrantType.RSU else exercise_price * shares
        taxable_total = ordinary_income + positive_st + positive_lt

        result = ComprehensiveTaxResult(
            grant_type=grant.grant_type,
            shares=shares,
            holding_period=HoldingPeriod.LONG_TERM if long_term else HoldingPeriod.SHORT_TERM,
            disposition=disposition,
            ordinary_income=ordinary_income,
            short_term_gain=short_term_gain,
            long_term_gain=long_term_gain,
            amt_preference=amt_preference,
            federal_ordinary_tax=federal_ordinary_tax,
            federal_capital_gains_tax=federal_capital_gains_tax,
            medicare_tax=medicare_tax,
            niit=niit,
            amt_liability=amt_liability,
            amt_detail=amt_detail,
            amt_credit_used=amt_credit_used,
            amt_credit_remaining=amt_credit_remaining,
            federal_tax=federal_tax,
            state_tax=state_tax,
            state_breakdown=state_breakdown,
            total_tax=total_tax,
            gross_proceeds=gross_proceeds,
            exercise_cost=exercise_cost,
            net_proceeds=gross_proceeds - exercise_cost - total_tax,
            effective_tax_rate=total_tax / taxable_total if taxable_total > 0 else ZERO,
            assumptions=TaxAssumptions(
                federal_marginal_rate=marginal_rate(ordinary_taxable, fed_brackets),
                long_term_rate=marginal_rate(taxable_income, ltcg_brackets),
                state_rate=state_tax / state_income if state_income > 0 else ZERO,
                is_long_term=long_term,
            ),
            warnings=list(self.warnings),
        )
        logger.debug(
            "Comprehensive tax for %s: federal=%s state=%s total=%s",
            grant.label, federal_tax, state_tax, total_tax,
        )
        return result

    def compute_medicare_tax(
        self, supplemental_wages: Decimal, other_wages: Decimal, filing_status: FilingStatus
    ) -> Decimal:
        """Regular 1.45% plus the 0.9% additional tax above the threshold.

        Only the part of the threshold excess attributable to the
        supplemental wages is counted.
        """
        if supplemental_wages <= 0:
            return ZERO
        threshold = ADDITIONAL_MEDICARE_TAX_THRESHOLD[filing_status]
        excess_with = max(other_wages + supplemental_wages - threshold, ZERO)
        excess_without = max(other_wages - threshold, ZERO)
        additional = (excess_with - excess_without) * ADDITIONAL_MEDICARE_TAX_RATE
        return supplemental_wages * REGULAR_MEDICARE_TAX_RATE + additional

    def compute_niit(
        self, investment_income: Decimal, magi: Decimal, filing_status: FilingStatus
    ) -> Decimal:
        """Compute Net Investment Income Tax (3.8%) per IRC Section 1411."""
        threshold = NIIT_THRESHOLD[filing_status]
        excess_magi = max(magi - threshold, ZERO)
        return min(max(investment_income, ZERO), excess_magi) * NIIT_RATE

    def state_rate(self, state: str) -> Decimal:
        """Flat rate for a state name or two-letter code."""
        name = STATE_CODES.get(state.strip().upper(), state.strip())
        for known, rate in STATE_TAX_RATES.items():
            if known.lower() == name.lower():
                return rate
        self.warnings.append(
            f"No tax rate for state '{state}'. Using {UNKNOWN_STATE_RATE:.2%}."
        )
        logger.warning("Unknown state %r, using default rate", state)
        return UNKNOWN_STATE_RATE

    def compute_state_tax(
        self, income: Decimal, settings: TaxSettings
    ) -> list[StateTaxLine]:
        """Per-state tax lines for a single residence or an allocation."""
        allocation = settings.state_allocation or {settings.state_of_residence: Decimal("1")}
        total_fraction = sum(allocation.values(), ZERO)
        if total_fraction != Decimal("1"):
            self.warnings.append(
                f"State allocation sums to {total_fraction}, not 1. "
                f"Income is allocated as given."
            )

        lines = []
        for state, fraction in allocation.items():
            if fraction < 0:
                raise DataValidationError("state_allocation", f"negative share for {state}")
            rate = self.state_rate(state)
            allocated = income * fraction
            lines.append(
                StateTaxLine(
                    state=state,
                    allocation=fraction,
                    rate=rate,
                    income=allocated,
                    tax=allocated * rate,
                )
            )
        return lines

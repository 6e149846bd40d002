"""Alternative Minimum Tax helpers.

Two levels of detail:
  - a flat single-rate estimate used by the per-grant policy table
  - the Form 6251 computation (exemption phase-out, 26%/28% split) and the
    Form 8801 credit carryforward
"""

import logging
from decimal import Decimal

from equitycalc.engines.brackets import (
    AMT_28_PERCENT_THRESHOLD,
    AMT_EXEMPTION,
    AMT_HIGH_RATE,
    AMT_LOW_RATE,
    AMT_PHASEOUT_RATE,
    AMT_PHASEOUT_START,
    FEDERAL_BRACKETS,
    FEDERAL_LTCG_BRACKETS,
    SIMPLIFIED_AMT_EXEMPTION,
    SIMPLIFIED_AMT_RATE,
    apply_brackets,
    lookup,
    stacked_ltcg_tax,
)
from equitycalc.exceptions import TaxTableError
from equitycalc.models.enums import FilingStatus
from equitycalc.models.results import AMTDetail

logger = logging.getLogger(__name__)


class AMTCalculator:
    """Estimates AMT on ISO exercise spreads."""

    def flat_estimate(self, amt_income: Decimal) -> Decimal:
        """Flat 26% on AMT income above a single fixed exemption."""
        return max((amt_income - SIMPLIFIED_AMT_EXEMPTION) * SIMPLIFIED_AMT_RATE, Decimal("0"))

    def exemption(
        self, amti: Decimal, filing_status: FilingStatus, tax_year: int
    ) -> Decimal:
        """AMT exemption after the 25% phase-out above the threshold."""
        exemption_amount = lookup("AMT exemption", AMT_EXEMPTION, tax_year, filing_status)
        phaseout_start = lookup(
            "AMT phase-out", AMT_PHASEOUT_START, tax_year, filing_status
        )
        reduction = max(amti - phaseout_start, Decimal("0")) * AMT_PHASEOUT_RATE
        return max(exemption_amount - reduction, Decimal("0"))

    def liability(
        self,
        amt_income: Decimal,
        regular_income: Decimal,
        filing_status: FilingStatus,
        tax_year: int,
        regular_tax: Decimal | None = None,
        preferential_income: Decimal = Decimal("0"),
    ) -> AMTDetail:
        """Compute AMT per Form 6251.

        Args:
            amt_income: AMT preference items (ISO exercise spreads).
            regular_income: Regular taxable income, including any
                preferential income.
            filing_status: Filing status.
            tax_year: Tax year.
            regular_tax: Regular federal tax before AMT. Computed from the
                ordinary brackets on ``regular_income`` when omitted.
            preferential_income: Long-term gains inside ``regular_income``;
                these keep LTCG rates under AMT (Form 6251 Part III).

        Returns:
            AMTDetail with ``amt = max(0, TMT - regular_tax)``.
        """
        if regular_tax is None:
            brackets = lookup("federal", FEDERAL_BRACKETS, tax_year, filing_status)
            ordinary = max(regular_income - preferential_income, Decimal("0"))
            regular_tax = apply_brackets(ordinary, brackets)
            if preferential_income > 0:
                regular_tax += stacked_ltcg_tax(
                    preferential_income,
                    regular_income,
                    lookup("LTCG", FEDERAL_LTCG_BRACKETS, tax_year, filing_status),
                )

        # Step 1: AMTI
        amti = regular_income + amt_income

        # Step 2: Exemption with phase-out
        exemption = self.exemption(amti, filing_status, tax_year)

        # Step 3: AMT base
        amt_base = max(amti - exemption, Decimal("0"))

        # Step 4: Tentative minimum tax
        tmt = self.tentative_minimum_tax(
            amt_base, preferential_income, filing_status, tax_year
        )

        # Step 5: AMT = excess over regular tax
        amt = max(tmt - regular_tax, Decimal("0"))
        logger.debug(
            "AMT %s: amti=%s exemption=%s tmt=%s regular=%s amt=%s",
            tax_year, amti, exemption, tmt, regular_tax, amt,
        )
        return AMTDetail(
            amti=amti,
            exemption=exemption,
            amt_base=amt_base,
            tentative_minimum_tax=tmt,
            regular_tax=regular_tax,
            amt=amt,
        )

    def tentative_minimum_tax(
        self,
        amt_base: Decimal,
        preferential_income: Decimal,
        filing_status: FilingStatus,
        tax_year: int,
    ) -> Decimal:
        if amt_base <= Decimal("0"):
            return Decimal("0")

        breakpoint = AMT_28_PERCENT_THRESHOLD.get(tax_year)
        if breakpoint is None:
            raise TaxTableError("AMT 28% threshold", tax_year, filing_status.value)

        # MFS filers use half the 28% threshold per IRC Section 55(b)(1)(A)(i)
        if filing_status == FilingStatus.MFS:
            breakpoint = breakpoint / 2

        preferential = min(max(preferential_income, Decimal("0")), amt_base)
        ordinary_base = amt_base - preferential
        if ordinary_base <= breakpoint:
            on_ordinary = ordinary_base * AMT_LOW_RATE
        else:
            on_ordinary = (
                breakpoint * AMT_LOW_RATE + (ordinary_base - breakpoint) * AMT_HIGH_RATE
            )

        on_preferential = stacked_ltcg_tax(
            preferential,
            amt_base,
            lookup("LTCG", FEDERAL_LTCG_BRACKETS, tax_year, filing_status),
        )
        return on_ordinary + on_preferential

    def credit(
        self,
        prior_credit: Decimal,
        regular_tax: Decimal,
        tentative_minimum_tax: Decimal,
    ) -> tuple[Decimal, Decimal]:
        """Compute AMT credit per Form 8801.

        The credit is usable only to the extent regular tax exceeds TMT.

        Returns:
            (credit_used, credit_remaining)
        """
        if prior_credit <= Decimal("0"):
            return Decimal("0"), Decimal("0")

        credit_limit = max(regular_tax - tentative_minimum_tax, Decimal("0"))
        credit_used = min(prior_credit, credit_limit)
        return credit_used, prior_credit - credit_used

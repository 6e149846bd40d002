"""Qualified Small Business Stock gain exclusion (IRC Section 1202)."""

import logging
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from equitycalc.engines.brackets import (
    QSBS_BASE_CAP,
    QSBS_BASIS_MULTIPLE,
    QSBS_EXCLUSION_SCHEDULE,
    QSBS_GROSS_ASSETS_LIMIT,
    QSBS_MIN_HOLDING_YEARS,
)
from equitycalc.exceptions import DataValidationError
from equitycalc.models.results import QSBSResult

logger = logging.getLogger(__name__)


class QSBSCalculator:
    """Checks Section 1202 eligibility and computes the excluded gain."""

    def exclusion_percentage(self, acquisition_date: date) -> Decimal:
        for cutoff, percentage in QSBS_EXCLUSION_SCHEDULE:
            if cutoff is None or acquisition_date < cutoff:
                return percentage
        return QSBS_EXCLUSION_SCHEDULE[-1][1]

    def exclusion_cap(self, basis: Decimal, prior_exclusions: Decimal = Decimal("0")) -> Decimal:
        """Greater of $10M (less prior exclusions for this issuer) or 10x basis."""
        return max(QSBS_BASE_CAP - prior_exclusions, QSBS_BASIS_MULTIPLE * basis, Decimal("0"))

    def exclusion(
        self,
        gain: Decimal,
        basis: Decimal,
        acquisition_date: date,
        sale_date: date,
        is_c_corporation: bool = True,
        gross_assets_at_issuance: Decimal = Decimal("0"),
        original_issuance: bool = True,
        prior_exclusions: Decimal = Decimal("0"),
    ) -> QSBSResult:
        """Excluded and taxable gain for a sale of QSBS.

        Ineligible stock returns the full gain as taxable, with the first
        failed requirement as ``reason``.
        """
        if basis < 0:
            raise DataValidationError("basis", "must not be negative")
        if sale_date < acquisition_date:
            raise DataValidationError("sale_date", "must not precede acquisition_date")

        reason = None
        if not is_c_corporation:
            reason = "Issuer is not a C corporation"
        elif gross_assets_at_issuance > QSBS_GROSS_ASSETS_LIMIT:
            reason = (
                f"Gross assets of ${gross_assets_at_issuance:,.0f} exceed the "
                f"${QSBS_GROSS_ASSETS_LIMIT:,.0f} limit"
            )
        elif not original_issuance:
            reason = "Stock was not acquired at original issuance"
        elif sale_date <= acquisition_date + relativedelta(years=QSBS_MIN_HOLDING_YEARS):
            reason = f"Held {QSBS_MIN_HOLDING_YEARS} years or less"

        if reason is not None:
            logger.debug("QSBS ineligible: %s", reason)
            return QSBSResult(
                eligible=False,
                reason=reason,
                gain=gain,
                taxable_gain=max(gain, Decimal("0")),
            )

        percentage = self.exclusion_percentage(acquisition_date)
        cap = self.exclusion_cap(basis, prior_exclusions)
        excluded = min(max(gain, Decimal("0")) * percentage, cap)
        return QSBSResult(
            eligible=True,
            gain=gain,
            exclusion_percentage=percentage,
            exclusion_cap=cap,
            excluded_gain=excluded,
            taxable_gain=max(gain - excluded, Decimal("0")),
        )

"""Tax rate configuration.

Federal brackets, AMT parameters, payroll and investment surtaxes, flat state
rates, and the QSBS (IRC Section 1202) limits. Keyed by tax year and filing
status. Never hardcode brackets in computation functions.

Sources:
  - 2024: IRS Rev. Proc. 2023-34
  - 2025: IRS Rev. Proc. 2024-40
"""

from datetime import date
from decimal import Decimal

from equitycalc.exceptions import TaxTableError
from equitycalc.models.enums import FilingStatus

# ---------------------------------------------------------------------------
# Federal ordinary income brackets: {year: {filing_status: [(upper_bound, rate), ...]}}
# Upper bound is Decimal or None for the top bracket.
# ---------------------------------------------------------------------------
FEDERAL_BRACKETS: dict[int, dict[FilingStatus, list[tuple[Decimal | None, Decimal]]]] = {
    2024: {
        FilingStatus.SINGLE: [
            (Decimal("11600"), Decimal("0.10")),
            (Decimal("47150"), Decimal("0.12")),
            (Decimal("100525"), Decimal("0.22")),
            (Decimal("191950"), Decimal("0.24")),
            (Decimal("243725"), Decimal("0.32")),
            (Decimal("609350"), Decimal("0.35")),
            (None, Decimal("0.37")),
        ],
        FilingStatus.MFJ: [
            (Decimal("23200"), Decimal("0.10")),
            (Decimal("94300"), Decimal("0.12")),
            (Decimal("201050"), Decimal("0.22")),
            (Decimal("383900"), Decimal("0.24")),
            (Decimal("487450"), Decimal("0.32")),
            (Decimal("731200"), Decimal("0.35")),
            (None, Decimal("0.37")),
        ],
        FilingStatus.MFS: [
            (Decimal("11600"), Decimal("0.10")),
            (Decimal("47150"), Decimal("0.12")),
            (Decimal("100525"), Decimal("0.22")),
            (Decimal("191950"), Decimal("0.24")),
            (Decimal("243725"), Decimal("0.32")),
            (Decimal("365600"), Decimal("0.35")),
            (None, Decimal("0.37")),
        ],
        FilingStatus.HOH: [
            (Decimal("16550"), Decimal("0.10")),
            (Decimal("63100"), Decimal("0.12")),
            (Decimal("100500"), Decimal("0.22")),
            (Decimal("191950"), Decimal("0.24")),
            (Decimal("243700"), Decimal("0.32")),
            (Decimal("609350"), Decimal("0.35")),
            (None, Decimal("0.37")),
        ],
    },
    2025: {
        FilingStatus.SINGLE: [
            (Decimal("11925"), Decimal("0.10")),
            (Decimal("48475"), Decimal("0.12")),
            (Decimal("103350"), Decimal("0.22")),
            (Decimal("197300"), Decimal("0.24")),
            (Decimal("250525"), Decimal("0.32")),
            (Decimal("626350"), Decimal("0.35")),
            (None, Decimal("0.37")),
        ],
        FilingStatus.MFJ: [
            (Decimal("23850"), Decimal("0.10")),
            (Decimal("96950"), Decimal("0.12")),
            (Decimal("206700"), Decimal("0.22")),
            (Decimal("394600"), Decimal("0.24")),
            (Decimal("501050"), Decimal("0.32")),
            (Decimal("751600"), Decimal("0.35")),
            (None, Decimal("0.37")),
        ],
        FilingStatus.MFS: [
            (Decimal("11925"), Decimal("0.10")),
            (Decimal("48475"), Decimal("0.12")),
            (Decimal("103350"), Decimal("0.22")),
            (Decimal("197300"), Decimal("0.24")),
            (Decimal("250525"), Decimal("0.32")),
            (Decimal("375800"), Decimal("0.35")),
            (None, Decimal("0.37")),
        ],
        FilingStatus.HOH: [
            (Decimal("17000"), Decimal("0.10")),
            (Decimal("64850"), Decimal("0.12")),
            (Decimal("103350"), Decimal("0.22")),
            (Decimal("197300"), Decimal("0.24")),
            (Decimal("250500"), Decimal("0.32")),
            (Decimal("626350"), Decimal("0.35")),
            (None, Decimal("0.37")),
        ],
    },
}

# ---------------------------------------------------------------------------
# Federal standard deduction
# ---------------------------------------------------------------------------
FEDERAL_STANDARD_DEDUCTION: dict[int, dict[FilingStatus, Decimal]] = {
    2024: {
        FilingStatus.SINGLE: Decimal("14600"),
        FilingStatus.MFJ: Decimal("29200"),
        FilingStatus.MFS: Decimal("14600"),
        FilingStatus.HOH: Decimal("21900"),
    },
    2025: {
        FilingStatus.SINGLE: Decimal("15000"),
        FilingStatus.MFJ: Decimal("30000"),
        FilingStatus.MFS: Decimal("15000"),
        FilingStatus.HOH: Decimal("22500"),
    },
}

# ---------------------------------------------------------------------------
# Federal LTCG rate brackets: (upper_bound, rate)
# Taxable-income thresholds for the 0%/15%/20% rates per IRC Section 1(h).
# ---------------------------------------------------------------------------
FEDERAL_LTCG_BRACKETS: dict[int, dict[FilingStatus, list[tuple[Decimal | None, Decimal]]]] = {
    2024: {
        FilingStatus.SINGLE: [
            (Decimal("47025"), Decimal("0.00")),
            (Decimal("518900"), Decimal("0.15")),
            (None, Decimal("0.20")),
        ],
        FilingStatus.MFJ: [
            (Decimal("94050"), Decimal("0.00")),
            (Decimal("583750"), Decimal("0.15")),
            (None, Decimal("0.20")),
        ],
        FilingStatus.MFS: [
            (Decimal("47025"), Decimal("0.00")),
            (Decimal("291850"), Decimal("0.15")),
            (None, Decimal("0.20")),
        ],
        FilingStatus.HOH: [
            (Decimal("63000"), Decimal("0.00")),
            (Decimal("551350"), Decimal("0.15")),
            (None, Decimal("0.20")),
        ],
    },
    2025: {
        FilingStatus.SINGLE: [
            (Decimal("48350"), Decimal("0.00")),
            (Decimal("533400"), Decimal("0.15")),
            (None, Decimal("0.20")),
        ],
        FilingStatus.MFJ: [
            (Decimal("96700"), Decimal("0.00")),
            (Decimal("600050"), Decimal("0.15")),
            (None, Decimal("0.20")),
        ],
        FilingStatus.MFS: [
            (Decimal("48350"), Decimal("0.00")),
            (Decimal("300000"), Decimal("0.15")),
            (None, Decimal("0.20")),
        ],
        FilingStatus.HOH: [
            (Decimal("64750"), Decimal("0.00")),
            (Decimal("566700"), Decimal("0.15")),
            (None, Decimal("0.20")),
        ],
    },
}

# ---------------------------------------------------------------------------
# NIIT thresholds (IRC Section 1411)
# Thresholds are NOT inflation-adjusted: statutory amounts.
# ---------------------------------------------------------------------------
NIIT_RATE = Decimal("0.038")
NIIT_THRESHOLD: dict[FilingStatus, Decimal] = {
    FilingStatus.SINGLE: Decimal("200000"),
    FilingStatus.MFJ: Decimal("250000"),
    FilingStatus.MFS: Decimal("125000"),
    FilingStatus.HOH: Decimal("200000"),
}

# ---------------------------------------------------------------------------
# AMT exemption amounts (Form 6251)
# ---------------------------------------------------------------------------
AMT_EXEMPTION: dict[int, dict[FilingStatus, Decimal]] = {
    2024: {
        FilingStatus.SINGLE: Decimal("85700"),
        FilingStatus.MFJ: Decimal("133300"),
        FilingStatus.MFS: Decimal("66650"),
        FilingStatus.HOH: Decimal("85700"),
    },
    2025: {
        FilingStatus.SINGLE: Decimal("88100"),
        FilingStatus.MFJ: Decimal("137000"),
        FilingStatus.MFS: Decimal("68500"),
        FilingStatus.HOH: Decimal("88100"),
    },
}

# AMT exemption phase-out start
AMT_PHASEOUT_START: dict[int, dict[FilingStatus, Decimal]] = {
    2024: {
        FilingStatus.SINGLE: Decimal("609350"),
        FilingStatus.MFJ: Decimal("1218700"),
        FilingStatus.MFS: Decimal("609350"),
        FilingStatus.HOH: Decimal("609350"),
    },
    2025: {
        FilingStatus.SINGLE: Decimal("626350"),
        FilingStatus.MFJ: Decimal("1252700"),
        FilingStatus.MFS: Decimal("626350"),
        FilingStatus.HOH: Decimal("626350"),
    },
}
AMT_PHASEOUT_RATE = Decimal("0.25")

# AMT 28% threshold: applies to all filing statuses (except MFS gets half)
AMT_28_PERCENT_THRESHOLD: dict[int, Decimal] = {
    2024: Decimal("232600"),
    2025: Decimal("239100"),
}
AMT_LOW_RATE = Decimal("0.26")
AMT_HIGH_RATE = Decimal("0.28")

# Flat single-rate AMT estimate used by the simplified per-grant policy table
SIMPLIFIED_AMT_RATE = Decimal("0.26")
SIMPLIFIED_AMT_EXEMPTION = Decimal("72900")

# ---------------------------------------------------------------------------
# Medicare on supplemental wages (NSO spread, RSU vest value)
# Additional Medicare threshold is NOT inflation-adjusted.
# ---------------------------------------------------------------------------
REGULAR_MEDICARE_TAX_RATE = Decimal("0.0145")
ADDITIONAL_MEDICARE_TAX_RATE = Decimal("0.009")
ADDITIONAL_MEDICARE_TAX_THRESHOLD: dict[FilingStatus, Decimal] = {
    FilingStatus.SINGLE: Decimal("200000"),
    FilingStatus.MFJ: Decimal("250000"),
    FilingStatus.MFS: Decimal("125000"),
    FilingStatus.HOH: Decimal("200000"),
}

# ---------------------------------------------------------------------------
# Flat top marginal state rates. Unlisted states use UNKNOWN_STATE_RATE.
# ---------------------------------------------------------------------------
STATE_TAX_RATES: dict[str, Decimal] = {
    "California": Decimal("0.133"),
    "New York": Decimal("0.107"),
    "Massachusetts": Decimal("0.09"),
    "Illinois": Decimal("0.0495"),
    "Texas": Decimal("0"),
    "Florida": Decimal("0"),
    "Washington": Decimal("0"),
}
STATE_CODES: dict[str, str] = {
    "CA": "California",
    "NY": "New York",
    "MA": "Massachusetts",
    "IL": "Illinois",
    "TX": "Texas",
    "FL": "Florida",
    "WA": "Washington",
}
UNKNOWN_STATE_RATE = Decimal("0.05")

# ---------------------------------------------------------------------------
# ISO qualifying disposition holding requirements (IRC Section 422(a)(1))
# ---------------------------------------------------------------------------
ISO_YEARS_FROM_GRANT = 2
ISO_YEARS_FROM_EXERCISE = 1
LONG_TERM_HOLDING_DAYS = 365

# ---------------------------------------------------------------------------
# Qualified Small Business Stock (IRC Section 1202)
# Exclusion percentage keyed by acquisition date: acquired before the date
# gets the rate; None is the open-ended current rate.
# ---------------------------------------------------------------------------
QSBS_GROSS_ASSETS_LIMIT = Decimal("50000000")
QSBS_MIN_HOLDING_YEARS = 5
QSBS_BASE_CAP = Decimal("10000000")
QSBS_BASIS_MULTIPLE = Decimal("10")
QSBS_EXCLUSION_SCHEDULE: list[tuple[date | None, Decimal]] = [
    (date(2009, 2, 18), Decimal("0.50")),
    (date(2010, 9, 28), Decimal("0.75")),
    (None, Decimal("1.00")),
]


def lookup(table: str, tables: dict, tax_year: int, filing_status: FilingStatus):
    """Return ``tables[tax_year][filing_status]`` or raise TaxTableError."""
    try:
        return tables[tax_year][filing_status]
    except KeyError:
        raise TaxTableError(table, tax_year, filing_status.value) from None


def apply_brackets(
    income: Decimal, brackets: list[tuple[Decimal | None, Decimal]]
) -> Decimal:
    """Apply progressive tax brackets to income."""
    tax = Decimal("0")
    prev_bound = Decimal("0")

    for upper_bound, rate in brackets:
        if upper_bound is None:
            taxable_in_bracket = max(income - prev_bound, Decimal("0"))
        else:
            taxable_in_bracket = max(
                min(income, upper_bound) - prev_bound, Decimal("0")
            )
        tax += taxable_in_bracket * rate
        if upper_bound is None or income <= upper_bound:
            break
        prev_bound = upper_bound

    return tax


def stacked_ltcg_tax(
    preferential_income: Decimal,
    taxable_income: Decimal,
    brackets: list[tuple[Decimal | None, Decimal]],
) -> Decimal:
    """Tax on long-term gains stacked on top of ordinary income.

    Follows the Qualified Dividends and Capital Gain Tax Worksheet: ordinary
    income fills the bottom of the LTCG brackets first, and the preferential
    income is taxed at the rate of whichever bracket each slice lands in.
    """
    if preferential_income <= Decimal("0"):
        return Decimal("0")

    ordinary_income_top = max(taxable_income - preferential_income, Decimal("0"))

    tax = Decimal("0")
    remaining = preferential_income
    prev_bound = Decimal("0")

    for upper_bound, rate in brackets:
        if remaining <= Decimal("0"):
            break

        if upper_bound is None:
            tax += remaining * rate
            remaining = Decimal("0")
        else:
            bracket_start = max(prev_bound, ordinary_income_top)
            if bracket_start >= upper_bound:
                prev_bound = upper_bound
                continue
            taxed_here = min(remaining, upper_bound - bracket_start)
            tax += taxed_here * rate
            remaining -= taxed_here
            prev_bound = upper_bound

    return tax


def marginal_rate(
    income: Decimal, brackets: list[tuple[Decimal | None, Decimal]]
) -> Decimal:
    """Rate of the bracket that ``income`` falls in."""
    for upper_bound, rate in brackets:
        if upper_bound is None or income <= upper_bound:
            return rate
    return brackets[-1][1]

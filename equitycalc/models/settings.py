"""Per-calculation tax settings and exit assumptions.

Defaults mirror the assumptions the application shows users when they have
not entered their own tax profile.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from equitycalc.models.enums import FilingStatus, MarketConditions

DEFAULT_STATE = "California"
DEFAULT_OTHER_INCOME = Decimal("150000")
DEFAULT_TAX_YEAR = 2024

# Simplified policy-table rates: top federal ordinary, top federal LTCG, CA top.
DEFAULT_ORDINARY_RATE = Decimal("0.37")
DEFAULT_LONG_TERM_RATE = Decimal("0.20")
DEFAULT_STATE_RATE = Decimal("0.13")


class TaxSettings(BaseModel):
    """Taxpayer context used by the tax calculators.

    The three ``*_rate`` fields drive the simplified per-grant-type policy
    table; the remaining fields drive the bracket-based comprehensive path.
    """

    filing_status: FilingStatus = FilingStatus.SINGLE
    state_of_residence: str = DEFAULT_STATE
    other_income: Decimal = Field(default=DEFAULT_OTHER_INCOME, ge=0)
    tax_year: int = DEFAULT_TAX_YEAR
    include_amt: bool = True
    include_niit: bool = True
    # unused AMT credit carried in from earlier years (Form 8801)
    prior_amt_credit: Decimal = Field(default=Decimal("0"), ge=0)
    # state -> fraction of income sourced there; overrides state_of_residence
    state_allocation: dict[str, Decimal] | None = None
    ordinary_rate: Decimal = Field(default=DEFAULT_ORDINARY_RATE, ge=0, le=1)
    long_term_rate: Decimal = Field(default=DEFAULT_LONG_TERM_RATE, ge=0, le=1)
    state_rate: Decimal = Field(default=DEFAULT_STATE_RATE, ge=0, le=1)


class ExitAssumptions(BaseModel):
    """Inputs for comparing IPO, acquisition and secondary-sale exits.

    Exit prices default to each grant's current FMV times the matching
    ``*_multiple``. Percentages are on a 0-100 scale.
    """

    exit_date: date | None = None
    ipo_multiple: Decimal = Field(default=Decimal("10"), ge=0)
    acquisition_multiple: Decimal = Field(default=Decimal("8"), ge=0)
    secondary_multiple: Decimal = Field(default=Decimal("5"), ge=0)
    lockup_days: int = Field(default=180, ge=0)
    cash_percentage: Decimal = Field(default=Decimal("70"), ge=0, le=100)
    earnout_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    secondary_discount: Decimal = Field(default=Decimal("20"), ge=0, lt=100)
    secondary_sale_percentage: Decimal = Field(default=Decimal("25"), gt=0, le=100)
    right_of_first_refusal: bool = True
    transfer_restrictions: bool = True
    # financial profile for the risk factors
    net_worth: Decimal = Field(default=Decimal("500000"), gt=0)
    market_conditions: MarketConditions = MarketConditions.NEUTRAL

    @field_validator("market_conditions", mode="before")
    @classmethod
    def _coerce_market(cls, value: object) -> object:
        return MarketConditions(value) if isinstance(value, str) else value

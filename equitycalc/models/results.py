"""Computed result models. None of these are persisted."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from equitycalc.models.enums import (
    DispositionType,
    ExitType,
    GrantType,
    HoldingPeriod,
)

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Vesting
# ---------------------------------------------------------------------------


class VestingEvent(BaseModel):
    vest_date: date
    shares: int
    cumulative_shares: int
    label: str  # "Cliff Vesting", "Regular Vesting" or "Final Vesting"


class VestingDetail(BaseModel):
    grant_id: str | None
    total_shares: int
    vested_shares: int
    unvested_shares: int
    vesting_percentage: Decimal
    cliff_passed: bool
    fully_vested: bool
    is_double_trigger: bool
    next_vest_date: date | None = None
    next_vest_shares: int = 0
    days_until_next_vest: int | None = None


class UpcomingVest(BaseModel):
    grant_id: str | None
    company_name: str
    grant_type: GrantType
    vest_date: date
    shares: int
    value: Decimal
    days_until: int


class GrantVestingLine(BaseModel):
    grant_id: str | None
    company_name: str
    grant_type: GrantType
    shares: int
    value: Decimal


class MonthlyVesting(BaseModel):
    month: str  # YYYY-MM
    shares: int
    value: Decimal
    cumulative_shares: int
    cumulative_value: Decimal
    grants: list[GrantVestingLine] = Field(default_factory=list)


class DoubleTriggerResult(BaseModel):
    grant_id: str | None
    liquidity_date: date
    share_price: Decimal
    time_vested_shares: int
    vested_value: Decimal
    taxable_income: Decimal
    remaining_unvested_shares: int


# ---------------------------------------------------------------------------
# Tax
# ---------------------------------------------------------------------------


class TaxResult(BaseModel):
    exercise_income: Decimal = ZERO
    exercise_tax: Decimal = ZERO
    capital_gain: Decimal = ZERO
    capital_gains_tax: Decimal = ZERO
    amt_income: Decimal = ZERO
    amt_liability: Decimal = ZERO
    federal_tax: Decimal = ZERO
    state_tax: Decimal = ZERO
    total_tax: Decimal = ZERO
    effective_tax_rate: Decimal = ZERO
    holding_period: HoldingPeriod = HoldingPeriod.LONG_TERM


class StateTaxLine(BaseModel):
    state: str
    allocation: Decimal
    rate: Decimal
    income: Decimal
    tax: Decimal


class AMTDetail(BaseModel):
    """Form 6251 worksheet values for one computation."""

    amti: Decimal
    exemption: Decimal
    amt_base: Decimal
    tentative_minimum_tax: Decimal
    regular_tax: Decimal
    amt: Decimal


class TaxAssumptions(BaseModel):
    federal_marginal_rate: Decimal
    long_term_rate: Decimal
    state_rate: Decimal
    is_long_term: bool


class ComprehensiveTaxResult(BaseModel):
    grant_type: GrantType
    shares: int
    holding_period: HoldingPeriod
    disposition: DispositionType
    # Income character
    ordinary_income: Decimal
    short_term_gain: Decimal
    long_term_gain: Decimal
    amt_preference: Decimal
    # Federal
    federal_ordinary_tax: Decimal
    federal_capital_gains_tax: Decimal
    medicare_tax: Decimal
    niit: Decimal
    amt_liability: Decimal
    amt_detail: AMTDetail | None = None
    amt_credit_used: Decimal = ZERO
    amt_credit_remaining: Decimal = ZERO
    federal_tax: Decimal
    # State
    state_tax: Decimal
    state_breakdown: list[StateTaxLine] = Field(default_factory=list)
    # Totals
    total_tax: Decimal
    gross_proceeds: Decimal
    exercise_cost: Decimal
    net_proceeds: Decimal
    effective_tax_rate: Decimal
    assumptions: TaxAssumptions
    warnings: list[str] = Field(default_factory=list)


class QSBSResult(BaseModel):
    eligible: bool
    reason: str | None = None
    gain: Decimal = ZERO
    exclusion_percentage: Decimal = ZERO
    exclusion_cap: Decimal = ZERO
    excluded_gain: Decimal = ZERO
    taxable_gain: Decimal = ZERO


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class ScenarioResult(BaseModel):
    scenario_name: str
    grant_id: str | None = None
    exit_type: ExitType = ExitType.CUSTOM
    exit_price: Decimal
    shares: int
    exercise_cost: Decimal
    gross_proceeds: Decimal
    # Tax breakdown
    exercise_income: Decimal
    capital_gain: Decimal
    amt_liability: Decimal
    federal_tax: Decimal
    state_tax: Decimal
    tax_liability: Decimal
    effective_tax_rate: Decimal
    # Returns
    net_proceeds: Decimal
    roi_percentage: Decimal
    multiple_on_investment: Decimal
    annualized_return: Decimal
    break_even_price: Decimal


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


class NamedValue(BaseModel):
    name: str
    value: Decimal
    percentage: Decimal | None = None


class ForecastPoint(BaseModel):
    month: str  # YYYY-MM
    shares: int
    value: Decimal


class PortfolioPoint(BaseModel):
    point_date: date
    value: Decimal
    projected: bool = False


class ScenarioComparison(BaseModel):
    scenario_name: str
    grant_id: str
    exit_type: ExitType
    share_price: Decimal
    shares: int
    gross_value: Decimal
    exercise_cost: Decimal
    taxes: Decimal
    net_value: Decimal


class AnalyticsSummary(BaseModel):
    as_of: date
    timeframe: str
    company: str
    grant_count: int
    # Totals
    total_shares: int
    vested_shares: int
    unvested_shares: int
    current_value: Decimal
    exercise_cost: Decimal
    potential_gain: Decimal
    # Distribution
    value_by_type: list[NamedValue] = Field(default_factory=list)
    value_by_company: list[NamedValue] = Field(default_factory=list)
    iso_value: Decimal = ZERO
    nso_value: Decimal = ZERO
    rsu_value: Decimal = ZERO
    iso_percentage: Decimal = ZERO
    rsu_percentage: Decimal = ZERO
    # Time series
    vesting_forecast: list[ForecastPoint] = Field(default_factory=list)
    portfolio_history: list[PortfolioPoint] = Field(default_factory=list)
    scenario_comparison: list[ScenarioComparison] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Exit strategies
# ---------------------------------------------------------------------------


class ExitBatch(BaseModel):
    """One exercise-and-sale lot inside an exit strategy."""

    exercise_date: date
    sale_date: date
    shares: int
    price: Decimal
    total_tax: Decimal
    net_proceeds: Decimal
    holding_period: HoldingPeriod
    disposition: DispositionType


class GrantExitLine(BaseModel):
    grant_id: str | None
    grant_type: GrantType
    shares: int
    total_tax: Decimal = ZERO
    net_proceeds: Decimal = ZERO
    batches: list[ExitBatch] = Field(default_factory=list)


class ExitStrategyOption(BaseModel):
    name: str
    total_tax: Decimal = ZERO
    net_proceeds: Decimal = ZERO
    details: list[GrantExitLine] = Field(default_factory=list)


class LockupImpact(BaseModel):
    """Capital-gains tax on post-IPO appreciation, long- vs short-term."""

    long_term_tax: Decimal = ZERO
    short_term_tax: Decimal = ZERO
    tax_savings: Decimal = ZERO


class Section1202Estimate(BaseModel):
    eligible: bool = False
    excluded_gain: Decimal = ZERO
    estimated_savings: Decimal = ZERO
    reasons: list[str] = Field(default_factory=list)


class EarnoutImpact(BaseModel):
    earnout_amount: Decimal = ZERO
    immediate_tax: Decimal = ZERO
    deferred_tax: Decimal = ZERO  # present value of tax paid at payout
    savings: Decimal = ZERO


class SecondarySaleTerms(BaseModel):
    discount_percentage: Decimal
    value_loss: Decimal = ZERO
    right_of_first_refusal: bool
    transfer_restrictions: bool
    notes: list[str] = Field(default_factory=list)


class ExitAnalysis(BaseModel):
    exit_type: ExitType
    exit_date: date
    options: list[ExitStrategyOption] = Field(default_factory=list)
    optimal_strategy: str | None = None
    optimal_net_proceeds: Decimal = ZERO
    tax_savings: Decimal = ZERO  # best option over the runner-up
    lockup: LockupImpact | None = None
    section_1202: Section1202Estimate | None = None
    earnout: EarnoutImpact | None = None
    secondary_terms: SecondarySaleTerms | None = None
    warnings: list[str] = Field(default_factory=list)

    def option(self, name: str) -> ExitStrategyOption | None:
        return next((o for o in self.options if o.name == name), None)


class RiskFactor(BaseModel):
    name: str
    score: int  # 1 low, 2 moderate, 3 high
    notes: str


class StateOptimization(BaseModel):
    blended_rate: Decimal
    lowest_rate: Decimal
    optimal_state: str
    savings: Decimal


class ExitRecommendation(BaseModel):
    exit_type: ExitType | None = None
    strategy: str | None = None
    net_proceeds: Decimal = ZERO
    tax_savings: Decimal = ZERO
    ipo: ExitAnalysis
    acquisition: ExitAnalysis
    secondary: ExitAnalysis
    risk_factors: list[RiskFactor] = Field(default_factory=list)
    overall_risk_score: Decimal = ZERO
    multi_state: StateOptimization | None = None
    warnings: list[str] = Field(default_factory=list)

"""Data models for equitycalc."""

from equitycalc.models.enums import (
    DispositionType,
    ExitType,
    FilingStatus,
    GrantType,
    HoldingPeriod,
    MarketConditions,
    Timeframe,
    VestingSchedule,
)
from equitycalc.models.grant import Grant, Scenario
from equitycalc.models.results import (
    AMTDetail,
    AnalyticsSummary,
    ComprehensiveTaxResult,
    DoubleTriggerResult,
    EarnoutImpact,
    ExitAnalysis,
    ExitBatch,
    ExitRecommendation,
    ExitStrategyOption,
    ForecastPoint,
    GrantExitLine,
    GrantVestingLine,
    LockupImpact,
    MonthlyVesting,
    NamedValue,
    PortfolioPoint,
    QSBSResult,
    RiskFactor,
    ScenarioComparison,
    ScenarioResult,
    Section1202Estimate,
    SecondarySaleTerms,
    StateOptimization,
    StateTaxLine,
    TaxAssumptions,
    TaxResult,
    UpcomingVest,
    VestingDetail,
    VestingEvent,
)
from equitycalc.models.settings import ExitAssumptions, TaxSettings

__all__ = [
    "AMTDetail",
    "AnalyticsSummary",
    "ComprehensiveTaxResult",
    "DispositionType",
    "DoubleTriggerResult",
    "EarnoutImpact",
    "ExitAnalysis",
    "ExitAssumptions",
    "ExitBatch",
    "ExitRecommendation",
    "ExitStrategyOption",
    "ExitType",
    "FilingStatus",
    "ForecastPoint",
    "Grant",
    "GrantExitLine",
    "GrantType",
    "GrantVestingLine",
    "HoldingPeriod",
    "LockupImpact",
    "MarketConditions",
    "MonthlyVesting",
    "NamedValue",
    "PortfolioPoint",
    "QSBSResult",
    "RiskFactor",
    "Scenario",
    "ScenarioComparison",
    "ScenarioResult",
    "Section1202Estimate",
    "SecondarySaleTerms",
    "StateOptimization",
    "StateTaxLine",
    "TaxAssumptions",
    "TaxResult",
    "TaxSettings",
    "Timeframe",
    "UpcomingVest",
    "VestingDetail",
    "VestingEvent",
    "VestingSchedule",
]

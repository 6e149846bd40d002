"""Equity calculation engines."""

from equitycalc.engines.amt import AMTCalculator
from equitycalc.engines.analytics import PortfolioAnalytics
from equitycalc.engines.exit_strategy import ExitStrategyAnalyzer
from equitycalc.engines.qsbs import QSBSCalculator
from equitycalc.engines.scenario import ScenarioEvaluator
from equitycalc.engines.tax import TaxCalculator
from equitycalc.engines.vesting import VestingCalculator

__all__ = [
    "AMTCalculator",
    "ExitStrategyAnalyzer",
    "PortfolioAnalytics",
    "QSBSCalculator",
    "ScenarioEvaluator",
    "TaxCalculator",
    "VestingCalculator",
]

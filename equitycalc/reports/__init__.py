"""Report generation for equitycalc."""

from equitycalc.reports.portfolio_report import PortfolioReportGenerator

__all__ = ["PortfolioReportGenerator"]

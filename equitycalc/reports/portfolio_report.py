"""Portfolio summary report generator."""

from decimal import Decimal
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from equitycalc.models.grant import Grant
from equitycalc.models.results import AnalyticsSummary, VestingDetail

TEMPLATE_DIR = Path(__file__).parent / "templates"


def money(value: Decimal) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def percent(value: Decimal | None) -> str:
    return "" if value is None else f"{value:.1f}%"


class PortfolioReportGenerator:
    """Generates a plain-text portfolio report."""

    def __init__(self) -> None:
        self.env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)))
        self.env.filters["money"] = money
        self.env.filters["percent"] = percent

    def render(
        self,
        summary: AnalyticsSummary,
        vesting: list[tuple[Grant, VestingDetail]],
    ) -> str:
        """Render the portfolio report."""
        template = self.env.get_template("portfolio_report.txt")
        return template.render(summary=summary, vesting=vesting)

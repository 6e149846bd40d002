"""Typer CLI interface for equitycalc."""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from equitycalc.engines.analytics import ALL_COMPANIES, PortfolioAnalytics
from equitycalc.engines.exit_strategy import ExitStrategyAnalyzer
from equitycalc.engines.scenario import ScenarioEvaluator, find_grant
from equitycalc.engines.tax import TaxCalculator
from equitycalc.engines.vesting import VestingCalculator
from equitycalc.exceptions import EquityCalcError
from equitycalc.ingestion.records import RecordLoader, RecordSet
from equitycalc.models.enums import FilingStatus, Timeframe
from equitycalc.models.settings import (
    DEFAULT_OTHER_INCOME,
    DEFAULT_STATE,
    DEFAULT_TAX_YEAR,
    ExitAssumptions,
    TaxSettings,
)
from equitycalc.reports.portfolio_report import PortfolioReportGenerator, money, percent

app = typer.Typer(
    name="equitycalc",
    help="Vesting, tax and exit-scenario calculator for equity compensation.",
)

FILING_STATUS_KEYS = {status.name: status for status in FilingStatus}


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Vesting, tax and exit-scenario calculator for equity compensation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def _load(file_path: Path) -> RecordSet:
    """Load a record file, echoing consistency problems as warnings."""
    loader = RecordLoader()
    try:
        records = loader.load(file_path)
    except EquityCalcError as exc:
        _fail(str(exc))
    for problem in loader.validate(records):
        typer.echo(f"Warning: {problem}", err=True)
    return records


def _parse_date(value: str | None, option: str) -> date:
    if value is None:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        _fail(f"Invalid date for {option}: '{value}'. Use YYYY-MM-DD.")


def _parse_decimal(value: str, option: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        _fail(f"Invalid number for {option}: '{value}'")


def _build_settings(
    filing_status: str, state: str, income: str, year: int, no_amt: bool
) -> TaxSettings:
    key = filing_status.upper()
    status = FILING_STATUS_KEYS.get(key)
    if status is None:
        try:
            status = FilingStatus(key)
        except ValueError:
            valid = ", ".join(FILING_STATUS_KEYS)
            _fail(f"Invalid filing status '{filing_status}'. Valid: {valid}")
    other_income = _parse_decimal(income, "--income")
    if other_income < 0:
        _fail(f"--income must not be negative, got {income}")
    return TaxSettings(
        filing_status=status,
        state_of_residence=state,
        other_income=other_income,
        tax_year=year,
        include_amt=not no_amt,
    )


def _shares(value: int) -> str:
    return f"{value:,}"


# Shared tax options
FILING_STATUS_OPTION = typer.Option(
    "SINGLE", "--filing-status", "-s", help="Filing status: SINGLE, MFJ, MFS, HOH"
)
STATE_OPTION = typer.Option(DEFAULT_STATE, "--state", help="State of residence (name or code)")
INCOME_OPTION = typer.Option(
    str(DEFAULT_OTHER_INCOME), "--income", help="Other taxable income for the year"
)
YEAR_OPTION = typer.Option(DEFAULT_TAX_YEAR, "--year", "-y", help="Tax year")
NO_AMT_OPTION = typer.Option(False, "--no-amt", help="Leave AMT out of the estimate")


@app.command()
def vesting(
    file: Path = typer.Argument(..., help="JSON record file"),
    as_of: str | None = typer.Option(None, "--as-of", help="Date to evaluate (YYYY-MM-DD)"),
) -> None:
    """Show vested and unvested shares for every grant."""
    records = _load(file)
    as_of_date = _parse_date(as_of, "--as-of")
    calculator = VestingCalculator()
    console = Console()

    table = Table(title=f"Vesting as of {as_of_date}", show_header=True)
    table.add_column("Grant")
    table.add_column("Schedule")
    table.add_column("Vested", justify="right")
    table.add_column("Unvested", justify="right")
    table.add_column("%", justify="right")
    table.add_column("Next vest")

    skipped = []
    for grant in records.grants:
        try:
            detail = calculator.detailed_vesting(grant, as_of_date)
        except EquityCalcError as exc:
            skipped.append(f"{grant.label}: {exc}")
            continue
        next_vest = ""
        if detail.next_vest_date is not None:
            next_vest = f"{detail.next_vest_date} (+{_shares(detail.next_vest_shares)})"
        schedule_text = grant.vesting_schedule.value
        if detail.is_double_trigger:
            schedule_text += " (double-trigger)"
        table.add_row(
            grant.label,
            schedule_text,
            _shares(detail.vested_shares),
            _shares(detail.unvested_shares),
            percent(detail.vesting_percentage),
            next_vest,
        )

    console.print(table)
    for line in skipped:
        typer.echo(f"Skipped {line}", err=True)


@app.command()
def schedule(
    file: Path = typer.Argument(..., help="JSON record file"),
    grant_id: str = typer.Option(..., "--grant-id", "-g", help="Grant id"),
) -> None:
    """List every vest event for one grant."""
    records = _load(file)
    try:
        grant = find_grant(records.grants, grant_id)
        events = VestingCalculator().vesting_schedule(grant)
    except EquityCalcError as exc:
        _fail(str(exc))

    table = Table(title=f"Vesting schedule: {grant.label}", show_header=True)
    table.add_column("Date")
    table.add_column("Event")
    table.add_column("Shares", justify="right")
    table.add_column("Cumulative", justify="right")
    table.add_column("Value", justify="right")
    for event in events:
        table.add_row(
            str(event.vest_date),
            event.label,
            _shares(event.shares),
            _shares(event.cumulative_shares),
            money(event.shares * grant.current_fmv),
        )
    Console().print(table)


@app.command()
def tax(
    file: Path = typer.Argument(..., help="JSON record file"),
    grant_id: str = typer.Option(..., "--grant-id", "-g", help="Grant id"),
    exit_price: str = typer.Option(..., "--exit-price", help="Sale price per share"),
    shares: int | None = typer.Option(None, "--shares", help="Shares sold (default: all)"),
    short_term: bool = typer.Option(False, "--short-term", help="Treat gains as short-term"),
    comprehensive: bool = typer.Option(
        False, "--comprehensive", help="Use progressive brackets, NIIT and Form 6251 AMT"
    ),
    exercise_date: str | None = typer.Option(
        None, "--exercise-date", help="Exercise (or RSU vest) date, YYYY-MM-DD"
    ),
    sale_date: str | None = typer.Option(None, "--sale-date", help="Sale date, YYYY-MM-DD"),
    prior_amt_credit: str = typer.Option(
        "0", "--prior-amt-credit", help="Unused AMT credit from earlier years"
    ),
    filing_status: str = FILING_STATUS_OPTION,
    state: str = STATE_OPTION,
    income: str = INCOME_OPTION,
    year: int = YEAR_OPTION,
    no_amt: bool = NO_AMT_OPTION,
) -> None:
    """Estimate tax on exercising and selling a grant."""
    records = _load(file)
    price = _parse_decimal(exit_price, "--exit-price")
    settings = _build_settings(filing_status, state, income, year, no_amt)
    credit = _parse_decimal(prior_amt_credit, "--prior-amt-credit")
    if credit < 0:
        _fail(f"--prior-amt-credit must not be negative, got {prior_amt_credit}")
    settings.prior_amt_credit = credit
    calculator = TaxCalculator()

    try:
        grant = find_grant(records.grants, grant_id)
        count = shares if shares is not None else grant.shares
        rows: list[tuple[str, str]]
        if comprehensive:
            result = calculator.calculate_comprehensive_tax(
                grant,
                grant.strike_price,
                price,
                count,
                settings=settings,
                exercise_date=_parse_date(exercise_date, "--exercise-date") if exercise_date else None,
                sale_date=_parse_date(sale_date, "--sale-date") if sale_date else None,
            )
            rows = [
                ("Holding period", result.holding_period.value),
                ("Disposition", result.disposition.value),
                ("Ordinary income", money(result.ordinary_income)),
                ("Short-term gain", money(result.short_term_gain)),
                ("Long-term gain", money(result.long_term_gain)),
                ("Federal ordinary tax", money(result.federal_ordinary_tax)),
                ("Federal capital gains tax", money(result.federal_capital_gains_tax)),
                ("Medicare", money(result.medicare_tax)),
                ("NIIT", money(result.niit)),
                ("AMT", money(result.amt_liability)),
                ("AMT credit used", money(result.amt_credit_used)),
                ("Federal tax", money(result.federal_tax)),
                ("State tax", money(result.state_tax)),
                ("Total tax", money(result.total_tax)),
                ("Net proceeds", money(result.net_proceeds)),
                ("Effective rate", percent(result.effective_tax_rate * 100)),
            ]
            warnings = result.warnings
        else:
            result = calculator.calculate_taxes(
                grant,
                grant.strike_price,
                price,
                count,
                is_long_term=not short_term,
                settings=settings,
            )
            rows = [
                ("Holding period", result.holding_period.value),
                ("Exercise income", money(result.exercise_income)),
                ("Exercise tax", money(result.exercise_tax)),
                ("Capital gain", money(result.capital_gain)),
                ("Capital gains tax", money(result.capital_gains_tax)),
                ("AMT income", money(result.amt_income)),
                ("AMT", money(result.amt_liability)),
                ("Federal tax", money(result.federal_tax)),
                ("State tax", money(result.state_tax)),
                ("Total tax", money(result.total_tax)),
                ("Effective rate", percent(result.effective_tax_rate * 100)),
            ]
            warnings = []
    except EquityCalcError as exc:
        _fail(str(exc))

    table = Table(
        title=f"Tax: {_shares(count)} shares of {grant.label} at {money(price)}",
        show_header=False,
        padding=(0, 1),
    )
    table.add_column("Item")
    table.add_column("Amount", justify="right")
    for label, value in rows:
        table.add_row(label, value)
    console = Console()
    console.print(table)
    for warning in warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


@app.command()
def scenarios(
    file: Path = typer.Argument(..., help="JSON record file"),
    short_term: bool = typer.Option(False, "--short-term", help="Treat gains as short-term"),
) -> None:
    """Evaluate every stored exit scenario."""
    records = _load(file)
    if not records.scenarios:
        typer.echo("No scenarios in file.")
        raise typer.Exit()

    evaluator = ScenarioEvaluator()
    table = Table(title="Exit Scenarios", show_header=True)
    table.add_column("Scenario")
    table.add_column("Type")
    table.add_column("Price", justify="right")
    table.add_column("Shares", justify="right")
    table.add_column("Gross", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Tax", justify="right")
    table.add_column("Net", justify="right")
    table.add_column("ROI", justify="right")

    failures = 0
    for scenario in records.scenarios:
        try:
            result = evaluator.evaluate_scenario(
                scenario, records.grants, is_long_term=not short_term
            )
        except EquityCalcError as exc:
            typer.echo(f"Skipped scenario '{scenario.name}': {exc}", err=True)
            failures += 1
            continue
        table.add_row(
            result.scenario_name,
            result.exit_type.value,
            money(result.exit_price),
            _shares(result.shares),
            money(result.gross_proceeds),
            money(result.exercise_cost),
            money(result.tax_liability),
            money(result.net_proceeds),
            percent(result.roi_percentage),
        )
    Console().print(table)
    if failures == len(records.scenarios):
        raise typer.Exit(1)


@app.command()
def analytics(
    file: Path = typer.Argument(..., help="JSON record file"),
    timeframe: str = typer.Option("all", "--timeframe", "-t", help="all, month, quarter, year"),
    company: str = typer.Option(ALL_COMPANIES, "--company", "-c", help="Company name or 'all'"),
    as_of: str | None = typer.Option(None, "--as-of", help="Date to evaluate (YYYY-MM-DD)"),
) -> None:
    """Summarize the portfolio: totals, distributions and forecast."""
    records = _load(file)
    as_of_date = _parse_date(as_of, "--as-of")
    try:
        window = Timeframe(timeframe.lower())
    except ValueError:
        valid = ", ".join(t.value for t in Timeframe)
        _fail(f"Invalid timeframe '{timeframe}'. Valid: {valid}")

    engine = PortfolioAnalytics()
    try:
        summary = engine.summarize(
            records.grants, records.scenarios, as_of_date, timeframe=window, company=company
        )
    except EquityCalcError as exc:
        _fail(str(exc))
    console = Console()

    totals = Table(title=f"Portfolio as of {as_of_date}", show_header=False, padding=(0, 1))
    totals.add_column("Item")
    totals.add_column("Value", justify="right")
    totals.add_row("Grants", str(summary.grant_count))
    totals.add_row("Total shares", _shares(summary.total_shares))
    totals.add_row("Vested shares", _shares(summary.vested_shares))
    totals.add_row("Unvested shares", _shares(summary.unvested_shares))
    totals.add_row("Current value", money(summary.current_value))
    totals.add_row("Exercise cost", money(summary.exercise_cost))
    totals.add_row("Potential gain", money(summary.potential_gain))
    console.print(totals)

    if summary.value_by_company:
        companies = Table(title="Value by Company", show_header=True)
        companies.add_column("Company")
        companies.add_column("Value", justify="right")
        companies.add_column("Share", justify="right")
        for item in summary.value_by_company:
            companies.add_row(item.name, money(item.value), percent(item.percentage))
        console.print(companies)

    if summary.vesting_forecast:
        forecast = Table(title="Vesting Forecast", show_header=True)
        forecast.add_column("Month")
        forecast.add_column("Shares", justify="right")
        forecast.add_column("Value", justify="right")
        for point in summary.vesting_forecast:
            forecast.add_row(point.month, _shares(point.shares), money(point.value))
        console.print(forecast)

    if summary.scenario_comparison:
        comparison = Table(title="Scenarios (best first)", show_header=True)
        comparison.add_column("Scenario")
        comparison.add_column("Gross", justify="right")
        comparison.add_column("Tax", justify="right")
        comparison.add_column("Net", justify="right")
        for row in summary.scenario_comparison:
            comparison.add_row(
                row.scenario_name, money(row.gross_value), money(row.taxes), money(row.net_value)
            )
        console.print(comparison)

    for warning in summary.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


@app.command()
def exits(
    file: Path = typer.Argument(..., help="JSON record file"),
    as_of: str | None = typer.Option(None, "--as-of", help="Date to evaluate (YYYY-MM-DD)"),
    exit_date: str | None = typer.Option(
        None, "--exit-date", help="IPO, closing or sale date (default: --as-of)"
    ),
    ipo_multiple: str = typer.Option("10", "--ipo-multiple", help="IPO price as a multiple of FMV"),
    acquisition_multiple: str = typer.Option(
        "8", "--acquisition-multiple", help="Acquisition price as a multiple of FMV"
    ),
    secondary_multiple: str = typer.Option(
        "5", "--secondary-multiple", help="Secondary price as a multiple of FMV, before discount"
    ),
    market: str = typer.Option(
        "neutral", "--market", help="Market conditions: favorable, neutral, unfavorable"
    ),
    filing_status: str = FILING_STATUS_OPTION,
    state: str = STATE_OPTION,
    income: str = INCOME_OPTION,
    year: int = YEAR_OPTION,
    no_amt: bool = NO_AMT_OPTION,
) -> None:
    """Compare IPO, acquisition and secondary-sale exits."""
    records = _load(file)
    as_of_date = _parse_date(as_of, "--as-of")
    settings = _build_settings(filing_status, state, income, year, no_amt)
    try:
        assumptions = ExitAssumptions(
            exit_date=_parse_date(exit_date, "--exit-date") if exit_date else None,
            ipo_multiple=_parse_decimal(ipo_multiple, "--ipo-multiple"),
            acquisition_multiple=_parse_decimal(acquisition_multiple, "--acquisition-multiple"),
            secondary_multiple=_parse_decimal(secondary_multiple, "--secondary-multiple"),
            market_conditions=market,
        )
    except ValidationError as exc:
        _fail(f"Invalid exit assumptions: {exc.errors()[0]['msg']}")

    analyzer = ExitStrategyAnalyzer()
    try:
        recommendation = analyzer.analyze_exit_strategies(
            records.grants, as_of_date, settings, assumptions
        )
    except EquityCalcError as exc:
        _fail(str(exc))

    console = Console()
    for analysis in (recommendation.ipo, recommendation.acquisition, recommendation.secondary):
        table = Table(title=f"{analysis.exit_type.value} on {analysis.exit_date}", show_header=True)
        table.add_column("Strategy")
        table.add_column("Tax", justify="right")
        table.add_column("Net", justify="right")
        for option in analysis.options:
            marker = " *" if option.name == analysis.optimal_strategy else ""
            table.add_row(
                f"{option.name}{marker}", money(option.total_tax), money(option.net_proceeds)
            )
        console.print(table)

    if recommendation.exit_type is None:
        console.print("No vested shares to exit.")
    else:
        console.print(
            f"Recommended: {recommendation.exit_type.value} ({recommendation.strategy}), "
            f"net {money(recommendation.net_proceeds)}"
        )
    risks = ", ".join(f"{r.name} {r.score}" for r in recommendation.risk_factors)
    console.print(f"Risk: {risks} (overall {recommendation.overall_risk_score:.1f})")
    for warning in recommendation.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


@app.command()
def report(
    file: Path = typer.Argument(..., help="JSON record file"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the report here"),
    as_of: str | None = typer.Option(None, "--as-of", help="Date to evaluate (YYYY-MM-DD)"),
) -> None:
    """Render a plain-text portfolio report."""
    records = _load(file)
    as_of_date = _parse_date(as_of, "--as-of")
    engine = PortfolioAnalytics()
    try:
        summary = engine.summarize(records.grants, records.scenarios, as_of_date)
    except EquityCalcError as exc:
        _fail(str(exc))

    calculator = VestingCalculator()
    details = []
    for grant in records.grants:
        try:
            details.append((grant, calculator.detailed_vesting(grant, as_of_date)))
        except EquityCalcError:
            # already listed in summary.warnings
            continue

    text = PortfolioReportGenerator().render(summary, details)
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text)
    typer.echo(f"Report written to {output}")


if __name__ == "__main__":
    app()

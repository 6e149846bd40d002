"""Exit strategy comparison: IPO, acquisition and secondary sale.

Each exit type is priced under a few exercise or sale strategies. Every lot
goes through the comprehensive tax calculation, strategies are totalled
across grants, and the one with the highest net proceeds is marked optimal.
``analyze_exit_strategies`` runs all three and recommends an exit, alongside
simple timing, concentration and market risk scores.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from equitycalc.engines.brackets import (
    FEDERAL_BRACKETS,
    FEDERAL_LTCG_BRACKETS,
    FEDERAL_STANDARD_DEDUCTION,
    apply_brackets,
    lookup,
    stacked_ltcg_tax,
)
from equitycalc.engines.qsbs import QSBSCalculator
from equitycalc.engines.tax import TaxCalculator
from equitycalc.engines.vesting import VestingCalculator
from equitycalc.exceptions import EquityCalcError
from equitycalc.models.enums import ExitType, GrantType
from equitycalc.models.grant import Grant
from equitycalc.models.results import (
    EarnoutImpact,
    ExitAnalysis,
    ExitBatch,
    ExitRecommendation,
    ExitStrategyOption,
    GrantExitLine,
    LockupImpact,
    RiskFactor,
    Section1202Estimate,
    SecondarySaleTerms,
    StateOptimization,
)
from equitycalc.models.settings import ExitAssumptions, TaxSettings

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# IPO exercise strategies
EARLY_EXERCISE = "early_exercise"
EXERCISE_AT_EXIT = "exercise_at_exit"
STAGGERED_EXERCISE = "staggered_exercise"
EARLY_EXERCISE_MONTHS = 12
# (months before the IPO, fraction of vested shares); the last batch takes the rest
STAGGERED_EXERCISE_BATCHES = [
    (12, Decimal("0.30")),
    (6, Decimal("0.30")),
    (2, None),
]

# Acquisition deal structures
CASH_DEAL = "cash"
STOCK_DEAL = "stock"
MIXED_DEAL = "mixed"
# acquirer shares from a stock deal are sold once long-term
STOCK_DEAL_HOLD = relativedelta(years=1, days=1)
EARNOUT_YEARS = 3
EARNOUT_DISCOUNT_RATE = Decimal("0.05")

# Secondary sale strategies
SELL_ALL = "sell_all"
SELL_PARTIAL = "sell_partial"
STAGGERED_SALES = "staggered_sales"
# (months after the first sale, fraction of vested shares, price step)
STAGGERED_SALE_BATCHES = [
    (0, Decimal("0.40"), Decimal("1.00")),
    (4, Decimal("0.30"), Decimal("1.05")),
    (8, None, Decimal("1.10")),
]

HIGH_CONCENTRATION = Decimal("0.8")
MODERATE_CONCENTRATION = Decimal("0.5")
HIGH_TIMING_RISK = Decimal("0.5")
MODERATE_TIMING_RISK = Decimal("0.75")


def _split(total: int, fractions: list[Decimal | None]) -> list[int]:
    """Whole-share batches; a ``None`` fraction takes what is left."""
    counts = []
    for fraction in fractions:
        if fraction is None:
            counts.append(total - sum(counts))
        else:
            counts.append(int(total * fraction))
    return counts


class ExitStrategyAnalyzer:
    """Prices exit strategies for a set of grants."""

    def __init__(
        self,
        tax_calculator: TaxCalculator | None = None,
        vesting: VestingCalculator | None = None,
        qsbs: QSBSCalculator | None = None,
    ) -> None:
        self.tax = tax_calculator or TaxCalculator()
        self.vesting = vesting or VestingCalculator()
        self.qsbs = qsbs or QSBSCalculator()
        self.warnings: list[str] = []

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _warn(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def _vested(
        self, grants: list[Grant], as_of: date, options_only: bool = False
    ) -> list[tuple[Grant, int]]:
        """Grants with vested shares as of ``as_of``; invalid grants become warnings."""
        selected = []
        for grant in grants:
            if options_only and grant.grant_type == GrantType.RSU:
                continue
            try:
                vested = self.vesting.vested_shares(grant, as_of)
            except EquityCalcError as exc:
                logger.warning("Skipping grant %s: %s", grant.label, exc)
                self._warn(f"Skipped {grant.label}: {exc}")
                continue
            if vested > 0:
                selected.append((grant, vested))
        return selected

    def _sell(
        self,
        grant: Grant,
        shares: int,
        price: Decimal,
        exercise_date: date,
        sale_date: date,
        settings: TaxSettings,
    ) -> ExitBatch:
        result = self.tax.calculate_comprehensive_tax(
            grant,
            grant.strike_price,
            price,
            shares,
            settings=settings,
            exercise_date=exercise_date,
            sale_date=sale_date,
        )
        for warning in result.warnings:
            self._warn(warning)
        return ExitBatch(
            exercise_date=exercise_date,
            sale_date=sale_date,
            shares=shares,
            price=price,
            total_tax=result.total_tax,
            net_proceeds=result.net_proceeds,
            holding_period=result.holding_period,
            disposition=result.disposition,
        )

    @staticmethod
    def _add(
        option: ExitStrategyOption, grant: Grant, shares: int, batches: list[ExitBatch]
    ) -> None:
        line = GrantExitLine(
            grant_id=grant.id,
            grant_type=grant.grant_type,
            shares=shares,
            total_tax=sum((b.total_tax for b in batches), ZERO),
            net_proceeds=sum((b.net_proceeds for b in batches), ZERO),
            batches=batches,
        )
        option.details.append(line)
        option.total_tax += line.total_tax
        option.net_proceeds += line.net_proceeds

    def _rank(self, analysis: ExitAnalysis) -> ExitAnalysis:
        """Mark the option with the highest net proceeds as optimal."""
        priced = [o for o in analysis.options if o.details]
        if priced:
            ranked = sorted(priced, key=lambda o: o.net_proceeds, reverse=True)
            analysis.optimal_strategy = ranked[0].name
            analysis.optimal_net_proceeds = ranked[0].net_proceeds
            if len(ranked) > 1:
                analysis.tax_savings = ranked[0].net_proceeds - ranked[1].net_proceeds
        analysis.warnings = list(self.warnings)
        return analysis

    def _capital_gains_tax(
        self, gain: Decimal, settings: TaxSettings
    ) -> tuple[Decimal, Decimal]:
        """Federal tax on ``gain`` taxed long-term and short-term, over other income."""
        status, year = settings.filing_status, settings.tax_year
        std_ded = lookup("standard deduction", FEDERAL_STANDARD_DEDUCTION, year, status)
        brackets = lookup("federal", FEDERAL_BRACKETS, year, status)
        base = max(settings.other_income - std_ded, ZERO)
        long_term = stacked_ltcg_tax(
            gain, base + gain, lookup("LTCG", FEDERAL_LTCG_BRACKETS, year, status)
        )
        short_term = apply_brackets(base + gain, brackets) - apply_brackets(base, brackets)
        return long_term, short_term

    # ------------------------------------------------------------------
    # IPO
    # ------------------------------------------------------------------

    def ipo_tax_impact(
        self,
        grants: list[Grant],
        as_of: date,
        settings: TaxSettings | None = None,
        assumptions: ExitAssumptions | None = None,
        exit_price: Decimal | None = None,
    ) -> ExitAnalysis:
        """Exercise early, at the IPO, or in three staggered batches.

        Only vested ISOs and NSOs are considered. Shares are sold when the
        lockup ends. ``lockup`` compares long- and short-term tax on the
        appreciation above today's FMV.
        """
        settings = settings or TaxSettings()
        assumptions = assumptions or ExitAssumptions()
        self.warnings = []
        ipo_date = assumptions.exit_date or as_of
        sale_date = ipo_date + timedelta(days=assumptions.lockup_days)
        early_date = ipo_date - relativedelta(months=EARLY_EXERCISE_MONTHS)

        early = ExitStrategyOption(name=EARLY_EXERCISE)
        at_exit = ExitStrategyOption(name=EXERCISE_AT_EXIT)
        staggered = ExitStrategyOption(name=STAGGERED_EXERCISE)
        lockup = LockupImpact()

        for grant, vested in self._vested(grants, as_of, options_only=True):
            price = (
                exit_price if exit_price is not None
                else grant.current_fmv * assumptions.ipo_multiple
            )
            self._add(early, grant, vested, [
                self._sell(grant, vested, price, early_date, sale_date, settings)
            ])
            self._add(at_exit, grant, vested, [
                self._sell(grant, vested, price, ipo_date, sale_date, settings)
            ])

            batches = []
            counts = _split(vested, [fraction for _, fraction in STAGGERED_EXERCISE_BATCHES])
            for (months_before, _), count in zip(STAGGERED_EXERCISE_BATCHES, counts):
                if count <= 0:
                    continue
                exercised = ipo_date - relativedelta(months=months_before)
                batches.append(self._sell(grant, count, price, exercised, sale_date, settings))
            self._add(staggered, grant, vested, batches)

            appreciation = (price - grant.current_fmv) * vested
            if appreciation > 0:
                long_term, short_term = self._capital_gains_tax(appreciation, settings)
                lockup.long_term_tax += long_term
                lockup.short_term_tax += short_term

        lockup.tax_savings = lockup.short_term_tax - lockup.long_term_tax
        logger.debug("IPO analysis on %s: sale after lockup on %s", ipo_date, sale_date)
        return self._rank(
            ExitAnalysis(
                exit_type=ExitType.IPO,
                exit_date=ipo_date,
                options=[early, at_exit, staggered],
                lockup=lockup,
            )
        )

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    def acquisition_tax_impact(
        self,
        grants: list[Grant],
        as_of: date,
        settings: TaxSettings | None = None,
        assumptions: ExitAssumptions | None = None,
        exit_price: Decimal | None = None,
    ) -> ExitAnalysis:
        """All-cash, all-stock and mixed consideration.

        Shares are assumed exercised one year before closing. Cash is a
        sale at closing. Acquirer stock is held until the gain is long-term
        and sold at the same price. A mixed deal splits the vested shares by
        ``cash_percentage``.
        """
        settings = settings or TaxSettings()
        assumptions = assumptions or ExitAssumptions()
        self.warnings = []
        closing = assumptions.exit_date or as_of
        exercised = closing - relativedelta(years=1)
        stock_sale = closing + STOCK_DEAL_HOLD
        cash_fraction = assumptions.cash_percentage / HUNDRED

        cash = ExitStrategyOption(name=CASH_DEAL)
        stock = ExitStrategyOption(name=STOCK_DEAL)
        mixed = ExitStrategyOption(name=MIXED_DEAL)
        qsbs = Section1202Estimate()
        earnout = EarnoutImpact()

        for grant, vested in self._vested(grants, as_of):
            price = (
                exit_price if exit_price is not None
                else grant.current_fmv * assumptions.acquisition_multiple
            )
            self._add(cash, grant, vested, [
                self._sell(grant, vested, price, exercised, closing, settings)
            ])
            self._add(stock, grant, vested, [
                self._sell(grant, vested, price, exercised, stock_sale, settings)
            ])

            cash_shares = int(vested * cash_fraction)
            stock_shares = vested - cash_shares
            batches = []
            if cash_shares > 0:
                batches.append(self._sell(grant, cash_shares, price, exercised, closing, settings))
            if stock_shares > 0:
                batches.append(
                    self._sell(grant, stock_shares, price, exercised, stock_sale, settings)
                )
            self._add(mixed, grant, vested, batches)

            if stock_shares > 0:
                self._section_1202(
                    qsbs, grant, stock_shares, price, exercised, stock_sale, settings
                )
            earnout.earnout_amount += price * vested * assumptions.earnout_percentage / HUNDRED

        if earnout.earnout_amount > 0:
            rate = settings.ordinary_rate + settings.state_rate
            earnout.immediate_tax = earnout.earnout_amount * rate
            discount = (1 + EARNOUT_DISCOUNT_RATE) ** EARNOUT_YEARS
            earnout.deferred_tax = earnout.immediate_tax / discount
            earnout.savings = earnout.immediate_tax - earnout.deferred_tax

        return self._rank(
            ExitAnalysis(
                exit_type=ExitType.ACQUISITION,
                exit_date=closing,
                options=[cash, stock, mixed],
                section_1202=qsbs,
                earnout=earnout if earnout.earnout_amount > 0 else None,
            )
        )

    def _section_1202(
        self,
        estimate: Section1202Estimate,
        grant: Grant,
        shares: int,
        price: Decimal,
        acquired: date,
        sold: date,
        settings: TaxSettings,
    ) -> None:
        """Fold one grant's stock consideration into the Section 1202 estimate.

        Gross assets are approximated by the grant's implied company value
        at today's FMV.
        """
        per_share_basis = (
            grant.current_fmv if grant.grant_type == GrantType.RSU else grant.strike_price
        )
        basis = per_share_basis * shares
        result = self.qsbs.exclusion(
            gain=price * shares - basis,
            basis=basis,
            acquisition_date=acquired,
            sale_date=sold,
            gross_assets_at_issuance=grant.current_fmv * grant.shares,
        )
        if not result.eligible:
            reason = f"{grant.label}: {result.reason}"
            if reason not in estimate.reasons:
                estimate.reasons.append(reason)
            return
        estimate.eligible = True
        estimate.excluded_gain += result.excluded_gain
        estimate.estimated_savings += result.excluded_gain * settings.long_term_rate

    # ------------------------------------------------------------------
    # Secondary sale
    # ------------------------------------------------------------------

    def secondary_tax_impact(
        self,
        grants: list[Grant],
        as_of: date,
        settings: TaxSettings | None = None,
        assumptions: ExitAssumptions | None = None,
        exit_price: Decimal | None = None,
    ) -> ExitAnalysis:
        """Sell everything, sell a slice, or sell in three batches over eight months.

        The buyer's price is the exit price less ``secondary_discount``.
        Shares are assumed exercised one year before the first sale. Later
        staggered batches assume the price rises 5% and then 10%.
        """
        settings = settings or TaxSettings()
        assumptions = assumptions or ExitAssumptions()
        self.warnings = []
        sale_date = assumptions.exit_date or as_of
        exercised = sale_date - relativedelta(years=1)
        discount = assumptions.secondary_discount / HUNDRED

        sell_all = ExitStrategyOption(name=SELL_ALL)
        partial = ExitStrategyOption(name=SELL_PARTIAL)
        staggered = ExitStrategyOption(name=STAGGERED_SALES)
        value_loss = ZERO

        for grant, vested in self._vested(grants, as_of):
            undiscounted = (
                exit_price if exit_price is not None
                else grant.current_fmv * assumptions.secondary_multiple
            )
            price = undiscounted * (1 - discount)
            value_loss += (undiscounted - price) * vested

            self._add(sell_all, grant, vested, [
                self._sell(grant, vested, price, exercised, sale_date, settings)
            ])

            partial_shares = int(vested * assumptions.secondary_sale_percentage / HUNDRED)
            if partial_shares > 0:
                self._add(partial, grant, partial_shares, [
                    self._sell(grant, partial_shares, price, exercised, sale_date, settings)
                ])

            batches = []
            counts = _split(vested, [fraction for _, fraction, _ in STAGGERED_SALE_BATCHES])
            for (months_after, _, step), count in zip(STAGGERED_SALE_BATCHES, counts):
                if count <= 0:
                    continue
                sold = sale_date + relativedelta(months=months_after)
                batches.append(self._sell(grant, count, price * step, exercised, sold, settings))
            self._add(staggered, grant, vested, batches)

        terms = SecondarySaleTerms(
            discount_percentage=assumptions.secondary_discount,
            value_loss=value_loss,
            right_of_first_refusal=assumptions.right_of_first_refusal,
            transfer_restrictions=assumptions.transfer_restrictions,
        )
        terms.notes.append(
            "Company or existing shareholders may match any offer."
            if terms.right_of_first_refusal
            else "No right of first refusal applies."
        )
        terms.notes.append(
            "Transfers may need company approval."
            if terms.transfer_restrictions
            else "No transfer restrictions apply."
        )
        return self._rank(
            ExitAnalysis(
                exit_type=ExitType.SECONDARY,
                exit_date=sale_date,
                options=[sell_all, partial, staggered],
                secondary_terms=terms,
            )
        )

    # ------------------------------------------------------------------
    # Recommendation
    # ------------------------------------------------------------------

    def analyze_exit_strategies(
        self,
        grants: list[Grant],
        as_of: date,
        settings: TaxSettings | None = None,
        assumptions: ExitAssumptions | None = None,
    ) -> ExitRecommendation:
        """Run all three exit analyses and recommend the best net outcome.

        Ties go to IPO, then acquisition, then secondary sale.
        """
        settings = settings or TaxSettings()
        assumptions = assumptions or ExitAssumptions()

        ipo = self.ipo_tax_impact(grants, as_of, settings, assumptions)
        acquisition = self.acquisition_tax_impact(grants, as_of, settings, assumptions)
        secondary = self.secondary_tax_impact(grants, as_of, settings, assumptions)

        self.warnings = []
        for analysis in (ipo, acquisition, secondary):
            for warning in analysis.warnings:
                self._warn(warning)

        recommendation = ExitRecommendation(ipo=ipo, acquisition=acquisition, secondary=secondary)
        candidates = [a for a in (ipo, acquisition, secondary) if a.optimal_strategy is not None]
        if candidates:
            best = max(candidates, key=lambda a: a.optimal_net_proceeds)
            recommendation.exit_type = best.exit_type
            recommendation.strategy = best.optimal_strategy
            recommendation.net_proceeds = best.optimal_net_proceeds
            recommendation.tax_savings = best.tax_savings

        equity_value = sum(
            (
                g.shares * g.current_fmv * assumptions.ipo_multiple
                for g in self._valid(grants)
            ),
            ZERO,
        )
        recommendation.risk_factors = [
            self._timing_risk(grants, as_of),
            self._concentration_risk(equity_value, assumptions.net_worth),
            RiskFactor(
                name="market",
                score=assumptions.market_conditions.risk_score,
                notes=f"Market conditions are {assumptions.market_conditions.value} for exits.",
            ),
        ]
        recommendation.overall_risk_score = Decimal(
            sum(r.score for r in recommendation.risk_factors)
        ) / len(recommendation.risk_factors)

        if settings.state_allocation:
            recommendation.multi_state = self.state_optimization(equity_value, settings)
            for warning in self.tax.warnings:
                self._warn(warning)

        recommendation.warnings = list(self.warnings)
        logger.info(
            "Recommended exit: %s (%s), net %s",
            recommendation.exit_type, recommendation.strategy, recommendation.net_proceeds,
        )
        return recommendation

    def _valid(self, grants: list[Grant]) -> list[Grant]:
        valid = []
        for grant in grants:
            try:
                self.vesting.validate(grant)
            except EquityCalcError:
                continue
            valid.append(grant)
        return valid

    def _timing_risk(self, grants: list[Grant], as_of: date) -> RiskFactor:
        """Share of the portfolio's shares that are vested."""
        valid = self._valid(grants)
        total = sum(g.shares for g in valid)
        vested = sum(self.vesting.vested_shares(g, as_of) for g in valid)
        fraction = Decimal(vested) / Decimal(total) if total > 0 else ZERO
        if fraction < HIGH_TIMING_RISK:
            return RiskFactor(
                name="timing", score=3,
                notes="Less than 50% of the equity is vested.",
            )
        if fraction < MODERATE_TIMING_RISK:
            return RiskFactor(
                name="timing", score=2,
                notes="Between 50% and 75% of the equity is vested.",
            )
        return RiskFactor(name="timing", score=1, notes="Over 75% of the equity is vested.")

    @staticmethod
    def _concentration_risk(equity_value: Decimal, net_worth: Decimal) -> RiskFactor:
        ratio = equity_value / net_worth
        if ratio > HIGH_CONCENTRATION:
            return RiskFactor(
                name="concentration", score=3,
                notes="Equity is over 80% of net worth.",
            )
        if ratio > MODERATE_CONCENTRATION:
            return RiskFactor(
                name="concentration", score=2,
                notes="Equity is over 50% of net worth.",
            )
        return RiskFactor(
            name="concentration", score=1,
            notes="Equity is less than 50% of net worth.",
        )

    def state_optimization(
        self, equity_value: Decimal, settings: TaxSettings
    ) -> StateOptimization:
        """Blended and lowest state rate across ``settings.state_allocation``.

        ``savings`` is the state tax saved on ``equity_value`` by sourcing
        it all to the lowest-rate state instead of the current blend.
        """
        self.tax.warnings = []
        allocation = settings.state_allocation or {settings.state_of_residence: Decimal("1")}
        rates = {state: self.tax.state_rate(state) for state in allocation}
        blended = sum((rates[s] * fraction for s, fraction in allocation.items()), ZERO)
        optimal_state = min(rates, key=rates.get)
        return StateOptimization(
            blended_rate=blended,
            lowest_rate=rates[optimal_state],
            optimal_state=optimal_state,
            savings=max(blended - rates[optimal_state], ZERO) * equity_value,
        )

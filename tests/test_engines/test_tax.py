"""Tests for the policy-table and comprehensive tax calculators."""

from datetime import date
from decimal import Decimal

import pytest

from equitycalc.engines.tax import (
    TaxCalculator,
    held_long_term,
    is_qualifying_disposition,
)
from equitycalc.exceptions import (
    DataValidationError,
    NonPositiveShareCountError,
    TaxTableError,
)
from equitycalc.models.enums import DispositionType, FilingStatus, GrantType, HoldingPeriod
from equitycalc.models.grant import Grant
from equitycalc.models.settings import TaxSettings


@pytest.fixture
def calc():
    return TaxCalculator()


def _grant(grant_type: GrantType, strike: str, fmv: str, **kwargs) -> Grant:
    return Grant(
        id="g-1",
        company_name="Acme",
        grant_type=grant_type,
        shares=100,
        strike_price=Decimal(strike),
        current_fmv=Decimal(fmv),
        grant_date=kwargs.pop("grant_date", date(2020, 1, 1)),
        vesting_start_date=date(2020, 1, 1),
        **kwargs,
    )


class TestHoldingPeriod:
    def test_anniversary_is_short_term(self):
        assert held_long_term(date(2023, 1, 1), date(2024, 1, 1)) is False

    def test_day_after_anniversary_is_long_term(self):
        assert held_long_term(date(2023, 1, 1), date(2024, 1, 2)) is True

    def test_under_a_year_is_short_term(self):
        assert held_long_term(date(2023, 1, 1), date(2023, 12, 31)) is False

    def test_qualifying_disposition(self):
        assert is_qualifying_disposition(date(2020, 1, 1), date(2021, 1, 1), date(2022, 1, 2))

    def test_sale_on_both_anniversaries_disqualifies(self):
        assert not is_qualifying_disposition(
            date(2020, 1, 1), date(2021, 1, 1), date(2022, 1, 1)
        )

    def test_sale_on_exercise_anniversary_disqualifies(self):
        assert not is_qualifying_disposition(
            date(2019, 1, 1), date(2021, 6, 1), date(2022, 6, 1)
        )

    def test_disqualifying_too_soon_after_exercise(self):
        assert not is_qualifying_disposition(
            date(2019, 1, 1), date(2021, 6, 1), date(2022, 1, 1)
        )

    def test_disqualifying_too_soon_after_grant(self):
        assert not is_qualifying_disposition(
            date(2021, 1, 1), date(2021, 2, 1), date(2022, 6, 1)
        )


class TestPolicyTable:
    def test_rsu_full_value_is_ordinary_income(self, calc):
        grant = _grant(GrantType.RSU, "0", "10")
        result = calc.calculate_taxes(grant, Decimal("0"), Decimal("20"), 100)
        assert result.exercise_income == Decimal("2000")
        assert result.capital_gain == Decimal("0")
        assert result.federal_tax == Decimal("740")
        assert result.state_tax == Decimal("260")
        assert result.total_tax == Decimal("1000")
        assert result.effective_tax_rate == Decimal("0.5")

    def test_nso_spread_and_gain(self, calc):
        grant = _grant(GrantType.NSO, "1", "5")
        result = calc.calculate_taxes(grant, Decimal("1"), Decimal("10"), 100)
        assert result.exercise_income == Decimal("400")
        assert result.capital_gain == Decimal("500")
        assert result.federal_tax == Decimal("248")
        assert result.state_tax == Decimal("117")
        assert result.total_tax == Decimal("365")
        assert result.amt_liability == Decimal("0")

    def test_nso_underwater_at_exercise(self, calc):
        grant = _grant(GrantType.NSO, "5", "3")
        result = calc.calculate_taxes(grant, Decimal("5"), Decimal("10"), 100)
        assert result.exercise_income == Decimal("0")
        assert result.capital_gain == Decimal("500")

    def test_iso_gain_with_flat_amt(self, calc):
        grant = _grant(GrantType.ISO, "1", "1000")
        result = calc.calculate_taxes(grant, Decimal("1"), Decimal("1000"), 100)
        assert result.exercise_income == Decimal("0")
        assert result.capital_gain == Decimal("99900")
        assert result.amt_income == Decimal("99900")
        assert result.amt_liability == Decimal("7020")
        assert result.federal_tax == Decimal("27000")
        assert result.state_tax == Decimal("12987")
        assert result.total_tax == Decimal("39987")

    def test_iso_without_amt(self, calc):
        grant = _grant(GrantType.ISO, "1", "1000")
        settings = TaxSettings(include_amt=False)
        result = calc.calculate_taxes(
            grant, Decimal("1"), Decimal("1000"), 100, settings=settings
        )
        assert result.amt_liability == Decimal("0")
        assert result.total_tax == Decimal("32967")

    def test_short_term_uses_ordinary_rate(self, calc):
        grant = _grant(GrantType.ISO, "1", "1")
        result = calc.calculate_taxes(
            grant, Decimal("1"), Decimal("11"), 100, is_long_term=False
        )
        assert result.holding_period == HoldingPeriod.SHORT_TERM
        assert result.federal_tax == Decimal("370")

    def test_loss_is_not_taxed(self, calc):
        grant = _grant(GrantType.ISO, "10", "10")
        result = calc.calculate_taxes(grant, Decimal("10"), Decimal("4"), 100)
        assert result.capital_gain == Decimal("-600")
        assert result.total_tax == Decimal("0")
        assert result.effective_tax_rate == Decimal("0")

    def test_custom_rates(self, calc):
        grant = _grant(GrantType.RSU, "0", "10")
        settings = TaxSettings(
            ordinary_rate=Decimal("0.30"), state_rate=Decimal("0"), long_term_rate=Decimal("0.15")
        )
        result = calc.calculate_taxes(grant, Decimal("0"), Decimal("10"), 100, settings=settings)
        assert result.total_tax == Decimal("300")

    def test_rejects_zero_shares(self, calc):
        grant = _grant(GrantType.NSO, "1", "5")
        with pytest.raises(NonPositiveShareCountError):
            calc.calculate_taxes(grant, Decimal("1"), Decimal("10"), 0)

    def test_rejects_negative_price(self, calc):
        grant = _grant(GrantType.NSO, "1", "5")
        with pytest.raises(DataValidationError):
            calc.calculate_taxes(grant, Decimal("1"), Decimal("-1"), 10)


class TestComprehensive:
    def test_rsu_ordinary_and_medicare(self, calc):
        grant = _grant(GrantType.RSU, "0", "100")
        settings = TaxSettings(other_income=Decimal("0"), state_of_residence="TX")
        result = calc.calculate_comprehensive_tax(
            grant, Decimal("0"), Decimal("100"), 100, settings=settings
        )
        assert result.ordinary_income == Decimal("10000")
        assert result.federal_ordinary_tax == Decimal("1000")
        assert result.medicare_tax == Decimal("145")
        assert result.niit == Decimal("0")
        assert result.state_tax == Decimal("0")
        assert result.total_tax == Decimal("1145")
        assert result.exercise_cost == Decimal("0")
        assert result.net_proceeds == Decimal("10000") - Decimal("1145")

    def test_missing_dates_assume_long_term(self, calc):
        grant = _grant(GrantType.NSO, "1", "5")
        result = calc.calculate_comprehensive_tax(grant, Decimal("1"), Decimal("10"), 100)
        assert result.holding_period == HoldingPeriod.LONG_TERM
        assert any("long-term" in w for w in result.warnings)

    def test_nso_short_term(self, calc):
        grant = _grant(GrantType.NSO, "1", "5")
        result = calc.calculate_comprehensive_tax(
            grant,
            Decimal("1"),
            Decimal("10"),
            100,
            exercise_date=date(2024, 1, 1),
            sale_date=date(2024, 6, 1),
        )
        assert result.holding_period == HoldingPeriod.SHORT_TERM
        assert result.ordinary_income == Decimal("400")
        assert result.short_term_gain == Decimal("500")
        assert result.long_term_gain == Decimal("0")
        assert result.disposition == DispositionType.NOT_APPLICABLE

    def test_iso_qualifying_disposition(self, calc):
        grant = _grant(GrantType.ISO, "1", "100")
        result = calc.calculate_comprehensive_tax(
            grant,
            Decimal("1"),
            Decimal("150"),
            100,
            exercise_date=date(2021, 1, 1),
            sale_date=date(2023, 1, 2),
        )
        assert result.disposition == DispositionType.QUALIFYING
        assert result.ordinary_income == Decimal("0")
        assert result.long_term_gain == Decimal("14900")
        assert result.amt_preference == Decimal("9900")
        assert result.medicare_tax == Decimal("0")

    def test_iso_disqualifying_caps_ordinary_at_profit(self, calc):
        grant = _grant(GrantType.ISO, "1", "10")
        result = calc.calculate_comprehensive_tax(
            grant,
            Decimal("1"),
            Decimal("8"),
            100,
            exercise_date=date(2021, 1, 1),
            sale_date=date(2021, 6, 1),
        )
        assert result.disposition == DispositionType.DISQUALIFYING
        assert result.ordinary_income == Decimal("700")
        assert result.short_term_gain == Decimal("0")
        assert result.amt_preference == Decimal("0")

    def test_iso_sale_on_exercise_anniversary_is_disqualifying(self, calc):
        grant = _grant(GrantType.ISO, "1", "10")
        result = calc.calculate_comprehensive_tax(
            grant,
            Decimal("1"),
            Decimal("20"),
            100,
            exercise_date=date(2021, 1, 1),
            sale_date=date(2022, 1, 1),
        )
        assert result.disposition == DispositionType.DISQUALIFYING
        assert result.holding_period == HoldingPeriod.SHORT_TERM
        assert result.ordinary_income == Decimal("900")
        assert result.short_term_gain == Decimal("1000")
        assert result.long_term_gain == Decimal("0")

    def test_large_iso_spread_triggers_amt(self, calc):
        grant = _grant(GrantType.ISO, "1", "1001")
        settings = TaxSettings(other_income=Decimal("200000"), include_niit=False)
        result = calc.calculate_comprehensive_tax(
            grant, Decimal("1"), Decimal("1001"), 1000, settings=settings,
            exercise_date=date(2022, 1, 1), sale_date=date(2024, 1, 1),
        )
        assert result.amt_detail is not None
        assert result.amt_liability == result.amt_detail.amt
        assert result.federal_tax == (
            result.federal_ordinary_tax
            + result.federal_capital_gains_tax
            + result.medicare_tax
            + result.niit
            + result.amt_liability
        )

    def test_sale_before_exercise(self, calc):
        grant = _grant(GrantType.NSO, "1", "5")
        with pytest.raises(DataValidationError):
            calc.calculate_comprehensive_tax(
                grant, Decimal("1"), Decimal("10"), 100,
                exercise_date=date(2024, 6, 1), sale_date=date(2024, 1, 1),
            )

    def test_unknown_tax_year(self, calc):
        grant = _grant(GrantType.NSO, "1", "5")
        with pytest.raises(TaxTableError) as exc_info:
            calc.calculate_comprehensive_tax(
                grant, Decimal("1"), Decimal("10"), 100, settings=TaxSettings(tax_year=2019)
            )
        assert exc_info.value.tax_year == 2019

    def test_total_is_federal_plus_state(self, calc):
        grant = _grant(GrantType.NSO, "1", "5")
        result = calc.calculate_comprehensive_tax(
            grant,
            Decimal("1"),
            Decimal("10"),
            100,
            settings=TaxSettings(filing_status="MARRIED_FILING_JOINTLY"),
        )
        assert result.total_tax == result.federal_tax + result.state_tax
        assert result.state_tax == Decimal("900") * Decimal("0.133")


class TestAMTCredit:
    """Prior-year AMT credit applied against the tax on a sale."""

    def test_credit_offsets_incremental_tax(self, calc):
        grant = _grant(GrantType.NSO, "1", "10")
        base = TaxSettings(other_income=Decimal("400000"), include_niit=False)
        with_credit = base.model_copy(update={"prior_amt_credit": Decimal("1000000")})

        baseline = calc.calculate_comprehensive_tax(
            grant, Decimal("1"), Decimal("50"), 1000, settings=base
        )
        result = calc.calculate_comprehensive_tax(
            grant, Decimal("1"), Decimal("50"), 1000, settings=with_credit
        )
        # 9,000 of ordinary income: 35% regular vs 28% tentative minimum tax
        assert result.amt_credit_used == Decimal("630")
        assert result.federal_tax == baseline.federal_tax - Decimal("630")
        assert result.amt_credit_remaining < Decimal("1000000")
        assert result.amt_detail is None

    def test_no_credit_when_tmt_grows_faster(self, calc):
        grant = _grant(GrantType.NSO, "1", "10")
        settings = TaxSettings(prior_amt_credit=Decimal("50000"))
        baseline = calc.calculate_comprehensive_tax(grant, Decimal("1"), Decimal("50"), 100)
        result = calc.calculate_comprehensive_tax(
            grant, Decimal("1"), Decimal("50"), 100, settings=settings
        )
        assert result.amt_credit_used == Decimal("0")
        assert result.federal_tax == baseline.federal_tax
        assert result.amt_credit_remaining < Decimal("50000")

    def test_zero_prior_credit(self, calc):
        grant = _grant(GrantType.NSO, "1", "10")
        result = calc.calculate_comprehensive_tax(grant, Decimal("1"), Decimal("50"), 100)
        assert result.amt_credit_used == Decimal("0")
        assert result.amt_credit_remaining == Decimal("0")


class TestSurtaxes:
    def test_medicare_additional_above_threshold(self, calc):
        tax = calc.compute_medicare_tax(Decimal("100000"), Decimal("150000"), FilingStatus.SINGLE)
        assert tax == Decimal("1900")

    def test_medicare_below_threshold(self, calc):
        tax = calc.compute_medicare_tax(Decimal("10000"), Decimal("50000"), FilingStatus.SINGLE)
        assert tax == Decimal("145")

    def test_niit(self, calc):
        niit = calc.compute_niit(Decimal("100000"), Decimal("250000"), FilingStatus.SINGLE)
        assert niit == Decimal("1900")

    def test_niit_below_threshold(self, calc):
        assert calc.compute_niit(Decimal("10000"), Decimal("150000"), FilingStatus.SINGLE) == 0


class TestStateTax:
    def test_rate_by_code_and_name(self, calc):
        assert calc.state_rate("CA") == Decimal("0.133")
        assert calc.state_rate("new york") == Decimal("0.107")
        assert calc.state_rate("TX") == Decimal("0")

    def test_unknown_state_uses_default_with_warning(self, calc):
        assert calc.state_rate("Oregon") == Decimal("0.05")
        assert any("Oregon" in w for w in calc.warnings)

    def test_allocation(self, calc):
        settings = TaxSettings(state_allocation={"CA": Decimal("0.5"), "NY": Decimal("0.5")})
        lines = calc.compute_state_tax(Decimal("1000"), settings)
        assert [line.state for line in lines] == ["CA", "NY"]
        assert sum(line.tax for line in lines) == Decimal("120")
        assert calc.warnings == []

    def test_allocation_not_summing_to_one_warns(self, calc):
        settings = TaxSettings(state_allocation={"CA": Decimal("0.9")})
        calc.compute_state_tax(Decimal("1000"), settings)
        assert any("0.9" in w for w in calc.warnings)

    def test_negative_allocation(self, calc):
        settings = TaxSettings(state_allocation={"CA": Decimal("1.5"), "NY": Decimal("-0.5")})
        with pytest.raises(DataValidationError):
            calc.compute_state_tax(Decimal("1000"), settings)

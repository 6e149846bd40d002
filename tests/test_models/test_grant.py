"""Tests for grant and scenario models."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from equitycalc.models.enums import ExitType, GrantType, Timeframe, VestingSchedule
from equitycalc.models.grant import Grant, Scenario
from equitycalc.models.settings import TaxSettings


class TestGrant:
    def test_enum_coercion_is_case_insensitive(self):
        grant = Grant(
            company_name="Acme",
            grant_type="iso",
            shares=100,
            vesting_schedule="Quarterly",
            vesting_start_date="2023-01-01",
        )
        assert grant.grant_type == GrantType.ISO
        assert grant.vesting_schedule == VestingSchedule.QUARTERLY

    def test_annual_alias(self):
        grant = Grant(company_name="Acme", grant_type="RSU", shares=1, vesting_schedule="annual")
        assert grant.vesting_schedule == VestingSchedule.YEARLY

    def test_blank_schedule_defaults_to_monthly(self):
        grant = Grant(company_name="Acme", grant_type="RSU", shares=1, vesting_schedule="")
        assert grant.vesting_schedule == VestingSchedule.MONTHLY

    def test_unknown_grant_type(self):
        with pytest.raises(ValidationError):
            Grant(company_name="Acme", grant_type="ESPP", shares=1)

    def test_blank_dates_are_none(self):
        grant = Grant(company_name="Acme", grant_type="NSO", shares=1, vesting_cliff_date="")
        assert grant.vesting_cliff_date is None
        assert grant.cliff_date is None

    def test_default_cliff_and_end(self):
        grant = Grant(
            company_name="Acme", grant_type="NSO", shares=1, vesting_start_date=date(2020, 2, 29)
        )
        assert grant.cliff_date == date(2021, 2, 28)
        assert grant.end_date == date(2024, 2, 29)

    def test_explicit_dates_win(self):
        grant = Grant(
            company_name="Acme",
            grant_type="NSO",
            shares=1,
            vesting_start_date=date(2020, 1, 1),
            vesting_cliff_date=date(2020, 7, 1),
            vesting_end_date=date(2022, 1, 1),
        )
        assert grant.cliff_date == date(2020, 7, 1)
        assert grant.end_date == date(2022, 1, 1)

    def test_double_trigger_only_for_rsu(self):
        rsu = Grant(company_name="A", grant_type="RSU", shares=1, liquidity_event_only=True)
        iso = Grant(company_name="A", grant_type="ISO", shares=1, liquidity_event_only=True)
        assert rsu.is_double_trigger is True
        assert iso.is_double_trigger is False

    def test_label(self):
        saved = Grant(id="g1", company_name="Acme", grant_type="ISO", shares=1)
        unsaved = Grant(company_name="Acme", grant_type="ISO", shares=1)
        assert saved.label == "Acme ISO (g1)"
        assert unsaved.label == "Acme ISO"

    def test_numeric_id_becomes_string(self):
        grant = Grant(id=42, company_name="Acme", grant_type="ISO", shares=1)
        assert grant.id == "42"
        assert grant.label == "Acme ISO (42)"


class TestScenario:
    def test_defaults(self):
        scenario = Scenario(share_price=Decimal("10"), grant_id="g1")
        assert scenario.name == "Unnamed Scenario"
        assert scenario.exit_type == ExitType.CUSTOM
        assert scenario.shares_included is None

    def test_exit_type_case_insensitive(self):
        assert Scenario(share_price=1, grant_id="g1", exit_type="ipo").exit_type == ExitType.IPO
        assert Scenario(share_price=1, grant_id="g1", exit_type="").exit_type == ExitType.CUSTOM

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            Scenario(share_price=Decimal("-1"), grant_id="g1")

    def test_numeric_ids_become_strings(self):
        scenario = Scenario(id=7, share_price=Decimal("1"), grant_id=42)
        assert scenario.id == "7"
        assert scenario.grant_id == "42"

    def test_boolean_grant_id_rejected(self):
        with pytest.raises(ValidationError):
            Scenario(share_price=Decimal("1"), grant_id=True)


class TestSettings:
    def test_defaults(self):
        settings = TaxSettings()
        assert settings.ordinary_rate == Decimal("0.37")
        assert settings.long_term_rate == Decimal("0.20")
        assert settings.state_rate == Decimal("0.13")
        assert settings.include_amt is True

    def test_rate_bounds(self):
        with pytest.raises(ValidationError):
            TaxSettings(ordinary_rate=Decimal("1.5"))

    def test_timeframe_days(self):
        assert Timeframe.MONTH.days == 30
        assert Timeframe.ALL.days is None

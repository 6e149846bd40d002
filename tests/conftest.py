"""Shared test fixtures for equitycalc."""

import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from equitycalc.models.enums import GrantType, VestingSchedule
from equitycalc.models.grant import Grant, Scenario


@pytest.fixture
def monthly_iso() -> Grant:
    """4-year monthly ISO with a 1-year cliff."""
    return Grant(
        id="g-iso",
        company_name="Acme",
        grant_type=GrantType.ISO,
        shares=1000,
        strike_price=Decimal("1.00"),
        current_fmv=Decimal("10.00"),
        grant_date=date(2023, 1, 1),
        vesting_start_date=date(2023, 1, 1),
        vesting_cliff_date=date(2024, 1, 1),
        vesting_end_date=date(2027, 1, 1),
        vesting_schedule=VestingSchedule.MONTHLY,
    )


@pytest.fixture
def nso_grant() -> Grant:
    return Grant(
        id="g-nso",
        company_name="Acme",
        grant_type=GrantType.NSO,
        shares=100,
        strike_price=Decimal("1"),
        current_fmv=Decimal("5"),
        grant_date=date(2023, 1, 1),
        vesting_start_date=date(2023, 1, 1),
    )


@pytest.fixture
def rsu_grant() -> Grant:
    return Grant(
        id="g-rsu",
        company_name="Beta",
        grant_type=GrantType.RSU,
        shares=400,
        current_fmv=Decimal("5"),
        grant_date=date(2022, 1, 1),
        vesting_start_date=date(2022, 1, 1),
    )


@pytest.fixture
def double_trigger_rsu() -> Grant:
    return Grant(
        id="g-dt",
        company_name="Gamma",
        grant_type=GrantType.RSU,
        shares=1000,
        current_fmv=Decimal("8"),
        grant_date=date(2023, 1, 1),
        vesting_start_date=date(2023, 1, 1),
        vesting_cliff_date=date(2024, 1, 1),
        vesting_end_date=date(2027, 1, 1),
        liquidity_event_only=True,
    )


@pytest.fixture
def ipo_scenario() -> Scenario:
    return Scenario(
        id="s-ipo",
        name="IPO at $50",
        exit_type="IPO",
        share_price=Decimal("50"),
        grant_id="g-iso",
    )


@pytest.fixture
def records_data() -> dict:
    return {
        "grants": [
            {
                "id": "g-iso",
                "company_name": "Acme",
                "grant_type": "ISO",
                "shares": 1000,
                "strike_price": 1.0,
                "current_fmv": 10.0,
                "grant_date": "2023-01-01",
                "vesting_start_date": "2023-01-01",
                "vesting_cliff_date": "2024-01-01",
                "vesting_end_date": "2027-01-01",
                "vesting_schedule": "monthly",
            },
            {
                "id": "g-rsu",
                "company_name": "Beta",
                "grant_type": "RSU",
                "shares": 400,
                "current_fmv": 5.0,
                "vesting_start_date": "2022-01-01",
                "vesting_schedule": "quarterly",
            },
        ],
        "scenarios": [
            {
                "id": "s-ipo",
                "name": "IPO",
                "exit_type": "IPO",
                "share_price": 50,
                "grant_id": "g-iso",
            },
            {
                "id": "s-acq",
                "name": "Acquisition",
                "exit_type": "acquisition",
                "share_price": 20,
                "grant_id": "g-iso",
                "shares_included": 500,
            },
        ],
    }


@pytest.fixture
def records_file(tmp_path: Path, records_data: dict) -> Path:
    path = tmp_path / "records.json"
    path.write_text(json.dumps(records_data))
    return path

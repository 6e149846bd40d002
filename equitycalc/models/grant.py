"""Grant and scenario records."""

from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field, field_validator

from equitycalc.models.enums import ExitType, GrantType, VestingSchedule

DEFAULT_CLIFF = relativedelta(years=1)
DEFAULT_VESTING_PERIOD = relativedelta(years=4)


def _id_str(value: object) -> object:
    # persisted rows may carry integer primary keys
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class Grant(BaseModel):
    """An equity grant as stored by the application.

    Field names match the persisted rows so records can be loaded directly.
    Date-range and share-count invariants are checked by the vesting
    calculator rather than here, so malformed rows still load.
    """

    id: str | None = None
    company_name: str
    grant_type: GrantType
    shares: int
    strike_price: Decimal = Decimal("0")
    current_fmv: Decimal = Decimal("0")
    grant_date: date | None = None
    vesting_start_date: date | None = None
    vesting_cliff_date: date | None = None
    vesting_end_date: date | None = None
    vesting_schedule: VestingSchedule = VestingSchedule.MONTHLY
    liquidity_event_only: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _numeric_id_to_str(cls, value: object) -> object:
        return _id_str(value)

    @field_validator("grant_type", mode="before")
    @classmethod
    def _coerce_grant_type(cls, value: object) -> object:
        return GrantType(value) if isinstance(value, str) else value

    @field_validator("vesting_schedule", mode="before")
    @classmethod
    def _coerce_schedule(cls, value: object) -> object:
        if value is None or value == "":
            return VestingSchedule.MONTHLY
        return VestingSchedule(value) if isinstance(value, str) else value

    @field_validator(
        "grant_date",
        "vesting_start_date",
        "vesting_cliff_date",
        "vesting_end_date",
        mode="before",
    )
    @classmethod
    def _blank_date_is_none(cls, value: object) -> object:
        return None if value == "" else value

    @property
    def cliff_date(self) -> date | None:
        if self.vesting_cliff_date is not None:
            return self.vesting_cliff_date
        if self.vesting_start_date is None:
            return None
        return self.vesting_start_date + DEFAULT_CLIFF

    @property
    def end_date(self) -> date | None:
        if self.vesting_end_date is not None:
            return self.vesting_end_date
        if self.vesting_start_date is None:
            return None
        return self.vesting_start_date + DEFAULT_VESTING_PERIOD

    @property
    def is_double_trigger(self) -> bool:
        return self.grant_type == GrantType.RSU and self.liquidity_event_only

    @property
    def label(self) -> str:
        return f"{self.company_name} {self.grant_type.value}" + (
            f" ({self.id})" if self.id else ""
        )


class Scenario(BaseModel):
    id: str | None = None
    name: str = "Unnamed Scenario"
    exit_type: ExitType = ExitType.CUSTOM
    exit_date: date | None = None
    share_price: Decimal = Field(ge=0)
    grant_id: str
    shares_included: int | None = None

    @field_validator("id", "grant_id", mode="before")
    @classmethod
    def _numeric_id_to_str(cls, value: object) -> object:
        return _id_str(value)

    @field_validator("exit_type", mode="before")
    @classmethod
    def _coerce_exit_type(cls, value: object) -> object:
        if value is None or value == "":
            return ExitType.CUSTOM
        return ExitType(value) if isinstance(value, str) else value

    @field_validator("exit_date", mode="before")
    @classmethod
    def _blank_date_is_none(cls, value: object) -> object:
        return None if value == "" else value

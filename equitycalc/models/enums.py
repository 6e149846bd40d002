"""Enumerations for equitycalc."""

from enum import StrEnum


class GrantType(StrEnum):
    ISO = "ISO"
    NSO = "NSO"
    RSU = "RSU"

    @classmethod
    def _missing_(cls, value: object) -> "GrantType | None":
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        return None


class VestingSchedule(StrEnum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CLIFF = "cliff"

    @classmethod
    def _missing_(cls, value: object) -> "VestingSchedule | None":
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == "annual":
                return cls.YEARLY
            for member in cls:
                if member.value == lowered:
                    return member
        return None

    @property
    def period_months(self) -> int | None:
        """Months between vest dates, or None when everything vests at the end."""
        return {
            VestingSchedule.MONTHLY: 1,
            VestingSchedule.QUARTERLY: 3,
            VestingSchedule.YEARLY: 12,
        }.get(self)


class ExitType(StrEnum):
    IPO = "IPO"
    ACQUISITION = "Acquisition"
    SECONDARY = "Secondary"
    CUSTOM = "Custom"

    @classmethod
    def _missing_(cls, value: object) -> "ExitType | None":
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None


class FilingStatus(StrEnum):
    SINGLE = "SINGLE"
    MFJ = "MARRIED_FILING_JOINTLY"
    MFS = "MARRIED_FILING_SEPARATELY"
    HOH = "HEAD_OF_HOUSEHOLD"


class HoldingPeriod(StrEnum):
    SHORT_TERM = "SHORT_TERM"
    LONG_TERM = "LONG_TERM"


class DispositionType(StrEnum):
    QUALIFYING = "QUALIFYING"
    DISQUALIFYING = "DISQUALIFYING"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class Timeframe(StrEnum):
    ALL = "all"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    @property
    def days(self) -> int | None:
        return {
            Timeframe.MONTH: 30,
            Timeframe.QUARTER: 90,
            Timeframe.YEAR: 365,
        }.get(self)


class MarketConditions(StrEnum):
    FAVORABLE = "favorable"
    NEUTRAL = "neutral"
    UNFAVORABLE = "unfavorable"

    @classmethod
    def _missing_(cls, value: object) -> "MarketConditions | None":
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None

    @property
    def risk_score(self) -> int:
        return {
            MarketConditions.FAVORABLE: 1,
            MarketConditions.NEUTRAL: 2,
            MarketConditions.UNFAVORABLE: 3,
        }[self]

"""Custom exceptions for equitycalc."""

from datetime import date


class EquityCalcError(Exception):
    """Base exception for equity calculation errors."""

    kind = "equity_calc_error"


class InvalidDateRangeError(EquityCalcError):
    """Raised when a grant's vesting dates are missing or out of order."""

    kind = "invalid_date_range"

    def __init__(
        self,
        grant_id: str | None,
        start: date | None,
        cliff: date | None,
        end: date | None,
    ):
        self.grant_id = grant_id
        self.start = start
        self.cliff = cliff
        self.end = end
        super().__init__(
            f"Invalid date range for grant {grant_id or '<unsaved>'}: "
            f"start={start}, cliff={cliff}, end={end}"
        )


class NonPositiveShareCountError(EquityCalcError):
    """Raised when a share count is zero or negative."""

    kind = "non_positive_share_count"

    def __init__(self, field: str, shares: int):
        self.field = field
        self.shares = shares
        super().__init__(f"Share count '{field}' must be positive, got {shares}")


class DataValidationError(EquityCalcError):
    """Raised when input data fails validation."""

    kind = "invalid_field"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Validation error on '{field}': {message}")


class GrantNotFoundError(EquityCalcError):
    """Raised when a scenario references a grant that doesn't exist."""

    kind = "grant_not_found"

    def __init__(self, grant_id: str, scenario_name: str | None = None):
        self.grant_id = grant_id
        self.scenario_name = scenario_name
        where = f" (scenario '{scenario_name}')" if scenario_name else ""
        super().__init__(f"Grant not found: {grant_id}{where}")


class TaxTableError(EquityCalcError):
    """Raised when no bracket table exists for a tax year and filing status."""

    kind = "missing_tax_table"

    def __init__(self, table: str, tax_year: int, filing_status: str):
        self.table = table
        self.tax_year = tax_year
        self.filing_status = filing_status
        super().__init__(f"No {table} table for {tax_year}/{filing_status}")


class RecordLoadError(EquityCalcError):
    """Raised when a grant/scenario record file cannot be loaded."""

    kind = "record_load"

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"Could not load records from {source}: {message}")

"""JSON record loader for grants and scenarios.

A record file holds the rows the web application persists:

    {"grants": [{...}, ...], "scenarios": [{...}, ...]}

A bare list is read as a list of grants.
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

from pydantic import ValidationError

from equitycalc.engines.vesting import VestingCalculator
from equitycalc.exceptions import EquityCalcError, RecordLoadError
from equitycalc.models.grant import Grant, Scenario

logger = logging.getLogger(__name__)


@dataclass
class RecordSet:
    """Grants and scenarios loaded from one source."""

    grants: list[Grant] = field(default_factory=list)
    scenarios: list[Scenario] = field(default_factory=list)

    def grant(self, grant_id: str) -> Grant | None:
        return next((g for g in self.grants if g.id == grant_id), None)


class RecordLoader:
    """Reads record files into typed models."""

    def load(self, file_path: Path) -> RecordSet:
        """Read a JSON record file and return typed models."""
        if not file_path.exists():
            raise RecordLoadError(str(file_path), "file not found")
        try:
            raw = json.loads(file_path.read_text(), parse_float=Decimal)
        except json.JSONDecodeError as exc:
            raise RecordLoadError(str(file_path), f"invalid JSON: {exc}") from exc
        records = self.parse(raw, source=str(file_path))
        logger.info(
            "Loaded %d grants and %d scenarios from %s",
            len(records.grants), len(records.scenarios), file_path,
        )
        return records

    def parse(self, raw: dict | list, source: str = "<memory>") -> RecordSet:
        if isinstance(raw, list):
            raw = {"grants": raw}
        if not isinstance(raw, dict):
            raise RecordLoadError(source, "expected an object or a list of grants")

        grants = [
            self._build(Grant, row, source, f"grants[{i}]")
            for i, row in enumerate(raw.get("grants") or [])
        ]
        scenarios = [
            self._build(Scenario, row, source, f"scenarios[{i}]")
            for i, row in enumerate(raw.get("scenarios") or [])
        ]
        return RecordSet(grants=grants, scenarios=scenarios)

    @staticmethod
    def _build(model, row, source: str, where: str):
        if not isinstance(row, dict):
            raise RecordLoadError(source, f"{where} is not an object")
        try:
            return model.model_validate(row)
        except (ValidationError, ValueError) as exc:
            raise RecordLoadError(source, f"{where}: {exc}") from exc

    def validate(self, records: RecordSet) -> list[str]:
        """Check loaded records for consistency. Returns error messages."""
        errors = []
        vesting = VestingCalculator()

        seen: set[str] = set()
        for grant in records.grants:
            if grant.id is not None:
                if grant.id in seen:
                    errors.append(f"Grant {grant.id}: duplicate id")
                seen.add(grant.id)
            try:
                vesting.validate(grant)
            except EquityCalcError as exc:
                errors.append(f"Grant {grant.label}: {exc}")

        for scenario in records.scenarios:
            grant = records.grant(scenario.grant_id)
            if grant is None:
                errors.append(
                    f"Scenario '{scenario.name}': grant {scenario.grant_id} not found"
                )
                continue
            if scenario.shares_included is not None:
                if scenario.shares_included <= 0:
                    errors.append(f"Scenario '{scenario.name}': shares_included must be > 0")
                elif scenario.shares_included > grant.shares:
                    errors.append(
                        f"Scenario '{scenario.name}': shares_included exceeds "
                        f"the grant's {grant.shares} shares"
                    )
        return errors

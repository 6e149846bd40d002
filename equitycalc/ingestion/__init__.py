"""Loading grant and scenario records."""

from equitycalc.ingestion.records import RecordLoader, RecordSet

__all__ = ["RecordLoader", "RecordSet"]

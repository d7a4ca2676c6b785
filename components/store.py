"""Batch-owned store of records keyed by identifier."""

import logging
from typing import Iterator, Optional

from components.auditing import ErrorCategory, ErrorTracker
from components.models import Record

logger = logging.getLogger(__name__)


class RecordStore:
    """Identifier to record map owned by a single batch run.

    Passed by reference to each pass of the pipeline. Insertion order is
    preserved and is the corpus order used for tie-breaking elsewhere.
    Entries sharing an identifier are merged field by field, later
    provided values winning, and the record is rebuilt from the merged
    fields so derived data reflects the merge.
    """

    def __init__(self, errors: Optional[ErrorTracker] = None) -> None:
        self._fields: dict[str, dict[str, str]] = {}
        self._records: dict[str, Record] = {}
        self.errors = errors or ErrorTracker()
        self.merged = 0

    def add(self, fields: dict[str, str]) -> Record:
        """Add or merge one entry given as a canonical field map.

        Args:
            fields: Canonical fields; empty values are not "provided"

        Returns:
            The (possibly merged) record now held by the store

        Raises:
            ValueError: If the entry has no identifier
        """
        provided = {k: v for k, v in fields.items() if v not in (None, "")}
        record_id = (provided.get("id") or "").strip()
        if not record_id:
            raise ValueError("Cannot store an entry without an identifier")
        provided["id"] = record_id

        existing = self._fields.get(record_id)
        if existing is not None:
            overridden = sorted(
                k for k, v in provided.items()
                if k in existing and existing[k] != v
            )
            existing.update(provided)
            self.merged += 1
            self.errors.record_error(
                ErrorCategory.DUPLICATE_IDENTIFIER,
                f"Merged duplicate entry for {record_id}",
                {"record_id": record_id, "overridden_fields": overridden},
            )
            provided = existing
        else:
            self._fields[record_id] = provided

        record = Record.from_fields(provided)
        self._records[record_id] = record
        return record

    def get(self, record_id: str) -> Optional[Record]:
        """Get a record by identifier."""
        return self._records.get(record_id)

    def fields(self, record_id: str) -> dict[str, str]:
        """Copy of the merged raw fields behind a record."""
        return dict(self._fields.get(record_id, {}))

    def ids(self) -> list[str]:
        """All identifiers in corpus order."""
        return list(self._records)

    def records(self) -> list[Record]:
        """All records in corpus order."""
        return list(self._records.values())

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._records.values()))

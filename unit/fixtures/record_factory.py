"""Factory for creating test records and raw entries."""

from typing import Optional

from components.models import Record
from components.store import RecordStore
from unit.fixtures import Docket


class RecordFactory:
    """Factory for creating canonical field maps, records and stores."""

    @staticmethod
    def create_fields(
        record_id: str = Docket.BILL.value,
        subject: str = "Proyecto de Ley de protección del medio ambiente.",
        **kwargs,
    ) -> dict[str, str]:
        """Create a canonical field map.

        Keyword arguments override or add canonical fields; None drops one.
        """
        fields = {
            "id": record_id,
            "subject": subject,
            "type": "Proyecto de ley",
            "author": "Gobierno",
            "presentation_date": "15/01/2024",
        }
        for key, value in kwargs.items():
            if value is None:
                fields.pop(key, None)
            else:
                fields[key] = value
        return fields

    @staticmethod
    def create_record(
        record_id: str = Docket.BILL.value,
        subject: str = "Proyecto de Ley de protección del medio ambiente.",
        **kwargs,
    ) -> Record:
        """Create a record through the same path extraction uses."""
        return Record.from_fields(
            RecordFactory.create_fields(record_id, subject, **kwargs)
        )

    @staticmethod
    def create_store(
        subjects: Optional[dict[str, str]] = None, **shared
    ) -> RecordStore:
        """Create a store holding one record per (id, subject) pair."""
        store = RecordStore()
        subjects = subjects or {
            Docket.BILL.value: "Ley de protección del medio ambiente",
            Docket.PROPOSAL.value: "Ley de protección del medioambiente",
            Docket.DECREE.value: "Real Decreto-ley de medidas urgentes fiscales",
        }
        for record_id, subject in subjects.items():
            store.add(RecordFactory.create_fields(record_id, subject, **shared))
        return store

"""Stage history models for auditable classification tracking."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass(frozen=True)
class StageHistoryEntry:
    """Immutable record of a stage transition.

    The reason is frozen as canonical JSON when the entry is created, so
    later changes to the classifier's reason dict never leak into history.
    """

    entry_id: str
    record_id: str
    stage: str
    step: int
    reason_json: str
    recorded_at: datetime

    @staticmethod
    def new(
        record_id: str,
        stage: str,
        step: int,
        reason: dict[str, Any],
        recorded_at: Optional[datetime] = None,
    ) -> StageHistoryEntry:
        """Create a new history entry."""
        return StageHistoryEntry(
            entry_id=str(uuid.uuid4()),
            record_id=record_id,
            stage=stage,
            step=step,
            reason_json=json.dumps(reason, sort_keys=True, ensure_ascii=False),
            recorded_at=recorded_at or datetime.now(timezone.utc),
        )

    @property
    def reason(self) -> dict[str, Any]:
        """A fresh copy of the reason snapshot."""
        return json.loads(self.reason_json)

    def same_state(self, stage: str, step: int) -> bool:
        """Whether this entry already records the given stage and step."""
        return self.stage == stage and self.step == step

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "entry_id": self.entry_id,
            "record_id": self.record_id,
            "stage": self.stage,
            "step": self.step,
            "reason": self.reason,
            "recorded_at": self.recorded_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> StageHistoryEntry:
        """Create a StageHistoryEntry from a dictionary."""
        return StageHistoryEntry(
            entry_id=data["entry_id"],
            record_id=data["record_id"],
            stage=data["stage"],
            step=int(data["step"]),
            reason_json=json.dumps(
                data.get("reason", {}), sort_keys=True, ensure_ascii=False
            ),
            recorded_at=datetime.fromisoformat(data["recorded_at"]),
        )

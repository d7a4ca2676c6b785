"""Core data models for the procedural timeline grammar."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


DEFAULT_EVENT_LABEL = "Tramitación"


class LineKind(str, Enum):
    """Classification of a single line of procedural narrative."""

    RANGE = "RANGE"  # desde <date> hasta <date>
    OPEN = "OPEN"  # desde <date>
    LABEL = "LABEL"  # no date keywords, names the current event
    NOISE = "NOISE"  # date keywords without a usable date


@dataclass
class LineRule:
    """Definition of a line kind with the patterns that recognise it.

    Rules are tried in ascending priority; the first rule whose pattern
    matches decides the kind of the line. Named groups ``start`` and
    ``end`` carry the raw dates of range lines.
    """

    kind: LineKind
    patterns: list[re.Pattern]
    priority: int = 100  # Lower = higher priority
    metadata: dict[str, Any] = field(default_factory=dict)

    def match(self, line: str) -> Optional[re.Match]:
        """Try to match a line against this rule's patterns.

        Args:
            line: A single trimmed line of procedural text

        Returns:
            Match object if successful, None otherwise
        """
        for pattern in self.patterns:
            match = pattern.search(line)
            if match:
                return match
        return None


@dataclass(frozen=True)
class TimelineLine:
    """A classified token produced by the line tokenizer."""

    kind: LineKind
    text: str
    start: Optional[str] = None
    end: Optional[str] = None


@dataclass(frozen=True)
class TimelineEvent:
    """One dated event of a record's procedure history."""

    event: str
    start_date: Optional[str]
    end_date: Optional[str]
    raw_line: str

    @property
    def key(self) -> tuple[str, Optional[str], Optional[str]]:
        """Identity used for de-duplication."""
        return (self.event, self.start_date, self.end_date)

    def to_dict(self) -> dict[str, Optional[str]]:
        """Plain representation for downstream collaborators."""
        return {
            "event": self.event,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "raw_line": self.raw_line,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> TimelineEvent:
        """Rebuild an event from its plain representation."""
        return TimelineEvent(
            event=str(data.get("event") or DEFAULT_EVENT_LABEL),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            raw_line=str(data.get("raw_line", "")),
        )

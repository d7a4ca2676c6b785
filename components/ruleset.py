"""Ordered ruleset mapping a record's status text to a lifecycle stage.

Stages progress ``proposed(1) -> debating(2) -> committee(3) ->
voting/passed(4) -> published(5)``; ``rejected``, ``withdrawn`` and
``closed`` are terminal and sit outside that progression.

The rules are evaluated top-down and the first true predicate wins. The
order of ``STAGE_RULES`` is the behaviour: approval is checked before
rejection, so a record whose result mentions both is ``passed``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Optional, Union

from components.auditing import ErrorCategory, ErrorTracker, record_context
from components.models import Record, Stage
from history.artifacts import StageHistoryEntry
from history.repository import InMemoryStageHistory, StageHistoryRepository

logger = logging.getLogger(__name__)


APPROVAL_KEYWORDS = ("aprobad",)
REJECTION_KEYWORDS = ("rechazad",)
WITHDRAWAL_KEYWORDS = ("retirad",)
GAZETTE_TEXT_KEYWORDS = ("boe", "publicación", "publicacion", "entrada en vigor")
VOTING_KEYWORDS = (
    "votación",
    "votacion",
    "voto",
    "aprobación",
    "aprobacion",
    "senado",
)
COMMITTEE_KEYWORDS = (
    "comisión",
    "comision",
    "ponencia",
    "dictamen",
    "enmiendas parciales",
)
DEBATE_KEYWORDS = (
    "totalidad",
    "debate en el pleno",
    "toma en consideración",
    "toma en consideracion",
    "pleno",
)
CLOSED_KEYWORDS = ("cerrado",)


def _includes_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


@dataclass(frozen=True)
class StageSignals:
    """Boolean signals read from a record before rule evaluation."""

    has_approval: bool
    has_rejection: bool
    has_withdrawal: bool
    has_gazette_text: bool  # heuristic, reported in reasons only
    has_verified_publication: bool
    has_voting: bool
    has_committee: bool
    has_debate: bool
    is_closed: bool

    @staticmethod
    def from_record(record: Record) -> StageSignals:
        """Compute every signal for a record.

        Outcome keywords are read from the status text (processing result
        and current situation); process keywords from all status and
        procedure fields; the closed marker from the current situation.
        """
        status = record.status_text
        blob = record.procedure_blob
        situation = (record.status or "").lower()
        return StageSignals(
            has_approval=_includes_any(status, APPROVAL_KEYWORDS),
            has_rejection=_includes_any(status, REJECTION_KEYWORDS),
            has_withdrawal=_includes_any(status, WITHDRAWAL_KEYWORDS),
            has_gazette_text=_includes_any(blob, GAZETTE_TEXT_KEYWORDS),
            has_verified_publication=record.publication.is_verified,
            has_voting=_includes_any(blob, VOTING_KEYWORDS),
            has_committee=_includes_any(blob, COMMITTEE_KEYWORDS),
            has_debate=_includes_any(blob, DEBATE_KEYWORDS),
            is_closed=_includes_any(situation, CLOSED_KEYWORDS),
        )

    def to_dict(self) -> dict[str, bool]:
        """Signals in declaration order."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def fired(self) -> list[str]:
        """Names of the signals that are true."""
        return [name for name, value in self.to_dict().items() if value]


@dataclass(frozen=True)
class StageRule:
    """One (predicate, stage, step) entry of the ordered ruleset."""

    name: str
    predicate: Callable[[StageSignals], bool]
    stage: Stage
    step: int


STAGE_RULES: tuple[StageRule, ...] = (
    StageRule("approval", lambda s: s.has_approval, Stage.PASSED, 4),
    StageRule("rejection", lambda s: s.has_rejection, Stage.REJECTED, 2),
    StageRule("withdrawal", lambda s: s.has_withdrawal, Stage.WITHDRAWN, 1),
    StageRule(
        "verified_publication",
        lambda s: s.has_verified_publication,
        Stage.PUBLISHED,
        5,
    ),
    StageRule("voting", lambda s: s.has_voting, Stage.VOTING, 4),
    StageRule("committee", lambda s: s.has_committee, Stage.COMMITTEE, 3),
    StageRule("debate", lambda s: s.has_debate, Stage.DEBATING, 2),
    StageRule("closed", lambda s: s.is_closed, Stage.CLOSED, 1),
    StageRule("default", lambda s: True, Stage.PROPOSED, 1),
)


@dataclass(frozen=True)
class StageResult:
    """Result of classifying one record."""

    stage: Stage
    step: int
    reason: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "stage": self.stage.value,
            "step": self.step,
            "reason": self.reason,
        }


def classify(
    record: Record, rules: tuple[StageRule, ...] = STAGE_RULES
) -> StageResult:
    """Classify a record with the first rule whose predicate holds.

    Args:
        record: Record to classify
        rules: Ordered ruleset (the default must end with a catch-all)

    Returns:
        Stage, step and a reason naming the rule and every signal
    """
    signals = StageSignals.from_record(record)
    for rule in rules:
        if rule.predicate(signals):
            reason = {
                "rule": rule.name,
                "fired": signals.fired(),
                "signals": signals.to_dict(),
            }
            return StageResult(rule.stage, rule.step, reason)
    raise ValueError("Stage ruleset has no catch-all rule")


DateLike = Union[date, datetime, str, None]


def _as_sort_key(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value).replace(tzinfo=None)
        except ValueError:
            return datetime.min
    return datetime.min


def pick_latest_stage(
    classifications: Iterable[tuple[DateLike, StageResult]],
) -> StageResult:
    """The classification with the latest date.

    Undated classifications sort first; equal dates keep input order, so
    the last one given wins.
    """
    dated = list(classifications)
    if not dated:
        return StageResult(Stage.PROPOSED, 1, {"empty": True})
    ordered = sorted(dated, key=lambda item: _as_sort_key(item[0]))
    return ordered[-1][1]


class StageClassifier:
    """Classifies records and keeps their transition history."""

    def __init__(
        self,
        history: Optional[StageHistoryRepository] = None,
        errors: Optional[ErrorTracker] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rules: tuple[StageRule, ...] = STAGE_RULES,
    ) -> None:
        self.history = history if history is not None else InMemoryStageHistory()
        self.errors = errors or ErrorTracker()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.rules = rules
        self.transitions = 0

    def _record_transition(self, record_id: str, result: StageResult) -> None:
        try:
            last = self.history.latest(record_id)
            if last is not None and last.same_state(
                result.stage.value, result.step
            ):
                return
            self.history.append(StageHistoryEntry.new(
                record_id=record_id,
                stage=result.stage.value,
                step=result.step,
                reason=result.reason,
                recorded_at=self.clock(),
            ))
            self.transitions += 1
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.errors.record_error(
                ErrorCategory.HISTORY_WRITE,
                f"Could not record stage history for {record_id}",
                {"stage": result.stage.value, "step": result.step},
                exception=e,
            )

    def classify(self, record: Record) -> StageResult:
        """Classify a record, store the result on it and log transitions."""
        with record_context(record.id):
            result = classify(record, self.rules)
            record.stage = result.stage
            record.step = result.step
            record.stage_reason = result.reason
            self._record_transition(record.id, result)
        return result

    def classify_all(self, records: Iterable[Record]) -> dict[str, int]:
        """Classify records in order.

        Returns:
            Number of records per stage
        """
        counts = {stage.value: 0 for stage in Stage}
        for record in records:
            counts[self.classify(record).stage.value] += 1
        logger.info("Stage classification: %s (%d transitions recorded)",
                    {k: v for k, v in counts.items() if v}, self.transitions)
        return counts

"""Line tokenizer and classifier that turn procedure text into events.

``build_timeline`` is the only entry point callers should use; the
tokenizer and rules behind it can be replaced without touching them.
"""

import logging
from datetime import date
from typing import Iterable, Iterator, Optional

from timeline.extractors import normalize_date, parse_date
from timeline.models import (
    DEFAULT_EVENT_LABEL,
    LineKind,
    LineRule,
    TimelineEvent,
    TimelineLine,
)
from timeline.nodes import LINE_RULES

logger = logging.getLogger(__name__)


def tokenize_lines(text: Optional[str]) -> list[str]:
    """Split narrative text into trimmed, non-blank lines."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


class LineClassifier:
    """Classifies tokenized lines using an ordered set of line rules."""

    def __init__(self, rules: Optional[list[LineRule]] = None):
        """Initialize classifier.

        Args:
            rules: List of LineRule definitions (uses default if None)
        """
        self.rules = sorted(rules or LINE_RULES, key=lambda r: r.priority)

    def classify(self, line: str) -> TimelineLine:
        """Classify a single line.

        Args:
            line: Trimmed line of procedural text

        Returns:
            TimelineLine carrying the kind and any raw dates
        """
        for rule in self.rules:
            match = rule.match(line)
            if not match:
                continue
            groups = match.groupdict()
            return TimelineLine(
                kind=rule.kind,
                text=line,
                start=groups.get("start"),
                end=groups.get("end"),
            )
        return TimelineLine(kind=LineKind.NOISE, text=line)

    def iter_events(self, lines: Iterable[str]) -> Iterator[TimelineEvent]:
        """Yield events for dated lines, labelled by the preceding label."""
        current = DEFAULT_EVENT_LABEL
        for line in lines:
            token = self.classify(line)
            if token.kind == LineKind.LABEL:
                current = token.text
            elif token.kind in (LineKind.RANGE, LineKind.OPEN):
                yield TimelineEvent(
                    event=current,
                    start_date=normalize_date(token.start),
                    end_date=normalize_date(token.end),
                    raw_line=token.text,
                )
            else:
                logger.debug("Ignoring undated boundary line: %s", line)


def _sort_key(event: TimelineEvent) -> tuple[bool, date]:
    parsed = parse_date(event.start_date)
    return (parsed is None, parsed or date.max)


def clean_events(events: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    """Drop repeated (event, start, end) triples and sort by start date.

    The sort is stable, so events sharing a start date keep narrative order
    and undated events go last.
    """
    seen: set[tuple] = set()
    unique = []
    for event in events:
        if event.key in seen:
            continue
        seen.add(event.key)
        unique.append(event)
    return sorted(unique, key=_sort_key)


_DEFAULT_CLASSIFIER = LineClassifier()


def build_timeline(
    text: Optional[str], classifier: Optional[LineClassifier] = None
) -> list[TimelineEvent]:
    """Derive the ordered timeline of a record from its procedure text.

    Args:
        text: Free-text procedure history (may be None or empty)
        classifier: Optional replacement classifier

    Returns:
        De-duplicated events sorted by start date
    """
    classifier = classifier or _DEFAULT_CLASSIFIER
    return clean_events(classifier.iter_events(tokenize_lines(text)))

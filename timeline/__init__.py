"""Procedural timeline grammar for Congress initiative exports.

Main components:
- models: Core data structures (TimelineEvent, LineRule)
- nodes: Line kinds and the patterns that recognise them
- extractors: Date parsing helpers
- parser: Line tokenizer, classifier and ``build_timeline``
"""

from timeline.models import LineKind, LineRule, TimelineEvent
from timeline.parser import build_timeline, LineClassifier

__all__ = [
    "LineKind",
    "LineRule",
    "TimelineEvent",
    "build_timeline",
    "LineClassifier",
]

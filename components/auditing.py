"""
Structured error accounting for batch runs.

Nothing in the pipeline surfaces failures to an end user; every skipped
document, discarded entry or failed history write becomes a structured
log event plus a counter, and the batch driver hands the counters back to
its caller.

Artifacts optionally written per run:
- errors.json: Structured error ledger with context
"""

from __future__ import annotations

import json
import logging
import threading
import traceback
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Failure taxonomy of a batch run."""

    OVERSIZED_DOCUMENT = "oversized_document"
    PARSE_FAILURE = "parse_failure"
    INVALID_ENTRY = "invalid_entry"
    DUPLICATE_IDENTIFIER = "duplicate_identifier"
    CORPUS_FETCH = "corpus_fetch"
    HISTORY_WRITE = "history_write"


@dataclass
class ErrorEntry:
    """Structured error record."""
    timestamp: str
    error_type: str
    message: str
    context: dict
    stack_trace: Optional[str] = None
    record_id: Optional[str] = None
    recoverable: bool = True


class _ContextManager:
    """Thread-local holder of the record currently being processed."""

    def __init__(self) -> None:
        self._local = threading.local()

    def set_record(self, record_id: Optional[str]) -> None:
        """Set the current record for this thread."""
        self._local.record_id = record_id

    def get_record(self) -> Optional[str]:
        """Get the current record for this thread."""
        return getattr(self._local, "record_id", None)


_context = _ContextManager()


@contextmanager
def record_context(record_id: str):
    """Context manager to tag errors with the record being processed."""
    _context.set_record(record_id)
    try:
        yield
    finally:
        _context.set_record(None)


@dataclass
class ErrorTracker:
    """Collects error entries and per-category counters."""

    errors: list[ErrorEntry] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_error(
        self,
        category: ErrorCategory,
        message: str,
        context: Optional[dict] = None,
        exception: Optional[BaseException] = None,
        recoverable: bool = True,
    ) -> None:
        """Record an error and emit it as a log event.

        Warning-level for everything except duplicate identifiers, which
        are an expected part of merging exports and logged at info.
        """
        entry = ErrorEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            error_type=category.value,
            message=message,
            context=dict(context or {}),
            stack_trace=(
                "".join(
                    traceback.format_exception(
                        type(exception), exception, exception.__traceback__
                    )
                )
                if exception
                else None
            ),
            record_id=_context.get_record(),
            recoverable=recoverable,
        )
        with self.lock:
            self.errors.append(entry)
        level = (
            logging.INFO
            if category == ErrorCategory.DUPLICATE_IDENTIFIER
            else logging.WARNING
        )
        logger.log(level, "[%s] %s %s", category.value, message, entry.context)

    def count(self, category: Optional[ErrorCategory] = None) -> int:
        """Number of recorded errors, optionally for one category."""
        with self.lock:
            if category is None:
                return len(self.errors)
            return sum(1 for e in self.errors if e.error_type == category.value)

    def counts(self) -> dict[str, int]:
        """Counter of errors per category, every category present."""
        with self.lock:
            tally = Counter(e.error_type for e in self.errors)
        return {c.value: tally.get(c.value, 0) for c in ErrorCategory}

    def finalize(self) -> dict:
        """Generate the final error ledger."""
        with self.lock:
            return {
                "generated_at": datetime.now(timezone.utc).isoformat(),
                "total_errors": len(self.errors),
                "recoverable_errors": sum(
                    1 for e in self.errors if e.recoverable
                ),
                "fatal_errors": sum(
                    1 for e in self.errors if not e.recoverable
                ),
                "errors": [asdict(e) for e in self.errors],
            }

    def write(self, run_dir: Path) -> None:
        """Write error ledger to disk."""
        try:
            run_dir.mkdir(parents=True, exist_ok=True)
            ledger_path = run_dir / "errors.json"
            with open(ledger_path, "w", encoding="utf-8") as f:
                json.dump(self.finalize(), f, indent=2, ensure_ascii=False)
            logger.debug("Wrote error ledger: %s", ledger_path)
        except OSError as e:
            logger.warning("Failed to write error ledger: %s", e)

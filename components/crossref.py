"""Cross-references Congress records with laws approved by the Senate.

The two datasets share no guaranteed key. A record is matched, in order
of precedence, by a docket quoted in its subject, by its own identifier,
or by token overlap between its subject and the law title. Matches add
official gazette (BOE) metadata without overwriting anything the record
already carries.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from collectors.senate_approved_laws import scrape_approved_laws
from collectors.senate_open_data import (
    download_export,
    latest_export,
    load_export,
)
from components.auditing import ErrorCategory, ErrorTracker
from components.interfaces import Config
from components.models import (
    ConfidenceTier,
    ExternalLawRecord,
    MatchMethod,
    Record,
)
from components.utils import tokenize

logger = logging.getLogger(__name__)


DOCKET_RX = re.compile(r"\(?(?<!\d)(\d{3}/\d{6})(?!\d)\)?")
GAZETTE_ID_RX = re.compile(r"BOE-A-\d{4}-\d{1,6}", re.I)


def extract_gazette_id(url: Optional[str]) -> Optional[str]:
    """The ``BOE-A-YYYY-N`` identifier embedded in a gazette URL."""
    match = GAZETTE_ID_RX.search(url or "")
    return match.group(0).upper() if match else None


def jaccard(first: set[str], second: set[str]) -> float:
    """Jaccard index of two token sets (0.0 when both are empty)."""
    union = first | second
    return len(first & second) / len(union) if union else 0.0


def confidence_for(law: ExternalLawRecord) -> ConfidenceTier:
    """Tier of a match given what the matched law carries."""
    if law.gazette_url:
        return ConfidenceTier.HIGH
    if law.gazette_date:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


@dataclass(frozen=True)
class LawMatch:
    """Result of matching one record against the Senate corpus."""

    law: ExternalLawRecord
    method: MatchMethod
    score: float


@dataclass
class ResolutionReport:
    """Summary of one resolve pass."""

    records: int = 0
    laws: int = 0
    matched: int = 0
    by_method: Counter = field(default_factory=Counter)
    by_tier: Counter = field(default_factory=Counter)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "records": self.records,
            "laws": self.laws,
            "matched": self.matched,
            "unmatched": self.records - self.matched,
            "by_method": {m.value: self.by_method.get(m.value, 0)
                          for m in MatchMethod},
            "by_tier": {t.value: self.by_tier.get(t.value, 0)
                        for t in ConfidenceTier},
        }


class _LawIndex:
    """Lookup structures over one corpus, built once per resolve."""

    def __init__(self, laws: list[ExternalLawRecord]) -> None:
        self.laws = laws
        self.by_docket: dict[str, ExternalLawRecord] = {}
        for law in laws:
            if law.docket:
                self.by_docket.setdefault(law.docket.strip().lower(), law)
        self.tokens = [tokenize(law.title) for law in laws]


class CrossSourceResolver:
    """Matches records to approved laws and attaches gazette metadata."""

    def __init__(self, config: Optional[Config.CrossRef] = None) -> None:
        config = config or Config().crossref
        self.threshold = config.title_match_threshold
        self.report = ResolutionReport()

    def find_best_match(
        self, record: Record, index: _LawIndex
    ) -> Optional[LawMatch]:
        """First hit of docket-in-subject, identifier, then title overlap."""
        for match in DOCKET_RX.finditer(record.subject or ""):
            law = index.by_docket.get(match.group(1).lower())
            if law is not None:
                return LawMatch(law, MatchMethod.DOCKET_IN_SUBJECT, 1.0)

        if record.id:
            law = index.by_docket.get(record.id.strip().lower())
            if law is not None:
                return LawMatch(law, MatchMethod.IDENTIFIER, 1.0)

        tokens = tokenize(record.subject)
        if not tokens:
            return None
        best: Optional[ExternalLawRecord] = None
        best_score = 0.0
        for law, law_tokens in zip(index.laws, index.tokens):
            score = jaccard(tokens, law_tokens)
            if score > best_score:
                best, best_score = law, score
        if best is not None and best_score >= self.threshold:
            return LawMatch(best, MatchMethod.TITLE_SIMILARITY, best_score)
        return None

    @staticmethod
    def augment(record: Record, match: LawMatch) -> None:
        """Fill empty publication fields of a record from a match."""
        publication = record.publication
        law = match.law
        if not publication.gazette_url and law.gazette_url:
            publication.gazette_url = law.gazette_url
        if not publication.gazette_id:
            publication.gazette_id = extract_gazette_id(law.gazette_url)
        if not publication.gazette_issue and law.gazette_issue:
            publication.gazette_issue = law.gazette_issue
        if not publication.publication_date and law.gazette_date:
            publication.publication_date = law.gazette_date
        if publication.confidence == ConfidenceTier.NOT_IDENTIFIED:
            publication.confidence = confidence_for(law)
        if publication.match_method is None:
            publication.match_method = match.method
            publication.match_score = match.score
            publication.law_type = law.law_type
            publication.law_number = law.law_number or None

    def resolve(
        self,
        records: Iterable[Record],
        laws: Iterable[ExternalLawRecord],
    ) -> list[Record]:
        """Augment records that match an approved law.

        Unmatched records are returned untouched and count as
        ``not_identified``.

        Args:
            records: Records to reconcile, in corpus order
            laws: Senate corpus, in preference order

        Returns:
            The same records, matched ones augmented
        """
        records = list(records)
        index = _LawIndex(list(laws))
        report = ResolutionReport(records=len(records), laws=len(index.laws))
        for record in records:
            match = self.find_best_match(record, index) if index.laws else None
            if match is None:
                report.by_tier[record.publication.confidence.value] += 1
                continue
            self.augment(record, match)
            report.matched += 1
            report.by_method[match.method.value] += 1
            report.by_tier[record.publication.confidence.value] += 1
            logger.debug("Matched %s to %s %s (%s, %.2f)", record.id,
                         match.law.law_type, match.law.law_number,
                         match.method.value, match.score)
        self.report = report
        logger.info("Senate cross-reference: %d/%d records matched "
                    "against %d laws", report.matched, report.records,
                    report.laws)
        return records


class SenateCorpusLoader:
    """Acquires the Senate corpus, preferring structured exports.

    Every configured export source is read concurrently, bounded by
    ``max_concurrent``. A failing source is logged and counted and the
    rest of the corpus is still used. The scrape runs only when no
    structured source produced laws.
    """

    def __init__(
        self,
        config: Optional[Config.CrossRef] = None,
        errors: Optional[ErrorTracker] = None,
        scraper: Optional[Callable[[str, int], list[ExternalLawRecord]]] = None,
    ) -> None:
        self.config = config or Config().crossref
        self.errors = errors or ErrorTracker()
        self.scraper = scraper or scrape_approved_laws

    def structured_sources(self) -> list[str]:
        """Export files or URLs to read, in preference order."""
        sources = list(self.config.export_sources)
        if self.config.export_dir:
            local = latest_export(Path(self.config.export_dir))
            if local is not None:
                sources.append(str(local))
        if self.config.export_url:
            sources.append(self.config.export_url)
        return list(dict.fromkeys(sources))

    def _read_source(self, source: str) -> list[ExternalLawRecord]:
        timeout = self.config.request_timeout
        if source == self.config.export_url and self.config.export_dir:
            path = download_export(source, Path(self.config.export_dir),
                                   timeout=timeout)
            return load_export(str(path), timeout)
        return load_export(source, timeout)

    def load_structured(self) -> list[ExternalLawRecord]:
        """Read every structured source; failures degrade the corpus."""
        sources = self.structured_sources()
        if not sources:
            logger.info("No structured Senate export configured")
            return []
        results: dict[int, list[ExternalLawRecord]] = {}
        workers = min(self.config.max_concurrent, len(sources))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self._read_source, source): position
                for position, source in enumerate(sources)
            }
            for future in as_completed(futures):
                position = futures[future]
                try:
                    results[position] = future.result()
                except Exception as e:  # pylint: disable=broad-exception-caught
                    self.errors.record_error(
                        ErrorCategory.CORPUS_FETCH,
                        f"Could not read Senate export {sources[position]}",
                        {"source": sources[position]},
                        exception=e,
                    )
        ordered = [law for pos in sorted(results) for law in results[pos]]
        return deduplicate_laws(ordered)

    def load(self) -> list[ExternalLawRecord]:
        """Structured corpus, or the scrape when that is empty."""
        laws = self.load_structured()
        if laws or not self.config.use_scrape_fallback:
            return laws
        logger.info("Falling back to scraping %s", self.config.scrape_url)
        try:
            return deduplicate_laws(
                self.scraper(self.config.scrape_url,
                             self.config.request_timeout)
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.errors.record_error(
                ErrorCategory.CORPUS_FETCH,
                "Could not scrape Senate approved laws",
                {"source": self.config.scrape_url},
                exception=e,
            )
            return []


def deduplicate_laws(
    laws: Iterable[ExternalLawRecord],
) -> list[ExternalLawRecord]:
    """Keep the first occurrence of each law, in order."""
    seen: dict[str, ExternalLawRecord] = {}
    for law in laws:
        seen.setdefault(law.key, law)
    return list(seen.values())

"""Batch driver tying extraction, relations, cross-reference and staging.

A run owns one RecordStore for its whole duration and passes it to each
stage in turn:

1. extract documents into records,
2. build direct and similar relations,
3. cross-reference records with the Senate approved-law corpus,
4. classify every record's stage and record transitions.

Only step 3's corpus acquisition runs concurrently. Everything else is a
single-threaded pass, and re-running a batch on unchanged input gives the
same relations and classifications.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from components.auditing import ErrorTracker
from components.crossref import CrossSourceResolver, SenateCorpusLoader
from components.extraction import Extractor, RawDocument, discover_documents
from components.interfaces import Config, close_session, load_config
from components.models import ExternalLawRecord, RelationshipEdge
from components.relationships import edges, relationship_stats
from components.ruleset import StageClassifier
from components.similarity import SimilarityEngine
from components.store import RecordStore
from components.utils import configure_logging
from history.repository import StageHistoryRepository, create_history

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Everything a batch run hands back to its caller."""

    store: RecordStore
    edges: list[RelationshipEdge]
    stage_counts: dict[str, int]
    relationship_stats: dict[str, Any]
    resolution: dict[str, Any]
    extraction: dict[str, int]
    errors: dict[str, int]
    error_ledger: ErrorTracker = field(repr=False, default_factory=ErrorTracker)

    @property
    def records(self) -> list[dict]:
        """Records in their plain downstream shape."""
        return [record.to_dict() for record in self.store]

    @property
    def error_count(self) -> int:
        """Total errors of the run."""
        return sum(self.errors.values())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "records": self.records,
            "edges": [edge.to_dict() for edge in self.edges],
            "stage_counts": dict(self.stage_counts),
            "relationship_stats": dict(self.relationship_stats),
            "resolution": dict(self.resolution),
            "extraction": dict(self.extraction),
            "errors": dict(self.errors),
        }


def run_batch(
    documents: Iterable[RawDocument],
    config: Optional[Config] = None,
    external_laws: Optional[Iterable[ExternalLawRecord]] = None,
    history: Optional[StageHistoryRepository] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> BatchResult:
    """Run the full pipeline over a set of documents.

    Args:
        documents: Raw exports, in ingestion order
        config: Configuration (defaults when None)
        external_laws: Senate corpus; acquired per configuration when None
        history: Stage history store; built from configuration when None
        clock: Timestamp source for history entries

    Returns:
        BatchResult with the store, edges, stats and error counters
    """
    config = config or Config()
    errors = ErrorTracker()
    store = RecordStore(errors)

    extractor = Extractor(config.extraction, errors)
    extractor.ingest_all(documents, store)

    engine = SimilarityEngine(config.similarity)
    engine.build(store)

    if external_laws is None:
        if config.crossref.enabled:
            external_laws = SenateCorpusLoader(config.crossref, errors).load()
        else:
            external_laws = []
    resolver = CrossSourceResolver(config.crossref)
    resolver.resolve(store.records(), external_laws)

    if history is None:
        history = create_history(config.history.backend, config.history.db_path)
    classifier = StageClassifier(history, errors, clock)
    stage_counts = classifier.classify_all(store.records())

    result = BatchResult(
        store=store,
        edges=edges(store),
        stage_counts=stage_counts,
        relationship_stats=relationship_stats(store),
        resolution=resolver.report.to_dict(),
        extraction=extractor.stats.to_dict(),
        errors=errors.counts(),
        error_ledger=errors,
    )
    logger.info("Batch complete: %d records, %d edges, %d errors",
                len(store), len(result.edges), result.error_count)
    return result


def run_directory(
    directory: Path,
    config_path: str = "config.yaml",
    run_dir: Optional[Path] = None,
) -> BatchResult:
    """Load configuration and run a batch over every export in a directory.

    Args:
        directory: Folder searched recursively for XML exports
        config_path: YAML configuration file
        run_dir: Where to write the error ledger, if anywhere

    Returns:
        BatchResult of the run
    """
    config = load_config(config_path)
    configure_logging(config.logging.level)
    documents = discover_documents(directory)
    logger.info("Found %d export files under %s", len(documents), directory)
    try:
        result = run_batch(documents, config)
    finally:
        close_session()
    if run_dir is not None:
        result.error_ledger.write(run_dir)
    return result

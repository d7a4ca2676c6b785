"""Direct and fuzzy-textual relationships between records.

Direct relationships come from the cross-reference fields of the export.
Similar relationships come from comparing the subject text of every pair
of records with a weighted blend of Jaro-Winkler and normalized
Levenshtein similarity.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator, Optional, Sequence

from rapidfuzz.distance import JaroWinkler, Levenshtein

from components.interfaces import Config
from components.models import (
    DirectRelation,
    Record,
    RelationSubtype,
    SimilarRecord,
)
from components.store import RecordStore
from components.utils import normalize_text

logger = logging.getLogger(__name__)


PairKey = tuple[str, str]


class SimilarityCache(ABC):
    """Small cache interface so eviction strategies can be swapped."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"Cache capacity must be positive: {capacity}")
        self.capacity = capacity
        self.evictions = 0

    @abstractmethod
    def get(self, key: PairKey) -> Optional[float]:
        """Cached score for a pair, or None."""

    @abstractmethod
    def put(self, key: PairKey, value: float) -> None:
        """Store a score, evicting according to the policy."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every entry."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of cached pairs."""


class FlushingCache(SimilarityCache):
    """Plain map that is emptied entirely once it outgrows its capacity."""

    def __init__(self, capacity: int = 10000) -> None:
        super().__init__(capacity)
        self._data: dict[PairKey, float] = {}

    def get(self, key: PairKey) -> Optional[float]:
        return self._data.get(key)

    def put(self, key: PairKey, value: float) -> None:
        self._data[key] = value
        if len(self._data) > self.capacity:
            logger.debug("Similarity cache over %d entries; flushing",
                         self.capacity)
            self._data.clear()
            self.evictions += 1

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class LruCache(SimilarityCache):
    """Least recently used eviction, one entry at a time."""

    def __init__(self, capacity: int = 10000) -> None:
        super().__init__(capacity)
        self._data: OrderedDict[PairKey, float] = OrderedDict()

    def get(self, key: PairKey) -> Optional[float]:
        value = self._data.get(key)
        if value is not None:
            self._data.move_to_end(key)
        return value

    def put(self, key: PairKey, value: float) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.capacity:
            self._data.popitem(last=False)
            self.evictions += 1

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


def create_cache(policy: str, capacity: int) -> SimilarityCache:
    """Build the cache named by a configuration policy."""
    if policy == "flush":
        return FlushingCache(capacity)
    if policy == "lru":
        return LruCache(capacity)
    raise ValueError(f"Unknown similarity cache policy: {policy}")


@lru_cache(maxsize=65536)
def _normalized(text: str) -> str:
    return normalize_text(text)


@dataclass
class SimilarityStats:
    """Counters of one engine instance."""

    comparisons: int = 0
    cache_hits: int = 0
    accepted_pairs: int = 0
    direct_relations: int = 0
    dropped_references: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return dict(self.__dict__)


class SimilarityEngine:
    """Builds direct and similar relations over a record store."""

    def __init__(
        self,
        config: Optional[Config.Similarity] = None,
        cache: Optional[SimilarityCache] = None,
    ) -> None:
        config = config or Config().similarity
        self.threshold = config.threshold
        self.jaro_winkler_weight = config.jaro_winkler_weight
        self.levenshtein_weight = config.levenshtein_weight
        if self.jaro_winkler_weight < 0 or self.levenshtein_weight < 0:
            raise ValueError("Similarity weights must be non-negative")
        if self.jaro_winkler_weight + self.levenshtein_weight == 0:
            raise ValueError("At least one similarity weight must be positive")
        self.cache = cache or create_cache(
            config.cache_policy, config.cache_capacity
        )
        self.stats = SimilarityStats()

    def similarity(self, text1: Optional[str], text2: Optional[str]) -> float:
        """Composite similarity of two subject texts, in [0, 1].

        The pair is put in a canonical order before scoring and caching,
        so the result does not depend on argument order.
        """
        if not text1 or not text2:
            return 0.0
        key = (text1, text2) if text1 <= text2 else (text2, text1)
        cached = self.cache.get(key)
        if cached is not None:
            self.stats.cache_hits += 1
            return cached

        first, second = _normalized(key[0]), _normalized(key[1])
        if first == second:
            score = 1.0 if first or key[0] == key[1] else 0.0
        elif not first or not second:
            score = 0.0
        else:
            score = (
                self.jaro_winkler_weight
                * JaroWinkler.normalized_similarity(first, second)
                + self.levenshtein_weight
                * Levenshtein.normalized_similarity(first, second)
            )
            score = max(0.0, min(1.0, score))
        self.cache.put(key, score)
        return score

    def iter_similarity_edges(
        self, records: Sequence[Record]
    ) -> Iterator[tuple[int, int, float]]:
        """Yield accepted pairs ``(i, j, score)`` with ``i < j``.

        Pairs are produced lazily in corpus order; only accepted pairs
        leave the generator.
        """
        candidates = [i for i, r in enumerate(records) if r.subject]
        for pos, i in enumerate(candidates):
            subject = records[i].subject
            for j in candidates[pos + 1:]:
                self.stats.comparisons += 1
                score = self.similarity(subject, records[j].subject)
                if score >= self.threshold:
                    yield i, j, score

    def build_direct_relations(self, store: RecordStore) -> int:
        """Resolve raw cross-references of every record against the store.

        References to identifiers that were never ingested, and references
        a record makes to itself, are dropped.

        Returns:
            Number of direct relations created
        """
        created = 0
        for record in store:
            relations: list[DirectRelation] = []
            seen: set[tuple[str, RelationSubtype]] = set()
            for subtype, targets in (
                (RelationSubtype.RELATED, record.related_ids),
                (RelationSubtype.ORIGIN, record.origin_ids),
            ):
                for target in targets:
                    if target == record.id or target not in store:
                        self.stats.dropped_references += 1
                        logger.debug("Dropping unresolved reference %s -> %s",
                                     record.id, target)
                        continue
                    if (target, subtype) in seen:
                        continue
                    seen.add((target, subtype))
                    relations.append(DirectRelation(target, subtype))
            record.direct_relations = relations
            created += len(relations)
        self.stats.direct_relations += created
        return created

    def build_similarity_relations(self, store: RecordStore) -> int:
        """Fill every record's similar-list in one streaming pass.

        Each accepted pair is recorded on both records. Lists end up sorted
        by descending score; equal scores keep ascending corpus order.

        Returns:
            Number of accepted pairs
        """
        records = store.records()
        for record in records:
            record.similar = []
        accepted = 0
        for i, j, score in self.iter_similarity_edges(records):
            records[i].similar.append(SimilarRecord(records[j].id, score))
            records[j].similar.append(SimilarRecord(records[i].id, score))
            accepted += 1
        for record in records:
            record.similar.sort(key=lambda s: -s.score)
        self.stats.accepted_pairs += accepted
        logger.info(
            "Similarity pass: %d accepted pairs over %d records "
            "(threshold %.2f, cache %d entries, %d evictions)",
            accepted,
            len(records),
            self.threshold,
            len(self.cache),
            self.cache.evictions,
        )
        return accepted

    def build(self, store: RecordStore) -> None:
        """Run both relationship passes."""
        self.build_direct_relations(store)
        self.build_similarity_relations(store)

"""Test direct and similar relationship building."""

import pytest

from components.interfaces import Config
from components.models import RelationSubtype
from components.similarity import (
    FlushingCache,
    LruCache,
    SimilarityEngine,
    create_cache,
)
from components.store import RecordStore
from unit.fixtures import Docket


def _engine(**similarity) -> SimilarityEngine:
    return SimilarityEngine(Config(overrides={"similarity": similarity}).similarity)


class TestSimilarityScore:
    """Test the composite text similarity."""

    def test_reflexive(self):
        """Test that a text is fully similar to itself."""
        assert _engine().similarity("Ley de aguas", "Ley de aguas") == 1.0

    def test_symmetric(self):
        """Test that argument order does not matter."""
        engine = _engine()
        a = "Ley de protección del medio ambiente"
        b = "Ley de protección de la biodiversidad"
        assert engine.similarity(a, b) == engine.similarity(b, a)
        assert engine.stats.cache_hits == 1

    def test_normalization(self):
        """Test that case, accents and punctuation are ignored."""
        engine = _engine()
        assert engine.similarity(
            "LEY DE PROTECCIÓN, del medio-ambiente.",
            "ley de proteccion del medio ambiente",
        ) == 1.0

    def test_bounds(self):
        """Test that scores stay within [0, 1]."""
        engine = _engine()
        score = engine.similarity("Ley de aguas", "Real Decreto de costas")
        assert 0.0 <= score <= 1.0
        assert engine.similarity("", "Ley de aguas") == 0.0
        assert engine.similarity(None, "Ley de aguas") == 0.0

    def test_near_duplicates_accepted(self):
        """Test a spelling variant well above the default threshold."""
        score = _engine().similarity(
            "Ley de protección del medio ambiente",
            "Ley de protección del medioambiente",
        )
        assert score >= 0.9

    def test_invalid_weights(self):
        """Test weight validation."""
        with pytest.raises(ValueError):
            _engine(jaro_winkler_weight=-0.1)
        with pytest.raises(ValueError):
            _engine(jaro_winkler_weight=0, levenshtein_weight=0)


class TestSimilarityCache:
    """Test the bounded score caches."""

    def test_flushing_cache(self):
        """Test that the cache empties once over capacity."""
        cache = FlushingCache(capacity=2)
        cache.put(("a", "b"), 0.5)
        cache.put(("a", "c"), 0.4)
        assert len(cache) == 2
        cache.put(("b", "c"), 0.3)
        assert len(cache) == 0
        assert cache.evictions == 1

    def test_lru_cache(self):
        """Test that the least recently used entry is evicted."""
        cache = LruCache(capacity=2)
        cache.put(("a", "b"), 0.5)
        cache.put(("a", "c"), 0.4)
        assert cache.get(("a", "b")) == 0.5
        cache.put(("b", "c"), 0.3)
        assert cache.get(("a", "c")) is None
        assert cache.get(("a", "b")) == 0.5
        assert len(cache) == 2

    def test_policy_selection(self):
        """Test cache construction from configuration."""
        assert isinstance(create_cache("flush", 10), FlushingCache)
        assert isinstance(create_cache("lru", 10), LruCache)
        assert isinstance(_engine(cache_policy="LRU").cache, LruCache)
        with pytest.raises(ValueError):
            create_cache("random", 10)
        with pytest.raises(ValueError):
            FlushingCache(capacity=0)

    def test_scores_survive_flush(self):
        """Test that a flush only costs recomputation."""
        engine = SimilarityEngine(Config().similarity, FlushingCache(capacity=1))
        first = engine.similarity("Ley de aguas", "Ley de costas")
        engine.similarity("Ley de montes", "Ley de minas")
        engine.similarity("Ley de pesca", "Ley de caza")
        assert engine.similarity("Ley de costas", "Ley de aguas") == first


class TestSimilarityRelations:
    """Test the similar lists of a store."""

    def test_near_duplicates_mutual(self, record_factory):
        """Test that an accepted pair appears on both records."""
        store = record_factory.create_store()
        _engine(threshold=0.9).build_similarity_relations(store)
        bill = store.get(Docket.BILL.value)
        proposal = store.get(Docket.PROPOSAL.value)
        assert [s.target for s in bill.similar] == [Docket.PROPOSAL.value]
        assert [s.target for s in proposal.similar] == [Docket.BILL.value]
        assert bill.similar[0].score == proposal.similar[0].score
        assert store.get(Docket.DECREE.value).similar == []

    def test_threshold_monotonic(self, record_factory):
        """Test that raising the threshold never adds pairs."""
        pairs = {}
        for threshold in (0.3, 0.6, 0.9, 1.0):
            store = record_factory.create_store()
            _engine(threshold=threshold).build_similarity_relations(store)
            pairs[threshold] = {
                (r.id, s.target) for r in store for s in r.similar
            }
        assert pairs[1.0] <= pairs[0.9] <= pairs[0.6] <= pairs[0.3]

    def test_ties_keep_corpus_order(self, record_factory):
        """Test ordering of equal scores."""
        store = record_factory.create_store({
            Docket.BILL.value: "Ley de aguas",
            Docket.PROPOSAL.value: "Ley de aguas",
            Docket.DECREE.value: "Ley de aguas",
        })
        accepted = _engine().build_similarity_relations(store)
        assert accepted == 3
        assert [s.target for s in store.get(Docket.DECREE.value).similar] == [
            Docket.BILL.value, Docket.PROPOSAL.value
        ]
        assert [s.target for s in store.get(Docket.BILL.value).similar] == [
            Docket.PROPOSAL.value, Docket.DECREE.value
        ]

    def test_sorted_by_score(self, record_factory):
        """Test that the closest match comes first."""
        store = record_factory.create_store({
            Docket.BILL.value: "Ley de protección del medio ambiente",
            Docket.PROPOSAL.value: "Ley de protección del medio ambiente marino",
            Docket.DECREE.value: "Ley de protección del medioambiente",
        })
        _engine(threshold=0.5).build_similarity_relations(store)
        scores = [s.score for s in store.get(Docket.BILL.value).similar]
        assert scores == sorted(scores, reverse=True)

    def test_rebuild_is_idempotent(self, record_factory):
        """Test that running the pass twice gives the same lists."""
        store = record_factory.create_store()
        engine = _engine()
        engine.build_similarity_relations(store)
        first = [r.to_dict()["similar"] for r in store]
        engine.build_similarity_relations(store)
        assert [r.to_dict()["similar"] for r in store] == first

    def test_iter_similarity_edges(self, record_factory):
        """Test the lazy pair stream."""
        records = record_factory.create_store().records()
        edges = list(_engine(threshold=0.9).iter_similarity_edges(records))
        assert [(i, j) for i, j, _ in edges] == [(0, 1)]


class TestDirectRelations:
    """Test resolution of explicit cross-references."""

    def test_unknown_and_self_references_dropped(self, record_factory):
        """Test that only references to known records survive."""
        store = RecordStore()
        store.add(record_factory.create_fields(
            Docket.BILL.value,
            related_ids=f"{Docket.PROPOSAL.value}, 999/999999 {Docket.BILL.value}",
            origin_ids=Docket.DECREE.value,
        ))
        store.add(record_factory.create_fields(Docket.PROPOSAL.value))
        store.add(record_factory.create_fields(Docket.DECREE.value))
        engine = _engine()
        assert engine.build_direct_relations(store) == 2
        relations = store.get(Docket.BILL.value).direct_relations
        assert [(r.target, r.subtype) for r in relations] == [
            (Docket.PROPOSAL.value, RelationSubtype.RELATED),
            (Docket.DECREE.value, RelationSubtype.ORIGIN),
        ]
        assert engine.stats.dropped_references == 2
        assert store.get(Docket.PROPOSAL.value).direct_relations == []

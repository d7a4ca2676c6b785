"""Test read-only relationship queries."""

import pytest

from components import relationships
from components.interfaces import Config
from components.similarity import SimilarityEngine
from components.store import RecordStore
from unit.fixtures import Docket


@pytest.fixture
def related_store(record_factory):
    """Store with one direct relation and one similar pair."""
    store = RecordStore()
    store.add(record_factory.create_fields(
        Docket.BILL.value,
        "Ley de protección del medio ambiente",
        related_ids=Docket.DECREE.value,
    ))
    store.add(record_factory.create_fields(
        Docket.PROPOSAL.value, "Ley de protección del medioambiente"
    ))
    store.add(record_factory.create_fields(
        Docket.DECREE.value, "Real Decreto-ley de medidas urgentes fiscales"
    ))
    engine = SimilarityEngine(
        Config(overrides={"similarity": {"threshold": 0.9}}).similarity
    )
    engine.build(store)
    return store


class TestRelationshipQueries:
    """Test queries over a built store."""

    def test_edges(self, related_store):
        """Test directed edges in corpus order."""
        rows = [e.to_dict() for e in relationships.edges(related_store)]
        assert [(r["source"], r["target"], r["kind"]) for r in rows] == [
            (Docket.BILL.value, Docket.DECREE.value, "direct"),
            (Docket.BILL.value, Docket.PROPOSAL.value, "similar"),
            (Docket.PROPOSAL.value, Docket.BILL.value, "similar"),
        ]
        assert rows[0]["subtype"] == "related"
        assert "score" not in rows[0]
        assert "subtype" not in rows[1]

    def test_stats(self, related_store):
        """Test aggregate counters."""
        stats = relationships.relationship_stats(related_store)
        assert stats["total_records"] == 3
        assert stats["total_direct_relations"] == 1
        assert stats["total_similar_relations"] == 2
        assert stats["records_with_similar_relations"] == 2
        assert stats["average_direct_relations"] == pytest.approx(1 / 3)
        assert relationships.relationship_stats(RecordStore())[
            "average_similarity_score"
        ] == 0.0

    def test_rankings(self, related_store):
        """Test most related and highest similarity rankings."""
        assert [r["id"] for r in relationships.most_related(related_store)] == [
            Docket.BILL.value
        ]
        ranked = relationships.highest_similarity(related_store, limit=1)
        assert len(ranked) == 1
        assert ranked[0]["similar_count"] == 1

    def test_find_similar(self, related_store):
        """Test score filtering of similar matches."""
        assert len(relationships.find_similar(related_store, Docket.BILL.value)) == 1
        assert relationships.find_similar(
            related_store, Docket.BILL.value, min_score=1.01
        ) == []
        assert relationships.find_similar(related_store, "999/999999") == []

    def test_relationship_info(self, related_store):
        """Test pairwise lookups."""
        direct = relationships.relationship_info(
            related_store, Docket.BILL.value, Docket.DECREE.value
        )
        assert direct["kind"] == "direct"
        similar = relationships.relationship_info(
            related_store, Docket.PROPOSAL.value, Docket.BILL.value
        )
        assert similar["kind"] == "similar"
        assert relationships.relationship_info(
            related_store, Docket.DECREE.value, Docket.BILL.value
        ) is None

    def test_graph_is_deterministic(self, related_store):
        """Test that the graph carries no run-dependent values."""
        first = relationships.graph(related_store)
        assert first == relationships.graph(related_store)
        assert first["metadata"] == {"total_nodes": 3, "total_edges": 3}
        sizes = {n["id"]: n["size"] for n in first["nodes"]}
        assert sizes[Docket.BILL.value] == 2
        assert first["edges"][0]["weight"] == 1.0


class TestFilterRecords:
    """Test record filtering for rendering."""

    @pytest.fixture
    def store(self, record_factory):
        """Store with varied types, authors and dates."""
        store = RecordStore()
        store.add(record_factory.create_fields(
            Docket.BILL.value, "Ley de protección del medio ambiente"
        ))
        store.add(record_factory.create_fields(
            Docket.PROPOSAL.value,
            "Ley de protección del medioambiente",
            type="Proposición de ley",
            author="Grupo Parlamentario Socialista",
            presentation_date="2024-03-10",
        ))
        store.add(record_factory.create_fields(
            Docket.DECREE.value,
            "Real Decreto-ley de medidas urgentes fiscales",
            type="Real Decreto-ley",
            presentation_date=None,
        ))
        SimilarityEngine(
            Config(overrides={"similarity": {"threshold": 0.9}}).similarity
        ).build(store)
        return store

    @staticmethod
    def _ids(records):
        return [r.id for r in records]

    def test_no_filters(self, store):
        """Test that every record is returned in corpus order."""
        assert self._ids(relationships.filter_records(store)) == store.ids()

    def test_type_and_author(self, store):
        """Test case-insensitive substring matching."""
        assert self._ids(relationships.filter_records(
            store, type="PROPOSICIÓN"
        )) == [Docket.PROPOSAL.value]
        assert self._ids(relationships.filter_records(
            store, author="gobierno"
        )) == [Docket.BILL.value, Docket.DECREE.value]

    def test_date_range(self, store):
        """Test presentation date bounds in either date format."""
        assert self._ids(relationships.filter_records(
            store, date_from="2024-02-01"
        )) == [Docket.PROPOSAL.value]
        assert self._ids(relationships.filter_records(
            store, date_to="31/01/2024"
        )) == [Docket.BILL.value]
        assert self._ids(relationships.filter_records(
            store, date_from="2024-01-15", date_to="2024-03-10"
        )) == [Docket.BILL.value, Docket.PROPOSAL.value]

    def test_min_similarity(self, store):
        """Test filtering on the best similar score."""
        assert self._ids(relationships.filter_records(
            store, min_similarity=0.9
        )) == [Docket.BILL.value, Docket.PROPOSAL.value]
        assert self._ids(relationships.filter_records(
            store, author="gobierno", min_similarity=0.9
        )) == [Docket.BILL.value]
        assert relationships.filter_records(store, min_similarity=1.01) == []

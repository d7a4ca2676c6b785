"""Read-only queries over the relations built by the similarity engine."""

from typing import Any, Optional

from components.models import Record, RelationKind, RelationshipEdge
from components.store import RecordStore
from timeline.extractors import parse_date


def _preview(text: str, width: int = 100) -> str:
    return text if len(text) <= width else text[:width] + "..."


def edges(store: RecordStore) -> list[RelationshipEdge]:
    """Every relation as a directed edge, in corpus order.

    Direct edges of a record come before its similar edges. A similar pair
    appears once in each direction.
    """
    result = []
    for record in store:
        for relation in record.direct_relations:
            result.append(RelationshipEdge(
                source=record.id,
                target=relation.target,
                kind=RelationKind.DIRECT,
                subtype=relation.subtype.value,
            ))
        for match in record.similar:
            result.append(RelationshipEdge(
                source=record.id,
                target=match.target,
                kind=RelationKind.SIMILAR,
                score=match.score,
            ))
    return result


def relationship_stats(store: RecordStore) -> dict[str, Any]:
    """Aggregate counts over all relations of a store."""
    total_direct = 0
    total_similar = 0
    max_direct = 0
    max_similar = 0
    score_sum = 0.0
    with_direct = 0
    with_similar = 0
    for record in store:
        direct = len(record.direct_relations)
        similar = len(record.similar)
        total_direct += direct
        total_similar += similar
        max_direct = max(max_direct, direct)
        max_similar = max(max_similar, similar)
        score_sum += sum(s.score for s in record.similar)
        with_direct += 1 if direct else 0
        with_similar += 1 if similar else 0
    count = len(store)
    return {
        "total_records": count,
        "total_direct_relations": total_direct,
        "total_similar_relations": total_similar,
        "max_direct_relations": max_direct,
        "max_similar_relations": max_similar,
        "average_direct_relations": total_direct / count if count else 0.0,
        "average_similar_relations": total_similar / count if count else 0.0,
        "average_similarity_score": (
            score_sum / total_similar if total_similar else 0.0
        ),
        "records_with_direct_relations": with_direct,
        "records_with_similar_relations": with_similar,
    }


def most_related(store: RecordStore, limit: int = 10) -> list[dict[str, Any]]:
    """Records with the most direct relations, most first."""
    ranked = sorted(
        (r for r in store if r.direct_relations),
        key=lambda r: -len(r.direct_relations),
    )
    return [
        {
            "id": r.id,
            "type": r.type,
            "subject": _preview(r.subject),
            "direct_relations": len(r.direct_relations),
        }
        for r in ranked[:limit]
    ]


def highest_similarity(
    store: RecordStore, limit: int = 10
) -> list[dict[str, Any]]:
    """Records ranked by their best similar match."""
    rows = [
        {
            "id": r.id,
            "type": r.type,
            "subject": _preview(r.subject),
            "max_similarity": max(s.score for s in r.similar),
            "similar_count": len(r.similar),
        }
        for r in store
        if r.similar
    ]
    rows.sort(key=lambda row: -row["max_similarity"])
    return rows[:limit]


def find_similar(
    store: RecordStore, record_id: str, min_score: Optional[float] = None
) -> list[dict[str, Any]]:
    """Similar matches of one record at or above a score."""
    record = store.get(record_id)
    if record is None:
        return []
    return [
        s.to_dict()
        for s in record.similar
        if min_score is None or s.score >= min_score
    ]


def relationship_info(
    store: RecordStore, source: str, target: str
) -> Optional[dict[str, Any]]:
    """How ``source`` relates to ``target``; direct relations win."""
    record = store.get(source)
    if record is None:
        return None
    for relation in record.direct_relations:
        if relation.target == target:
            return {
                "kind": RelationKind.DIRECT.value,
                "subtype": relation.subtype.value,
                "source": source,
                "target": target,
            }
    for match in record.similar:
        if match.target == target:
            return {
                "kind": RelationKind.SIMILAR.value,
                "score": match.score,
                "source": source,
                "target": target,
            }
    return None


def graph(store: RecordStore) -> dict[str, Any]:
    """Nodes and edges for rendering the relationship graph."""
    nodes = [
        {
            "id": r.id,
            "label": _preview(r.subject, 50),
            "group": r.group,
            "size": len(r.direct_relations) + len(r.similar),
        }
        for r in store
    ]
    edge_rows = []
    for edge in edges(store):
        row = edge.to_dict()
        row["weight"] = 1.0 if edge.score is None else edge.score
        edge_rows.append(row)
    return {
        "nodes": nodes,
        "edges": edge_rows,
        "metadata": {"total_nodes": len(nodes), "total_edges": len(edge_rows)},
    }


def filter_records(
    store: RecordStore,
    type: Optional[str] = None,  # pylint: disable=redefined-builtin
    author: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    min_similarity: Optional[float] = None,
) -> list[Record]:
    """Records matching every given filter, in corpus order.

    Args:
        store: Records to filter
        type: Case-insensitive substring of the initiative type
        author: Case-insensitive substring of the author
        date_from: Earliest presentation date (ISO or dd/mm/yyyy)
        date_to: Latest presentation date (ISO or dd/mm/yyyy)
        min_similarity: Lowest score a record's best similar match may have

    Returns:
        Matching records; records without a usable presentation date are
        left out when a date bound is given
    """
    start = parse_date(date_from) if date_from else None
    end = parse_date(date_to) if date_to else None
    result = []
    for record in store:
        if type and type.lower() not in (record.type or "").lower():
            continue
        if author and author.lower() not in (record.author or "").lower():
            continue
        if start or end:
            presented = parse_date(record.presentation_date)
            if presented is None:
                continue
            if start and presented < start:
                continue
            if end and presented > end:
                continue
        if min_similarity is not None and not any(
            s.score >= min_similarity for s in record.similar
        ):
            continue
        result.append(record)
    return result

"""Data models for Congress initiatives and Senate approved laws."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from timeline.extractors import normalize_date
from timeline.models import TimelineEvent
from timeline.parser import build_timeline


REFERENCE_SEPARATORS = re.compile(r"[\s,]+")


class Stage(str, Enum):
    """Canonical lifecycle position of a record."""

    PROPOSED = "proposed"
    DEBATING = "debating"
    COMMITTEE = "committee"
    VOTING = "voting"
    PASSED = "passed"
    PUBLISHED = "published"
    # Terminal states outside the 1-5 progression
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    CLOSED = "closed"


class ConfidenceTier(str, Enum):
    """How certain a cross-source publication match is."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NOT_IDENTIFIED = "not_identified"


class RelationKind(str, Enum):
    """Kind of edge between two records."""

    DIRECT = "direct"
    SIMILAR = "similar"


class RelationSubtype(str, Enum):
    """Which cross-reference field produced a direct edge."""

    RELATED = "related"
    ORIGIN = "origin"


class MatchMethod(str, Enum):
    """How a record was matched to a Senate approved law."""

    DOCKET_IN_SUBJECT = "docket_in_subject"
    IDENTIFIER = "identifier"
    TITLE_SIMILARITY = "title_similarity"


class InitiativeCategory(str, Enum):
    """Procedure family an initiative belongs to."""

    ORDINARY = "tramitacion_ordinaria"
    URGENT = "tramitacion_urgente"
    REINFORCED_MAJORITY = "tramitacion_especial_mayoria_reforzada"
    REGIONAL = "tramitacion_iniciativas_autonomicas"
    POPULAR = "tramitacion_iniciativas_populares"
    CONSTITUTIONAL_BODIES = "tramitacion_organos_constitucionales"
    APPROVED_LAW = "ley_aprobada"


def split_references(text: Optional[str]) -> list[str]:
    """Tokenize a free-text list of identifiers.

    Splits on whitespace, commas and newlines, trims each token and drops
    empties and repeats while keeping first-seen order.
    """
    if not text:
        return []
    tokens = []
    for token in REFERENCE_SEPARATORS.split(text):
        token = token.strip()
        if token and token not in tokens:
            tokens.append(token)
    return tokens


_ORDINARY_TYPES = (
    "proyecto de ley",
    "proposición de ley",
)
_REGIONS = ("cataluña", "galicia", "andalucía", "cantabria", "canarias", "vasco")
_CONSTITUTIONAL_BODIES = (
    "defensor del pueblo",
    "cgpj",
    "órgano consultivo",
    "órgano constitucional",
    "tribunal constitucional",
    "consejo de estado",
    "parlamento europeo",
)


def categorize_initiative(fields: dict[str, str]) -> InitiativeCategory:
    """Place an initiative in its procedure family.

    Args:
        fields: Canonical field map of one entry

    Returns:
        The first matching category, ordinary processing by default
    """
    kind = (fields.get("type") or "").lower()
    procedure = (fields.get("procedure_kind") or "").lower().strip()
    author = (fields.get("author") or "").lower()
    subject = (fields.get("subject") or "").lower()
    is_bill = any(t in kind for t in _ORDINARY_TYPES)

    if is_bill and procedure in ("", "normal"):
        return InitiativeCategory.ORDINARY
    if "senado" in author and "proposición de ley" in kind:
        return InitiativeCategory.ORDINARY
    if is_bill and procedure == "urgente":
        return InitiativeCategory.URGENT
    if "decreto-ley" in kind or "decreto ley" in kind or (
        "proyecto de ley" in subject and "decreto-ley" in subject
    ):
        return InitiativeCategory.URGENT
    if any(
        phrase in text
        for phrase in ("reforma constitucional", "reforma de la constitución")
        for text in (kind, subject)
    ):
        return InitiativeCategory.REINFORCED_MAJORITY
    if "comunidad autónoma" in author or (
        "parlamento" in author and any(r in author for r in _REGIONS)
    ):
        return InitiativeCategory.REGIONAL
    if "propuesta de reforma de estatuto de autonomía" in kind:
        return InitiativeCategory.REGIONAL
    if (
        "popular" in author
        or "ilp" in author.split()
        or "iniciativa legislativa popular" in kind
        or "iniciativa legislativa popular" in subject
    ):
        return InitiativeCategory.POPULAR
    if any(body in author for body in _CONSTITUTIONAL_BODIES):
        return InitiativeCategory.CONSTITUTIONAL_BODIES
    if "leyes" in kind or fields.get("law_number"):
        return InitiativeCategory.APPROVED_LAW
    return InitiativeCategory.ORDINARY


@dataclass(frozen=True)
class DirectRelation:
    """An explicit cross-reference that resolved to a known record."""

    target: str
    subtype: RelationSubtype

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"target": self.target, "subtype": self.subtype.value}


@dataclass(frozen=True)
class SimilarRecord:
    """A record whose subject text is close to this record's subject."""

    target: str
    score: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"target": self.target, "score": self.score}


@dataclass(frozen=True)
class RelationshipEdge:
    """A directed edge between two records."""

    source: str
    target: str
    kind: RelationKind
    subtype: Optional[str] = None
    score: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary, omitting None values."""
        result: dict[str, Any] = {
            "source": self.source,
            "target": self.target,
            "kind": self.kind.value,
        }
        if self.subtype is not None:
            result["subtype"] = self.subtype
        if self.score is not None:
            result["score"] = self.score
        return result


@dataclass(frozen=True)
class ExternalLawRecord:
    """An approved law as published by the Senate."""

    law_type: str  # "Ley" or "Ley Orgánica"
    law_number: str  # e.g. "2/2024"
    title: str
    docket: Optional[str] = None  # e.g. "121/000012"
    gazette_issue: Optional[str] = None
    gazette_date: Optional[str] = None  # ISO date
    gazette_url: Optional[str] = None
    source: str = "export"  # "export" or "scrape"

    @property
    def key(self) -> str:
        """Identity used to de-duplicate laws across sources."""
        if not self.law_number:
            return f"title|{self.title.lower()}"
        return f"{self.law_type.lower()}|{self.law_number}"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "law_type": self.law_type,
            "law_number": self.law_number,
            "title": self.title,
            "docket": self.docket,
            "gazette_issue": self.gazette_issue,
            "gazette_date": self.gazette_date,
            "gazette_url": self.gazette_url,
            "source": self.source,
        }

    @staticmethod
    def from_dict(data: dict) -> ExternalLawRecord:
        """Create an ExternalLawRecord from a dictionary."""
        return ExternalLawRecord(
            law_type=data.get("law_type", "Ley"),
            law_number=data.get("law_number", ""),
            title=data.get("title", ""),
            docket=data.get("docket"),
            gazette_issue=data.get("gazette_issue"),
            gazette_date=data.get("gazette_date"),
            gazette_url=data.get("gazette_url"),
            source=data.get("source", "export"),
        )


@dataclass
class Publication:
    """Official gazette metadata attached by the cross-source resolver."""

    gazette_id: Optional[str] = None  # e.g. "BOE-A-2024-5678"
    gazette_url: Optional[str] = None
    gazette_issue: Optional[str] = None
    publication_date: Optional[str] = None
    confidence: ConfidenceTier = ConfidenceTier.NOT_IDENTIFIED
    match_method: Optional[MatchMethod] = None
    match_score: Optional[float] = None
    law_type: Optional[str] = None
    law_number: Optional[str] = None

    @property
    def is_verified(self) -> bool:
        """True when an authoritative gazette reference is present."""
        return bool(self.gazette_url or self.gazette_id)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "gazette_id": self.gazette_id,
            "gazette_url": self.gazette_url,
            "gazette_issue": self.gazette_issue,
            "publication_date": self.publication_date,
            "confidence": self.confidence.value,
            "match_method": (
                self.match_method.value if self.match_method else None
            ),
            "match_score": self.match_score,
            "law_type": self.law_type,
            "law_number": self.law_number,
        }


@dataclass
class Record:
    """One legislative initiative with its derived data.

    Source fields come from the raw export; ``timeline`` and
    ``initiative_category`` are derived at construction, the relation
    lists, stage fields and publication metadata are filled in by the
    later passes of a batch run.
    """

    id: str
    subject: str
    type: Optional[str] = None
    author: Optional[str] = None
    presentation_date: Optional[str] = None
    qualification_date: Optional[str] = None
    legislature: Optional[str] = None
    supertype: Optional[str] = None
    grouping: Optional[str] = None
    procedure_kind: Optional[str] = None
    result: Optional[str] = None
    status: Optional[str] = None
    procedure_text: Optional[str] = None
    committee: Optional[str] = None
    deadlines: Optional[str] = None
    rapporteurs: Optional[str] = None
    bocg_links: Optional[str] = None
    ds_links: Optional[str] = None
    law_number: Optional[str] = None
    related_ids: list[str] = field(default_factory=list)
    origin_ids: list[str] = field(default_factory=list)
    initiative_category: InitiativeCategory = InitiativeCategory.ORDINARY
    timeline: list[TimelineEvent] = field(default_factory=list)
    direct_relations: list[DirectRelation] = field(default_factory=list)
    similar: list[SimilarRecord] = field(default_factory=list)
    stage: Optional[Stage] = None
    step: Optional[int] = None
    stage_reason: dict[str, Any] = field(default_factory=dict)
    publication: Publication = field(default_factory=Publication)

    @staticmethod
    def from_fields(fields: dict[str, str]) -> Record:
        """Build a record from a canonical field map.

        Args:
            fields: Provided (non-empty) canonical fields of one entry

        Returns:
            Record with timeline and category derived
        """
        get = fields.get
        return Record(
            id=(get("id") or "").strip(),
            subject=(get("subject") or "").strip(),
            type=get("type"),
            author=get("author"),
            presentation_date=normalize_date(get("presentation_date")),
            qualification_date=normalize_date(get("qualification_date")),
            legislature=get("legislature"),
            supertype=get("supertype"),
            grouping=get("grouping"),
            procedure_kind=get("procedure_kind"),
            result=get("result"),
            status=get("status"),
            procedure_text=get("procedure_text"),
            committee=get("committee"),
            deadlines=get("deadlines"),
            rapporteurs=get("rapporteurs"),
            bocg_links=get("bocg_links"),
            ds_links=get("ds_links"),
            law_number=get("law_number"),
            related_ids=split_references(get("related_ids")),
            origin_ids=split_references(get("origin_ids")),
            initiative_category=categorize_initiative(fields),
            timeline=build_timeline(get("procedure_text")),
        )

    @property
    def status_text(self) -> str:
        """Lowercase outcome text: processing result plus current status."""
        return " ".join(
            part for part in (self.result, self.status) if part
        ).lower()

    @property
    def procedure_blob(self) -> str:
        """Lowercase concatenation of every status and procedure field."""
        parts = (
            self.result,
            self.status,
            self.procedure_text,
            self.committee,
            self.bocg_links,
            self.ds_links,
        )
        return " ".join(part for part in parts if part).lower()

    @property
    def group(self) -> str:
        """Coarse grouping of the initiative type for rendering."""
        kind = (self.type or "").lower()
        for needle, group in (
            ("proyecto", "proyecto"),
            ("proposición", "proposicion"),
            ("iniciativa", "iniciativa"),
            ("enmienda", "enmienda"),
            ("ley", "ley"),
        ):
            if needle in kind:
                return group
        return "otro"

    def to_dict(self) -> dict:
        """Stable plain structure for persistence and rendering."""
        return {
            "id": self.id,
            "type": self.type,
            "group": self.group,
            "initiative_category": self.initiative_category.value,
            "subject": self.subject,
            "author": self.author,
            "presentation_date": self.presentation_date,
            "qualification_date": self.qualification_date,
            "legislature": self.legislature,
            "supertype": self.supertype,
            "grouping": self.grouping,
            "procedure_kind": self.procedure_kind,
            "result": self.result,
            "status": self.status,
            "procedure_text": self.procedure_text,
            "committee": self.committee,
            "deadlines": self.deadlines,
            "rapporteurs": self.rapporteurs,
            "bocg_links": self.bocg_links,
            "ds_links": self.ds_links,
            "law_number": self.law_number,
            "related_ids": list(self.related_ids),
            "origin_ids": list(self.origin_ids),
            "timeline": [event.to_dict() for event in self.timeline],
            "direct_relations": [r.to_dict() for r in self.direct_relations],
            "similar": [s.to_dict() for s in self.similar],
            "stage": self.stage.value if self.stage else None,
            "step": self.step,
            "stage_reason": dict(self.stage_reason),
            "publication": self.publication.to_dict(),
        }

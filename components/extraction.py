"""Extraction of Congress initiative exports into records.

Exports from the Congress open data portal do not share a single shape:
depending on the dataset the entries live under ``results/result``,
``iniciativas/iniciativa``, ``leyes/ley`` and so on. The extractor probes
the known paths in order and takes the first that yields entries.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from bs4 import BeautifulSoup, Tag

from components.auditing import ErrorCategory, ErrorTracker
from components.interfaces import Config
from components.store import RecordStore

logger = logging.getLogger(__name__)


RawDocument = Union[str, bytes, Path, Mapping]

# Canonical field name -> raw element names, first non-empty wins
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("NUMEXPEDIENTE", "NUMERO_LEY"),
    "law_number": ("NUMERO_LEY",),
    "type": ("TIPO",),
    "subject": ("OBJETO", "TITULO_LEY"),
    "author": ("AUTOR",),
    "presentation_date": ("FECHAPRESENTACION", "FECHA_LEY"),
    "qualification_date": ("FECHACALIFICACION",),
    "related_ids": ("INICIATIVASRELACIONADAS",),
    "origin_ids": ("INICIATIVASDEORIGEN",),
    "procedure_text": ("TRAMITACIONSEGUIDA",),
    "legislature": ("LEGISLATURA",),
    "supertype": ("SUPERTIPO",),
    "grouping": ("AGRUPACION",),
    "procedure_kind": ("TIPOTRAMITACION",),
    "result": ("RESULTADOTRAMITACION",),
    "status": ("SITUACIONACTUAL",),
    "committee": ("COMISIONCOMPETENTE",),
    "deadlines": ("PLAZOS",),
    "rapporteurs": ("PONENTES",),
    "bocg_links": ("ENLACESBOCG",),
    "ds_links": ("ENLACESDS",),
}

# Fields whose line structure carries meaning
MULTILINE_FIELDS = {
    "procedure_text",
    "related_ids",
    "origin_ids",
    "deadlines",
    "rapporteurs",
    "bocg_links",
    "ds_links",
}


class DocumentError(Exception):
    """A whole document could not be used."""


def normalize_entry(raw: Mapping[str, Any]) -> dict[str, str]:
    """Map a raw entry onto canonical field names.

    Args:
        raw: Element name (any case) to text

    Returns:
        Canonical fields that were provided with non-empty text
    """
    upper = {str(k).upper(): v for k, v in raw.items()}
    fields: dict[str, str] = {}
    for canonical, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            value = _as_text(upper.get(alias))
            if not value:
                continue
            if canonical not in MULTILINE_FIELDS:
                value = " ".join(value.split())
            fields[canonical] = value
            break
    return fields


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "\n".join(_as_text(v) for v in value if _as_text(v))
    if isinstance(value, Mapping):
        # Text content of a parsed element that also carried attributes
        return _as_text(value.get("_") or value.get("#text"))
    return str(value).strip()


def _tag_fields(entry: Tag) -> dict[str, str]:
    fields: dict[str, str] = {}
    for name, value in entry.attrs.items():
        fields[str(name).upper()] = _as_text(value)
    for child in entry.find_all(recursive=False):
        key = child.name.upper()
        text = child.get_text().strip()
        if key in fields and fields[key] and text:
            fields[key] = f"{fields[key]}\n{text}"
        elif text or key not in fields:
            fields[key] = text
    return fields


def _child_tags(node: Tag, name: str) -> list[Tag]:
    return [
        child
        for child in node.find_all(recursive=False)
        if child.name and child.name.lower() == name
    ]


def probe_xml(soup: BeautifulSoup, root_paths: Iterable[str]) -> list[Tag]:
    """Return the entries under the first known path present in a tree.

    Args:
        soup: Parsed XML document
        root_paths: Slash-separated element paths, tried in order

    Returns:
        Entry elements, empty if no path matched
    """
    root = next((c for c in soup.children if isinstance(c, Tag)), None)
    if root is None:
        return []
    for path in root_paths:
        parts = [p.lower() for p in path.split("/") if p]
        if len(parts) < 2 or root.name.lower() != parts[0]:
            continue
        nodes = [root]
        for part in parts[1:-1]:
            nodes = [c for node in nodes for c in _child_tags(node, part)]
        entries = [c for node in nodes for c in _child_tags(node, parts[-1])]
        if entries:
            logger.debug("Matched root path %s (%d entries)", path, len(entries))
            return entries
    return []


def _document_name(document: RawDocument, index: Optional[int] = None) -> str:
    if isinstance(document, Path):
        return document.name
    return "<document>" if index is None else f"<document {index}>"


def _lookup(mapping: Mapping, key: str) -> Any:
    for k, v in mapping.items():
        if str(k).lower() == key:
            return v
    return None


def probe_mapping(
    document: Mapping, root_paths: Iterable[str]
) -> list[Mapping]:
    """Same probing as ``probe_xml`` for an already parsed document."""
    for path in root_paths:
        node: Any = document
        for part in (p.lower() for p in path.split("/") if p):
            node = _lookup(node, part) if isinstance(node, Mapping) else None
            if node is None:
                break
        if isinstance(node, Mapping) and node:
            return [node]
        if isinstance(node, list):
            entries = [e for e in node if isinstance(e, Mapping)]
            if entries and len(entries) == len(node):
                return entries
    return []


@dataclass
class ExtractionStats:
    """Running totals of an extraction pass."""

    documents: int = 0
    processed_documents: int = 0
    skipped_documents: int = 0
    entries: int = 0
    valid_entries: int = 0
    invalid_entries: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return dict(self.__dict__)


class Extractor:
    """Turns raw documents into records held by a RecordStore."""

    def __init__(
        self,
        config: Optional[Config.Extraction] = None,
        errors: Optional[ErrorTracker] = None,
    ) -> None:
        self.config = config or Config().extraction
        self.errors = errors or ErrorTracker()
        self.stats = ExtractionStats()

    def _read(
        self, document: RawDocument, name: str
    ) -> Union[str, bytes, Mapping]:
        limit = self.config.max_document_bytes
        if isinstance(document, Mapping):
            return document
        if isinstance(document, Path):
            size = document.stat().st_size
        elif isinstance(document, str):
            # Already decoded; any encoding declaration no longer applies.
            size = len(document.encode("utf-8"))
        else:
            size = len(document)
        if size > limit:
            self.errors.record_error(
                ErrorCategory.OVERSIZED_DOCUMENT,
                f"Skipping {name}: {size} bytes exceeds limit",
                {"document": name, "size": size, "limit": limit},
            )
            raise DocumentError(name)
        if isinstance(document, Path):
            return document.read_bytes()
        return document

    def extract_entries(
        self, document: RawDocument, name: Optional[str] = None
    ) -> list[dict[str, str]]:
        """Extract the raw entries of one document.

        Oversized or unrecognised documents are logged, counted and
        yield no entries.

        Args:
            document: XML text or bytes, a file path, or a parsed mapping
            name: Label used in logs (defaults to the path name)

        Returns:
            Raw field maps, one per entry
        """
        name = name or _document_name(document)
        self.stats.documents += 1
        try:
            content = self._read(document, name)
        except DocumentError:
            self.stats.skipped_documents += 1
            return []
        except OSError as e:
            self.stats.skipped_documents += 1
            self.errors.record_error(
                ErrorCategory.PARSE_FAILURE,
                f"Could not read {name}",
                {"document": name},
                exception=e,
            )
            return []

        if isinstance(content, Mapping):
            raw_entries = [
                {str(k): _as_text(v) for k, v in entry.items()}
                for entry in probe_mapping(content, self.config.root_paths)
            ]
        else:
            try:
                soup = BeautifulSoup(content, "lxml-xml")
            except Exception as e:  # pylint: disable=broad-exception-caught
                self.stats.skipped_documents += 1
                self.errors.record_error(
                    ErrorCategory.PARSE_FAILURE,
                    f"Malformed XML in {name}",
                    {"document": name},
                    exception=e,
                )
                return []
            raw_entries = [
                _tag_fields(tag)
                for tag in probe_xml(soup, self.config.root_paths)
            ]

        if not raw_entries:
            self.stats.skipped_documents += 1
            self.errors.record_error(
                ErrorCategory.PARSE_FAILURE,
                f"No known entry collection in {name}",
                {"document": name, "root_paths": self.config.root_paths},
            )
            return []
        self.stats.processed_documents += 1
        self.stats.entries += len(raw_entries)
        logger.info("Found %d entries in %s", len(raw_entries), name)
        return raw_entries

    def ingest(
        self,
        document: RawDocument,
        store: RecordStore,
        name: Optional[str] = None,
    ) -> int:
        """Extract one document and add its valid entries to a store.

        Returns:
            Number of entries accepted into the store
        """
        name = name or _document_name(document)
        accepted = 0
        for position, raw in enumerate(self.extract_entries(document, name)):
            fields = normalize_entry(raw)
            missing = [f for f in ("id", "subject") if not fields.get(f)]
            if missing:
                self.stats.invalid_entries += 1
                self.errors.record_error(
                    ErrorCategory.INVALID_ENTRY,
                    f"Discarding entry without {' and '.join(missing)}",
                    {
                        "document": name,
                        "position": position,
                        "id": fields.get("id"),
                    },
                )
                continue
            store.add(fields)
            self.stats.valid_entries += 1
            accepted += 1
        return accepted

    def ingest_all(
        self, documents: Iterable[RawDocument], store: RecordStore
    ) -> RecordStore:
        """Ingest documents in order; later entries win on merges."""
        for index, document in enumerate(documents):
            self.ingest(document, store, _document_name(document, index))
        logger.info(
            "Extraction done: %d records from %d/%d documents",
            len(store),
            self.stats.processed_documents,
            self.stats.documents,
        )
        return store


def discover_documents(directory: Path) -> list[Path]:
    """All XML exports below a directory, in stable path order.

    Exports are often kept in dated sub-folders; they are returned oldest
    folder first so later exports win when identifiers repeat.
    """
    if not directory.exists():
        return []
    return sorted(p for p in directory.rglob("*.xml") if p.is_file())

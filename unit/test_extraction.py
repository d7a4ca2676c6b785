"""Test extraction of Congress exports into the record store."""

from components.auditing import ErrorCategory, ErrorTracker
from components.extraction import (
    Extractor,
    discover_documents,
    normalize_entry,
)
from components.interfaces import Config
from components.models import InitiativeCategory, split_references
from components.store import RecordStore
from unit.fixtures import Docket, Situation


def _extractor(**extraction) -> Extractor:
    return Extractor(
        Config(overrides={"extraction": extraction}).extraction, ErrorTracker()
    )


class TestRootPathProbing:
    """Test discovery of the entry collection inside a document."""

    def test_results_path(self, xml_factory):
        """Test the default results/result layout."""
        xml = xml_factory.congress_export([
            xml_factory.congress_entry(Docket.BILL.value),
            xml_factory.congress_entry(Docket.PROPOSAL.value),
        ])
        entries = _extractor().extract_entries(xml)
        assert [e["NUMEXPEDIENTE"] for e in entries] == [
            Docket.BILL.value, Docket.PROPOSAL.value
        ]

    def test_alternative_path(self, xml_factory):
        """Test a document nested as iniciativas/iniciativa."""
        xml = xml_factory.congress_export(
            [xml_factory.congress_entry()], root="iniciativas", item="iniciativa"
        )
        assert len(_extractor().extract_entries(xml)) == 1

    def test_probing_ignores_case(self, xml_factory):
        """Test upper-case element names for root and items."""
        xml = xml_factory.congress_export(
            [xml_factory.congress_entry()], root="RESULTS", item="RESULT"
        )
        assert len(_extractor().extract_entries(xml)) == 1

    def test_configured_paths_only(self, xml_factory):
        """Test that paths outside the configured list are not probed."""
        xml = xml_factory.congress_export(
            [xml_factory.congress_entry()], root="leyes", item="ley"
        )
        extractor = _extractor(root_paths=["results/result"])
        assert extractor.extract_entries(xml) == []
        assert extractor.errors.count(ErrorCategory.PARSE_FAILURE) == 1

    def test_single_entry_mapping(self, xml_factory):
        """Test an already parsed document holding one entry."""
        document = {"results": {"result": xml_factory.congress_entry()}}
        entries = _extractor().extract_entries(document)
        assert entries == [xml_factory.congress_entry()]

    def test_list_mapping(self, xml_factory):
        """Test an already parsed document holding a list of entries."""
        document = {
            "Iniciativas": {
                "Iniciativa": [
                    xml_factory.congress_entry(Docket.BILL.value),
                    xml_factory.congress_entry(Docket.DECREE.value),
                ]
            }
        }
        assert len(_extractor().extract_entries(document)) == 2


class TestDocumentFailures:
    """Test documents that cannot be used."""

    def test_oversized_document_skipped(self, xml_factory):
        """Test the document size limit."""
        xml = xml_factory.congress_export([xml_factory.congress_entry()])
        extractor = _extractor(max_document_mb=0.0001)
        assert extractor.extract_entries(xml, "big.xml") == []
        assert extractor.errors.count(ErrorCategory.OVERSIZED_DOCUMENT) == 1
        assert extractor.stats.skipped_documents == 1

    def test_oversized_file_not_read(self, tmp_path, xml_factory):
        """Test the size limit on a file path."""
        path = tmp_path / "big.xml"
        path.write_text(
            xml_factory.congress_export([xml_factory.congress_entry()]),
            encoding="utf-8",
        )
        extractor = _extractor(max_document_mb=0.0001)
        assert extractor.extract_entries(path) == []
        entry = extractor.errors.errors[0]
        assert entry.context["document"] == "big.xml"

    def test_unknown_document_counted(self):
        """Test a document with no known collection."""
        extractor = _extractor()
        assert extractor.extract_entries("<foo><bar>1</bar></foo>") == []
        assert extractor.errors.count(ErrorCategory.PARSE_FAILURE) == 1

    def test_garbage_document_counted(self):
        """Test text that is not XML at all."""
        extractor = _extractor()
        assert extractor.extract_entries(b"not xml at all") == []
        assert extractor.errors.count(ErrorCategory.PARSE_FAILURE) == 1

    def test_missing_file_counted(self, tmp_path):
        """Test a path that cannot be read."""
        extractor = _extractor()
        assert extractor.extract_entries(tmp_path / "missing.xml") == []
        assert extractor.errors.count(ErrorCategory.PARSE_FAILURE) == 1

    def test_other_documents_still_processed(self, xml_factory):
        """Test that one bad document does not stop the batch."""
        good = xml_factory.congress_export([xml_factory.congress_entry()])
        extractor = _extractor()
        store = extractor.ingest_all(["<foo/>", good], RecordStore())
        assert store.ids() == [Docket.BILL.value]
        assert extractor.stats.documents == 2
        assert extractor.stats.processed_documents == 1


class TestEntryNormalization:
    """Test mapping of raw entries onto records."""

    def test_invalid_entries_discarded(self, xml_factory):
        """Test entries without identifier or subject."""
        xml = xml_factory.congress_export([
            xml_factory.congress_entry(numexpediente=None),
            xml_factory.congress_entry(Docket.PROPOSAL.value, objeto="  "),
            xml_factory.congress_entry(Docket.BILL.value),
        ])
        extractor = _extractor()
        store = RecordStore()
        assert extractor.ingest(xml, store) == 1
        assert store.ids() == [Docket.BILL.value]
        assert extractor.errors.count(ErrorCategory.INVALID_ENTRY) == 2
        assert extractor.stats.invalid_entries == 2

    def test_field_aliases(self):
        """Test approved-law exports that use NUMERO_LEY and TITULO_LEY."""
        fields = normalize_entry({
            "NUMERO_LEY": "2/2024",
            "TITULO_LEY": "Ley de  amnistía",
            "FECHA_LEY": "22/03/2024",
        })
        assert fields == {
            "id": "2/2024",
            "law_number": "2/2024",
            "subject": "Ley de amnistía",
            "presentation_date": "22/03/2024",
        }

    def test_decoded_text_keeps_accents(self):
        """Test a decoded document whose declaration names another encoding."""
        xml = (
            '<?xml version="1.0" encoding="ISO-8859-1"?>'
            "<results><result>"
            f"<NUMEXPEDIENTE>{Docket.BILL.value}</NUMEXPEDIENTE>"
            "<OBJETO>Ley de protección del medio ambiente</OBJETO>"
            "</result></results>"
        )
        store = RecordStore()
        assert _extractor().ingest(xml, store) == 1
        assert store.get(Docket.BILL.value).subject == (
            "Ley de protección del medio ambiente"
        )

    def test_decoded_text_size_in_bytes(self):
        """Test that the size limit counts encoded bytes of decoded text."""
        head = (
            "<results><result>"
            f"<NUMEXPEDIENTE>{Docket.BILL.value}</NUMEXPEDIENTE>"
            "<OBJETO>Ley de protección"
        )
        tail = "</OBJETO></result></results>"
        xml = head + " " * (1024 * 1024 - len(head) - len(tail)) + tail
        assert len(xml) == 1024 * 1024
        extractor = _extractor(max_document_mb=1)
        assert extractor.extract_entries(xml) == []
        assert extractor.errors.count(ErrorCategory.OVERSIZED_DOCUMENT) == 1

    def test_lowercase_element_names(self):
        """Test that element names are matched case-insensitively."""
        fields = normalize_entry({"numexpediente": Docket.BILL.value,
                                  "objeto": "Ley"})
        assert fields["id"] == Docket.BILL.value

    def test_record_fields_derived(self, xml_factory):
        """Test dates, references, timeline and category on a record."""
        xml = xml_factory.congress_export([
            xml_factory.congress_entry(
                Docket.BILL.value,
                tipo="Proyecto de ley",
                autor="Gobierno",
                fechapresentacion="15/01/2024",
                iniciativasrelacionadas="122/000045, 130/000003\n122/000045",
                tramitacionseguida=(
                    "Comisión de Justicia\ndesde 12/03/2024 hasta 20/04/2024"
                ),
                situacionactual=Situation.COMMITTEE.value,
            ),
        ])
        store = RecordStore()
        _extractor().ingest(xml, store)
        record = store.get(Docket.BILL.value)
        assert record.presentation_date == "2024-01-15"
        assert record.related_ids == [Docket.PROPOSAL.value, Docket.DECREE.value]
        assert record.status == Situation.COMMITTEE.value
        assert record.initiative_category == InitiativeCategory.ORDINARY
        assert [e.event for e in record.timeline] == ["Comisión de Justicia"]

    def test_repeated_elements_joined(self):
        """Test that repeated child elements keep every value."""
        xml = (
            "<results><result><NUMEXPEDIENTE>121/000012</NUMEXPEDIENTE>"
            "<OBJETO>Ley</OBJETO>"
            "<INICIATIVASRELACIONADAS>122/000045</INICIATIVASRELACIONADAS>"
            "<INICIATIVASRELACIONADAS>130/000003</INICIATIVASRELACIONADAS>"
            "</result></results>"
        )
        store = RecordStore()
        _extractor().ingest(xml, store)
        assert store.get("121/000012").related_ids == ["122/000045", "130/000003"]

    def test_split_references(self):
        """Test tokenizing of cross-reference lists."""
        assert split_references(" 121/000012,,122/000045 \n121/000012") == [
            "121/000012", "122/000045"
        ]
        assert split_references(None) == []


class TestDiscovery:
    """Test locating export files on disk."""

    def test_discover_documents(self, tmp_path):
        """Test recursive, sorted discovery of XML files."""
        (tmp_path / "2024-02").mkdir()
        (tmp_path / "2024-01").mkdir()
        (tmp_path / "2024-02" / "b.xml").write_text("<a/>", encoding="utf-8")
        (tmp_path / "2024-01" / "a.xml").write_text("<a/>", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("", encoding="utf-8")
        found = discover_documents(tmp_path)
        assert [p.parent.name for p in found] == ["2024-01", "2024-02"]
        assert discover_documents(tmp_path / "missing") == []


class TestCategories:
    """Test procedure family assignment."""

    def test_categories(self, record_factory):
        """Test the main procedure families."""
        cases = [
            ({}, InitiativeCategory.ORDINARY),
            ({"procedure_kind": "Urgente"}, InitiativeCategory.URGENT),
            ({"type": "Real Decreto-ley"}, InitiativeCategory.URGENT),
            (
                {"type": "Proposición de reforma constitucional"},
                InitiativeCategory.REINFORCED_MAJORITY,
            ),
            (
                {"type": "Propuesta de reforma de Estatuto de Autonomía",
                 "author": "Parlamento de Cataluña"},
                InitiativeCategory.REGIONAL,
            ),
            (
                {"type": "Iniciativa legislativa popular",
                 "author": "Comisión Promotora ILP"},
                InitiativeCategory.POPULAR,
            ),
            (
                {"type": "Informe", "author": "Defensor del Pueblo"},
                InitiativeCategory.CONSTITUTIONAL_BODIES,
            ),
            (
                {"type": "Leyes", "author": None},
                InitiativeCategory.APPROVED_LAW,
            ),
        ]
        for overrides, expected in cases:
            record = record_factory.create_record(**overrides)
            assert record.initiative_category == expected, overrides

"""Test encoding the report model as CVRF XML."""

import io
import logging

import pytest
from lxml import etree

from vulnrep_cli.exceptions import EncodeError, ValidationError
from vulnrep_cli.report import ConversionConfig, DocumentFormat, encode, encode_bytes
from vulnrep_cli.report.cvrf import CVRF_NS, PROD_NS, VULN_NS
from vulnrep_cli.report.model import AggregateSeverity, Distribution, Note, NoteCategory

XML = DocumentFormat.XML


def _roundtrip(decode_bytes, data, config=None):
    report = decode_bytes(XML, data, config)
    return report, encode_bytes(XML, report, config)


class TestRoundTrip:
    """XML -> model -> XML."""

    def test_minimal_is_semantically_identical(self, decode_bytes, minimal_xml):
        report, output = _roundtrip(decode_bytes, minimal_xml)
        assert decode_bytes(XML, output) == report

    def test_full_is_semantically_identical(self, decode_bytes, full_xml):
        report, output = _roundtrip(decode_bytes, full_xml)
        assert decode_bytes(XML, output) == report

    def test_without_fidelity_is_semantically_identical(self, decode_bytes, full_xml):
        config = ConversionConfig(preserve_fidelity=False)
        report, output = _roundtrip(decode_bytes, full_xml, config)
        assert decode_bytes(XML, output, config) == report

    def test_prefixes_are_replayed(self, decode_bytes, full_xml):
        _, output = _roundtrip(decode_bytes, full_xml)
        text = output.decode("utf-8")
        assert "<cvrf:cvrfdoc" in text
        assert "<p:ProductTree>" in text
        assert "<v:Vulnerability Ordinal=\"1\">" in text

    def test_prefix_choice_is_replayed(self, decode_bytes, minimal_xml):
        data = minimal_xml.replace(
            b'<cvrfdoc xmlns="http://www.icasi.org/CVRF/schema/cvrf/1.2"',
            b'<cvrfdoc xmlns="http://www.icasi.org/CVRF/schema/cvrf/1.2"'
            b' xmlns:c="http://www.icasi.org/CVRF/schema/cvrf/1.2"',
        ).replace(
            b"<DocumentTitle>Example Product Buffer Overflow</DocumentTitle>",
            b"<c:DocumentTitle>Example Product Buffer Overflow</c:DocumentTitle>",
        )
        assert data.count(b"<c:DocumentTitle>") == 1

        report, output = _roundtrip(decode_bytes, data)
        text = output.decode("utf-8")
        assert "<c:DocumentTitle>Example Product Buffer Overflow</c:DocumentTitle>" in text
        assert "<DocumentType>Security Advisory</DocumentType>" in text
        root = etree.fromstring(output)
        assert root.prefix is None
        assert root.nsmap["c"] == CVRF_NS
        assert decode_bytes(XML, output) == report

    def test_attribute_order_is_replayed(self, decode_bytes, full_xml):
        _, output = _roundtrip(decode_bytes, full_xml)
        text = output.decode("utf-8")
        assert '<cvrf:DocumentPublisher VendorID="EXV" Type="Vendor">' in text
        assert '<p:Branch Name="Example" Type="Vendor">' in text
        assert '<v:Note Type="Description" Ordinal="1">' in text

    def test_extra_attributes_are_replayed(self, decode_bytes, full_xml):
        _, output = _roundtrip(decode_bytes, full_xml)
        root = etree.fromstring(output)
        schema_location = root.get("{http://www.w3.org/2001/XMLSchema-instance}schemaLocation")
        assert schema_location == "http://www.icasi.org/CVRF/schema/cvrf/1.2 cvrf.xsd"

    def test_comments_and_cdata_are_replayed(self, decode_bytes, full_xml):
        _, output = _roundtrip(decode_bytes, full_xml)
        text = output.decode("utf-8")
        assert "<!-- Example vendor advisory -->" in text
        assert '<!-- reviewed -->Two flaws were fixed in Example Server.</cvrf:Note>' in text
        assert "<![CDATA[Overflow in <request> parser]]>" in text

    def test_xml_lang_is_never_written(self, decode_bytes, full_xml):
        _, output = _roundtrip(decode_bytes, full_xml)
        assert b"xml:lang" not in output
        assert b"Zusammenfassung" not in output


class TestDefaults:
    """Output for models without fidelity metadata or with modified nodes."""

    def test_default_namespace_bindings(self, sample_report):
        root = etree.fromstring(encode_bytes(XML, sample_report))
        assert root.tag == f"{{{CVRF_NS}}}cvrfdoc"
        assert root.nsmap == {None: CVRF_NS, "prod": PROD_NS, "vuln": VULN_NS}
        assert root.prefix is None

    def test_declared_element_order(self, sample_report):
        root = etree.fromstring(encode_bytes(XML, sample_report))
        names = [etree.QName(child).localname for child in root]
        assert names == [
            "DocumentTitle", "DocumentType", "DocumentPublisher", "DocumentTracking",
            "DocumentNotes", "ProductTree", "Vulnerability",
        ]
        tracking = [etree.QName(child).localname for child in root[3]]
        assert tracking == [
            "Identification", "Status", "Version", "RevisionHistory", "InitialReleaseDate", "CurrentReleaseDate",
        ]

    def test_defaults_for_ordinals_and_vocabulary(self, sample_report):
        text = encode_bytes(XML, sample_report).decode("utf-8")
        assert '<Note Type="Summary" Ordinal="1">Summary text</Note>' in text
        assert '<vuln:Vulnerability Ordinal="1">' in text
        assert '<vuln:Status Type="Known Affected">' in text
        assert "<vuln:BaseScoreV3>6.1</vuln:BaseScoreV3>" in text
        assert "<Status>Draft</Status>" in text

    def test_missing_note_ordinal_takes_unused_number(self, decode_bytes, sample_report):
        sample_report.document.notes = [
            Note(category=NoteCategory.SUMMARY, text="first, no ordinal"),
            Note(category=NoteCategory.DETAILS, text="second", ordinal=1),
        ]
        output = encode_bytes(XML, sample_report)
        text = output.decode("utf-8")
        assert '<Note Type="Summary" Ordinal="2">first, no ordinal</Note>' in text
        assert '<Note Type="Details" Ordinal="1">second</Note>' in text

        notes = decode_bytes(XML, output).document.notes
        assert [(note.text, note.ordinal) for note in notes] == [("first, no ordinal", 2), ("second", 1)]

    def test_modified_node_falls_back_to_defaults(self, decode_bytes, full_xml):
        report = decode_bytes(XML, full_xml)
        report.document.publisher.vendor_id = "NEW"
        report.vulnerabilities[0].notes[0].text = "Edited description."
        text = encode_bytes(XML, report).decode("utf-8")
        assert '<cvrf:DocumentPublisher Type="Vendor" VendorID="NEW">' in text
        assert '<v:Note Type="Description" Ordinal="1">Edited description.</v:Note>' in text
        # untouched siblings keep their recorded layout
        assert '<p:Branch Name="Example" Type="Vendor">' in text

    def test_modified_text_drops_comment(self, decode_bytes, full_xml):
        report = decode_bytes(XML, full_xml)
        report.document.notes[0].text = "Rewritten."
        text = encode_bytes(XML, report).decode("utf-8")
        assert "reviewed" not in text

    def test_optional_document_elements(self, sample_report):
        sample_report.document.distribution = Distribution(text="Public")
        sample_report.document.aggregate_severity = AggregateSeverity(text="High", namespace="https://example.com")
        text = encode_bytes(XML, sample_report).decode("utf-8")
        assert "<DocumentDistribution>Public</DocumentDistribution>" in text
        assert '<AggregateSeverity Namespace="https://example.com">High</AggregateSeverity>' in text

    def test_no_declaration(self, sample_report):
        output = encode_bytes(XML, sample_report, ConversionConfig(xml_declaration=False))
        assert not output.startswith(b"<?xml")


class TestLossyFields:
    """Translations and other JSON-only fields are dropped with a warning."""

    def test_translations_dropped_and_logged(self, sample_report, caplog):
        with caplog.at_level(logging.WARNING):
            text = encode_bytes(XML, sample_report).decode("utf-8")
        assert "Texto de resumen" not in text
        assert "Example Corp" not in text
        assert "document.notes[0].text_translations" in caplog.text
        assert "document.publisher.name" in caplog.text

    def test_no_warning_without_losses(self, decode_bytes, minimal_xml, caplog):
        report = decode_bytes(XML, minimal_xml)
        with caplog.at_level(logging.WARNING):
            encode_bytes(XML, report)
        assert "CVRF cannot represent" not in caplog.text


class TestErrors:
    """EncodeError conditions; nothing is written on failure."""

    def test_missing_tracking_id(self, sample_report):
        sample_report.document.tracking.id = ""
        stream = io.BytesIO()
        with pytest.raises(EncodeError):
            encode(XML, sample_report, stream)
        assert stream.getvalue() == b""

    def test_dangling_reference(self, sample_report):
        sample_report.vulnerabilities[0].scores[0].product_ids = ["CSAFPID-9999"]
        stream = io.BytesIO()
        with pytest.raises(ValidationError):
            encode(XML, sample_report, stream)
        assert stream.getvalue() == b""

    def test_unserializable_text(self, sample_report):
        sample_report.document.title = "bad \x00 control"
        stream = io.BytesIO()
        with pytest.raises(EncodeError):
            encode(XML, sample_report, stream)
        assert stream.getvalue() == b""

    @pytest.mark.parametrize("clear, location", [
        (lambda r: setattr(r.document.tracking, "status", None), "document.tracking.status"),
        (lambda r: setattr(r.document.tracking, "version", None), "document.tracking.version"),
        (lambda r: setattr(r.document.tracking.revision_history[0], "date", None),
         "document.tracking.revision_history[0].date"),
        (lambda r: setattr(r.document.notes[0], "category", None), "document.notes[0].category"),
    ])
    def test_missing_required_field(self, sample_report, clear, location):
        clear(sample_report)
        stream = io.BytesIO()
        with pytest.raises(EncodeError) as exc_info:
            encode(XML, sample_report, stream)
        assert exc_info.value.details["location"] == location
        assert stream.getvalue() == b""

    def test_duplicate_note_ordinal(self, sample_report):
        sample_report.document.notes = [
            Note(category=NoteCategory.SUMMARY, text="one", ordinal=1),
            Note(category=NoteCategory.DETAILS, text="two", ordinal=1),
        ]
        stream = io.BytesIO()
        with pytest.raises(ValidationError, match="ordinal 1"):
            encode(XML, sample_report, stream)
        assert stream.getvalue() == b""

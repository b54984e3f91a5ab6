"""Test cross-format conversion through the core entry points."""

import io
import json

import pytest

from vulnrep_cli.exceptions import ParseError, ValidationError
from vulnrep_cli.report import (
    DocumentFormat,
    convert,
    convert_bytes,
    decode,
    encode_bytes,
    json_losses,
    xml_losses,
)

XML = DocumentFormat.XML
JSON = DocumentFormat.JSON


def _leaf_ids(node):
    """Collects product ids from every product_id key in a CSAF product tree."""
    ids = set()
    if isinstance(node, dict):
        if "product_id" in node:
            ids.add(node["product_id"])
        for value in node.values():
            ids |= _leaf_ids(value)
    elif isinstance(node, list):
        for value in node:
            ids |= _leaf_ids(value)
    return ids


class TestXmlToJson:
    """The minimal CVE-2021-0001 scenario."""

    def test_minimal_scenario(self, minimal_xml):
        document = json.loads(convert_bytes(XML, minimal_xml, JSON))
        vuln = document["vulnerabilities"][0]
        assert vuln["cve"] == "CVE-2021-0001"
        status_ids = {pid for ids in vuln["product_status"].values() for pid in ids}
        assert status_ids == {"CSAFPID-1"}
        score_ids = {pid for score in vuln["scores"] for pid in score["products"]}
        assert score_ids == {"CSAFPID-1"}
        assert "CSAFPID-1" in _leaf_ids(document["product_tree"])

    def test_nothing_semantic_is_lost(self, decode_bytes, full_xml):
        report = decode_bytes(XML, full_xml)
        assert decode_bytes(JSON, encode_bytes(JSON, report)) == report

    def test_xml_json_xml(self, decode_bytes, full_xml):
        report = decode_bytes(XML, full_xml)
        via_json = decode_bytes(JSON, encode_bytes(JSON, report))
        back = decode_bytes(XML, encode_bytes(XML, via_json))
        assert back == report

    def test_json_losses_names_structure(self, decode_bytes, full_xml):
        report = decode_bytes(XML, full_xml)
        assert json_losses(report)
        assert xml_losses(report) == []


class TestTranslationLoss:
    """JSON -> XML drops translations once and for all."""

    def test_loss_is_one_way_and_idempotent(self, decode_bytes, translated_json):
        original = decode_bytes(JSON, translated_json)
        assert "document.title_translations" in xml_losses(original)

        xml_bytes = encode_bytes(XML, original)
        assert b"Zusammenfassung" not in xml_bytes
        assert "Debug-Endpunkte".encode("utf-8") not in xml_bytes

        from_xml = decode_bytes(XML, xml_bytes)
        json_again = json.loads(encode_bytes(JSON, from_xml))
        assert "title_translations" not in json_again["document"]
        assert "text_translations" not in json_again["document"]["notes"][0]
        assert xml_losses(from_xml) == []

        # default-language text survives
        assert from_xml.document.notes[0].text == original.document.notes[0].text
        assert from_xml.vulnerabilities[0].title == original.vulnerabilities[0].title

    def test_second_pass_is_stable(self, decode_bytes, translated_json):
        once = decode_bytes(XML, convert_bytes(JSON, translated_json, XML))
        twice = decode_bytes(XML, encode_bytes(XML, decode_bytes(JSON, encode_bytes(JSON, once))))
        assert once == twice


class TestCrossReferences:
    """A reference to CSAFPID-9999 fails in both formats."""

    def test_xml(self, minimal_xml):
        data = minimal_xml.replace(b"<vuln:ProductID>CSAFPID-1</vuln:ProductID>",
                                   b"<vuln:ProductID>CSAFPID-9999</vuln:ProductID>")
        with pytest.raises(ValidationError, match="CSAFPID-9999"):
            decode(XML, io.BytesIO(data))

    def test_json(self, translated_json):
        data = translated_json.replace(b'"product_ids": [\n            "CSAFPID-1"',
                                       b'"product_ids": [\n            "CSAFPID-9999"')
        assert data != translated_json
        with pytest.raises(ValidationError, match="CSAFPID-9999"):
            decode(JSON, io.BytesIO(data))


class TestConvert:
    def test_convert_streams(self, minimal_xml):
        destination = io.BytesIO()
        report = convert(XML, io.BytesIO(minimal_xml), JSON, destination)
        assert report.document.tracking.id == "EXAMPLE-SA-2021-0001"
        assert json.loads(destination.getvalue())["document"]["tracking"]["id"] == "EXAMPLE-SA-2021-0001"

    def test_failed_decode_writes_nothing(self, minimal_xml):
        destination = io.BytesIO()
        with pytest.raises(ParseError):
            convert(XML, io.BytesIO(minimal_xml.replace(b"<ID>EXAMPLE-SA-2021-0001</ID>", b"")), JSON, destination)
        assert destination.getvalue() == b""

    def test_format_is_explicit(self, translated_json):
        with pytest.raises(ParseError):
            decode(XML, io.BytesIO(translated_json))

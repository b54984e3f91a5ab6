"""Test decoding and encoding CSAF JSON."""

import io
import json

import pytest

from vulnrep_cli.exceptions import EncodeError, ParseError, ValidationError
from vulnrep_cli.report import ConversionConfig, DocumentFormat, encode, encode_bytes
from vulnrep_cli.report.model import (
    CWE,
    Acknowledgment,
    FullProductName,
    ProductStatus,
    ProductStatusType,
    PublisherCategory,
    Score,
)

JSON = DocumentFormat.JSON


def _load(data: bytes):
    return json.loads(data.decode("utf-8"))


def _dump(document) -> bytes:
    return json.dumps(document).encode("utf-8")


class TestDecode:
    """CSAF JSON -> model."""

    def test_translations(self, decode_bytes, translated_json):
        report = decode_bytes(JSON, translated_json)
        doc = report.document
        assert doc.title_translations == {"de": "Example Server Informationsleck"}
        assert doc.notes[0].text_translations["fr"] == "Une faille a été corrigée dans Example Server."
        assert doc.notes[0].title_translations == {"de": "Zusammenfassung"}
        assert report.vulnerabilities[0].title_translations == {"de": "Offener Debug-Endpunkt"}

    def test_json_only_fields(self, decode_bytes, translated_json):
        report = decode_bytes(JSON, translated_json)
        doc = report.document
        assert doc.lang == "en"
        assert doc.publisher.category == PublisherCategory.VENDOR
        assert doc.publisher.name == "Example Corp"
        assert doc.distribution.tlp_label == "WHITE"
        assert doc.tracking.generator.engine_version == "4.2"
        assert report.product_tree.full_product_names[0].purl == "pkg:generic/example/server@2.0"

    def test_scores_and_cwe(self, decode_bytes, translated_json):
        vuln = decode_bytes(JSON, translated_json).vulnerabilities[0]
        assert vuln.cwes == [CWE(id="CWE-200", name="Exposure of Sensitive Information to an Unauthorized Actor")]
        assert vuln.scores == [Score(
            cvss_version="3.1",
            base_score=5.3,
            vector="CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:L/I:N/A:N",
            product_ids=["CSAFPID-1"],
        )]

    def test_one_entry_with_both_cvss_versions(self, decode_bytes, translated_json):
        document = _load(translated_json)
        document["vulnerabilities"][0]["scores"][0]["cvss_v2"] = {
            "version": "2.0", "vectorString": "AV:N/AC:L/Au:N/C:P/I:N/A:N", "baseScore": 5.0,
        }
        vuln = decode_bytes(JSON, _dump(document)).vulnerabilities[0]
        assert [score.cvss_version for score in vuln.scores] == ["2.0", "3.1"]
        assert all(score.product_ids == ["CSAFPID-1"] for score in vuln.scores)

    def test_unknown_keys_ignored(self, decode_bytes, translated_json):
        document = _load(translated_json)
        document["document"]["x_vendor_extension"] = {"anything": True}
        report = decode_bytes(JSON, _dump(document))
        assert report.document.tracking.id == "EXAMPLE-SA-2021-0003"

    def test_no_fidelity(self, decode_bytes, translated_json):
        assert decode_bytes(JSON, translated_json).fidelity is None

    def test_repeated_status_ids_are_dropped(self, decode_bytes, translated_json):
        document = _load(translated_json)
        document["vulnerabilities"][0]["product_status"]["known_affected"] = ["CSAFPID-1", "CSAFPID-1"]
        vuln = decode_bytes(JSON, _dump(document)).vulnerabilities[0]
        assert vuln.product_statuses == [
            ProductStatus(status=ProductStatusType.KNOWN_AFFECTED, product_ids=["CSAFPID-1"]),
        ]


class TestDecodeErrors:
    def test_malformed_json(self, decode_bytes, translated_json):
        with pytest.raises(ParseError, match="Malformed JSON") as exc_info:
            decode_bytes(JSON, translated_json[:-10])
        assert exc_info.value.details["line"] > 1

    def test_missing_tracking_id(self, decode_bytes, translated_json):
        document = _load(translated_json)
        del document["document"]["tracking"]["id"]
        with pytest.raises(ParseError) as exc_info:
            decode_bytes(JSON, _dump(document))
        assert exc_info.value.details["location"] == "document.tracking"

    def test_wrong_type(self, decode_bytes, translated_json):
        document = _load(translated_json)
        document["document"]["tracking"]["revision_history"] = {"number": "1"}
        with pytest.raises(ParseError, match="Expected an array"):
            decode_bytes(JSON, _dump(document))

    def test_unknown_token(self, decode_bytes, translated_json):
        document = _load(translated_json)
        document["vulnerabilities"][0]["remediations"][0]["category"] = "pray"
        with pytest.raises(ParseError, match="pray") as exc_info:
            decode_bytes(JSON, _dump(document))
        assert exc_info.value.details["location"] == "vulnerabilities[0].remediations[0].category"

    def test_invalid_purl(self, decode_bytes, translated_json):
        document = _load(translated_json)
        document["product_tree"]["full_product_names"][0]["product_identification_helper"]["purl"] = "not-a-purl"
        with pytest.raises(ParseError, match="package URL"):
            decode_bytes(JSON, _dump(document))

    def test_score_without_cvss(self, decode_bytes, translated_json):
        document = _load(translated_json)
        del document["vulnerabilities"][0]["scores"][0]["cvss_v3"]
        with pytest.raises(ParseError, match="neither"):
            decode_bytes(JSON, _dump(document))

    def test_version_mismatch(self, decode_bytes, translated_json):
        document = _load(translated_json)
        document["vulnerabilities"][0]["scores"][0]["cvss_v3"]["version"] = "2.0"
        with pytest.raises(ParseError, match="does not match"):
            decode_bytes(JSON, _dump(document))

    def test_dangling_product_id(self, decode_bytes, translated_json):
        document = _load(translated_json)
        document["vulnerabilities"][0]["product_status"]["known_affected"] = ["CSAFPID-9999"]
        with pytest.raises(ValidationError) as exc_info:
            decode_bytes(JSON, _dump(document))
        assert exc_info.value.details["product_id"] == "CSAFPID-9999"


class TestEncode:
    """model -> CSAF JSON."""

    def test_round_trip_is_lossless(self, decode_bytes, translated_json):
        report = decode_bytes(JSON, translated_json)
        assert decode_bytes(JSON, encode_bytes(JSON, report)) == report

    def test_programmatic_round_trip(self, decode_bytes, sample_report):
        assert decode_bytes(JSON, encode_bytes(JSON, sample_report)) == sample_report

    def test_output_is_deterministic(self, decode_bytes, translated_json):
        report = decode_bytes(JSON, translated_json)
        assert encode_bytes(JSON, report) == encode_bytes(JSON, report)

    def test_fixed_key_order(self, sample_report):
        document = _load(encode_bytes(JSON, sample_report))
        assert list(document) == ["document", "product_tree", "vulnerabilities"]
        assert list(document["document"])[:3] == ["category", "csaf_version", "notes"]
        assert list(document["document"])[-2:] == ["title", "tracking"]

    def test_cvss_v3_output(self, sample_report):
        score = _load(encode_bytes(JSON, sample_report))["vulnerabilities"][0]["scores"][0]
        assert score == {
            "cvss_v3": {
                "version": "3.1",
                "vectorString": "CVSS:3.1/AV:N/AC:L/PR:N/UI:R/S:C/C:L/I:L/A:N",
                "baseScore": 6.1,
                "baseSeverity": "MEDIUM",
            },
            "products": ["CSAFPID-1"],
        }

    def test_repeated_status_bucket_is_rejected(self, sample_report):
        sample_report.vulnerabilities[0].product_statuses.append(
            ProductStatus(status=ProductStatusType.KNOWN_AFFECTED, product_ids=["CSAFPID-1"]))
        stream = io.BytesIO()
        with pytest.raises(ValidationError, match="known_affected"):
            encode(JSON, sample_report, stream)
        assert stream.getvalue() == b""

    def test_status_buckets_round_trip(self, decode_bytes, sample_report):
        sample_report.product_tree.full_product_names.append(
            FullProductName(product_id="CSAFPID-2", name="Widget 2.0"))
        sample_report.vulnerabilities[0].product_statuses = [
            ProductStatus(status=ProductStatusType.FIXED, product_ids=["CSAFPID-2"]),
            ProductStatus(status=ProductStatusType.KNOWN_AFFECTED, product_ids=["CSAFPID-1", "CSAFPID-2"]),
        ]
        output = encode_bytes(JSON, sample_report)
        assert list(_load(output)["vulnerabilities"][0]["product_status"]) == ["fixed", "known_affected"]
        assert decode_bytes(JSON, output) == sample_report

    def test_cvrf_only_data_uses_extension_keys(self, decode_bytes, sample_report):
        vuln = sample_report.vulnerabilities[0]
        vuln.ordinal = 3
        vuln.cwes = [CWE(id="CWE-79", name="XSS"), CWE(id="CWE-80", name="Basic XSS")]
        sample_report.document.acknowledgments = [Acknowledgment(organizations=["A", "B"])]
        document = _load(encode_bytes(JSON, sample_report))
        assert document["vulnerabilities"][0]["ordinal"] == 3
        assert [cwe["id"] for cwe in document["vulnerabilities"][0]["cwes"]] == ["CWE-79", "CWE-80"]
        assert document["document"]["acknowledgments"][0]["organizations"] == ["A", "B"]
        assert decode_bytes(JSON, encode_bytes(JSON, sample_report)) == sample_report

    def test_indent_and_ascii(self, sample_report):
        sample_report.document.title = "Résumé"
        compact = encode_bytes(JSON, sample_report, ConversionConfig(json_indent=None))
        assert b"\n" not in compact
        assert "Résumé".encode("utf-8") in compact
        escaped = encode_bytes(JSON, sample_report, ConversionConfig(json_ensure_ascii=True))
        assert b"R\\u00e9sum\\u00e9" in escaped

    def test_missing_tracking_id(self, sample_report):
        sample_report.document.tracking.id = ""
        stream = io.BytesIO()
        with pytest.raises(EncodeError):
            encode(JSON, sample_report, stream)
        assert stream.getvalue() == b""

    @pytest.mark.parametrize("clear, location", [
        (lambda r: setattr(r.document.tracking, "status", None), "document.tracking.status"),
        (lambda r: setattr(r.document.tracking, "version", None), "document.tracking.version"),
        (lambda r: setattr(r.document.tracking.revision_history[0], "date", None),
         "document.tracking.revision_history[0].date"),
        (lambda r: setattr(r.vulnerabilities[0].scores[0], "base_score", None),
         "vulnerabilities[0].scores[0].base_score"),
    ])
    def test_missing_required_field(self, sample_report, clear, location):
        clear(sample_report)
        stream = io.BytesIO()
        with pytest.raises(EncodeError) as exc_info:
            encode(JSON, sample_report, stream)
        assert exc_info.value.details["location"] == location
        assert stream.getvalue() == b""

"""
CSAF (JSON) encoder.

Builds the CSAF document as nested dicts in a fixed key order and serializes
it with the json module. Data that CSAF has no key for is written under the
extension keys the JSON decoder reads back, so the JSON form carries every
field of the model.
"""

import json
import logging
from typing import Any, BinaryIO, Dict, List, Optional

from ..exceptions import EncodeError
from . import cvss
from .config import DEFAULT_CONFIG, ConversionConfig
from .fidelity import json_losses
from .model import (
    Acknowledgment,
    Branch,
    DocumentMetadata,
    FullProductName,
    Note,
    ProductTree,
    Reference,
    Report,
    Score,
    Tracking,
    Translations,
    Vulnerability,
)

logger = logging.getLogger(__name__)

CSAF_VERSION = "2.0"

JSONObject = Dict[str, Any]


def encode_json(report: Report, stream: BinaryIO, config: Optional[ConversionConfig] = None) -> None:
    """
    Encode a Report as a CSAF JSON document and write it to a stream.

    Args:
        report: The report to encode
        stream: Writable binary stream
        config: Conversion options (defaults apply when omitted)

    Raises:
        EncodeError: If a required field is absent or a value is not serializable
        ValidationError: If the report references undefined product or group ids
    """
    stream.write(encode_json_bytes(report, config))


def encode_json_bytes(report: Report, config: Optional[ConversionConfig] = None) -> bytes:
    """Encode a Report as CSAF JSON and return the UTF-8 bytes."""
    config = config or DEFAULT_CONFIG
    report.check_required(EncodeError)
    report.validate()

    for loss in json_losses(report):
        logger.debug(f"Not carried into JSON: {loss}")

    document = _CSAFWriter().write_report(report)
    try:
        text = json.dumps(document, indent=config.json_indent, ensure_ascii=config.json_ensure_ascii)
    except (TypeError, ValueError) as e:
        raise EncodeError(f"Unable to serialize report as CSAF JSON: {e}",
                          details={"document_id": report.document.tracking.id}) from e
    return text.encode("utf-8")


def _put(obj: JSONObject, key: str, value: Any) -> None:
    """Sets a key unless the value is empty; CSAF omits absent optional keys."""
    if value is None or value == [] or value == {}:
        return
    obj[key] = value


def _put_translated(obj: JSONObject, key: str, value: Optional[str], translations: Translations) -> None:
    _put(obj, key, value)
    if translations:
        obj[f"{key}_translations"] = dict(translations)


class _CSAFWriter:
    """Converts the model into JSON-ready dicts."""

    # --- Document ---

    def write_report(self, report: Report) -> JSONObject:
        out: JSONObject = {"document": self._write_document(report.document)}
        if not report.product_tree.is_empty():
            out["product_tree"] = self._write_product_tree(report.product_tree)
        _put(out, "vulnerabilities", [self._write_vulnerability(vuln) for vuln in report.vulnerabilities])
        return out

    def _write_document(self, doc: DocumentMetadata) -> JSONObject:
        out: JSONObject = {}
        _put(out, "acknowledgments", self._write_acknowledgments(doc.acknowledgments))

        if doc.aggregate_severity is not None:
            severity: JSONObject = {}
            _put(severity, "namespace", doc.aggregate_severity.namespace)
            severity["text"] = doc.aggregate_severity.text
            out["aggregate_severity"] = severity

        out["category"] = doc.category
        out["csaf_version"] = CSAF_VERSION

        if doc.distribution is not None:
            dist: JSONObject = {}
            _put(dist, "text", doc.distribution.text)
            tlp: JSONObject = {}
            _put(tlp, "label", doc.distribution.tlp_label)
            _put(tlp, "url", doc.distribution.tlp_url)
            _put(dist, "tlp", tlp)
            out["distribution"] = dist

        _put(out, "lang", doc.lang)
        _put(out, "notes", self._write_notes(doc.notes))

        publisher = doc.publisher
        pub: JSONObject = {"category": publisher.category.value}
        _put(pub, "contact_details", publisher.contact_details)
        _put(pub, "issuing_authority", publisher.issuing_authority)
        _put(pub, "name", publisher.name)
        _put(pub, "namespace", publisher.namespace)
        _put(pub, "vendor_id", publisher.vendor_id)
        out["publisher"] = pub

        _put(out, "references", self._write_references(doc.references))
        _put(out, "source_lang", doc.source_lang)
        _put_translated(out, "title", doc.title, doc.title_translations)
        out["tracking"] = self._write_tracking(doc.tracking)
        return out

    def _write_tracking(self, tracking: Tracking) -> JSONObject:
        out: JSONObject = {}
        _put(out, "aliases", list(tracking.aliases))
        _put(out, "current_release_date", tracking.current_release_date)

        generator = tracking.generator
        if generator is not None:
            gen: JSONObject = {}
            _put(gen, "date", generator.date)
            engine: JSONObject = {}
            _put(engine, "name", generator.engine_name)
            _put(engine, "version", generator.engine_version)
            _put(gen, "engine", engine)
            out["generator"] = gen

        out["id"] = tracking.id
        _put(out, "initial_release_date", tracking.initial_release_date)

        history = []
        for revision in tracking.revision_history:
            rev: JSONObject = {"date": revision.date}
            _put(rev, "legacy_version", revision.legacy_version)
            rev["number"] = revision.number
            rev["summary"] = revision.summary
            history.append(rev)
        out["revision_history"] = history

        out["status"] = tracking.status.value
        out["version"] = tracking.version
        return out

    # --- Generic structures ---

    @staticmethod
    def _write_notes(notes: List[Note]) -> List[JSONObject]:
        result = []
        for note in notes:
            out: JSONObject = {}
            _put(out, "audience", note.audience)
            out["category"] = note.category.value
            _put(out, "ordinal", note.ordinal)
            _put_translated(out, "text", note.text, note.text_translations)
            _put_translated(out, "title", note.title, note.title_translations)
            result.append(out)
        return result

    @staticmethod
    def _write_references(references: List[Reference]) -> List[JSONObject]:
        result = []
        for ref in references:
            out: JSONObject = {}
            if ref.category is not None:
                out["category"] = ref.category.value
            out["summary"] = ref.summary
            out["url"] = ref.url
            result.append(out)
        return result

    @staticmethod
    def _write_acknowledgments(acknowledgments: List[Acknowledgment]) -> List[JSONObject]:
        result = []
        for ack in acknowledgments:
            out: JSONObject = {}
            _put(out, "names", list(ack.names))
            if len(ack.organizations) == 1:
                out["organization"] = ack.organizations[0]
            else:
                _put(out, "organizations", list(ack.organizations))
            _put(out, "summary", ack.summary)
            _put(out, "urls", list(ack.urls))
            result.append(out)
        return result

    # --- Product tree ---

    def _write_product_tree(self, tree: ProductTree) -> JSONObject:
        out: JSONObject = {}
        _put(out, "branches", [self._write_branch(branch) for branch in tree.branches])
        _put(out, "full_product_names", [self._write_full_product_name(fpn) for fpn in tree.full_product_names])

        groups = []
        for group in tree.product_groups:
            item: JSONObject = {"group_id": group.group_id, "product_ids": list(group.product_ids)}
            _put(item, "summary", group.summary)
            groups.append(item)
        _put(out, "product_groups", groups)

        _put(out, "relationships", [
            {
                "category": rel.category.value,
                "full_product_name": self._write_full_product_name(rel.full_product_name),
                "product_reference": rel.product_reference,
                "relates_to_product_reference": rel.relates_to_product_reference,
            }
            for rel in tree.relationships
        ])
        return out

    def _write_branch(self, branch: Branch) -> JSONObject:
        out: JSONObject = {}
        _put(out, "branches", [self._write_branch(child) for child in branch.branches])
        out["category"] = branch.category.value
        out["name"] = branch.name
        if branch.product is not None:
            out["product"] = self._write_full_product_name(branch.product)
        return out

    @staticmethod
    def _write_full_product_name(product: FullProductName) -> JSONObject:
        out: JSONObject = {"name": product.name, "product_id": product.product_id}
        helper: JSONObject = {}
        _put(helper, "cpe", product.cpe)
        _put(helper, "purl", product.purl)
        _put(out, "product_identification_helper", helper)
        return out

    # --- Vulnerabilities ---

    def _write_vulnerability(self, vuln: Vulnerability) -> JSONObject:
        out: JSONObject = {}
        _put(out, "acknowledgments", self._write_acknowledgments(vuln.acknowledgments))
        _put(out, "cve", vuln.cve)

        cwes = [{"id": cwe.id, "name": cwe.name} for cwe in vuln.cwes]
        if len(cwes) == 1:
            out["cwe"] = cwes[0]
        else:
            _put(out, "cwes", cwes)

        _put(out, "discovery_date", vuln.discovery_date)
        _put(out, "ids", [{"system_name": vid.system_name, "text": vid.text} for vid in vuln.ids])

        involvements = []
        for inv in vuln.involvements:
            item: JSONObject = {}
            _put(item, "date", inv.date)
            item["party"] = inv.party.value
            item["status"] = inv.status.value
            _put(item, "summary", inv.summary)
            involvements.append(item)
        _put(out, "involvements", involvements)

        _put(out, "notes", self._write_notes(vuln.notes))
        _put(out, "ordinal", vuln.ordinal)
        _put(out, "product_status", self._write_product_status(vuln))
        _put(out, "references", self._write_references(vuln.references))
        _put(out, "release_date", vuln.release_date)

        remediations = []
        for rem in vuln.remediations:
            item = {"category": rem.category.value}
            _put(item, "date", rem.date)
            item["details"] = rem.details
            _put(item, "entitlements", list(rem.entitlements))
            _put(item, "group_ids", list(rem.group_ids))
            _put(item, "product_ids", list(rem.product_ids))
            _put(item, "url", rem.url)
            remediations.append(item)
        _put(out, "remediations", remediations)

        _put(out, "scores", [self._write_score(score) for score in vuln.scores])

        threats = []
        for threat in vuln.threats:
            item = {"category": threat.category.value}
            _put(item, "date", threat.date)
            item["details"] = threat.details
            _put(item, "group_ids", list(threat.group_ids))
            _put(item, "product_ids", list(threat.product_ids))
            threats.append(item)
        _put(out, "threats", threats)

        _put_translated(out, "title", vuln.title, vuln.title_translations)
        return out

    @staticmethod
    def _write_product_status(vuln: Vulnerability) -> JSONObject:
        # Buckets keep model order. Report.validate() guarantees unique types and ids.
        return {status.status.value: list(status.product_ids) for status in vuln.product_statuses}

    @staticmethod
    def _write_score(score: Score) -> JSONObject:
        body: JSONObject = {"version": score.cvss_version}
        _put(body, "vectorString", score.vector)
        body["baseScore"] = score.base_score
        if not score.is_v2:
            body["baseSeverity"] = cvss.v3_severity(score.base_score)
        _put(body, "temporalScore", score.temporal_score)
        _put(body, "environmentalScore", score.environmental_score)

        key = "cvss_v2" if score.is_v2 else "cvss_v3"
        return {key: body, "products": list(score.product_ids)}

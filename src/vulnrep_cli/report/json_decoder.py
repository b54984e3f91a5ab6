"""
CSAF (JSON) decoder.

Reads CSAF 2.0 shaped JSON into the unified report model. Besides the CSAF
keys the decoder understands the extension keys the JSON encoder writes for
data only CVRF has (``ordinal``, ``vendor_id``, ``cwes``, ``organizations``)
and the ``<field>_translations`` maps. Unknown keys are ignored.

No fidelity metadata is produced.
"""

import json
import logging
from enum import Enum
from typing import Any, BinaryIO, Dict, List, Optional, Type, TypeVar

from packageurl import PackageURL

from ..exceptions import ParseError
from . import cvss
from .config import DEFAULT_CONFIG, ConversionConfig
from .model import (
    CWE,
    Acknowledgment,
    AggregateSeverity,
    Branch,
    BranchCategory,
    Distribution,
    DocumentMetadata,
    DocumentStatus,
    FullProductName,
    Generator,
    Involvement,
    InvolvementParty,
    InvolvementStatus,
    Note,
    NoteCategory,
    ProductGroup,
    ProductStatus,
    ProductStatusType,
    ProductTree,
    Publisher,
    PublisherCategory,
    Reference,
    ReferenceCategory,
    Relationship,
    RelationshipCategory,
    Remediation,
    RemediationCategory,
    Report,
    Revision,
    Score,
    Threat,
    ThreatCategory,
    Tracking,
    Translations,
    Vulnerability,
    VulnerabilityID,
    parse_date,
)
from .vocabulary import from_token

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

_MISSING = object()


def decode_json(stream: BinaryIO, config: Optional[ConversionConfig] = None) -> Report:
    """
    Decode a CSAF JSON document into a Report.

    Args:
        stream: Readable stream positioned at the start of the document
        config: Conversion options (defaults apply when omitted)

    Returns:
        Report: The decoded report, validated

    Raises:
        ParseError: If the JSON is malformed, a required key is missing or a value has the wrong type
        ValidationError: If the report references undefined product or group ids
    """
    config = config or DEFAULT_CONFIG
    data = stream.read()

    try:
        document = json.loads(data)
    except json.JSONDecodeError as e:
        raise ParseError(
            f"Malformed JSON document: {e.msg}",
            details={"location": f"line {e.lineno} column {e.colno}", "line": e.lineno},
        ) from e
    except UnicodeDecodeError as e:
        raise ParseError(f"JSON document is not valid UTF-8: {e}") from e

    report = _CSAFReader().read_report(document)
    report.check_required(ParseError)
    report.validate()

    logger.debug(
        f"Decoded CSAF document '{report.document.tracking.id}' with "
        f"{len(report.vulnerabilities)} vulnerabilities and "
        f"{len(report.product_tree.product_ids())} products"
    )
    return report


class _CSAFReader:
    """Type-checked access to the parsed JSON value, reporting errors with a dotted path."""

    # --- Generic helpers ---

    @staticmethod
    def _error(message: str, path: str) -> ParseError:
        return ParseError(message, details={"location": path})

    def _object(self, value: Any, path: str) -> Dict[str, Any]:
        if not isinstance(value, dict):
            raise self._error(f"Expected an object, got {type(value).__name__}", path)
        return value

    def _get(self, obj: Dict[str, Any], key: str, path: str, required: bool):
        value = obj.get(key, _MISSING)
        if value is _MISSING or value is None:
            if required:
                raise self._error(f"Required key '{key}' is missing", path)
            return _MISSING
        return value

    def _string(self, obj: Dict[str, Any], key: str, path: str, required: bool = False) -> Optional[str]:
        value = self._get(obj, key, path, required)
        if value is _MISSING:
            return None
        if not isinstance(value, str):
            raise self._error(f"Expected a string, got {type(value).__name__}", f"{path}.{key}")
        return value

    def _date(self, obj: Dict[str, Any], key: str, path: str, required: bool = False) -> Optional[str]:
        value = self._string(obj, key, path, required)
        if value is not None:
            try:
                parse_date(value)
            except ValueError:
                raise self._error(f"'{value}' is not an ISO 8601 date", f"{path}.{key}") from None
        return value

    def _int(self, obj: Dict[str, Any], key: str, path: str) -> Optional[int]:
        value = self._get(obj, key, path, False)
        if value is _MISSING:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise self._error(f"Expected an integer, got {type(value).__name__}", f"{path}.{key}")
        return value

    def _number(self, obj: Dict[str, Any], key: str, path: str, required: bool = False) -> Optional[float]:
        value = self._get(obj, key, path, required)
        if value is _MISSING:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._error(f"Expected a number, got {type(value).__name__}", f"{path}.{key}")
        return float(value)

    def _list(self, obj: Dict[str, Any], key: str, path: str, required: bool = False) -> List[Any]:
        value = self._get(obj, key, path, required)
        if value is _MISSING:
            return []
        if not isinstance(value, list):
            raise self._error(f"Expected an array, got {type(value).__name__}", f"{path}.{key}")
        return value

    def _strings(self, obj: Dict[str, Any], key: str, path: str) -> List[str]:
        values = self._list(obj, key, path)
        for i, value in enumerate(values):
            if not isinstance(value, str):
                raise self._error(f"Expected a string, got {type(value).__name__}", f"{path}.{key}[{i}]")
        return list(values)

    def _objects(self, obj: Dict[str, Any], key: str, path: str, required: bool = False):
        for i, value in enumerate(self._list(obj, key, path, required)):
            item_path = f"{path}.{key}[{i}]"
            yield self._object(value, item_path), item_path

    def _child(self, obj: Dict[str, Any], key: str, path: str, required: bool = False) -> Optional[Dict[str, Any]]:
        value = self._get(obj, key, path, required)
        if value is _MISSING:
            return None
        return self._object(value, f"{path}.{key}")

    def _enum(self, obj: Dict[str, Any], key: str, enum_cls: Type[E], path: str, required: bool = True) -> Optional[E]:
        value = self._string(obj, key, path, required)
        if value is None:
            return None
        try:
            return from_token(enum_cls, value)
        except ValueError:
            raise self._error(f"Unknown {enum_cls.__name__} value '{value}'", f"{path}.{key}") from None

    def _translations(self, obj: Dict[str, Any], key: str, path: str) -> Translations:
        value = self._get(obj, f"{key}_translations", path, False)
        if value is _MISSING:
            return {}
        translations = self._object(value, f"{path}.{key}_translations")
        for lang, text in translations.items():
            if not isinstance(text, str):
                raise self._error(f"Expected a string, got {type(text).__name__}",
                                  f"{path}.{key}_translations.{lang}")
        return dict(translations)

    # --- Document ---

    def read_report(self, value: Any) -> Report:
        root = self._object(value, "$")
        doc = self._child(root, "document", "$", required=True)
        tree = self._child(root, "product_tree", "$")
        return Report(
            document=self._read_document(doc, "document"),
            product_tree=self._read_product_tree(tree, "product_tree") if tree is not None else ProductTree(),
            vulnerabilities=[self._read_vulnerability(self._object(vuln, f"vulnerabilities[{i}]"),
                                                      f"vulnerabilities[{i}]")
                             for i, vuln in enumerate(self._list(root, "vulnerabilities", "$"))],
        )

    def _read_document(self, doc: Dict[str, Any], path: str) -> DocumentMetadata:
        distribution = None
        dist = self._child(doc, "distribution", path)
        if dist is not None:
            dist_path = f"{path}.distribution"
            tlp = self._child(dist, "tlp", dist_path) or {}
            distribution = Distribution(
                text=self._string(dist, "text", dist_path),
                tlp_label=self._string(tlp, "label", f"{dist_path}.tlp"),
                tlp_url=self._string(tlp, "url", f"{dist_path}.tlp"),
            )

        severity = None
        sev = self._child(doc, "aggregate_severity", path)
        if sev is not None:
            sev_path = f"{path}.aggregate_severity"
            severity = AggregateSeverity(
                text=self._string(sev, "text", sev_path, required=True),
                namespace=self._string(sev, "namespace", sev_path),
            )

        return DocumentMetadata(
            title=self._string(doc, "title", path, required=True),
            title_translations=self._translations(doc, "title", path),
            category=self._string(doc, "category", path, required=True),
            publisher=self._read_publisher(self._child(doc, "publisher", path, required=True), f"{path}.publisher"),
            tracking=self._read_tracking(self._child(doc, "tracking", path, required=True), f"{path}.tracking"),
            notes=self._read_notes(doc, path),
            distribution=distribution,
            aggregate_severity=severity,
            references=self._read_references(doc, path),
            acknowledgments=self._read_acknowledgments(doc, path),
            lang=self._string(doc, "lang", path),
            source_lang=self._string(doc, "source_lang", path),
        )

    def _read_publisher(self, pub: Dict[str, Any], path: str) -> Publisher:
        return Publisher(
            category=self._enum(pub, "category", PublisherCategory, path),
            vendor_id=self._string(pub, "vendor_id", path),
            contact_details=self._string(pub, "contact_details", path),
            issuing_authority=self._string(pub, "issuing_authority", path),
            name=self._string(pub, "name", path),
            namespace=self._string(pub, "namespace", path),
        )

    def _read_tracking(self, track: Dict[str, Any], path: str) -> Tracking:
        revisions = [
            Revision(
                number=self._string(rev, "number", rev_path, required=True),
                date=self._date(rev, "date", rev_path, required=True),
                summary=self._string(rev, "summary", rev_path, required=True),
                legacy_version=self._string(rev, "legacy_version", rev_path),
            )
            for rev, rev_path in self._objects(track, "revision_history", path, required=True)
        ]

        generator = None
        gen = self._child(track, "generator", path)
        if gen is not None:
            gen_path = f"{path}.generator"
            engine = self._child(gen, "engine", gen_path) or {}
            generator = Generator(
                engine_name=self._string(engine, "name", f"{gen_path}.engine"),
                engine_version=self._string(engine, "version", f"{gen_path}.engine"),
                date=self._date(gen, "date", gen_path),
            )

        return Tracking(
            id=self._string(track, "id", path, required=True),
            status=self._enum(track, "status", DocumentStatus, path),
            version=self._string(track, "version", path, required=True),
            revision_history=revisions,
            initial_release_date=self._date(track, "initial_release_date", path),
            current_release_date=self._date(track, "current_release_date", path),
            aliases=self._strings(track, "aliases", path),
            generator=generator,
        )

    # --- Generic structures ---

    def _read_notes(self, parent: Dict[str, Any], path: str) -> List[Note]:
        return [
            Note(
                category=self._enum(note, "category", NoteCategory, note_path),
                text=self._string(note, "text", note_path, required=True),
                title=self._string(note, "title", note_path),
                audience=self._string(note, "audience", note_path),
                ordinal=self._int(note, "ordinal", note_path),
                text_translations=self._translations(note, "text", note_path),
                title_translations=self._translations(note, "title", note_path),
            )
            for note, note_path in self._objects(parent, "notes", path)
        ]

    def _read_references(self, parent: Dict[str, Any], path: str) -> List[Reference]:
        return [
            Reference(
                url=self._string(ref, "url", ref_path, required=True),
                summary=self._string(ref, "summary", ref_path, required=True),
                category=self._enum(ref, "category", ReferenceCategory, ref_path, required=False),
            )
            for ref, ref_path in self._objects(parent, "references", path)
        ]

    def _read_acknowledgments(self, parent: Dict[str, Any], path: str) -> List[Acknowledgment]:
        acknowledgments = []
        for ack, ack_path in self._objects(parent, "acknowledgments", path):
            organizations = self._strings(ack, "organizations", ack_path)
            single = self._string(ack, "organization", ack_path)
            if single is not None:
                organizations.insert(0, single)
            acknowledgments.append(Acknowledgment(
                names=self._strings(ack, "names", ack_path),
                organizations=organizations,
                summary=self._string(ack, "summary", ack_path),
                urls=self._strings(ack, "urls", ack_path),
            ))
        return acknowledgments

    # --- Product tree ---

    def _read_product_tree(self, tree: Dict[str, Any], path: str) -> ProductTree:
        return ProductTree(
            branches=[self._read_branch(branch, branch_path)
                      for branch, branch_path in self._objects(tree, "branches", path)],
            full_product_names=[self._read_full_product_name(fpn, fpn_path)
                                for fpn, fpn_path in self._objects(tree, "full_product_names", path)],
            relationships=[
                Relationship(
                    category=self._enum(rel, "category", RelationshipCategory, rel_path),
                    product_reference=self._string(rel, "product_reference", rel_path, required=True),
                    relates_to_product_reference=self._string(
                        rel, "relates_to_product_reference", rel_path, required=True),
                    full_product_name=self._read_full_product_name(
                        self._child(rel, "full_product_name", rel_path, required=True),
                        f"{rel_path}.full_product_name"),
                )
                for rel, rel_path in self._objects(tree, "relationships", path)
            ],
            product_groups=[
                ProductGroup(
                    group_id=self._string(group, "group_id", group_path, required=True),
                    product_ids=self._strings(group, "product_ids", group_path),
                    summary=self._string(group, "summary", group_path),
                )
                for group, group_path in self._objects(tree, "product_groups", path)
            ],
        )

    def _read_branch(self, branch: Dict[str, Any], path: str) -> Branch:
        product = self._child(branch, "product", path)
        return Branch(
            category=self._enum(branch, "category", BranchCategory, path),
            name=self._string(branch, "name", path, required=True),
            branches=[self._read_branch(child, child_path)
                      for child, child_path in self._objects(branch, "branches", path)],
            product=self._read_full_product_name(product, f"{path}.product") if product is not None else None,
        )

    def _read_full_product_name(self, fpn: Dict[str, Any], path: str) -> FullProductName:
        helper_path = f"{path}.product_identification_helper"
        helper = self._child(fpn, "product_identification_helper", path) or {}
        purl = self._string(helper, "purl", helper_path)
        if purl is not None:
            try:
                PackageURL.from_string(purl)
            except ValueError as e:
                raise self._error(f"Invalid package URL '{purl}': {e}", f"{helper_path}.purl") from None
        return FullProductName(
            product_id=self._string(fpn, "product_id", path, required=True),
            name=self._string(fpn, "name", path, required=True),
            cpe=self._string(helper, "cpe", helper_path),
            purl=purl,
        )

    # --- Vulnerabilities ---

    def _read_vulnerability(self, vuln: Dict[str, Any], path: str) -> Vulnerability:
        cwes = []
        cwe = self._child(vuln, "cwe", path)
        if cwe is not None:
            cwes.append(self._read_cwe(cwe, f"{path}.cwe"))
        cwes.extend(self._read_cwe(item, item_path) for item, item_path in self._objects(vuln, "cwes", path))

        return Vulnerability(
            ordinal=self._int(vuln, "ordinal", path),
            title=self._string(vuln, "title", path),
            title_translations=self._translations(vuln, "title", path),
            ids=[
                VulnerabilityID(
                    system_name=self._string(vid, "system_name", vid_path, required=True),
                    text=self._string(vid, "text", vid_path, required=True),
                )
                for vid, vid_path in self._objects(vuln, "ids", path)
            ],
            notes=self._read_notes(vuln, path),
            discovery_date=self._date(vuln, "discovery_date", path),
            release_date=self._date(vuln, "release_date", path),
            involvements=[
                Involvement(
                    party=self._enum(inv, "party", InvolvementParty, inv_path),
                    status=self._enum(inv, "status", InvolvementStatus, inv_path),
                    summary=self._string(inv, "summary", inv_path),
                    date=self._date(inv, "date", inv_path),
                )
                for inv, inv_path in self._objects(vuln, "involvements", path)
            ],
            cve=self._string(vuln, "cve", path),
            cwes=cwes,
            product_statuses=self._read_product_status(vuln, path),
            threats=[
                Threat(
                    category=self._enum(threat, "category", ThreatCategory, threat_path),
                    details=self._string(threat, "details", threat_path, required=True),
                    date=self._date(threat, "date", threat_path),
                    product_ids=self._strings(threat, "product_ids", threat_path),
                    group_ids=self._strings(threat, "group_ids", threat_path),
                )
                for threat, threat_path in self._objects(vuln, "threats", path)
            ],
            scores=self._read_scores(vuln, path),
            remediations=[
                Remediation(
                    category=self._enum(rem, "category", RemediationCategory, rem_path),
                    details=self._string(rem, "details", rem_path, required=True),
                    date=self._date(rem, "date", rem_path),
                    entitlements=self._strings(rem, "entitlements", rem_path),
                    url=self._string(rem, "url", rem_path),
                    product_ids=self._strings(rem, "product_ids", rem_path),
                    group_ids=self._strings(rem, "group_ids", rem_path),
                )
                for rem, rem_path in self._objects(vuln, "remediations", path)
            ],
            references=self._read_references(vuln, path),
            acknowledgments=self._read_acknowledgments(vuln, path),
        )

    def _read_cwe(self, cwe: Dict[str, Any], path: str) -> CWE:
        return CWE(
            id=self._string(cwe, "id", path, required=True),
            name=self._string(cwe, "name", path, required=True),
        )

    def _read_product_status(self, vuln: Dict[str, Any], path: str) -> List[ProductStatus]:
        status = self._child(vuln, "product_status", path)
        if status is None:
            return []
        status_path = f"{path}.product_status"
        buckets = []
        for key in status:
            try:
                status_type = from_token(ProductStatusType, key)
            except ValueError:
                logger.debug(f"Ignoring unknown product status bucket '{key}' at {status_path}")
                continue
            product_ids = []
            for pid in self._strings(status, key, status_path):
                if pid in product_ids:
                    logger.info(f"Dropping repeated product id '{pid}' from {status_path}.{key}")
                    continue
                product_ids.append(pid)
            buckets.append(ProductStatus(status=status_type, product_ids=product_ids))
        return buckets

    def _read_scores(self, vuln: Dict[str, Any], path: str) -> List[Score]:
        scores = []
        for entry, entry_path in self._objects(vuln, "scores", path):
            products = self._strings(entry, "products", entry_path)
            found = False
            for key, major in (("cvss_v2", 2), ("cvss_v3", 3)):
                cvss_obj = self._child(entry, key, entry_path)
                if cvss_obj is not None:
                    scores.append(self._read_cvss(cvss_obj, major, products, f"{entry_path}.{key}"))
                    found = True
            if not found:
                raise self._error("Score entry carries neither 'cvss_v2' nor 'cvss_v3'", entry_path)
        return scores

    def _read_cvss(self, obj: Dict[str, Any], major: int, products: List[str], path: str) -> Score:
        vector = self._string(obj, "vectorString", path)
        if vector is not None:
            try:
                cvss.check_vector(vector, major)
            except ValueError as e:
                raise self._error(str(e), f"{path}.vectorString") from None

        version = self._string(obj, "version", path)
        if version is None:
            version = "2.0" if major == 2 else cvss.v3_version(vector)
        elif not version.startswith(str(major)):
            raise self._error(f"CVSS version '{version}' does not match the score set", f"{path}.version")

        scores = {}
        for key, required in (("baseScore", True), ("temporalScore", False), ("environmentalScore", False)):
            value = self._number(obj, key, path, required)
            if value is not None:
                try:
                    cvss.check_score(value)
                except ValueError as e:
                    raise self._error(str(e), f"{path}.{key}") from None
            scores[key] = value

        return Score(
            cvss_version=version,
            base_score=scores["baseScore"],
            temporal_score=scores["temporalScore"],
            environmental_score=scores["environmentalScore"],
            vector=vector,
            product_ids=list(products),
        )

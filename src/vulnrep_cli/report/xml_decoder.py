"""
CVRF 1.2 (XML) decoder.

Parses a CVRF document into the unified report model using lxml. Elements
are matched by namespace URI and local name, never by prefix. While walking
the tree the decoder records per-element fidelity metadata (prefix,
namespace declarations, attribute order, comments, CDATA) on the model node
that owns the element, so that the XML encoder can reproduce the source
layout for unmodified content.

xml:lang attributes only select which of several sibling language variants
is kept; the model has no place for the others.
"""

import logging
from enum import Enum
from typing import BinaryIO, Dict, List, Optional, Type, TypeVar

from lxml import etree

from ..exceptions import ParseError
from . import cvss
from .config import DEFAULT_CONFIG, ConversionConfig
from .cvrf import CVRF_NS, MODELED_ATTRIBUTES, PROD_NS, VULN_NS, XML_LANG, qname
from .fidelity import ElementFidelity, NodeFidelity, content_key
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
    Vulnerability,
    VulnerabilityID,
    parse_date,
)
from .vocabulary import from_cvrf

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def decode_xml(stream: BinaryIO, config: Optional[ConversionConfig] = None) -> Report:
    """
    Decode a CVRF XML document into a Report.

    Args:
        stream: Readable stream positioned at the start of the document
        config: Conversion options (defaults apply when omitted)

    Returns:
        Report: The decoded report, validated

    Raises:
        ParseError: If the XML is malformed or a required element is missing
        ValidationError: If the report references undefined product or group ids
    """
    config = config or DEFAULT_CONFIG
    data = stream.read()
    if isinstance(data, str):
        data = data.encode("utf-8")

    root = _parse_bytes(data)
    report = _CVRFReader(root, config).read_report()
    report.check_required(ParseError)
    report.validate()

    logger.debug(
        f"Decoded CVRF document '{report.document.tracking.id}' with "
        f"{len(report.vulnerabilities)} vulnerabilities and "
        f"{len(report.product_tree.product_ids())} products"
    )
    return report


def _parse_bytes(data: bytes):
    parser = etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        remove_comments=False,
        strip_cdata=False,
        huge_tree=False,
    )
    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as e:
        raise ParseError(
            f"Malformed XML document: {e.msg}",
            details={"location": f"line {e.lineno}", "line": e.lineno},
        ) from e
    if root is None:
        raise ParseError("Empty XML document")
    return root


def _localname(el) -> str:
    return etree.QName(el).localname


class _CVRFReader:
    """Walks one parsed CVRF tree and builds the model."""

    def __init__(self, root, config: ConversionConfig):
        self.root = root
        self.config = config
        self.doc_lang = (root.get(XML_LANG) or config.default_lang).lower()

    # --- Generic helpers ---

    def _fidelity(self) -> Optional[NodeFidelity]:
        return NodeFidelity() if self.config.preserve_fidelity else None

    @staticmethod
    def _location(el) -> Dict[str, object]:
        return {"location": el.getroottree().getpath(el), "line": el.sourceline}

    def _error(self, message: str, el) -> ParseError:
        return ParseError(message, details=self._location(el))

    @staticmethod
    def _elements(parent, ns: str, local: str) -> List:
        tag = qname(ns, local)
        return [child for child in parent if child.tag == tag]

    def _select(self, candidates: List, what: str):
        """Picks the default-language variant among sibling elements."""
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        langs = [(el.get(XML_LANG) or "").lower() for el in candidates]
        chosen = None
        for el, lang in zip(candidates, langs):
            if lang == self.doc_lang:
                chosen = el
                break
        if chosen is None:
            primary = self.doc_lang.split("-")[0]
            for el, lang in zip(candidates, langs):
                if lang and lang.split("-")[0] == primary:
                    chosen = el
                    break
        if chosen is None:
            for el, lang in zip(candidates, langs):
                if not lang:
                    chosen = el
                    break
        if chosen is None:
            chosen = candidates[0]

        dropped = [lang or "(no xml:lang)" for el, lang in zip(candidates, langs) if el is not chosen]
        logger.info(
            f"Keeping one variant of '{what}' at line {chosen.sourceline}; "
            f"discarded variants: {', '.join(dropped)}"
        )
        return chosen

    def _child(self, parent, ns: str, local: str, required: bool = False):
        el = self._select(self._elements(parent, ns, local), local)
        if el is None and required:
            raise self._error(f"Required element '{local}' is missing under '{_localname(parent)}'", parent)
        return el

    @staticmethod
    def _text(el) -> str:
        parts = [el.text or ""]
        for child in el:
            if child.tag is etree.Comment:
                parts.append(child.tail or "")
        return "".join(parts).strip()

    def _record(self, fid: Optional[NodeFidelity], path: str, el, text: Optional[str] = None) -> None:
        if fid is None:
            return
        modeled = MODELED_ATTRIBUTES.get(_localname(el), frozenset())
        order = [name for name in el.attrib.keys() if name != XML_LANG]
        attributes = {name: el.get(name).strip() for name in order if name in modeled}
        extras = [(name, el.get(name)) for name in order if name not in modeled]

        parent = el.getparent()
        inherited = parent.nsmap if parent is not None else {}
        declared = {prefix: uri for prefix, uri in el.nsmap.items() if inherited.get(prefix) != uri}

        has_elements = any(isinstance(child.tag, str) for child in el)
        comments = []
        count = 0
        for child in el:
            if isinstance(child.tag, str):
                count += 1
            elif child.tag is etree.Comment:
                if has_elements:
                    position = count
                else:
                    position = 1 if (el.text or "").strip() else 0
                comments.append((position, child.text or ""))

        cdata = False
        if text and not has_elements:
            cdata = b"<![CDATA[" in etree.tostring(el, with_tail=False)

        fid.record(path, ElementFidelity(
            key=content_key(text, attributes),
            prefix=el.prefix,
            nsmap=declared,
            attribute_order=order,
            extra_attributes=extras,
            comments=comments,
            cdata=cdata,
        ))

    def _leaf(self, parent, ns: str, local: str, fid: Optional[NodeFidelity], path: str,
              required: bool = False) -> Optional[str]:
        el = self._child(parent, ns, local, required)
        if el is None:
            return None
        text = self._text(el)
        self._record(fid, path, el, text)
        return text

    def _leaves(self, parent, ns: str, local: str, fid: Optional[NodeFidelity], path: str) -> List[str]:
        values = []
        for i, el in enumerate(self._elements(parent, ns, local)):
            text = self._text(el)
            self._record(fid, f"{path}[{i}]", el, text)
            values.append(text)
        return values

    def _date_leaf(self, parent, ns: str, local: str, fid: Optional[NodeFidelity], path: str,
                   required: bool = False) -> Optional[str]:
        el = self._child(parent, ns, local, required)
        if el is None:
            return None
        text = self._text(el)
        self._check_date(text, el)
        self._record(fid, path, el, text)
        return text

    def _check_date(self, value: str, el) -> None:
        try:
            parse_date(value)
        except ValueError:
            raise self._error(f"'{value}' is not an ISO 8601 date in '{_localname(el)}'", el) from None

    def _attr(self, el, name: str, required: bool = False) -> Optional[str]:
        value = el.get(name)
        if value is None:
            if required:
                raise self._error(f"Required attribute '{name}' is missing on '{_localname(el)}'", el)
            return None
        return value.strip()

    def _enum_attr(self, el, name: str, enum_cls: Type[E], required: bool = True) -> Optional[E]:
        value = self._attr(el, name, required)
        if value is None:
            return None
        return self._vocabulary(enum_cls, value, el)

    def _vocabulary(self, enum_cls: Type[E], value: str, el) -> E:
        try:
            return from_cvrf(enum_cls, value)
        except KeyError:
            raise self._error(f"Unknown {enum_cls.__name__} value '{value}' in '{_localname(el)}'", el) from None

    def _int_attr(self, el, name: str) -> Optional[int]:
        value = self._attr(el, name)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            raise self._error(f"Attribute '{name}' must be an integer, got '{value}'", el) from None

    # --- Document ---

    def read_report(self) -> Report:
        root = self.root
        if root.tag != qname(CVRF_NS, "cvrfdoc"):
            raise self._error(f"Root element must be 'cvrfdoc' in namespace {CVRF_NS}, found '{root.tag}'", root)

        fid = self._fidelity()
        self._record(fid, "", root)
        if fid is not None:
            preceding = reversed(list(root.itersiblings(preceding=True)))
            fid.prolog_comments = [node.text or "" for node in preceding if node.tag is etree.Comment]

        document = self._read_document(root, fid)

        tree_el = self._child(root, PROD_NS, "ProductTree")
        product_tree = self._read_product_tree(tree_el) if tree_el is not None else ProductTree()

        vulnerabilities = [self._read_vulnerability(el) for el in self._elements(root, VULN_NS, "Vulnerability")]

        return Report(
            document=document,
            product_tree=product_tree,
            vulnerabilities=vulnerabilities,
            fidelity=fid,
        )

    def _read_document(self, root, fid: Optional[NodeFidelity]) -> DocumentMetadata:
        title = self._leaf(root, CVRF_NS, "DocumentTitle", fid, "DocumentTitle", required=True)
        category = self._leaf(root, CVRF_NS, "DocumentType", fid, "DocumentType", required=True)
        publisher = self._read_publisher(self._child(root, CVRF_NS, "DocumentPublisher", required=True), fid)
        tracking = self._read_tracking(self._child(root, CVRF_NS, "DocumentTracking", required=True), fid)

        notes: List[Note] = []
        notes_el = self._child(root, CVRF_NS, "DocumentNotes")
        if notes_el is not None:
            self._record(fid, "DocumentNotes", notes_el)
            notes = self._read_notes(notes_el, CVRF_NS)

        distribution = None
        dist_text = self._leaf(root, CVRF_NS, "DocumentDistribution", fid, "DocumentDistribution")
        if dist_text is not None:
            distribution = Distribution(text=dist_text)

        aggregate_severity = None
        severity_el = self._child(root, CVRF_NS, "AggregateSeverity")
        if severity_el is not None:
            text = self._text(severity_el)
            self._record(fid, "AggregateSeverity", severity_el, text)
            aggregate_severity = AggregateSeverity(text=text, namespace=self._attr(severity_el, "Namespace"))

        references: List[Reference] = []
        refs_el = self._child(root, CVRF_NS, "DocumentReferences")
        if refs_el is not None:
            self._record(fid, "DocumentReferences", refs_el)
            references = self._read_references(refs_el, CVRF_NS)

        acknowledgments: List[Acknowledgment] = []
        acks_el = self._child(root, CVRF_NS, "Acknowledgments")
        if acks_el is not None:
            self._record(fid, "Acknowledgments", acks_el)
            acknowledgments = self._read_acknowledgments(acks_el, CVRF_NS)

        return DocumentMetadata(
            title=title,
            category=category,
            publisher=publisher,
            tracking=tracking,
            notes=notes,
            distribution=distribution,
            aggregate_severity=aggregate_severity,
            references=references,
            acknowledgments=acknowledgments,
        )

    def _read_publisher(self, el, fid: Optional[NodeFidelity]) -> Publisher:
        self._record(fid, "DocumentPublisher", el)
        return Publisher(
            category=self._enum_attr(el, "Type", PublisherCategory),
            vendor_id=self._attr(el, "VendorID"),
            contact_details=self._leaf(el, CVRF_NS, "ContactDetails", fid, "DocumentPublisher/ContactDetails"),
            issuing_authority=self._leaf(el, CVRF_NS, "IssuingAuthority", fid, "DocumentPublisher/IssuingAuthority"),
        )

    def _read_tracking(self, el, fid: Optional[NodeFidelity]) -> Tracking:
        self._record(fid, "DocumentTracking", el)

        ident = self._child(el, CVRF_NS, "Identification", required=True)
        self._record(fid, "DocumentTracking/Identification", ident)
        doc_id = self._leaf(ident, CVRF_NS, "ID", fid, "DocumentTracking/Identification/ID", required=True)
        aliases = self._leaves(ident, CVRF_NS, "Alias", fid, "DocumentTracking/Identification/Alias")

        status_el = self._child(el, CVRF_NS, "Status", required=True)
        status_text = self._text(status_el)
        self._record(fid, "DocumentTracking/Status", status_el, status_text)
        status = self._vocabulary(DocumentStatus, status_text, status_el)

        version = self._leaf(el, CVRF_NS, "Version", fid, "DocumentTracking/Version", required=True)

        history_el = self._child(el, CVRF_NS, "RevisionHistory", required=True)
        self._record(fid, "DocumentTracking/RevisionHistory", history_el)
        revisions = [self._read_revision(rev) for rev in self._elements(history_el, CVRF_NS, "Revision")]
        if not revisions:
            raise self._error("Revision history must contain at least one 'Revision'", history_el)

        generator = None
        gen_el = self._child(el, CVRF_NS, "Generator")
        if gen_el is not None:
            self._record(fid, "DocumentTracking/Generator", gen_el)
            generator = Generator(
                engine_name=self._leaf(gen_el, CVRF_NS, "Engine", fid, "DocumentTracking/Generator/Engine"),
                date=self._date_leaf(gen_el, CVRF_NS, "Date", fid, "DocumentTracking/Generator/Date"),
            )

        return Tracking(
            id=doc_id,
            status=status,
            version=version,
            revision_history=revisions,
            initial_release_date=self._date_leaf(
                el, CVRF_NS, "InitialReleaseDate", fid, "DocumentTracking/InitialReleaseDate"),
            current_release_date=self._date_leaf(
                el, CVRF_NS, "CurrentReleaseDate", fid, "DocumentTracking/CurrentReleaseDate"),
            aliases=aliases,
            generator=generator,
        )

    def _read_revision(self, el) -> Revision:
        fid = self._fidelity()
        self._record(fid, "", el)
        return Revision(
            number=self._leaf(el, CVRF_NS, "Number", fid, "Number", required=True),
            date=self._date_leaf(el, CVRF_NS, "Date", fid, "Date", required=True),
            summary=self._leaf(el, CVRF_NS, "Description", fid, "Description", required=True),
            fidelity=fid,
        )

    # --- Generic structures ---

    def _read_notes(self, container, ns: str) -> List[Note]:
        # Notes sharing an Ordinal are language variants of the same note.
        groups: Dict[str, List] = {}
        for i, el in enumerate(self._elements(container, ns, "Note")):
            key = (el.get("Ordinal") or "").strip() or f"#{i}"
            groups.setdefault(key, []).append(el)
        return [self._read_note(self._select(variants, "Note")) for variants in groups.values()]

    def _read_note(self, el) -> Note:
        fid = self._fidelity()
        text = self._text(el)
        self._record(fid, "", el, text)
        return Note(
            category=self._enum_attr(el, "Type", NoteCategory),
            text=text,
            title=self._attr(el, "Title"),
            audience=self._attr(el, "Audience"),
            ordinal=self._int_attr(el, "Ordinal"),
            fidelity=fid,
        )

    def _read_references(self, container, ns: str) -> List[Reference]:
        references = []
        for el in self._elements(container, ns, "Reference"):
            fid = self._fidelity()
            self._record(fid, "", el)
            references.append(Reference(
                url=self._leaf(el, ns, "URL", fid, "URL", required=True),
                summary=self._leaf(el, ns, "Description", fid, "Description", required=True),
                category=self._enum_attr(el, "Type", ReferenceCategory, required=False),
                fidelity=fid,
            ))
        return references

    def _read_acknowledgments(self, container, ns: str) -> List[Acknowledgment]:
        acknowledgments = []
        for el in self._elements(container, ns, "Acknowledgment"):
            fid = self._fidelity()
            self._record(fid, "", el)
            acknowledgments.append(Acknowledgment(
                names=self._leaves(el, ns, "Name", fid, "Name"),
                organizations=self._leaves(el, ns, "Organization", fid, "Organization"),
                summary=self._leaf(el, ns, "Description", fid, "Description"),
                urls=self._leaves(el, ns, "URL", fid, "URL"),
                fidelity=fid,
            ))
        return acknowledgments

    # --- Product tree ---

    def _read_product_tree(self, el) -> ProductTree:
        fid = self._fidelity()
        self._record(fid, "", el)

        groups: List[ProductGroup] = []
        groups_el = self._child(el, PROD_NS, "ProductGroups")
        if groups_el is not None:
            self._record(fid, "ProductGroups", groups_el)
            groups = [self._read_group(group) for group in self._elements(groups_el, PROD_NS, "Group")]

        return ProductTree(
            branches=[self._read_branch(branch) for branch in self._elements(el, PROD_NS, "Branch")],
            full_product_names=[self._read_full_product_name(fpn)
                                for fpn in self._elements(el, PROD_NS, "FullProductName")],
            relationships=[self._read_relationship(rel) for rel in self._elements(el, PROD_NS, "Relationship")],
            product_groups=groups,
            fidelity=fid,
        )

    def _read_branch(self, el) -> Branch:
        fid = self._fidelity()
        self._record(fid, "", el)
        product_el = self._child(el, PROD_NS, "FullProductName")
        return Branch(
            category=self._enum_attr(el, "Type", BranchCategory),
            name=self._attr(el, "Name", required=True),
            branches=[self._read_branch(child) for child in self._elements(el, PROD_NS, "Branch")],
            product=self._read_full_product_name(product_el) if product_el is not None else None,
            fidelity=fid,
        )

    def _read_full_product_name(self, el) -> FullProductName:
        fid = self._fidelity()
        text = self._text(el)
        self._record(fid, "", el, text)
        return FullProductName(
            product_id=self._attr(el, "ProductID", required=True),
            name=text,
            cpe=self._attr(el, "CPE"),
            fidelity=fid,
        )

    def _read_relationship(self, el) -> Relationship:
        fid = self._fidelity()
        self._record(fid, "", el)
        return Relationship(
            category=self._enum_attr(el, "RelationType", RelationshipCategory),
            product_reference=self._attr(el, "ProductReference", required=True),
            relates_to_product_reference=self._attr(el, "RelatesToProductReference", required=True),
            full_product_name=self._read_full_product_name(
                self._child(el, PROD_NS, "FullProductName", required=True)),
            fidelity=fid,
        )

    def _read_group(self, el) -> ProductGroup:
        fid = self._fidelity()
        self._record(fid, "", el)
        return ProductGroup(
            group_id=self._attr(el, "GroupID", required=True),
            product_ids=self._leaves(el, PROD_NS, "ProductID", fid, "ProductID"),
            summary=self._leaf(el, PROD_NS, "Description", fid, "Description"),
            fidelity=fid,
        )

    # --- Vulnerabilities ---

    def _container(self, parent, local: str, fid: Optional[NodeFidelity]):
        el = self._child(parent, VULN_NS, local)
        if el is not None:
            self._record(fid, local, el)
        return el

    def _read_vulnerability(self, el) -> Vulnerability:
        fid = self._fidelity()
        self._record(fid, "", el)
        vuln = Vulnerability(
            ordinal=self._int_attr(el, "Ordinal"),
            title=self._leaf(el, VULN_NS, "Title", fid, "Title"),
            discovery_date=self._date_leaf(el, VULN_NS, "DiscoveryDate", fid, "DiscoveryDate"),
            release_date=self._date_leaf(el, VULN_NS, "ReleaseDate", fid, "ReleaseDate"),
            cve=self._leaf(el, VULN_NS, "CVE", fid, "CVE"),
            fidelity=fid,
        )

        for id_el in self._elements(el, VULN_NS, "ID"):
            id_fid = self._fidelity()
            text = self._text(id_el)
            self._record(id_fid, "", id_el, text)
            vuln.ids.append(VulnerabilityID(
                system_name=self._attr(id_el, "SystemName", required=True), text=text, fidelity=id_fid))

        notes_el = self._container(el, "Notes", fid)
        if notes_el is not None:
            vuln.notes = self._read_notes(notes_el, VULN_NS)

        involvements_el = self._container(el, "Involvements", fid)
        if involvements_el is not None:
            for inv_el in self._elements(involvements_el, VULN_NS, "Involvement"):
                inv_fid = self._fidelity()
                self._record(inv_fid, "", inv_el)
                vuln.involvements.append(Involvement(
                    party=self._enum_attr(inv_el, "Party", InvolvementParty),
                    status=self._enum_attr(inv_el, "Status", InvolvementStatus),
                    summary=self._leaf(inv_el, VULN_NS, "Description", inv_fid, "Description"),
                    fidelity=inv_fid,
                ))

        for cwe_el in self._elements(el, VULN_NS, "CWE"):
            cwe_fid = self._fidelity()
            text = self._text(cwe_el)
            self._record(cwe_fid, "", cwe_el, text)
            vuln.cwes.append(CWE(id=self._attr(cwe_el, "ID", required=True), name=text, fidelity=cwe_fid))

        statuses_el = self._container(el, "ProductStatuses", fid)
        if statuses_el is not None:
            # Each status type forms one bucket without repeated ids.
            buckets: Dict[ProductStatusType, ProductStatus] = {}
            for status_el in self._elements(statuses_el, VULN_NS, "Status"):
                status_type = self._enum_attr(status_el, "Type", ProductStatusType)
                bucket = buckets.get(status_type)
                status_fid = None
                if bucket is None:
                    status_fid = self._fidelity()
                    self._record(status_fid, "", status_el)
                    bucket = ProductStatus(status=status_type, fidelity=status_fid)
                    buckets[status_type] = bucket
                    vuln.product_statuses.append(bucket)
                else:
                    logger.info(f"Merging repeated '{status_el.get('Type')}' product status "
                                f"at line {status_el.sourceline}")
                for pid in self._leaves(status_el, VULN_NS, "ProductID", status_fid, "ProductID"):
                    if pid in bucket.product_ids:
                        logger.info(f"Dropping repeated product id '{pid}' from the "
                                    f"'{status_el.get('Type')}' product status at line {status_el.sourceline}")
                        continue
                    bucket.product_ids.append(pid)

        threats_el = self._container(el, "Threats", fid)
        if threats_el is not None:
            vuln.threats = [self._read_threat(threat) for threat in self._elements(threats_el, VULN_NS, "Threat")]

        scores_el = self._container(el, "CVSSScoreSets", fid)
        if scores_el is not None:
            for score_el in scores_el:
                if score_el.tag == qname(VULN_NS, "ScoreSetV2"):
                    vuln.scores.append(self._read_score(score_el, 2))
                elif score_el.tag == qname(VULN_NS, "ScoreSetV3"):
                    vuln.scores.append(self._read_score(score_el, 3))

        remediations_el = self._container(el, "Remediations", fid)
        if remediations_el is not None:
            vuln.remediations = [self._read_remediation(rem)
                                 for rem in self._elements(remediations_el, VULN_NS, "Remediation")]

        refs_el = self._container(el, "References", fid)
        if refs_el is not None:
            vuln.references = self._read_references(refs_el, VULN_NS)

        acks_el = self._container(el, "Acknowledgments", fid)
        if acks_el is not None:
            vuln.acknowledgments = self._read_acknowledgments(acks_el, VULN_NS)

        return vuln

    def _read_threat(self, el) -> Threat:
        fid = self._fidelity()
        self._record(fid, "", el)
        date = self._attr(el, "Date")
        if date is not None:
            self._check_date(date, el)
        return Threat(
            category=self._enum_attr(el, "Type", ThreatCategory),
            details=self._leaf(el, VULN_NS, "Description", fid, "Description", required=True),
            date=date,
            product_ids=self._leaves(el, VULN_NS, "ProductID", fid, "ProductID"),
            group_ids=self._leaves(el, VULN_NS, "GroupID", fid, "GroupID"),
            fidelity=fid,
        )

    def _read_remediation(self, el) -> Remediation:
        fid = self._fidelity()
        self._record(fid, "", el)
        date = self._attr(el, "Date")
        if date is not None:
            self._check_date(date, el)
        return Remediation(
            category=self._enum_attr(el, "Type", RemediationCategory),
            details=self._leaf(el, VULN_NS, "Description", fid, "Description", required=True),
            date=date,
            entitlements=self._leaves(el, VULN_NS, "Entitlement", fid, "Entitlement"),
            url=self._leaf(el, VULN_NS, "URL", fid, "URL"),
            product_ids=self._leaves(el, VULN_NS, "ProductID", fid, "ProductID"),
            group_ids=self._leaves(el, VULN_NS, "GroupID", fid, "GroupID"),
            fidelity=fid,
        )

    def _read_score(self, el, major: int) -> Score:
        suffix = f"V{major}"
        fid = self._fidelity()
        self._record(fid, "", el)

        def number(local: str, required: bool = False) -> Optional[float]:
            text = self._leaf(el, VULN_NS, local, fid, local, required)
            if text is None:
                return None
            try:
                value = float(text)
                cvss.check_score(value)
            except ValueError as e:
                raise self._error(f"Invalid CVSS score in '{local}': {e}", el) from None
            return value

        base = number(f"BaseScore{suffix}", required=True)
        temporal = number(f"TemporalScore{suffix}")
        environmental = number(f"EnvironmentalScore{suffix}")

        vector = self._leaf(el, VULN_NS, f"Vector{suffix}", fid, f"Vector{suffix}")
        if vector is not None:
            vector = cvss.normalize_vector(vector)
            try:
                cvss.check_vector(vector, major)
            except ValueError as e:
                raise self._error(str(e), el) from None

        return Score(
            cvss_version="2.0" if major == 2 else cvss.v3_version(vector),
            base_score=base,
            temporal_score=temporal,
            environmental_score=environmental,
            vector=vector,
            product_ids=self._leaves(el, VULN_NS, "ProductID", fid, "ProductID"),
            fidelity=fid,
        )

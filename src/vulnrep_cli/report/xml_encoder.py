"""
CVRF 1.2 (XML) encoder.

Serializes a report into CVRF with lxml. Elements are always emitted in the
CVRF schema order. For every element the encoder asks the owning model
node's fidelity metadata whether the element is unmodified since decoding;
if so it replays the recorded prefix, namespace declarations, attribute order,
unmodeled attributes, comments and CDATA, otherwise it falls back to the
defaults (root bindings from DEFAULT_NSMAP, attributes in declared order).

Translations and the other JSON-only fields have no CVRF representation and
are dropped with a warning. xml:lang is never written.
"""

import logging
from typing import BinaryIO, Iterable, List, Optional, Sequence, Tuple
from xml.sax.saxutils import quoteattr

from lxml import etree

from ..exceptions import EncodeError
from . import cvss
from .config import DEFAULT_CONFIG, ConversionConfig
from .cvrf import CVRF_NS, DEFAULT_NSMAP, PROD_NS, VULN_NS, qname
from .fidelity import ElementFidelity, NodeFidelity, content_key, xml_losses
from .model import (
    Acknowledgment,
    Branch,
    FullProductName,
    Note,
    ProductTree,
    Reference,
    Report,
    Score,
    Tracking,
    Vulnerability,
)
from .vocabulary import to_cvrf

logger = logging.getLogger(__name__)

Attributes = Sequence[Tuple[str, Optional[str]]]


def encode_xml(report: Report, stream: BinaryIO, config: Optional[ConversionConfig] = None) -> None:
    """
    Encode a Report as a CVRF XML document and write it to a stream.

    The document is serialized completely before anything is written, so a
    failure leaves the stream untouched.

    Args:
        report: The report to encode
        stream: Writable binary stream
        config: Conversion options (defaults apply when omitted)

    Raises:
        EncodeError: If a required field is absent or a value cannot be written as XML
        ValidationError: If the report references undefined product or group ids
    """
    stream.write(encode_xml_bytes(report, config))


def encode_xml_bytes(report: Report, config: Optional[ConversionConfig] = None) -> bytes:
    """Encode a Report as CVRF XML and return the serialized bytes."""
    config = config or DEFAULT_CONFIG
    report.check_required(EncodeError)
    report.validate()

    losses = xml_losses(report)
    if losses:
        logger.warning(f"CVRF cannot represent {len(losses)} populated field(s), dropping: {', '.join(losses)}")

    try:
        root = _CVRFWriter(config).write_report(report)
        return etree.tostring(
            root.getroottree(),
            xml_declaration=config.xml_declaration,
            encoding=config.encoding,
            pretty_print=config.xml_pretty_print,
        )
    except (ValueError, TypeError, LookupError) as e:
        raise EncodeError(f"Unable to serialize report as CVRF XML: {e}",
                          details={"document_id": report.document.tracking.id}) from e


class _CVRFWriter:
    """Builds one lxml tree from a report."""

    def __init__(self, config: ConversionConfig):
        self.config = config
        self._pending_comments: List[Tuple[object, ElementFidelity]] = []

    # --- Generic helpers ---

    def _lookup(self, fid: Optional[NodeFidelity], path: str, text: Optional[str],
                attrs: List[Tuple[str, str]]) -> Optional[ElementFidelity]:
        if fid is None or not self.config.preserve_fidelity:
            return None
        return fid.lookup(path, content_key(text, dict(attrs)))

    @staticmethod
    def _ordered(attrs: List[Tuple[str, str]], info: Optional[ElementFidelity]) -> List[Tuple[str, str]]:
        if info is None:
            return attrs
        values = dict(attrs)
        values.update(info.extra_attributes)
        ordered = [(name, values[name]) for name in info.attribute_order if name in values]
        ordered.extend((name, value) for name, value in attrs if name not in info.attribute_order)
        return ordered

    @staticmethod
    def _rebind(el, parent, local: str, ns: str, info: ElementFidelity):
        """
        Recreates an element under its recorded prefix.

        lxml prefers a prefixed binding when one element declares several for
        the same URI, so the recorded declarations are parsed from a start tag
        instead.
        """
        declarations = dict(info.nsmap)
        declarations.setdefault(info.prefix, ns)
        name = f"{info.prefix}:{local}" if info.prefix else local
        xmlns = "".join(
            f" xmlns:{prefix}={quoteattr(uri)}" if prefix else f" xmlns={quoteattr(uri)}"
            for prefix, uri in declarations.items()
        )
        rebound = etree.fromstring(f"<{name}{xmlns}/>")
        if parent is not None:
            parent.replace(el, rebound)
        return rebound

    def _element(self, parent, ns: str, local: str, fid: Optional[NodeFidelity], path: str,
                 text: Optional[str] = None, attrs: Attributes = ()):
        present = [(name, value) for name, value in attrs if value is not None]
        info = self._lookup(fid, path, text, present)
        tag = qname(ns, local)

        nsmap = None
        if info is not None:
            nsmap = dict(info.nsmap)
            nsmap.setdefault(info.prefix, ns)
        if parent is None:
            el = etree.Element(tag, nsmap=nsmap or DEFAULT_NSMAP)
        else:
            el = etree.SubElement(parent, tag, nsmap=nsmap)
        if info is not None and el.prefix != info.prefix:
            el = self._rebind(el, parent, local, ns, info)

        for name, value in self._ordered(present, info):
            el.set(name, value)

        if text is not None:
            if info is not None and info.cdata and text and "]]>" not in text:
                el.text = etree.CDATA(text)
            else:
                el.text = text

        if info is not None and info.comments:
            self._pending_comments.append((el, info))
        return el

    def _leaf(self, parent, ns: str, local: str, fid: Optional[NodeFidelity], path: str,
              value: Optional[str], attrs: Attributes = ()):
        if value is None:
            return None
        return self._element(parent, ns, local, fid, path, text=value, attrs=attrs)

    def _leaves(self, parent, ns: str, local: str, fid: Optional[NodeFidelity], path: str,
                values: Iterable[str]) -> None:
        for i, value in enumerate(values):
            self._element(parent, ns, local, fid, f"{path}[{i}]", text=value)

    def _apply_comments(self) -> None:
        for el, info in self._pending_comments:
            has_elements = any(isinstance(child.tag, str) for child in el)
            if has_elements:
                for position, text in info.comments:
                    el.insert(self._comment_index(el, position), etree.Comment(text))
                continue

            before = [text for position, text in info.comments if position == 0]
            after = [text for position, text in info.comments if position != 0]
            if info.cdata:
                # CDATA text cannot move into a comment tail; keep it in place.
                after = before + after
                before = []
            body = el.text
            if before:
                el.text = None
                for text in before:
                    el.append(etree.Comment(text))
                el[-1].tail = body
            for text in after:
                el.append(etree.Comment(text))
        self._pending_comments = []

    @staticmethod
    def _comment_index(el, position: int) -> int:
        count = 0
        for index, child in enumerate(el):
            if isinstance(child.tag, str):
                if count == position:
                    return index
                count += 1
        return len(el)

    # --- Document ---

    def write_report(self, report: Report):
        fid = report.fidelity
        doc = report.document

        root = self._element(None, CVRF_NS, "cvrfdoc", fid, "")
        if fid is not None and self.config.preserve_fidelity:
            for text in fid.prolog_comments:
                root.addprevious(etree.Comment(text))

        self._element(root, CVRF_NS, "DocumentTitle", fid, "DocumentTitle", text=doc.title)
        self._element(root, CVRF_NS, "DocumentType", fid, "DocumentType", text=doc.category)

        publisher = doc.publisher
        pub_el = self._element(root, CVRF_NS, "DocumentPublisher", fid, "DocumentPublisher", attrs=[
            ("Type", to_cvrf(publisher.category)),
            ("VendorID", publisher.vendor_id),
        ])
        self._leaf(pub_el, CVRF_NS, "ContactDetails", fid, "DocumentPublisher/ContactDetails",
                   publisher.contact_details)
        self._leaf(pub_el, CVRF_NS, "IssuingAuthority", fid, "DocumentPublisher/IssuingAuthority",
                   publisher.issuing_authority)

        self._write_tracking(root, doc.tracking, fid)

        if doc.notes:
            notes_el = self._element(root, CVRF_NS, "DocumentNotes", fid, "DocumentNotes")
            self._write_notes(notes_el, CVRF_NS, doc.notes)

        if doc.distribution is not None:
            self._leaf(root, CVRF_NS, "DocumentDistribution", fid, "DocumentDistribution", doc.distribution.text)

        if doc.aggregate_severity is not None:
            self._element(root, CVRF_NS, "AggregateSeverity", fid, "AggregateSeverity",
                          text=doc.aggregate_severity.text,
                          attrs=[("Namespace", doc.aggregate_severity.namespace)])

        if doc.references:
            refs_el = self._element(root, CVRF_NS, "DocumentReferences", fid, "DocumentReferences")
            self._write_references(refs_el, CVRF_NS, doc.references)

        if doc.acknowledgments:
            acks_el = self._element(root, CVRF_NS, "Acknowledgments", fid, "Acknowledgments")
            self._write_acknowledgments(acks_el, CVRF_NS, doc.acknowledgments)

        if not report.product_tree.is_empty():
            self._write_product_tree(root, report.product_tree)

        for vuln, ordinal in zip(report.vulnerabilities, _ordinals(report.vulnerabilities)):
            self._write_vulnerability(root, vuln, ordinal)

        self._apply_comments()
        return root

    def _write_tracking(self, root, tracking: Tracking, fid: Optional[NodeFidelity]) -> None:
        track_el = self._element(root, CVRF_NS, "DocumentTracking", fid, "DocumentTracking")

        ident_el = self._element(track_el, CVRF_NS, "Identification", fid, "DocumentTracking/Identification")
        self._element(ident_el, CVRF_NS, "ID", fid, "DocumentTracking/Identification/ID", text=tracking.id)
        self._leaves(ident_el, CVRF_NS, "Alias", fid, "DocumentTracking/Identification/Alias", tracking.aliases)

        self._element(track_el, CVRF_NS, "Status", fid, "DocumentTracking/Status", text=to_cvrf(tracking.status))
        self._element(track_el, CVRF_NS, "Version", fid, "DocumentTracking/Version", text=tracking.version)

        history_el = self._element(track_el, CVRF_NS, "RevisionHistory", fid, "DocumentTracking/RevisionHistory")
        for revision in tracking.revision_history:
            rev_fid = revision.fidelity
            rev_el = self._element(history_el, CVRF_NS, "Revision", rev_fid, "")
            self._element(rev_el, CVRF_NS, "Number", rev_fid, "Number", text=revision.number)
            self._element(rev_el, CVRF_NS, "Date", rev_fid, "Date", text=revision.date)
            self._element(rev_el, CVRF_NS, "Description", rev_fid, "Description", text=revision.summary)

        self._leaf(track_el, CVRF_NS, "InitialReleaseDate", fid, "DocumentTracking/InitialReleaseDate",
                   tracking.initial_release_date)
        self._leaf(track_el, CVRF_NS, "CurrentReleaseDate", fid, "DocumentTracking/CurrentReleaseDate",
                   tracking.current_release_date)

        generator = tracking.generator
        if generator is not None and (generator.engine_name is not None or generator.date is not None):
            gen_el = self._element(track_el, CVRF_NS, "Generator", fid, "DocumentTracking/Generator")
            self._leaf(gen_el, CVRF_NS, "Engine", fid, "DocumentTracking/Generator/Engine", generator.engine_name)
            self._leaf(gen_el, CVRF_NS, "Date", fid, "DocumentTracking/Generator/Date", generator.date)

    # --- Generic structures ---

    def _write_notes(self, parent, ns: str, notes: List[Note]) -> None:
        for note, ordinal in zip(notes, _ordinals(notes)):
            self._element(parent, ns, "Note", note.fidelity, "", text=note.text, attrs=[
                ("Title", note.title),
                ("Audience", note.audience),
                ("Type", to_cvrf(note.category)),
                ("Ordinal", str(ordinal)),
            ])

    def _write_references(self, parent, ns: str, references: List[Reference]) -> None:
        for ref in references:
            fid = ref.fidelity
            ref_el = self._element(parent, ns, "Reference", fid, "", attrs=[
                ("Type", to_cvrf(ref.category) if ref.category is not None else None),
            ])
            self._element(ref_el, ns, "URL", fid, "URL", text=ref.url)
            self._element(ref_el, ns, "Description", fid, "Description", text=ref.summary)

    def _write_acknowledgments(self, parent, ns: str, acknowledgments: List[Acknowledgment]) -> None:
        for ack in acknowledgments:
            fid = ack.fidelity
            ack_el = self._element(parent, ns, "Acknowledgment", fid, "")
            self._leaves(ack_el, ns, "Name", fid, "Name", ack.names)
            self._leaves(ack_el, ns, "Organization", fid, "Organization", ack.organizations)
            self._leaf(ack_el, ns, "Description", fid, "Description", ack.summary)
            self._leaves(ack_el, ns, "URL", fid, "URL", ack.urls)

    # --- Product tree ---

    def _write_product_tree(self, root, tree: ProductTree) -> None:
        fid = tree.fidelity
        tree_el = self._element(root, PROD_NS, "ProductTree", fid, "")
        for branch in tree.branches:
            self._write_branch(tree_el, branch)
        for product in tree.full_product_names:
            self._write_full_product_name(tree_el, product)
        for rel in tree.relationships:
            rel_el = self._element(tree_el, PROD_NS, "Relationship", rel.fidelity, "", attrs=[
                ("ProductReference", rel.product_reference),
                ("RelationType", to_cvrf(rel.category)),
                ("RelatesToProductReference", rel.relates_to_product_reference),
            ])
            self._write_full_product_name(rel_el, rel.full_product_name)
        if tree.product_groups:
            groups_el = self._element(tree_el, PROD_NS, "ProductGroups", fid, "ProductGroups")
            for group in tree.product_groups:
                group_el = self._element(groups_el, PROD_NS, "Group", group.fidelity, "",
                                         attrs=[("GroupID", group.group_id)])
                self._leaf(group_el, PROD_NS, "Description", group.fidelity, "Description", group.summary)
                self._leaves(group_el, PROD_NS, "ProductID", group.fidelity, "ProductID", group.product_ids)

    def _write_branch(self, parent, branch: Branch) -> None:
        branch_el = self._element(parent, PROD_NS, "Branch", branch.fidelity, "", attrs=[
            ("Type", to_cvrf(branch.category)),
            ("Name", branch.name),
        ])
        for child in branch.branches:
            self._write_branch(branch_el, child)
        if branch.product is not None:
            self._write_full_product_name(branch_el, branch.product)

    def _write_full_product_name(self, parent, product: FullProductName) -> None:
        self._element(parent, PROD_NS, "FullProductName", product.fidelity, "", text=product.name, attrs=[
            ("ProductID", product.product_id),
            ("CPE", product.cpe),
        ])

    # --- Vulnerabilities ---

    def _write_vulnerability(self, root, vuln: Vulnerability, ordinal: int) -> None:
        fid = vuln.fidelity
        vuln_el = self._element(root, VULN_NS, "Vulnerability", fid, "", attrs=[("Ordinal", str(ordinal))])

        self._leaf(vuln_el, VULN_NS, "Title", fid, "Title", vuln.title)
        for vid in vuln.ids:
            self._element(vuln_el, VULN_NS, "ID", vid.fidelity, "", text=vid.text,
                          attrs=[("SystemName", vid.system_name)])

        if vuln.notes:
            notes_el = self._element(vuln_el, VULN_NS, "Notes", fid, "Notes")
            self._write_notes(notes_el, VULN_NS, vuln.notes)

        self._leaf(vuln_el, VULN_NS, "DiscoveryDate", fid, "DiscoveryDate", vuln.discovery_date)
        self._leaf(vuln_el, VULN_NS, "ReleaseDate", fid, "ReleaseDate", vuln.release_date)

        if vuln.involvements:
            inv_parent = self._element(vuln_el, VULN_NS, "Involvements", fid, "Involvements")
            for inv in vuln.involvements:
                inv_el = self._element(inv_parent, VULN_NS, "Involvement", inv.fidelity, "", attrs=[
                    ("Party", to_cvrf(inv.party)),
                    ("Status", to_cvrf(inv.status)),
                ])
                self._leaf(inv_el, VULN_NS, "Description", inv.fidelity, "Description", inv.summary)

        self._leaf(vuln_el, VULN_NS, "CVE", fid, "CVE", vuln.cve)
        for cwe in vuln.cwes:
            self._element(vuln_el, VULN_NS, "CWE", cwe.fidelity, "", text=cwe.name, attrs=[("ID", cwe.id)])

        if vuln.product_statuses:
            statuses_el = self._element(vuln_el, VULN_NS, "ProductStatuses", fid, "ProductStatuses")
            for status in vuln.product_statuses:
                status_el = self._element(statuses_el, VULN_NS, "Status", status.fidelity, "",
                                          attrs=[("Type", to_cvrf(status.status))])
                self._leaves(status_el, VULN_NS, "ProductID", status.fidelity, "ProductID", status.product_ids)

        if vuln.threats:
            threats_el = self._element(vuln_el, VULN_NS, "Threats", fid, "Threats")
            for threat in vuln.threats:
                threat_el = self._element(threats_el, VULN_NS, "Threat", threat.fidelity, "", attrs=[
                    ("Type", to_cvrf(threat.category)),
                    ("Date", threat.date),
                ])
                self._element(threat_el, VULN_NS, "Description", threat.fidelity, "Description",
                              text=threat.details)
                self._leaves(threat_el, VULN_NS, "ProductID", threat.fidelity, "ProductID", threat.product_ids)
                self._leaves(threat_el, VULN_NS, "GroupID", threat.fidelity, "GroupID", threat.group_ids)

        if vuln.scores:
            scores_el = self._element(vuln_el, VULN_NS, "CVSSScoreSets", fid, "CVSSScoreSets")
            for score in vuln.scores:
                self._write_score(scores_el, score)

        if vuln.remediations:
            rems_el = self._element(vuln_el, VULN_NS, "Remediations", fid, "Remediations")
            for rem in vuln.remediations:
                rem_fid = rem.fidelity
                rem_el = self._element(rems_el, VULN_NS, "Remediation", rem_fid, "", attrs=[
                    ("Type", to_cvrf(rem.category)),
                    ("Date", rem.date),
                ])
                self._element(rem_el, VULN_NS, "Description", rem_fid, "Description", text=rem.details)
                self._leaves(rem_el, VULN_NS, "Entitlement", rem_fid, "Entitlement", rem.entitlements)
                self._leaf(rem_el, VULN_NS, "URL", rem_fid, "URL", rem.url)
                self._leaves(rem_el, VULN_NS, "ProductID", rem_fid, "ProductID", rem.product_ids)
                self._leaves(rem_el, VULN_NS, "GroupID", rem_fid, "GroupID", rem.group_ids)

        if vuln.references:
            refs_el = self._element(vuln_el, VULN_NS, "References", fid, "References")
            self._write_references(refs_el, VULN_NS, vuln.references)

        if vuln.acknowledgments:
            acks_el = self._element(vuln_el, VULN_NS, "Acknowledgments", fid, "Acknowledgments")
            self._write_acknowledgments(acks_el, VULN_NS, vuln.acknowledgments)

    def _write_score(self, parent, score: Score) -> None:
        suffix = "V2" if score.is_v2 else "V3"
        fid = score.fidelity
        score_el = self._element(parent, VULN_NS, f"ScoreSet{suffix}", fid, "")

        def number(local: str, value: Optional[float]) -> None:
            if value is not None:
                self._element(score_el, VULN_NS, local, fid, local, text=cvss.format_score(value))

        number(f"BaseScore{suffix}", score.base_score)
        number(f"TemporalScore{suffix}", score.temporal_score)
        number(f"EnvironmentalScore{suffix}", score.environmental_score)
        self._leaf(score_el, VULN_NS, f"Vector{suffix}", fid, f"Vector{suffix}", score.vector)
        self._leaves(score_el, VULN_NS, "ProductID", fid, "ProductID", score.product_ids)


def _ordinals(items: Sequence) -> List[int]:
    """Keeps explicit ordinals and numbers the remaining items after the highest one."""
    next_free = max((item.ordinal for item in items if item.ordinal is not None), default=0) + 1
    ordinals = []
    for item in items:
        if item.ordinal is not None:
            ordinals.append(item.ordinal)
        else:
            ordinals.append(next_free)
            next_free += 1
    return ordinals

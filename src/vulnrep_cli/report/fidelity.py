"""
Round-trip fidelity tracking.

Two concerns live here:

1. Structural XML metadata (namespace prefixes, namespace declarations,
   attribute order, comments, CDATA) recorded by the XML decoder and replayed
   by the XML encoder. The metadata hangs off model nodes as a NodeFidelity,
   keyed by element path relative to the node's own element ("" is the node
   element itself). Each recorded element also keeps a content key of the
   text and attribute values it had when decoded; the encoder only replays
   an entry whose content key still matches what it is about to emit, so
   edited nodes fall back to the deterministic defaults.

2. Lossy-field bookkeeping: which populated fields of a report an encoder
   cannot represent.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from .model import Report

ContentKey = Tuple[str, Tuple[Tuple[str, str], ...]]


def content_key(text: Optional[str], attributes: Dict[str, str]) -> ContentKey:
    """Builds the comparison key for an element's semantic content."""
    return (text or "", tuple(sorted(attributes.items())))


@dataclass
class ElementFidelity:
    """Structural details of one XML element as it appeared in the source."""
    key: ContentKey
    prefix: Optional[str] = None
    nsmap: Dict[Optional[str], str] = field(default_factory=dict)
    attribute_order: List[str] = field(default_factory=list)
    # Attributes the model does not carry, e.g. xsi:schemaLocation.
    extra_attributes: List[Tuple[str, str]] = field(default_factory=list)
    # (position, text). For elements with element children the position is
    # the number of element children preceding the comment; for text-only
    # elements 0 means before the text and 1 after it.
    comments: List[Tuple[int, str]] = field(default_factory=list)
    cdata: bool = False


@dataclass
class NodeFidelity:
    elements: Dict[str, ElementFidelity] = field(default_factory=dict)
    # Comments that precede the root element, only used on the report node.
    prolog_comments: List[str] = field(default_factory=list)

    def record(self, path: str, info: ElementFidelity) -> None:
        self.elements[path] = info

    def lookup(self, path: str, key: ContentKey) -> Optional[ElementFidelity]:
        """Returns the recorded element if it is still unmodified, else None."""
        info = self.elements.get(path)
        if info is None or info.key != key:
            return None
        return info


def xml_losses(report: "Report") -> List[str]:
    """
    Lists populated report fields that have no CVRF representation.

    Args:
        report: The report about to be encoded as XML

    Returns:
        List of field locations that the XML encoder will drop.
    """
    losses: List[str] = []
    doc = report.document

    if doc.title_translations:
        losses.append("document.title_translations")
    if doc.lang:
        losses.append("document.lang")
    if doc.source_lang:
        losses.append("document.source_lang")
    if doc.publisher.name:
        losses.append("document.publisher.name")
    if doc.publisher.namespace:
        losses.append("document.publisher.namespace")

    tracking = doc.tracking
    if tracking.generator is not None and tracking.generator.engine_version:
        losses.append("document.tracking.generator.engine.version")
    for i, revision in enumerate(tracking.revision_history):
        if revision.legacy_version:
            losses.append(f"document.tracking.revision_history[{i}].legacy_version")

    if doc.distribution is not None and (doc.distribution.tlp_label or doc.distribution.tlp_url):
        losses.append("document.distribution.tlp")

    losses.extend(_note_losses(doc.notes, "document.notes"))

    for location, product in report.product_tree.iter_products():
        if product.purl:
            losses.append(f"{location}.product_identification_helper.purl")

    for i, vuln in enumerate(report.vulnerabilities):
        location = f"vulnerabilities[{i}]"
        if vuln.title_translations:
            losses.append(f"{location}.title_translations")
        losses.extend(_note_losses(vuln.notes, f"{location}.notes"))
        for j, involvement in enumerate(vuln.involvements):
            if involvement.date:
                losses.append(f"{location}.involvements[{j}].date")

    return losses


def json_losses(report: "Report") -> List[str]:
    """
    Lists what a JSON encoding of the report drops.

    JSON carries every semantic field of the model; only XML structural
    metadata is left behind.
    """
    if report.fidelity is not None:
        return ["xml structural metadata (namespace prefixes, attribute order, comments, CDATA)"]
    return []


def _note_losses(notes, location: str) -> List[str]:
    losses = []
    for i, note in enumerate(notes):
        if note.text_translations:
            losses.append(f"{location}[{i}].text_translations")
        if note.title_translations:
            losses.append(f"{location}[{i}].title_translations")
    return losses

"""
Unified vulnerability report model.

This module holds the format-agnostic representation shared by the CVRF (XML)
and CSAF (JSON) codecs. It captures the superset of fields either format can
express; fields that only one format can carry are marked as such in the
field comments.

Nodes decoded from XML carry an optional ``fidelity`` attribute with
structural metadata for the XML encoder. Fidelity never takes part in
equality, so two reports compare equal when their semantic content matches.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple, Type

from ..exceptions import ParseError, ValidationError, VulnrepError
from .fidelity import NodeFidelity

# Language tag -> localized text. Only the JSON format can carry these.
Translations = Dict[str, str]


def _fidelity_field():
    return field(default=None, compare=False, repr=False)


class DocumentStatus(Enum):
    DRAFT = "draft"
    FINAL = "final"
    INTERIM = "interim"


class PublisherCategory(Enum):
    VENDOR = "vendor"
    DISCOVERER = "discoverer"
    COORDINATOR = "coordinator"
    USER = "user"
    OTHER = "other"


class NoteCategory(Enum):
    GENERAL = "general"
    DETAILS = "details"
    DESCRIPTION = "description"
    SUMMARY = "summary"
    FAQ = "faq"
    LEGAL_DISCLAIMER = "legal_disclaimer"
    OTHER = "other"


class ReferenceCategory(Enum):
    EXTERNAL = "external"
    SELF = "self"


class BranchCategory(Enum):
    VENDOR = "vendor"
    PRODUCT_FAMILY = "product_family"
    PRODUCT_NAME = "product_name"
    PRODUCT_VERSION = "product_version"
    PATCH_LEVEL = "patch_level"
    SERVICE_PACK = "service_pack"
    ARCHITECTURE = "architecture"
    LANGUAGE = "language"
    LEGACY = "legacy"
    SPECIFICATION = "specification"
    HOST_NAME = "host_name"


class RelationshipCategory(Enum):
    DEFAULT_COMPONENT_OF = "default_component_of"
    OPTIONAL_COMPONENT_OF = "optional_component_of"
    EXTERNAL_COMPONENT_OF = "external_component_of"
    INSTALLED_ON = "installed_on"
    INSTALLED_WITH = "installed_with"


class InvolvementParty(Enum):
    VENDOR = "vendor"
    DISCOVERER = "discoverer"
    COORDINATOR = "coordinator"
    USER = "user"
    OTHER = "other"


class InvolvementStatus(Enum):
    OPEN = "open"
    DISPUTED = "disputed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CONTACT_ATTEMPTED = "contact_attempted"
    NOT_CONTACTED = "not_contacted"


class ProductStatusType(Enum):
    FIRST_AFFECTED = "first_affected"
    KNOWN_AFFECTED = "known_affected"
    KNOWN_NOT_AFFECTED = "known_not_affected"
    FIRST_FIXED = "first_fixed"
    FIXED = "fixed"
    RECOMMENDED = "recommended"
    LAST_AFFECTED = "last_affected"


class ThreatCategory(Enum):
    IMPACT = "impact"
    EXPLOIT_STATUS = "exploit_status"
    TARGET_SET = "target_set"


class RemediationCategory(Enum):
    VENDOR_FIX = "vendor_fix"
    WORKAROUND = "workaround"
    MITIGATION = "mitigation"
    NONE_AVAILABLE = "none_available"
    WILL_NOT_FIX = "will_not_fix"


# --- Generic reusable structures ---

@dataclass
class Note:
    category: NoteCategory
    text: str
    title: Optional[str] = None
    audience: Optional[str] = None
    ordinal: Optional[int] = None
    text_translations: Translations = field(default_factory=dict)
    title_translations: Translations = field(default_factory=dict)
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class Reference:
    url: str
    summary: str
    category: Optional[ReferenceCategory] = None
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class Acknowledgment:
    names: List[str] = field(default_factory=list)
    organizations: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    urls: List[str] = field(default_factory=list)
    fidelity: Optional[NodeFidelity] = _fidelity_field()


# --- Document metadata ---

@dataclass
class Publisher:
    category: PublisherCategory
    vendor_id: Optional[str] = None
    contact_details: Optional[str] = None
    issuing_authority: Optional[str] = None
    name: Optional[str] = None       # JSON only
    namespace: Optional[str] = None  # JSON only


@dataclass
class Revision:
    number: str
    date: str
    summary: str
    legacy_version: Optional[str] = None  # JSON only
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class Generator:
    engine_name: Optional[str] = None
    engine_version: Optional[str] = None  # JSON only
    date: Optional[str] = None


@dataclass
class Tracking:
    id: str
    status: DocumentStatus
    version: str
    revision_history: List[Revision] = field(default_factory=list)
    initial_release_date: Optional[str] = None
    current_release_date: Optional[str] = None
    aliases: List[str] = field(default_factory=list)
    generator: Optional[Generator] = None


@dataclass
class Distribution:
    text: Optional[str] = None
    tlp_label: Optional[str] = None  # JSON only
    tlp_url: Optional[str] = None    # JSON only


@dataclass
class AggregateSeverity:
    text: str
    namespace: Optional[str] = None


@dataclass
class DocumentMetadata:
    title: str
    category: str
    publisher: Publisher
    tracking: Tracking
    title_translations: Translations = field(default_factory=dict)
    notes: List[Note] = field(default_factory=list)
    distribution: Optional[Distribution] = None
    aggregate_severity: Optional[AggregateSeverity] = None
    references: List[Reference] = field(default_factory=list)
    acknowledgments: List[Acknowledgment] = field(default_factory=list)
    lang: Optional[str] = None         # JSON only
    source_lang: Optional[str] = None  # JSON only


# --- Product tree ---

@dataclass
class FullProductName:
    product_id: str
    name: str
    cpe: Optional[str] = None
    purl: Optional[str] = None  # JSON only
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class Branch:
    category: BranchCategory
    name: str
    branches: List["Branch"] = field(default_factory=list)
    product: Optional[FullProductName] = None
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class Relationship:
    category: RelationshipCategory
    product_reference: str
    relates_to_product_reference: str
    full_product_name: FullProductName
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class ProductGroup:
    group_id: str
    product_ids: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class ProductTree:
    branches: List[Branch] = field(default_factory=list)
    full_product_names: List[FullProductName] = field(default_factory=list)
    relationships: List[Relationship] = field(default_factory=list)
    product_groups: List[ProductGroup] = field(default_factory=list)
    fidelity: Optional[NodeFidelity] = _fidelity_field()

    def iter_products(self) -> Iterator[Tuple[str, FullProductName]]:
        """Yields (location, product) for every product defined in the tree."""
        def walk(branches: List[Branch], prefix: str):
            for i, branch in enumerate(branches):
                location = f"{prefix}[{i}]"
                if branch.product is not None:
                    yield f"{location}.product", branch.product
                yield from walk(branch.branches, f"{location}.branches")

        yield from walk(self.branches, "product_tree.branches")
        for i, product in enumerate(self.full_product_names):
            yield f"product_tree.full_product_names[{i}]", product
        for i, rel in enumerate(self.relationships):
            yield f"product_tree.relationships[{i}].full_product_name", rel.full_product_name

    def product_ids(self) -> List[str]:
        return [product.product_id for _, product in self.iter_products()]

    def group_ids(self) -> List[str]:
        return [group.group_id for group in self.product_groups]

    def is_empty(self) -> bool:
        return not (self.branches or self.full_product_names or self.relationships or self.product_groups)


# --- Vulnerabilities ---

@dataclass
class VulnerabilityID:
    system_name: str
    text: str
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class Involvement:
    party: InvolvementParty
    status: InvolvementStatus
    summary: Optional[str] = None
    date: Optional[str] = None  # JSON only
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class CWE:
    id: str
    name: str
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class ProductStatus:
    status: ProductStatusType
    product_ids: List[str] = field(default_factory=list)
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class Threat:
    category: ThreatCategory
    details: str
    date: Optional[str] = None
    product_ids: List[str] = field(default_factory=list)
    group_ids: List[str] = field(default_factory=list)
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class Score:
    """A CVSS score set. ``cvss_version`` is "2.0", "3.0" or "3.1"."""
    cvss_version: str
    base_score: float
    temporal_score: Optional[float] = None
    environmental_score: Optional[float] = None
    vector: Optional[str] = None
    product_ids: List[str] = field(default_factory=list)
    fidelity: Optional[NodeFidelity] = _fidelity_field()

    @property
    def is_v2(self) -> bool:
        return self.cvss_version.startswith("2")


@dataclass
class Remediation:
    category: RemediationCategory
    details: str
    date: Optional[str] = None
    entitlements: List[str] = field(default_factory=list)
    url: Optional[str] = None
    product_ids: List[str] = field(default_factory=list)
    group_ids: List[str] = field(default_factory=list)
    fidelity: Optional[NodeFidelity] = _fidelity_field()


@dataclass
class Vulnerability:
    ordinal: Optional[int] = None
    title: Optional[str] = None
    title_translations: Translations = field(default_factory=dict)
    ids: List[VulnerabilityID] = field(default_factory=list)
    notes: List[Note] = field(default_factory=list)
    discovery_date: Optional[str] = None
    release_date: Optional[str] = None
    involvements: List[Involvement] = field(default_factory=list)
    cve: Optional[str] = None
    cwes: List[CWE] = field(default_factory=list)
    product_statuses: List[ProductStatus] = field(default_factory=list)
    threats: List[Threat] = field(default_factory=list)
    scores: List[Score] = field(default_factory=list)
    remediations: List[Remediation] = field(default_factory=list)
    references: List[Reference] = field(default_factory=list)
    acknowledgments: List[Acknowledgment] = field(default_factory=list)
    fidelity: Optional[NodeFidelity] = _fidelity_field()

    def iter_product_refs(self, location: str) -> Iterator[Tuple[str, str]]:
        """Yields (location, product_id) for every product id this vulnerability references."""
        for i, status in enumerate(self.product_statuses):
            for pid in status.product_ids:
                yield f"{location}.product_status.{status.status.value}[{i}]", pid
        for i, score in enumerate(self.scores):
            for pid in score.product_ids:
                yield f"{location}.scores[{i}]", pid
        for i, remediation in enumerate(self.remediations):
            for pid in remediation.product_ids:
                yield f"{location}.remediations[{i}]", pid
        for i, threat in enumerate(self.threats):
            for pid in threat.product_ids:
                yield f"{location}.threats[{i}]", pid

    def iter_group_refs(self, location: str) -> Iterator[Tuple[str, str]]:
        for i, remediation in enumerate(self.remediations):
            for gid in remediation.group_ids:
                yield f"{location}.remediations[{i}]", gid
        for i, threat in enumerate(self.threats):
            for gid in threat.group_ids:
                yield f"{location}.threats[{i}]", gid


# --- Root ---

@dataclass
class Report:
    document: DocumentMetadata
    product_tree: ProductTree = field(default_factory=ProductTree)
    vulnerabilities: List[Vulnerability] = field(default_factory=list)
    fidelity: Optional[NodeFidelity] = _fidelity_field()

    def check_required(self, error_cls: Type[VulnrepError] = ParseError) -> None:
        """
        Checks the fields every document must carry.

        Args:
            error_cls: Exception class to raise; decoders pass ParseError,
                encoders pass EncodeError.

        Raises:
            error_cls: If the tracking id, the revision history or the title is
                missing, or any other required field is absent or has the
                wrong type.
        """
        tracking = self.document.tracking
        if not isinstance(tracking.id, str) or not tracking.id.strip():
            raise error_cls("Document tracking id is missing",
                            details={"location": "document.tracking.id"})
        if not tracking.revision_history:
            raise error_cls("Document revision history must contain at least one revision",
                            details={"location": "document.tracking.revision_history"})
        if not isinstance(self.document.title, str) or not self.document.title:
            raise error_cls("Document title is missing", details={"location": "document.title"})

        for location, value, expected in _typed_fields(self):
            if isinstance(value, bool) or not isinstance(value, expected):
                raise error_cls(f"Required field is missing or invalid: {location}",
                                details={"location": location})
            if location.endswith(".cvss_version") and not value.startswith(("2", "3")):
                raise error_cls(f"Unsupported CVSS version '{value}'", details={"location": location})

    def validate(self) -> None:
        """
        Checks the cross-reference invariants of the report.

        Raises:
            ValidationError: If revision dates are not ascending, a product id
                is defined twice, or any reference names an undefined product
                or group id. Also raised when a vulnerability repeats a product
                status type or an id within one status, or a notes list reuses
                an ordinal.
        """
        _validate_revision_order(self.document.tracking.revision_history)
        _validate_note_ordinals(self.document.notes, "document.notes")
        for i, vuln in enumerate(self.vulnerabilities):
            _validate_note_ordinals(vuln.notes, f"vulnerabilities[{i}].notes")
            _validate_product_statuses(vuln.product_statuses, f"vulnerabilities[{i}].product_status")

        known_products = set()
        for location, product in self.product_tree.iter_products():
            if product.product_id in known_products:
                raise ValidationError(
                    f"Product id '{product.product_id}' is defined more than once in the product tree",
                    details={"location": location, "product_id": product.product_id},
                )
            known_products.add(product.product_id)
        known_groups = set(self.product_tree.group_ids())

        refs: List[Tuple[str, str]] = []
        for i, group in enumerate(self.product_tree.product_groups):
            refs.extend((f"product_tree.product_groups[{i}]", pid) for pid in group.product_ids)
        for i, rel in enumerate(self.product_tree.relationships):
            location = f"product_tree.relationships[{i}]"
            refs.append((location, rel.product_reference))
            refs.append((location, rel.relates_to_product_reference))
        for i, vuln in enumerate(self.vulnerabilities):
            refs.extend(vuln.iter_product_refs(f"vulnerabilities[{i}]"))

        for location, pid in refs:
            if pid not in known_products:
                raise ValidationError(
                    f"Product id '{pid}' is not defined in the product tree",
                    details={"location": location, "product_id": pid},
                )

        for i, vuln in enumerate(self.vulnerabilities):
            for location, gid in vuln.iter_group_refs(f"vulnerabilities[{i}]"):
                if gid not in known_groups:
                    raise ValidationError(
                        f"Group id '{gid}' is not defined in the product tree",
                        details={"location": location, "group_id": gid},
                    )


_ISO_DATE = re.compile(
    r"(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[Tt ](?P<minutes>\d{2}:\d{2})(?::(?P<seconds>\d{2})(?:[.,](?P<fraction>\d+))?)?"
    r"(?P<offset>[Zz]|[+-]\d{2}(?::?\d{2})?)?)?"
)


def parse_date(value: str) -> datetime:
    """
    Parses an ISO 8601 date or date-time as used by both formats.

    Offsets may be written as ``Z``, ``+HH``, ``+HHMM`` or ``+HH:MM`` and
    fractions may have any number of digits; these are normalized before
    ``datetime.fromisoformat`` sees them. Naive values are taken as UTC so
    that they order against aware ones.

    Raises:
        ValueError: If the value is not an ISO 8601 string.
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO 8601 string, got {type(value).__name__}")
    match = _ISO_DATE.fullmatch(value.strip())
    if match is None:
        raise ValueError(f"'{value}' is not an ISO 8601 date")

    text = match.group("date")
    if match.group("minutes"):
        text += "T" + match.group("minutes") + ":" + (match.group("seconds") or "00")
        if match.group("fraction"):
            text += "." + match.group("fraction")[:6].ljust(6, "0")
        offset = match.group("offset")
        if offset:
            if offset in ("Z", "z"):
                offset = "+00:00"
            digits = offset[1:].replace(":", "").ljust(4, "0")
            text += f"{offset[0]}{digits[:2]}:{digits[2:]}"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _validate_revision_order(revisions: List[Revision]) -> None:
    previous: Optional[datetime] = None
    for i, revision in enumerate(revisions):
        location = f"document.tracking.revision_history[{i}].date"
        try:
            current = parse_date(revision.date)
        except ValueError:
            raise ValidationError(f"Revision date '{revision.date}' is not an ISO 8601 date",
                                  details={"location": location})
        if previous is not None and current < previous:
            raise ValidationError(
                f"Revision history is not in ascending date order at revision '{revision.number}'",
                details={"location": location},
            )
        previous = current


def _validate_note_ordinals(notes: List[Note], location: str) -> None:
    seen = set()
    for i, note in enumerate(notes):
        if note.ordinal is None:
            continue
        if note.ordinal in seen:
            raise ValidationError(
                f"Note ordinal {note.ordinal} is used more than once",
                details={"location": f"{location}[{i}].ordinal"},
            )
        seen.add(note.ordinal)


def _validate_product_statuses(statuses: List[ProductStatus], location: str) -> None:
    seen = set()
    for status in statuses:
        bucket = f"{location}.{status.status.value}"
        if status.status in seen:
            raise ValidationError(f"Product status '{status.status.value}' is listed more than once",
                                  details={"location": bucket})
        seen.add(status.status)
        if len(set(status.product_ids)) != len(status.product_ids):
            duplicate = next(pid for i, pid in enumerate(status.product_ids) if pid in status.product_ids[:i])
            raise ValidationError(f"Product id '{duplicate}' is listed more than once",
                                  details={"location": bucket, "product_id": duplicate})


_TEXT = (str,)
_OPTIONAL_TEXT = (str, type(None))
_NUMBER = (int, float)
_OPTIONAL_NUMBER = (int, float, type(None))
_OPTIONAL_INT = (int, type(None))


def _typed_fields(report: Report) -> Iterator[Tuple[str, object, tuple]]:
    """
    Yields (location, value, accepted types) for the fields the decoders require.

    The caller stops at the first mismatch, so a container is always checked
    before the fields read from it.
    """
    doc = report.document
    yield "document.category", doc.category, _TEXT
    yield "document.publisher", doc.publisher, (Publisher,)
    yield "document.publisher.category", doc.publisher.category, (PublisherCategory,)

    tracking = doc.tracking
    yield "document.tracking.status", tracking.status, (DocumentStatus,)
    yield "document.tracking.version", tracking.version, _TEXT
    for i, revision in enumerate(tracking.revision_history):
        location = f"document.tracking.revision_history[{i}]"
        yield f"{location}.number", revision.number, _TEXT
        yield f"{location}.date", revision.date, _TEXT
        yield f"{location}.summary", revision.summary, _TEXT
    for name in ("initial_release_date", "current_release_date"):
        yield f"document.tracking.{name}", getattr(tracking, name), _OPTIONAL_TEXT
    if doc.aggregate_severity is not None:
        yield "document.aggregate_severity.text", doc.aggregate_severity.text, _TEXT

    yield from _note_fields(doc.notes, "document.notes")
    yield from _reference_fields(doc.references, "document.references")

    tree = report.product_tree
    for location, product in tree.iter_products():
        yield f"{location}.product_id", product.product_id, _TEXT
        yield f"{location}.name", product.name, _TEXT
    yield from _branch_fields(tree.branches, "product_tree.branches")
    for i, rel in enumerate(tree.relationships):
        location = f"product_tree.relationships[{i}]"
        yield f"{location}.category", rel.category, (RelationshipCategory,)
        yield f"{location}.product_reference", rel.product_reference, _TEXT
        yield f"{location}.relates_to_product_reference", rel.relates_to_product_reference, _TEXT
    for i, group in enumerate(tree.product_groups):
        location = f"product_tree.product_groups[{i}]"
        yield f"{location}.group_id", group.group_id, _TEXT
        yield from _id_fields(group.product_ids, f"{location}.product_ids")

    for i, vuln in enumerate(report.vulnerabilities):
        location = f"vulnerabilities[{i}]"
        yield f"{location}.ordinal", vuln.ordinal, _OPTIONAL_INT
        yield from _note_fields(vuln.notes, f"{location}.notes")
        yield from _reference_fields(vuln.references, f"{location}.references")
        for j, vid in enumerate(vuln.ids):
            yield f"{location}.ids[{j}].system_name", vid.system_name, _TEXT
            yield f"{location}.ids[{j}].text", vid.text, _TEXT
        for j, inv in enumerate(vuln.involvements):
            yield f"{location}.involvements[{j}].party", inv.party, (InvolvementParty,)
            yield f"{location}.involvements[{j}].status", inv.status, (InvolvementStatus,)
        for j, cwe in enumerate(vuln.cwes):
            yield f"{location}.cwes[{j}].id", cwe.id, _TEXT
            yield f"{location}.cwes[{j}].name", cwe.name, _TEXT
        for j, status in enumerate(vuln.product_statuses):
            yield f"{location}.product_statuses[{j}].status", status.status, (ProductStatusType,)
            yield from _id_fields(status.product_ids, f"{location}.product_statuses[{j}].product_ids")
        for j, threat in enumerate(vuln.threats):
            yield f"{location}.threats[{j}].category", threat.category, (ThreatCategory,)
            yield f"{location}.threats[{j}].details", threat.details, _TEXT
            yield from _id_fields(threat.product_ids, f"{location}.threats[{j}].product_ids")
            yield from _id_fields(threat.group_ids, f"{location}.threats[{j}].group_ids")
        for j, score in enumerate(vuln.scores):
            yield f"{location}.scores[{j}].base_score", score.base_score, _NUMBER
            yield f"{location}.scores[{j}].temporal_score", score.temporal_score, _OPTIONAL_NUMBER
            yield f"{location}.scores[{j}].environmental_score", score.environmental_score, _OPTIONAL_NUMBER
            yield f"{location}.scores[{j}].vector", score.vector, _OPTIONAL_TEXT
            yield from _id_fields(score.product_ids, f"{location}.scores[{j}].product_ids")
            yield f"{location}.scores[{j}].cvss_version", score.cvss_version, _TEXT
        for j, rem in enumerate(vuln.remediations):
            yield f"{location}.remediations[{j}].category", rem.category, (RemediationCategory,)
            yield f"{location}.remediations[{j}].details", rem.details, _TEXT
            yield from _id_fields(rem.product_ids, f"{location}.remediations[{j}].product_ids")
            yield from _id_fields(rem.group_ids, f"{location}.remediations[{j}].group_ids")


def _note_fields(notes: List[Note], location: str):
    for i, note in enumerate(notes):
        yield f"{location}[{i}].category", note.category, (NoteCategory,)
        yield f"{location}[{i}].text", note.text, _TEXT
        yield f"{location}[{i}].ordinal", note.ordinal, _OPTIONAL_INT


def _reference_fields(references: List[Reference], location: str):
    for i, ref in enumerate(references):
        yield f"{location}[{i}].url", ref.url, _TEXT
        yield f"{location}[{i}].summary", ref.summary, _TEXT
        yield f"{location}[{i}].category", ref.category, (ReferenceCategory, type(None))


def _branch_fields(branches: List[Branch], location: str):
    for i, branch in enumerate(branches):
        yield f"{location}[{i}].category", branch.category, (BranchCategory,)
        yield f"{location}[{i}].name", branch.name, _TEXT
        yield from _branch_fields(branch.branches, f"{location}[{i}].branches")


def _id_fields(ids: List[str], location: str):
    for i, value in enumerate(ids):
        yield f"{location}[{i}]", value, _TEXT

"""
CVRF 1.2 vocabulary mappings.

The model uses CSAF style tokens for every enumerated value. CVRF spells the
same values as title-cased phrases; the tables below map between the two.
"""

from enum import Enum
from typing import Dict, Type, TypeVar

from .model import (
    BranchCategory,
    DocumentStatus,
    InvolvementParty,
    InvolvementStatus,
    NoteCategory,
    ProductStatusType,
    PublisherCategory,
    ReferenceCategory,
    RelationshipCategory,
    RemediationCategory,
    ThreatCategory,
)

E = TypeVar("E", bound=Enum)

CVRF_NAMES: Dict[Type[Enum], Dict[Enum, str]] = {
    DocumentStatus: {
        DocumentStatus.DRAFT: "Draft",
        DocumentStatus.FINAL: "Final",
        DocumentStatus.INTERIM: "Interim",
    },
    PublisherCategory: {
        PublisherCategory.VENDOR: "Vendor",
        PublisherCategory.DISCOVERER: "Discoverer",
        PublisherCategory.COORDINATOR: "Coordinator",
        PublisherCategory.USER: "User",
        PublisherCategory.OTHER: "Other",
    },
    NoteCategory: {
        NoteCategory.GENERAL: "General",
        NoteCategory.DETAILS: "Details",
        NoteCategory.DESCRIPTION: "Description",
        NoteCategory.SUMMARY: "Summary",
        NoteCategory.FAQ: "FAQ",
        NoteCategory.LEGAL_DISCLAIMER: "Legal Disclaimer",
        NoteCategory.OTHER: "Other",
    },
    ReferenceCategory: {
        ReferenceCategory.EXTERNAL: "External",
        ReferenceCategory.SELF: "Self",
    },
    BranchCategory: {
        BranchCategory.VENDOR: "Vendor",
        BranchCategory.PRODUCT_FAMILY: "Product Family",
        BranchCategory.PRODUCT_NAME: "Product Name",
        BranchCategory.PRODUCT_VERSION: "Product Version",
        BranchCategory.PATCH_LEVEL: "Patch Level",
        BranchCategory.SERVICE_PACK: "Service Pack",
        BranchCategory.ARCHITECTURE: "Architecture",
        BranchCategory.LANGUAGE: "Language",
        BranchCategory.LEGACY: "Legacy",
        BranchCategory.SPECIFICATION: "Specification",
        BranchCategory.HOST_NAME: "Host Name",
    },
    RelationshipCategory: {
        RelationshipCategory.DEFAULT_COMPONENT_OF: "Default Component Of",
        RelationshipCategory.OPTIONAL_COMPONENT_OF: "Optional Component Of",
        RelationshipCategory.EXTERNAL_COMPONENT_OF: "External Component Of",
        RelationshipCategory.INSTALLED_ON: "Installed On",
        RelationshipCategory.INSTALLED_WITH: "Installed With",
    },
    InvolvementParty: {
        InvolvementParty.VENDOR: "Vendor",
        InvolvementParty.DISCOVERER: "Discoverer",
        InvolvementParty.COORDINATOR: "Coordinator",
        InvolvementParty.USER: "User",
        InvolvementParty.OTHER: "Other",
    },
    InvolvementStatus: {
        InvolvementStatus.OPEN: "Open",
        InvolvementStatus.DISPUTED: "Disputed",
        InvolvementStatus.IN_PROGRESS: "In Progress",
        InvolvementStatus.COMPLETED: "Completed",
        InvolvementStatus.CONTACT_ATTEMPTED: "Contact Attempted",
        InvolvementStatus.NOT_CONTACTED: "Not Contacted",
    },
    ProductStatusType: {
        ProductStatusType.FIRST_AFFECTED: "First Affected",
        ProductStatusType.KNOWN_AFFECTED: "Known Affected",
        ProductStatusType.KNOWN_NOT_AFFECTED: "Known Not Affected",
        ProductStatusType.FIRST_FIXED: "First Fixed",
        ProductStatusType.FIXED: "Fixed",
        ProductStatusType.RECOMMENDED: "Recommended",
        ProductStatusType.LAST_AFFECTED: "Last Affected",
    },
    ThreatCategory: {
        ThreatCategory.IMPACT: "Impact",
        ThreatCategory.EXPLOIT_STATUS: "Exploit Status",
        ThreatCategory.TARGET_SET: "Target Set",
    },
    RemediationCategory: {
        RemediationCategory.VENDOR_FIX: "Vendor Fix",
        RemediationCategory.WORKAROUND: "Workaround",
        RemediationCategory.MITIGATION: "Mitigation",
        RemediationCategory.NONE_AVAILABLE: "None Available",
        RemediationCategory.WILL_NOT_FIX: "Will Not Fix",
    },
}

_CVRF_LOOKUP: Dict[Type[Enum], Dict[str, Enum]] = {
    enum_cls: {name: member for member, name in names.items()}
    for enum_cls, names in CVRF_NAMES.items()
}


def to_cvrf(member: Enum) -> str:
    """Returns the CVRF spelling of a model enum member."""
    return CVRF_NAMES[type(member)][member]


def from_cvrf(enum_cls: Type[E], value: str) -> E:
    """
    Looks up a model enum member by its CVRF spelling.

    Raises:
        KeyError: If the value is not part of the CVRF vocabulary.
    """
    return _CVRF_LOOKUP[enum_cls][value.strip()]


def from_token(enum_cls: Type[E], value: str) -> E:
    """
    Looks up a model enum member by its CSAF token.

    Raises:
        ValueError: If the value is not a known token.
    """
    return enum_cls(value)

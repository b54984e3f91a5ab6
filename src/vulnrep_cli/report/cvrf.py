"""
CVRF 1.2 namespaces and element naming shared by the XML decoder and encoder.
"""

from typing import Dict, FrozenSet, Optional

CVRF_NS = "http://www.icasi.org/CVRF/schema/cvrf/1.2"
PROD_NS = "http://www.icasi.org/CVRF/schema/prod/1.2"
VULN_NS = "http://www.icasi.org/CVRF/schema/vuln/1.2"
XML_NS = "http://www.w3.org/XML/1998/namespace"

XML_LANG = f"{{{XML_NS}}}lang"

# Namespace bindings used on the root element when no recorded bindings exist.
DEFAULT_NSMAP: Dict[Optional[str], str] = {
    None: CVRF_NS,
    "prod": PROD_NS,
    "vuln": VULN_NS,
}


def qname(ns: str, local: str) -> str:
    """Clark notation name, e.g. {http://...}Note."""
    return f"{{{ns}}}{local}"


# Attributes the model carries, by element local name. Any other attribute
# (xsi:schemaLocation, vendor extensions) is kept only as fidelity metadata.
MODELED_ATTRIBUTES: Dict[str, FrozenSet[str]] = {
    "DocumentPublisher": frozenset({"Type", "VendorID"}),
    "Note": frozenset({"Type", "Ordinal", "Title", "Audience"}),
    "Reference": frozenset({"Type"}),
    "AggregateSeverity": frozenset({"Namespace"}),
    "Branch": frozenset({"Type", "Name"}),
    "FullProductName": frozenset({"ProductID", "CPE"}),
    "Relationship": frozenset({"ProductReference", "RelationType", "RelatesToProductReference"}),
    "Group": frozenset({"GroupID"}),
    "Vulnerability": frozenset({"Ordinal"}),
    "ID": frozenset({"SystemName"}),
    "Involvement": frozenset({"Party", "Status"}),
    "CWE": frozenset({"ID"}),
    "Status": frozenset({"Type"}),
    "Threat": frozenset({"Type", "Date"}),
    "Remediation": frozenset({"Type", "Date"}),
}

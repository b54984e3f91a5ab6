"""
CVSS helpers shared by both codecs.

Only the vector grammar is checked; scores are not recomputed from vectors.
"""

import re
from typing import Dict, Optional

V2_BASE_METRICS: Dict[str, str] = {
    "AV": "LAN",
    "AC": "HML",
    "Au": "MSN",
    "C": "NPC",
    "I": "NPC",
    "A": "NPC",
}

V3_BASE_METRICS: Dict[str, str] = {
    "AV": "NALP",
    "AC": "LH",
    "PR": "NLH",
    "UI": "NR",
    "S": "UC",
    "C": "HLN",
    "I": "HLN",
    "A": "HLN",
}

_V3_PREFIX = re.compile(r"^CVSS:(3\.[01])/")
_METRIC = re.compile(r"^([A-Za-z]+):([A-Z]+)$")

DEFAULT_V3_VERSION = "3.0"


def normalize_vector(vector: str) -> str:
    """Strips whitespace and the parentheses some CVRF producers wrap v2 vectors in."""
    text = vector.strip()
    if text.startswith("(") and text.endswith(")"):
        text = text[1:-1].strip()
    return text


def v3_version(vector: Optional[str]) -> str:
    """Returns "3.0" or "3.1" from a v3 vector prefix, defaulting to 3.0."""
    if vector:
        match = _V3_PREFIX.match(vector.strip())
        if match:
            return match.group(1)
    return DEFAULT_V3_VERSION


def check_vector(vector: str, major: int) -> None:
    """
    Checks a CVSS vector string against the base metric grammar.

    Args:
        vector: The vector string, already normalized
        major: 2 or 3

    Raises:
        ValueError: If the vector does not follow the grammar.
    """
    if major == 3:
        match = _V3_PREFIX.match(vector)
        if not match:
            raise ValueError(f"CVSS v3 vector must start with 'CVSS:3.0/' or 'CVSS:3.1/': '{vector}'")
        body = vector[match.end():]
        required = V3_BASE_METRICS
    elif major == 2:
        body = vector
        required = V2_BASE_METRICS
    else:
        raise ValueError(f"Unsupported CVSS major version {major}")

    seen: Dict[str, str] = {}
    for part in body.split("/"):
        match = _METRIC.match(part)
        if not match:
            raise ValueError(f"Malformed CVSS metric '{part}' in vector '{vector}'")
        name, value = match.groups()
        if name in seen:
            raise ValueError(f"CVSS metric '{name}' repeated in vector '{vector}'")
        seen[name] = value

    for name, allowed in required.items():
        value = seen.get(name)
        if value is None:
            raise ValueError(f"CVSS base metric '{name}' missing from vector '{vector}'")
        if len(value) != 1 or value not in allowed:
            raise ValueError(f"Invalid value '{value}' for CVSS metric '{name}' in vector '{vector}'")


def check_score(score: float) -> None:
    if not 0.0 <= score <= 10.0:
        raise ValueError(f"CVSS score {score} is outside the range 0.0-10.0")


def v3_severity(score: float) -> str:
    """Qualitative severity rating for a CVSS v3 score."""
    if score == 0.0:
        return "NONE"
    if score < 4.0:
        return "LOW"
    if score < 7.0:
        return "MEDIUM"
    if score < 9.0:
        return "HIGH"
    return "CRITICAL"


def format_score(score: float) -> str:
    """Formats a score the way CVRF documents write them, e.g. 7.5 or 10.0."""
    return f"{score:.1f}" if round(score, 1) == score else repr(score)

import io
import os

import pytest

from vulnrep_cli.report import DocumentFormat, decode
from vulnrep_cli.report.model import (
    DocumentMetadata,
    DocumentStatus,
    FullProductName,
    Note,
    NoteCategory,
    ProductStatus,
    ProductStatusType,
    ProductTree,
    Publisher,
    PublisherCategory,
    Report,
    Revision,
    Score,
    Tracking,
    Vulnerability,
)

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


def fixture_path(name: str) -> str:
    return os.path.join(FIXTURES_DIR, name)


def read_fixture(name: str) -> bytes:
    with open(fixture_path(name), "rb") as f:
        return f.read()


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def minimal_xml():
    """CVRF document with one vulnerability (CVE-2021-0001) on product CSAFPID-1."""
    return read_fixture("minimal.xml")


@pytest.fixture
def full_xml():
    """CVRF document using custom prefixes, comments, CDATA and most optional elements."""
    return read_fixture("full.xml")


@pytest.fixture
def translated_json():
    """CSAF JSON document carrying translations and JSON-only fields."""
    return read_fixture("translated.json")


@pytest.fixture
def decode_bytes():
    """Decodes in-memory document bytes in the given format."""
    def _decode(fmt: DocumentFormat, data: bytes, config=None) -> Report:
        return decode(fmt, io.BytesIO(data), config)
    return _decode


@pytest.fixture
def sample_report():
    """A small report built in code, without fidelity metadata."""
    return Report(
        document=DocumentMetadata(
            title="Programmatic advisory",
            category="Security Advisory",
            publisher=Publisher(category=PublisherCategory.VENDOR, name="Example Corp"),
            tracking=Tracking(
                id="EXAMPLE-SA-2021-0100",
                status=DocumentStatus.DRAFT,
                version="1",
                revision_history=[Revision(number="1", date="2021-05-01T00:00:00Z", summary="Draft")],
                initial_release_date="2021-05-01T00:00:00Z",
                current_release_date="2021-05-01T00:00:00Z",
            ),
            notes=[Note(category=NoteCategory.SUMMARY, text="Summary text",
                        text_translations={"es": "Texto de resumen"})],
        ),
        product_tree=ProductTree(full_product_names=[FullProductName(product_id="CSAFPID-1", name="Widget 1.0")]),
        vulnerabilities=[
            Vulnerability(
                cve="CVE-2021-0100",
                product_statuses=[ProductStatus(status=ProductStatusType.KNOWN_AFFECTED, product_ids=["CSAFPID-1"])],
                scores=[Score(cvss_version="3.1", base_score=6.1,
                              vector="CVSS:3.1/AV:N/AC:L/PR:N/UI:R/S:C/C:L/I:L/A:N",
                              product_ids=["CSAFPID-1"])],
            ),
        ],
    )

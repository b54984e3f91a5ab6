# vulnrep_cli/handlers/validate.py

import io
import logging
import argparse

from ..report import ConversionConfig, Report, decode, xml_losses
from ..utilities.error_handling import handler_error_wrapper
from ..utilities.file_io import detect_format, read_document

logger = logging.getLogger("vulnrep-cli")


@handler_error_wrapper
def handle_validate(params: argparse.Namespace) -> bool:
    """
    Handler for the 'validate' command. Decodes the input report, which checks
    its structure and cross references, and prints a summary.

    Args:
        params: Command line parameters

    Returns:
        bool: True if the report is valid
    """
    print(f"\n--- Running {params.command.upper()} Command ---")

    fmt = detect_format(params.input)
    report = decode(fmt, io.BytesIO(read_document(params.input)), ConversionConfig(preserve_fidelity=False))
    print_report_summary(report, fmt.value.upper())
    return True


def print_report_summary(report: Report, format_name: str) -> None:
    doc = report.document
    tree = report.product_tree
    print(f"\n{format_name} report is valid.")
    print(f"  Document ID     : {doc.tracking.id}")
    print(f"  Title           : {doc.title}")
    print(f"  Status          : {doc.tracking.status.value} (version {doc.tracking.version})")
    print(f"  Revisions       : {len(doc.tracking.revision_history)}")
    print(f"  Products        : {len(tree.product_ids())}")
    print(f"  Product groups  : {len(tree.group_ids())}")
    print(f"  Vulnerabilities : {len(report.vulnerabilities)}")

    cves = [vuln.cve for vuln in report.vulnerabilities if vuln.cve]
    if cves:
        print(f"  CVEs            : {', '.join(cves)}")

    losses = xml_losses(report)
    if losses:
        print(f"\nA CVRF (XML) encoding would drop {len(losses)} field(s):")
        for loss in losses:
            print(f"  - {loss}")
    else:
        print("\nThe report can be written as CVRF (XML) without loss.")
    logger.debug(f"Validated report '{doc.tracking.id}' with {len(losses)} XML-only losses")

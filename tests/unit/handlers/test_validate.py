# tests/unit/handlers/test_validate.py

import pytest

from vulnrep_cli.handlers.validate import handle_validate
from vulnrep_cli.exceptions import ValidationError


class TestValidateHandler:
    """Summaries printed by the validate handler."""

    def test_xml_summary(self, validate_params, capsys):
        assert handle_validate(validate_params("full.xml")) is True

        out = capsys.readouterr().out
        assert "XML report is valid." in out
        assert "EXAMPLE-SA-2021-0002" in out
        assert "Products        : 4" in out
        assert "Product groups  : 1" in out
        assert "CVE-2021-0002" in out
        assert "without loss" in out

    def test_json_summary_lists_losses(self, validate_params, capsys):
        handle_validate(validate_params("translated.json"))

        out = capsys.readouterr().out
        assert "JSON report is valid." in out
        assert "would drop" in out
        assert "document.title_translations" in out
        assert "document.publisher.name" in out

    def test_invalid_report(self, validate_params, workspace, capsys):
        data = (workspace / "translated.json").read_bytes().replace(
            b'"known_affected": [\n          "CSAFPID-1"', b'"known_affected": [\n          "CSAFPID-9999"')
        assert b"CSAFPID-9999" in data
        (workspace / "broken.json").write_bytes(data)

        with pytest.raises(ValidationError):
            handle_validate(validate_params("broken.json"))

        captured = capsys.readouterr()
        assert "is valid" not in captured.out
        assert "CSAFPID-9999" in captured.err

"""Test command-line argument parsing."""

import pytest

from vulnrep_cli.cli import parse_cmdline_args
from vulnrep_cli.exceptions import ConfigurationError


class TestBasicCommandParsing:
    """Test parsing of each sub-command."""

    def test_parse_convert_command(self, args, arg_parser):
        """Test parsing a minimal convert command."""
        parsed = arg_parser(args().convert('advisory.xml').build())

        assert parsed.command == 'convert'
        assert parsed.input == 'advisory.xml'
        assert parsed.output is None
        assert parsed.to is None
        assert parsed.indent == 2
        assert parsed.no_fidelity is False

    def test_parse_convert_with_options(self, args, arg_parser):
        """Test parsing a convert command with every option."""
        cmd_args = (args()
                    .convert('advisory.json')
                    .output('advisory.out')
                    .to('XML')
                    .indent(4)
                    .no_fidelity()
                    .build())

        parsed = arg_parser(cmd_args)

        assert parsed.output == 'advisory.out'
        assert parsed.to == 'xml'
        assert parsed.indent == 4
        assert parsed.no_fidelity is True

    def test_parse_validate_command(self, args, arg_parser):
        """Test parsing the validate command."""
        parsed = arg_parser(args().validate('advisory.json').build())

        assert parsed.command == 'validate'
        assert parsed.input == 'advisory.json'
        assert not hasattr(parsed, 'indent')

    def test_explicit_argv(self):
        """Test that an explicit argument list bypasses sys.argv."""
        parsed = parse_cmdline_args(['convert', '--input', 'a.xml', '--to', 'json'])
        assert parsed.to == 'json'

    def test_missing_command(self, arg_parser):
        with pytest.raises(SystemExit):
            arg_parser(['vulnrep-cli'])

    def test_missing_input(self, arg_parser):
        with pytest.raises(SystemExit):
            arg_parser(['vulnrep-cli', 'convert'])

    def test_unknown_target_format(self, args, arg_parser):
        with pytest.raises(SystemExit):
            arg_parser(args().convert().to('yaml').build())


class TestFlagsAndDefaults:
    """Test the global log level option."""

    def test_parse_log_level(self, args, arg_parser):
        parsed = arg_parser(args().convert().log_level('debug').build())
        assert parsed.log == 'DEBUG'

    def test_default_log_level(self, args, arg_parser):
        parsed = arg_parser(args().convert().build())
        assert parsed.log == 'INFO'

    def test_invalid_log_level(self, args, arg_parser):
        with pytest.raises(SystemExit):
            arg_parser(args().convert().log_level('LOUD').build())


class TestEnvironmentVariables:
    """Test VULNREP_* environment fallbacks."""

    def test_log_level_from_env(self, args, arg_parser, monkeypatch):
        monkeypatch.setenv("VULNREP_LOG", "warning")
        parsed = arg_parser(args().convert().build())
        assert parsed.log == 'WARNING'

    def test_command_line_overrides_env(self, args, arg_parser, monkeypatch):
        monkeypatch.setenv("VULNREP_LOG", "WARNING")
        parsed = arg_parser(args().convert().log_level('ERROR').build())
        assert parsed.log == 'ERROR'

    def test_invalid_log_level_env(self, args, arg_parser, monkeypatch):
        monkeypatch.setenv("VULNREP_LOG", "chatty")
        with pytest.raises(ConfigurationError, match="VULNREP_LOG"):
            arg_parser(args().convert().build())

    def test_json_indent_from_env(self, args, arg_parser, monkeypatch):
        monkeypatch.setenv("VULNREP_JSON_INDENT", "0")
        parsed = arg_parser(args().convert().build())
        assert parsed.indent == 0

    def test_blank_json_indent_env_uses_default(self, args, arg_parser, monkeypatch):
        monkeypatch.setenv("VULNREP_JSON_INDENT", " ")
        parsed = arg_parser(args().convert().build())
        assert parsed.indent == 2

    def test_invalid_json_indent_env(self, args, arg_parser, monkeypatch):
        monkeypatch.setenv("VULNREP_JSON_INDENT", "wide")
        with pytest.raises(ConfigurationError, match="VULNREP_JSON_INDENT"):
            arg_parser(args().convert().build())

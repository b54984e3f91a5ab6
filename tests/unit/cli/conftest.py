import logging

import pytest
from unittest.mock import MagicMock, patch


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Isolate tests from VULNREP_* variables and keep the log file out of the source tree."""
    monkeypatch.delenv("VULNREP_LOG", raising=False)
    monkeypatch.delenv("VULNREP_JSON_INDENT", raising=False)
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    # main() reconfigures the root logger
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def arg_parser():
    """Parse an argument list without affecting sys.argv."""
    def _create_parser_with_args(args_list):
        from vulnrep_cli.cli import parse_cmdline_args
        with patch('sys.argv', args_list):
            return parse_cmdline_args()
    return _create_parser_with_args


@pytest.fixture
def mock_main_dependencies():
    """Replace the command handlers main() dispatches to."""
    mocks = {
        'handle_convert': MagicMock(name="handle_convert", return_value=True),
        'handle_validate': MagicMock(name="handle_validate", return_value=True),
    }
    handlers = {
        "convert": mocks['handle_convert'],
        "validate": mocks['handle_validate'],
    }
    with patch.dict("vulnrep_cli.main.COMMAND_HANDLERS", handlers):
        yield mocks


class ArgBuilder:
    """Builder pattern for constructing test arguments."""

    def __init__(self):
        self.args = ['vulnrep-cli']

    def convert(self, input_path='advisory.xml'):
        self.args.extend(['convert', '--input', input_path])
        return self

    def validate(self, input_path='advisory.json'):
        self.args.extend(['validate', '--input', input_path])
        return self

    def output(self, path):
        self.args.extend(['--output', path])
        return self

    def to(self, fmt):
        self.args.extend(['--to', fmt])
        return self

    def indent(self, n):
        self.args.extend(['--indent', str(n)])
        return self

    def no_fidelity(self):
        self.args.append('--no-fidelity')
        return self

    def log_level(self, level='INFO'):
        # global option, must precede the sub-command
        self.args[1:1] = ['--log', level]
        return self

    def build(self):
        return self.args.copy()


@pytest.fixture
def args():
    """Fixture providing the ArgBuilder for constructing test arguments."""
    return ArgBuilder

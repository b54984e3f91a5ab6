# tests/unit/handlers/conftest.py

import os
import shutil
import argparse

import pytest


@pytest.fixture
def workspace(tmp_path, fixtures_dir):
    """A temporary directory holding copies of the fixture documents."""
    for name in ("minimal.xml", "full.xml", "translated.json"):
        shutil.copy(os.path.join(fixtures_dir, name), tmp_path / name)
    return tmp_path


@pytest.fixture
def convert_params(workspace):
    """Builds a Namespace like the one the 'convert' sub-command produces."""
    def _make(input_name, output_name=None, to=None, indent=2, no_fidelity=False):
        return argparse.Namespace(
            command="convert",
            log="INFO",
            input=str(workspace / input_name),
            output=str(workspace / output_name) if output_name else None,
            to=to,
            indent=indent,
            no_fidelity=no_fidelity,
        )
    return _make


@pytest.fixture
def validate_params(workspace):
    def _make(input_name):
        return argparse.Namespace(command="validate", log="INFO", input=str(workspace / input_name))
    return _make

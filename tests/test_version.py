"""Test version information."""

import importlib.metadata
import re

import pytest

from ferretwatch import __version__
from ferretwatch.cli import main


def test_version_follows_semver():
    """__version__ is a major.minor.patch string."""
    assert re.match(r"^\d+\.\d+\.\d+(?:[-.+][0-9A-Za-z.]+)?$", __version__), __version__


def test_version_matches_installed_metadata():
    try:
        installed = importlib.metadata.version("ferretwatch")
    except importlib.metadata.PackageNotFoundError:
        pytest.skip("ferretwatch is not installed")
    assert __version__ == installed


@pytest.mark.parametrize("argv", [["version"], ["--version"], ["-v"]])
def test_cli_prints_version(argv, capsys):
    assert main(argv) == 0
    assert capsys.readouterr().out.strip() == __version__

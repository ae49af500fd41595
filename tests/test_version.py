import re
from pathlib import Path
from unittest.mock import patch

import pytest

import solgrep
from solgrep.__main__ import main

PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def _declared_version() -> str:
    match = re.search(r'^version\s*=\s*"([^"]+)"', PYPROJECT.read_text(encoding="utf-8"), re.MULTILINE)
    assert match, f"no version declared in {PYPROJECT}"
    return match.group(1)


def test_package_version_is_declared_in_pyproject():
    assert solgrep.__version__ == _declared_version()


def test_cli_reports_package_version(capsys):
    with patch("sys.argv", ["solgrep", "--version"]), pytest.raises(SystemExit) as excinfo:
        main()
    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip() == f"solgrep {solgrep.__version__}"

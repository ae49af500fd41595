"""Integration tests for CLI behavior and JSON schema stability."""
import json
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from solgrep import __version__
from solgrep.__main__ import main

FIXTURES = Path(__file__).parent / "fixtures" / "contracts"
VULNERABLE = FIXTURES / "vulnerable"
SAFE = FIXTURES / "safe"

_SLITHER_PAYLOAD = {
    "success": True,
    "results": {"detectors": [{
        "check": "arbitrary-send-eth",
        "impact": "High",
        "confidence": "Medium",
        "description": "Wallet.transfer sends eth to arbitrary user",
        "elements": [{"source_mapping": {"filename_relative": "Wallet.sol", "lines": [12]}}],
    }]},
}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ("SOLGREP_RULES", "SOLGREP_FAIL_ON", "SOLGREP_MAX_LINES", "SOLGREP_TIMEOUT", "SOLGREP_WORKERS"):
        monkeypatch.delenv(key, raising=False)


def _run_main(*args: str, slither_available: bool = False) -> int:
    """Run main() with given CLI args.

    By default, Slither is mocked as not installed. Set slither_available=True
    to simulate a Slither run reporting one high-impact result.
    """
    if slither_available:
        slither = patch("solgrep.scanners.slither._run_slither", return_value=(_SLITHER_PAYLOAD, None))
    else:
        slither = patch("solgrep.scanners.slither._run_slither", return_value=(None, "slither binary not found"))

    with patch("sys.argv", ["solgrep", *args]), slither:
        return main()


# --- --fail-on behavior ---

def test_default_threshold_exits_1_for_high(capsys):
    assert _run_main(str(VULNERABLE)) == 1


def test_default_threshold_exits_0_for_medium_only(capsys):
    # The safe fixture only triggers the medium external-call rule.
    assert _run_main(str(SAFE)) == 0


def test_fail_on_medium_exits_1_for_medium(capsys):
    assert _run_main("--fail-on", "medium", str(SAFE)) == 1


def test_fail_on_critical_exits_0_for_high(capsys):
    assert _run_main("--fail-on", "critical", str(VULNERABLE)) == 0


def test_fail_on_from_environment(capsys, monkeypatch):
    monkeypatch.setenv("SOLGREP_FAIL_ON", "medium")
    assert _run_main(str(SAFE)) == 1


def test_slither_findings_do_not_change_exit_code(capsys):
    assert _run_main(str(SAFE), slither_available=True) == 0


# --- Golden JSON schema tests ---

def test_golden_json_vulnerable(capsys):
    _run_main("--json", str(VULNERABLE))
    output = json.loads(capsys.readouterr().out)

    assert set(output.keys()) == {"meta", "summary", "findings", "analyzer_findings", "facts"}

    assert output["meta"]["schema_version"] == "0.2"
    assert output["meta"]["tool_version"] == __version__
    assert "solidity.yaml" in output["meta"]["rules_path"]
    # Slither is mocked as missing
    assert any("Slither" in w for w in output["meta"]["warnings"])

    assert output["summary"]["worst_severity"] == "high"
    assert output["summary"]["counts_by_severity"] == {
        "critical": 0, "high": 3, "medium": 2, "low": 1, "informational": 0,
    }

    findings = [(f["rule_id"], f["line"]) for f in output["findings"]]
    assert findings == [
        ("SC01", 13), ("SC05", 14), ("SC06", 14), ("SC05", 18), ("SC09", 23), ("SD01", 27),
    ]
    for f in output["findings"]:
        assert set(f.keys()) == {"rule_id", "severity", "file", "line", "snippet"}
        assert f["file"] == "Wallet.sol"

    assert output["analyzer_findings"] == []
    for fact in output["facts"]:
        assert set(fact.keys()) == {"key", "value", "source"}


def test_golden_json_with_slither(capsys):
    _run_main("--json", str(VULNERABLE), slither_available=True)
    output = json.loads(capsys.readouterr().out)

    assert "warnings" not in output["meta"]
    assert len(output["analyzer_findings"]) == 1
    assert output["analyzer_findings"][0]["check"] == "arbitrary-send-eth"
    assert output["summary"]["analyzer_counts_by_severity"]["high"] == 1


def test_no_slither_flag_skips_analysis(capsys):
    with patch("solgrep.scanners.slither.SlitherScanner.scan") as scan:
        with patch("sys.argv", ["solgrep", "--json", "--no-slither", str(SAFE)]):
            main()
    scan.assert_not_called()
    output = json.loads(capsys.readouterr().out)
    assert "warnings" not in output["meta"]


# --- Human output ---

def test_human_output_lists_findings(capsys):
    _run_main(str(VULNERABLE))
    captured = capsys.readouterr()
    assert "Scanned 1 file(s) with 6 rule(s)." in captured.out
    assert "[HIGH] SC01: Wallet.sol:13" in captured.out
    assert "high: 3" in captured.out
    assert "warning: Slither: slither binary not found" in captured.err


def test_clean_message_includes_qualifier(capsys, tmp_path):
    (tmp_path / "Clean.sol").write_text("pragma solidity ^0.8.20;\ncontract Clean {}\n")
    assert _run_main(str(tmp_path)) == 0
    assert "for the checks performed" in capsys.readouterr().out


def test_output_dir_writes_report(capsys, tmp_path):
    out = tmp_path / "report"
    _run_main("--output-dir", str(out), str(VULNERABLE))
    assert (out / "REPORT.md").is_file()
    assert (out / "patterns.txt").is_file()
    data = json.loads((out / "findings.json").read_text(encoding="utf-8"))
    assert len(data["findings"]) == 6


def test_parallel_workers_give_same_findings(capsys):
    _run_main("--json", "--no-slither", str(FIXTURES))
    serial = json.loads(capsys.readouterr().out)["findings"]
    _run_main("--json", "--no-slither", "--workers", "4", str(FIXTURES))
    parallel = json.loads(capsys.readouterr().out)["findings"]
    assert serial == parallel
    assert [f["file"] for f in serial][0] == "safe/Vault.sol"


# --- Fatal errors ---

def test_no_solidity_files_exits_1(capsys, tmp_path):
    (tmp_path / "README.md").write_text("nothing here")
    assert _run_main(str(tmp_path)) == 1
    assert "No Solidity files found" in capsys.readouterr().err


def test_missing_rules_exits_with_message(capsys):
    code = _run_main("--rules", "/nonexistent/rules.yaml", str(SAFE))
    assert code == 1
    assert "rule file not found" in capsys.readouterr().err


def test_invalid_rules_exit_1(capsys, tmp_path):
    rules = tmp_path / "rules.yaml"
    rule = {"id": "SC01", "description": "x", "severity": "high", "pattern": "tx.origin"}
    rules.write_text(yaml.dump({"rules": [rule, dict(rule)]}))
    assert _run_main("--rules", str(rules), str(SAFE)) == 1
    assert "duplicate rule id 'SC01'" in capsys.readouterr().err


def test_line_cap_exit_1(capsys):
    assert _run_main("--max-lines", "5", str(VULNERABLE)) == 1
    err = capsys.readouterr().err
    assert "error:" in err
    assert "cap of 5" in err


def test_bad_env_config_exit_1(capsys, monkeypatch):
    monkeypatch.setenv("SOLGREP_WORKERS", "many")
    assert _run_main(str(SAFE)) == 1
    assert "SOLGREP_WORKERS" in capsys.readouterr().err


# --- Packaging self-check ---

def test_bundled_rules_exist():
    """The default rule pack must be present in the installed package."""
    rules = Path(__file__).resolve().parent.parent / "solgrep" / "rules" / "solidity.yaml"
    assert rules.is_file(), f"bundled rule pack missing: {rules}"

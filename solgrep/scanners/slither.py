from __future__ import annotations

import json
import subprocess
from pathlib import Path

from ..core.models import AnalyzerFinding, Severity
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Slither impact -> Severity. Slither has no "critical" impact.
_IMPACT_MAP = {
    "high": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "low": Severity.LOW,
    "informational": Severity.INFORMATIONAL,
    "optimization": Severity.INFORMATIONAL,
}

_DESCRIPTION_LIMIT = 500


class SlitherScanner:
    """Runs Slither on a target and summarizes its JSON detector output.

    If Slither is not installed or fails, returns no findings with a warning
    rather than raising an error.
    """

    name = "slither"

    def __init__(self, binary: str = "slither", timeout: int = 600) -> None:
        self.binary = binary
        self.timeout = timeout

    def scan(self, target: Path) -> tuple[list[AnalyzerFinding], list[str]]:
        """Analyze target. Returns (findings, warnings)."""
        warnings: list[str] = []

        payload, error = _run_slither(self.binary, target, self.timeout)
        if payload is None:
            warnings.append(f"Slither: {error}; skipping external analysis")
            return [], warnings

        if payload.get("success") is False:
            reason = str(payload.get("error") or "analysis failed").strip().splitlines()[0][:200]
            warnings.append(f"Slither: {reason}")
            return [], warnings

        findings = parse_slither_output(payload)
        logger.debug(f"slither reported {len(findings)} results")
        return findings, warnings


def parse_slither_output(payload: dict) -> list[AnalyzerFinding]:
    """Turn Slither's ``--json`` payload into AnalyzerFindings.

    Results whose impact is unknown are dropped.
    """
    detectors = (payload.get("results") or {}).get("detectors") or []
    findings: list[AnalyzerFinding] = []

    for result in detectors:
        if not isinstance(result, dict):
            continue
        severity = _IMPACT_MAP.get(str(result.get("impact", "")).strip().lower())
        if severity is None:
            continue

        file, line = _first_location(result.get("elements") or [])
        description = " ".join(str(result.get("description", "")).split())
        findings.append(AnalyzerFinding(
            check=str(result.get("check", "unknown")),
            severity=severity,
            confidence=str(result.get("confidence", "")).lower(),
            description=description[:_DESCRIPTION_LIMIT],
            file=file,
            line=line,
        ))

    return findings


def _first_location(elements: list) -> tuple[str | None, int | None]:
    """Return (file, first line) of the first element with a source mapping."""
    for element in elements:
        if not isinstance(element, dict):
            continue
        mapping = element.get("source_mapping") or {}
        file = mapping.get("filename_relative") or mapping.get("filename_short")
        if not file:
            continue
        lines = mapping.get("lines") or []
        return str(file), (int(lines[0]) if lines else None)
    return None, None


def _run_slither(binary: str, target: Path, timeout: int) -> tuple[dict | None, str | None]:
    """Return (payload, None) on success, or (None, reason) on failure.

    Slither exits non-zero when detectors fire, so the exit code alone does
    not mean failure; the JSON on stdout decides.
    """
    try:
        result = subprocess.run(
            [binary, str(target), "--json", "-"],
            capture_output=True, text=True, timeout=timeout,
        )
    except FileNotFoundError:
        return None, "slither binary not found (install: pip install slither-analyzer)"
    except subprocess.TimeoutExpired:
        return None, f"slither timed out after {timeout}s"
    except OSError as e:
        return None, f"OS error: {e}"

    try:
        payload = json.loads(result.stdout)
    except json.JSONDecodeError:
        stderr = result.stderr.strip()[:200]
        return None, f"slither produced no JSON ({stderr or f'exit code {result.returncode}'})"

    if not isinstance(payload, dict):
        return None, "slither produced unexpected JSON"
    return payload, None

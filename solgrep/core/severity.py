from __future__ import annotations

from .models import ScanReport, Severity

SEVERITY_RANK = {
    Severity.INFORMATIONAL: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

_ALIASES = {"info": Severity.INFORMATIONAL}


def parse_severity(value: Severity | str) -> Severity:
    """Coerce a severity name (any case) to Severity. Raises ValueError."""
    if isinstance(value, Severity):
        return value
    if not isinstance(value, str):
        raise ValueError(f"severity must be a string, got {type(value).__name__}")
    name = value.strip().lower()
    if name in _ALIASES:
        return _ALIASES[name]
    try:
        return Severity(name)
    except ValueError:
        valid = ", ".join(s.value for s in Severity)
        raise ValueError(f"unknown severity '{value}' (valid: {valid})") from None


def by_rank_descending() -> list[Severity]:
    return sorted(Severity, key=SEVERITY_RANK.__getitem__, reverse=True)


def worst_severity(report: ScanReport) -> Severity | None:
    """Highest-ranked severity among the report's findings, or None if there are none."""
    if not report.findings:
        return None
    return max((f.severity for f in report.findings), key=SEVERITY_RANK.__getitem__)


def meets_threshold(severity: Severity | None, threshold: Severity) -> bool:
    if severity is None:
        return False
    return SEVERITY_RANK[severity] >= SEVERITY_RANK[threshold]


def should_fail(report: ScanReport, threshold: Severity) -> bool:
    return meets_threshold(worst_severity(report), threshold)

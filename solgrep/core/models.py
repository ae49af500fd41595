from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .matcher import Matcher

# Only real line endings; str.splitlines() also breaks on form feeds and other separators.
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFORMATIONAL = "informational"

    def __str__(self) -> str:
        return self.value


@dataclass
class Fact:
    key: str
    value: Any
    source: str


@dataclass
class Rule:
    id: str
    description: str
    severity: Severity | str
    matcher: Matcher | None
    exclusions: list[Matcher] = field(default_factory=list)
    recommendation: str | None = None


@dataclass(frozen=True)
class SourceFile:
    path: str
    lines: tuple[str, ...]

    @classmethod
    def from_text(cls, path: str, text: str) -> SourceFile:
        lines = _LINE_BREAK.split(text)
        if lines[-1] == "":
            lines.pop()
        return cls(path=path, lines=tuple(lines))


@dataclass(frozen=True)
class Finding:
    rule_id: str
    severity: Severity
    file: str
    line: int
    snippet: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "file": self.file,
            "line": self.line,
            "snippet": self.snippet,
        }


@dataclass(frozen=True)
class AnalyzerFinding:
    """A result reported by an external analyzer such as Slither."""
    check: str
    severity: Severity
    confidence: str
    description: str
    file: str | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "check": self.check,
            "severity": self.severity.value,
            "confidence": self.confidence,
            "description": self.description,
            "file": self.file,
            "line": self.line,
        }


@dataclass(frozen=True)
class ScanReport:
    """Findings of one scan, ordered by (file, line).

    Severity counts are derived from the findings on every access so they
    cannot drift from them.
    """
    findings: tuple[Finding, ...] = ()

    @property
    def counts_by_severity(self) -> dict[Severity, int]:
        counts = {severity: 0 for severity in Severity}
        for finding in self.findings:
            counts[finding.severity] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "counts_by_severity": {s.value: n for s, n in self.counts_by_severity.items()},
            "findings": [f.to_dict() for f in self.findings],
        }

"""Renders scan results as JSON, grep-style text and a markdown audit report."""
from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from . import __version__
from .core.engine import ScanResult
from .core.models import AnalyzerFinding, Fact, Finding, Severity
from .core.registry import RuleRegistry
from .core.severity import by_rank_descending, worst_severity

SCHEMA_VERSION = "0.2"

_RECOMMENDATIONS = [
    "Address all High and Medium severity findings before deployment.",
    "Consider a professional audit for contracts handling significant value.",
    "Implement comprehensive test coverage (aim for >90%).",
    "Use battle-tested libraries (OpenZeppelin) where possible.",
]

_REFERENCES = [
    ("OWASP Smart Contract Top 10", "https://owasp.org/www-project-smart-contract-top-10/"),
    ("Slither Documentation", "https://github.com/crytic/slither"),
    ("OpenZeppelin Security", "https://docs.openzeppelin.com/contracts"),
]

_QUALITY_LABELS = {
    "deps.openzeppelin": "Uses OpenZeppelin contracts",
    "guards.reentrancy": "ReentrancyGuard / nonReentrant in use",
    "compiler.pragma": "Solidity pragma",
    "compiler.checked_arithmetic": "Built-in overflow checks (0.8+)",
}


def severity_totals(
    result: ScanResult,
    analyzer_findings: list[AnalyzerFinding],
) -> dict[Severity, tuple[int, int]]:
    """Per severity: (pattern scan count, external analyzer count)."""
    engine_counts = result.report.counts_by_severity
    analyzer_counts = {s: 0 for s in Severity}
    for finding in analyzer_findings:
        analyzer_counts[finding.severity] += 1
    return {s: (engine_counts[s], analyzer_counts[s]) for s in by_rank_descending()}


def build_payload(
    target: str,
    rules_path: Path,
    result: ScanResult,
    analyzer_findings: list[AnalyzerFinding],
    facts: list[Fact],
    warnings: list[str],
) -> dict[str, Any]:
    meta: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "tool_version": __version__,
        "target": target,
        "rules_path": str(rules_path),
    }
    if warnings:
        meta["warnings"] = warnings

    worst = worst_severity(result.report)
    return {
        "meta": meta,
        "summary": {
            "counts_by_severity": {
                s.value: n for s, n in result.report.counts_by_severity.items()
            },
            "analyzer_counts_by_severity": {
                s.value: counts[1] for s, counts in severity_totals(result, analyzer_findings).items()
            },
            "worst_severity": worst.value if worst else None,
        },
        "findings": [f.to_dict() for f in result.report.findings],
        "analyzer_findings": [f.to_dict() for f in analyzer_findings],
        "facts": [asdict(f) for f in facts],
    }


def render_patterns(result: ScanResult, registry: RuleRegistry) -> str:
    """Grep-style listing: one block per rule, ``path:line:snippet`` lines."""
    blocks: list[str] = []
    for rule_id, findings in _group_by_rule(result.report.findings, registry):
        rule = registry.get(rule_id)
        lines = [f"=== {rule.id}: {rule.description} ==="]
        lines.extend(f"{f.file}:{f.line}:{f.snippet}" for f in findings)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + ("\n" if blocks else "")


def render_markdown(
    target: str,
    result: ScanResult,
    registry: RuleRegistry,
    analyzer_findings: list[AnalyzerFinding],
    facts: list[Fact],
    warnings: list[str],
    generated_at: datetime | None = None,
) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    out: list[str] = [
        "# Security Audit Report",
        "",
        f"**Generated by:** solgrep {__version__}  ",
        f"**Date:** {generated_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}  ",
        f"**Target:** {target}",
        "",
        "## Executive Summary",
        "",
        "This automated audit checks for common vulnerabilities using line-oriented",
        "pattern rules and, when available, Slither static analysis.",
        "",
        "**Note:** This is an automated scan. A full security audit requires manual review.",
        "",
        "## Findings Overview",
        "",
        "| Severity | Pattern scan | Slither | Total |",
        "|----------|--------------|---------|-------|",
    ]
    for severity, (engine_n, analyzer_n) in severity_totals(result, analyzer_findings).items():
        out.append(f"| {severity.value.capitalize()} | {engine_n} | {analyzer_n} | {engine_n + analyzer_n} |")

    if facts:
        out += ["", "## Code Quality", ""]
        for fact in facts:
            label = _QUALITY_LABELS.get(fact.key, fact.key)
            out.append(f"- {label}: {_format_fact_value(fact.value)}")

    out += ["", "## Pattern Findings", ""]
    if not result.report.findings:
        out.append("No pattern rules matched.")
    for rule_id, findings in _group_by_rule(result.report.findings, registry):
        rule = registry.get(rule_id)
        out += [f"### {rule.id}: {rule.description} ({rule.severity.value.upper()})", ""]
        if rule.recommendation:
            out += [f"*Recommendation:* {rule.recommendation}", ""]
        for f in findings:
            out.append(f"- `{f.file}:{f.line}`: `{f.snippet}`")
        out.append("")

    out += ["", "## Slither Results", ""]
    if not analyzer_findings:
        out.append("Slither was not run or reported no results.")
    for finding in sorted(analyzer_findings, key=_analyzer_sort_key):
        location = f" at `{finding.file}:{finding.line}`" if finding.file else ""
        out.append(f"- **[{finding.severity.value.upper()}] {finding.check}**{location}: {finding.description}")

    if warnings:
        out += ["", "## Warnings", ""]
        out.extend(f"- {w}" for w in warnings)

    out += ["", "## Recommendations", ""]
    out.extend(f"{i}. {text}" for i, text in enumerate(_RECOMMENDATIONS, start=1))
    out += ["", "## References", ""]
    out.extend(f"- [{name}]({url})" for name, url in _REFERENCES)
    out.append("")
    return "\n".join(out)


def write_report(
    output_dir: Path,
    target: str,
    rules_path: Path,
    result: ScanResult,
    registry: RuleRegistry,
    analyzer_findings: list[AnalyzerFinding],
    facts: list[Fact],
    warnings: list[str],
) -> dict[str, str]:
    """Write REPORT.md, patterns.txt and findings.json. Returns their paths."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    report_md = out / "REPORT.md"
    patterns_txt = out / "patterns.txt"
    findings_json = out / "findings.json"

    report_md.write_text(
        render_markdown(target, result, registry, analyzer_findings, facts, warnings),
        encoding="utf-8",
    )
    patterns_txt.write_text(render_patterns(result, registry), encoding="utf-8")
    payload = build_payload(target, rules_path, result, analyzer_findings, facts, warnings)
    with findings_json.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, default=str)

    return {
        "report": str(report_md),
        "patterns": str(patterns_txt),
        "findings": str(findings_json),
    }


def _group_by_rule(
    findings: tuple[Finding, ...],
    registry: RuleRegistry,
) -> list[tuple[str, list[Finding]]]:
    """Group findings by rule, in registry order, keeping (file, line) order within a rule."""
    grouped: dict[str, list[Finding]] = {rule_id: [] for rule_id in registry.ids()}
    for finding in findings:
        grouped[finding.rule_id].append(finding)
    return [(rule_id, items) for rule_id, items in grouped.items() if items]


def _analyzer_sort_key(finding: AnalyzerFinding) -> tuple:
    rank = by_rank_descending().index(finding.severity)
    return (rank, finding.file or "", finding.line or 0, finding.check)


def _format_fact_value(value: Any) -> str:
    if value is True:
        return "yes"
    if value is False:
        return "no"
    if value is None:
        return "not found"
    return f"`{value}`"

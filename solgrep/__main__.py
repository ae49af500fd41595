"""Entry point: python -m solgrep [--json] [--fail-on LEVEL] [--output-dir DIR] <target>"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from . import __version__
from .config import ConfigError, ScanConfig
from .core.engine import PatternScanEngine, ScanTimeoutError
from .core.models import Severity
from .core.registry import InvalidRuleError, RuleRegistry
from .core.severity import by_rank_descending, should_fail
from .report import build_payload, write_report
from .scanners.corpus import SolidityCorpus
from .scanners.quality import ProjectQualityScanner
from .scanners.slither import SlitherScanner
from .utils.logging import configure_logging, get_logger, set_debug

logger = get_logger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="solgrep",
        description="Pattern-based security audit for Solidity sources",
    )
    parser.add_argument("target", nargs="?", default=".", help="Solidity file or project directory (default: .)")
    parser.add_argument("--json", action="store_true", dest="json_output", help="Output results as JSON")
    parser.add_argument("--rules", type=Path, help="Path to a custom rule pack YAML")
    parser.add_argument(
        "--fail-on",
        choices=[s.value for s in Severity],
        default=None,
        help="Minimum severity that causes a non-zero exit code (default: high)",
    )
    parser.add_argument("--output-dir", type=Path, help="Write REPORT.md, patterns.txt and findings.json here")
    parser.add_argument("--max-lines", type=int, help="Abort if the corpus has more lines than this")
    parser.add_argument("--timeout", type=float, help="Abort the pattern scan after this many seconds")
    parser.add_argument("--workers", type=int, help="Scan files on this many threads (default: 1)")
    parser.add_argument("--no-slither", action="store_true", help="Do not run Slither")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args()

    configure_logging()
    if args.verbose:
        set_debug(True)

    try:
        config = ScanConfig.resolve(
            rules_path=args.rules,
            fail_on=args.fail_on,
            max_lines=args.max_lines,
            timeout=args.timeout,
            workers=args.workers,
        )
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    # Load rules
    try:
        registry = RuleRegistry.from_yaml(config.rules_path)
    except InvalidRuleError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    # Collect sources
    target = Path(args.target)
    files, warnings = SolidityCorpus(target).load()
    if not files:
        print("No Solidity files found.", file=sys.stderr)
        print(f"  searched: {target}", file=sys.stderr)
        for w in warnings:
            print(f"warning: {w}", file=sys.stderr)
        return 1

    facts = ProjectQualityScanner().scan(files)

    analyzer_findings = []
    if not args.no_slither:
        analyzer_findings, slither_warnings = SlitherScanner().scan(target)
        warnings.extend(slither_warnings)

    # Pattern scan
    engine = PatternScanEngine(max_lines=config.max_lines, deadline=config.timeout, workers=config.workers)
    try:
        result = engine.scan(registry, files)
    except ScanTimeoutError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    all_warnings = warnings + result.warnings
    for w in all_warnings:
        print(f"warning: {w}", file=sys.stderr)

    # Output
    if args.json_output:
        payload = build_payload(str(target), config.rules_path, result, analyzer_findings, facts, all_warnings)
        print(json.dumps(payload, indent=2, default=str))
    else:
        print(f"Scanned {len(files)} file(s) with {len(registry)} rule(s).")
        counts = result.report.counts_by_severity
        print("  " + "  ".join(f"{s.value}: {counts[s]}" for s in by_rank_descending()))
        print()
        if not result.report.findings:
            print("Audit complete. No pattern rules matched for the checks performed.")
        for finding in result.report.findings:
            print(f"[{finding.severity.value.upper()}] {finding.rule_id}: {finding.file}:{finding.line}")
            print(f"  {finding.snippet}")
        for finding in analyzer_findings:
            location = f" {finding.file}:{finding.line}" if finding.file else ""
            print(f"[{finding.severity.value.upper()}] slither:{finding.check}{location}")
        if facts:
            print()
            for fact in facts:
                print(f"  {fact.key} = {fact.value}")

    if args.output_dir:
        paths = write_report(
            args.output_dir, str(target), config.rules_path,
            result, registry, analyzer_findings, facts, all_warnings,
        )
        logger.info(f"report written to {paths['report']}")

    # Exit code based on --fail-on threshold
    return 1 if should_fail(result.report, config.fail_on) else 0


if __name__ == "__main__":
    sys.exit(main())

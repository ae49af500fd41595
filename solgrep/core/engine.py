from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Sequence

from ..utils.logging import get_logger
from .models import Finding, Rule, ScanReport, SourceFile
from .registry import RuleRegistry

logger = get_logger(__name__)


class RuleEvaluationError(Exception):
    """A rule's matcher raised while evaluating a line of a file."""

    def __init__(self, rule_id: str, file: str, line: int, cause: BaseException) -> None:
        super().__init__(f"rule '{rule_id}' failed on {file}:{line}: {type(cause).__name__}: {cause}")
        self.rule_id = rule_id
        self.file = file
        self.line = line
        self.cause = cause


class ScanTimeoutError(Exception):
    """Raised when a scan exceeds its line cap or deadline. No partial report is kept."""


@dataclass(frozen=True)
class ScanResult:
    """Result of a scan: the report plus rules that failed to evaluate."""
    report: ScanReport
    errors: tuple[RuleEvaluationError, ...] = ()

    @property
    def warnings(self) -> list[str]:
        return [f"{e}; rule skipped for the rest of the file" for e in self.errors]


# (rule position, finding) and (rule position, error) as produced per file
_FileResult = tuple[list[tuple[int, Finding]], list[tuple[int, RuleEvaluationError]]]


class PatternScanEngine:
    """Applies every rule of a registry to every line of a corpus.

    Matching is line oriented: a rule never sees text spanning more than
    one line.
    """

    def __init__(
        self,
        max_lines: int | None = None,
        deadline: float | None = None,
        workers: int = 1,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.max_lines = max_lines
        self.deadline = deadline
        self.workers = workers

    def scan(self, registry: RuleRegistry, files: Sequence[SourceFile]) -> ScanResult:
        files = list(files)
        total_lines = sum(len(f.lines) for f in files)
        if self.max_lines is not None and total_lines > self.max_lines:
            raise ScanTimeoutError(
                f"corpus has {total_lines} lines, exceeding the cap of {self.max_lines}"
            )

        rules = list(registry)
        expires = time.monotonic() + self.deadline if self.deadline is not None else None
        logger.debug(f"scanning {len(files)} files ({total_lines} lines) with {len(rules)} rules")

        if self.workers > 1 and len(files) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                futures = [pool.submit(_scan_file, f, rules, expires, self.deadline) for f in files]
                try:
                    results = [future.result() for future in futures]
                except ScanTimeoutError:
                    for future in futures:
                        future.cancel()
                    raise
        else:
            results = [_scan_file(f, rules, expires, self.deadline) for f in files]

        hits: list[tuple[str, int, int, Finding]] = []
        failures: list[tuple[str, int, int, RuleEvaluationError]] = []
        for found, errors in results:
            hits.extend((f.file, f.line, pos, f) for pos, f in found)
            failures.extend((e.file, e.line, pos, e) for pos, e in errors)

        # Completion order of workers must not leak into the report.
        hits.sort(key=lambda h: h[:3])
        failures.sort(key=lambda e: e[:3])

        report = ScanReport(findings=tuple(h[3] for h in hits))
        logger.debug(f"scan finished: {len(report.findings)} findings, {len(failures)} rule errors")
        return ScanResult(report=report, errors=tuple(e[3] for e in failures))


def _scan_file(
    source: SourceFile,
    rules: list[Rule],
    expires: float | None,
    deadline: float | None,
) -> _FileResult:
    found: list[tuple[int, Finding]] = []
    errors: list[tuple[int, RuleEvaluationError]] = []
    broken: set[int] = set()

    for line_no, text in enumerate(source.lines, start=1):
        if expires is not None and time.monotonic() > expires:
            raise ScanTimeoutError(f"scan exceeded its {deadline}s deadline at {source.path}:{line_no}")

        for pos, rule in enumerate(rules):
            if pos in broken:
                continue
            try:
                if not rule.matcher.matches(text):
                    continue
                if any(exclusion.matches(text) for exclusion in rule.exclusions):
                    continue
            except Exception as e:
                # One failing rule must not abort the scan.
                broken.add(pos)
                error = RuleEvaluationError(rule.id, source.path, line_no, e)
                logger.debug(str(error))
                errors.append((pos, error))
                continue

            found.append((pos, Finding(
                rule_id=rule.id,
                severity=rule.severity,
                file=source.path,
                line=line_no,
                snippet=text.strip(),
            )))

    return found, errors

"""Project-level code quality checks over an already loaded corpus.

Scope:
- OpenZeppelin imports
- ReentrancyGuard / nonReentrant usage
- Solidity pragma of the first file that declares one
No per-line findings; results are facts rendered alongside the report.
"""
from __future__ import annotations

import re

from ..core.models import Fact, SourceFile

_GUARD_MARKERS = ("ReentrancyGuard", "nonReentrant")

_PRAGMA_RE = re.compile(r"^\s*pragma\s+solidity\b")
_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


class ProjectQualityScanner:
    """Derives dependency, guard and compiler facts from source files."""

    name = "quality"

    def scan(self, files: list[SourceFile]) -> list[Fact]:
        facts: list[Fact] = []

        oz_file = _first_file_containing(files, ("@openzeppelin",))
        facts.append(Fact(
            key="deps.openzeppelin",
            value=oz_file is not None,
            source=f"quality:{oz_file or 'corpus'}",
        ))

        guard_file = _first_file_containing(files, _GUARD_MARKERS)
        facts.append(Fact(
            key="guards.reentrancy",
            value=guard_file is not None,
            source=f"quality:{guard_file or 'corpus'}",
        ))

        pragma, pragma_file = _first_pragma(files)
        facts.append(Fact(
            key="compiler.pragma",
            value=pragma,
            source=f"quality:{pragma_file or 'corpus'}",
        ))
        facts.append(Fact(
            key="compiler.checked_arithmetic",
            value=pragma is not None and _targets_checked_arithmetic(pragma),
            source=f"quality:{pragma_file or 'corpus'}",
        ))

        return facts


def _first_file_containing(files: list[SourceFile], needles: tuple[str, ...]) -> str | None:
    for source in files:
        for line in source.lines:
            if any(needle in line for needle in needles):
                return source.path
    return None


def _first_pragma(files: list[SourceFile]) -> tuple[str | None, str | None]:
    for source in files:
        for line in source.lines:
            if _PRAGMA_RE.match(line):
                return line.strip(), source.path
    return None, None


def _targets_checked_arithmetic(pragma: str) -> bool:
    """True if the lowest version named in the pragma is 0.8 or later."""
    versions = [(int(m.group(1)), int(m.group(2))) for m in _VERSION_RE.finditer(pragma)]
    if not versions:
        return False
    return min(versions) >= (0, 8)

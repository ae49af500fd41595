"""Corpus provider: resolves a target path into SourceFiles for the engine.

Dependency and build directories are skipped. Files that are not valid UTF-8
are skipped with a warning instead of being decoded lossily.
"""
from __future__ import annotations

from pathlib import Path

from ..core.models import SourceFile

DEFAULT_EXTENSIONS = frozenset({".sol"})

DEFAULT_EXCLUDE_DIRS = frozenset({
    ".git",
    "node_modules",
    "lib",
    "cache",
    "out",
    "artifacts",
    "build",
    "coverage",
})


class SolidityCorpus:
    """Collects source files under a file or directory target."""

    name = "corpus"

    def __init__(
        self,
        target: Path,
        extensions: frozenset[str] | set[str] = DEFAULT_EXTENSIONS,
        exclude_dirs: frozenset[str] | set[str] = DEFAULT_EXCLUDE_DIRS,
    ) -> None:
        self.target = Path(target)
        self.extensions = {e.lower() for e in extensions}
        self.exclude_dirs = set(exclude_dirs)

    def load(self) -> tuple[list[SourceFile], list[str]]:
        """Return (files, warnings). Files are ordered by relative path."""
        warnings: list[str] = []
        files: list[SourceFile] = []

        if not self.target.exists():
            warnings.append(f"target not found: {self.target}")
            return files, warnings

        for path in self.candidate_paths():
            try:
                text = path.read_bytes().decode("utf-8-sig")
            except UnicodeDecodeError:
                warnings.append(f"skipping {path}: not valid UTF-8")
                continue
            except OSError as e:
                warnings.append(f"skipping {path}: {e.strerror or e}")
                continue
            files.append(SourceFile.from_text(self._logical_path(path), text))

        return files, warnings

    def candidate_paths(self) -> list[Path]:
        if self.target.is_file():
            return [self.target]

        paths = []
        for path in self.target.rglob("*"):
            if not path.is_file():
                continue
            rel_parts = path.relative_to(self.target).parts
            if any(part in self.exclude_dirs for part in rel_parts[:-1]):
                continue
            if path.suffix.lower() in self.extensions:
                paths.append(path)
        return sorted(paths, key=self._logical_path)

    def _logical_path(self, path: Path) -> str:
        if self.target.is_file():
            return path.name
        return path.relative_to(self.target).as_posix()

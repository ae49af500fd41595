"""Line matchers: the predicates rules and exclusions are built from.

A matcher spec, as written in a rule pack, is either a plain string (literal
substring) or a mapping with exactly one of:

    literal: "tx.origin"
    regex: "block\\.(timestamp|number)"     (optional ignore_case: true)
    any: [<spec>, ...]
    all: [<spec>, ...]
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any

_SPEC_KINDS = ("literal", "regex", "any", "all")


class Matcher(ABC):
    """Does this line match?"""

    @abstractmethod
    def matches(self, text: str) -> bool:
        ...

    def validate(self, path: str = "matcher") -> list[str]:
        """Return a list of error strings if the matcher is unusable."""
        return []


class LiteralMatcher(Matcher):
    def __init__(self, text: str) -> None:
        self.text = text

    def matches(self, text: str) -> bool:
        return self.text in text

    def validate(self, path: str = "matcher") -> list[str]:
        if not isinstance(self.text, str) or not self.text:
            return [f"{path}: literal must be a non-empty string"]
        return []

    def __repr__(self) -> str:
        return f"LiteralMatcher({self.text!r})"


class RegexMatcher(Matcher):
    """Regular expression searched anywhere in the line.

    Compilation errors are kept rather than raised so that a rule set can be
    validated as a whole.
    """

    def __init__(self, pattern: str, ignore_case: bool = False) -> None:
        self.pattern = pattern
        self.ignore_case = ignore_case
        self._compiled: re.Pattern[str] | None = None
        self._error: str | None = None
        if not isinstance(pattern, str) or not pattern:
            self._error = "regex must be a non-empty string"
            return
        try:
            self._compiled = re.compile(pattern, re.IGNORECASE if ignore_case else 0)
        except re.error as e:
            self._error = f"invalid regex {pattern!r}: {e}"

    def matches(self, text: str) -> bool:
        if self._compiled is None:
            raise ValueError(self._error or f"regex {self.pattern!r} is not compiled")
        return self._compiled.search(text) is not None

    def validate(self, path: str = "matcher") -> list[str]:
        if self._error:
            return [f"{path}: {self._error}"]
        return []

    def __repr__(self) -> str:
        return f"RegexMatcher({self.pattern!r})"


class AnyMatcher(Matcher):
    """Alternation: matches when at least one child matches."""

    kind = "any"

    def __init__(self, matchers: list[Matcher]) -> None:
        self.matchers = list(matchers)

    def matches(self, text: str) -> bool:
        return any(m.matches(text) for m in self.matchers)

    def validate(self, path: str = "matcher") -> list[str]:
        if not self.matchers:
            return [f"{path}.{self.kind}: expected at least one alternative"]
        errors: list[str] = []
        for i, child in enumerate(self.matchers):
            if not isinstance(child, Matcher):
                errors.append(f"{path}.{self.kind}[{i}]: expected Matcher, got {type(child).__name__}")
                continue
            errors.extend(child.validate(path=f"{path}.{self.kind}[{i}]"))
        return errors


class AllMatcher(AnyMatcher):
    """Conjunction: matches when every child matches."""

    kind = "all"

    def matches(self, text: str) -> bool:
        return all(m.matches(text) for m in self.matchers)


def validate_matcher_spec(spec: Any, path: str = "pattern") -> list[str]:
    """Return a list of error strings if the matcher spec is malformed."""
    errors: list[str] = []
    _validate_node(spec, errors, path)
    return errors


def _validate_node(node: Any, errors: list[str], path: str) -> None:
    if isinstance(node, str):
        if not node:
            errors.append(f"{path}: literal must be a non-empty string")
        return

    if not isinstance(node, dict):
        errors.append(f"{path}: expected string or dict, got {type(node).__name__}")
        return

    kinds = [k for k in _SPEC_KINDS if k in node]
    if len(kinds) != 1:
        errors.append(f"{path}: expected exactly one of {list(_SPEC_KINDS)}, got {sorted(node)}")
        return

    kind = kinds[0]
    if kind in ("any", "all"):
        children = node[kind]
        if not isinstance(children, list):
            errors.append(f"{path}.{kind}: expected list, got {type(children).__name__}")
            return
        if not children:
            errors.append(f"{path}.{kind}: expected at least one alternative")
        for i, child in enumerate(children):
            _validate_node(child, errors, path=f"{path}.{kind}[{i}]")
    elif kind == "literal":
        if not isinstance(node["literal"], str) or not node["literal"]:
            errors.append(f"{path}.literal: must be a non-empty string")
    else:
        errors.extend(RegexMatcher(node["regex"], bool(node.get("ignore_case", False))).validate(path))


def build_matcher(spec: Any) -> Matcher:
    """Build a matcher from a spec already checked by validate_matcher_spec."""
    if isinstance(spec, str):
        return LiteralMatcher(spec)
    if "any" in spec:
        return AnyMatcher([build_matcher(c) for c in spec["any"]])
    if "all" in spec:
        return AllMatcher([build_matcher(c) for c in spec["all"]])
    if "literal" in spec:
        return LiteralMatcher(spec["literal"])
    return RegexMatcher(spec["regex"], ignore_case=bool(spec.get("ignore_case", False)))

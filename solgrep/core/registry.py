from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Iterator, Sequence

import yaml

from .matcher import Matcher, build_matcher, validate_matcher_spec
from .models import Rule
from .severity import parse_severity

_REQUIRED_RULE_KEYS = {"id", "description", "severity", "pattern"}


class InvalidRuleError(ValueError):
    """Raised when a rule definition or rule file is malformed."""


class UnknownRuleError(LookupError):
    """Raised when looking up a rule id that is not in the registry."""


class RuleRegistry:
    """Validated, read-only set of rules in insertion order.

    The registry keeps its own copies of the rules it was given, so mutating
    or reloading the originals does not affect a registry already in use.
    """

    def __init__(self, rules: Sequence[Rule]) -> None:
        errors = _validate_rules(rules)
        if errors:
            joined = "\n  ".join(errors)
            raise InvalidRuleError(f"rule validation failed:\n  {joined}")

        self._rules: dict[str, Rule] = {}
        for rule in rules:
            self._rules[rule.id] = replace(
                rule,
                severity=parse_severity(rule.severity),
                exclusions=list(rule.exclusions),
            )

    @classmethod
    def load(cls, rules: Sequence[Rule]) -> RuleRegistry:
        return cls(rules)

    @classmethod
    def from_yaml(cls, path: Path) -> RuleRegistry:
        """Load a YAML rule pack (a mapping with a ``rules`` list)."""
        path = Path(path)
        if not path.is_file():
            raise InvalidRuleError(f"{path}: rule file not found")

        try:
            with open(path, encoding="utf-8") as f:
                pack = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidRuleError(f"{path}: invalid YAML: {e}") from e

        if not isinstance(pack, dict):
            raise InvalidRuleError(f"{path}: expected a YAML mapping at top level")

        raw_rules = pack.get("rules", [])
        if not isinstance(raw_rules, list):
            raise InvalidRuleError(f"{path}: 'rules' must be a list")

        errors = _validate_rule_specs(raw_rules)
        if errors:
            joined = "\n  ".join(errors)
            raise InvalidRuleError(f"{path}: rule validation failed:\n  {joined}")

        rules = [
            Rule(
                id=str(raw["id"]),
                description=str(raw["description"]),
                severity=raw["severity"],
                matcher=build_matcher(raw["pattern"]),
                exclusions=[build_matcher(spec) for spec in raw.get("exclude", [])],
                recommendation=raw.get("recommendation"),
            )
            for raw in raw_rules
        ]
        try:
            return cls(rules)
        except InvalidRuleError as e:
            raise InvalidRuleError(f"{path}: {e}") from e

    def get(self, rule_id: str) -> Rule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise UnknownRuleError(f"unknown rule id '{rule_id}'") from None

    def ids(self) -> list[str]:
        return list(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules


def _validate_rules(rules: Sequence[Rule]) -> list[str]:
    """Check ids, severities and matchers of every rule; return all problems found."""
    errors: list[str] = []
    seen: set[str] = set()
    for i, rule in enumerate(rules):
        if not isinstance(rule, Rule):
            errors.append(f"rules[{i}]: expected Rule, got {type(rule).__name__}")
            continue

        label = f"rules[{i}] (id={rule.id or '?'})"
        if not isinstance(rule.id, str) or not rule.id.strip():
            errors.append(f"{label}: id must be a non-empty string")
        elif rule.id in seen:
            errors.append(f"{label}: duplicate rule id '{rule.id}'")
        else:
            seen.add(rule.id)

        try:
            parse_severity(rule.severity)
        except ValueError as e:
            errors.append(f"{label}: {e}")

        if rule.matcher is None:
            errors.append(f"{label}: missing matcher")
        elif not isinstance(rule.matcher, Matcher):
            errors.append(f"{label}: matcher must be a Matcher, got {type(rule.matcher).__name__}")
        else:
            errors.extend(f"{label}: {err}" for err in rule.matcher.validate(path="matcher"))

        if not isinstance(rule.exclusions, (list, tuple)):
            errors.append(f"{label}: exclusions must be a list, got {type(rule.exclusions).__name__}")
            continue
        for j, exclusion in enumerate(rule.exclusions):
            if not isinstance(exclusion, Matcher):
                errors.append(f"{label}: exclusions[{j}] must be a Matcher, got {type(exclusion).__name__}")
                continue
            errors.extend(f"{label}: {err}" for err in exclusion.validate(path=f"exclusions[{j}]"))
    return errors


def _validate_rule_specs(raw_rules: list) -> list[str]:
    """Validate the shape of rule mappings read from a rule pack."""
    errors: list[str] = []
    for i, raw in enumerate(raw_rules):
        if not isinstance(raw, dict):
            errors.append(f"rules[{i}]: expected dict, got {type(raw).__name__}")
            continue
        label = f"rules[{i}] (id={raw.get('id', '?')})"
        missing = _REQUIRED_RULE_KEYS - raw.keys()
        if missing:
            errors.append(f"{label}: missing keys: {sorted(missing)}")
        if "pattern" in raw:
            errors.extend(f"{label}: {err}" for err in validate_matcher_spec(raw["pattern"], "pattern"))
        exclude = raw.get("exclude", [])
        if not isinstance(exclude, list):
            errors.append(f"{label}: 'exclude' must be a list, got {type(exclude).__name__}")
            continue
        for j, spec in enumerate(exclude):
            errors.extend(f"{label}: {err}" for err in validate_matcher_spec(spec, f"exclude[{j}]"))
    return errors

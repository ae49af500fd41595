from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, TypeVar

from .core.models import Severity
from .core.severity import parse_severity

T = TypeVar("T")

DEFAULT_RULES_PATH = Path(__file__).resolve().parent / "rules" / "solidity.yaml"

ENV_RULES = "SOLGREP_RULES"
ENV_FAIL_ON = "SOLGREP_FAIL_ON"
ENV_MAX_LINES = "SOLGREP_MAX_LINES"
ENV_TIMEOUT = "SOLGREP_TIMEOUT"
ENV_WORKERS = "SOLGREP_WORKERS"


class ConfigError(ValueError):
    """Raised when a configuration value cannot be parsed."""


@dataclass(frozen=True)
class ScanConfig:
    rules_path: Path = DEFAULT_RULES_PATH
    fail_on: Severity = Severity.HIGH
    max_lines: int | None = None
    timeout: float | None = None
    workers: int = 1

    @classmethod
    def resolve(
        cls,
        *,
        rules_path: Path | None = None,
        fail_on: str | None = None,
        max_lines: int | None = None,
        timeout: float | None = None,
        workers: int | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> ScanConfig:
        """Merge explicit values over environment variables over defaults."""
        env = os.environ if environ is None else environ

        if rules_path is None and env.get(ENV_RULES):
            rules_path = Path(env[ENV_RULES])

        fail_on_value = fail_on if fail_on is not None else env.get(ENV_FAIL_ON)
        try:
            severity = parse_severity(fail_on_value) if fail_on_value else Severity.HIGH
        except ValueError as e:
            raise ConfigError(f"fail-on: {e}") from None

        if max_lines is None:
            max_lines = _env_number(env, ENV_MAX_LINES, int)
        if timeout is None:
            timeout = _env_number(env, ENV_TIMEOUT, float)
        if workers is None:
            workers = _env_number(env, ENV_WORKERS, int)
        if workers is None:
            workers = 1

        if max_lines is not None and max_lines < 0:
            raise ConfigError(f"max-lines must be >= 0, got {max_lines}")
        if timeout is not None and timeout <= 0:
            raise ConfigError(f"timeout must be > 0, got {timeout}")
        if workers < 1:
            raise ConfigError(f"workers must be >= 1, got {workers}")

        return cls(
            rules_path=rules_path or DEFAULT_RULES_PATH,
            fail_on=severity,
            max_lines=max_lines,
            timeout=timeout,
            workers=workers,
        )


def _env_number(env: Mapping[str, str], key: str, convert: Callable[[str], T]) -> T | None:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return convert(raw.strip())
    except ValueError:
        raise ConfigError(f"${key}: expected a number, got {raw!r}") from None

"""
Lint result types shared by the script and style linters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

import yaml

from assetflow.errors import ConfigError

logger = logging.getLogger(__name__)

Severity = Literal["warning", "error"]

# ESLint ("off"/"warn"/"error") and sass-lint (0/1/2) spellings.
SEVERITY_NAMES = {
    "off": None, "0": None, 0: None, False: None,
    "warn": "warning", "warning": "warning", "1": "warning", 1: "warning",
    "error": "error", "2": "error", 2: "error",
}


@dataclass(frozen=True)
class LintViolation:
    """A single lint finding."""
    path: Path
    line: int
    column: int
    rule: str
    message: str
    severity: Severity = "error"

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.column}: {self.message} ({self.rule})"


@dataclass
class LintReport:
    """Findings for one or more files."""
    errors: List[LintViolation] = field(default_factory=list)
    warnings: List[LintViolation] = field(default_factory=list)
    files_checked: int = 0

    @property
    def valid(self) -> bool:
        return not self.errors

    def add(self, violation: LintViolation) -> None:
        if violation.severity == "error":
            self.errors.append(violation)
        else:
            self.warnings.append(violation)

    def extend(self, other: "LintReport") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.files_checked += other.files_checked

    def log_warnings(self) -> None:
        for warning in self.warnings:
            logger.warning(str(warning))


def parse_rule(value: Any, rule: str) -> Tuple[Optional[Severity], Dict[str, Any]]:
    """
    Parse a rule setting into (severity, options).

    Accepts ``2``, ``"error"``, ``[2, {"length": 100}]`` and similar.
    """
    options: Dict[str, Any] = {}
    if isinstance(value, (list, tuple)):
        if not value:
            raise ConfigError(f"Rule {rule} has an empty setting")
        if len(value) > 1:
            if not isinstance(value[1], Mapping):
                raise ConfigError(f"Rule {rule} options must be a mapping")
            options = dict(value[1])
        value = value[0]

    key = value.lower() if isinstance(value, str) else value
    if key not in SEVERITY_NAMES:
        raise ConfigError(f"Rule {rule} has an unknown severity: {value!r}")
    return SEVERITY_NAMES[key], options


def load_rules(
    path: Optional[Path],
    defaults: Mapping[str, Any],
) -> Dict[str, Tuple[Optional[Severity], Dict[str, Any]]]:
    """Merge rule settings from a YAML file over ``defaults``."""
    settings: Dict[str, Any] = dict(defaults)

    if path is not None and path.exists():
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        rules = data.get("rules") if isinstance(data, Mapping) else None
        if rules is not None:
            if not isinstance(rules, Mapping):
                raise ConfigError(f"{path}: 'rules' must be a mapping")
            settings.update(rules)
    elif path is not None:
        logger.debug(f"Lint config not found: {path}, using defaults")

    parsed = {}
    for rule, value in settings.items():
        parsed[rule] = parse_rule(value, rule)
    return parsed

"""
JavaScript linter.

Parses every file with esprima; a syntax error is always an error-level
violation. A small set of ESLint-compatible rules runs on the parsed tree:

- no-debugger: ``debugger`` statements
- no-eval:     calls to ``eval()``
- no-alert:    calls to ``alert()``, ``confirm()``, ``prompt()``
- no-console:  any use of ``console``

Rule severities come from a YAML file shaped like an ``.eslintrc``:

    rules:
      no-debugger: error
      no-console: warn
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional, Tuple

import esprima
from esprima.error_handler import Error as EsprimaError

from assetflow.validation.report import LintReport, LintViolation, load_rules

DEFAULT_RULES = {
    "no-debugger": "error",
    "no-eval": "warn",
    "no-alert": "off",
    "no-console": "off",
}

ALERT_FUNCTIONS = {"alert", "confirm", "prompt"}


def _callee_name(node: Any) -> Optional[str]:
    callee = getattr(node, "callee", None)
    if callee is not None and getattr(callee, "type", None) == "Identifier":
        return callee.name
    return None


def _check_node(node: Any) -> Optional[Tuple[str, str]]:
    """Return (rule, message) when the node breaks a rule."""
    node_type = getattr(node, "type", None)

    if node_type == "DebuggerStatement":
        return "no-debugger", "Unexpected 'debugger' statement"

    if node_type == "CallExpression":
        name = _callee_name(node)
        if name == "eval":
            return "no-eval", "eval can be harmful"
        if name in ALERT_FUNCTIONS:
            return "no-alert", f"Unexpected {name}"

    if node_type == "MemberExpression":
        obj = getattr(node, "object", None)
        if getattr(obj, "type", None) == "Identifier" and obj.name == "console":
            return "no-console", "Unexpected console statement"

    return None


class ScriptLinter:
    """Lints JavaScript sources."""

    def __init__(self, config_path: Optional[Path] = None):
        self.rules = load_rules(config_path, DEFAULT_RULES)

    def lint_source(self, source: str, path: Path) -> LintReport:
        report = LintReport(files_checked=1)
        found: List[Tuple[str, str, int, int]] = []

        def delegate(node: Any, metadata: Any) -> None:
            hit = _check_node(node)
            if hit is None:
                return
            loc = getattr(node, "loc", None) or metadata
            start = getattr(loc, "start", None)
            line = getattr(start, "line", 0) or 0
            column = (getattr(start, "column", 0) or 0) + 1
            found.append((hit[0], hit[1], line, column))

        try:
            esprima.parseScript(source, {"loc": True}, delegate)
        except EsprimaError as e:
            report.add(LintViolation(
                path=path,
                line=getattr(e, "lineNumber", 0) or 0,
                column=getattr(e, "column", 0) or 0,
                rule="syntax",
                message=getattr(e, "description", None) or str(e),
                severity="error",
            ))
            return report

        for rule, message, line, column in found:
            severity, _ = self.rules.get(rule, (None, {}))
            if severity is None:
                continue
            report.add(LintViolation(path, line, column, rule, message, severity))

        return report

    def lint_file(self, path: Path) -> LintReport:
        return self.lint_source(path.read_text(encoding="utf-8"), path)

    def lint_files(self, paths: List[Path]) -> LintReport:
        report = LintReport()
        for path in paths:
            report.extend(self.lint_file(path))
        return report

"""
SCSS linter.

Line-oriented checks with sass-lint rule names and severities
(0 = off, 1 = warning, 2 = error). Only severity 2 fails a build.

Rules:
- no-ids:                 ID selectors
- no-important:           ``!important``
- no-debug:               ``@debug`` statements
- no-empty-rulesets:      ``selector {}``
- no-trailing-whitespace: whitespace at end of line
- max-line-length:        lines longer than ``length`` (default 80)
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from assetflow.validation.report import LintReport, LintViolation, load_rules

DEFAULT_RULES = {
    "no-ids": 1,
    "no-important": 1,
    "no-debug": 1,
    "no-empty-rulesets": 1,
    "no-trailing-whitespace": 1,
    "max-line-length": 0,
}

ID_SELECTOR = re.compile(r"#(?!\{)[A-Za-z_-][\w-]*")
EMPTY_RULESET = re.compile(r"[^{};\s][^{};]*\{\s*\}")
LINE_COMMENT = re.compile(r"(?<![:\"'(])//.*$")


def strip_comments(source: str) -> List[str]:
    """
    Blank out comments while keeping line and column positions intact.
    """
    out: List[str] = []
    in_block = False
    for line in source.splitlines():
        chars = list(line)
        i = 0
        while i < len(chars):
            if in_block:
                if line.startswith("*/", i):
                    chars[i] = chars[i + 1] = " "
                    in_block = False
                    i += 2
                    continue
                chars[i] = " "
            elif line.startswith("/*", i):
                chars[i] = chars[i + 1] = " "
                in_block = True
                i += 2
                continue
            i += 1
        code = "".join(chars)
        if not in_block:
            code = LINE_COMMENT.sub(lambda m: " " * len(m.group(0)), code)
        out.append(code)
    return out


class StyleLinter:
    """Lints SCSS sources."""

    def __init__(self, config_path: Optional[Path] = None):
        self.rules = load_rules(config_path, DEFAULT_RULES)

    def _emit(self, report: LintReport, path: Path, line: int, column: int, rule: str, message: str) -> None:
        severity, _ = self.rules.get(rule, (None, {}))
        if severity is not None:
            report.add(LintViolation(path, line, column, rule, message, severity))

    def lint_source(self, source: str, path: Path) -> LintReport:
        report = LintReport(files_checked=1)
        raw_lines = source.splitlines()
        code_lines = strip_comments(source)

        _, length_opts = self.rules.get("max-line-length", (None, {}))
        max_length = int(length_opts.get("length", 80))

        for number, (raw, code) in enumerate(zip(raw_lines, code_lines), start=1):
            if raw != raw.rstrip(" \t"):
                self._emit(report, path, number, len(raw.rstrip(" \t")) + 1,
                           "no-trailing-whitespace", "Trailing whitespace")

            if len(raw) > max_length:
                self._emit(report, path, number, max_length + 1, "max-line-length",
                           f"Line should not exceed {max_length} characters")

            important = code.find("!important")
            if important != -1:
                self._emit(report, path, number, important + 1, "no-important",
                           "!important not allowed")

            debug = code.find("@debug")
            if debug != -1:
                self._emit(report, path, number, debug + 1, "no-debug", "@debug not allowed")

            brace = code.find("{")
            if brace != -1:
                selector = code[:brace]
                if not selector.lstrip().startswith("@"):
                    for match in ID_SELECTOR.finditer(selector):
                        self._emit(report, path, number, match.start() + 1, "no-ids",
                                   "ID selectors not allowed")

        text = "\n".join(code_lines)
        for match in EMPTY_RULESET.finditer(text):
            start = match.start()
            line = text.count("\n", 0, start) + 1
            column = start - (text.rfind("\n", 0, start) + 1) + 1
            self._emit(report, path, line, column, "no-empty-rulesets", "No empty rulesets")

        return report

    def lint_file(self, path: Path) -> LintReport:
        return self.lint_source(path.read_text(encoding="utf-8"), path)

    def lint_files(self, paths: List[Path]) -> LintReport:
        report = LintReport()
        for path in paths:
            report.extend(self.lint_file(path))
        return report

"""
Source Linting Module

Provides lint checks run before assets are generated:
- JavaScript syntax and rule checks (esprima)
- SCSS rule checks (sass-lint rule names and severities)
"""

from assetflow.validation.report import LintReport, LintViolation
from assetflow.validation.scriptlint import ScriptLinter
from assetflow.validation.stylelint import StyleLinter

__all__ = [
    "LintReport",
    "LintViolation",
    "ScriptLinter",
    "StyleLinter",
]

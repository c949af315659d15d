"""
Exception hierarchy shared by the orchestrator, the pipelines and the CLI.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class AssetFlowError(Exception):
    """Base class for all assetflow errors."""


class ConfigError(AssetFlowError):
    """The build manifest or environment holds an invalid value."""


class DependencyError(AssetFlowError):
    """A task references an unregistered prerequisite or the graph has a cycle."""


class TaskFailedError(AssetFlowError):
    """A task could not complete (failed prerequisites or reported errors)."""

    def __init__(self, message: str, failed: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.failed: List[str] = list(failed or [])


class LintError(AssetFlowError):
    """One or more source files violate an error-level lint rule."""

    def __init__(self, violations):
        self.violations = list(violations)
        first = self.violations[0] if self.violations else None
        if first is None:
            message = "Lint failed"
        elif len(self.violations) == 1:
            message = f"Lint failed: {first}"
        else:
            message = f"Lint failed: {first} (and {len(self.violations) - 1} more)"
        super().__init__(message)


class SupervisorError(AssetFlowError):
    """The supervised application process could not be started."""

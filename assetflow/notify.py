"""
Error notification sink.

Logs task failures in a readable form and, when enabled, raises a desktop
notification through the platform's notifier command. Reporting never
raises: a broken notifier must not take the build down with it.
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
from typing import List, Optional

from assetflow.config import NotifyOptions
from assetflow.errors import LintError

logger = logging.getLogger(__name__)

NOTIFY_TIMEOUT = 5  # seconds


def format_error(error: BaseException) -> str:
    """Human-readable, possibly multi-line description of a task error."""
    if isinstance(error, LintError):
        lines = [str(v) for v in error.violations]
        return "\n".join(lines) if lines else str(error)
    return str(error) or error.__class__.__name__


class Notifier:
    """Reports task errors to the log and the desktop."""

    def __init__(self, options: Optional[NotifyOptions] = None):
        self.options = options or NotifyOptions()
        self.system = platform.system()

    def report(self, task_name: str, error: BaseException) -> None:
        message = format_error(error)
        logger.error(f"Error in '{task_name}': {message}")
        if logger.isEnabledFor(logging.DEBUG) and error.__traceback__ is not None:
            logger.debug(f"Traceback for '{task_name}'", exc_info=error)

        if self.options.enabled:
            first_line = message.splitlines()[0] if message else task_name
            self._send(f"{self.options.title}: {task_name}", first_line)

    def _command(self, title: str, message: str) -> Optional[List[str]]:
        if self.system == "Darwin" and shutil.which("osascript"):
            script = f"display notification {_quote(message)} with title {_quote(title)}"
            if self.options.sound:
                script += f" sound name {_quote(self.options.sound)}"
            return ["osascript", "-e", script]
        if self.system == "Linux" and shutil.which("notify-send"):
            return ["notify-send", "--urgency=critical", title, message]
        return None

    def _send(self, title: str, message: str) -> None:
        cmd = self._command(title, message)
        if cmd is None:
            logger.debug("No desktop notifier available")
            return

        try:
            subprocess.run(cmd, capture_output=True, timeout=NOTIFY_TIMEOUT, check=False)
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Desktop notification failed: {e}")


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'

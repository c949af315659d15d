"""Per-task output summary returned by pipeline actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List


@dataclass
class PipelineResult:
    """Result of a file pipeline task."""
    files_written: List[Path] = field(default_factory=list)
    files_unchanged: List[Path] = field(default_factory=list)
    bytes_written: int = 0
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def record_write(self, path: Path, size: int) -> None:
        self.files_written.append(path)
        self.bytes_written += size

    def summary(self) -> str:
        parts = [f"{len(self.files_written)} written"]
        if self.files_unchanged:
            parts.append(f"{len(self.files_unchanged)} unchanged")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warnings")
        return ", ".join(parts)

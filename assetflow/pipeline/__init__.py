"""
Build Pipeline Module

Provides dependency-aware task orchestration:
- Named tasks with sequential and parallel prerequisites
- Graph validation before execution
- Per-task run records and aggregate reports
"""

from assetflow.pipeline.orchestrator import (
    BuildContext,
    PipelineOrchestrator,
    RunReport,
    Task,
    TaskRegistry,
    TaskRun,
    TaskStatus,
)
from assetflow.pipeline.result import PipelineResult

__all__ = [
    "BuildContext",
    "PipelineOrchestrator",
    "PipelineResult",
    "RunReport",
    "Task",
    "TaskRegistry",
    "TaskRun",
    "TaskStatus",
]

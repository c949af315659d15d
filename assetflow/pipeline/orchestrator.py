"""
Pipeline Orchestrator

Dependency-aware task runner with:
- Named tasks with sequential and parallel prerequisite stages
- Up-front validation (unknown prerequisites, cycles)
- Parallel execution of independent tasks
- Per-task result records instead of exceptions escaping the run

Usage:
    registry = TaskRegistry()
    registry.register("clean", action=clean_task)
    registry.register("scripts", action=scripts_task)
    registry.register("build", ["clean", ["scripts", "styles"]])

    orchestrator = PipelineOrchestrator(registry, config)
    report = orchestrator.run("build")
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Union

from assetflow.config import AppSettings, BuildConfig
from assetflow.errors import DependencyError, TaskFailedError
from assetflow.notify import Notifier
from assetflow.pipeline.result import PipelineResult

logger = logging.getLogger(__name__)

Stage = Union[str, Sequence[str]]
Action = Callable[["BuildContext"], Optional[PipelineResult]]


class TaskStatus(Enum):
    """Status of a task run."""
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Task:
    """A named unit of the build pipeline."""
    name: str
    prerequisites: List[Stage] = field(default_factory=list)
    action: Optional[Action] = None
    description: str = ""
    # Run every stage and the action even when a prerequisite fails.
    keep_going: bool = False

    @property
    def is_composite(self) -> bool:
        return self.action is None

    def prerequisite_names(self) -> List[str]:
        names = []
        for stage in self.prerequisites:
            if isinstance(stage, str):
                names.append(stage)
            else:
                names.extend(stage)
        return names


@dataclass
class TaskRun:
    """Record of one task execution."""
    name: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: TaskStatus = TaskStatus.RUNNING
    error: Optional[BaseException] = None
    result: Optional[PipelineResult] = None

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def succeeded(self) -> bool:
        return self.status == TaskStatus.SUCCEEDED


@dataclass
class RunReport:
    """Result of running one task and its prerequisites."""
    run_id: str
    task: str
    started_at: str
    completed_at: Optional[str] = None
    duration_seconds: float = 0.0
    status: str = "pending"

    runs: Dict[str, TaskRun] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @property
    def failures(self) -> List[TaskRun]:
        return [r for r in self.runs.values() if r.status == TaskStatus.FAILED]


@dataclass
class BuildContext:
    """
    Everything a task action may use.

    Long-running services (watchers, servers, supervisors) are registered here
    so the caller can keep the process alive and stop them on shutdown.
    """
    config: BuildConfig
    app_settings: AppSettings
    notifier: Notifier
    orchestrator: "PipelineOrchestrator"
    services: List[Any] = field(default_factory=list)
    stop_event: threading.Event = field(default_factory=threading.Event)

    def add_service(self, service: Any) -> None:
        self.services.append(service)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until ``stop`` is called. Returns True when stopped."""
        return self.stop_event.wait(timeout)

    def stop(self) -> None:
        self.stop_event.set()

    def shutdown(self) -> None:
        """Stop registered services, newest first."""
        self.stop_event.set()
        while self.services:
            service = self.services.pop()
            try:
                service.stop()
            except Exception:
                logger.exception(f"Failed to stop {service!r}")


class TaskRegistry:
    """Holds task definitions and validates the dependency graph."""

    def __init__(self):
        self._tasks: Dict[str, Task] = {}

    def register(
        self,
        name: str,
        prerequisites: Sequence[Stage] = (),
        action: Optional[Action] = None,
        description: str = "",
        keep_going: bool = False,
    ) -> Task:
        if name in self._tasks:
            raise DependencyError(f"Task already registered: {name}")

        stages: List[Stage] = []
        for stage in prerequisites:
            if isinstance(stage, str):
                stages.append(stage)
            else:
                group = list(stage)
                if not group:
                    raise DependencyError(f"Task {name} declares an empty parallel group")
                stages.append(group)

        task = Task(
            name=name,
            prerequisites=stages,
            action=action,
            description=description,
            keep_going=keep_going,
        )
        self._tasks[name] = task
        return task

    def get(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise DependencyError(f"Task not registered: {name}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._tasks

    def names(self) -> List[str]:
        return list(self._tasks)

    def tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def resolve(self, name: str) -> List[str]:
        """
        Validate the graph reachable from ``name``.

        Returns task names in dependency order (prerequisites first).
        Raises DependencyError for unknown tasks and cycles.
        """
        order: List[str] = []
        done: Set[str] = set()
        path: List[str] = []

        def visit(current: str, required_by: Optional[str]) -> None:
            if current in done:
                return
            if current in path:
                cycle = path[path.index(current):] + [current]
                raise DependencyError(f"Circular dependency detected: {' -> '.join(cycle)}")
            if current not in self._tasks:
                if required_by is None:
                    raise DependencyError(f"Task not registered: {current}")
                raise DependencyError(
                    f"Task {required_by} depends on unregistered task: {current}"
                )

            path.append(current)
            for dep in self._tasks[current].prerequisite_names():
                visit(dep, current)
            path.pop()

            done.add(current)
            order.append(current)

        visit(name, None)
        return order


class _RunState:
    """Shared bookkeeping for one ``run()`` invocation."""

    def __init__(self, report: RunReport):
        self.report = report
        self.lock = threading.Lock()
        self.futures: Dict[str, "Future[TaskRun]"] = {}


class PipelineOrchestrator:
    """
    Runs tasks from a TaskRegistry.

    Features:
    - Prerequisites resolved before anything executes
    - Sequential stages stop at the first failed stage
    - Parallel groups wait for every member (no fail-fast)
    - Each task runs at most once per invocation
    - Failures are reported through the Notifier, never raised
    """

    def __init__(
        self,
        registry: TaskRegistry,
        config: BuildConfig,
        app_settings: Optional[AppSettings] = None,
        notifier: Optional[Notifier] = None,
        max_workers: int = 4,
    ):
        self.registry = registry
        self.max_workers = max_workers
        self.context = BuildContext(
            config=config,
            app_settings=app_settings or AppSettings(),
            notifier=notifier or Notifier(config.notifications),
            orchestrator=self,
        )

    def run(self, name: str) -> RunReport:
        """
        Run a task and its prerequisites.

        Raises:
            DependencyError: the graph reachable from ``name`` is invalid

        Returns:
            RunReport with one TaskRun per executed task
        """
        self.registry.resolve(name)

        report = RunReport(
            run_id=f"run_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}",
            task=name,
            started_at=datetime.now().isoformat(),
        )
        state = _RunState(report)

        root = self._execute(name, state)

        report.status = "success" if root.succeeded else "failed"
        report.completed_at = datetime.now().isoformat()
        started = datetime.fromisoformat(report.started_at)
        completed = datetime.fromisoformat(report.completed_at)
        report.duration_seconds = (completed - started).total_seconds()

        for run in report.failures:
            if run.error is not None and not getattr(run.error, "failed", None):
                report.errors.append(f"Task {run.name} failed: {run.error}")
        if not report.errors and not root.succeeded:
            report.errors.append(f"Task {name} failed: {root.error}")

        logger.debug(f"Run {report.run_id} completed: {report.status}")
        return report

    def _execute(self, name: str, state: _RunState) -> TaskRun:
        with state.lock:
            future = state.futures.get(name)
            owner = future is None
            if owner:
                future = Future()
                state.futures[name] = future

        if not owner:
            return future.result()

        try:
            run = self._run_task(self.registry.get(name), state)
        except BaseException as e:
            future.set_exception(e)
            raise

        future.set_result(run)
        return run

    def _run_stage(self, stage: Stage, state: _RunState) -> List[TaskRun]:
        if isinstance(stage, str):
            return [self._execute(stage, state)]

        workers = max(1, min(len(stage), self.max_workers))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._execute, member, state) for member in stage]
            return [f.result() for f in futures]

    def _run_task(self, task: Task, state: _RunState) -> TaskRun:
        failed: List[str] = []
        for stage in task.prerequisites:
            runs = self._run_stage(stage, state)
            failed.extend(r.name for r in runs if not r.succeeded)
            if failed and not task.keep_going:
                break

        run = TaskRun(name=task.name, started_at=datetime.now())

        if failed and task.keep_going:
            logger.warning(f"Continuing '{task.name}' despite failed prerequisites: {', '.join(failed)}")
        elif failed:
            run.status = TaskStatus.FAILED
            run.error = TaskFailedError(
                f"'{task.name}' not run, failed prerequisites: {', '.join(failed)}",
                failed=failed,
            )
            run.finished_at = datetime.now()
            logger.error(str(run.error))
            self._record(run, state)
            return run

        logger.info(f"Starting '{task.name}'...")
        start = time.monotonic()

        try:
            if task.action is not None:
                run.result = task.action(self.context)
            if run.result is not None and run.result.errors:
                raise TaskFailedError("; ".join(run.result.errors))
            run.status = TaskStatus.SUCCEEDED
        except Exception as e:
            run.status = TaskStatus.FAILED
            run.error = e
            self.context.notifier.report(task.name, e)

        run.finished_at = datetime.now()
        elapsed = time.monotonic() - start

        if run.succeeded:
            logger.info(f"Finished '{task.name}' after {_format_elapsed(elapsed)}")
        else:
            logger.error(f"'{task.name}' errored after {_format_elapsed(elapsed)}")

        self._record(run, state)
        return run

    def _record(self, run: TaskRun, state: _RunState) -> None:
        with state.lock:
            state.report.runs[run.name] = run


def _format_elapsed(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    return f"{seconds:.2f} s"

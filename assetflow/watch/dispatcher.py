"""
Watch dispatcher.

Binds glob groups to tasks (or plain callbacks) and re-runs the bound task
when a matching file changes. Each binding is debounced and single-flight:

- events within ``debounce`` seconds collapse into one run
- events arriving while the task runs schedule exactly one follow-up run
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from assetflow.fileset import matches, watch_roots

logger = logging.getLogger(__name__)


class DebouncedRunner:
    """Runs ``target`` once per burst of triggers, never concurrently with itself."""

    def __init__(self, target: Callable[[], None], debounce: float = 0.2, name: str = ""):
        self.target = target
        self.debounce = debounce
        self.name = name or getattr(target, "__name__", "runner")
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._running = False
        self._pending = False
        self._stopped = False

    def trigger(self) -> None:
        with self._lock:
            if self._stopped:
                return
            if self._running:
                self._pending = True
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
            if self._stopped or self._running:
                return
            self._running = True

        while True:
            try:
                self.target()
            except Exception:
                logger.exception(f"Watch run for {self.name} failed")

            with self._lock:
                if self._pending and not self._stopped:
                    self._pending = False
                    continue
                self._running = False
                return

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._running or self._timer is not None

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


@dataclass
class WatchBinding:
    """Glob pattern group and what to run when one of its files changes."""
    patterns: Tuple[str, ...]
    label: str
    runner: Optional[DebouncedRunner] = None
    on_path: Optional[Callable[[Path], None]] = None


class _BindingHandler(FileSystemEventHandler):
    def __init__(self, dispatcher: "WatchDispatcher"):
        super().__init__()
        self.dispatcher = dispatcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in ("opened", "closed", "closed_no_write"):
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        for raw in paths:
            if raw:
                self.dispatcher.dispatch(Path(raw if isinstance(raw, str) else raw.decode()))


class WatchDispatcher:
    """Routes filesystem events to bindings."""

    def __init__(self, root: Path, debounce: float = 0.2):
        self.root = root
        self.debounce = debounce
        self.bindings: List[WatchBinding] = []
        self._observer: Optional[Observer] = None

    def bind_task(self, patterns: Sequence[str], task_name: str, run_task: Callable[[str], object]) -> WatchBinding:
        runner = DebouncedRunner(lambda: run_task(task_name), self.debounce, name=task_name)
        binding = WatchBinding(tuple(patterns), task_name, runner)
        self.bindings.append(binding)
        return binding

    def bind_callback(self, patterns: Sequence[str], label: str, callback: Callable[[Path], None]) -> WatchBinding:
        """Call ``callback`` for every changed path (no debounce)."""
        binding = WatchBinding(tuple(patterns), label, on_path=callback)
        self.bindings.append(binding)
        return binding

    def dispatch(self, path: Path) -> None:
        for binding in self.bindings:
            if not matches(path, binding.patterns, self.root):
                continue
            logger.debug(f"{path} changed, triggering {binding.label}")
            if binding.on_path is not None:
                try:
                    binding.on_path(path)
                except Exception:
                    logger.exception(f"Watch callback {binding.label} failed")
            elif binding.runner is not None:
                binding.runner.trigger()

    def start(self) -> None:
        observer = Observer()
        patterns = [p for binding in self.bindings for p in binding.patterns]
        roots = watch_roots(patterns, self.root)

        handler = _BindingHandler(self)
        for directory in roots:
            observer.schedule(handler, str(directory), recursive=True)
            logger.info(f"Watching {directory}")

        if not roots:
            logger.warning("No existing directories to watch")

        observer.daemon = True
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        for binding in self.bindings:
            if binding.runner is not None:
                binding.runner.stop()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

"""
Application supervisor.

Runs the web application as a child process and restarts it whenever a
template (or any file with a watched extension) changes. The child's stdout
is scanned for a ready line; each match fires ``on_ready`` so connected
browsers reload only once the restarted server accepts connections.

An unexpected exit is logged and not retried: the next file change starts
the application again.
"""

from __future__ import annotations

import logging
import re
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence, TextIO

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from assetflow.errors import SupervisorError

logger = logging.getLogger(__name__)

STOP_TIMEOUT = 5  # seconds before SIGKILL


class _RestartHandler(FileSystemEventHandler):
    def __init__(self, supervisor: "AppSupervisor"):
        super().__init__()
        self.supervisor = supervisor

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in ("opened", "closed", "closed_no_write"):
            return
        path = event.src_path if isinstance(event.src_path, str) else event.src_path.decode()
        if self.supervisor.watches(Path(path)):
            self.supervisor.schedule_restart(Path(path))


class AppSupervisor:
    """Keeps one application process running and restarts it on change."""

    def __init__(
        self,
        command: Sequence[str],
        cwd: Path,
        watch_paths: Sequence[Path] = (),
        extensions: Sequence[str] = (),
        ready_pattern: Optional[str] = None,
        on_ready: Optional[Callable[[], None]] = None,
        env: Optional[Mapping[str, str]] = None,
        restart_delay: float = 0.2,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ):
        self.command = list(command)
        self.cwd = cwd
        self.watch_paths = [p for p in watch_paths]
        self.extensions = {e.lstrip(".").lower() for e in extensions}
        self.ready_re = re.compile(ready_pattern) if ready_pattern else None
        self.on_ready = on_ready
        self.env = dict(env) if env is not None else None
        self.restart_delay = restart_delay
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr

        self.restarts = 0
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.RLock()
        self._stopping = False
        self._timer: Optional[threading.Timer] = None
        self._observer: Optional[Observer] = None
        self._readers: List[threading.Thread] = []

    @property
    def running(self) -> bool:
        with self._lock:
            return self._process is not None and self._process.poll() is None

    @property
    def pid(self) -> Optional[int]:
        with self._lock:
            return self._process.pid if self._process is not None else None

    def watches(self, path: Path) -> bool:
        if not self.extensions:
            return True
        return path.suffix.lstrip(".").lower() in self.extensions

    def start(self) -> None:
        """Start the application and the file watcher."""
        self._stopping = False
        self._spawn()

        roots = [p for p in self.watch_paths if p.is_dir()]
        if roots:
            observer = Observer()
            handler = _RestartHandler(self)
            for root in roots:
                observer.schedule(handler, str(root), recursive=True)
            observer.daemon = True
            observer.start()
            self._observer = observer
            exts = ", ".join(sorted(self.extensions)) or "*"
            logger.info(f"Watching {len(roots)} path(s) for changes to: {exts}")

    def _spawn(self) -> None:
        with self._lock:
            logger.info(f"Starting `{' '.join(self.command)}`")
            try:
                process = subprocess.Popen(
                    self.command,
                    cwd=str(self.cwd),
                    env=self.env,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    bufsize=1,
                )
            except OSError as e:
                raise SupervisorError(f"Cannot start {self.command[0]}: {e}") from e

            self._process = process
            self._readers = [
                threading.Thread(target=self._pump_stdout, args=(process,), daemon=True),
                threading.Thread(target=self._pump_stderr, args=(process,), daemon=True),
            ]
            for reader in self._readers:
                reader.start()

    def _pump_stdout(self, process: subprocess.Popen) -> None:
        for line in process.stdout:
            self.stdout.write(line)
            self.stdout.flush()
            if self.ready_re is not None and self.ready_re.search(line):
                logger.debug("Application reported ready")
                if self.on_ready is not None:
                    try:
                        self.on_ready()
                    except Exception:
                        logger.exception("Ready callback failed")

        code = process.wait()
        with self._lock:
            expected = self._stopping or process is not self._process
        if not expected:
            logger.error(f"App crashed (exit code {code}) - waiting for file changes before starting...")

    def _pump_stderr(self, process: subprocess.Popen) -> None:
        for line in process.stderr:
            self.stderr.write(line)
            self.stderr.flush()

    def _terminate(self, process: subprocess.Popen) -> None:
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=STOP_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning("Application did not stop, killing it")
            process.kill()
            process.wait()

    def schedule_restart(self, changed: Optional[Path] = None) -> None:
        with self._lock:
            if self._stopping:
                return
            if self._timer is not None:
                self._timer.cancel()
            if changed is not None:
                logger.info(f"Restarting due to changes in {changed.name}")
            self._timer = threading.Timer(self.restart_delay, self.restart)
            self._timer.daemon = True
            self._timer.start()

    def restart(self) -> None:
        with self._lock:
            self._timer = None
            if self._stopping:
                return
            old = self._process
            # Swap first so the reader of the old process sees an expected exit.
            self._process = None
            if old is not None:
                self._terminate(old)
            self.restarts += 1
            self._spawn()

    def stop(self) -> None:
        with self._lock:
            self._stopping = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            process = self._process

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

        if process is not None:
            self._terminate(process)
            logger.info("Application stopped")

        for reader in self._readers:
            reader.join(timeout=2)

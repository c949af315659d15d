import threading
import time

import pytest

from assetflow.errors import DependencyError, TaskFailedError
from assetflow.notify import Notifier
from assetflow.pipeline.orchestrator import PipelineOrchestrator, TaskRegistry, TaskStatus
from assetflow.pipeline.result import PipelineResult


class Recorder:
    def __init__(self):
        self.events = []
        self.lock = threading.Lock()

    def action(self, name, delay=0.0, fail=False):
        def run(ctx):
            with self.lock:
                self.events.append(("start", name))
            time.sleep(delay)
            with self.lock:
                self.events.append(("end", name))
            if fail:
                raise RuntimeError(f"{name} broke")
        return run

    def index(self, kind, name):
        return self.events.index((kind, name))


@pytest.fixture
def config(project):
    return project()


def make(registry, config):
    return PipelineOrchestrator(registry, config, notifier=Notifier(config.notifications))


def test_clean_finishes_before_parallel_group_starts(config):
    rec = Recorder()
    registry = TaskRegistry()
    registry.register("clean", action=rec.action("clean", delay=0.05))
    for name in ("scripts", "styles", "images"):
        registry.register(name, action=rec.action(name, delay=0.02))
    registry.register("build", ["clean", ["scripts", "styles", "images"]])

    report = make(registry, config).run("build")

    assert report.succeeded
    assert set(report.runs) == {"clean", "scripts", "styles", "images", "build"}
    clean_end = rec.index("end", "clean")
    for name in ("scripts", "styles", "images"):
        assert rec.index("start", name) > clean_end


def test_parallel_group_members_overlap(config):
    started = threading.Barrier(2, timeout=5)

    def waiter(ctx):
        # Deadlocks (and times out) unless both run at once.
        started.wait()

    registry = TaskRegistry()
    registry.register("a", action=waiter)
    registry.register("b", action=waiter)
    registry.register("both", [["a", "b"]])

    assert make(registry, config).run("both").succeeded


def test_group_failure_waits_for_siblings_and_fails_parent(config):
    rec = Recorder()
    registry = TaskRegistry()
    registry.register("bad", action=rec.action("bad", fail=True))
    registry.register("slow", action=rec.action("slow", delay=0.05))
    registry.register("build", [["bad", "slow"]], action=rec.action("build"))

    report = make(registry, config).run("build")

    assert not report.succeeded
    assert report.status == "failed"
    assert report.runs["slow"].status == TaskStatus.SUCCEEDED
    assert report.runs["bad"].status == TaskStatus.FAILED
    assert ("start", "build") not in rec.events
    assert isinstance(report.runs["build"].error, TaskFailedError)
    assert report.runs["build"].error.failed == ["bad"]
    assert report.errors == ["Task bad failed: bad broke"]


def test_sequential_stages_stop_at_first_failure(config):
    rec = Recorder()
    registry = TaskRegistry()
    registry.register("first", action=rec.action("first", fail=True))
    registry.register("second", action=rec.action("second"))
    registry.register("all", ["first", "second"])

    report = make(registry, config).run("all")

    assert not report.succeeded
    assert "second" not in report.runs
    assert [run.name for run in report.failures] == ["first", "all"]


def test_keep_going_runs_action_after_failed_prerequisite(config):
    rec = Recorder()
    registry = TaskRegistry()
    registry.register("build", action=rec.action("build", fail=True))
    registry.register("watch", action=rec.action("watch"))
    registry.register("develop", ["build", "watch"], action=rec.action("develop"), keep_going=True)

    report = make(registry, config).run("develop")

    assert ("end", "watch") in rec.events
    assert ("end", "develop") in rec.events
    assert report.runs["develop"].succeeded
    assert report.succeeded
    assert [run.name for run in report.failures] == ["build"]


def test_shared_prerequisite_runs_once(config):
    calls = []
    lock = threading.Lock()

    def shared(ctx):
        with lock:
            calls.append("shared")
        time.sleep(0.02)

    registry = TaskRegistry()
    registry.register("shared", action=shared)
    registry.register("a", ["shared"])
    registry.register("b", ["shared"])
    registry.register("top", [["a", "b"], "shared"])

    report = make(registry, config).run("top")

    assert report.succeeded
    assert calls == ["shared"]


def test_result_errors_fail_the_task(config):
    def partial(ctx):
        return PipelineResult(errors=["could not read x.png"])

    registry = TaskRegistry()
    registry.register("images", action=partial)

    report = make(registry, config).run("images")

    assert not report.succeeded
    assert report.errors == ["Task images failed: could not read x.png"]


def test_unknown_prerequisite_is_rejected_before_running(config):
    rec = Recorder()
    registry = TaskRegistry()
    registry.register("clean", action=rec.action("clean"))
    registry.register("build", ["clean", "missing"])

    with pytest.raises(DependencyError, match="build depends on unregistered task: missing"):
        make(registry, config).run("build")
    assert rec.events == []


def test_unknown_task(config):
    with pytest.raises(DependencyError, match="Task not registered: nope"):
        make(TaskRegistry(), config).run("nope")


def test_cycle_is_rejected(config):
    registry = TaskRegistry()
    registry.register("a", ["b"])
    registry.register("b", [["c"]])
    registry.register("c", ["a"])

    with pytest.raises(DependencyError, match="Circular dependency detected: a -> b -> c -> a"):
        registry.resolve("a")


def test_resolve_returns_dependency_order():
    registry = TaskRegistry()
    registry.register("clean")
    registry.register("scripts")
    registry.register("styles")
    registry.register("build", ["clean", ["scripts", "styles"]])

    assert registry.resolve("build") == ["clean", "scripts", "styles", "build"]


def test_register_rejects_duplicates_and_empty_groups():
    registry = TaskRegistry()
    registry.register("clean")

    with pytest.raises(DependencyError):
        registry.register("clean")
    with pytest.raises(DependencyError):
        registry.register("build", [[]])


def test_context_shutdown_stops_services_newest_first(config):
    stopped = []

    class Service:
        def __init__(self, name):
            self.name = name

        def stop(self):
            stopped.append(self.name)

    ctx = make(TaskRegistry(), config).context
    ctx.add_service(Service("watcher"))
    ctx.add_service(Service("server"))
    ctx.shutdown()

    assert stopped == ["server", "watcher"]
    assert ctx.wait(timeout=0)
    assert ctx.services == []

import threading
import time

import pytest

from assetflow.pipeline.orchestrator import TaskRegistry
from assetflow.tasks.develop import run_watch
from assetflow.watch.dispatcher import DebouncedRunner, WatchDispatcher


class Counter:
    def __init__(self, block=None):
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.block = block
        self.lock = threading.Lock()

    def __call__(self):
        with self.lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        if self.block is not None:
            self.block.wait(5)
        with self.lock:
            self.active -= 1


def test_burst_collapses_into_one_run(wait_until):
    counter = Counter()
    runner = DebouncedRunner(counter, debounce=0.05)

    for _ in range(5):
        runner.trigger()

    assert wait_until(lambda: counter.calls == 1)
    assert wait_until(lambda: not runner.busy)
    time.sleep(0.1)
    assert counter.calls == 1


def test_triggers_while_running_queue_one_follow_up(wait_until):
    release = threading.Event()
    counter = Counter(block=release)
    runner = DebouncedRunner(counter, debounce=0.01)

    runner.trigger()
    assert wait_until(lambda: counter.active == 1)
    for _ in range(3):
        runner.trigger()
    release.set()

    assert wait_until(lambda: counter.calls == 2 and not runner.busy)
    time.sleep(0.05)
    assert counter.calls == 2
    assert counter.max_active == 1


def test_failing_target_does_not_stop_the_runner(wait_until):
    calls = []

    def target():
        calls.append(1)
        raise RuntimeError("boom")

    runner = DebouncedRunner(target, debounce=0.01)
    runner.trigger()
    assert wait_until(lambda: len(calls) == 1 and not runner.busy)
    runner.trigger()
    assert wait_until(lambda: len(calls) == 2)


def test_stopped_runner_ignores_triggers():
    counter = Counter()
    runner = DebouncedRunner(counter, debounce=0.01)

    runner.stop()
    runner.trigger()
    time.sleep(0.05)

    assert counter.calls == 0


def test_dispatch_routes_by_pattern(tmp_path, wait_until):
    ran = []
    seen = []
    dispatcher = WatchDispatcher(tmp_path, debounce=0.01)
    dispatcher.bind_task(["src/scss/**/*.scss"], "styles", ran.append)
    dispatcher.bind_task(["src/js/**/*.js"], "scripts", ran.append)
    dispatcher.bind_callback(["public/**/*"], "reload", seen.append)

    dispatcher.dispatch(tmp_path / "src/scss/parts/_a.scss")
    dispatcher.dispatch(tmp_path / "public/css/main.css")
    dispatcher.dispatch(tmp_path / "README.md")

    assert wait_until(lambda: ran == ["styles"])
    assert seen == [tmp_path / "public/css/main.css"]
    dispatcher.stop()


def test_observer_picks_up_file_changes(tmp_path, wait_until):
    (tmp_path / "src").mkdir()
    ran = []
    dispatcher = WatchDispatcher(tmp_path, debounce=0.01)
    dispatcher.bind_task(["src/*.js"], "scripts", ran.append)
    dispatcher.start()
    try:
        time.sleep(0.1)
        (tmp_path / "src" / "app.js").write_text("var a;")
        assert wait_until(lambda: "scripts" in ran)
    finally:
        dispatcher.stop()


@pytest.fixture
def watch_ctx(project, context_for):
    runs = []
    registry = TaskRegistry()
    for name in ("styles", "scripts", "images"):
        registry.register(name, action=lambda ctx, name=name: runs.append(name))
    ctx = context_for(project({"watch": {"debounce_seconds": 0.01}}), registry)
    yield ctx, runs
    ctx.shutdown()


def test_watch_task_reruns_bound_tasks(watch_ctx, tmp_path, wait_until):
    ctx, runs = watch_ctx

    run_watch(ctx)

    assert len(ctx.services) == 1
    dispatcher = ctx.services[0]
    dispatcher.dispatch(tmp_path / "app/assets/scss/main.scss")
    dispatcher.dispatch(tmp_path / "app/assets/images/logo.png")

    assert wait_until(lambda: sorted(runs) == ["images", "styles"])

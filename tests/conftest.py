import time
from pathlib import Path
from typing import Optional

import pytest
import yaml

from assetflow.config import load_config
from assetflow.notify import Notifier
from assetflow.pipeline.orchestrator import PipelineOrchestrator, TaskRegistry


@pytest.fixture
def write():
    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def project(tmp_path):
    """A project directory with a manifest; returns a factory for BuildConfig."""

    def make(overrides: Optional[dict] = None):
        manifest = {
            "public_directory": "public/",
            "copy_base": "app/assets",
            "files": {
                "scripts": ["app/assets/js/**/*.js"],
                "styles": ["app/assets/scss/**/*.scss"],
                "images": ["app/assets/images/**/*.{png,jpg,gif,svg}"],
                "copy": ["app/assets/*.html", "app/assets/lib/**/*"],
                "node_modules": [],
            },
            "notifications": {"enabled": False},
        }
        for key, value in (overrides or {}).items():
            if isinstance(value, dict) and isinstance(manifest.get(key), dict):
                manifest[key].update(value)
            else:
                manifest[key] = value
        path = tmp_path / "build.config.yaml"
        path.write_text(yaml.safe_dump(manifest), encoding="utf-8")
        return load_config(path, environ={})

    return make


@pytest.fixture
def context_for():
    """Build a context around a config using an empty registry."""

    def make(config, registry: Optional[TaskRegistry] = None):
        orchestrator = PipelineOrchestrator(
            registry or TaskRegistry(),
            config,
            notifier=Notifier(config.notifications),
        )
        return orchestrator.context

    return make


@pytest.fixture
def wait_until():
    """Poll ``predicate`` until it is true or ``timeout`` expires."""

    def wait(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return wait

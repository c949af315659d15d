"""
Watch and develop tasks.

watch:   re-runs styles, scripts and images when their sources change
develop: (after build and watch) starts a LiveReload server, reloads the
         browser when the public directory changes, and supervises the
         application process, reloading once it reports ready again
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from assetflow.tasks.base import TEMP_GLOB
from assetflow.watch.dispatcher import WatchDispatcher
from assetflow.watch.livereload import LiveReloadServer
from assetflow.watch.supervisor import AppSupervisor

if TYPE_CHECKING:
    from assetflow.pipeline.orchestrator import BuildContext

logger = logging.getLogger(__name__)


def run_watch(ctx: "BuildContext") -> None:
    config = ctx.config
    dispatcher = WatchDispatcher(config.root, debounce=config.watch.debounce_seconds)

    def rerun(task_name: str) -> None:
        report = ctx.orchestrator.run(task_name)
        if not report.succeeded:
            logger.warning(f"Watch run of '{task_name}' failed; waiting for further changes")

    dispatcher.bind_task(config.files.watch_styles, "styles", rerun)
    dispatcher.bind_task(config.files.scripts, "scripts", rerun)
    dispatcher.bind_task(config.files.images, "images", rerun)

    dispatcher.start()
    ctx.add_service(dispatcher)


def run_develop(ctx: "BuildContext") -> None:
    config = ctx.config
    settings = ctx.app_settings

    livereload = LiveReloadServer(port=settings.livereload_port)
    livereload.start()
    ctx.add_service(livereload)

    if config.auto_reload:
        public = config.public_directory
        output = WatchDispatcher(public)
        output.bind_callback(
            ["**/*", f"!{TEMP_GLOB}"],
            "livereload",
            lambda path: livereload.reload(path.relative_to(public).as_posix()),
        )
        output.start()
        ctx.add_service(output)

    supervisor = AppSupervisor(
        command=config.develop.app_command,
        cwd=config.root,
        watch_paths=config.develop.watch_paths,
        extensions=config.develop.watch_extensions,
        ready_pattern=config.develop.ready_pattern,
        on_ready=livereload.reload if config.auto_reload else None,
        # Bound port, which differs from the setting when 0 was requested.
        env=dataclasses.replace(settings, livereload_port=livereload.port).child_env(),
    )
    logger.info(f"Starting application in {settings.env} mode on port {settings.port}")
    supervisor.start()
    ctx.add_service(supervisor)

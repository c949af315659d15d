"""
Task catalog.

The complete, statically declared set of build tasks:

    clean, scripts, styles, images, copy
    build   = clean -> [scripts, styles, images, copy]
    watch
    develop = build -> watch -> live reload + app supervisor
    default = lists the main entry points
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from assetflow.pipeline.orchestrator import TaskRegistry
from assetflow.tasks.clean import run_clean
from assetflow.tasks.copy import run_copy
from assetflow.tasks.develop import run_develop, run_watch
from assetflow.tasks.images import run_images
from assetflow.tasks.scripts import run_scripts
from assetflow.tasks.styles import run_styles

if TYPE_CHECKING:
    from assetflow.pipeline.orchestrator import BuildContext

logger = logging.getLogger(__name__)

MAIN_TASKS = ("build", "develop")
GENERATION_TASKS = ["scripts", "styles", "images", "copy"]


def list_main_tasks(ctx: "BuildContext") -> None:
    registry = ctx.orchestrator.registry
    logger.info("----------")
    logger.info("The following main tasks are available:")
    for name in MAIN_TASKS:
        logger.info(f"{name}: {registry.get(name).description}")
    logger.info("----------")


def build_registry() -> TaskRegistry:
    registry = TaskRegistry()

    registry.register("clean", action=run_clean, description="deletes the public directory.")
    registry.register("scripts", action=run_scripts, description="lints, bundles and minifies scripts.")
    registry.register("styles", action=run_styles, description="lints, compiles and minifies styles.")
    registry.register("images", action=run_images, description="optimises changed images.")
    registry.register("copy", action=run_copy, description="copies static files.")

    registry.register(
        "build",
        ["clean", GENERATION_TASKS],
        description="builds the contents to the public directory.",
    )
    registry.register("watch", action=run_watch, description="rebuilds assets when sources change.")
    registry.register(
        "develop",
        ["build", "watch"],
        action=run_develop,
        description="performs an initial build then sets up watches.",
        keep_going=True,
    )
    registry.register("default", action=list_main_tasks, description="lists the main tasks.")

    return registry

"""
Clean task.

Deletes the public directory. Refuses to delete the project root or any
directory containing it.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from assetflow.errors import AssetFlowError
from assetflow.pipeline.result import PipelineResult

if TYPE_CHECKING:
    from assetflow.pipeline.orchestrator import BuildContext

logger = logging.getLogger(__name__)


def check_deletable(target: Path, root: Path) -> None:
    target, root = target.resolve(), root.resolve()
    if target == root or target in root.parents:
        raise AssetFlowError(f"Refusing to delete {target}: it contains the project root")


def run_clean(ctx: "BuildContext") -> PipelineResult:
    config = ctx.config
    target = config.public_directory

    check_deletable(target, config.root)

    if target.exists():
        shutil.rmtree(target)
        logger.info(f"Deleted {target}")
    else:
        logger.debug(f"Nothing to clean at {target}")

    return PipelineResult()

"""
Copy task.

Copies files that are not part of other tasks (HTML, JS libraries, fonts)
into the public directory. Paths are kept relative to copy_base so the
top-level source directory is not reproduced.
"""

from __future__ import annotations

import logging
import shutil
from typing import TYPE_CHECKING

from assetflow.fileset import expand_globs, relative_to_base
from assetflow.pipeline.result import PipelineResult

if TYPE_CHECKING:
    from assetflow.pipeline.orchestrator import BuildContext

logger = logging.getLogger(__name__)


def run_copy(ctx: "BuildContext") -> PipelineResult:
    config = ctx.config
    result = PipelineResult()

    for source, base in expand_globs(config.files.copy, config.root):
        destination = config.public_directory / relative_to_base(source, config.copy_base, fallback=base)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, destination)
        result.record_write(destination, destination.stat().st_size)

    logger.info(f"Copied {len(result.files_written)} files")
    return result

"""
Script build task.

Combines and minifies JavaScript, producing both a minified and a
non-minified bundle in <public>/js:

1. Expand files.scripts (glob order is bundle order)
2. Lint every file; any error-level violation fails the task before
   anything is written
3. Concatenate into main.js and write it
4. Minify into main.min.js and write it
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

import rjsmin

from assetflow.errors import LintError
from assetflow.fileset import expand_globs
from assetflow.pipeline.result import PipelineResult
from assetflow.tasks.base import minified_path, write_output
from assetflow.validation.scriptlint import ScriptLinter

if TYPE_CHECKING:
    from assetflow.pipeline.orchestrator import BuildContext

logger = logging.getLogger(__name__)


def concatenate(sources: List[str], separator: str = "") -> str:
    return separator.join(sources)


def minify(source: str) -> str:
    return rjsmin.jsmin(source)


def run_scripts(ctx: "BuildContext") -> PipelineResult:
    config = ctx.config
    result = PipelineResult()

    files = [path for path, _ in expand_globs(config.files.scripts, config.root)]
    if not files:
        logger.warning("No script files matched files.scripts")
        return result

    report = ScriptLinter(config.scripts.lint_config).lint_files(files)
    report.log_warnings()
    result.warnings.extend(str(w) for w in report.warnings)
    if not report.valid:
        raise LintError(report.errors)

    sources = [path.read_text(encoding="utf-8") for path in files]
    bundle = concatenate(sources, config.scripts.separator)

    output = config.scripts_directory / config.scripts.bundle_name
    write_output(output, bundle, result)
    write_output(minified_path(output), minify(bundle), result)

    logger.info(f"Bundled {len(files)} scripts into {output.name}")
    return result

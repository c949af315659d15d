"""
Helpers shared by the file pipelines.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Union

from assetflow.pipeline.result import PipelineResult

logger = logging.getLogger(__name__)

MINIFIED_SUFFIX = ".min"
TEMP_SUFFIX = ".tmp"
# Matches the in-progress files written by write_output.
TEMP_GLOB = "**/.*" + TEMP_SUFFIX


def minified_path(path: Path, suffix: str = MINIFIED_SUFFIX) -> Path:
    """
    Insert the minified suffix before the extension.

    >>> minified_path(Path("public/js/main.js"))
    PosixPath('public/js/main.min.js')
    """
    return path.with_name(f"{path.stem}{suffix}{path.suffix}")


def write_output(path: Path, content: Union[str, bytes], result: PipelineResult) -> None:
    """Write a build artifact, creating parent directories as needed."""
    data = content.encode("utf-8") if isinstance(content, str) else content

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}{TEMP_SUFFIX}")
    tmp.write_bytes(data)
    os.replace(tmp, path)

    result.record_write(path, len(data))
    logger.debug(f"Wrote {path} ({len(data)} bytes)")

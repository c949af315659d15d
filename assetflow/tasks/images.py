"""
Image optimisation task.

Optimises PNG, JPEG and GIF images into <public>/images, mirroring the
source tree below each glob's base directory:

1. Expand files.images
2. Skip images whose destination is not older than the source
3. Optimise with Pillow when minify_images is on (SVG and unknown formats
   pass through unchanged; the original bytes win if optimising does not
   shrink the file)
4. Write to <public>/images
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict

from PIL import Image

from assetflow.fileset import expand_globs, relative_to_base
from assetflow.pipeline.result import PipelineResult
from assetflow.tasks.base import write_output

if TYPE_CHECKING:
    from assetflow.pipeline.orchestrator import BuildContext

logger = logging.getLogger(__name__)

SAVE_OPTIONS: Dict[str, Dict[str, object]] = {
    "PNG": {"optimize": True},
    "JPEG": {"optimize": True, "progressive": True, "quality": "keep"},
    "GIF": {"optimize": True, "interlace": True},
}


def is_newer(source: Path, destination: Path) -> bool:
    """True when ``destination`` is missing or older than ``source``."""
    if not destination.exists():
        return True
    return source.stat().st_mtime > destination.stat().st_mtime


def optimize_image(data: bytes) -> bytes:
    """Re-encode raster images losslessly-ish; return the smaller of the two."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            fmt = image.format
            options = SAVE_OPTIONS.get(fmt or "")
            if options is None:
                return data
            if fmt == "GIF" and getattr(image, "n_frames", 1) > 1:
                options = dict(options, save_all=True)
            buffer = io.BytesIO()
            image.save(buffer, format=fmt, **options)
    except (OSError, ValueError) as e:
        # Unreadable or non-raster input (e.g. SVG): pass through.
        logger.debug(f"Not optimising image: {e}")
        return data

    optimized = buffer.getvalue()
    return optimized if len(optimized) < len(data) else data


def run_images(ctx: "BuildContext") -> PipelineResult:
    config = ctx.config
    result = PipelineResult()
    output_dir = config.images_directory

    for source, base in expand_globs(config.files.images, config.root):
        destination = output_dir / relative_to_base(source, base)

        if not is_newer(source, destination):
            result.files_unchanged.append(destination)
            continue

        data = source.read_bytes()
        if config.minify_images:
            data = optimize_image(data)

        write_output(destination, data, result)

    logger.info(f"Images: {result.summary()}")
    return result

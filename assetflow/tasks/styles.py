"""
Styles build task.

Compiles CSS from SCSS, auto-prefixes and optionally writes a source map,
then outputs both a minified and a non-minified version into <public>/css:

1. Expand files.styles; partials (``_name.scss``) are not compiled directly
2. Lint every matched file, partials included; error-level violations
   fail the task before anything is written
3. Compile with libsass (expanded style, files.node_modules as include
   paths, each partial included at most once per entry file)
4. Auto-prefix for the configured browser window
5. Write <name>.css (+ <styles_map>/<name>.css.map when source_maps is on)
6. Minify and write <name>.min.css
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Set, Tuple

import rcssmin
import sass

from assetflow.errors import LintError
from assetflow.fileset import expand_globs
from assetflow.pipeline.result import PipelineResult
from assetflow.tasks.base import minified_path, write_output
from assetflow.tasks.prefixer import autoprefix
from assetflow.validation.stylelint import StyleLinter

if TYPE_CHECKING:
    from assetflow.pipeline.orchestrator import BuildContext

logger = logging.getLogger(__name__)

SOURCE_MAP_COMMENT = "/*# sourceMappingURL="
REPEAT_SUFFIX = ".imported-once"


class ImportOnce:
    """
    libsass importer that includes every resolved file at most once.

    Shared partials that ``@import`` their own dependencies would otherwise be
    emitted once per importer. Imports the importer cannot resolve are left to
    libsass.
    """

    extensions = (".scss", ".css")

    def __init__(self, include_paths: Sequence[Path]):
        self.include_paths = list(include_paths)
        self.seen: Set[Path] = set()

    def candidates(self, name: str) -> Iterable[Path]:
        target = Path(name)
        parent, stem = target.parent, target.name
        if target.suffix in self.extensions:
            yield parent / f"_{stem}"
            yield target
            return
        for ext in self.extensions:
            yield parent / f"_{stem}{ext}"
            yield parent / f"{stem}{ext}"
        for ext in self.extensions:
            yield target / f"_index{ext}"
            yield target / f"index{ext}"

    def resolve(self, name: str, prev: Optional[str]) -> Optional[Path]:
        search: List[Path] = []
        if prev and prev != "stdin":
            search.append(Path(prev).parent)
        search.extend(self.include_paths)

        for directory in search:
            for candidate in self.candidates(name):
                path = directory / candidate
                if path.is_file():
                    return path.resolve()
        return None

    def import_file(self, path: str, prev: str) -> Optional[List[Tuple[str, str]]]:
        if path.startswith(("http://", "https://", "//")):
            return None

        resolved = self.resolve(path, prev)
        if resolved is None:
            return None

        if resolved in self.seen:
            logger.debug(f"Skipping repeated import: {resolved}")
            # libsass caches sources by path, so a repeat must use a path it has not seen.
            return [(f"{resolved}{REPEAT_SUFFIX}", "")]

        self.seen.add(resolved)
        return [(str(resolved), resolved.read_text(encoding="utf-8"))]


def is_partial(path: Path) -> bool:
    return path.name.startswith("_")


def compile_entry(
    source: Path,
    include_paths: Sequence[Path],
    output_style: str = "expanded",
    map_path: Optional[Path] = None,
    css_path: Optional[Path] = None,
) -> Tuple[str, Optional[str]]:
    """
    Compile one SCSS entry file.

    Returns (css, source_map); source_map is None unless map_path is given.
    """
    importer = ImportOnce(include_paths)
    kwargs = {
        "filename": str(source),
        "output_style": output_style,
        "include_paths": [str(p) for p in include_paths],
        "importers": [(0, importer.import_file)],
    }

    if map_path is None:
        return sass.compile(**kwargs), None

    css, source_map = sass.compile(
        source_map_filename=str(map_path),
        output_filename_hint=str(css_path or map_path.with_suffix("")),
        source_map_contents=True,
        **kwargs,
    )
    return css, source_map


def _strip_map_comment(css: str) -> str:
    index = css.rfind(SOURCE_MAP_COMMENT)
    if index == -1:
        return css
    return css[:index].rstrip() + "\n"


def run_styles(ctx: "BuildContext") -> PipelineResult:
    config = ctx.config
    result = PipelineResult()

    sources = [path for path, _ in expand_globs(config.files.styles, config.root)]
    if not sources:
        logger.warning("No style files matched files.styles")
        return result

    # Partials are linted too; only entry files are compiled.
    report = StyleLinter(config.styles.lint_config).lint_files(sources)
    report.log_warnings()
    result.warnings.extend(str(w) for w in report.warnings)
    if not report.valid:
        raise LintError(report.errors)

    entries = [path for path in sources if not is_partial(path)]
    if not entries:
        logger.warning("No style entry files matched files.styles")
        return result

    output_dir = config.styles_directory
    compiled = []
    for entry in entries:
        css_path = output_dir / f"{entry.stem}.css"
        map_path = None
        if config.source_maps:
            map_path = output_dir / config.files.styles_map / f"{css_path.name}.map"

        css, source_map = compile_entry(
            entry,
            config.include_paths,
            output_style=config.styles.output_style,
            map_path=map_path,
            css_path=css_path,
        )
        css = autoprefix(css, config.styles.browsers)
        compiled.append((css_path, css, map_path, source_map))

    for css_path, css, map_path, source_map in compiled:
        write_output(css_path, css, result)
        if map_path is not None and source_map is not None:
            write_output(map_path, source_map, result)

        minified = rcssmin.cssmin(_strip_map_comment(css))
        write_output(minified_path(css_path), minified, result)

    logger.info(f"Compiled {len(entries)} stylesheets")
    return result

"""
Glob helpers shared by the pipelines and the watch dispatcher.

Patterns follow the usual build-tool conventions:
- ``*`` and ``?`` never cross a path separator
- ``**`` matches any number of directories
- ``{a,b}`` expands to alternatives
- a leading ``!`` excludes previous matches
"""

from __future__ import annotations

import glob
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

MAGIC_CHARS = set("*?[{")


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternatives, including nested ones."""
    match = re.search(r"\{([^{}]*)\}", pattern)
    if match is None:
        return [pattern]

    head, tail = pattern[:match.start()], pattern[match.end():]
    expanded = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(head + option + tail))
    return expanded


def glob_base(pattern: str) -> str:
    """
    Return the static directory prefix of a pattern.

    >>> glob_base("app/assets/images/**/*.png")
    'app/assets/images'
    """
    parts = pattern.replace("\\", "/").split("/")
    static = []
    for part in parts[:-1]:
        if any(c in MAGIC_CHARS for c in part):
            break
        static.append(part)
    return "/".join(static) or "."


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Compile a single (brace-free) glob into an anchored regex over posix paths."""
    i, n = 0, len(pattern)
    out = []
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern[i:i + 3] == "**/":
                out.append("(?:.*/)?")
                i += 3
                continue
            if pattern[i:i + 2] == "**":
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1:end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


def _relative_posix(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.resolve().as_posix()


def matches(path: Path, patterns: Iterable[str], root: Path) -> bool:
    """True when ``path`` matches the pattern group (honouring ``!`` exclusions)."""
    rel = _relative_posix(path, root)
    matched = False
    for pattern in patterns:
        negate = pattern.startswith("!")
        body = pattern[1:] if negate else pattern
        for alternative in expand_braces(body):
            if glob_to_regex(alternative).match(rel):
                matched = not negate
                break
    return matched


def expand_globs(patterns: Sequence[str], root: Path) -> List[Tuple[Path, Path]]:
    """
    Expand patterns into files.

    Returns (file, base) pairs, where ``base`` is the static prefix of the
    pattern that matched first. Order follows the pattern list; matches of one
    pattern are sorted. Duplicates keep their first position.
    """
    found: Dict[Path, Path] = {}

    for pattern in patterns:
        if pattern.startswith("!"):
            excluded = [glob_to_regex(p) for p in expand_braces(pattern[1:])]
            for path in list(found):
                rel = _relative_posix(path, root)
                if any(rx.match(rel) for rx in excluded):
                    del found[path]
            continue

        for alternative in expand_braces(pattern):
            base = root / glob_base(alternative)
            hits = sorted(glob.glob(str(root / alternative), recursive=True))
            for hit in hits:
                path = Path(hit)
                if path.is_file() and path not in found:
                    found[path] = base

    return list(found.items())


def watch_roots(patterns: Iterable[str], root: Path) -> List[Path]:
    """Existing directories to observe for a pattern group."""
    roots: List[Path] = []
    for pattern in patterns:
        if pattern.startswith("!"):
            continue
        for alternative in expand_braces(pattern):
            base = root / glob_base(alternative)
            if base.is_dir() and base not in roots:
                roots.append(base)
    # Drop roots nested in another root; recursive observers cover them.
    return [r for r in roots if not any(o != r and _is_within(r, o) for o in roots)]


def _is_within(path: Path, parent: Path) -> bool:
    try:
        path.resolve().relative_to(parent.resolve())
        return True
    except ValueError:
        return False


def relative_to_base(path: Path, base: Path, fallback: Optional[Path] = None) -> Path:
    """Path of ``path`` below ``base``, or below ``fallback`` when outside it."""
    try:
        return path.resolve().relative_to(base.resolve())
    except ValueError:
        if fallback is None:
            return Path(path.name)
        return relative_to_base(path, fallback)

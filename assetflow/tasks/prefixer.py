"""
Vendor prefixing for compiled CSS.

Prefixed declarations are inserted on the same line as the original one so
line-based source maps stay valid:

    user-select: none;
becomes
    -webkit-user-select: none; -moz-user-select: none; user-select: none;
"""

from __future__ import annotations

import re
from typing import Dict, List, Set, Tuple

from assetflow.errors import ConfigError

RECENT = {
    "appearance": ("-webkit-", "-moz-"),
    "backdrop-filter": ("-webkit-",),
    "backface-visibility": ("-webkit-",),
    "box-decoration-break": ("-webkit-",),
    "clip-path": ("-webkit-",),
    "hyphens": ("-webkit-", "-ms-"),
    "mask": ("-webkit-",),
    "mask-image": ("-webkit-",),
    "tab-size": ("-moz-",),
    "text-size-adjust": ("-webkit-", "-moz-", "-ms-"),
    "user-select": ("-webkit-", "-moz-", "-ms-"),
}

LEGACY = dict(RECENT, **{
    "animation": ("-webkit-",),
    "box-shadow": ("-webkit-",),
    "box-sizing": ("-webkit-", "-moz-"),
    "columns": ("-webkit-", "-moz-"),
    "filter": ("-webkit-",),
    "transform": ("-webkit-", "-ms-"),
    "transform-origin": ("-webkit-", "-ms-"),
    "transition": ("-webkit-",),
})

BROWSER_WINDOWS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "last 2 versions": RECENT,
    "legacy": LEGACY,
    "none": {},
}

DECLARATION = re.compile(
    r"^(?P<indent>\s*)(?P<prop>-?[a-z][a-z-]*)\s*:\s*(?P<value>[^;{}]+?)\s*;(?P<rest>.*)$"
)


def prefix_table(browsers: str) -> Dict[str, Tuple[str, ...]]:
    try:
        return BROWSER_WINDOWS[browsers.strip().lower()]
    except KeyError:
        known = ", ".join(sorted(BROWSER_WINDOWS))
        raise ConfigError(f"Unknown browser window {browsers!r} (known: {known})") from None


def autoprefix(css: str, browsers: str = "last 2 versions") -> str:
    """Add vendor-prefixed declarations for the given browser window."""
    table = prefix_table(browsers)
    if not table:
        return css

    lines = css.split("\n")
    blocks = _rule_blocks(lines)
    # Properties declared anywhere in each rule, to avoid duplicating
    # prefixes the author already wrote.
    declared: Dict[int, Set[str]] = {}
    for line, block in zip(lines, blocks):
        match = DECLARATION.match(line)
        if match is not None:
            declared.setdefault(block, set()).add(match.group("prop"))

    out: List[str] = []
    for line, block in zip(lines, blocks):
        match = DECLARATION.match(line)
        prefixes = table.get(match.group("prop")) if match is not None else None
        if not prefixes:
            out.append(line)
            continue

        prop = match.group("prop")
        value = match.group("value")
        existing = declared.get(block, set())
        added = [f"{p}{prop}: {value};" for p in prefixes if f"{p}{prop}" not in existing]
        if not added:
            out.append(line)
            continue

        original = line[len(match.group("indent")):]
        out.append(match.group("indent") + " ".join(added + [original]))

    return "\n".join(out)


def _rule_blocks(lines: List[str]) -> List[int]:
    """Number the rule each line belongs to; every brace starts a new one."""
    blocks = []
    block = 0
    for line in lines:
        if "{" in line or "}" in line:
            block += 1
        blocks.append(block)
    return blocks

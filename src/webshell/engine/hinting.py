"""Autocomplete candidates for the browser line editor.

Lists either every executable on the search path or the entries of the
current directory, then keeps the base names starting with the typed
prefix.
"""

from __future__ import annotations

import ntpath
import posixpath

from webshell.domain.models import HintKind, Platform

HINT_COMMANDS: dict[Platform, dict[HintKind, str]] = {
    Platform.UNIX: {
        HintKind.BINARY: "(IFS=:;set -f;find -L $PATH -maxdepth 1 -type f -perm -100 -print;)",
        HintKind.FILE: "find . -maxdepth 1",
    },
    Platform.WINDOWS: {
        HintKind.BINARY: "where *.exe",
        HintKind.FILE: "dir /b",
    },
}

_BASENAME = {
    Platform.UNIX: posixpath.basename,
    Platform.WINDOWS: ntpath.basename,
}


def listing_command(platform: Platform, kind: HintKind) -> str:
    return HINT_COMMANDS[platform][kind]


def filter_matches(listing: str, prefix: str, kind: HintKind, platform: Platform) -> list[str]:
    """Extract prefix matches from listing output.

    Matching is a case-sensitive ``startswith`` on the base name, so an
    empty prefix matches everything. Duplicates (the same binary in two
    PATH directories) keep their first position.
    """
    basename = _BASENAME[platform]
    seen: dict[str, None] = {}
    for line in listing.split(platform.line_separator):
        if not line:
            continue
        if kind is HintKind.FILE and line == ".":
            continue
        base = basename(line)
        if base and base.startswith(prefix):
            seen.setdefault(base, None)
    return list(seen)

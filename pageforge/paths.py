"""Glob matching and output-root containment helpers.

Globs use forward slashes and are matched case-insensitively: ``**/``
matches any number of leading directories, ``**`` matches anything, ``*``
matches within a single path segment, and ``?`` matches one character.

Examples
--------
>>> from pageforge.paths import glob_match
>>> glob_match("**/*.md", "intro.md")
True
>>> glob_match("docs/*", "docs/a/b.md")
False
"""

from __future__ import annotations

import functools
import posixpath
import re
import typing as typ
from pathlib import Path


@functools.lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile ``pattern`` into an anchored, case-insensitive regex."""
    normalized = pattern.replace("\\", "/").strip()
    parts: list[str] = []
    idx = 0
    while idx < len(normalized):
        if normalized.startswith("**/", idx):
            parts.append("(?:.*/)?")
            idx += 3
        elif normalized.startswith("**", idx):
            parts.append(".*")
            idx += 2
        elif normalized[idx] == "*":
            parts.append("[^/]*")
            idx += 1
        elif normalized[idx] == "?":
            parts.append("[^/]")
            idx += 1
        else:
            parts.append(re.escape(normalized[idx]))
            idx += 1
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE)


def glob_match(pattern: str, value: str) -> bool:
    """Return whether ``value`` (a POSIX path or route) matches ``pattern``."""
    if not pattern.strip():
        return False
    return bool(glob_to_regex(pattern).match(value.replace("\\", "/")))


def matches_any(patterns: typ.Iterable[str], value: str) -> bool:
    """Return whether ``value`` matches at least one glob in ``patterns``."""
    return any(glob_match(pattern, value) for pattern in patterns)


def glob_specificity(pattern: str) -> tuple[int, int]:
    """Rank a glob: more literal characters first, then fewer wildcards."""
    literal = len(re.sub(r"[*?]", "", pattern))
    wildcards = pattern.count("*") + pattern.count("?")
    return (literal, -wildcards)


def relative_posix(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` using forward slashes."""
    return path.relative_to(root).as_posix()


def is_safe_relative(path: str) -> bool:
    """Return whether ``path`` stays strictly inside its root."""
    if not path or path.startswith("/") or "\\" in path:
        return False
    normalized = posixpath.normpath(path)
    return normalized not in {".", ".."} and not normalized.startswith("../")


def iter_files(root: Path) -> list[Path]:
    """Return every file below ``root`` in deterministic POSIX order."""
    if not root.is_dir():
        return []
    return sorted(
        (path for path in root.rglob("*") if path.is_file()),
        key=lambda item: relative_posix(item, root),
    )


__all__ = [
    "glob_match",
    "glob_specificity",
    "glob_to_regex",
    "is_safe_relative",
    "iter_files",
    "matches_any",
    "relative_posix",
]

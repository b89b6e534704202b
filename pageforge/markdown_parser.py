r"""Split content files into front matter and Markdown body.

This module powers the content model by separating a ``---``-delimited YAML
front matter block from the Markdown body, expanding dotted keys into
nested mappings, and extracting headings used for titles and tables of
contents.

Example
-------
>>> from pageforge.markdown_parser import parse_front_matter
>>> meta, body = parse_front_matter("---\ntitle: Intro\n---\n# Hello\n")
>>> meta["title"], body.strip()
('Intro', '# Hello')
"""

from __future__ import annotations

import dataclasses as dc
import re
import typing as typ

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from pageforge.errors import ContentParseError

FRONT_MATTER_PATTERN = re.compile(
    r"\A\ufeff?---[ \t]*\r?\n(.*?)(?:\r?\n)?^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$", re.MULTILINE)
FENCE_PATTERN = re.compile(r"^[ ]{0,3}(```|~~~).*?^[ ]{0,3}\1[ \t]*$", re.DOTALL | re.MULTILINE)


@dc.dataclass(slots=True)
class Heading:
    """Markdown heading discovered outside fenced code.

    Attributes
    ----------
    level : int
        Heading depth (1 for ``#``).
    title : str
        Heading text with escapes removed.
    slug : str
        URL-safe anchor unique within the document.
    """

    level: int
    title: str
    slug: str


def _clean_heading(text: str) -> str:
    """Return a cleaned heading, removing escapes and whitespace."""
    return text.replace("\\", "").strip()


def _slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "section"


def _unique_slug(base: str, used: set[str]) -> str:
    """Generate a unique slug, appending numeric suffixes when needed."""
    candidate = base
    suffix = 2
    while candidate in used:
        candidate = f"{base}-{suffix}"
        suffix += 1
    used.add(candidate)
    return candidate


def _expand_dotted(raw: typ.Mapping[str, typ.Any]) -> dict[str, typ.Any]:
    """Expand ``a.b.c: v`` keys into nested mappings."""
    expanded: dict[str, typ.Any] = {}
    for key, value in raw.items():
        parts = [part for part in str(key).split(".") if part]
        if not parts:
            continue
        target = expanded
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        leaf = parts[-1]
        if isinstance(value, dict) and isinstance(target.get(leaf), dict):
            target[leaf].update(_expand_dotted(value))
        elif isinstance(value, dict):
            target[leaf] = _expand_dotted(value)
        else:
            target[leaf] = value
    return expanded


def parse_front_matter(text: str, *, path: str | None = None) -> tuple[dict[str, typ.Any], str]:
    """Return the front matter mapping and the remaining Markdown body.

    Parameters
    ----------
    text : str
        Raw file contents.
    path : str, optional
        Source path used in error messages.

    Returns
    -------
    tuple[dict[str, Any], str]
        Front matter (empty when absent) with dotted keys expanded, and the
        body following the closing ``---``.

    Raises
    ------
    ContentParseError
        If the block is not valid YAML or is not a mapping.
    """
    match = FRONT_MATTER_PATTERN.match(text)
    if not match:
        return {}, text.lstrip("\ufeff")
    block = match.group(1)
    body = text[match.end() :]
    loader = YAML(typ="safe")
    loader.version = (1, 2)
    where = f" in '{path}'" if path else ""
    try:
        loaded = loader.load(block)
    except YAMLError as exc:
        msg = f"Malformed front matter{where}: {exc}"
        raise ContentParseError(msg, path) from exc
    if loaded is None:
        return {}, body
    if not isinstance(loaded, dict):
        msg = f"Front matter{where} must be a mapping."
        raise ContentParseError(msg, path)
    return _expand_dotted(loaded), body


def strip_fences(markdown_text: str) -> str:
    """Return ``markdown_text`` with fenced code blocks blanked out."""
    return FENCE_PATTERN.sub("", markdown_text)


def parse_headings(markdown_text: str) -> list[Heading]:
    """Return headings outside fenced code with unique slugs."""
    used: set[str] = set()
    headings: list[Heading] = []
    for match in HEADING_PATTERN.finditer(strip_fences(markdown_text)):
        title = _clean_heading(match.group(2))
        plain = re.sub(r"[`*_]", "", title)
        headings.append(
            Heading(
                level=len(match.group(1)),
                title=title,
                slug=_unique_slug(_slugify(plain), used),
            )
        )
    return headings


def extract_title(markdown_text: str) -> str | None:
    """Return the first level-one heading, stripped of inline markup."""
    for heading in parse_headings(markdown_text):
        if heading.level == 1:
            return re.sub(r"[`*_]", "", heading.title).strip() or None
    return None


__all__ = [
    "Heading",
    "extract_title",
    "parse_front_matter",
    "parse_headings",
    "strip_fences",
]

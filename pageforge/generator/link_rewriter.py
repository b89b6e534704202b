"""Rewrite relative Markdown links to the routes planned for their targets."""

from __future__ import annotations

import posixpath
import typing as typ
from urllib.parse import urlsplit

from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

if typ.TYPE_CHECKING:
    from xml.etree.ElementTree import Element

    from markdown import Markdown

    from pageforge.planner import BuildPlan, PagePlan
else:  # pragma: no cover - type-checking fallback
    Markdown = typ.Any
    Element = typ.Any
    BuildPlan = typ.Any
    PagePlan = typ.Any

MARKDOWN_SUFFIXES = (".md", ".markdown")


def build_route_map(plan: BuildPlan) -> dict[str, str]:
    """Return a mapping of content source path to public URL."""
    return {
        page.source.lower(): page.url for page in plan.pages if page.source is not None
    }


def _build_link_rewriter(page: PagePlan, routes: dict[str, str]) -> Extension | None:
    """Return a RelativeLinkExtension configured for ``page``."""
    if page.source is None or not routes:
        return None
    return RelativeLinkExtension(routes, posixpath.dirname(page.source))


class RelativeLinkExtension(Extension):
    """Rewrite links such as ``../guides/intro.md#setup`` to planned URLs.

    Targets are resolved against the directory of the page's source file
    and looked up in the plan's source-to-URL table. Links that do not name
    a planned content file are left as written.
    """

    def __init__(self, routes: dict[str, str], base_dir: str) -> None:
        self.routes = routes
        self.base_dir = base_dir

    def extendMarkdown(self, md: Markdown) -> None:  # type: ignore[override]  # noqa: N802
        """Register the relative-link treeprocessor on the Markdown instance."""
        processor = RelativeLinkTreeprocessor(md, self.routes, self.base_dir)
        md.treeprocessors.register(processor, "pageforge_relative_links", 15)


class RelativeLinkTreeprocessor(Treeprocessor):
    """Point relative ``.md`` anchors at their planned routes."""

    def __init__(self, md: Markdown, routes: dict[str, str], base_dir: str) -> None:
        super().__init__(md)
        self.routes = routes
        self.base_dir = base_dir

    def run(self, root: Element) -> Element:  # pragma: no cover - Markdown API
        """Rewrite relative anchors in the parsed markdown tree."""
        for element in root.iter():
            if element.tag == "a":
                rewritten = self._rewrite(element.get("href"))
                if rewritten:
                    element.set("href", rewritten)
        return root

    def _rewrite(self, target: str | None) -> str | None:
        """Return the planned URL for ``target`` when it names a content file."""
        if not target or target.startswith(("#", "/", "//")) or "://" in target:
            return None
        parsed = urlsplit(target)
        if parsed.scheme or parsed.netloc or not parsed.path:
            return None
        if not parsed.path.lower().endswith(MARKDOWN_SUFFIXES):
            return None
        joined = posixpath.normpath(posixpath.join(self.base_dir, parsed.path))
        url = self.routes.get(joined.lower())
        if url is None:
            return None
        if parsed.query:
            url = f"{url}?{parsed.query}"
        if parsed.fragment:
            url = f"{url}#{parsed.fragment}"
        return url


__all__ = [
    "RelativeLinkExtension",
    "RelativeLinkTreeprocessor",
    "_build_link_rewriter",
    "build_route_map",
]

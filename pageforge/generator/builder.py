"""Execute a :class:`~pageforge.planner.BuildPlan` into an output directory.

The builder copies static files and theme assets, renders every planned
page through its Jinja layout, injects stylesheet, script, and JSON-LD
fragments, and writes the site-wide artefacts: ``data/site-nav.json``,
``sitemap.xml``, ``.nojekyll``, and one redirect file per hosting platform
when the plan carries redirects.

Example
-------
>>> from pathlib import Path
>>> from pageforge.config import load_site_spec
>>> from pageforge.generator import build_site
>>> from pageforge.planner import plan_site
>>> spec = load_site_spec(Path("site/site.json"))  # doctest: +SKIP
>>> result = build_site(plan_site(spec), Path("public"), clean=True)  # doctest: +SKIP
>>> result.pages  # doctest: +SKIP
12
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import json
import shutil
import typing as typ
from html import escape
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from markupsafe import Markup

from pageforge._constants import NOJEKYLL_FILENAME, SITE_NAV_PATH, SITEMAP_FILENAME
from pageforge.errors import BuildIoError
from pageforge.generator.fragments import (
    css_tags,
    inject_head,
    inject_scripts,
    prism_css,
    prism_scripts,
    script_tags,
)
from pageforge.generator.link_rewriter import _build_link_rewriter, build_route_map
from pageforge.generator.renderer import HtmlContentRenderer
from pageforge.generator.structured_data import (
    absolute_url,
    build_json_ld,
    render_json_ld,
)
from pageforge.hosting import render_hosting_files
from pageforge.paths import iter_files, relative_posix
from pageforge.planner import versioning_to_dict
from pageforge.themes import resolve_partial, template_name, theme_chain

if typ.TYPE_CHECKING:
    from pageforge.planner import BuildPlan, PagePlan

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"


@dc.dataclass(slots=True)
class BuildResult:
    """Files produced by one :func:`build_site` call."""

    out_dir: Path
    pages: int = 0
    copied: int = 0
    written: list[Path] = dc.field(default_factory=list)

    @property
    def message(self) -> str:
        """Return the one-line summary reported by the pipeline."""
        return (
            f"build ok: pages={self.pages}; copied={self.copied}; "
            f"written={len(self.written)}; out={self.out_dir}"
        )


def _flatten_tokens(tokens: typ.Mapping[str, typ.Any], prefix: str = "") -> list[str]:
    declarations: list[str] = []
    for key, value in tokens.items():
        name = f"{prefix}-{key}" if prefix else str(key)
        if isinstance(value, typ.Mapping):
            declarations.extend(_flatten_tokens(value, name))
        elif isinstance(value, (str, int, float)) and not isinstance(value, bool):
            declarations.append(f"--{name}: {value};")
    return declarations


def tokens_css(tokens: typ.Mapping[str, typ.Any]) -> str:
    """Return design tokens as CSS custom properties on ``:root``.

    Examples
    --------
    >>> tokens_css({"color": {"fg": "#111"}})
    ':root { --color-fg: #111; }'
    """
    declarations = _flatten_tokens(tokens)
    if not declarations:
        return ""
    return ":root { " + " ".join(declarations) + " }"


class SiteBuilder:
    """Render a plan's pages and write the supporting artefacts."""

    def __init__(self, plan: BuildPlan, out_dir: Path) -> None:
        self.plan = plan
        self.out_dir = out_dir
        self.result = BuildResult(out_dir=out_dir)
        chain = theme_chain(plan.theme)
        self.env = Environment(
            loader=FileSystemLoader([str(theme.root) for theme in chain]),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.globals["partial_path"] = self._partial_path
        self.env.globals["absolute_url"] = lambda url: absolute_url(
            plan.spec.base_url, url
        )
        self._routes = build_route_map(plan)
        self._client_highlighting = plan.spec.prism.enabled
        self._pygments_css = HtmlContentRenderer(
            client_highlighting=self._client_highlighting
        ).stylesheet
        self._nav = self._navigation_payload()

    def _partial_path(self, name: str) -> str:
        path = resolve_partial(self.plan.theme, name)
        return template_name(self.plan.theme, path)

    def run(self, *, clean: bool = False) -> BuildResult:
        """Write the whole site and return what was produced."""
        if clean and self.out_dir.exists():
            try:
                shutil.rmtree(self.out_dir)
            except OSError as exc:
                msg = f"Failed to clean output directory '{self.out_dir}': {exc}"
                raise BuildIoError(msg) from exc
        self._mkdir(self.out_dir)
        self._copy_tree(self.plan.spec.resolve(self.plan.spec.static_root), self.out_dir)
        for theme in reversed(theme_chain(self.plan.theme)):
            self._copy_tree(theme.assets_dir, self.out_dir / "assets")

        for page in self.plan.pages:
            self._write(page.output_path, self.render_page(page))
            self.result.pages += 1

        self._write(SITE_NAV_PATH, json.dumps(self._nav, indent=2, ensure_ascii=False) + "\n")
        self._write(SITEMAP_FILENAME, self._sitemap())
        self._write(NOJEKYLL_FILENAME, "")
        if self.plan.redirects:
            for filename, content in render_hosting_files(self.plan.redirects).items():
                self._write(filename, content)
        return self.result

    def render_page(self, page: PagePlan) -> str:
        """Return the final HTML for ``page``.

        Raises
        ------
        BuildIoError
            If the layout fails to render.
        """
        renderer = HtmlContentRenderer(
            link_extension=_build_link_rewriter(page, self._routes),
            client_highlighting=self._client_highlighting,
        )
        rendered = renderer.render(page.item.body if page.item else "")
        head_html, scripts_html, json_ld = self._fragments(page)
        context = {
            "site": self.plan.spec,
            "page": page,
            "item": page.item,
            "meta": page.item.front_matter.meta if page.item else {},
            "title": page.title,
            "description": page.description,
            "content": Markup(rendered.html),
            "toc": rendered.toc,
            "nav": self._nav,
            "menus": self._nav["menus"],
            "data": self.plan.data.as_dict(),
            "tokens": self.plan.tokens,
            "tokens_css": Markup(tokens_css(self.plan.tokens)),
            "pygments_css": Markup(self._pygments_css),
            "pages": self.plan.pages,
            "term_pages": [
                target
                for route in page.term_routes
                if (target := self.plan.page_for_route(route)) is not None
            ],
            "head_html": Markup(head_html),
            "scripts_html": Markup(scripts_html),
            "json_ld": Markup(json_ld),
            "canonical_url": absolute_url(
                self.plan.spec.base_url,
                (page.item.front_matter.canonical if page.item else None) or page.url,
            ),
            "generated_at": dt.datetime.now(dt.UTC),
        }
        layout_name = template_name(self.plan.theme, page.layout_path)
        try:
            html = self.env.get_template(layout_name).render(**context)
        except TemplateError as exc:
            msg = f"Failed to render '{page.route}' with layout '{page.layout}': {exc}"
            raise BuildIoError(msg) from exc
        html = inject_head(html, head_html)
        return inject_scripts(html, scripts_html)

    def _head_css(self, page: PagePlan) -> str:
        hrefs = list(page.css)
        if self._client_highlighting:
            hrefs = [*prism_css(self.plan.spec.prism), *hrefs]
        return css_tags(hrefs)

    def _fragments(self, page: PagePlan) -> tuple[str, str, str]:
        json_ld = render_json_ld(build_json_ld(self.plan, page))
        head_html = "\n".join(part for part in (json_ld, self._head_css(page)) if part)
        scripts = []
        if self._client_highlighting:
            scripts.append(prism_scripts(self.plan.spec.prism))
        if page.js:
            scripts.append(script_tags(page.js))
        return head_html, "\n".join(scripts), json_ld

    def _navigation_payload(self) -> dict[str, typ.Any]:
        plan = self.plan
        return {
            "generated": True,
            "site": plan.spec.name,
            "baseUrl": plan.spec.base_url,
            **plan.navigation.to_dict(),
            "versioning": versioning_to_dict(plan.versioning),
            "taxonomies": [taxonomy.to_dict() for taxonomy in plan.taxonomies],
        }

    def _sitemap(self) -> str:
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<urlset xmlns="{SITEMAP_NAMESPACE}">',
        ]
        for page in self.plan.pages:
            if page.output_path == "404.html":
                continue
            loc = escape(absolute_url(self.plan.spec.base_url, page.url), quote=False)
            entry = f"  <url><loc>{loc}</loc>"
            date = page.item.front_matter.date if page.item else None
            if date is not None:
                entry += f"<lastmod>{date.date().isoformat()}</lastmod>"
            lines.append(entry + "</url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"

    def _copy_tree(self, source: Path, destination: Path) -> None:
        for path in iter_files(source):
            target = destination / relative_posix(path, source)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(path, target)
            except OSError as exc:
                msg = f"Failed to copy '{path}' to '{target}': {exc}"
                raise BuildIoError(msg) from exc
            self.result.copied += 1

    def _write(self, relative: str, text: str) -> None:
        path = self.out_dir / relative
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            msg = f"Failed to write '{path}': {exc}"
            raise BuildIoError(msg) from exc
        self.result.written.append(path)

    @staticmethod
    def _mkdir(path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Failed to create output directory '{path}': {exc}"
            raise BuildIoError(msg) from exc


def build_site(plan: BuildPlan, out_dir: Path, *, clean: bool = False) -> BuildResult:
    """Render ``plan`` into ``out_dir``.

    Parameters
    ----------
    plan : BuildPlan
        Plan produced by :func:`pageforge.planner.plan_site`.
    out_dir : Path
        Output directory; created when missing.
    clean : bool, optional
        Remove ``out_dir`` before writing. Without it only planned files are
        rewritten and stale files stay in place.

    Returns
    -------
    BuildResult
        Counts and paths of everything written.

    Raises
    ------
    BuildIoError
        If a layout fails to render or a file cannot be written.
    """
    return SiteBuilder(plan, out_dir).run(clean=clean)


__all__ = ["BuildResult", "SiteBuilder", "build_site", "tokens_css"]

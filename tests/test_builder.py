"""Tests for rendering a plan into static output."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from pageforge.config import load_site_spec
from pageforge.errors import BuildIoError
from pageforge.generator import build_site
from pageforge.generator.builder import tokens_css
from pageforge.planner import plan_site

from .conftest import SiteFactory, write_json, write_text


def _build(config: Path, out: Path, *, clean: bool = False):  # noqa: ANN202
    return build_site(plan_site(load_site_spec(config), config), out, clean=clean)


def _soup(path: Path) -> BeautifulSoup:
    return BeautifulSoup(path.read_text(encoding="utf-8"), "html.parser")


@pytest.fixture
def built_site(make_site: SiteFactory, tmp_path: Path) -> Path:
    """Build the default site into ``tmp_path / "out"``."""
    out = tmp_path / "out"
    _build(make_site(), out)
    return out


def test_pages_render_through_the_layout(built_site: Path) -> None:
    """Each planned page is written with its title, nav, and canonical URL."""
    soup = _soup(built_site / "docs" / "intro" / "index.html")

    assert soup.title is not None
    assert soup.title.get_text() == "Intro | Test Site", "expected the layout title"
    assert [a["href"] for a in soup.select("nav a")] == ["/docs/"], (
        "expected the automatic main menu"
    )
    canonical = soup.find("link", rel="canonical")
    assert canonical is not None
    assert canonical["href"] == "https://example.test/docs/intro/", (
        "expected an absolute canonical URL"
    )
    assert soup.find("h2", id="setup") is not None, "expected heading anchors"


def test_relative_markdown_links_point_at_planned_urls(built_site: Path) -> None:
    """Links to sibling ``.md`` files are rewritten to page URLs."""
    index = _soup(built_site / "docs" / "index.html")
    intro = _soup(built_site / "docs" / "intro" / "index.html")

    assert index.find("a", string="introduction")["href"] == "/docs/intro/"
    assert intro.find("a", string="docs home")["href"] == "/docs/#top", (
        "expected the fragment to survive the rewrite"
    )


def test_site_artefacts_are_written(built_site: Path) -> None:
    """Navigation JSON, the sitemap, and ``.nojekyll`` accompany the pages."""
    nav = json.loads((built_site / "data" / "site-nav.json").read_text(encoding="utf-8"))
    sitemap = (built_site / "sitemap.xml").read_text(encoding="utf-8")

    assert nav["site"] == "Test Site"
    assert nav["menus"]["main"]["items"] == [{"title": "Docs", "url": "/docs/"}]
    assert "<loc>https://example.test/docs/intro/</loc><lastmod>2026-01-02</lastmod>" in sitemap, (
        "expected absolute locations with lastmod from the page date"
    )
    assert (built_site / ".nojekyll").is_file(), "expected .nojekyll"
    assert not (built_site / "_redirects").exists(), (
        "expected no hosting files without redirects"
    )


def test_redirects_produce_hosting_files(make_site: SiteFactory, tmp_path: Path) -> None:
    """Every hosting platform gets a redirect file when redirects exist."""
    config = make_site(spec={"redirects": [{"from": "/old", "to": "/docs/"}]})
    out = tmp_path / "out"

    _build(config, out)

    assert (out / "_redirects").read_text(encoding="utf-8") == "/old /docs/ 301\n"
    vercel = json.loads((out / "vercel.json").read_text(encoding="utf-8"))
    assert vercel == {
        "redirects": [{"source": "/old", "destination": "/docs/", "statusCode": 301}]
    }
    for name in ("staticwebapp.config.json", ".htaccess", "nginx.redirects.conf", "web.config"):
        assert (out / name).is_file(), f"expected {name}"


def test_static_files_and_theme_assets_are_copied(
    make_site: SiteFactory, tmp_path: Path
) -> None:
    """The static root lands at the output root and theme assets under assets/."""
    config = make_site(
        files={
            "static/robots.txt": "User-agent: *\n",
            "themes/base/assets/site.css": "body {}\n",
        }
    )
    out = tmp_path / "out"

    result = _build(config, out)

    assert (out / "robots.txt").read_text(encoding="utf-8") == "User-agent: *\n"
    assert (out / "assets" / "site.css").is_file(), "expected theme assets under assets/"
    assert result.copied == 2, "expected two copied files"
    assert result.pages == 2, "expected two rendered pages"


def test_clean_removes_stale_output(make_site: SiteFactory, tmp_path: Path) -> None:
    """``clean`` deletes files from earlier builds."""
    out = tmp_path / "out"
    write_text(out / "stale.html", "old")

    _build(make_site(), out)
    assert (out / "stale.html").exists(), "expected stale files without clean"

    _build(make_site(), out, clean=True)
    assert not (out / "stale.html").exists(), "expected clean to remove stale files"


def test_json_ld_is_injected_into_head(make_site: SiteFactory, tmp_path: Path) -> None:
    """Structured data profiles render as JSON-LD scripts in ``<head>``."""
    out = tmp_path / "out"
    _build(make_site(spec={"structuredData": {"enabled": True}}), out)

    soup = _soup(out / "docs" / "intro" / "index.html")
    blocks = [
        json.loads(script.get_text())
        for script in soup.head.find_all("script", type="application/ld+json")
    ]

    assert [block["@type"] for block in blocks] == ["TechArticle", "BreadcrumbList"]
    crumbs = blocks[1]["itemListElement"]
    assert [crumb["item"] for crumb in crumbs] == [
        "https://example.test/docs/",
        "https://example.test/docs/intro/",
    ], "expected breadcrumbs through the docs landing page"


def test_bundle_assets_are_linked(make_site: SiteFactory, tmp_path: Path) -> None:
    """Route bundles add stylesheet links and scripts to matching pages."""
    config = make_site(
        spec={
            "assetRegistry": {
                "bundles": [
                    {"name": "docs", "css": ["/assets/docs.css"], "js": ["/assets/docs.js"]}
                ],
                "routeBundles": [{"match": "/docs/**", "bundles": ["docs"]}],
            }
        }
    )
    out = tmp_path / "out"
    _build(config, out)

    soup = _soup(out / "docs" / "index.html")

    assert soup.find("link", href="/assets/docs.css") is not None, "expected bundle CSS"
    assert soup.find("script", src="/assets/docs.js") is not None, "expected bundle JS"


def test_theme_layout_errors_are_build_errors(make_site: SiteFactory, tmp_path: Path) -> None:
    """A layout that fails to render raises ``BuildIoError``."""
    config = make_site(files={"themes/base/layouts/default.html": "{{ missing() }}"})

    with pytest.raises(BuildIoError, match="Failed to render '/docs'"):
        _build(config, tmp_path / "out")


def test_child_theme_layout_extends_parent(make_site: SiteFactory, tmp_path: Path) -> None:
    """Child layouts can extend parent templates by loader-relative name."""
    config = make_site(
        spec={"defaultTheme": "child"},
        files={
            "themes/child/layouts/docs.html": (
                '{% extends "layouts/default.html" %}'
            ),
        },
    )
    write_json(config.parent / "themes" / "child" / "theme.json", {"extends": "base", "defaultLayout": "docs"})
    out = tmp_path / "out"

    _build(config, out)

    soup = _soup(out / "docs" / "index.html")
    assert soup.title is not None
    assert soup.title.get_text() == "Docs | Test Site", "expected the parent layout"


FAQ_PAGE = """\
---
title: FAQ
description: Common questions.
---

## Using `pageforge build`

**Q:** Does fenced HTML stay text?
A: It does.

Q: Are these lines a definition list?
A: No, they stay a paragraph.

```html
<script>alert("hi")</script>
<div class="raw">kept</div>
```
"""


@pytest.mark.parametrize("prism_source", ["off", "cdn"])
def test_markdown_rendering_rules(
    make_site: SiteFactory, tmp_path: Path, prism_source: str
) -> None:
    """Fenced HTML, code in headings, and Q/A lines render as written."""
    config = make_site(
        spec={"prism": {"source": prism_source}},
        files={"content/docs/faq.md": FAQ_PAGE},
    )
    out = tmp_path / "out"
    _build(config, out)

    soup = _soup(out / "docs" / "faq" / "index.html")
    main = soup.find("main")
    assert main is not None

    code = main.find("pre")
    assert code is not None, "expected the fenced block"
    assert '<script>alert("hi")</script>' in code.get_text(), (
        "expected fenced HTML kept verbatim as text"
    )
    assert main.find("script") is None, "expected no live script from the fence"
    assert main.find("div", class_="raw") is None, "expected no live div from the fence"

    heading_code = main.select_one("h2 code")
    assert heading_code is not None, "expected inline code inside the heading"
    assert heading_code.get_text() == "pageforge build"

    assert main.find("strong", string="Q:") is not None, "expected **Q:** as strong"
    assert "**" not in main.get_text(), "expected no literal asterisks"
    assert main.find("dl") is None, "expected Q/A lines not to become a definition list"
    assert "Are these lines a definition list?" in main.find_all("p")[-1].get_text()


def test_prism_bootstrap_precedes_library_scripts(
    make_site: SiteFactory, tmp_path: Path
) -> None:
    """The manual-mode bootstrap loads before the Prism core and autoloader."""
    out = tmp_path / "out"
    _build(make_site(spec={"prism": {"source": "cdn"}}), out)

    soup = _soup(out / "docs" / "intro" / "index.html")
    scripts = soup.find_all("script")
    bootstrap = next(
        index
        for index, script in enumerate(scripts)
        if script.get("data-pageforge") == "prism-bootstrap"
    )
    sources = [script.get("src") or "" for script in scripts]
    core = next(i for i, src in enumerate(sources) if src.endswith("prism-core.min.js"))
    autoloader = next(
        i for i, src in enumerate(sources) if src.endswith("prism-autoloader.min.js")
    )

    assert bootstrap < core < autoloader, (
        f"expected bootstrap, core, autoloader order; got {sources}"
    )
    assert "window.Prism.manual=true" in scripts[bootstrap].get_text()
    assert sources[core].startswith("https://cdn.jsdelivr.net/npm/prismjs@"), (
        "expected the CDN core script"
    )


def test_tokens_css() -> None:
    """Nested tokens flatten into custom properties."""
    assert tokens_css({"color": {"fg": "#111"}, "space": 4}) == (
        ":root { --color-fg: #111; --space: 4; }"
    )
    assert tokens_css({}) == ""

"""Shared fixtures that lay out small sites on disk.

``make_site`` writes a site spec, a one-layout ``base`` theme, and a
``docs`` collection under ``tmp_path`` and returns the spec path. Tests
pass ``spec`` overrides (merged shallowly over the defaults) and extra
``files`` (relative path to text) to shape the site they need.
"""

from __future__ import annotations

import json
import typing as typ
from pathlib import Path
from textwrap import dedent

import pytest

SiteFactory = typ.Callable[..., Path]

DEFAULT_LAYOUT = dedent(
    """\
    <!doctype html>
    <html lang="en">
    <head>
    <meta charset="utf-8">
    <title>{{ title }} | {{ site.name }}</title>
    {% if description %}
    <meta name="description" content="{{ description }}">
    {% endif %}
    <link rel="canonical" href="{{ canonical_url }}">
    </head>
    <body>
    {% include partial_path("nav") %}
    <main>
    <h1>{{ title }}</h1>
    {{ content }}
    </main>
    </body>
    </html>
    """
)
NAV_PARTIAL = dedent(
    """\
    <nav>
    {% for item in menus.main["items"] %}
    <a href="{{ item.url }}">{{ item.title }}</a>
    {% endfor %}
    </nav>
    """
)
DOCS_INDEX = dedent(
    """\
    ---
    title: Docs
    description: Documentation home.
    date: 2026-01-01
    ---

    Read the [introduction](intro.md).
    """
)
DOCS_INTRO = dedent(
    """\
    ---
    title: Intro
    description: First steps.
    date: 2026-01-02
    tags: [python, tooling]
    ---

    ## Setup

    Back to the [docs home](index.md#top).
    """
)


def write_json(path: Path, payload: typ.Any) -> Path:
    """Write ``payload`` as JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def write_text(path: Path, text: str) -> Path:
    """Write ``text``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def default_spec() -> dict[str, typ.Any]:
    """Return the spec mapping used by :func:`make_site` before overrides."""
    return {
        "name": "Test Site",
        "baseUrl": "https://example.test",
        "defaultTheme": "base",
        "trailingSlash": "always",
        "collections": [{"name": "docs", "output": "/docs"}],
    }


@pytest.fixture
def make_site(tmp_path: Path) -> SiteFactory:
    """Return a factory that writes a site and returns its spec path.

    Parameters
    ----------
    tmp_path : Path
        Per-test temporary directory supplied by pytest.

    Returns
    -------
    Callable[..., Path]
        ``factory(spec=None, files=None, content=True)``; ``content=False``
        skips the default ``docs`` pages.
    """

    def factory(
        spec: dict[str, typ.Any] | None = None,
        files: dict[str, str] | None = None,
        *,
        content: bool = True,
    ) -> Path:
        root = tmp_path / "site"
        write_json(root / "themes" / "base" / "theme.json", {"schemaVersion": 2})
        write_text(root / "themes" / "base" / "layouts" / "default.html", DEFAULT_LAYOUT)
        write_text(root / "themes" / "base" / "partials" / "nav.html", NAV_PARTIAL)
        if content:
            write_text(root / "content" / "docs" / "index.md", DOCS_INDEX)
            write_text(root / "content" / "docs" / "intro.md", DOCS_INTRO)
        for relative, text in (files or {}).items():
            write_text(root / relative, text)
        return write_json(root / "site.json", {**default_spec(), **(spec or {})})

    return factory

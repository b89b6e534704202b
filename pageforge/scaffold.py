"""Write a starter site that builds, verifies, and audits cleanly.

The starter copies the files under ``pageforge/templates/scaffold`` (two
content collections, a ``base`` theme and a child theme that extends it)
and writes ``site.json`` and ``pipeline.json`` for the chosen name, base
URL, and theme.
"""

from __future__ import annotations

import shutil
import typing as typ
from pathlib import Path

from pageforge._constants import REPORTS_DIR
from pageforge.errors import BuildIoError, ConfigError
from pageforge.paths import iter_files, relative_posix
from pageforge.reports import write_json_file

SCAFFOLD_ROOT = Path(__file__).parent / "templates" / "scaffold"
BASE_THEME = "base"
CHILD_THEME_DIR = "themes/site/"
OUTPUT_DIR = "_site"


def site_document(name: str, base_url: str, theme: str) -> dict[str, typ.Any]:
    """Return the ``site.json`` mapping written by :func:`scaffold_site`."""
    return {
        "name": name,
        "baseUrl": base_url.rstrip("/"),
        "defaultTheme": theme,
        "trailingSlash": "always",
        "collections": [
            {"name": "pages", "input": "content/pages", "output": "/"},
            {
                "name": "docs",
                "input": "content/docs",
                "output": "/docs",
                "defaultLayout": "docs",
                "required": True,
            },
        ],
        "navigation": {
            "menus": [
                {
                    "name": "main",
                    "items": [
                        {"title": "Home", "url": "/"},
                        {"title": "Docs", "url": "/docs/"},
                    ],
                }
            ]
        },
        "structuredData": {"enabled": True, "website": True, "breadcrumbs": True},
    }


def pipeline_document() -> dict[str, typ.Any]:
    """Return the ``pipeline.json`` mapping written by :func:`scaffold_site`."""
    return {
        "steps": [
            {"task": "build", "config": "site.json", "out": OUTPUT_DIR, "clean": True},
            {"task": "verify", "config": "site.json"},
            {
                "task": "audit",
                "siteRoot": OUTPUT_DIR,
                "failOnCategories": ["links", "asset"],
                "summaryPath": f"{REPORTS_DIR}/audit.json",
            },
        ]
    }


def scaffold_site(
    out_dir: Path,
    *,
    name: str,
    base_url: str = "",
    theme: str = "site",
    force: bool = False,
) -> list[Path]:
    """Create a starter site in ``out_dir`` and return the written files.

    Parameters
    ----------
    out_dir : Path
        Target directory; created when missing.
    name : str
        Site name written to ``site.json``.
    base_url : str, optional
        Public origin used for canonical URLs and the sitemap.
    theme : str, optional
        Directory name of the child theme. It extends ``base``.
    force : bool, optional
        Write into a directory that already holds files, overwriting any
        scaffold file of the same name.

    Raises
    ------
    ConfigError
        If ``name`` or ``theme`` is unusable, or ``out_dir`` is not empty and
        ``force`` is not set.
    BuildIoError
        If a file cannot be copied.
    """
    if not name.strip():
        msg = "Scaffold requires a site name."
        raise ConfigError(msg)
    theme = theme.strip()
    if not theme or theme == BASE_THEME or "/" in theme or "\\" in theme:
        msg = f"Scaffold theme name '{theme}' is invalid; choose a name other than '{BASE_THEME}'."
        raise ConfigError(msg)
    if out_dir.is_dir() and any(out_dir.iterdir()) and not force:
        msg = f"Scaffold target '{out_dir}' is not empty; pass --force to write anyway."
        raise ConfigError(msg)

    written: list[Path] = []
    for source in iter_files(SCAFFOLD_ROOT):
        relative = relative_posix(source, SCAFFOLD_ROOT)
        if relative.startswith(CHILD_THEME_DIR):
            relative = f"themes/{theme}/{relative.removeprefix(CHILD_THEME_DIR)}"
        target = out_dir / relative
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as exc:
            msg = f"Failed to copy '{source}' to '{target}': {exc}"
            raise BuildIoError(msg) from exc
        written.append(target)

    written.append(write_json_file(out_dir / "site.json", site_document(name, base_url, theme)))
    written.append(write_json_file(out_dir / "pipeline.json", pipeline_document()))
    return written


__all__ = ["pipeline_document", "scaffold_site", "site_document"]

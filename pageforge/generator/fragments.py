"""HTML fragments injected into rendered layouts.

Layouts may emit ``{{ head_html }}`` and ``{{ scripts_html }}`` themselves;
anything they leave out is inserted before ``</head>`` and ``</body>``. The
Prism bootstrap always precedes the Prism core and autoloader tags so
``Prism.manual`` is set before the library loads.
"""

from __future__ import annotations

import json
import re
import typing as typ
from html import escape

if typ.TYPE_CHECKING:
    from pageforge.config import PrismSpec

PRISM_BOOTSTRAP_MARKER = 'data-pageforge="prism-bootstrap"'
PRISM_DELAY_MS = 0
LOCAL_PRISM_DIR = "/assets/vendor/prism"
HEAD_CLOSE = re.compile(r"</head\s*>", re.IGNORECASE)
BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)


def css_tags(hrefs: typ.Iterable[str]) -> str:
    """Return one stylesheet ``<link>`` per href."""
    return "\n".join(
        f'<link rel="stylesheet" href="{escape(href, quote=True)}">' for href in hrefs
    )


def script_tags(sources: typ.Iterable[str]) -> str:
    """Return one ``<script src>`` tag per source."""
    return "\n".join(
        f'<script src="{escape(src, quote=True)}"></script>' for src in sources
    )


def prism_sources(prism: PrismSpec) -> tuple[str, str, str]:
    """Return ``(core, autoloader, languages_path)`` URLs for ``prism``."""
    if prism.source == "local":
        core = prism.core or f"{LOCAL_PRISM_DIR}/prism-core.min.js"
        autoloader = (
            prism.autoloader or f"{LOCAL_PRISM_DIR}/prism-autoloader.min.js"
        )
        languages = prism.languages_path or f"{LOCAL_PRISM_DIR}/components/"
        return core, autoloader, languages
    base = prism.cdn_base.rstrip("/")
    return (
        f"{base}/components/prism-core.min.js",
        f"{base}/plugins/autoloader/prism-autoloader.min.js",
        prism.languages_path or f"{base}/components/",
    )


def prism_css(prism: PrismSpec) -> tuple[str, ...]:
    """Return the stylesheet URLs for the Prism theme."""
    if prism.css:
        return prism.css
    if prism.source == "local":
        return (f"{LOCAL_PRISM_DIR}/prism.min.css",)
    return (f"{prism.cdn_base.rstrip('/')}/themes/prism.min.css",)


def prism_bootstrap(languages_path: str, delay_ms: int = PRISM_DELAY_MS) -> str:
    """Return the inline script that switches Prism to manual highlighting."""
    path = json.dumps(languages_path)
    return (
        f"<script {PRISM_BOOTSTRAP_MARKER}>"
        "window.Prism=window.Prism||{};window.Prism.manual=true;"
        "(function(){function run(){var P=window.Prism;"
        "if(!P||!P.highlightAll){return;}"
        "if(P.plugins&&P.plugins.autoloader){"
        f"P.plugins.autoloader.languages_path={path};}}"
        "P.highlightAll();}"
        "function schedule(){"
        f"setTimeout(run,{int(delay_ms)});}}"
        "if(document.readyState==='complete'){schedule();}"
        "else{window.addEventListener('load',schedule);}})();"
        "</script>"
    )


def prism_scripts(prism: PrismSpec) -> str:
    """Return the bootstrap, core, and autoloader tags in load order."""
    core, autoloader, languages = prism_sources(prism)
    return "\n".join([prism_bootstrap(languages), script_tags([core, autoloader])])


def _insert_before(pattern: re.Pattern[str], html: str, fragment: str) -> str:
    matches = list(pattern.finditer(html))
    if not matches:
        return f"{html}\n{fragment}\n"
    position = matches[-1].start()
    return f"{html[:position]}{fragment}\n{html[position:]}"


def inject_head(html: str, fragment: str) -> str:
    """Insert ``fragment`` before ``</head>`` unless its lines are present."""
    missing = [line for line in fragment.splitlines() if line and line not in html]
    if not missing:
        return html
    return _insert_before(HEAD_CLOSE, html, "\n".join(missing))


def inject_scripts(html: str, fragment: str) -> str:
    """Insert ``fragment`` before ``</body>`` unless the layout emitted it."""
    if not fragment.strip():
        return html
    if fragment in html or (
        PRISM_BOOTSTRAP_MARKER in fragment and PRISM_BOOTSTRAP_MARKER in html
    ):
        return html
    return _insert_before(BODY_CLOSE, html, fragment)


__all__ = [
    "PRISM_BOOTSTRAP_MARKER",
    "css_tags",
    "inject_head",
    "inject_scripts",
    "prism_bootstrap",
    "prism_css",
    "prism_scripts",
    "prism_sources",
    "script_tags",
]

"""Render build plans into static HTML output."""

from .builder import BuildResult, SiteBuilder, build_site
from .link_rewriter import RelativeLinkExtension
from .renderer import HtmlContentRenderer
from .structured_data import build_json_ld

__all__ = [
    "BuildResult",
    "HtmlContentRenderer",
    "RelativeLinkExtension",
    "SiteBuilder",
    "build_json_ld",
    "build_site",
]

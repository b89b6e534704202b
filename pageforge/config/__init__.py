"""Load and validate site specifications for pageforge builds.

This subpackage parses a site's ``site.json`` (or YAML equivalent), follows
``extends`` chains, and produces strongly typed, immutable dataclasses
(:class:`SiteSpec`, :class:`CollectionSpec`, etc.) that the planner
consumes. The primary entry point is :func:`load_site_spec`.

Examples
--------
>>> from pathlib import Path
>>> from pageforge.config import load_site_spec
>>> spec = load_site_spec(Path("site/site.json"))  # doctest: +SKIP
>>> [c.name for c in spec.collections]  # doctest: +SKIP
['pages', 'docs']
"""

from .loader import build_asset_registry, build_redirects, load_site_spec
from .models import (
    AssetBundle,
    AssetRegistry,
    CollectionSpec,
    MenuItemSpec,
    MenuSpec,
    NavigationSpec,
    PrismSpec,
    RedirectSpec,
    RouteBundle,
    SiteSpec,
    StructuredDataSpec,
    TaxonomySpec,
    TrailingSlash,
    VersioningSpec,
    VersionSpec,
)

__all__ = [
    "AssetBundle",
    "AssetRegistry",
    "CollectionSpec",
    "MenuItemSpec",
    "MenuSpec",
    "NavigationSpec",
    "PrismSpec",
    "RedirectSpec",
    "RouteBundle",
    "SiteSpec",
    "StructuredDataSpec",
    "TaxonomySpec",
    "TrailingSlash",
    "VersionSpec",
    "VersioningSpec",
    "build_asset_registry",
    "build_redirects",
    "load_site_spec",
]

"""Typed dataclasses describing a site specification."""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ
from pathlib import Path


class TrailingSlash(enum.Enum):
    """Site-wide policy mapping routes onto URLs and output files.

    ``ALWAYS`` gives ``/a/b/`` served from ``a/b/index.html``; ``NEVER``
    gives ``/a/b`` served from ``a/b.html``; ``IGNORE`` keeps the route as
    declared (``/a/b``) and writes ``a/b/index.html``.
    """

    ALWAYS = "always"
    NEVER = "never"
    IGNORE = "ignore"

    @classmethod
    def parse(cls, value: object | None) -> TrailingSlash:
        """Return the policy for ``value``, defaulting to ``IGNORE``."""
        if isinstance(value, TrailingSlash):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        return cls.IGNORE


@dc.dataclass(frozen=True, slots=True)
class CollectionSpec:
    """Named content group with an input directory and output route prefix."""

    name: str
    input: str
    output: str
    include: tuple[str, ...] = ("**/*.md",)
    exclude: tuple[str, ...] = ()
    default_layout: str | None = None
    required: bool = False
    kind: str = ""
    defaults: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)

    @property
    def type_name(self) -> str:
        """Return the collection type, falling back to its name."""
        return (self.kind or self.name).lower()


@dc.dataclass(frozen=True, slots=True)
class TaxonomySpec:
    """Front-matter list field exposed as browsable term pages."""

    name: str
    base_path: str
    layout: str = "term"


@dc.dataclass(frozen=True, slots=True)
class MenuItemSpec:
    """Single navigation entry, carrying consumer pass-through fields."""

    title: str
    url: str
    children: tuple[MenuItemSpec, ...] = ()
    css_class: str | None = None
    template: str | None = None
    meta: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)

    def to_dict(self) -> dict[str, typ.Any]:
        """Return the JSON shape used by ``site-nav.json``."""
        payload: dict[str, typ.Any] = {"title": self.title, "url": self.url}
        if self.css_class:
            payload["class"] = self.css_class
        if self.template:
            payload["template"] = self.template
        if self.meta:
            payload["meta"] = dict(self.meta)
        if self.children:
            payload["children"] = [child.to_dict() for child in self.children]
        return payload


@dc.dataclass(frozen=True, slots=True)
class MenuSpec:
    """Named menu such as ``main`` or ``footer``."""

    name: str
    items: tuple[MenuItemSpec, ...] = ()
    css_class: str | None = None
    template: str | None = None
    meta: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)


@dc.dataclass(frozen=True, slots=True)
class NavigationSpec:
    """Menus plus footer/region models passed through to templates."""

    menus: tuple[MenuSpec, ...] = ()
    footer: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)
    regions: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)
    template: str | None = None
    css_class: str | None = None
    meta: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)


@dc.dataclass(frozen=True, slots=True)
class AssetBundle:
    """Named set of stylesheets and scripts."""

    name: str
    css: tuple[str, ...] = ()
    js: tuple[str, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class RouteBundle:
    """Glob pattern selecting which bundles load on matching routes."""

    match: str
    bundles: tuple[str, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class AssetRegistry:
    """Bundles and their route bindings."""

    bundles: tuple[AssetBundle, ...] = ()
    route_bundles: tuple[RouteBundle, ...] = ()

    def merged_with(self, override: AssetRegistry | None) -> AssetRegistry:
        """Return a registry where ``override`` bundles replace same-named ones."""
        if override is None:
            return self
        names = {bundle.name.lower() for bundle in override.bundles}
        bundles = tuple(
            bundle for bundle in self.bundles if bundle.name.lower() not in names
        ) + override.bundles
        route_bundles = override.route_bundles or self.route_bundles
        return AssetRegistry(bundles=bundles, route_bundles=route_bundles)


@dc.dataclass(frozen=True, slots=True)
class PrismSpec:
    """Client-side syntax highlighter wiring."""

    source: str = "off"
    cdn_base: str = "https://cdn.jsdelivr.net/npm/prismjs@1.29.0"
    core: str | None = None
    autoloader: str | None = None
    languages_path: str | None = None
    css: tuple[str, ...] = ()

    @property
    def enabled(self) -> bool:
        """Return whether Prism assets should be injected."""
        return self.source in {"cdn", "local"}


@dc.dataclass(frozen=True, slots=True)
class StructuredDataSpec:
    """Toggles for the JSON-LD profiles the builder may emit."""

    enabled: bool = False
    breadcrumbs: bool = True
    website: bool = True
    article: bool = True
    news_article: bool = True
    faq_page: bool = False
    how_to: bool = False
    product: bool = False
    software_application: bool = False


@dc.dataclass(frozen=True, slots=True)
class VersionSpec:
    """One entry in a versioned documentation hub."""

    name: str
    label: str
    url: str
    latest: bool = False
    deprecated: bool = False


@dc.dataclass(frozen=True, slots=True)
class VersioningSpec:
    """Versioned documentation hub declaration."""

    enabled: bool = False
    base_path: str = "/docs"
    current: str | None = None
    versions: tuple[VersionSpec, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class RedirectSpec:
    """Redirect rule, either exact or matching a route prefix."""

    source: str
    target: str
    status: int = 301
    match_type: str = "exact"

    @property
    def is_prefix(self) -> bool:
        """Return whether the rule captures everything below ``source``."""
        return self.match_type in {"prefix", "wildcard"}

    @property
    def base(self) -> str:
        """Return the source without a trailing wildcard."""
        trimmed = self.source.rstrip("*")
        return trimmed.rstrip("/") or "/"

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping."""
        return {
            "from": self.source,
            "to": self.target,
            "status": self.status,
            "matchType": self.match_type,
        }


@dc.dataclass(frozen=True, slots=True)
class SiteSpec:
    """Site-wide declaration loaded from ``site.json``.

    Attributes
    ----------
    name : str
        Human-readable site name.
    root : Path
        Directory holding the spec file; relative paths resolve against it.
    """

    name: str
    root: Path
    source_path: Path | None = None
    schema_version: int = 1
    base_url: str = ""
    content_root: str = "content"
    themes_root: str = "themes"
    data_root: str = "data"
    static_root: str = "static"
    default_theme: str | None = None
    theme_engine: str | None = None
    trailing_slash: TrailingSlash = TrailingSlash.IGNORE
    include_drafts: bool = False
    collections: tuple[CollectionSpec, ...] = ()
    taxonomies: tuple[TaxonomySpec, ...] = ()
    navigation: NavigationSpec = NavigationSpec()
    asset_registry: AssetRegistry | None = None
    prism: PrismSpec = PrismSpec()
    structured_data: StructuredDataSpec = StructuredDataSpec()
    versioning: VersioningSpec = VersioningSpec()
    redirects: tuple[RedirectSpec, ...] = ()
    route_overrides: tuple[RedirectSpec, ...] = ()

    def resolve(self, relative: str) -> Path:
        """Return ``relative`` resolved against the site root."""
        candidate = Path(relative)
        if candidate.is_absolute():
            return candidate
        return self.root / candidate

    def get_collection(self, name: str) -> CollectionSpec:
        """Return the collection called ``name``."""
        for collection in self.collections:
            if collection.name == name:
                return collection
        available = ", ".join(c.name for c in self.collections)
        msg = f"Unknown collection '{name}'. Known collections: {available}"
        raise KeyError(msg)


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
]

"""Load a site specification file into typed dataclasses."""

from __future__ import annotations

import typing as typ
from pathlib import Path

from pageforge.errors import ConfigError

from .helpers import (
    _coerce_bool,
    _coerce_int,
    _deep_merge,
    _lookup,
    _normalize_list,
    _optional_str,
    load_document,
)
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


def load_site_spec(path: Path) -> SiteSpec:
    """Load the site specification describing content, themes, and routes.

    Parameters
    ----------
    path : Path
        Filesystem path to the JSON or YAML specification (for example,
        ``site.json``).

    Returns
    -------
    SiteSpec
        Parsed, immutable specification rooted at the file's directory.

    Raises
    ------
    ConfigError
        If the file is missing or unparsable, an ``extends`` chain loops,
        the ``name`` field is absent, or collection names repeat.

    Examples
    --------
    >>> from pathlib import Path
    >>> from pageforge.config import load_site_spec
    >>> spec = load_site_spec(Path("site.json"))  # doctest: +SKIP
    >>> spec.trailing_slash.value  # doctest: +SKIP
    'always'
    """
    resolved = path.resolve()
    raw = _load_with_extends(resolved, visited=[])
    name = _optional_str(_lookup(raw, "name"))
    if not name:
        msg = f"Site spec '{path}' is missing required 'name'."
        raise ConfigError(msg)

    content_root = _optional_str(_lookup(raw, "contentRoot")) or "content"
    collections = _build_collections(
        _lookup(raw, "collections", default=[]), content_root
    )
    return SiteSpec(
        name=name,
        root=resolved.parent,
        source_path=resolved,
        schema_version=_coerce_int(_lookup(raw, "schemaVersion"), default=1),
        base_url=(_optional_str(_lookup(raw, "baseUrl")) or "").rstrip("/"),
        content_root=content_root,
        themes_root=_optional_str(_lookup(raw, "themesRoot")) or "themes",
        data_root=_optional_str(_lookup(raw, "dataRoot")) or "data",
        static_root=_optional_str(_lookup(raw, "staticRoot", "staticAssets"))
        or "static",
        default_theme=_optional_str(_lookup(raw, "defaultTheme", "theme")),
        theme_engine=_optional_str(_lookup(raw, "themeEngine")),
        trailing_slash=TrailingSlash.parse(_lookup(raw, "trailingSlash")),
        include_drafts=_coerce_bool(_lookup(raw, "includeDrafts")),
        collections=collections,
        taxonomies=_build_taxonomies(_lookup(raw, "taxonomies", default=[])),
        navigation=_build_navigation(_lookup(raw, "navigation", default={})),
        asset_registry=build_asset_registry(_lookup(raw, "assetRegistry")),
        prism=_build_prism(_lookup(raw, "prism", default={})),
        structured_data=_build_structured_data(
            _lookup(raw, "structuredData")
        ),
        versioning=_build_versioning(_lookup(raw, "versioning")),
        redirects=build_redirects(_lookup(raw, "redirects", default=[])),
        route_overrides=build_redirects(_lookup(raw, "routeOverrides", default=[])),
    )


def _load_with_extends(path: Path, *, visited: list[Path]) -> dict[str, typ.Any]:
    """Return the raw mapping for ``path`` merged over its ``extends`` parents."""
    if path in visited:
        chain = " -> ".join(str(item) for item in [*visited, path])
        msg = f"Site spec inheritance loop detected: {chain}"
        raise ConfigError(msg)
    visited.append(path)
    raw = load_document(path)
    parent_ref = _optional_str(_lookup(raw, "extends"))
    if not parent_ref:
        return raw
    parent_path = (path.parent / parent_ref).resolve()
    parent = _load_with_extends(parent_path, visited=visited)
    overlay = {key: value for key, value in raw.items() if key.lower() != "extends"}
    return _deep_merge(parent, overlay)


def _build_collections(
    payload: object, content_root: str
) -> tuple[CollectionSpec, ...]:
    if not isinstance(payload, list):
        return ()
    collections: list[CollectionSpec] = []
    seen: set[str] = set()
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        name = _optional_str(_lookup(entry, "name"))
        if not name:
            msg = "Every collection requires a 'name'."
            raise ConfigError(msg)
        if name in seen:
            msg = f"Collection name '{name}' is declared more than once."
            raise ConfigError(msg)
        seen.add(name)
        include = _normalize_list(_lookup(entry, "include")) or ["**/*.md"]
        defaults = _lookup(entry, "defaults", default={})
        collections.append(
            CollectionSpec(
                name=name,
                input=_optional_str(_lookup(entry, "input"))
                or f"{content_root}/{name}",
                output=_optional_str(_lookup(entry, "output")) or f"/{name}",
                include=tuple(include),
                exclude=tuple(_normalize_list(_lookup(entry, "exclude"))),
                default_layout=_optional_str(_lookup(entry, "defaultLayout", "layout")),
                required=_coerce_bool(_lookup(entry, "required")),
                kind=_optional_str(_lookup(entry, "type", "kind")) or "",
                defaults=dict(defaults) if isinstance(defaults, dict) else {},
            )
        )
    return tuple(collections)


def _build_taxonomies(payload: object) -> tuple[TaxonomySpec, ...]:
    if not isinstance(payload, list):
        return ()
    taxonomies: list[TaxonomySpec] = []
    for entry in payload:
        match entry:
            case str() as name:
                taxonomies.append(TaxonomySpec(name=name, base_path=f"/{name}"))
            case dict():
                name = _optional_str(_lookup(entry, "name"))
                if not name:
                    continue
                taxonomies.append(
                    TaxonomySpec(
                        name=name,
                        base_path=_optional_str(_lookup(entry, "basePath"))
                        or f"/{name}",
                        layout=_optional_str(_lookup(entry, "layout")) or "term",
                    )
                )
            case _:
                continue
    return tuple(taxonomies)


def _build_menu_item(payload: typ.Mapping[str, typ.Any]) -> MenuItemSpec:
    children = _lookup(payload, "children", "items", default=[])
    meta = _lookup(payload, "meta", default={})
    return MenuItemSpec(
        title=_optional_str(_lookup(payload, "title", "text", "label")) or "",
        url=_optional_str(_lookup(payload, "url", "href")) or "",
        children=tuple(
            _build_menu_item(child) for child in children if isinstance(child, dict)
        )
        if isinstance(children, list)
        else (),
        css_class=_optional_str(_lookup(payload, "class", "cssClass")),
        template=_optional_str(_lookup(payload, "template")),
        meta=dict(meta) if isinstance(meta, dict) else {},
    )


def _build_navigation(payload: object) -> NavigationSpec:
    if not isinstance(payload, dict):
        return NavigationSpec()
    menus: list[MenuSpec] = []
    raw_menus = _lookup(payload, "menus", default=[])
    if isinstance(raw_menus, dict):
        raw_menus = [{"name": key, "items": value} for key, value in raw_menus.items()]
    for entry in raw_menus if isinstance(raw_menus, list) else []:
        if not isinstance(entry, dict):
            continue
        items = _lookup(entry, "items", default=[])
        meta = _lookup(entry, "meta", default={})
        menus.append(
            MenuSpec(
                name=_optional_str(_lookup(entry, "name")) or "main",
                items=tuple(
                    _build_menu_item(item) for item in items if isinstance(item, dict)
                )
                if isinstance(items, list)
                else (),
                css_class=_optional_str(_lookup(entry, "class", "cssClass")),
                template=_optional_str(_lookup(entry, "template")),
                meta=dict(meta) if isinstance(meta, dict) else {},
            )
        )
    footer = _lookup(payload, "footer", default={})
    regions = _lookup(payload, "regions", default={})
    meta = _lookup(payload, "meta", default={})
    return NavigationSpec(
        menus=tuple(menus),
        footer=dict(footer) if isinstance(footer, dict) else {},
        regions=dict(regions) if isinstance(regions, dict) else {},
        template=_optional_str(_lookup(payload, "template")),
        css_class=_optional_str(_lookup(payload, "class", "cssClass")),
        meta=dict(meta) if isinstance(meta, dict) else {},
    )


def build_asset_registry(payload: object) -> AssetRegistry | None:
    """Build an AssetRegistry from a spec or theme ``assets`` mapping."""
    if not isinstance(payload, dict):
        return None
    bundles = []
    for entry in _lookup(payload, "bundles", default=[]) or []:
        if not isinstance(entry, dict):
            continue
        name = _optional_str(_lookup(entry, "name"))
        if not name:
            continue
        bundles.append(
            AssetBundle(
                name=name,
                css=tuple(_normalize_list(_lookup(entry, "css"))),
                js=tuple(_normalize_list(_lookup(entry, "js"))),
            )
        )
    route_bundles = []
    for entry in _lookup(payload, "routeBundles", default=[]) or []:
        if not isinstance(entry, dict):
            continue
        pattern = _optional_str(_lookup(entry, "match", "route"))
        if not pattern:
            continue
        route_bundles.append(
            RouteBundle(
                match=pattern,
                bundles=tuple(_normalize_list(_lookup(entry, "bundles", "bundle"))),
            )
        )
    return AssetRegistry(bundles=tuple(bundles), route_bundles=tuple(route_bundles))


def _build_prism(payload: object) -> PrismSpec:
    if not isinstance(payload, dict):
        return PrismSpec()
    base = PrismSpec()
    local = _lookup(payload, "local", default={})
    local = local if isinstance(local, dict) else {}
    return PrismSpec(
        source=(_optional_str(_lookup(payload, "source", "mode")) or "off").lower(),
        cdn_base=(_optional_str(_lookup(payload, "cdnBase", "cdn")) or base.cdn_base)
        .rstrip("/"),
        core=_optional_str(_lookup(local, "core")),
        autoloader=_optional_str(_lookup(local, "autoloader")),
        languages_path=_optional_str(_lookup(local, "languagesPath")),
        css=tuple(_normalize_list(_lookup(payload, "css"))),
    )


def _build_structured_data(payload: object) -> StructuredDataSpec:
    if not isinstance(payload, dict):
        return StructuredDataSpec()
    base = StructuredDataSpec()
    return StructuredDataSpec(
        enabled=_coerce_bool(_lookup(payload, "enabled"), default=True),
        breadcrumbs=_coerce_bool(
            _lookup(payload, "breadcrumbs"), default=base.breadcrumbs
        ),
        website=_coerce_bool(_lookup(payload, "website"), default=base.website),
        article=_coerce_bool(_lookup(payload, "article"), default=base.article),
        news_article=_coerce_bool(
            _lookup(payload, "newsArticle"), default=base.news_article
        ),
        faq_page=_coerce_bool(_lookup(payload, "faqPage", "faq"), default=base.faq_page),
        how_to=_coerce_bool(_lookup(payload, "howTo"), default=base.how_to),
        product=_coerce_bool(_lookup(payload, "product"), default=base.product),
        software_application=_coerce_bool(
            _lookup(payload, "softwareApplication"),
            default=base.software_application,
        ),
    )


def _build_versioning(payload: object) -> VersioningSpec:
    if not isinstance(payload, dict):
        return VersioningSpec()
    versions = []
    for entry in _lookup(payload, "versions", default=[]) or []:
        if not isinstance(entry, dict):
            continue
        name = _optional_str(_lookup(entry, "name"))
        if not name:
            continue
        versions.append(
            VersionSpec(
                name=name,
                label=_optional_str(_lookup(entry, "label")) or name,
                url=_optional_str(_lookup(entry, "url")) or "",
                latest=_coerce_bool(_lookup(entry, "latest")),
                deprecated=_coerce_bool(_lookup(entry, "deprecated")),
            )
        )
    return VersioningSpec(
        enabled=_coerce_bool(_lookup(payload, "enabled"), default=True),
        base_path="/" + (_optional_str(_lookup(payload, "basePath")) or "docs").strip("/"),
        current=_optional_str(_lookup(payload, "current")),
        versions=tuple(versions),
    )


def build_redirects(payload: object) -> tuple[RedirectSpec, ...]:
    """Build redirect rules from a list of ``{from, to, status}`` mappings."""
    if not isinstance(payload, list):
        return ()
    redirects: list[RedirectSpec] = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        source = _optional_str(_lookup(entry, "from", "source"))
        target = _optional_str(_lookup(entry, "to", "target", "destination"))
        if not source or not target:
            continue
        match_type = (_optional_str(_lookup(entry, "matchType", "match")) or "").lower()
        if not match_type:
            match_type = "wildcard" if source.endswith("*") else "exact"
        redirects.append(
            RedirectSpec(
                source=source if source.startswith("/") else f"/{source}",
                target=target,
                status=_coerce_int(_lookup(entry, "status", "statusCode"), default=301),
                match_type=match_type,
            )
        )
    return tuple(redirects)


__all__ = ["build_asset_registry", "build_redirects", "load_site_spec"]

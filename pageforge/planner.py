"""Turn a site specification into an immutable, render-ready build plan.

The planner resolves the theme chain, loads every collection, binds each
content item to a layout, computes routes and output paths under the
site's trailing-slash policy, matches asset bundles, selects JSON-LD
profiles, and assembles navigation, taxonomy, redirect, and versioning
models. Planning is deterministic: pages keep collection declaration order
followed by sorted file order, so two plans of the same tree compare equal.

Examples
--------
>>> from pageforge.config import TrailingSlash
>>> from pageforge.planner import output_location
>>> output_location("/docs/intro", TrailingSlash.ALWAYS)
('/docs/intro/', 'docs/intro/index.html')
>>> output_location("/docs/intro", TrailingSlash.NEVER)
('/docs/intro', 'docs/intro.html')
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from pathlib import Path

from pageforge.config import (
    AssetRegistry,
    CollectionSpec,
    MenuItemSpec,
    MenuSpec,
    RedirectSpec,
    SiteSpec,
    StructuredDataSpec,
    TrailingSlash,
    VersioningSpec,
)
from pageforge.content import ContentItem, DataNamespace, load_collection, load_data
from pageforge.errors import LayoutNotFoundError, PlanError
from pageforge.markdown_parser import _slugify
from pageforge.paths import glob_match, glob_specificity, is_safe_relative
from pageforge.themes import (
    ThemeManifest,
    load_theme,
    resolve_assets,
    resolve_engine,
    resolve_layout,
    resolve_tokens,
)

SUPPORTED_ENGINES: dict[str, str] = {"jinja": "jinja", "jinja2": "jinja"}
FALLBACK_ROUTE_PATTERNS = frozenset({"/**", "**", "/*", "*"})
ARTICLE_TYPES = frozenset({"blog", "posts", "post", "articles", "article"})
PROFILE_NAMES: dict[str, str] = {
    "article": "Article",
    "blogposting": "BlogPosting",
    "news": "NewsArticle",
    "newsarticle": "NewsArticle",
    "techarticle": "TechArticle",
    "faq": "FAQPage",
    "faqpage": "FAQPage",
    "howto": "HowTo",
    "product": "Product",
    "software": "SoftwareApplication",
    "softwareapplication": "SoftwareApplication",
    "webpage": "WebPage",
    "website": "WebSite",
}
DISABLED_VALUES = frozenset({"false", "none", "off", "no"})


@dc.dataclass(frozen=True, slots=True)
class PagePlan:
    """One planned output file.

    Attributes
    ----------
    route : str
        Canonical route without a trailing slash (``/`` for the root).
    url : str
        Public URL after applying the trailing-slash policy.
    output_path : str
        POSIX path relative to the output root.
    kind : str
        ``"page"`` for content items, ``"term"`` for taxonomy term pages.
    """

    route: str
    url: str
    output_path: str
    layout: str
    layout_path: Path
    title: str
    source: str | None = None
    collection: str | None = None
    item: ContentItem | None = None
    css: tuple[str, ...] = ()
    js: tuple[str, ...] = ()
    structured_data: tuple[str, ...] = ()
    kind: str = "page"
    taxonomy: str | None = None
    term: str | None = None
    term_routes: tuple[str, ...] = ()

    @property
    def description(self) -> str | None:
        """Return the front matter description, if any."""
        return self.item.front_matter.description if self.item else None

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping with stable key order."""
        payload: dict[str, typ.Any] = {
            "kind": self.kind,
            "route": self.route,
            "url": self.url,
            "output": self.output_path,
            "layout": self.layout,
            "title": self.title,
            "css": list(self.css),
            "js": list(self.js),
            "structuredData": list(self.structured_data),
        }
        if self.source:
            payload["source"] = self.source
            payload["collection"] = self.collection
        if self.kind == "term":
            payload["taxonomy"] = self.taxonomy
            payload["term"] = self.term
            payload["pages"] = list(self.term_routes)
        return payload


@dc.dataclass(frozen=True, slots=True)
class TermModel:
    """A taxonomy term and the routes that carry it."""

    name: str
    slug: str
    url: str
    routes: tuple[str, ...]

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping."""
        return {
            "name": self.name,
            "slug": self.slug,
            "url": self.url,
            "count": len(self.routes),
            "pages": list(self.routes),
        }


@dc.dataclass(frozen=True, slots=True)
class TaxonomyModel:
    """Terms collected for one declared taxonomy."""

    name: str
    base_path: str
    terms: tuple[TermModel, ...] = ()

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping."""
        return {
            "name": self.name,
            "basePath": self.base_path,
            "terms": [term.to_dict() for term in self.terms],
        }


@dc.dataclass(frozen=True, slots=True)
class NavigationModel:
    """Resolved menus plus footer/region models and pass-through fields."""

    menus: tuple[MenuSpec, ...] = ()
    footer: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)
    regions: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)
    template: str | None = None
    css_class: str | None = None
    meta: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)
    generated_menu: bool = False

    def menu(self, name: str) -> MenuSpec | None:
        """Return the menu called ``name``."""
        for menu in self.menus:
            if menu.name == name:
                return menu
        return None

    def iter_items(self) -> typ.Iterator[MenuItemSpec]:
        """Yield every menu item depth-first."""
        stack = [item for menu in self.menus for item in reversed(menu.items)]
        while stack:
            item = stack.pop()
            yield item
            stack.extend(reversed(item.children))

    def to_dict(self) -> dict[str, typ.Any]:
        """Return the ``site-nav.json`` navigation shape."""
        menus: dict[str, typ.Any] = {}
        for menu in self.menus:
            entry: dict[str, typ.Any] = {
                "items": [item.to_dict() for item in menu.items]
            }
            if menu.css_class:
                entry["class"] = menu.css_class
            if menu.template:
                entry["template"] = menu.template
            if menu.meta:
                entry["meta"] = dict(menu.meta)
            menus[menu.name] = entry
        return {
            "menus": menus,
            "footer": dict(self.footer),
            "regions": dict(self.regions),
            "template": self.template,
            "class": self.css_class,
            "meta": dict(self.meta),
        }


@dc.dataclass(frozen=True, slots=True)
class BuildPlan:
    """The single artefact handed from the planner to the builder and verifier."""

    spec: SiteSpec
    theme: ThemeManifest
    engine: str
    pages: tuple[PagePlan, ...]
    navigation: NavigationModel
    assets: AssetRegistry
    taxonomies: tuple[TaxonomyModel, ...] = ()
    redirects: tuple[RedirectSpec, ...] = ()
    versioning: VersioningSpec = VersioningSpec()
    data: DataNamespace = dc.field(default_factory=DataNamespace)
    tokens: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)
    warnings: tuple[str, ...] = ()
    parse_warnings: tuple[str, ...] = ()
    empty_collections: tuple[str, ...] = ()
    config_path: Path | None = None

    @property
    def root(self) -> Path:
        """Return the site root directory."""
        return self.spec.root

    def page_for_route(self, route: str) -> PagePlan | None:
        """Return the page whose route or URL equals ``route``."""
        wanted = normalize_route(route)
        for page in self.pages:
            if page.route == wanted:
                return page
        return None

    def page_for_source(self, source: str) -> PagePlan | None:
        """Return the page built from the content file ``source``."""
        for page in self.pages:
            if page.source == source:
                return page
        return None

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a deterministic JSON-ready view of the plan."""
        return {
            "site": self.spec.name,
            "baseUrl": self.spec.base_url,
            "theme": self.theme.name,
            "engine": self.engine,
            "trailingSlash": self.spec.trailing_slash.value,
            "pages": [page.to_dict() for page in self.pages],
            "navigation": self.navigation.to_dict(),
            "taxonomies": [taxonomy.to_dict() for taxonomy in self.taxonomies],
            "redirects": [redirect.to_dict() for redirect in self.redirects],
            "versioning": versioning_to_dict(self.versioning),
            "tokens": dict(self.tokens),
            "data": sorted(self.data.values),
            "warnings": list(self.warnings),
        }


def normalize_route(route: str) -> str:
    """Return ``route`` with a single leading slash and no trailing slash.

    Examples
    --------
    >>> normalize_route("docs//intro/")
    '/docs/intro'
    >>> normalize_route("")
    '/'
    """
    segments = [segment for segment in route.split("/") if segment]
    return "/" + "/".join(segments)


def join_route(prefix: str, slug: str) -> str:
    """Combine a collection output prefix and an item slug into a route."""
    return normalize_route(f"{prefix}/{slug}")


def output_location(route: str, policy: TrailingSlash) -> tuple[str, str]:
    """Return ``(url, output_path)`` for ``route`` under ``policy``.

    The root route always writes ``index.html`` and ``/404`` always writes
    ``404.html`` so hosts can find the error page.
    """
    canonical = normalize_route(route)
    if canonical == "/":
        return "/", "index.html"
    if canonical == "/404":
        return "/404.html", "404.html"
    relative = canonical.lstrip("/")
    match policy:
        case TrailingSlash.ALWAYS:
            return f"{canonical}/", f"{relative}/index.html"
        case TrailingSlash.NEVER:
            return canonical, f"{relative}.html"
        case _:
            return canonical, f"{relative}/index.html"


def select_route_bundles(
    registry: AssetRegistry, route: str, url: str
) -> tuple[str, ...]:
    """Return the bundle names bound to the most specific matching pattern.

    Patterns are tried against the canonical route and its trailing-slash
    form. Catch-all patterns such as ``/**`` only apply when nothing more
    specific matches; ties keep declaration order.
    """
    candidates = {route, url, route.rstrip("/") + "/"}
    best: tuple[tuple[int, int], int] | None = None
    chosen: tuple[str, ...] = ()
    fallback: tuple[str, ...] | None = None
    for position, binding in enumerate(registry.route_bundles):
        if not any(glob_match(binding.match, value) for value in candidates):
            continue
        if binding.match.strip() in FALLBACK_ROUTE_PATTERNS:
            if fallback is None:
                fallback = binding.bundles
            continue
        rank = (glob_specificity(binding.match), -position)
        if best is None or rank > best:
            best = rank
            chosen = binding.bundles
    if best is None:
        return fallback or ()
    return chosen


def resolve_bundle_assets(
    registry: AssetRegistry, names: typ.Iterable[str]
) -> tuple[tuple[str, ...], tuple[str, ...], list[str]]:
    """Return ``(css, js, unknown_names)`` for the given bundle names."""
    index = {bundle.name.lower(): bundle for bundle in registry.bundles}
    css: dict[str, None] = {}
    js: dict[str, None] = {}
    unknown: list[str] = []
    for name in names:
        bundle = index.get(name.lower())
        if bundle is None:
            unknown.append(name)
            continue
        css.update(dict.fromkeys(bundle.css))
        js.update(dict.fromkeys(bundle.js))
    return tuple(css), tuple(js), unknown


def _profile_name(value: str) -> str:
    key = value.replace("-", "").replace("_", "").replace(" ", "").lower()
    return PROFILE_NAMES.get(key, value)


def _collection_profile(
    collection: CollectionSpec, item: ContentItem, toggles: StructuredDataSpec
) -> str | None:
    kind = collection.type_name
    meta = item.front_matter
    is_news = kind == "news" or bool(meta.meta_value("news"))
    if is_news:
        if toggles.news_article:
            return "NewsArticle"
        return "Article" if toggles.article else None
    if kind in ARTICLE_TYPES and toggles.article:
        return "Article"
    if kind == "docs" and toggles.article:
        return "TechArticle"
    return None


def select_structured_data(
    toggles: StructuredDataSpec,
    collection: CollectionSpec,
    item: ContentItem,
    route: str,
) -> tuple[str, ...]:
    """Return the JSON-LD profile names emitted for one content page.

    Front matter ``structured_data`` (or ``meta.schema.type``) wins over the
    collection type's default; ``false`` disables every profile for the page.
    Data-driven profiles (FAQ, HowTo, Product, SoftwareApplication) are added
    when their toggle is on and the page carries the matching ``meta`` data.
    """
    if not toggles.enabled:
        return ()
    front = item.front_matter
    explicit: typ.Any = front.structured_data
    if explicit is None:
        explicit = front.meta_value("schema.type")
    if explicit is False or (
        isinstance(explicit, str) and explicit.strip().lower() in DISABLED_VALUES
    ):
        return ()

    profiles: dict[str, None] = {}
    if isinstance(explicit, str) and explicit.strip():
        profiles[_profile_name(explicit.strip())] = None
    else:
        primary = _collection_profile(collection, item, toggles)
        if primary:
            profiles[primary] = None

    if toggles.faq_page and front.meta_value("faq.questions"):
        profiles["FAQPage"] = None
    if toggles.how_to and front.meta_value("howto.steps"):
        profiles["HowTo"] = None
    if toggles.product and front.meta_value("product.name"):
        profiles["Product"] = None
    if toggles.software_application and front.meta_value("software.name"):
        profiles["SoftwareApplication"] = None
    if route == "/" and toggles.website:
        profiles["WebSite"] = None
    if toggles.breadcrumbs and route.count("/") > 1:
        profiles["BreadcrumbList"] = None
    return tuple(profiles)


def versioning_to_dict(versioning: VersioningSpec) -> dict[str, typ.Any] | None:
    """Return the versioning hub model written to ``site-nav.json``."""
    if not versioning.enabled:
        return None
    return {
        "basePath": versioning.base_path,
        "current": versioning.current,
        "versions": [
            {
                "name": version.name,
                "label": version.label,
                "url": version.url,
                "latest": version.latest,
                "deprecated": version.deprecated,
                "current": version.name == versioning.current,
            }
            for version in versioning.versions
        ],
    }


def validate_versioning(versioning: VersioningSpec) -> VersioningSpec:
    """Return ``versioning`` with defaults filled in, or raise ``PlanError``.

    An enabled hub must declare versions, at most one of them ``latest``,
    and ``current`` must name a declared version. When ``current`` is
    omitted the ``latest`` version is used.
    """
    if not versioning.enabled:
        return versioning
    if not versioning.versions:
        msg = "invalid versioning hub: no versions declared."
        raise PlanError(msg)
    latest = [version for version in versioning.versions if version.latest]
    if len(latest) > 1:
        names = ", ".join(version.name for version in latest)
        msg = f"invalid versioning hub: more than one latest version ({names})."
        raise PlanError(msg)
    current = versioning.current or (latest[0].name if latest else None)
    names = [version.name for version in versioning.versions]
    if current not in names:
        msg = (
            f"invalid versioning hub: current version '{current}' is not one of "
            f"{', '.join(names)}."
        )
        raise PlanError(msg)
    versions = tuple(
        version
        if version.url
        else dc.replace(version, url=f"{versioning.base_path}/{version.name}/")
        for version in versioning.versions
    )
    return dc.replace(versioning, current=current, versions=versions)


def resolve_engine_id(spec: SiteSpec, theme: ThemeManifest) -> str:
    """Return the registered engine id for the spec and theme."""
    requested = spec.theme_engine or resolve_engine(theme) or "jinja"
    engine = SUPPORTED_ENGINES.get(requested.strip().lower())
    if engine is None:
        supported = ", ".join(sorted(SUPPORTED_ENGINES))
        msg = f"Unknown template engine '{requested}'. Supported engines: {supported}."
        raise PlanError(msg)
    return engine


def _resolve_theme(spec: SiteSpec) -> ThemeManifest:
    if not spec.default_theme:
        msg = f"Site '{spec.name}' does not name a defaultTheme."
        raise PlanError(msg)
    return load_theme(spec.resolve(spec.themes_root) / spec.default_theme)


@dc.dataclass(slots=True)
class _PlanState:
    spec: SiteSpec
    theme: ThemeManifest
    assets: AssetRegistry
    pages: list[PagePlan] = dc.field(default_factory=list)
    warnings: list[str] = dc.field(default_factory=list)
    parse_warnings: list[str] = dc.field(default_factory=list)
    empty: list[str] = dc.field(default_factory=list)

    def bundles_for(self, route: str, url: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
        names = select_route_bundles(self.assets, route, url)
        css, js, unknown = resolve_bundle_assets(self.assets, names)
        for name in unknown:
            warning = f"Route '{route}' references unknown asset bundle '{name}'."
            if warning not in self.warnings:
                self.warnings.append(warning)
        return css, js


def plan_site(spec: SiteSpec, config_path: Path | None = None) -> BuildPlan:
    """Resolve ``spec`` into a :class:`BuildPlan`.

    Parameters
    ----------
    spec : SiteSpec
        Loaded site specification.
    config_path : Path, optional
        Path of the spec file, recorded so later pipeline steps can reuse
        the plan for the same configuration.

    Returns
    -------
    BuildPlan
        Immutable plan whose page order is collection declaration order
        followed by file enumeration order.

    Raises
    ------
    PlanError
        If the theme, a layout, a required collection, the template engine,
        or the versioning hub cannot be resolved, or if two pages share an
        output path or a path escapes the output root.
    """
    theme = _resolve_theme(spec)
    engine = resolve_engine_id(spec, theme)
    state = _PlanState(
        spec=spec,
        theme=theme,
        assets=resolve_assets(theme).merged_with(spec.asset_registry),
    )

    for collection in spec.collections:
        _plan_collection(state, collection)

    taxonomies = _plan_taxonomies(state)
    versioning = validate_versioning(spec.versioning)
    navigation = _build_navigation(spec, state.pages)
    redirects = _build_redirects(spec, state.pages, versioning)
    _check_outputs(state.pages)

    data = load_data(spec.resolve(spec.data_root))
    state.warnings.extend(data.warnings)
    return BuildPlan(
        spec=spec,
        theme=theme,
        engine=engine,
        pages=tuple(state.pages),
        navigation=navigation,
        assets=state.assets,
        taxonomies=taxonomies,
        redirects=redirects,
        versioning=versioning,
        data=data,
        tokens=resolve_tokens(theme),
        warnings=tuple(state.warnings),
        parse_warnings=tuple(state.parse_warnings),
        empty_collections=tuple(state.empty),
        config_path=config_path.resolve() if config_path else spec.source_path,
    )


def _plan_collection(state: _PlanState, collection: CollectionSpec) -> None:
    spec = state.spec
    content = load_collection(spec.root, collection)
    state.warnings.extend(content.warnings)
    state.parse_warnings.extend(content.warnings)
    items = [item for item in content.items if spec.include_drafts or not item.draft]
    if not items:
        state.empty.append(collection.name)
    for item in items:
        layout = (
            item.front_matter.layout
            or collection.default_layout
            or state.theme.default_layout
        )
        layout_path = resolve_layout(state.theme, layout)
        route = join_route(collection.output, item.slug)
        url, output_path = output_location(route, spec.trailing_slash)
        css, js = state.bundles_for(route, url)
        state.pages.append(
            PagePlan(
                route=route,
                url=url,
                output_path=output_path,
                layout=layout,
                layout_path=layout_path,
                title=item.title or item.slug.rsplit("/", 1)[-1],
                source=item.source,
                collection=collection.name,
                item=item,
                css=css,
                js=js,
                structured_data=select_structured_data(
                    spec.structured_data, collection, item, route
                ),
            )
        )


def _plan_taxonomies(state: _PlanState) -> tuple[TaxonomyModel, ...]:
    spec = state.spec
    models: list[TaxonomyModel] = []
    content_pages = list(state.pages)
    for taxonomy in spec.taxonomies:
        terms: dict[str, tuple[str, list[str]]] = {}
        for page in content_pages:
            if page.item is None:
                continue
            for term in page.item.front_matter.list_field(taxonomy.name):
                slug = _slugify(term)
                name, routes = terms.setdefault(slug, (term, []))
                if page.route not in routes:
                    routes.append(page.route)
        try:
            layout = taxonomy.layout
            layout_path = resolve_layout(state.theme, layout)
        except LayoutNotFoundError:
            layout = state.theme.default_layout
            layout_path = resolve_layout(state.theme, layout)

        term_models: list[TermModel] = []
        for slug in sorted(terms):
            name, routes = terms[slug]
            route = join_route(taxonomy.base_path, slug)
            url, output_path = output_location(route, spec.trailing_slash)
            css, js = state.bundles_for(route, url)
            term_models.append(TermModel(name=name, slug=slug, url=url, routes=tuple(routes)))
            state.pages.append(
                PagePlan(
                    route=route,
                    url=url,
                    output_path=output_path,
                    layout=layout,
                    layout_path=layout_path,
                    title=name,
                    css=css,
                    js=js,
                    kind="term",
                    taxonomy=taxonomy.name,
                    term=name,
                    term_routes=tuple(routes),
                )
            )
        models.append(
            TaxonomyModel(
                name=taxonomy.name,
                base_path=normalize_route(taxonomy.base_path),
                terms=tuple(term_models),
            )
        )
    return tuple(models)


def _build_navigation(spec: SiteSpec, pages: list[PagePlan]) -> NavigationModel:
    nav = spec.navigation
    menus = nav.menus
    generated = False
    if not menus:
        menus = (MenuSpec(name="main", items=_automatic_menu(spec, pages)),)
        generated = True
    return NavigationModel(
        menus=menus,
        footer=nav.footer,
        regions=nav.regions,
        template=nav.template,
        css_class=nav.css_class,
        meta=nav.meta,
        generated_menu=generated,
    )


def _automatic_menu(spec: SiteSpec, pages: list[PagePlan]) -> tuple[MenuItemSpec, ...]:
    items: list[MenuItemSpec] = []
    for collection in spec.collections:
        members = [page for page in pages if page.collection == collection.name]
        if not members:
            continue
        prefix = normalize_route(collection.output)
        landing = next((page for page in members if page.route == prefix), None)
        if landing is not None:
            items.append(MenuItemSpec(title=landing.title, url=landing.url))
        else:
            title = collection.name.replace("-", " ").replace("_", " ").title()
            items.append(MenuItemSpec(title=title, url=members[0].url))
    return tuple(items)


def _build_redirects(
    spec: SiteSpec, pages: list[PagePlan], versioning: VersioningSpec
) -> tuple[RedirectSpec, ...]:
    redirects = list(spec.route_overrides) + list(spec.redirects)
    for page in pages:
        if page.item is None:
            continue
        for alias in page.item.front_matter.aliases:
            redirects.append(
                RedirectSpec(source=normalize_route(alias), target=page.url)
            )
    if versioning.enabled and versioning.current:
        current = next(
            version for version in versioning.versions if version.name == versioning.current
        )
        redirects.append(
            RedirectSpec(
                source=f"{versioning.base_path.rstrip('/')}/latest/*",
                target=current.url,
                status=302,
                match_type="wildcard",
            )
        )
    return tuple(redirects)


def _check_outputs(pages: list[PagePlan]) -> None:
    owners: dict[str, str] = {}
    for page in pages:
        if not is_safe_relative(page.output_path):
            msg = f"Output path '{page.output_path}' escapes the output root."
            raise PlanError(msg)
        key = page.output_path.lower()
        owner = page.source or page.route
        if key in owners:
            msg = (
                f"Duplicate output path '{page.output_path}' planned for "
                f"'{owners[key]}' and '{owner}'."
            )
            raise PlanError(msg)
        owners[key] = owner


__all__ = [
    "SUPPORTED_ENGINES",
    "BuildPlan",
    "NavigationModel",
    "PagePlan",
    "TaxonomyModel",
    "TermModel",
    "join_route",
    "normalize_route",
    "output_location",
    "plan_site",
    "resolve_bundle_assets",
    "resolve_engine_id",
    "select_route_bundles",
    "select_structured_data",
    "validate_versioning",
    "versioning_to_dict",
]

"""Tests for the site planner: routes, outputs, bundles, and redirects."""

from __future__ import annotations

import json
from pathlib import Path
from textwrap import dedent

import pytest

from pageforge.config import AssetRegistry, RouteBundle, TrailingSlash, load_site_spec
from pageforge.errors import EmptyCollectionError, PlanError
from pageforge.planner import (
    normalize_route,
    output_location,
    plan_site,
    select_route_bundles,
)

from .conftest import SiteFactory


@pytest.mark.parametrize(
    ("route", "policy", "expected"),
    [
        ("/docs/intro", TrailingSlash.ALWAYS, ("/docs/intro/", "docs/intro/index.html")),
        ("/docs/intro", TrailingSlash.NEVER, ("/docs/intro", "docs/intro.html")),
        ("/docs/intro", TrailingSlash.IGNORE, ("/docs/intro", "docs/intro/index.html")),
        ("/", TrailingSlash.NEVER, ("/", "index.html")),
        ("/404", TrailingSlash.ALWAYS, ("/404.html", "404.html")),
    ],
)
def test_output_location(
    route: str, policy: TrailingSlash, expected: tuple[str, str]
) -> None:
    """Each trailing-slash policy maps routes to a URL and an output file."""
    assert output_location(route, policy) == expected, (
        f"unexpected location for {route} under {policy.value}"
    )


def test_normalize_route_collapses_slashes() -> None:
    """Routes gain one leading slash and lose trailing slashes."""
    assert normalize_route("docs//intro/") == "/docs/intro"
    assert normalize_route("") == "/"


def test_plan_orders_pages_by_collection_and_path(make_site: SiteFactory) -> None:
    """Pages follow collection order, then POSIX file order."""
    plan = plan_site(load_site_spec(make_site()))

    assert [(page.route, page.url, page.output_path) for page in plan.pages] == [
        ("/docs", "/docs/", "docs/index.html"),
        ("/docs/intro", "/docs/intro/", "docs/intro/index.html"),
    ], "expected index.md to plan before intro.md"
    assert plan.pages[1].source == "content/docs/intro.md", (
        "expected sources relative to the site root"
    )
    assert plan.pages[1].layout == "default", "expected the theme default layout"


def test_plan_is_deterministic(make_site: SiteFactory) -> None:
    """Planning the same spec twice yields identical plans."""
    config = make_site(spec={"taxonomies": ["tags"]})

    first = plan_site(load_site_spec(config)).to_dict()
    second = plan_site(load_site_spec(config)).to_dict()

    assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True), (
        "expected two plans of one spec to match"
    )


def test_missing_default_theme_is_a_plan_error(make_site: SiteFactory) -> None:
    """A spec without ``defaultTheme`` cannot be planned."""
    spec = load_site_spec(make_site(spec={"defaultTheme": None}))

    with pytest.raises(PlanError, match="defaultTheme"):
        plan_site(spec)


def test_duplicate_output_paths_are_rejected(make_site: SiteFactory) -> None:
    """Two collections writing the same file abort planning."""
    config = make_site(
        spec={
            "collections": [
                {"name": "docs", "output": "/guide"},
                {"name": "guide", "output": "/guide"},
            ]
        },
        files={"content/guide/index.md": "# Guide\n"},
    )

    with pytest.raises(PlanError, match="Duplicate output path 'guide/index.html'"):
        plan_site(load_site_spec(config))


def test_required_collection_without_content(make_site: SiteFactory) -> None:
    """A required collection with no files raises ``EmptyCollectionError``."""
    config = make_site(
        spec={"collections": [{"name": "docs", "output": "/docs", "required": True}]},
        content=False,
    )

    with pytest.raises(EmptyCollectionError, match="'docs'"):
        plan_site(load_site_spec(config))


def test_drafts_are_skipped_unless_included(make_site: SiteFactory) -> None:
    """Front matter ``draft: true`` keeps a page out of the plan by default."""
    files = {"content/docs/wip.md": "---\ntitle: WIP\ndraft: true\n---\nSoon.\n"}

    hidden = plan_site(load_site_spec(make_site(files=files)))
    shown = plan_site(load_site_spec(make_site(spec={"includeDrafts": True}, files=files)))

    assert hidden.page_for_route("/docs/wip") is None, "expected drafts to be skipped"
    assert shown.page_for_route("/docs/wip") is not None, "expected drafts to be planned"


def test_most_specific_route_bundle_wins() -> None:
    """Catch-all bindings only apply when nothing narrower matches."""
    registry = AssetRegistry(
        route_bundles=(
            RouteBundle(match="/**", bundles=("base",)),
            RouteBundle(match="/docs/**", bundles=("docs",)),
            RouteBundle(match="/docs/api/**", bundles=("api",)),
        )
    )

    assert select_route_bundles(registry, "/docs/api/io", "/docs/api/io/") == ("api",)
    assert select_route_bundles(registry, "/docs/intro", "/docs/intro/") == ("docs",)
    assert select_route_bundles(registry, "/about", "/about/") == ("base",)


def test_bundles_resolve_to_page_assets(make_site: SiteFactory) -> None:
    """Pages carry the CSS and JS of their bundles; unknown names warn."""
    config = make_site(
        spec={
            "assetRegistry": {
                "bundles": [
                    {"name": "docs", "css": ["/assets/docs.css"], "js": ["/assets/docs.js"]}
                ],
                "routeBundles": [{"match": "/docs/**", "bundles": ["docs", "missing"]}],
            }
        }
    )

    plan = plan_site(load_site_spec(config))
    intro = plan.page_for_route("/docs/intro")

    assert intro is not None
    assert intro.css == ("/assets/docs.css",), "expected the docs stylesheet"
    assert intro.js == ("/assets/docs.js",), "expected the docs script"
    assert any("unknown asset bundle 'missing'" in warning for warning in plan.warnings), (
        "expected a warning for the unknown bundle"
    )


def test_structured_data_profiles(make_site: SiteFactory) -> None:
    """Docs pages are TechArticles and nested routes add breadcrumbs."""
    config = make_site(spec={"structuredData": {"enabled": True}})

    plan = plan_site(load_site_spec(config))

    assert [page.structured_data for page in plan.pages] == [
        ("TechArticle",),
        ("TechArticle", "BreadcrumbList"),
    ], "unexpected JSON-LD profiles"


def test_structured_data_is_off_without_config(make_site: SiteFactory) -> None:
    """No ``structuredData`` block means no profiles."""
    plan = plan_site(load_site_spec(make_site()))

    assert all(page.structured_data == () for page in plan.pages), (
        "expected structured data to be disabled by default"
    )


def test_automatic_menu_lists_collections(make_site: SiteFactory) -> None:
    """Without declared menus the planner builds ``main`` from collections."""
    plan = plan_site(load_site_spec(make_site()))

    assert plan.navigation.generated_menu, "expected a generated menu"
    assert plan.navigation.to_dict()["menus"]["main"]["items"] == [
        {"title": "Docs", "url": "/docs/"}
    ], "expected the landing page of the docs collection"


def test_taxonomy_terms_become_pages(make_site: SiteFactory) -> None:
    """Each distinct tag gets a term page listing its routes."""
    plan = plan_site(load_site_spec(make_site(spec={"taxonomies": ["tags"]})))

    terms = [page for page in plan.pages if page.kind == "term"]

    assert [(page.route, page.term_routes) for page in terms] == [
        ("/tags/python", ("/docs/intro",)),
        ("/tags/tooling", ("/docs/intro",)),
    ], "expected one sorted term page per tag"
    assert terms[0].layout == "default", "expected the default layout fallback"


def test_redirects_collect_overrides_aliases_and_versions(make_site: SiteFactory) -> None:
    """Overrides come first, then redirects, aliases, and the latest rule."""
    alias_page = dedent(
        """\
        ---
        title: Moved
        aliases: [/old-moved]
        ---
        Body.
        """
    )
    config = make_site(
        spec={
            "routeOverrides": [{"from": "/home", "to": "/docs/"}],
            "redirects": [{"from": "/blog/*", "to": "/news/", "status": 302}],
            "versioning": {
                "basePath": "docs",
                "versions": [
                    {"name": "v2", "latest": True},
                    {"name": "v1", "deprecated": True},
                ],
            },
        },
        files={"content/docs/moved.md": alias_page},
    )

    plan = plan_site(load_site_spec(config))

    assert [redirect.to_dict() for redirect in plan.redirects] == [
        {"from": "/home", "to": "/docs/", "status": 301, "matchType": "exact"},
        {"from": "/blog/*", "to": "/news/", "status": 302, "matchType": "wildcard"},
        {"from": "/old-moved", "to": "/docs/moved/", "status": 301, "matchType": "exact"},
        {"from": "/docs/latest/*", "to": "/docs/v2/", "status": 302, "matchType": "wildcard"},
    ], "unexpected redirect order"
    assert plan.versioning.current == "v2", "expected the latest version to be current"


def test_versioning_rejects_two_latest_versions(make_site: SiteFactory) -> None:
    """At most one version may be marked latest."""
    config = make_site(
        spec={
            "versioning": {
                "versions": [{"name": "v1", "latest": True}, {"name": "v2", "latest": True}]
            }
        }
    )

    with pytest.raises(PlanError, match="more than one latest version"):
        plan_site(load_site_spec(config))


def test_config_path_is_recorded(make_site: SiteFactory) -> None:
    """The plan remembers which spec file it came from."""
    config = make_site()

    plan = plan_site(load_site_spec(config), config)

    assert plan.config_path == Path(config).resolve(), "expected the resolved spec path"

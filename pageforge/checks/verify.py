"""Verify a site before it is built.

The verifier works on the :class:`~pageforge.planner.BuildPlan` rather than
on output files: it reports empty collections, content that failed to parse,
missing titles and layouts, colliding redirects, navigation links to routes
nothing plans, missing bundle assets, and thin SEO metadata. When no plan is
supplied it plans the site itself and turns planner failures into gated
issues.
"""

from __future__ import annotations

import collections
import typing as typ
from urllib.parse import urlsplit

from pageforge.checks.models import (
    ERROR,
    WARNING,
    CheckOptions,
    CheckResult,
    IssueCollector,
    finalize,
    write_summary,
)
from pageforge.errors import (
    EmptyCollectionError,
    LayoutNotFoundError,
    PlanError,
    ThemeCycleError,
    ThemeNotFoundError,
    ThemeSchemaError,
)
from pageforge.planner import normalize_route, plan_site
from pageforge.themes import theme_chain

if typ.TYPE_CHECKING:
    from pageforge.config import SiteSpec
    from pageforge.planner import BuildPlan

PREFIX = "VERIFY"
VERIFY_FAIL_CATEGORIES = ("content", "theme", "route")
ARTICLE_PROFILES = frozenset({"Article", "NewsArticle", "BlogPosting", "TechArticle"})


def default_verify_options(**overrides: typ.Any) -> CheckOptions:
    """Return :class:`CheckOptions` with the verifier's default gate."""
    overrides.setdefault("fail_on_categories", VERIFY_FAIL_CATEGORIES)
    return CheckOptions(**overrides)


def _plan_failure_category(exc: PlanError) -> str:
    match exc:
        case ThemeNotFoundError() | ThemeCycleError() | ThemeSchemaError() | LayoutNotFoundError():
            return "theme"
        case EmptyCollectionError():
            return "content"
        case _:
            return "route"


def _is_internal(url: str) -> bool:
    return url.startswith("/") and not url.startswith("//")


def _asset_exists(plan: BuildPlan, href: str) -> bool:
    relative = urlsplit(href).path.lstrip("/")
    if (plan.spec.resolve(plan.spec.static_root) / relative).is_file():
        return True
    if relative.startswith("assets/"):
        inner = relative.removeprefix("assets/")
        return any((theme.assets_dir / inner).is_file() for theme in theme_chain(plan.theme))
    return False


def _check_plan_warnings(collector: IssueCollector, plan: BuildPlan) -> None:
    for name in plan.empty_collections:
        collector.add(
            WARNING,
            "collection",
            f"Collection '{name}' has no publishable items.",
            hint="empty",
        )
    for warning in plan.parse_warnings:
        collector.add(WARNING, "content", warning, hint="parse")
    for warning in plan.warnings:
        if warning not in plan.parse_warnings:
            collector.add(WARNING, "plan", warning)


def _check_pages(collector: IssueCollector, plan: BuildPlan, options: CheckOptions) -> None:
    for page in plan.pages:
        if page.item is not None and options.check_titles and not page.item.title:
            collector.add(
                ERROR,
                "content",
                f"{page.source}: page has no title.",
                hint="missing-title",
                path=page.source,
            )
        if not page.layout_path.is_file():
            collector.add(
                ERROR,
                "theme",
                f"Layout '{page.layout}' for '{page.route}' does not exist.",
                hint="missing-layout",
                path=page.route,
            )
        if options.check_assets:
            for href in (*page.css, *page.js):
                if _is_internal(href) and not _asset_exists(plan, href):
                    collector.aggregate(
                        WARNING,
                        "asset",
                        "missing-bundle-asset",
                        href,
                        "{count} bundle asset(s) are missing: {paths}",
                    )
        if page.item is None or page.output_path == "404.html":
            continue
        if ARTICLE_PROFILES.intersection(page.structured_data) and page.item.front_matter.date is None:
            collector.aggregate(
                WARNING,
                "seo",
                "missing-date",
                page.route,
                "{count} article page(s) have no date: {paths}",
            )
        if options.check_seo_meta and not page.description:
            collector.aggregate(
                WARNING,
                "seo",
                "missing-description",
                page.route,
                "{count} page(s) have no description: {paths}",
            )


def _check_redirects(collector: IssueCollector, plan: BuildPlan) -> None:
    sources = collections.Counter(
        normalize_route(redirect.source).lower() for redirect in plan.redirects
    )
    for source, count in sorted(sources.items()):
        if count > 1:
            collector.add(
                WARNING,
                "route",
                f"Redirect source '{source}' is declared {count} times.",
                hint="duplicate-redirect",
                path=source,
                count=count,
            )
    planned = {page.route.lower() for page in plan.pages}
    for redirect in plan.redirects:
        if redirect.is_prefix:
            continue
        source = normalize_route(redirect.source).lower()
        if source in planned:
            collector.add(
                WARNING,
                "route",
                f"Redirect source '{redirect.source}' shadows a planned page.",
                hint="redirect-shadows-page",
                path=redirect.source,
            )


def _check_navigation(collector: IssueCollector, plan: BuildPlan) -> None:
    planned = {page.route for page in plan.pages}
    redirected = {normalize_route(redirect.source) for redirect in plan.redirects}
    static_root = plan.spec.resolve(plan.spec.static_root)
    for item in plan.navigation.iter_items():
        if not _is_internal(item.url):
            continue
        route = normalize_route(urlsplit(item.url).path)
        if route in planned or route in redirected:
            continue
        if (static_root / route.lstrip("/")).is_file():
            continue
        collector.aggregate(
            WARNING,
            "nav",
            "unplanned-route",
            item.url,
            "{count} navigation link(s) point at unplanned routes: {paths}",
        )


def verify_site(
    spec: SiteSpec,
    plan: BuildPlan | None = None,
    options: CheckOptions | None = None,
) -> CheckResult:
    """Verify ``spec`` and its plan.

    Parameters
    ----------
    spec : SiteSpec
        Loaded site specification.
    plan : BuildPlan, optional
        Plan to inspect. When omitted the site is planned here and planner
        failures become ``theme``, ``content``, or ``route`` errors.
    options : CheckOptions, optional
        Defaults to :func:`default_verify_options`, which gates on
        ``content``, ``theme``, and ``route``.

    Returns
    -------
    CheckResult
        Findings after suppression and gating.
    """
    options = options or default_verify_options()
    collector = IssueCollector(PREFIX)
    if plan is None:
        try:
            plan = plan_site(spec)
        except PlanError as exc:
            category = _plan_failure_category(exc)
            collector.add(ERROR, category, str(exc), hint="plan-failed")

    if plan is not None:
        _check_plan_warnings(collector, plan)
        _check_pages(collector, plan, options)
        _check_redirects(collector, plan)
        if options.check_nav:
            _check_navigation(collector, plan)

    result = finalize(collector.issues(), options, PREFIX, "Verify")
    result.page_count = len(plan.pages) if plan is not None else 0
    if options.summary_path is not None:
        write_summary(result, options.summary_path)
    return result


__all__ = ["VERIFY_FAIL_CATEGORIES", "default_verify_options", "verify_site"]

"""Tests for auditing built output."""

from __future__ import annotations

import json
import typing as typ
from pathlib import Path

import pytest

from pageforge.checks import CheckOptions, audit_site
from pageforge.errors import ConfigError

from .conftest import write_text

CHARSET = '<meta charset="utf-8">'
HEAD = (
    f"{CHARSET}<title>Page</title>"
    '<meta name="description" content="About.">'
    '<link rel="canonical" href="https://example.test/">'
)
NAV = '<nav><a href="/">Home</a></nav>'

SiteWriter = typ.Callable[[dict[str, str]], Path]


def page(body: str = NAV, *, head: str = HEAD) -> str:
    """Return a small HTML document."""
    return f"<!doctype html><html><head>{head}</head><body>{body}</body></html>"


@pytest.fixture
def write_site(tmp_path: Path) -> SiteWriter:
    """Return a helper writing ``{relative: html}`` under ``tmp_path / "out"``."""

    def _write(files: dict[str, str]) -> Path:
        root = tmp_path / "out"
        for relative, text in files.items():
            write_text(root / relative, text)
        return root

    return _write


def codes(result: typ.Any) -> list[str]:
    """Return the codes of every issue in ``result``."""
    return [issue.code for issue in result.issues]


def test_clean_site_passes(write_site: SiteWriter) -> None:
    """Resolvable links and assets produce no findings."""
    root = write_site(
        {
            "index.html": page(),
            "about/index.html": page(
                NAV + '<a href="../">Up</a><a href="/about/">Self</a><img src="/logo.png">'
            ),
            "logo.png": "",
        }
    )

    result = audit_site(root)

    assert result.issues == [], f"expected no issues, got {codes(result)}"
    assert result.summary("audit") == (
        "audit ok: pages=2; warnings=0; errors=0; suppressed=0"
    )


def test_broken_links_and_assets_aggregate(write_site: SiteWriter) -> None:
    """Repeated findings fold into one issue per code."""
    root = write_site(
        {
            "index.html": page(
                NAV
                + '<a href="/missing/">x</a><a href="/gone">y</a>'
                + '<script src="/app.js"></script>'
            )
        }
    )

    result = audit_site(root)

    links = result.by_category("links")
    assert len(links) == 1, "expected one aggregated broken-link issue"
    assert links[0].code == "AUDIT.LINKS.BROKEN_LINK"
    assert links[0].count == 2, "expected both links counted"
    assert links[0].message == (
        "2 broken internal link(s): index.html -> /missing/, index.html -> /gone"
    )
    assert codes(result) == ["AUDIT.LINKS.BROKEN_LINK", "AUDIT.ASSET.MISSING_ASSET"]
    assert result.success, "expected no failure without fail categories"


def test_fail_categories_gate_the_result(write_site: SiteWriter) -> None:
    """Issues in a fail category turn the run into a failure."""
    root = write_site({"index.html": page(NAV + '<a href="/missing/">x</a>')})

    result = audit_site(root, CheckOptions(fail_on_categories=("links",)))

    assert not result.success, "expected the links gate to fail the audit"
    assert result.summary("audit") == (
        "audit failed: pages=1; warnings=0; errors=2; suppressed=0; "
        "Audit failed: 1 issue(s) in fail categories: links."
    )


def test_fail_on_warnings(write_site: SiteWriter) -> None:
    """``fail_on_warnings`` fails on any remaining issue."""
    root = write_site({"index.html": page(body="<main></main>")})

    result = audit_site(root, CheckOptions(fail_on_warnings=True))

    assert not result.success
    assert result.issues[-1].message == (
        "Audit failed: 1 issue(s) with failOnWarnings enabled."
    )


def test_seo_checks_skip_special_pages(write_site: SiteWriter) -> None:
    """404 pages, meta-refresh redirects, and noindex pages skip SEO checks."""
    bare_head = f"{CHARSET}<title>Special</title>"
    root = write_site(
        {
            "index.html": page(),
            "404.html": page(head=bare_head),
            "private/index.html": page(
                head=bare_head + '<meta name="robots" content="noindex">'
            ),
            "old/index.html": (
                f'<html><head>{CHARSET}<meta http-equiv="refresh" content="0; url=/">'
                "</head><body></body></html>"
            ),
        }
    )

    assert audit_site(root).issues == [], "expected special pages to pass"

    write_site({"about/index.html": page(head=bare_head)})
    result = audit_site(root)
    assert codes(result) == [
        "AUDIT.SEO.MISSING_DESCRIPTION",
        "AUDIT.SEO.MISSING_CANONICAL",
    ], "expected the ordinary page to be checked"
    assert result.issues[0].paths == ["about/index.html"]


def test_navigation_is_optional_under_api(write_site: SiteWriter) -> None:
    """Pages under ``api/`` may omit the nav element."""
    root = write_site(
        {
            "index.html": page(),
            "api/ref.html": page(body="<main></main>"),
            "guide.html": page(body="<main></main>"),
        }
    )

    result = audit_site(root)

    assert codes(result) == ["AUDIT.NAV.MISSING_NAV"]
    assert result.issues[0].paths == ["guide.html"], "expected only guide.html"


def test_file_budgets(write_site: SiteWriter) -> None:
    """The file budget warns and honours ``budget_exclude``."""
    root = write_site(
        {"index.html": page(), "a.css": "", "b.css": "", "app.js": ""}
    )

    over = audit_site(root, CheckOptions(max_total_files=3))
    under = audit_site(root, CheckOptions(max_total_files=3, budget_exclude=("*.css",)))

    assert codes(over) == ["AUDIT.BUDGET"], "expected a budget warning"
    assert over.issues[0].severity == "warning"
    assert over.total_file_count == 4
    assert under.issues == [], "expected excluded files not to count"
    assert under.total_file_count == 2


def test_suppression_by_category_and_glob(write_site: SiteWriter) -> None:
    """Suppressed issues are counted but neither reported nor gated."""
    root = write_site({"index.html": page(head=f"{CHARSET}<title>T</title>")})

    by_category = audit_site(
        root, CheckOptions(suppress_issues=("AUDIT.SEO",), fail_on_categories=("seo",))
    )
    by_glob = audit_site(root, CheckOptions(suppress_issues=("*missing_description",)))

    assert by_category.issues == [], "expected the whole category suppressed"
    assert by_category.suppressed_count == 2
    assert by_category.success, "expected suppressed issues not to gate"
    assert codes(by_glob) == ["AUDIT.SEO.MISSING_CANONICAL"]


def test_fragments_are_excluded_by_default(write_site: SiteWriter) -> None:
    """Partial ``*.scripts.html`` fragments are not pages."""
    root = write_site({"index.html": page(), "partials/nav.scripts.html": "<script></script>"})

    default = audit_site(root)
    everything = audit_site(root, CheckOptions(use_default_excludes=False))

    assert default.page_count == 1, "expected the fragment to be skipped"
    assert everything.page_count == 2, "expected the fragment to be audited"


def test_markup_checks(write_site: SiteWriter) -> None:
    """Duplicate ids and skipped heading levels are reported."""
    root = write_site(
        {"index.html": page(NAV + '<h1 id="a">A</h1><h3 id="a">B</h3>')}
    )

    assert codes(audit_site(root)) == [
        "AUDIT.HTML.DUPLICATE_ID",
        "AUDIT.HEADING.SKIPPED_LEVEL",
    ]


def test_invalid_utf8_is_an_error(tmp_path: Path) -> None:
    """Bytes that do not decode as UTF-8 are a charset error."""
    root = tmp_path / "out"
    root.mkdir()
    (root / "index.html").write_bytes(page().encode("utf-8") + b"caf\xe9")

    result = audit_site(root)

    assert codes(result) == ["AUDIT.CHARSET.INVALID_UTF8"]
    assert result.errors == ["index.html: file is not valid UTF-8."]


def test_summary_file_is_written(write_site: SiteWriter, tmp_path: Path) -> None:
    """A summary path receives the JSON report."""
    root = write_site({"index.html": page()})
    summary = tmp_path / "reports" / "audit.json"

    audit_site(root, CheckOptions(summary_path=summary))

    payload = json.loads(summary.read_text(encoding="utf-8"))
    assert payload["pageCount"] == 1
    assert payload["success"] is True


def test_missing_root_is_a_config_error(tmp_path: Path) -> None:
    """Auditing a directory that does not exist fails fast."""
    with pytest.raises(ConfigError, match="does not exist"):
        audit_site(tmp_path / "nowhere")

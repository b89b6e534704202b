"""Tests for hosting redirect files and target selection."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pageforge.config import RedirectSpec
from pageforge.errors import StrictHostingMissingError, TaskOptionError
from pageforge.hosting import (
    normalize_targets,
    render_apache,
    render_azure,
    render_hosting_files,
    render_netlify,
    render_nginx,
    select_hosting_targets,
)

RULES = [
    RedirectSpec("/old", "/new/"),
    RedirectSpec("/blog/*", "/news/", 302, match_type="wildcard"),
]


def test_netlify_uses_splat_for_prefix_rules() -> None:
    """Prefix rules carry the remainder of the path with ``:splat``."""
    assert render_netlify(RULES) == "/old /new/ 301\n/blog/* /news/:splat 302\n"


def test_azure_routes() -> None:
    """Azure routes use ``/*`` suffixes for prefix rules."""
    payload = json.loads(render_azure(RULES))

    assert payload["routes"] == [
        {"route": "/old", "redirect": "/new/", "statusCode": 301},
        {"route": "/blog/*", "redirect": "/news/", "statusCode": 302},
    ]


def test_apache_and_nginx_rules() -> None:
    """Server configs map statuses onto their own redirect syntax."""
    apache = render_apache(RULES).splitlines()
    nginx = render_nginx(RULES).splitlines()

    assert apache[1] == "RedirectMatch 301 ^/old/?$ /new/"
    assert apache[2] == "RedirectMatch 302 ^/blog/(.*)$ /news/$1"
    assert nginx[1] == "location = /old { return 301 /new/; }"
    assert nginx[2] == "location ^~ /blog/ { rewrite ^/blog/(.*)$ /news/$1 redirect; }", (
        "expected a temporary rewrite for a 302 prefix rule"
    )


def test_every_platform_gets_a_file() -> None:
    """One file is rendered per supported platform."""
    assert sorted(render_hosting_files(RULES)) == sorted(
        [
            "_redirects",
            "staticwebapp.config.json",
            "vercel.json",
            ".htaccess",
            "nginx.redirects.conf",
            "web.config",
        ]
    )


def test_normalize_targets_expands_all_and_rejects_unknown() -> None:
    """``all`` selects every platform and unknown names fail."""
    assert len(normalize_targets(["all"])) == 6, "expected every platform"
    assert normalize_targets(["Netlify", "netlify"]) == ["netlify"], (
        "expected duplicates to collapse"
    )
    with pytest.raises(TaskOptionError, match="unsupported target 'heroku'"):
        normalize_targets(["heroku"])


@pytest.fixture
def hosted_site(tmp_path: Path) -> Path:
    """Write every hosting file into a fake output directory."""
    for filename, content in render_hosting_files(RULES).items():
        (tmp_path / filename).write_text(content, encoding="utf-8")
    return tmp_path


def test_select_removes_unselected_files(hosted_site: Path) -> None:
    """Only the selected platform's file survives."""
    selection = select_hosting_targets(hosted_site, ["netlify"])

    assert selection.kept == ["_redirects"]
    assert len(selection.removed) == 5, "expected five files removed"
    assert not (hosted_site / "vercel.json").exists(), "expected vercel.json deleted"
    assert selection.message == (
        "hosting ok: targets=netlify; kept=1; removed=5; missing=0"
    )


def test_dry_run_keeps_files(hosted_site: Path) -> None:
    """A dry run reports removals without deleting."""
    selection = select_hosting_targets(hosted_site, ["netlify"], dry_run=True)

    assert len(selection.removed) == 5
    assert (hosted_site / "vercel.json").exists(), "expected no deletion in dry run"
    assert selection.message.startswith("hosting dry-run:")


def test_strict_mode_requires_selected_files(tmp_path: Path) -> None:
    """Strict selection fails when the chosen platform's file is absent."""
    with pytest.raises(StrictHostingMissingError, match="_redirects"):
        select_hosting_targets(tmp_path, ["netlify"], strict=True)

    selection = select_hosting_targets(tmp_path, ["netlify"])
    assert selection.missing == ["_redirects"], "expected the miss to be reported"


def test_empty_target_list_is_rejected(tmp_path: Path) -> None:
    """At least one target is required."""
    with pytest.raises(TaskOptionError, match="at least one target"):
        select_hosting_targets(tmp_path, [" "])

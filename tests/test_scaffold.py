"""Tests for the starter site written by ``pageforge scaffold``."""

from __future__ import annotations

from pathlib import Path

import msgspec.json as msgspec_json
import pytest

from pageforge.errors import ConfigError
from pageforge.pipeline import run_pipeline
from pageforge.scaffold import scaffold_site

from .conftest import write_text


def test_scaffold_pipeline_runs_cleanly(tmp_path: Path) -> None:
    """The generated pipeline builds, verifies, and audits without failing."""
    root = tmp_path / "site"
    scaffold_site(root, name="Starter", base_url="https://starter.test/")

    result = run_pipeline(root / "pipeline.json")

    assert result.success, [step.line for step in result.steps]
    assert [step.task for step in result.steps] == ["build", "verify", "audit"]
    home = (root / "_site" / "index.html").read_text(encoding="utf-8")
    assert 'href="/docs/getting-started/"' in home, (
        "expected the cross-collection Markdown link to be rewritten"
    )
    guide = (root / "_site" / "docs" / "getting-started" / "index.html").read_text(
        encoding="utf-8"
    )
    assert '<article class="docs">' in guide, "expected the child theme's docs layout"
    assert (root / "_site" / "assets" / "site.css").is_file()
    summary = msgspec_json.decode((root / "_reports" / "audit.json").read_bytes())
    assert summary["success"] is True


def test_scaffold_writes_site_and_pipeline(tmp_path: Path) -> None:
    """``site.json`` carries the chosen name, origin, and theme."""
    root = tmp_path / "site"

    written = scaffold_site(root, name="Docs Hub", base_url="https://hub.test/", theme="hub")

    site = msgspec_json.decode((root / "site.json").read_bytes())
    assert site["name"] == "Docs Hub"
    assert site["baseUrl"] == "https://hub.test", "expected the trailing slash dropped"
    assert site["defaultTheme"] == "hub"
    assert (root / "themes" / "hub" / "layouts" / "docs.html").is_file()
    assert not (root / "themes" / "site").exists(), "expected the child theme renamed"
    assert root / "pipeline.json" in written


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"name": " "}, "requires a site name"),
        ({"name": "Site", "theme": "base"}, "theme name 'base' is invalid"),
        ({"name": "Site", "theme": "a/b"}, "theme name 'a/b' is invalid"),
    ],
)
def test_scaffold_rejects_bad_arguments(
    tmp_path: Path, kwargs: dict[str, str], message: str
) -> None:
    """Names and theme directories are validated before writing."""
    with pytest.raises(ConfigError, match=message):
        scaffold_site(tmp_path / "site", **kwargs)  # type: ignore[arg-type]


def test_scaffold_refuses_non_empty_directories(tmp_path: Path) -> None:
    """Existing files are only overwritten with ``force``."""
    root = tmp_path / "site"
    write_text(root / "README.md", "keep me\n")

    with pytest.raises(ConfigError, match="pass --force"):
        scaffold_site(root, name="Site")

    scaffold_site(root, name="Site", force=True)
    assert (root / "README.md").read_text(encoding="utf-8") == "keep me\n"
    assert (root / "site.json").is_file()

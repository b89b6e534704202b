"""Tests for rewriting raw HTML in Markdown sources."""

from __future__ import annotations

from pathlib import Path

import pytest

from pageforge.errors import TaskOptionError
from pageforge.markdown_fix import fix_markdown, fix_markdown_text

from .conftest import write_text


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("Use <strong>bold</strong> text.\n", "Use **bold** text.\n"),
        ("An <em>aside</em> and <b>more</b>.\n", "An *aside* and **more**.\n"),
        ("line<br>next\n", "line  \nnext\n"),
        ("No tags here", "No tags here"),
    ],
)
def test_simple_tags_become_markdown(source: str, expected: str) -> None:
    """Inline tags map to their Markdown equivalents."""
    assert fix_markdown_text(source).text == expected


def test_headings_are_converted() -> None:
    """``<hN>`` becomes an ATX heading of the same level."""
    fixed = fix_markdown_text("<h2>Install</h2>\nBody\n")

    assert fixed.text.startswith("## Install\n"), "expected a level-two heading"
    assert fixed.replacements == 1


def test_fenced_code_is_left_alone() -> None:
    """Tags inside fences are examples, not markup to fix."""
    source = "```html\n<strong>x</strong>\n```\n<em>y</em>\n"

    fixed = fix_markdown_text(source)

    assert fixed.text == "```html\n<strong>x</strong>\n```\n*y*\n"
    assert fixed.replacements == 1, "expected only the tag outside the fence"


def test_multiline_media_tags_collapse() -> None:
    """Media tags spanning lines are folded onto one line."""
    fixed = fix_markdown_text('<img\n  src="a  b.png"\n  alt="x">\n')

    assert fixed.text == '<img src="a  b.png" alt="x">\n', (
        "expected whitespace inside quotes to be kept"
    )
    assert fixed.media_replacements == 1


@pytest.fixture
def docs_root(tmp_path: Path) -> Path:
    """Write a clean file, a file to fix, and an excluded file."""
    root = tmp_path / "docs"
    write_text(root / "clean.md", "Plain text.\n")
    write_text(root / "guide.md", "Some <strong>bold</strong> and <i>it</i>.\n")
    write_text(root / "vendor" / "raw.md", "<b>skip</b>\n")
    write_text(root / "notes.txt", "<b>not markdown</b>\n")
    return root


def test_dry_run_reports_without_writing(docs_root: Path) -> None:
    """A dry run counts changes and leaves files untouched."""
    result = fix_markdown(docs_root, exclude=("vendor/**",))

    assert result.message == (
        "markdown-fix dry-run: files=2; changed=1; replacements=2; media=0"
    )
    assert [change.path for change in result.changes] == ["guide.md"]
    assert "<strong>" in (docs_root / "guide.md").read_text(encoding="utf-8"), (
        "expected the file to be unchanged"
    )


def test_apply_rewrites_files(docs_root: Path) -> None:
    """Applying writes the fixed text back."""
    result = fix_markdown(docs_root, apply=True)

    assert result.message.startswith("markdown-fix applied: files=3; changed=2")
    assert (docs_root / "guide.md").read_text(encoding="utf-8") == (
        "Some **bold** and *it*.\n"
    )
    assert (docs_root / "notes.txt").read_text(encoding="utf-8") == (
        "<b>not markdown</b>\n"
    ), "expected non-Markdown files to be ignored"


def test_summary_markdown_lists_changed_files(docs_root: Path) -> None:
    """The CI summary names each changed file."""
    summary = fix_markdown(docs_root, include=("guide.md",)).summary_markdown()

    assert "- Files changed: 1" in summary
    assert "- `guide.md` (2)" in summary


def test_missing_root(tmp_path: Path) -> None:
    """A root that does not exist is an option error."""
    with pytest.raises(TaskOptionError, match="does not exist"):
        fix_markdown(tmp_path / "missing")

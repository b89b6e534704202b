"""Rewrite simple raw HTML in Markdown sources as Markdown.

Authors (and importers) often leave ``<strong>``, ``<h2>`` or ``<br>`` tags in
Markdown files. :func:`fix_markdown` converts the simple cases outside
fenced code blocks and collapses media tags such as ``<img>`` that span
several lines, which Python-Markdown would otherwise treat as paragraphs.

Example
-------
>>> from pageforge.markdown_fix import fix_markdown_text
>>> fix_markdown_text("Use <strong>bold</strong> text.\\n").text
'Use **bold** text.\\n'
"""

from __future__ import annotations

import dataclasses as dc
import re
import typing as typ

from pageforge.errors import TaskOptionError
from pageforge.paths import iter_files, matches_any, relative_posix

if typ.TYPE_CHECKING:
    from pathlib import Path

MARKDOWN_SUFFIXES = (".md", ".markdown")
FENCE_LINE = re.compile(r"^\s*(?:```|~~~)")
MEDIA_TAG = re.compile(
    r"<(?:img|iframe|video|audio|source|picture)\b(?:[^>\"']|\"[^\"]*\"|'[^']*')*>",
    re.IGNORECASE,
)
QUOTED = re.compile(r"(\"[^\"]*\"|'[^']*')")

_FLAGS = re.IGNORECASE | re.DOTALL
_SIMPLE_TAGS: tuple[tuple[re.Pattern[str], typ.Callable[[re.Match[str]], str]], ...] = (
    (
        re.compile(r"<h([1-6])>(.*?)</h\1>", _FLAGS),
        lambda match: f"{'#' * int(match.group(1))} {match.group(2).strip()}\n\n",
    ),
    (re.compile(r"<strong>(.*?)</strong>", _FLAGS), lambda match: f"**{match.group(1).strip()}**"),
    (re.compile(r"<b>(.*?)</b>", _FLAGS), lambda match: f"**{match.group(1).strip()}**"),
    (re.compile(r"<em>(.*?)</em>", _FLAGS), lambda match: f"*{match.group(1).strip()}*"),
    (re.compile(r"<i>(.*?)</i>", _FLAGS), lambda match: f"*{match.group(1).strip()}*"),
    (re.compile(r"<p>(.*?)</p>", _FLAGS), lambda match: f"{match.group(1).strip()}\n"),
    (re.compile(r"<br\s*/?>", re.IGNORECASE), lambda _match: "  \n"),
)


@dc.dataclass(slots=True)
class FixedText:
    """Rewritten text plus replacement counts."""

    text: str
    replacements: int = 0
    media_replacements: int = 0


@dc.dataclass(slots=True)
class MarkdownFileChange:
    """Replacements made (or planned) in one file."""

    path: str
    replacements: int
    media_replacements: int

    def to_dict(self) -> dict[str, typ.Any]:
        """Return the report entry for this file."""
        return {
            "path": self.path,
            "replacementCount": self.replacements,
            "mediaTagReplacementCount": self.media_replacements,
        }


@dc.dataclass(slots=True)
class MarkdownFixResult:
    """Outcome of a :func:`fix_markdown` run."""

    root: Path
    file_count: int = 0
    dry_run: bool = True
    changes: list[MarkdownFileChange] = dc.field(default_factory=list)
    warnings: list[str] = dc.field(default_factory=list)

    @property
    def changed_file_count(self) -> int:
        """Return how many files changed."""
        return len(self.changes)

    @property
    def replacement_count(self) -> int:
        """Return the total number of tag replacements."""
        return sum(change.replacements for change in self.changes)

    @property
    def media_tag_replacement_count(self) -> int:
        """Return how many multi-line media tags were collapsed."""
        return sum(change.media_replacements for change in self.changes)

    @property
    def message(self) -> str:
        """Return the one-line summary reported by the pipeline."""
        mode = "dry-run" if self.dry_run else "applied"
        return (
            f"markdown-fix {mode}: files={self.file_count}; "
            f"changed={self.changed_file_count}; "
            f"replacements={self.replacement_count}; "
            f"media={self.media_tag_replacement_count}"
        )

    def to_dict(self) -> dict[str, typ.Any]:
        """Return the JSON report payload."""
        return {
            "root": str(self.root),
            "dryRun": self.dry_run,
            "fileCount": self.file_count,
            "changedFileCount": self.changed_file_count,
            "replacementCount": self.replacement_count,
            "mediaTagReplacementCount": self.media_tag_replacement_count,
            "files": [change.to_dict() for change in self.changes],
            "warnings": list(self.warnings),
        }

    def summary_markdown(self) -> str:
        """Return a short Markdown summary for CI step summaries."""
        lines = [
            "# Markdown Fix Summary",
            "",
            f"- Mode: {'dry-run' if self.dry_run else 'apply'}",
            f"- Files scanned: {self.file_count}",
            f"- Files changed: {self.changed_file_count}",
            f"- Replacements: {self.replacement_count}",
            f"- Media tags collapsed: {self.media_tag_replacement_count}",
        ]
        if self.changes:
            lines.extend(["", "## Changed files", ""])
            lines.extend(
                f"- `{change.path}` ({change.replacements + change.media_replacements})"
                for change in self.changes
            )
        if self.warnings:
            lines.extend(["", "## Warnings", ""])
            lines.extend(f"- {warning}" for warning in self.warnings)
        return "\n".join(lines) + "\n"


def _collapse_tag(tag: str) -> str:
    parts = QUOTED.split(tag)
    collapsed = [
        part if index % 2 else re.sub(r"\s+", " ", part)
        for index, part in enumerate(parts)
    ]
    text = "".join(collapsed)
    return re.sub(r"\s+(/?>)$", r"\1", text)


def _fix_block(block: str) -> FixedText:
    result = FixedText(text=block)

    def collapse(match: re.Match[str]) -> str:
        original = match.group(0)
        if "\n" not in original and "\r" not in original:
            return original
        updated = _collapse_tag(original)
        if updated != original:
            result.media_replacements += 1
        return updated

    text = MEDIA_TAG.sub(collapse, block)
    for pattern, replacement in _SIMPLE_TAGS:
        text, count = pattern.subn(replacement, text)
        result.replacements += count
    result.text = text
    return result


def fix_markdown_text(text: str) -> FixedText:
    """Rewrite ``text`` outside fenced code blocks.

    Parameters
    ----------
    text : str
        Markdown source.

    Returns
    -------
    FixedText
        Updated text with ``replacements`` counting converted tags and
        ``media_replacements`` counting collapsed media tags. Fenced blocks
        are copied unchanged; an unterminated fence protects the rest of
        the file.
    """
    output: list[str] = []
    pending: list[str] = []
    totals = FixedText(text="")
    in_fence = False

    def flush() -> None:
        if not pending:
            return
        fixed = _fix_block("".join(pending))
        totals.replacements += fixed.replacements
        totals.media_replacements += fixed.media_replacements
        output.append(fixed.text)
        pending.clear()

    for line in text.splitlines(keepends=True):
        if FENCE_LINE.match(line):
            if not in_fence:
                flush()
            in_fence = not in_fence
            output.append(line)
        elif in_fence:
            output.append(line)
        else:
            pending.append(line)
    flush()

    updated = "".join(output)
    if not text.endswith("\n") and updated.endswith("\n"):
        updated = updated[:-1]
    totals.text = updated
    return totals


def _select_files(root: Path, include: typ.Sequence[str], exclude: typ.Sequence[str]) -> list[Path]:
    selected = []
    for path in iter_files(root):
        relative = relative_posix(path, root)
        if not relative.lower().endswith(MARKDOWN_SUFFIXES):
            continue
        if include and not matches_any(include, relative):
            continue
        if matches_any(exclude, relative):
            continue
        selected.append(path)
    return selected


def fix_markdown(
    root: Path,
    *,
    include: typ.Sequence[str] = (),
    exclude: typ.Sequence[str] = (),
    apply: bool = False,
) -> MarkdownFixResult:
    """Scan Markdown files under ``root`` and optionally rewrite them.

    Files that cannot be decoded or written are reported as warnings so one
    bad file does not hide the rest of the report.

    Raises
    ------
    TaskOptionError
        If ``root`` is not a directory.
    """
    if not root.is_dir():
        msg = f"markdown-fix root '{root}' does not exist."
        raise TaskOptionError(msg)

    files = _select_files(root, include, exclude)
    result = MarkdownFixResult(root=root, file_count=len(files), dry_run=not apply)
    for path in files:
        relative = relative_posix(path, root)
        try:
            original = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            result.warnings.append(f"{relative}: read failed ({exc}).")
            continue
        fixed = fix_markdown_text(original)
        if fixed.text == original:
            continue
        result.changes.append(
            MarkdownFileChange(
                path=relative,
                replacements=fixed.replacements,
                media_replacements=fixed.media_replacements,
            )
        )
        if apply:
            try:
                path.write_text(fixed.text, encoding="utf-8")
            except OSError as exc:
                result.warnings.append(f"{relative}: write failed ({exc}).")
    return result


__all__ = [
    "FixedText",
    "MarkdownFileChange",
    "MarkdownFixResult",
    "fix_markdown",
    "fix_markdown_text",
]

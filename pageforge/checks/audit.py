"""Audit a built output directory.

The auditor reads every HTML page with BeautifulSoup's ``html.parser`` and
reports structure, title, charset, heading, navigation, link, asset, and SEO
findings, plus a file-count budget over the whole tree. Findings that repeat
across many pages collapse into one issue listing the affected paths.

Examples
--------
>>> from pathlib import Path
>>> from pageforge.checks import CheckOptions, audit_site
>>> result = audit_site(Path("public"), CheckOptions(max_total_files=500))  # doctest: +SKIP
>>> result.success  # doctest: +SKIP
True
"""

from __future__ import annotations

import collections
import posixpath
import re
import typing as typ
from urllib.parse import unquote, urlsplit

from bs4 import BeautifulSoup

from pageforge.checks.models import (
    DEFAULT_EXCLUDES,
    ERROR,
    WARNING,
    CheckOptions,
    CheckResult,
    IssueCollector,
    finalize,
    write_summary,
)
from pageforge.errors import ConfigError
from pageforge.paths import iter_files, matches_any, relative_posix

if typ.TYPE_CHECKING:
    from pathlib import Path

    from bs4 import Tag

HTML_SUFFIXES = (".html", ".htm")
HEADING_TAGS = re.compile(r"^h[1-6]$")
SKIPPED_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")
ASSET_LINK_RELS = frozenset(
    {"stylesheet", "icon", "shortcut", "apple-touch-icon", "preload", "modulepreload", "manifest"}
)
REPLACEMENT_CHAR = "\ufffd"
PREFIX = "AUDIT"


def _is_page(relative: str) -> bool:
    return relative.lower().endswith(HTML_SUFFIXES)


def _select_pages(relatives: list[str], options: CheckOptions) -> list[str]:
    excludes = list(options.exclude)
    if options.use_default_excludes:
        excludes.extend(DEFAULT_EXCLUDES)
    pages = []
    for relative in relatives:
        if not _is_page(relative):
            continue
        if options.include and not matches_any(options.include, relative):
            continue
        if matches_any(excludes, relative):
            continue
        pages.append(relative)
    return pages


def _is_redirect_page(soup: BeautifulSoup) -> bool:
    for meta in soup.find_all("meta"):
        if str(meta.get("http-equiv", "")).strip().lower() == "refresh":
            return True
    return False


def _is_noindex(soup: BeautifulSoup) -> bool:
    for meta in soup.find_all("meta"):
        if str(meta.get("name", "")).strip().lower() == "robots":
            return "noindex" in str(meta.get("content", "")).lower()
    return False


def _rel_values(tag: Tag) -> set[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return {value.lower() for value in rel}


def _has_utf8_meta(soup: BeautifulSoup) -> bool:
    for meta in soup.find_all("meta"):
        charset = meta.get("charset")
        if charset is not None:
            return str(charset).strip().lower() in {"utf-8", "utf8"}
        if str(meta.get("http-equiv", "")).strip().lower() == "content-type":
            return "utf-8" in str(meta.get("content", "")).lower()
    return False


def _local_target(page: str, reference: str) -> str | None:
    """Return the site-relative path ``reference`` points at, if local.

    External URLs, in-page fragments, and special schemes return ``None``.
    A path escaping the site root is returned unnormalised so the
    existence check fails.
    """
    value = reference.strip()
    if not value or value.startswith("#") or value.lower().startswith(SKIPPED_SCHEMES):
        return None
    parts = urlsplit(value)
    if parts.scheme or parts.netloc:
        return None
    path = unquote(parts.path)
    if not path:
        return None
    if path.startswith("/"):
        joined = path.lstrip("/")
    else:
        joined = posixpath.join(posixpath.dirname(page), path)
    trailing = path.endswith("/")
    normalized = posixpath.normpath(joined) if joined else "."
    if normalized == ".":
        normalized = ""
    if trailing and normalized:
        normalized += "/"
    return normalized


def _target_exists(target: str, existing: set[str]) -> bool:
    if target.startswith("../") or target == "..":
        return False
    if target == "" or target.endswith("/"):
        return f"{target}index.html" in existing
    return (
        target in existing
        or f"{target}.html" in existing
        or f"{target}/index.html" in existing
    )


class _PageAuditor:
    """Run the per-page checks for one audit."""

    def __init__(
        self, options: CheckOptions, collector: IssueCollector, existing: set[str]
    ) -> None:
        self.options = options
        self.collector = collector
        self.existing = existing

    def audit(self, relative: str, raw: bytes) -> None:
        options = self.options
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="replace")
            if options.check_charset:
                self.collector.add(
                    ERROR,
                    "charset",
                    f"{relative}: file is not valid UTF-8.",
                    hint="invalid-utf8",
                    path=relative,
                )
        else:
            if options.check_charset and REPLACEMENT_CHAR in text:
                self.collector.add(
                    WARNING,
                    "charset",
                    f"{relative}: contains U+FFFD replacement characters.",
                    hint="replacement-char",
                    path=relative,
                )

        soup = BeautifulSoup(text, "html.parser")
        redirect = _is_redirect_page(soup)
        if options.check_structure:
            self._check_structure(relative, soup)
        if options.check_charset and not _has_utf8_meta(soup):
            self.collector.aggregate(
                WARNING,
                "charset",
                "missing-meta-charset",
                relative,
                "{count} page(s) lack <meta charset=\"utf-8\">: {paths}",
            )
        if options.check_titles and not redirect:
            title = soup.find("title")
            if title is None or not title.get_text(strip=True):
                self.collector.aggregate(
                    WARNING, "title", "missing-title", relative, "{count} page(s) have no <title>: {paths}"
                )
        if options.check_duplicate_ids:
            self._check_duplicate_ids(relative, soup)
        if options.check_heading_order:
            self._check_heading_order(relative, soup)
        if options.check_nav and not redirect and not matches_any(options.ignore_nav_for, relative):
            if soup.select_one(options.nav_selector) is None:
                self.collector.aggregate(
                    WARNING,
                    "nav",
                    "missing-nav",
                    relative,
                    f"{{count}} page(s) have no element matching '{options.nav_selector}': {{paths}}",
                )
        if options.check_links:
            self._check_links(relative, soup)
        if options.check_assets:
            self._check_assets(relative, soup)
        if options.check_seo_meta and not redirect and not _is_noindex(soup):
            self._check_seo(relative, soup)

    def _check_structure(self, relative: str, soup: BeautifulSoup) -> None:
        missing = [name for name in ("html", "head", "body") if soup.find(name) is None]
        if missing:
            tags = ", ".join(f"<{name}>" for name in missing)
            self.collector.add(
                WARNING,
                "structure",
                f"{relative}: missing {tags}.",
                hint="missing-elements",
                path=relative,
            )

    def _check_duplicate_ids(self, relative: str, soup: BeautifulSoup) -> None:
        counts = collections.Counter(
            str(tag["id"]) for tag in soup.find_all(attrs={"id": True})
        )
        duplicates = sorted(name for name, count in counts.items() if count > 1)
        if duplicates:
            self.collector.add(
                WARNING,
                "html",
                f"{relative}: duplicate id(s): {', '.join(duplicates)}.",
                hint="duplicate-id",
                path=relative,
                count=len(duplicates),
            )

    def _check_heading_order(self, relative: str, soup: BeautifulSoup) -> None:
        previous = 0
        for heading in soup.find_all(HEADING_TAGS):
            level = int(heading.name[1])
            if previous and level > previous + 1:
                self.collector.add(
                    WARNING,
                    "heading",
                    f"{relative}: heading level skips from h{previous} to h{level}.",
                    hint="skipped-level",
                    path=relative,
                )
                return
            previous = level

    def _check_links(self, relative: str, soup: BeautifulSoup) -> None:
        for anchor in soup.find_all("a", href=True):
            href = str(anchor["href"])
            target = _local_target(relative, href)
            if target is None or _target_exists(target, self.existing):
                continue
            self.collector.aggregate(
                ERROR,
                "links",
                "broken-link",
                f"{relative} -> {href}",
                "{count} broken internal link(s): {paths}",
            )

    def _asset_references(self, soup: BeautifulSoup) -> list[str]:
        references = []
        for link in soup.find_all("link", href=True):
            if _rel_values(link) & ASSET_LINK_RELS:
                references.append(str(link["href"]))
        for name in ("script", "img", "source"):
            references.extend(str(tag["src"]) for tag in soup.find_all(name, src=True))
        return references

    def _check_assets(self, relative: str, soup: BeautifulSoup) -> None:
        for reference in self._asset_references(soup):
            target = _local_target(relative, reference)
            if target is None or target in self.existing:
                continue
            self.collector.aggregate(
                ERROR,
                "asset",
                "missing-asset",
                f"{relative} -> {reference}",
                "{count} missing local asset(s): {paths}",
            )

    def _check_seo(self, relative: str, soup: BeautifulSoup) -> None:
        if posixpath.basename(relative) == "404.html":
            return
        description = soup.find("meta", attrs={"name": "description"})
        if description is None or not str(description.get("content", "")).strip():
            self.collector.aggregate(
                WARNING,
                "seo",
                "missing-description",
                relative,
                "{count} page(s) have no meta description: {paths}",
            )
        canonicals = [
            link for link in soup.find_all("link", href=True) if "canonical" in _rel_values(link)
        ]
        if not canonicals:
            self.collector.aggregate(
                WARNING,
                "seo",
                "missing-canonical",
                relative,
                "{count} page(s) have no canonical link: {paths}",
            )
        elif len(canonicals) > 1:
            self.collector.aggregate(
                WARNING,
                "seo",
                "duplicate-canonical",
                relative,
                "{count} page(s) declare more than one canonical link: {paths}",
            )


def _check_budgets(
    collector: IssueCollector,
    options: CheckOptions,
    counted: list[str],
    html_count: int,
) -> None:
    if options.max_total_files > 0 and len(counted) > options.max_total_files:
        collector.add(
            WARNING,
            "budget",
            (
                f"Output contains {len(counted)} files, above the "
                f"maxTotalFiles budget of {options.max_total_files}."
            ),
            count=len(counted),
        )
    if options.max_html_files > 0 and html_count > options.max_html_files:
        collector.add(
            WARNING,
            "budget",
            (
                f"Output contains {html_count} HTML files, above the "
                f"maxHtmlFiles budget of {options.max_html_files}."
            ),
            hint="html-files",
            count=html_count,
        )


def audit_site(site_root: Path, options: CheckOptions | None = None) -> CheckResult:
    """Audit the built site under ``site_root``.

    Parameters
    ----------
    site_root : Path
        Directory holding the built output.
    options : CheckOptions, optional
        Check toggles, budgets, suppression, and gate categories.

    Returns
    -------
    CheckResult
        Findings after suppression and gating. Budget counts exclude files
        matching ``budget_exclude``; page checks honour ``include``,
        ``exclude``, and the default fragment excludes.

    Raises
    ------
    ConfigError
        If ``site_root`` is not a directory.
    BuildIoError
        If the summary cannot be written.
    """
    options = options or CheckOptions()
    if not site_root.is_dir():
        msg = f"Audit site root '{site_root}' does not exist."
        raise ConfigError(msg)

    relatives = [relative_posix(path, site_root) for path in iter_files(site_root)]
    existing = set(relatives)
    counted = [
        relative for relative in relatives if not matches_any(options.budget_exclude, relative)
    ]
    html_count = sum(1 for relative in counted if _is_page(relative))

    collector = IssueCollector(PREFIX)
    _check_budgets(collector, options, counted, html_count)

    pages = _select_pages(relatives, options)
    auditor = _PageAuditor(options, collector, existing)
    for relative in pages:
        auditor.audit(relative, (site_root / relative).read_bytes())

    result = finalize(collector.issues(), options, PREFIX, "Audit")
    result.page_count = len(pages)
    result.total_file_count = len(counted)
    result.html_file_count = html_count
    if options.summary_path is not None:
        write_summary(result, options.summary_path)
    return result


__all__ = ["audit_site"]

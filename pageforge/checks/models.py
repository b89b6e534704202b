"""Issue records, check options, and category gating shared by both checkers.

Findings are data, never exceptions. Each :class:`Issue` carries a category
(``nav``, ``budget``, ``seo`` ...) and a machine-readable code such as
``AUDIT.SEO.MISSING_DESCRIPTION``. Repeated findings are folded into one
issue per code by :class:`IssueCollector`, and :func:`finalize` applies the
suppression list and the fail-on-category gate.

Examples
--------
>>> from pageforge.checks.models import issue_code
>>> issue_code("AUDIT", "seo", "missing-description")
'AUDIT.SEO.MISSING_DESCRIPTION'
>>> issue_code("AUDIT", "budget")
'AUDIT.BUDGET'
"""

from __future__ import annotations

import dataclasses as dc
import re
import typing as typ

from pageforge.paths import glob_match
from pageforge.reports import write_json_file

if typ.TYPE_CHECKING:
    from pathlib import Path

WARNING = "warning"
ERROR = "error"
GATE_CATEGORY = "gate"
DEFAULT_EXCLUDES = ("*.scripts.html", "*.head.html", "**/*.scripts.html", "**/*.head.html")
MAX_LISTED_PATHS = 10


def _code_part(text: str) -> str:
    return re.sub(r"[^A-Z0-9]+", "_", text.upper()).strip("_")


def issue_code(prefix: str, category: str, hint: str | None = None) -> str:
    """Return the upper-case ``PREFIX.CATEGORY[.HINT]`` code."""
    parts = [prefix, _code_part(category)]
    if hint:
        parts.append(_code_part(hint))
    return ".".join(parts)


@dc.dataclass(slots=True)
class Issue:
    """One finding, possibly aggregated across several pages.

    Attributes
    ----------
    severity : str
        ``"warning"`` or ``"error"``.
    category : str
        Gate category such as ``nav`` or ``budget``.
    code : str
        Machine-readable code (see :func:`issue_code`).
    paths : list[str]
        Every affected page when the issue aggregates several occurrences.
    count : int
        Number of occurrences, or the measured value for budget issues.
    """

    severity: str
    category: str
    code: str
    message: str
    hint: str | None = None
    path: str | None = None
    paths: list[str] = dc.field(default_factory=list)
    count: int = 1

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping."""
        payload: dict[str, typ.Any] = {
            "severity": self.severity,
            "category": self.category,
            "code": self.code,
            "message": self.message,
            "count": self.count,
        }
        if self.hint:
            payload["hint"] = self.hint
        if self.path:
            payload["path"] = self.path
        if self.paths:
            payload["paths"] = list(self.paths)
        return payload


@dc.dataclass(slots=True)
class CheckOptions:
    """Toggles and gates for one verifier or auditor run.

    Every check is on by default; numeric budgets of ``0`` are disabled.
    ``fail_on_categories`` is empty, so by default findings never fail a
    run on their own.
    """

    check_structure: bool = True
    check_titles: bool = True
    check_nav: bool = True
    check_links: bool = True
    check_assets: bool = True
    check_duplicate_ids: bool = True
    check_heading_order: bool = True
    check_charset: bool = True
    check_seo_meta: bool = True
    nav_selector: str = "nav"
    ignore_nav_for: tuple[str, ...] = ("api/**", "api-docs/**", "docs/api/**")
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    use_default_excludes: bool = True
    max_total_files: int = 0
    max_html_files: int = 0
    budget_exclude: tuple[str, ...] = ()
    suppress_issues: tuple[str, ...] = ()
    fail_on_categories: tuple[str, ...] = ()
    fail_on_warnings: bool = False
    summary_path: Path | None = None


@dc.dataclass(slots=True)
class CheckResult:
    """Outcome of a verifier or auditor run."""

    success: bool = True
    issues: list[Issue] = dc.field(default_factory=list)
    page_count: int = 0
    total_file_count: int = 0
    html_file_count: int = 0
    suppressed_count: int = 0

    @property
    def warnings(self) -> list[str]:
        """Return the messages of warning-level issues."""
        return [issue.message for issue in self.issues if issue.severity == WARNING]

    @property
    def errors(self) -> list[str]:
        """Return the messages of error-level issues."""
        return [issue.message for issue in self.issues if issue.severity == ERROR]

    def summary(self, label: str) -> str:
        """Return a one-line summary such as ``audit ok: pages=3; ...``.

        A failed run ends with the gate message.
        """
        status = "ok" if self.success else "failed"
        text = (
            f"{label} {status}: pages={self.page_count}; warnings={len(self.warnings)}; "
            f"errors={len(self.errors)}; suppressed={self.suppressed_count}"
        )
        gate = next((issue for issue in self.issues if issue.category == GATE_CATEGORY), None)
        if gate is not None:
            text += f"; {gate.message}"
        return text

    def by_category(self, category: str) -> list[Issue]:
        """Return issues whose category equals ``category`` (any case)."""
        wanted = category.lower()
        return [issue for issue in self.issues if issue.category.lower() == wanted]

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready summary."""
        return {
            "success": self.success,
            "pageCount": self.page_count,
            "totalFileCount": self.total_file_count,
            "htmlFileCount": self.html_file_count,
            "warningCount": len(self.warnings),
            "errorCount": len(self.errors),
            "suppressedCount": self.suppressed_count,
            "issues": [issue.to_dict() for issue in self.issues],
        }


class IssueCollector:
    """Accumulate issues, folding repeated codes into one aggregated issue."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        self._issues: list[Issue] = []
        self._aggregates: dict[str, Issue] = {}
        self._templates: dict[str, str] = {}

    def add(
        self,
        severity: str,
        category: str,
        message: str,
        *,
        hint: str | None = None,
        path: str | None = None,
        count: int = 1,
    ) -> Issue:
        """Record a single, non-aggregated issue."""
        issue = Issue(
            severity=severity,
            category=category,
            code=issue_code(self.prefix, category, hint),
            message=message,
            hint=hint,
            path=path,
            count=count,
        )
        self._issues.append(issue)
        return issue

    def aggregate(
        self,
        severity: str,
        category: str,
        hint: str,
        path: str,
        template: str,
    ) -> None:
        """Record one occurrence of an issue reported once per run.

        ``template`` is formatted with ``count`` and ``paths`` when the
        collector is flushed.
        """
        code = issue_code(self.prefix, category, hint)
        issue = self._aggregates.get(code)
        if issue is None:
            issue = Issue(
                severity=severity,
                category=category,
                code=code,
                message="",
                hint=hint,
                count=0,
            )
            self._aggregates[code] = issue
            self._templates[code] = template
        if path not in issue.paths:
            issue.paths.append(path)
        issue.count += 1

    def issues(self) -> list[Issue]:
        """Return recorded issues followed by the flushed aggregates."""
        flushed: list[Issue] = []
        for code, issue in self._aggregates.items():
            listed = ", ".join(issue.paths[:MAX_LISTED_PATHS])
            if len(issue.paths) > MAX_LISTED_PATHS:
                listed += f", ... (+{len(issue.paths) - MAX_LISTED_PATHS} more)"
            issue.message = self._templates[code].format(count=issue.count, paths=listed)
            flushed.append(issue)
        return [*self._issues, *flushed]


def is_suppressed(issue: Issue, patterns: typ.Iterable[str], prefix: str) -> bool:
    """Return whether ``issue`` matches a suppression pattern.

    Patterns compare case-insensitively against the issue code and its
    ``PREFIX.CATEGORY`` code; ``*`` wildcards are honoured.
    """
    category_code = issue_code(prefix, issue.category)
    for raw in patterns:
        pattern = raw.strip()
        if not pattern:
            continue
        if glob_match(pattern, issue.code) or glob_match(pattern, category_code):
            return True
    return False


def finalize(
    issues: list[Issue], options: CheckOptions, prefix: str, label: str
) -> CheckResult:
    """Apply suppression and gating to ``issues``.

    Parameters
    ----------
    issues : list[Issue]
        Raw findings from one run.
    options : CheckOptions
        Supplies ``suppress_issues``, ``fail_on_categories``, and
        ``fail_on_warnings``.
    prefix : str
        Code prefix (``AUDIT`` or ``VERIFY``).
    label : str
        Human name of the checker used in the gate message.

    Returns
    -------
    CheckResult
        ``success`` is false only when an unsuppressed issue falls in a
        fail category, or ``fail_on_warnings`` is set and issues remain. A
        failing gate appends one ``gate`` issue describing why.
    """
    kept = [issue for issue in issues if not is_suppressed(issue, options.suppress_issues, prefix)]
    result = CheckResult(issues=kept, suppressed_count=len(issues) - len(kept))
    fail_categories = {category.strip().lower() for category in options.fail_on_categories if category.strip()}
    gated = [issue for issue in kept if issue.category.lower() in fail_categories]
    if gated:
        categories = ", ".join(sorted({issue.category.lower() for issue in gated}))
        result.success = False
        result.issues.append(
            Issue(
                severity=ERROR,
                category=GATE_CATEGORY,
                code=issue_code(prefix, GATE_CATEGORY),
                message=(
                    f"{label} failed: {len(gated)} issue(s) in fail categories: "
                    f"{categories}."
                ),
                count=len(gated),
            )
        )
    elif options.fail_on_warnings and kept:
        result.success = False
        result.issues.append(
            Issue(
                severity=ERROR,
                category=GATE_CATEGORY,
                code=issue_code(prefix, GATE_CATEGORY, "warnings"),
                message=f"{label} failed: {len(kept)} issue(s) with failOnWarnings enabled.",
                count=len(kept),
            )
        )
    return result


def write_summary(result: CheckResult, path: Path) -> Path:
    """Write ``result`` as JSON to ``path`` and return the path."""
    return write_json_file(path, result.to_dict())


__all__ = [
    "DEFAULT_EXCLUDES",
    "ERROR",
    "GATE_CATEGORY",
    "WARNING",
    "CheckOptions",
    "CheckResult",
    "Issue",
    "IssueCollector",
    "finalize",
    "is_suppressed",
    "issue_code",
    "write_summary",
]

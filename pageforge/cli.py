"""Cyclopts CLI entrypoint for building, checking, and maintaining static sites.

The ``pageforge`` console script plans and renders a site from its
specification (``build``), checks the plan (``verify``) and the rendered
output (``audit``), runs ordered pipelines (``pipeline``), and exposes each
maintenance task as a single command. Every option can also be set through
a ``PAGEFORGE_*`` environment variable.

Exit codes: ``0`` success, ``1`` a failed step or gate, ``2`` configuration
error, ``3`` planning error, ``4`` invalid task options, ``5`` network
failure.

Examples
--------
Build and audit a site:

>>> from pageforge.cli import app
>>> app(["build", "--config", "site.json", "--out", "_site"])  # doctest: +SKIP
>>> app(["audit", "--site-root", "_site"])  # doctest: +SKIP
"""

from __future__ import annotations

import contextlib
import sys
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import App, Parameter

from .checks import CheckOptions, audit_site, default_verify_options, verify_site
from .config import load_site_spec
from .errors import EXIT_FAILURE, PageforgeError, exit_code_for
from .generator import build_site
from .pipeline import PipelineStep, RunContext, execute_step, run_pipeline
from .planner import plan_site
from .scaffold import scaffold_site

if typ.TYPE_CHECKING:
    from .checks import CheckResult

DEFAULT_SITE_CONFIG = Path("site.json")
DEFAULT_PIPELINE = Path("pipeline.json")
DEFAULT_OUTPUT = Path("_site")

app = App(name="pageforge", config=cyclopts.config.Env("PAGEFORGE_", command=False))  # type: ignore[unknown-argument]


@contextlib.contextmanager
def _exit_on_error() -> typ.Iterator[None]:
    try:
        yield
    except PageforgeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(exit_code_for(exc)) from exc


def _format_path(path: Path) -> str:
    """Return a cwd-relative path when possible, otherwise the absolute path."""
    if path.is_absolute():
        try:
            return str(path.relative_to(Path.cwd()))
        except ValueError:  # pragma: no cover - fallback for different roots
            return str(path)
    return str(path)


def _report(result: CheckResult, label: str) -> None:
    for issue in result.issues:
        print(f"{issue.severity}: [{issue.code}] {issue.message}")
    print(result.summary(label))
    if not result.success:
        raise SystemExit(EXIT_FAILURE)


def _run_task(task: str, options: dict[str, typ.Any]) -> None:
    step = PipelineStep(
        index=1,
        task=task,
        options={key: value for key, value in options.items() if value is not None},
    )
    with _exit_on_error():
        outcome = execute_step(step, RunContext(base_dir=Path.cwd()))
    print(outcome.message)
    if not outcome.success:
        raise SystemExit(EXIT_FAILURE)


@app.command(help="Plan and render a site into an output directory.")
def build(
    *,
    config: typ.Annotated[
        Path, Parameter(help="Path to the site spec", env_var="PAGEFORGE_CONFIG")
    ] = DEFAULT_SITE_CONFIG,
    out: typ.Annotated[
        Path, Parameter(help="Output directory", env_var="PAGEFORGE_OUT")
    ] = DEFAULT_OUTPUT,
    clean: typ.Annotated[
        bool, Parameter(help="Remove the output directory before writing")
    ] = False,
) -> None:
    """Build the site described by ``config`` into ``out``.

    Parameters
    ----------
    config : Path, optional
        Site specification (JSON or YAML).
    out : Path, optional
        Output directory; created when missing.
    clean : bool, optional
        Delete ``out`` first so stale files do not survive.

    Raises
    ------
    SystemExit
        With code 2 for configuration errors, 3 for planning errors, and 1
        when output cannot be written.
    """
    with _exit_on_error():
        spec = load_site_spec(config)
        plan = plan_site(spec, config)
        result = build_site(plan, out, clean=clean)
    for warning in plan.warnings:
        print(f"warning: {warning}")
    print(f"wrote {_format_path(out)}")
    print(result.message)


@app.command(help="Check the site spec and its plan before building.")
def verify(
    *,
    config: typ.Annotated[
        Path, Parameter(help="Path to the site spec", env_var="PAGEFORGE_CONFIG")
    ] = DEFAULT_SITE_CONFIG,
    fail_on_category: typ.Annotated[
        list[str] | None,
        Parameter(help="Issue categories that fail the run (default: content, theme, route)"),
    ] = None,
    suppress: typ.Annotated[
        list[str] | None, Parameter(help="Issue codes or globs to ignore")
    ] = None,
    fail_on_warnings: typ.Annotated[
        bool, Parameter(help="Fail when any issue remains")
    ] = False,
    summary_path: typ.Annotated[
        Path | None, Parameter(help="Write a JSON summary here")
    ] = None,
) -> None:
    """Verify ``config`` and exit 1 when the gate fails."""
    overrides: dict[str, typ.Any] = {
        "suppress_issues": tuple(suppress or ()),
        "fail_on_warnings": fail_on_warnings,
        "summary_path": summary_path,
    }
    if fail_on_category:
        overrides["fail_on_categories"] = tuple(fail_on_category)
    with _exit_on_error():
        spec = load_site_spec(config)
        result = verify_site(spec, options=default_verify_options(**overrides))
    _report(result, "verify")


@app.command(help="Audit rendered HTML for structure, links, assets, and SEO.")
def audit(
    *,
    site_root: typ.Annotated[
        Path, Parameter(help="Built site directory", env_var="PAGEFORGE_SITE_ROOT")
    ] = DEFAULT_OUTPUT,
    max_total_files: typ.Annotated[
        int, Parameter(help="Warn above this many files (0 disables)")
    ] = 0,
    max_html_files: typ.Annotated[
        int, Parameter(help="Warn above this many HTML files (0 disables)")
    ] = 0,
    budget_exclude: typ.Annotated[
        list[str] | None, Parameter(help="Globs left out of file budgets")
    ] = None,
    fail_on_category: typ.Annotated[
        list[str] | None, Parameter(help="Issue categories that fail the run")
    ] = None,
    suppress: typ.Annotated[
        list[str] | None, Parameter(help="Issue codes or globs to ignore")
    ] = None,
    nav_selector: typ.Annotated[
        str, Parameter(help="CSS selector of the required navigation")
    ] = "nav",
    fail_on_warnings: typ.Annotated[
        bool, Parameter(help="Fail when any issue remains")
    ] = False,
    summary_path: typ.Annotated[
        Path | None, Parameter(help="Write a JSON summary here")
    ] = None,
) -> None:
    """Audit ``site_root`` and exit 1 when the gate fails.

    Without ``fail_on_category`` findings are reported but never fail the
    run.
    """
    options = CheckOptions(
        max_total_files=max_total_files,
        max_html_files=max_html_files,
        budget_exclude=tuple(budget_exclude or ()),
        fail_on_categories=tuple(fail_on_category or ()),
        suppress_issues=tuple(suppress or ()),
        nav_selector=nav_selector,
        fail_on_warnings=fail_on_warnings,
        summary_path=summary_path,
    )
    with _exit_on_error():
        result = audit_site(site_root, options)
    _report(result, "audit")


@app.command(help="Write a starter site with a theme, content, and a pipeline.")
def scaffold(
    *,
    out: typ.Annotated[Path, Parameter(help="Directory to create")] = Path(),
    name: typ.Annotated[str, Parameter(help="Site name")] = "My Site",
    base_url: typ.Annotated[
        str, Parameter(help="Public origin, e.g. https://example.com")
    ] = "",
    theme: typ.Annotated[
        str, Parameter(help="Name of the child theme extending 'base'")
    ] = "site",
    force: typ.Annotated[
        bool, Parameter(help="Write into a non-empty directory")
    ] = False,
) -> None:
    """Create a starter site under ``out``."""
    with _exit_on_error():
        written = scaffold_site(out, name=name, base_url=base_url, theme=theme, force=force)
    for path in written:
        print(f"wrote {_format_path(path)}")


@app.command(help="Run the steps of a pipeline file in order.")
def pipeline(
    *,
    config: typ.Annotated[
        Path, Parameter(help="Path to the pipeline file", env_var="PAGEFORGE_PIPELINE")
    ] = DEFAULT_PIPELINE,
) -> None:
    """Run ``config`` and print one line per step.

    Raises
    ------
    SystemExit
        With the failed step's exit code: its error family's code when the
        step raised (3 for a planning error, for example), otherwise 1. Code
        2 when the file cannot be loaded.
    """
    with _exit_on_error():
        result = run_pipeline(config, on_step=lambda step: print(step.line))
    failed = result.failed_step
    if failed is not None:
        print(f"pipeline failed at {failed.label}")
        raise SystemExit(failed.exit_code)
    print(f"pipeline ok: {len(result.steps)} step(s)")


@app.command(help="Keep the hosting redirect files for selected platforms.")
def hosting(
    *,
    site_root: typ.Annotated[Path, Parameter(help="Built site directory")] = DEFAULT_OUTPUT,
    target: typ.Annotated[
        list[str] | None, Parameter(help="Platforms to keep (netlify, azure, ...; all)")
    ] = None,
    keep_unselected: typ.Annotated[
        bool, Parameter(help="Leave other platforms' files in place")
    ] = False,
    strict: typ.Annotated[
        bool, Parameter(help="Fail when a selected file is missing")
    ] = False,
    dry_run: typ.Annotated[bool, Parameter(help="Report without deleting")] = False,
) -> None:
    """Run the ``hosting`` task once."""
    _run_task(
        "hosting",
        {
            "siteRoot": site_root,
            "targets": target or ["all"],
            "removeUnselected": not keep_unselected,
            "strict": strict,
            "dryRun": dry_run,
        },
    )


@app.command(help="Convert simple inline HTML in Markdown sources to Markdown.")
def markdown_fix(
    *,
    root: typ.Annotated[Path | None, Parameter(help="Directory to scan")] = None,
    config: typ.Annotated[
        Path | None, Parameter(help="Site spec whose contentRoot is scanned")
    ] = None,
    include: typ.Annotated[list[str] | None, Parameter(help="Globs to include")] = None,
    exclude: typ.Annotated[list[str] | None, Parameter(help="Globs to exclude")] = None,
    apply: typ.Annotated[bool, Parameter(help="Rewrite files in place")] = False,
    report_path: typ.Annotated[Path | None, Parameter(help="JSON report path")] = None,
    summary_path: typ.Annotated[Path | None, Parameter(help="Markdown summary path")] = None,
    fail_on_changes: typ.Annotated[
        bool, Parameter(help="Fail when any file needs fixes")
    ] = False,
) -> None:
    """Run the ``markdown-fix`` task once."""
    _run_task(
        "markdown-fix",
        {
            "root": root,
            "config": config,
            "include": include,
            "exclude": exclude,
            "apply": apply,
            "reportPath": report_path,
            "summaryPath": summary_path,
            "failOnChanges": fail_on_changes,
        },
    )


@app.command(help="Submit site URLs to IndexNow.")
def indexnow(
    *,
    url: typ.Annotated[list[str] | None, Parameter(help="Absolute URLs")] = None,
    path: typ.Annotated[
        list[str] | None, Parameter(help="Site paths joined onto --base-url")
    ] = None,
    base_url: typ.Annotated[str | None, Parameter(help="Public origin")] = None,
    url_file: typ.Annotated[Path | None, Parameter(help="File with one URL per line")] = None,
    sitemap: typ.Annotated[Path | None, Parameter(help="sitemap.xml to read")] = None,
    key: typ.Annotated[str | None, Parameter(help="IndexNow key")] = None,
    key_path: typ.Annotated[Path | None, Parameter(help="File holding the key")] = None,
    key_env: typ.Annotated[
        str, Parameter(help="Environment variable holding the key")
    ] = "INDEXNOW_KEY",
    endpoint: typ.Annotated[list[str] | None, Parameter(help="Endpoints to notify")] = None,
    batch_size: typ.Annotated[int, Parameter(help="URLs per request")] = 500,
    retry_count: typ.Annotated[int, Parameter(help="Retries per batch")] = 2,
    dry_run: typ.Annotated[bool, Parameter(help="Plan requests without sending")] = False,
    report_path: typ.Annotated[Path | None, Parameter(help="JSON report path")] = None,
    summary_path: typ.Annotated[Path | None, Parameter(help="Markdown summary path")] = None,
) -> None:
    """Run the ``indexnow`` task once."""
    _run_task(
        "indexnow",
        {
            "urls": url,
            "paths": path,
            "baseUrl": base_url,
            "urlFile": url_file,
            "sitemap": sitemap,
            "key": key,
            "keyPath": key_path,
            "keyEnv": key_env,
            "endpoints": endpoint,
            "batchSize": batch_size,
            "retryCount": retry_count,
            "dryRun": dry_run,
            "reportPath": report_path,
            "summaryPath": summary_path,
        },
    )


@app.command(help="Merge xref maps into one deduplicated map.")
def xref_merge(
    *,
    out: typ.Annotated[Path, Parameter(help="Merged map to write")] = Path("xrefmap.json"),
    input: typ.Annotated[  # noqa: A002
        list[str] | None, Parameter(help="Map files or directories")
    ] = None,
    pattern: typ.Annotated[str, Parameter(help="File glob inside directories")] = "*.json",
    prefer_last: typ.Annotated[
        bool, Parameter(help="Later maps override earlier hrefs")
    ] = False,
    fail_on_duplicates: typ.Annotated[
        bool, Parameter(help="Fail when a uid appears twice")
    ] = False,
    fail_on_warnings: typ.Annotated[bool, Parameter(help="Fail on any warning")] = False,
) -> None:
    """Run the ``xref-merge`` task once."""
    _run_task(
        "xref-merge",
        {
            "out": out,
            "inputs": input,
            "pattern": pattern,
            "preferLast": prefer_last,
            "failOnDuplicates": fail_on_duplicates,
            "failOnWarnings": fail_on_warnings,
        },
    )


@app.command(help="Delete stale GitHub Actions artifacts (dry run unless --apply).")
def artifact_prune(
    *,
    repository: typ.Annotated[
        str | None, Parameter(help="owner/repo (falls back to GITHUB_REPOSITORY)")
    ] = None,
    token: typ.Annotated[
        str | None, Parameter(help="GitHub token (falls back to GITHUB_TOKEN or GH_TOKEN)")
    ] = None,
    include: typ.Annotated[list[str] | None, Parameter(help="Artifact name globs")] = None,
    exclude: typ.Annotated[list[str] | None, Parameter(help="Names to keep")] = None,
    keep_latest_per_name: typ.Annotated[int, Parameter(help="Newest kept per name")] = 5,
    max_age_days: typ.Annotated[int, Parameter(help="Keep artifacts younger than this")] = 7,
    max_delete: typ.Annotated[int, Parameter(help="Cap on deletions")] = 200,
    apply: typ.Annotated[bool, Parameter(help="Actually delete artifacts")] = False,
    fail_on_delete_error: typ.Annotated[
        bool, Parameter(help="Fail when a delete request fails")
    ] = False,
    report_path: typ.Annotated[Path | None, Parameter(help="JSON report path")] = None,
) -> None:
    """Run the ``artifact-prune`` task once."""
    _run_task(
        "artifact-prune",
        {
            "repository": repository,
            "token": token,
            "include": include,
            "exclude": exclude,
            "keepLatestPerName": keep_latest_per_name,
            "maxAgeDays": max_age_days,
            "maxDelete": max_delete,
            "dryRun": not apply,
            "failOnDeleteError": fail_on_delete_error,
            "reportPath": report_path,
        },
    )


def main() -> None:
    """Invoke the Cyclopts application behind the ``pageforge`` console command.

    Examples
    --------
    >>> main()  # doctest: +SKIP
    """
    app()


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    main()

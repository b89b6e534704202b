"""Executors for every pipeline task kind.

Each executor receives its resolved option record and the shared
:class:`~pageforge.pipeline.models.RunContext`, and returns a
:class:`~pageforge.pipeline.models.TaskOutcome`. Executors raise the
``pageforge.errors`` classes for invalid options or unreachable services;
the runner turns those into failed steps.
"""

from __future__ import annotations

import dataclasses as dc
import os
import typing as typ

from pageforge.artifacts import ArtifactPruneOptions, GitHubArtifactClient, prune_artifacts
from pageforge.checks import CheckOptions, audit_site, verify_site
from pageforge.commands import build_argv, run_command
from pageforge.config import load_site_spec
from pageforge.errors import NetworkError, TaskOptionError
from pageforge.generator import build_site
from pageforge.hosting import select_hosting_targets
from pageforge.indexnow import (
    IndexNowClient,
    combine_url,
    normalize_urls,
    read_sitemap_urls,
    read_url_file,
    resolve_key,
    split_values,
    submit_urls,
)
from pageforge.markdown_fix import fix_markdown
from pageforge.planner import plan_site
from pageforge.reports import write_json_file, write_text_file
from pageforge.xref import XrefMergeOptions, merge_xref_maps

from .models import TaskOutcome
from .options import (
    ArtifactPruneTaskOptions,
    AuditOptions,
    BuildOptions,
    ExecOptions,
    HostingOptions,
    IndexNowOptions,
    MarkdownFixOptions,
    VerifyOptions,
    XrefMergeTaskOptions,
)

if typ.TYPE_CHECKING:
    from .models import RunContext

DEFAULT_EXEC_TIMEOUT = 600.0


def run_build(options: BuildOptions, context: RunContext) -> TaskOutcome:
    """Load, plan, and build a site; keep the plan for a later ``verify``."""
    spec = load_site_spec(options.config)
    plan = plan_site(spec, options.config)
    result = build_site(plan, options.out, clean=options.clean)
    context.plan = plan
    context.plan_config = options.config.resolve()
    payload = {
        "outDir": str(result.out_dir),
        "pages": result.pages,
        "copied": result.copied,
        "written": len(result.written),
        "warnings": list(plan.warnings),
    }
    return TaskOutcome(success=True, message=result.message, payload=payload)


def run_verify(options: VerifyOptions, context: RunContext) -> TaskOutcome:
    """Verify the site spec, reusing the plan of a preceding build of it."""
    config = options.config.resolve()
    spec = load_site_spec(config)
    plan = context.plan if context.plan_config == config else None
    check_options = CheckOptions(
        suppress_issues=options.suppress_issues,
        fail_on_categories=options.fail_on_categories,
        fail_on_warnings=options.fail_on_warnings,
        summary_path=options.summary_path,
    )
    result = verify_site(spec, plan, check_options)
    return TaskOutcome(
        success=result.success, message=result.summary("verify"), payload=result.to_dict()
    )


def run_audit(options: AuditOptions, context: RunContext) -> TaskOutcome:
    """Audit built HTML under ``siteRoot``."""
    check_options = CheckOptions(
        check_nav=options.nav_required,
        check_links=options.check_links,
        check_assets=options.check_assets,
        nav_selector=options.nav_selector,
        include=options.include,
        exclude=options.exclude,
        max_total_files=options.max_total_files,
        max_html_files=options.max_html_files,
        budget_exclude=options.budget_exclude,
        suppress_issues=options.suppress_issues,
        fail_on_categories=options.fail_on_categories,
        fail_on_warnings=options.fail_on_warnings,
        summary_path=options.summary_path,
    )
    result = audit_site(options.site_root, check_options)
    return TaskOutcome(
        success=result.success, message=result.summary("audit"), payload=result.to_dict()
    )


def run_exec(options: ExecOptions, context: RunContext) -> TaskOutcome:
    """Run an external command without a shell."""
    argv = build_argv(options.command, options.args, options.args_list)
    cwd = options.working_directory or context.base_dir
    if not cwd.is_dir():
        msg = f"exec working directory not found: {cwd}"
        raise TaskOptionError(msg)
    timeout = options.timeout_seconds if options.timeout_seconds > 0 else DEFAULT_EXEC_TIMEOUT
    result = run_command(argv, cwd=cwd, timeout=timeout)
    payload = {
        "argv": result.argv,
        "returnCode": result.returncode,
        "timedOut": result.timed_out,
    }
    return TaskOutcome(success=result.success, message=result.message, payload=payload)


def run_markdown_fix(options: MarkdownFixOptions, context: RunContext) -> TaskOutcome:
    """Rewrite simple inline HTML in Markdown sources."""
    root = options.root
    if root is None:
        if options.config is None:
            msg = "markdown-fix requires root or config."
            raise TaskOptionError(msg)
        spec = load_site_spec(options.config)
        root = spec.resolve(spec.content_root)

    result = fix_markdown(
        root, include=options.include, exclude=options.exclude, apply=options.apply
    )
    payload = result.to_dict()
    if options.report_path is not None:
        write_json_file(options.report_path, payload)
    if options.summary_path is not None:
        write_text_file(options.summary_path, result.summary_markdown())
    if options.fail_on_changes and result.changed_file_count:
        message = (
            f"{result.message}; failOnChanges is set and "
            f"{result.changed_file_count} file(s) need fixes"
        )
        return TaskOutcome(success=False, message=message, payload=payload)
    return TaskOutcome(success=True, message=result.message, payload=payload)


def run_hosting(options: HostingOptions, context: RunContext) -> TaskOutcome:
    """Keep the hosting redirect files for the selected platforms."""
    if not options.site_root.is_dir():
        msg = f"hosting site root not found: {options.site_root}"
        raise TaskOptionError(msg)
    selection = select_hosting_targets(
        options.site_root,
        options.targets,
        remove_unselected=options.remove_unselected,
        strict=options.strict,
        dry_run=options.dry_run,
    )
    return TaskOutcome(success=True, message=selection.message, payload=selection.to_dict())


def _collect_indexnow_urls(options: IndexNowOptions) -> list[str]:
    urls = split_values(options.urls)
    urls.extend(combine_url(options.base_url or "", path) for path in split_values(options.paths))
    if options.url_file is not None:
        urls.extend(read_url_file(options.url_file, options.base_url))
    if options.sitemap is not None:
        urls.extend(read_sitemap_urls(options.sitemap))
    return urls


def run_indexnow(options: IndexNowOptions, context: RunContext) -> TaskOutcome:
    """Submit site URLs to IndexNow.

    The key is resolved before any URL is read or request sent; with
    ``optionalKey`` a missing key skips the step instead of failing it.

    Raises
    ------
    TaskOptionError
        If the key is missing, no URLs resolve under ``failOnEmpty``, or
        ``maxUrls`` is exceeded without ``truncateToMaxUrls``.
    NetworkError
        If a batch fails and request errors are fatal.
    """
    key = resolve_key(options.key, options.key_path, options.key_env)
    if key is None:
        if options.optional_key:
            message = f"indexnow skipped: no key found (env '{options.key_env}' is empty)"
            return TaskOutcome(success=True, message=message)
        msg = f"indexnow: missing key (set env '{options.key_env}' or provide key/keyPath)."
        raise TaskOptionError(msg)

    warnings: list[str] = []
    urls = normalize_urls(_collect_indexnow_urls(options), warnings)
    if not urls and options.fail_on_empty:
        msg = "indexnow: no URLs resolved and failOnEmpty is set."
        raise TaskOptionError(msg)
    if options.max_urls > 0 and len(urls) > options.max_urls:
        if not options.truncate_to_max_urls:
            msg = (
                f"indexnow: {len(urls)} URLs exceed maxUrls {options.max_urls} "
                "(set truncateToMaxUrls to submit the first maxUrls)."
            )
            raise TaskOptionError(msg)
        warnings.append(f"indexnow: truncated {len(urls)} URLs to maxUrls {options.max_urls}.")
        urls = urls[: options.max_urls]

    client = IndexNowClient(
        session=context.session,
        timeout=options.timeout_seconds,
        retry_count=options.retry_count,
        retry_delay_ms=options.retry_delay_ms,
    )
    result = submit_urls(
        urls,
        key=key,
        endpoints=options.endpoints,
        key_location=options.key_location,
        batch_size=options.batch_size,
        dry_run=options.dry_run,
        fail_on_request_error=options.fail_on_request_error and not options.continue_on_error,
        client=client,
    )
    result.warnings[:0] = warnings
    if options.report_path is not None:
        write_json_file(options.report_path, result.to_dict())
    if options.summary_path is not None:
        write_text_file(options.summary_path, result.summary_markdown())
    if not result.success:
        raise NetworkError(result.message)
    return TaskOutcome(success=True, message=result.message, payload=result.to_dict())


def run_xref_merge(options: XrefMergeTaskOptions, context: RunContext) -> TaskOutcome:
    """Merge xref maps into one file."""
    result = merge_xref_maps(
        XrefMergeOptions(
            out=options.out,
            inputs=list(options.inputs),
            pattern=options.pattern,
            recursive=options.recursive,
            prefer_last=options.prefer_last,
            fail_on_duplicates=options.fail_on_duplicates,
            max_references=options.max_references,
            max_duplicates=options.max_duplicates,
            max_reference_growth_count=options.max_reference_growth_count,
            max_reference_growth_percent=options.max_reference_growth_percent,
        )
    )
    payload = {
        "out": str(result.out),
        "sourceCount": result.source_count,
        "referenceCount": result.reference_count,
        "duplicateCount": result.duplicate_count,
        "referenceDeltaCount": result.reference_delta_count,
        "warnings": list(result.warnings),
    }
    if options.fail_on_warnings and result.warnings:
        headline = (result.budget_warnings or result.warnings)[0]
        return TaskOutcome(success=False, message=headline, payload=payload)
    return TaskOutcome(success=True, message=result.message, payload=payload)


def _github_token(options: ArtifactPruneTaskOptions) -> str | None:
    return (
        options.token
        or os.environ.get(options.token_env, "").strip()
        or os.environ.get("GH_TOKEN", "").strip()
        or None
    )


def run_artifact_prune(options: ArtifactPruneTaskOptions, context: RunContext) -> TaskOutcome:
    """Prune stale GitHub Actions artifacts (dry run by default)."""
    token = _github_token(options)
    if token is None:
        msg = (
            f"artifact-prune requires a token (set env '{options.token_env}' "
            "or provide token)."
        )
        raise TaskOptionError(msg)
    repository = options.repository or os.environ.get("GITHUB_REPOSITORY", "")
    client = GitHubArtifactClient(
        token=token, api_base=options.api_base_url, session=context.session
    )
    result = prune_artifacts(
        client,
        ArtifactPruneOptions(
            repository=repository,
            include=options.include,
            exclude=options.exclude,
            keep_latest_per_name=options.keep_latest_per_name,
            max_age_days=options.max_age_days,
            max_delete=options.max_delete,
            page_size=options.page_size,
            dry_run=options.dry_run,
            fail_on_delete_error=options.fail_on_delete_error,
        ),
    )
    payload = result.to_dict()
    if options.report_path is not None:
        write_json_file(options.report_path, payload)
    return TaskOutcome(success=result.success, message=result.message, payload=payload)


@dc.dataclass(frozen=True, slots=True)
class TaskDefinition:
    """Option record and executor registered for one task kind."""

    name: str
    options: type
    execute: typ.Callable[[typ.Any, RunContext], TaskOutcome]


TASKS: dict[str, TaskDefinition] = {
    definition.name: definition
    for definition in (
        TaskDefinition("build", BuildOptions, run_build),
        TaskDefinition("verify", VerifyOptions, run_verify),
        TaskDefinition("audit", AuditOptions, run_audit),
        TaskDefinition("exec", ExecOptions, run_exec),
        TaskDefinition("markdown-fix", MarkdownFixOptions, run_markdown_fix),
        TaskDefinition("hosting", HostingOptions, run_hosting),
        TaskDefinition("indexnow", IndexNowOptions, run_indexnow),
        TaskDefinition("xref-merge", XrefMergeTaskOptions, run_xref_merge),
        TaskDefinition("artifact-prune", ArtifactPruneTaskOptions, run_artifact_prune),
    )
}
TASK_ALIASES = {
    "markdown-hygiene": "markdown-fix",
    "github-artifacts-prune": "artifact-prune",
}


def get_task(name: str) -> TaskDefinition:
    """Return the registered definition for ``name`` or one of its aliases.

    Raises
    ------
    TaskOptionError
        If ``name`` is not a known task kind.
    """
    key = name.strip().lower()
    definition = TASKS.get(TASK_ALIASES.get(key, key))
    if definition is None:
        msg = f"Unknown task '{name}'"
        raise TaskOptionError(msg)
    return definition


__all__ = ["TASKS", "TASK_ALIASES", "TaskDefinition", "get_task"]

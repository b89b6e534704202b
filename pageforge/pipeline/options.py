"""Per-task option records and the alias-aware resolver that fills them.

Each pipeline task reads its step mapping through a fixed alias table. The
table lives on the option dataclass itself: every field carries the keys it
accepts (first key is the canonical name used in messages) and the kind of
value it expects. :func:`resolve_options` walks those fields, so adding an
option means adding one field.

Keys are matched case-sensitively, exactly as written in the alias table.

Examples
--------
>>> from pathlib import Path
>>> from pageforge.pipeline.options import HostingOptions, resolve_options
>>> opts = resolve_options(
...     HostingOptions,
...     {"site-root": "public", "targets": "netlify,vercel"},
...     Path("/srv/site"),
...     task="hosting",
... )
>>> opts.site_root.as_posix(), opts.targets
('/srv/site/public', ('netlify', 'vercel'))
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from pathlib import Path

from pageforge._constants import DEFAULT_GITHUB_API
from pageforge.checks.verify import VERIFY_FAIL_CATEGORIES
from pageforge.config.helpers import _coerce_bool, _normalize_list, _optional_str
from pageforge.errors import TaskOptionError
from pageforge.indexnow import DEFAULT_KEY_ENV

Kind = typ.Literal["str", "path", "paths", "bool", "int", "float", "list", "names"]

OptionT = typ.TypeVar("OptionT")


def option(
    *keys: str,
    kind: Kind = "str",
    default: typ.Any = None,
    required: bool = False,
) -> typ.Any:
    """Declare a step option accepted under ``keys``."""
    return dc.field(
        default=default,
        metadata={"keys": keys, "kind": kind, "required": required},
    )


@dc.dataclass(slots=True)
class BuildOptions:
    config: Path = option("config", kind="path", required=True)
    out: Path = option("out", "output", kind="path", required=True)
    clean: bool = option("clean", kind="bool", default=False)


@dc.dataclass(slots=True)
class VerifyOptions:
    config: Path = option("config", kind="path", required=True)
    fail_on_warnings: bool = option("failOnWarnings", kind="bool", default=False)
    fail_on_categories: tuple[str, ...] = option(
        "failOnCategories", kind="list", default=VERIFY_FAIL_CATEGORIES
    )
    suppress_issues: tuple[str, ...] = option("suppressIssues", kind="list", default=())
    summary_path: Path | None = option("summaryPath", kind="path")


@dc.dataclass(slots=True)
class AuditOptions:
    site_root: Path = option("siteRoot", "site-root", "root", kind="path", required=True)
    include: tuple[str, ...] = option("include", kind="list", default=())
    exclude: tuple[str, ...] = option("exclude", kind="list", default=())
    max_total_files: int = option("maxTotalFiles", kind="int", default=0)
    max_html_files: int = option("maxHtmlFiles", kind="int", default=0)
    budget_exclude: tuple[str, ...] = option("budgetExclude", kind="list", default=())
    fail_on_categories: tuple[str, ...] = option("failOnCategories", kind="list", default=())
    suppress_issues: tuple[str, ...] = option("suppressIssues", kind="list", default=())
    nav_selector: str = option("navSelector", default="nav")
    nav_required: bool = option("navRequired", kind="bool", default=True)
    check_links: bool = option("checkLinks", kind="bool", default=True)
    check_assets: bool = option("checkAssets", kind="bool", default=True)
    fail_on_warnings: bool = option("failOnWarnings", kind="bool", default=False)
    summary_path: Path | None = option("summaryPath", kind="path")


@dc.dataclass(slots=True)
class ExecOptions:
    command: str = option("command", "cmd", "file", required=True)
    args: str | None = option("args", "arguments")
    args_list: tuple[str, ...] = option(
        "argsList", "args-list", "argumentsList", kind="list", default=()
    )
    working_directory: Path | None = option("workingDirectory", "workingDir", "cwd", kind="path")
    timeout_seconds: float = option("timeoutSeconds", "timeout-seconds", kind="float", default=600.0)


@dc.dataclass(slots=True)
class MarkdownFixOptions:
    root: Path | None = option("root", "path", "siteRoot", kind="path")
    config: Path | None = option("config", kind="path")
    include: tuple[str, ...] = option("include", kind="list", default=())
    exclude: tuple[str, ...] = option("exclude", kind="list", default=())
    apply: bool = option("apply", kind="bool", default=False)
    report_path: Path | None = option("reportPath", kind="path")
    summary_path: Path | None = option("summaryPath", kind="path")
    fail_on_changes: bool = option("failOnChanges", kind="bool", default=False)


@dc.dataclass(slots=True)
class HostingOptions:
    site_root: Path = option("siteRoot", "site-root", kind="path", required=True)
    targets: tuple[str, ...] = option(
        "targets", "target", "hosts", "hostTargets", kind="names", default=("all",)
    )
    remove_unselected: bool = option(
        "removeUnselected", "remove-unselected", "clean", kind="bool", default=True
    )
    strict: bool = option("strict", kind="bool", default=False)
    dry_run: bool = option("dryRun", "dry-run", kind="bool", default=False)


@dc.dataclass(slots=True)
class IndexNowOptions:
    """Options for the ``indexnow`` task.

    ``continue_on_error`` inverts ``fail_on_request_error`` so a failed
    batch is reported without failing the step.
    """

    urls: tuple[str, ...] = option("urls", "url", kind="list", default=())
    paths: tuple[str, ...] = option("paths", "path", kind="list", default=())
    base_url: str | None = option("baseUrl", "base-url")
    url_file: Path | None = option("urlFile", "url-file", kind="path")
    sitemap: Path | None = option("sitemap", kind="path")
    max_urls: int = option("maxUrls", kind="int", default=10_000)
    truncate_to_max_urls: bool = option("truncateToMaxUrls", kind="bool", default=False)
    fail_on_empty: bool = option("failOnEmpty", kind="bool", default=False)
    key: str | None = option("key")
    key_path: Path | None = option("keyPath", "keyFile", kind="path")
    key_env: str = option("keyEnv", default=DEFAULT_KEY_ENV)
    optional_key: bool = option("optionalKey", kind="bool", default=False)
    endpoints: tuple[str, ...] = option("endpoints", "endpoint", kind="list", default=())
    key_location: str | None = option("keyLocation")
    batch_size: int = option("batchSize", kind="int", default=500)
    retry_count: int = option("retryCount", "retry", kind="int", default=2)
    retry_delay_ms: int = option("retryDelayMs", kind="int", default=500)
    timeout_seconds: float = option("timeoutSeconds", kind="float", default=20.0)
    dry_run: bool = option("dryRun", "dry-run", kind="bool", default=False)
    fail_on_request_error: bool = option("failOnRequestError", kind="bool", default=True)
    continue_on_error: bool = option("continueOnError", kind="bool", default=False)
    report_path: Path | None = option("reportPath", kind="path")
    summary_path: Path | None = option("summaryPath", kind="path")


@dc.dataclass(slots=True)
class XrefMergeTaskOptions:
    out: Path = option("out", "output", kind="path", required=True)
    inputs: tuple[Path, ...] = option(
        "map", "maps", "input", "inputs", "source", "sources", "mapFiles",
        kind="paths",
        default=(),
    )
    pattern: str = option("pattern", default="*.json")
    recursive: bool = option("recursive", kind="bool", default=True)
    prefer_last: bool = option("preferLast", kind="bool", default=False)
    fail_on_duplicates: bool = option("failOnDuplicates", kind="bool", default=False)
    max_references: int = option("maxReferences", kind="int", default=0)
    max_duplicates: int = option("maxDuplicates", kind="int", default=0)
    max_reference_growth_count: int = option("maxReferenceGrowthCount", kind="int", default=0)
    max_reference_growth_percent: float = option(
        "maxReferenceGrowthPercent", kind="float", default=0.0
    )
    fail_on_warnings: bool = option("failOnWarnings", kind="bool", default=False)


@dc.dataclass(slots=True)
class ArtifactPruneTaskOptions:
    repository: str | None = option("repository", "repo")
    token: str | None = option("token")
    token_env: str = option("tokenEnv", default="GITHUB_TOKEN")
    include: tuple[str, ...] = option("include", "name", "names", kind="list", default=())
    exclude: tuple[str, ...] = option("exclude", kind="list", default=())
    keep_latest_per_name: int = option("keepLatestPerName", kind="int", default=5)
    max_age_days: int = option("maxAgeDays", kind="int", default=7)
    max_delete: int = option("maxDelete", kind="int", default=200)
    page_size: int = option("pageSize", kind="int", default=100)
    dry_run: bool = option("dryRun", "dry-run", kind="bool", default=True)
    fail_on_delete_error: bool = option("failOnDeleteError", kind="bool", default=False)
    api_base_url: str = option("apiBaseUrl", default=DEFAULT_GITHUB_API)
    report_path: Path | None = option("reportPath", kind="path")


def _resolve_path(value: str, base_dir: Path) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def _convert(kind: Kind, value: typ.Any, *, key: str, task: str, base_dir: Path) -> typ.Any:
    match kind:
        case "bool":
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text not in {"true", "false", "yes", "no", "1", "0", "on", "off"}:
                msg = f"{task} option '{key}' must be a boolean."
                raise TaskOptionError(msg)
            return _coerce_bool(text)
        case "int" | "float":
            if isinstance(value, bool):
                msg = f"{task} option '{key}' must be a number."
                raise TaskOptionError(msg)
            try:
                return int(str(value).strip()) if kind == "int" else float(str(value).strip())
            except ValueError as exc:
                msg = f"{task} option '{key}' must be a number."
                raise TaskOptionError(msg) from exc
        case "list" | "names":
            return tuple(_normalize_list(value))
        case "path":
            return _resolve_path(str(value).strip(), base_dir)
        case "paths":
            return tuple(_resolve_path(item, base_dir) for item in _normalize_list(value))
        case _:
            return str(value).strip()


def _is_blank(value: typ.Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return _optional_str(value) is None
    return isinstance(value, (list, tuple)) and not value


def resolve_options(
    cls: type[OptionT],
    raw: typ.Mapping[str, typ.Any],
    base_dir: Path,
    *,
    task: str,
) -> OptionT:
    """Build an instance of ``cls`` from the raw step mapping ``raw``.

    Parameters
    ----------
    cls : type
        One of the option dataclasses in this module.
    raw : Mapping[str, Any]
        The step as written in the pipeline file.
    base_dir : Path
        Directory that relative paths resolve against.
    task : str
        Task name used in error messages.

    Returns
    -------
    OptionT
        The populated option record. The first alias present wins, except
        for ``paths`` and ``names`` options, which collect every alias.
        ``names`` drops repeated entries, keeping the first.

    Raises
    ------
    TaskOptionError
        If a required option is missing or a value has the wrong type.
    """
    values: dict[str, typ.Any] = {}
    for field in dc.fields(cls):  # type: ignore[arg-type]
        keys: tuple[str, ...] = field.metadata["keys"]
        kind: Kind = field.metadata["kind"]
        present = [key for key in keys if key in raw and not _is_blank(raw[key])]
        if not present:
            if field.metadata["required"]:
                msg = f"{task} requires {keys[0]}."
                raise TaskOptionError(msg)
            continue
        if kind == "paths":
            values[field.name] = tuple(
                path
                for key in present
                for path in _convert(kind, raw[key], key=key, task=task, base_dir=base_dir)
            )
            continue
        if kind == "names":
            values[field.name] = tuple(
                dict.fromkeys(
                    name
                    for key in present
                    for name in _convert(kind, raw[key], key=key, task=task, base_dir=base_dir)
                )
            )
            continue
        key = present[0]
        values[field.name] = _convert(kind, raw[key], key=key, task=task, base_dir=base_dir)
    return cls(**values)


__all__ = [
    "ArtifactPruneTaskOptions",
    "AuditOptions",
    "BuildOptions",
    "ExecOptions",
    "HostingOptions",
    "IndexNowOptions",
    "MarkdownFixOptions",
    "VerifyOptions",
    "XrefMergeTaskOptions",
    "option",
    "resolve_options",
]

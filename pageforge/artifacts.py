r"""Prune old GitHub Actions artifacts.

The client wraps the two endpoints cleanup needs, listing
``/repos/:owner/:repo/actions/artifacts`` page by page and deleting one
artifact by id. :func:`prune_artifacts` keeps the newest artifacts per name,
skips anything younger than the age threshold, and deletes the oldest
remainder up to a cap. Dry runs (the default) never send a delete request.

Example
-------
>>> from pageforge.artifacts import ArtifactPruneOptions, GitHubArtifactClient, prune_artifacts
>>> client = GitHubArtifactClient(token="ghp_example")  # doctest: +SKIP
>>> result = prune_artifacts(client, ArtifactPruneOptions(repository="octo/site"))  # doctest: +SKIP
>>> result.planned_deletes  # doctest: +SKIP
3
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import re
import typing as typ
from http import HTTPStatus

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pageforge._constants import DEFAULT_GITHUB_API, USER_AGENT
from pageforge.config.helpers import _parse_timestamp
from pageforge.errors import NetworkError, TaskOptionError
from pageforge.paths import glob_match

_ACCEPT_HEADER = "application/vnd.github+json"
DEFAULT_INCLUDE_PATTERNS = (
    "github-pages",
    "test-results*",
    "coverage*",
    "*-analysis*",
    "*-report*",
    "site-audit*",
    "seo-doctor*",
)
DELETE_OK = frozenset({HTTPStatus.NO_CONTENT, HTTPStatus.NOT_FOUND, HTTPStatus.GONE})
_EPOCH = dt.datetime.min.replace(tzinfo=dt.UTC)


@dc.dataclass(slots=True)
class Artifact:
    """Artifact metadata captured from the GitHub API.

    Attributes
    ----------
    id : int
        Artifact id used by the delete endpoint.
    size_in_bytes : int
        Compressed artifact size reported by GitHub.
    expired : bool
        Expired artifacts are already gone from storage and never pruned.
    """

    id: int
    name: str
    size_in_bytes: int = 0
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
    expired: bool = False
    workflow_run_id: int | None = None
    reason: str | None = None
    delete_status: int | None = None
    delete_error: str | None = None

    @property
    def timestamp(self) -> dt.datetime:
        """Return the timestamp used for ordering and age checks."""
        return self.updated_at or self.created_at or _EPOCH

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready mapping."""
        payload: dict[str, typ.Any] = {
            "id": self.id,
            "name": self.name,
            "sizeInBytes": self.size_in_bytes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "workflowRunId": self.workflow_run_id,
        }
        if self.reason:
            payload["reason"] = self.reason
        if self.delete_error:
            payload["deleteStatusCode"] = self.delete_status
            payload["deleteError"] = self.delete_error
        return payload


def _parse_artifact(item: typ.Mapping[str, typ.Any]) -> Artifact:
    run = item.get("workflow_run")
    run_id = run.get("id") if isinstance(run, dict) else None
    return Artifact(
        id=int(item.get("id", 0)),
        name=str(item.get("name") or ""),
        size_in_bytes=int(item.get("size_in_bytes") or 0),
        created_at=_parse_timestamp(item.get("created_at")),
        updated_at=_parse_timestamp(item.get("updated_at")),
        expired=bool(item.get("expired", False)),
        workflow_run_id=int(run_id) if run_id is not None else None,
    )


class GitHubArtifactClient:
    """Thin wrapper around the GitHub Actions artifact endpoints."""

    def __init__(
        self,
        *,
        token: str,
        api_base: str = DEFAULT_GITHUB_API,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialise the client with authentication and transport.

        Parameters
        ----------
        token : str
            Token with ``actions:write`` permission on the repository.
        api_base : str, optional
            Base URL for the GitHub API; override for GitHub Enterprise.
        session : requests.Session, optional
            Session to reuse. A new session retries transient ``GET``
            failures with backoff.
        timeout : float, optional
            Per-request timeout in seconds.
        """
        self._api_base = api_base.rstrip("/") or DEFAULT_GITHUB_API
        self._session = session or self._default_session()
        self.timeout = timeout
        self._headers = {
            "Accept": _ACCEPT_HEADER,
            "Authorization": f"Bearer {token}",
            "User-Agent": USER_AGENT,
        }

    @staticmethod
    def _default_session() -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=3,
            connect=3,
            read=3,
            backoff_factor=0.5,
            status_forcelist=(500, 502, 503, 504),
            allowed_methods=("GET",),
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def _url(self, repository: str, path: str) -> str:
        return f"{self._api_base}/repos/{repository}/{path}"

    def list_artifacts(self, repository: str, *, page_size: int = 100) -> list[Artifact]:
        """Return every artifact in ``repository``, following pagination.

        Raises
        ------
        NetworkError
            If GitHub cannot be reached or answers with an error status.
        """
        artifacts: list[Artifact] = []
        page = 1
        while True:
            url = self._url(repository, f"actions/artifacts?per_page={page_size}&page={page}")
            try:
                response = self._session.get(url, headers=self._headers, timeout=self.timeout)
            except requests.RequestException as exc:
                msg = f"Failed to list artifacts for '{repository}': {exc}"
                raise NetworkError(msg) from exc
            if response.status_code >= HTTPStatus.BAD_REQUEST:
                msg = (
                    f"GitHub artifact listing for '{repository}' failed with "
                    f"status {response.status_code}: {response.text[:200]}"
                )
                raise NetworkError(msg)
            try:
                payload = response.json()
            except ValueError as exc:
                msg = f"GitHub artifact listing for '{repository}' was not valid JSON"
                raise NetworkError(msg) from exc

            items = payload.get("artifacts") if isinstance(payload, dict) else None
            if not isinstance(items, list) or not items:
                break
            artifacts.extend(_parse_artifact(item) for item in items if isinstance(item, dict))
            total = payload.get("total_count")
            if isinstance(total, int) and len(artifacts) >= total:
                break
            if len(items) < page_size:
                break
            page += 1
        return artifacts

    def delete_artifact(self, repository: str, artifact_id: int) -> tuple[bool, int | None, str | None]:
        """Delete one artifact; return ``(ok, status, error)``.

        ``404`` and ``410`` count as success because the artifact is gone.
        """
        url = self._url(repository, f"actions/artifacts/{artifact_id}")
        try:
            response = self._session.delete(url, headers=self._headers, timeout=self.timeout)
        except requests.RequestException as exc:
            return False, None, f"Failed to delete artifact {artifact_id}: {exc}"
        if response.status_code in DELETE_OK:
            return True, response.status_code, None
        error = (
            f"Deleting artifact {artifact_id} failed with status "
            f"{response.status_code}: {response.text[:200]}"
        )
        return False, response.status_code, error


@dc.dataclass(slots=True)
class ArtifactPruneOptions:
    """Selection and safety limits for :func:`prune_artifacts`.

    ``max_age_days`` of ``None`` or below ``1`` disables the age threshold.
    """

    repository: str
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    keep_latest_per_name: int = 5
    max_age_days: int | None = 7
    max_delete: int = 200
    page_size: int = 100
    dry_run: bool = True
    fail_on_delete_error: bool = False


@dc.dataclass(slots=True)
class ArtifactPruneResult:
    """Counts and per-artifact outcomes of a prune run."""

    repository: str
    dry_run: bool
    scanned: int = 0
    matched: int = 0
    kept_recent: int = 0
    kept_by_age: int = 0
    planned: list[Artifact] = dc.field(default_factory=list)
    deleted: list[Artifact] = dc.field(default_factory=list)
    failed: list[Artifact] = dc.field(default_factory=list)
    success: bool = True
    note: str | None = None

    @property
    def planned_deletes(self) -> int:
        """Return how many artifacts were selected for deletion."""
        return len(self.planned)

    @property
    def planned_delete_bytes(self) -> int:
        """Return the combined size of the selected artifacts."""
        return sum(artifact.size_in_bytes for artifact in self.planned)

    @property
    def message(self) -> str:
        """Return the one-line summary reported by the pipeline."""
        mode = "dry-run" if self.dry_run else "ok"
        text = (
            f"artifact-prune {mode}: scanned={self.scanned}; matched={self.matched}; "
            f"plannedDeletes={self.planned_deletes}; deleted={len(self.deleted)}; "
            f"failed={len(self.failed)}"
        )
        if self.note:
            text += f"; {self.note}"
        return text

    def to_dict(self) -> dict[str, typ.Any]:
        """Return the JSON report payload."""
        return {
            "repository": self.repository,
            "dryRun": self.dry_run,
            "success": self.success,
            "scanned": self.scanned,
            "matched": self.matched,
            "keptByRecentWindow": self.kept_recent,
            "keptByAgeThreshold": self.kept_by_age,
            "plannedDeletes": self.planned_deletes,
            "plannedDeleteBytes": self.planned_delete_bytes,
            "deleted": len(self.deleted),
            "failed": len(self.failed),
            "message": self.note,
            "planned": [artifact.to_dict() for artifact in self.planned],
            "failures": [artifact.to_dict() for artifact in self.failed],
        }


def name_matches(name: str, pattern: str) -> bool:
    r"""Return whether artifact ``name`` matches a glob or ``re:`` pattern.

    Examples
    --------
    >>> name_matches("test-results-linux", "test-results*")
    True
    >>> name_matches("coverage-7", "re:^coverage-\\d+$")
    True
    """
    text = pattern.strip()
    if not text:
        return False
    if text.lower().startswith("re:"):
        return re.search(text[3:], name, re.IGNORECASE) is not None
    return glob_match(text, name)


def normalize_repository(value: str | None) -> str:
    """Return ``owner/repo`` from a slug or a GitHub URL."""
    text = (value or "").strip().rstrip("/")
    text = re.sub(r"^(?:https?://)?(?:www\.)?github\.com/", "", text, flags=re.IGNORECASE)
    text = text.removesuffix(".git")
    parts = [part for part in text.split("/") if part]
    if len(parts) != 2:
        return ""
    return "/".join(parts)


def _selection_reason(options: ArtifactPruneOptions, age_enabled: bool) -> str:
    reason = f"older-than-keep-window:{options.keep_latest_per_name}"
    if age_enabled:
        reason += f";older-than-days:{options.max_age_days}"
    return reason


def prune_artifacts(
    client: GitHubArtifactClient,
    options: ArtifactPruneOptions,
    *,
    now: dt.datetime | None = None,
) -> ArtifactPruneResult:
    """Select and (unless dry-running) delete stale artifacts.

    Parameters
    ----------
    client : GitHubArtifactClient
        Client bound to a token.
    options : ArtifactPruneOptions
        Selection rules; include defaults to :data:`DEFAULT_INCLUDE_PATTERNS`.
    now : datetime, optional
        Reference time for the age threshold.

    Returns
    -------
    ArtifactPruneResult
        ``success`` turns false only when a delete fails and
        ``fail_on_delete_error`` is set.

    Raises
    ------
    TaskOptionError
        If the repository is not an ``owner/repo`` slug.
    NetworkError
        If listing artifacts fails.
    """
    repository = normalize_repository(options.repository)
    if not repository:
        msg = "artifact-prune requires repository (owner/repo)."
        raise TaskOptionError(msg)
    include = tuple(p.strip() for p in options.include if p.strip()) or DEFAULT_INCLUDE_PATTERNS
    exclude = tuple(p.strip() for p in options.exclude if p.strip())
    keep = max(0, options.keep_latest_per_name)
    max_delete = max(1, options.max_delete)
    page_size = min(100, max(1, options.page_size))
    age_enabled = options.max_age_days is not None and options.max_age_days >= 1
    reference = now or dt.datetime.now(dt.UTC)
    cutoff = reference - dt.timedelta(days=options.max_age_days or 0) if age_enabled else None

    artifacts = client.list_artifacts(repository, page_size=page_size)
    matched = [
        artifact
        for artifact in artifacts
        if not artifact.expired
        and any(name_matches(artifact.name, pattern) for pattern in include)
        and not any(name_matches(artifact.name, pattern) for pattern in exclude)
    ]
    result = ArtifactPruneResult(
        repository=repository,
        dry_run=options.dry_run,
        scanned=len(artifacts),
        matched=len(matched),
    )

    groups: dict[str, list[Artifact]] = {}
    for artifact in matched:
        groups.setdefault(artifact.name.lower(), []).append(artifact)
    candidates: list[Artifact] = []
    reason = _selection_reason(options, age_enabled)
    for members in groups.values():
        ordered = sorted(members, key=lambda item: (item.timestamp, item.id), reverse=True)
        for index, artifact in enumerate(ordered):
            if index < keep:
                result.kept_recent += 1
            elif cutoff is not None and artifact.timestamp > cutoff:
                result.kept_by_age += 1
            else:
                artifact.reason = reason
                candidates.append(artifact)

    candidates.sort(key=lambda item: (item.timestamp, item.name.lower(), item.id))
    result.planned = candidates[:max_delete]
    if options.dry_run or not result.planned:
        return result

    for artifact in result.planned:
        ok, status, error = client.delete_artifact(repository, artifact.id)
        if ok:
            result.deleted.append(artifact)
            continue
        artifact.delete_status = status
        artifact.delete_error = error
        result.failed.append(artifact)

    result.success = not result.failed or not options.fail_on_delete_error
    if not result.success:
        result.note = "One or more artifact delete operations failed."
    elif result.failed:
        result.note = "Cleanup finished with non-fatal delete errors."
    return result


__all__ = [
    "DEFAULT_INCLUDE_PATTERNS",
    "Artifact",
    "ArtifactPruneOptions",
    "ArtifactPruneResult",
    "GitHubArtifactClient",
    "name_matches",
    "normalize_repository",
    "prune_artifacts",
]

r"""Submit changed URLs to IndexNow endpoints.

URLs come from explicit lists, site-relative paths joined onto a base URL,
URL files, or a built ``sitemap.xml``. They are grouped by host and posted in
batches as ``{host, key, keyLocation, urlList}``. Each batch is retried a
fixed number of times; nothing here retries forever.

Example
-------
>>> from pageforge.indexnow import IndexNowClient, submit_urls
>>> client = IndexNowClient(retry_count=1)  # doctest: +SKIP
>>> result = submit_urls(["https://example.test/"], key="abc", client=client)  # doctest: +SKIP
>>> result.message  # doctest: +SKIP
'indexnow: 1 urls, 1 requests, 0 failed'
"""

from __future__ import annotations

import dataclasses as dc
import os
import time
import typing as typ
from http import HTTPStatus
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

import requests
from bs4 import BeautifulSoup

from pageforge._constants import DEFAULT_INDEXNOW_ENDPOINT, USER_AGENT
from pageforge.errors import TaskOptionError

if typ.TYPE_CHECKING:
    from pathlib import Path

MAX_BATCH_SIZE = 10_000
MAX_PREVIEW_LENGTH = 300
DEFAULT_KEY_ENV = "INDEXNOW_KEY"
_SPLIT_CHARS = ",;\n\r\t"


@dc.dataclass(slots=True)
class IndexNowRequest:
    """Outcome of one batch posted to one endpoint."""

    endpoint: str
    host: str
    url_count: int
    success: bool
    attempts: int = 0
    status_code: int | None = None
    error: str | None = None
    response_preview: str | None = None

    def to_dict(self) -> dict[str, typ.Any]:
        """Return the report entry for this request."""
        return {
            "endpoint": self.endpoint,
            "host": self.host,
            "urlCount": self.url_count,
            "success": self.success,
            "attemptCount": self.attempts,
            "statusCode": self.status_code,
            "error": self.error,
            "responsePreview": self.response_preview,
        }


@dc.dataclass(slots=True)
class IndexNowResult:
    """Aggregate outcome of a submission run."""

    success: bool = True
    dry_run: bool = False
    url_count: int = 0
    host_count: int = 0
    requests: list[IndexNowRequest] = dc.field(default_factory=list)
    errors: list[str] = dc.field(default_factory=list)
    warnings: list[str] = dc.field(default_factory=list)

    @property
    def failed_request_count(self) -> int:
        """Return how many batches failed after all attempts."""
        return sum(1 for request in self.requests if not request.success)

    @property
    def message(self) -> str:
        """Return the one-line summary reported by the pipeline."""
        summary = (
            f"indexnow: {self.url_count} urls, {len(self.requests)} requests, "
            f"{self.failed_request_count} failed"
        )
        if self.dry_run:
            summary += " (dry-run)"
        if self.warnings:
            summary += f", {len(self.warnings)} warnings"
        if self.errors:
            summary += f", {len(self.errors)} errors, first error: {self.errors[0]}"
        return summary

    def to_dict(self) -> dict[str, typ.Any]:
        """Return the JSON report payload."""
        return {
            "success": self.success,
            "dryRun": self.dry_run,
            "urlCount": self.url_count,
            "hostCount": self.host_count,
            "requestCount": len(self.requests),
            "failedRequestCount": self.failed_request_count,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "requests": [request.to_dict() for request in self.requests],
        }

    def summary_markdown(self) -> str:
        """Return a Markdown summary for CI step summaries."""
        lines = [
            "# IndexNow Summary",
            "",
            f"- Success: {'yes' if self.success else 'no'}",
            f"- Dry run: {'yes' if self.dry_run else 'no'}",
            f"- URLs: {self.url_count}",
            f"- Hosts: {self.host_count}",
            f"- Requests: {len(self.requests)}",
            f"- Failed requests: {self.failed_request_count}",
            f"- Warnings: {len(self.warnings)}",
            f"- Errors: {len(self.errors)}",
        ]
        for title, entries in (("Errors", self.errors), ("Warnings", self.warnings)):
            if entries:
                lines.extend(["", f"## {title}", ""])
                lines.extend(f"- {entry}" for entry in entries[:20])
        return "\n".join(lines) + "\n"


def _preview(text: str | None) -> str | None:
    if not text or not text.strip():
        return text
    normalized = text.strip()
    if len(normalized) <= MAX_PREVIEW_LENGTH:
        return normalized
    return normalized[:MAX_PREVIEW_LENGTH] + "..."


class IndexNowClient:
    """Post IndexNow payloads with a bounded retry loop.

    Parameters
    ----------
    session : requests.Session, optional
        Session used for every request; tests pass a fake.
    timeout : float, optional
        Per-request timeout in seconds.
    retry_count : int, optional
        Extra attempts after the first failure. ``0`` makes the first
        failure terminal.
    retry_delay_ms : int, optional
        Pause between attempts.
    sleep : callable, optional
        Delay function, replaceable in tests.
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout: float = 20.0,
        retry_count: int = 2,
        retry_delay_ms: int = 500,
        sleep: typ.Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session or requests.Session()
        self.timeout = timeout
        self.retry_count = max(0, retry_count)
        self.retry_delay_ms = max(0, retry_delay_ms)
        self._sleep = sleep
        self._headers = {
            "Content-Type": "application/json; charset=utf-8",
            "User-Agent": USER_AGENT,
        }

    def submit_batch(
        self,
        endpoint: str,
        *,
        host: str,
        key: str,
        key_location: str,
        urls: list[str],
    ) -> IndexNowRequest:
        """Post one batch, retrying up to ``retry_count`` times."""
        payload = {"host": host, "key": key, "keyLocation": key_location, "urlList": urls}
        max_attempts = self.retry_count + 1
        error: str | None = None
        status: int | None = None
        body: str | None = None
        for attempt in range(1, max_attempts + 1):
            error = status = body = None
            try:
                response = self._session.post(
                    endpoint, json=payload, headers=self._headers, timeout=self.timeout
                )
            except requests.RequestException as exc:
                error = str(exc) or exc.__class__.__name__
            else:
                status = response.status_code
                body = response.text
                if HTTPStatus.OK <= status < HTTPStatus.MULTIPLE_CHOICES:
                    return IndexNowRequest(
                        endpoint=endpoint,
                        host=host,
                        url_count=len(urls),
                        success=True,
                        attempts=attempt,
                        status_code=status,
                        response_preview=_preview(body),
                    )
            if attempt < max_attempts and self.retry_delay_ms:
                self._sleep(self.retry_delay_ms / 1000)

        if error is None:
            error = body.strip() if body and body.strip() else f"HTTP {status}"
        return IndexNowRequest(
            endpoint=endpoint,
            host=host,
            url_count=len(urls),
            success=False,
            attempts=max_attempts,
            status_code=status,
            error=_preview(error),
            response_preview=_preview(body),
        )


def split_values(values: str | typ.Iterable[str] | None) -> list[str]:
    """Split comma, semicolon, or newline separated values into a list."""
    if values is None:
        return []
    raw = [values] if isinstance(values, str) else list(values)
    tokens: list[str] = []
    for value in raw:
        text = str(value)
        for char in _SPLIT_CHARS:
            text = text.replace(char, "\n")
        tokens.extend(token.strip() for token in text.split("\n") if token.strip())
    return tokens


def combine_url(base_url: str, path_or_url: str) -> str:
    """Join ``path_or_url`` onto ``base_url`` unless it is already absolute.

    Examples
    --------
    >>> combine_url("example.test", "docs/")
    'https://example.test/docs/'
    """
    parts = urlsplit(path_or_url)
    if parts.scheme in {"http", "https"} and parts.netloc:
        return path_or_url
    base = base_url.strip()
    if not base:
        msg = "indexnow: missing 'baseUrl' (required when using paths)."
        raise TaskOptionError(msg)
    if not base.lower().startswith(("http://", "https://")):
        base = f"https://{base}"
    candidate = path_or_url.strip()
    if not candidate.startswith("/"):
        candidate = f"/{candidate}"
    return urljoin(base.rstrip("/") + "/", candidate)


def read_sitemap_urls(sitemap: Path) -> list[str]:
    """Return the distinct ``<loc>`` values in ``sitemap``."""
    if not sitemap.is_file():
        msg = f"indexnow: sitemap file not found: {sitemap}"
        raise TaskOptionError(msg)
    soup = BeautifulSoup(sitemap.read_text(encoding="utf-8"), "html.parser")
    seen: dict[str, str] = {}
    for loc in soup.find_all("loc"):
        value = loc.get_text(strip=True)
        if value and value.lower() not in seen:
            seen[value.lower()] = value
    return list(seen.values())


def read_url_file(path: Path, base_url: str | None) -> list[str]:
    """Return the URLs listed one per line in ``path``; ``#`` starts a comment."""
    if not path.is_file():
        msg = f"indexnow: url file not found: {path}"
        raise TaskOptionError(msg)
    urls = []
    for line in path.read_text(encoding="utf-8").splitlines():
        value = line.strip()
        if not value or value.startswith("#"):
            continue
        if urlsplit(value).scheme:
            urls.append(value)
        elif base_url:
            urls.append(combine_url(base_url, value))
        else:
            msg = "indexnow: urlFile contains relative paths but baseUrl is not set."
            raise TaskOptionError(msg)
    return urls


def resolve_key(
    key: str | None,
    key_path: Path | None,
    key_env: str = DEFAULT_KEY_ENV,
) -> str | None:
    """Return the key from ``key``, the first line of ``key_path``, or the env."""
    if key and key.strip():
        return key.strip()
    if key_path is not None:
        if not key_path.is_file():
            msg = f"indexnow: key file not found: {key_path}"
            raise TaskOptionError(msg)
        for line in key_path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                return line.strip()
    value = os.environ.get(key_env or DEFAULT_KEY_ENV, "").strip()
    return value or None


def normalize_urls(values: typ.Iterable[str], warnings: list[str]) -> list[str]:
    """Keep absolute http(s) URLs without fragments, dropping duplicates."""
    urls: list[str] = []
    for value in values:
        trimmed = value.strip()
        if not trimmed:
            continue
        parts = urlsplit(trimmed)
        if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
            warnings.append(f"indexnow: URL ignored (must be absolute http/https): {trimmed}")
            continue
        normalized = urlunsplit((parts.scheme, parts.netloc, parts.path or "/", parts.query, ""))
        if normalized not in urls:
            urls.append(normalized)
    return urls


def key_location_for(key_location: str | None, scheme: str, host: str, key: str) -> str:
    """Return the public URL of the key file for ``host``.

    Examples
    --------
    >>> key_location_for(None, "https", "example.test", "abc")
    'https://example.test/abc.txt'
    """
    if key_location and key_location.strip():
        if urlsplit(key_location).scheme:
            return key_location.strip()
        return f"{scheme}://{host}/{key_location.strip().lstrip('/')}"
    filename = key if key.lower().endswith(".txt") else f"{key}.txt"
    return f"{scheme}://{host}/{quote(filename)}"


def _group_by_host(urls: list[str]) -> dict[str, tuple[str, list[str]]]:
    groups: dict[str, tuple[str, list[str]]] = {}
    for url in urls:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
        _scheme, members = groups.setdefault(host, (parts.scheme, []))
        members.append(url)
    return groups


def submit_urls(
    urls: typ.Iterable[str],
    *,
    key: str,
    endpoints: typ.Sequence[str] = (),
    key_location: str | None = None,
    batch_size: int = 500,
    dry_run: bool = False,
    fail_on_request_error: bool = True,
    client: IndexNowClient | None = None,
) -> IndexNowResult:
    """Submit ``urls`` to every endpoint, one batch per host at a time.

    Returns
    -------
    IndexNowResult
        ``success`` is false only when a batch failed and
        ``fail_on_request_error`` is set. Dry runs record one successful
        zero-attempt request per batch and never touch the network.
    """
    result = IndexNowResult(dry_run=dry_run)
    targets: list[str] = []
    for endpoint in endpoints:
        parts = urlsplit(endpoint.strip())
        if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
            result.warnings.append(f"indexnow: endpoint ignored (invalid URL): {endpoint}")
            continue
        if endpoint.strip() not in targets:
            targets.append(endpoint.strip())
    if not targets:
        targets.append(DEFAULT_INDEXNOW_ENDPOINT)

    normalized = normalize_urls(urls, result.warnings)
    result.url_count = len(normalized)
    if not normalized:
        result.warnings.append("indexnow: no URLs to submit.")

    size = max(1, batch_size)
    if size > MAX_BATCH_SIZE:
        result.warnings.append(
            f"indexnow: batchSize {size} exceeds protocol max {MAX_BATCH_SIZE}; "
            f"using {MAX_BATCH_SIZE}."
        )
        size = MAX_BATCH_SIZE

    groups = _group_by_host(normalized)
    result.host_count = len(groups)
    client = client or IndexNowClient()
    for endpoint in targets:
        for host, (scheme, members) in groups.items():
            location = key_location_for(key_location, scheme, host, key)
            for start in range(0, len(members), size):
                batch = members[start : start + size]
                if dry_run:
                    request = IndexNowRequest(
                        endpoint=endpoint,
                        host=host,
                        url_count=len(batch),
                        success=True,
                        response_preview="dry-run",
                    )
                else:
                    request = client.submit_batch(
                        endpoint, host=host, key=key, key_location=location, urls=batch
                    )
                result.requests.append(request)
                if not request.success:
                    label = f"HTTP {request.status_code}" if request.status_code else "transport"
                    result.errors.append(
                        f"indexnow: {label} failure for {endpoint} ({host}): {request.error}"
                    )

    result.success = not (fail_on_request_error and result.errors)
    return result


__all__ = [
    "DEFAULT_KEY_ENV",
    "IndexNowClient",
    "IndexNowRequest",
    "IndexNowResult",
    "combine_url",
    "key_location_for",
    "normalize_urls",
    "read_sitemap_urls",
    "read_url_file",
    "resolve_key",
    "split_values",
    "submit_urls",
]

"""Render redirect rules for hosting platforms and select which files to keep.

The builder writes one redirect file per supported platform whenever the
plan carries redirects. The ``hosting`` pipeline task then narrows the
output to the platforms actually deployed to, optionally deleting the
rest.

Examples
--------
>>> from pageforge.config import RedirectSpec
>>> from pageforge.hosting import render_netlify
>>> render_netlify([RedirectSpec("/old", "/new/")])
'/old /new/ 301\\n'
"""

from __future__ import annotations

import dataclasses as dc
import json
import re
import typing as typ
from html import escape

from pageforge._constants import HOSTING_ALIASES, HOSTING_FILES
from pageforge.errors import BuildIoError, StrictHostingMissingError, TaskOptionError

if typ.TYPE_CHECKING:
    from pathlib import Path

    from pageforge.config import RedirectSpec

IIS_REDIRECT_TYPES = {
    301: "Permanent",
    302: "Found",
    303: "SeeOther",
    307: "Temporary",
    308: "Permanent",
}
PERMANENT_STATUSES = frozenset({301, 308})


def _splat_target(target: str, splat: str) -> str:
    return f"{target.rstrip('/')}/{splat}"


def render_netlify(redirects: typ.Iterable[RedirectSpec]) -> str:
    """Return a Netlify ``_redirects`` file."""
    lines = []
    for rule in redirects:
        if rule.is_prefix:
            base = rule.base.rstrip("/")
            lines.append(f"{base}/* {_splat_target(rule.target, ':splat')} {rule.status}")
        else:
            lines.append(f"{rule.source} {rule.target} {rule.status}")
    return "\n".join(lines) + "\n" if lines else ""


def render_azure(redirects: typ.Iterable[RedirectSpec]) -> str:
    """Return an Azure Static Web Apps ``staticwebapp.config.json``."""
    routes = []
    for rule in redirects:
        route = f"{rule.base.rstrip('/')}/*" if rule.is_prefix else rule.source
        routes.append({"route": route, "redirect": rule.target, "statusCode": rule.status})
    return json.dumps({"routes": routes}, indent=2) + "\n"


def render_vercel(redirects: typ.Iterable[RedirectSpec]) -> str:
    """Return a ``vercel.json`` holding the redirect table."""
    entries = []
    for rule in redirects:
        if rule.is_prefix:
            source = f"{rule.base.rstrip('/')}/:path*"
            destination = _splat_target(rule.target, ":path*")
        else:
            source, destination = rule.source, rule.target
        entries.append(
            {"source": source, "destination": destination, "statusCode": rule.status}
        )
    return json.dumps({"redirects": entries}, indent=2) + "\n"


def render_apache(redirects: typ.Iterable[RedirectSpec]) -> str:
    """Return an Apache ``.htaccess`` using ``RedirectMatch`` rules."""
    lines = ["# Generated by pageforge"]
    for rule in redirects:
        if rule.is_prefix:
            pattern = f"^{re.escape(rule.base.rstrip('/'))}/(.*)$"
            target = _splat_target(rule.target, "$1")
        else:
            pattern = f"^{re.escape(rule.source.rstrip('/') or '/')}/?$"
            target = rule.target
        lines.append(f"RedirectMatch {rule.status} {pattern} {target}")
    return "\n".join(lines) + "\n"


def render_nginx(redirects: typ.Iterable[RedirectSpec]) -> str:
    """Return an nginx include with one ``location`` block per rule."""
    lines = ["# Generated by pageforge"]
    for rule in redirects:
        if rule.is_prefix:
            base = rule.base.rstrip("/")
            flag = "permanent" if rule.status in PERMANENT_STATUSES else "redirect"
            lines.append(
                f"location ^~ {base}/ {{ rewrite ^{base}/(.*)$ "
                f"{_splat_target(rule.target, '$1')} {flag}; }}"
            )
        else:
            lines.append(f"location = {rule.source} {{ return {rule.status} {rule.target}; }}")
    return "\n".join(lines) + "\n"


def render_iis(redirects: typ.Iterable[RedirectSpec]) -> str:
    """Return an IIS ``web.config`` with URL Rewrite redirect rules."""
    rules = []
    for index, rule in enumerate(redirects, start=1):
        if rule.is_prefix:
            pattern = f"^{re.escape(rule.base.strip('/'))}/(.*)$"
            target = _splat_target(rule.target, "{R:1}")
        else:
            pattern = f"^{re.escape(rule.source.strip('/'))}/?$"
            target = rule.target
        redirect_type = IIS_REDIRECT_TYPES.get(rule.status, "Found")
        rules.append(
            f'        <rule name="pageforge-redirect-{index}" stopProcessing="true">\n'
            f'          <match url="{escape(pattern, quote=True)}" />\n'
            f'          <action type="Redirect" url="{escape(target, quote=True)}" '
            f'redirectType="{redirect_type}" />\n'
            "        </rule>"
        )
    body = "\n".join(rules)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<configuration>\n"
        "  <system.webServer>\n"
        "    <rewrite>\n"
        "      <rules>\n"
        f"{body}\n"
        "      </rules>\n"
        "    </rewrite>\n"
        "  </system.webServer>\n"
        "</configuration>\n"
    )


RENDERERS: dict[str, typ.Callable[[typ.Iterable[RedirectSpec]], str]] = {
    "netlify": render_netlify,
    "azure": render_azure,
    "vercel": render_vercel,
    "apache": render_apache,
    "nginx": render_nginx,
    "iis": render_iis,
}


def render_hosting_files(redirects: typ.Sequence[RedirectSpec]) -> dict[str, str]:
    """Return ``{filename: content}`` for every supported platform."""
    return {HOSTING_FILES[target]: render(redirects) for target, render in RENDERERS.items()}


def normalize_targets(values: typ.Iterable[str]) -> list[str]:
    """Return canonical target ids for ``values`` in first-seen order.

    ``all`` expands to every supported target.

    Raises
    ------
    TaskOptionError
        If any value is not a known target or alias.
    """
    targets: dict[str, None] = {}
    for raw in values:
        key = raw.strip().lower()
        if not key:
            continue
        if key == "all":
            targets.update(dict.fromkeys(HOSTING_FILES))
            continue
        target = HOSTING_ALIASES.get(key)
        if target is None:
            supported = ", ".join(HOSTING_FILES)
            msg = f"hosting has unsupported target '{raw.strip()}'. Supported targets: {supported}."
            raise TaskOptionError(msg)
        targets[target] = None
    return list(targets)


@dc.dataclass(slots=True)
class HostingSelection:
    """Outcome of narrowing hosting files to the selected targets."""

    targets: list[str]
    kept: list[str] = dc.field(default_factory=list)
    removed: list[str] = dc.field(default_factory=list)
    missing: list[str] = dc.field(default_factory=list)
    dry_run: bool = False

    @property
    def message(self) -> str:
        """Return the one-line summary reported by the pipeline."""
        prefix = "hosting dry-run" if self.dry_run else "hosting ok"
        return (
            f"{prefix}: targets={','.join(self.targets)}; kept={len(self.kept)}; "
            f"removed={len(self.removed)}; missing={len(self.missing)}"
        )

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-ready payload."""
        return {
            "targets": list(self.targets),
            "kept": list(self.kept),
            "removed": list(self.removed),
            "missing": list(self.missing),
            "dryRun": self.dry_run,
        }


def select_hosting_targets(
    site_root: Path,
    targets: typ.Iterable[str],
    *,
    remove_unselected: bool = True,
    strict: bool = False,
    dry_run: bool = False,
) -> HostingSelection:
    """Keep the hosting files for ``targets`` and optionally delete the rest.

    Parameters
    ----------
    site_root : Path
        Built output directory holding the generated hosting files.
    targets : Iterable[str]
        Target names or aliases; ``all`` selects every platform.
    remove_unselected : bool, optional
        Delete hosting files belonging to targets that were not selected.
    strict : bool, optional
        Fail before touching any file when a selected target's file is absent.
    dry_run : bool, optional
        Report what would be removed without deleting anything.

    Raises
    ------
    TaskOptionError
        If no target is given or a target is unknown.
    StrictHostingMissingError
        If ``strict`` is set and selected files are missing.
    BuildIoError
        If an unselected file cannot be deleted.
    """
    selected = normalize_targets(targets)
    if not selected:
        msg = "hosting requires at least one target."
        raise TaskOptionError(msg)

    selection = HostingSelection(targets=selected, dry_run=dry_run)
    for target in selected:
        filename = HOSTING_FILES[target]
        if (site_root / filename).is_file():
            selection.kept.append(filename)
        else:
            selection.missing.append(filename)
    if strict and selection.missing:
        msg = (
            "hosting strict mode: missing selected artifacts: "
            + ", ".join(selection.missing)
        )
        raise StrictHostingMissingError(msg)

    if remove_unselected:
        for target, filename in HOSTING_FILES.items():
            if target in selected:
                continue
            path = site_root / filename
            if not path.is_file():
                continue
            if not dry_run:
                try:
                    path.unlink()
                except OSError as exc:
                    msg = f"Failed to remove hosting file '{path}': {exc}"
                    raise BuildIoError(msg) from exc
            selection.removed.append(filename)
    return selection


__all__ = [
    "RENDERERS",
    "HostingSelection",
    "normalize_targets",
    "render_apache",
    "render_azure",
    "render_hosting_files",
    "render_iis",
    "render_netlify",
    "render_nginx",
    "render_vercel",
    "select_hosting_targets",
]

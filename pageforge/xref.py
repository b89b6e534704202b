"""Merge cross-reference maps into one deduplicated map.

Xref maps connect stable identifiers (``uid``) to documentation URLs. API
generators and hand-written sites emit them in a handful of shapes; this
module reads all of them, keeps one entry per uid (compared
case-insensitively), and writes a single sorted map. Budgets on the merged
size and its growth against the previous output turn into warnings.

Example
-------
>>> from pathlib import Path
>>> from pageforge.xref import XrefMergeOptions, merge_xref_maps
>>> options = XrefMergeOptions(out=Path("public/xrefmap.json"), inputs=[Path("maps")])  # doctest: +SKIP
>>> merge_xref_maps(options).reference_count  # doctest: +SKIP
42
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import json
import re
import typing as typ

from pageforge.errors import TaskOptionError
from pageforge.paths import glob_match, iter_files, relative_posix
from pageforge.reports import write_json_file

if typ.TYPE_CHECKING:
    from pathlib import Path

REFERENCE_ARRAYS = ("references", "refs", "entries")
_ALIAS_SPLIT = re.compile(r"[,;]")


@dc.dataclass(slots=True)
class XrefReference:
    """One uid with its link target and aliases."""

    uid: str
    href: str
    name: str
    aliases: set[str] = dc.field(default_factory=set)

    def to_dict(self) -> dict[str, typ.Any]:
        """Return the output entry for this reference."""
        aliases = sorted(
            (alias for alias in self.aliases if alias.lower() != self.uid.lower()),
            key=str.lower,
        )
        return {
            "uid": self.uid,
            "name": self.name or self.uid,
            "href": self.href,
            "aliases": aliases,
        }


@dc.dataclass(slots=True)
class XrefMergeOptions:
    """Inputs and budgets for :func:`merge_xref_maps`.

    Budgets of ``0`` are disabled.
    """

    out: Path
    inputs: list[Path] = dc.field(default_factory=list)
    pattern: str = "*.json"
    recursive: bool = True
    prefer_last: bool = False
    fail_on_duplicates: bool = False
    max_references: int = 0
    max_duplicates: int = 0
    max_reference_growth_count: int = 0
    max_reference_growth_percent: float = 0.0


@dc.dataclass(slots=True)
class XrefMergeResult:
    """Counts and warnings from one merge."""

    out: Path
    source_count: int = 0
    reference_count: int = 0
    duplicate_count: int = 0
    previous_reference_count: int | None = None
    reference_delta_count: int | None = None
    reference_delta_percent: float | None = None
    warnings: list[str] = dc.field(default_factory=list)
    budget_warnings: list[str] = dc.field(default_factory=list)

    @property
    def message(self) -> str:
        """Return the one-line summary reported by the pipeline."""
        text = (
            f"xref-merge ok: sources={self.source_count}; "
            f"references={self.reference_count}; duplicates={self.duplicate_count}"
        )
        if self.warnings:
            text += f"; warnings={len(self.warnings)}"
        return text


def normalize_uid(value: object | None) -> str:
    """Return ``value`` trimmed, without a leading ``xref:`` prefix.

    Examples
    --------
    >>> normalize_uid("  xref:System.String ")
    'System.String'
    """
    if value is None:
        return ""
    text = str(value).strip()
    if text.lower().startswith("xref:"):
        text = text[len("xref:") :].strip()
    return text


def _lookup(mapping: typ.Mapping[str, typ.Any], *names: str) -> typ.Any:
    lowered = {str(key).lower(): value for key, value in mapping.items()}
    for name in names:
        value = lowered.get(name)
        if value is not None and str(value).strip():
            return value
    return None


def _alias_values(raw: object) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [part.strip() for part in _ALIAS_SPLIT.split(raw) if part.strip()]
    if isinstance(raw, list):
        return [str(item).strip() for item in raw if item is not None and str(item).strip()]
    return []


def _parse_object(
    item: typ.Mapping[str, typ.Any], fallback_uid: str | None = None
) -> XrefReference | None:
    uid = normalize_uid(_lookup(item, "uid", "id", "xref") or fallback_uid)
    href = _lookup(item, "href", "url")
    if not uid or href is None:
        return None
    name = str(_lookup(item, "name", "title") or uid).strip()
    lowered = {str(key).lower(): value for key, value in item.items()}
    aliases = {
        alias
        for value in _alias_values(lowered.get("aliases"))
        if (alias := normalize_uid(value)) and alias.lower() != uid.lower()
    }
    return XrefReference(uid=uid, href=str(href).strip(), name=name or uid, aliases=aliases)


def parse_references(payload: object) -> list[XrefReference] | None:
    """Return the references in one decoded map, or ``None`` if unsupported.

    Accepted shapes are an object with a ``references``/``refs``/``entries``
    array, a bare array of objects, and an object mapping each uid to an
    href string or to an object.
    """
    match payload:
        case dict():
            lowered = {str(key).lower(): value for key, value in payload.items()}
            for name in REFERENCE_ARRAYS:
                if isinstance(lowered.get(name), list):
                    return [
                        ref
                        for item in lowered[name]
                        if isinstance(item, dict) and (ref := _parse_object(item))
                    ]
            references = []
            for key, value in payload.items():
                uid = normalize_uid(key)
                if isinstance(value, str) and uid and value.strip():
                    references.append(XrefReference(uid=uid, href=value.strip(), name=uid))
                elif isinstance(value, dict) and (ref := _parse_object(value, uid)):
                    references.append(ref)
            return references
        case list():
            return [ref for item in payload if isinstance(item, dict) and (ref := _parse_object(item))]
        case _:
            return None


def _resolve_inputs(options: XrefMergeOptions) -> list[Path]:
    files: dict[str, Path] = {}
    for path in options.inputs:
        if path.is_file():
            files.setdefault(str(path.resolve()).lower(), path.resolve())
        elif path.is_dir():
            for candidate in iter_files(path):
                relative = relative_posix(candidate, path)
                if not options.recursive and "/" in relative:
                    continue
                if glob_match(options.pattern or "*.json", candidate.name):
                    files.setdefault(str(candidate.resolve()).lower(), candidate.resolve())
        else:
            msg = f"xref-merge input path was not found: {path}"
            raise TaskOptionError(msg)
    return [files[key] for key in sorted(files)]


def _previous_count(out: Path, warnings: list[str]) -> int | None:
    if not out.is_file():
        return None
    try:
        payload = json.loads(out.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        warnings.append(f"Xref merge: failed to read previous output '{out}' ({exc}).")
        return None
    if not isinstance(payload, dict):
        return None
    count = payload.get("referenceCount")
    if isinstance(count, int):
        return count
    if isinstance(count, str) and count.strip().isdigit():
        return int(count)
    references = payload.get("references")
    return len(references) if isinstance(references, list) else None


def _validate(options: XrefMergeOptions) -> None:
    if not options.inputs:
        msg = "xref-merge requires at least one input map."
        raise TaskOptionError(msg)
    for name in (
        "max_references",
        "max_duplicates",
        "max_reference_growth_count",
        "max_reference_growth_percent",
    ):
        if getattr(options, name) < 0:
            msg = f"xref-merge option '{name}' cannot be negative."
            raise TaskOptionError(msg)


def _budget_warnings(options: XrefMergeOptions, result: XrefMergeResult) -> list[str]:
    warnings = []
    if options.max_references > 0 and result.reference_count > options.max_references:
        warnings.append(
            f"Xref merge: reference count {result.reference_count} exceeds "
            f"maxReferences {options.max_references}."
        )
    if options.max_duplicates > 0 and result.duplicate_count > options.max_duplicates:
        warnings.append(
            f"Xref merge: duplicate count {result.duplicate_count} exceeds "
            f"maxDuplicates {options.max_duplicates}."
        )
    delta = result.reference_delta_count
    if options.max_reference_growth_count > 0 and delta is not None and delta > options.max_reference_growth_count:
        warnings.append(
            f"Xref merge: reference growth {delta} exceeds "
            f"maxReferenceGrowthCount {options.max_reference_growth_count}."
        )
    percent = result.reference_delta_percent
    if (
        options.max_reference_growth_percent > 0
        and percent is not None
        and percent > options.max_reference_growth_percent
    ):
        warnings.append(
            f"Xref merge: reference growth {percent:.2f}% exceeds "
            f"maxReferenceGrowthPercent {options.max_reference_growth_percent:g}%."
        )
    return warnings


def merge_xref_maps(options: XrefMergeOptions) -> XrefMergeResult:
    """Merge every input map and write the result to ``options.out``.

    Returns
    -------
    XrefMergeResult
        Counts, the delta against the previous output (when one exists),
        and warnings for unreadable inputs, duplicates, and budget breaches.

    Raises
    ------
    TaskOptionError
        If no inputs are given, an input path is missing, no readable map
        is found, a budget is negative, or ``fail_on_duplicates`` is set and
        duplicates exist.
    """
    _validate(options)
    files = _resolve_inputs(options)
    if not files:
        msg = "xref-merge found no readable input map files."
        raise TaskOptionError(msg)

    result = XrefMergeResult(out=options.out, source_count=len(files))
    merged: dict[str, XrefReference] = {}
    for path in files:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            result.warnings.append(f"Xref merge: failed to parse '{path}' ({exc}).")
            continue
        references = parse_references(payload)
        if references is None:
            result.warnings.append(f"Xref merge: unsupported JSON root in '{path}'.")
            continue
        for reference in references:
            key = reference.uid.lower()
            existing = merged.get(key)
            if existing is None:
                merged[key] = reference
                continue
            result.duplicate_count += 1
            if options.prefer_last:
                existing.name = reference.name or existing.name
                existing.href = reference.href or existing.href
            existing.aliases |= reference.aliases

    if options.fail_on_duplicates and result.duplicate_count:
        msg = f"xref-merge found {result.duplicate_count} duplicate uid entries."
        raise TaskOptionError(msg)
    if result.duplicate_count:
        result.warnings.append(
            f"Xref merge: {result.duplicate_count} duplicate uid(s) detected."
        )

    ordered = sorted(merged.values(), key=lambda reference: reference.uid.lower())
    result.reference_count = len(ordered)
    payload: dict[str, typ.Any] = {
        "generatedAtUtc": dt.datetime.now(dt.UTC).isoformat(),
        "sourceCount": result.source_count,
        "referenceCount": result.reference_count,
        "duplicateCount": result.duplicate_count,
        "references": [reference.to_dict() for reference in ordered],
    }
    previous = _previous_count(options.out, result.warnings)
    if previous is not None:
        result.previous_reference_count = previous
        result.reference_delta_count = result.reference_count - previous
        payload["previousReferenceCount"] = previous
        payload["referenceDeltaCount"] = result.reference_delta_count
        if previous > 0:
            result.reference_delta_percent = result.reference_delta_count * 100 / previous
            payload["referenceDeltaPercent"] = round(result.reference_delta_percent, 4)

    result.budget_warnings = _budget_warnings(options, result)
    result.warnings.extend(result.budget_warnings)
    write_json_file(options.out, payload)
    return result


__all__ = [
    "XrefMergeOptions",
    "XrefMergeResult",
    "XrefReference",
    "merge_xref_maps",
    "normalize_uid",
    "parse_references",
]

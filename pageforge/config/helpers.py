"""Utility helpers shared by the site, theme, and pipeline loaders."""

from __future__ import annotations

import datetime as dt
import json
import typing as typ

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from pageforge.errors import ConfigError

if typ.TYPE_CHECKING:
    from pathlib import Path

YAML_SUFFIXES = frozenset({".yaml", ".yml"})


def load_document(path: Path) -> dict[str, typ.Any]:
    """Read a JSON or YAML mapping from ``path``.

    Parameters
    ----------
    path : Path
        File to read. ``.yaml``/``.yml`` files go through ``ruamel.yaml``;
        everything else is parsed as JSON.

    Returns
    -------
    dict[str, Any]
        The decoded top-level mapping.

    Raises
    ------
    ConfigError
        If the file is missing, cannot be parsed, or is not a mapping.
    """
    if not path.is_file():
        msg = f"Configuration file '{path}' not found."
        raise ConfigError(msg)
    text = path.read_text(encoding="utf-8-sig")
    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            loader = YAML(typ="safe")
            loader.version = (1, 2)
            loaded = loader.load(text)
        else:
            loaded = json.loads(text) if text.strip() else {}
    except (json.JSONDecodeError, YAMLError) as exc:
        msg = f"Failed to parse '{path}': {exc}"
        raise ConfigError(msg) from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        msg = f"Top-level structure of '{path}' must be a mapping."
        raise ConfigError(msg)
    return dict(loaded)


def _normalize_key(key: str) -> str:
    return key.replace("-", "").replace("_", "").lower()


def _lookup(
    payload: typ.Mapping[str, typ.Any], *names: str, default: typ.Any = None
) -> typ.Any:
    """Return the first value whose key matches one of ``names`` loosely.

    Keys are compared case-insensitively with ``-`` and ``_`` ignored so
    ``baseUrl``, ``base_url``, and ``base-url`` resolve identically.
    """
    wanted = [_normalize_key(name) for name in names]
    index = {_normalize_key(str(key)): key for key in payload}
    for name in wanted:
        if name in index:
            value = payload[index[name]]
            if value is not None:
                return value
    return default


def _deep_merge(
    base: typ.Mapping[str, typ.Any], overlay: typ.Mapping[str, typ.Any]
) -> dict[str, typ.Any]:
    """Merge ``overlay`` over ``base`` recursively without mutating either."""
    merged: dict[str, typ.Any] = {}
    overlay_index = {_normalize_key(str(key)): key for key in overlay}
    for key, value in base.items():
        other_key = overlay_index.pop(_normalize_key(str(key)), None)
        if other_key is None:
            merged[key] = value
            continue
        other = overlay[other_key]
        if isinstance(value, typ.Mapping) and isinstance(other, typ.Mapping):
            merged[other_key] = _deep_merge(value, other)
        else:
            merged[other_key] = other
    for original in overlay_index.values():
        merged[original] = overlay[original]
    return merged


def _optional_str(value: object | None) -> str | None:
    """Return a stripped string value or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _normalize_list(value: object | None) -> list[str]:
    """Normalize a string or list into a list of non-empty strings.

    Strings are split on commas and semicolons.
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.replace(";", ",").split(",")
        return [part.strip() for part in parts if part.strip()]
    if isinstance(value, (list, tuple, set, frozenset)):
        normalized: list[str] = []
        for segment in value:
            text = str(segment).strip()
            if text:
                normalized.append(text)
        return normalized
    text = str(value).strip()
    return [text] if text else []


def _coerce_bool(value: object | None, *, default: bool = False) -> bool:
    """Interpret booleans written as JSON/YAML values or strings."""
    match value:
        case None:
            return default
        case bool():
            return value
        case int():
            return value != 0
        case str() as text:
            lowered = text.strip().lower()
            if lowered in {"true", "yes", "1", "on"}:
                return True
            if lowered in {"false", "no", "0", "off"}:
                return False
            return default
        case _:
            return default


def _coerce_int(value: object | None, *, default: int) -> int:
    """Return ``value`` as an int, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _parse_timestamp(value: dt.datetime | dt.date | str | None) -> dt.datetime | None:
    """Return a timezone-aware UTC datetime parsed from ``value``, or None."""
    match value:
        case dt.datetime():
            parsed = value
        case dt.date():
            parsed = dt.datetime(value.year, value.month, value.day)
        case str() as text:
            sanitized = text.strip()
            if not sanitized:
                return None
            if sanitized.endswith("Z"):
                sanitized = sanitized[:-1] + "+00:00"
            try:
                parsed = dt.datetime.fromisoformat(sanitized)
            except ValueError:
                return None
        case _:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)


__all__ = [
    "YAML_SUFFIXES",
    "_coerce_bool",
    "_coerce_int",
    "_deep_merge",
    "_lookup",
    "_normalize_list",
    "_optional_str",
    "_parse_timestamp",
    "load_document",
]

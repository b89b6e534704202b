"""Load theme manifests and resolve layouts through ``extends`` chains.

A theme is a directory holding ``theme.json`` plus layout, partial, and
asset folders. Themes may name a sibling theme in ``extends``; the loader
follows that reference into an explicit ``base`` chain, guarding against
cycles with a visited set. Layouts and partials resolve child-first, and
design tokens merge parent-to-child.

Examples
--------
>>> from pageforge.themes import merge_tokens
>>> merge_tokens({"color": {"fg": "#000", "bg": "#fff"}}, {"color": {"fg": "#111"}})
{'color': {'fg': '#111', 'bg': '#fff'}}
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from pathlib import Path

from pageforge._constants import SUPPORTED_THEME_SCHEMAS, THEME_MANIFEST_NAMES
from pageforge.config import AssetRegistry, build_asset_registry
from pageforge.config.helpers import (
    _coerce_int,
    _lookup,
    _normalize_list,
    _optional_str,
    load_document,
)
from pageforge.errors import (
    ConfigError,
    LayoutNotFoundError,
    ThemeCycleError,
    ThemeNotFoundError,
    ThemeSchemaError,
)


@dc.dataclass(slots=True)
class ThemeManifest:
    """Parsed ``theme.json`` plus its resolved parent.

    Attributes
    ----------
    name : str
        Theme name; defaults to the directory name.
    root : Path
        Directory containing the manifest.
    base : ThemeManifest | None
        Parent theme named by ``extends``, already loaded.
    tokens : dict[str, Any]
        Design tokens declared by this theme only (see :func:`resolve_tokens`).
    """

    name: str
    root: Path
    schema_version: int = 1
    engine: str | None = None
    version: str | None = None
    author: str | None = None
    extends: str | None = None
    default_layout: str = "default"
    layouts_path: str = "layouts"
    partials_path: str = "partials"
    assets_path: str = "assets"
    layouts: dict[str, str] = dc.field(default_factory=dict)
    partials: dict[str, str] = dc.field(default_factory=dict)
    tokens: dict[str, typ.Any] = dc.field(default_factory=dict)
    features: list[str] = dc.field(default_factory=list)
    assets: AssetRegistry | None = None
    base: ThemeManifest | None = None

    @property
    def assets_dir(self) -> Path:
        """Return the directory holding this theme's static assets."""
        return self.root / self.assets_path


def _manifest_file(theme_dir: Path) -> Path | None:
    for filename in THEME_MANIFEST_NAMES:
        candidate = theme_dir / filename
        if candidate.is_file():
            return candidate
    return None


def load_theme(theme_dir: Path) -> ThemeManifest:
    """Load the theme in ``theme_dir`` together with its ``extends`` chain.

    Parameters
    ----------
    theme_dir : Path
        Directory containing ``theme.json``.

    Returns
    -------
    ThemeManifest
        The leaf manifest; parents are reachable through ``base``.

    Raises
    ------
    ThemeNotFoundError
        If ``theme_dir`` (or any parent theme) has no manifest.
    ThemeCycleError
        If the ``extends`` chain revisits a theme.
    ThemeSchemaError
        If a manifest declares an unsupported schema version.
    """
    return _load_chain(theme_dir.resolve(), visited=[])


def _load_chain(theme_dir: Path, *, visited: list[Path]) -> ThemeManifest:
    if theme_dir in visited:
        names = " -> ".join(path.name for path in [*visited, theme_dir])
        msg = f"Theme inheritance cycle detected: {names}"
        raise ThemeCycleError(msg)
    visited.append(theme_dir)

    manifest_path = _manifest_file(theme_dir)
    if manifest_path is None:
        msg = f"Theme manifest not found in '{theme_dir}'."
        raise ThemeNotFoundError(msg)
    try:
        raw = load_document(manifest_path)
    except ConfigError as exc:
        raise ThemeSchemaError(str(exc)) from exc

    manifest = _build_manifest(raw, theme_dir)
    if manifest.extends:
        parent_dir = theme_dir.parent / manifest.extends
        manifest.base = _load_chain(parent_dir.resolve(), visited=visited)
    return manifest


def _build_manifest(raw: typ.Mapping[str, typ.Any], theme_dir: Path) -> ThemeManifest:
    schema = _lookup(raw, "schemaVersion", "contractVersion")
    schema_version = _coerce_int(schema, default=1)
    if schema_version not in SUPPORTED_THEME_SCHEMAS:
        supported = ", ".join(str(v) for v in sorted(SUPPORTED_THEME_SCHEMAS))
        msg = (
            f"Theme '{theme_dir.name}' uses schema version {schema}; "
            f"supported versions: {supported}."
        )
        raise ThemeSchemaError(msg)

    tokens = _lookup(raw, "tokens", default={})
    layouts = _lookup(raw, "layouts", default={})
    partials = _lookup(raw, "partials", default={})
    return ThemeManifest(
        name=_optional_str(_lookup(raw, "name")) or theme_dir.name,
        root=theme_dir,
        schema_version=schema_version,
        engine=_optional_str(_lookup(raw, "engine")),
        version=_optional_str(_lookup(raw, "version")),
        author=_optional_str(_lookup(raw, "author")),
        extends=_optional_str(_lookup(raw, "extends")),
        default_layout=_optional_str(_lookup(raw, "defaultLayout")) or "default",
        layouts_path=_optional_str(_lookup(raw, "layoutsPath")) or "layouts",
        partials_path=_optional_str(_lookup(raw, "partialsPath")) or "partials",
        assets_path=_optional_str(_lookup(raw, "assetsPath")) or "assets",
        layouts={str(k): str(v) for k, v in layouts.items()}
        if isinstance(layouts, dict)
        else {},
        partials={str(k): str(v) for k, v in partials.items()}
        if isinstance(partials, dict)
        else {},
        tokens=dict(tokens) if isinstance(tokens, dict) else {},
        features=_normalize_list(_lookup(raw, "features")),
        assets=build_asset_registry(_lookup(raw, "assets")),
    )


def theme_chain(manifest: ThemeManifest) -> list[ThemeManifest]:
    """Return ``manifest`` followed by each ancestor, leaf first."""
    chain: list[ThemeManifest] = []
    current: ThemeManifest | None = manifest
    while current is not None:
        chain.append(current)
        current = current.base
    return chain


def merge_tokens(
    parent: typ.Mapping[str, typ.Any], child: typ.Mapping[str, typ.Any]
) -> dict[str, typ.Any]:
    """Merge ``child`` tokens over ``parent`` tokens.

    Nested mappings merge key-wise and recursively; any other child value
    (scalar or list) replaces the parent's. Neither input is mutated.

    Parameters
    ----------
    parent : Mapping[str, Any]
        Tokens inherited from the base theme.
    child : Mapping[str, Any]
        Tokens declared by the extending theme.

    Returns
    -------
    dict[str, Any]
        A new mapping containing the union of keys.
    """
    merged: dict[str, typ.Any] = {}
    for key, value in parent.items():
        merged[key] = _copy_token(value)
    for key, value in child.items():
        existing = merged.get(key)
        if isinstance(existing, typ.Mapping) and isinstance(value, typ.Mapping):
            merged[key] = merge_tokens(existing, value)
        else:
            merged[key] = _copy_token(value)
    return merged


def _copy_token(value: typ.Any) -> typ.Any:
    if isinstance(value, typ.Mapping):
        return {key: _copy_token(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_copy_token(item) for item in value]
    return value


def resolve_tokens(manifest: ThemeManifest) -> dict[str, typ.Any]:
    """Return the effective tokens for ``manifest`` merged root-to-leaf."""
    tokens: dict[str, typ.Any] = {}
    for theme in reversed(theme_chain(manifest)):
        tokens = merge_tokens(tokens, theme.tokens)
    return tokens


def resolve_assets(manifest: ThemeManifest) -> AssetRegistry:
    """Return the theme chain's asset registry, children overriding parents."""
    registry = AssetRegistry()
    for theme in reversed(theme_chain(manifest)):
        registry = registry.merged_with(theme.assets)
    return registry


def resolve_engine(manifest: ThemeManifest) -> str | None:
    """Return the first engine id declared along the chain."""
    for theme in theme_chain(manifest):
        if theme.engine:
            return theme.engine
    return None


def _resolve_file(
    manifest: ThemeManifest, name: str, *, kind: str
) -> tuple[ThemeManifest, Path]:
    for theme in theme_chain(manifest):
        mapping = theme.layouts if kind == "layout" else theme.partials
        folder = theme.layouts_path if kind == "layout" else theme.partials_path
        candidates = []
        if name in mapping:
            candidates.append(theme.root / mapping[name])
        candidates.append(theme.root / folder / f"{name}.html")
        for candidate in candidates:
            if candidate.is_file():
                return theme, candidate
    names = ", ".join(theme.name for theme in theme_chain(manifest))
    msg = f"{kind.capitalize()} '{name}' not found in theme chain: {names}."
    raise LayoutNotFoundError(msg)


def resolve_layout(manifest: ThemeManifest, name: str) -> Path:
    """Return the first layout file named ``name`` walking child to parents.

    Raises
    ------
    LayoutNotFoundError
        If no theme in the chain provides the layout.
    """
    return _resolve_file(manifest, name, kind="layout")[1]


def resolve_partial(manifest: ThemeManifest, name: str) -> Path:
    """Return the first partial file named ``name`` walking child to parents."""
    return _resolve_file(manifest, name, kind="partial")[1]


def template_name(manifest: ThemeManifest, path: Path) -> str:
    """Return the loader-relative template name for a resolved file."""
    for theme in theme_chain(manifest):
        try:
            return path.relative_to(theme.root).as_posix()
        except ValueError:
            continue
    return path.name


__all__ = [
    "ThemeManifest",
    "load_theme",
    "merge_tokens",
    "resolve_assets",
    "resolve_engine",
    "resolve_layout",
    "resolve_partial",
    "resolve_tokens",
    "template_name",
    "theme_chain",
]

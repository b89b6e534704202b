"""Content model: typed items grouped into collections plus data files.

Content files are Markdown documents with optional YAML front matter. Each
collection enumerates its input directory, merges collection defaults under
per-file front matter, and derives a slug from either ``slug`` or the file
path. Files whose front matter cannot be parsed are skipped and reported as
warnings rather than aborting the build.

Data files anywhere under the data root are exposed to templates twice: under
their canonical key path (``code-examples``, ``projects/alpha``) and under an
alias path with ``-``, ``.`` and spaces replaced by ``_`` (``code_examples``).

Examples
--------
>>> from pageforge.content import data_alias
>>> data_alias("sitemap.entries")
'sitemap_entries'
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import json
import re
import typing as typ
from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from pageforge.config.helpers import (
    YAML_SUFFIXES,
    _coerce_bool,
    _coerce_int,
    _normalize_list,
    _optional_str,
    _parse_timestamp,
)
from pageforge.errors import ConfigError, ContentParseError, EmptyCollectionError
from pageforge.markdown_parser import extract_title, parse_front_matter
from pageforge.paths import iter_files, matches_any, relative_posix

if typ.TYPE_CHECKING:
    from pageforge.config import CollectionSpec

FRONT_MATTER_FIELDS = frozenset(
    {
        "title",
        "description",
        "date",
        "tags",
        "slug",
        "order",
        "draft",
        "layout",
        "template",
        "aliases",
        "canonical",
        "structured_data",
        "meta",
    }
)
INDEX_STEMS = frozenset({"index", "_index", "readme"})
DATA_SUFFIXES = frozenset({".json"}) | YAML_SUFFIXES


@dc.dataclass(frozen=True, slots=True)
class FrontMatter:
    """Typed view over a content file's metadata block."""

    title: str = ""
    description: str | None = None
    date: dt.datetime | None = None
    tags: tuple[str, ...] = ()
    slug: str | None = None
    order: int | None = None
    draft: bool = False
    layout: str | None = None
    aliases: tuple[str, ...] = ()
    canonical: str | None = None
    structured_data: str | bool | None = None
    meta: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: typ.Mapping[str, typ.Any]) -> FrontMatter:
        """Build front matter, folding unknown keys into ``meta``."""
        meta: dict[str, typ.Any] = {}
        nested_meta = payload.get("meta")
        if isinstance(nested_meta, dict):
            meta.update(nested_meta)
        for key, value in payload.items():
            if key not in FRONT_MATTER_FIELDS:
                meta[key] = value
        structured = payload.get("structured_data")
        if not isinstance(structured, bool):
            structured = _optional_str(structured)
        order = payload.get("order")
        return cls(
            title=_optional_str(payload.get("title")) or "",
            description=_optional_str(payload.get("description")),
            date=_parse_timestamp(payload.get("date")),
            tags=tuple(_normalize_list(payload.get("tags"))),
            slug=_optional_str(payload.get("slug")),
            order=None if order is None else _coerce_int(order, default=0),
            draft=_coerce_bool(payload.get("draft")),
            layout=_optional_str(payload.get("layout") or payload.get("template")),
            aliases=tuple(_normalize_list(payload.get("aliases"))),
            canonical=_optional_str(payload.get("canonical")),
            structured_data=structured,
            meta=meta,
        )

    def meta_value(self, dotted: str) -> typ.Any:
        """Return a nested ``meta`` value addressed as ``a.b.c``."""
        current: typ.Any = self.meta
        for part in dotted.split("."):
            if not isinstance(current, typ.Mapping) or part not in current:
                return None
            current = current[part]
        return current

    def list_field(self, name: str) -> tuple[str, ...]:
        """Return a front matter list (``tags`` or a custom taxonomy)."""
        if name == "tags":
            return self.tags
        return tuple(_normalize_list(self.meta.get(name)))


@dc.dataclass(frozen=True, slots=True)
class ContentItem:
    """A parsed content file bound to its collection."""

    source: str
    collection: str
    slug: str
    front_matter: FrontMatter
    body: str

    @property
    def title(self) -> str:
        """Return the page title."""
        return self.front_matter.title

    @property
    def draft(self) -> bool:
        """Return whether the item is a draft."""
        return self.front_matter.draft


@dc.dataclass(slots=True)
class CollectionContent:
    """Items loaded for one collection plus per-file parse warnings."""

    collection: str
    items: list[ContentItem] = dc.field(default_factory=list)
    warnings: list[str] = dc.field(default_factory=list)


_SLUG_STRIP = re.compile(r"[^a-z0-9._-]+")


def _slug_segment(segment: str) -> str:
    return _SLUG_STRIP.sub("-", segment.strip().lower()).strip("-")


def derive_slug(relative_path: str, override: str | None = None) -> str:
    """Return the slug for a content file relative to its collection input.

    ``override`` (front matter ``slug``) replaces the file name while
    keeping the file's directory; ``index``/``_index`` collapse onto their
    directory.

    Examples
    --------
    >>> derive_slug("guides/Getting Started.md")
    'guides/getting-started'
    >>> derive_slug("guides/index.md")
    'guides'
    >>> derive_slug("guides/a.md", "custom")
    'guides/custom'
    """
    parent, _, filename = relative_path.rpartition("/")
    stem = filename.rsplit(".", 1)[0]
    if override is not None:
        stem = override.strip("/")
    segments = [_slug_segment(part) for part in parent.split("/") if part]
    if stem.lower() not in INDEX_STEMS:
        segments.extend(_slug_segment(part) for part in stem.split("/") if part)
    return "/".join(segment for segment in segments if segment)


def load_collection(site_root: Path, collection: CollectionSpec) -> CollectionContent:
    """Enumerate and parse the content files belonging to ``collection``.

    Parameters
    ----------
    site_root : Path
        Directory that collection input paths are relative to.
    collection : CollectionSpec
        Collection declaration providing input, globs, and defaults.

    Returns
    -------
    CollectionContent
        Items in POSIX path order plus warnings for skipped files.

    Raises
    ------
    EmptyCollectionError
        If the collection is ``required`` and no item could be loaded.
    """
    input_dir = site_root / collection.input
    result = CollectionContent(collection=collection.name)
    for path in iter_files(input_dir):
        relative = relative_posix(path, input_dir)
        if not matches_any(collection.include, relative):
            continue
        if matches_any(collection.exclude, relative):
            continue
        source = relative_posix(path, site_root)
        try:
            item = _load_item(path, source, relative, collection)
        except ContentParseError as exc:
            result.warnings.append(str(exc))
            continue
        except UnicodeDecodeError as exc:
            result.warnings.append(f"Content file '{source}' is not valid UTF-8: {exc}")
            continue
        result.items.append(item)

    if collection.required and not result.items:
        msg = f"Collection '{collection.name}' resolved no content files."
        raise EmptyCollectionError(msg)
    return result


def _load_item(
    path: Path, source: str, relative: str, collection: CollectionSpec
) -> ContentItem:
    text = path.read_text(encoding="utf-8")
    raw, body = parse_front_matter(text, path=source)
    merged = {**collection.defaults, **raw}
    front_matter = FrontMatter.from_mapping(merged)
    if not front_matter.title:
        title = extract_title(body)
        if title:
            front_matter = dc.replace(front_matter, title=title)
    return ContentItem(
        source=source,
        collection=collection.name,
        slug=derive_slug(relative, front_matter.slug),
        front_matter=front_matter,
        body=body,
    )


def data_alias(key: str) -> str:
    """Return the template-friendly alias for a data key segment."""
    return re.sub(r"[-.\s]", "_", key)


@dc.dataclass(slots=True)
class DataNamespace:
    """Data files addressable by canonical key path or underscore alias.

    A file at ``projects/alpha.json`` is stored under the nested path
    ``("projects", "alpha")``. ``sources`` maps each registered path, joined
    with ``/``, to the file that owns it.
    """

    values: dict[str, typ.Any] = dc.field(default_factory=dict)
    sources: dict[str, str] = dc.field(default_factory=dict)
    warnings: list[str] = dc.field(default_factory=list)

    def register(
        self, key: str | tuple[str, ...], value: typ.Any, source: str
    ) -> None:
        """Register ``value`` under ``key`` and its alias path; first wins."""
        segments = (key,) if isinstance(key, str) else tuple(key)
        alias = tuple(data_alias(segment) for segment in segments)
        for candidate in dict.fromkeys((segments, alias)):
            self._insert(candidate, value, source)

    def _insert(self, segments: tuple[str, ...], value: typ.Any, source: str) -> None:
        target = "/".join(segments)
        container = self.values
        for depth, segment in enumerate(segments[:-1], start=1):
            owner = self.sources.get("/".join(segments[:depth]))
            if owner is not None:
                self._collide(target, source, owner)
                return
            container = container.setdefault(segment, {})
        owner = self.sources.get(target)
        if owner is None and segments[-1] in container:
            # Already a namespace built from a data subdirectory.
            owner = f"{target}/"
        if owner is not None:
            self._collide(target, source, owner)
            return
        container[segments[-1]] = value
        self.sources[target] = source

    def _collide(self, target: str, source: str, owner: str) -> None:
        if owner == source:
            return
        self.warnings.append(
            f"Data key '{target}' from '{source}' collides with "
            f"'{owner}'; keeping the first."
        )

    def as_dict(self) -> dict[str, typ.Any]:
        """Return the namespace as a plain mapping for templates."""
        return dict(self.values)


def load_data(data_root: Path) -> DataNamespace:
    """Load every JSON/YAML file below ``data_root``.

    Files in subdirectories nest under their directory names, so
    ``projects/alpha.json`` is reachable as ``data.projects.alpha``. A missing
    data root yields an empty namespace. Files register in sorted relative
    path order so alias collisions resolve deterministically.

    Examples
    --------
    >>> from pathlib import Path
    >>> load_data(Path("/nonexistent")).as_dict()
    {}
    """
    namespace = DataNamespace()
    for path in iter_files(data_root):
        if path.suffix.lower() not in DATA_SUFFIXES:
            continue
        relative = relative_posix(path, data_root)
        try:
            value = _load_data_file(path)
        except ConfigError as exc:
            namespace.warnings.append(str(exc))
            continue
        segments = relative[: -len(path.suffix)].split("/")
        namespace.register(tuple(segments), value, relative)
    return namespace


def _load_data_file(path: Path) -> typ.Any:
    text = path.read_text(encoding="utf-8-sig")
    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            loader = YAML(typ="safe")
            loader.version = (1, 2)
            return loader.load(text)
        return json.loads(text)
    except (json.JSONDecodeError, YAMLError) as exc:
        msg = f"Failed to parse data file '{path.name}': {exc}"
        raise ConfigError(msg) from exc


__all__ = [
    "CollectionContent",
    "ContentItem",
    "DataNamespace",
    "FrontMatter",
    "data_alias",
    "derive_slug",
    "load_collection",
    "load_data",
]

"""Build schema.org JSON-LD objects for the profiles selected per page.

The planner decides *which* profiles a page carries; this module turns each
profile name into a JSON-ready mapping from the page's front matter. List
values written as ``"Question|Answer"`` or ``"Step name|Step text"`` are
split on the first ``|``.
"""

from __future__ import annotations

import json
import typing as typ

from pageforge.config.helpers import _normalize_list, _optional_str, _parse_timestamp

if typ.TYPE_CHECKING:
    from pageforge.content import FrontMatter
    from pageforge.planner import BuildPlan, PagePlan

SCHEMA_CONTEXT = "https://schema.org"
ARTICLE_PROFILES = frozenset({"Article", "NewsArticle", "TechArticle", "BlogPosting"})


def absolute_url(base_url: str, url: str) -> str:
    """Return ``url`` prefixed with ``base_url`` when it is site-relative.

    Examples
    --------
    >>> absolute_url("https://example.com/", "/docs/")
    'https://example.com/docs/'
    >>> absolute_url("", "/docs/")
    '/docs/'
    """
    if not base_url or "://" in url:
        return url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


def _split_pair(value: typ.Any, first: str, second: str) -> tuple[str, str] | None:
    if isinstance(value, dict):
        left = _optional_str(value.get(first) or value.get("name"))
        right = _optional_str(value.get(second) or value.get("text"))
    else:
        text = str(value)
        left, _, right = (part.strip() for part in text.partition("|"))
    if not left:
        return None
    return left, right or ""


def _entries(value: typ.Any) -> list[typ.Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _article(plan: BuildPlan, page: PagePlan, profile: str) -> dict[str, typ.Any]:
    front = _front(page)
    site = plan.spec
    url = absolute_url(site.base_url, page.url)
    author_name = _optional_str(front.meta.get("author")) if front else None
    payload: dict[str, typ.Any] = {
        "@context": SCHEMA_CONTEXT,
        "@type": profile,
        "headline": page.title,
        "mainEntityOfPage": {"@type": "WebPage", "@id": url},
        "author": {
            "@type": "Person" if author_name else "Organization",
            "name": author_name or site.name,
        },
        "publisher": {"@type": "Organization", "name": site.name},
    }
    if front is None:
        return payload
    if front.description:
        payload["description"] = front.description
    if front.date:
        payload["datePublished"] = front.date.isoformat()
    modified = _parse_timestamp(
        front.meta.get("updated") or front.meta.get("lastmod") or front.meta.get("modified")
    )
    if modified or front.date:
        payload["dateModified"] = (modified or front.date).isoformat()
    if front.tags:
        payload["keywords"] = ", ".join(front.tags)
    return payload


def _faq(page: PagePlan) -> dict[str, typ.Any] | None:
    front = _front(page)
    if front is None:
        return None
    questions = []
    for entry in _entries(front.meta_value("faq.questions")):
        pair = _split_pair(entry, "question", "answer")
        if pair is None:
            continue
        questions.append(
            {
                "@type": "Question",
                "name": pair[0],
                "acceptedAnswer": {"@type": "Answer", "text": pair[1]},
            }
        )
    if not questions:
        return None
    return {"@context": SCHEMA_CONTEXT, "@type": "FAQPage", "mainEntity": questions}


def _how_to(page: PagePlan) -> dict[str, typ.Any] | None:
    front = _front(page)
    if front is None:
        return None
    steps = []
    for entry in _entries(front.meta_value("howto.steps")):
        pair = _split_pair(entry, "name", "text")
        if pair is None:
            continue
        steps.append(
            {
                "@type": "HowToStep",
                "position": len(steps) + 1,
                "name": pair[0],
                "text": pair[1] or pair[0],
            }
        )
    if not steps:
        return None
    payload: dict[str, typ.Any] = {
        "@context": SCHEMA_CONTEXT,
        "@type": "HowTo",
        "name": _optional_str(front.meta_value("howto.name")) or page.title,
        "step": steps,
    }
    if front.description:
        payload["description"] = front.description
    total_time = _optional_str(front.meta_value("howto.total_time"))
    if total_time:
        payload["totalTime"] = total_time
    tools = _normalize_list(front.meta_value("howto.tools"))
    if tools:
        payload["tool"] = [{"@type": "HowToTool", "name": tool} for tool in tools]
    supplies = _normalize_list(front.meta_value("howto.supplies"))
    if supplies:
        payload["supply"] = [{"@type": "HowToSupply", "name": item} for item in supplies]
    return payload


def _offer(price: typ.Any, currency: typ.Any) -> dict[str, typ.Any] | None:
    text = _optional_str(price)
    if text is None:
        return None
    offer = {"@type": "Offer", "price": text}
    code = _optional_str(currency)
    if code:
        offer["priceCurrency"] = code
    return offer


def _product(page: PagePlan) -> dict[str, typ.Any] | None:
    front = _front(page)
    name = _optional_str(front.meta_value("product.name")) if front else None
    if front is None or name is None:
        return None
    payload: dict[str, typ.Any] = {
        "@context": SCHEMA_CONTEXT,
        "@type": "Product",
        "name": name,
    }
    if front.description:
        payload["description"] = front.description
    brand = _optional_str(front.meta_value("product.brand"))
    if brand:
        payload["brand"] = {"@type": "Brand", "name": brand}
    sku = _optional_str(front.meta_value("product.sku"))
    if sku:
        payload["sku"] = sku
    offer = _offer(
        front.meta_value("product.price"), front.meta_value("product.price_currency")
    )
    if offer:
        payload["offers"] = offer
    rating = _optional_str(front.meta_value("product.rating_value"))
    count = _optional_str(front.meta_value("product.rating_count"))
    if rating and count:
        payload["aggregateRating"] = {
            "@type": "AggregateRating",
            "ratingValue": rating,
            "ratingCount": count,
        }
    return payload


def _software(plan: BuildPlan, page: PagePlan) -> dict[str, typ.Any] | None:
    front = _front(page)
    name = _optional_str(front.meta_value("software.name")) if front else None
    if front is None or name is None:
        return None
    payload: dict[str, typ.Any] = {
        "@context": SCHEMA_CONTEXT,
        "@type": "SoftwareApplication",
        "name": name,
    }
    fields = {
        "applicationCategory": "software.application_category",
        "operatingSystem": "software.operating_system",
        "softwareVersion": "software.version",
    }
    for key, dotted in fields.items():
        value = _optional_str(front.meta_value(dotted))
        if value:
            payload[key] = value
    download = _optional_str(front.meta_value("software.download_url"))
    if download:
        payload["downloadUrl"] = absolute_url(plan.spec.base_url, download)
    offer = _offer(
        front.meta_value("software.price"), front.meta_value("software.price_currency")
    )
    if offer:
        payload["offers"] = offer
    return payload


def _breadcrumbs(plan: BuildPlan, page: PagePlan) -> dict[str, typ.Any] | None:
    segments = [segment for segment in page.route.split("/") if segment]
    if len(segments) < 2:
        return None
    items = []
    for depth in range(1, len(segments) + 1):
        route = "/" + "/".join(segments[:depth])
        target = plan.page_for_route(route)
        name = target.title if target else segments[depth - 1].replace("-", " ").title()
        url = target.url if target else route
        items.append(
            {
                "@type": "ListItem",
                "position": depth,
                "name": name,
                "item": absolute_url(plan.spec.base_url, url),
            }
        )
    return {"@context": SCHEMA_CONTEXT, "@type": "BreadcrumbList", "itemListElement": items}


def _website(plan: BuildPlan) -> dict[str, typ.Any]:
    return {
        "@context": SCHEMA_CONTEXT,
        "@type": "WebSite",
        "name": plan.spec.name,
        "url": absolute_url(plan.spec.base_url, "/"),
    }


def _front(page: PagePlan) -> FrontMatter | None:
    return page.item.front_matter if page.item else None


def build_json_ld(plan: BuildPlan, page: PagePlan) -> list[dict[str, typ.Any]]:
    """Return one JSON-LD object per profile planned for ``page``.

    Profiles whose source data turns out to be empty are skipped.
    """
    objects: list[dict[str, typ.Any]] = []
    for profile in page.structured_data:
        payload: dict[str, typ.Any] | None
        match profile:
            case "FAQPage":
                payload = _faq(page)
            case "HowTo":
                payload = _how_to(page)
            case "Product":
                payload = _product(page)
            case "SoftwareApplication":
                payload = _software(plan, page)
            case "BreadcrumbList":
                payload = _breadcrumbs(plan, page)
            case "WebSite":
                payload = _website(plan)
            case _:
                payload = _article(plan, page, profile)
        if payload is not None:
            objects.append(payload)
    return objects


def render_json_ld(objects: typ.Iterable[dict[str, typ.Any]]) -> str:
    """Return ``<script type="application/ld+json">`` tags for ``objects``."""
    blocks = []
    for payload in objects:
        text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
        # Keep "</script>" inside string values from closing the tag.
        text = text.replace("</", "<\\/")
        blocks.append(f'<script type="application/ld+json">{text}</script>')
    return "\n".join(blocks)


__all__ = [
    "ARTICLE_PROFILES",
    "absolute_url",
    "build_json_ld",
    "render_json_ld",
]

"""Structured data embedded in raw listing HTML.

Runs on the raw page before cleaning, because the cleaner removes the
<script> and <meta> tags that carry JSON-LD, framework hydration state and
OpenGraph data.
"""

import json
import logging
import re
from typing import Any

import logfire
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# window.<name> = {...}; assignments worth capturing, keyed by output name
WINDOW_STATE_PATTERNS = {
    "initialState": re.compile(r"window\.INITIAL_STATE\s*=\s*({[\s\S]+?});"),
    "preloadedState": re.compile(r"window\.__PRELOADED_STATE__\s*=\s*({[\s\S]+?});"),
    "reduxState": re.compile(r"window\.__REDUX_STATE__\s*=\s*({[\s\S]+?});"),
    "apolloState": re.compile(r"window\.__APOLLO_STATE__\s*=\s*({[\s\S]+?});"),
    "appData": re.compile(r"window\.__APP_DATA__\s*=\s*({[\s\S]+?});"),
}
NUXT_PATTERN = re.compile(r"window\.__NUXT__\s*=\s*({[\s\S]+})")
EXTENDED_META_NAMES = ("geo.position", "geo.placename", "ICBM", "price")
DATA_ATTRIBUTE_SELECTOR = "[data-price], [data-listing-id], [data-property-id]"


class PageMetadata(BaseModel):
    title: str | None = None
    description: str | None = None
    favicon: str | None = None
    canonical: str | None = None
    image_src: str | None = None


class StructuredPageData(BaseModel):
    """Machine-readable data found in a raw HTML page."""

    json_ld: list[Any] = Field(default_factory=list, description="Schema.org JSON-LD blocks")
    microdata: list[dict[str, Any]] = Field(default_factory=list)
    next_data: Any | None = Field(default=None, description="Next.js __NEXT_DATA__")
    nuxt_data: Any | None = None
    window_states: dict[str, Any] = Field(default_factory=dict)
    open_graph: dict[str, str] = Field(
        default_factory=dict, description="og:* and twitter:* meta tags"
    )
    extended_meta: dict[str, str] = Field(default_factory=dict)
    data_attributes: list[dict[str, Any]] = Field(default_factory=list)
    metadata: PageMetadata = Field(default_factory=PageMetadata)

    def is_empty(self) -> bool:
        return not (
            self.json_ld
            or self.microdata
            or self.next_data
            or self.nuxt_data
            or self.window_states
            or self.open_graph
            or self.extended_meta
            or self.data_attributes
        )


def _parse_json(text: str | None, source: str) -> Any | None:
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"Skipping unparseable {source}: {e}")
        return None


def _coerce_data_value(value: str) -> Any:
    stripped = value.strip()
    try:
        number = float(stripped)
    except ValueError:
        return value
    if stripped.lstrip("-").isdigit():
        return int(stripped)
    return number


def _extract_microdata(soup: BeautifulSoup) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for scope in soup.select("[itemscope]"):
        if scope.has_attr("itemprop"):
            # nested scopes are folded into their parent item
            continue
        item: dict[str, Any] = {"@type": scope.get("itemtype") or "Thing"}
        for prop in scope.select("[itemprop]"):
            name = prop.get("itemprop")
            if not name:
                continue
            if prop.has_attr("itemscope"):
                nested: dict[str, Any] = {"@type": prop.get("itemtype") or "Thing"}
                for nested_prop in prop.select("[itemprop]"):
                    nested[nested_prop["itemprop"]] = nested_prop.get_text(" ", strip=True)
                item[name] = nested
            elif name not in item:
                item[name] = prop.get("content") or prop.get_text(" ", strip=True)
        if len(item) > 1:
            items.append(item)
    return items


def extract_structured_data(raw_html: str) -> StructuredPageData:
    """
    Collect JSON-LD, hydration state, meta tags and page metadata.

    Never raises: blocks that fail to parse are skipped.
    """
    result = StructuredPageData()
    if not raw_html or not raw_html.strip():
        return result

    soup = BeautifulSoup(raw_html, "html.parser")

    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        data = _parse_json(script.string, "JSON-LD")
        if data is not None:
            result.json_ld.append(data)

    next_script = soup.find("script", id="__NEXT_DATA__")
    if next_script is not None:
        result.next_data = _parse_json(next_script.string, "__NEXT_DATA__")

    for script in soup.find_all("script"):
        content = script.string or ""
        if not content:
            continue
        if result.nuxt_data is None and "__NUXT__" in content:
            match = NUXT_PATTERN.search(content)
            if match:
                result.nuxt_data = _parse_json(match.group(1), "__NUXT__")
        for name, pattern in WINDOW_STATE_PATTERNS.items():
            if name in result.window_states:
                continue
            match = pattern.search(content)
            if match:
                data = _parse_json(match.group(1), f"window.{name}")
                if data is not None:
                    result.window_states[name] = data

    for meta in soup.find_all("meta"):
        content = meta.get("content")
        if not content:
            continue
        prop = meta.get("property") or ""
        name = meta.get("name") or ""
        if prop.startswith("og:"):
            result.open_graph[prop] = content
        elif name.startswith("twitter:"):
            result.open_graph[name] = content
        elif name in EXTENDED_META_NAMES or name.startswith("DC."):
            result.extended_meta[name] = content

    result.microdata = _extract_microdata(soup)

    for element in soup.select(DATA_ATTRIBUTE_SELECTOR):
        attributes = {
            key[len("data-"):]: _coerce_data_value(str(value))
            for key, value in element.attrs.items()
            if key.startswith("data-")
        }
        if attributes:
            result.data_attributes.append(attributes)

    result.metadata = _extract_metadata(soup)

    logfire.info(
        "Structured data extracted",
        json_ld=len(result.json_ld),
        microdata=len(result.microdata),
        has_next_data=result.next_data is not None,
        window_states=len(result.window_states),
        open_graph_tags=len(result.open_graph),
    )
    return result


def _link_href(soup: BeautifulSoup, rel: str) -> str | None:
    for link in soup.find_all("link", href=True):
        rels = link.get("rel") or []
        if isinstance(rels, str):
            rels = rels.split()
        if " ".join(rels).lower() == rel:
            return link["href"]
    return None


def _extract_metadata(soup: BeautifulSoup) -> PageMetadata:
    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else None
    description_tag = soup.find("meta", attrs={"name": "description"}) or soup.find(
        "meta", attrs={"property": "og:description"}
    )
    return PageMetadata(
        title=title or None,
        description=(description_tag.get("content") or None) if description_tag else None,
        favicon=_link_href(soup, "icon") or _link_href(soup, "shortcut icon"),
        canonical=_link_href(soup, "canonical"),
        image_src=_link_href(soup, "image_src"),
    )

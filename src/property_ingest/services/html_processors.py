"""Site-specific HTML processing, applied before the generic cleaner.

Some listing sites wrap the listing in page chrome the generic cleaner cannot
tell apart from content, or keep the full photo gallery in markup outside the
listing body. A ``HtmlProcessor`` narrows a raw page to the listing and reads
its gallery. Adding a site means adding one entry to ``HTML_PROCESSOR_REGISTRY``;
pages from any other host pass through unchanged.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

import logfire
from bs4 import BeautifulSoup, Tag

from property_ingest.constants import (
    HOMES_GALLERY_SELECTORS,
    HOMES_NOISE_CLASSES,
    MIN_GALLERY_IMAGE_SIZE_PX,
    REALTOR_GALLERY_SELECTOR,
    REALTOR_SIDEBAR_SELECTOR,
    REDFIN_GALLERY_SELECTORS,
    TRACKING_IMAGE_MARKERS,
)
from property_ingest.services.provider_router import hostname_of

_IMAGE_SOURCE_ATTRIBUTES = ("src", "data-src", "data-lazy", "data-original")


def _unchanged(raw_html: str) -> str:
    return raw_html


def _no_gallery(raw_html: str) -> list[str]:
    return []


@dataclass(frozen=True)
class HtmlProcessor:
    """Processing for one listing site: which hosts it serves and what it does."""

    id: str
    url_hosts: tuple[str, ...]
    process: Callable[[str], str] = _unchanged
    gallery_images: Callable[[str], list[str]] = _no_gallery

    def matches(self, url: str) -> bool:
        """Exact, case-insensitive hostname match."""
        host = hostname_of(url)
        return host is not None and host in self.url_hosts


# =============================================================================
# Shared helpers
# =============================================================================


def image_source(img: Tag) -> str | None:
    """First non-empty source attribute, covering lazy-loading variants."""
    for attribute in _IMAGE_SOURCE_ATTRIBUTES:
        value = img.get(attribute)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _pixel_size(img: Tag, attribute: str) -> int:
    try:
        return int(str(img.get(attribute) or "0").strip())
    except ValueError:
        return 0


def _is_tracking_pixel(img: Tag) -> bool:
    if img.get("width") == "1" and img.get("height") == "1":
        return True
    src = (image_source(img) or "").lower()
    return any(marker in src for marker in TRACKING_IMAGE_MARKERS)


def _strip_page_noise(element: Tag) -> None:
    for tag in element.find_all(["script", "style", "noscript"]):
        tag.decompose()
    for img in element.find_all("img"):
        if _is_tracking_pixel(img):
            img.decompose()


def _unique(urls: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(urls))


# =============================================================================
# Realtor.com
# =============================================================================


def process_realtor_html(raw_html: str) -> str:
    """
    Keep only the ``<main>`` element, without the agent sidebar.

    Collapsed accordions and hidden sections stay: amenities and the full
    description live there. A page without ``<main>`` is returned unchanged.
    """
    if not raw_html.strip():
        return raw_html
    soup = BeautifulSoup(raw_html, "html.parser")
    main = soup.find("main")
    if main is None:
        logfire.warning("Realtor.com page has no <main> element, keeping full page")
        return raw_html
    for sidebar in main.select(REALTOR_SIDEBAR_SELECTOR):
        sidebar.decompose()
    _strip_page_noise(main)
    return str(main)


def extract_realtor_gallery_images(raw_html: str) -> list[str]:
    """First image of every gallery photo container, in page order."""
    if not raw_html.strip():
        return []
    soup = BeautifulSoup(raw_html, "html.parser")
    urls = []
    for container in soup.select(REALTOR_GALLERY_SELECTOR):
        img = container.find("img")
        src = image_source(img) if img is not None else None
        if src:
            urls.append(src)
    return _unique(urls)


# =============================================================================
# Redfin
# =============================================================================


def extract_redfin_gallery_images(raw_html: str) -> list[str]:
    """Gallery, carousel and photo viewer images larger than an icon."""
    if not raw_html.strip():
        return []
    soup = BeautifulSoup(raw_html, "html.parser")
    urls = []
    for img in soup.select(", ".join(REDFIN_GALLERY_SELECTORS)):
        if (
            _pixel_size(img, "width") <= MIN_GALLERY_IMAGE_SIZE_PX
            or _pixel_size(img, "height") <= MIN_GALLERY_IMAGE_SIZE_PX
        ):
            continue
        src = image_source(img)
        if src:
            urls.append(src)
    return _unique(urls)


# =============================================================================
# Homes.com
# =============================================================================


def process_homes_html(raw_html: str) -> str:
    """Drop neighborhood, valuation and suggested-listing sections."""
    if not raw_html.strip():
        return raw_html
    soup = BeautifulSoup(raw_html, "html.parser")
    main = soup.find("main")
    root = main if main is not None else soup
    selector = ", ".join(f".{name}" for name in HOMES_NOISE_CLASSES)
    removed = root.select(selector)
    for element in removed:
        element.decompose()
    logfire.debug("Homes.com sections removed", count=len(removed))
    return str(root)


def extract_homes_gallery_images(raw_html: str) -> list[str]:
    """Hero carousel and gallery images, in page order."""
    if not raw_html.strip():
        return []
    soup = BeautifulSoup(raw_html, "html.parser")
    urls = [image_source(img) for img in soup.select(", ".join(HOMES_GALLERY_SELECTORS))]
    return _unique(url for url in urls if url)


HTML_PROCESSOR_REGISTRY: tuple[HtmlProcessor, ...] = (
    HtmlProcessor(
        id="realtor",
        url_hosts=("realtor.com", "www.realtor.com"),
        process=process_realtor_html,
        gallery_images=extract_realtor_gallery_images,
    ),
    HtmlProcessor(
        id="redfin",
        url_hosts=("redfin.com", "www.redfin.com"),
        gallery_images=extract_redfin_gallery_images,
    ),
    HtmlProcessor(
        id="homes",
        url_hosts=("homes.com", "www.homes.com"),
        process=process_homes_html,
        gallery_images=extract_homes_gallery_images,
    ),
)


def get_html_processor(
    url: str, registry: Sequence[HtmlProcessor] = HTML_PROCESSOR_REGISTRY
) -> HtmlProcessor | None:
    """The processor for a URL's host, or None for generic handling."""
    for processor in registry:
        if processor.matches(url):
            return processor
    return None


def preprocess_html(
    raw_html: str, url: str, registry: Sequence[HtmlProcessor] = HTML_PROCESSOR_REGISTRY
) -> str:
    """Apply the site processor for ``url``, if any, to a raw page."""
    processor = get_html_processor(url, registry)
    if processor is None:
        return raw_html
    processed = processor.process(raw_html)
    logfire.info(
        "Site HTML processor applied",
        processor=processor.id,
        url=url,
        raw_length=len(raw_html),
        processed_length=len(processed),
    )
    return processed


def gallery_images_for(
    raw_html: str, url: str, registry: Sequence[HtmlProcessor] = HTML_PROCESSOR_REGISTRY
) -> list[str]:
    """Gallery image sources the site processor finds in a raw page."""
    processor = get_html_processor(url, registry)
    if processor is None:
        return []
    return processor.gallery_images(raw_html)

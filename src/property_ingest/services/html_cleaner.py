"""Conservative HTML cleaning for scraped listing pages.

Removes obvious noise (scripts, ads, consent banners, link-only navigation)
while keeping anything that might carry a property fact. Every removal rule
is a predicate over a single element so it can be tested on its own; the
stages run in a fixed order because later rules see the output of earlier
ones.
"""

import time
from collections.abc import Callable, Iterable

import logfire
from bs4 import BeautifulSoup, Tag

from property_ingest.constants import (
    AD_MARKERS,
    BANNER_MARKERS,
    BANNER_MAX_TEXT_CHARS,
    CONSENT_MARKERS,
    HEADER_MAX_TEXT_CHARS,
    NAVIGATION_PROTECTED_TEXT_CHARS,
    NAVIGATION_TEXT_PER_LINK,
    POPUP_MARKERS,
    POPUP_MAX_TEXT_CHARS,
    PROPERTY_KEYWORDS,
    SOCIAL_CLASS_MARKERS,
    SOCIAL_KEYWORDS,
    SOCIAL_LINK_CLUSTER_MAX_TEXT_CHARS,
    SOCIAL_LINK_CLUSTER_MIN_LINKS,
    SOCIAL_MAX_TEXT_CHARS,
    UNCONDITIONAL_REMOVE_TAGS,
    VOID_TAGS,
)


# Descendants that make an otherwise text-free element worth keeping
_CONTENT_TAGS = frozenset(("img", "picture", "video", "audio", "source", "input"))

# Never removed by the emptiness pass
_STRUCTURAL_TAGS = frozenset(("html", "head", "body"))

_LAZY_ATTRIBUTE_MAP = (
    ("data-src", "src"),
    ("data-lazy", "src"),
    ("data-srcset", "srcset"),
)


# =============================================================================
# Element helpers
# =============================================================================


def _class_string(element: Tag) -> str:
    classes = element.get("class") or []
    if isinstance(classes, str):
        return classes.lower()
    return " ".join(classes).lower()


def _id_string(element: Tag) -> str:
    value = element.get("id") or ""
    return str(value).lower()


def _class_matches(element: Tag, markers: Iterable[str]) -> bool:
    classes = _class_string(element)
    return any(marker in classes for marker in markers)


def _class_or_id_matches(element: Tag, markers: Iterable[str]) -> bool:
    classes = _class_string(element)
    element_id = _id_string(element)
    return any(marker in classes or marker in element_id for marker in markers)


def element_text(element: Tag) -> str:
    """Trimmed text content of an element."""
    return element.get_text().strip()


def has_property_keyword(text: str) -> bool:
    """True if the text mentions a property fact such as beds or price."""
    lowered = text.lower()
    return any(keyword in lowered for keyword in PROPERTY_KEYWORDS)


def _link_count(element: Tag) -> int:
    return len(element.find_all("a"))


# =============================================================================
# Removal predicates
# =============================================================================


def is_likely_ad_element(element: Tag) -> bool:
    """Class or id names an ad slot or a tracking/analytics container."""
    return _class_or_id_matches(element, AD_MARKERS)


def is_cookie_banner(element: Tag) -> bool:
    """Class or id names a cookie or consent banner."""
    return _class_or_id_matches(element, CONSENT_MARKERS)


def is_dismissable_popup(element: Tag) -> bool:
    """Popup/modal container that is short or about cookies.

    Longer popups are kept: listing sites reuse 'modal' classes for photo
    viewers and fact sheets.
    """
    if not _class_or_id_matches(element, POPUP_MARKERS):
        return False
    text = element_text(element).lower()
    if any(marker in text for marker in CONSENT_MARKERS):
        return True
    return len(text) < POPUP_MAX_TEXT_CHARS


def is_removable_banner(element: Tag) -> bool:
    """Short banner without any property fact in it."""
    if not _class_matches(element, BANNER_MARKERS):
        return False
    text = element_text(element)
    if has_property_keyword(text):
        return False
    return len(text) < BANNER_MAX_TEXT_CHARS


def is_empty_element(element: Tag) -> bool:
    """No text, no src/href, and no media descendant."""
    if element.name in VOID_TAGS or element.name in _STRUCTURAL_TAGS:
        return False
    if element_text(element):
        return False
    if element.get("src") or element.get("href"):
        return False
    return element.find(_is_content_bearing) is None


def _is_content_bearing(tag: Tag) -> bool:
    return tag.name in _CONTENT_TAGS or bool(tag.get("src")) or bool(tag.get("href"))


def is_social_share_cluster(element: Tag) -> bool:
    """Share/social container holding only social links or a few bare icons."""
    if not _class_matches(element, SOCIAL_CLASS_MARKERS):
        return False
    text = element_text(element).lower()
    if any(keyword in text for keyword in SOCIAL_KEYWORDS) and (
        len(text) < SOCIAL_MAX_TEXT_CHARS
    ):
        return True
    return (
        _link_count(element) >= SOCIAL_LINK_CLUSTER_MIN_LINKS
        and len(text) < SOCIAL_LINK_CLUSTER_MAX_TEXT_CHARS
    )


def is_likely_navigation(element: Tag) -> bool:
    """Link-dominated nav, footer or header with no property facts.

    Kept when it has more than a short paragraph of text or mentions a
    property keyword. Headers are only removed when they are also short.
    """
    if element.name not in ("nav", "footer", "header"):
        return False
    text = element_text(element)
    text_length = len(text)
    if text_length > NAVIGATION_PROTECTED_TEXT_CHARS or has_property_keyword(text):
        return False
    link_dominated = _link_count(element) > text_length / NAVIGATION_TEXT_PER_LINK
    if element.name == "header":
        return link_dominated and text_length < HEADER_MAX_TEXT_CHARS
    return link_dominated


# =============================================================================
# Stages
# =============================================================================


def _remove_where(soup: BeautifulSoup, predicate: Callable[[Tag], bool]) -> int:
    """Decompose every element matching the predicate, outermost first."""
    removed = 0
    for element in soup.find_all(True):
        if element.decomposed:
            continue
        if predicate(element):
            element.decompose()
            removed += 1
    return removed


def remove_unconditional_tags(soup: BeautifulSoup) -> int:
    removed = 0
    for element in soup.find_all(UNCONDITIONAL_REMOVE_TAGS):
        if not element.decomposed:
            element.decompose()
            removed += 1
    return removed


def remove_empty_elements(soup: BeautifulSoup) -> int:
    """Bottom-up: children are judged before their parents."""
    removed = 0
    for element in reversed(soup.find_all(True)):
        if element.decomposed:
            continue
        if is_empty_element(element):
            element.decompose()
            removed += 1
    return removed


def convert_lazy_images(soup: BeautifulSoup) -> int:
    """Copy lazy-loading attributes to src/srcset where those are missing."""
    converted = 0
    for element in soup.find_all(["img", "source"]):
        for lazy_attr, standard_attr in _LAZY_ATTRIBUTE_MAP:
            lazy_value = element.get(lazy_attr)
            if lazy_value and not element.get(standard_attr):
                element[standard_attr] = lazy_value
                converted += 1
    return converted


def _is_noise_markup(element: Tag) -> bool:
    return is_cookie_banner(element) or is_dismissable_popup(element)


def clean_html(raw_html: str) -> str:
    """
    Strip non-content markup from a scraped listing page.

    Args:
        raw_html: Full HTML document or fragment

    Returns:
        Inner HTML of the cleaned <body>, or the cleaned fragment when the
        input has no body. Empty input yields an empty string.
    """
    if not raw_html or not raw_html.strip():
        return ""

    start_time = time.time()
    soup = BeautifulSoup(raw_html, "html.parser")
    root = soup.body or soup

    stats = {
        "unconditional": remove_unconditional_tags(root),
        "ads": _remove_where(root, is_likely_ad_element),
        "consent": _remove_where(root, _is_noise_markup),
        "banners": _remove_where(root, is_removable_banner),
        "empty": remove_empty_elements(root),
        "social": _remove_where(root, is_social_share_cluster),
        "navigation": _remove_where(root, is_likely_navigation),
        "lazy_images": convert_lazy_images(root),
    }

    cleaned = root.decode_contents().strip()
    elapsed = time.time() - start_time
    logfire.info(
        "HTML cleaned",
        input_chars=len(raw_html),
        output_chars=len(cleaned),
        duration_ms=elapsed * 1000,
        **stats,
    )
    return cleaned

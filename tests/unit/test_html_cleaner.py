"""Tests for HTML cleaning predicates and the full cleaning pass."""

from bs4 import BeautifulSoup

from property_ingest.services.html_cleaner import (
    clean_html,
    convert_lazy_images,
    has_property_keyword,
    is_cookie_banner,
    is_dismissable_popup,
    is_empty_element,
    is_likely_ad_element,
    is_likely_navigation,
    is_removable_banner,
    is_social_share_cluster,
)


def _element(html: str):
    """First element of an HTML fragment."""
    return BeautifulSoup(html, "html.parser").find(True)


class TestRemovalPredicates:
    """Each removal rule judged on a single element."""

    def test_ad_by_class_and_id(self):
        """Ad and tracking markers match on class or id."""
        assert is_likely_ad_element(_element('<div class="ad-slot">x</div>'))
        assert is_likely_ad_element(_element('<div id="google-ads">x</div>'))
        assert is_likely_ad_element(_element('<div class="analytics-pixel"></div>'))
        assert not is_likely_ad_element(_element('<div class="price">$1</div>'))

    def test_cookie_banner(self):
        """Cookie and consent containers are recognized by class or id."""
        assert is_cookie_banner(_element('<div class="cookie-notice">x</div>'))
        assert is_cookie_banner(_element('<div id="consent-dialog">x</div>'))
        assert not is_cookie_banner(_element('<div class="gallery">x</div>'))

    def test_popup_short_or_cookie_related(self):
        """Short popups and cookie popups are dismissable."""
        assert is_dismissable_popup(_element('<div class="modal">Sign up!</div>'))
        long_cookie = "We use cookies " + "to give you a better experience " * 5
        assert is_dismissable_popup(_element(f'<div class="popup">{long_cookie}</div>'))

    def test_long_modal_kept(self):
        """Long modals (photo viewers, fact sheets) are kept."""
        text = "Kitchen with granite counters and stainless appliances, walk-in pantry."
        assert not is_dismissable_popup(_element(f'<div class="modal">{text}</div>'))

    def test_banner_with_property_keyword_kept(self):
        """Banners that mention a property fact survive."""
        assert is_removable_banner(_element('<div class="banner">Big sale!</div>'))
        assert not is_removable_banner(
            _element('<div class="banner">Price reduced to $450,000</div>')
        )

    def test_empty_element(self):
        """No text, no link and no media means empty."""
        assert is_empty_element(_element("<div><span> </span></div>"))
        assert not is_empty_element(_element('<div><img src="/a.jpg"></div>'))
        assert not is_empty_element(_element('<a href="/x"></a>'))
        assert not is_empty_element(_element("<br>"))
        assert not is_empty_element(_element("<p>text</p>"))

    def test_social_share_cluster(self):
        """Share widgets with social text or only a few icons are removed."""
        assert is_social_share_cluster(
            _element('<div class="share-bar">Share on Facebook</div>')
        )
        assert is_social_share_cluster(
            _element('<div class="social"><a href="/1"></a><a href="/2"></a><a href="/3"></a></div>')
        )
        assert not is_social_share_cluster(_element('<div class="gallery">Share</div>'))

    def test_link_dominated_navigation(self):
        """Nav made of short links is removed."""
        nav = _element('<nav><a href="/">Home</a><a href="/buy">Buy</a></nav>')

        assert is_likely_navigation(nav)

    def test_navigation_with_property_keyword_kept(self):
        """Nav mentioning a property fact survives."""
        nav = _element('<nav><a href="/">Home</a><a href="/b">3 beds</a></nav>')

        assert not is_likely_navigation(nav)

    def test_long_navigation_kept(self):
        """Nav with a real paragraph of text survives."""
        text = "Neighborhood guide " * 8
        nav = _element(f'<nav><a href="/">Home</a><p>{text}</p></nav>')

        assert not is_likely_navigation(nav)

    def test_only_nav_footer_header(self):
        """Other link lists are not navigation."""
        div = _element('<div><a href="/">Home</a><a href="/buy">Buy</a></div>')

        assert not is_likely_navigation(div)

    def test_has_property_keyword(self):
        """Keyword match is case-insensitive."""
        assert has_property_keyword("3 BEDROOMS")
        assert not has_property_keyword("About us")


class TestLazyImages:
    """Test lazy-loading attribute conversion."""

    def test_data_src_copied(self):
        """data-src fills a missing src."""
        soup = BeautifulSoup('<img data-src="/a.jpg"><img src="/b.jpg" data-src="/c.jpg">', "html.parser")

        assert convert_lazy_images(soup) == 1
        images = soup.find_all("img")
        assert images[0]["src"] == "/a.jpg"
        assert images[1]["src"] == "/b.jpg"


class TestCleanHtml:
    """Test the full cleaning pass."""

    def test_empty_input(self):
        """Empty input yields an empty string."""
        assert clean_html("") == ""
        assert clean_html("   ") == ""

    def test_noise_removed(self, listing_html):
        """Scripts, ads, consent, navigation and empty markup are gone."""
        cleaned = clean_html(listing_html)

        assert "<script" not in cleaned
        assert "dataLayer" not in cleaned
        assert "cookies" not in cleaned
        assert "refinance" not in cleaned
        assert "<nav" not in cleaned
        assert "<footer" not in cleaned
        assert "spacer" not in cleaned

    def test_content_kept(self, listing_html):
        """Property facts survive cleaning."""
        cleaned = clean_html(listing_html)

        assert "Charming Craftsman Bungalow" in cleaned
        assert "$1,250,000" in cleaned
        assert "3 beds" in cleaned
        assert "Hardwood floors" in cleaned
        assert "/photos/1.jpg" in cleaned

    def test_lazy_image_converted(self, listing_html):
        """Lazy-loaded images get a src."""
        cleaned = clean_html(listing_html)

        assert 'src="/photos/2.jpg"' in cleaned

    def test_returns_body_contents_only(self, listing_html):
        """The head is not part of the output."""
        cleaned = clean_html(listing_html)

        assert "<body" not in cleaned
        assert "<title>" not in cleaned

    def test_fragment_input(self):
        """Fragments without a body are cleaned too."""
        cleaned = clean_html('<div class="price">$500,000</div><script>x()</script>')

        assert cleaned == '<div class="price">$500,000</div>'

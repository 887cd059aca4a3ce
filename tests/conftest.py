"""Shared pytest fixtures and configuration.

Fixture Categories:
1. Settings: isolated Settings per test, no .env leakage between tests
2. Sample data: Zillow/Realtor records, listing HTML, legacy configurations
3. Generation: pydantic-ai TestModel based generator, sample listings
4. Infrastructure: respx_mock, mock_supabase_client
"""

import os
from unittest.mock import MagicMock

import pytest

# Suppress "logfire not configured" warnings for every test module
os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

import respx
from pydantic_ai.models.test import TestModel

from property_ingest.config import Settings, get_settings
from property_ingest.models.generation_models import (
    BaseConfig,
    GeneratedListing,
    GenerationRunMetadata,
    Highlight,
    ListingAgent,
    ListingFeature,
)
from property_ingest.services.config_generator import ConfigGenerator

_CREDENTIAL_ENV_KEYS = (
    "APIFY_API_TOKEN",
    "SCRAPERAPI_KEY",
    "SCRAPER_PROVIDER",
    "FIRECRAWL_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "SENTRY_DSN",
    "LOGFIRE_TOKEN",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Start every test with cached settings cleared and no real credentials."""
    for key in _CREDENTIAL_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ENV", "test")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def respx_mock():
    """Respx mock fixture for HTTP mocking."""
    with respx.mock(assert_all_called=False) as mock:
        yield mock


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client with chainable table() queries.

    Configure ``client.execute_result.data`` to control what every query returns.
    """
    client = MagicMock()
    query = MagicMock()
    execute_result = MagicMock()
    execute_result.data = []

    for method in ("select", "insert", "update", "eq", "limit"):
        getattr(query, method).return_value = query
    query.execute.return_value = execute_result
    client.table.return_value = query

    client.query = query
    client.execute_result = execute_result
    return client


# =============================================================================
# Provider data
# =============================================================================


@pytest.fixture
def zillow_record():
    """Trimmed Zillow detail-scraper record with tracking, ads and media noise."""
    return {
        "zpid": 12345,
        "submitFlow": {"step": 1},
        "hdpUrl": "/homedetails/123-main-st/12345_zpid/",
        "address": {
            "streetAddress": "123 Main St",
            "city": "Springfield",
            "state": "IL",
            "zipcode": "62704",
        },
        "price": 450000,
        "bedrooms": 3,
        "bathrooms": 2.5,
        "description": "Charming craftsman bungalow near the park.",
        "homeType": "SINGLE_FAMILY",
        "yearBuilt": 1925,
        "listingSubType": {"isFSBA": True, "isComingSoon": None},
        "brokerageName": "",
        "photos": [
            {
                "caption": "",
                "mixedSources": {
                    "jpeg": [
                        {"url": "https://photos.example.com/a_192.jpg", "width": 192},
                        {"url": "https://photos.example.com/a_1536.jpg", "width": 1536},
                        {"url": "https://photos.example.com/a_768.jpg", "width": 768},
                    ],
                    "webp": [
                        {"url": "https://photos.example.com/a_192.webp", "width": 192},
                        {"url": "https://photos.example.com/a_1536.webp", "width": 1536},
                    ],
                },
            }
        ],
        "staticMap": {
            "sources": [
                {
                    "url": "https://maps.example.com/staticmap?center=39.78,-89.65&zoom=15",
                    "width": 256,
                }
            ]
        },
        "resoFacts": {
            "gas": "Natural",
            "heating": ["Forced Air"],
            "rooms": [
                {"roomType": "Kitchen", "area": "12x14", "level": "Main"},
            ],
        },
        "vrModel": {"revisionId": "r1", "vrModelGuid": "g1", "cdnHost": "cdn.example.com"},
        "schools": [{"name": "Lincoln Elementary"}],
    }


@pytest.fixture
def realtor_record():
    return {
        "url": "https://www.realtor.com/realestateandhomes-detail/456-oak-ave",
        "loadedUrl": "https://www.realtor.com/realestateandhomes-detail/456-oak-ave",
        "requestId": "req-1",
        "requestQueueId": "queue-1",
        "listPrice": 389000,
        "beds": 4,
        "baths": 2,
        "address": {"line": "456 Oak Ave", "city": "Austin", "state": "TX"},
        "photos": [{"href": "https://ap.rdcpix.com/1.jpg"}],
        "tags": [],
        "agent": {"name": "Jane Agent", "email": None},
    }


# =============================================================================
# HTML
# =============================================================================


@pytest.fixture
def listing_html():
    """A listing page with navigation, consent, ad and tracking noise."""
    return """<!DOCTYPE html>
<html>
<head>
  <title>123 Main St, Springfield, IL 62704 | Example Homes</title>
  <meta name="description" content="3 bed, 2.5 bath craftsman bungalow">
  <meta property="og:title" content="Charming Craftsman Bungalow">
  <meta property="og:image" content="https://example.com/photos/1.jpg">
  <link rel="canonical" href="https://example.com/listing/123-main-st">
  <script type="application/ld+json">
    {"@context": "https://schema.org", "@type": "SingleFamilyResidence",
     "name": "123 Main St", "numberOfRooms": 3}
  </script>
</head>
<body>
  <nav class="main-nav"><a href="/">Home</a><a href="/buy">Buy</a><a href="/rent">Rent</a></nav>
  <div class="cookie-consent">We use cookies to improve your experience. <button>Accept</button></div>
  <div class="ad-slot">Sponsored: refinance today</div>
  <script>window.dataLayer = [];</script>
  <main>
    <h1 class="listing-title">Charming Craftsman Bungalow</h1>
    <div class="price">$1,250,000</div>
    <div class="address">123 Main St, Springfield, IL 62704</div>
    <div class="beds">3 beds</div>
    <div class="baths">2.5 baths</div>
    <div class="sqft">1,850 sqft</div>
    <div class="description">Sunny craftsman bungalow with original woodwork, an updated
      kitchen and a deep backyard garden close to parks and schools.</div>
    <ul>
      <li class="feature">Hardwood floors</li>
      <li class="feature">Detached garage</li>
    </ul>
    <div class="gallery">
      <img src="/photos/1.jpg" alt="Front">
      <img data-src="/photos/2.jpg" alt="Kitchen">
      <img src="/img/logo.png" alt="Example Homes">
      <img src="/photos/1.jpg" alt="Front again">
    </div>
    <div class="spacer"><span></span></div>
  </main>
  <footer><a href="/a">About</a><a href="/b">Blog</a><a href="/c">Careers</a></footer>
</body>
</html>"""


# =============================================================================
# Page configurations
# =============================================================================


@pytest.fixture
def legacy_config():
    """v1 configuration as stored by older editor versions."""
    return {
        "theme": {"primaryColor": "#112233", "fontFamily": "Lora", "customKnob": 3},
        "sections": [
            {
                "id": "hero-0",
                "type": "hero",
                "variant": "full",
                "data": {"headline": "Charming Bungalow", "price": "$450,000"},
            },
            {
                "id": "gallery-1",
                "type": "gallery",
                "variant": "grid",
                "colorScheme": "dark",
                "data": {"images": [{"src": "https://example.com/1.jpg"}]},
            },
            {"id": "contact-2", "type": "contact", "data": {}},
        ],
        "loader": {"type": "spinner", "colorScheme": "dark"},
        "meta": {"title": "123 Main St", "description": "Bungalow for sale"},
    }


# =============================================================================
# Generation
# =============================================================================


def listing_output_args(**overrides):
    """Arguments TestModel returns as the Call 1 structured output."""
    args = {
        "title": "3 Bed Craftsman in Springfield",
        "subtitle": "Walk to Washington Park",
        "description": "Charming craftsman bungalow near the park.",
        "address": "123 Main St, Springfield, IL 62704",
        "price": 450000,
        "currency": "USD",
        "bedrooms": 3,
        "bathrooms": 2.5,
        "photos": [
            "https://photos.example.com/a_1536.jpg",
            "https://photos.example.com/b_1536.jpg",
        ],
        "features": [{"label": "Heating", "value": "Forced Air", "icon": "thermometer"}],
        "highlights": [{"title": "Big Yard", "value": "Deep garden lot", "icon": "Tree"}],
    }
    args.update(overrides)
    return args


def refinement_output_args(**overrides):
    """Arguments TestModel returns as the Call 2 structured output."""
    args = {
        "title": "Craftsman Charm Steps from the Park",
        "highlights": [
            {"title": "Park Views", "value": "Across from Washington Park", "icon": "Tree"},
            {"title": "Original Woodwork", "value": "Restored 1925 details", "icon": "House"},
        ],
    }
    args.update(overrides)
    return args


def image_analysis_output_args(**overrides):
    """Arguments TestModel returns as the Call 3 structured output."""
    args = {
        "best_image_index": 1,
        "reasoning": "Twilight exterior with the lit pool sells the lifestyle.",
        "images": [
            {
                "index": 0,
                "description": "Galley kitchen with white cabinets and a small window",
                "score": 5.5,
                "composition": 5,
                "lighting": 6,
                "wow_factor": 4,
                "quality": 7,
            },
            {
                "index": 1,
                "description": "Front of the bungalow at dusk with the pool lit up",
                "score": 8.75,
                "composition": 9,
                "lighting": 8,
                "wow_factor": 9,
                "quality": 9,
            },
        ],
    }
    args.update(overrides)
    return args


@pytest.fixture
def test_settings():
    return Settings(env="test")


@pytest.fixture
def generator(test_settings):
    """ConfigGenerator whose three agents return fixed structured outputs."""
    return ConfigGenerator(
        model=TestModel(custom_output_args=listing_output_args()),
        settings=test_settings,
        refinement_model=TestModel(custom_output_args=refinement_output_args()),
        image_model=TestModel(custom_output_args=image_analysis_output_args()),
    )


@pytest.fixture
def generated_listing():
    return GeneratedListing(
        title="3 Bed Craftsman in Springfield",
        subtitle="Walk to Washington Park",
        description="Charming craftsman bungalow near the park.",
        address="123 Main St, Springfield, IL 62704",
        price=450000,
        bedrooms=3,
        bathrooms=2.5,
        living_area_sqft=1850,
        lot_size="0.25 acres",
        year_built=1925,
        photos=["https://example.com/1.jpg", "https://example.com/2.jpg"],
        features=[ListingFeature(label="Heating", value="Forced Air")],
        highlights=[Highlight(title="Big Yard", value="Deep garden lot")],
        agent=ListingAgent(name="Jane Agent", phone="555-0100"),
    )


@pytest.fixture
def base_config(generated_listing):
    return BaseConfig(
        source_url="https://www.zillow.com/homedetails/123-main-st/12345_zpid/",
        listing=generated_listing,
        diagnostics={
            "call1": GenerationRunMetadata(
                prompt_tokens=100,
                completion_tokens=50,
                total_tokens=150,
                duration_ms=12.5,
                temperature=0.3,
                model="test",
            )
        },
    )


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def test_client():
    """FastAPI TestClient without running the lifespan (no Logfire/Sentry setup)."""
    from fastapi.testclient import TestClient

    from property_ingest.main import app

    app.dependency_overrides.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def logfire_capture():
    """
    Capture Logfire calls for assertion.

    Yields a list of (level, args, kwargs) tuples; the real calls still run.
    """
    import logfire
    from unittest.mock import patch

    captured_logs = []
    originals = {
        "info": logfire.info,
        "warning": logfire.warning,
        "error": logfire.error,
    }

    def _capture(level):
        def capture(*args, **kwargs):
            captured_logs.append((level, args, kwargs))
            return originals[level](*args, **kwargs)

        return capture

    with (
        patch("logfire.info", side_effect=_capture("info")),
        patch("logfire.warning", side_effect=_capture("warning")),
        patch("logfire.error", side_effect=_capture("error")),
    ):
        yield captured_logs


@pytest.fixture
def refinement_args():
    """Builder for Call 2 TestModel output arguments, with overrides."""
    return refinement_output_args


@pytest.fixture
def image_analysis_args():
    """Builder for Call 3 TestModel output arguments, with overrides."""
    return image_analysis_output_args


@pytest.fixture
def listing_args():
    """Builder for Call 1 TestModel output arguments, with overrides."""
    return listing_output_args

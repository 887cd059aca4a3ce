"""Tests for provider-specific JSON cleaners."""

import copy

from hypothesis import given, settings, strategies as st

from property_ingest.services.cleaners import (
    ProviderCleaner,
    clean_realtor_json,
    clean_zillow_json,
)
from property_ingest.services.cleaners.zillow import (
    is_image_format_map,
    keep_widest_variants,
    parse_map_center,
    reduce_static_map,
)


class TestZillowCleaner:
    """Test the Zillow detail-scraper cleaner."""

    def test_denied_fields_removed_everywhere(self, zillow_record):
        """Tracking and identifier fields are dropped."""
        cleaned = clean_zillow_json(zillow_record)

        for field in ("zpid", "submitFlow", "hdpUrl", "listingSubType", "schools"):
            assert field not in cleaned

    def test_facts_kept(self, zillow_record):
        """Property facts survive cleaning."""
        cleaned = clean_zillow_json(zillow_record)

        assert cleaned["price"] == 450000
        assert cleaned["bedrooms"] == 3
        assert cleaned["bathrooms"] == 2.5
        assert cleaned["yearBuilt"] == 1925
        assert cleaned["address"]["city"] == "Springfield"

    def test_empty_values_removed(self, zillow_record):
        """Empty strings disappear at every depth."""
        cleaned = clean_zillow_json(zillow_record)

        assert "brokerageName" not in cleaned
        assert "caption" not in cleaned["photos"][0]

    def test_photo_variants_reduced_to_widest(self, zillow_record):
        """Each image format keeps only its widest variant."""
        cleaned = clean_zillow_json(zillow_record)
        sources = cleaned["photos"][0]["mixedSources"]

        assert sources["jpeg"] == [
            {"url": "https://photos.example.com/a_1536.jpg", "width": 1536}
        ]
        assert sources["webp"] == [
            {"url": "https://photos.example.com/a_1536.webp", "width": 1536}
        ]

    def test_static_map_reduced_to_coordinates(self, zillow_record):
        """staticMap becomes latitude/longitude parsed from its first tile URL."""
        cleaned = clean_zillow_json(zillow_record)

        assert cleaned["staticMap"] == {"latitude": 39.78, "longitude": -89.65}

    def test_scoped_denials(self, zillow_record):
        """Fields denied only under a named parent are removed there."""
        cleaned = clean_zillow_json(zillow_record)

        assert cleaned["vrModel"] == {"cdnHost": "cdn.example.com"}
        assert "gas" not in cleaned["resoFacts"]
        assert cleaned["resoFacts"]["heating"] == ["Forced Air"]
        assert cleaned["resoFacts"]["rooms"] == [{"roomType": "Kitchen"}]

    def test_list_shape_preserved(self, zillow_record):
        """A dataset array comes back as an array of the same length."""
        cleaned = clean_zillow_json([zillow_record, {"zpid": 1}])

        assert isinstance(cleaned, list)
        assert len(cleaned) == 2
        assert cleaned[0]["price"] == 450000
        assert cleaned[1] == {}

    def test_wrapped_shape_preserved(self, zillow_record):
        """apifyData wrappers keep their envelope."""
        cleaned = clean_zillow_json({"apifyData": [zillow_record], "runId": "r1"})

        assert cleaned["runId"] == "r1"
        assert cleaned["apifyData"][0]["price"] == 450000
        assert "zpid" not in cleaned["apifyData"][0]

    def test_none_passthrough(self):
        """None is returned unchanged."""
        assert clean_zillow_json(None) is None

    def test_scalar_passthrough(self):
        """Non-container payloads are not touched."""
        assert clean_zillow_json("not json records") == "not json records"

    def test_input_not_mutated(self, zillow_record):
        """Cleaning works on copies."""
        original = copy.deepcopy(zillow_record)
        clean_zillow_json(zillow_record)

        assert zillow_record == original

    def test_idempotent_on_fixture(self, zillow_record):
        """Cleaning a cleaned record changes nothing."""
        once = clean_zillow_json(zillow_record)

        assert clean_zillow_json(once) == once


class TestZillowReductions:
    """Test the Zillow media helpers."""

    def test_parse_map_center(self):
        """center=<lat>,<lng> is read as floats."""
        assert parse_map_center("https://m.example.com/?center=1.5,-2.25") == (1.5, -2.25)

    def test_parse_map_center_invalid(self):
        """Missing or non-numeric centers give None."""
        assert parse_map_center("https://m.example.com/?zoom=3") is None
        assert parse_map_center("https://m.example.com/?center=abc,def") is None
        assert parse_map_center(None) is None

    def test_reduce_static_map_without_center(self):
        """A tile URL without coordinates yields null coordinates."""
        reduced = reduce_static_map({"sources": [{"url": "https://m.example.com/tile"}]})

        assert reduced == {"latitude": None, "longitude": None}

    def test_reduce_static_map_already_reduced(self):
        """Reduced blocks keep only their coordinates."""
        reduced = reduce_static_map({"latitude": 1.0, "longitude": 2.0, "zoom": 3})

        assert reduced == {"latitude": 1.0, "longitude": 2.0}

    def test_widest_variant_first_wins_ties(self):
        """Equal widths keep the earlier entry."""
        reduced = keep_widest_variants(
            {"png": [{"url": "a", "width": 10}, {"url": "b", "width": 10}]}
        )

        assert reduced == {"png": [{"url": "a", "width": 10}]}

    def test_non_format_keys_untouched(self):
        """Keys other than image formats pass through."""
        reduced = keep_widest_variants(
            {"jpeg": [{"url": "a", "width": 1}], "caption": "Front"}
        )

        assert reduced["caption"] == "Front"

    def test_is_image_format_map(self):
        """Only dicts with a format key holding variant dicts qualify."""
        assert is_image_format_map({"webp": [{"url": "a"}]}) is True
        assert is_image_format_map({"webp": ["a"]}) is False
        assert is_image_format_map({"url": "a"}) is False
        assert is_image_format_map(["webp"]) is False


class TestRealtorCleaner:
    """Test the Realtor.com cleaner."""

    def test_crawl_fields_removed(self, realtor_record):
        """Crawl bookkeeping fields are dropped."""
        cleaned = clean_realtor_json(realtor_record)

        for field in ("url", "loadedUrl", "requestId", "requestQueueId"):
            assert field not in cleaned

    def test_content_kept(self, realtor_record):
        """Listing content is kept; empties are removed."""
        cleaned = clean_realtor_json(realtor_record)

        assert cleaned["listPrice"] == 389000
        assert cleaned["agent"] == {"name": "Jane Agent"}
        assert "tags" not in cleaned


class TestProviderCleaner:
    """Test the shared cleaner base."""

    def test_subclass_deny_list(self):
        """A subclass only needs data to define a cleaner."""

        class ExampleCleaner(ProviderCleaner):
            provider_id = "example"
            denied_fields = frozenset({"secret"})
            scoped_denied_fields = {("agent",): frozenset({"phone"})}

        cleaner = ExampleCleaner()
        cleaned = cleaner(
            {"secret": 1, "agent": {"phone": "555", "name": "A"}, "phone": "777"}
        )

        assert cleaned == {"agent": {"name": "A"}, "phone": "777"}

    def test_record_that_empties_becomes_empty_dict(self):
        """An all-empty record keeps its slot as {}."""
        assert ProviderCleaner().clean([{"a": None}, {"b": 1}]) == [{}, {"b": 1}]


records = st.dictionaries(
    st.sampled_from(["price", "zpid", "hdpUrl", "bedrooms", "description", "caption"]),
    st.none() | st.integers() | st.text(max_size=8),
    max_size=6,
)


class TestCleanerProperties:
    """Property-based tests for cleaner invariants."""

    @given(st.lists(records, max_size=5))
    @settings(max_examples=50)
    def test_idempotent(self, dataset):
        """clean(clean(x)) == clean(x)."""
        once = clean_zillow_json(dataset)

        assert clean_zillow_json(once) == once

    @given(st.lists(records, max_size=5))
    @settings(max_examples=50)
    def test_length_preserved(self, dataset):
        """Record positions are kept."""
        assert len(clean_zillow_json(dataset)) == len(dataset)

"""Realtor.com scraper output cleaner.

Realtor.com records are already compact, so only crawl bookkeeping fields
are removed; everything with content is kept.
"""

from property_ingest.constants import REALTOR_DENIED_FIELDS
from property_ingest.services.cleaners.base import ProviderCleaner


class RealtorCleaner(ProviderCleaner):
    provider_id = "realtor"
    denied_fields = REALTOR_DENIED_FIELDS


clean_realtor_json = RealtorCleaner()

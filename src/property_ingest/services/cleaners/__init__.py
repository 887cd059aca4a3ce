"""Provider-specific JSON cleaners."""

from property_ingest.services.cleaners.base import ProviderCleaner
from property_ingest.services.cleaners.realtor import RealtorCleaner, clean_realtor_json
from property_ingest.services.cleaners.zillow import ZillowCleaner, clean_zillow_json

__all__ = [
    "ProviderCleaner",
    "RealtorCleaner",
    "ZillowCleaner",
    "clean_realtor_json",
    "clean_zillow_json",
]

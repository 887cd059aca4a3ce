"""Listing ingestion pipeline for property microsites."""

__version__ = "0.1.0"

"""Normalized property facts extracted from a listing page."""

from typing import Any

from pydantic import BaseModel, Field


class PropertyLocation(BaseModel):
    """Structured location; every part is optional."""

    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None

    def is_empty(self) -> bool:
        return not any((self.city, self.state, self.zip_code, self.country))


class ParsedPropertyRecord(BaseModel):
    """Best-effort property record.

    Absence is always None (or an empty list), never zero: a null field means
    no heuristic matched, and every non-null field comes from a matched
    fragment of the source page.
    """

    title: str | None = Field(default=None, description="Listing headline")
    address: str | None = Field(default=None, description="Street address as shown")
    price: int | None = Field(
        default=None, ge=0, description="Asking price in the source's currency unit"
    )
    property_type: str | None = Field(default=None, description="e.g. Single Family")
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0, description="Half baths allowed")
    square_footage: int | None = Field(default=None, ge=0)
    lot_size: float | None = Field(default=None, ge=0, description="Lot size as stated")
    year_built: int | None = Field(default=None)
    description: str | None = None
    images: list[str] = Field(
        default_factory=list, description="Absolute, deduplicated, DOM-ordered"
    )
    features: list[str] = Field(default_factory=list)
    location: PropertyLocation = Field(default_factory=PropertyLocation)
    extras: dict[str, Any] = Field(
        default_factory=dict, description="Provider-specific facts without a field"
    )

    def has_usable_data(self) -> bool:
        """False when nothing usable was found on the page."""
        scalars = (
            self.title,
            self.address,
            self.price,
            self.property_type,
            self.bedrooms,
            self.bathrooms,
            self.square_footage,
            self.lot_size,
            self.year_built,
            self.description,
        )
        if any(value is not None for value in scalars):
            return True
        return bool(self.images or self.features or self.extras) or not (
            self.location.is_empty()
        )

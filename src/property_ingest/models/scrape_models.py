"""Models for captured upstream payloads and their boundary shapes."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from property_ingest.constants import PROVIDER_RECORDS_FIELD


HTML_PROVIDER_TAG = "html"


def structured_provider_tag(provider_id: str) -> str:
    """Provider tag for a structured-data actor run, e.g. 'structured:zillow'."""
    return f"structured:{provider_id}"


class RawScrapeResult(BaseModel):
    """One captured upstream response.

    Immutable once captured. A retried import produces a new record rather
    than mutating this one.
    """

    model_config = ConfigDict(frozen=True)

    provider: str = Field(
        ..., description="'html' or 'structured:<providerId>'", pattern=r"^(html|structured:[\w-]+)$"
    )
    source_url: str = Field(..., description="Listing URL the payload was fetched for")
    payload: JsonValue = Field(..., description="Raw HTML string or parsed provider JSON")
    captured_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Capture timestamp (UTC)",
    )
    duration_ms: float = Field(default=0.0, ge=0, description="Upstream call duration")

    @property
    def is_html(self) -> bool:
        return self.provider == HTML_PROVIDER_TAG

    @property
    def provider_id(self) -> str | None:
        """Structured provider id, or None for the HTML path."""
        if self.is_html:
            return None
        return self.provider.split(":", 1)[1]


class CleanedPayload(BaseModel):
    """Noise-free view of a RawScrapeResult, regenerable from it at any time."""

    model_config = ConfigDict(frozen=True)

    provider: str
    source_url: str
    payload: JsonValue
    captured_at: datetime
    duration_ms: float = 0.0


# =============================================================================
# Provider payload shapes, decided once right after fetch
# =============================================================================


@dataclass(frozen=True)
class BarePayload:
    """A single provider record."""

    record: dict[str, Any]
    kind: Literal["bare"] = "bare"


@dataclass(frozen=True)
class RecordListPayload:
    """A plain array of provider records (the usual dataset response)."""

    records: list[Any]
    kind: Literal["list"] = "list"


@dataclass(frozen=True)
class WrappedPayload:
    """Records inside a named container field; other envelope keys are kept."""

    records: list[Any]
    envelope: dict[str, Any] = field(default_factory=dict)
    records_field: str = PROVIDER_RECORDS_FIELD
    kind: Literal["wrapped"] = "wrapped"


@dataclass(frozen=True)
class ScalarPayload:
    """Anything that is not a record container; cleaners pass it through."""

    value: Any
    kind: Literal["scalar"] = "scalar"


ProviderPayload = BarePayload | RecordListPayload | WrappedPayload | ScalarPayload


def classify_payload(raw: Any) -> ProviderPayload:
    """Decide the boundary shape of a parsed provider response."""
    if isinstance(raw, dict):
        records = raw.get(PROVIDER_RECORDS_FIELD)
        if isinstance(records, list):
            envelope = {k: v for k, v in raw.items() if k != PROVIDER_RECORDS_FIELD}
            return WrappedPayload(records=records, envelope=envelope)
        return BarePayload(record=raw)
    if isinstance(raw, list):
        return RecordListPayload(records=raw)
    return ScalarPayload(value=raw)


def assemble_payload(payload: ProviderPayload) -> Any:
    """Rebuild the original JSON shape from a classified payload."""
    match payload:
        case BarePayload(record=record):
            return record
        case RecordListPayload(records=records):
            return records
        case WrappedPayload(records=records, envelope=envelope, records_field=name):
            return {**envelope, name: records}
        case ScalarPayload(value=value):
            return value

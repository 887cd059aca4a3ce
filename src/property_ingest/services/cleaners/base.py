"""Shared machinery for provider-specific JSON cleaners.

A cleaner is data plus one optional hook: a provider declares which field
names to delete (globally, and inside named parents) and may override
``reduce_record`` for semantic reductions. The pipeline is always

    normalize -> strip denied fields -> reduce -> normalize
"""

from collections.abc import Mapping
from typing import Any

from property_ingest.models.scrape_models import (
    BarePayload,
    ProviderPayload,
    RecordListPayload,
    ScalarPayload,
    WrappedPayload,
    assemble_payload,
    classify_payload,
)
from property_ingest.services.json_normalizer import normalize

JsonPath = tuple[str, ...]


class ProviderCleaner:
    """Base cleaner; subclasses set the deny-lists and optionally reduce."""

    provider_id: str = "generic"

    # Field names removed at every depth
    denied_fields: frozenset[str] = frozenset()

    # Field names removed only inside objects whose key path ends with the key
    # e.g. {("resoFacts", "rooms"): frozenset({"area"})}
    scoped_denied_fields: Mapping[JsonPath, frozenset[str]] = {}

    def __call__(self, provider_json: Any) -> Any:
        return self.clean(provider_json)

    def clean(self, provider_json: Any) -> Any:
        """
        Clean a raw provider response of any supported shape.

        Accepts a record list, a single record or an ``apifyData`` wrapper and
        returns the same shape. ``None`` is returned unchanged.
        """
        if provider_json is None:
            return provider_json
        return assemble_payload(self.clean_payload(classify_payload(provider_json)))

    def clean_payload(self, payload: ProviderPayload) -> ProviderPayload:
        """Clean an already-classified payload, keeping its shape."""
        match payload:
            case BarePayload(record=record):
                return BarePayload(record=self.clean_record(record))
            case RecordListPayload(records=records):
                return RecordListPayload(records=self._clean_records(records))
            case WrappedPayload(records=records, envelope=envelope, records_field=name):
                return WrappedPayload(
                    records=self._clean_records(records),
                    envelope=envelope,
                    records_field=name,
                )
            case ScalarPayload():
                return payload

    def clean_record(self, record: Any) -> Any:
        """Run the full cleaning pipeline on one record."""
        if not isinstance(record, dict):
            return normalize(record)
        value = normalize(record)
        if value is None:
            return {}
        value = self.strip_denied_fields(value)
        value = self.reduce_record(value)
        return normalize(value) or {}

    def strip_denied_fields(self, value: Any, path: JsonPath = ()) -> Any:
        """Recursively delete denied keys; list items inherit their parent path."""
        if isinstance(value, dict):
            denied = self.denied_fields | self._scoped_denials(path)
            return {
                key: self.strip_denied_fields(child, path + (key,))
                for key, child in value.items()
                if key not in denied
            }
        if isinstance(value, list):
            return [self.strip_denied_fields(item, path) for item in value]
        return value

    def reduce_record(self, record: dict[str, Any]) -> dict[str, Any]:
        """Provider-specific semantic reductions. Identity by default."""
        return record

    def _clean_records(self, records: list[Any]) -> list[Any]:
        cleaned = [self.clean_record(record) for record in records]
        return [record for record in cleaned if record is not None]

    def _scoped_denials(self, path: JsonPath) -> frozenset[str]:
        denied: frozenset[str] = frozenset()
        for scope, names in self.scoped_denied_fields.items():
            if len(path) >= len(scope) and path[-len(scope):] == scope:
                denied = denied | names
        return denied

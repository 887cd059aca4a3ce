"""Tests for ingestion error types."""

import pytest

from property_ingest.exceptions import (
    GenerationFailedError,
    GenerationPreconditionError,
    IngestionError,
    ProviderTimeoutError,
    SourceUnavailableError,
)


class TestIngestionErrors:
    @pytest.mark.parametrize(
        "error_type,kind,retryable",
        [
            (SourceUnavailableError, "source_unavailable", False),
            (ProviderTimeoutError, "timeout", True),
            (GenerationPreconditionError, "generation_precondition", False),
            (GenerationFailedError, "generation_failed", True),
        ],
    )
    def test_kinds(self, error_type, kind, retryable):
        error = error_type("went wrong")

        assert isinstance(error, IngestionError)
        assert error.to_dict() == {**error.to_dict(), "kind": kind, "retryable": retryable}
        assert error.detail == "went wrong"
        assert str(error) == "went wrong"

    def test_timeout_carries_run_identifiers(self):
        """A timeout keeps what is needed to resume the run."""
        error = ProviderTimeoutError(
            "timed out", run_id="run-1", dataset_id="ds-1", actor_id="acme~actor"
        )

        assert error.to_dict() == {
            "kind": "timeout",
            "detail": "timed out",
            "retryable": True,
            "run_id": "run-1",
            "dataset_id": "ds-1",
            "actor_id": "acme~actor",
        }

    def test_timeout_before_submission(self):
        error = ProviderTimeoutError("timed out")

        assert error.run_id is None
        assert error.to_dict()["run_id"] is None

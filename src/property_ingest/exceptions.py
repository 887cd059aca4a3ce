"""Errors raised by the network-facing ingestion stages.

Cleaning, extraction and configuration reading never raise; they degrade to
partial or empty output. Only fetching, provider polling and AI generation
signal hard failures, and they do it with these types so a caller can tell
retry from abort.
"""

from typing import Any


class IngestionError(Exception):
    """Base exception for ingestion failures.

    Attributes:
        kind: Stable machine-readable failure category
        detail: Human-readable description of what went wrong
        retryable: Whether re-running only the failed stage may succeed
    """

    kind = "ingestion_error"
    retryable = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        """Structured form used in API error bodies and logs."""
        return {"kind": self.kind, "detail": self.detail, "retryable": self.retryable}


class SourceUnavailableError(IngestionError):
    """Raised when an upstream fetch or provider run fails outright."""

    kind = "source_unavailable"


class ProviderTimeoutError(IngestionError):
    """Raised when a provider run exceeds its wall-clock budget.

    Carries the run and dataset identifiers so the caller can re-poll the
    same run with a fresh budget instead of submitting a new one.
    """

    kind = "timeout"
    retryable = True

    def __init__(
        self,
        detail: str,
        run_id: str | None = None,
        dataset_id: str | None = None,
        actor_id: str | None = None,
    ):
        super().__init__(detail)
        self.run_id = run_id
        self.dataset_id = dataset_id
        self.actor_id = actor_id

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            run_id=self.run_id, dataset_id=self.dataset_id, actor_id=self.actor_id
        )
        return data


class GenerationPreconditionError(IngestionError):
    """Raised when the refinement call runs before a base configuration exists."""

    kind = "generation_precondition"


class GenerationFailedError(IngestionError):
    """Raised when a single AI generation call fails."""

    kind = "generation_failed"
    retryable = True

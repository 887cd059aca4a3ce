"""Network clients for the two upstream paths.

- ApifyClient: submit a structured-data actor run, poll it at a constant
  interval under a hard wall-clock budget, then fetch its dataset.
- ScraperApiFetcher, FirecrawlFetcher: fetch raw HTML for any URL through a
  scraping API; get_html_fetcher picks one from SCRAPER_PROVIDER.

Each returns an immutable RawScrapeResult and raise only IngestionError
subclasses, so the pipeline can tell a dead source from a slow one.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import logfire

from property_ingest.config import Settings, get_settings
from property_ingest.constants import (
    FIRECRAWL_FORMATS,
    RUN_STATUS_SUCCEEDED,
    TERMINAL_FAILURE_STATUSES,
)
from property_ingest.exceptions import ProviderTimeoutError, SourceUnavailableError
from property_ingest.logging_config import redact_secret
from property_ingest.models.scrape_models import (
    HTML_PROVIDER_TAG,
    RawScrapeResult,
    structured_provider_tag,
)
from property_ingest.services.provider_router import ProviderHandle

SleepFunc = Callable[[float], Awaitable[None]]


class HtmlFetcher(Protocol):
    """Protocol for fetching raw listing HTML."""

    async def fetch(self, url: str) -> RawScrapeResult:
        """Fetch a page.

        Raises:
            SourceUnavailableError: If the page cannot be fetched
        """
        ...


class StructuredProviderClient(Protocol):
    """Protocol for running a structured-data provider for one URL."""

    async def run(self, provider: ProviderHandle, url: str) -> RawScrapeResult:
        """Run the provider and return its raw dataset.

        Raises:
            SourceUnavailableError: If the run cannot be started or fails
            ProviderTimeoutError: If the run exceeds its wall-clock budget
        """
        ...

    async def resume(
        self, provider: ProviderHandle, url: str, run_id: str, dataset_id: str | None
    ) -> RawScrapeResult:
        """Re-poll an earlier run with a fresh budget."""
        ...


@dataclass
class ActorRun:
    """State of one remote actor run as last reported."""

    run_id: str
    dataset_id: str | None
    status: str
    actor_id: str

    @classmethod
    def from_response(cls, payload: dict[str, Any], actor_id: str) -> "ActorRun":
        data = payload.get("data") or {}
        run_id = data.get("id")
        if not run_id:
            raise SourceUnavailableError(f"Actor {actor_id} returned no run id")
        return cls(
            run_id=run_id,
            dataset_id=data.get("defaultDatasetId"),
            status=data.get("status") or "READY",
            actor_id=actor_id,
        )


class ApifyClient:
    """Apify actor runner with constant-interval polling."""

    def __init__(
        self,
        api_token: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize the client; unset arguments fall back to Settings.

        Args:
            api_token: Apify API token
            base_url: REST API base URL
            timeout_seconds: Hard budget for submit, polling and dataset fetch
            poll_interval_seconds: Constant delay between status polls
            http_client: Shared client (a per-run client is created if None)
            sleep: Awaitable sleep, injectable for tests
        """
        settings = get_settings()
        self._token = api_token if api_token is not None else settings.apify_api_token
        self._base_url = (base_url or settings.apify_base_url).rstrip("/")
        self._timeout = timeout_seconds or settings.provider_timeout_seconds
        self._poll_interval = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else settings.provider_poll_interval_seconds
        )
        self._http_client = http_client
        self._sleep = sleep

    @property
    def max_poll_attempts(self) -> int:
        """Attempt budget derived from the overall timeout."""
        if self._poll_interval <= 0:
            return max(int(self._timeout), 1)
        return max(int(self._timeout // self._poll_interval), 1)

    async def run(self, provider: ProviderHandle, url: str) -> RawScrapeResult:
        """Submit a run for the URL, wait for it and return its dataset."""
        self._require_token()
        started = time.time()
        state: dict[str, ActorRun] = {}

        async def _submit_and_collect(client: httpx.AsyncClient) -> Any:
            run = await self._submit(client, provider, url)
            state["run"] = run
            return await self._poll_and_fetch(client, run, state)

        items = await self._with_deadline(_submit_and_collect, provider, state)
        return self._to_result(provider, url, items, started)

    async def resume(
        self, provider: ProviderHandle, url: str, run_id: str, dataset_id: str | None
    ) -> RawScrapeResult:
        """Re-poll an existing run with a fresh budget instead of resubmitting."""
        self._require_token()
        started = time.time()
        state = {
            "run": ActorRun(
                run_id=run_id,
                dataset_id=dataset_id,
                status="RUNNING",
                actor_id=provider.actor_id,
            )
        }
        logfire.info("Resuming provider run", provider=provider.id, run_id=run_id)

        async def _collect(client: httpx.AsyncClient) -> Any:
            return await self._poll_and_fetch(client, state["run"], state)

        items = await self._with_deadline(_collect, provider, state)
        return self._to_result(provider, url, items, started)

    # -------------------------------------------------------------------------

    def _require_token(self) -> None:
        if not self._token:
            raise SourceUnavailableError("APIFY_API_TOKEN is not configured")

    async def _with_deadline(
        self,
        work: Callable[[httpx.AsyncClient], Awaitable[Any]],
        provider: ProviderHandle,
        state: dict[str, ActorRun],
    ) -> Any:
        try:
            if self._http_client is not None:
                return await asyncio.wait_for(work(self._http_client), self._timeout)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await asyncio.wait_for(work(client), self._timeout)
        except asyncio.TimeoutError as e:
            raise self._timeout_error(provider, state.get("run")) from e

    def _timeout_error(
        self, provider: ProviderHandle, run: ActorRun | None
    ) -> ProviderTimeoutError:
        logfire.warning(
            "Provider run timed out",
            provider=provider.id,
            run_id=run.run_id if run else None,
            timeout_seconds=self._timeout,
        )
        return ProviderTimeoutError(
            f"{provider.display_name} run timed out after {self._timeout:g} seconds",
            run_id=run.run_id if run else None,
            dataset_id=run.dataset_id if run else None,
            actor_id=provider.actor_id,
        )

    async def _request(
        self, client: httpx.AsyncClient, method: str, path: str, **kwargs: Any
    ) -> Any:
        url = f"{self._base_url}/{path}"
        params = {"token": self._token, **kwargs.pop("params", {})}
        try:
            response = await client.request(method, url, params=params, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailableError(
                f"Apify API error on {path}: {e.response.status_code} {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(f"Apify API request failed on {path}: {e}") from e
        except ValueError as e:
            raise SourceUnavailableError(f"Apify API returned invalid JSON on {path}") from e

    async def _submit(
        self, client: httpx.AsyncClient, provider: ProviderHandle, url: str
    ) -> ActorRun:
        payload = await self._request(
            client,
            "POST",
            f"acts/{provider.actor_id}/runs",
            json=provider.build_actor_input(url),
        )
        run = ActorRun.from_response(payload, provider.actor_id)
        logfire.info(
            "Provider run submitted",
            provider=provider.id,
            actor_id=provider.actor_id,
            run_id=run.run_id,
            token=redact_secret(self._token),
        )
        return run

    async def _poll_and_fetch(
        self, client: httpx.AsyncClient, run: ActorRun, state: dict[str, ActorRun]
    ) -> Any:
        attempts = 0
        while run.status != RUN_STATUS_SUCCEEDED:
            if run.status in TERMINAL_FAILURE_STATUSES:
                raise SourceUnavailableError(
                    f"Actor run {run.run_id} ended with status {run.status}"
                )
            if attempts >= self.max_poll_attempts:
                raise asyncio.TimeoutError()
            await self._sleep(self._poll_interval)
            attempts += 1
            payload = await self._request(
                client, "GET", f"acts/{run.actor_id}/runs/{run.run_id}"
            )
            run = ActorRun.from_response(payload, run.actor_id)
            state["run"] = run
            logfire.info(
                "Provider run status",
                run_id=run.run_id,
                status=run.status,
                attempt=attempts,
                max_attempts=self.max_poll_attempts,
            )

        if not run.dataset_id:
            raise SourceUnavailableError(f"Actor run {run.run_id} has no dataset")
        return await self._request(
            client, "GET", f"datasets/{run.dataset_id}/items", params={"format": "json"}
        )

    @staticmethod
    def _to_result(
        provider: ProviderHandle, url: str, items: Any, started: float
    ) -> RawScrapeResult:
        elapsed = time.time() - started
        logfire.info(
            "Provider dataset fetched",
            provider=provider.id,
            item_count=len(items) if isinstance(items, list) else 1,
            response_time_ms=elapsed * 1000,
        )
        return RawScrapeResult(
            provider=structured_provider_tag(provider.id),
            source_url=url,
            payload=items,
            duration_ms=elapsed * 1000,
        )


class ScraperApiFetcher:
    """Fetch raw HTML through ScraperAPI."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
    ):
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.scraperapi_key
        self._base_url = base_url or settings.scraperapi_base_url
        self._timeout = timeout_seconds or settings.html_fetch_timeout_seconds

    async def fetch(self, url: str) -> RawScrapeResult:
        """Fetch a page's HTML.

        Raises:
            SourceUnavailableError: On a missing key, HTTP error or empty body
            ProviderTimeoutError: When the request exceeds its timeout (no run id)
        """
        if not self._api_key:
            raise SourceUnavailableError("SCRAPERAPI_KEY is not configured")

        start_time = time.time()
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, follow_redirects=True
            ) as client:
                response = await client.get(
                    self._base_url, params={"api_key": self._api_key, "url": url}
                )
                response.raise_for_status()
                html = response.text
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"ScraperAPI timed out fetching {url} after {self._timeout:g} seconds"
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(f"Failed to fetch {url}: {e}") from e

        if not html or not html.strip():
            raise SourceUnavailableError(f"Failed to fetch {url}: no content")

        elapsed = time.time() - start_time
        logfire.info(
            "Page fetched (scraper API)",
            url=url,
            status_code=response.status_code,
            content_length=len(html),
            response_time_ms=elapsed * 1000,
        )
        return RawScrapeResult(
            provider=HTML_PROVIDER_TAG,
            source_url=url,
            payload=html,
            duration_ms=elapsed * 1000,
        )


class FirecrawlFetcher:
    """Fetch rendered page HTML through Firecrawl's scrape endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
    ):
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.firecrawl_api_key
        self._base_url = (base_url or settings.firecrawl_base_url).rstrip("/")
        self._timeout = timeout_seconds or settings.html_fetch_timeout_seconds

    async def fetch(self, url: str) -> RawScrapeResult:
        """Fetch a page's raw HTML.

        Raises:
            SourceUnavailableError: On a missing key, HTTP error, failed scrape or empty page
            ProviderTimeoutError: When the request exceeds its timeout (no run id)
        """
        if not self._api_key:
            raise SourceUnavailableError("FIRECRAWL_API_KEY is not configured")

        start_time = time.time()
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/scrape",
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "url": url,
                        "formats": list(FIRECRAWL_FORMATS),
                        "timeout": int(self._timeout * 1000),
                    },
                )
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"Firecrawl timed out fetching {url} after {self._timeout:g} seconds"
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(f"Failed to fetch {url}: {e}") from e
        except ValueError as e:
            raise SourceUnavailableError(f"Failed to fetch {url}: invalid response body") from e

        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            raise SourceUnavailableError(
                f"Failed to fetch {url}: {error or 'scrape was not successful'}"
            )

        data = body.get("data") or {}
        html = data.get("rawHtml") or data.get("html")
        if not isinstance(html, str) or not html.strip():
            raise SourceUnavailableError(f"Failed to fetch {url}: no content")

        elapsed = time.time() - start_time
        logfire.info(
            "Page fetched (Firecrawl)",
            url=url,
            status_code=response.status_code,
            content_length=len(html),
            response_time_ms=elapsed * 1000,
        )
        return RawScrapeResult(
            provider=HTML_PROVIDER_TAG,
            source_url=url,
            payload=html,
            duration_ms=elapsed * 1000,
        )


def get_html_fetcher(settings: Settings | None = None) -> HtmlFetcher:
    """The HTML fetcher selected by ``SCRAPER_PROVIDER``."""
    settings = settings or get_settings()
    if settings.scraper_provider == "firecrawl":
        return FirecrawlFetcher(
            api_key=settings.firecrawl_api_key,
            base_url=settings.firecrawl_base_url,
            timeout_seconds=settings.html_fetch_timeout_seconds,
        )
    return ScraperApiFetcher(
        api_key=settings.scraperapi_key,
        base_url=settings.scraperapi_base_url,
        timeout_seconds=settings.html_fetch_timeout_seconds,
    )

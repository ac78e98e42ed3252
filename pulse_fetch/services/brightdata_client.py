"""Residential-proxy scraping API client (BrightData Web Unlocker)."""
from typing import Optional

import httpx

from ..config import settings
from ..models.retrieval import FailureReason, FetchOptions, RawPayload, StrategyIdentifier
from .scraping_backend import FetchOutcome, ScrapingBackend


class BrightDataClient(ScrapingBackend):
    """Scrapes through BrightData's unlocker zone; the most expensive strategy."""

    strategy = StrategyIdentifier.PROXY_API

    def __init__(
        self,
        bearer_token: str,
        zone: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            bearer_token: BrightData API token
            zone: Unlocker zone name. Defaults to settings.brightdata_zone
            base_url: API root. Defaults to settings.brightdata_base_url
            transport: Optional httpx transport
        """
        if not bearer_token:
            raise ValueError("BrightData API token is required")
        super().__init__(transport=transport)
        self.bearer_token = bearer_token
        self.zone = zone or settings.brightdata_zone
        self.base_url = (base_url or settings.brightdata_base_url).rstrip("/")

    async def fetch(self, url: str, options: FetchOptions) -> FetchOutcome:
        """Fetch a URL through the unlocker.

        Args:
            url: URL to fetch
            options: Per-attempt options

        Returns:
            Tuple of (payload, failure)
        """
        try:
            async with self._client(
                options.timeout,
                headers={"Authorization": f"Bearer {self.bearer_token}"},
            ) as client:
                response = await client.post(
                    f"{self.base_url}/request",
                    json={"zone": self.zone, "url": url, "format": "raw"},
                )
        except httpx.HTTPError as e:
            return self.failure_for_exception(e, options.timeout)

        status_failure = self.failure_for_status(response)
        if status_failure is not None:
            return status_failure

        body = response.text
        if not body.strip():
            return self.failure(FailureReason.PARSE_ERROR, "BrightData returned an empty body", response.status_code)

        return RawPayload(
            body=body,
            declared_content_type=response.headers.get("content-type", "text/html"),
            status_code=response.status_code,
        ), None

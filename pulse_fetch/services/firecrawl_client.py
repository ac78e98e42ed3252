"""Managed scraping API client (Firecrawl)."""
from typing import Optional

import httpx

from ..config import settings
from ..models.retrieval import FailureReason, FetchOptions, RawPayload, StrategyIdentifier
from .scraping_backend import FetchOutcome, ScrapingBackend, classify_error_message


class FirecrawlClient(ScrapingBackend):
    """Scrapes through Firecrawl's hosted rendering service."""

    strategy = StrategyIdentifier.MANAGED_API

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            api_key: Firecrawl API key
            base_url: API root. Defaults to settings.firecrawl_base_url
            transport: Optional httpx transport
        """
        if not api_key:
            raise ValueError("Firecrawl API key is required")
        super().__init__(transport=transport)
        self.api_key = api_key
        self.base_url = (base_url or settings.firecrawl_base_url).rstrip("/")

    async def fetch(self, url: str, options: FetchOptions) -> FetchOutcome:
        """Scrape a URL via the Firecrawl scrape endpoint.

        Args:
            url: URL to scrape
            options: Per-attempt options

        Returns:
            Tuple of (payload, failure)
        """
        request_body = {
            "url": url,
            "formats": ["html"],
            "onlyMainContent": options.main_content_only,
            # Firecrawl uses milliseconds
            "timeout": int(options.timeout * 1000),
        }

        try:
            async with self._client(
                options.timeout,
                headers={"Authorization": f"Bearer {self.api_key}"},
            ) as client:
                response = await client.post(f"{self.base_url}/v1/scrape", json=request_body)
        except httpx.HTTPError as e:
            return self.failure_for_exception(e, options.timeout)

        status_failure = self.failure_for_status(response)
        if status_failure is not None:
            return status_failure

        try:
            result = response.json()
        except ValueError:
            return self.failure(FailureReason.PARSE_ERROR, "Firecrawl returned invalid JSON")

        if not isinstance(result, dict):
            return self.failure(FailureReason.PARSE_ERROR, "Unexpected Firecrawl response shape")

        data = result.get("data")
        if not result.get("success") or not isinstance(data, dict):
            error = result.get("error") or "Request failed without error details"
            return self.failure(classify_error_message(error, FailureReason.PARSE_ERROR), error)

        metadata = data.get("metadata") or {}
        page_status = metadata.get("statusCode")
        if not isinstance(page_status, int):
            page_status = 200
        if not 200 <= page_status < 300:
            return self.failure(
                FailureReason.NON_SUCCESS_STATUS, f"Target page returned HTTP {page_status}", page_status
            )

        html = data.get("html") or data.get("rawHtml")
        if html:
            return RawPayload(
                body=html,
                declared_content_type=metadata.get("contentType") or "text/html",
                status_code=page_status,
            ), None

        markdown = data.get("markdown")
        if markdown:
            return RawPayload(body=markdown, declared_content_type="text/markdown", status_code=page_status), None

        return self.failure(FailureReason.PARSE_ERROR, "Firecrawl response contained no content")

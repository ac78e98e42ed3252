"""Direct HTTP fetcher: the cheapest retrieval strategy."""
import httpx
from typing import Optional

from ..config import settings
from ..models.retrieval import FailureReason, FetchOptions, RawPayload, StrategyIdentifier
from .content_normalizer import ContentKind, classify_content
from .scraping_backend import FetchOutcome, ScrapingBackend


class NativeFetcher(ScrapingBackend):
    """Fetches pages with a plain async HTTP GET."""

    strategy = StrategyIdentifier.DIRECT
    # A 401/403 from an arbitrary site is an anti-bot wall, not our credentials
    credential_statuses = ()

    def __init__(
        self,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the fetcher.

        Args:
            user_agent: User-Agent header. Defaults to settings.user_agent
            transport: Optional httpx transport
        """
        super().__init__(transport=transport)
        self.user_agent = user_agent or settings.user_agent

    async def fetch(self, url: str, options: FetchOptions) -> FetchOutcome:
        """Fetch a URL directly.

        Args:
            url: URL to fetch
            options: Per-attempt options

        Returns:
            Tuple of (payload, failure)
        """
        try:
            async with self._client(
                options.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            return self.failure_for_exception(e, options.timeout)

        status_failure = self.failure_for_status(response)
        if status_failure is not None:
            return status_failure

        content_type = response.headers.get("content-type", "")
        body = response.text
        kind, _ = classify_content(content_type, body, response.content)
        content = response.content if kind == ContentKind.BINARY else None

        if not body.strip() and not content:
            return self.failure(FailureReason.PARSE_ERROR, "Empty response body", response.status_code)

        return RawPayload(
            body=body,
            declared_content_type=content_type,
            status_code=response.status_code,
            content=content,
        ), None

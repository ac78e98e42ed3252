"""Common interface and failure mapping for retrieval backends."""
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import httpx

from ..models.retrieval import (
    AttemptFailure,
    FailureReason,
    FetchOptions,
    RawPayload,
    StrategyIdentifier,
)

FetchOutcome = Tuple[Optional[RawPayload], Optional[AttemptFailure]]

AUTH_ERROR_MARKERS = ("unauthorized", "invalid token", "authentication", "token expired", "forbidden")
RATE_LIMIT_MARKERS = ("rate limit", "too many requests", "quota")


def classify_error_message(
    message: Optional[str], default: FailureReason = FailureReason.NETWORK
) -> FailureReason:
    """Map a vendor error message to a failure reason."""
    lowered = (message or "").lower()
    if any(marker in lowered for marker in AUTH_ERROR_MARKERS):
        return FailureReason.AUTHENTICATION
    if any(marker in lowered for marker in RATE_LIMIT_MARKERS):
        return FailureReason.RATE_LIMITED
    return default


class ScrapingBackend(ABC):
    """One retrieval strategy: fetch a URL and hand back its raw payload."""

    strategy: StrategyIdentifier
    # Vendor APIs answer 401/403 about our credentials, not about the page
    credential_statuses: Tuple[int, ...] = (401, 403)

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize the backend.

        Args:
            transport: Optional httpx transport (used by tests to stub the network)
        """
        self._transport = transport

    def _client(self, timeout: float, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport, **kwargs)

    @abstractmethod
    async def fetch(self, url: str, options: FetchOptions) -> FetchOutcome:
        """Fetch a URL.

        Returns:
            Tuple of (payload, failure). Exactly one of them is set.
        """

    def failure(
        self, reason: FailureReason, detail: str = "", status_code: Optional[int] = None
    ) -> FetchOutcome:
        return None, AttemptFailure(
            strategy=self.strategy, reason=reason, detail=detail, status_code=status_code
        )

    def failure_for_status(self, response: httpx.Response) -> Optional[FetchOutcome]:
        """Failure for a non-2xx response, or None when the status is a success."""
        status = response.status_code
        if response.is_success:
            return None
        detail = f"HTTP {status} {response.reason_phrase}".strip()
        if status == 429:
            return self.failure(FailureReason.RATE_LIMITED, detail, status)
        if status in self.credential_statuses:
            return self.failure(FailureReason.AUTHENTICATION, detail, status)
        return self.failure(FailureReason.NON_SUCCESS_STATUS, detail, status)

    def failure_for_exception(self, error: Exception, timeout: float) -> FetchOutcome:
        """Failure for an httpx transport error."""
        if isinstance(error, httpx.TimeoutException):
            return self.failure(FailureReason.TIMEOUT, f"Request timed out after {timeout:g}s")
        return self.failure(FailureReason.NETWORK, f"Request failed: {error}")
